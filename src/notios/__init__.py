"""notios: run npm scripts as a tree of processes with merged, bounded logs."""

__version__ = "0.1.0"
