"""Configuration schema dataclasses for notios.

Defines the structure of configuration at all levels (system, user, project).
All fields have defaults so partial configs merge together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from notios.keymapping.actions import PageKeymappings


@dataclass
class ProcConfig:
    """Process tree and log history configuration.

    Example config.yaml:
        proc:
          force_no_color: false
          enable_unread_marker: true
          history_always_keep_head_size: 100
          history_cache_size: 1000
          npm_path: npm
    """

    force_no_color: bool = False  # Never ask children for colour
    enable_unread_marker: bool = True  # Track unread lines per node
    history_always_keep_head_size: int = 100  # First lines of a log never dropped
    history_cache_size: int = 1000  # Latest lines kept after the head
    npm_path: str = "npm"  # Executable run as `<npm_path> run <task>`


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, wins over level
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object.

    Aggregates all configuration sections. keymappings holds parsed,
    validated sequences per page (defaults merged with user settings).
    """

    proc: ProcConfig = field(default_factory=ProcConfig)
    keymappings: dict[str, PageKeymappings] = field(default_factory=dict)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Extension point for future config sections
    extra: dict[str, Any] = field(default_factory=dict)
