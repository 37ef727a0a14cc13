"""Logging for notios.

Everything logs under the ``notios`` logger through stdlib logging. Where the
records go is decided once, by ``setup_logging``:

- a log file (``logging.file`` in config, or NOTIOS_LOG), appended to;
- otherwise stderr, but only when stderr is an interactive console, since
  headless runs print task output to stdout and are often piped.

Verbosity: 0 error, 1 warning, 2 info (default), 3 verbose, 4 trace.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from notios.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

logger = logging.getLogger("notios")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"

_VERBOSITY = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)

_handlers: list[logging.Handler] = []


class _LowercaseLevelFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        return super().format(record)


def resolve_level(config: LoggingConfig | None) -> int:
    """Effective level; ``verbose`` wins over ``level``, unknown names give INFO."""
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        return _VERBOSITY[max(0, min(config.verbose, len(_VERBOSITY) - 1))]
    if config.level:
        name = config.level.upper()
        if name == "WARN":
            name = "WARNING"
        level = logging.getLevelName(name)
        return level if isinstance(level, int) else logging.INFO
    return logging.INFO


def _open_handler(config: LoggingConfig | None) -> logging.Handler | None:
    log_path = (config.file if config else None) or os.environ.get("NOTIOS_LOG")
    if log_path:
        try:
            return logging.FileHandler(os.path.expanduser(log_path), mode="a", encoding="utf-8")
        except OSError as e:
            if sys.stderr.isatty():
                print(f"[notios] Failed to open log file {log_path}: {e}", file=sys.stderr)
    if sys.stderr.isatty():
        return logging.StreamHandler(sys.stderr)
    return None


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Attach the notios handler. Only the first call has an effect."""
    if _handlers:
        return

    level = resolve_level(config)
    logger.setLevel(level)

    handler = _open_handler(config)
    if handler is None:
        # Nowhere to write; keep records away from the root logger's lastResort
        handler = logging.NullHandler()
    handler.setLevel(level)
    handler.setFormatter(_LowercaseLevelFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    _handlers.append(handler)


def reset_logging() -> None:
    """Detach and close what setup_logging attached."""
    while _handlers:
        handler = _handlers.pop()
        logger.removeHandler(handler)
        handler.close()


def get_logger(name: str | None = None) -> logging.Logger:
    """The notios logger, or its child ``notios.<name>``."""
    return logger.getChild(name) if name else logger
