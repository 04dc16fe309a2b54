"""Logging configuration for agent-task-notifier.

All modules log through ``logging.getLogger(__name__)`` and so inherit the
handlers installed here on the ``agent_notifier`` package logger. Console
output goes to stderr so ``emit --print`` and ``decode`` keep stdout clean.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

from agent_notifier.config import Config

LOGGER_NAME = "agent_notifier"

# 2026-01-27 10:30:45 [INFO] message
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# The watcher is long running; keep the file bounded
MAX_LOG_BYTES = 1_000_000
LOG_BACKUP_COUNT = 3

_logger: Optional[logging.Logger] = None


def resolve_level(name: str) -> int:
    """Map a level name to a logging level, defaulting to INFO."""
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(config: Config, level: Optional[str] = None) -> logging.Logger:
    """Set up the package logger from configuration.

    Calling again returns the already configured logger.

    Args:
        config: Configuration with ``log_level`` and ``log_file``.
        level: Overrides ``config.log_level`` (e.g. from ``--verbose``).

    Returns:
        The ``agent_notifier`` logger.
    """
    global _logger

    if _logger is not None:
        return _logger

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(resolve_level(level or config.log_level))
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if config.log_file:
        log_path = Path(config.log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False

    _logger = logger
    return logger


def apply_log_level(config: Config) -> None:
    """Re-apply the configured level after a config reload."""
    if _logger is not None:
        _logger.setLevel(resolve_level(config.log_level))


def reset_logging() -> None:
    """Close handlers and forget the configured logger. Used for testing."""
    global _logger
    if _logger is None:
        return
    for handler in list(_logger.handlers):
        _logger.removeHandler(handler)
        handler.close()
    _logger.setLevel(logging.NOTSET)
    _logger.propagate = True
    _logger = None
