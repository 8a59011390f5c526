"""Logger setup for abac-gate.

Two kinds of log output exist:
- Dedicated JSONL loggers (the decision audit log) created with
  setup_jsonl_logger(). They do not propagate, so their events never reach
  the system log.
- The system log: every module logger (``abac-gate.session``,
  ``abac-gate.store``...) propagates to the ``abac-gate`` package logger,
  which configure_package_logging() points at <log_dir>/system/system.jsonl.
"""

from __future__ import annotations

__all__ = [
    "configure_package_logging",
    "setup_jsonl_logger",
]

import logging
import sys
from pathlib import Path

from abac_gate.constants import APP_NAME
from abac_gate.utils.logging.iso_formatter import ISO8601Formatter


def _ensure_secure_log_directory(log_file: Path) -> None:
    """Create the log file's directory with owner-only permissions.

    Raises:
        PermissionError: If unable to create log directory due to permissions.
        OSError: If directory creation fails for other reasons.
    """
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        raise PermissionError(f"Cannot create log directory {log_file.parent}: {e}") from e
    except OSError as e:
        raise OSError(f"Failed to create log directory {log_file.parent}: {e}") from e

    if sys.platform != "win32":
        try:
            log_file.parent.chmod(0o700)
        except OSError:
            pass  # Shared or pre-existing directory owned by someone else


def _file_handler(log_file: Path, log_level: int, *, include_logger: bool) -> logging.FileHandler:
    handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    handler.setLevel(log_level)
    handler.setFormatter(ISO8601Formatter(include_logger=include_logger))
    return handler


def setup_jsonl_logger(
    logger_name: str,
    log_file: Path,
    log_level: int = logging.INFO,
) -> logging.Logger:
    """Set up a standalone logger that writes JSONL to log_file.

    Calling this again for the same name replaces the previous handlers, so
    rebuilding a service in the same process does not duplicate lines.

    Args:
        logger_name: Name for the logger (e.g., "abac-gate.audit.decisions").
        log_file: Path to the log file.
        log_level: Logging level (default: INFO).

    Returns:
        logging.Logger: Configured logger instance.
    """
    _ensure_secure_log_directory(log_file)

    logger = logging.getLogger(logger_name)
    logger.setLevel(log_level)
    logger.propagate = False

    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.addHandler(_file_handler(log_file, log_level, include_logger=False))

    return logger


def configure_package_logging(log_file: Path, log_level: int = logging.WARNING) -> logging.Logger:
    """Send every ``abac-gate.*`` module log at log_level or above to log_file.

    The package logger keeps propagating, so host applications (and test
    log capture) still see the same records. Calling this again replaces the
    previous file handler.

    Args:
        log_file: Path to the system log file.
        log_level: Minimum level written to the file.

    Returns:
        The ``abac-gate`` package logger.
    """
    _ensure_secure_log_directory(log_file)

    package_logger = logging.getLogger(APP_NAME)
    package_logger.setLevel(min(log_level, logging.INFO))

    for handler in [h for h in package_logger.handlers if isinstance(h, logging.FileHandler)]:
        handler.close()
        package_logger.removeHandler(handler)
    package_logger.addHandler(_file_handler(log_file, log_level, include_logger=True))

    return package_logger
