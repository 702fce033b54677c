"""
Logging service for SiteSketch.

Logging starts in two steps:

1. setup_logging() installs the console handler before anything else runs,
   so messages from loading the configuration are already formatted
2. apply_log_settings() applies the [logging] section of the config once it
   is loaded: the root level, and whether a daily log file is written to
   ~/.local/share/sitesketch/logs/

The HTTP stack underneath the Gemini SDK logs every request at INFO; those
loggers are held at WARNING unless the configured level is DEBUG.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Union


# Default log directory following XDG Base Directory Specification
DEFAULT_LOG_DIR = Path.home() / ".local" / "share" / "sitesketch" / "logs"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

SDK_LOGGERS = ("httpx", "httpcore", "google_genai")

_console_handler: Optional[logging.Handler] = None
_file_handler: Optional[logging.FileHandler] = None


def _resolve_level(level: Union[int, str]) -> int:
    """Accept a logging constant or a level name such as "debug"."""
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        return resolved
    return level


def setup_logging(
    log_level: Union[int, str] = logging.INFO,
    log_to_file: bool = False,
    log_dir: Optional[Path] = None,
) -> None:
    """
    Install the console handler on the root logger.

    Repeated calls only re-apply the level and file settings.

    Args:
        log_level: Logging constant or level name.
        log_to_file: Whether to also log to a daily file.
        log_dir: Directory for log files. Defaults to ~/.local/share/sitesketch/logs/
    """
    global _console_handler

    if _console_handler is None:
        root_logger = logging.getLogger()
        root_logger.handlers.clear()

        _console_handler = logging.StreamHandler()
        _console_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        root_logger.addHandler(_console_handler)

    apply_log_settings(log_level, log_to_file, log_dir)


def apply_log_settings(
    log_level: Union[int, str],
    log_to_file: bool,
    log_dir: Optional[Path] = None,
) -> None:
    """
    Apply the configured level and file output to the running logger tree.

    Args:
        log_level: Logging constant or level name.
        log_to_file: Add the daily file handler if True, remove it if False.
        log_dir: Directory for log files. Defaults to ~/.local/share/sitesketch/logs/
    """
    level = _resolve_level(log_level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    if _console_handler is not None:
        _console_handler.setLevel(level)

    if log_to_file:
        _enable_file_output(root_logger, level, log_dir or DEFAULT_LOG_DIR)
    else:
        _disable_file_output(root_logger)

    sdk_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in SDK_LOGGERS:
        logging.getLogger(name).setLevel(sdk_level)


def _enable_file_output(root_logger: logging.Logger, level: int, log_dir: Path) -> None:
    global _file_handler

    log_path = log_dir / f"sitesketch_{datetime.now().strftime('%Y%m%d')}.log"
    if _file_handler is not None:
        if Path(_file_handler.baseFilename) == log_path.resolve():
            _file_handler.setLevel(level)
            return
        _disable_file_output(root_logger)

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        _file_handler = logging.FileHandler(log_path, encoding="utf-8")
    except (OSError, PermissionError) as e:
        root_logger.warning(f"Could not create log file: {e}. Logging to console only.")
        return

    _file_handler.setLevel(level)
    _file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    root_logger.addHandler(_file_handler)


def _disable_file_output(root_logger: logging.Logger) -> None:
    global _file_handler

    if _file_handler is None:
        return
    root_logger.removeHandler(_file_handler)
    _file_handler.close()
    _file_handler = None


def log_file_path() -> Optional[Path]:
    """The file currently being written, or None for console-only logging."""
    return Path(_file_handler.baseFilename) if _file_handler is not None else None


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: The name for the logger, typically __name__ of the calling module.

    Returns:
        A configured Logger instance.
    """
    return logging.getLogger(name)
