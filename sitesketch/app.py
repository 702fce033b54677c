"""
SiteSketch - build a website by chatting with a model and drawing on the preview.

This is the main entry point for the application.
Run with: python -m sitesketch.app  (or the `sitesketch` console script)
"""

import fcntl
import os
import signal
import sys
from pathlib import Path

from PySide6.QtCore import QCoreApplication, QTimer, Qt
from PySide6.QtWidgets import QApplication

from sitesketch import __version__
from sitesketch.core.app_core import AppCore
from sitesketch.services.config_service import ConfigService
from sitesketch.services.logging_service import (
    apply_log_settings,
    get_logger,
    log_file_path,
    setup_logging,
)


# Lock file for single-instance enforcement
LOCK_FILE = Path.home() / ".cache" / "sitesketch" / "sitesketch.lock"

# Global app reference for signal handlers
_app: QApplication = None
_lock_fd = None
_should_quit = False


def acquire_single_instance_lock() -> bool:
    """
    Acquire a file lock to ensure only one instance runs.

    Returns:
        True if lock acquired (first instance), False if another instance exists.
    """
    global _lock_fd

    LOCK_FILE.parent.mkdir(parents=True, exist_ok=True)

    try:
        lock_fd = os.open(str(LOCK_FILE), os.O_CREAT | os.O_RDWR)
        fcntl.flock(lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)

        os.ftruncate(lock_fd, 0)
        os.write(lock_fd, str(os.getpid()).encode())

        # Keep the descriptor open for the lifetime of the process
        _lock_fd = lock_fd
        return True
    except OSError:
        return False


def request_quit(signum, frame):
    """Handle termination signals; the Qt loop picks this up via a timer."""
    global _should_quit
    _should_quit = True


def check_for_quit():
    """Timer callback to check if we should quit."""
    if _should_quit and _app:
        get_logger(__name__).info("Signal received, quitting...")
        _app.quit()


def main() -> int:
    """
    Main entry point for SiteSketch.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    global _app

    setup_logging()
    logger = get_logger(__name__)

    try:
        config_service = ConfigService()
        apply_log_settings(config_service.log_level, config_service.log_to_file)
        logger.info(f"Starting SiteSketch {__version__}...")
        if log_file_path() is not None:
            logger.info(f"Logging to {log_file_path()}")

        if not acquire_single_instance_lock():
            logger.warning("Another instance of SiteSketch is already running. Exiting.")
            print("SiteSketch is already running.")
            return 1

        # The web preview needs shared GL contexts before the app exists
        QCoreApplication.setAttribute(Qt.ApplicationAttribute.AA_ShareOpenGLContexts)

        _app = QApplication(sys.argv)
        _app.setApplicationName("SiteSketch")
        _app.setOrganizationName("SiteSketch")
        _app.setApplicationVersion(__version__)

        signal.signal(signal.SIGINT, request_quit)
        signal.signal(signal.SIGTERM, request_quit)

        # Qt event loop blocks Python signal delivery; poll
        quit_timer = QTimer()
        quit_timer.timeout.connect(check_for_quit)
        quit_timer.start(100)

        app_core = AppCore(_app, config_service)

        logger.info("SiteSketch initialization complete. Entering event loop...")
        exit_code = _app.exec()

        logger.info(f"SiteSketch exiting with code {exit_code}")
        del app_core
        return exit_code

    except Exception as e:
        logger.critical(f"Fatal error during startup: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
