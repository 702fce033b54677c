"""
Application core for SiteSketch.

This module contains the AppCore class which is responsible for:
- Initializing all services (config, logging, chat)
- Creating and managing the main window
- Applying global styling (dark theme)
- Wiring the chat service to the window
- Handling the message flow (text + pending annotation -> model -> preview)

This is the central orchestration point for the application.
"""

from typing import Optional

from PySide6.QtCore import QObject, Slot
from PySide6.QtGui import QColor, QPalette
from PySide6.QtWidgets import QApplication, QDialog

from sitesketch.core.chat_service import ChatError, ChatService
from sitesketch.services.config_service import ConfigService
from sitesketch.services.logging_service import get_logger
from sitesketch.ui.api_key_dialog import ApiKeyDialog
from sitesketch.ui.main_window import MainWindow


class AppCore(QObject):
    """
    Central application core that wires together all components.

    The message flow:
    1. User types an instruction (optionally after annotating the preview)
    2. The text and the pending annotation go to the ChatService
    3. The reply lands in the transcript; an HTML block replaces the preview
    """

    def __init__(
        self,
        app: QApplication,
        config_service: Optional[ConfigService] = None,
    ) -> None:
        """
        Initialize the application core.

        Args:
            app: The QApplication instance.
            config_service: Optional pre-built config (defaults to the user's).
        """
        super().__init__()
        self._app = app
        self._logger = get_logger(__name__)
        self._logger.info("Initializing SiteSketch application core...")

        self._config_service = config_service or ConfigService()
        self._chat_service = ChatService(parent=self)
        self._main_window: Optional[MainWindow] = None

        self._apply_dark_theme()
        self._init_ui()
        self._connect_signals()
        self._start_chat_session(prompt_for_key=True)

    def _apply_dark_theme(self) -> None:
        """Apply a dark color palette to the application."""
        palette = QPalette()

        palette.setColor(QPalette.ColorRole.Window, QColor(45, 45, 45))
        palette.setColor(QPalette.ColorRole.WindowText, QColor(220, 220, 220))
        palette.setColor(QPalette.ColorRole.Base, QColor(35, 35, 35))
        palette.setColor(QPalette.ColorRole.AlternateBase, QColor(50, 50, 50))
        palette.setColor(QPalette.ColorRole.Text, QColor(220, 220, 220))
        palette.setColor(QPalette.ColorRole.BrightText, QColor(255, 255, 255))
        palette.setColor(QPalette.ColorRole.Button, QColor(55, 55, 55))
        palette.setColor(QPalette.ColorRole.ButtonText, QColor(220, 220, 220))
        palette.setColor(QPalette.ColorRole.Highlight, QColor(0, 139, 163))
        palette.setColor(QPalette.ColorRole.HighlightedText, QColor(255, 255, 255))
        palette.setColor(QPalette.ColorRole.ToolTipBase, QColor(60, 60, 60))
        palette.setColor(QPalette.ColorRole.ToolTipText, QColor(220, 220, 220))

        for role in (
            QPalette.ColorRole.WindowText,
            QPalette.ColorRole.Text,
            QPalette.ColorRole.ButtonText,
        ):
            palette.setColor(QPalette.ColorGroup.Disabled, role, QColor(127, 127, 127))

        self._app.setPalette(palette)
        self._app.setStyleSheet("""
            QToolTip {
                background-color: #3d3d3d;
                color: #dcdcdc;
                border: 1px solid #5a5a5a;
                padding: 4px;
            }
            QPushButton {
                padding: 5px 12px;
            }
            QPushButton:checked {
                background-color: #0e7490;
            }
        """)

        self._logger.debug("Dark theme applied")

    def _init_ui(self) -> None:
        self._main_window = MainWindow(self._config_service)
        self._main_window.show()

    def _connect_signals(self) -> None:
        """Connect chat service and window signals."""
        window = self._main_window
        chat = self._chat_service

        chat.message_added.connect(window.prompt_panel.append_message)
        chat.html_generated.connect(window.preview_panel.set_html)
        chat.busy_changed.connect(self._on_busy_changed)
        chat.request_failed.connect(self._on_request_failed)

        window.prompt_panel.send_requested.connect(self._on_send_requested)
        window.api_key_requested.connect(self._on_api_key_requested)
        window.new_conversation_requested.connect(self._on_new_conversation)

        self._logger.debug("All signals connected")

    # ─── Chat Session ─────────────────────────────────────────────────────

    def _start_chat_session(self, prompt_for_key: bool = False) -> bool:
        api_key = self._config_service.api_key
        if not api_key and prompt_for_key:
            api_key = self._ask_for_api_key()

        try:
            self._chat_service.start_session(api_key, self._config_service.model)
        except ChatError as e:
            self._logger.error(str(e))
            self._main_window.preview_panel.set_error(str(e))
            self._main_window.show_status(str(e))
            return False

        self._main_window.preview_panel.set_error(None)
        return True

    def _ask_for_api_key(self) -> str:
        dialog = ApiKeyDialog(self._config_service.api_key, self._main_window)
        if dialog.exec() != QDialog.DialogCode.Accepted:
            return ""

        if dialog.remember:
            self._config_service.set("api_key", dialog.api_key)
            self._config_service.save()
        return dialog.api_key

    # ─── Slots ────────────────────────────────────────────────────────────

    @Slot(str)
    def _on_send_requested(self, text: str) -> None:
        panel = self._main_window.prompt_panel
        if not self._chat_service.has_session:
            self._main_window.show_status("Set an API key first (File > Set API Key).")
            return

        if self._chat_service.send_message(text, panel.annotation):
            panel.clear_input()
            panel.clear_annotation()

    @Slot(bool)
    def _on_busy_changed(self, busy: bool) -> None:
        self._main_window.prompt_panel.set_busy(busy)
        self._main_window.preview_panel.set_loading(busy)

    @Slot(str)
    def _on_request_failed(self, message: str) -> None:
        self._main_window.preview_panel.set_error(message)
        self._main_window.show_status(f"Request failed: {message}")

    @Slot()
    def _on_api_key_requested(self) -> None:
        if self._chat_service.is_busy:
            self._main_window.show_status("Wait for the current reply first.")
            return
        api_key = self._ask_for_api_key()
        if api_key:
            self._start_with_key(api_key)

    def _start_with_key(self, api_key: str) -> bool:
        if self._chat_service.is_busy:
            self._main_window.show_status("Wait for the current reply first.")
            return False
        try:
            self._chat_service.start_session(api_key, self._config_service.model)
        except ChatError as e:
            self._main_window.show_status(str(e))
            return False
        self._main_window.prompt_panel.clear_transcript()
        self._main_window.preview_panel.set_error(None)
        self._main_window.show_status("Chat session started.")
        return True

    @Slot()
    def _on_new_conversation(self) -> None:
        if self._chat_service.is_busy:
            self._main_window.show_status("Wait for the current reply first.")
            return
        if self._start_chat_session():
            self._main_window.prompt_panel.clear_transcript()
            self._main_window.prompt_panel.clear_annotation()
            self._main_window.show_status("Started a new conversation.")

    # ─── Properties ───────────────────────────────────────────────────────

    @property
    def config(self) -> ConfigService:
        return self._config_service

    @property
    def main_window(self) -> MainWindow:
        if self._main_window is None:
            raise RuntimeError("MainWindow not initialized")
        return self._main_window
