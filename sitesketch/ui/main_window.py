"""
Main window for SiteSketch.

Chat panel on the left, live preview on the right. The window only lays
things out and forwards user intent; AppCore connects it to the chat
service.
"""

from typing import Optional

from PySide6.QtCore import Qt, Signal
from PySide6.QtGui import QAction, QColor, QKeySequence
from PySide6.QtWidgets import (
    QMainWindow,
    QMessageBox,
    QSplitter,
    QWidget,
)

from sitesketch import __version__
from sitesketch.annotation.stroke_renderer import make_stroke_pen
from sitesketch.services.config_service import ConfigService
from sitesketch.services.logging_service import get_logger
from sitesketch.ui.preview_panel import PreviewPanel
from sitesketch.ui.prompt_panel import PromptPanel


STATUS_TIMEOUT_MS = 5000


class MainWindow(QMainWindow):
    """
    Main application window.

    Signals:
        api_key_requested: Emitted from File > Set API Key.
        new_conversation_requested: Emitted from File > New Conversation.
    """

    api_key_requested = Signal()
    new_conversation_requested = Signal()

    def __init__(
        self,
        config_service: ConfigService,
        parent: Optional[QWidget] = None
    ) -> None:
        """
        Initialize the MainWindow.

        Args:
            config_service: Source of preview and annotation settings.
            parent: Optional parent widget.
        """
        super().__init__(parent)
        self._logger = get_logger(__name__)
        self._config = config_service

        self._setup_window()
        self._setup_central_widget()
        self._setup_menu_bar()

        self._logger.info("MainWindow initialized")

    def _setup_window(self) -> None:
        """Configure main window properties."""
        self.setWindowTitle("SiteSketch - Conversational Website Builder")
        self.setMinimumSize(900, 600)
        self.resize(1400, 900)

    def _setup_central_widget(self) -> None:
        """Set up the chat panel and the preview side by side."""
        pen = make_stroke_pen(
            QColor(*self._config.stroke_color), self._config.stroke_width
        )

        self._prompt_panel = PromptPanel(self)
        self._preview_panel = PreviewPanel(
            preview_engine=self._config.preview_engine,
            padding=self._config.annotation_padding,
            jpeg_quality=self._config.jpeg_quality,
            pen=pen,
            parent=self,
        )

        splitter = QSplitter(Qt.Orientation.Horizontal, self)
        splitter.addWidget(self._prompt_panel)
        splitter.addWidget(self._preview_panel)
        splitter.setStretchFactor(0, 1)
        splitter.setStretchFactor(1, 3)
        splitter.setSizes([350, 1050])
        self.setCentralWidget(splitter)

        self._preview_panel.annotation_captured.connect(self._prompt_panel.set_annotation)
        self._preview_panel.status_message.connect(self.show_status)

    def _setup_menu_bar(self) -> None:
        """Create and configure the menu bar."""
        menu_bar = self.menuBar()

        # ─── File Menu ────────────────────────────────────────────────
        file_menu = menu_bar.addMenu("&File")

        new_action = QAction("&New Conversation", self)
        new_action.setShortcut(QKeySequence.StandardKey.New)
        new_action.triggered.connect(self.new_conversation_requested.emit)
        file_menu.addAction(new_action)

        key_action = QAction("Set &API Key...", self)
        key_action.triggered.connect(self.api_key_requested.emit)
        file_menu.addAction(key_action)

        file_menu.addSeparator()

        quit_action = QAction("&Quit", self)
        quit_action.setShortcut(QKeySequence.StandardKey.Quit)
        quit_action.triggered.connect(self.close)
        file_menu.addAction(quit_action)

        # ─── Help Menu ────────────────────────────────────────────────
        help_menu = menu_bar.addMenu("&Help")

        about_action = QAction("&About", self)
        about_action.triggered.connect(self._show_about_dialog)
        help_menu.addAction(about_action)

    # ─── Public Methods ───────────────────────────────────────────────────

    @property
    def prompt_panel(self) -> PromptPanel:
        return self._prompt_panel

    @property
    def preview_panel(self) -> PreviewPanel:
        return self._preview_panel

    def show_status(self, message: str) -> None:
        self.statusBar().showMessage(message, STATUS_TIMEOUT_MS)

    def _show_about_dialog(self) -> None:
        """Display the About dialog."""
        about_text = (
            "<h2>SiteSketch</h2>"
            "<p>Describe a website in plain language and refine it turn by turn.</p>"
            f"<p><b>Version:</b> {__version__}</p>"
            "<hr>"
            "<p><b>Annotating:</b> press <i>Annotate</i>, draw on the preview "
            "(circle what should change), then <i>Done Annotating</i>. "
            "The marked region is sent with your next message.</p>"
            "<p><b>Keyboard Shortcuts:</b></p>"
            "<ul>"
            "<li>Ctrl+Enter - Send message</li>"
            "<li>Ctrl+N - New conversation</li>"
            "<li>Ctrl+Q - Quit</li>"
            "</ul>"
        )

        QMessageBox.about(self, "About SiteSketch", about_text)

    def closeEvent(self, event) -> None:
        """Release the annotation overlay before the window goes away."""
        self._logger.info("MainWindow closing")
        self._preview_panel.cancel_annotation()
        super().closeEvent(event)
