"""
Preview panel for SiteSketch.

Shows the latest generated site either rendered (Preview) or as source
(Code), and hosts the annotation overlay:

- Annotate: lay a drawing overlay over the rendered preview
- Done Annotating: capture the preview plus strokes, cropped to the strokes
- Un-checking Annotate, switching to Code, or loading new HTML cancels
"""

from enum import Enum
from typing import Optional

from PySide6.QtCore import Qt, Signal, Slot
from PySide6.QtGui import QFont, QPen
from PySide6.QtWidgets import (
    QButtonGroup,
    QFrame,
    QHBoxLayout,
    QLabel,
    QPlainTextEdit,
    QPushButton,
    QStackedWidget,
    QTextBrowser,
    QVBoxLayout,
    QWidget,
)

from sitesketch.annotation.annotation_session import AnnotationSession, SessionState
from sitesketch.annotation.errors import AnnotationError
from sitesketch.annotation.region_extractor import (
    DEFAULT_JPEG_QUALITY,
    DEFAULT_PADDING,
    EncodedImage,
)
from sitesketch.annotation.targets import PreviewTarget, TextBrowserTarget, WebViewTarget
from sitesketch.services.logging_service import get_logger


class ViewMode(Enum):
    """What the panel shows for the generated site."""
    PREVIEW = "preview"
    CODE = "code"


class PreviewPanel(QFrame):
    """
    Rendered/code view of the generated site with annotation support.

    Signals:
        annotation_captured: Emitted with the EncodedImage of a finished
            annotation.
        status_message: Emitted with short user-facing status text.
    """

    annotation_captured = Signal(object)
    status_message = Signal(str)

    # Stack pages
    PAGE_PLACEHOLDER = 0
    PAGE_LOADING = 1
    PAGE_ERROR = 2
    PAGE_PREVIEW = 3
    PAGE_CODE = 4

    def __init__(
        self,
        preview_engine: str = "webengine",
        padding: float = DEFAULT_PADDING,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
        pen: Optional[QPen] = None,
        parent: Optional[QWidget] = None,
    ) -> None:
        """
        Args:
            preview_engine: "webengine" or "text".
            padding: Crop margin for annotations.
            jpeg_quality: JPEG quality for annotations.
            pen: Annotation stroke pen.
            parent: Optional parent widget.
        """
        super().__init__(parent)
        self._logger = get_logger(__name__)

        self._html = ""
        self._view_mode = ViewMode.PREVIEW
        self._loading = False
        self._error: Optional[str] = None

        self._preview_engine = preview_engine
        self._preview_widget: Optional[QWidget] = None
        self._target: Optional[PreviewTarget] = None
        self._base_url = None

        self._session = AnnotationSession(
            padding=padding, jpeg_quality=jpeg_quality, pen=pen, parent=self
        )
        self._session.capture_completed.connect(self._on_capture_completed)
        self._session.capture_failed.connect(self._on_capture_failed)
        self._session.state_changed.connect(self._on_session_state_changed)

        self._setup_ui()
        self._refresh()

    # ─── UI Setup ─────────────────────────────────────────────────────────

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)

        layout.addWidget(self._create_toolbar())

        self._stack = QStackedWidget(self)
        self._stack.addWidget(self._create_message_page(
            "Your Website Appears Here",
            "Describe the website you want in the panel on the left, "
            "then refine it with follow-up messages.",
        ))
        self._stack.addWidget(self._create_message_page(
            "Generating...", "The first version of your site is on its way."
        ))
        self._error_page = self._create_message_page("An Error Occurred", "")
        self._stack.addWidget(self._error_page)

        self._preview_widget, self._target = self._create_preview()
        self._stack.addWidget(self._preview_widget)

        self._code_view = QPlainTextEdit(self)
        self._code_view.setReadOnly(True)
        self._code_view.setLineWrapMode(QPlainTextEdit.LineWrapMode.WidgetWidth)
        self._code_view.setFont(QFont("Monospace", 10))
        self._stack.addWidget(self._code_view)

        layout.addWidget(self._stack, 1)

    def _create_toolbar(self) -> QWidget:
        bar = QFrame(self)
        bar.setStyleSheet("QFrame { background-color: #2d2d2d; }")
        row = QHBoxLayout(bar)
        row.setContentsMargins(8, 6, 8, 6)

        self._preview_button = QPushButton("Preview", bar)
        self._code_button = QPushButton("Code", bar)
        self._mode_group = QButtonGroup(self)
        for button, mode in ((self._preview_button, ViewMode.PREVIEW), (self._code_button, ViewMode.CODE)):
            button.setCheckable(True)
            button.clicked.connect(lambda _=False, m=mode: self.set_view_mode(m))
            self._mode_group.addButton(button)
            row.addWidget(button)
        self._preview_button.setChecked(True)

        row.addStretch(1)

        self._annotate_button = QPushButton("Annotate", bar)
        self._annotate_button.setCheckable(True)
        self._annotate_button.setToolTip("Draw on the preview to point at what to change")
        self._annotate_button.toggled.connect(self._on_annotate_toggled)
        row.addWidget(self._annotate_button)

        self._done_button = QPushButton("Done Annotating", bar)
        self._done_button.clicked.connect(self.complete_annotation)
        row.addWidget(self._done_button)

        return bar

    def _create_message_page(self, title: str, body: str) -> QWidget:
        page = QWidget(self)
        column = QVBoxLayout(page)
        column.addStretch(1)

        title_label = QLabel(title, page)
        title_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        title_font = title_label.font()
        title_font.setPointSize(16)
        title_font.setBold(True)
        title_label.setFont(title_font)
        column.addWidget(title_label)

        body_label = QLabel(body, page)
        body_label.setObjectName("body")
        body_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        body_label.setWordWrap(True)
        column.addWidget(body_label)

        column.addStretch(1)
        return page

    def _create_preview(self):
        """Create the preview widget and its annotation target."""
        if self._preview_engine == "webengine":
            # Imported lazily: QtWebEngine is heavy and optional for the text engine
            from PySide6.QtCore import QUrl
            from PySide6.QtWebEngineCore import QWebEngineSettings
            from PySide6.QtWebEngineWidgets import QWebEngineView

            view = QWebEngineView(self)
            settings = view.settings()
            settings.setAttribute(QWebEngineSettings.WebAttribute.LocalContentCanAccessFileUrls, False)
            settings.setAttribute(QWebEngineSettings.WebAttribute.JavascriptCanOpenWindows, False)
            settings.setAttribute(QWebEngineSettings.WebAttribute.JavascriptCanAccessClipboard, False)
            self._base_url = QUrl("https://preview.sitesketch.invalid/")
            self._logger.info("Using web engine preview")
            return view, WebViewTarget(view)

        browser = QTextBrowser(self)
        browser.setOpenLinks(False)
        browser.setOpenExternalLinks(False)
        self._logger.info("Using text browser preview")
        return browser, TextBrowserTarget(browser)

    # ─── Public API ───────────────────────────────────────────────────────

    @property
    def html(self) -> str:
        return self._html

    @property
    def view_mode(self) -> ViewMode:
        return self._view_mode

    @property
    def session(self) -> AnnotationSession:
        return self._session

    @property
    def is_annotating(self) -> bool:
        return self._session.is_attached

    def set_html(self, html: str) -> None:
        """Show a new generated document and switch to Preview."""
        self.cancel_annotation()
        self._html = html
        self._error = None

        if isinstance(self._preview_widget, QTextBrowser):
            self._preview_widget.setHtml(html)
        else:
            self._preview_widget.setHtml(html, self._base_url)
        self._code_view.setPlainText(html)

        self._view_mode = ViewMode.PREVIEW
        self._refresh()

    def set_loading(self, loading: bool) -> None:
        self._loading = loading
        self._refresh()

    def set_error(self, message: Optional[str]) -> None:
        """Show message full-page when there is no site to display yet."""
        self._error = message
        if message:
            self._error_page.findChild(QLabel, "body").setText(message)
        self._refresh()

    def set_view_mode(self, mode: ViewMode) -> None:
        if mode is ViewMode.CODE:
            self.cancel_annotation()
        self._view_mode = mode
        self._refresh()

    def start_annotation(self) -> bool:
        """Attach the drawing overlay to the rendered preview."""
        if not self._html:
            self.status_message.emit("Nothing to annotate yet.")
            return False
        if self._view_mode is not ViewMode.PREVIEW:
            self.set_view_mode(ViewMode.PREVIEW)

        try:
            self._session.attach(self._target)
        except AnnotationError as e:
            self._logger.error(f"Could not start annotating: {e}")
            self.status_message.emit(f"Could not start annotating: {e}")
            self._refresh()
            return False

        self.status_message.emit("Draw on the preview, then press Done Annotating.")
        return True

    @Slot()
    def complete_annotation(self) -> None:
        self._session.complete()

    def cancel_annotation(self) -> None:
        self._session.detach()

    # ─── Slots ────────────────────────────────────────────────────────────

    @Slot(bool)
    def _on_annotate_toggled(self, checked: bool) -> None:
        if checked and not self.is_annotating:
            if not self.start_annotation():
                self._annotate_button.setChecked(False)
        elif not checked and self.is_annotating:
            self.cancel_annotation()

    @Slot(object)
    def _on_capture_completed(self, image: EncodedImage) -> None:
        self.cancel_annotation()
        self.status_message.emit(f"Annotation attached ({image.width}×{image.height}).")
        self.annotation_captured.emit(image)

    @Slot(str)
    def _on_capture_failed(self, message: str) -> None:
        self.status_message.emit(f"Could not capture the annotation: {message}")

    @Slot(object)
    def _on_session_state_changed(self, state: SessionState) -> None:
        self._refresh()

    def _refresh(self) -> None:
        """Sync the visible page and buttons with the current state."""
        if not self._html:
            if self._loading:
                page = self.PAGE_LOADING
            elif self._error:
                page = self.PAGE_ERROR
            else:
                page = self.PAGE_PLACEHOLDER
        elif self._view_mode is ViewMode.PREVIEW:
            page = self.PAGE_PREVIEW
        else:
            page = self.PAGE_CODE
        self._stack.setCurrentIndex(page)

        self._preview_button.setChecked(self._view_mode is ViewMode.PREVIEW)
        self._code_button.setChecked(self._view_mode is ViewMode.CODE)

        state = self._session.state
        self._annotate_button.setEnabled(bool(self._html))
        self._annotate_button.blockSignals(True)
        self._annotate_button.setChecked(state is not SessionState.DETACHED)
        self._annotate_button.blockSignals(False)

        self._done_button.setVisible(state is not SessionState.DETACHED)
        self._done_button.setEnabled(state is SessionState.ATTACHED)
        self._done_button.setText(
            "Capturing..." if state is SessionState.CAPTURING else "Done Annotating"
        )
