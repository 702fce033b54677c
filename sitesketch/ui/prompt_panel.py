"""
Prompt panel for SiteSketch: transcript, pending annotation and input box.
"""

import html
from typing import Optional

from PySide6.QtCore import QUrl, Qt, Signal, Slot
from PySide6.QtGui import QImage, QKeySequence, QPixmap, QShortcut, QTextCursor, QTextDocument
from PySide6.QtWidgets import (
    QFrame,
    QHBoxLayout,
    QLabel,
    QPlainTextEdit,
    QPushButton,
    QTextBrowser,
    QVBoxLayout,
    QWidget,
)

from sitesketch.annotation.region_extractor import EncodedImage
from sitesketch.core.chat_service import ChatMessage
from sitesketch.core.html_extractor import extract_html_content
from sitesketch.services.logging_service import get_logger


THUMBNAIL_WIDTH = 220


def _to_qimage(image: EncodedImage) -> QImage:
    decoded = QImage()
    decoded.loadFromData(image.to_bytes(), "JPEG")
    return decoded


class PromptPanel(QFrame):
    """
    Left-hand chat panel.

    Signals:
        send_requested: Emitted with the message text when the user sends.
    """

    send_requested = Signal(str)

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._logger = get_logger(__name__)
        self._annotation: Optional[EncodedImage] = None
        self._busy = False
        self._image_count = 0

        self._setup_ui()
        self._refresh()

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(8, 8, 8, 8)

        self._transcript = QTextBrowser(self)
        self._transcript.setOpenExternalLinks(False)
        self._transcript.setPlaceholderText("Describe the website you want to build.")
        layout.addWidget(self._transcript, 1)

        # Pending annotation preview
        self._annotation_frame = QFrame(self)
        annotation_row = QHBoxLayout(self._annotation_frame)
        annotation_row.setContentsMargins(0, 4, 0, 4)
        self._annotation_label = QLabel(self._annotation_frame)
        annotation_row.addWidget(self._annotation_label, 1)
        self._clear_annotation_button = QPushButton("Remove", self._annotation_frame)
        self._clear_annotation_button.setToolTip("Don't send this annotation")
        self._clear_annotation_button.clicked.connect(self.clear_annotation)
        annotation_row.addWidget(self._clear_annotation_button)
        layout.addWidget(self._annotation_frame)

        self._input = QPlainTextEdit(self)
        self._input.setPlaceholderText("e.g. A landing page for a coffee shop (Ctrl+Enter to send)")
        self._input.setMaximumHeight(120)
        self._input.textChanged.connect(self._refresh)
        layout.addWidget(self._input)

        self._send_button = QPushButton("Send", self)
        self._send_button.clicked.connect(self._on_send)
        layout.addWidget(self._send_button)

        shortcut = QShortcut(QKeySequence("Ctrl+Return"), self._input)
        shortcut.activated.connect(self._on_send)

    # ─── Public API ───────────────────────────────────────────────────────

    @property
    def annotation(self) -> Optional[EncodedImage]:
        return self._annotation

    @property
    def message_text(self) -> str:
        return self._input.toPlainText()

    def set_annotation(self, image: Optional[EncodedImage]) -> None:
        """Set (or clear with None) the annotation sent with the next message."""
        self._annotation = image
        if image is not None:
            pixmap = QPixmap.fromImage(_to_qimage(image))
            if pixmap.width() > THUMBNAIL_WIDTH:
                pixmap = pixmap.scaledToWidth(
                    THUMBNAIL_WIDTH, Qt.TransformationMode.SmoothTransformation
                )
            self._annotation_label.setPixmap(pixmap)
        else:
            self._annotation_label.clear()
        self._refresh()

    @Slot()
    def clear_annotation(self) -> None:
        self.set_annotation(None)

    def clear_input(self) -> None:
        self._input.clear()

    def set_busy(self, busy: bool) -> None:
        self._busy = busy
        self._refresh()

    def clear_transcript(self) -> None:
        self._transcript.clear()

    @Slot(object)
    def append_message(self, message: ChatMessage) -> None:
        """Render one transcript entry."""
        who = "You" if message.role == "user" else "SiteSketch"
        color = "#8ab4f8" if message.role == "user" else "#81c995"
        if message.is_error:
            color = "#f28b82"

        text = message.text
        if message.role == "model" and extract_html_content(text):
            # The document itself lives in the preview
            text = text.split("```html", 1)[0].strip() or "Here is the updated site."
            text += "\n[HTML updated]"

        block = (
            f'<p><b style="color:{color}">{who}</b><br>'
            f'{html.escape(text).replace(chr(10), "<br>")}</p>'
        )
        if message.image is not None:
            self._image_count += 1
            name = f"annotation-{self._image_count}"
            image = _to_qimage(message.image)
            self._transcript.document().addResource(
                QTextDocument.ResourceType.ImageResource, QUrl(name), image
            )
            width = min(THUMBNAIL_WIDTH, image.width())
            block = block.replace("</p>", f'<br><img src="{name}" width="{width}"></p>', 1)

        self._transcript.moveCursor(QTextCursor.MoveOperation.End)
        self._transcript.insertHtml(block)
        self._transcript.moveCursor(QTextCursor.MoveOperation.End)

    # ─── Slots ────────────────────────────────────────────────────────────

    @Slot()
    def _on_send(self) -> None:
        text = self.message_text.strip()
        if not text or self._busy:
            return
        self.send_requested.emit(text)

    def _refresh(self) -> None:
        has_text = bool(self.message_text.strip())
        self._send_button.setEnabled(has_text and not self._busy)
        self._send_button.setText("Generating..." if self._busy else "Send")
        self._annotation_frame.setVisible(self._annotation is not None)
