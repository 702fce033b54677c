"""
Transparent drawing overlay laid over the live preview.

The overlay is only an input source and a view: it converts mouse, leave
and touch events into PointerEvents for the annotation session and paints
the session's stroke surface. It never writes to the surface itself.
"""

from typing import Optional

from PySide6.QtCore import QEvent, QPoint, QPointF, QRectF, QSizeF, Qt, Signal
from PySide6.QtGui import QCursor, QImage, QPainter
from PySide6.QtWidgets import QWidget

from sitesketch.annotation.geometry import pointer_event_from_qt
from sitesketch.services.logging_service import get_logger


_TOUCH_EVENTS = (
    QEvent.Type.TouchBegin,
    QEvent.Type.TouchUpdate,
    QEvent.Type.TouchEnd,
    QEvent.Type.TouchCancel,
)


class AnnotationOverlay(QWidget):
    """
    Child widget covering the preview's client area.

    Signals:
        pointer_event: Emitted with a PointerEvent for every press, move,
            release, leave and touch event.
    """

    pointer_event = Signal(object)

    def __init__(self, parent: QWidget) -> None:
        """
        Args:
            parent: The preview widget to cover; the overlay takes its size.
        """
        super().__init__(parent)
        self._logger = get_logger(__name__)
        self._surface: Optional[QImage] = None

        self._setup_widget()

    def _setup_widget(self) -> None:
        """Configure transparency, cursor and input handling."""
        self.setAttribute(Qt.WidgetAttribute.WA_NoSystemBackground)
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground)
        self.setAttribute(Qt.WidgetAttribute.WA_AcceptTouchEvents)
        self.setAutoFillBackground(False)
        self.setCursor(QCursor(Qt.CursorShape.CrossCursor))
        self.setGeometry(self.parentWidget().rect())

    def set_surface(self, surface: Optional[QImage]) -> None:
        """Set the stroke surface to display (None to show nothing)."""
        self._surface = surface
        self.update()

    def global_rect(self) -> QRectF:
        """The overlay's current on-screen rectangle."""
        origin = self.mapToGlobal(QPoint(0, 0))
        return QRectF(QPointF(origin), QSizeF(self.size()))

    # ─── Event Handlers ───────────────────────────────────────────────────

    def paintEvent(self, event) -> None:
        """Paint the stroke surface stretched over the overlay."""
        if self._surface is None or self._surface.isNull():
            return
        painter = QPainter(self)
        painter.drawImage(QRectF(self.rect()), self._surface)
        painter.end()

    def mousePressEvent(self, event) -> None:
        if event.button() == Qt.MouseButton.LeftButton:
            self._forward(event)
        event.accept()

    def mouseMoveEvent(self, event) -> None:
        if event.buttons() & Qt.MouseButton.LeftButton:
            self._forward(event)
        event.accept()

    def mouseReleaseEvent(self, event) -> None:
        if event.button() == Qt.MouseButton.LeftButton:
            self._forward(event)
        event.accept()

    def leaveEvent(self, event) -> None:
        self._forward(event)
        super().leaveEvent(event)

    def event(self, event) -> bool:
        if event.type() in _TOUCH_EVENTS:
            self._forward(event)
            event.accept()
            return True
        return super().event(event)

    def _forward(self, event) -> None:
        pointer = pointer_event_from_qt(event)
        if pointer is not None:
            self.pointer_event.emit(pointer)
