"""
Stroke renderer for the annotation overlay.

Owns the overlay surface (a transparent QImage sized to the preview) and
draws freehand strokes onto it as the user drags. Every point that touches
the surface also widens the running bounding box, which later drives the
crop of the captured image.

Drawing is additive only: there is no undo or erase. Multiple gestures
accumulate on the same surface and the same bounds.
"""

from enum import Enum, auto
from typing import Optional, Tuple

from PySide6.QtCore import QPointF, QSize, Qt
from PySide6.QtGui import QColor, QImage, QPainter, QPen

from sitesketch.annotation.errors import CompositingFailure
from sitesketch.annotation.geometry import BoundingBox
from sitesketch.services.logging_service import get_logger


DEFAULT_STROKE_COLOR = QColor(255, 22, 22, 178)
DEFAULT_STROKE_WIDTH = 4


class StrokeState(Enum):
    """Renderer states."""
    IDLE = auto()
    DRAWING = auto()


def make_stroke_pen(
    color: Optional[QColor] = None,
    width: int = DEFAULT_STROKE_WIDTH,
) -> QPen:
    """Create the marker pen used for annotation strokes."""
    pen = QPen(QColor(color) if color is not None else QColor(DEFAULT_STROKE_COLOR))
    pen.setWidth(width)
    pen.setCapStyle(Qt.PenCapStyle.RoundCap)
    pen.setJoinStyle(Qt.PenJoinStyle.RoundJoin)
    return pen


class StrokeRenderer:
    """
    Freehand stroke state machine over a persistent drawing surface.

    IDLE -> DRAWING on begin(), DRAWING -> DRAWING on extend(),
    DRAWING -> IDLE on end(). extend() and end() are ignored while IDLE.
    """

    def __init__(self, size: QSize, pen: Optional[QPen] = None) -> None:
        """
        Args:
            size: Surface size in overlay pixels; fixed for the renderer's life.
            pen: Stroke pen; defaults to translucent red with round caps.
        """
        self._logger = get_logger(__name__)

        if size.width() <= 0 or size.height() <= 0:
            raise CompositingFailure(
                f"Cannot create a {size.width()}x{size.height()} overlay surface"
            )

        self._surface = QImage(size, QImage.Format.Format_ARGB32_Premultiplied)
        if self._surface.isNull():
            raise CompositingFailure("Could not allocate the overlay surface")
        self._surface.fill(Qt.GlobalColor.transparent)

        self._pen = pen if pen is not None else make_stroke_pen()
        self._state = StrokeState.IDLE
        self._last_point: Optional[QPointF] = None
        self._bounds: Optional[BoundingBox] = None

    # ─── Properties ───────────────────────────────────────────────────────

    @property
    def state(self) -> StrokeState:
        return self._state

    @property
    def bounds(self) -> Optional[BoundingBox]:
        """Union bounds of every recorded point, None until the first one."""
        return self._bounds

    @property
    def surface(self) -> QImage:
        return self._surface

    @property
    def size(self) -> Tuple[int, int]:
        return (self._surface.width(), self._surface.height())

    # ─── Gestures ─────────────────────────────────────────────────────────

    def begin(self, point: QPointF) -> None:
        """Start a new path at point (pointer down / touch start)."""
        self._state = StrokeState.DRAWING
        self._last_point = QPointF(point)
        self._record(point)
        self._logger.debug(f"Stroke started at ({point.x():.1f}, {point.y():.1f})")

    def extend(self, point: QPointF) -> bool:
        """
        Draw a segment from the last point to point.

        Returns:
            True if the surface changed (i.e. a stroke was active).
        """
        if self._state is not StrokeState.DRAWING or self._last_point is None:
            return False

        painter = QPainter(self._surface)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.setPen(self._pen)
        painter.drawLine(self._last_point, point)
        painter.end()

        self._last_point = QPointF(point)
        self._record(point)
        return True

    def end(self) -> None:
        """Finish the current path (pointer up / leave / touch end)."""
        if self._state is StrokeState.IDLE:
            return
        self._state = StrokeState.IDLE
        self._last_point = None

    def clear(self) -> None:
        """Wipe the surface and forget the bounds."""
        self._surface.fill(Qt.GlobalColor.transparent)
        self._state = StrokeState.IDLE
        self._last_point = None
        self._bounds = None

    def _record(self, point: QPointF) -> None:
        if self._bounds is None:
            self._bounds = BoundingBox.from_point(point.x(), point.y())
        else:
            self._bounds = self._bounds.include(point.x(), point.y())
