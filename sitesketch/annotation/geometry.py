"""
Geometry primitives for the annotation pipeline.

- PointerEvent: a toolkit-neutral pointer/touch event in global coordinates
- map_to_overlay: global event position -> overlay-local point
- BoundingBox: running bounds of every point drawn in a session
- Viewport: what the preview currently shows (size, scroll, pixel ratio)
- CropRect: integer rectangle in composite-image pixels
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, Tuple

from PySide6.QtCore import QEvent, QPointF, QRectF
from PySide6.QtGui import QEventPoint


class PointerKind(Enum):
    """Kinds of pointer input the overlay forwards."""
    PRESS = auto()
    MOVE = auto()
    RELEASE = auto()
    LEAVE = auto()


@dataclass(frozen=True)
class PointerEvent:
    """
    A mouse or touch event, positions in global (screen) coordinates.

    For touch input, touches holds the currently active touch points and the
    first one wins over position.
    """
    kind: PointerKind
    position: QPointF = field(default_factory=QPointF)
    touches: Tuple[QPointF, ...] = ()

    @property
    def is_touch(self) -> bool:
        return bool(self.touches)


def map_to_overlay(event: PointerEvent, rect: QRectF) -> QPointF:
    """
    Translate an event into overlay-local coordinates.

    The rect must be queried fresh for every event so page scrolling or
    window moves around the overlay are picked up.

    Args:
        event: The pointer event (global coordinates).
        rect: The overlay's current on-screen rectangle.

    Returns:
        The point relative to the overlay's top-left corner.
    """
    source = event.touches[0] if event.touches else event.position
    return QPointF(source.x() - rect.left(), source.y() - rect.top())


_QT_KINDS = {
    QEvent.Type.MouseButtonPress: PointerKind.PRESS,
    QEvent.Type.MouseMove: PointerKind.MOVE,
    QEvent.Type.MouseButtonRelease: PointerKind.RELEASE,
    QEvent.Type.Leave: PointerKind.LEAVE,
    QEvent.Type.TouchBegin: PointerKind.PRESS,
    QEvent.Type.TouchUpdate: PointerKind.MOVE,
    QEvent.Type.TouchEnd: PointerKind.RELEASE,
    QEvent.Type.TouchCancel: PointerKind.RELEASE,
}


def pointer_event_from_qt(event: QEvent) -> Optional[PointerEvent]:
    """
    Convert a Qt mouse/touch/leave event into a PointerEvent.

    Returns:
        The converted event, or None for event types the overlay ignores.
    """
    kind = _QT_KINDS.get(event.type())
    if kind is None:
        return None

    if kind is PointerKind.LEAVE:
        return PointerEvent(kind)

    if event.type() in (
        QEvent.Type.TouchBegin,
        QEvent.Type.TouchUpdate,
        QEvent.Type.TouchEnd,
        QEvent.Type.TouchCancel,
    ):
        points = event.points()
        active = tuple(
            QPointF(p.globalPosition())
            for p in points
            if p.state() != QEventPoint.State.Released
        )
        position = QPointF(points[0].globalPosition()) if points else QPointF()
        return PointerEvent(kind, position, active)

    return PointerEvent(kind, QPointF(event.globalPosition()))


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned bounds in overlay-local coordinates."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def from_point(cls, x: float, y: float) -> "BoundingBox":
        return cls(x, y, x, y)

    def include(self, x: float, y: float) -> "BoundingBox":
        """Return the bounds widened to contain (x, y)."""
        return BoundingBox(
            min(self.min_x, x),
            min(self.min_y, y),
            max(self.max_x, x),
            max(self.max_y, y),
        )

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y


@dataclass(frozen=True)
class Viewport:
    """The visible part of a preview document."""
    width: int
    height: int
    scroll_x: float = 0.0
    scroll_y: float = 0.0
    device_pixel_ratio: float = 1.0


@dataclass(frozen=True)
class CropRect:
    """Integer crop rectangle in composite-image pixels."""
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height
