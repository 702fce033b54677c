"""
Shared fixtures for the SiteSketch test suite.

Tests run headless on Qt's offscreen platform. External collaborators (the
rasterizer and the Gemini client) are replaced with in-process fakes.
"""

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from typing import Any, List, Optional, Tuple

import pytest
from PySide6.QtCore import QPointF, Qt
from PySide6.QtGui import QColor, QImage
from PySide6.QtWidgets import QWidget

from sitesketch.annotation.annotation_session import AnnotationSession
from sitesketch.annotation.geometry import PointerEvent, PointerKind, Viewport
from sitesketch.annotation.rasterizer import RasterizationService
from sitesketch.annotation.targets import PreviewTarget


def solid_image(width: int, height: int, color=Qt.GlobalColor.blue) -> QImage:
    image = QImage(width, height, QImage.Format.Format_ARGB32_Premultiplied)
    image.fill(QColor(color))
    return image


class FakeRasterizer(RasterizationService):
    """
    Records rasterize() calls and lets the test decide when and how each
    one finishes.
    """

    def __init__(self) -> None:
        super().__init__()
        self.calls: List[Tuple[Any, Viewport, Any, Any]] = []

    def render(self, root: Any, viewport: Viewport) -> QImage:
        raise NotImplementedError

    def rasterize(self, root, viewport, on_ready, on_error) -> None:
        self.calls.append((root, viewport, on_ready, on_error))

    def resolve(self, image: QImage, index: int = -1) -> None:
        self.calls[index][2](image)

    def reject(self, error: Exception, index: int = -1) -> None:
        self.calls[index][3](error)


class FakeTarget(PreviewTarget):
    """A plain widget standing in for the preview."""

    def __init__(self, host: QWidget, root: Optional[Any] = "document", ratio: float = 2.0) -> None:
        self.host = host
        self.root = root
        self.ratio = ratio
        self.rasterizer = FakeRasterizer()

    def overlay_host(self) -> QWidget:
        return self.host

    def content_root(self) -> Optional[Any]:
        return self.root

    def viewport(self) -> Viewport:
        return Viewport(
            width=self.host.width(),
            height=self.host.height(),
            scroll_x=0.0,
            scroll_y=120.0,
            device_pixel_ratio=self.ratio,
        )

    def create_rasterizer(self) -> RasterizationService:
        return self.rasterizer


class OverlayDriver:
    """Builds global-coordinate pointer events for an attached session."""

    def __init__(self, session) -> None:
        self.session = session

    def _at(self, kind: PointerKind, x: float, y: float) -> PointerEvent:
        origin = self.session.overlay.global_rect().topLeft()
        return PointerEvent(kind, QPointF(origin.x() + x, origin.y() + y))

    def press(self, x: float, y: float) -> None:
        self.session.handle_pointer_event(self._at(PointerKind.PRESS, x, y))

    def move(self, x: float, y: float) -> None:
        self.session.handle_pointer_event(self._at(PointerKind.MOVE, x, y))

    def release(self, x: float = 0, y: float = 0) -> None:
        self.session.handle_pointer_event(self._at(PointerKind.RELEASE, x, y))

    def leave(self) -> None:
        self.session.handle_pointer_event(PointerEvent(PointerKind.LEAVE))

    def stroke(self, *points: Tuple[float, float]) -> None:
        self.press(*points[0])
        for point in points[1:]:
            self.move(*point)
        self.release(*points[-1])


@pytest.fixture
def host(qtbot):
    """A visible 400x300 widget placed away from the screen origin."""
    widget = QWidget()
    qtbot.addWidget(widget)
    widget.setGeometry(137, 59, 400, 300)
    widget.show()
    return widget


@pytest.fixture
def target(host):
    return FakeTarget(host)


@pytest.fixture
def session(qtbot):
    annotation_session = AnnotationSession(padding=12, jpeg_quality=90)
    yield annotation_session
    annotation_session.detach()


@pytest.fixture
def driver(session):
    return OverlayDriver(session)


@pytest.fixture
def make_image():
    return solid_image


@pytest.fixture
def make_target():
    return FakeTarget


@pytest.fixture
def make_driver():
    return OverlayDriver
