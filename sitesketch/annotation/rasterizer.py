"""
Document rasterizers for the live preview.

A rasterizer turns what the preview currently shows (its viewport, at its
current scroll position) into a QImage in device pixels. The work is
deferred to the next event-loop turn and reported through callbacks so
the capture never runs inside the input handler that requested it.

Rasterizers:
- TextDocumentRasterizer: paints a QTextDocument (QTextBrowser preview)
- WebViewRasterizer: grabs a QWebEngineView (or any QWidget) viewport
"""

import math
from abc import ABC, abstractmethod
from typing import Any, Callable

from PySide6.QtCore import QRect, QRectF, QTimer, Qt
from PySide6.QtGui import QImage, QPainter, QTextDocument
from PySide6.QtWidgets import QWidget

from sitesketch.annotation.errors import (
    AnnotationError,
    RasterizationFailure,
    TargetInaccessible,
)
from sitesketch.annotation.geometry import Viewport
from sitesketch.annotation.overlay import AnnotationOverlay
from sitesketch.services.logging_service import get_logger


ReadyCallback = Callable[[QImage], None]
ErrorCallback = Callable[[Exception], None]


class RasterizationService(ABC):
    """
    Base class for preview rasterizers.

    Subclasses implement render(); callers use rasterize(), which runs
    render() on the next event-loop turn and reports through exactly one
    of the two callbacks. No timeout is applied.
    """

    def __init__(self) -> None:
        self._logger = get_logger(__name__)

    @abstractmethod
    def render(self, root: Any, viewport: Viewport) -> QImage:
        """Synchronously rasterize root as seen through viewport."""
        pass

    def rasterize(
        self,
        root: Any,
        viewport: Viewport,
        on_ready: ReadyCallback,
        on_error: ErrorCallback,
    ) -> None:
        """
        Rasterize root asynchronously.

        Args:
            root: The preview content (type depends on the rasterizer).
            viewport: Visible size, scroll offsets and device pixel ratio.
            on_ready: Called with the image on success.
            on_error: Called with an AnnotationError on failure.
        """
        QTimer.singleShot(0, lambda: self._run(root, viewport, on_ready, on_error))

    def _run(
        self,
        root: Any,
        viewport: Viewport,
        on_ready: ReadyCallback,
        on_error: ErrorCallback,
    ) -> None:
        try:
            image = self.render(root, viewport)
            if image is None or image.isNull():
                raise RasterizationFailure("Rasterizer returned an empty image")
        except AnnotationError as e:
            on_error(e)
            return
        except Exception as e:
            self._logger.exception("Unexpected rasterizer error")
            on_error(RasterizationFailure(str(e)))
            return

        self._logger.debug(
            f"Rasterized viewport {viewport.width}x{viewport.height} "
            f"@({viewport.scroll_x:.0f}, {viewport.scroll_y:.0f}) "
            f"-> {image.width()}x{image.height()}"
        )
        on_ready(image)


class TextDocumentRasterizer(RasterizationService):
    """
    Paints a QTextDocument the way a QTextBrowser viewport shows it.

    The document is translated by the scroll offsets so the image starts
    at the first visible line, and scaled by the device pixel ratio so the
    output is in device pixels.
    """

    def render(self, root: Any, viewport: Viewport) -> QImage:
        if not isinstance(root, QTextDocument):
            raise TargetInaccessible("Preview content is not a text document")
        if viewport.width <= 0 or viewport.height <= 0:
            raise RasterizationFailure(
                f"Viewport has no area: {viewport.width}x{viewport.height}"
            )

        ratio = viewport.device_pixel_ratio or 1.0
        image = QImage(
            math.ceil(viewport.width * ratio),
            math.ceil(viewport.height * ratio),
            QImage.Format.Format_ARGB32_Premultiplied,
        )
        if image.isNull():
            raise RasterizationFailure("Could not allocate the raster buffer")
        image.fill(Qt.GlobalColor.white)

        painter = QPainter(image)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.setRenderHint(QPainter.RenderHint.TextAntialiasing)
        painter.scale(ratio, ratio)
        painter.translate(-viewport.scroll_x, -viewport.scroll_y)
        root.drawContents(
            painter,
            QRectF(viewport.scroll_x, viewport.scroll_y, viewport.width, viewport.height),
        )
        painter.end()

        return image


class WebViewRasterizer(RasterizationService):
    """
    Grabs the rendered viewport of a QWebEngineView.

    The web view only ever paints its visible viewport, so grabbing the
    client rectangle already reflects the page's scroll position.

    QWidget.grab() paints child widgets too, and the annotation overlay is a
    child of the view. Visible overlays are hidden for the duration of the
    grab so the raster holds the page alone; the strokes are added once, by
    the compositor.
    """

    def render(self, root: Any, viewport: Viewport) -> QImage:
        if not isinstance(root, QWidget):
            raise TargetInaccessible("Preview content is not a widget")
        if not root.isVisible():
            raise TargetInaccessible("Preview is not visible")

        overlays = [
            overlay for overlay in root.findChildren(AnnotationOverlay)
            if overlay.isVisible()
        ]
        for overlay in overlays:
            overlay.hide()
        try:
            pixmap = root.grab(QRect(0, 0, viewport.width, viewport.height))
        finally:
            for overlay in overlays:
                overlay.show()

        if pixmap.isNull():
            raise RasterizationFailure("Could not grab the preview")

        image = pixmap.toImage()
        image.setDevicePixelRatio(1.0)
        return image
