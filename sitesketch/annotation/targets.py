"""
Preview targets the annotation overlay can be attached to.

A target describes one preview widget to the annotation session: where the
overlay goes, what content to rasterize, and what the viewport currently
shows. Each target also knows which rasterizer understands its content.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from PySide6.QtWidgets import QTextBrowser, QWidget

from sitesketch.annotation.geometry import Viewport
from sitesketch.annotation.rasterizer import (
    RasterizationService,
    TextDocumentRasterizer,
    WebViewRasterizer,
)


class PreviewTarget(ABC):
    """Descriptor of an annotatable preview."""

    @abstractmethod
    def overlay_host(self) -> QWidget:
        """The widget whose client area the overlay covers."""
        pass

    @abstractmethod
    def content_root(self) -> Optional[Any]:
        """The content to rasterize, or None if it is not readable yet."""
        pass

    @abstractmethod
    def viewport(self) -> Viewport:
        """Current client size, scroll offsets and device pixel ratio."""
        pass

    @abstractmethod
    def create_rasterizer(self) -> RasterizationService:
        """A rasterizer able to render content_root()."""
        pass


class TextBrowserTarget(PreviewTarget):
    """Target for a QTextBrowser preview (rich-text subset, no scripts)."""

    def __init__(self, browser: QTextBrowser) -> None:
        self._browser = browser

    def overlay_host(self) -> QWidget:
        return self._browser.viewport()

    def content_root(self) -> Optional[Any]:
        document = self._browser.document()
        if document is None or document.isEmpty():
            return None
        return document

    def viewport(self) -> Viewport:
        host = self._browser.viewport()
        return Viewport(
            width=host.width(),
            height=host.height(),
            scroll_x=float(self._browser.horizontalScrollBar().value()),
            scroll_y=float(self._browser.verticalScrollBar().value()),
            device_pixel_ratio=host.devicePixelRatioF(),
        )

    def create_rasterizer(self) -> RasterizationService:
        return TextDocumentRasterizer()


class WebViewTarget(PreviewTarget):
    """
    Target for a QWebEngineView preview.

    Content counts as readable only after the last load finished
    successfully.
    """

    def __init__(self, view: QWidget) -> None:
        self._view = view
        self._loaded = False
        view.loadStarted.connect(self._on_load_started)
        view.loadFinished.connect(self._on_load_finished)

    def _on_load_started(self) -> None:
        self._loaded = False

    def _on_load_finished(self, ok: bool) -> None:
        self._loaded = ok

    def overlay_host(self) -> QWidget:
        return self._view

    def content_root(self) -> Optional[Any]:
        return self._view if self._loaded else None

    def viewport(self) -> Viewport:
        scroll = self._view.page().scrollPosition()
        return Viewport(
            width=self._view.width(),
            height=self._view.height(),
            scroll_x=scroll.x(),
            scroll_y=scroll.y(),
            device_pixel_ratio=self._view.devicePixelRatioF(),
        )

    def create_rasterizer(self) -> RasterizationService:
        return WebViewRasterizer()
