"""
Annotation session for SiteSketch.

The session owns one annotation pass over a preview target:

1. attach(target) lays a transparent overlay over the preview and
   allocates a stroke surface of the preview's current size
2. pointer input on the overlay draws strokes and widens the bounds
3. complete() rasterizes the preview, composites the strokes on top,
   crops around the strokes and emits the encoded image
4. after a successful capture the surface is wiped for the next one;
   after a failed capture everything is kept so the user can retry
5. detach() removes the overlay and releases the surface

Capture is asynchronous (the rasterizer reports back on a later event-loop
turn). While a capture is in flight, input is ignored and further
complete() calls are no-ops. Results that arrive after the session was
detached or re-attached are dropped.
"""

from enum import Enum, auto
from typing import Optional

import shiboken6
from PySide6.QtCore import QObject, Signal, Slot
from PySide6.QtGui import QImage, QPen

from sitesketch.annotation.compositor import composite
from sitesketch.annotation.errors import (
    AnnotationError,
    RasterizationFailure,
    TargetInaccessible,
)
from sitesketch.annotation.geometry import (
    BoundingBox,
    PointerEvent,
    PointerKind,
    map_to_overlay,
)
from sitesketch.annotation.overlay import AnnotationOverlay
from sitesketch.annotation.rasterizer import RasterizationService
from sitesketch.annotation.region_extractor import (
    DEFAULT_JPEG_QUALITY,
    DEFAULT_PADDING,
    encode_image,
    extract_region,
)
from sitesketch.annotation.stroke_renderer import StrokeRenderer, StrokeState
from sitesketch.annotation.targets import PreviewTarget
from sitesketch.services.logging_service import get_logger


class SessionState(Enum):
    """Lifecycle states of an annotation session."""
    DETACHED = auto()
    ATTACHED = auto()
    CAPTURING = auto()


class AnnotationSession(QObject):
    """
    Orchestrates overlay input and the capture pipeline for one target.

    Signals:
        capture_completed: Emitted once per successful capture with the
            EncodedImage.
        capture_failed: Emitted with an error message when a capture fails.
            The strokes are left in place.
        state_changed: Emitted with the new SessionState.
    """

    capture_completed = Signal(object)
    capture_failed = Signal(str)
    state_changed = Signal(object)

    def __init__(
        self,
        padding: float = DEFAULT_PADDING,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
        pen: Optional[QPen] = None,
        rasterizer: Optional[RasterizationService] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        """
        Args:
            padding: Crop margin around the strokes, in overlay pixels.
            jpeg_quality: Quality of the emitted JPEG, 0-100.
            pen: Stroke pen; defaults to the translucent red marker.
            rasterizer: Overrides the target's own rasterizer.
            parent: Optional parent QObject.
        """
        super().__init__(parent)
        self._logger = get_logger(__name__)

        self._padding = padding
        self._jpeg_quality = jpeg_quality
        self._pen = pen
        self._rasterizer_override = rasterizer

        self._state = SessionState.DETACHED
        self._target: Optional[PreviewTarget] = None
        self._overlay: Optional[AnnotationOverlay] = None
        self._renderer: Optional[StrokeRenderer] = None
        self._rasterizer: Optional[RasterizationService] = None

        # Bumped on every attach/detach; in-flight captures carry the value
        # they started with
        self._generation = 0

    # ─── Properties ───────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_attached(self) -> bool:
        return self._state is not SessionState.DETACHED

    @property
    def target(self) -> Optional[PreviewTarget]:
        return self._target

    @property
    def overlay(self) -> Optional[AnnotationOverlay]:
        return self._overlay

    @property
    def bounds(self) -> Optional[BoundingBox]:
        return self._renderer.bounds if self._renderer else None

    @property
    def surface(self) -> Optional[QImage]:
        return self._renderer.surface if self._renderer else None

    @property
    def stroke_state(self) -> StrokeState:
        return self._renderer.state if self._renderer else StrokeState.IDLE

    # ─── Lifecycle ────────────────────────────────────────────────────────

    def attach(self, target: PreviewTarget) -> None:
        """
        Start annotating target.

        Any previous target is detached first. The stroke surface is sized
        to the target's client area as it is right now.

        Raises:
            AnnotationError: If the target has no drawable area.
        """
        if self._state is not SessionState.DETACHED:
            self.detach()

        host = target.overlay_host()
        renderer = StrokeRenderer(host.size(), self._pen)

        overlay = AnnotationOverlay(host)
        overlay.set_surface(renderer.surface)
        overlay.pointer_event.connect(self.handle_pointer_event)
        overlay.show()
        overlay.raise_()

        self._target = target
        self._renderer = renderer
        self._overlay = overlay
        self._rasterizer = (
            self._rasterizer_override
            if self._rasterizer_override is not None
            else target.create_rasterizer()
        )
        self._generation += 1

        width, height = renderer.size
        self._logger.info(f"Annotation overlay attached ({width}x{height})")
        self._set_state(SessionState.ATTACHED)

    def detach(self) -> None:
        """
        Stop annotating and release the overlay and surface.

        Safe to call repeatedly. A capture still in flight is not
        interrupted, but its result is dropped.
        """
        if self._state is SessionState.DETACHED:
            return

        if self._state is SessionState.CAPTURING:
            self._logger.info("Detaching while a capture is in flight")

        self._generation += 1

        # The preview may already have destroyed the overlay with itself
        if self._overlay is not None and shiboken6.isValid(self._overlay):
            self._overlay.pointer_event.disconnect(self.handle_pointer_event)
            self._overlay.set_surface(None)
            self._overlay.hide()
            self._overlay.deleteLater()

        self._overlay = None
        self._renderer = None
        self._target = None
        self._rasterizer = None

        self._logger.info("Annotation overlay detached")
        self._set_state(SessionState.DETACHED)

    # ─── Input ────────────────────────────────────────────────────────────

    @Slot(object)
    def handle_pointer_event(self, event: PointerEvent) -> None:
        """Feed one pointer event through the stroke state machine."""
        if self._state is not SessionState.ATTACHED:
            return
        renderer = self._renderer
        overlay = self._overlay

        if event.kind is PointerKind.PRESS:
            renderer.begin(map_to_overlay(event, overlay.global_rect()))
            overlay.update()

        elif event.kind is PointerKind.MOVE:
            if renderer.state is StrokeState.DRAWING:
                if renderer.extend(map_to_overlay(event, overlay.global_rect())):
                    overlay.update()

        else:
            renderer.end()

    # ─── Capture ──────────────────────────────────────────────────────────

    def complete(self) -> bool:
        """
        Capture the annotated preview.

        Returns:
            True if a capture was started, False if the session is not
            attached or a capture is already running.
        """
        if self._state is SessionState.CAPTURING:
            self._logger.debug("Capture already in progress, ignoring request")
            return False
        if self._state is not SessionState.ATTACHED:
            self._logger.warning("Capture requested without an attached target")
            return False

        self._renderer.end()
        self._set_state(SessionState.CAPTURING)
        generation = self._generation
        self._logger.info("Starting annotation capture")

        try:
            root = self._target.content_root()
            if root is None:
                raise TargetInaccessible("Preview content is not accessible.")
            viewport = self._target.viewport()
            self._rasterizer.rasterize(
                root,
                viewport,
                lambda image: self._on_rasterized(generation, image),
                lambda error: self._on_rasterize_error(generation, error),
            )
        except AnnotationError as e:
            self._fail(e)
        except Exception as e:
            self._logger.exception("Rasterizer could not be started")
            self._fail(RasterizationFailure(str(e)))

        return True

    def _is_current(self, generation: int) -> bool:
        return (
            generation == self._generation
            and self._state is SessionState.CAPTURING
        )

    def _on_rasterized(self, generation: int, image: QImage) -> None:
        """Composite, crop, encode and emit."""
        if not self._is_current(generation):
            self._logger.info("Discarding capture result for a stale session")
            return

        renderer = self._renderer
        self._logger.debug(f"Rasterized preview: {image.width()}x{image.height()}")

        try:
            flattened = composite(image, renderer.surface)
            region = extract_region(
                flattened, renderer.bounds, renderer.size, self._padding
            )
            encoded = encode_image(region, self._jpeg_quality)
        except AnnotationError as e:
            self._fail(e)
            return
        except Exception as e:
            self._logger.exception("Unexpected error while compositing")
            self._fail(RasterizationFailure(str(e)))
            return

        renderer.clear()
        if self._overlay is not None:
            self._overlay.update()

        self._logger.info(f"Annotation captured: {encoded.width}x{encoded.height}")
        self._set_state(SessionState.ATTACHED)
        self.capture_completed.emit(encoded)

    def _on_rasterize_error(self, generation: int, error: Exception) -> None:
        if not self._is_current(generation):
            self._logger.info(f"Ignoring rasterizer error for a stale session: {error}")
            return
        if not isinstance(error, AnnotationError):
            error = RasterizationFailure(str(error))
        self._fail(error)

    def _fail(self, error: AnnotationError) -> None:
        """Report a failed capture; strokes and bounds stay untouched."""
        message = str(error) or type(error).__name__
        self._logger.error(f"Annotation capture failed ({type(error).__name__}): {message}")
        self._set_state(SessionState.ATTACHED)
        self.capture_failed.emit(message)

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        self._state = state
        self.state_changed.emit(state)
