"""
Region extraction and encoding for captured annotations.

Given the composite image and the overlay-local bounds of everything the
user drew, cut out a padded rectangle around the strokes (scaled into
composite pixels) and encode it as JPEG for the chat request. When nothing
was drawn the whole composite is used.
"""

import base64
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from PySide6.QtCore import QBuffer, QByteArray, QIODevice, QRect
from PySide6.QtGui import QImage

from sitesketch.annotation.errors import CompositingFailure
from sitesketch.annotation.geometry import BoundingBox, CropRect
from sitesketch.services.logging_service import get_logger

DEFAULT_PADDING = 12
DEFAULT_JPEG_QUALITY = 90

logger = get_logger(__name__)


@dataclass(frozen=True)
class EncodedImage:
    """A captured annotation, ready to attach to a chat message."""
    data: str  # base64, no data-URL prefix
    mime_type: str
    width: int
    height: int

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.data)


def compute_crop_rect(
    bounds: BoundingBox,
    overlay_size: Tuple[int, int],
    composite_size: Tuple[int, int],
    padding: float = DEFAULT_PADDING,
) -> CropRect:
    """
    Map overlay-local bounds to a padded, clamped crop in composite pixels.

    Args:
        bounds: Union bounds of the drawn strokes (overlay coordinates).
        overlay_size: (width, height) of the overlay surface.
        composite_size: (width, height) of the composite image.
        padding: Margin added on every side, in overlay units.

    Returns:
        A rectangle inside the composite, at least 1x1 pixel.
    """
    overlay_w, overlay_h = overlay_size
    comp_w, comp_h = composite_size
    if overlay_w <= 0 or overlay_h <= 0 or comp_w <= 0 or comp_h <= 0:
        raise CompositingFailure(
            f"Cannot crop between {overlay_w}x{overlay_h} overlay "
            f"and {comp_w}x{comp_h} composite"
        )

    scale_x = comp_w / overlay_w
    scale_y = comp_h / overlay_h

    min_x = max(0, math.floor((bounds.min_x - padding) * scale_x))
    min_y = max(0, math.floor((bounds.min_y - padding) * scale_y))
    max_x = min(comp_w, math.ceil((bounds.max_x + padding) * scale_x))
    max_y = min(comp_h, math.ceil((bounds.max_y + padding) * scale_y))

    # Strokes can only land off-surface by a pen width; keep at least one
    # pixel inside the image regardless
    min_x = min(min_x, comp_w - 1)
    min_y = min(min_y, comp_h - 1)
    max_x = max(max_x, min_x)
    max_y = max(max_y, min_y)

    return CropRect(
        x=min_x,
        y=min_y,
        width=max(1, max_x - min_x),
        height=max(1, max_y - min_y),
    )


def extract_region(
    image: QImage,
    bounds: Optional[BoundingBox],
    overlay_size: Tuple[int, int],
    padding: float = DEFAULT_PADDING,
) -> QImage:
    """
    Crop the composite around the strokes, or return it whole.

    Args:
        image: The composite image.
        bounds: Stroke bounds, None if the user did not draw.
        overlay_size: (width, height) of the overlay surface.
        padding: Margin in overlay units.

    Returns:
        The cropped image (a new buffer), or image itself when bounds is None.
    """
    if bounds is None:
        logger.debug("No strokes recorded, using the full composite")
        return image

    crop = compute_crop_rect(
        bounds, overlay_size, (image.width(), image.height()), padding
    )
    logger.debug(
        f"Cropping composite {image.width()}x{image.height()} to "
        f"({crop.x}, {crop.y}) {crop.width}x{crop.height}"
    )

    cropped = image.copy(QRect(crop.x, crop.y, crop.width, crop.height))
    if cropped.isNull():
        raise CompositingFailure("Could not copy the crop region")
    return cropped


def encode_image(
    image: QImage,
    quality: int = DEFAULT_JPEG_QUALITY,
) -> EncodedImage:
    """
    Encode an image as base64 JPEG.

    Args:
        image: The image to encode.
        quality: JPEG quality, 0-100.

    Raises:
        CompositingFailure: If Qt cannot write the image.
    """
    payload = QByteArray()
    buffer = QBuffer(payload)
    buffer.open(QIODevice.OpenModeFlag.WriteOnly)
    ok = image.save(buffer, "JPEG", quality)
    buffer.close()

    if not ok or payload.isEmpty():
        raise CompositingFailure("Failed to encode the annotation as JPEG")

    return EncodedImage(
        data=base64.b64encode(bytes(payload.data())).decode("ascii"),
        mime_type="image/jpeg",
        width=image.width(),
        height=image.height(),
    )
