"""
Compositor: flattens the rasterized preview and the stroke overlay.

The overlay is sized in logical (widget) pixels while the rasterized
document is usually in device pixels, so the overlay is stretched to fill
the output instead of being drawn 1:1.
"""

from PySide6.QtCore import QRectF, Qt
from PySide6.QtGui import QImage, QPainter

from sitesketch.annotation.errors import CompositingFailure


def composite(document: QImage, overlay: QImage) -> QImage:
    """
    Draw the document at the origin and the overlay stretched on top.

    Args:
        document: The rasterized preview; defines the output size.
        overlay: The transparent stroke surface.

    Returns:
        A new opaque image the size of document.

    Raises:
        CompositingFailure: If either input is empty or allocation fails.
    """
    if document.isNull() or document.width() <= 0 or document.height() <= 0:
        raise CompositingFailure("Rasterized document image is empty")
    if overlay.isNull() or overlay.width() <= 0 or overlay.height() <= 0:
        raise CompositingFailure("Overlay surface is empty")

    # Work in raw pixels; a grabbed image may carry a device pixel ratio
    document = _at_unit_ratio(document)
    overlay = _at_unit_ratio(overlay)

    result = QImage(document.size(), QImage.Format.Format_RGB32)
    if result.isNull():
        raise CompositingFailure(
            f"Could not allocate a {document.width()}x{document.height()} composite"
        )
    # JPEG has no alpha; transparent document pixels end up white
    result.fill(Qt.GlobalColor.white)

    painter = QPainter(result)
    if not painter.isActive():
        raise CompositingFailure("Could not start painting on the composite")
    painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
    painter.drawImage(0, 0, document)
    painter.drawImage(
        QRectF(0, 0, result.width(), result.height()),
        overlay,
        QRectF(0, 0, overlay.width(), overlay.height()),
    )
    painter.end()

    return result


def _at_unit_ratio(image: QImage) -> QImage:
    if image.devicePixelRatio() == 1.0:
        return image
    image = QImage(image)
    image.setDevicePixelRatio(1.0)
    return image
