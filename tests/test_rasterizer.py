import pytest
from PySide6.QtCore import Qt
from PySide6.QtGui import QColor, QTextDocument
from PySide6.QtWidgets import QWidget

from sitesketch.annotation.errors import RasterizationFailure, TargetInaccessible
from sitesketch.annotation.geometry import Viewport
from sitesketch.annotation.rasterizer import (
    TextDocumentRasterizer,
    WebViewRasterizer,
)

TALL_HTML = "".join(
    f'<p style="background:{"#000000" if i < 5 else "#ffffff"}">Line {i}</p>'
    for i in range(80)
)


@pytest.fixture
def document(qapp):
    doc = QTextDocument()
    doc.setHtml(TALL_HTML)
    doc.setTextWidth(300)
    return doc


def test_image_is_in_device_pixels(document):
    image = TextDocumentRasterizer().render(document, Viewport(300, 200, device_pixel_ratio=2.0))
    assert (image.width(), image.height()) == (600, 400)


def test_fractional_ratio_rounds_up(document):
    image = TextDocumentRasterizer().render(document, Viewport(301, 201, device_pixel_ratio=1.5))
    assert (image.width(), image.height()) == (452, 302)


def test_scroll_offset_changes_output(document):
    rasterizer = TextDocumentRasterizer()
    top = rasterizer.render(document, Viewport(300, 200))
    scrolled = rasterizer.render(document, Viewport(300, 200, scroll_y=1200))
    assert top != scrolled


def test_non_document_root_is_inaccessible(qapp):
    with pytest.raises(TargetInaccessible):
        TextDocumentRasterizer().render("<html></html>", Viewport(10, 10))


def test_empty_viewport_fails(document):
    with pytest.raises(RasterizationFailure):
        TextDocumentRasterizer().render(document, Viewport(0, 100))


def test_rasterize_reports_on_a_later_turn(qtbot, document):
    results = []
    TextDocumentRasterizer().rasterize(
        document, Viewport(100, 50), results.append, results.append
    )
    assert results == []
    qtbot.waitUntil(lambda: len(results) == 1)
    assert results[0].width() == 100


def test_rasterize_reports_errors_through_callback(qtbot):
    errors = []
    TextDocumentRasterizer().rasterize(
        object(), Viewport(100, 50), lambda image: None, errors.append
    )
    qtbot.waitUntil(lambda: len(errors) == 1)
    assert isinstance(errors[0], TargetInaccessible)


def test_unexpected_errors_become_rasterization_failures(qtbot):
    class Broken(TextDocumentRasterizer):
        def render(self, root, viewport):
            raise ValueError("boom")

    errors = []
    Broken().rasterize(None, Viewport(10, 10), lambda image: None, errors.append)
    qtbot.waitUntil(lambda: len(errors) == 1)
    assert isinstance(errors[0], RasterizationFailure)
    assert "boom" in str(errors[0])


def test_web_view_rasterizer_grabs_visible_widget(qtbot):
    widget = QWidget()
    qtbot.addWidget(widget)
    widget.resize(120, 80)
    widget.setStyleSheet("background: #00ff00")
    widget.setAutoFillBackground(True)
    widget.show()
    qtbot.waitExposed(widget)

    image = WebViewRasterizer().render(widget, Viewport(120, 80))
    assert not image.isNull()
    assert image.devicePixelRatio() == 1.0


def test_web_view_rasterizer_requires_visible_widget(qtbot):
    widget = QWidget()
    qtbot.addWidget(widget)
    with pytest.raises(TargetInaccessible):
        WebViewRasterizer().render(widget, Viewport(10, 10))
    with pytest.raises(TargetInaccessible):
        WebViewRasterizer().render(QTextDocument(), Viewport(10, 10))
