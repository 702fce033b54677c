import pytest
from PySide6.QtCore import QPoint, Qt
from PySide6.QtGui import QColor, QImage, QPalette
from PySide6.QtTest import QTest
from PySide6.QtWidgets import QTextBrowser, QWidget

from sitesketch.annotation.annotation_session import AnnotationSession, SessionState
from sitesketch.annotation.errors import CompositingFailure, RasterizationFailure
from sitesketch.annotation.geometry import BoundingBox, Viewport
from sitesketch.annotation.rasterizer import WebViewRasterizer
from sitesketch.annotation.stroke_renderer import StrokeState
from sitesketch.annotation.targets import TextBrowserTarget


def collect(signal):
    received = []
    signal.connect(received.append)
    return received


# ─── Lifecycle ────────────────────────────────────────────────────────────


def test_attach_creates_overlay_matching_host(session, target, host):
    session.attach(target)

    assert session.state is SessionState.ATTACHED
    assert session.overlay.parentWidget() is host
    assert session.overlay.size() == host.size()
    assert (session.surface.width(), session.surface.height()) == (400, 300)
    assert session.bounds is None


def test_detach_is_idempotent(session, target):
    states = collect(session.state_changed)
    session.attach(target)
    session.detach()
    session.detach()

    assert session.state is SessionState.DETACHED
    assert session.overlay is None
    assert session.surface is None
    assert states == [SessionState.ATTACHED, SessionState.DETACHED]


def test_reattach_replaces_previous_overlay(session, target, make_target, qtbot):
    other_host = QWidget()
    qtbot.addWidget(other_host)
    other_host.resize(200, 100)
    other_host.show()

    session.attach(target)
    first = session.overlay
    session.attach(make_target(other_host))

    assert session.overlay is not first
    assert session.overlay.parentWidget() is other_host
    assert (session.surface.width(), session.surface.height()) == (200, 100)


def test_zero_sized_host_cannot_be_attached(session, make_target, qtbot):
    empty = QWidget()
    qtbot.addWidget(empty)
    empty.resize(0, 0)

    with pytest.raises(CompositingFailure):
        session.attach(make_target(empty))
    assert session.state is SessionState.DETACHED


# ─── Drawing ──────────────────────────────────────────────────────────────


def test_strokes_accumulate_bounds_in_overlay_coordinates(session, target, driver):
    session.attach(target)
    driver.stroke((50, 50), (150, 60), (100, 100))
    driver.stroke((120, 80), (130, 70))

    assert session.bounds == BoundingBox(50, 50, 150, 100)
    assert session.stroke_state is StrokeState.IDLE


def test_move_without_press_does_not_draw(session, target, driver):
    session.attach(target)
    driver.move(10, 10)
    assert session.bounds is None


def test_leave_ends_the_stroke(session, target, driver):
    session.attach(target)
    driver.press(10, 10)
    driver.move(20, 20)
    driver.leave()
    driver.move(300, 250)

    assert session.stroke_state is StrokeState.IDLE
    assert session.bounds == BoundingBox(10, 10, 20, 20)


def test_overlay_forwards_real_mouse_input(session, target, qtbot):
    session.attach(target)
    qtbot.mousePress(session.overlay, Qt.MouseButton.LeftButton, pos=QPoint(30, 40))
    qtbot.mouseRelease(session.overlay, Qt.MouseButton.LeftButton, pos=QPoint(30, 40))

    assert session.bounds == BoundingBox(30, 40, 30, 40)


# ─── Capture ──────────────────────────────────────────────────────────────


def test_capture_crops_around_strokes(session, target, driver, make_image):
    completed = collect(session.capture_completed)
    session.attach(target)
    driver.stroke((50, 50), (150, 100))

    assert session.complete() is True
    assert session.state is SessionState.CAPTURING
    target.rasterizer.resolve(make_image(800, 600))

    assert len(completed) == 1
    assert (completed[0].width, completed[0].height) == (248, 148)
    assert completed[0].mime_type == "image/jpeg"
    assert session.state is SessionState.ATTACHED


def test_rasterizer_receives_target_viewport(session, target, driver):
    session.attach(target)
    session.complete()

    root, viewport, _, _ = target.rasterizer.calls[0]
    assert root == "document"
    assert (viewport.width, viewport.height) == (400, 300)
    assert viewport.scroll_y == 120.0
    assert viewport.device_pixel_ratio == 2.0


def test_capture_without_strokes_uses_whole_composite(session, target, make_image):
    completed = collect(session.capture_completed)
    session.attach(target)
    session.complete()
    target.rasterizer.resolve(make_image(800, 600))

    assert (completed[0].width, completed[0].height) == (800, 600)


def test_complete_is_not_reentrant(session, target, driver, make_image):
    completed = collect(session.capture_completed)
    session.attach(target)
    driver.stroke((10, 10), (20, 20))

    assert session.complete() is True
    assert session.complete() is False
    assert len(target.rasterizer.calls) == 1

    target.rasterizer.resolve(make_image(800, 600))
    assert len(completed) == 1


def test_complete_while_detached_does_nothing(session):
    assert session.complete() is False
    assert session.state is SessionState.DETACHED


def test_input_is_ignored_while_capturing(session, target, driver):
    session.attach(target)
    driver.stroke((10, 10), (20, 20))
    session.complete()

    driver.stroke((300, 250), (350, 280))
    assert session.bounds == BoundingBox(10, 10, 20, 20)


def test_success_resets_surface_and_bounds(session, target, driver, make_image):
    session.attach(target)
    driver.stroke((50, 50), (150, 100))
    session.complete()
    target.rasterizer.resolve(make_image(800, 600))

    assert session.bounds is None
    blank = QImage(session.surface)
    blank.fill(Qt.GlobalColor.transparent)
    assert session.surface == blank

    # Ready for a second capture
    driver.stroke((5, 5), (6, 6))
    assert session.bounds == BoundingBox(5, 5, 6, 6)


def test_failure_keeps_strokes_and_reports(session, target, driver):
    completed = collect(session.capture_completed)
    failed = collect(session.capture_failed)
    session.attach(target)
    driver.stroke((50, 50), (150, 100))
    before = session.surface.copy()

    session.complete()
    target.rasterizer.reject(RasterizationFailure("grab failed"))

    assert completed == []
    assert failed == ["grab failed"]
    assert session.state is SessionState.ATTACHED
    assert session.bounds == BoundingBox(50, 50, 150, 100)
    assert session.surface == before


def test_retry_after_failure(session, target, driver, make_image):
    completed = collect(session.capture_completed)
    session.attach(target)
    driver.stroke((50, 50), (150, 100))

    session.complete()
    target.rasterizer.reject(RuntimeError("transient"))
    session.complete()
    target.rasterizer.resolve(make_image(800, 600))

    assert len(completed) == 1
    assert (completed[0].width, completed[0].height) == (248, 148)


def test_inaccessible_content_fails_without_rasterizing(session, host, make_target):
    target = make_target(host, root=None)
    failed = collect(session.capture_failed)
    session.attach(target)

    assert session.complete() is True
    assert target.rasterizer.calls == []
    assert len(failed) == 1
    assert session.state is SessionState.ATTACHED


def test_empty_rasterized_image_is_a_failure(session, target, driver):
    completed = collect(session.capture_completed)
    failed = collect(session.capture_failed)
    session.attach(target)
    driver.stroke((50, 50), (60, 60))
    session.complete()
    target.rasterizer.resolve(QImage())

    assert completed == []
    assert len(failed) == 1
    assert session.bounds == BoundingBox(50, 50, 60, 60)


def test_result_after_detach_is_discarded(session, target, driver, make_image):
    completed = collect(session.capture_completed)
    failed = collect(session.capture_failed)
    session.attach(target)
    driver.stroke((50, 50), (150, 100))
    session.complete()
    session.detach()

    target.rasterizer.resolve(make_image(800, 600))
    target.rasterizer.reject(RasterizationFailure("late"))

    assert completed == []
    assert failed == []
    assert session.state is SessionState.DETACHED


def test_result_after_reattach_is_discarded(session, target, driver, make_image):
    completed = collect(session.capture_completed)
    session.attach(target)
    driver.stroke((50, 50), (150, 100))
    session.complete()
    session.attach(target)

    target.rasterizer.resolve(make_image(800, 600), index=0)

    assert completed == []
    assert session.state is SessionState.ATTACHED


# ─── End to end ───────────────────────────────────────────────────────────


def test_text_browser_capture_end_to_end(qtbot, driver, session):
    browser = QTextBrowser()
    qtbot.addWidget(browser)
    browser.resize(420, 320)
    browser.setHtml("<h1>Hello</h1>" + "<p>Some content</p>" * 40)
    browser.show()
    qtbot.waitExposed(browser)

    target = TextBrowserTarget(browser)
    session.attach(target)
    driver.stroke((20, 20), (80, 60))

    with qtbot.waitSignal(session.capture_completed, timeout=5000) as blocker:
        assert session.complete() is True

    encoded = blocker.args[0]
    ratio = browser.viewport().devicePixelRatioF()
    assert encoded.width <= (80 + 12) * ratio + 1
    assert encoded.height <= (60 + 12) * ratio + 1
    assert encoded.to_bytes()[:2] == b"\xff\xd8"
    assert session.bounds is None


def test_text_browser_without_content_is_inaccessible(qtbot, session):
    browser = QTextBrowser()
    qtbot.addWidget(browser)
    browser.resize(200, 200)
    browser.show()

    session.attach(TextBrowserTarget(browser))
    with qtbot.waitSignal(session.capture_failed, timeout=1000):
        session.complete()


# ─── Web view capture ─────────────────────────────────────────────────────


@pytest.fixture
def white_host(qtbot):
    widget = QWidget()
    qtbot.addWidget(widget)
    palette = widget.palette()
    palette.setColor(QPalette.ColorRole.Window, QColor(Qt.GlobalColor.white))
    widget.setPalette(palette)
    widget.setAutoFillBackground(True)
    widget.resize(400, 300)
    widget.show()
    qtbot.waitExposed(widget)
    return widget


def test_grabbed_view_excludes_the_overlay(session, white_host, make_target, driver):
    # Web previews host the overlay inside the widget being grabbed
    session.attach(make_target(white_host, root=white_host, ratio=1.0))
    driver.stroke((20, 50), (380, 50))

    image = WebViewRasterizer().render(white_host, Viewport(400, 300))

    assert image.pixelColor(100, 50) == QColor(Qt.GlobalColor.white)
    assert session.overlay.isVisible()


def test_web_view_capture_draws_strokes_once(qtbot, white_host, make_target, make_driver):
    session = AnnotationSession(padding=4, rasterizer=WebViewRasterizer())
    driver = make_driver(session)
    session.attach(make_target(white_host, root=white_host, ratio=1.0))
    driver.stroke((20, 50), (380, 50))
    stroke_pixel = QColor.fromRgba(session.surface.pixel(100, 50))

    with qtbot.waitSignal(session.capture_completed, timeout=5000) as blocker:
        session.complete()
    session.detach()

    decoded = QImage.fromData(blocker.args[0].to_bytes(), "JPEG")
    # Translucent red over white, not red over red
    alpha = stroke_pixel.alphaF()
    expected_green = stroke_pixel.green() * alpha + 255 * (1 - alpha)
    # Crop starts at (16, 46); this is composite (96, 50)
    pixel = decoded.pixelColor(80, 4)
    assert pixel.red() > 200
    assert abs(pixel.green() - expected_green) < 25


def test_overlay_draws_from_touch_input(session, target, qtbot):
    session.attach(target)
    overlay = session.overlay
    qtbot.waitExposed(overlay)
    device = QTest.createTouchDevice()

    QTest.touchEvent(overlay, device).press(0, QPoint(30, 40), overlay).commit()
    QTest.touchEvent(overlay, device).move(0, QPoint(80, 90), overlay).commit()
    QTest.touchEvent(overlay, device).release(0, QPoint(80, 90), overlay).commit()

    assert session.bounds == BoundingBox(30, 40, 80, 90)
    assert session.stroke_state is StrokeState.IDLE
