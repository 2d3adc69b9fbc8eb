import pytest

from boardmind.events import (
    EventSource, GestureScope, Modifiers, PointerButton, PointerCapture, PointerEvent,
    scroll_pixels,
)
from boardmind.viewport import Viewport


def test_pointer_event_modifier_flags():
    event = PointerEvent(1, 2, PointerButton.PRIMARY, Modifiers.ALT | Modifiers.SHIFT)
    assert event.alt and event.shift and not event.ctrl


def test_subscription_close_is_idempotent():
    source = EventSource("test")
    received = []
    sub = source.connect(received.append)
    source.emit(1)
    sub.close()
    sub.close()
    source.emit(2)
    assert received == [1]
    assert source.handler_count == 0


def test_handler_may_unsubscribe_during_emit():
    source = EventSource()
    calls = []

    def once(value):
        calls.append(value)
        sub.close()

    sub = source.connect(once)
    source.connect(calls.append)
    source.emit("x")
    source.emit("y")
    assert calls == ["x", "x", "y"]


def test_gesture_scope_detaches_all_listeners():
    capture = PointerCapture()
    seen = []
    with GestureScope(capture, seen.append, seen.append, lambda: seen.append("lost")) as scope:
        assert scope.active
        assert capture.listener_count == 3
        capture.motion.emit("move")
        capture.lost.emit()
    assert capture.listener_count == 0
    assert not scope.active
    capture.release.emit("late")
    assert seen == ["move", "lost"]


def test_gesture_scope_without_capture():
    scope = GestureScope(None, print, print, print)
    assert not scope.active
    scope.close()


def test_wheel_notches_scale_to_pixels():
    assert scroll_pixels(-1, discrete=True) == -100
    assert Viewport().zoom_at(0, 0, scroll_pixels(-1, discrete=True)).zoom == pytest.approx(1.1)


def test_touchpad_pixels_pass_through():
    assert scroll_pixels(-12, discrete=False) == -12
    assert Viewport().zoom_at(0, 0, scroll_pixels(-12, discrete=False)).zoom == pytest.approx(1.012)
