"""Toolkit-neutral input events and gesture-scoped listener subscriptions.

The rendering layer translates toolkit callbacks into ``PointerEvent``s.
While a gesture is active its move/release handlers are subscribed to a
``PointerCapture`` (window-level pointer events) through a ``GestureScope``;
closing the scope detaches them no matter how the gesture ended.
"""

from dataclasses import dataclass
from enum import Enum, Flag, auto
from typing import Callable, List, Optional


class PointerButton(Enum):
    PRIMARY = 1
    MIDDLE = 2
    SECONDARY = 3


class Modifiers(Flag):
    NONE = 0
    SHIFT = auto()
    CTRL = auto()
    ALT = auto()


@dataclass(frozen=True)
class PointerEvent:
    """A pointer event in widget-relative screen coordinates."""
    x: float
    y: float
    button: PointerButton = PointerButton.PRIMARY
    modifiers: Modifiers = Modifiers.NONE
    n_press: int = 1

    @property
    def alt(self) -> bool:
        return bool(self.modifiers & Modifiers.ALT)

    @property
    def ctrl(self) -> bool:
        return bool(self.modifiers & Modifiers.CTRL)

    @property
    def shift(self) -> bool:
        return bool(self.modifiers & Modifiers.SHIFT)


# Pixels represented by one discrete mouse wheel notch
SCROLL_PIXELS_PER_STEP = 100.0


def scroll_pixels(dy: float, discrete: bool) -> float:
    """Scroll delta in pixels; touchpad deltas already arrive in pixels."""
    return dy * SCROLL_PIXELS_PER_STEP if discrete else dy


class Subscription:
    """Handle for one connected handler; closing it is idempotent."""

    def __init__(self, source: "EventSource", handler: Callable):
        self._source = source
        self._handler = handler

    @property
    def active(self) -> bool:
        return self._source is not None

    def close(self):
        if self._source is not None:
            self._source._disconnect(self._handler)
            self._source = None

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class EventSource:
    """Minimal multicast callback list."""

    def __init__(self, name: str = ""):
        self.name = name
        self._handlers: List[Callable] = []

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    def connect(self, handler: Callable) -> Subscription:
        self._handlers.append(handler)
        return Subscription(self, handler)

    def _disconnect(self, handler: Callable):
        try:
            self._handlers.remove(handler)
        except ValueError:
            pass

    def emit(self, *args):
        # Copy: handlers may unsubscribe while being called.
        for handler in list(self._handlers):
            handler(*args)


class PointerCapture:
    """Window-level pointer stream a gesture listens to until it ends."""

    def __init__(self):
        self.motion = EventSource("motion")
        self.release = EventSource("release")
        self.lost = EventSource("lost")

    @property
    def listener_count(self) -> int:
        return (self.motion.handler_count + self.release.handler_count
                + self.lost.handler_count)


class GestureScope:
    """Subscriptions acquired at gesture start and released together."""

    def __init__(self, capture: Optional[PointerCapture],
                 on_motion: Callable[[PointerEvent], None],
                 on_release: Callable[[PointerEvent], None],
                 on_lost: Callable[[], None]):
        self._subscriptions: List[Subscription] = []
        if capture is not None:
            self._subscriptions = [
                capture.motion.connect(on_motion),
                capture.release.connect(on_release),
                capture.lost.connect(on_lost),
            ]

    @property
    def active(self) -> bool:
        return any(sub.active for sub in self._subscriptions)

    def close(self):
        for sub in self._subscriptions:
            sub.close()
        self._subscriptions = []

    def __enter__(self) -> "GestureScope":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
