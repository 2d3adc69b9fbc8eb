"""Viewport transform shared by the board canvas and the tree canvases.

A viewport maps canvas space to screen space::

    screen = canvas * zoom + (x, y)

Every operation returns a new ``Viewport``; the caller persists it.
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional

from boardmind.geometry import Point, Rect, is_finite

logger = logging.getLogger(__name__)

MIN_ZOOM = 0.25
MAX_ZOOM = 2.0
WHEEL_ZOOM_FACTOR = 0.001
ZOOM_STEP = 1.2
FIT_MARGIN = 100.0
FIT_INSET = 40.0


def clamp_zoom(zoom: float) -> float:
    """Clamp a zoom level into the supported range."""
    return max(MIN_ZOOM, min(MAX_ZOOM, zoom))


@dataclass(frozen=True)
class Viewport:
    """Pan offset and zoom level of a canvas."""
    x: float = 0.0
    y: float = 0.0
    zoom: float = 1.0

    def __post_init__(self):
        if not is_finite(self.x, self.y):
            object.__setattr__(self, "x", 0.0)
            object.__setattr__(self, "y", 0.0)
        if not is_finite(self.zoom):
            object.__setattr__(self, "zoom", 1.0)
        elif self.zoom != clamp_zoom(self.zoom):
            logger.debug("Clamping zoom %s into [%s, %s]", self.zoom, MIN_ZOOM, MAX_ZOOM)
            object.__setattr__(self, "zoom", clamp_zoom(self.zoom))

    # ==================== Transforms ====================

    def pan(self, dx: float, dy: float) -> "Viewport":
        """Shift the view by a screen-space delta."""
        if not is_finite(dx, dy):
            return self
        return replace(self, x=self.x + dx, y=self.y + dy)

    def set_zoom_at(self, cursor_x: float, cursor_y: float, new_zoom: float) -> "Viewport":
        """Change zoom keeping the canvas point under the cursor fixed on screen."""
        if not is_finite(cursor_x, cursor_y, new_zoom):
            return self
        new_zoom = clamp_zoom(new_zoom)
        ratio = new_zoom / self.zoom
        return Viewport(
            x=cursor_x - (cursor_x - self.x) * ratio,
            y=cursor_y - (cursor_y - self.y) * ratio,
            zoom=new_zoom,
        )

    def zoom_at(self, cursor_x: float, cursor_y: float, wheel_delta: float) -> "Viewport":
        """Apply a wheel delta anchored at the cursor position."""
        if not is_finite(wheel_delta):
            return self
        return self.set_zoom_at(cursor_x, cursor_y,
                                self.zoom + (-wheel_delta * WHEEL_ZOOM_FACTOR))

    def zoom_in(self, cursor_x: float, cursor_y: float) -> "Viewport":
        return self.set_zoom_at(cursor_x, cursor_y, self.zoom * ZOOM_STEP)

    def zoom_out(self, cursor_x: float, cursor_y: float) -> "Viewport":
        return self.set_zoom_at(cursor_x, cursor_y, self.zoom / ZOOM_STEP)

    def centered_on(self, point: Point, width: float, height: float) -> "Viewport":
        """Pan so that a canvas point sits in the middle of a widget."""
        return replace(
            self,
            x=width / 2 - point.x * self.zoom,
            y=height / 2 - point.y * self.zoom,
        )

    def zoom_to_fit(self, content: Optional[Rect], width: float, height: float) -> "Viewport":
        """Fit ``content`` into a widget of the given size.

        Never zooms in beyond 100%.
        """
        if content is None or width <= 0 or height <= 0:
            return self
        zoom = min(
            (width - FIT_INSET) / (content.width + FIT_MARGIN),
            (height - FIT_INSET) / (content.height + FIT_MARGIN),
            1.0,
        )
        return Viewport(zoom=zoom).centered_on(content.center, width, height)

    # ==================== Coordinates ====================

    def screen_to_canvas(self, sx: float, sy: float) -> Point:
        return Point((sx - self.x) / self.zoom, (sy - self.y) / self.zoom)

    def canvas_to_screen(self, cx: float, cy: float) -> Point:
        return Point(cx * self.zoom + self.x, cy * self.zoom + self.y)

    # ==================== Persistence ====================

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "zoom": self.zoom}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Viewport":
        if not data:
            return cls()
        try:
            return cls(
                x=float(data.get("x", 0.0)),
                y=float(data.get("y", 0.0)),
                zoom=float(data.get("zoom", 1.0)),
            )
        except (TypeError, ValueError):
            return cls()
