"""Geometry helpers shared by the board and tree canvases."""

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional

if TYPE_CHECKING:
    from boardmind.viewport import Viewport


@dataclass(frozen=True)
class Point:
    """A 2D point."""
    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    """An axis-aligned rectangle anchored at its top-left corner."""
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_corners(cls, x1: float, y1: float, x2: float, y2: float) -> "Rect":
        """Build a rectangle from two opposite corners given in any order."""
        left, right = min(x1, x2), max(x1, x2)
        top, bottom = min(y1, y2), max(y1, y2)
        return cls(left, top, right - left, bottom - top)

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)

    @property
    def area(self) -> float:
        return self.width * self.height

    def contains_point(self, px: float, py: float) -> bool:
        """Check if a point is inside this rectangle (edges included)."""
        return (self.x <= px <= self.right and
                self.y <= py <= self.bottom)

    def translated(self, dx: float, dy: float) -> "Rect":
        return Rect(self.x + dx, self.y + dy, self.width, self.height)

    def union(self, other: "Rect") -> "Rect":
        return Rect.from_corners(
            min(self.x, other.x), min(self.y, other.y),
            max(self.right, other.right), max(self.bottom, other.bottom),
        )


def is_finite(*values: float) -> bool:
    """True when every value is a real, finite number."""
    try:
        return all(math.isfinite(v) for v in values)
    except TypeError:
        return False


def screen_to_canvas(point: Point, viewport: "Viewport") -> Point:
    """Convert a screen point to canvas space: (screen - offset) / zoom."""
    return Point(
        (point.x - viewport.x) / viewport.zoom,
        (point.y - viewport.y) / viewport.zoom,
    )


def canvas_to_screen(point: Point, viewport: "Viewport") -> Point:
    """Convert a canvas point to screen space: canvas * zoom + offset."""
    return Point(
        point.x * viewport.zoom + viewport.x,
        point.y * viewport.zoom + viewport.y,
    )


def rects_overlap(a: Rect, b: Rect) -> bool:
    """Axis-aligned overlap test.

    Rectangles that only share an edge or a corner count as overlapping, so
    an element exactly touching a selection box is selected.
    """
    return not (
        a.right < b.x or
        a.x > b.right or
        a.bottom < b.y or
        a.y > b.bottom
    )


def rect_contains(outer: Rect, inner: Rect) -> bool:
    """True when ``inner`` lies fully inside ``outer`` (edges included)."""
    return (
        inner.x >= outer.x and
        inner.y >= outer.y and
        inner.right <= outer.right and
        inner.bottom <= outer.bottom
    )


def bounding_rect(rects: Iterable[Rect]) -> Optional[Rect]:
    """Smallest rectangle enclosing every rectangle in ``rects``."""
    result = None
    for rect in rects:
        result = rect if result is None else result.union(rect)
    return result
