import math

import pytest

from boardmind.geometry import (
    Point, Rect, bounding_rect, canvas_to_screen, is_finite, rect_contains,
    rects_overlap, screen_to_canvas,
)
from boardmind.viewport import Viewport


def test_from_corners_normalizes_any_drag_direction():
    assert Rect.from_corners(10, 20, 0, 5) == Rect(0, 5, 10, 15)
    assert Rect.from_corners(0, 5, 10, 20) == Rect(0, 5, 10, 15)


def test_screen_canvas_conversion_inverts():
    vp = Viewport(x=30, y=-20, zoom=1.5)
    canvas = screen_to_canvas(Point(120, 80), vp)
    assert canvas.x == pytest.approx(60)
    assert canvas.y == pytest.approx(100 / 1.5)
    back = canvas_to_screen(canvas, vp)
    assert math.isclose(back.x, 120) and math.isclose(back.y, 80)


def test_overlap_counts_touching_edges():
    a = Rect(0, 0, 10, 10)
    assert rects_overlap(a, Rect(10, 10, 5, 5))
    assert rects_overlap(a, Rect(-5, 3, 5, 1))
    assert not rects_overlap(a, Rect(10.5, 0, 5, 5))


def test_rect_contains_edges_included():
    outer = Rect(0, 0, 100, 100)
    assert rect_contains(outer, Rect(0, 0, 100, 100))
    assert not rect_contains(outer, Rect(1, 0, 100, 100))


def test_is_finite_rejects_nan_and_non_numbers():
    assert is_finite(1, 2.5)
    assert not is_finite(float("nan"), 0)
    assert not is_finite(float("inf"))
    assert not is_finite(None)


def test_bounding_rect():
    assert bounding_rect([]) is None
    rect = bounding_rect([Rect(0, 0, 10, 10), Rect(-5, 20, 10, 5)])
    assert rect == Rect(-5, 0, 15, 25)
