"""Drag and resize arithmetic for board elements."""

import logging
from enum import Enum
from typing import Dict, Optional, Tuple

from boardmind.elements import Element
from boardmind.geometry import Point, Rect, is_finite

logger = logging.getLogger(__name__)

MIN_GROUP_SIZE = 100.0
MULTI_DRAG_THRESHOLD = 0.5
HANDLE_SIZE = 12.0  # screen pixels


class ResizeHandle(str, Enum):
    """Resize handles of a group frame, named by compass direction."""
    NW = "nw"
    NE = "ne"
    SW = "sw"
    SE = "se"
    N = "n"
    S = "s"
    E = "e"
    W = "w"

    @property
    def moves_west_edge(self) -> bool:
        return "w" in self.value

    @property
    def moves_east_edge(self) -> bool:
        return "e" in self.value

    @property
    def moves_north_edge(self) -> bool:
        return "n" in self.value

    @property
    def moves_south_edge(self) -> bool:
        return "s" in self.value


def drag_offset(pointer_x: float, pointer_y: float, zoom: float,
                element: Element) -> Point:
    """Grab offset recorded at pointer-down: pointer/zoom - position."""
    return Point(pointer_x / zoom - element.x, pointer_y / zoom - element.y)


def dragged_position(pointer_x: float, pointer_y: float, zoom: float,
                     offset: Point) -> Point:
    """Element position for the current pointer during a single drag."""
    return Point(pointer_x / zoom - offset.x, pointer_y / zoom - offset.y)


def multi_drag_delta(anchor: Point, pointer_x: float, pointer_y: float,
                     zoom: float) -> Optional[Tuple[float, float]]:
    """Canvas delta since the anchor, or None while still under the threshold."""
    if not is_finite(pointer_x, pointer_y):
        return None
    dx = (pointer_x - anchor.x) / zoom
    dy = (pointer_y - anchor.y) / zoom
    if abs(dx) > MULTI_DRAG_THRESHOLD or abs(dy) > MULTI_DRAG_THRESHOLD:
        return dx, dy
    return None


def resize_group(group: Element, handle: ResizeHandle, dx: float, dy: float,
                 min_size: float = MIN_GROUP_SIZE) -> Dict[str, float]:
    """Field updates for dragging ``handle`` by a canvas delta.

    East/south handles only change the size. West/north handles move the
    opposite edge too, but the position is committed only while the new size
    is above ``min_size``; once clamped the size is pinned to the floor and
    the position is left where it was.
    """
    updates: Dict[str, float] = {}
    if not is_finite(dx, dy):
        return updates

    if handle.moves_east_edge:
        updates["width"] = max(min_size, group.width + dx)
    if handle.moves_west_edge:
        new_width = max(min_size, group.width - dx)
        if new_width > min_size:
            updates["x"] = group.x + dx
        else:
            logger.debug("Width of %s clamped at %s", group.id, min_size)
        updates["width"] = new_width
    if handle.moves_south_edge:
        updates["height"] = max(min_size, group.height + dy)
    if handle.moves_north_edge:
        new_height = max(min_size, group.height - dy)
        if new_height > min_size:
            updates["y"] = group.y + dy
        else:
            logger.debug("Height of %s clamped at %s", group.id, min_size)
        updates["height"] = new_height
    return updates


def handle_rects(rect: Rect, size: float) -> Dict[ResizeHandle, Rect]:
    """Hit areas of the eight handles, drawn just inside the frame."""
    mid_x = rect.x + rect.width / 2 - size / 2
    mid_y = rect.y + rect.height / 2 - size / 2
    left, top = rect.x, rect.y
    right, bottom = rect.right - size, rect.bottom - size
    return {
        ResizeHandle.NW: Rect(left, top, size, size),
        ResizeHandle.NE: Rect(right, top, size, size),
        ResizeHandle.SW: Rect(left, bottom, size, size),
        ResizeHandle.SE: Rect(right, bottom, size, size),
        ResizeHandle.N: Rect(mid_x, top, size, size),
        ResizeHandle.S: Rect(mid_x, bottom, size, size),
        ResizeHandle.E: Rect(right, mid_y, size, size),
        ResizeHandle.W: Rect(left, mid_y, size, size),
    }


def handle_at(rect: Rect, px: float, py: float, zoom: float) -> Optional[ResizeHandle]:
    """Resize handle under a canvas point, if any."""
    for handle, area in handle_rects(rect, HANDLE_SIZE / zoom).items():
        if area.contains_point(px, py):
            return handle
    return None
