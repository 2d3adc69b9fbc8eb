"""Connector curves between parent and child nodes.

Vertical connectors leave the bottom centre of the parent and enter the top
centre of the child; horizontal ones leave the right middle and enter the
left middle. Both are cubic beziers whose control points share the midpoint
on the depth axis, which gives an S-curve that flattens into a straight
line when both ends are level.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from boardmind.geometry import Point, Rect
from boardmind.tree_layout import HierarchicalNode, LayoutConfig, Orientation

logger = logging.getLogger(__name__)

REMEASURE_DELAY_MS = 100


@dataclass(frozen=True)
class Bezier:
    """Cubic bezier curve."""
    start: Point
    control1: Point
    control2: Point
    end: Point


@dataclass(frozen=True)
class Connector:
    id: str
    parent_id: str
    child_id: str
    curve: Bezier


def _vertical_curve(start: Point, end: Point) -> Bezier:
    mid_y = (start.y + end.y) / 2
    return Bezier(start, Point(start.x, mid_y), Point(end.x, mid_y), end)


def _horizontal_curve(start: Point, end: Point) -> Bezier:
    mid_x = (start.x + end.x) / 2
    return Bezier(start, Point(mid_x, start.y), Point(mid_x, end.y), end)


def vertical_connector(parent: Point, child: Point,
                       width: float, height: float) -> Bezier:
    """Parent bottom-centre to child top-centre for equally sized nodes."""
    return _vertical_curve(
        Point(parent.x + width / 2, parent.y + height),
        Point(child.x + width / 2, child.y),
    )


def horizontal_connector(parent: Point, child: Point,
                         width: float, height: float) -> Bezier:
    """Parent right-middle to child left-middle for equally sized nodes."""
    return _horizontal_curve(
        Point(parent.x + width, parent.y + height / 2),
        Point(child.x, child.y + height / 2),
    )


def rect_connector(parent: Rect, child: Rect,
                   orientation: Orientation = Orientation.VERTICAL) -> Bezier:
    """Connector between two measured rectangles of any size."""
    if orientation == Orientation.VERTICAL:
        return _vertical_curve(Point(parent.x + parent.width / 2, parent.bottom),
                               Point(child.x + child.width / 2, child.y))
    return _horizontal_curve(Point(parent.right, parent.y + parent.height / 2),
                             Point(child.x, child.y + child.height / 2))


def connector_id(parent_id: str, child_id: str) -> str:
    return f"conn-{parent_id}-{child_id}"


def tree_connectors(nodes: Iterable[HierarchicalNode],
                    positions: Dict[str, Point],
                    config: LayoutConfig) -> List[Connector]:
    """One connector per parent/child pair that both have a position."""
    build = (vertical_connector if config.orientation == Orientation.VERTICAL
             else horizontal_connector)
    result = []
    for node in nodes:
        if node.parent_id is None:
            continue
        parent_pos = positions.get(node.parent_id)
        child_pos = positions.get(node.id)
        if parent_pos is None or child_pos is None:
            continue
        result.append(Connector(
            connector_id(node.parent_id, node.id), node.parent_id, node.id,
            build(parent_pos, child_pos, config.node_width, config.node_height),
        ))
    return result


def measured_connectors(edges: Iterable[Tuple[str, str]],
                        measure: Callable[[str], Optional[Rect]],
                        orientation: Orientation = Orientation.HORIZONTAL) -> List[Connector]:
    """Connectors between rendered nodes whose bounds come from ``measure``.

    ``measure`` maps a node id to its on-screen rectangle in unscaled
    canvas coordinates, or None when the node is not rendered; such edges
    are skipped.
    """
    result = []
    for parent_id, child_id in edges:
        parent_rect = measure(parent_id)
        child_rect = measure(child_id)
        if parent_rect is None or child_rect is None:
            continue
        result.append(Connector(
            connector_id(parent_id, child_id), parent_id, child_id,
            rect_connector(parent_rect, child_rect, orientation),
        ))
    return result


def tree_edges(nodes: Sequence[HierarchicalNode]) -> List[Tuple[str, str]]:
    return [(n.parent_id, n.id) for n in nodes if n.parent_id is not None]


class DeferredMeasure:
    """Debounced connector recomputation.

    Each ``invalidate`` cancels the pending run and schedules a new one, so
    a burst of layout changes triggers a single measurement pass. The
    scheduler is injected: ``schedule(delay_ms, callback) -> handle`` and
    ``cancel(handle)`` (``GLib.timeout_add``/``GLib.source_remove`` in the
    GTK layer).
    """

    def __init__(self, compute: Callable[[], List[Connector]],
                 schedule: Callable[[int, Callable[[], Any]], Any],
                 cancel: Callable[[Any], None],
                 on_ready: Optional[Callable[[List[Connector]], None]] = None,
                 delay_ms: int = REMEASURE_DELAY_MS):
        self._compute = compute
        self._schedule = schedule
        self._cancel = cancel
        self._delay_ms = delay_ms
        self._pending: Any = None
        self.on_ready = on_ready
        self.connectors: List[Connector] = []

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def invalidate(self):
        if self._pending is not None:
            self._cancel(self._pending)
        self._pending = self._schedule(self._delay_ms, self._run)

    def flush(self):
        """Run a pending measurement immediately."""
        if self._pending is not None:
            self._cancel(self._pending)
            self._run()

    def close(self):
        if self._pending is not None:
            self._cancel(self._pending)
            self._pending = None

    def _run(self) -> bool:
        self._pending = None
        self.connectors = self._compute()
        logger.debug("Measured %d connectors", len(self.connectors))
        if self.on_ready:
            self.on_ready(self.connectors)
        return False  # one-shot for GLib timeouts
