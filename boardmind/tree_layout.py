"""Tree layout for hierarchical diagrams (site maps, impact maps).

Nodes form a forest encoded as a flat list with parent pointers. Leaves are
packed left to right in sibling order and every parent is centred over its
first and last child. The layout is a pure function of the node list, so
positions are recomputed whenever the list changes and never stored.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from boardmind.geometry import Point, Rect, bounding_rect


class Orientation(str, Enum):
    VERTICAL = "vertical"      # depth grows downwards (site maps)
    HORIZONTAL = "horizontal"  # depth grows to the right (impact maps)


@dataclass
class HierarchicalNode:
    """One node of a forest. Taxonomy-specific values live in ``data``."""
    id: str
    parent_id: Optional[str] = None
    order: int = 0
    type: str = ""
    label: str = ""
    data: dict = field(default_factory=dict)


@dataclass(frozen=True)
class LayoutConfig:
    """Node size, gaps and origin of a tree layout."""
    node_width: float = 200.0
    node_height: float = 140.0
    h_gap: float = 60.0
    v_gap: float = 80.0
    origin_x: float = 50.0
    origin_y: float = 50.0
    orientation: Orientation = Orientation.VERTICAL

    @property
    def breadth_step(self) -> float:
        """Distance between neighbouring leaf slots."""
        if self.orientation == Orientation.VERTICAL:
            return self.node_width + self.h_gap
        return self.node_height + self.v_gap

    @property
    def depth_step(self) -> float:
        """Distance between consecutive levels."""
        if self.orientation == Orientation.VERTICAL:
            return self.node_height + self.v_gap
        return self.node_width + self.h_gap

    def position(self, depth: int, breadth: float) -> Point:
        if self.orientation == Orientation.VERTICAL:
            return Point(breadth, self.origin_y + depth * self.depth_step)
        return Point(self.origin_x + depth * self.depth_step, breadth)

    def breadth_of(self, point: Point) -> float:
        return point.x if self.orientation == Orientation.VERTICAL else point.y

    @property
    def breadth_origin(self) -> float:
        return self.origin_x if self.orientation == Orientation.VERTICAL else self.origin_y


SITEMAP_LAYOUT = LayoutConfig()


def children_of(nodes: Iterable[HierarchicalNode],
                parent_id: Optional[str]) -> List[HierarchicalNode]:
    """Children of ``parent_id`` sorted by ``order`` (ties keep list order)."""
    return sorted((n for n in nodes if n.parent_id == parent_id),
                  key=lambda n: n.order)


def root_nodes(nodes: Sequence[HierarchicalNode]) -> List[HierarchicalNode]:
    """Roots sorted by order.

    A node whose parent is missing from the list is treated as a root so it
    stays visible.
    """
    ids = {n.id for n in nodes}
    return sorted((n for n in nodes if n.parent_id is None or n.parent_id not in ids),
                  key=lambda n: n.order)


def layout_tree(nodes: Sequence[HierarchicalNode],
                config: LayoutConfig = SITEMAP_LAYOUT) -> Dict[str, Point]:
    """Compute the top-left corner of every node reachable from a root."""
    positions: Dict[str, Point] = {}
    by_parent: Dict[Optional[str], List[HierarchicalNode]] = {}
    for node in nodes:
        by_parent.setdefault(node.parent_id, []).append(node)
    for siblings in by_parent.values():
        siblings.sort(key=lambda n: n.order)

    visited = set()

    def layout_subtree(node_id: str, depth: int, lead: float) -> float:
        visited.add(node_id)
        children = [c for c in by_parent.get(node_id, []) if c.id not in visited]

        if not children:
            positions[node_id] = config.position(depth, lead)
            return lead + config.breadth_step

        next_lead = lead
        for child in children:
            next_lead = layout_subtree(child.id, depth + 1, next_lead)

        first = config.breadth_of(positions[children[0].id])
        last = config.breadth_of(positions[children[-1].id])
        positions[node_id] = config.position(depth, (first + last) / 2)
        return next_lead

    lead = config.breadth_origin
    for root in root_nodes(nodes):
        if root.id not in visited:
            lead = layout_subtree(root.id, 0, lead)

    return positions


def layout_bounds(positions: Dict[str, Point],
                  config: LayoutConfig = SITEMAP_LAYOUT) -> Optional[Rect]:
    """Bounding rectangle of all laid-out nodes."""
    return bounding_rect(
        Rect(p.x, p.y, config.node_width, config.node_height)
        for p in positions.values()
    )
