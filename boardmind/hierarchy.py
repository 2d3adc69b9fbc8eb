"""Operations on hierarchical documents (site maps and impact maps).

Everything here is a pure function of a node list. The store applies the
returned ids and order updates; nothing is mutated in place.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from boardmind.tree_layout import HierarchicalNode, LayoutConfig, Orientation

logger = logging.getLogger(__name__)

OrderUpdate = Tuple[str, int]


# ==================== Relations ====================

def find_node(nodes: Sequence[HierarchicalNode], node_id: Optional[str]) -> Optional[HierarchicalNode]:
    for node in nodes:
        if node.id == node_id:
            return node
    return None


def descendant_ids(nodes: Sequence[HierarchicalNode], node_id: str) -> List[str]:
    """All descendants of ``node_id`` in depth-first sibling order."""
    result: List[str] = []
    seen = {node_id}
    by_parent: Dict[str, List[HierarchicalNode]] = {}
    for node in nodes:
        if node.parent_id is not None:
            by_parent.setdefault(node.parent_id, []).append(node)

    def collect(parent_id: str):
        for child in sorted(by_parent.get(parent_id, []), key=lambda n: n.order):
            if child.id in seen:
                continue
            seen.add(child.id)
            result.append(child.id)
            collect(child.id)

    collect(node_id)
    return result


def ancestor_ids(nodes: Sequence[HierarchicalNode], node_id: str) -> List[str]:
    """Parent chain of ``node_id``, nearest first."""
    index = {n.id: n for n in nodes}
    result: List[str] = []
    current = index.get(node_id)
    while current is not None and current.parent_id is not None:
        if current.parent_id in result or current.parent_id == node_id:
            break
        result.append(current.parent_id)
        current = index.get(current.parent_id)
    return result


def related_ids(nodes: Sequence[HierarchicalNode], hovered_id: str) -> Set[str]:
    """The hovered node with its ancestors and descendants."""
    related = {hovered_id}
    related.update(ancestor_ids(nodes, hovered_id))
    related.update(descendant_ids(nodes, hovered_id))
    return related


# ==================== Ordering ====================

def siblings_of(nodes: Sequence[HierarchicalNode], node: HierarchicalNode,
                same_type: bool = False) -> List[HierarchicalNode]:
    return sorted(
        (n for n in nodes
         if n.parent_id == node.parent_id and (not same_type or n.type == node.type)),
        key=lambda n: n.order,
    )


def next_sibling_order(nodes: Sequence[HierarchicalNode], parent_id: Optional[str]) -> int:
    """Order value that appends a new child after its siblings."""
    return sum(1 for n in nodes if n.parent_id == parent_id)


def reorder_updates(nodes: Sequence[HierarchicalNode], node_id: str, direction: str,
                    same_type: bool = False) -> List[OrderUpdate]:
    """Swap ``order`` with the adjacent sibling.

    Returns the two order updates, or an empty list when the node is unknown
    or already first/last in that direction.
    """
    node = find_node(nodes, node_id)
    if node is None or direction not in ("up", "down"):
        logger.debug("Ignoring reorder of %s (%s)", node_id, direction)
        return []

    siblings = siblings_of(nodes, node, same_type)
    index = next(i for i, s in enumerate(siblings) if s.id == node_id)
    target_index = index - 1 if direction == "up" else index + 1
    if target_index < 0 or target_index >= len(siblings):
        return []

    target = siblings[target_index]
    if target.order == node.order:
        # Tied orders cannot be swapped; fall back to positional values.
        return [(node.id, target_index), (target.id, index)]
    return [(node.id, target.order), (target.id, node.order)]


def renumber(nodes: Sequence[HierarchicalNode], parent_id: Optional[str]) -> List[OrderUpdate]:
    """Dense 0..n-1 orders for the children of ``parent_id``, changed ones only."""
    children = sorted((n for n in nodes if n.parent_id == parent_id), key=lambda n: n.order)
    return [(child.id, i) for i, child in enumerate(children) if child.order != i]


# ==================== Reparenting ====================

def parent_options(nodes: Sequence[HierarchicalNode], node_id: str) -> List[HierarchicalNode]:
    """Nodes that may become the parent of ``node_id``: neither itself nor a descendant."""
    excluded = {node_id, *descendant_ids(nodes, node_id)}
    return [n for n in nodes if n.id not in excluded]


def reparent_updates(nodes: Sequence[HierarchicalNode], node_id: str,
                     parent_id: Optional[str]) -> Optional[Tuple[dict, List[OrderUpdate]]]:
    """Fields moving ``node_id`` under ``parent_id`` as its last child.

    Also returns dense orders for the siblings it leaves behind. None when
    the node is unknown or the new parent is unknown, the node itself or
    one of its descendants.
    """
    node = find_node(nodes, node_id)
    if node is None:
        return None
    if parent_id == node.parent_id:
        return {}, []
    if parent_id is not None and find_node(parent_options(nodes, node_id), parent_id) is None:
        logger.debug("Refusing to move %s under %s", node_id, parent_id)
        return None
    remaining = [n for n in nodes if n.id != node_id]
    fields = {"parent_id": parent_id, "order": next_sibling_order(remaining, parent_id)}
    return fields, renumber(remaining, node.parent_id)


# ==================== Deletion ====================

def delete_message(noun: str, descendant_count: int) -> str:
    """Prompt shown before deleting a node."""
    if descendant_count == 0:
        return f"Delete this {noun}?"
    plural = "s" if descendant_count > 1 else ""
    return f"Delete this {noun} and {descendant_count} child {noun}{plural}?"


def delete_subtree(nodes: Sequence[HierarchicalNode], node_id: str,
                   confirm: Callable[[str], bool], noun: str = "node",
                   confirm_leaf: bool = False) -> Optional[List[str]]:
    """Collect the ids to delete for ``node_id`` after asking ``confirm``.

    A node with descendants always needs confirmation; a leaf only when
    ``confirm_leaf`` is set. Returns None when the node is unknown or the
    user declines, otherwise the node id followed by its descendants.
    """
    if find_node(nodes, node_id) is None:
        logger.debug("Ignoring delete of unknown node %s", node_id)
        return None

    descendants = descendant_ids(nodes, node_id)
    if descendants or confirm_leaf:
        if not confirm(delete_message(noun, len(descendants))):
            logger.debug("Delete of %s cancelled", node_id)
            return None
    return [node_id] + descendants


# ==================== Impact maps ====================

class ImpactType(str, Enum):
    ACTOR = "actor"
    IMPACT = "impact"
    DELIVERABLE = "deliverable"


GOAL_ID = "goal"

CHILD_TYPE: Dict[ImpactType, Optional[ImpactType]] = {
    ImpactType.ACTOR: ImpactType.IMPACT,
    ImpactType.IMPACT: ImpactType.DELIVERABLE,
    ImpactType.DELIVERABLE: None,
}

DELIVERABLE_STATUSES = ["planned", "in-progress", "done", "rejected"]

IMPACT_LAYOUT = LayoutConfig(
    node_width=180.0,
    node_height=72.0,
    h_gap=80.0,
    v_gap=16.0,
    origin_x=40.0,
    origin_y=40.0,
    orientation=Orientation.HORIZONTAL,
)


def new_node_label(nodes: Sequence[HierarchicalNode], node_type: str) -> str:
    """Default label for a new node: "New actor 3"."""
    count = sum(1 for n in nodes if n.type == node_type)
    return f"New {node_type} {count + 1}"


def can_add_child(node_type: str) -> bool:
    try:
        return CHILD_TYPE[ImpactType(node_type)] is not None
    except ValueError:
        return False


def with_goal_root(goal: str, nodes: Sequence[HierarchicalNode]) -> List[HierarchicalNode]:
    """Node list with the goal as a synthetic root above every actor."""
    result = [HierarchicalNode(id=GOAL_ID, type="goal", label=goal or "Goal")]
    for node in nodes:
        if node.parent_id is None:
            result.append(HierarchicalNode(node.id, GOAL_ID, node.order,
                                           node.type, node.label, dict(node.data)))
        else:
            result.append(node)
    return result


# ==================== Site map filters ====================

NO_VALUE = "__none__"

SCREEN_STATUSES = ["planned", "in-progress", "done"]

SCREEN_TYPES = {
    "landing": "Landing",
    "login": "Login",
    "dashboard": "Dashboard",
    "form": "Form",
    "table": "Table",
    "detail": "Detail",
    "wizard": "Wizard",
    "settings": "Settings",
    "profile": "Profile",
    "pricing": "Pricing",
    "contact": "Contact",
    "error": "Error",
    "search": "Search",
    "checkout": "Checkout",
    "modal": "Modal",
    "other": "Other",
}
RELEASE_PRESETS = ["MVP", "v1.0", "v2.0", "v3.0", "Planned", "Future"]


@dataclass
class SitemapFilter:
    """Status, persona and release filter. Empty fields match everything."""
    status: str = ""
    persona_id: str = ""
    release: str = ""

    @property
    def active(self) -> bool:
        return bool(self.status or self.persona_id or self.release)

    def matches(self, node: HierarchicalNode) -> bool:
        data = node.data
        if self.status and data.get("status") != self.status:
            return False
        if self.persona_id:
            persona_ids = data.get("persona_ids") or []
            if self.persona_id == NO_VALUE:
                if persona_ids:
                    return False
            elif self.persona_id not in persona_ids:
                return False
        if self.release:
            release = data.get("release") or ""
            if self.release == NO_VALUE:
                if release:
                    return False
            elif release != self.release:
                return False
        return True


def release_tags(nodes: Sequence[HierarchicalNode]) -> List[str]:
    """Used release tags merged with the presets, sorted."""
    used = {n.data.get("release") for n in nodes if n.data.get("release")}
    return sorted(used | set(RELEASE_PRESETS))


def persona_ids(nodes: Sequence[HierarchicalNode]) -> List[str]:
    """Persona ids referenced by any screen, sorted."""
    return sorted({p for n in nodes for p in n.data.get("persona_ids") or []})


def parse_id_list(text: str) -> List[str]:
    """Comma-separated ids, stripped, blanks and repeats dropped."""
    result: List[str] = []
    for part in text.split(","):
        item = part.strip()
        if item and item not in result:
            result.append(item)
    return result
