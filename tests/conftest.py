"""Shared fixtures: in-memory stores standing in for the database bindings."""

import logging
from typing import List, Optional

import pytest

from boardmind.elements import (
    Element, ElementType, Group, Note, PositionUpdate, create_element,
    duplicate_element, next_z_index,
)
from boardmind.hierarchy import reorder_updates
from boardmind.tree_layout import HierarchicalNode
from boardmind.viewport import Viewport


class FakeBoardStore:
    """Board store that applies every emitted change to a list."""

    def __init__(self, elements: Optional[List[Element]] = None,
                 viewport: Optional[Viewport] = None):
        self.elements: List[Element] = list(elements or [])
        self.viewport = viewport or Viewport()
        self.calls: List[tuple] = []
        self._next_id = 0

    def _find(self, element_id: str) -> Optional[Element]:
        return next((el for el in self.elements if el.id == element_id), None)

    def get_elements(self) -> List[Element]:
        return list(self.elements)

    def get_viewport(self) -> Viewport:
        return self.viewport

    def on_viewport_change(self, viewport: Viewport):
        self.calls.append(("viewport", viewport))
        self.viewport = viewport

    def on_update_element(self, element_id: str, fields: dict):
        self.calls.append(("update", element_id, dict(fields)))
        element = self._find(element_id)
        if element is not None:
            for key, value in fields.items():
                setattr(element, key, value)

    def on_delete_element(self, element_id: str):
        self.calls.append(("delete", element_id))
        self.elements = [el for el in self.elements if el.id != element_id]

    def on_add_element(self, element_type: ElementType, x: float, y: float,
                       options: Optional[dict] = None) -> Element:
        self._next_id += 1
        element = create_element(element_type, x, y, element_id=f"new-{self._next_id}",
                                 options=options)
        element.z_index = next_z_index(self.elements)
        self.calls.append(("add", element.id))
        self.elements.append(element)
        return element

    def on_move_elements(self, updates: List[PositionUpdate]):
        self.calls.append(("move", list(updates)))
        for update in updates:
            element = self._find(update.id)
            if element is not None:
                element.x, element.y = update.x, update.y

    def on_duplicate_element(self, element_id: str) -> Optional[Element]:
        source = self._find(element_id)
        if source is None:
            return None
        self._next_id += 1
        copy = duplicate_element(source, next_z_index(self.elements),
                                 element_id=f"copy-{self._next_id}")
        self.calls.append(("duplicate", element_id, copy.id))
        self.elements.append(copy)
        return copy

    def position(self, element_id: str):
        element = self._find(element_id)
        return (element.x, element.y)


class FakeHierarchyStore:
    """Hierarchy store over a list of nodes."""

    def __init__(self, nodes: Optional[List[HierarchicalNode]] = None):
        self.nodes: List[HierarchicalNode] = list(nodes or [])
        self.viewport = Viewport()
        self.deleted: List[str] = []
        self.updates: List[tuple] = []
        self._next_id = 0

    def get_hierarchical_nodes(self) -> List[HierarchicalNode]:
        return list(self.nodes)

    def get_viewport(self) -> Viewport:
        return self.viewport

    def on_viewport_change(self, viewport: Viewport):
        self.viewport = viewport

    def on_add_node(self, node_type: str, parent_id: Optional[str]) -> HierarchicalNode:
        self._next_id += 1
        siblings = [n for n in self.nodes if n.parent_id == parent_id]
        node = HierarchicalNode(f"n{self._next_id}", parent_id, len(siblings), node_type,
                                f"Node {self._next_id}")
        self.nodes.append(node)
        return node

    def on_update_node(self, node_id: str, fields: dict):
        self.updates.append((node_id, dict(fields)))
        for node in self.nodes:
            if node.id == node_id:
                for key, value in fields.items():
                    setattr(node, key, value)

    def on_delete_node(self, node_id: str):
        self.deleted.append(node_id)
        self.nodes = [n for n in self.nodes if n.id != node_id]

    def on_reorder_node(self, node_id: str, direction: str):
        for update_id, order in reorder_updates(self.nodes, node_id, direction):
            self.on_update_node(update_id, {"order": order})


@pytest.fixture
def scenario_elements() -> List[Element]:
    """Three notes and an enclosing group."""
    return [
        Note(id="n1", x=0, y=0),
        Note(id="n2", x=200, y=0),
        Note(id="n3", x=0, y=200),
        Group(id="g1", x=-10, y=-10, width=300, height=300),
    ]


@pytest.fixture
def board_store(scenario_elements) -> FakeBoardStore:
    return FakeBoardStore(scenario_elements)


def forest() -> List[HierarchicalNode]:
    """A -> [B, C], B -> [D, E]."""
    return [
        HierarchicalNode("A", None, 0, "page", "A"),
        HierarchicalNode("B", "A", 0, "page", "B"),
        HierarchicalNode("C", "A", 1, "page", "C"),
        HierarchicalNode("D", "B", 0, "page", "D"),
        HierarchicalNode("E", "B", 1, "page", "E"),
    ]


@pytest.fixture
def forest_nodes() -> List[HierarchicalNode]:
    return forest()


@pytest.fixture
def hierarchy_store(forest_nodes) -> FakeHierarchyStore:
    return FakeHierarchyStore(forest_nodes)


@pytest.fixture
def boardmind_logger():
    """The package logger, restored after tests that reconfigure it."""
    logger = logging.getLogger("boardmind")
    level, handlers = logger.level, list(logger.handlers)
    yield logger
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.setLevel(level)
    logger.handlers[:] = handlers
