"""Pointer and keyboard interaction for the board and tree canvases.

Interaction state is a single gesture value, one of ``Idle``, ``Panning``,
``BoxSelecting``, ``Dragging``, ``MultiDragging`` or ``Resizing``. A new
gesture can only start from ``Idle``. While a gesture runs its motion and
release handlers are subscribed to the window-level ``PointerCapture``
through a ``GestureScope`` that is closed when the gesture ends, is lost or
the canvas is torn down.

Controllers never mutate documents. Every change goes to a store object
(``BoardStore`` / ``HierarchyStore``) which owns the data.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Set, Tuple, Union

from boardmind.containment import cascade_move, contained_notes
from boardmind.elements import (
    Element, ElementType, PositionUpdate, centered_drop_position, color_update,
    find_element, paint_order, vote_update,
)
from boardmind.events import GestureScope, PointerButton, PointerCapture, PointerEvent
from boardmind.geometry import Point, Rect, bounding_rect, is_finite
from boardmind.hierarchy import (
    GOAL_ID, SitemapFilter, delete_subtree, find_node, related_ids, renumber, reparent_updates,
    with_goal_root,
)
from boardmind.selection import Selection, SelectionBox, resolve_box_selection
from boardmind.transform import (
    ResizeHandle, drag_offset, dragged_position, handle_at, multi_drag_delta,
    resize_group,
)
from boardmind.tree_layout import (
    HierarchicalNode, LayoutConfig, SITEMAP_LAYOUT, layout_bounds, layout_tree,
)
from boardmind.undo import UndoManager
from boardmind.viewport import Viewport

logger = logging.getLogger(__name__)


# ==================== Collaborators ====================

class BoardStore(Protocol):
    """Owner of a board's elements and viewport."""

    def get_elements(self) -> List[Element]: ...

    def get_viewport(self) -> Viewport: ...

    def on_viewport_change(self, viewport: Viewport) -> None: ...

    def on_update_element(self, element_id: str, fields: dict) -> None: ...

    def on_delete_element(self, element_id: str) -> None: ...

    def on_add_element(self, element_type: ElementType, x: float, y: float,
                       options: Optional[dict] = None) -> Optional[Element]: ...

    def on_move_elements(self, updates: List[PositionUpdate]) -> None: ...

    def on_duplicate_element(self, element_id: str) -> Optional[Element]: ...


class HierarchyStore(Protocol):
    """Owner of a site map's or impact map's nodes and viewport."""

    def get_hierarchical_nodes(self) -> List[HierarchicalNode]: ...

    def get_viewport(self) -> Viewport: ...

    def on_viewport_change(self, viewport: Viewport) -> None: ...

    def on_add_node(self, node_type: str, parent_id: Optional[str]) -> Optional[HierarchicalNode]: ...

    def on_update_node(self, node_id: str, fields: dict) -> None: ...

    def on_delete_node(self, node_id: str) -> None: ...

    def on_reorder_node(self, node_id: str, direction: str) -> None: ...


# ==================== Gesture states ====================

@dataclass(frozen=True)
class Idle:
    pass


@dataclass
class Panning:
    last: Point


@dataclass
class BoxSelecting:
    box: SelectionBox


@dataclass
class Dragging:
    """Single-element drag; groups carry the notes captured at press."""
    subject_id: str
    offset: Point
    last: Point
    carried_ids: Tuple[str, ...] = ()
    duplicate_id: Optional[str] = None
    start_positions: Dict[str, Tuple[float, float]] = field(default_factory=dict)

    def retarget(self, subject_id: str, duplicate_id: str) -> "Dragging":
        return replace(self, subject_id=subject_id, duplicate_id=duplicate_id)


@dataclass
class MultiDragging:
    ids: Tuple[str, ...]
    anchor: Point
    start_positions: Dict[str, Tuple[float, float]] = field(default_factory=dict)


@dataclass
class Resizing:
    element_id: str
    handle: ResizeHandle
    last: Point  # pointer / zoom at the previous event
    start_geometry: Dict[str, float] = field(default_factory=dict)


Gesture = Union[Idle, Panning, BoxSelecting, Dragging, MultiDragging, Resizing]

IDLE = Idle()

DELETE_KEYS = ("Delete", "BackSpace")
ZOOM_IN_KEYS = ("plus", "equal", "KP_Add")
ZOOM_OUT_KEYS = ("minus", "KP_Subtract")


# ==================== Shared canvas behaviour ====================

class CanvasInteraction:
    """Panning, zooming and gesture bookkeeping common to every canvas."""

    def __init__(self, store, capture: Optional[PointerCapture] = None):
        self.store = store
        self.capture = capture or PointerCapture()
        self.gesture: Gesture = IDLE
        self._scope: Optional[GestureScope] = None
        self.space_pressed = False
        self.hover_id: Optional[str] = None
        self.width = 0.0
        self.height = 0.0
        self.is_exporting = False

        # Callbacks
        self.on_changed: Optional[Callable[[], None]] = None

    @property
    def busy(self) -> bool:
        return not isinstance(self.gesture, Idle)

    @property
    def viewport(self) -> Viewport:
        return self.store.get_viewport()

    def set_viewport(self, viewport: Viewport):
        self.store.on_viewport_change(viewport)
        self._changed()

    def set_size(self, width: float, height: float):
        self.width = width
        self.height = height

    def _changed(self):
        if self.on_changed:
            self.on_changed()

    # ==================== Gesture lifecycle ====================

    def _begin(self, gesture: Gesture) -> bool:
        if self.busy:
            logger.debug("Ignoring %s while %s is active",
                         type(gesture).__name__, type(self.gesture).__name__)
            return False
        self.gesture = gesture
        self._scope = GestureScope(self.capture, self.pointer_motion,
                                   self.pointer_release, self.pointer_lost)
        self._changed()
        return True

    def _end(self):
        if self._scope is not None:
            self._scope.close()
            self._scope = None
        self.gesture = IDLE
        self._changed()

    def pointer_motion(self, event: PointerEvent):
        if not is_finite(event.x, event.y):
            return
        if isinstance(self.gesture, Panning):
            last = self.gesture.last
            self.store.on_viewport_change(self.viewport.pan(event.x - last.x, event.y - last.y))
            self.gesture.last = Point(event.x, event.y)
            self._changed()
        else:
            self._gesture_motion(event)

    def pointer_release(self, event: PointerEvent):
        if self.busy:
            self._finish(event)
            self._end()

    def pointer_lost(self):
        """The pointer left the window or the grab broke; end the gesture."""
        if self.busy:
            logger.debug("Pointer lost during %s", type(self.gesture).__name__)
            self._cancel()
            self._end()

    def teardown(self):
        """Release any live subscriptions when the canvas goes away."""
        if self.busy:
            self._cancel()
        self._end()

    def _gesture_motion(self, event: PointerEvent):
        pass

    def _finish(self, event: PointerEvent):
        pass

    def _cancel(self):
        pass

    def _try_pan(self, event: PointerEvent) -> bool:
        """Start panning for the middle button or Space + primary button."""
        if event.button == PointerButton.MIDDLE or (
                event.button == PointerButton.PRIMARY and self.space_pressed):
            return self._begin(Panning(Point(event.x, event.y)))
        return False

    # ==================== Wheel and keyboard ====================

    def scroll(self, x: float, y: float, wheel_delta: float, ctrl: bool) -> bool:
        """Zoom around the cursor. Plain wheel events are left to the toolkit."""
        if not ctrl:
            return False
        self.set_viewport(self.viewport.zoom_at(x, y, wheel_delta))
        return True

    def zoom_in(self):
        self.set_viewport(self.viewport.zoom_in(self.width / 2, self.height / 2))

    def zoom_out(self):
        self.set_viewport(self.viewport.zoom_out(self.width / 2, self.height / 2))

    def zoom_reset(self):
        self.set_viewport(self.viewport.set_zoom_at(self.width / 2, self.height / 2, 1.0))

    def zoom_to_fit(self):
        self.set_viewport(self.viewport.zoom_to_fit(self.content_bounds(), self.width, self.height))

    def content_bounds(self) -> Optional[Rect]:
        return None

    def key_press(self, key: str, ctrl: bool = False, shift: bool = False,
                  in_text_input: bool = False) -> bool:
        """Handle a key press; returns True when it was consumed.

        ``key`` is a toolkit key name such as ``"Delete"`` or ``"space"``.
        """
        if in_text_input:
            return False
        if key == "space" and not ctrl:
            self.space_pressed = True
            return True
        if ctrl:
            if key in ZOOM_IN_KEYS:
                self.zoom_in()
                return True
            if key in ZOOM_OUT_KEYS:
                self.zoom_out()
                return True
            if key == "0":
                self.zoom_to_fit()
                return True
            if key == "1":
                self.zoom_reset()
                return True
        return self._key_press(key, ctrl, shift)

    def key_release(self, key: str):
        if key == "space":
            self.space_pressed = False
            if isinstance(self.gesture, Panning):
                self._end()

    def _key_press(self, key: str, ctrl: bool, shift: bool) -> bool:
        return False


# ==================== Board ====================

class BoardInteraction(CanvasInteraction):
    """Selection, drag, multi-drag, resize and box selection on a board."""

    def __init__(self, store: BoardStore, capture: Optional[PointerCapture] = None,
                 undo_manager: Optional[UndoManager] = None):
        super().__init__(store, capture)
        self.selection = Selection()
        self.undo_manager = undo_manager or UndoManager()

    @property
    def elements(self) -> List[Element]:
        return self.store.get_elements()

    @property
    def selection_box(self) -> Optional[SelectionBox]:
        if isinstance(self.gesture, BoxSelecting):
            return self.gesture.box
        return None

    def content_bounds(self) -> Optional[Rect]:
        return bounding_rect(el.rect for el in self.elements)

    # ==================== Hit testing ====================

    def element_at(self, sx: float, sy: float) -> Optional[Element]:
        """Topmost element under a screen point."""
        point = self.viewport.screen_to_canvas(sx, sy)
        for element in reversed(paint_order(self.elements)):
            if element.rect.contains_point(point.x, point.y):
                return element
        return None

    def handle_at(self, sx: float, sy: float) -> Optional[Tuple[Element, ResizeHandle]]:
        """Resize handle of the selected group under a screen point."""
        group = find_element(self.elements, self.selection.single_id)
        if group is None or group.type != ElementType.GROUP:
            return None
        viewport = self.viewport
        point = viewport.screen_to_canvas(sx, sy)
        handle = handle_at(group.rect, point.x, point.y, viewport.zoom)
        if handle is None:
            return None
        return group, handle

    # ==================== Pointer ====================

    def pointer_press(self, event: PointerEvent):
        if not is_finite(event.x, event.y):
            return
        if self.busy:
            logger.debug("Ignoring press while %s is active", type(self.gesture).__name__)
            return
        if self._try_pan(event):
            return
        if event.button != PointerButton.PRIMARY:
            return

        hit = self.handle_at(event.x, event.y)
        if hit is not None:
            self._start_resize(event, *hit)
            return

        element = self.element_at(event.x, event.y)
        if element is None:
            if event.n_press >= 2:
                self.add_note_at(event.x, event.y)
                return
            self.selection.clear()
            self._begin(BoxSelecting(SelectionBox.at(event.x, event.y)))
            return

        if self.selection.is_multi_member(element.id):
            self._start_multi_drag(event)
        else:
            self._start_drag(event, element)

    def hover(self, sx: float, sy: float):
        if self.busy or self.is_exporting:
            return
        element = self.element_at(sx, sy)
        hover_id = element.id if element else None
        if hover_id != self.hover_id:
            self.hover_id = hover_id
            self._changed()

    def leave(self):
        if self.hover_id is not None:
            self.hover_id = None
            self._changed()

    def _start_drag(self, event: PointerEvent, element: Element):
        self.selection.select(element.id)
        zoom = self.viewport.zoom
        elements = self.elements
        carried: Tuple[str, ...] = ()
        if element.type == ElementType.GROUP:
            carried = tuple(n.id for n in contained_notes(element, elements))

        gesture = Dragging(
            subject_id=element.id,
            offset=drag_offset(event.x, event.y, zoom, element),
            last=Point(element.x, element.y),
            carried_ids=carried,
        )

        if event.alt:
            duplicate = self.store.on_duplicate_element(element.id)
            if duplicate is not None:
                # The copy stays where it was created; the drag keeps the original.
                gesture = gesture.retarget(element.id, duplicate.id)
                elements = self.elements

        gesture.start_positions = self._positions(elements, (element.id,) + carried)
        self._begin(gesture)

    def _start_multi_drag(self, event: PointerEvent):
        ids = tuple(self.selection.multi_ids)
        self._begin(MultiDragging(
            ids=ids,
            anchor=Point(event.x, event.y),
            start_positions=self._positions(self.elements, ids),
        ))

    def _start_resize(self, event: PointerEvent, group: Element, handle: ResizeHandle):
        zoom = self.viewport.zoom
        self.selection.select(group.id)
        self._begin(Resizing(
            element_id=group.id,
            handle=handle,
            last=Point(event.x / zoom, event.y / zoom),
            start_geometry=self._geometry(group),
        ))

    def _gesture_motion(self, event: PointerEvent):
        gesture = self.gesture
        if isinstance(gesture, BoxSelecting):
            gesture.box = gesture.box.with_end(event.x, event.y)
            self._changed()
        elif isinstance(gesture, Dragging):
            self._drag_motion(gesture, event)
        elif isinstance(gesture, MultiDragging):
            self._multi_drag_motion(gesture, event)
        elif isinstance(gesture, Resizing):
            self._resize_motion(gesture, event)

    def _drag_motion(self, gesture: Dragging, event: PointerEvent):
        elements = self.elements
        element = find_element(elements, gesture.subject_id)
        if element is None:
            logger.debug("Drag subject %s disappeared", gesture.subject_id)
            return
        position = dragged_position(event.x, event.y, self.viewport.zoom, gesture.offset)
        if element.type == ElementType.GROUP:
            dx = position.x - gesture.last.x
            dy = position.y - gesture.last.y
            self.store.on_move_elements(
                cascade_move(element, gesture.carried_ids, elements, dx, dy))
        else:
            self.store.on_update_element(element.id, {"x": position.x, "y": position.y})
        gesture.last = position
        self._changed()

    def _multi_drag_motion(self, gesture: MultiDragging, event: PointerEvent):
        delta = multi_drag_delta(gesture.anchor, event.x, event.y, self.viewport.zoom)
        if delta is None:
            return
        dx, dy = delta
        by_id = {el.id: el for el in self.elements}
        updates = [PositionUpdate(i, by_id[i].x + dx, by_id[i].y + dy)
                   for i in gesture.ids if i in by_id]
        if updates:
            self.store.on_move_elements(updates)
        gesture.anchor = Point(event.x, event.y)
        self._changed()

    def _resize_motion(self, gesture: Resizing, event: PointerEvent):
        group = find_element(self.elements, gesture.element_id)
        if group is None:
            return
        zoom = self.viewport.zoom
        pointer = Point(event.x / zoom, event.y / zoom)
        updates = resize_group(group, gesture.handle,
                               pointer.x - gesture.last.x, pointer.y - gesture.last.y)
        if updates:
            self.store.on_update_element(group.id, updates)
        gesture.last = pointer
        self._changed()

    def _finish(self, event: PointerEvent):
        gesture = self.gesture
        if isinstance(gesture, BoxSelecting):
            box = gesture.box.with_end(event.x, event.y)
            self.selection.select_many(resolve_box_selection(box, self.viewport, self.elements))
        else:
            self._record_history()

    def _cancel(self):
        # A lost box selection is discarded; drag updates already applied stay.
        if not isinstance(self.gesture, BoxSelecting):
            self._record_history()

    def _record_history(self):
        gesture = self.gesture
        elements = self.elements
        action = None
        if isinstance(gesture, (Dragging, MultiDragging)):
            before = gesture.start_positions
            action = UndoManager.move_elements_action(
                before, self._positions(elements, tuple(before)))
        elif isinstance(gesture, Resizing):
            group = find_element(elements, gesture.element_id)
            if group is not None:
                action = UndoManager.resize_element_action(
                    group.id, gesture.start_geometry, self._geometry(group))
        if action is not None:
            self.undo_manager.push(action)

    @staticmethod
    def _positions(elements: List[Element], ids: Tuple[str, ...]) -> Dict[str, Tuple[float, float]]:
        by_id = {el.id: el for el in elements}
        return {i: (by_id[i].x, by_id[i].y) for i in ids if i in by_id}

    @staticmethod
    def _geometry(element: Element) -> Dict[str, float]:
        return {"x": element.x, "y": element.y,
                "width": element.width, "height": element.height}

    # ==================== Commands ====================

    def add_note_at(self, sx: float, sy: float) -> Optional[Element]:
        """Add a note with its top-left corner at a screen point."""
        point = self.viewport.screen_to_canvas(sx, sy)
        return self.store.on_add_element(ElementType.NOTE, point.x, point.y)

    def drop(self, type_tag: str, sx: float, sy: float) -> Optional[Element]:
        """Add an element dragged in from the toolbar, centred on the drop point."""
        try:
            element_type = ElementType(type_tag)
        except ValueError:
            logger.debug("Ignoring drop of unknown element type %r", type_tag)
            return None
        if not is_finite(sx, sy):
            return None
        point = self.viewport.screen_to_canvas(sx, sy)
        x, y = centered_drop_position(element_type, point.x, point.y)
        return self.store.on_add_element(element_type, x, y)

    def delete_selected(self):
        ids = list(self.selection.ids)
        for element_id in ids:
            self.store.on_delete_element(element_id)
        self.selection.discard(ids)
        self._changed()

    def change_votes(self, element_id: str, delta: int):
        note = find_element(self.elements, element_id)
        if note is None or note.type != ElementType.NOTE:
            return
        self.store.on_update_element(note.id, vote_update(note, delta))
        self._changed()

    def reset_votes(self, element_id: str):
        note = find_element(self.elements, element_id)
        if note is not None and note.type == ElementType.NOTE:
            self.store.on_update_element(note.id, {"votes": 0})
            self._changed()

    def set_color(self, element_id: str, color: str) -> bool:
        """Recolour a note or group from its own palette."""
        element = find_element(self.elements, element_id)
        if element is None:
            return False
        update = color_update(element, color)
        if update is None:
            return False
        self.store.on_update_element(element.id, update)
        self._changed()
        return True

    def undo(self):
        """Undo the last gesture."""
        action = self.undo_manager.undo()
        if action:
            self._apply_history(action.before)

    def redo(self):
        """Redo the last undone gesture."""
        action = self.undo_manager.redo()
        if action:
            self._apply_history(action.after)

    def _apply_history(self, data: dict):
        for element_id, fields in data.items():
            self.store.on_update_element(element_id, dict(fields))
        self._changed()

    def _key_press(self, key: str, ctrl: bool, shift: bool) -> bool:
        if key in DELETE_KEYS:
            if self.selection.is_empty:
                return False
            self.delete_selected()
            return True
        if key == "Escape":
            self.selection.clear()
            self._changed()
            return True
        if ctrl and key.lower() == "z":
            if shift:
                self.redo()
            else:
                self.undo()
            return True
        return False


# ==================== Hierarchical documents ====================

class TreeInteraction(CanvasInteraction):
    """Selection, hover, filtering and deletion on a laid-out tree."""

    def __init__(self, store: HierarchyStore, config: LayoutConfig = SITEMAP_LAYOUT,
                 confirm: Optional[Callable[[str], bool]] = None,
                 capture: Optional[PointerCapture] = None,
                 goal: Optional[Callable[[], str]] = None,
                 noun: str = "node"):
        super().__init__(store, capture)
        self.config = config
        self.confirm = confirm or (lambda message: False)
        self.goal = goal
        self.noun = noun
        self.selected_id: Optional[str] = None
        self.filter = SitemapFilter()

    @property
    def nodes(self) -> List[HierarchicalNode]:
        nodes = self.store.get_hierarchical_nodes()
        if self.goal is not None:
            return with_goal_root(self.goal(), nodes)
        return nodes

    def positions(self) -> Dict[str, Point]:
        return layout_tree(self.nodes, self.config)

    def node_rects(self, nodes: Optional[Sequence[HierarchicalNode]] = None) -> Dict[str, Rect]:
        """Laid-out bounds of every node in canvas coordinates."""
        positions = layout_tree(self.nodes if nodes is None else nodes, self.config)
        w, h = self.config.node_width, self.config.node_height
        return {node_id: Rect(pos.x, pos.y, w, h) for node_id, pos in positions.items()}

    def content_bounds(self) -> Optional[Rect]:
        return layout_bounds(self.positions(), self.config)

    def node_at(self, sx: float, sy: float) -> Optional[str]:
        point = self.viewport.screen_to_canvas(sx, sy)
        for node_id, rect in self.node_rects().items():
            if rect.contains_point(point.x, point.y):
                return node_id
        return None

    def dimmed_ids(self, nodes: Optional[Sequence[HierarchicalNode]] = None) -> Set[str]:
        """Nodes faded by hover relations or by a non-matching filter."""
        if self.is_exporting:
            return set()
        if nodes is None:
            nodes = self.nodes
        dimmed = set()
        if self.filter.active:
            dimmed.update(n.id for n in nodes if not self.filter.matches(n))
        if self.hover_id is not None and self.hover_id != GOAL_ID:
            related = related_ids(nodes, self.hover_id)
            dimmed.update(n.id for n in nodes if n.id not in related)
        dimmed.discard(GOAL_ID)
        return dimmed

    def pointer_press(self, event: PointerEvent):
        if not is_finite(event.x, event.y) or self.busy:
            return
        if self._try_pan(event):
            return
        if event.button != PointerButton.PRIMARY:
            return
        self.selected_id = self.node_at(event.x, event.y)
        self._changed()

    def hover(self, sx: float, sy: float):
        if self.busy or self.is_exporting:
            return
        hover_id = self.node_at(sx, sy)
        if hover_id != self.hover_id:
            self.hover_id = hover_id
            self._changed()

    def leave(self):
        if self.hover_id is not None:
            self.hover_id = None
            self._changed()

    # ==================== Commands ====================

    def add_child(self, node_type: str, parent_id: Optional[str]) -> Optional[HierarchicalNode]:
        if parent_id == GOAL_ID:
            parent_id = None
        node = self.store.on_add_node(node_type, parent_id)
        if node is not None:
            self.selected_id = node.id
        self._changed()
        return node

    def reorder(self, node_id: str, direction: str):
        self.store.on_reorder_node(node_id, direction)
        self._changed()

    def edit_node(self, node_id: str, fields: dict) -> bool:
        """Merge edited fields into a node; a new ``parent_id`` moves it last under that parent."""
        nodes = self.store.get_hierarchical_nodes()
        if find_node(nodes, node_id) is None:
            return False
        fields = dict(fields)
        order_updates = []
        if "parent_id" in fields:
            moved = reparent_updates(nodes, node_id, fields.pop("parent_id"))
            if moved is None:
                return False
            parent_fields, order_updates = moved
            fields.update(parent_fields)
        if fields:
            self.store.on_update_node(node_id, fields)
        for sibling_id, order in order_updates:
            self.store.on_update_node(sibling_id, {"order": order})
        self._changed()
        return True

    def delete_node(self, node_id: str) -> bool:
        """Delete a node with its descendants once the user confirms."""
        nodes = self.store.get_hierarchical_nodes()
        node = find_node(nodes, node_id)
        if node is None:
            return False
        ids = delete_subtree(nodes, node_id, self.confirm, self.noun,
                             confirm_leaf=self.goal is None)
        if ids is None:
            return False
        for deleted_id in ids:
            self.store.on_delete_node(deleted_id)

        deleted = set(ids)
        remaining = [n for n in nodes if n.id not in deleted]
        for sibling_id, order in renumber(remaining, node.parent_id):
            self.store.on_update_node(sibling_id, {"order": order})

        if self.selected_id in deleted:
            self.selected_id = None
        if self.hover_id in deleted:
            self.hover_id = None
        self._changed()
        return True

    def _key_press(self, key: str, ctrl: bool, shift: bool) -> bool:
        if key in DELETE_KEYS:
            if self.selected_id is None or self.selected_id == GOAL_ID:
                return False
            self.delete_node(self.selected_id)
            return True
        if key == "Escape":
            self.selected_id = None
            self._changed()
            return True
        return False
