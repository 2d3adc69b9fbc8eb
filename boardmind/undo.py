"""Undo/redo of board geometry.

One entry is recorded per finished gesture (drag, multi-drag or resize).
An entry stores the affected fields of every changed element before and
after the gesture; undoing writes ``before`` back through the store,
redoing writes ``after``. History lives in memory only and is dropped
with the board view.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

# element id -> {field: value}
FieldSnapshot = Dict[str, Dict[str, float]]


class ActionType(Enum):
    ELEMENTS_MOVE = "elements_move"
    ELEMENT_RESIZE = "element_resize"


@dataclass(frozen=True)
class UndoAction:
    """Field values of the touched elements around one gesture."""
    action_type: ActionType
    description: str
    before: FieldSnapshot
    after: FieldSnapshot


def _push_bounded(stack: List[UndoAction], action: UndoAction, limit: int):
    stack.append(action)
    overflow = len(stack) - limit
    if overflow > 0:
        del stack[:overflow]


class UndoManager:
    """Bounded undo and redo stacks for one board."""

    def __init__(self, max_undo: int = 100, max_redo: int = 100):
        self.max_undo = max_undo
        self.max_redo = max_redo
        self._done: List[UndoAction] = []
        self._undone: List[UndoAction] = []

        # Callbacks
        self.on_state_changed: Optional[Callable[[], None]] = None

    @property
    def can_undo(self) -> bool:
        return bool(self._done)

    @property
    def can_redo(self) -> bool:
        return bool(self._undone)

    @property
    def undo_description(self) -> str:
        return self._done[-1].description if self._done else ""

    @property
    def redo_description(self) -> str:
        return self._undone[-1].description if self._undone else ""

    def push(self, action: UndoAction):
        """Record a finished gesture. Any redo history is discarded."""
        _push_bounded(self._done, action, self.max_undo)
        self._undone.clear()
        logger.debug("Recorded %s", action.description)
        self._notify_changed()

    def undo(self) -> Optional[UndoAction]:
        """Step back; the caller applies ``action.before``."""
        if not self._done:
            return None
        action = self._done.pop()
        _push_bounded(self._undone, action, self.max_redo)
        self._notify_changed()
        return action

    def redo(self) -> Optional[UndoAction]:
        """Step forward again; the caller applies ``action.after``."""
        if not self._undone:
            return None
        action = self._undone.pop()
        _push_bounded(self._done, action, self.max_undo)
        self._notify_changed()
        return action

    def clear(self):
        self._done.clear()
        self._undone.clear()
        self._notify_changed()

    def _notify_changed(self):
        if self.on_state_changed:
            self.on_state_changed()

    # ==================== Action Factories ====================

    @staticmethod
    def move_elements_action(before: Mapping[str, Tuple[float, float]],
                             after: Mapping[str, Tuple[float, float]]) -> Optional[UndoAction]:
        """Action for a finished drag; None when nothing actually moved."""
        moved = [i for i in before if i in after and before[i] != after[i]]
        if not moved:
            return None

        def snapshot(positions) -> FieldSnapshot:
            return {i: {"x": positions[i][0], "y": positions[i][1]} for i in moved}

        return UndoAction(
            action_type=ActionType.ELEMENTS_MOVE,
            description="Move element" if len(moved) == 1 else f"Move {len(moved)} elements",
            before=snapshot(before),
            after=snapshot(after),
        )

    @staticmethod
    def resize_element_action(element_id: str, before: Mapping[str, float],
                              after: Mapping[str, float]) -> Optional[UndoAction]:
        """Action for a finished resize, keeping only the fields that changed."""
        changed = [k for k in before if before[k] != after.get(k)]
        if not changed:
            return None
        return UndoAction(
            action_type=ActionType.ELEMENT_RESIZE,
            description="Resize group",
            before={element_id: {k: before[k] for k in changed}},
            after={element_id: {k: after[k] for k in changed}},
        )
