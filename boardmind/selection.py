"""Selection state and rubber-band box selection."""

import logging
from dataclasses import dataclass, replace
from typing import FrozenSet, Iterable, List, Optional, Sequence

from boardmind.elements import Element
from boardmind.geometry import Rect, is_finite, rects_overlap
from boardmind.viewport import Viewport

logger = logging.getLogger(__name__)


@dataclass
class Selection:
    """Either one selected id or a set of several; setting one clears the other."""
    single_id: Optional[str] = None
    multi_ids: FrozenSet[str] = frozenset()

    @property
    def ids(self) -> FrozenSet[str]:
        if self.single_id is not None:
            return frozenset((self.single_id,))
        return self.multi_ids

    @property
    def is_empty(self) -> bool:
        return self.single_id is None and not self.multi_ids

    def __contains__(self, element_id: str) -> bool:
        return element_id in self.ids

    def select(self, element_id: Optional[str]):
        self.single_id = element_id
        self.multi_ids = frozenset()

    def select_many(self, element_ids: Sequence[str]):
        """Apply the result of a box selection.

        No match leaves the selection untouched, one match becomes a single
        selection and several become a multi selection.
        """
        if len(element_ids) == 1:
            self.select(element_ids[0])
        elif len(element_ids) > 1:
            self.single_id = None
            self.multi_ids = frozenset(element_ids)

    def clear(self):
        self.single_id = None
        self.multi_ids = frozenset()

    def is_multi_member(self, element_id: str) -> bool:
        """True when ``element_id`` belongs to an active multi selection."""
        return len(self.multi_ids) > 1 and element_id in self.multi_ids

    def discard(self, element_ids: Iterable[str]):
        """Forget ids that were deleted."""
        gone = set(element_ids)
        if self.single_id in gone:
            self.single_id = None
        if self.multi_ids & gone:
            self.multi_ids = self.multi_ids - gone


@dataclass(frozen=True)
class SelectionBox:
    """Rubber band in screen coordinates, from press point to current point."""
    start_x: float
    start_y: float
    end_x: float
    end_y: float

    @classmethod
    def at(cls, x: float, y: float) -> "SelectionBox":
        return cls(x, y, x, y)

    def with_end(self, x: float, y: float) -> "SelectionBox":
        if not is_finite(x, y):
            return self
        return replace(self, end_x=x, end_y=y)

    @property
    def screen_rect(self) -> Rect:
        return Rect.from_corners(self.start_x, self.start_y, self.end_x, self.end_y)

    @property
    def is_degenerate(self) -> bool:
        """A box without area (a plain click) or with unusable coordinates."""
        if not is_finite(self.start_x, self.start_y, self.end_x, self.end_y):
            return True
        return self.screen_rect.area <= 0

    def to_canvas(self, viewport: Viewport) -> Rect:
        start = viewport.screen_to_canvas(self.start_x, self.start_y)
        end = viewport.screen_to_canvas(self.end_x, self.end_y)
        return Rect.from_corners(start.x, start.y, end.x, end.y)


def elements_in_box(elements: Iterable[Element], box: Rect) -> List[str]:
    """Ids of elements whose bounds overlap ``box`` (touching counts)."""
    return [el.id for el in elements if rects_overlap(el.rect, box)]


def resolve_box_selection(box: SelectionBox, viewport: Viewport,
                          elements: Iterable[Element]) -> List[str]:
    """Elements picked by a finished rubber band, in element order."""
    if box.is_degenerate:
        logger.debug("Ignoring degenerate selection box %s", box)
        return []
    return elements_in_box(elements, box.to_canvas(viewport))
