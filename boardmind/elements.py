"""Board element data model: sticky notes and group frames."""

import uuid
from dataclasses import dataclass, asdict, fields, replace
from enum import Enum
from typing import ClassVar, Dict, Iterable, List, NamedTuple, Optional, Tuple, Type

from boardmind.geometry import Rect


class ElementType(str, Enum):
    """Element variants, in paint order (groups behind notes)."""
    GROUP = "group"
    NOTE = "note"


DEFAULT_SIZES = {
    ElementType.NOTE: (150.0, 100.0),
    ElementType.GROUP: (400.0, 300.0),
}


class PositionUpdate(NamedTuple):
    """New top-left corner for one element."""
    id: str
    x: float
    y: float


@dataclass
class Element:
    """Base class for everything placed on a board."""
    id: str
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    color: str = ""
    z_index: int = 0

    type: ClassVar[ElementType]

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["type"] = self.type.value
        return data

    @staticmethod
    def from_dict(data: dict) -> Optional["Element"]:
        """Build a note or group from a dict, ignoring unknown keys."""
        try:
            element_type = ElementType(data.get("type"))
        except ValueError:
            return None
        if not data.get("id"):
            return None
        cls = ELEMENT_CLASSES[element_type]
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class Note(Element):
    """A sticky note."""
    width: float = 150.0
    height: float = 100.0
    color: str = "yellow"
    content: str = ""
    votes: int = 0

    type: ClassVar[ElementType] = ElementType.NOTE


@dataclass
class Group(Element):
    """A labelled frame; notes fully inside it move with it."""
    width: float = 400.0
    height: float = 300.0
    color: str = "slate"
    label: str = "Group"

    type: ClassVar[ElementType] = ElementType.GROUP


ELEMENT_CLASSES: Dict[ElementType, Type[Element]] = {
    ElementType.NOTE: Note,
    ElementType.GROUP: Group,
}


def new_element_id() -> str:
    return uuid.uuid4().hex


def next_z_index(elements: Iterable[Element]) -> int:
    """zIndex for a newly added element: one above the current maximum."""
    return max([0] + [el.z_index for el in elements]) + 1


def create_element(element_type: ElementType, x: float, y: float,
                   element_id: Optional[str] = None,
                   options: Optional[dict] = None) -> Element:
    """Create a note or group at (x, y) with type defaults.

    ``options`` may override any field except id and position.
    """
    cls = ELEMENT_CLASSES[ElementType(element_type)]
    known = {f.name for f in fields(cls)} - {"id", "x", "y"}
    overrides = {k: v for k, v in (options or {}).items() if k in known}
    return cls(id=element_id or new_element_id(), x=x, y=y, **overrides)


def duplicate_element(source: Element, z_index: int,
                      element_id: Optional[str] = None) -> Element:
    """Copy an element at the same position with a fresh id."""
    return replace(source, id=element_id or new_element_id(), z_index=z_index)


def paint_order(elements: Iterable[Element]) -> List[Element]:
    """Groups first, then notes; zIndex orders elements within a variant."""
    elements = list(elements)
    groups = sorted((el for el in elements if el.type == ElementType.GROUP),
                    key=lambda el: el.z_index)
    notes = sorted((el for el in elements if el.type == ElementType.NOTE),
                   key=lambda el: el.z_index)
    return groups + notes


def find_element(elements: Iterable[Element], element_id: str) -> Optional[Element]:
    for element in elements:
        if element.id == element_id:
            return element
    return None


# Colour names a note or group may carry; the first is the default
PALETTES: Dict[ElementType, Tuple[str, ...]] = {
    ElementType.NOTE: ("yellow", "pink", "blue", "green", "purple", "orange"),
    ElementType.GROUP: ("slate", "blue", "green", "purple", "amber", "rose"),
}


def color_update(element: Element, color: str) -> Optional[dict]:
    """Field update recolouring ``element``; None for an unknown or unchanged colour."""
    if color not in PALETTES[element.type] or color == element.color:
        return None
    return {"color": color}


def vote_update(note: Note, delta: int) -> dict:
    """Field update adding ``delta`` votes; the count never drops below zero."""
    return {"votes": max(0, note.votes + delta)}


def centered_drop_position(element_type: ElementType, x: float, y: float):
    """Top-left corner that centres a new element of this type on (x, y)."""
    width, height = DEFAULT_SIZES[ElementType(element_type)]
    return x - width / 2, y - height / 2
