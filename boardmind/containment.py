"""Group containment: which notes a group frame carries along.

Containment is derived from geometry and never stored. A note is inside a
group when its whole rectangle lies within the group's rectangle.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from boardmind.elements import Element, ElementType, Group, Note, PositionUpdate
from boardmind.geometry import rect_contains


def is_inside_group(note: Element, group: Element) -> bool:
    """Check if a note lies fully within a group's bounds."""
    return rect_contains(group.rect, note.rect)


def contained_notes(group: Element, elements: Iterable[Element]) -> List[Note]:
    """All notes currently inside ``group``."""
    return [
        el for el in elements
        if el.type == ElementType.NOTE and is_inside_group(el, group)
    ]


def group_for_note(note: Element, groups: Iterable[Element]) -> Optional[Group]:
    """First group (in the given order) that contains ``note``."""
    for group in groups:
        if group.type == ElementType.GROUP and is_inside_group(note, group):
            return group
    return None


def notes_by_group(elements: Sequence[Element]) -> Tuple[Dict[str, List[Note]], List[Note]]:
    """Split notes into ``{group_id: notes}`` and the ungrouped remainder."""
    groups = [el for el in elements if el.type == ElementType.GROUP]
    grouped: Dict[str, List[Note]] = {}
    ungrouped: List[Note] = []
    for el in elements:
        if el.type != ElementType.NOTE:
            continue
        group = group_for_note(el, groups)
        if group is None:
            ungrouped.append(el)
        else:
            grouped.setdefault(group.id, []).append(el)
    return grouped, ungrouped


def cascade_move(group: Element, carried_ids: Iterable[str],
                 elements: Iterable[Element],
                 dx: float, dy: float) -> List[PositionUpdate]:
    """Position updates moving a group and the notes it carries by (dx, dy).

    ``carried_ids`` is the set captured when the drag started; notes are not
    re-tested against the group's bounds here. Ids that no longer exist are
    skipped.
    """
    by_id = {el.id: el for el in elements}
    updates = [PositionUpdate(group.id, group.x + dx, group.y + dy)]
    for note_id in carried_ids:
        note = by_id.get(note_id)
        if note is None or note_id == group.id:
            continue
        updates.append(PositionUpdate(note_id, note.x + dx, note.y + dy))
    return updates
