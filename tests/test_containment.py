import pytest

from boardmind.containment import (
    cascade_move, contained_notes, group_for_note, is_inside_group, notes_by_group,
)
from boardmind.elements import Group, Note, PositionUpdate


@pytest.fixture
def group():
    return Group(id="g", x=0, y=0, width=400, height=300)


def test_note_fully_inside_is_contained(group):
    assert is_inside_group(Note(id="a", x=0, y=0), group)
    assert is_inside_group(Note(id="a", x=250, y=200), group)


@pytest.mark.parametrize("x,y", [(-1, 10), (251, 10), (10, -1), (10, 201)])
def test_one_pixel_outside_any_edge_is_not_contained(group, x, y):
    assert not is_inside_group(Note(id="a", x=x, y=y), group)


def test_contained_notes_and_group_lookup(group):
    inside = Note(id="in", x=10, y=10)
    outside = Note(id="out", x=500, y=10)
    elements = [group, inside, outside]
    assert contained_notes(group, elements) == [inside]
    assert group_for_note(inside, elements) is group
    assert group_for_note(outside, elements) is None


def test_notes_by_group_first_group_wins(group):
    other = Group(id="h", x=0, y=0, width=1000, height=1000)
    inside = Note(id="in", x=10, y=10)
    loose = Note(id="loose", x=600, y=600)
    far = Note(id="far", x=2000, y=0)
    grouped, ungrouped = notes_by_group([group, other, inside, loose, far])
    assert grouped == {"g": [inside], "h": [loose]}
    assert ungrouped == [far]


def test_cascade_move_uses_captured_ids_only(group):
    carried = Note(id="carried", x=10, y=10)
    newly_inside = Note(id="new", x=20, y=20)
    elements = [group, carried, newly_inside]
    updates = cascade_move(group, ["carried", "missing"], elements, 5, -5)
    assert updates == [
        PositionUpdate("g", 5, -5),
        PositionUpdate("carried", 15, 5),
    ]
