import pytest

from boardmind.elements import Note
from boardmind.geometry import Rect
from boardmind.selection import Selection, SelectionBox, elements_in_box, resolve_box_selection
from boardmind.viewport import Viewport


def test_single_and_multi_are_exclusive():
    selection = Selection()
    selection.select_many(["a", "b"])
    assert selection.ids == {"a", "b"} and selection.single_id is None
    selection.select("c")
    assert selection.ids == {"c"} and not selection.multi_ids
    selection.select_many(["d"])
    assert selection.single_id == "d"
    selection.select_many([])
    assert selection.single_id == "d"


def test_discard_and_multi_membership():
    selection = Selection()
    selection.select_many(["a", "b", "c"])
    assert selection.is_multi_member("a")
    selection.discard(["a", "b"])
    assert selection.ids == {"c"}
    assert not selection.is_multi_member("c")
    selection.clear()
    assert selection.is_empty


def test_box_select_scenario_uses_inclusive_overlap(scenario_elements):
    box = SelectionBox(5, 5, 250, 250)
    picked = resolve_box_selection(box, Viewport(), scenario_elements)
    # The third note (y 200-300) and the enclosing group both overlap the box
    assert picked == ["n1", "n2", "n3", "g1"]


@pytest.mark.parametrize("start,end", [
    ((5, 5), (250, 150)),
    ((250, 150), (5, 5)),
    ((5, 150), (250, 5)),
    ((250, 5), (5, 150)),
])
def test_box_select_is_direction_independent(scenario_elements, start, end):
    box = SelectionBox(*start, *end)
    picked = resolve_box_selection(box, Viewport(), scenario_elements)
    assert picked == ["n1", "n2", "g1"]


def test_box_select_respects_viewport():
    notes = [Note(id="a", x=0, y=0), Note(id="b", x=400, y=0)]
    vp = Viewport(x=100, y=0, zoom=0.5)
    # Screen 100..150 is canvas 0..100
    assert resolve_box_selection(SelectionBox(100, 0, 150, 10), vp, notes) == ["a"]


def test_degenerate_box_selects_nothing(scenario_elements):
    assert resolve_box_selection(SelectionBox.at(10, 10), Viewport(), scenario_elements) == []
    assert resolve_box_selection(SelectionBox(10, 10, 10, 200), Viewport(), scenario_elements) == []
    nan_box = SelectionBox(float("nan"), 0, 10, 10)
    assert nan_box.is_degenerate


def test_with_end_ignores_non_finite():
    box = SelectionBox.at(1, 1).with_end(5, 5)
    assert box.with_end(float("nan"), 3) is box
    assert box.screen_rect == Rect(1, 1, 4, 4)


def test_elements_in_box_touching_edge():
    assert elements_in_box([Note(id="a", x=100, y=100)], Rect(0, 0, 100, 100)) == ["a"]
