import pytest

from boardmind.connectors import measured_connectors, tree_connectors, tree_edges
from boardmind.elements import Group, Note
from boardmind.events import Modifiers, PointerButton, PointerEvent
from boardmind.geometry import Rect
from boardmind.gestures import (
    BoardInteraction, BoxSelecting, Dragging, Idle, MultiDragging, Panning, Resizing,
    TreeInteraction,
)
from boardmind.hierarchy import GOAL_ID, IMPACT_LAYOUT, SitemapFilter
from boardmind.tree_layout import HierarchicalNode
from boardmind.viewport import Viewport

from conftest import FakeBoardStore, FakeHierarchyStore


def press(interaction, x, y, button=PointerButton.PRIMARY, mods=Modifiers.NONE, n_press=1):
    interaction.pointer_press(PointerEvent(x, y, button, mods, n_press))


def move(interaction, x, y):
    interaction.capture.motion.emit(PointerEvent(x, y))


def release(interaction, x, y):
    interaction.capture.release.emit(PointerEvent(x, y))


@pytest.fixture
def board(board_store):
    return BoardInteraction(board_store)


@pytest.fixture
def loose_notes():
    return FakeBoardStore([
        Note(id="a", x=0, y=0),
        Note(id="b", x=300, y=0),
        Note(id="c", x=0, y=300),
    ])


# ==================== Box selection ====================

def test_box_select_single_match_becomes_single_selection(loose_notes):
    board = BoardInteraction(loose_notes)
    press(board, 600, 250)
    assert isinstance(board.gesture, BoxSelecting)
    move(board, 400, 100)
    assert board.selection_box.screen_rect.width == 200
    release(board, 290, -10)
    assert board.selection.single_id == "b"
    assert isinstance(board.gesture, Idle)
    assert board.capture.listener_count == 0


def test_box_select_several_matches(loose_notes):
    board = BoardInteraction(loose_notes)
    press(board, 600, 600)
    release(board, 100, -10)
    assert board.selection.multi_ids == {"a", "b", "c"}


def test_background_click_clears_selection(board):
    board.selection.select("n1")
    press(board, 800, 800)
    release(board, 800, 800)
    assert board.selection.is_empty


def test_lost_pointer_discards_box(loose_notes):
    board = BoardInteraction(loose_notes)
    press(board, 600, 600)
    move(board, 100, -10)
    board.capture.lost.emit()
    assert board.selection.is_empty
    assert isinstance(board.gesture, Idle)


# ==================== Dragging ====================

def test_note_drag_keeps_grab_offset_and_records_undo(board, board_store):
    press(board, 250, 50)
    assert isinstance(board.gesture, Dragging)
    assert board.selection.single_id == "n2"
    move(board, 300, 80)
    assert board_store.position("n2") == (250, 30)
    release(board, 300, 80)
    assert board.undo_manager.can_undo

    board.undo()
    assert board_store.position("n2") == (200, 0)
    board.redo()
    assert board_store.position("n2") == (250, 30)


def test_drag_respects_zoom(board_store):
    board_store.viewport = Viewport(zoom=2.0)
    board = BoardInteraction(board_store)
    press(board, 500, 100)  # canvas (250, 50) on n2
    move(board, 520, 100)
    assert board_store.position("n2") == (210, 0)


def test_group_drag_moves_notes_contained_at_press(board, board_store):
    press(board, 280, 280)
    gesture = board.gesture
    assert isinstance(gesture, Dragging) and gesture.subject_id == "g1"
    assert gesture.carried_ids == ("n1",)

    move(board, 300, 290)
    assert board_store.position("g1") == (10, 0)
    assert board_store.position("n1") == (20, 10)
    assert board_store.position("n2") == (200, 0)
    assert board_store.position("n3") == (0, 200)

    move(board, 290, 300)
    assert board_store.position("g1") == (0, 10)
    assert board_store.position("n1") == (10, 20)
    release(board, 290, 300)

    board.undo()
    assert board_store.position("g1") == (-10, -10)
    assert board_store.position("n1") == (0, 0)


def test_alt_drag_leaves_copy_behind(board, board_store):
    press(board, 250, 50, mods=Modifiers.ALT)
    gesture = board.gesture
    assert gesture.subject_id == "n2"
    assert gesture.duplicate_id is not None
    move(board, 350, 50)
    release(board, 350, 50)

    copy = next(el for el in board_store.elements if el.id == gesture.duplicate_id)
    assert (copy.x, copy.y) == (200, 0)
    assert board_store.position("n2") == (300, 0)
    assert copy.z_index > max(el.z_index for el in board_store.elements if el is not copy)


def test_multi_drag_moves_all_members_by_same_delta(board, board_store):
    board.selection.select_many(["n2", "n3"])
    press(board, 250, 50)
    assert isinstance(board.gesture, MultiDragging)

    move(board, 250.3, 50)
    assert board_store.position("n2") == (200, 0)

    move(board, 260, 70)
    assert board_store.position("n2") == (210, 20)
    assert board_store.position("n3") == (10, 220)
    move(board, 250, 70)
    assert board_store.position("n2") == (200, 20)
    assert board_store.position("n3") == (0, 220)
    assert board.selection.multi_ids == {"n2", "n3"}
    release(board, 250, 70)
    assert board.undo_manager.undo_description == "Move 2 elements"


def test_resize_from_handle(board, board_store):
    board.selection.select("g1")
    press(board, 285, 285)
    assert isinstance(board.gesture, Resizing)
    move(board, 335, 305)
    group = next(el for el in board_store.elements if el.id == "g1")
    assert (group.width, group.height) == (350, 320)
    release(board, 335, 305)
    board.undo()
    assert (group.x, group.y, group.width, group.height) == (-10, -10, 300, 300)


def test_click_without_motion_records_no_history(board):
    press(board, 250, 50)
    release(board, 250, 50)
    assert not board.undo_manager.can_undo


# ==================== Gesture exclusivity ====================

def test_second_press_is_ignored_while_dragging(board):
    press(board, 250, 50)
    press(board, 50, 250)
    assert board.gesture.subject_id == "n2"
    assert board.capture.listener_count == 3


def test_lost_pointer_releases_listeners_and_keeps_moves(board, board_store):
    press(board, 250, 50)
    move(board, 260, 50)
    board.capture.lost.emit()
    assert isinstance(board.gesture, Idle)
    assert board.capture.listener_count == 0
    assert board_store.position("n2") == (210, 0)
    move(board, 400, 400)
    assert board_store.position("n2") == (210, 0)


def test_teardown_releases_listeners(board):
    press(board, 250, 50)
    board.teardown()
    assert board.capture.listener_count == 0
    assert isinstance(board.gesture, Idle)


def test_non_finite_press_is_ignored(board):
    press(board, float("nan"), 10)
    assert isinstance(board.gesture, Idle)


# ==================== Panning and zoom ====================

def test_middle_button_pans(board, board_store):
    press(board, 10, 10, button=PointerButton.MIDDLE)
    assert isinstance(board.gesture, Panning)
    move(board, 30, 5)
    assert board_store.viewport == Viewport(20, -5, 1.0)
    release(board, 30, 5)
    assert isinstance(board.gesture, Idle)


def test_space_arms_primary_pan(board, board_store):
    assert board.key_press("space")
    press(board, 250, 50)
    assert isinstance(board.gesture, Panning)
    move(board, 260, 50)
    board.key_release("space")
    assert isinstance(board.gesture, Idle)
    assert board_store.viewport.x == 10
    assert board_store.position("n2") == (200, 0)


def test_ctrl_wheel_zooms_plain_wheel_does_not(board, board_store):
    assert not board.scroll(100, 100, -100, ctrl=False)
    assert board_store.viewport == Viewport()
    assert board.scroll(100, 100, -100, ctrl=True)
    assert board_store.viewport.zoom == pytest.approx(1.1)


def test_zoom_shortcuts(board, board_store):
    board.set_size(800, 600)
    board.key_press("plus", ctrl=True)
    assert board_store.viewport.zoom == pytest.approx(1.2)
    board.key_press("1", ctrl=True)
    assert board_store.viewport.zoom == pytest.approx(1.0)
    board.key_press("0", ctrl=True)
    assert board_store.viewport.zoom == 1.0
    center = board_store.viewport.canvas_to_screen(170, 145)
    assert (center.x, center.y) == (pytest.approx(400), pytest.approx(300))


# ==================== Commands and keys ====================

def test_delete_key_removes_selection_unless_typing(board, board_store):
    board.selection.select_many(["n1", "n2"])
    assert not board.key_press("Delete", in_text_input=True)
    assert len(board_store.elements) == 4
    assert board.key_press("Delete")
    assert {el.id for el in board_store.elements} == {"n3", "g1"}
    assert board.selection.is_empty


def test_escape_clears_selection(board):
    board.selection.select("n1")
    assert board.key_press("Escape")
    assert board.selection.is_empty


def test_double_click_background_adds_note(board, board_store):
    board_store.viewport = Viewport(x=100, y=0, zoom=0.5)
    press(board, 700, 400, n_press=2)
    note = board_store.elements[-1]
    assert (note.type.value, note.x, note.y) == ("note", 1200, 800)
    assert isinstance(board.gesture, Idle)


def test_drop_centres_new_element(board, board_store):
    group = board.drop("group", 500, 500)
    assert isinstance(group, Group)
    assert (group.x, group.y) == (300, 350)
    assert board.drop("sticker", 500, 500) is None


def test_votes(board, board_store):
    board.change_votes("n1", 1)
    board.change_votes("n1", 1)
    board.change_votes("n2", -1)
    board.change_votes("g1", 1)
    assert board_store.elements[0].votes == 2
    assert board_store.elements[1].votes == 0
    board.reset_votes("n1")
    assert board_store.elements[0].votes == 0


def test_recolour_uses_the_element_palette(board, board_store):
    assert board.set_color("n1", "pink")
    assert board.set_color("g1", "rose")
    assert board_store.calls[-2:] == [("update", "n1", {"color": "pink"}),
                                      ("update", "g1", {"color": "rose"})]

    assert not board.set_color("n1", "rose")
    assert not board.set_color("n1", "pink")
    assert not board.set_color("missing", "pink")
    assert len([c for c in board_store.calls if c[0] == "update"]) == 2


def test_ctrl_z_undoes(board, board_store):
    press(board, 250, 50)
    move(board, 260, 50)
    release(board, 260, 50)
    board.key_press("z", ctrl=True)
    assert board_store.position("n2") == (200, 0)
    board.key_press("Z", ctrl=True, shift=True)
    assert board_store.position("n2") == (210, 0)


def test_hover_tracks_topmost_element(board):
    board.hover(10, 10)
    assert board.hover_id == "n1"
    board.hover(280, 280)
    assert board.hover_id == "g1"
    board.leave()
    assert board.hover_id is None


# ==================== Trees ====================

@pytest.fixture
def tree(hierarchy_store):
    return TreeInteraction(hierarchy_store, confirm=lambda message: True)


def click_node(tree, node_id):
    pos = tree.positions()[node_id]
    press(tree, pos.x + 5, pos.y + 5)


def test_tree_selection_and_hover_dimming(tree, forest_nodes):
    click_node(tree, "B")
    assert tree.selected_id == "B"
    pos = tree.positions()["D"]
    tree.hover(pos.x + 5, pos.y + 5)
    assert tree.hover_id == "D"
    dimmed = tree.dimmed_ids()
    assert dimmed == {"C", "E"}

    tree.is_exporting = True
    assert tree.dimmed_ids() == set()


def test_tree_background_click_deselects(tree):
    click_node(tree, "B")
    press(tree, -500, -500)
    assert tree.selected_id is None


def test_tree_filter_dims_non_matching(tree, hierarchy_store):
    hierarchy_store.nodes[2].data["status"] = "done"
    tree.filter = SitemapFilter(status="done")
    dimmed = tree.dimmed_ids()
    assert dimmed == {"A", "B", "D", "E"}


def test_tree_dimming_reads_store_once(tree, hierarchy_store, monkeypatch):
    reads = []
    read_nodes = hierarchy_store.get_hierarchical_nodes
    monkeypatch.setattr(hierarchy_store, "get_hierarchical_nodes",
                        lambda: reads.append(1) or read_nodes())
    tree.hover_id = "D"
    tree.filter = SitemapFilter(status="done")
    assert tree.dimmed_ids() == {"A", "B", "C", "D", "E"}
    assert len(reads) == 1

    nodes = read_nodes()
    assert tree.dimmed_ids(nodes) == {"A", "B", "C", "D", "E"}
    assert len(reads) == 1


def test_tree_node_rects_measure_connectors(tree):
    nodes = tree.nodes
    rects = tree.node_rects(nodes)
    assert rects["A"] == Rect(tree.positions()["A"].x, tree.positions()["A"].y,
                              tree.config.node_width, tree.config.node_height)

    measured = measured_connectors(tree_edges(nodes), rects.get, tree.config.orientation)
    assert measured == tree_connectors(nodes, tree.positions(), tree.config)


def test_tree_delete_cascades_and_renumbers(tree, hierarchy_store):
    click_node(tree, "B")
    assert tree.key_press("Delete")
    assert hierarchy_store.deleted == ["B", "D", "E"]
    assert hierarchy_store.updates == [("C", {"order": 0})]
    assert tree.selected_id is None


def test_tree_edit_moves_node_under_new_parent(tree, hierarchy_store):
    assert tree.edit_node("D", {"label": "Cart", "parent_id": "C", "release": "MVP"})
    assert hierarchy_store.updates == [
        ("D", {"label": "Cart", "release": "MVP", "parent_id": "C", "order": 0}),
        ("E", {"order": 0}),
    ]
    assert [n.id for n in tree.nodes if n.parent_id == "C"] == ["D"]


def test_tree_edit_refuses_moving_under_descendant(tree, hierarchy_store):
    assert not tree.edit_node("B", {"label": "Loop", "parent_id": "E"})
    assert not tree.edit_node("missing", {"label": "x"})
    assert hierarchy_store.updates == []


def test_sitemap_leaf_delete_needs_confirmation(hierarchy_store):
    asked = []
    tree = TreeInteraction(hierarchy_store, confirm=lambda m: asked.append(m) or False,
                           noun="screen")
    assert not tree.delete_node("C")
    assert asked == ["Delete this screen?"]
    assert hierarchy_store.deleted == []


def test_tree_delete_ignored_while_typing(tree, hierarchy_store):
    click_node(tree, "C")
    assert not tree.key_press("Delete", in_text_input=True)
    assert hierarchy_store.deleted == []


def test_tree_add_and_reorder(tree, hierarchy_store):
    node = tree.add_child("page", "A")
    assert tree.selected_id == node.id
    assert node.order == 2
    tree.reorder(node.id, "up")
    orders = {n.id: n.order for n in hierarchy_store.nodes if n.parent_id == "A"}
    assert orders == {"B": 0, "C": 2, node.id: 1}


def test_impact_map_goal_root():
    store = FakeHierarchyStore([
        HierarchicalNode("actor", None, 0, "actor", "Users"),
        HierarchicalNode("imp", "actor", 0, "impact", "Sign up faster"),
    ])
    tree = TreeInteraction(store, IMPACT_LAYOUT, confirm=lambda m: False,
                           goal=lambda: "Grow revenue")
    nodes = tree.nodes
    assert nodes[0].id == GOAL_ID
    positions = tree.positions()
    assert positions[GOAL_ID].x < positions["actor"].x < positions["imp"].x

    tree.selected_id = GOAL_ID
    assert not tree.key_press("Delete")

    added = tree.add_child("actor", GOAL_ID)
    assert added.parent_id is None

    # Only subtrees with descendants are confirmed on impact maps
    assert tree.delete_node(added.id)
    assert not tree.delete_node("actor")
    assert store.deleted == [added.id]


def test_tree_hover_on_goal_dims_nothing():
    store = FakeHierarchyStore([HierarchicalNode("actor", None, 0, "actor")])
    tree = TreeInteraction(store, IMPACT_LAYOUT, goal=lambda: "Goal")
    tree.hover_id = GOAL_ID
    assert tree.dimmed_ids() == set()
