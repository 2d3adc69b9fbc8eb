from boardmind.undo import ActionType, UndoManager


def move(before, after):
    return UndoManager.move_elements_action(before, after)


def test_move_action_only_lists_moved_elements():
    action = move({"a": (0, 0), "b": (5, 5)}, {"a": (10, 0), "b": (5, 5)})
    assert action.action_type == ActionType.ELEMENTS_MOVE
    assert action.description == "Move element"
    assert action.before == {"a": {"x": 0, "y": 0}}
    assert action.after == {"a": {"x": 10, "y": 0}}


def test_move_action_counts_elements():
    action = move({"a": (0, 0), "b": (5, 5)}, {"a": (1, 0), "b": (6, 5)})
    assert action.description == "Move 2 elements"


def test_nothing_moved_gives_no_action():
    assert move({"a": (0, 0)}, {"a": (0, 0)}) is None
    assert move({"a": (0, 0)}, {}) is None


def test_resize_action():
    before = {"x": 0, "y": 0, "width": 300, "height": 200}
    after = {"x": 0, "y": 0, "width": 350, "height": 200}
    action = UndoManager.resize_element_action("g", before, after)
    assert action.description == "Resize group"
    assert action.before == {"g": {"width": 300}}
    assert action.after == {"g": {"width": 350}}
    assert UndoManager.resize_element_action("g", before, dict(before)) is None


def test_undo_redo_cycle():
    manager = UndoManager()
    first = move({"a": (0, 0)}, {"a": (1, 1)})
    second = move({"a": (1, 1)}, {"a": (2, 2)})
    manager.push(first)
    manager.push(second)

    assert manager.undo() is second
    assert manager.redo_description == "Move element"
    assert manager.undo() is first
    assert manager.undo() is None
    assert not manager.can_undo
    assert manager.redo() is first
    assert manager.can_redo


def test_push_clears_redo():
    manager = UndoManager()
    manager.push(move({"a": (0, 0)}, {"a": (1, 1)}))
    manager.undo()
    manager.push(move({"b": (0, 0)}, {"b": (1, 1)}))
    assert not manager.can_redo
    assert manager.redo() is None


def test_history_is_bounded():
    manager = UndoManager(max_undo=3)
    actions = [move({"a": (i, 0)}, {"a": (i + 1, 0)}) for i in range(5)]
    for action in actions:
        manager.push(action)
    popped = [manager.undo() for _ in range(4)]
    assert popped == [actions[4], actions[3], actions[2], None]


def test_state_change_callback():
    manager = UndoManager()
    calls = []
    manager.on_state_changed = lambda: calls.append(manager.can_undo)
    manager.push(move({"a": (0, 0)}, {"a": (1, 1)}))
    manager.undo()
    manager.clear()
    assert calls == [True, False, False]
