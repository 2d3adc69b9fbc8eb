from boardmind.connectors import (
    DeferredMeasure, connector_id, horizontal_connector, measured_connectors,
    rect_connector, tree_connectors, tree_edges, vertical_connector,
)
from boardmind.geometry import Point, Rect
from boardmind.tree_layout import LayoutConfig, Orientation, layout_tree


def test_vertical_connector_bottom_centre_to_top_centre():
    curve = vertical_connector(Point(0, 0), Point(300, 200), 200, 100)
    assert curve.start == Point(100, 100)
    assert curve.end == Point(400, 200)
    assert curve.control1 == Point(100, 150)
    assert curve.control2 == Point(400, 150)


def test_horizontal_connector_right_middle_to_left_middle():
    curve = horizontal_connector(Point(0, 0), Point(300, 100), 200, 60)
    assert curve.start == Point(200, 30)
    assert curve.end == Point(300, 130)
    assert curve.control1 == Point(250, 30)
    assert curve.control2 == Point(250, 130)


def test_tree_connectors_one_per_laid_out_edge(forest_nodes):
    config = LayoutConfig()
    connectors = tree_connectors(forest_nodes, layout_tree(forest_nodes, config), config)
    assert {c.id for c in connectors} == {
        connector_id(p, c) for p, c in [("A", "B"), ("A", "C"), ("B", "D"), ("B", "E")]
    }
    assert connector_id("A", "B") == "conn-A-B"


def test_measured_connectors_skip_unrendered_nodes():
    rects = {"p": Rect(0, 0, 100, 40), "c": Rect(200, 100, 120, 60)}
    connectors = measured_connectors([("p", "c"), ("p", "hidden")], rects.get)
    assert len(connectors) == 1
    assert connectors[0].curve == rect_connector(rects["p"], rects["c"], Orientation.HORIZONTAL)
    assert connectors[0].curve.start == Point(100, 20)
    assert connectors[0].curve.end == Point(200, 130)


def test_tree_edges(forest_nodes):
    assert tree_edges(forest_nodes) == [("A", "B"), ("A", "C"), ("B", "D"), ("B", "E")]


class FakeScheduler:
    def __init__(self):
        self.pending = {}
        self.next_handle = 0

    def schedule(self, delay_ms, callback):
        self.next_handle += 1
        self.pending[self.next_handle] = callback
        return self.next_handle

    def cancel(self, handle):
        self.pending.pop(handle, None)

    def run_all(self):
        for handle, callback in list(self.pending.items()):
            del self.pending[handle]
            callback()


def test_deferred_measure_coalesces_bursts():
    scheduler = FakeScheduler()
    runs = []
    ready = []
    measure = DeferredMeasure(lambda: runs.append(1) or ["c"], scheduler.schedule,
                              scheduler.cancel, on_ready=ready.append)
    for _ in range(5):
        measure.invalidate()
    assert measure.pending
    assert len(scheduler.pending) == 1
    scheduler.run_all()
    assert runs == [1]
    assert ready == [["c"]]
    assert measure.connectors == ["c"]
    assert not measure.pending


def test_deferred_measure_flush_and_close():
    scheduler = FakeScheduler()
    runs = []
    measure = DeferredMeasure(lambda: runs.append(1) or [], scheduler.schedule, scheduler.cancel)
    measure.flush()
    assert runs == []
    measure.invalidate()
    measure.flush()
    assert runs == [1] and not scheduler.pending
    measure.invalidate()
    measure.close()
    assert not measure.pending and not scheduler.pending
