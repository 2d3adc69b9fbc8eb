import json

import pytest

from boardmind.database import DATA_DIR_ENV, Database, DiagramKind
from boardmind.elements import Group, Note
from boardmind.transfer import (
    FORMAT_NAME, FORMAT_VERSION, _parent_first, export_data, export_file, import_data,
    load_file, main, summarize,
)
from boardmind.tree_layout import HierarchicalNode
from boardmind.viewport import Viewport


@pytest.fixture
def source_db(tmp_path):
    db = Database(tmp_path / "source.db")
    board = db.create_board("Retro")
    db.set_board_viewport(board.id, Viewport(5, 6, 0.5))
    db.add_element(board.id, Group(id="g", label="Keep"))
    db.add_element(board.id, Note(id="n", x=10, y=10, content="Pairing", votes=2))

    sitemap = db.create_diagram(DiagramKind.SITEMAP, "Shop")
    db.add_node(sitemap.id, HierarchicalNode("home", None, 0, "landing", "Home",
                                             {"status": "done"}))
    db.add_node(sitemap.id, HierarchicalNode("cart", "home", 0, "checkout", "Cart"))

    db.create_diagram(DiagramKind.IMPACT, "Q3", goal="Grow")
    yield db
    db.close()


def test_export_snapshot(source_db):
    data = export_data(source_db)
    assert data["format"] == FORMAT_NAME
    assert data["version"] == FORMAT_VERSION
    assert summarize(data) == {"boards": 1, "elements": 2, "sitemaps": 1,
                               "impact_maps": 1, "nodes": 2}


def test_round_trip_into_fresh_database(source_db, tmp_path):
    path = tmp_path / "out" / "transfer.json"
    export_file(source_db, path)

    target = Database(tmp_path / "target.db")
    counts = import_data(target, load_file(path))
    assert counts == {"boards": 1, "elements": 2, "diagrams": 2, "nodes": 2}

    board = target.get_all_boards()[0]
    assert board.name == "Retro"
    assert board.viewport == Viewport(5, 6, 0.5)
    group, note = target.get_elements(board.id)
    assert (group.label, note.content, note.votes) == ("Keep", "Pairing", 2)
    assert note.id != "n"

    sitemap = target.get_all_diagrams(DiagramKind.SITEMAP)[0]
    home, cart = target.get_nodes(sitemap.id)
    assert cart.parent_id == home.id
    assert home.data == {"status": "done"}
    assert target.get_all_diagrams(DiagramKind.IMPACT)[0].goal == "Grow"
    target.close()


def test_import_merges_unless_replacing(source_db):
    data = export_data(source_db)
    import_data(source_db, data)
    assert len(source_db.get_all_boards()) == 2
    import_data(source_db, data, replace=True)
    assert len(source_db.get_all_boards()) == 1
    assert len(source_db.get_all_diagrams()) == 2


def test_import_skips_unknown_kinds_and_bad_elements(tmp_path):
    db = Database(tmp_path / "db.db")
    data = {
        "boards": [{"name": "B", "elements": [{"type": "sticker"}, {"type": "note"}]}],
        "diagrams": [{"kind": "mindmap", "nodes": [{"id": "x"}]}],
    }
    counts = import_data(db, data)
    assert counts == {"boards": 1, "elements": 1, "diagrams": 0, "nodes": 0}
    db.close()


def test_parent_first_ordering():
    nodes = [
        {"id": "c", "parent_id": "b"},
        {"id": "b", "parent_id": "a"},
        {"id": "a", "parent_id": None},
        {"id": "orphan", "parent_id": "missing"},
        {"id": "x", "parent_id": "y"},
        {"id": "y", "parent_id": "x"},
        {"id": "leaf", "parent_id": "y"},
    ]
    ordered = _parent_first(nodes)
    ids = [n["id"] for n in ordered]
    assert ids.index("a") < ids.index("b") < ids.index("c")
    assert "orphan" in ids
    assert ids.index("x") < ids.index("y") < ids.index("leaf")

    parents = {n["id"]: n["parent_id"] for n in ordered}
    assert parents["x"] is None
    assert parents["y"] == "x"
    assert parents["leaf"] == "y"


def test_parent_first_breaks_self_parent():
    ordered = _parent_first([{"id": "loop", "parent_id": "loop"}, {"id": "kid", "parent_id": "loop"}])
    assert ordered == [{"id": "loop", "parent_id": None}, {"id": "kid", "parent_id": "loop"}]


@pytest.mark.parametrize("content, message", [
    ("{not json", "Not a valid JSON file"),
    (json.dumps({"format": "other"}), "Not a BoardMind transfer file"),
    (json.dumps({"format": FORMAT_NAME, "version": 99}), "Unsupported transfer format"),
])
def test_load_file_rejects_bad_input(tmp_path, content, message):
    path = tmp_path / "bad.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(SystemExit, match=message):
        load_file(path)


def test_load_file_missing(tmp_path):
    with pytest.raises(SystemExit, match="File not found"):
        load_file(tmp_path / "nope.json")


def test_cli_export_verify_import(source_db, tmp_path, monkeypatch, capsys,
                                  boardmind_logger):
    monkeypatch.setenv(DATA_DIR_ENV, str(tmp_path / "data"))
    out = tmp_path / "dump.json"
    assert main(["--db", str(source_db.db_path), "export", "--out", str(out)]) == 0
    assert out.exists()

    assert main(["verify", "--file", str(out)]) == 0
    printed = capsys.readouterr().out
    assert "Boards: 1 (2 elements)" in printed
    assert "Site maps: 1  Impact maps: 1 (2 nodes)" in printed

    target = tmp_path / "target.db"
    Database(target).close()
    assert main(["--db", str(target), "import", "--file", str(out), "--replace"]) == 0
    assert "Import complete: 1 boards, 2 diagrams" in capsys.readouterr().out
    assert list((tmp_path / "data" / "transfer-backups").glob("*.db"))
