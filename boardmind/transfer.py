"""Export/import helper CLI for BoardMind.

Moves boards, site maps and impact maps between machines as one JSON file.

Usage:
  boardmind-transfer export --out boardmind-data.json
  boardmind-transfer import --file boardmind-data.json [--replace]
  boardmind-transfer verify --file boardmind-data.json

Import merges by default: every document, element and node gets a fresh id.
``--replace`` deletes all existing documents first, after writing a safety
copy of the database.
"""

from __future__ import annotations

import argparse
import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from boardmind.database import Database, get_data_dir, get_db_path
from boardmind.elements import Element, new_element_id
from boardmind.logging_config import setup_logging
from boardmind.tree_layout import HierarchicalNode
from boardmind.viewport import Viewport

logger = logging.getLogger(__name__)

FORMAT_NAME = "boardmind-transfer"
FORMAT_VERSION = 1


# ==================== Export ====================

def export_data(db: Database) -> dict:
    """Snapshot of every document as plain JSON-compatible data."""
    boards = []
    for board in db.get_all_boards():
        boards.append({
            "name": board.name,
            "created_at": board.created_at,
            "viewport": board.viewport.to_dict(),
            "elements": [el.to_dict() for el in db.get_elements(board.id)],
        })

    diagrams = []
    for diagram in db.get_all_diagrams():
        diagrams.append({
            "kind": diagram.kind,
            "name": diagram.name,
            "goal": diagram.goal,
            "created_at": diagram.created_at,
            "viewport": diagram.viewport.to_dict(),
            "nodes": [
                {"id": n.id, "parent_id": n.parent_id, "order": n.order,
                 "type": n.type, "label": n.label, "data": n.data}
                for n in db.get_nodes(diagram.id)
            ],
        })

    return {
        "format": FORMAT_NAME,
        "version": FORMAT_VERSION,
        "exported_at": datetime.now().isoformat(timespec="seconds"),
        "boards": boards,
        "diagrams": diagrams,
    }


def export_file(db: Database, out_path: Path) -> dict:
    data = export_data(db)
    out_path = out_path.expanduser().resolve()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    logger.info("Exported %d boards and %d diagrams to %s",
                len(data["boards"]), len(data["diagrams"]), out_path)
    return data


# ==================== Import ====================

def load_file(path: Path) -> dict:
    """Read and validate a transfer file."""
    path = path.expanduser().resolve()
    if not path.exists():
        raise SystemExit(f"File not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise SystemExit(f"Not a valid JSON file: {path} ({e})")
    if not isinstance(data, dict) or data.get("format") != FORMAT_NAME:
        raise SystemExit(f"Not a BoardMind transfer file: {path}")
    if data.get("version") != FORMAT_VERSION:
        raise SystemExit(f"Unsupported transfer format version: {data.get('version')}")
    return data


def _cycle_entry(node: dict, by_id: Dict[str, dict]) -> dict:
    """First node reached twice walking up from ``node``."""
    seen = set()
    while node["id"] not in seen:
        seen.add(node["id"])
        node = by_id[node["parent_id"]]
    return node


def _parent_first(nodes: List[dict]) -> List[dict]:
    """Order nodes so every parent precedes its children.

    Nodes whose parent is missing become roots. A parent cycle is broken by
    detaching a single member; every other node keeps its parent.
    """
    by_id = {n.get("id"): n for n in nodes if n.get("id")}
    ordered: List[dict] = []
    placed = set()
    pending = list(by_id.values())
    while pending:
        remaining = []
        for node in pending:
            parent_id = node.get("parent_id")
            if parent_id is None or parent_id not in by_id or parent_id in placed:
                ordered.append(node)
                placed.add(node["id"])
            else:
                remaining.append(node)
        if remaining and len(remaining) == len(pending):
            # Every remaining parent is itself pending, so the walk ends on a cycle
            cut = _cycle_entry(remaining[0], by_id)
            logger.warning("Breaking parent cycle at node %r", cut["id"])
            ordered.append(dict(cut, parent_id=None))
            placed.add(cut["id"])
            remaining = [n for n in remaining if n is not cut]
        pending = remaining
    return ordered


def import_data(db: Database, data: dict, replace: bool = False) -> Dict[str, int]:
    """Add the documents in ``data`` to the database with fresh ids."""
    if replace:
        db.clear_all()

    counts = {"boards": 0, "elements": 0, "diagrams": 0, "nodes": 0}

    for board_data in data.get("boards", []):
        board = db.create_board(board_data.get("name") or "Untitled Board")
        db.set_board_viewport(board.id, Viewport.from_dict(board_data.get("viewport")))
        counts["boards"] += 1
        for element_data in board_data.get("elements", []):
            element = Element.from_dict(dict(element_data, id=new_element_id()))
            if element is None:
                logger.debug("Skipping malformed element %r", element_data)
                continue
            db.add_element(board.id, element)
            counts["elements"] += 1

    for diagram_data in data.get("diagrams", []):
        kind = diagram_data.get("kind")
        try:
            diagram = db.create_diagram(kind, diagram_data.get("name"),
                                        diagram_data.get("goal") or "")
        except ValueError:
            logger.warning("Skipping diagram of unknown kind %r", kind)
            continue
        db.set_diagram_viewport(diagram.id, Viewport.from_dict(diagram_data.get("viewport")))
        counts["diagrams"] += 1

        id_map: Dict[str, str] = {}
        for node_data in _parent_first(diagram_data.get("nodes", [])):
            new_id = new_element_id()
            id_map[node_data["id"]] = new_id
            data_field = node_data.get("data")
            db.add_node(diagram.id, HierarchicalNode(
                id=new_id,
                parent_id=id_map.get(node_data.get("parent_id")),
                order=int(node_data.get("order") or 0),
                type=node_data.get("type") or "",
                label=node_data.get("label") or "",
                data=data_field if isinstance(data_field, dict) else {},
            ))
            counts["nodes"] += 1

    logger.info("Imported %s", counts)
    return counts


def _safety_copy(db_path: Path) -> Optional[Path]:
    """Consistent copy of the database before a destructive import."""
    if not db_path.exists():
        return None
    backup_dir = get_data_dir() / "transfer-backups"
    backup_dir.mkdir(parents=True, exist_ok=True)
    target = backup_dir / f"boardmind_{datetime.now().strftime('%Y%m%d_%H%M%S')}.db"
    src = sqlite3.connect(f"file:{db_path.as_posix()}?mode=ro", uri=True)
    try:
        dst = sqlite3.connect(target.as_posix())
        try:
            src.backup(dst)
        finally:
            dst.close()
    finally:
        src.close()
    return target


def summarize(data: dict) -> Dict[str, int]:
    boards = data.get("boards", [])
    diagrams = data.get("diagrams", [])
    return {
        "boards": len(boards),
        "elements": sum(len(b.get("elements", [])) for b in boards),
        "sitemaps": sum(1 for d in diagrams if d.get("kind") == "sitemap"),
        "impact_maps": sum(1 for d in diagrams if d.get("kind") == "impact"),
        "nodes": sum(len(d.get("nodes", [])) for d in diagrams),
    }


# ==================== CLI ====================

def _open_db(args: argparse.Namespace) -> Database:
    return Database(Path(args.db).expanduser() if args.db else None)


def _cmd_export(args: argparse.Namespace) -> int:
    db = _open_db(args)
    try:
        export_file(db, Path(args.out))
    finally:
        db.close()
    print(f"Wrote file: {Path(args.out).expanduser().resolve()}")
    return 0


def _cmd_import(args: argparse.Namespace) -> int:
    data = load_file(Path(args.file))
    if args.replace:
        backup = _safety_copy(Path(args.db).expanduser() if args.db else get_db_path())
        if backup:
            print(f"Safety copy: {backup}")
    db = _open_db(args)
    try:
        counts = import_data(db, data, replace=bool(args.replace))
    finally:
        db.close()
    print(f"Import complete: {counts['boards']} boards, {counts['diagrams']} diagrams")
    return 0


def _cmd_verify(args: argparse.Namespace) -> int:
    data = load_file(Path(args.file))
    counts = summarize(data)
    print("BoardMind transfer file")
    print(f"  Exported: {data.get('exported_at', 'unknown')}")
    print(f"  Boards: {counts['boards']} ({counts['elements']} elements)")
    print(f"  Site maps: {counts['sitemaps']}  Impact maps: {counts['impact_maps']} "
          f"({counts['nodes']} nodes)")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="boardmind-transfer")
    parser.add_argument("--db", help="Database file (default: the user data directory)")
    parser.add_argument("--log-level", help="Logging level, e.g. DEBUG")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_exp = sub.add_parser("export", help="Export all documents")
    p_exp.add_argument("--out", required=True, help="Output .json path")
    p_exp.set_defaults(func=_cmd_export)

    p_imp = sub.add_parser("import", help="Import documents")
    p_imp.add_argument("--file", required=True, help="Input .json path")
    p_imp.add_argument(
        "--replace",
        action="store_true",
        help="Delete existing documents first (a safety copy will be saved)",
    )
    p_imp.set_defaults(func=_cmd_import)

    p_ver = sub.add_parser("verify", help="Check a transfer file without importing it")
    p_ver.add_argument("--file", required=True, help="Input .json path")
    p_ver.set_defaults(func=_cmd_verify)

    args = parser.parse_args(argv)
    setup_logging(args.log_level)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
