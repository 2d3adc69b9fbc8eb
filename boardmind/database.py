"""SQLite database layer for BoardMind."""

import sqlite3
import json
import logging
import os
from copy import deepcopy
from pathlib import Path
from datetime import datetime
from typing import Optional, List, Dict, Any, Iterable
from dataclasses import dataclass, field

from boardmind.elements import (
    Element, ElementType, PositionUpdate, create_element, duplicate_element,
    new_element_id, next_z_index,
)
from boardmind.hierarchy import (
    GOAL_ID, ImpactType, find_node, new_node_label, next_sibling_order,
    reorder_updates,
)
from boardmind.tree_layout import HierarchicalNode
from boardmind.viewport import Viewport

logger = logging.getLogger(__name__)

DATA_DIR_ENV = "BOARDMIND_DATA_DIR"

ELEMENT_COLUMNS = ("id", "type", "x", "y", "width", "height", "color", "z_index")
NODE_COLUMNS = {"id", "parent_id", "order", "type", "label"}


def get_data_dir() -> Path:
    """Get the application data directory."""
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        data_dir = Path(override).expanduser()
    else:
        data_dir = Path.home() / ".local" / "share" / "boardmind"
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / "exports").mkdir(exist_ok=True)
    return data_dir


def get_db_path() -> Path:
    """Get the database file path."""
    return get_data_dir() / "boardmind.db"


def _load_json(data: Any, default: Any) -> Any:
    if data is None or data == "":
        return default
    # Columns created with JSON affinity hand back numbers already decoded
    if not isinstance(data, (str, bytes)):
        return data
    try:
        return json.loads(data)
    except (json.JSONDecodeError, TypeError):
        return default


class DiagramKind:
    SITEMAP = "sitemap"
    IMPACT = "impact"

    ALL = (SITEMAP, IMPACT)


@dataclass
class Board:
    """A whiteboard of notes and groups."""
    id: int = 0
    name: str = "Untitled Board"
    created_at: str = ""
    modified_at: str = ""
    viewport: Viewport = field(default_factory=Viewport)


@dataclass
class Diagram:
    """A hierarchical document: a site map or an impact map."""
    id: int = 0
    kind: str = DiagramKind.SITEMAP
    name: str = "Untitled Site Map"
    goal: str = ""
    created_at: str = ""
    modified_at: str = ""
    viewport: Viewport = field(default_factory=Viewport)


class Database:
    """Database manager for BoardMind."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or get_db_path()
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.execute("PRAGMA journal_mode = WAL")
        return self._conn

    def _init_db(self):
        """Initialize the database schema."""
        cursor = self.conn.cursor()

        cursor.executescript("""
            -- Boards table
            CREATE TABLE IF NOT EXISTS boards (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                modified_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                viewport TEXT
            );

            -- Board elements (notes and groups)
            CREATE TABLE IF NOT EXISTS elements (
                id TEXT PRIMARY KEY,
                board_id INTEGER NOT NULL,
                type TEXT NOT NULL,
                x REAL NOT NULL DEFAULT 0,
                y REAL NOT NULL DEFAULT 0,
                width REAL NOT NULL DEFAULT 0,
                height REAL NOT NULL DEFAULT 0,
                color TEXT,
                z_index INTEGER DEFAULT 0,
                data TEXT,
                FOREIGN KEY (board_id) REFERENCES boards(id) ON DELETE CASCADE
            );

            -- Site maps and impact maps
            CREATE TABLE IF NOT EXISTS diagrams (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                kind TEXT NOT NULL,
                name TEXT NOT NULL,
                goal TEXT DEFAULT '',
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                modified_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                viewport TEXT
            );

            -- Diagram nodes
            CREATE TABLE IF NOT EXISTS diagram_nodes (
                id TEXT PRIMARY KEY,
                diagram_id INTEGER NOT NULL,
                parent_id TEXT,
                sort_order INTEGER DEFAULT 0,
                type TEXT NOT NULL DEFAULT '',
                label TEXT NOT NULL DEFAULT '',
                data TEXT,
                FOREIGN KEY (diagram_id) REFERENCES diagrams(id) ON DELETE CASCADE,
                FOREIGN KEY (parent_id) REFERENCES diagram_nodes(id) ON DELETE CASCADE
            );

            -- App settings table
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT
            );

            -- Create indexes
            CREATE INDEX IF NOT EXISTS idx_elements_board_id ON elements(board_id);
            CREATE INDEX IF NOT EXISTS idx_diagram_nodes_diagram_id ON diagram_nodes(diagram_id);
            CREATE INDEX IF NOT EXISTS idx_diagram_nodes_parent_id ON diagram_nodes(parent_id);
        """)

        self.conn.commit()

    def close(self):
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def _touch(self, table: str, doc_id: int):
        self.conn.execute(f"UPDATE {table} SET modified_at = ? WHERE id = ?",
                          (datetime.now().isoformat(), doc_id))

    # ==================== Board Operations ====================

    def create_board(self, name: str = "Untitled Board") -> Board:
        """Create a new, empty board."""
        cursor = self.conn.cursor()
        now = datetime.now().isoformat()
        viewport = Viewport()
        cursor.execute(
            "INSERT INTO boards (name, created_at, modified_at, viewport) VALUES (?, ?, ?, ?)",
            (name, now, now, json.dumps(viewport.to_dict()))
        )
        self.conn.commit()
        logger.info("Created board %d (%s)", cursor.lastrowid, name)
        return Board(id=cursor.lastrowid, name=name, created_at=now,
                     modified_at=now, viewport=viewport)

    def _row_to_board(self, row: sqlite3.Row) -> Board:
        return Board(
            id=row["id"],
            name=row["name"],
            created_at=row["created_at"],
            modified_at=row["modified_at"],
            viewport=Viewport.from_dict(_load_json(row["viewport"], None)),
        )

    def get_board(self, board_id: int) -> Optional[Board]:
        """Get a board by ID."""
        row = self.conn.execute("SELECT * FROM boards WHERE id = ?", (board_id,)).fetchone()
        return self._row_to_board(row) if row else None

    def get_all_boards(self) -> List[Board]:
        """Get all boards, most recently modified first."""
        rows = self.conn.execute("SELECT * FROM boards ORDER BY modified_at DESC").fetchall()
        return [self._row_to_board(row) for row in rows]

    def rename_board(self, board_id: int, name: str):
        self.conn.execute(
            "UPDATE boards SET name = ?, modified_at = ? WHERE id = ?",
            (name, datetime.now().isoformat(), board_id)
        )
        self.conn.commit()

    def set_board_viewport(self, board_id: int, viewport: Viewport):
        """Persist view state without touching modified_at."""
        self.conn.execute("UPDATE boards SET viewport = ? WHERE id = ?",
                          (json.dumps(viewport.to_dict()), board_id))
        self.conn.commit()

    def delete_board(self, board_id: int):
        """Delete a board and all of its elements."""
        self.conn.execute("DELETE FROM boards WHERE id = ?", (board_id,))
        self.conn.commit()
        logger.info("Deleted board %d", board_id)

    # ==================== Element Operations ====================

    @staticmethod
    def _element_values(board_id: int, element: Element) -> tuple:
        data = element.to_dict()
        extra = {k: v for k, v in data.items() if k not in ELEMENT_COLUMNS}
        return (element.id, board_id, element.type.value, element.x, element.y,
                element.width, element.height, element.color, element.z_index,
                json.dumps(extra))

    @staticmethod
    def _row_to_element(row: sqlite3.Row) -> Optional[Element]:
        data = _load_json(row["data"], {})
        if not isinstance(data, dict):
            data = {}
        data.update({key: row[key] for key in ELEMENT_COLUMNS})
        return Element.from_dict(data)

    def get_elements(self, board_id: int) -> List[Element]:
        """All elements of a board in insertion order."""
        rows = self.conn.execute(
            "SELECT * FROM elements WHERE board_id = ? ORDER BY rowid", (board_id,)
        ).fetchall()
        elements = [self._row_to_element(row) for row in rows]
        return [el for el in elements if el is not None]

    def get_element(self, board_id: int, element_id: str) -> Optional[Element]:
        row = self.conn.execute(
            "SELECT * FROM elements WHERE board_id = ? AND id = ?", (board_id, element_id)
        ).fetchone()
        return self._row_to_element(row) if row else None

    def add_element(self, board_id: int, element: Element) -> Element:
        self.conn.execute(
            """INSERT INTO elements (id, board_id, type, x, y, width, height, color, z_index, data)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            self._element_values(board_id, element)
        )
        self._touch("boards", board_id)
        self.conn.commit()
        return element

    def update_element(self, board_id: int, element_id: str, fields: Dict[str, Any]):
        """Merge ``fields`` into an element. Unknown ids are ignored."""
        element = self.get_element(board_id, element_id)
        if element is None:
            logger.debug("Ignoring update of missing element %s", element_id)
            return
        data = element.to_dict()
        data.update({k: v for k, v in fields.items() if k not in ("id", "type")})
        updated = Element.from_dict(data)
        values = self._element_values(board_id, updated)
        self.conn.execute(
            """UPDATE elements SET x = ?, y = ?, width = ?, height = ?, color = ?,
               z_index = ?, data = ? WHERE board_id = ? AND id = ?""",
            values[3:] + (board_id, element_id)
        )
        self._touch("boards", board_id)
        self.conn.commit()

    def move_elements(self, board_id: int, updates: Iterable[PositionUpdate]):
        """Apply several position updates in one transaction."""
        with self.conn:
            self.conn.executemany(
                "UPDATE elements SET x = ?, y = ? WHERE board_id = ? AND id = ?",
                [(u.x, u.y, board_id, u.id) for u in updates]
            )
            self._touch("boards", board_id)

    def delete_element(self, board_id: int, element_id: str):
        self.conn.execute("DELETE FROM elements WHERE board_id = ? AND id = ?",
                          (board_id, element_id))
        self._touch("boards", board_id)
        self.conn.commit()

    # ==================== Diagram Operations ====================

    def create_diagram(self, kind: str, name: Optional[str] = None, goal: str = "") -> Diagram:
        """Create a new site map or impact map."""
        if kind not in DiagramKind.ALL:
            raise ValueError(f"Unknown diagram kind: {kind}")
        if name is None:
            name = "Untitled Site Map" if kind == DiagramKind.SITEMAP else "Untitled Impact Map"
        now = datetime.now().isoformat()
        viewport = Viewport()
        cursor = self.conn.cursor()
        cursor.execute(
            """INSERT INTO diagrams (kind, name, goal, created_at, modified_at, viewport)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (kind, name, goal, now, now, json.dumps(viewport.to_dict()))
        )
        self.conn.commit()
        logger.info("Created %s %d (%s)", kind, cursor.lastrowid, name)
        return Diagram(id=cursor.lastrowid, kind=kind, name=name, goal=goal,
                       created_at=now, modified_at=now, viewport=viewport)

    def _row_to_diagram(self, row: sqlite3.Row) -> Diagram:
        return Diagram(
            id=row["id"],
            kind=row["kind"],
            name=row["name"],
            goal=row["goal"] or "",
            created_at=row["created_at"],
            modified_at=row["modified_at"],
            viewport=Viewport.from_dict(_load_json(row["viewport"], None)),
        )

    def get_diagram(self, diagram_id: int) -> Optional[Diagram]:
        row = self.conn.execute("SELECT * FROM diagrams WHERE id = ?", (diagram_id,)).fetchone()
        return self._row_to_diagram(row) if row else None

    def get_all_diagrams(self, kind: Optional[str] = None) -> List[Diagram]:
        """Get diagrams, optionally of one kind, most recently modified first."""
        if kind is None:
            rows = self.conn.execute("SELECT * FROM diagrams ORDER BY modified_at DESC").fetchall()
        else:
            rows = self.conn.execute(
                "SELECT * FROM diagrams WHERE kind = ? ORDER BY modified_at DESC", (kind,)
            ).fetchall()
        return [self._row_to_diagram(row) for row in rows]

    def update_diagram(self, diagram: Diagram):
        """Save name and goal."""
        self.conn.execute(
            "UPDATE diagrams SET name = ?, goal = ?, modified_at = ? WHERE id = ?",
            (diagram.name, diagram.goal, datetime.now().isoformat(), diagram.id)
        )
        self.conn.commit()

    def set_diagram_viewport(self, diagram_id: int, viewport: Viewport):
        self.conn.execute("UPDATE diagrams SET viewport = ? WHERE id = ?",
                          (json.dumps(viewport.to_dict()), diagram_id))
        self.conn.commit()

    def delete_diagram(self, diagram_id: int):
        self.conn.execute("DELETE FROM diagrams WHERE id = ?", (diagram_id,))
        self.conn.commit()
        logger.info("Deleted diagram %d", diagram_id)

    # ==================== Diagram Node Operations ====================

    @staticmethod
    def _row_to_node(row: sqlite3.Row) -> HierarchicalNode:
        data = _load_json(row["data"], {})
        return HierarchicalNode(
            id=row["id"],
            parent_id=row["parent_id"],
            order=row["sort_order"],
            type=row["type"],
            label=row["label"],
            data=data if isinstance(data, dict) else {},
        )

    def get_nodes(self, diagram_id: int) -> List[HierarchicalNode]:
        rows = self.conn.execute(
            "SELECT * FROM diagram_nodes WHERE diagram_id = ? ORDER BY rowid", (diagram_id,)
        ).fetchall()
        return [self._row_to_node(row) for row in rows]

    def add_node(self, diagram_id: int, node: HierarchicalNode) -> HierarchicalNode:
        self.conn.execute(
            """INSERT INTO diagram_nodes (id, diagram_id, parent_id, sort_order, type, label, data)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (node.id, diagram_id, node.parent_id, node.order, node.type, node.label,
             json.dumps(node.data))
        )
        self._touch("diagrams", diagram_id)
        self.conn.commit()
        return node

    def update_node(self, diagram_id: int, node_id: str, fields: Dict[str, Any]):
        """Merge ``fields`` into a node; keys that are not columns go to ``data``."""
        row = self.conn.execute(
            "SELECT * FROM diagram_nodes WHERE diagram_id = ? AND id = ?", (diagram_id, node_id)
        ).fetchone()
        if row is None:
            logger.debug("Ignoring update of missing node %s", node_id)
            return
        node = self._row_to_node(row)
        data = dict(node.data)
        data.update({k: v for k, v in fields.items() if k not in NODE_COLUMNS})
        self.conn.execute(
            """UPDATE diagram_nodes SET parent_id = ?, sort_order = ?, type = ?, label = ?,
               data = ? WHERE diagram_id = ? AND id = ?""",
            (fields.get("parent_id", node.parent_id), fields.get("order", node.order),
             fields.get("type", node.type), fields.get("label", node.label),
             json.dumps(data), diagram_id, node_id)
        )
        self._touch("diagrams", diagram_id)
        self.conn.commit()

    def set_node_orders(self, diagram_id: int, updates: Iterable[tuple]):
        """Apply ``(node_id, order)`` pairs in one transaction."""
        with self.conn:
            self.conn.executemany(
                "UPDATE diagram_nodes SET sort_order = ? WHERE diagram_id = ? AND id = ?",
                [(order, diagram_id, node_id) for node_id, order in updates]
            )
            self._touch("diagrams", diagram_id)

    def delete_node(self, diagram_id: int, node_id: str):
        """Delete a node; descendants go with it through the parent foreign key."""
        self.conn.execute("DELETE FROM diagram_nodes WHERE diagram_id = ? AND id = ?",
                          (diagram_id, node_id))
        self._touch("diagrams", diagram_id)
        self.conn.commit()

    # ==================== Settings Operations ====================

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get an application setting."""
        row = self.conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        if not row:
            return default
        return _load_json(row["value"], default)

    def set_setting(self, key: str, value: Any):
        """Set an application setting."""
        self.conn.execute(
            "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
            (key, json.dumps(value))
        )
        self.conn.commit()

    def clear_all(self):
        """Delete every document (settings are kept)."""
        with self.conn:
            self.conn.execute("DELETE FROM diagram_nodes")
            self.conn.execute("DELETE FROM diagrams")
            self.conn.execute("DELETE FROM elements")
            self.conn.execute("DELETE FROM boards")
        logger.info("Cleared all documents")


# ==================== Store bindings ====================

class BoardBinding:
    """Board store backed by the database, for ``BoardInteraction``."""

    def __init__(self, db: Database, board_id: int):
        self.db = db
        self.board_id = board_id
        board = db.get_board(board_id)
        self._viewport = board.viewport if board else Viewport()

    def get_elements(self) -> List[Element]:
        return self.db.get_elements(self.board_id)

    def get_viewport(self) -> Viewport:
        return self._viewport

    def on_viewport_change(self, viewport: Viewport):
        self._viewport = viewport
        self.db.set_board_viewport(self.board_id, viewport)

    def on_update_element(self, element_id: str, fields: dict):
        self.db.update_element(self.board_id, element_id, fields)

    def on_delete_element(self, element_id: str):
        self.db.delete_element(self.board_id, element_id)

    def on_add_element(self, element_type: ElementType, x: float, y: float,
                       options: Optional[dict] = None) -> Optional[Element]:
        element = create_element(element_type, x, y, options=options)
        element.z_index = next_z_index(self.get_elements())
        return self.db.add_element(self.board_id, element)

    def on_move_elements(self, updates: List[PositionUpdate]):
        self.db.move_elements(self.board_id, updates)

    def on_duplicate_element(self, element_id: str) -> Optional[Element]:
        elements = self.get_elements()
        source = next((el for el in elements if el.id == element_id), None)
        if source is None:
            return None
        return self.db.add_element(self.board_id,
                                   duplicate_element(source, next_z_index(elements)))


SCREEN_DEFAULTS = {"status": "planned", "release": "", "persona_ids": [], "description": ""}
NODE_DEFAULTS = {
    ImpactType.ACTOR.value: {"persona_id": None},
    ImpactType.IMPACT.value: {},
    ImpactType.DELIVERABLE.value: {"status": "planned"},
}


class DiagramBinding:
    """Hierarchy store backed by the database, for ``TreeInteraction``."""

    def __init__(self, db: Database, diagram_id: int):
        self.db = db
        self.diagram_id = diagram_id
        diagram = db.get_diagram(diagram_id)
        self.kind = diagram.kind if diagram else DiagramKind.SITEMAP
        self._viewport = diagram.viewport if diagram else Viewport()

    def get_goal(self) -> str:
        diagram = self.db.get_diagram(self.diagram_id)
        return diagram.goal if diagram else ""

    def get_hierarchical_nodes(self) -> List[HierarchicalNode]:
        return self.db.get_nodes(self.diagram_id)

    def get_viewport(self) -> Viewport:
        return self._viewport

    def on_viewport_change(self, viewport: Viewport):
        self._viewport = viewport
        self.db.set_diagram_viewport(self.diagram_id, viewport)

    def on_add_node(self, node_type: str, parent_id: Optional[str],
                    label: Optional[str] = None) -> Optional[HierarchicalNode]:
        nodes = self.get_hierarchical_nodes()
        if parent_id == GOAL_ID:
            parent_id = None
        if parent_id is not None and find_node(nodes, parent_id) is None:
            logger.debug("Ignoring add under missing parent %s", parent_id)
            return None
        if self.kind == DiagramKind.IMPACT:
            data = dict(NODE_DEFAULTS.get(node_type, {}))
            default_label = new_node_label(nodes, node_type)
        else:
            data = deepcopy(SCREEN_DEFAULTS)
            default_label = "New Screen"
        node = HierarchicalNode(
            id=new_element_id(),
            parent_id=parent_id,
            order=next_sibling_order(nodes, parent_id),
            type=node_type,
            label=label or default_label,
            data=data,
        )
        return self.db.add_node(self.diagram_id, node)

    def on_update_node(self, node_id: str, fields: dict):
        self.db.update_node(self.diagram_id, node_id, fields)

    def on_delete_node(self, node_id: str):
        self.db.delete_node(self.diagram_id, node_id)

    def on_reorder_node(self, node_id: str, direction: str):
        updates = reorder_updates(self.get_hierarchical_nodes(), node_id, direction,
                                  same_type=self.kind == DiagramKind.IMPACT)
        if updates:
            self.db.set_node_orders(self.diagram_id, updates)
