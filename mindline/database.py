"""SQLite document store for Mindline.

The store keeps one row per map holding its outline text, connector
style, layout mode and view settings, plus a key/value table of app
preferences. It knows nothing about nodes.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, List, Optional

from mindline.document import ConnectorStyle, LayoutMode
from mindline.outline import replace_root_text


logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS maps (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        outline_text TEXT NOT NULL DEFAULT '',
        created_at TEXT NOT NULL,
        modified_at TEXT NOT NULL,
        connector_style TEXT NOT NULL DEFAULT 'straight',
        layout_mode TEXT NOT NULL DEFAULT 'bidirectional',
        settings JSON
    );

    CREATE TABLE IF NOT EXISTS settings (
        key TEXT PRIMARY KEY,
        value JSON
    );

    CREATE INDEX IF NOT EXISTS idx_maps_modified_at ON maps(modified_at);
"""


def get_data_dir() -> Path:
    """``~/.local/share/mindline``, created together with ``exports/``."""
    data_dir = Path.home() / ".local" / "share" / "mindline"
    (data_dir / "exports").mkdir(parents=True, exist_ok=True)
    return data_dir


def get_db_path() -> Path:
    return get_data_dir() / "mindline.db"


def _timestamp() -> str:
    return datetime.now().isoformat()


@dataclass
class MapSettings:
    """Per-map view state restored when the map is opened."""
    zoom_level: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    show_grid: bool = True

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, data: Optional[str]) -> "MapSettings":
        """Parse stored settings; unknown keys are dropped, bad data gives defaults."""
        if not data:
            return cls()
        try:
            values = json.loads(data)
            known = {f.name for f in fields(cls)}
            return cls(**{k: v for k, v in values.items() if k in known})
        except (json.JSONDecodeError, TypeError, AttributeError):
            logger.warning("Ignoring unreadable map settings %r", data)
            return cls()


@dataclass
class MindMap:
    """A stored mindmap record.

    The tree itself lives in ``outline_text``.
    """
    id: int = 0
    name: str = "Untitled Map"
    outline_text: str = ""
    created_at: str = ""
    modified_at: str = ""
    connector_style: ConnectorStyle = ConnectorStyle.STRAIGHT
    layout_mode: LayoutMode = LayoutMode.BIDIRECTIONAL
    settings: MapSettings = field(default_factory=MapSettings)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "MindMap":
        return cls(
            id=row["id"],
            name=row["name"],
            outline_text=row["outline_text"],
            created_at=row["created_at"],
            modified_at=row["modified_at"],
            connector_style=ConnectorStyle.parse(row["connector_style"]),
            layout_mode=LayoutMode.parse(row["layout_mode"]),
            settings=MapSettings.from_json(row["settings"]),
        )


class Database:
    """Database manager for Mindline.

    The connection opens lazily. ``sqlite3.Error`` propagates to callers;
    the window reports it to the user.
    """

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or get_db_path()
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode = WAL")
        return self._conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Cursor]:
        """Cursor whose statements commit together, or roll back on error."""
        with self.conn:
            yield self.conn.cursor()

    def _fetch_one(self, query: str, params=()) -> Optional[sqlite3.Row]:
        return self.conn.execute(query, params).fetchone()

    def _init_db(self):
        self.conn.executescript(_SCHEMA)
        version = self._fetch_one("PRAGMA user_version")[0]
        if version < SCHEMA_VERSION:
            with self._transaction() as cursor:
                cursor.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
            logger.debug("Initialised store schema v%d at %s", SCHEMA_VERSION, self.db_path)

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # ==================== Map Operations ====================

    def create_map(self, name: str, outline_text: str,
                   connector_style: ConnectorStyle = ConnectorStyle.STRAIGHT,
                   layout_mode: LayoutMode = LayoutMode.BIDIRECTIONAL,
                   settings: Optional[MapSettings] = None) -> MindMap:
        """Insert a new map record and return it."""
        mind_map = MindMap(
            name=name,
            outline_text=outline_text,
            created_at=_timestamp(),
            connector_style=connector_style,
            layout_mode=layout_mode,
            settings=settings or MapSettings(),
        )
        mind_map.modified_at = mind_map.created_at

        with self._transaction() as cursor:
            cursor.execute(
                """INSERT INTO maps (name, outline_text, created_at, modified_at,
                                     connector_style, layout_mode, settings)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (mind_map.name, mind_map.outline_text, mind_map.created_at,
                 mind_map.modified_at, connector_style.value, layout_mode.value,
                 mind_map.settings.to_json()),
            )
            mind_map.id = cursor.lastrowid

        logger.info("Created map %d '%s'", mind_map.id, name)
        return mind_map

    def get_map(self, map_id: int) -> Optional[MindMap]:
        row = self._fetch_one("SELECT * FROM maps WHERE id = ?", (map_id,))
        return MindMap.from_row(row) if row else None

    def get_all_maps(self) -> List[MindMap]:
        """All maps, most recently modified first."""
        rows = self.conn.execute("SELECT * FROM maps ORDER BY modified_at DESC, id DESC")
        return [MindMap.from_row(row) for row in rows]

    def save_map(self, mind_map: MindMap) -> MindMap:
        """Write a map record back; the last write wins.

        ``created_at`` is preserved and ``modified_at`` bumped.
        """
        mind_map.modified_at = _timestamp()
        with self._transaction() as cursor:
            cursor.execute(
                """UPDATE maps
                      SET name = ?, outline_text = ?, modified_at = ?,
                          connector_style = ?, layout_mode = ?, settings = ?
                    WHERE id = ?""",
                (mind_map.name, mind_map.outline_text, mind_map.modified_at,
                 mind_map.connector_style.value, mind_map.layout_mode.value,
                 mind_map.settings.to_json(), mind_map.id),
            )
        return mind_map

    def rename_map(self, map_id: int, new_name: str) -> Optional[MindMap]:
        """Rename a map; the root line of its outline follows the name."""
        new_name = new_name.strip()
        mind_map = self.get_map(map_id) if new_name else None
        if mind_map is None:
            return None

        mind_map.name = new_name
        mind_map.outline_text = replace_root_text(mind_map.outline_text, new_name)
        return self.save_map(mind_map)

    def delete_map(self, map_id: int):
        with self._transaction() as cursor:
            cursor.execute("DELETE FROM maps WHERE id = ?", (map_id,))
        logger.info("Deleted map %d", map_id)

    def duplicate_map(self, map_id: int, new_name: str) -> Optional[MindMap]:
        """Copy a map under a new name, root topic included."""
        source = self.get_map(map_id)
        if source is None:
            return None

        return self.create_map(
            new_name,
            replace_root_text(source.outline_text, new_name),
            connector_style=source.connector_style,
            layout_mode=source.layout_mode,
            settings=MapSettings(**asdict(source.settings)),
        )

    # ==================== Settings Operations ====================

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Read a JSON-encoded app setting, or ``default`` when unset."""
        row = self._fetch_one("SELECT value FROM settings WHERE key = ?", (key,))
        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            return default

    def set_setting(self, key: str, value: Any):
        with self._transaction() as cursor:
            cursor.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                (key, json.dumps(value)),
            )
