import json
import os
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from storyreel.errors import NotFoundError

from .base import KeyValueStore

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS meta (
  key TEXT PRIMARY KEY,
  value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS kv (
  key TEXT PRIMARY KEY,
  value_json TEXT NOT NULL,          -- JSON document
  created_at REAL NOT NULL,
  updated_at REAL NOT NULL
);
"""


@dataclass
class SqliteStore(KeyValueStore):
    db_path: Path
    conn: sqlite3.Connection

    @classmethod
    def open(cls, db_path: os.PathLike) -> "SqliteStore":
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(str(path), isolation_level=None, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")

        store = cls(db_path=path, conn=conn)
        store._ensure_schema()
        return store

    def close(self) -> None:
        self.conn.close()

    def _ensure_schema(self) -> None:
        self.conn.executescript(SCHEMA_SQL)
        # Schema versioning for future migrations.
        self.conn.execute("INSERT OR IGNORE INTO meta(key, value) VALUES(?, ?)", ("schema_version", "1"))

    def schema_version(self) -> int:
        row = self.conn.execute("SELECT value FROM meta WHERE key=?", ("schema_version",)).fetchone()
        return int(row["value"]) if row else 0

    def _now(self) -> float:
        return time.time()

    def _j(self, obj: Any) -> str:
        return json.dumps(obj, ensure_ascii=True, separators=(",", ":"), sort_keys=True)

    async def save(self, key: str, value: Any) -> None:
        ts = self._now()
        self.conn.execute(
            """
            INSERT INTO kv(key, value_json, created_at, updated_at)
            VALUES(?, ?, ?, ?)
            ON CONFLICT(key)
            DO UPDATE SET value_json=excluded.value_json, updated_at=excluded.updated_at
            """,
            (key, self._j(value), ts, ts),
        )

    async def load(self, key: str) -> Any:
        row = self.conn.execute("SELECT value_json FROM kv WHERE key=?", (key,)).fetchone()
        if not row:
            raise NotFoundError(f"Key {key} not found")
        return json.loads(row["value_json"])

    async def delete(self, key: str) -> None:
        self.conn.execute("DELETE FROM kv WHERE key=?", (key,))

    async def list(self, prefix: Optional[str] = None) -> List[str]:
        if prefix:
            # substr rather than LIKE: LIKE is case-insensitive and treats _ and % specially.
            cur = self.conn.execute(
                "SELECT key FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key ASC",
                (len(prefix), prefix),
            )
        else:
            cur = self.conn.execute("SELECT key FROM kv ORDER BY key ASC")
        return [r["key"] for r in cur.fetchall()]

    async def clear(self) -> None:
        self.conn.execute("DELETE FROM kv")
