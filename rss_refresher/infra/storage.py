"""SQLite connection management and schema for feeds and processed entries."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from threading import Lock
from typing import Dict

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS feeds (
        publication_uuid TEXT PRIMARY KEY,
        url TEXT NOT NULL,
        language_code TEXT NOT NULL CHECK (length(language_code) = 2),
        etag TEXT,
        last_modified TEXT,
        created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
        modified_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS processed_entries (
        guid TEXT NOT NULL,
        publication_uuid TEXT NOT NULL REFERENCES feeds(publication_uuid) ON DELETE CASCADE,
        publication_date TEXT NOT NULL,
        created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
        modified_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
        UNIQUE (guid, publication_uuid)
    )
    """,
    """
    CREATE TRIGGER IF NOT EXISTS feeds_set_modified AFTER UPDATE ON feeds
    FOR EACH ROW WHEN NEW.modified_at = OLD.modified_at
    BEGIN
        UPDATE feeds SET modified_at = strftime('%Y-%m-%dT%H:%M:%SZ', 'now')
        WHERE publication_uuid = NEW.publication_uuid;
    END
    """,
)


class SQLiteManager:
    """Manage SQLite connections with basic schema guarantees."""

    def __init__(self, timeout: float = 60.0) -> None:
        self.timeout = timeout
        self._connections: Dict[Path, sqlite3.Connection] = {}
        self._lock = Lock()

    def connect(self, path: Path) -> sqlite3.Connection:
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            if path not in self._connections:
                conn = sqlite3.connect(path, timeout=self.timeout, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA foreign_keys = ON")
                self._connections[path] = conn
                self._ensure_schema(conn)
            return self._connections[path]

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        for statement in SCHEMA:
            conn.execute(statement)
        conn.commit()

    def close_all(self) -> None:
        with self._lock:
            for conn in self._connections.values():
                conn.close()
            self._connections.clear()


__all__ = ["SQLiteManager"]
