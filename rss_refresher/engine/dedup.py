"""Dedup store: feeds, HTTP cache metadata and processed entries in SQLite."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Protocol
from uuid import UUID

from ..entities import NEVER_MODIFIED, Feed, FeedFetchMetadata, ProcessedEntry, as_utc
from ..errors import NotFoundError, PersistenceError
from ..infra.storage import SQLiteManager


class FeedStore(Protocol):
    """Store operations the refresh orchestrator depends on."""

    def get_feed(self, publication_uuid: UUID) -> Feed | None: ...

    def get_fetch_metadata(self, publication_uuid: UUID) -> FeedFetchMetadata | None: ...

    def save_fetch_metadata(self, metadata: FeedFetchMetadata) -> None: ...

    def entry_exists(self, guid: str, publication_uuid: UUID) -> bool: ...

    def save_entry(self, entry: ProcessedEntry) -> None: ...

    def list_all_feeds(self) -> list[Feed]: ...

    def healthcheck(self) -> None: ...


def _to_db_time(value: datetime) -> str:
    return as_utc(value).isoformat()


def _from_db_time(value: str | None) -> datetime:
    if not value:
        return NEVER_MODIFIED
    return as_utc(datetime.fromisoformat(value))


def _feed_from_row(row: sqlite3.Row) -> Feed:
    return Feed(
        publication_uuid=UUID(row["publication_uuid"]),
        url=row["url"],
        language_code=row["language_code"],
    )


class SQLiteFeedStore:
    """Thread-safe feed registry and processed-entry store."""

    def __init__(self, manager: SQLiteManager, db_path: Path) -> None:
        self.manager = manager
        self.db_path = db_path
        self._lock = Lock()
        self._conn = self.manager.connect(db_path)

    # ------------------------------------------------------------------
    # Queries used during refresh
    # ------------------------------------------------------------------
    def get_feed(self, publication_uuid: UUID) -> Feed | None:
        row = self._fetchone(
            "SELECT publication_uuid, url, language_code FROM feeds WHERE publication_uuid = ?",
            (str(publication_uuid),),
        )
        return _feed_from_row(row) if row is not None else None

    def get_fetch_metadata(self, publication_uuid: UUID) -> FeedFetchMetadata | None:
        row = self._fetchone(
            "SELECT publication_uuid, etag, last_modified FROM feeds WHERE publication_uuid = ?",
            (str(publication_uuid),),
        )
        if row is None:
            return None
        return FeedFetchMetadata(
            publication_uuid=UUID(row["publication_uuid"]),
            etag=row["etag"] or "",
            last_modified=_from_db_time(row["last_modified"]),
        )

    def save_fetch_metadata(self, metadata: FeedFetchMetadata) -> None:
        updated = self._execute(
            "UPDATE feeds SET etag = ?, last_modified = ? WHERE publication_uuid = ?",
            (metadata.etag, _to_db_time(metadata.last_modified), str(metadata.publication_uuid)),
        )
        if updated != 1:
            raise PersistenceError(
                f"fetch metadata not saved, feed {metadata.publication_uuid} does not exist"
            )

    def entry_exists(self, guid: str, publication_uuid: UUID) -> bool:
        row = self._fetchone(
            "SELECT 1 FROM processed_entries WHERE guid = ? AND publication_uuid = ?",
            (guid, str(publication_uuid)),
        )
        return row is not None

    def save_entry(self, entry: ProcessedEntry) -> None:
        self._execute(
            """
            INSERT INTO processed_entries (guid, publication_uuid, publication_date)
            VALUES (?, ?, ?)
            ON CONFLICT (guid, publication_uuid) DO UPDATE SET
                publication_date = excluded.publication_date,
                modified_at = strftime('%Y-%m-%dT%H:%M:%SZ', 'now')
            """,
            (entry.guid, str(entry.publication_uuid), _to_db_time(entry.publication_date)),
        )

    def list_all_feeds(self) -> list[Feed]:
        rows = self._fetchall(
            "SELECT publication_uuid, url, language_code FROM feeds ORDER BY created_at, publication_uuid",
            (),
        )
        return [_feed_from_row(row) for row in rows]

    def healthcheck(self) -> None:
        self._fetchone("SELECT count(*) FROM feeds", ())

    # ------------------------------------------------------------------
    # Registration helpers
    # ------------------------------------------------------------------
    def create_feed(self, feed: Feed) -> None:
        self._execute(
            "INSERT INTO feeds (publication_uuid, url, language_code) VALUES (?, ?, ?)",
            (str(feed.publication_uuid), feed.url, feed.language_code),
        )

    def update_feed(self, feed: Feed) -> None:
        updated = self._execute(
            "UPDATE feeds SET url = ?, language_code = ? WHERE publication_uuid = ?",
            (feed.url, feed.language_code, str(feed.publication_uuid)),
        )
        if updated != 1:
            raise NotFoundError(f"feed {feed.publication_uuid} does not exist")

    def delete_feed(self, publication_uuid: UUID) -> None:
        deleted = self._execute(
            "DELETE FROM feeds WHERE publication_uuid = ?", (str(publication_uuid),)
        )
        if deleted != 1:
            raise NotFoundError(f"feed {publication_uuid} does not exist")

    def recent_entries(self, publication_uuid: UUID, limit: int = 20) -> list[ProcessedEntry]:
        rows = self._fetchall(
            """
            SELECT guid, publication_uuid, publication_date FROM processed_entries
            WHERE publication_uuid = ? ORDER BY publication_date DESC LIMIT ?
            """,
            (str(publication_uuid), limit),
        )
        return [
            ProcessedEntry(
                guid=row["guid"],
                publication_uuid=UUID(row["publication_uuid"]),
                publication_date=_from_db_time(row["publication_date"]),
            )
            for row in rows
        ]

    def close(self) -> None:
        with self._lock:
            self.manager.close_all()

    # ------------------------------------------------------------------
    def _fetchone(self, query: str, params: tuple) -> sqlite3.Row | None:
        with self._lock:
            try:
                return self._conn.execute(query, params).fetchone()
            except sqlite3.Error as exc:
                raise PersistenceError(str(exc)) from exc

    def _fetchall(self, query: str, params: tuple) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(query, params).fetchall()
            except sqlite3.Error as exc:
                raise PersistenceError(str(exc)) from exc

    def _execute(self, query: str, params: tuple) -> int:
        with self._lock:
            try:
                with self._conn:
                    cursor = self._conn.execute(query, params)
            except sqlite3.Error as exc:
                raise PersistenceError(str(exc)) from exc
            return cursor.rowcount


__all__ = ["FeedStore", "SQLiteFeedStore"]
