"""Shared fixtures: in-memory fakes for Redis, HTTP fetching and downstream publishing."""

from __future__ import annotations

import time
from collections import defaultdict, deque
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Iterable
from uuid import UUID

import pytest

from rss_refresher.config import ConfigLocator, ConfigRepository
from rss_refresher.engine import FetchResult, SQLiteFeedStore
from rss_refresher.engine.publisher import ItemPublisher
from rss_refresher.entities import Feed, FeedEntry
from rss_refresher.errors import PublishError
from rss_refresher.infra import SQLiteManager

FEED_UUID = UUID("8a3c1f0e-5b2d-4c8e-9f10-2b7d4e6a1c33")
OTHER_UUID = UUID("1f0e8a3c-2d5b-8e4c-109f-a1c332b7d4e6")


class FakeRedis:
    """Just enough of ``redis.Redis`` for list-based topics and attempt hashes."""

    def __init__(self) -> None:
        self.lists: dict[str, deque[bytes]] = defaultdict(deque)
        self.hashes: dict[str, dict[str, int]] = defaultdict(dict)
        self.fail_with: Exception | None = None
        self.closed = False
        self._lock = Lock()

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def ping(self) -> bool:
        self._check()
        return True

    def lpush(self, key: str, *values: bytes) -> int:
        self._check()
        for value in values:
            if isinstance(value, str):
                value = value.encode("utf-8")
            with self._lock:
                self.lists[key].appendleft(value)
        return len(self.lists[key])

    def brpop(self, keys: Iterable[str], timeout: int = 0) -> tuple[bytes, bytes] | None:
        self._check()
        with self._lock:
            for key in keys:
                if self.lists[key]:
                    return key.encode("utf-8"), self.lists[key].pop()
        time.sleep(min(timeout, 0.01))
        return None

    def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        self._check()
        self.hashes[key][field] = self.hashes[key].get(field, 0) + amount
        return self.hashes[key][field]

    def hdel(self, key: str, *fields: str) -> int:
        self._check()
        removed = 0
        for field in fields:
            if self.hashes[key].pop(field, None) is not None:
                removed += 1
        return removed

    def close(self) -> None:
        self.closed = True


class FakeFetchClient:
    """Scripted fetch client recording every call."""

    def __init__(self, result: FetchResult | Exception) -> None:
        self.result = result
        self.calls: list[tuple[str, str, datetime]] = []

    def fetch(self, url: str, etag: str, last_modified: datetime) -> FetchResult:
        self.calls.append((url, etag, last_modified))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class RecordingItemPublisher(ItemPublisher):
    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.items: list[dict[str, Any]] = []
        self.fail_for = fail_for or set()
        self.closed = False

    def publish_new_item(
        self,
        publication_uuid: UUID,
        title: str,
        description: str,
        content: str,
        url: str,
        language_code: str,
        published_at: datetime,
    ) -> None:
        if url in self.fail_for:
            raise PublishError(f"downstream rejected {url}")
        self.items.append(
            {
                "publication_uuid": publication_uuid,
                "title": title,
                "description": description,
                "content": content,
                "url": url,
                "language_code": language_code,
                "published_at": published_at,
            }
        )

    def close(self) -> None:
        self.closed = True


class RecordingSender:
    def __init__(self, fail_for: set[UUID] | None = None) -> None:
        self.sent: list[UUID] = []
        self.fail_for = fail_for or set()

    def send_one(self, publication_uuid: UUID) -> None:
        if publication_uuid in self.fail_for:
            raise PublishError("bus unavailable")
        self.sent.append(publication_uuid)


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def sqlite_manager() -> Iterable[SQLiteManager]:
    manager = SQLiteManager(timeout=5)
    yield manager
    manager.close_all()


@pytest.fixture
def feed_store(tmp_path: Path, sqlite_manager: SQLiteManager) -> SQLiteFeedStore:
    return SQLiteFeedStore(sqlite_manager, tmp_path / "feeds.db")


@pytest.fixture
def registered_feed(feed_store: SQLiteFeedStore) -> Feed:
    feed = Feed(publication_uuid=FEED_UUID, url="https://example.com/rss", language_code="en")
    feed_store.create_feed(feed)
    return feed


@pytest.fixture
def make_entry() -> Callable[..., FeedEntry]:
    def _builder(guid: str, **overrides: Any) -> FeedEntry:
        base: dict[str, Any] = {
            "guid": guid,
            "title": f"Title {guid}",
            "description": f"Summary {guid}",
            "content": f"<p>Body {guid}</p>",
            "link": f"https://example.com/{guid}",
            "published": utc(2024, 5, 1, 12, 0, 0),
        }
        base.update(overrides)
        return FeedEntry(**base)

    return _builder


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigRepository:
    monkeypatch.setenv("RSS_REFRESHER_HOME", str(tmp_path))
    monkeypatch.delenv("RSS_REFRESHER_CONFIG", raising=False)
    return ConfigRepository(ConfigLocator(project_root=tmp_path))


__all__ = [
    "FEED_UUID",
    "OTHER_UUID",
    "FakeFetchClient",
    "FakeRedis",
    "RecordingItemPublisher",
    "RecordingSender",
    "utc",
]
