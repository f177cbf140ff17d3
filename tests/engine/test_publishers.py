from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import redis

from conftest import FEED_UUID, FakeRedis, utc
from rss_refresher.engine.publisher import FileItemPublisher, RedisItemPublisher, item_document
from rss_refresher.errors import PublishError


def test_item_document_normalises_publication_date() -> None:
    local = datetime(2024, 5, 1, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))
    document = item_document(FEED_UUID, "T", "D", "C", "https://example.com/a", "en", local)

    assert document == {
        "publication_uuid": str(FEED_UUID),
        "title": "T",
        "description": "D",
        "content": "C",
        "url": "https://example.com/a",
        "language_code": "en",
        "published_date": "2024-05-01T12:00:00+00:00",
    }


def test_file_publisher_appends_json_lines(tmp_path: Path) -> None:
    path = tmp_path / "out" / "items.jsonl"
    publisher = FileItemPublisher(path)
    publisher.publish_new_item(FEED_UUID, "One", "", "", "https://example.com/1", "en", utc(2024, 5, 1, 0, 0, 0))
    publisher.publish_new_item(FEED_UUID, "Två", "", "", "https://example.com/2", "sv", utc(2024, 5, 2, 0, 0, 0))
    publisher.close()

    lines = path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["title"] for line in lines] == ["One", "Två"]


def test_file_publisher_after_close_raises(tmp_path: Path) -> None:
    publisher = FileItemPublisher(tmp_path / "items.jsonl")
    publisher.close()

    with pytest.raises(PublishError):
        publisher.publish_new_item(FEED_UUID, "T", "", "", "https://example.com/1", "en", utc(2024, 5, 1, 0, 0, 0))


def test_redis_publisher_pushes_documents(fake_redis: FakeRedis) -> None:
    publisher = RedisItemPublisher(fake_redis, "items")
    publisher.publish_new_item(FEED_UUID, "T", "D", "C", "https://example.com/1", "en", utc(2024, 5, 1, 0, 0, 0))

    body = fake_redis.lists["items"][0]
    assert json.loads(body)["url"] == "https://example.com/1"

    publisher.close()
    assert fake_redis.closed


def test_redis_publisher_wraps_broker_errors(fake_redis: FakeRedis) -> None:
    fake_redis.fail_with = redis.ConnectionError("connection refused")
    publisher = RedisItemPublisher(fake_redis, "items")

    with pytest.raises(PublishError, match="items"):
        publisher.publish_new_item(FEED_UUID, "T", "", "", "https://example.com/1", "en", utc(2024, 5, 1, 0, 0, 0))
