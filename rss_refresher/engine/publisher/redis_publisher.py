"""Redis list item publisher feeding the downstream content pipeline."""

from __future__ import annotations

import json
from datetime import datetime
from uuid import UUID

import redis

from ...errors import PublishError
from .base import ItemPublisher, item_document


class RedisItemPublisher(ItemPublisher):
    """Push new items onto a Redis list consumed by the items service."""

    def __init__(self, client: redis.Redis, topic: str) -> None:
        self.client = client
        self.topic = topic

    @classmethod
    def from_url(cls, url: str, topic: str) -> "RedisItemPublisher":
        return cls(redis.Redis.from_url(url), topic)

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
        document = item_document(
            publication_uuid, title, description, content, url, language_code, published_at
        )
        body = json.dumps(document, ensure_ascii=False).encode("utf-8")
        try:
            self.client.lpush(self.topic, body)
        except redis.RedisError as exc:
            raise PublishError(f"failed publishing item to {self.topic}: {exc}") from exc

    def close(self) -> None:
        self.client.close()


__all__ = ["RedisItemPublisher"]
