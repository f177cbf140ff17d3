"""Downstream item publisher Service Provider Interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any
from uuid import UUID

from ...entities import as_utc


def item_document(
    publication_uuid: UUID,
    title: str,
    description: str,
    content: str,
    url: str,
    language_code: str,
    published_at: datetime,
) -> dict[str, Any]:
    """Build the JSON document describing a new item for the content pipeline."""

    return {
        "publication_uuid": str(publication_uuid),
        "title": title,
        "description": description,
        "content": content,
        "url": url,
        "language_code": language_code,
        "published_date": as_utc(published_at).isoformat(),
    }


class ItemPublisher(ABC):
    """Uniform contract for forwarding new feed entries downstream."""

    @abstractmethod
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
        """Forward a single new item; raise ``PublishError`` on failure."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""


__all__ = ["ItemPublisher", "item_document"]
