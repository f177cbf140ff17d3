"""JSON-lines item publisher for local runs without a broker."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from threading import Lock
from uuid import UUID

from ...errors import PublishError
from .base import ItemPublisher, item_document


class FileItemPublisher(ItemPublisher):
    """Append each new item as one JSON document per line."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.path.open("a", encoding="utf-8")
        self._lock = Lock()

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
        with self._lock:
            try:
                json.dump(document, self._file, ensure_ascii=False)
                self._file.write("\n")
                self._file.flush()
            except (OSError, ValueError) as exc:
                raise PublishError(f"failed writing item to {self.path}: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            self._file.close()


__all__ = ["FileItemPublisher"]
