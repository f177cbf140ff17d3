"""Domain records shared by the store, the fetch client and the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID

# Zero value for ``FeedFetchMetadata.last_modified``: the feed was never cached.
NEVER_MODIFIED = datetime(1970, 1, 1, tzinfo=timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(slots=True)
class Feed:
    """A registered feed; owned by the registration side, read-only here."""

    publication_uuid: UUID
    url: str
    language_code: str

    def __str__(self) -> str:
        return f"{self.publication_uuid} ({self.url}, {self.language_code})"


@dataclass(slots=True)
class FeedFetchMetadata:
    """HTTP cache validators remembered between refreshes of one feed."""

    publication_uuid: UUID
    etag: str = ""
    last_modified: datetime = NEVER_MODIFIED

    @property
    def never_cached(self) -> bool:
        return not self.etag and as_utc(self.last_modified) == NEVER_MODIFIED


@dataclass(slots=True)
class ProcessedEntry:
    """An entry already forwarded downstream, unique per (guid, publication_uuid)."""

    guid: str
    publication_uuid: UUID
    publication_date: datetime


@dataclass(slots=True)
class FeedEntry:
    """A parsed feed item as returned by the fetch client."""

    guid: str
    title: str = ""
    description: str = ""
    content: str = ""
    link: str = ""
    published: datetime | None = None
    updated: datetime | None = None

    @property
    def effective_published(self) -> datetime | None:
        """Published time, else updated time, else ``None``."""

        if self.published is not None:
            return self.published
        return self.updated


@dataclass(slots=True)
class RefreshSummary:
    """Counters describing the outcome of a single feed refresh."""

    publication_uuid: UUID
    not_modified: bool = False
    entries: int = 0
    published: int = 0
    duplicates: int = 0
    skipped: int = 0
    failed: int = 0
    failures: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, object]:
        return {
            "feed": str(self.publication_uuid),
            "not_modified": self.not_modified,
            "entries": self.entries,
            "published": self.published,
            "duplicates": self.duplicates,
            "skipped": self.skipped,
            "failed": self.failed,
        }


__all__ = [
    "Feed",
    "FeedEntry",
    "FeedFetchMetadata",
    "NEVER_MODIFIED",
    "ProcessedEntry",
    "RefreshSummary",
    "as_utc",
]
