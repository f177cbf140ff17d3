"""Conditional HTTP retrieval of feeds using ETag / Last-Modified validators."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Any, Dict, Protocol

import feedparser
import httpx
import structlog

from ..config import FetchConfig
from ..entities import FeedEntry, as_utc
from ..errors import FeedParseError, HTTPStatusError, TransportError
from ..logging_conf import get_logger

# Feed caches speak GMT; process-wide, never mutated.
GMT = timezone.utc

HTTP_NOT_MODIFIED = 304


@dataclass(slots=True)
class FetchResult:
    """Outcome of a conditional fetch.

    ``not_modified`` short-circuits the refresh; otherwise ``entries`` holds the
    parsed items in document order and ``etag``/``last_modified`` the validators
    returned by the server. ``last_modified`` is ``None`` when the response did
    not carry a usable header, leaving the caller to keep its previous value.
    """

    url: str
    status_code: int
    not_modified: bool = False
    entries: list[FeedEntry] = field(default_factory=list)
    etag: str = ""
    last_modified: datetime | None = None


class FetchClient(Protocol):
    def fetch(self, url: str, etag: str, last_modified: datetime) -> FetchResult: ...


def http_date(value: datetime) -> str:
    """Render ``value`` as an RFC 1123 date in GMT, e.g. ``Thu, 01 Jan 1970 00:00:00 GMT``."""

    return format_datetime(as_utc(value).astimezone(GMT), usegmt=True)


def parse_http_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    return as_utc(parsed)


def _struct_to_datetime(value: time.struct_time | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime(*value[:6], tzinfo=timezone.utc)
    except (TypeError, ValueError):
        return None


class FeedFetcher:
    """Shared, thread-safe HTTP client for conditional feed retrieval."""

    def __init__(
        self,
        config: FetchConfig | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config or FetchConfig()
        self.logger = logger or get_logger("fetcher")
        self._client = httpx.Client(
            follow_redirects=self.config.follow_redirects,
            timeout=self.config.timeout,
            headers={"User-Agent": self.config.user_agent},
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "FeedFetcher":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def fetch(self, url: str, etag: str, last_modified: datetime) -> FetchResult:
        headers = self.conditional_headers(etag, last_modified)
        self.logger.debug("fetch_request", url=url, headers=headers)
        try:
            response = self._client.request("GET", url, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            self.logger.warning("fetch_transport_error", url=url, error=str(exc))
            raise TransportError(url, str(exc)) from exc

        self.logger.debug("fetch_response", url=url, status=response.status_code)
        if response.status_code == HTTP_NOT_MODIFIED:
            return FetchResult(url=url, status_code=response.status_code, not_modified=True)
        if not response.is_success:
            raise HTTPStatusError(
                response.status_code,
                f"{response.status_code} {response.reason_phrase}".strip(),
                url=url,
            )

        entries = self.parse_entries(response.content, url, response.headers)
        new_etag = response.headers.get("ETag", "")
        new_last_modified = parse_http_date(response.headers.get("Last-Modified"))
        if response.headers.get("Last-Modified") and new_last_modified is None:
            self.logger.debug(
                "last_modified_unparseable", url=url, value=response.headers.get("Last-Modified")
            )
        return FetchResult(
            url=url,
            status_code=response.status_code,
            entries=entries,
            etag=new_etag,
            last_modified=new_last_modified,
        )

    @staticmethod
    def conditional_headers(etag: str, last_modified: datetime) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if etag:
            headers["If-None-Match"] = etag
        headers["If-Modified-Since"] = http_date(last_modified)
        return headers

    def parse_entries(
        self, content: bytes, url: str, response_headers: Any | None = None
    ) -> list[FeedEntry]:
        parsed = feedparser.parse(
            content,
            response_headers=dict(response_headers) if response_headers else None,
        )
        if parsed.get("bozo") and not parsed.entries and not parsed.get("version"):
            raise FeedParseError(f"could not parse feed from {url}: {parsed.get('bozo_exception')}")

        entries: list[FeedEntry] = []
        for raw in parsed.entries:
            entry = self._build_entry(raw)
            if entry is None:
                self.logger.info(
                    "entry_skipped", url=url, reason="missing_guid", title=raw.get("title", "")
                )
                continue
            entries.append(entry)
        self.logger.info("feed_parsed", url=url, entries=len(entries))
        return entries

    @staticmethod
    def _build_entry(raw: Any) -> FeedEntry | None:
        guid = raw.get("id") or raw.get("link")
        if not guid:
            return None
        content = ""
        if raw.get("content"):
            content = raw["content"][0].get("value", "")
        return FeedEntry(
            guid=guid,
            title=raw.get("title", ""),
            description=raw.get("summary", ""),
            content=content,
            link=raw.get("link", ""),
            published=_struct_to_datetime(dict.get(raw, "published_parsed")),
            updated=_struct_to_datetime(dict.get(raw, "updated_parsed")),
        )


__all__ = ["FeedFetcher", "FetchClient", "FetchResult", "GMT", "http_date", "parse_http_date"]
