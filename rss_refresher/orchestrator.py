"""Feed refresh orchestrator wiring fetching, deduplication and downstream publishing."""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

import structlog

from .engine import FeedStore, FetchClient, FetchResult, ItemPublisher
from .entities import Feed, FeedEntry, FeedFetchMetadata, ProcessedEntry, RefreshSummary, as_utc
from .errors import (
    FeedNotRegisteredError,
    FetchError,
    NoFeedsRegisteredError,
    PersistenceError,
    RefresherError,
)
from .infra import KeyedLock
from .logging_conf import get_logger


class RefreshCommandSender(Protocol):
    def send_one(self, publication_uuid: UUID) -> None: ...


class Orchestrator:
    """Central coordinator for single-feed refreshes and refresh-all fan-out.

    ``refresh_one`` walks Loading → Fetching → (not modified | Diffing →
    Forwarding → Persisting) → Done. Precondition and fetch failures abort the
    refresh; failures tied to a single entry are logged and skipped so the rest
    of the feed still goes through.
    """

    def __init__(
        self,
        store: FeedStore,
        fetcher: FetchClient,
        item_publisher: ItemPublisher,
        update_sender: RefreshCommandSender,
        locks: KeyedLock | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.item_publisher = item_publisher
        self.update_sender = update_sender
        self.locks = locks or KeyedLock()
        self.logger = logger or get_logger("orchestrator")

    # ------------------------------------------------------------------
    def refresh_one(self, publication_uuid: UUID) -> RefreshSummary:
        log = self.logger.bind(feed=str(publication_uuid))
        with self.locks.hold(publication_uuid):
            feed, metadata = self._load(publication_uuid)
            log.debug("feed_loaded", url=feed.url, etag=metadata.etag)

            try:
                result = self.fetcher.fetch(feed.url, metadata.etag, metadata.last_modified)
            except FetchError as exc:
                log.error("feed_fetch_failed", url=feed.url, error=str(exc))
                raise
            if result.not_modified:
                log.info("feed_not_modified", url=feed.url)
                return RefreshSummary(publication_uuid=publication_uuid, not_modified=True)

            log.info("feed_fetched", url=feed.url, entries=len(result.entries))
            summary = RefreshSummary(publication_uuid=publication_uuid, entries=len(result.entries))
            for entry in result.entries:
                self._process_entry(feed, entry, summary, log)

            self._persist_metadata(metadata, result, log)

        log.info("feed_refreshed", **summary.as_dict())
        return summary

    def refresh_all(self) -> int:
        """Fan out one RefreshOne command per registered feed; return how many were sent."""

        feeds = self.store.list_all_feeds()
        if not feeds:
            self.logger.error("refresh_all_no_feeds")
            raise NoFeedsRegisteredError()
        self.logger.debug("refresh_all_started", feeds=len(feeds))
        sent = 0
        for feed in feeds:
            try:
                self.update_sender.send_one(feed.publication_uuid)
            except RefresherError as exc:
                self.logger.error(
                    "refresh_one_publish_failed", feed=str(feed.publication_uuid), error=str(exc)
                )
                continue
            sent += 1
        self.logger.info("refresh_all_sent", feeds=len(feeds), sent=sent)
        return sent

    # ------------------------------------------------------------------
    def _load(self, publication_uuid: UUID) -> tuple[Feed, FeedFetchMetadata]:
        feed = self.store.get_feed(publication_uuid)
        if feed is None:
            raise FeedNotRegisteredError(publication_uuid)
        metadata = self.store.get_fetch_metadata(publication_uuid)
        if metadata is None:
            raise FeedNotRegisteredError(publication_uuid, what="fetch metadata")
        return feed, metadata

    def _process_entry(
        self,
        feed: Feed,
        entry: FeedEntry,
        summary: RefreshSummary,
        log: structlog.BoundLogger,
    ) -> None:
        published = entry.effective_published
        if published is None:
            log.warning("entry_skipped", guid=entry.guid, reason="missing_timestamp")
            summary.skipped += 1
            return

        try:
            exists = self.store.entry_exists(entry.guid, feed.publication_uuid)
        except PersistenceError as exc:
            log.error("entry_lookup_failed", guid=entry.guid, error=str(exc))
            summary.failed += 1
            summary.failures.append(entry.guid)
            return
        if exists:
            log.debug("entry_duplicate", guid=entry.guid)
            summary.duplicates += 1
            return

        try:
            self.item_publisher.publish_new_item(
                feed.publication_uuid,
                entry.title,
                entry.description,
                entry.content,
                entry.link,
                feed.language_code,
                as_utc(published),
            )
        except Exception as exc:  # noqa: BLE001
            # Not recorded as processed, so the next refresh retries it.
            log.error("entry_publish_failed", guid=entry.guid, error=str(exc))
            summary.failed += 1
            summary.failures.append(entry.guid)
            return
        summary.published += 1
        log.info("entry_published", guid=entry.guid)

        try:
            self.store.save_entry(
                ProcessedEntry(
                    guid=entry.guid,
                    publication_uuid=feed.publication_uuid,
                    publication_date=as_utc(published),
                )
            )
        except PersistenceError as exc:
            log.error("entry_save_failed", guid=entry.guid, error=str(exc))

    def _persist_metadata(
        self,
        metadata: FeedFetchMetadata,
        result: FetchResult,
        log: structlog.BoundLogger,
    ) -> None:
        updated = FeedFetchMetadata(
            publication_uuid=metadata.publication_uuid,
            etag=result.etag,
            last_modified=(
                result.last_modified if result.last_modified is not None else metadata.last_modified
            ),
        )
        try:
            self.store.save_fetch_metadata(updated)
        except PersistenceError as exc:
            log.error("fetch_metadata_save_failed", error=str(exc))
            raise
        log.debug("fetch_metadata_saved", etag=updated.etag)


__all__ = ["Orchestrator", "RefreshCommandSender"]
