"""Exception hierarchy raised across fetching, storage and messaging."""

from __future__ import annotations

from uuid import UUID


class RefresherError(Exception):
    """Base class for all rss_refresher failures."""


class NotFoundError(RefresherError):
    """A record required by an operation does not exist."""


class FeedNotRegisteredError(NotFoundError):
    """Feed or its fetch metadata is missing from the store."""

    def __init__(self, publication_uuid: UUID, what: str = "feed") -> None:
        self.publication_uuid = publication_uuid
        self.what = what
        super().__init__(f"{what} is not registered for publication {publication_uuid}")


class NoFeedsRegisteredError(RefresherError):
    """Refresh-all found an empty feed registry."""

    def __init__(self) -> None:
        super().__init__("no feeds registered, empty set returned from store")


class FetchError(RefresherError):
    """Base class for feed retrieval failures."""


class TransportError(FetchError):
    """Network level failure talking to the feed endpoint."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"transport failure fetching {url}: {reason}")


class HTTPStatusError(FetchError):
    """Feed endpoint answered with a status other than 2xx or 304."""

    def __init__(self, code: int, status: str, url: str = "") -> None:
        self.code = code
        self.status = status
        self.url = url
        super().__init__(f"http error {status} fetching {url}".rstrip())


class FeedParseError(FetchError):
    """Response body could not be parsed as a feed."""


class DecodeError(RefresherError):
    """Base class for message decoding failures."""


class MalformedEnvelope(DecodeError):
    """Outer envelope shape or kind tag could not be parsed."""


class PayloadDecodeError(DecodeError):
    """Envelope payload does not match the structure of its kind."""


class UnknownMessageKind(RefresherError):
    """Envelope carried a kind tag this worker does not route."""

    def __init__(self, kind: object) -> None:
        self.kind = kind
        super().__init__(f"undefined message type: {kind!r}")


class EnvelopeEncodeError(RefresherError):
    """Command could not be serialised; nothing was sent."""


class PersistenceError(RefresherError):
    """A store operation failed."""


class PublishError(RefresherError):
    """Handing a message to the bus or the downstream publisher failed."""


__all__ = [
    "DecodeError",
    "EnvelopeEncodeError",
    "FeedNotRegisteredError",
    "FeedParseError",
    "FetchError",
    "HTTPStatusError",
    "MalformedEnvelope",
    "NoFeedsRegisteredError",
    "NotFoundError",
    "PayloadDecodeError",
    "PersistenceError",
    "PublishError",
    "RefresherError",
    "TransportError",
    "UnknownMessageKind",
]
