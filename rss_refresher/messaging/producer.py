"""Update publisher: emits refresh commands onto the command bus."""

from __future__ import annotations

from typing import Protocol
from uuid import UUID, uuid4

import structlog

from ..errors import PublishError
from ..logging_conf import get_logger
from .envelope import MessageKind, RefreshAllPayload, RefreshOnePayload, encode_envelope

CORRELATION_KEY = "correlation_id"


class MessageProducer(Protocol):
    """Bus-send primitive."""

    def publish(self, body: bytes) -> None: ...


def propagation_metadata() -> dict[str, str]:
    """Carry the caller's correlation id forward, or start a new one."""

    context = structlog.contextvars.get_contextvars()
    correlation_id = context.get(CORRELATION_KEY) or uuid4().hex
    return {CORRELATION_KEY: str(correlation_id)}


class UpdatePublisher:
    """Build, encode and send RefreshOne / RefreshAll commands."""

    def __init__(
        self,
        producer: MessageProducer,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.producer = producer
        self.logger = logger or get_logger("producer")

    def send_one(self, publication_uuid: UUID) -> None:
        self._send(MessageKind.REFRESH_ONE, RefreshOnePayload(publication_uuid=publication_uuid))
        self.logger.debug("sent_refresh_one", feed=str(publication_uuid))

    def send_all(self) -> None:
        self._send(MessageKind.REFRESH_ALL, RefreshAllPayload())
        self.logger.info("sent_refresh_all")

    def _send(self, kind: MessageKind, payload: RefreshOnePayload | RefreshAllPayload) -> None:
        # Encoding errors surface here, before anything reaches the bus.
        body = encode_envelope(kind, payload, propagation_metadata())
        try:
            self.producer.publish(body)
        except PublishError:
            raise
        except Exception as exc:  # noqa: BLE001
            self.logger.error("command_publish_failed", kind=kind.name, error=str(exc))
            raise PublishError(f"failed to publish {kind.name} command: {exc}") from exc


__all__ = ["CORRELATION_KEY", "MessageProducer", "UpdatePublisher", "propagation_metadata"]
