"""Routes decoded command envelopes to the refresh orchestrator."""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

import structlog

from ..errors import DecodeError, UnknownMessageKind
from ..logging_conf import get_logger
from .envelope import RefreshAllCommand, RefreshOneCommand, decode_command, decode_envelope
from .producer import CORRELATION_KEY


class RefreshHandler(Protocol):
    def refresh_one(self, publication_uuid: UUID) -> object: ...

    def refresh_all(self) -> object: ...


class Dispatcher:
    """Message processor invoked once per delivered bus message."""

    def __init__(
        self,
        orchestrator: RefreshHandler,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.logger = logger or get_logger("dispatcher")

    def process(self, data: bytes) -> None:
        """Decode ``data`` and run the matching refresh; failures propagate to the consumer."""

        try:
            raw = decode_envelope(data)
        except UnknownMessageKind as exc:
            self.logger.error("unknown_message_kind", kind=exc.kind)
            raise
        except DecodeError as exc:
            self.logger.error("envelope_decode_failed", error=str(exc))
            raise

        correlation_id = raw.metadata.get(CORRELATION_KEY)
        if correlation_id is None:
            self.logger.debug("no_correlation_metadata", kind=raw.kind.name)
        with structlog.contextvars.bound_contextvars(
            **({CORRELATION_KEY: correlation_id} if correlation_id else {})
        ):
            try:
                command = decode_command(raw)
            except DecodeError as exc:
                self.logger.error("payload_decode_failed", kind=raw.kind.name, error=str(exc))
                raise

            if isinstance(command, RefreshOneCommand):
                self.orchestrator.refresh_one(command.payload.publication_uuid)
            elif isinstance(command, RefreshAllCommand):
                self.orchestrator.refresh_all()
            else:  # pragma: no cover - the union is closed
                raise UnknownMessageKind(raw.kind)


__all__ = ["Dispatcher", "RefreshHandler"]
