"""Command envelope codec.

Envelopes travel as JSON objects of the form::

    {"type": 0, "metadata": {"correlation_id": "..."}, "Msg": {"publication_uuid": "..."}}

Decoding happens in two phases. ``decode_envelope`` validates the shared
outer shape and the kind tag, leaving the payload raw; ``decode_command`` then
validates the payload against the structure of that kind through a
discriminated union, so payload shapes never need to be mutually compatible.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Annotated, Any, Literal, Mapping, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from ..errors import EnvelopeEncodeError, MalformedEnvelope, PayloadDecodeError, UnknownMessageKind


class MessageKind(IntEnum):
    REFRESH_ONE = 0
    REFRESH_ALL = 1


class RefreshOnePayload(BaseModel):
    publication_uuid: UUID


class RefreshAllPayload(BaseModel):
    pass


class _EnvelopeShape(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: int = Field(alias="type", strict=True)
    metadata: dict[str, str] = Field(default_factory=dict)
    payload: Any = Field(default=None, alias="Msg")

    @field_validator("metadata", mode="before")
    @classmethod
    def _null_metadata(cls, value: Any) -> Any:
        return {} if value is None else value


@dataclass(slots=True)
class RawEnvelope:
    """First decode phase: kind known, payload still undecoded."""

    kind: MessageKind
    payload: Any
    metadata: dict[str, str] = field(default_factory=dict)


class RefreshOneCommand(BaseModel):
    kind: Literal[MessageKind.REFRESH_ONE] = MessageKind.REFRESH_ONE
    metadata: dict[str, str] = Field(default_factory=dict)
    payload: RefreshOnePayload


class RefreshAllCommand(BaseModel):
    kind: Literal[MessageKind.REFRESH_ALL] = MessageKind.REFRESH_ALL
    metadata: dict[str, str] = Field(default_factory=dict)
    payload: RefreshAllPayload = Field(default_factory=RefreshAllPayload)

    @field_validator("payload", mode="before")
    @classmethod
    def _empty_payload(cls, value: Any) -> Any:
        return {} if value is None else value


Command = Annotated[Union[RefreshOneCommand, RefreshAllCommand], Field(discriminator="kind")]

_COMMAND_ADAPTER: TypeAdapter[RefreshOneCommand | RefreshAllCommand] = TypeAdapter(Command)


def encode_envelope(
    kind: MessageKind | int,
    payload: BaseModel | Mapping[str, Any] | None,
    metadata: Mapping[str, str] | None = None,
) -> bytes:
    """Serialise a command; raise ``EnvelopeEncodeError`` without partial output."""

    try:
        kind = MessageKind(kind)
        body = payload.model_dump(mode="json") if isinstance(payload, BaseModel) else payload
        envelope = _EnvelopeShape(kind=int(kind), metadata=dict(metadata or {}), payload=body)
        return envelope.model_dump_json(by_alias=True).encode("utf-8")
    except (ValueError, TypeError) as exc:
        raise EnvelopeEncodeError(f"cannot encode {kind!r} envelope: {exc}") from exc


def encode_command(command: RefreshOneCommand | RefreshAllCommand) -> bytes:
    return encode_envelope(command.kind, command.payload, command.metadata)


def decode_envelope(data: bytes | str) -> RawEnvelope:
    """First phase: parse the outer shape and kind tag."""

    try:
        shape = _EnvelopeShape.model_validate_json(data)
    except ValidationError as exc:
        raise MalformedEnvelope(f"cannot decode message envelope: {exc}") from exc
    try:
        kind = MessageKind(shape.kind)
    except ValueError:
        raise UnknownMessageKind(shape.kind) from None
    return RawEnvelope(kind=kind, payload=shape.payload, metadata=shape.metadata)


def decode_command(raw: RawEnvelope) -> RefreshOneCommand | RefreshAllCommand:
    """Second phase: decode the raw payload into its kind-specific structure."""

    try:
        return _COMMAND_ADAPTER.validate_python(
            {"kind": raw.kind, "metadata": raw.metadata, "payload": raw.payload}
        )
    except ValidationError as exc:
        raise PayloadDecodeError(f"cannot decode {raw.kind.name} payload: {exc}") from exc


__all__ = [
    "Command",
    "MessageKind",
    "RawEnvelope",
    "RefreshAllCommand",
    "RefreshAllPayload",
    "RefreshOneCommand",
    "RefreshOnePayload",
    "decode_command",
    "decode_envelope",
    "encode_command",
    "encode_envelope",
]
