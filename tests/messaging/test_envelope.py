from __future__ import annotations

import json

import pytest

from conftest import FEED_UUID
from rss_refresher.errors import EnvelopeEncodeError, MalformedEnvelope, PayloadDecodeError, UnknownMessageKind
from rss_refresher.messaging.envelope import (
    MessageKind,
    RefreshAllCommand,
    RefreshAllPayload,
    RefreshOneCommand,
    RefreshOnePayload,
    decode_command,
    decode_envelope,
    encode_command,
    encode_envelope,
)


def test_encode_refresh_one_wire_shape() -> None:
    body = encode_envelope(
        MessageKind.REFRESH_ONE,
        RefreshOnePayload(publication_uuid=FEED_UUID),
        {"correlation_id": "abc"},
    )

    assert json.loads(body) == {
        "type": 0,
        "metadata": {"correlation_id": "abc"},
        "Msg": {"publication_uuid": str(FEED_UUID)},
    }


def test_encode_refresh_all_wire_shape() -> None:
    assert json.loads(encode_envelope(MessageKind.REFRESH_ALL, RefreshAllPayload())) == {
        "type": 1,
        "metadata": {},
        "Msg": {},
    }


def test_encode_rejects_unknown_kind() -> None:
    with pytest.raises(EnvelopeEncodeError):
        encode_envelope(7, {})


def test_encode_command_matches_envelope() -> None:
    command = RefreshOneCommand(payload=RefreshOnePayload(publication_uuid=FEED_UUID))
    raw = decode_envelope(encode_command(command))

    assert raw.kind is MessageKind.REFRESH_ONE
    assert decode_command(raw) == command


def test_decode_refresh_one() -> None:
    data = json.dumps(
        {"type": 0, "metadata": {"correlation_id": "abc"}, "Msg": {"publication_uuid": str(FEED_UUID)}}
    )
    raw = decode_envelope(data.encode())
    assert raw.kind is MessageKind.REFRESH_ONE
    assert raw.metadata == {"correlation_id": "abc"}

    command = decode_command(raw)
    assert isinstance(command, RefreshOneCommand)
    assert command.payload.publication_uuid == FEED_UUID


@pytest.mark.parametrize("payload", [{}, None])
def test_decode_refresh_all_accepts_empty_payload(payload) -> None:
    raw = decode_envelope(json.dumps({"type": 1, "metadata": None, "Msg": payload}))
    command = decode_command(raw)

    assert isinstance(command, RefreshAllCommand)
    assert raw.metadata == {}


def test_decode_missing_metadata_defaults_empty() -> None:
    raw = decode_envelope(b'{"type": 1, "Msg": {}}')
    assert raw.metadata == {}


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"not json",
        b"[1, 2, 3]",
        b'{"metadata": {}, "Msg": {}}',
        b'{"type": "refresh", "Msg": {}}',
        b'{"type": 0, "metadata": ["a"], "Msg": {}}',
        b'{"type": true, "Msg": {}}',
        b'{"type": "1", "Msg": {}}',
        b'{"type": 1.0, "Msg": {}}',
    ],
)
def test_decode_malformed_envelopes(data: bytes) -> None:
    with pytest.raises(MalformedEnvelope):
        decode_envelope(data)


def test_decode_unknown_kind() -> None:
    with pytest.raises(UnknownMessageKind) as excinfo:
        decode_envelope(b'{"type": 42, "metadata": {}, "Msg": {}}')
    assert excinfo.value.kind == 42


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"publication_uuid": "not-a-uuid"},
        None,
        "8a3c1f0e-5b2d-4c8e-9f10-2b7d4e6a1c33",
    ],
)
def test_decode_refresh_one_bad_payload(payload) -> None:
    raw = decode_envelope(json.dumps({"type": 0, "metadata": {}, "Msg": payload}))
    with pytest.raises(PayloadDecodeError):
        decode_command(raw)
