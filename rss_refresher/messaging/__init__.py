"""Command envelopes, the update publisher, the dispatcher and bus adapters."""

from .bus import RedisMessageConsumer, RedisMessageProducer
from .dispatcher import Dispatcher
from .envelope import (
    MessageKind,
    RawEnvelope,
    RefreshAllCommand,
    RefreshOneCommand,
    decode_command,
    decode_envelope,
    encode_envelope,
)
from .producer import UpdatePublisher

__all__ = [
    "Dispatcher",
    "MessageKind",
    "RawEnvelope",
    "RedisMessageConsumer",
    "RedisMessageProducer",
    "RefreshAllCommand",
    "RefreshOneCommand",
    "UpdatePublisher",
    "decode_command",
    "decode_envelope",
    "encode_envelope",
]
