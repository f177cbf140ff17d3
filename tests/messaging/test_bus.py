from __future__ import annotations

import hashlib
import time

import pytest
import redis

from conftest import FakeRedis
from rss_refresher.config import BusConfig
from rss_refresher.messaging import RedisMessageConsumer


class RecordingProcessor:
    def __init__(self, failures: int = 0) -> None:
        self.bodies: list[bytes] = []
        self.failures = failures

    def process(self, data: bytes) -> None:
        self.bodies.append(data)
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError("handler failed")


def _consumer(fake_redis: FakeRedis, processor, **overrides) -> RedisMessageConsumer:
    config = BusConfig(topic="refresh", **overrides)
    return RedisMessageConsumer(fake_redis, processor, config)


def test_empty_body_is_acknowledged_without_processing(fake_redis: FakeRedis) -> None:
    processor = RecordingProcessor()
    consumer = _consumer(fake_redis, processor)

    assert consumer.handle_message(b"") is True
    assert processor.bodies == []


def test_success_clears_attempts(fake_redis: FakeRedis) -> None:
    processor = RecordingProcessor()
    consumer = _consumer(fake_redis, processor)
    digest = hashlib.sha1(b"payload").hexdigest()
    fake_redis.hashes[consumer.attempts_key][digest] = 2

    assert consumer.handle_message(b"payload") is True
    assert digest not in fake_redis.hashes[consumer.attempts_key]


def test_failure_requeues_until_max_attempts(fake_redis: FakeRedis) -> None:
    processor = RecordingProcessor(failures=10)
    consumer = _consumer(fake_redis, processor, max_attempts=3)

    assert consumer.handle_message(b"payload") is False
    assert list(fake_redis.lists["refresh"]) == [b"payload"]

    fake_redis.lists["refresh"].clear()
    assert consumer.handle_message(b"payload") is False
    assert list(fake_redis.lists["refresh"]) == [b"payload"]

    fake_redis.lists["refresh"].clear()
    assert consumer.handle_message(b"payload") is False
    assert list(fake_redis.lists["refresh"]) == []
    assert fake_redis.hashes[consumer.attempts_key] == {}
    assert len(processor.bodies) == 3


def test_requeue_survives_broker_errors(fake_redis: FakeRedis) -> None:
    consumer = _consumer(fake_redis, RecordingProcessor(failures=1))
    fake_redis.fail_with = redis.ConnectionError("down")

    assert consumer.handle_message(b"payload") is False


def test_worker_pool_drains_topic(fake_redis: FakeRedis) -> None:
    processor = RecordingProcessor()
    consumer = _consumer(fake_redis, processor, workers=2)
    for index in range(5):
        fake_redis.lpush("refresh", f"message-{index}".encode())

    consumer.start()
    deadline = time.monotonic() + 5
    while len(processor.bodies) < 5 and time.monotonic() < deadline:
        time.sleep(0.01)
    consumer.stop()

    assert sorted(processor.bodies) == sorted(f"message-{index}".encode() for index in range(5))
    assert not consumer.running


def test_worker_survives_unexpected_handler_error(fake_redis: FakeRedis, monkeypatch: pytest.MonkeyPatch) -> None:
    processor = RecordingProcessor()
    consumer = _consumer(fake_redis, processor, workers=1)
    handle = consumer.handle_message

    def crash_on_first(body: bytes) -> bool:
        if body == b"message-0":
            raise ValueError("unexpected")
        return handle(body)

    monkeypatch.setattr(consumer, "handle_message", crash_on_first)
    for index in range(3):
        fake_redis.lpush("refresh", f"message-{index}".encode())

    consumer.start()
    deadline = time.monotonic() + 5
    while len(processor.bodies) < 2 and time.monotonic() < deadline:
        time.sleep(0.01)
    consumer.stop()

    assert sorted(processor.bodies) == [b"message-1", b"message-2"]


def test_start_fails_when_broker_unreachable(fake_redis: FakeRedis) -> None:
    fake_redis.fail_with = redis.ConnectionError("down")
    consumer = _consumer(fake_redis, RecordingProcessor())

    with pytest.raises(redis.ConnectionError):
        consumer.start()
    assert not consumer.running
