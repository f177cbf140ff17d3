"""Redis list adapters for the refresh command topic."""

from __future__ import annotations

import hashlib
from concurrent.futures import Future, ThreadPoolExecutor
from threading import Event
from typing import Protocol

import redis
import structlog

from ..config import BusConfig
from ..errors import PublishError
from ..logging_conf import get_logger


class MessageProcessor(Protocol):
    def process(self, data: bytes) -> None: ...


def connect(config: BusConfig) -> redis.Redis:
    return redis.Redis.from_url(config.redis_url)


class RedisMessageProducer:
    """Publish raw command bodies onto the topic list."""

    def __init__(self, client: redis.Redis, topic: str) -> None:
        self.client = client
        self.topic = topic

    def publish(self, body: bytes) -> None:
        try:
            self.client.lpush(self.topic, body)
        except redis.RedisError as exc:
            raise PublishError(f"failed to publish to {self.topic}: {exc}") from exc


class RedisMessageConsumer:
    """Run ``workers`` concurrent handlers pulling from the topic list.

    A processor failure requeues the body at the tail of the topic until it has
    failed ``max_attempts`` times, after which it is dropped. Attempt counts
    live in a Redis hash keyed by the body digest.
    """

    def __init__(
        self,
        client: redis.Redis,
        processor: MessageProcessor,
        config: BusConfig,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.client = client
        self.processor = processor
        self.config = config
        self.logger = logger or get_logger("consumer")
        self._stop = Event()
        self._executor: ThreadPoolExecutor | None = None
        self._futures: list[Future[None]] = []

    @property
    def attempts_key(self) -> str:
        return f"{self.config.topic}:attempts"

    @property
    def running(self) -> bool:
        return self._executor is not None and not self._stop.is_set()

    def start(self) -> None:
        if self._executor is not None:
            return
        self.client.ping()
        self._stop.clear()
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.workers, thread_name_prefix="refresher"
        )
        self._futures = [
            self._executor.submit(self._run_loop, worker_id)
            for worker_id in range(self.config.workers)
        ]
        self.logger.info("consumer_started", topic=self.config.topic, workers=self.config.workers)

    def stop(self, wait: bool = True) -> None:
        self._stop.set()
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
            self._futures = []
        self.logger.info("consumer_stopped", topic=self.config.topic)

    def _run_loop(self, worker_id: int) -> None:
        log = self.logger.bind(worker=worker_id)
        while not self._stop.is_set():
            try:
                item = self.client.brpop([self.config.topic], timeout=self.config.poll_timeout)
            except redis.RedisError as exc:
                log.warning("consumer_poll_failed", error=str(exc))
                self._stop.wait(self.config.poll_timeout)
                continue
            if item is None:
                continue
            _, body = item
            try:
                self.handle_message(body)
            except Exception:  # noqa: BLE001
                log.exception("consumer_handler_crashed")

    def handle_message(self, body: bytes) -> bool:
        """Process one delivery; return ``True`` when it is finished with."""

        if not body:
            return True
        self.logger.debug("message_received", size=len(body))
        try:
            self.processor.process(body)
        except Exception as exc:  # noqa: BLE001
            self._requeue_or_drop(body, exc)
            return False
        self._clear_attempts(body)
        return True

    def _requeue_or_drop(self, body: bytes, error: Exception) -> None:
        digest = hashlib.sha1(body).hexdigest()
        try:
            attempts = int(self.client.hincrby(self.attempts_key, digest, 1))
            if attempts < self.config.max_attempts:
                self.client.lpush(self.config.topic, body)
                self.logger.error(
                    "message_requeued",
                    attempts=attempts,
                    max_attempts=self.config.max_attempts,
                    error=str(error),
                    error_type=type(error).__name__,
                )
                return
            self.client.hdel(self.attempts_key, digest)
        except redis.RedisError as exc:
            self.logger.error("message_requeue_failed", error=str(exc), cause=str(error))
            return
        self.logger.error(
            "message_dropped",
            attempts=attempts,
            error=str(error),
            error_type=type(error).__name__,
            body=body[:512].decode("utf-8", errors="replace"),
        )

    def _clear_attempts(self, body: bytes) -> None:
        try:
            self.client.hdel(self.attempts_key, hashlib.sha1(body).hexdigest())
        except redis.RedisError as exc:
            self.logger.warning("attempts_clear_failed", error=str(exc))


__all__ = ["MessageProcessor", "RedisMessageConsumer", "RedisMessageProducer", "connect"]
