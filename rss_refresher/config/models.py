"""Pydantic models describing worker, bus and scheduler configuration."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from .. import __version__


class ScheduleType(str, Enum):
    """Trigger kinds supported for the periodic refresh-all job."""

    CRON = "cron"
    INTERVAL = "interval"
    ONCE = "once"


class ScheduleConfig(BaseModel):
    """When the scheduler should fan out a refresh of every feed."""

    type: ScheduleType = Field(default=ScheduleType.INTERVAL)
    value: Any = Field(
        default=900,
        description="Cron expression, interval seconds or ISO datetime, depending on type.",
    )

    @model_validator(mode="after")
    def _validate_value(self) -> "ScheduleConfig":
        if self.type is ScheduleType.CRON and not isinstance(self.value, str):
            raise ValueError("Cron schedule requires string expression")
        if self.type is ScheduleType.INTERVAL and not isinstance(self.value, (int, float, dict)):
            raise ValueError("Interval schedule requires seconds (int/float) or kwargs dict")
        if (
            self.type is ScheduleType.ONCE
            and self.value is not None
            and not isinstance(self.value, str)
        ):
            raise ValueError("Once schedule expects ISO datetime string or null")
        return self


class DatabaseConfig(BaseModel):
    """SQLite dedup store location and lock timeout."""

    path: Path = Field(default=Path("data/feeds.db"))
    timeout: float = 60.0

    @field_validator("path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)


class FetchConfig(BaseModel):
    """HTTP client settings for conditional feed retrieval."""

    user_agent: str = f"rss-refresher/{__version__}"
    timeout: float = 60.0
    follow_redirects: bool = True

    @field_validator("timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("fetch timeout must be > 0")
        return value


class BusConfig(BaseModel):
    """Redis command bus shared by producers and the consumer pool."""

    redis_url: str = "redis://localhost:6379/0"
    topic: str = "rss-feeds-refresh"
    workers: int = 4
    max_attempts: int = 5
    poll_timeout: int = 1

    @model_validator(mode="after")
    def _validate_counts(self) -> "BusConfig":
        if self.workers < 1:
            raise ValueError("bus.workers must be >= 1")
        if self.max_attempts < 1:
            raise ValueError("bus.max_attempts must be >= 1")
        if self.poll_timeout < 1:
            raise ValueError("bus.poll_timeout must be >= 1")
        if not self.topic:
            raise ValueError("bus.topic cannot be empty")
        return self


class ItemPublishConfig(BaseModel):
    """Where new feed entries are forwarded."""

    backend: Literal["redis", "file"] = "redis"
    topic: str = "rss-feeds-items"
    path: Path = Field(default=Path("data/items.jsonl"))

    @field_validator("path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)


class LoggingConfig(BaseModel):
    verbose: bool = False
    log_dir: Path = Field(default=Path("logs"))

    @field_validator("log_dir", mode="before")
    @classmethod
    def _coerce_dir(cls, value: Any) -> Path:
        return Path(value)


class RefresherConfig(BaseModel):
    """Top level configuration for the worker, scheduler and CLI."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    bus: BusConfig = Field(default_factory=BusConfig)
    item_publish: ItemPublishConfig = Field(default_factory=ItemPublishConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


__all__ = [
    "BusConfig",
    "DatabaseConfig",
    "FetchConfig",
    "ItemPublishConfig",
    "LoggingConfig",
    "RefresherConfig",
    "ScheduleConfig",
    "ScheduleType",
]
