"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    BusConfig,
    DatabaseConfig,
    FetchConfig,
    ItemPublishConfig,
    LoggingConfig,
    RefresherConfig,
    ScheduleConfig,
    ScheduleType,
)

__all__ = [
    "BusConfig",
    "ConfigLocator",
    "ConfigRepository",
    "DatabaseConfig",
    "FetchConfig",
    "ItemPublishConfig",
    "LoggingConfig",
    "RefresherConfig",
    "ScheduleConfig",
    "ScheduleType",
]
