"""Timer-driven refresh triggers."""

from .apsched_adapter import REFRESH_ALL_JOB_ID, APSchedulerAdapter

__all__ = ["APSchedulerAdapter", "REFRESH_ALL_JOB_ID"]
