"""APScheduler wrapper triggering the periodic refresh-all fan-out."""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..config import ScheduleConfig, ScheduleType
from ..logging_conf import get_logger

REFRESH_ALL_JOB_ID = "refresh::all"


class APSchedulerAdapter:
    """Manage the refresh-all job on an APScheduler instance."""

    def __init__(self, scheduler: BaseScheduler | None = None) -> None:
        self.scheduler = scheduler or BackgroundScheduler()
        self.logger = get_logger("scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.started = True
            self.logger.info("apscheduler_started")
            # Blocking schedulers only return from start() on shutdown.
            self.scheduler.start()

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def schedule_refresh_all(self, schedule: ScheduleConfig, callback: Callable[[], None]) -> None:
        trigger = self._build_trigger(schedule)
        self.scheduler.add_job(
            self._guarded(callback),
            trigger=trigger,
            id=REFRESH_ALL_JOB_ID,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        self.logger.info("job_scheduled", job=REFRESH_ALL_JOB_ID, schedule=schedule.model_dump(mode="json"))

    def _guarded(self, callback: Callable[[], None]) -> Callable[[], None]:
        def run() -> None:
            try:
                callback()
            except Exception as exc:  # noqa: BLE001
                self.logger.error("scheduled_refresh_failed", error=str(exc))

        run.__name__ = getattr(callback, "__name__", "refresh_all")
        return run

    def _build_trigger(self, schedule: ScheduleConfig):
        if schedule.type is ScheduleType.CRON:
            return CronTrigger.from_crontab(str(schedule.value))
        if schedule.type is ScheduleType.INTERVAL:
            if isinstance(schedule.value, (int, float)):
                return IntervalTrigger(seconds=float(schedule.value))
            if isinstance(schedule.value, dict):
                return IntervalTrigger(**schedule.value)
            raise ValueError("Interval schedule requires seconds or kwargs dict")
        if schedule.type is ScheduleType.ONCE:
            if schedule.value:
                run_date = datetime.fromisoformat(str(schedule.value))
            else:
                run_date = datetime.now()
            return DateTrigger(run_date=run_date)
        raise ValueError(f"Unknown schedule type: {schedule.type}")


__all__ = ["APSchedulerAdapter", "REFRESH_ALL_JOB_ID"]
