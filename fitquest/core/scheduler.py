"""
Periodic job registration.

The progress core only needs to be invoked every N seconds; it does not care
how. `Scheduler.every()` is the whole contract. CeleryBeatScheduler registers
Celery tasks into the app's beat_schedule.
"""

from typing import Any, Callable, Optional, Protocol

from fitquest.core.config import settings


class Scheduler(Protocol):
    def every(
        self, interval: float, func: Callable[..., Any], name: Optional[str] = None
    ) -> None: ...


class CeleryBeatScheduler:
    def __init__(self, app):
        self.app = app

    def every(
        self, interval: float, func: Callable[..., Any], name: Optional[str] = None
    ) -> None:
        task_name = getattr(func, "name", None)
        if not task_name:
            raise ValueError("Celery beat can only schedule registered Celery tasks")

        entry_name = name or task_name.replace("_", "-")
        schedule = dict(self.app.conf.beat_schedule or {})
        schedule[entry_name] = {"task": task_name, "schedule": float(interval)}
        self.app.conf.beat_schedule = schedule


def register_periodic_jobs(scheduler: Scheduler) -> None:
    """Maintenance (ranking, reward sweep, expiry) and the daily sync."""
    from fitquest.services.tasks import (
        run_scheduled_maintenance_task,
        sync_daily_challenge_progress_task,
    )

    scheduler.every(
        float(settings.MAINTENANCE_INTERVAL_SECONDS),
        run_scheduled_maintenance_task,
        name="run-scheduled-maintenance",
    )
    scheduler.every(
        float(settings.DAILY_SYNC_INTERVAL_SECONDS),
        sync_daily_challenge_progress_task,
        name="sync-daily-challenge-progress",
    )
