"""
Tests for periodic job registration into Celery beat.
"""

import pytest
from celery import Celery

from fitquest.core.scheduler import CeleryBeatScheduler, register_periodic_jobs
from fitquest.services.tasks import run_scheduled_maintenance_task


@pytest.fixture
def beat_app():
    app = Celery("scheduler-test")
    app.conf.beat_schedule = {}
    return app


def test_register_periodic_jobs(beat_app):
    register_periodic_jobs(CeleryBeatScheduler(beat_app))

    assert beat_app.conf.beat_schedule == {
        "run-scheduled-maintenance": {
            "task": "run_scheduled_maintenance",
            "schedule": 3600.0,
        },
        "sync-daily-challenge-progress": {
            "task": "sync_daily_challenge_progress",
            "schedule": 86400.0,
        },
    }


def test_every_defaults_entry_name_to_task_name(beat_app):
    CeleryBeatScheduler(beat_app).every(120, run_scheduled_maintenance_task)

    assert beat_app.conf.beat_schedule["run-scheduled-maintenance"]["schedule"] == 120.0


def test_every_requires_a_celery_task(beat_app):
    def plain_function():
        pass

    with pytest.raises(ValueError):
        CeleryBeatScheduler(beat_app).every(60, plain_function)
