"""
Celery Worker Entry Point

Run this file to start Celery workers (both queues):
    celery -A celery_worker worker --loglevel=info -Q celery,challenge_progress

Note: Celery workers don't auto-reload code changes.
Restart the worker manually when you modify task code.

To run Celery Beat (maintenance and the daily sync):
    celery -A celery_worker beat --loglevel=info

Or run both worker and beat together:
    celery -A celery_worker worker --beat --loglevel=info -Q celery,challenge_progress
"""

from fitquest.core.celery_app import celery_app
from fitquest.core import celery_signals  # Import to register signal handlers
from fitquest.core.scheduler import CeleryBeatScheduler, register_periodic_jobs

register_periodic_jobs(CeleryBeatScheduler(celery_app))

# This makes Celery discover tasks in the app
__all__ = ["celery_app", "celery_signals"]
