"""
Celery Tasks Package

Re-exports all tasks for Celery autodiscovery:

- progress_tasks: health samples, baseline capture, reconcile / recalculate
- challenge_tasks: scheduled maintenance, expiry finalization, daily sync
"""

# Progress tasks
from fitquest.services.tasks.progress_tasks import (
    process_health_sample_task,
    process_health_samples_chunk_task,
    capture_enrollment_baseline_task,
    reconcile_user_progress_task,
    recalculate_enrollment_progress_task,
    dispatch_health_samples,
)

# Challenge maintenance tasks
from fitquest.services.tasks.challenge_tasks import (
    run_scheduled_maintenance_task,
    finalize_expired_challenges_task,
    sync_daily_challenge_progress_task,
)

__all__ = [
    "process_health_sample_task",
    "process_health_samples_chunk_task",
    "capture_enrollment_baseline_task",
    "reconcile_user_progress_task",
    "recalculate_enrollment_progress_task",
    "dispatch_health_samples",
    "run_scheduled_maintenance_task",
    "finalize_expired_challenges_task",
    "sync_daily_challenge_progress_task",
]
