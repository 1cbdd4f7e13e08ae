"""
Challenge Maintenance Tasks

Periodic Celery tasks (registered into beat_schedule by
fitquest.core.scheduler):
- Rankings and reward sweep for running challenges, then expiry finalization
- Expiry finalization on its own (manual / catch-up runs)
- Daily replay of yesterday's stored samples
"""

from typing import Any, Dict, Optional

from fitquest.core.time_utils import parse_date
from fitquest.services.tasks.base import celery_app, get_engine, logger, task_result


@celery_app.task(
    name="run_scheduled_maintenance",
    bind=True,
    max_retries=2,
    default_retry_delay=60,
)
def run_scheduled_maintenance_task(self) -> Dict[str, Any]:
    """
    Update rankings, retry missing reward steps and finalize expired challenges.

    Per-challenge failures are collected in "errors"; only a failure to load
    the challenge list retries the task.
    """
    try:
        result = get_engine().run_scheduled_maintenance()

        print(
            f"✅ [CHALLENGE MAINTENANCE] Updated {result['challenges_updated']} challenges, "
            f"finalized {result['challenges_finalized']}, {len(result['errors'])} errors"
        )

        return task_result(**result)

    except Exception as e:
        logger.error(
            f"Failed to run challenge maintenance: {str(e)}",
            {"error": str(e), "retry_count": self.request.retries},
        )
        raise self.retry(exc=e)


@celery_app.task(
    name="finalize_expired_challenges",
    bind=True,
    max_retries=2,
    default_retry_delay=60,
)
def finalize_expired_challenges_task(self) -> Dict[str, Any]:
    """
    Final ranking and reward sweep for challenges whose end_date has passed,
    then deactivate them.
    """
    try:
        result = get_engine().finalize_expired_challenges()

        if not result["processed"] and not result["errors"]:
            print("✅ [CHALLENGE LIFECYCLE] No ended challenges to process")
        else:
            print(
                f"✅ [CHALLENGE LIFECYCLE] Processed {result['processed']} ended challenges, "
                f"{len(result['errors'])} errors"
            )

        return task_result(**result)

    except Exception as e:
        logger.error(
            f"Failed to finalize expired challenges: {str(e)}",
            {"error": str(e), "retry_count": self.request.retries},
        )
        raise self.retry(exc=e)


@celery_app.task(
    name="sync_daily_challenge_progress",
    bind=True,
    max_retries=1,
    default_retry_delay=300,
)
def sync_daily_challenge_progress_task(self, day: Optional[str] = None) -> Dict[str, Any]:
    """
    Replay one day's stored health samples (default: yesterday) for every
    non-completed participant of a running challenge.
    """
    try:
        result = get_engine().sync_daily_progress(parse_date(day))
        return task_result(**result)

    except Exception as e:
        logger.error(
            f"Failed to sync daily challenge progress: {str(e)}",
            {"day": day, "retry_count": self.request.retries},
        )
        raise self.retry(exc=e)
