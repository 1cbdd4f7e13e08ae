"""
Challenge Progress Tasks

Celery tasks fed by the health-data ingestion layer and by operators:
- Applying a synced day of health data to open enrollments
- Capturing the baseline of a new enrollment
- Replaying stored samples (reconcile / recalculate)
"""

from typing import Any, Dict, List, Optional

from fitquest.core.exceptions import ChallengeProgressError, LockTimeoutError
from fitquest.services.tasks.base import celery_app, get_engine, logger, task_result
from fitquest.services.tasks.task_utils import DEFAULT_CHUNK_SIZE, dispatch_chunked_tasks


@celery_app.task(
    name="process_health_sample",
    bind=True,
    max_retries=2,
    default_retry_delay=30,
)
def process_health_sample_task(
    self,
    user_id: str,
    date: str,
    steps: float = 0,
    distance: float = 0,
    active_minutes: float = 0,
) -> Dict[str, Any]:
    """
    Apply one synced day of health data to every open enrollment of the user.

    Args:
        user_id: User the sample belongs to
        date: Calendar date of the sample (YYYY-MM-DD)
        steps, distance, active_minutes: The day's totals (distance in meters)

    Returns:
        Dict with updated enrollment ids and the ones that just completed
    """
    try:
        updates = get_engine().on_health_sample(
            user_id,
            date,
            steps=steps,
            distance=distance,
            active_minutes=active_minutes,
        )
        return task_result(
            updated=[u.enrollment.id for u in updates],
            completed=[u.enrollment.id for u in updates if u.newly_completed],
        )

    except LockTimeoutError as e:
        raise self.retry(exc=e)
    except ChallengeProgressError as e:
        logger.warning(
            f"Health sample rejected for user {user_id}: {e.message}",
            {"user_id": user_id, "date": date, **e.context},
        )
        return task_result(False, error=e.message)
    except Exception as e:
        logger.error(
            f"Failed to process health sample for user {user_id}: {str(e)}",
            {"user_id": user_id, "date": date, "retry_count": self.request.retries},
        )
        raise self.retry(exc=e)


@celery_app.task(
    name="process_health_samples_chunk",
    bind=True,
    max_retries=1,
)
def process_health_samples_chunk_task(
    self, samples: List[Dict[str, Any]]
) -> Dict[str, Any]:
    """
    Process a chunk of health samples (dispatched via dispatch_chunked_tasks).

    Each sample is a dict with user_id, date, steps, distance, active_minutes.
    A failing sample is logged and skipped; the rest of the chunk continues.
    """
    result = get_engine().process_health_samples(samples)

    print(
        f"✅ [CHALLENGE PROGRESS] Processed {result['processed']}/{len(samples)} samples, "
        f"{len(result['errors'])} errors"
    )

    return task_result(**result)


@celery_app.task(
    name="capture_enrollment_baseline",
    bind=True,
    max_retries=0,
)
def capture_enrollment_baseline_task(self, user_id: str, challenge_id: str) -> Dict[str, Any]:
    """
    Freeze the baseline of a freshly created enrollment.

    Not retried: a failed capture leaves the enrollment without a baseline and
    the progress updater skips it until a recapture succeeds.
    """
    try:
        enrollment = get_engine().on_enrollment_created(user_id, challenge_id)
        return task_result(
            enrollment_id=enrollment.id,
            baseline_date=enrollment.baseline_date.isoformat(),
        )
    except ChallengeProgressError as e:
        return task_result(False, error=e.message)
    except Exception as e:
        logger.error(
            f"Failed to capture baseline for user {user_id} in challenge {challenge_id}: {str(e)}",
            {"user_id": user_id, "challenge_id": challenge_id, "error": str(e)},
        )
        return task_result(False, error=str(e))


@celery_app.task(
    name="reconcile_user_progress",
    bind=True,
    max_retries=2,
    default_retry_delay=60,
)
def reconcile_user_progress_task(
    self, user_id: str, start_date: str, end_date: Optional[str] = None
) -> Dict[str, Any]:
    """
    Replay a user's stored samples over [start_date, end_date] (inclusive).

    end_date defaults to start_date.
    """
    try:
        updates = get_engine().reconcile(user_id, start_date, end_date or start_date)
        return task_result(
            updated=len(updates),
            completed=[u.enrollment.id for u in updates if u.newly_completed],
        )
    except ChallengeProgressError as e:
        return task_result(False, error=e.message)
    except Exception as e:
        logger.error(
            f"Failed to reconcile progress for user {user_id}: {str(e)}",
            {
                "user_id": user_id,
                "start_date": start_date,
                "end_date": end_date,
                "retry_count": self.request.retries,
            },
        )
        raise self.retry(exc=e)


@celery_app.task(
    name="recalculate_enrollment_progress",
    bind=True,
    max_retries=2,
    default_retry_delay=60,
)
def recalculate_enrollment_progress_task(self, enrollment_id: str) -> Dict[str, Any]:
    """Replay one enrollment over its whole window up to today."""
    try:
        updates = get_engine().recalculate_enrollment(enrollment_id)
        return task_result(enrollment_id=enrollment_id, updated=len(updates))
    except ChallengeProgressError as e:
        return task_result(False, error=e.message)
    except Exception as e:
        logger.error(
            f"Failed to recalculate enrollment {enrollment_id}: {str(e)}",
            {"enrollment_id": enrollment_id, "retry_count": self.request.retries},
        )
        raise self.retry(exc=e)


def dispatch_health_samples(
    samples: List[Dict[str, Any]], chunk_size: int = DEFAULT_CHUNK_SIZE
) -> Dict[str, Any]:
    """Fan a bulk health sync out to process_health_samples_chunk tasks."""
    return dispatch_chunked_tasks(
        process_health_samples_chunk_task, samples, chunk_size=chunk_size
    )
