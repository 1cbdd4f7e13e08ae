"""
Retroactive Reconciler

Replays stored health samples through the progress updater. Every replay ends
in a full re-derivation of the aggregate, so running it again converges to the
same state.

- reconcile: a user's samples over a date range (backfills, corrections)
- recalculate_enrollment: one enrollment over its whole effective window
- sync_daily_progress: yesterday's samples for every running challenge
"""

from datetime import date, timedelta
from typing import Callable, List, Optional

from fitquest.core.exceptions import NotFoundError, PreconditionError
from fitquest.core.time_utils import challenge_today
from fitquest.services.logger import logger
from fitquest.services.progress_service import EnrollmentUpdate, ProgressService


class Reconciler:
    def __init__(
        self,
        store,
        catalog,
        progress: ProgressService,
        today: Optional[Callable[[], date]] = None,
    ):
        self.store = store
        self.catalog = catalog
        self.progress = progress
        self._today = today or challenge_today

    def reconcile(
        self, user_id: str, start_date: date, end_date: date
    ) -> List[EnrollmentUpdate]:
        if end_date < start_date:
            raise PreconditionError(
                "end_date must not be before start_date",
                {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
            )

        samples = self.store.list_health_samples(user_id, start_date, end_date)
        updates: List[EnrollmentUpdate] = []
        for sample in samples:
            updates.extend(self.progress.apply_sample(sample))

        logger.info(
            f"Reconciled {len(samples)} samples for user {user_id}",
            {
                "user_id": user_id,
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "updates": len(updates),
            },
        )
        return updates

    def recalculate_enrollment(self, enrollment_id: str) -> List[EnrollmentUpdate]:
        enrollment = self.store.get_enrollment(enrollment_id)
        if enrollment is None:
            logger.warning(
                f"Enrollment {enrollment_id} not found", {"enrollment_id": enrollment_id}
            )
            raise NotFoundError("Enrollment not found", {"enrollment_id": enrollment_id})
        if not enrollment.has_baseline:
            raise PreconditionError(
                "Enrollment has no baseline", {"enrollment_id": enrollment_id}
            )

        challenge = self.catalog.get(enrollment.challenge_id)
        start = max(challenge.start_date, enrollment.baseline_date)
        end = min(challenge.end_date, self._today())
        if end < start:
            return []

        updates: List[EnrollmentUpdate] = []
        for sample in self.store.list_health_samples(enrollment.user_id, start, end):
            update = self.progress.update_enrollment(enrollment.id, challenge, sample)
            if update is not None:
                updates.append(update)

        # No samples to replay: still re-derive the aggregate from stored entries
        if not updates:
            update = self.progress.recompute(enrollment.id, challenge)
            if update is not None:
                updates.append(update)

        logger.info(
            f"Recalculated enrollment {enrollment_id}",
            {
                "enrollment_id": enrollment_id,
                "start_date": start.isoformat(),
                "end_date": end.isoformat(),
                "updates": len(updates),
            },
        )
        return updates

    def sync_daily_progress(self, day: Optional[date] = None) -> dict:
        """Replay one day's stored samples (default: yesterday) for running challenges."""
        day = day or self._today() - timedelta(days=1)

        challenges = [
            c for c in self.store.list_active_challenges() if c.covers(day)
        ]

        synced = 0
        updates: List[EnrollmentUpdate] = []
        errors = []

        for challenge in challenges:
            for enrollment in self.store.list_challenge_enrollments(challenge.id):
                if enrollment.is_completed:
                    continue
                try:
                    sample = self.store.get_health_sample(enrollment.user_id, day)
                    if sample is None:
                        continue
                    update = self.progress.update_enrollment(
                        enrollment.id, challenge, sample
                    )
                    synced += 1
                    if update is not None:
                        updates.append(update)
                except Exception as e:
                    error_msg = (
                        f"Failed to sync enrollment {enrollment.id} "
                        f"for {day.isoformat()}: {str(e)}"
                    )
                    logger.error(
                        error_msg,
                        {"challenge_id": challenge.id, "user_id": enrollment.user_id},
                    )
                    errors.append(error_msg)

        logger.info(
            f"Daily challenge progress sync for {day.isoformat()} completed",
            {"challenges": len(challenges), "synced": synced, "errors": len(errors)},
        )
        return {
            "date": day.isoformat(),
            "challenges": len(challenges),
            "synced": synced,
            "updates": updates,
            "errors": errors,
        }
