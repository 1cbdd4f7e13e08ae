"""
Baseline Capture

Freezes the reference point an enrollment's progress is measured from.

- baseline_date = min(challenge.start_date, today)
- Cumulative challenges: totals are the user's stored history strictly before
  baseline_date, or the lifetime counters when no such history exists. Daily
  fields stay at 0.
- Periodic challenges: daily fields are the sample on baseline_date (zeros if
  missing). Totals are the lifetime counters, kept for reference only.

Capture is not retried automatically. An enrollment whose capture failed keeps
a null baseline_date and the progress updater skips it.
"""

from datetime import date
from typing import Callable, Optional

from fitquest.core.exceptions import NotFoundError
from fitquest.core.time_utils import challenge_today
from fitquest.models.challenge import (
    BaselineData,
    Challenge,
    ChallengeKind,
    Enrollment,
    UserTotals,
)
from fitquest.services.logger import logger


class BaselineService:
    def __init__(self, store, catalog, today: Optional[Callable[[], date]] = None):
        self.store = store
        self.catalog = catalog
        self._today = today or challenge_today

    def _lifetime_totals(self, user_id: str) -> UserTotals:
        totals = self.store.get_user_totals(user_id)
        if totals is None:
            logger.warning(
                f"No lifetime totals for user {user_id}, using zero counters",
                {"user_id": user_id},
            )
            return UserTotals(user_id=user_id)
        return totals

    def compute_baseline(self, user_id: str, challenge: Challenge) -> BaselineData:
        baseline_date = min(challenge.start_date, self._today())

        if challenge.kind == ChallengeKind.CUMULATIVE:
            history = self.store.health_totals_before(user_id, baseline_date)
            if history.rows > 0:
                return BaselineData(
                    baseline_date=baseline_date,
                    total_steps=history.steps,
                    total_distance=history.distance,
                )

            totals = self._lifetime_totals(user_id)
            logger.info(
                f"No health history before {baseline_date} for user {user_id}, "
                "using lifetime counters as baseline",
                {"user_id": user_id, "challenge_id": challenge.id},
            )
            return BaselineData(
                baseline_date=baseline_date,
                total_steps=totals.total_steps,
                total_distance=totals.total_distance,
            )

        sample = self.store.get_health_sample(user_id, baseline_date)
        totals = self._lifetime_totals(user_id)
        return BaselineData(
            baseline_date=baseline_date,
            steps=sample.steps if sample else 0,
            distance=sample.distance if sample else 0,
            active_minutes=sample.active_minutes if sample else 0,
            total_steps=totals.total_steps,
            total_distance=totals.total_distance,
        )

    def capture(self, user_id: str, challenge_id: str) -> Enrollment:
        """Compute and persist the baseline for an existing enrollment."""
        challenge = self.catalog.get(challenge_id)
        enrollment = self.store.find_enrollment(user_id, challenge_id)
        if enrollment is None:
            logger.warning(
                f"Enrollment not found for user {user_id} in challenge {challenge_id}",
                {"user_id": user_id, "challenge_id": challenge_id},
            )
            raise NotFoundError(
                "Enrollment not found",
                {"user_id": user_id, "challenge_id": challenge_id},
            )

        baseline = self.compute_baseline(user_id, challenge)
        updated = self.store.update_enrollment(
            enrollment.id,
            {
                "baseline_date": baseline.baseline_date,
                "baseline_steps": baseline.steps,
                "baseline_distance": baseline.distance,
                "baseline_active_minutes": baseline.active_minutes,
                "baseline_total_steps": baseline.total_steps,
                "baseline_total_distance": baseline.total_distance,
            },
        )

        logger.info(
            f"Baseline set for user {user_id} in challenge {challenge_id}",
            {
                "enrollment_id": enrollment.id,
                "baseline_date": baseline.baseline_date.isoformat(),
                "kind": challenge.kind.value,
            },
        )
        return updated
