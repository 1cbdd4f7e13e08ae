"""
Completion & Reward Trigger

For a completed enrollment, in order:
1. compute and persist points_earned (only while it is still 0)
2. credit the rewards ledger with the enrollment id as idempotency key,
   then persist rewarded_at
3. once credited, notify the user, then persist notified_at

Each step is skipped when its marker is already set, so a repeated trigger for
a rewarded and notified enrollment makes no external call. External failures
are logged; the periodic sweep retries only the missing step.
"""

import math
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from fitquest.core.time_utils import utc_now
from fitquest.models.challenge import Challenge, ChallengeDifficulty
from fitquest.services.logger import logger
from fitquest.services.notifier import CHALLENGE_COMPLETED


BASE_POINTS = {
    ChallengeDifficulty.EASY: 100,
    ChallengeDifficulty.MEDIUM: 250,
    ChallengeDifficulty.HARD: 500,
}
DEFAULT_BASE_POINTS = 100

RANK_MULTIPLIERS = {1: 2.0, 2: 1.5, 3: 1.25}

REWARD_SOURCE_KIND = "challenge"


def calculate_points(
    difficulty: Optional[ChallengeDifficulty], rank: Optional[int]
) -> int:
    """base(difficulty) x multiplier(rank), rounded half up."""
    base = BASE_POINTS.get(difficulty, DEFAULT_BASE_POINTS)
    multiplier = RANK_MULTIPLIERS.get(rank, 1.0)
    return int(math.floor(base * multiplier + 0.5))


class RewardService:
    def __init__(
        self,
        store,
        catalog,
        ledger,
        notifier,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.catalog = catalog
        self.ledger = ledger
        self.notifier = notifier
        self._now = now or utc_now

    def process_completion(
        self, enrollment_id: str, challenge: Optional[Challenge] = None
    ) -> Dict[str, Any]:
        enrollment = self.store.get_enrollment(enrollment_id)
        if enrollment is None or not enrollment.is_completed:
            return {"success": True, "skipped": True}
        if not enrollment.needs_reward_step:
            return {"success": True, "skipped": True}

        challenge = challenge or self.catalog.get(enrollment.challenge_id)
        context = {
            "enrollment_id": enrollment.id,
            "user_id": enrollment.user_id,
            "challenge_id": challenge.id,
        }

        if enrollment.points_earned == 0:
            points = calculate_points(challenge.difficulty, enrollment.rank)
            enrollment = self.store.update_enrollment(
                enrollment.id, {"points_earned": points}
            )
            logger.info(f"Awarded {points} points for enrollment {enrollment.id}", context)

        if enrollment.rewarded_at is None:
            try:
                self.ledger.credit(
                    enrollment.user_id,
                    enrollment.points_earned,
                    source_kind=REWARD_SOURCE_KIND,
                    source_id=enrollment.id,
                    idempotency_key=enrollment.id,
                )
            except Exception as e:
                logger.error(
                    f"Rewards ledger credit failed for enrollment {enrollment.id}: {str(e)}",
                    {**context, "error": str(e)},
                )
                return {"success": False, "step": "credit", "error": str(e)}
            enrollment = self.store.update_enrollment(
                enrollment.id, {"rewarded_at": self._now()}
            )

        if enrollment.notified_at is None:
            try:
                self.notifier.notify(
                    enrollment.user_id,
                    kind=CHALLENGE_COMPLETED,
                    payload={
                        "challenge_title": challenge.title,
                        "points": enrollment.points_earned,
                        "entity_type": "challenge",
                        "entity_id": challenge.id,
                    },
                )
            except Exception as e:
                logger.error(
                    f"Completion notification failed for enrollment {enrollment.id}: {str(e)}",
                    {**context, "error": str(e)},
                )
                return {"success": False, "step": "notify", "error": str(e)}
            self.store.update_enrollment(enrollment.id, {"notified_at": self._now()})

        return {"success": True, "points": enrollment.points_earned}

    def sweep(self, challenge_id: str) -> Dict[str, Any]:
        """Retry the missing reward steps for every completed enrollment."""
        challenge = self.catalog.get(challenge_id)
        pending = [
            e
            for e in self.store.list_challenge_enrollments(challenge_id)
            if e.needs_reward_step
        ]

        processed = 0
        errors = []
        for enrollment in pending:
            try:
                result = self.process_completion(enrollment.id, challenge)
                if result.get("success"):
                    processed += 1
                else:
                    errors.append(f"{enrollment.id}: {result.get('error')}")
            except Exception as e:
                error_msg = f"Failed to reward enrollment {enrollment.id}: {str(e)}"
                logger.error(error_msg, {"challenge_id": challenge_id})
                errors.append(error_msg)

        return {"pending": len(pending), "processed": processed, "errors": errors}
