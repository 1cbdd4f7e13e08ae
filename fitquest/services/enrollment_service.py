"""
Enrollment workflow: join, leave and per-challenge progress stats.

Joining validates the challenge (exists, active, not ended, not full, not
already joined), creates the enrollment and captures its baseline. A failed
baseline capture does not fail the join; the enrollment stays unprogressable
until it is recaptured.
"""

from datetime import date, datetime
from typing import Callable, Optional

from fitquest.core.exceptions import NotFoundError, PreconditionError
from fitquest.core.time_utils import challenge_today, utc_now
from fitquest.models.challenge import ChallengeProgressStats, Enrollment
from fitquest.services.logger import logger
from fitquest.services.notifier import CHALLENGE_JOINED


class EnrollmentService:
    def __init__(
        self,
        store,
        catalog,
        baseline,
        notifier=None,
        today: Optional[Callable[[], date]] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.catalog = catalog
        self.baseline = baseline
        self.notifier = notifier
        self._today = today or challenge_today
        self._now = now or utc_now

    def join_challenge(self, user_id: str, challenge_id: str) -> Enrollment:
        challenge = self.catalog.get(challenge_id)
        context = {"user_id": user_id, "challenge_id": challenge_id}

        if not challenge.is_active:
            raise PreconditionError("Challenge is not active", context)

        if challenge.end_date < self._today():
            raise PreconditionError("Challenge has already ended", context)

        if self.store.find_enrollment(user_id, challenge_id):
            raise PreconditionError(
                "User is already participating in this challenge", context
            )

        if challenge.max_participants:
            participants = self.store.count_challenge_enrollments(challenge_id)
            if participants >= challenge.max_participants:
                raise PreconditionError(
                    "Challenge has reached maximum participants",
                    {**context, "max_participants": challenge.max_participants},
                )

        enrollment = self.store.create_enrollment(user_id, challenge_id, self._now())

        try:
            enrollment = self.baseline.capture(user_id, challenge_id)
        except Exception as e:
            logger.error(
                f"Error setting challenge baseline: {str(e)}",
                {**context, "enrollment_id": enrollment.id, "error": str(e)},
            )

        if self.notifier is not None:
            try:
                self.notifier.notify(
                    user_id,
                    kind=CHALLENGE_JOINED,
                    payload={
                        "challenge_title": challenge.title,
                        "entity_type": "challenge",
                        "entity_id": challenge.id,
                    },
                )
            except Exception as e:
                logger.warning(f"Error sending challenge joined notification: {e}")

        return enrollment

    def leave_challenge(self, user_id: str, challenge_id: str) -> None:
        enrollment = self.store.find_enrollment(user_id, challenge_id)
        context = {"user_id": user_id, "challenge_id": challenge_id}

        if enrollment is None:
            logger.warning(
                f"User {user_id} is not participating in challenge {challenge_id}",
                context,
            )
            raise NotFoundError("User is not participating in this challenge", context)

        if enrollment.is_completed:
            raise PreconditionError("Cannot leave a completed challenge", context)

        self.store.delete_enrollment(enrollment.id)
        logger.info(f"User {user_id} left challenge {challenge_id}", context)

    def get_challenge_progress_stats(self, challenge_id: str) -> ChallengeProgressStats:
        self.catalog.get(challenge_id)
        enrollments = self.store.list_challenge_enrollments(challenge_id)

        total = len(enrollments)
        if total == 0:
            return ChallengeProgressStats(challenge_id=challenge_id)

        completed = sum(1 for e in enrollments if e.is_completed)
        return ChallengeProgressStats(
            challenge_id=challenge_id,
            total_participants=total,
            completed_count=completed,
            completion_rate=round(completed / total * 100, 2),
            average_progress=round(
                sum(e.completion_percentage for e in enrollments) / total, 2
            ),
            highest_progress=max(e.current_progress for e in enrollments),
        )
