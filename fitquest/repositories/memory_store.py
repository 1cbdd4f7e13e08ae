"""
In-process ProgressStore.

Used with STORAGE_BACKEND=memory (local runs, tests). Reads return copies so
callers never mutate stored state by accident, like rows read from a database.
"""

import threading
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from fitquest.core.exceptions import NotFoundError, PreconditionError
from fitquest.models.challenge import (
    Challenge,
    DailyProgressEntry,
    Enrollment,
    HealthSample,
    UserTotals,
)
from fitquest.repositories.base import HistoryTotals


class InMemoryProgressStore:
    def __init__(self):
        self._lock = threading.RLock()
        self.challenges: Dict[str, Challenge] = {}
        self.enrollments: Dict[str, Enrollment] = {}
        self.entries: Dict[Tuple[str, date], DailyProgressEntry] = {}
        self.health: Dict[Tuple[str, date], HealthSample] = {}
        self.user_totals: Dict[str, UserTotals] = {}

    # --- seeding (owned by the external catalog / ingestion layers) ---

    def add_challenge(self, challenge: Challenge) -> Challenge:
        with self._lock:
            self.challenges[challenge.id] = challenge.model_copy(deep=True)
        return challenge

    def record_health_sample(self, sample: HealthSample) -> HealthSample:
        with self._lock:
            self.health[(sample.user_id, sample.date)] = sample.model_copy()
        return sample

    def set_user_totals(self, totals: UserTotals) -> UserTotals:
        with self._lock:
            self.user_totals[totals.user_id] = totals.model_copy()
        return totals

    # --- challenges ---

    def get_challenge(self, challenge_id: str) -> Optional[Challenge]:
        with self._lock:
            challenge = self.challenges.get(challenge_id)
            return challenge.model_copy(deep=True) if challenge else None

    def list_active_challenges(self) -> List[Challenge]:
        with self._lock:
            return [
                c.model_copy(deep=True)
                for c in sorted(self.challenges.values(), key=lambda c: c.start_date)
                if c.is_active
            ]

    def list_expired_challenges(self, today: date) -> List[Challenge]:
        return [c for c in self.list_active_challenges() if c.end_date < today]

    def deactivate_challenge(self, challenge_id: str) -> None:
        with self._lock:
            challenge = self.challenges.get(challenge_id)
            if challenge is None:
                raise NotFoundError("Challenge not found", {"challenge_id": challenge_id})
            self.challenges[challenge_id] = challenge.model_copy(
                update={"is_active": False}
            )

    # --- enrollments ---

    def get_enrollment(self, enrollment_id: str) -> Optional[Enrollment]:
        with self._lock:
            enrollment = self.enrollments.get(enrollment_id)
            return enrollment.model_copy() if enrollment else None

    def find_enrollment(self, user_id: str, challenge_id: str) -> Optional[Enrollment]:
        with self._lock:
            for enrollment in self.enrollments.values():
                if (
                    enrollment.user_id == user_id
                    and enrollment.challenge_id == challenge_id
                ):
                    return enrollment.model_copy()
        return None

    def list_user_enrollments(self, user_id: str) -> List[Enrollment]:
        with self._lock:
            return [
                e.model_copy()
                for e in self.enrollments.values()
                if e.user_id == user_id and not e.is_completed
            ]

    def list_challenge_enrollments(self, challenge_id: str) -> List[Enrollment]:
        with self._lock:
            return [
                e.model_copy()
                for e in self.enrollments.values()
                if e.challenge_id == challenge_id
            ]

    def count_challenge_enrollments(self, challenge_id: str) -> int:
        return len(self.list_challenge_enrollments(challenge_id))

    def create_enrollment(
        self, user_id: str, challenge_id: str, joined_at: datetime
    ) -> Enrollment:
        with self._lock:
            if self.find_enrollment(user_id, challenge_id):
                raise PreconditionError(
                    "Already joined this challenge",
                    {"user_id": user_id, "challenge_id": challenge_id},
                )
            enrollment = Enrollment(
                id=str(uuid.uuid4()),
                user_id=user_id,
                challenge_id=challenge_id,
                joined_at=joined_at,
            )
            self.enrollments[enrollment.id] = enrollment
            return enrollment.model_copy()

    def update_enrollment(self, enrollment_id: str, fields: Dict[str, Any]) -> Enrollment:
        with self._lock:
            enrollment = self.enrollments.get(enrollment_id)
            if enrollment is None:
                raise NotFoundError(
                    "Enrollment not found", {"enrollment_id": enrollment_id}
                )
            updated = Enrollment.model_validate({**enrollment.model_dump(), **fields})
            self.enrollments[enrollment_id] = updated
            return updated.model_copy()

    def delete_enrollment(self, enrollment_id: str) -> None:
        with self._lock:
            self.enrollments.pop(enrollment_id, None)
            for key in [k for k in self.entries if k[0] == enrollment_id]:
                del self.entries[key]

    # --- daily entries ---

    def upsert_daily_entry(self, entry: DailyProgressEntry) -> None:
        with self._lock:
            self.entries[(entry.enrollment_id, entry.date)] = entry.model_copy()

    def list_daily_entries(self, enrollment_id: str) -> List[DailyProgressEntry]:
        with self._lock:
            return sorted(
                (e.model_copy() for k, e in self.entries.items() if k[0] == enrollment_id),
                key=lambda e: e.date,
            )

    # --- health data ---

    def get_health_sample(self, user_id: str, day: date) -> Optional[HealthSample]:
        with self._lock:
            sample = self.health.get((user_id, day))
            return sample.model_copy() if sample else None

    def list_health_samples(
        self, user_id: str, start_date: date, end_date: date
    ) -> List[HealthSample]:
        with self._lock:
            return sorted(
                (
                    s.model_copy()
                    for (uid, day), s in self.health.items()
                    if uid == user_id and start_date <= day <= end_date
                ),
                key=lambda s: s.date,
            )

    def health_totals_before(self, user_id: str, day: date) -> HistoryTotals:
        with self._lock:
            rows = [s for (uid, d), s in self.health.items() if uid == user_id and d < day]
        return HistoryTotals(
            rows=len(rows),
            steps=sum(s.steps for s in rows),
            distance=sum(s.distance for s in rows),
        )

    def get_user_totals(self, user_id: str) -> Optional[UserTotals]:
        with self._lock:
            totals = self.user_totals.get(user_id)
            return totals.model_copy() if totals else None
