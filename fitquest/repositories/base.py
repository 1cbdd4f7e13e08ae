"""
Storage contract for the challenge progress core.

The core only talks to a ProgressStore. Production uses the Supabase store,
local runs and tests use the in-memory store.
"""

from datetime import date, datetime
from typing import Any, Dict, List, NamedTuple, Optional, Protocol

from fitquest.models.challenge import (
    Challenge,
    DailyProgressEntry,
    Enrollment,
    HealthSample,
    UserTotals,
)


class HistoryTotals(NamedTuple):
    rows: int
    steps: float
    distance: float


class ProgressStore(Protocol):
    # Challenges
    def get_challenge(self, challenge_id: str) -> Optional[Challenge]: ...

    def list_active_challenges(self) -> List[Challenge]: ...

    def list_expired_challenges(self, today: date) -> List[Challenge]: ...

    def deactivate_challenge(self, challenge_id: str) -> None: ...

    # Enrollments
    def get_enrollment(self, enrollment_id: str) -> Optional[Enrollment]: ...

    def find_enrollment(self, user_id: str, challenge_id: str) -> Optional[Enrollment]: ...

    def list_user_enrollments(self, user_id: str) -> List[Enrollment]:
        """Enrollments of the user that are not completed yet."""

    def list_challenge_enrollments(self, challenge_id: str) -> List[Enrollment]: ...

    def count_challenge_enrollments(self, challenge_id: str) -> int: ...

    def create_enrollment(
        self, user_id: str, challenge_id: str, joined_at: datetime
    ) -> Enrollment: ...

    def update_enrollment(
        self, enrollment_id: str, fields: Dict[str, Any]
    ) -> Enrollment: ...

    def delete_enrollment(self, enrollment_id: str) -> None: ...

    # Daily progress entries
    def upsert_daily_entry(self, entry: DailyProgressEntry) -> None: ...

    def list_daily_entries(self, enrollment_id: str) -> List[DailyProgressEntry]: ...

    # Health data (external, read-only)
    def get_health_sample(self, user_id: str, day: date) -> Optional[HealthSample]: ...

    def list_health_samples(
        self, user_id: str, start_date: date, end_date: date
    ) -> List[HealthSample]: ...

    def health_totals_before(self, user_id: str, day: date) -> HistoryTotals: ...

    def get_user_totals(self, user_id: str) -> Optional[UserTotals]: ...
