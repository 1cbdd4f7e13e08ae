"""
Supabase-backed ProgressStore.

All access goes through the PostgREST client returned by get_supabase_client().
Large reads (health history sums) are paged with .range() so a single request
never pulls an unbounded result set.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fitquest.core.database import get_supabase_client
from fitquest.core.exceptions import NotFoundError, PreconditionError
from fitquest.models.challenge import (
    Challenge,
    DailyProgressEntry,
    Enrollment,
    HealthSample,
    UserTotals,
)
from fitquest.repositories.base import HistoryTotals


PAGE_SIZE = 1000

CHALLENGES_TABLE = "challenges"
ENROLLMENTS_TABLE = "challenge_enrollments"
DAILY_PROGRESS_TABLE = "challenge_daily_progress"
HEALTH_DATA_TABLE = "health_data"
USERS_TABLE = "users"


def _serialize(fields: Dict[str, Any]) -> Dict[str, Any]:
    serialized = {}
    for key, value in fields.items():
        if isinstance(value, (date, datetime)):
            serialized[key] = value.isoformat()
        elif hasattr(value, "value"):
            serialized[key] = value.value
        else:
            serialized[key] = value
    return serialized


def _is_duplicate_error(error: Exception) -> bool:
    message = str(error).lower()
    return "duplicate" in message or "unique" in message or "23505" in message


def _health_sample_from_row(row: Dict[str, Any]) -> HealthSample:
    return HealthSample(
        user_id=row["user_id"],
        date=row["date"],
        steps=row.get("steps") or 0,
        distance=row.get("distance") or 0,
        active_minutes=row.get("active_minutes") or 0,
    )


class SupabaseProgressStore:
    def __init__(self, client=None):
        self._client = client

    @property
    def supabase(self):
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    # Challenges

    def get_challenge(self, challenge_id: str) -> Optional[Challenge]:
        result = (
            self.supabase.table(CHALLENGES_TABLE)
            .select("*")
            .eq("id", challenge_id)
            .maybe_single()
            .execute()
        )
        if not result or not result.data:
            return None
        return Challenge.model_validate(result.data)

    def list_active_challenges(self) -> List[Challenge]:
        result = (
            self.supabase.table(CHALLENGES_TABLE)
            .select("*")
            .eq("is_active", True)
            .order("start_date")
            .execute()
        )
        return [Challenge.model_validate(row) for row in result.data or []]

    def list_expired_challenges(self, today: date) -> List[Challenge]:
        result = (
            self.supabase.table(CHALLENGES_TABLE)
            .select("*")
            .eq("is_active", True)
            .lt("end_date", today.isoformat())
            .execute()
        )
        return [Challenge.model_validate(row) for row in result.data or []]

    def deactivate_challenge(self, challenge_id: str) -> None:
        self.supabase.table(CHALLENGES_TABLE).update({"is_active": False}).eq(
            "id", challenge_id
        ).execute()

    # Enrollments

    def get_enrollment(self, enrollment_id: str) -> Optional[Enrollment]:
        result = (
            self.supabase.table(ENROLLMENTS_TABLE)
            .select("*")
            .eq("id", enrollment_id)
            .maybe_single()
            .execute()
        )
        if not result or not result.data:
            return None
        return Enrollment.model_validate(result.data)

    def find_enrollment(self, user_id: str, challenge_id: str) -> Optional[Enrollment]:
        result = (
            self.supabase.table(ENROLLMENTS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .eq("challenge_id", challenge_id)
            .maybe_single()
            .execute()
        )
        if not result or not result.data:
            return None
        return Enrollment.model_validate(result.data)

    def list_user_enrollments(self, user_id: str) -> List[Enrollment]:
        result = (
            self.supabase.table(ENROLLMENTS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .eq("is_completed", False)
            .execute()
        )
        return [Enrollment.model_validate(row) for row in result.data or []]

    def list_challenge_enrollments(self, challenge_id: str) -> List[Enrollment]:
        enrollments: List[Enrollment] = []
        offset = 0
        while True:
            batch = (
                self.supabase.table(ENROLLMENTS_TABLE)
                .select("*")
                .eq("challenge_id", challenge_id)
                .order("joined_at")
                .range(offset, offset + PAGE_SIZE - 1)
                .execute()
            )
            rows = batch.data or []
            enrollments.extend(Enrollment.model_validate(row) for row in rows)
            if len(rows) < PAGE_SIZE:
                break
            offset += PAGE_SIZE
        return enrollments

    def count_challenge_enrollments(self, challenge_id: str) -> int:
        result = (
            self.supabase.table(ENROLLMENTS_TABLE)
            .select("id", count="exact")
            .eq("challenge_id", challenge_id)
            .execute()
        )
        if result.count is not None:
            return result.count
        return len(result.data or [])

    def create_enrollment(
        self, user_id: str, challenge_id: str, joined_at: datetime
    ) -> Enrollment:
        try:
            result = (
                self.supabase.table(ENROLLMENTS_TABLE)
                .insert(
                    {
                        "user_id": user_id,
                        "challenge_id": challenge_id,
                        "joined_at": joined_at.isoformat(),
                    }
                )
                .execute()
            )
        except Exception as e:
            if _is_duplicate_error(e):
                raise PreconditionError(
                    "Already joined this challenge",
                    {"user_id": user_id, "challenge_id": challenge_id},
                ) from e
            raise

        return Enrollment.model_validate(result.data[0])

    def update_enrollment(self, enrollment_id: str, fields: Dict[str, Any]) -> Enrollment:
        result = (
            self.supabase.table(ENROLLMENTS_TABLE)
            .update(_serialize(fields))
            .eq("id", enrollment_id)
            .execute()
        )
        if not result.data:
            raise NotFoundError("Enrollment not found", {"enrollment_id": enrollment_id})
        return Enrollment.model_validate(result.data[0])

    def delete_enrollment(self, enrollment_id: str) -> None:
        self.supabase.table(DAILY_PROGRESS_TABLE).delete().eq(
            "enrollment_id", enrollment_id
        ).execute()
        self.supabase.table(ENROLLMENTS_TABLE).delete().eq("id", enrollment_id).execute()

    # Daily progress entries

    def upsert_daily_entry(self, entry: DailyProgressEntry) -> None:
        self.supabase.table(DAILY_PROGRESS_TABLE).upsert(
            entry.model_dump(mode="json"), on_conflict="enrollment_id,date"
        ).execute()

    def list_daily_entries(self, enrollment_id: str) -> List[DailyProgressEntry]:
        result = (
            self.supabase.table(DAILY_PROGRESS_TABLE)
            .select("enrollment_id, date, daily_progress_value, percentage")
            .eq("enrollment_id", enrollment_id)
            .order("date")
            .execute()
        )
        return [DailyProgressEntry.model_validate(row) for row in result.data or []]

    # Health data

    def get_health_sample(self, user_id: str, day: date) -> Optional[HealthSample]:
        result = (
            self.supabase.table(HEALTH_DATA_TABLE)
            .select("user_id, date, steps, distance, active_minutes")
            .eq("user_id", user_id)
            .eq("date", day.isoformat())
            .maybe_single()
            .execute()
        )
        if not result or not result.data:
            return None
        return _health_sample_from_row(result.data)

    def list_health_samples(
        self, user_id: str, start_date: date, end_date: date
    ) -> List[HealthSample]:
        result = (
            self.supabase.table(HEALTH_DATA_TABLE)
            .select("user_id, date, steps, distance, active_minutes")
            .eq("user_id", user_id)
            .gte("date", start_date.isoformat())
            .lte("date", end_date.isoformat())
            .order("date")
            .execute()
        )
        return [_health_sample_from_row(row) for row in result.data or []]

    def health_totals_before(self, user_id: str, day: date) -> HistoryTotals:
        rows = 0
        steps = 0.0
        distance = 0.0
        offset = 0

        while True:
            batch = (
                self.supabase.table(HEALTH_DATA_TABLE)
                .select("steps, distance")
                .eq("user_id", user_id)
                .lt("date", day.isoformat())
                .order("date")
                .range(offset, offset + PAGE_SIZE - 1)
                .execute()
            )
            data = batch.data or []
            for row in data:
                steps += row.get("steps") or 0
                distance += row.get("distance") or 0
            rows += len(data)
            if len(data) < PAGE_SIZE:
                break
            offset += PAGE_SIZE

        return HistoryTotals(rows=rows, steps=steps, distance=distance)

    def get_user_totals(self, user_id: str) -> Optional[UserTotals]:
        result = (
            self.supabase.table(USERS_TABLE)
            .select("id, total_steps, total_distance")
            .eq("id", user_id)
            .maybe_single()
            .execute()
        )
        if not result or not result.data:
            return None
        return UserTotals(
            user_id=result.data["id"],
            total_steps=result.data.get("total_steps") or 0,
            total_distance=result.data.get("total_distance") or 0,
        )
