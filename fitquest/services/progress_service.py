"""
Progress Updater

Applies one day's health sample to every open enrollment of the user:
1. Guard clauses (no baseline, date before start or baseline) skip the entry.
2. The day's contribution is computed by the challenge's ProgressRule and
   upserted as the (enrollment_id, date) DailyProgressEntry.
3. The aggregate is re-derived from all entries, never accumulated, so
   repeated and out-of-order delivery converge to the same state.

For cumulative challenges each entry holds a running total since baseline, so
processing a date also refreshes already-stored entries for later dates.

Steps 2-3 for one enrollment run under that enrollment's lock.
"""

from datetime import date, datetime
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel

from fitquest.core.locks import enrollment_lock_key
from fitquest.core.time_utils import utc_now
from fitquest.models.challenge import (
    Challenge,
    DailyProgressEntry,
    Enrollment,
    HealthSample,
)
from fitquest.services.logger import logger
from fitquest.services.progress_rules import ProgressRule, round_percentage, rule_for


class EnrollmentUpdate(BaseModel):
    enrollment: Enrollment
    challenge: Challenge
    newly_completed: bool = False


class ProgressService:
    def __init__(
        self,
        store,
        catalog,
        lock_manager,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.catalog = catalog
        self.locks = lock_manager
        self._now = now or utc_now

    def apply_sample(self, sample: HealthSample) -> List[EnrollmentUpdate]:
        """
        Run the sample through every open enrollment of its user.

        A failure for one enrollment is logged and does not stop the others.
        """
        updates: List[EnrollmentUpdate] = []

        for enrollment in self.store.list_user_enrollments(sample.user_id):
            try:
                challenge = self.catalog.find(enrollment.challenge_id)
                if challenge is None:
                    logger.warning(
                        f"Challenge {enrollment.challenge_id} missing for enrollment {enrollment.id}",
                        {"enrollment_id": enrollment.id},
                    )
                    continue
                if not challenge.is_active or not challenge.covers(sample.date):
                    continue

                update = self.update_enrollment(enrollment.id, challenge, sample)
                if update is not None:
                    updates.append(update)
            except Exception as e:
                logger.error(
                    f"Failed to apply health sample to enrollment {enrollment.id}: {str(e)}",
                    {
                        "user_id": sample.user_id,
                        "enrollment_id": enrollment.id,
                        "date": sample.date.isoformat(),
                        "error": str(e),
                    },
                )

        return updates

    def update_enrollment(
        self, enrollment_id: str, challenge: Challenge, sample: HealthSample
    ) -> Optional[EnrollmentUpdate]:
        """Upsert the day's entry and recompute the aggregate. None when skipped."""
        with self.locks.hold(enrollment_lock_key(enrollment_id)):
            enrollment = self.store.get_enrollment(enrollment_id)
            if enrollment is None:
                logger.warning(
                    f"Enrollment {enrollment_id} not found, skipping sample",
                    {"enrollment_id": enrollment_id},
                )
                return None

            if not self._passes_guards(enrollment, challenge, sample.date):
                return None

            rule = rule_for(challenge)
            if rule.uses_running_total:
                self._write_running_entries(enrollment, challenge, rule, sample)
            else:
                value = rule.compute_day_contribution(enrollment, sample)
                self._upsert_entry(enrollment.id, sample.date, value, challenge.goal)

            return self._recompute_aggregate(enrollment, challenge, rule)

    def recompute(self, enrollment_id: str, challenge: Challenge) -> Optional[EnrollmentUpdate]:
        """Re-derive the aggregate from stored entries without touching them."""
        with self.locks.hold(enrollment_lock_key(enrollment_id)):
            enrollment = self.store.get_enrollment(enrollment_id)
            if enrollment is None or enrollment.is_completed:
                return None
            return self._recompute_aggregate(enrollment, challenge, rule_for(challenge))

    def _passes_guards(
        self, enrollment: Enrollment, challenge: Challenge, day: date
    ) -> bool:
        context = {
            "enrollment_id": enrollment.id,
            "user_id": enrollment.user_id,
            "challenge_id": challenge.id,
            "date": day.isoformat(),
        }

        if enrollment.is_completed:
            return False

        if not enrollment.has_baseline:
            logger.info(f"Enrollment {enrollment.id} has no baseline, skipping", context)
            return False

        if day < challenge.start_date or day < enrollment.baseline_date:
            logger.info(
                f"Sample for {day} predates challenge start or baseline, skipping",
                {**context, "baseline_date": enrollment.baseline_date.isoformat()},
            )
            return False

        return True

    def _upsert_entry(
        self, enrollment_id: str, day: date, value: float, goal: float
    ) -> DailyProgressEntry:
        entry = DailyProgressEntry(
            enrollment_id=enrollment_id,
            date=day,
            daily_progress_value=value,
            percentage=round_percentage(value, goal),
        )
        self.store.upsert_daily_entry(entry)
        return entry

    def _write_running_entries(
        self,
        enrollment: Enrollment,
        challenge: Challenge,
        rule: ProgressRule,
        sample: HealthSample,
    ) -> None:
        """Upsert the sample's date and refresh stored entries dated after it."""
        field = rule.sample_field
        history = self.store.health_totals_before(enrollment.user_id, sample.date)
        prior_total = getattr(history, field)

        value = rule.compute_day_contribution(enrollment, sample, prior_total)
        self._upsert_entry(enrollment.id, sample.date, value, challenge.goal)

        later_entries = [
            e for e in self.store.list_daily_entries(enrollment.id) if e.date > sample.date
        ]
        if not later_entries:
            return

        # Day values after the sample date, with the event value winning for its own date
        day_values: Dict[date, float] = {
            s.date: getattr(s, field)
            for s in self.store.list_health_samples(
                enrollment.user_id, sample.date, later_entries[-1].date
            )
        }
        day_values[sample.date] = getattr(sample, field)

        running_total = prior_total
        refresh_dates = {e.date for e in later_entries}
        for day in sorted(day_values):
            running_total += day_values[day]
            if day not in refresh_dates:
                continue
            day_sample = HealthSample(user_id=enrollment.user_id, date=day)
            refreshed = rule.compute_day_contribution(
                enrollment, day_sample, running_total
            )
            self._upsert_entry(enrollment.id, day, refreshed, challenge.goal)

    def _recompute_aggregate(
        self, enrollment: Enrollment, challenge: Challenge, rule: ProgressRule
    ) -> EnrollmentUpdate:
        entries = self.store.list_daily_entries(enrollment.id)
        current_progress = rule.aggregate(e.daily_progress_value for e in entries)
        completion_percentage = round_percentage(current_progress, challenge.goal)
        is_completed = completion_percentage >= 100

        fields = {
            "current_progress": current_progress,
            "completion_percentage": completion_percentage,
            "is_completed": is_completed,
        }

        newly_completed = is_completed and not enrollment.is_completed
        if newly_completed:
            fields["completed_at"] = self._now()

        updated = self.store.update_enrollment(enrollment.id, fields)

        if newly_completed:
            logger.info(
                f"Enrollment {enrollment.id} completed challenge {challenge.id}",
                {"user_id": enrollment.user_id, "current_progress": current_progress},
            )

        return EnrollmentUpdate(
            enrollment=updated, challenge=challenge, newly_completed=newly_completed
        )
