"""
Challenge Progress Engine

Single entry point for the progress core. Celery tasks, scripts and the
excluded HTTP layer call these methods:

- on_health_sample: a synced day for one user -> progress updater
- on_enrollment_created: baseline capture for a freshly created enrollment
- run_scheduled_maintenance: rankings, reward sweep, expiry finalization
- reconcile: replay a user's stored samples over a date range

Newly completed enrollments are ranked right away when the challenge is small
enough, then handed to the reward trigger. No lock is held during the
external reward and notification calls.
"""

from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from fitquest.core.cache import get_redis_client
from fitquest.core.config import settings
from fitquest.core.locks import get_lock_manager
from fitquest.core.time_utils import parse_date
from fitquest.models.challenge import (
    ChallengeProgressStats,
    Enrollment,
    HealthSample,
)
from fitquest.repositories.memory_store import InMemoryProgressStore
from fitquest.repositories.supabase_store import SupabaseProgressStore
from fitquest.services.baseline_service import BaselineService
from fitquest.services.challenge_catalog import ChallengeCatalog
from fitquest.services.enrollment_service import EnrollmentService
from fitquest.services.logger import logger
from fitquest.services.maintenance_service import MaintenanceService
from fitquest.services.notifier import ExpoNotifier, LogNotifier
from fitquest.services.progress_service import EnrollmentUpdate, ProgressService
from fitquest.services.ranking_service import RankingService
from fitquest.services.reconciler import Reconciler
from fitquest.services.reward_service import RewardService
from fitquest.services.rewards_ledger import (
    HttpRewardsLedger,
    InMemoryRewardsLedger,
    SupabaseRewardsLedger,
)


class ChallengeProgressEngine:
    def __init__(
        self,
        store,
        ledger,
        notifier,
        lock_manager,
        redis_client=None,
        today: Optional[Callable[[], date]] = None,
        now: Optional[Callable[[], datetime]] = None,
        sync_ranking_max_participants: Optional[int] = None,
    ):
        self.store = store
        self.catalog = ChallengeCatalog(store, redis_client)
        self.baseline = BaselineService(store, self.catalog, today=today)
        self.progress = ProgressService(store, self.catalog, lock_manager, now=now)
        self.ranking = RankingService(store, lock_manager)
        self.rewards = RewardService(store, self.catalog, ledger, notifier, now=now)
        self.reconciler = Reconciler(store, self.catalog, self.progress, today=today)
        self.maintenance = MaintenanceService(
            store, self.catalog, self.ranking, self.rewards, today=today
        )
        self.enrollments = EnrollmentService(
            store, self.catalog, self.baseline, notifier, today=today, now=now
        )
        self.sync_ranking_max_participants = (
            sync_ranking_max_participants
            if sync_ranking_max_participants is not None
            else int(settings.SYNC_RANKING_MAX_PARTICIPANTS)
        )

    # Inputs

    def on_health_sample(
        self,
        user_id: str,
        date: Union[date, str],
        steps: float = 0,
        distance: float = 0,
        active_minutes: float = 0,
    ) -> List[EnrollmentUpdate]:
        sample = HealthSample(
            user_id=user_id,
            date=parse_date(date),
            steps=steps or 0,
            distance=distance or 0,
            active_minutes=active_minutes or 0,
        )
        updates = self.progress.apply_sample(sample)
        self._handle_completions(updates)
        return updates

    def process_health_samples(self, samples: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
        """Batch of raw sample dicts; one bad sample never stops the batch."""
        processed = 0
        updated = 0
        errors = []

        for raw in samples:
            try:
                updates = self.on_health_sample(
                    raw["user_id"],
                    raw["date"],
                    steps=raw.get("steps", 0),
                    distance=raw.get("distance", 0),
                    active_minutes=raw.get("active_minutes", 0),
                )
                processed += 1
                updated += len(updates)
            except Exception as e:
                error_msg = f"Failed to process health sample for user {raw.get('user_id')}: {str(e)}"
                logger.error(error_msg, {"date": str(raw.get("date")), "error": str(e)})
                errors.append(error_msg)

        return {"processed": processed, "updated": updated, "errors": errors}

    def on_enrollment_created(self, user_id: str, challenge_id: str) -> Enrollment:
        return self.baseline.capture(user_id, challenge_id)

    def run_scheduled_maintenance(self) -> Dict[str, Any]:
        return self.maintenance.run_scheduled_maintenance()

    def finalize_expired_challenges(self) -> Dict[str, Any]:
        return self.maintenance.finalize_expired_challenges()

    def reconcile(
        self, user_id: str, start_date: Union[date, str], end_date: Union[date, str]
    ) -> List[EnrollmentUpdate]:
        updates = self.reconciler.reconcile(
            user_id, parse_date(start_date), parse_date(end_date)
        )
        self._handle_completions(updates)
        return updates

    def recalculate_enrollment(self, enrollment_id: str) -> List[EnrollmentUpdate]:
        updates = self.reconciler.recalculate_enrollment(enrollment_id)
        self._handle_completions(updates)
        return updates

    def sync_daily_progress(self, day: Optional[date] = None) -> Dict[str, Any]:
        result = self.reconciler.sync_daily_progress(day)
        updates = result.pop("updates")
        self._handle_completions(updates)
        result["updated"] = len(updates)
        return result

    # Enrollment workflow

    def join_challenge(self, user_id: str, challenge_id: str) -> Enrollment:
        return self.enrollments.join_challenge(user_id, challenge_id)

    def leave_challenge(self, user_id: str, challenge_id: str) -> None:
        self.enrollments.leave_challenge(user_id, challenge_id)

    def get_challenge_progress_stats(self, challenge_id: str) -> ChallengeProgressStats:
        return self.enrollments.get_challenge_progress_stats(challenge_id)

    def _handle_completions(self, updates: List[EnrollmentUpdate]) -> None:
        completed = [u for u in updates if u.newly_completed]
        if not completed:
            return

        ranked_challenges = set()
        for update in completed:
            challenge = update.challenge
            try:
                if challenge.id not in ranked_challenges:
                    participants = self.store.count_challenge_enrollments(challenge.id)
                    if participants <= self.sync_ranking_max_participants:
                        self.ranking.update_rankings(challenge.id)
                    ranked_challenges.add(challenge.id)

                self.rewards.process_completion(update.enrollment.id, challenge)
            except Exception as e:
                # The scheduled sweep picks this enrollment up again
                logger.error(
                    f"Completion handling failed for enrollment {update.enrollment.id}: {str(e)}",
                    {"challenge_id": challenge.id, "error": str(e)},
                )


_engine: Optional[ChallengeProgressEngine] = None


def build_engine() -> ChallengeProgressEngine:
    """Wire the engine from settings (STORAGE_BACKEND, REWARDS_LEDGER_URL)."""
    if settings.STORAGE_BACKEND == "memory":
        return ChallengeProgressEngine(
            store=InMemoryProgressStore(),
            ledger=InMemoryRewardsLedger(),
            notifier=LogNotifier(),
            lock_manager=get_lock_manager(),
        )

    if settings.REWARDS_LEDGER_URL:
        ledger = HttpRewardsLedger()
    else:
        ledger = SupabaseRewardsLedger()

    return ChallengeProgressEngine(
        store=SupabaseProgressStore(),
        ledger=ledger,
        notifier=ExpoNotifier(),
        lock_manager=get_lock_manager(),
        redis_client=get_redis_client(),
    )


def get_engine() -> ChallengeProgressEngine:
    global _engine

    if _engine is None:
        _engine = build_engine()

    return _engine
