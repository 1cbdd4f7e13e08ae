"""
Scheduled challenge maintenance.

- Every active challenge: update rankings, then sweep missing reward steps.
- Expired challenges (end_date < today, still active): rank once more, sweep
  once more, then deactivate. Deactivation is terminal.

A failure for one challenge is logged and the job moves on to the next one.
"""

from datetime import date
from typing import Any, Callable, Dict, Optional

from fitquest.core.time_utils import challenge_today
from fitquest.models.challenge import Challenge
from fitquest.services.logger import logger


class MaintenanceService:
    def __init__(
        self,
        store,
        catalog,
        ranking,
        rewards,
        today: Optional[Callable[[], date]] = None,
    ):
        self.store = store
        self.catalog = catalog
        self.ranking = ranking
        self.rewards = rewards
        self._today = today or challenge_today

    def refresh_challenge(self, challenge_id: str) -> Dict[str, Any]:
        ranked = self.ranking.update_rankings(challenge_id)
        sweep = self.rewards.sweep(challenge_id)
        return {"ranked": len(ranked), **sweep}

    def update_rankings_and_completions(self) -> Dict[str, Any]:
        today = self._today()
        challenges = [
            c for c in self.store.list_active_challenges() if c.end_date >= today
        ]

        processed = 0
        errors = []
        for challenge in challenges:
            try:
                result = self.refresh_challenge(challenge.id)
                errors.extend(result["errors"])
                processed += 1
            except Exception as e:
                error_msg = f"Failed to update challenge {challenge.id}: {str(e)}"
                logger.error(error_msg, {"challenge_id": challenge.id})
                errors.append(error_msg)

        return {"processed": processed, "errors": errors}

    def finalize_challenge(self, challenge: Challenge) -> None:
        self.refresh_challenge(challenge.id)
        self.store.deactivate_challenge(challenge.id)
        self.catalog.invalidate(challenge.id)
        logger.info(
            f"Finalized results for challenge: {challenge.title}",
            {"challenge_id": challenge.id, "end_date": challenge.end_date.isoformat()},
        )

    def finalize_expired_challenges(self) -> Dict[str, Any]:
        expired = self.store.list_expired_challenges(self._today())
        if not expired:
            return {"processed": 0, "errors": []}

        processed = 0
        errors = []
        for challenge in expired:
            try:
                self.finalize_challenge(challenge)
                processed += 1
            except Exception as e:
                error_msg = f"Failed to finalize challenge {challenge.id}: {str(e)}"
                logger.error(error_msg, {"challenge_id": challenge.id})
                errors.append(error_msg)

        return {"processed": processed, "errors": errors}

    def run_scheduled_maintenance(self) -> Dict[str, Any]:
        rankings = self.update_rankings_and_completions()
        expiry = self.finalize_expired_challenges()
        return {
            "challenges_updated": rankings["processed"],
            "challenges_finalized": expiry["processed"],
            "errors": rankings["errors"] + expiry["errors"],
        }
