"""
Ranking Engine

Ranks every participant of a challenge by current_progress (desc), earlier
joiners first on ties, enrollment id as the final tie-break. The ordering is a
pure function over a snapshot; the write-back runs under the challenge lock so
two ranking passes for one challenge never interleave.
"""

from typing import Dict, List

from fitquest.core.locks import challenge_lock_key
from fitquest.models.challenge import Enrollment
from fitquest.services.logger import logger


def rank_enrollments(enrollments: List[Enrollment]) -> List[Enrollment]:
    """Return a new snapshot with rank = 1..N assigned."""
    ordered = sorted(
        enrollments, key=lambda e: (-e.current_progress, e.joined_at, e.id)
    )
    return [
        enrollment.model_copy(update={"rank": rank})
        for rank, enrollment in enumerate(ordered, start=1)
    ]


class RankingService:
    def __init__(self, store, lock_manager):
        self.store = store
        self.locks = lock_manager

    def update_rankings(self, challenge_id: str) -> List[Enrollment]:
        """Recompute ranks for a challenge and persist the ones that changed."""
        with self.locks.hold(challenge_lock_key(challenge_id)):
            snapshot = self.store.list_challenge_enrollments(challenge_id)
            if not snapshot:
                return []

            previous: Dict[str, int] = {e.id: e.rank for e in snapshot}
            ranked = rank_enrollments(snapshot)

            changed = 0
            for enrollment in ranked:
                if previous.get(enrollment.id) != enrollment.rank:
                    self.store.update_enrollment(enrollment.id, {"rank": enrollment.rank})
                    changed += 1

        logger.info(
            f"Updated rankings for challenge {challenge_id}",
            {
                "challenge_id": challenge_id,
                "entries_count": len(ranked),
                "changed": changed,
            },
        )
        return ranked
