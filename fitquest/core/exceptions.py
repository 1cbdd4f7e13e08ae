"""
Error taxonomy for the challenge progress core.

Caller-facing operations raise these; per-user event processing and
scheduled jobs catch them, log with context and move on to the next item.
"""

from typing import Any, Dict, Optional


class ChallengeProgressError(Exception):
    """Base class for all challenge progress errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class NotFoundError(ChallengeProgressError):
    """Challenge, user or enrollment does not exist. Nothing was mutated."""


class PreconditionError(ChallengeProgressError):
    """Operation rejected cleanly (already enrolled, challenge full, ended...)."""


class ExternalDependencyError(ChallengeProgressError):
    """Rewards ledger or notifier could not be reached."""


class LockTimeoutError(ChallengeProgressError):
    """Could not acquire a per-enrollment or per-challenge lock in time."""
