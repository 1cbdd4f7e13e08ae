"""
Pytest configuration and fixtures for the challenge progress tests.

Tests run against the in-memory store, process-local locks and mocked
ledger/notifier. Integration tests against a real Supabase project are
skipped unless SUPABASE_URL and SUPABASE_SERVICE_KEY are set.
"""

import os

os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import date, datetime, time, timedelta, timezone
from typing import Callable
from unittest.mock import MagicMock

import pytest

from fitquest.core.celery_app import celery_app
from fitquest.core.locks import LocalLockManager
from fitquest.models.challenge import (
    Challenge,
    ChallengeCategory,
    ChallengeType,
    HealthSample,
)
from fitquest.repositories.memory_store import InMemoryProgressStore
from fitquest.services.challenge_engine import ChallengeProgressEngine


def _supabase_configured() -> bool:
    """Check if Supabase is configured for integration tests."""
    return bool(os.getenv("SUPABASE_URL") and os.getenv("SUPABASE_SERVICE_KEY"))


requires_supabase = pytest.mark.skipif(
    not _supabase_configured(),
    reason="SUPABASE_URL and SUPABASE_SERVICE_KEY required for integration tests",
)


# Day 1 of most test challenges
D1 = date(2024, 3, 1)


class FakeClock:
    """Controllable 'today' / 'now' for baseline, expiry and completion times."""

    def __init__(self, today: date):
        self.current = today

    def today(self) -> date:
        return self.current

    def now(self) -> datetime:
        return datetime.combine(self.current, time(12, 0), tzinfo=timezone.utc)

    def advance(self, days: int = 1) -> None:
        self.current = self.current + timedelta(days=days)


@pytest.fixture(autouse=True)
def eager_celery():
    celery_app.conf.task_always_eager = True
    celery_app.conf.task_eager_propagates = True
    yield
    celery_app.conf.task_always_eager = False
    celery_app.conf.task_eager_propagates = False


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(D1)


@pytest.fixture
def store() -> InMemoryProgressStore:
    return InMemoryProgressStore()


@pytest.fixture
def locks() -> LocalLockManager:
    return LocalLockManager(wait_seconds=1)


@pytest.fixture
def ledger() -> MagicMock:
    return MagicMock(name="rewards_ledger")


@pytest.fixture
def notifier() -> MagicMock:
    return MagicMock(name="notifier")


@pytest.fixture
def engine(store, ledger, notifier, locks, clock) -> ChallengeProgressEngine:
    return ChallengeProgressEngine(
        store=store,
        ledger=ledger,
        notifier=notifier,
        lock_manager=locks,
        today=clock.today,
        now=clock.now,
    )


@pytest.fixture
def make_challenge(store) -> Callable[..., Challenge]:
    """Add a challenge to the store. Defaults: 30-day individual steps challenge."""

    def _make(**overrides) -> Challenge:
        fields = {
            "id": "challenge-1",
            "title": "Spring Steps",
            "category": ChallengeCategory.STEPS,
            "type": ChallengeType.INDIVIDUAL,
            "goal": 100000,
            "start_date": D1,
            "end_date": D1 + timedelta(days=29),
        }
        fields.update(overrides)
        return store.add_challenge(Challenge(**fields))

    return _make


@pytest.fixture
def deliver(store, engine) -> Callable[..., list]:
    """Store a sample (as the ingestion layer does), then emit the event."""

    def _deliver(user_id: str, day: date, steps=0, distance=0, active_minutes=0):
        store.record_health_sample(
            HealthSample(
                user_id=user_id,
                date=day,
                steps=steps,
                distance=distance,
                active_minutes=active_minutes,
            )
        )
        return engine.on_health_sample(
            user_id, day, steps=steps, distance=distance, active_minutes=active_minutes
        )

    return _deliver


def notify_calls(notifier: MagicMock, kind: str) -> list:
    return [c for c in notifier.notify.call_args_list if c.kwargs.get("kind") == kind]
