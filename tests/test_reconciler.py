"""
Tests for retroactive reconciliation and the daily progress sync.
"""

from datetime import timedelta

import pytest

from fitquest.core.exceptions import NotFoundError, PreconditionError
from fitquest.core.locks import LocalLockManager
from fitquest.models.challenge import (
    Challenge,
    ChallengeCategory,
    DailyProgressEntry,
    HealthSample,
)
from fitquest.repositories.memory_store import InMemoryProgressStore
from fitquest.services.challenge_engine import ChallengeProgressEngine
from tests.conftest import D1, FakeClock


STEPS = [4200, 8100, 0, 12000, 6500, 3000, 9900, 7700, 5100, 10400]


def _setup():
    clock = FakeClock(D1)
    store = InMemoryProgressStore()
    engine = ChallengeProgressEngine(
        store=store,
        ledger=None,
        notifier=None,
        lock_manager=LocalLockManager(wait_seconds=1),
        today=clock.today,
        now=clock.now,
    )
    store.add_challenge(
        Challenge(
            id="month",
            title="Step Month",
            category=ChallengeCategory.STEPS,
            goal=500000,
            start_date=D1,
            end_date=D1 + timedelta(days=29),
        )
    )
    store.record_health_sample(
        HealthSample(user_id="u1", date=D1 - timedelta(days=1), steps=7000)
    )
    return clock, store, engine


def _state(store, enrollment_id):
    enrollment = store.get_enrollment(enrollment_id)
    return (
        enrollment.current_progress,
        enrollment.completion_percentage,
        enrollment.is_completed,
        [(e.date, e.daily_progress_value) for e in store.list_daily_entries(enrollment_id)],
    )


def test_reconcile_matches_live_delivery():
    live_clock, live_store, live = _setup()
    live_enrollment = live.join_challenge("u1", "month")
    for offset, steps in enumerate(STEPS):
        day = D1 + timedelta(days=offset)
        live_clock.current = day
        live_store.record_health_sample(HealthSample(user_id="u1", date=day, steps=steps))
        live.on_health_sample("u1", day, steps=steps)

    # Samples stored while no event was ever emitted
    late_clock, late_store, late = _setup()
    late_enrollment = late.join_challenge("u1", "month")
    for offset, steps in enumerate(STEPS):
        late_store.record_health_sample(
            HealthSample(user_id="u1", date=D1 + timedelta(days=offset), steps=steps)
        )
    late_clock.current = D1 + timedelta(days=len(STEPS))
    late.reconcile("u1", D1, D1 + timedelta(days=len(STEPS) - 1))

    expected = _state(live_store, live_enrollment.id)
    assert expected[0] == sum(STEPS)
    assert _state(late_store, late_enrollment.id) == expected

    # Reconciling again is a no-op
    late.reconcile("u1", D1.isoformat(), (D1 + timedelta(days=9)).isoformat())
    assert _state(late_store, late_enrollment.id) == expected


def test_reconcile_rejects_inverted_range(engine):
    with pytest.raises(PreconditionError):
        engine.reconcile("u1", D1, D1 - timedelta(days=1))


def test_recalculate_enrollment_replays_effective_window(engine, store, make_challenge, clock):
    make_challenge(id="sprint", goal=50000, end_date=D1 + timedelta(days=4))
    enrollment = engine.join_challenge("u1", "sprint")
    for offset, steps in enumerate([3000, 4000, 5000, 6000]):
        store.record_health_sample(
            HealthSample(user_id="u1", date=D1 + timedelta(days=offset), steps=steps)
        )
    clock.current = D1 + timedelta(days=2)

    updates = engine.recalculate_enrollment(enrollment.id)

    # Samples after today are not replayed
    assert len(updates) == 3
    assert store.get_enrollment(enrollment.id).current_progress == 12000


def test_recalculate_without_samples_rederives_aggregate(engine, store, make_challenge):
    make_challenge(id="sprint", goal=10000, end_date=D1 + timedelta(days=4))
    enrollment = engine.join_challenge("u1", "sprint")
    for offset, steps in enumerate([3000, 4500]):
        store.upsert_daily_entry(
            DailyProgressEntry(
                enrollment_id=enrollment.id,
                date=D1 + timedelta(days=offset),
                daily_progress_value=steps,
                percentage=steps / 100,
            )
        )
    store.update_enrollment(enrollment.id, {"current_progress": 999})

    updates = engine.recalculate_enrollment(enrollment.id)

    assert len(updates) == 1
    stored = store.get_enrollment(enrollment.id)
    assert stored.current_progress == 7500
    assert stored.completion_percentage == 75
    assert not stored.is_completed


def test_recalculate_unknown_enrollment(engine):
    with pytest.raises(NotFoundError):
        engine.recalculate_enrollment("missing")


def test_recalculate_requires_baseline(engine, store, make_challenge, clock):
    make_challenge()
    enrollment = store.create_enrollment("u1", "challenge-1", clock.now())

    with pytest.raises(PreconditionError):
        engine.recalculate_enrollment(enrollment.id)


def test_sync_daily_progress_replays_yesterday(engine, store, make_challenge, clock, ledger):
    make_challenge(id="sprint", goal=5000, end_date=D1 + timedelta(days=4))
    first = engine.join_challenge("u1", "sprint")
    second = engine.join_challenge("u2", "sprint")
    store.record_health_sample(HealthSample(user_id="u1", date=D1, steps=6000))
    store.record_health_sample(HealthSample(user_id="u2", date=D1, steps=1200))
    clock.advance()

    result = engine.sync_daily_progress()

    assert result == {
        "date": D1.isoformat(),
        "challenges": 1,
        "synced": 2,
        "errors": [],
        "updated": 2,
    }
    assert store.get_enrollment(first.id).is_completed
    assert store.get_enrollment(second.id).current_progress == 1200
    ledger.credit.assert_called_once()

    # Completed enrollments are left alone on the next run
    again = engine.sync_daily_progress(D1)
    assert again["synced"] == 1
    ledger.credit.assert_called_once()


def test_sync_daily_progress_skips_challenges_not_running(engine, store, make_challenge, clock):
    make_challenge(id="later", start_date=D1 + timedelta(days=10), end_date=D1 + timedelta(days=20))
    clock.advance()

    result = engine.sync_daily_progress()

    assert result["challenges"] == 0
    assert result["synced"] == 0
