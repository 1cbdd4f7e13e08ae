"""
Tests for baseline capture at enrollment time.
"""

from datetime import timedelta

import pytest

from fitquest.core.exceptions import NotFoundError
from fitquest.models.challenge import ChallengeCategory, HealthSample, UserTotals
from tests.conftest import D1


def _sample(day, **values):
    return HealthSample(user_id="u1", date=day, **values)


def test_cumulative_baseline_sums_history_before_start(engine, store, make_challenge, clock):
    make_challenge()
    store.record_health_sample(_sample(D1 - timedelta(days=2), steps=4000, distance=3000))
    store.record_health_sample(_sample(D1 - timedelta(days=1), steps=6000, distance=2000))
    # Same-day sample is not part of the baseline
    store.record_health_sample(_sample(D1, steps=9999, distance=9999))
    store.set_user_totals(UserTotals(user_id="u1", total_steps=1, total_distance=1))
    clock.current = D1 + timedelta(days=3)

    store.create_enrollment("u1", "challenge-1", clock.now())
    enrollment = engine.on_enrollment_created("u1", "challenge-1")

    assert enrollment.baseline_date == D1
    assert enrollment.baseline_total_steps == 10000
    assert enrollment.baseline_total_distance == 5000
    assert enrollment.baseline_steps == 0
    assert enrollment.baseline_active_minutes == 0


def test_future_challenge_uses_today_as_baseline_date(engine, store, make_challenge, clock):
    make_challenge(start_date=D1 + timedelta(days=5), end_date=D1 + timedelta(days=40))
    store.record_health_sample(_sample(D1 - timedelta(days=1), steps=3000))

    store.create_enrollment("u1", "challenge-1", clock.now())
    enrollment = engine.on_enrollment_created("u1", "challenge-1")

    assert enrollment.baseline_date == D1
    assert enrollment.baseline_total_steps == 3000


def test_cumulative_baseline_falls_back_to_lifetime_counters(engine, store, make_challenge, clock):
    make_challenge()
    store.set_user_totals(UserTotals(user_id="u1", total_steps=250000, total_distance=180000))

    store.create_enrollment("u1", "challenge-1", clock.now())
    enrollment = engine.on_enrollment_created("u1", "challenge-1")

    assert enrollment.baseline_total_steps == 250000
    assert enrollment.baseline_total_distance == 180000


def test_missing_user_totals_are_zero_counters(engine, store, make_challenge, clock):
    make_challenge()

    store.create_enrollment("u1", "challenge-1", clock.now())
    enrollment = engine.on_enrollment_created("u1", "challenge-1")

    assert enrollment.has_baseline
    assert enrollment.baseline_total_steps == 0
    assert enrollment.baseline_total_distance == 0


def test_periodic_baseline_uses_sample_on_baseline_date(engine, store, make_challenge, clock):
    make_challenge(
        category=ChallengeCategory.TIME, goal=60, end_date=D1 + timedelta(days=2)
    )
    store.record_health_sample(_sample(D1, steps=3000, distance=2500, active_minutes=20))
    store.set_user_totals(UserTotals(user_id="u1", total_steps=90000, total_distance=70000))

    store.create_enrollment("u1", "challenge-1", clock.now())
    enrollment = engine.on_enrollment_created("u1", "challenge-1")

    assert enrollment.baseline_date == D1
    assert enrollment.baseline_steps == 3000
    assert enrollment.baseline_distance == 2500
    assert enrollment.baseline_active_minutes == 20
    # Reference only
    assert enrollment.baseline_total_steps == 90000


def test_periodic_baseline_without_sample_is_zero(engine, store, make_challenge, clock):
    make_challenge(end_date=D1)

    store.create_enrollment("u1", "challenge-1", clock.now())
    enrollment = engine.on_enrollment_created("u1", "challenge-1")

    assert enrollment.baseline_steps == 0
    assert enrollment.baseline_active_minutes == 0


def test_capture_without_enrollment_is_not_found(engine, make_challenge):
    make_challenge()

    with pytest.raises(NotFoundError):
        engine.on_enrollment_created("u1", "challenge-1")


def test_capture_for_unknown_challenge_is_not_found(engine):
    with pytest.raises(NotFoundError):
        engine.on_enrollment_created("u1", "missing")
