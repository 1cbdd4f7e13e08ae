"""
Unit tests for the (category, kind) progress rules.
"""

from datetime import datetime, timedelta, timezone

import pytest

from fitquest.models.challenge import (
    Challenge,
    ChallengeCategory,
    ChallengeKind,
    ChallengeType,
    Enrollment,
    HealthSample,
)
from fitquest.services.progress_rules import (
    BestDayRule,
    CumulativeRule,
    PeriodicRule,
    round_percentage,
    rule_for,
)
from tests.conftest import D1


def _challenge(**overrides) -> Challenge:
    fields = {
        "id": "c1",
        "category": ChallengeCategory.STEPS,
        "goal": 5000,
        "start_date": D1,
        "end_date": D1,
    }
    fields.update(overrides)
    return Challenge(**fields)


def _enrollment(**overrides) -> Enrollment:
    fields = {
        "id": "e1",
        "user_id": "u1",
        "challenge_id": "c1",
        "joined_at": datetime(2024, 3, 1, tzinfo=timezone.utc),
        "baseline_date": D1,
    }
    fields.update(overrides)
    return Enrollment(**fields)


def test_short_individual_challenge_is_periodic():
    challenge = _challenge(end_date=D1 + timedelta(days=6))
    assert challenge.duration_days == 7
    assert challenge.kind == ChallengeKind.PERIODIC
    assert isinstance(rule_for(challenge), PeriodicRule)


def test_long_or_group_challenge_is_cumulative():
    long_one = _challenge(end_date=D1 + timedelta(days=7))
    group = _challenge(type=ChallengeType.GROUP)

    assert long_one.kind == ChallengeKind.CUMULATIVE
    assert group.kind == ChallengeKind.CUMULATIVE
    assert isinstance(rule_for(long_one), CumulativeRule)
    assert isinstance(rule_for(group), CumulativeRule)


def test_explicit_duration_days_wins_over_window():
    challenge = _challenge(end_date=D1 + timedelta(days=2), duration_days=30)
    assert challenge.kind == ChallengeKind.CUMULATIVE


def test_long_time_challenge_keeps_the_best_day():
    challenge = _challenge(
        category=ChallengeCategory.TIME, end_date=D1 + timedelta(days=29)
    )
    rule = rule_for(challenge)
    sample = HealthSample(user_id="u1", date=D1, active_minutes=60)

    assert challenge.kind == ChallengeKind.CUMULATIVE
    assert isinstance(rule, BestDayRule)
    assert rule.kind == ChallengeKind.CUMULATIVE
    assert not rule.uses_running_total
    assert rule.compute_day_contribution(_enrollment(), sample) == 60
    assert rule.aggregate([60, 60]) == 60
    assert rule.aggregate([30, 45]) == 45


def test_short_time_challenge_sums_days():
    rule = rule_for(_challenge(category=ChallengeCategory.TIME))
    enrollment = _enrollment(baseline_active_minutes=10)
    sample = HealthSample(user_id="u1", date=D1, active_minutes=40)

    assert isinstance(rule, PeriodicRule)
    assert rule.kind == ChallengeKind.PERIODIC
    assert rule.compute_day_contribution(enrollment, sample) == 30
    assert rule.aggregate([30, 45]) == 75


def test_end_before_start_is_rejected():
    with pytest.raises(ValueError):
        _challenge(end_date=D1 - timedelta(days=1))


def test_periodic_contribution_subtracts_daily_baseline():
    rule = rule_for(_challenge())
    enrollment = _enrollment(baseline_steps=1000)

    sample = HealthSample(user_id="u1", date=D1, steps=6200)
    assert rule.compute_day_contribution(enrollment, sample) == 5200

    below = HealthSample(user_id="u1", date=D1, steps=400)
    assert rule.compute_day_contribution(enrollment, below) == 0


def test_cumulative_contribution_is_running_total_minus_baseline_total():
    rule = rule_for(
        _challenge(category=ChallengeCategory.DISTANCE, end_date=D1 + timedelta(days=29))
    )
    enrollment = _enrollment(baseline_total_distance=10000)
    sample = HealthSample(user_id="u1", date=D1 + timedelta(days=4), distance=5000)

    # 25000 stored before the day + 5000 today = 30000 lifetime
    assert rule.compute_day_contribution(enrollment, sample, prior_total=25000) == 20000
    assert rule.compute_day_contribution(enrollment, sample, prior_total=0) == 0


def test_aggregates():
    cumulative = rule_for(_challenge(end_date=D1 + timedelta(days=29)))
    periodic = rule_for(_challenge())

    assert cumulative.aggregate([1000, 5000, 3000]) == 5000
    assert cumulative.aggregate([]) == 0
    assert periodic.aggregate([1000, 5000, 3000]) == 9000
    assert periodic.aggregate([]) == 0


@pytest.mark.parametrize(
    "value, goal, expected",
    [
        (20000, 42200, 47.39),
        (6200, 5000, 100.0),
        (0, 5000, 0.0),
        (1, 3, 33.33),
    ],
)
def test_round_percentage_clamps_and_rounds(value, goal, expected):
    assert round_percentage(value, goal) == expected
