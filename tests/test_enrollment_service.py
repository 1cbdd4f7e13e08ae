"""
Tests for joining and leaving challenges and for per-challenge stats.
"""

from datetime import timedelta

import pytest

from fitquest.core.exceptions import NotFoundError, PreconditionError
from tests.conftest import D1, notify_calls


def test_join_creates_enrollment_with_baseline(engine, store, make_challenge, notifier):
    make_challenge()

    enrollment = engine.join_challenge("u1", "challenge-1")

    assert enrollment.user_id == "u1"
    assert enrollment.has_baseline
    assert store.find_enrollment("u1", "challenge-1").id == enrollment.id
    joined = notify_calls(notifier, "challenge_joined")
    assert len(joined) == 1
    assert joined[0].kwargs["payload"]["challenge_title"] == "Spring Steps"


def test_join_unknown_challenge(engine):
    with pytest.raises(NotFoundError):
        engine.join_challenge("u1", "missing")


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"is_active": False}, "not active"),
        ({"start_date": D1 - timedelta(days=10), "end_date": D1 - timedelta(days=1)}, "ended"),
    ],
)
def test_join_rejects_closed_challenges(engine, make_challenge, overrides, message):
    make_challenge(**overrides)

    with pytest.raises(PreconditionError) as exc_info:
        engine.join_challenge("u1", "challenge-1")

    assert message in exc_info.value.message


def test_join_twice_is_rejected(engine, make_challenge):
    make_challenge()
    engine.join_challenge("u1", "challenge-1")

    with pytest.raises(PreconditionError):
        engine.join_challenge("u1", "challenge-1")


def test_join_full_challenge_is_rejected(engine, make_challenge):
    make_challenge(max_participants=2)
    engine.join_challenge("u1", "challenge-1")
    engine.join_challenge("u2", "challenge-1")

    with pytest.raises(PreconditionError) as exc_info:
        engine.join_challenge("u3", "challenge-1")

    assert exc_info.value.context["max_participants"] == 2


def test_join_survives_baseline_failure(engine, store, make_challenge, monkeypatch):
    make_challenge()

    def boom(user_id, challenge_id):
        raise RuntimeError("health history unavailable")

    monkeypatch.setattr(engine.baseline, "capture", boom)

    enrollment = engine.join_challenge("u1", "challenge-1")

    assert not enrollment.has_baseline
    assert store.find_enrollment("u1", "challenge-1") is not None


def test_join_survives_notification_failure(engine, make_challenge, notifier):
    make_challenge()
    notifier.notify.side_effect = RuntimeError("push down")

    assert engine.join_challenge("u1", "challenge-1").has_baseline


def test_leave_deletes_enrollment_and_entries(engine, store, make_challenge, deliver):
    make_challenge()
    enrollment = engine.join_challenge("u1", "challenge-1")
    deliver("u1", D1, steps=4000)
    assert store.list_daily_entries(enrollment.id)

    engine.leave_challenge("u1", "challenge-1")

    assert store.find_enrollment("u1", "challenge-1") is None
    assert store.list_daily_entries(enrollment.id) == []


def test_leave_without_enrollment(engine, make_challenge):
    make_challenge()

    with pytest.raises(NotFoundError):
        engine.leave_challenge("u1", "challenge-1")


def test_leave_completed_challenge_is_rejected(engine, store, make_challenge, deliver):
    make_challenge(goal=5000, end_date=D1)
    engine.join_challenge("u1", "challenge-1")
    deliver("u1", D1, steps=5000)

    with pytest.raises(PreconditionError):
        engine.leave_challenge("u1", "challenge-1")

    assert store.find_enrollment("u1", "challenge-1").is_completed


def test_challenge_progress_stats(engine, make_challenge, deliver):
    make_challenge(goal=10000, end_date=D1 + timedelta(days=2))
    for user_id in ("u1", "u2", "u3"):
        engine.join_challenge(user_id, "challenge-1")
    deliver("u1", D1, steps=10000)
    deliver("u2", D1, steps=2500)

    stats = engine.get_challenge_progress_stats("challenge-1")

    assert stats.total_participants == 3
    assert stats.completed_count == 1
    assert stats.completion_rate == 33.33
    assert stats.average_progress == 41.67
    assert stats.highest_progress == 10000


def test_stats_for_empty_challenge(engine, make_challenge):
    make_challenge()

    stats = engine.get_challenge_progress_stats("challenge-1")

    assert stats.total_participants == 0
    assert stats.completion_rate == 0
