"""
Progress Rules

One rule per (category, kind) pair decides:
- how much a single day contributes to an enrollment (baseline-adjusted)
- how the per-day entries fold into the enrollment's current_progress

Cumulative rules measure a running total since the baseline and keep the
largest entry. Periodic rules measure each day against the daily baseline and
sum the days. Time has no lifetime counter, so a long Time challenge measures
each day on its own and keeps the best day.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, Tuple

from fitquest.models.challenge import (
    Challenge,
    ChallengeCategory,
    ChallengeKind,
    Enrollment,
    HealthSample,
)


def round_percentage(value: float, goal: float) -> float:
    """min(100, value / goal * 100), two decimals."""
    if goal <= 0:
        return 0.0
    return round(min(100.0, max(0.0, value / goal * 100)), 2)


class ProgressRule(ABC):
    category: ChallengeCategory
    kind: ChallengeKind

    # Field names for the metric this rule measures
    sample_field: str
    baseline_daily_field: str
    baseline_total_field: str

    @abstractmethod
    def compute_day_contribution(
        self, enrollment: Enrollment, sample: HealthSample, prior_total: float = 0
    ) -> float:
        """Baseline-adjusted value for the sample's date (never negative)."""

    @abstractmethod
    def aggregate(self, values: Iterable[float]) -> float:
        """Fold per-day entry values into current_progress."""

    @property
    def uses_running_total(self) -> bool:
        return self.kind == ChallengeKind.CUMULATIVE

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.category.value}/{self.kind.value}>"


class CumulativeRule(ProgressRule):
    kind = ChallengeKind.CUMULATIVE

    def __init__(self, category: ChallengeCategory, sample_field: str, total_field: str):
        self.category = category
        self.sample_field = sample_field
        self.baseline_daily_field = f"baseline_{sample_field}"
        self.baseline_total_field = total_field

    def compute_day_contribution(
        self, enrollment: Enrollment, sample: HealthSample, prior_total: float = 0
    ) -> float:
        # prior_total: the user's stored total for every date before sample.date
        current_total = prior_total + getattr(sample, self.sample_field)
        baseline_total = getattr(enrollment, self.baseline_total_field)
        return max(0.0, current_total - baseline_total)

    def aggregate(self, values: Iterable[float]) -> float:
        return max(values, default=0.0)


class PeriodicRule(ProgressRule):
    kind = ChallengeKind.PERIODIC

    def __init__(self, category: ChallengeCategory, sample_field: str):
        self.category = category
        self.sample_field = sample_field
        self.baseline_daily_field = f"baseline_{sample_field}"
        self.baseline_total_field = ""

    def compute_day_contribution(
        self, enrollment: Enrollment, sample: HealthSample, prior_total: float = 0
    ) -> float:
        value = getattr(sample, self.sample_field)
        baseline = getattr(enrollment, self.baseline_daily_field)
        return max(0.0, value - baseline)

    def aggregate(self, values: Iterable[float]) -> float:
        return sum(values, 0.0)


class BestDayRule(PeriodicRule):
    """Per-day contribution like PeriodicRule, aggregated by max."""

    kind = ChallengeKind.CUMULATIVE

    @property
    def uses_running_total(self) -> bool:
        return False

    def aggregate(self, values: Iterable[float]) -> float:
        return max(values, default=0.0)


PROGRESS_RULES: Dict[Tuple[ChallengeCategory, ChallengeKind], ProgressRule] = {
    (ChallengeCategory.STEPS, ChallengeKind.CUMULATIVE): CumulativeRule(
        ChallengeCategory.STEPS, "steps", "baseline_total_steps"
    ),
    (ChallengeCategory.STEPS, ChallengeKind.PERIODIC): PeriodicRule(
        ChallengeCategory.STEPS, "steps"
    ),
    (ChallengeCategory.DISTANCE, ChallengeKind.CUMULATIVE): CumulativeRule(
        ChallengeCategory.DISTANCE, "distance", "baseline_total_distance"
    ),
    (ChallengeCategory.DISTANCE, ChallengeKind.PERIODIC): PeriodicRule(
        ChallengeCategory.DISTANCE, "distance"
    ),
    (ChallengeCategory.TIME, ChallengeKind.CUMULATIVE): BestDayRule(
        ChallengeCategory.TIME, "active_minutes"
    ),
    (ChallengeCategory.TIME, ChallengeKind.PERIODIC): PeriodicRule(
        ChallengeCategory.TIME, "active_minutes"
    ),
}


def rule_for(challenge: Challenge) -> ProgressRule:
    return PROGRESS_RULES[(challenge.category, challenge.kind)]
