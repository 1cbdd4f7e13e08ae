from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


CUMULATIVE_DURATION_THRESHOLD_DAYS = 7


class ChallengeCategory(str, Enum):
    STEPS = "Steps"
    DISTANCE = "Distance"
    TIME = "Time"


class ChallengeType(str, Enum):
    INDIVIDUAL = "Individual"
    GROUP = "Group"
    FRIENDS = "Friends"


class ChallengeDifficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class ChallengeKind(str, Enum):
    CUMULATIVE = "cumulative"
    PERIODIC = "periodic"


class Challenge(BaseModel):
    id: str
    title: str = "Challenge"
    description: Optional[str] = None
    category: ChallengeCategory
    type: ChallengeType = ChallengeType.INDIVIDUAL
    difficulty: Optional[ChallengeDifficulty] = None
    goal: float = Field(..., gt=0, description="Target in steps, meters or minutes")
    duration_days: Optional[int] = Field(None, ge=1)
    start_date: date
    end_date: date
    max_participants: Optional[int] = Field(None, ge=1)
    is_active: bool = True
    is_featured: bool = False

    @model_validator(mode="after")
    def _check_window(self) -> "Challenge":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        if self.duration_days is None:
            self.duration_days = (self.end_date - self.start_date).days + 1
        return self

    @property
    def kind(self) -> ChallengeKind:
        """Long (> 7 days) or group challenges measure delta-of-total."""
        if (
            self.duration_days > CUMULATIVE_DURATION_THRESHOLD_DAYS
            or self.type == ChallengeType.GROUP
        ):
            return ChallengeKind.CUMULATIVE
        return ChallengeKind.PERIODIC

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


class Enrollment(BaseModel):
    id: str
    user_id: str
    challenge_id: str
    joined_at: datetime

    # Baseline (null baseline_date -> not yet progressable)
    baseline_date: Optional[date] = None
    baseline_steps: float = 0
    baseline_distance: float = 0
    baseline_active_minutes: float = 0
    baseline_total_steps: float = 0
    baseline_total_distance: float = 0

    # Aggregate state
    current_progress: float = 0
    completion_percentage: float = Field(0, ge=0, le=100)
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    rank: Optional[int] = None

    # Reward bookkeeping
    points_earned: int = 0
    rewarded_at: Optional[datetime] = None
    notified_at: Optional[datetime] = None

    @property
    def has_baseline(self) -> bool:
        return self.baseline_date is not None

    @property
    def needs_reward_step(self) -> bool:
        return self.is_completed and (
            self.points_earned == 0
            or self.rewarded_at is None
            or self.notified_at is None
        )


class DailyProgressEntry(BaseModel):
    enrollment_id: str
    date: date
    daily_progress_value: float = Field(0, ge=0)
    percentage: float = Field(0, ge=0, le=100)


class HealthSample(BaseModel):
    user_id: str
    date: date
    steps: float = Field(0, ge=0)
    distance: float = Field(0, ge=0, description="Meters")
    active_minutes: float = Field(0, ge=0)


class UserTotals(BaseModel):
    user_id: str
    total_steps: float = 0
    total_distance: float = 0


class BaselineData(BaseModel):
    baseline_date: date
    steps: float = 0
    distance: float = 0
    active_minutes: float = 0
    total_steps: float = 0
    total_distance: float = 0


class ChallengeProgressStats(BaseModel):
    challenge_id: str
    total_participants: int = 0
    completed_count: int = 0
    completion_rate: float = 0
    average_progress: float = 0
    highest_progress: float = 0
