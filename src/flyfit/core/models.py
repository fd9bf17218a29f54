"""Core Data Models - Pydantic models for type safety.

All models are immutable value objects with no behavior beyond validation
and small derived properties. State changes produce new instances.
"""

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .errors import ProgressError


class Metric(str, Enum):
    """Activity streams that challenges and streak badges key on."""

    STEPS = "steps"
    WATER = "water"
    ACTIVE_MINUTES = "active_minutes"
    CALORIES = "calories"
    MEALS = "meals"
    WORKOUTS = "workouts"
    STEPS_GOAL_DAYS = "steps_goal_days"
    WATER_GOAL_DAYS = "water_goal_days"
    ACTIVITY = "activity"


class MascotEmotion(str, Enum):
    HAPPY = "happy"
    PROUD = "proud"
    MOTIVATED = "motivated"
    TIRED = "tired"
    NEUTRAL = "neutral"
    CELEBRATING = "celebrating"


class ChallengeStatus(str, Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    COMPLETED = "completed"


class ProgressRatios(BaseModel):
    """Fraction of each daily goal reached. Values may exceed 1.0."""

    model_config = ConfigDict(frozen=True)

    steps: float = Field(default=0.0, ge=0)
    water: float = Field(default=0.0, ge=0)
    active_minutes: float = Field(default=0.0, ge=0)

    @property
    def average(self) -> float:
        return (self.steps + self.water + self.active_minutes) / 3


class DailyProgress(BaseModel):
    """One calendar day of activity against the user's goals."""

    model_config = ConfigDict(frozen=True)

    day: date = Field(default_factory=date.today, description="Local calendar day")
    steps: int = Field(default=0, ge=0)
    steps_goal: int = Field(default=10_000, gt=0)
    water: int = Field(default=0, ge=0, description="Water intake in ml")
    water_goal: int = Field(default=2_000, gt=0, description="Water goal in ml")
    active_minutes: int = Field(default=0, ge=0)
    active_minutes_goal: int = Field(default=30, gt=0)
    calories: int = Field(default=0, ge=0)
    calories_goal: int = Field(default=2_000, gt=0)
    meals_logged: int = Field(default=0, ge=0)

    @property
    def steps_goal_met(self) -> bool:
        return self.steps >= self.steps_goal

    @property
    def water_goal_met(self) -> bool:
        return self.water >= self.water_goal

    @property
    def active_minutes_goal_met(self) -> bool:
        return self.active_minutes >= self.active_minutes_goal

    @property
    def all_goals_met(self) -> bool:
        """Steps, water and active minutes all at or above goal."""
        return self.steps_goal_met and self.water_goal_met and self.active_minutes_goal_met

    @property
    def has_activity(self) -> bool:
        return bool(self.steps or self.water or self.active_minutes or self.meals_logged)

    def ratios(self) -> ProgressRatios:
        return ProgressRatios(
            steps=self.steps / self.steps_goal,
            water=self.water / self.water_goal,
            active_minutes=self.active_minutes / self.active_minutes_goal,
        )

    def reset(self, day: date) -> "DailyProgress":
        """Zero all counters for a new day, keeping the goals."""
        return self.model_copy(
            update={
                "day": day,
                "steps": 0,
                "water": 0,
                "active_minutes": 0,
                "calories": 0,
                "meals_logged": 0,
            }
        )


class ProgressCounters(BaseModel):
    """Lifetime counters that survive day rollover."""

    model_config = ConfigDict(frozen=True)

    workouts_completed: int = Field(default=0, ge=0)
    lifetime_steps: int = Field(default=0, ge=0)
    meals_logged: int = Field(default=0, ge=0)
    challenges_completed: int = Field(default=0, ge=0)
    last_workout_hour: Optional[int] = Field(default=None, ge=0, le=23)
    last_active_day: Optional[date] = Field(default=None, description="Last day with a logged activity")
    active_day_streak: int = Field(default=0, ge=0, description="Consecutive days with a logged activity")


class BadgeRequirement(BaseModel):
    """Declarative badge predicate, loadable from a JSON catalog."""

    model_config = ConfigDict(frozen=True)

    kind: Literal[
        "total_xp",
        "level",
        "workouts_completed",
        "lifetime_steps",
        "challenges_completed",
        "all_daily_goals",
        "goal_streak",
        "workout_before_hour",
        "workout_after_hour",
        "active_day_streak",
    ]
    threshold: int = Field(default=1, ge=0)
    metric: Optional[Metric] = Field(default=None, description="Only used by goal_streak")


class BadgeDefinition(BaseModel):
    """Immutable catalog entry. Icon and color are presentation only."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    description: str
    requirement: BadgeRequirement
    icon: str = ""
    color: str = ""


class UserBadge(BaseModel):
    """An earned badge. Never revoked."""

    model_config = ConfigDict(frozen=True)

    badge_id: str
    earned_at: datetime


class Challenge(BaseModel):
    """A targeted goal that moves not-started -> active -> completed."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    title: str
    description: str = ""
    target: float = Field(gt=0)
    current: float = Field(default=0, ge=0)
    unit: str
    duration_days: int = Field(gt=0)
    points: int = Field(default=0, ge=0)
    is_active: bool = False
    is_completed: bool = False
    metric: Optional[Metric] = Field(default=None, description="Event stream that advances this challenge")
    started_on: Optional[date] = None
    ends_on: Optional[date] = None

    @property
    def status(self) -> ChallengeStatus:
        if self.is_completed:
            return ChallengeStatus.COMPLETED
        if self.is_active:
            return ChallengeStatus.ACTIVE
        return ChallengeStatus.NOT_STARTED


class UserProgressState(BaseModel):
    """Authoritative progression state for one user.

    `level` is a cached projection of `total_xp` and is recomputed whenever
    the state is loaded.
    """

    model_config = ConfigDict(frozen=True)

    total_xp: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    daily: DailyProgress = Field(default_factory=DailyProgress)
    counters: ProgressCounters = Field(default_factory=ProgressCounters)
    badges: list[UserBadge] = Field(default_factory=list)
    challenges: list[Challenge] = Field(default_factory=list)

    @property
    def earned_badge_ids(self) -> set[str]:
        return {b.badge_id for b in self.badges}

    def challenge(self, challenge_id: str) -> Optional[Challenge]:
        for challenge in self.challenges:
            if challenge.id == challenge_id:
                return challenge
        return None


class MascotState(BaseModel):
    model_config = ConfigDict(frozen=True)

    emotion: MascotEmotion = MascotEmotion.NEUTRAL
    message: str = ""


class XPProgress(BaseModel):
    """Progress within the current level."""

    current: int
    required: int = Field(ge=1)
    percentage: float = Field(ge=0, le=100)


# ==================== Reward Events ====================


class XPGainedEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["xp_gained"] = "xp_gained"
    amount: int = Field(gt=0)
    source: str


class LevelUpEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["level_up"] = "level_up"
    old_level: int
    new_level: int


class BadgeEarnedEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["badge_earned"] = "badge_earned"
    badge_id: str
    name: str


class ChallengeCompletedEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["challenge_completed"] = "challenge_completed"
    challenge_id: str
    title: str = ""
    points_awarded: int = Field(ge=0)


RewardEvent = Annotated[
    Union[XPGainedEvent, LevelUpEvent, BadgeEarnedEvent, ChallengeCompletedEvent],
    Field(discriminator="kind"),
]


# ==================== Input Events ====================
# Numeric fields are unconstrained; the aggregator range-checks them and
# reports InvalidInput.


class AddWater(BaseModel):
    kind: Literal["add_water"] = "add_water"
    amount: int = 250


class LogSteps(BaseModel):
    kind: Literal["log_steps"] = "log_steps"
    count: int


class LogActiveMinutes(BaseModel):
    kind: Literal["log_active_minutes"] = "log_active_minutes"
    count: int


class LogMeal(BaseModel):
    kind: Literal["log_meal"] = "log_meal"
    calories: int = 0


class CompleteWorkout(BaseModel):
    kind: Literal["complete_workout"] = "complete_workout"
    xp_reward: int = 50
    duration_minutes: int = 0


class CompleteChallengeProgress(BaseModel):
    kind: Literal["complete_challenge_progress"] = "complete_challenge_progress"
    challenge_id: str
    delta: float


class AddChallenge(BaseModel):
    kind: Literal["add_challenge"] = "add_challenge"
    challenge: Challenge


class StartChallenge(BaseModel):
    kind: Literal["start_challenge"] = "start_challenge"
    challenge_id: str


class RemoveChallenge(BaseModel):
    kind: Literal["remove_challenge"] = "remove_challenge"
    challenge_id: str


class DayRollover(BaseModel):
    kind: Literal["day_rollover"] = "day_rollover"
    day: Optional[date] = Field(default=None, description="New day; defaults to the clock's date")


ProgressEvent = Annotated[
    Union[
        AddWater,
        LogSteps,
        LogActiveMinutes,
        LogMeal,
        CompleteWorkout,
        CompleteChallengeProgress,
        AddChallenge,
        StartChallenge,
        RemoveChallenge,
        DayRollover,
    ],
    Field(discriminator="kind"),
]


class StepResult(BaseModel):
    """Outcome of one aggregator step.

    On error `state` is the unchanged prior state and `rewards` is empty.
    """

    model_config = ConfigDict(frozen=True)

    state: UserProgressState
    rewards: list[RewardEvent] = Field(default_factory=list)
    mascot: MascotState = Field(default_factory=MascotState)
    error: Optional[ProgressError] = None

    @property
    def ok(self) -> bool:
        return self.error is None
