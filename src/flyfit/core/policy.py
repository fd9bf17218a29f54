"""Tunable progression policy - level curve, XP rewards, mascot thresholds.

Every numeric rule the engine applies lives here so it can be loaded from
configuration and tested independently of the call sites that use it.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Cumulative XP required to reach level N (index N - 1)
DEFAULT_LEVEL_THRESHOLDS = [
    0, 100, 250, 500, 800, 1200, 1700, 2300, 3000, 3800,
    4700, 5700, 6800, 8000, 9300, 10700, 12200, 13800, 15500, 17300,
    19200, 21200, 23300, 25500, 27800, 30200,
]


class LevelCurve(BaseModel):
    """Strictly increasing XP requirement curve.

    Levels inside the table use its thresholds directly; every level past the
    end of the table costs a flat `overflow_step` more XP.
    """

    model_config = ConfigDict(frozen=True)

    thresholds: list[int] = Field(default_factory=lambda: list(DEFAULT_LEVEL_THRESHOLDS))
    overflow_step: int = Field(default=3000, ge=1, description="XP per level beyond the table")

    @field_validator("thresholds")
    @classmethod
    def _strictly_increasing(cls, value: list[int]) -> list[int]:
        if not value or value[0] != 0:
            raise ValueError("thresholds must start at 0")
        for lower, upper in zip(value, value[1:]):
            if upper <= lower:
                raise ValueError("thresholds must be strictly increasing")
        return value


class XPRewards(BaseModel):
    """XP granted for daily activity."""

    model_config = ConfigDict(frozen=True)

    water_goal_reached: int = Field(default=20, ge=0)
    meal_logged: int = Field(default=10, ge=0)
    steps_per_block: int = Field(default=5, ge=0, description="XP per full step block")
    step_block: int = Field(default=1000, ge=1, description="Steps in one block")
    all_daily_goals: int = Field(default=30, ge=0)
    daily_login: int = Field(default=10, ge=0, description="XP for the first activity of a day")


class MascotPolicy(BaseModel):
    """Thresholds against the average of the steps, water and activity ratios."""

    model_config = ConfigDict(frozen=True)

    proud: float = Field(default=1.0, gt=0)
    happy: float = Field(default=0.5, gt=0)
    motivated: float = Field(default=0.3, gt=0)
    tired_below: float = Field(default=0.2, ge=0)
    late_hour: int = Field(default=21, ge=0, le=23, description="Hour from which the day counts as late")


class InputLimits(BaseModel):
    """Sanity bounds guarding against corrupted input.

    `per_event` caps a single delta; `per_day` caps the resulting daily total.
    """

    model_config = ConfigDict(frozen=True)

    steps_per_event: int = 100_000
    steps_per_day: int = 250_000
    water_per_event: int = 5_000
    water_per_day: int = 20_000
    active_minutes_per_event: int = 1_440
    active_minutes_per_day: int = 1_440
    calories_per_event: int = 10_000
    calories_per_day: int = 30_000
    workout_xp_per_event: int = 1_000
    workout_minutes_per_event: int = 600
    challenge_delta_per_event: int = 1_000_000


class ProgressionPolicy(BaseModel):
    """Complete policy bundle handed to the aggregator."""

    model_config = ConfigDict(frozen=True)

    curve: LevelCurve = Field(default_factory=LevelCurve)
    rewards: XPRewards = Field(default_factory=XPRewards)
    mascot: MascotPolicy = Field(default_factory=MascotPolicy)
    limits: InputLimits = Field(default_factory=InputLimits)
