"""Unit tests for data models - validation and defaults."""

import pytest
from datetime import date
from pydantic import TypeAdapter, ValidationError

from flyfit.core.models import (
    AddWater,
    Challenge,
    ChallengeStatus,
    CompleteWorkout,
    DailyProgress,
    DayRollover,
    LevelUpEvent,
    LogSteps,
    ProgressEvent,
    RewardEvent,
    UserProgressState,
)


class TestDailyProgress:
    """Tests for DailyProgress model."""

    def test_defaults(self):
        """New days start empty with default goals."""
        daily = DailyProgress(day=date(2024, 12, 28))
        assert daily.steps == 0
        assert daily.steps_goal == 10_000
        assert daily.water_goal == 2_000
        assert daily.active_minutes_goal == 30
        assert not daily.has_activity

    def test_negative_counter_rejected(self):
        """Counters are never negative."""
        with pytest.raises(ValidationError):
            DailyProgress(steps=-1)

    def test_zero_goal_rejected(self):
        """Goals must be positive."""
        with pytest.raises(ValidationError):
            DailyProgress(water_goal=0)

    def test_frozen(self):
        """Days are immutable."""
        daily = DailyProgress()
        with pytest.raises(ValidationError):
            daily.steps = 10

    def test_ratios(self):
        """Ratios are measured against each goal and can exceed 1."""
        daily = DailyProgress(steps=5_000, water=3_000, active_minutes=15)
        ratios = daily.ratios()
        assert ratios.steps == 0.5
        assert ratios.water == 1.5
        assert ratios.active_minutes == 0.5
        assert ratios.average == pytest.approx(2.5 / 3)

    def test_all_goals_met(self):
        """All three goals must be met."""
        assert DailyProgress(steps=10_000, water=2_000, active_minutes=30).all_goals_met
        assert not DailyProgress(steps=10_000, water=2_000, active_minutes=29).all_goals_met

    def test_reset_keeps_goals(self):
        """Reset zeroes counters and keeps goals."""
        daily = DailyProgress(
            day=date(2024, 12, 28), steps=500, steps_goal=8_000, water=700, meals_logged=2, calories=600
        )
        fresh = daily.reset(date(2024, 12, 29))

        assert fresh.day == date(2024, 12, 29)
        assert fresh.steps == 0
        assert fresh.water == 0
        assert fresh.meals_logged == 0
        assert fresh.calories == 0
        assert fresh.steps_goal == 8_000


class TestChallenge:
    """Tests for Challenge model."""

    def test_status(self):
        """Status follows the two flags."""
        base = {"id": "c", "title": "T", "target": 5, "unit": "days", "duration_days": 7}
        assert Challenge(**base).status is ChallengeStatus.NOT_STARTED
        assert Challenge(**base, is_active=True).status is ChallengeStatus.ACTIVE
        assert Challenge(**base, current=5, is_completed=True).status is ChallengeStatus.COMPLETED

    def test_target_must_be_positive(self):
        """Zero targets are rejected."""
        with pytest.raises(ValidationError):
            Challenge(id="c", title="T", target=0, unit="days", duration_days=7)

    def test_empty_id_rejected(self):
        """Challenge ids are required."""
        with pytest.raises(ValidationError):
            Challenge(id="", title="T", target=1, unit="days", duration_days=7)


class TestUserProgressState:
    """Tests for UserProgressState model."""

    def test_new_user(self):
        """New users start at level 1 with nothing earned."""
        state = UserProgressState()
        assert state.total_xp == 0
        assert state.level == 1
        assert state.earned_badge_ids == set()
        assert state.challenges == []

    def test_negative_xp_rejected(self):
        """Total XP is never negative."""
        with pytest.raises(ValidationError):
            UserProgressState(total_xp=-1)

    def test_challenge_lookup(self):
        """Challenges are looked up by id."""
        challenge = Challenge(id="c", title="T", target=1, unit="days", duration_days=1)
        state = UserProgressState(challenges=[challenge])
        assert state.challenge("c") == challenge
        assert state.challenge("missing") is None

    def test_json_round_trip(self):
        """States survive a JSON dump and reload."""
        state = UserProgressState(total_xp=120, level=2, daily=DailyProgress(day=date(2024, 12, 28), steps=40))
        restored = UserProgressState.model_validate(state.model_dump(mode="json"))
        assert restored == state


class TestEvents:
    """Tests for the event unions."""

    def test_event_parsed_by_kind(self):
        """Events are discriminated on kind."""
        adapter = TypeAdapter(ProgressEvent)
        assert adapter.validate_python({"kind": "log_steps", "count": 10}) == LogSteps(count=10)
        assert isinstance(adapter.validate_python({"kind": "add_water"}), AddWater)
        assert adapter.validate_python({"kind": "day_rollover", "day": "2024-12-29"}) == DayRollover(
            day=date(2024, 12, 29)
        )

    def test_unknown_kind_rejected(self):
        """Unknown event kinds fail validation."""
        with pytest.raises(ValidationError):
            TypeAdapter(ProgressEvent).validate_python({"kind": "teleport"})

    def test_event_defaults(self):
        """Water and workouts have sensible defaults."""
        assert AddWater().amount == 250
        assert CompleteWorkout().xp_reward == 50

    def test_negative_values_parse(self):
        """Range checks are left to the aggregator."""
        assert AddWater(amount=-50).amount == -50

    def test_reward_parsed_by_kind(self):
        """Reward events are discriminated on kind."""
        reward = TypeAdapter(RewardEvent).validate_python({"kind": "level_up", "old_level": 1, "new_level": 2})
        assert reward == LevelUpEvent(old_level=1, new_level=2)
