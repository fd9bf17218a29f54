"""Unit tests for the badge evaluator - pure functions, no mocks needed."""

from datetime import date, timedelta

from flyfit.core.badges import (
    DEFAULT_BADGE_CATALOG,
    evaluate_badges,
    goal_streak,
    requirement_met,
)
from flyfit.core.models import (
    BadgeDefinition,
    BadgeRequirement,
    DailyProgress,
    Metric,
    ProgressCounters,
    UserProgressState,
)


TODAY = date(2024, 12, 28)


def water_day(offset: int, water: int = 2000) -> DailyProgress:
    return DailyProgress(day=TODAY - timedelta(days=offset), water=water)


def history_of(days):
    return lambda metric, window_days: days


class TestEvaluateBadges:
    """Tests for evaluate_badges."""

    def test_new_user_earns_nothing(self):
        """A fresh state satisfies no badge."""
        state = UserProgressState(daily=DailyProgress(day=TODAY))
        assert evaluate_badges(state, set()) == []

    def test_first_workout(self):
        """One workout unlocks First Step."""
        state = UserProgressState(
            daily=DailyProgress(day=TODAY),
            counters=ProgressCounters(workouts_completed=1),
        )
        assert evaluate_badges(state, set()) == ["first_step"]

    def test_already_earned_not_returned(self):
        """Earned badges are skipped."""
        state = UserProgressState(
            daily=DailyProgress(day=TODAY),
            counters=ProgressCounters(workouts_completed=1),
        )
        assert evaluate_badges(state, {"first_step"}) == []

    def test_idempotent_across_calls(self):
        """A second call with updated earned ids returns nothing new."""
        state = UserProgressState(
            daily=DailyProgress(day=TODAY),
            total_xp=10_000,
            level=15,
            counters=ProgressCounters(workouts_completed=50),
        )
        earned: set[str] = set()
        first = evaluate_badges(state, earned)
        earned.update(first)
        second = evaluate_badges(state, earned)

        assert first
        assert second == []

    def test_catalog_order(self):
        """Results follow catalog insertion order."""
        state = UserProgressState(
            daily=DailyProgress(day=TODAY),
            total_xp=10_000,
            level=15,
            counters=ProgressCounters(workouts_completed=50),
        )
        assert evaluate_badges(state, set()) == [
            "first_step",
            "iron_will",
            "healthy_spirit",
            "fit_guru",
        ]

    def test_custom_catalog(self):
        """Any catalog can be evaluated."""
        catalog = [
            BadgeDefinition(
                id="walker",
                name="Walker",
                description="1000 steps",
                requirement=BadgeRequirement(kind="lifetime_steps", threshold=1000),
            )
        ]
        state = UserProgressState(
            daily=DailyProgress(day=TODAY),
            counters=ProgressCounters(lifetime_steps=1500),
        )
        assert evaluate_badges(state, set(), catalog) == ["walker"]

    def test_all_daily_goals(self):
        """Meeting every goal in a day unlocks Hundred Percent."""
        daily = DailyProgress(day=TODAY, steps=10_000, water=2_000, active_minutes=30)
        state = UserProgressState(daily=daily)
        assert "hundred_percent" in evaluate_badges(state, set())

    def test_water_streak_from_history(self):
        """Seven consecutive water goals unlock Water Warrior."""
        history = [water_day(i) for i in range(6, 0, -1)]
        state = UserProgressState(daily=water_day(0))
        earned = evaluate_badges(state, set(), DEFAULT_BADGE_CATALOG, history_of(history))

        assert "water_warrior" in earned

    def test_gap_breaks_streak(self):
        """A missing day resets the streak."""
        history = [water_day(i) for i in (6, 5, 4, 2, 1)]
        state = UserProgressState(daily=water_day(0))
        earned = evaluate_badges(state, set(), DEFAULT_BADGE_CATALOG, history_of(history))

        assert "water_warrior" not in earned

    def test_streak_without_history_provider(self):
        """No history means only today counts."""
        state = UserProgressState(daily=water_day(0))
        assert "water_warrior" not in evaluate_badges(state, set())


class TestGoalStreak:
    """Tests for goal_streak."""

    def test_counts_today_and_prior_days(self):
        """Today plus consecutive prior days."""
        history = [water_day(2), water_day(1)]
        assert goal_streak(Metric.WATER, water_day(0), history) == 3

    def test_unfinished_today_keeps_streak(self):
        """If today is not met yet, the streak ends yesterday."""
        history = [water_day(2), water_day(1)]
        assert goal_streak(Metric.WATER, water_day(0, water=0), history) == 2

    def test_missed_day_stops_count(self):
        """A day below goal ends the streak."""
        history = [water_day(3), water_day(2, water=100), water_day(1)]
        assert goal_streak(Metric.WATER, water_day(0), history) == 2

    def test_meals_streak(self):
        """Meal streaks count days with a logged meal."""
        today = DailyProgress(day=TODAY, meals_logged=1)
        history = [DailyProgress(day=TODAY - timedelta(days=1), meals_logged=3)]
        assert goal_streak(Metric.MEALS, today, history) == 2

    def test_future_days_ignored(self):
        """History entries at or after today are not counted."""
        history = [water_day(0), water_day(-1)]
        assert goal_streak(Metric.WATER, water_day(0), history) == 1


class TestRequirementMet:
    """Tests for individual requirement kinds."""

    def test_workout_before_hour(self):
        """Early workouts unlock Early Bird."""
        state = UserProgressState(counters=ProgressCounters(last_workout_hour=7))
        assert requirement_met(BadgeRequirement(kind="workout_before_hour", threshold=8), state)
        assert not requirement_met(BadgeRequirement(kind="workout_after_hour", threshold=22), state)

    def test_workout_after_hour(self):
        """Late workouts unlock Night Owl."""
        state = UserProgressState(counters=ProgressCounters(last_workout_hour=22))
        assert requirement_met(BadgeRequirement(kind="workout_after_hour", threshold=22), state)

    def test_no_workout_yet(self):
        """Hour requirements fail without any workout."""
        state = UserProgressState()
        assert not requirement_met(BadgeRequirement(kind="workout_before_hour", threshold=8), state)

    def test_streak_without_metric(self):
        """A streak requirement without a metric never matches."""
        state = UserProgressState(daily=water_day(0))
        assert not requirement_met(BadgeRequirement(kind="goal_streak", threshold=1), state)

    def test_streak_on_untracked_metric(self):
        """Metrics without a daily condition never count."""
        state = UserProgressState(daily=water_day(0))
        requirement = BadgeRequirement(kind="goal_streak", threshold=1, metric=Metric.WORKOUTS)
        assert not requirement_met(requirement, state)

    def test_active_day_streak(self):
        """Consecutive active days unlock Consistent."""
        state = UserProgressState(
            daily=DailyProgress(day=TODAY),
            counters=ProgressCounters(last_active_day=TODAY, active_day_streak=7),
        )
        requirement = BadgeRequirement(kind="active_day_streak", threshold=7)

        assert requirement_met(requirement, state)
        assert "consistent" in evaluate_badges(state, set())
        assert "unbreakable" not in evaluate_badges(state, set())
