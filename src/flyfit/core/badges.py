"""Badge Evaluator - Pure functions for badge unlock detection.

Badges are permanent: the evaluator only ever reports badges that are not
already earned, and never mutates state. The aggregator records UserBadge
entries and emits the celebration events.
"""

from collections.abc import Callable, Iterable, Sequence
from datetime import timedelta
from typing import Optional

from .models import (
    BadgeDefinition,
    BadgeRequirement,
    DailyProgress,
    Metric,
    UserProgressState,
)


# (metric, window_days) -> prior days, oldest first. Supplied by the history provider.
HistoryView = Callable[[Metric, int], Sequence[DailyProgress]]

RequirementHandler = Callable[[BadgeRequirement, UserProgressState, Optional[HistoryView]], bool]


DEFAULT_BADGE_CATALOG: list[BadgeDefinition] = [
    BadgeDefinition(
        id="first_step",
        name="First Step",
        description="Complete your first workout",
        requirement=BadgeRequirement(kind="workouts_completed", threshold=1),
        icon="🏃",
        color="bg-green-500",
    ),
    BadgeDefinition(
        id="water_warrior",
        name="Water Warrior",
        description="Reach your water goal 7 days in a row",
        requirement=BadgeRequirement(kind="goal_streak", threshold=7, metric=Metric.WATER),
        icon="💧",
        color="bg-blue-500",
    ),
    BadgeDefinition(
        id="marathoner",
        name="Marathoner",
        description="Walk 100,000 steps in total",
        requirement=BadgeRequirement(kind="lifetime_steps", threshold=100_000),
        icon="🏅",
        color="bg-yellow-500",
    ),
    BadgeDefinition(
        id="consistent",
        name="Consistent",
        description="Be active 7 days in a row",
        requirement=BadgeRequirement(kind="active_day_streak", threshold=7),
        icon="🔥",
        color="bg-orange-500",
    ),
    BadgeDefinition(
        id="challenge_master",
        name="Challenge Master",
        description="Complete 5 challenges",
        requirement=BadgeRequirement(kind="challenges_completed", threshold=5),
        icon="✅",
        color="bg-emerald-500",
    ),
    BadgeDefinition(
        id="dietitian",
        name="Dietitian",
        description="Log meals 7 days in a row",
        requirement=BadgeRequirement(kind="goal_streak", threshold=7, metric=Metric.MEALS),
        icon="🥗",
        color="bg-lime-500",
    ),
    BadgeDefinition(
        id="unbreakable",
        name="Unbreakable",
        description="Stay active for 30 days in a row",
        requirement=BadgeRequirement(kind="active_day_streak", threshold=30),
        icon="💪",
        color="bg-red-500",
    ),
    BadgeDefinition(
        id="hundred_percent",
        name="Hundred Percent",
        description="Reach every daily goal in a single day",
        requirement=BadgeRequirement(kind="all_daily_goals"),
        icon="💯",
        color="bg-purple-500",
    ),
    BadgeDefinition(
        id="early_bird",
        name="Early Bird",
        description="Finish a workout before 8:00",
        requirement=BadgeRequirement(kind="workout_before_hour", threshold=8),
        icon="🌅",
        color="bg-amber-500",
    ),
    BadgeDefinition(
        id="night_owl",
        name="Night Owl",
        description="Finish a workout after 22:00",
        requirement=BadgeRequirement(kind="workout_after_hour", threshold=22),
        icon="🌙",
        color="bg-indigo-500",
    ),
    BadgeDefinition(
        id="iron_will",
        name="Iron Will",
        description="Complete 50 workouts",
        requirement=BadgeRequirement(kind="workouts_completed", threshold=50),
        icon="🏋️",
        color="bg-slate-500",
    ),
    BadgeDefinition(
        id="healthy_spirit",
        name="Healthy Spirit",
        description="Reach level 10",
        requirement=BadgeRequirement(kind="level", threshold=10),
        icon="🌟",
        color="bg-cyan-500",
    ),
    BadgeDefinition(
        id="fit_guru",
        name="Fit Guru",
        description="Earn 10,000 XP",
        requirement=BadgeRequirement(kind="total_xp", threshold=10_000),
        icon="🧘",
        color="bg-pink-500",
    ),
    BadgeDefinition(
        id="legend",
        name="Legend",
        description="Reach level 25",
        requirement=BadgeRequirement(kind="level", threshold=25),
        icon="👑",
        color="bg-gradient-to-r from-yellow-400 to-orange-500",
    ),
]


# ==================== Streaks ====================


_DAY_PREDICATES: dict[Metric, Callable[[DailyProgress], bool]] = {
    Metric.STEPS: lambda d: d.steps_goal_met,
    Metric.STEPS_GOAL_DAYS: lambda d: d.steps_goal_met,
    Metric.WATER: lambda d: d.water_goal_met,
    Metric.WATER_GOAL_DAYS: lambda d: d.water_goal_met,
    Metric.ACTIVE_MINUTES: lambda d: d.active_minutes_goal_met,
    Metric.MEALS: lambda d: d.meals_logged > 0,
    Metric.CALORIES: lambda d: d.calories > 0,
    Metric.ACTIVITY: lambda d: d.has_activity,
}


def day_counts_for(metric: Metric, day: DailyProgress) -> bool:
    """Whether a single day satisfies the streak condition for a metric."""
    predicate = _DAY_PREDICATES.get(metric)
    return predicate(day) if predicate is not None else False


def goal_streak(metric: Metric, today: DailyProgress, history: Iterable[DailyProgress]) -> int:
    """Count consecutive qualifying days ending today.

    If today does not qualify yet, the streak ending yesterday is returned,
    so an unfinished day does not break a running streak.

    Args:
        metric: Which daily condition to test
        today: The live DailyProgress
        history: Prior days in any order; gaps break the streak

    Returns:
        Length of the streak in days
    """
    by_day = {d.day: d for d in history if d.day < today.day}

    streak = 1 if day_counts_for(metric, today) else 0
    cursor = today.day - timedelta(days=1)
    while cursor in by_day and day_counts_for(metric, by_day[cursor]):
        streak += 1
        cursor -= timedelta(days=1)

    return streak


# ==================== Requirement Handlers ====================


def _total_xp(req: BadgeRequirement, state: UserProgressState, history: Optional[HistoryView]) -> bool:
    return state.total_xp >= req.threshold


def _level(req: BadgeRequirement, state: UserProgressState, history: Optional[HistoryView]) -> bool:
    return state.level >= req.threshold


def _workouts(req: BadgeRequirement, state: UserProgressState, history: Optional[HistoryView]) -> bool:
    return state.counters.workouts_completed >= req.threshold


def _lifetime_steps(req: BadgeRequirement, state: UserProgressState, history: Optional[HistoryView]) -> bool:
    return state.counters.lifetime_steps >= req.threshold


def _challenges(req: BadgeRequirement, state: UserProgressState, history: Optional[HistoryView]) -> bool:
    return state.counters.challenges_completed >= req.threshold


def _all_daily_goals(req: BadgeRequirement, state: UserProgressState, history: Optional[HistoryView]) -> bool:
    return state.daily.all_goals_met


def _goal_streak(req: BadgeRequirement, state: UserProgressState, history: Optional[HistoryView]) -> bool:
    if req.metric is None:
        return False
    past = history(req.metric, req.threshold) if history is not None else []
    return goal_streak(req.metric, state.daily, past) >= req.threshold


def _active_days(req: BadgeRequirement, state: UserProgressState, history: Optional[HistoryView]) -> bool:
    return state.counters.active_day_streak >= req.threshold


def _workout_before(req: BadgeRequirement, state: UserProgressState, history: Optional[HistoryView]) -> bool:
    hour = state.counters.last_workout_hour
    return hour is not None and hour < req.threshold


def _workout_after(req: BadgeRequirement, state: UserProgressState, history: Optional[HistoryView]) -> bool:
    hour = state.counters.last_workout_hour
    return hour is not None and hour >= req.threshold


REQUIREMENT_HANDLERS: dict[str, RequirementHandler] = {
    "total_xp": _total_xp,
    "level": _level,
    "workouts_completed": _workouts,
    "lifetime_steps": _lifetime_steps,
    "challenges_completed": _challenges,
    "all_daily_goals": _all_daily_goals,
    "goal_streak": _goal_streak,
    "workout_before_hour": _workout_before,
    "workout_after_hour": _workout_after,
    "active_day_streak": _active_days,
}


def requirement_met(
    requirement: BadgeRequirement,
    state: UserProgressState,
    history: Optional[HistoryView] = None,
) -> bool:
    """Test a single requirement against the state."""
    handler = REQUIREMENT_HANDLERS.get(requirement.kind)
    if handler is None:
        return False
    return handler(requirement, state, history)


def evaluate_badges(
    state: UserProgressState,
    earned_ids: set[str],
    catalog: Sequence[BadgeDefinition] = DEFAULT_BADGE_CATALOG,
    history: Optional[HistoryView] = None,
) -> list[str]:
    """Find badges newly satisfied by the current state.

    Args:
        state: Read-only progress snapshot
        earned_ids: Badge ids the user already holds
        catalog: Badge definitions, evaluated in order
        history: Read-only view of prior days for streak requirements

    Returns:
        Ids of newly earned badges in catalog order. Never contains an id
        from `earned_ids`.
    """
    newly_earned: list[str] = []
    for badge in catalog:
        if badge.id in earned_ids or badge.id in newly_earned:
            continue
        if requirement_met(badge.requirement, state, history):
            newly_earned.append(badge.id)
    return newly_earned
