"""Progress Aggregator - Applies activity events to the progression state.

`apply_event` is pure: it takes the prior state and one event and returns a
StepResult holding the new state and the reward events the presentation layer
reacts to. `ProgressAggregator` owns the live state for one user and
serializes every mutation through a single lock.

Step order for every mutating event:
    1. validate input
    2. apply the delta to DailyProgress (and lifetime counters)
    3. add XP rewards
    4. recompute level, detect level-up
    5. evaluate badges
    6. advance challenges keyed to the event's metric, credit their points
    7. resolve the mascot state
    8. return new state + ordered reward events
"""

import logging
import threading
from collections.abc import Callable, Sequence
from datetime import date, datetime, timedelta
from typing import Optional

from .badges import DEFAULT_BADGE_CATALOG, HistoryView, evaluate_badges
from .challenges import advance_challenge, advance_challenges, remove_challenge, start_challenge
from .errors import ProgressError
from .levels import level_from_xp
from .mascot import RecentEvent, most_significant, resolve_mascot
from .models import (
    AddChallenge,
    AddWater,
    BadgeDefinition,
    BadgeEarnedEvent,
    ChallengeCompletedEvent,
    ChallengeStatus,
    CompleteChallengeProgress,
    CompleteWorkout,
    DailyProgress,
    DayRollover,
    LevelUpEvent,
    LogActiveMinutes,
    LogMeal,
    LogSteps,
    MascotState,
    Metric,
    ProgressCounters,
    ProgressEvent,
    RemoveChallenge,
    StartChallenge,
    StepResult,
    UserBadge,
    UserProgressState,
    XPGainedEvent,
)
from .policy import InputLimits, ProgressionPolicy


logger = logging.getLogger(__name__)

DEFAULT_POLICY = ProgressionPolicy()

Clock = Callable[[], datetime]


def rehydrate(state: UserProgressState, policy: ProgressionPolicy = DEFAULT_POLICY) -> UserProgressState:
    """Recompute the cached level from total_xp.

    Stored levels are never trusted; a mismatch is logged and corrected.
    """
    level = level_from_xp(state.total_xp, policy.curve)
    if level != state.level:
        logger.warning(
            "Stored level %d inconsistent with %d XP, using level %d",
            state.level, state.total_xp, level,
        )
        return state.model_copy(update={"level": level})
    return state


def current_mascot(state: UserProgressState, now: datetime, policy: ProgressionPolicy = DEFAULT_POLICY) -> MascotState:
    """Mascot state for a snapshot with no recent event."""
    return resolve_mascot(state.daily.ratios(), None, now.hour, policy.mascot, variant=state.total_xp)


# ==================== Validation ====================


def _check_delta(name: str, value: float, per_event: int, total: float, per_day: Optional[int] = None) -> Optional[ProgressError]:
    if value < 0:
        return ProgressError.invalid_input(f"{name} must not be negative, got {value}")
    if value > per_event:
        return ProgressError.invalid_input(f"{name} of {value} exceeds the per-event limit of {per_event}")
    if per_day is not None and total + value > per_day:
        return ProgressError.invalid_input(f"{name} would exceed the daily limit of {per_day}")
    return None


def validate_event(state: UserProgressState, event: ProgressEvent, limits: InputLimits) -> Optional[ProgressError]:
    """Range-check an event against the current state.

    Returns:
        ProgressError if the event must be rejected, None otherwise
    """
    daily = state.daily

    if isinstance(event, AddWater):
        return _check_delta("Water", event.amount, limits.water_per_event, daily.water, limits.water_per_day)
    if isinstance(event, LogSteps):
        return _check_delta("Steps", event.count, limits.steps_per_event, daily.steps, limits.steps_per_day)
    if isinstance(event, LogActiveMinutes):
        return _check_delta(
            "Active minutes", event.count, limits.active_minutes_per_event,
            daily.active_minutes, limits.active_minutes_per_day,
        )
    if isinstance(event, LogMeal):
        return _check_delta("Calories", event.calories, limits.calories_per_event, daily.calories, limits.calories_per_day)
    if isinstance(event, CompleteWorkout):
        return _check_delta("Workout XP", event.xp_reward, limits.workout_xp_per_event, 0) or _check_delta(
            "Workout duration", event.duration_minutes, limits.workout_minutes_per_event,
            daily.active_minutes, limits.active_minutes_per_day,
        )
    if isinstance(event, CompleteChallengeProgress):
        if state.challenge(event.challenge_id) is None:
            return ProgressError.invalid_input(f"Unknown challenge: {event.challenge_id}")
        return _check_delta("Challenge progress", event.delta, limits.challenge_delta_per_event, 0)
    if isinstance(event, AddChallenge):
        if state.challenge(event.challenge.id) is not None:
            return ProgressError.invalid_input(f"Challenge already exists: {event.challenge.id}")
        if event.challenge.status is not ChallengeStatus.NOT_STARTED:
            return ProgressError.invalid_input("New challenges must not be started or completed")
        return None
    if isinstance(event, (StartChallenge, RemoveChallenge)):
        if state.challenge(event.challenge_id) is None:
            return ProgressError.invalid_input(f"Unknown challenge: {event.challenge_id}")
        return None
    if isinstance(event, DayRollover):
        # Daily counters never decrease within a day
        if event.day is None or event.day <= daily.day:
            return ProgressError.invalid_input(f"Cannot roll over from {daily.day} to {event.day}")
        return None

    return ProgressError.invalid_input(f"Unsupported event: {type(event).__name__}")


# ==================== Event Application ====================

# Events that count as being active on a day
ACTIVITY_EVENTS = (AddWater, LogSteps, LogActiveMinutes, LogMeal, CompleteWorkout)


def _mark_active_day(counters: ProgressCounters, day: date) -> ProgressCounters:
    """Record the first activity of `day` and extend or restart the streak."""
    if counters.last_active_day == day - timedelta(days=1):
        streak = counters.active_day_streak + 1
    else:
        streak = 1
    return counters.model_copy(update={"last_active_day": day, "active_day_streak": streak})


def _apply_activity(
    state: UserProgressState,
    event: ProgressEvent,
    policy: ProgressionPolicy,
    now: datetime,
) -> tuple[UserProgressState, list[XPGainedEvent], list[tuple[Metric, float]]]:
    """Apply an activity delta (step 2) and collect XP gains and challenge feeds."""
    rewards = policy.rewards
    before = state.daily
    daily = before
    counters = state.counters
    gains: list[XPGainedEvent] = []
    feeds: list[tuple[Metric, float]] = []

    if isinstance(event, ACTIVITY_EVENTS) and counters.last_active_day != daily.day:
        counters = _mark_active_day(counters, daily.day)
        if rewards.daily_login:
            gains.append(XPGainedEvent(amount=rewards.daily_login, source="daily_login"))

    if isinstance(event, AddWater):
        daily = daily.model_copy(update={"water": daily.water + event.amount})
        feeds.append((Metric.WATER, event.amount))
        if daily.water_goal_met and not before.water_goal_met:
            feeds.append((Metric.WATER_GOAL_DAYS, 1))
            if rewards.water_goal_reached:
                gains.append(XPGainedEvent(amount=rewards.water_goal_reached, source="water_goal"))

    elif isinstance(event, LogSteps):
        daily = daily.model_copy(update={"steps": daily.steps + event.count})
        counters = counters.model_copy(update={"lifetime_steps": counters.lifetime_steps + event.count})
        feeds.append((Metric.STEPS, event.count))
        blocks = daily.steps // rewards.step_block - before.steps // rewards.step_block
        if blocks > 0 and rewards.steps_per_block:
            gains.append(XPGainedEvent(amount=blocks * rewards.steps_per_block, source="steps"))
        if daily.steps_goal_met and not before.steps_goal_met:
            feeds.append((Metric.STEPS_GOAL_DAYS, 1))

    elif isinstance(event, LogActiveMinutes):
        daily = daily.model_copy(update={"active_minutes": daily.active_minutes + event.count})
        feeds.append((Metric.ACTIVE_MINUTES, event.count))

    elif isinstance(event, LogMeal):
        daily = daily.model_copy(
            update={"calories": daily.calories + event.calories, "meals_logged": daily.meals_logged + 1}
        )
        counters = counters.model_copy(update={"meals_logged": counters.meals_logged + 1})
        feeds.append((Metric.MEALS, 1))
        if event.calories:
            feeds.append((Metric.CALORIES, event.calories))
        if rewards.meal_logged:
            gains.append(XPGainedEvent(amount=rewards.meal_logged, source="meal"))

    elif isinstance(event, CompleteWorkout):
        daily = daily.model_copy(update={"active_minutes": daily.active_minutes + event.duration_minutes})
        counters = counters.model_copy(
            update={
                "workouts_completed": counters.workouts_completed + 1,
                "last_workout_hour": now.hour,
            }
        )
        feeds.append((Metric.WORKOUTS, 1))
        if event.duration_minutes:
            feeds.append((Metric.ACTIVE_MINUTES, event.duration_minutes))
        if event.xp_reward:
            gains.append(XPGainedEvent(amount=event.xp_reward, source="workout"))

    if daily.all_goals_met and not before.all_goals_met and rewards.all_daily_goals:
        gains.append(XPGainedEvent(amount=rewards.all_daily_goals, source="all_daily_goals"))

    new_state = state.model_copy(update={"daily": daily, "counters": counters})
    return new_state, gains, feeds


def _award_badges(
    state: UserProgressState,
    catalog: Sequence[BadgeDefinition],
    history: Optional[HistoryView],
    now: datetime,
) -> tuple[UserProgressState, list[BadgeEarnedEvent]]:
    new_ids = evaluate_badges(state, state.earned_badge_ids, catalog, history)
    if not new_ids:
        return state, []

    names = {b.id: b.name for b in catalog}
    earned = [UserBadge(badge_id=badge_id, earned_at=now) for badge_id in new_ids]
    events = [BadgeEarnedEvent(badge_id=badge_id, name=names[badge_id]) for badge_id in new_ids]
    return state.model_copy(update={"badges": [*state.badges, *earned]}), events


def _rejected(state: UserProgressState, error: ProgressError, policy: ProgressionPolicy, now: datetime) -> StepResult:
    logger.info("Rejected event: %s", error.message)
    return StepResult(state=state, mascot=current_mascot(state, now, policy), error=error)


def apply_event(
    state: UserProgressState,
    event: ProgressEvent,
    *,
    policy: ProgressionPolicy = DEFAULT_POLICY,
    catalog: Sequence[BadgeDefinition] = DEFAULT_BADGE_CATALOG,
    history: Optional[HistoryView] = None,
    now: Optional[datetime] = None,
) -> StepResult:
    """Apply one event to a progression state.

    Args:
        state: Prior state (never modified)
        event: The event to apply
        policy: Level curve, XP rewards, mascot thresholds and input limits
        catalog: Badge definitions
        history: Read-only view of prior days for streak badges
        now: Current local time, used for badge stamps and the mascot

    Returns:
        StepResult with the new state and reward events, or the unchanged
        state and an error if the event was rejected
    """
    if now is None:
        now = datetime.now()

    if isinstance(event, DayRollover) and event.day is None:
        event = DayRollover(day=now.date())

    # 1. Validate
    error = validate_event(state, event, policy.limits)
    if error is not None:
        return _rejected(state, error, policy, now)

    if isinstance(event, DayRollover):
        logger.info("Rolling over from %s to %s", state.daily.day, event.day)
        new_state = state.model_copy(update={"daily": state.daily.reset(event.day)})
        return StepResult(state=new_state, mascot=current_mascot(new_state, now, policy))

    if isinstance(event, RemoveChallenge):
        challenges, transition_error = remove_challenge(state.challenges, event.challenge_id)
        if transition_error is not None:
            return StepResult(state=state, mascot=current_mascot(state, now, policy), error=transition_error)
        new_state = state.model_copy(update={"challenges": challenges})
        return StepResult(state=new_state, mascot=current_mascot(new_state, now, policy))

    if isinstance(event, AddChallenge):
        new_state = state.model_copy(update={"challenges": [*state.challenges, event.challenge]})
        return StepResult(state=new_state, mascot=current_mascot(new_state, now, policy))

    if isinstance(event, StartChallenge):
        challenge = state.challenge(event.challenge_id)
        started, transition_error = start_challenge(challenge, now.date())
        if transition_error is not None:
            return StepResult(state=state, mascot=current_mascot(state, now, policy), error=transition_error)
        challenges = [started if c.id == started.id else c for c in state.challenges]
        new_state = state.model_copy(update={"challenges": challenges})
        return StepResult(state=new_state, mascot=current_mascot(new_state, now, policy))

    old_level = state.level

    # 2. Apply delta
    new_state, gains, feeds = _apply_activity(state, event, policy, now)

    # 3. XP
    gained = sum(g.amount for g in gains)
    if gained:
        new_state = new_state.model_copy(update={"total_xp": new_state.total_xp + gained})

    # 4. Level
    new_state = new_state.model_copy(update={"level": level_from_xp(new_state.total_xp, policy.curve)})

    # 5. Badges
    new_state, badge_events = _award_badges(new_state, catalog, history, now)

    # 6. Challenges
    completed: list[ChallengeCompletedEvent] = []
    challenges = list(new_state.challenges)
    if isinstance(event, CompleteChallengeProgress):
        target = new_state.challenge(event.challenge_id)
        advanced, completion = advance_challenge(target, event.delta, today=now.date())
        challenges = [advanced if c.id == advanced.id else c for c in challenges]
        if completion is not None:
            completed.append(completion)
    else:
        for metric, delta in feeds:
            challenges, events = advance_challenges(challenges, metric, delta, today=now.date())
            completed.extend(events)

    new_state = new_state.model_copy(update={"challenges": challenges})

    if completed:
        points = sum(c.points_awarded for c in completed)
        counters = new_state.counters.model_copy(
            update={"challenges_completed": new_state.counters.challenges_completed + len(completed)}
        )
        total_xp = new_state.total_xp + points
        new_state = new_state.model_copy(
            update={
                "total_xp": total_xp,
                "level": level_from_xp(total_xp, policy.curve),
                "counters": counters,
            }
        )
        # Points and completion counts can unlock more badges
        new_state, more_badges = _award_badges(new_state, catalog, history, now)
        badge_events.extend(more_badges)

    level_events: list[LevelUpEvent] = []
    if new_state.level > old_level:
        logger.info("Level up: %d -> %d", old_level, new_state.level)
        level_events.append(LevelUpEvent(old_level=old_level, new_level=new_state.level))

    # 7. Mascot
    recent: list[RecentEvent] = []
    if level_events:
        recent.append(RecentEvent.LEVEL_UP)
    if completed:
        recent.append(RecentEvent.CHALLENGE_COMPLETED)
    if badge_events:
        recent.append(RecentEvent.BADGE_EARNED)
    mascot = resolve_mascot(
        new_state.daily.ratios(),
        most_significant(recent),
        now.hour,
        policy.mascot,
        variant=new_state.total_xp,
    )

    # 8. Result
    return StepResult(
        state=new_state,
        rewards=[*gains, *level_events, *badge_events, *completed],
        mascot=mascot,
    )


# ==================== Stateful Owner ====================


class ProgressAggregator:
    """Single-writer owner of one user's progression state.

    Mutations are serialized through a lock; `state` returns the last
    published immutable snapshot and is safe to read from any thread.
    """

    def __init__(
        self,
        state: Optional[UserProgressState] = None,
        *,
        policy: ProgressionPolicy = DEFAULT_POLICY,
        catalog: Sequence[BadgeDefinition] = DEFAULT_BADGE_CATALOG,
        history: Optional[HistoryView] = None,
        clock: Clock = datetime.now,
    ) -> None:
        """Initialize the aggregator.

        Args:
            state: Persisted state to rehydrate, or None for a new user
            policy: Progression policy
            catalog: Badge catalog
            history: Read-only view of prior days
            clock: Returns the current local time
        """
        self._policy = policy
        self._catalog = list(catalog)
        self._history = history
        self._clock = clock
        self._lock = threading.Lock()
        self._closed = False

        if state is None:
            state = UserProgressState(daily=DailyProgress(day=clock().date()))
        self._state = rehydrate(state, policy)

    @property
    def state(self) -> UserProgressState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def mascot(self) -> MascotState:
        return current_mascot(self._state, self._clock(), self._policy)

    def apply(self, event: ProgressEvent) -> StepResult:
        """Apply one event and publish the resulting state.

        Raises:
            RuntimeError: If the aggregator has been closed
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("ProgressAggregator is closed")
            result = apply_event(
                self._state,
                event,
                policy=self._policy,
                catalog=self._catalog,
                history=self._history,
                now=self._clock(),
            )
            if result.ok:
                self._state = result.state
            return result

    def needs_rollover(self, today: Optional[date] = None) -> bool:
        """Whether the clock has passed the active day."""
        today = today or self._clock().date()
        return today > self._state.daily.day

    def roll_over_if_needed(self) -> Optional[StepResult]:
        """Apply DayRollover when the local calendar day has changed."""
        today = self._clock().date()
        if not self.needs_rollover(today):
            return None
        return self.apply(DayRollover(day=today))

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def __enter__(self) -> "ProgressAggregator":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
