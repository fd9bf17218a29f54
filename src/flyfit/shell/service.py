"""Progress Service - Wires the aggregator to persistence and notifications.

One ProgressAggregator per user is rehydrated from the store on first use
and kept in a bounded least-recently-used cache. After every successful step
the new state is saved and the reward events are handed to the notification
sink. Steps for the same user are serialized.
"""

import logging
import threading
import zlib
from collections import OrderedDict
from collections.abc import Sequence
from datetime import date, datetime
from typing import Any, Optional, Protocol

from ..core.aggregator import Clock, ProgressAggregator
from ..core.badges import DEFAULT_BADGE_CATALOG, HistoryView
from ..core.levels import xp_progress
from ..core.models import (
    BadgeDefinition,
    DailyProgress,
    DayRollover,
    MascotState,
    Metric,
    ProgressEvent,
    StepResult,
    UserProgressState,
)
from ..core.policy import ProgressionPolicy
from .notifications import NotificationSink, ToastNotificationSink


logger = logging.getLogger(__name__)


class ProgressStore(Protocol):
    def load(self, user_id: str) -> UserProgressState | None: ...

    def save(self, user_id: str, state: UserProgressState) -> bool: ...

    def save_day(self, user_id: str, daily: DailyProgress) -> bool: ...

    def history_of(
        self, user_id: str, metric: Metric, window_days: int, before: date | None = None
    ) -> list[DailyProgress]: ...


# Aggregators kept in memory; older users are reloaded from the store
MAX_CACHED_USERS = 1024

# Per-user serialization uses a fixed pool of locks
LOCK_STRIPES = 64


class ProgressService:
    """Application-level entry point for progression events."""

    def __init__(
        self,
        store: ProgressStore,
        sink: Optional[NotificationSink] = None,
        policy: Optional[ProgressionPolicy] = None,
        catalog: Optional[Sequence[BadgeDefinition]] = None,
        clock: Clock = datetime.now,
        max_cached_users: int = MAX_CACHED_USERS,
    ) -> None:
        self.store = store
        self.sink = sink if sink is not None else ToastNotificationSink()
        self.policy = policy or ProgressionPolicy()
        self.catalog = list(catalog) if catalog is not None else list(DEFAULT_BADGE_CATALOG)
        self._clock = clock
        self._max_cached_users = max_cached_users
        self._aggregators: OrderedDict[str, ProgressAggregator] = OrderedDict()
        self._user_locks = [threading.Lock() for _ in range(LOCK_STRIPES)]
        self._lock = threading.Lock()

    def _history_view(self, user_id: str) -> HistoryView:
        def history(metric: Metric, window_days: int) -> list[DailyProgress]:
            return self.store.history_of(user_id, metric, window_days, before=self._clock().date())

        return history

    def _user_lock(self, user_id: str) -> threading.Lock:
        return self._user_locks[zlib.crc32(user_id.encode()) % LOCK_STRIPES]

    @property
    def cached_users(self) -> list[str]:
        """User ids with a live aggregator, least recently used first."""
        with self._lock:
            return list(self._aggregators)

    def aggregator_for(self, user_id: str) -> ProgressAggregator:
        """Get the user's aggregator, rehydrating it from the store if needed.

        Raises:
            Exception: If the store cannot load the user's state; nothing is
                cached in that case
        """
        with self._lock:
            aggregator = self._aggregators.get(user_id)
            if aggregator is not None:
                self._aggregators.move_to_end(user_id)
                return aggregator

            state = self.store.load(user_id)
            if state is None:
                logger.info("No stored progress for %s, starting fresh", user_id[:8])
            aggregator = ProgressAggregator(
                state,
                policy=self.policy,
                catalog=self.catalog,
                history=self._history_view(user_id),
                clock=self._clock,
            )
            self._aggregators[user_id] = aggregator
            while len(self._aggregators) > self._max_cached_users:
                evicted, _ = self._aggregators.popitem(last=False)
                logger.debug("Evicted idle progress for %s", evicted[:8])
            return aggregator

    def _after_step(
        self, user_id: str, previous_day: DailyProgress, result: StepResult, rolled_over: bool = False
    ) -> None:
        if not result.ok:
            return
        if rolled_over:
            self.store.save_day(user_id, previous_day)
        if not self.store.save(user_id, result.state):
            logger.warning("Progress for %s not persisted; will retry on next step", user_id[:8])
        if result.rewards:
            self.sink.dispatch(user_id, result.rewards)

    def _roll_over(self, user_id: str, aggregator: ProgressAggregator) -> None:
        previous_day = aggregator.state.daily
        result = aggregator.roll_over_if_needed()
        if result is not None:
            self._after_step(user_id, previous_day, result, rolled_over=True)

    def apply(self, user_id: str, event: ProgressEvent) -> StepResult:
        """Apply an event for a user, persisting and notifying on success.

        Args:
            user_id: The user's ID
            event: The event to apply

        Returns:
            StepResult from the aggregator; on error the state is unchanged
        """
        # The aggregator is looked up under the user's lock so an evicted
        # user is reloaded only after in-flight steps have been saved.
        with self._user_lock(user_id):
            aggregator = self.aggregator_for(user_id)
            self._roll_over(user_id, aggregator)
            previous_day = aggregator.state.daily
            result = aggregator.apply(event)
            self._after_step(user_id, previous_day, result, rolled_over=isinstance(event, DayRollover))

        if result.error is not None:
            logger.info("Event %s rejected for %s: %s", type(event).__name__, user_id[:8], result.error.message)
        return result

    def snapshot(self, user_id: str) -> UserProgressState:
        """Current state for a user, rolled over to today if needed."""
        with self._user_lock(user_id):
            aggregator = self.aggregator_for(user_id)
            self._roll_over(user_id, aggregator)
            return aggregator.state

    def mascot(self, user_id: str) -> MascotState:
        with self._user_lock(user_id):
            return self.aggregator_for(user_id).mascot()

    def summary(self, user_id: str) -> dict[str, Any]:
        """JSON-ready overview of a user's progress."""
        state = self.snapshot(user_id)
        progress = xp_progress(state.total_xp, state.level, self.policy.curve)
        earned = {b.badge_id: b.earned_at for b in state.badges}

        return {
            "total_xp": state.total_xp,
            "level": state.level,
            "level_progress": progress.model_dump(),
            "daily": state.daily.model_dump(mode="json"),
            "mascot": self.mascot(user_id).model_dump(mode="json"),
            "badges": [
                {
                    "id": badge.id,
                    "name": badge.name,
                    "description": badge.description,
                    "icon": badge.icon,
                    "earned_at": earned[badge.id].isoformat() if badge.id in earned else None,
                }
                for badge in self.catalog
            ],
            "challenges": [
                {**c.model_dump(mode="json"), "status": c.status.value} for c in state.challenges
            ],
        }

    def close(self) -> None:
        """Close every aggregator and forget cached state."""
        with self._lock:
            for aggregator in self._aggregators.values():
                aggregator.close()
            self._aggregators.clear()
        logger.info("Progress service closed")
