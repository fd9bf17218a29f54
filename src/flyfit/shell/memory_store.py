"""In-memory progress store.

Same interface as ProgressFirestoreClient. Nothing is persisted across
process restarts; used for local runs and tests.
"""

import logging
from datetime import date, timedelta

from ..core.models import DailyProgress, Metric, UserProgressState


logger = logging.getLogger(__name__)


class InMemoryProgressStore:
    """Dictionary-backed store for progression state and day history."""

    def __init__(self) -> None:
        self._states: dict[str, UserProgressState] = {}
        self._days: dict[str, dict[date, DailyProgress]] = {}
        logger.warning("InMemoryProgressStore initialized - progress is NOT persisted")

    def load(self, user_id: str) -> UserProgressState | None:
        return self._states.get(user_id)

    def save(self, user_id: str, state: UserProgressState) -> bool:
        self._states[user_id] = state
        logger.debug("Saved progress for %s (NOT PERSISTED)", user_id[:8])
        return True

    def save_day(self, user_id: str, daily: DailyProgress) -> bool:
        self._days.setdefault(user_id, {})[daily.day] = daily
        return True

    def history_of(
        self,
        user_id: str,
        metric: Metric,
        window_days: int,
        before: date | None = None,
    ) -> list[DailyProgress]:
        """Archived days in [before - window_days, before), oldest first."""
        if before is None:
            before = date.today()
        start = before - timedelta(days=window_days)
        days = self._days.get(user_id, {})
        return [days[d] for d in sorted(days) if start <= d < before]
