"""Firestore Client - Persistence for progression state and day history.

This module handles all database I/O for the progression engine.
All I/O is contained here; business logic is in the core module.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

from google.cloud import firestore

from ..core.models import DailyProgress, Metric, UserProgressState


logger = logging.getLogger(__name__)


@dataclass
class FirestoreConfig:
    """Configuration for Firestore client.

    Attributes:
        project_id: GCP project ID (None for default)
        database: Firestore database name (None for default database)
    """

    project_id: str | None = None
    database: str | None = None


class ProgressFirestoreClient:
    """Client for persisting progression state to Firestore.

    Document structure per user:
        users/{user_id}/
            progress/state: { total_xp, level, daily, counters, badges, challenges }
            days/{YYYY-MM-DD}: { day, steps, steps_goal, water, ... }
    """

    def __init__(self, config: FirestoreConfig | None = None) -> None:
        """Initialize Firestore client.

        Args:
            config: Firestore configuration
        """
        self.config = config or FirestoreConfig()
        self._client: firestore.Client | None = None

    @property
    def client(self) -> firestore.Client:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs: dict[str, Any] = {}
            if self.config.project_id:
                kwargs["project"] = self.config.project_id
            if self.config.database:
                kwargs["database"] = self.config.database
            self._client = firestore.Client(**kwargs)
        return self._client

    def _user_ref(self, user_id: str) -> firestore.DocumentReference:
        """Get reference to user document."""
        return self.client.collection("users").document(user_id)

    def _state_ref(self, user_id: str) -> firestore.DocumentReference:
        """Get reference to the progression state document."""
        return self._user_ref(user_id).collection("progress").document("state")

    def _day_ref(self, user_id: str, day: date) -> firestore.DocumentReference:
        """Get reference to a closed day document."""
        return self._user_ref(user_id).collection("days").document(day.isoformat())

    # ==================== State Operations ====================

    def load(self, user_id: str) -> UserProgressState | None:
        """Fetch a user's progression state.

        The stored level is returned as-is; callers rehydrate it from XP.
        Read and parse failures are raised, never reported as a missing
        document, so that a new state is not saved over the stored one.

        Args:
            user_id: The user's ID

        Returns:
            UserProgressState if found, None if the user has no progress yet

        Raises:
            Exception: If the read fails or the document is not a valid state
        """
        logger.debug("Loading progress for user: %s", user_id[:8])
        try:
            doc = self._state_ref(user_id).get()
            if not doc.exists:
                return None
            data = doc.to_dict()
            data.pop("updated_at", None)
            return UserProgressState.model_validate(data)
        except Exception as e:
            logger.error("Failed to load progress: %s", str(e))
            raise

    def save(self, user_id: str, state: UserProgressState) -> bool:
        """Save a user's progression state.

        Args:
            user_id: The user's ID
            state: State to save

        Returns:
            True if successful
        """
        logger.info("Saving progress for user: %s (xp=%d)", user_id[:8], state.total_xp)
        try:
            data = state.model_dump(mode="json")
            data["updated_at"] = datetime.now()
            self._state_ref(user_id).set(data)
            return True
        except Exception as e:
            logger.error("Failed to save progress: %s", str(e))
            return False

    # ==================== History Operations ====================

    def save_day(self, user_id: str, daily: DailyProgress) -> bool:
        """Archive a finished day for streak history.

        Args:
            user_id: The user's ID
            daily: The day's final progress

        Returns:
            True if successful
        """
        logger.info("Archiving day %s for user: %s", daily.day, user_id[:8])
        try:
            self._day_ref(user_id, daily.day).set(daily.model_dump(mode="json"))
            return True
        except Exception as e:
            logger.error("Failed to archive day: %s", str(e))
            return False

    def history_of(
        self,
        user_id: str,
        metric: Metric,
        window_days: int,
        before: date | None = None,
    ) -> list[DailyProgress]:
        """Fetch archived days preceding `before`.

        Every archived day carries all metrics, so `metric` does not narrow
        the query; it is part of the history provider interface.

        Args:
            user_id: The user's ID
            metric: Metric the caller is interested in
            window_days: Number of days to look back
            before: Exclusive upper bound (defaults to today)

        Returns:
            Days in ascending date order (may be empty or have gaps)
        """
        if before is None:
            before = date.today()
        start = before - timedelta(days=window_days)

        logger.debug(
            "Fetching %s history for %s from %s to %s", metric.value, user_id[:8], start, before
        )
        days: list[DailyProgress] = []

        try:
            query = (
                self._user_ref(user_id).collection("days")
                .where("day", ">=", start.isoformat())
                .where("day", "<", before.isoformat())
                .order_by("day")
            )
            for doc in query.stream():
                days.append(DailyProgress.model_validate(doc.to_dict()))

            logger.debug("Found %d days in range", len(days))
            return days
        except Exception as e:
            logger.error("Failed to fetch history: %s", str(e))
            return []
