"""Notification Sink - Turns reward events into toast messages.

The core never calls into UI or audio. The service hands every step's reward
events to a sink, which formats them and queues them per user for the app to
pick up (confetti and sound are triggered client-side from the `kind`).
"""

import logging
from collections import defaultdict, deque
from collections.abc import Sequence
from typing import Protocol

from pydantic import BaseModel

from ..core.models import (
    BadgeEarnedEvent,
    ChallengeCompletedEvent,
    LevelUpEvent,
    RewardEvent,
    XPGainedEvent,
)


logger = logging.getLogger(__name__)

# Oldest toasts are dropped beyond this many per user
MAX_PENDING = 50


class Toast(BaseModel):
    """A presentable notification."""

    kind: str
    title: str
    description: str = ""
    celebrate: bool = False


class NotificationSink(Protocol):
    def dispatch(self, user_id: str, rewards: Sequence[RewardEvent]) -> None: ...


def format_reward(event: RewardEvent) -> Toast:
    """Render a reward event as a toast.

    Level-ups, badges and challenges are flagged for the confetti effect.
    """
    if isinstance(event, XPGainedEvent):
        return Toast(kind=event.kind, title=f"+{event.amount} XP", description=event.source)
    if isinstance(event, LevelUpEvent):
        return Toast(
            kind=event.kind,
            title=f"🎉 New level: {event.new_level}!",
            description="Congratulations!",
            celebrate=True,
        )
    if isinstance(event, BadgeEarnedEvent):
        return Toast(kind=event.kind, title=f"🏆 New badge: {event.name}!", celebrate=True)
    if isinstance(event, ChallengeCompletedEvent):
        return Toast(
            kind=event.kind,
            title=f"Challenge completed! +{event.points_awarded} points 🎉",
            description=event.title,
            celebrate=True,
        )
    raise ValueError(f"Unknown reward event: {event!r}")


class ToastNotificationSink:
    """Queues formatted toasts per user until they are drained."""

    def __init__(self, max_pending: int = MAX_PENDING) -> None:
        self._pending: dict[str, deque[Toast]] = defaultdict(lambda: deque(maxlen=max_pending))

    def dispatch(self, user_id: str, rewards: Sequence[RewardEvent]) -> None:
        for event in rewards:
            toast = format_reward(event)
            logger.info("Notify %s: %s", user_id[:8], toast.title)
            self._pending[user_id].append(toast)

    def drain(self, user_id: str) -> list[Toast]:
        """Return and clear the user's pending toasts."""
        pending = self._pending.pop(user_id, None)
        return list(pending) if pending else []
