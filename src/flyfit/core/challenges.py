"""Challenge Tracker - Pure functions for challenge transitions.

A challenge moves not-started -> active -> completed and never back.
Progress is clamped to the target and the completion reward is reported
exactly once, on the update that completes it.
"""

import logging
from collections.abc import Sequence
from datetime import date, timedelta
from typing import Any, Optional

from .errors import ProgressError
from .models import Challenge, ChallengeCompletedEvent, ChallengeStatus, Metric


logger = logging.getLogger(__name__)


SUGGESTED_CHALLENGES: list[dict[str, Any]] = [
    {
        "title": "10,000 steps every day",
        "description": "Reach 10,000 steps each day for a week",
        "target": 7,
        "unit": "days",
        "duration_days": 7,
        "points": 100,
        "metric": Metric.STEPS_GOAL_DAYS,
    },
    {
        "title": "2L of water a day",
        "description": "Drink at least 2 liters of water every day for two weeks",
        "target": 14,
        "unit": "days",
        "duration_days": 14,
        "points": 150,
        "metric": Metric.WATER_GOAL_DAYS,
    },
    {
        "title": "7 days without sweets",
        "description": "Avoid sweets for a whole week",
        "target": 7,
        "unit": "days",
        "duration_days": 7,
        "points": 200,
        "metric": None,
    },
    {
        "title": "Morning training",
        "description": "Work out in the morning 5 days in a row",
        "target": 5,
        "unit": "days",
        "duration_days": 5,
        "points": 120,
        "metric": None,
    },
    {
        "title": "21 days of a new habit",
        "description": "Practice your chosen habit for 21 days without a break",
        "target": 21,
        "unit": "days",
        "duration_days": 21,
        "points": 300,
        "metric": None,
    },
    {
        "title": "100,000 steps",
        "description": "Walk 100,000 steps within two weeks",
        "target": 100_000,
        "unit": "steps",
        "duration_days": 14,
        "points": 150,
        "metric": Metric.STEPS,
    },
]


def make_challenge(template: dict[str, Any], challenge_id: str) -> Challenge:
    """Build a not-started challenge from a template such as SUGGESTED_CHALLENGES."""
    return Challenge(id=challenge_id, **template)


def start_challenge(challenge: Challenge, today: date) -> tuple[Challenge, Optional[ProgressError]]:
    """Activate a not-started challenge.

    Args:
        challenge: The challenge to start
        today: Start date; the end date is today + duration_days

    Returns:
        Tuple of (challenge, error). On an illegal transition the challenge is
        returned unchanged together with an InvalidTransition error.
    """
    if challenge.status is not ChallengeStatus.NOT_STARTED:
        logger.debug("Ignoring start of %s challenge %s", challenge.status.value, challenge.id)
        return challenge, ProgressError.invalid_transition(
            f"Challenge {challenge.id} is already {challenge.status.value}"
        )

    started = challenge.model_copy(
        update={
            "is_active": True,
            "started_on": today,
            "ends_on": today + timedelta(days=challenge.duration_days),
        }
    )
    return started, None


def remove_challenge(
    challenges: Sequence[Challenge], challenge_id: str
) -> tuple[list[Challenge], Optional[ProgressError]]:
    """Drop a challenge that has not been completed.

    Completed challenges are part of the user's record and stay; removing one
    returns the list unchanged with an InvalidTransition error.
    """
    for challenge in challenges:
        if challenge.id == challenge_id and challenge.is_completed:
            return list(challenges), ProgressError.invalid_transition(
                f"Challenge {challenge_id} is completed and cannot be removed"
            )
    return [c for c in challenges if c.id != challenge_id], None


def is_expired(challenge: Challenge, today: Optional[date]) -> bool:
    """Whether `today` is past the challenge's last day."""
    return today is not None and challenge.ends_on is not None and today > challenge.ends_on


def advance_challenge(
    challenge: Challenge,
    delta: float,
    unit: Optional[str] = None,
    today: Optional[date] = None,
) -> tuple[Challenge, Optional[ChallengeCompletedEvent]]:
    """Move an active challenge toward its target.

    Args:
        challenge: The challenge to advance
        delta: Non-negative progress amount
        unit: If given, must match the challenge's unit or the call is a no-op
        today: Current day; progress after `ends_on` is ignored

    Returns:
        Tuple of (challenge, completion event). The event is only present on
        the call that completes the challenge.
    """
    if not challenge.is_active or delta < 0:
        return challenge, None
    if is_expired(challenge, today):
        logger.debug("Challenge %s ended on %s, ignoring progress", challenge.id, challenge.ends_on)
        return challenge, None
    if unit is not None and unit != challenge.unit:
        logger.debug("Unit %s does not match challenge %s (%s)", unit, challenge.id, challenge.unit)
        return challenge, None

    current = min(challenge.current + delta, challenge.target)

    if current >= challenge.target and not challenge.is_completed:
        completed = challenge.model_copy(
            update={"current": current, "is_completed": True, "is_active": False}
        )
        event = ChallengeCompletedEvent(
            challenge_id=challenge.id,
            title=challenge.title,
            points_awarded=challenge.points,
        )
        return completed, event

    return challenge.model_copy(update={"current": current}), None


def advance_challenges(
    challenges: Sequence[Challenge],
    metric: Metric,
    delta: float,
    today: Optional[date] = None,
) -> tuple[list[Challenge], list[ChallengeCompletedEvent]]:
    """Advance every active challenge keyed to a metric.

    Challenges are evaluated independently in ascending id order; the
    returned list keeps the input order.

    Returns:
        Tuple of (updated challenges, completion events in id order)
    """
    updated = {c.id: c for c in challenges}
    events: list[ChallengeCompletedEvent] = []

    for challenge in sorted(challenges, key=lambda c: c.id):
        if challenge.metric != metric:
            continue
        new_challenge, event = advance_challenge(challenge, delta, today=today)
        updated[challenge.id] = new_challenge
        if event is not None:
            events.append(event)

    return [updated[c.id] for c in challenges], events
