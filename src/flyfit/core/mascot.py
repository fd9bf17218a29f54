"""Mascot Emotion Resolver - Pure mapping from progress to mascot mood.

A notable recent event always wins. Otherwise the emotion comes from the
MascotPolicy thresholds applied to the average goal ratio.
"""

from collections.abc import Iterable
from enum import Enum
from typing import Optional

from .models import MascotEmotion, MascotState, ProgressRatios
from .policy import MascotPolicy


class RecentEvent(str, Enum):
    LEVEL_UP = "level_up"
    BADGE_EARNED = "badge_earned"
    CHALLENGE_COMPLETED = "challenge_completed"


# Most significant first
EVENT_PRIORITY = [RecentEvent.LEVEL_UP, RecentEvent.CHALLENGE_COMPLETED, RecentEvent.BADGE_EARNED]

EVENT_EMOTIONS: dict[RecentEvent, MascotEmotion] = {
    RecentEvent.LEVEL_UP: MascotEmotion.CELEBRATING,
    RecentEvent.CHALLENGE_COMPLETED: MascotEmotion.CELEBRATING,
    RecentEvent.BADGE_EARNED: MascotEmotion.PROUD,
}

EVENT_MESSAGES: dict[RecentEvent, str] = {
    RecentEvent.LEVEL_UP: "🎉 New level! You're unstoppable!",
    RecentEvent.CHALLENGE_COMPLETED: "Challenge complete! You're a champion!",
    RecentEvent.BADGE_EARNED: "A new badge! I'm so proud of you!",
}

MOTIVATIONAL_MESSAGES: dict[MascotEmotion, list[str]] = {
    MascotEmotion.HAPPY: [
        "You're doing great! 💪",
        "You're amazing!",
        "Keep it up!",
    ],
    MascotEmotion.PROUD: [
        "I'm proud of you!",
        "You're hitting your goals!",
        "Bravo! You're making progress!",
    ],
    MascotEmotion.MOTIVATED: [
        "You can do it! I believe in you!",
        "One step at a time!",
        "Today is your day!",
    ],
    MascotEmotion.TIRED: [
        "Remember to rest!",
        "Recovery matters too!",
        "Don't forget about yourself!",
    ],
    MascotEmotion.NEUTRAL: [
        "Hi! What are we doing today?",
        "Ready for a challenge?",
        "Let's get started together!",
    ],
    MascotEmotion.CELEBRATING: [
        "🎉 Goal reached!",
        "Incredible! You did it!",
        "You're a champion!",
    ],
}


def most_significant(events: Iterable[RecentEvent]) -> Optional[RecentEvent]:
    """Pick the highest-priority event, if any."""
    present = set(events)
    for candidate in EVENT_PRIORITY:
        if candidate in present:
            return candidate
    return None


def emotion_for_ratios(ratios: ProgressRatios, hour: int, policy: MascotPolicy) -> MascotEmotion:
    average = ratios.average

    if average >= policy.proud:
        return MascotEmotion.PROUD
    if average >= policy.happy:
        return MascotEmotion.HAPPY
    if average >= policy.motivated:
        return MascotEmotion.MOTIVATED
    if average < policy.tired_below and hour >= policy.late_hour:
        return MascotEmotion.TIRED
    return MascotEmotion.NEUTRAL


def resolve_mascot(
    ratios: ProgressRatios,
    recent_event: Optional[RecentEvent] = None,
    hour: int = 12,
    policy: MascotPolicy = MascotPolicy(),
    variant: int = 0,
) -> MascotState:
    """Derive the mascot's emotion and message.

    Args:
        ratios: Goal ratios for steps, water and active minutes
        recent_event: Notable event from the latest update, overrides ratios
        hour: Local hour of day (0-23), used for the late-day tired state
        policy: Threshold table
        variant: Selects among the messages for the resolved emotion

    Returns:
        MascotState with emotion and message
    """
    if recent_event is not None:
        return MascotState(
            emotion=EVENT_EMOTIONS[recent_event],
            message=EVENT_MESSAGES[recent_event],
        )

    emotion = emotion_for_ratios(ratios, hour, policy)
    messages = MOTIVATIONAL_MESSAGES[emotion]
    return MascotState(emotion=emotion, message=messages[variant % len(messages)])
