"""Tests for reward toast formatting and the per-user queue."""

from flyfit.core.models import (
    BadgeEarnedEvent,
    ChallengeCompletedEvent,
    LevelUpEvent,
    XPGainedEvent,
)
from flyfit.shell.notifications import ToastNotificationSink, format_reward


class TestFormatReward:
    """Tests for format_reward."""

    def test_xp_gained(self):
        """XP gains are plain toasts."""
        toast = format_reward(XPGainedEvent(amount=20, source="water_goal"))
        assert toast.title == "+20 XP"
        assert toast.description == "water_goal"
        assert not toast.celebrate

    def test_level_up(self):
        """Level-ups celebrate."""
        toast = format_reward(LevelUpEvent(old_level=4, new_level=5))
        assert toast.title == "🎉 New level: 5!"
        assert toast.celebrate

    def test_badge(self):
        """Badges show the badge name."""
        toast = format_reward(BadgeEarnedEvent(badge_id="night_owl", name="Night Owl"))
        assert toast.title == "🏆 New badge: Night Owl!"
        assert toast.celebrate

    def test_challenge(self):
        """Challenge toasts show the points."""
        toast = format_reward(ChallengeCompletedEvent(challenge_id="c1", title="Hydration", points_awarded=100))
        assert toast.title == "Challenge completed! +100 points 🎉"
        assert toast.description == "Hydration"


class TestToastNotificationSink:
    """Tests for ToastNotificationSink."""

    def test_dispatch_and_drain(self):
        """Toasts are queued in order and cleared on drain."""
        sink = ToastNotificationSink()
        sink.dispatch("u", [XPGainedEvent(amount=5, source="steps"), LevelUpEvent(old_level=1, new_level=2)])

        assert [t.kind for t in sink.drain("u")] == ["xp_gained", "level_up"]
        assert sink.drain("u") == []

    def test_queue_is_bounded(self):
        """Only the newest toasts are kept."""
        sink = ToastNotificationSink(max_pending=2)
        sink.dispatch("u", [XPGainedEvent(amount=n, source="steps") for n in (1, 2, 3)])

        assert [t.title for t in sink.drain("u")] == ["+2 XP", "+3 XP"]

    def test_users_separate(self):
        """Each user has their own queue."""
        sink = ToastNotificationSink()
        sink.dispatch("a", [XPGainedEvent(amount=5, source="steps")])
        assert sink.drain("b") == []
