"""XP/Level Calculator - Pure functions for level math.

All functions are pure: same input always produces same output, no side effects.
"""

from bisect import bisect_right

from .models import XPProgress
from .policy import LevelCurve


DEFAULT_CURVE = LevelCurve()


def xp_required_for_level(level: int, curve: LevelCurve = DEFAULT_CURVE) -> int:
    """Cumulative XP needed to reach a level.

    Args:
        level: Level number, starting at 1
        curve: Requirement curve

    Returns:
        Total XP at which `level` begins (0 for level 1)

    Raises:
        ValueError: If level is below 1
    """
    if level < 1:
        raise ValueError(f"level must be >= 1, got {level}")

    table = curve.thresholds
    if level <= len(table):
        return table[level - 1]
    return table[-1] + (level - len(table)) * curve.overflow_step


def level_from_xp(total_xp: int, curve: LevelCurve = DEFAULT_CURVE) -> int:
    """Largest level whose cumulative requirement is <= total_xp.

    Raises:
        ValueError: If total_xp is negative
    """
    if total_xp < 0:
        raise ValueError(f"total_xp must be >= 0, got {total_xp}")

    table = curve.thresholds
    if total_xp >= table[-1]:
        return len(table) + (total_xp - table[-1]) // curve.overflow_step
    return bisect_right(table, total_xp)


def xp_progress(total_xp: int, level: int, curve: LevelCurve = DEFAULT_CURVE) -> XPProgress:
    """Progress within `level` toward the next one.

    Args:
        total_xp: Cumulative XP
        level: Level to measure against (normally level_from_xp(total_xp))
        curve: Requirement curve

    Returns:
        XPProgress with XP earned in the level, XP the level spans, and a
        percentage clamped to [0, 100]
    """
    if total_xp < 0:
        raise ValueError(f"total_xp must be >= 0, got {total_xp}")

    floor = xp_required_for_level(level, curve)
    ceiling = xp_required_for_level(level + 1, curve)
    current = total_xp - floor
    required = ceiling - floor

    percentage = min(max(100 * current / required, 0.0), 100.0)

    return XPProgress(current=current, required=required, percentage=percentage)
