"""MCP Server - Tool definitions for logging activity and reading progress.

Each tool turns its arguments into a progression event, applies it through
the ProgressService and returns the outcome with formatted reward toasts.
The calling user is identified by the X-User-Id header (see main.py).
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from ..core.challenges import SUGGESTED_CHALLENGES, make_challenge
from ..core.models import (
    AddChallenge,
    AddWater,
    Challenge,
    CompleteChallengeProgress,
    CompleteWorkout,
    LogActiveMinutes,
    LogMeal,
    LogSteps,
    Metric,
    RemoveChallenge,
    StartChallenge,
    StepResult,
)
from .config import AppConfig, build_store, load_badge_catalog, load_policy
from .notifications import format_reward
from .service import ProgressService


logger = logging.getLogger(__name__)

# Context variable to store current user_id per request
current_user_id: ContextVar[str | None] = ContextVar("current_user_id", default=None)

# Configure transport security for Cloud Run deployment
transport_security = TransportSecuritySettings(
    enable_dns_rebinding_protection=True,
    allowed_hosts=[
        "localhost:*",
        "127.0.0.1:*",
        "*.run.app:*",
        "*.run.app",
    ],
)

mcp = FastMCP(
    "flyfit",
    instructions="""FlyFit - Activity tracking with levels, badges and challenges.

Use these tools to log the user's steps, water, active minutes, meals and
workouts. Every logging tool returns the XP, level-ups, badges and completed
challenges it triggered; celebrate those with the user.
Call get_progress to show the current level, daily goals and mascot mood.""",
    stateless_http=True,
    transport_security=transport_security,
)

_service: ProgressService | None = None


def get_service() -> ProgressService:
    """Get or create the progress service from the environment."""
    global _service
    if _service is None:
        config = AppConfig.from_env()
        _service = ProgressService(
            store=build_store(config),
            policy=load_policy(config.policy_file),
            catalog=load_badge_catalog(config.badge_catalog_file),
        )
    return _service


def set_service(service: ProgressService | None) -> None:
    """Install a service (or clear it with None), closing the previous one."""
    global _service
    if _service is not None and _service is not service:
        _service.close()
    _service = service


def get_user_id() -> str:
    """Get current user ID.

    Raises:
        RuntimeError: If no user is identified
    """
    user_id = current_user_id.get()
    if user_id is None:
        raise RuntimeError("No user identified. Ensure the X-User-Id header is provided.")
    return user_id


def result_to_dict(result: StepResult) -> dict[str, Any]:
    """Shape a StepResult for tool and HTTP responses."""
    if result.error is not None:
        return {
            "error": result.error.message,
            "error_kind": result.error.kind.value,
            "total_xp": result.state.total_xp,
            "level": result.state.level,
        }

    return {
        "total_xp": result.state.total_xp,
        "level": result.state.level,
        "daily": result.state.daily.model_dump(mode="json"),
        "rewards": [
            {**event.model_dump(mode="json"), **format_reward(event).model_dump()}
            for event in result.rewards
        ],
        "mascot": result.mascot.model_dump(mode="json"),
    }


# ==================== Activity Tools ====================


@mcp.tool()
def add_water(amount_ml: int = 250) -> dict:
    """Log water intake.

    Args:
        amount_ml: Water in milliliters (default one glass, 250)

    Returns:
        Updated totals, rewards and mascot state
    """
    return result_to_dict(get_service().apply(get_user_id(), AddWater(amount=amount_ml)))


@mcp.tool()
def log_steps(count: int) -> dict:
    """Log steps walked since the last update.

    Args:
        count: Number of new steps

    Returns:
        Updated totals, rewards and mascot state
    """
    return result_to_dict(get_service().apply(get_user_id(), LogSteps(count=count)))


@mcp.tool()
def log_active_minutes(minutes: int) -> dict:
    """Log active minutes.

    Args:
        minutes: Minutes of activity

    Returns:
        Updated totals, rewards and mascot state
    """
    return result_to_dict(get_service().apply(get_user_id(), LogActiveMinutes(count=minutes)))


@mcp.tool()
def log_meal(calories: int = 0) -> dict:
    """Record that the user logged a meal.

    Args:
        calories: Calories in the meal

    Returns:
        Updated totals, rewards and mascot state
    """
    return result_to_dict(get_service().apply(get_user_id(), LogMeal(calories=calories)))


@mcp.tool()
def complete_workout(xp_reward: int = 50, duration_minutes: int = 0) -> dict:
    """Record a finished workout.

    Args:
        xp_reward: XP granted for the workout (default 50)
        duration_minutes: Workout length, added to active minutes

    Returns:
        Updated totals, rewards and mascot state
    """
    event = CompleteWorkout(xp_reward=xp_reward, duration_minutes=duration_minutes)
    return result_to_dict(get_service().apply(get_user_id(), event))


# ==================== Challenge Tools ====================


@mcp.tool()
def list_suggested_challenges() -> list[dict]:
    """List built-in challenge templates.

    Returns:
        Templates with their index for add_suggested_challenge
    """
    return [
        {"index": i, **{k: (v.value if isinstance(v, Metric) else v) for k, v in t.items()}}
        for i, t in enumerate(SUGGESTED_CHALLENGES)
    ]


@mcp.tool()
def add_suggested_challenge(index: int) -> dict:
    """Add one of the suggested challenges (not started yet).

    Args:
        index: Index from list_suggested_challenges

    Returns:
        The new challenge, or an error
    """
    if not 0 <= index < len(SUGGESTED_CHALLENGES):
        return {"error": f"No suggested challenge at index {index}."}

    challenge = make_challenge(SUGGESTED_CHALLENGES[index], str(uuid.uuid4()))
    result = get_service().apply(get_user_id(), AddChallenge(challenge=challenge))
    if result.error is not None:
        return result_to_dict(result)
    return {"challenge": challenge.model_dump(mode="json")}


@mcp.tool()
def add_custom_challenge(
    title: str,
    target: float,
    unit: str,
    duration_days: int = 7,
    points: int = 100,
    description: str = "",
) -> dict:
    """Create a custom challenge advanced manually with add_challenge_progress.

    Args:
        title: Challenge title
        target: Amount to reach
        unit: Unit of the target (e.g., "days", "km")
        duration_days: Length of the challenge
        points: XP awarded on completion
        description: Optional details

    Returns:
        The new challenge, or an error
    """
    try:
        challenge = Challenge(
            id=str(uuid.uuid4()),
            title=title,
            description=description,
            target=target,
            unit=unit,
            duration_days=duration_days,
            points=points,
        )
    except ValueError as e:
        return {"error": f"Invalid challenge: {e}"}

    result = get_service().apply(get_user_id(), AddChallenge(challenge=challenge))
    if result.error is not None:
        return result_to_dict(result)
    return {"challenge": challenge.model_dump(mode="json")}


@mcp.tool()
def start_challenge(challenge_id: str) -> dict:
    """Start a challenge that has not been started yet.

    Args:
        challenge_id: ID of the challenge

    Returns:
        Updated totals, or an error if the challenge cannot be started
    """
    return result_to_dict(get_service().apply(get_user_id(), StartChallenge(challenge_id=challenge_id)))


@mcp.tool()
def add_challenge_progress(challenge_id: str, delta: float) -> dict:
    """Add progress to an active challenge.

    Args:
        challenge_id: ID of the challenge
        delta: Amount of progress in the challenge's unit

    Returns:
        Updated totals and rewards (completion awards the challenge points)
    """
    event = CompleteChallengeProgress(challenge_id=challenge_id, delta=delta)
    return result_to_dict(get_service().apply(get_user_id(), event))


@mcp.tool()
def remove_challenge(challenge_id: str) -> dict:
    """Remove a challenge that has not been completed.

    Args:
        challenge_id: ID of the challenge

    Returns:
        Updated totals, or an error if the challenge is completed or unknown
    """
    return result_to_dict(get_service().apply(get_user_id(), RemoveChallenge(challenge_id=challenge_id)))


# ==================== Query Tools ====================


@mcp.tool()
def get_progress() -> dict:
    """Get level, XP, today's goals, badges, challenges and mascot mood.

    Returns:
        Progress overview plus any notifications not yet shown
    """
    user_id = get_user_id()
    service = get_service()
    summary = service.summary(user_id)

    drain = getattr(service.sink, "drain", None)
    if drain is not None:
        summary["notifications"] = [t.model_dump() for t in drain(user_id)]
    return summary
