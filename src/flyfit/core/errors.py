"""Structured error results for the progression engine.

The core never raises these to its callers: every failure is returned as a
ProgressError alongside the unchanged prior state.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ErrorKind(str, Enum):
    """Recoverable failure categories."""

    INVALID_INPUT = "invalid_input"
    INVALID_TRANSITION = "invalid_transition"


class ProgressError(BaseModel):
    """A rejected event or transition, safe to show to the caller."""

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str

    @classmethod
    def invalid_input(cls, message: str) -> "ProgressError":
        return cls(kind=ErrorKind.INVALID_INPUT, message=message)

    @classmethod
    def invalid_transition(cls, message: str) -> "ProgressError":
        return cls(kind=ErrorKind.INVALID_TRANSITION, message=message)
