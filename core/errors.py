"""
Error types for the scheduling engine.

Pure computations raise these. Orchestration components wrap any other
failure of a load in ``FetchError`` and degrade to an explicit empty state.
"""
from __future__ import annotations

from typing import Any, Optional


class SchedulingError(Exception):
    """Base class for scheduling engine errors."""


class InvalidScheduleError(SchedulingError):
    """An opening interval closes before it opens."""

    def __init__(self, opening_time: str, closing_time: str, message: Optional[str] = None):
        self.opening_time = opening_time
        self.closing_time = closing_time
        super().__init__(
            message or f"Invalid schedule: closing time {closing_time} is before opening time {opening_time}"
        )


class FetchError(SchedulingError):
    """A remote call failed: network error, timeout or non-2xx response."""

    def __init__(
        self,
        operation: str,
        message: str,
        *,
        status_code: Optional[int] = None,
        timed_out: bool = False,
        detail: Any = None,
    ):
        self.operation = operation
        self.status_code = status_code
        self.timed_out = timed_out
        self.detail = detail
        super().__init__(message)

    @property
    def user_message(self) -> str:
        """Message suitable for a single user-facing notification."""
        if self.timed_out:
            return f"The request took too long ({self.operation}). Please try again."
        return str(self)
