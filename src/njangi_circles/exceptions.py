"""Exception hierarchy for circle state resolution.

All exceptions inherit from CircleResolutionError for easy catching.
"""

from __future__ import annotations


class CircleResolutionError(Exception):
    """Base exception for all njangi_circles errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class MissingFieldError(CircleResolutionError):
    """A required config field could not be resolved from any source."""

    def __init__(self, field: str, circle_id: str | None = None) -> None:
        details = {"field": field}
        if circle_id:
            details["circle_id"] = circle_id
        super().__init__(f"No source provided required field '{field}'", details)
        self.field = field


class CircleNotFoundError(CircleResolutionError):
    """The circle could not be identified (surfaced to users as 'not found')."""


class RateUnavailableError(CircleResolutionError):
    """The exchange rate is missing, zero or not a number."""


class ConfigInvariantViolation(CircleResolutionError):
    """cycle_day is outside the range allowed for the cycle type."""


class FetchFailure(CircleResolutionError):
    """An underlying ledger or price fetch failed (network, RPC error, timeout)."""
