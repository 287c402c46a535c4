"""
Exception handling utilities.

Defines the referral engine's error taxonomy and categorized exception
types for proper error handling.
"""

from typing import Any

from sqlalchemy.exc import OperationalError


class ReferralError(Exception):
    """Base class for referral engine errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(ReferralError):
    """Raised when a strategy, reset or benefits config is malformed."""

    def __init__(
        self,
        message: str,
        issues: list[dict[str, str]] | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message, **context)
        self.issues = issues or []

    @classmethod
    def from_issues(
        cls, prefix: str, issues: list[dict[str, str]]
    ) -> "ValidationError":
        """
        Build an error whose message lists every issue.

        Args:
            prefix: Leading text, e.g. "Invalid config"
            issues: List of {"field": ..., "message": ...}

        Returns:
            ValidationError carrying the issues
        """
        joined = ", ".join(
            f"{issue['field']}: {issue['message']}" for issue in issues
        )
        return cls(f"{prefix}: {joined}", issues=issues)


class ConflictError(ReferralError):
    """Raised when an operation would break the single-active-period rule."""


class InvalidStateError(ReferralError):
    """Raised when an operation is illegal for the period's current status."""


class PeriodClosedError(InvalidStateError):
    """
    Raised when a point award raced a period completion.

    Nothing was written; the event can be retried against the new
    active period.
    """


class NotFoundError(ReferralError):
    """Raised when a period, code or archive does not exist."""


class UnsupportedStrategyError(ReferralError):
    """Raised for an unrecognized strategy or reset-mode tag."""


# Exception categories based on handling strategy

# Must log but can continue - non-critical failures
MUST_LOG = (
    OperationalError,  # Database errors (retried on next tick/event)
)

# Must raise - input or lifecycle mistakes surfaced to the caller
MUST_RAISE = (
    ValidationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    UnsupportedStrategyError,
)

# Safe to retry against the currently active period
RETRYABLE = (
    PeriodClosedError,
    OperationalError,
)


def must_log(exc: Exception) -> bool:
    """
    Check if exception must be logged.

    Args:
        exc: Exception to check

    Returns:
        True if exception must be logged
    """
    return isinstance(exc, MUST_LOG)


def must_raise(exc: Exception) -> bool:
    """
    Check if exception must be raised.

    Args:
        exc: Exception to check

    Returns:
        True if exception must be raised
    """
    return isinstance(exc, MUST_RAISE)


def is_retryable(exc: Exception) -> bool:
    """
    Check if the failed operation can be retried as-is.

    Args:
        exc: Exception to check

    Returns:
        True if a retry may succeed
    """
    return isinstance(exc, RETRYABLE)
