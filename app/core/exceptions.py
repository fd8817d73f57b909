"""
Base exception classes for application-wide error handling.

Every domain error raised by the services carries a human-readable message,
a machine-readable error code and an optional details dict. The REST layer
turns these into JSON bodies via ``to_dict()``.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input or precondition failures
    ├── NotFoundError - Resource not found
    ├── ConflictError - State conflicts (rejected transitions, duplicates)
    └── RateLimitError - Rate limit exceeded

Usage:
    from core.exceptions import NotFoundError

    raise NotFoundError(
        "Rental not found",
        error_code="RENTAL_NOT_FOUND",
        details={"rental_id": rental_id},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (ids, amounts, states)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Payment not found",
                "error_code": "PAYMENT_NOT_FOUND",
                "details": {"intent_id": "pi_123"}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation or a business precondition fails.

    Example:
        raise ValidationError(
            "Refund amount exceeds captured amount",
            error_code="REFUND_EXCEEDS_CAPTURED",
            details={"requested": 5000, "captured": 4000},
        )
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """Raised when a requested resource does not exist."""

    default_error_code: str = "NOT_FOUND"


class ConflictError(BaseApplicationError):
    """
    Raised when the current state conflicts with the requested operation.

    Use for:
    - Rejected state machine transitions
    - Duplicate operations (payout already processed)
    """

    default_error_code: str = "CONFLICT"


class RateLimitError(BaseApplicationError):
    """
    Raised when a caller exceeds its rate limit.

    Details carry ``key``, ``limit`` and ``period`` so callers can build a
    Retry-After hint.
    """

    default_error_code: str = "RATE_LIMIT_EXCEEDED"
