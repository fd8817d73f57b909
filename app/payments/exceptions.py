"""
Payment-specific exceptions for the payment lifecycle orchestrator.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentNotFoundError - No Payment for a gateway intent id (fatal)
    ├── PaymentValidationError - Bad input or violated precondition
    │   ├── NoDepositError - Deposit refund requested without a deposit
    │   ├── PayoutPreconditionError - Rental not payable to its owner
    │   ├── RefundAmountError - Refund larger than the captured amount
    │   └── DepositRefundPreconditionError - Rental not COMPLETED
    ├── RateLimitExceeded - Per-user limit hit before any gateway call
    ├── RefundInProgressError - Another refund holds the claim (ConflictError)
    └── GatewayError - Stripe call failed
        ├── GatewayPermanentError - Never retried
        │   ├── StripeCardDeclinedError
        │   ├── StripeInsufficientFundsError
        │   ├── StripeInvalidAccountError
        │   └── StripeInvalidRequestError
        └── GatewayTransientError - Retried with backoff
            ├── StripeRateLimitError
            ├── StripeAPIUnavailableError
            └── StripeTimeoutError

    InvalidStateTransitionError - Transition rejected by the Payment FSM
        (inherits ConflictError)

Usage:
    from payments.exceptions import GatewayTransientError, PaymentNotFoundError

    try:
        PaymentEventHandler.handle_payment_success(intent_id)
    except PaymentNotFoundError:
        ...  # fatal, no retry
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """Base exception for all payment operations."""

    default_error_code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError, NotFoundError):
    """
    Raised when no Payment matches a gateway intent id.

    Example:
        payment = Payment.objects.filter(stripe_payment_intent_id=intent_id).first()
        if not payment:
            raise PaymentNotFoundError(
                f"Payment not found for intent {intent_id}",
                details={"intent_id": intent_id},
            )
    """

    default_error_code: str = "PAYMENT_NOT_FOUND"


class PaymentValidationError(PaymentError, ValidationError):
    """
    Raised when payment input validation fails.

    Use for:
    - Missing payer id in intent metadata
    - Non-positive amounts
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class NoDepositError(PaymentValidationError):
    """
    Raised when a security-deposit refund is requested for a Payment whose
    metadata carries no positive ``securityDeposit``, or whose deposit was
    already returned.
    """

    default_error_code: str = "NO_SECURITY_DEPOSIT"


class PayoutPreconditionError(PaymentValidationError):
    """
    Raised when an owner payout cannot be made.

    Reasons (in ``details["reason"]``):
    - rental_not_found
    - rental_not_completed
    - owner_not_connected
    - payout_already_processed
    """

    default_error_code: str = "PAYOUT_PRECONDITION_FAILED"


class RefundAmountError(PaymentValidationError):
    """Raised when a refund would exceed the captured amount."""

    default_error_code: str = "REFUND_EXCEEDS_CAPTURED"


class DepositRefundPreconditionError(PaymentValidationError):
    """
    Raised when the rental behind a deposit refund is not COMPLETED.

    ``details["reason"]`` is rental_not_found or rental_not_completed.
    """

    default_error_code: str = "DEPOSIT_REFUND_PRECONDITION_FAILED"


class RateLimitExceeded(PaymentError, RateLimitError):
    """
    Raised when a payer exceeds the payment-intent rate limit.

    Always raised before any gateway call is made.
    """

    default_error_code: str = "RATE_LIMIT_EXCEEDED"


# =============================================================================
# Gateway Exceptions
# =============================================================================


class GatewayError(PaymentError):
    """
    Base exception for all Stripe failures.

    Attributes:
        stripe_code: Stripe's internal error code
        decline_code: Card decline code (if applicable)
        is_retryable: Whether the operation can be retried
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code
        self.decline_code = decline_code


class GatewayPermanentError(GatewayError):
    """Validation, authentication or decline failures. Never retried."""

    default_error_code: str = "GATEWAY_PERMANENT_ERROR"
    is_retryable: bool = False


class GatewayTransientError(GatewayError):
    """
    Network, 5xx, rate-limit or timeout failures. Safe to retry with the
    same idempotency key.
    """

    default_error_code: str = "GATEWAY_TRANSIENT_ERROR"
    is_retryable: bool = True


# -----------------------------------------------------------------------------
# Permanent Errors
# -----------------------------------------------------------------------------


class StripeCardDeclinedError(GatewayPermanentError):
    """
    Card was declined by the issuing bank.

    The decline_code attribute contains the specific reason
    (generic_decline, lost_card, expired_card, ...).
    """

    default_error_code: str = "CARD_DECLINED"


class StripeInsufficientFundsError(GatewayPermanentError):
    """Insufficient funds on the payment method, or on the platform balance."""

    default_error_code: str = "INSUFFICIENT_FUNDS"


class StripeInvalidAccountError(GatewayPermanentError):
    """Destination connected account is missing, disabled or not onboarded."""

    default_error_code: str = "INVALID_STRIPE_ACCOUNT"


class StripeInvalidRequestError(GatewayPermanentError):
    """
    Invalid request parameters sent to Stripe.

    Possible causes:
    - Unknown PaymentIntent ID
    - Capture on an intent that is not awaiting capture
    - Refund larger than the captured amount
    - Invalid API key (stripe_code="authentication_error")
    """

    default_error_code: str = "INVALID_STRIPE_REQUEST"


# -----------------------------------------------------------------------------
# Transient Errors
# -----------------------------------------------------------------------------


class StripeRateLimitError(GatewayTransientError):
    """Rate limited by the Stripe API."""

    default_error_code: str = "STRIPE_RATE_LIMITED"


class StripeAPIUnavailableError(GatewayTransientError):
    """Network connectivity problem or Stripe server error (5xx)."""

    default_error_code: str = "STRIPE_UNAVAILABLE"


class StripeTimeoutError(GatewayTransientError):
    """
    Stripe API call exceeded STRIPE_API_TIMEOUT_SECONDS.

    The operation may have succeeded on Stripe's side; retries reuse the
    idempotency key so Stripe returns the original response.
    """

    default_error_code: str = "STRIPE_TIMEOUT"


# =============================================================================
# State Machine Exceptions
# =============================================================================


class InvalidStateTransitionError(ConflictError):
    """
    Raised when the Payment FSM rejects a transition.

    Covers duplicate or out-of-order gateway callbacks, e.g. a late
    success for a payment that has already been refunded.

    Example:
        raise InvalidStateTransitionError(
            "Cannot move payment from REFUNDED to COMPLETED",
            details={"current_state": "REFUNDED", "target_state": "COMPLETED"},
        )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


class RefundInProgressError(PaymentError, ConflictError):
    """
    Raised when another refund already holds the claim on a Payment.

    Only one refund (full or deposit) may be in flight per Payment; the
    claim is taken under a row lock before Stripe is called.
    """

    default_error_code: str = "REFUND_IN_PROGRESS"


__all__ = [
    # Payment domain
    "PaymentError",
    "PaymentNotFoundError",
    "PaymentValidationError",
    "NoDepositError",
    "PayoutPreconditionError",
    "RefundAmountError",
    "DepositRefundPreconditionError",
    "RateLimitExceeded",
    # Gateway
    "GatewayError",
    "GatewayPermanentError",
    "GatewayTransientError",
    "StripeCardDeclinedError",
    "StripeInsufficientFundsError",
    "StripeInvalidAccountError",
    "StripeInvalidRequestError",
    "StripeRateLimitError",
    "StripeAPIUnavailableError",
    "StripeTimeoutError",
    # State machine
    "InvalidStateTransitionError",
    "RefundInProgressError",
]
