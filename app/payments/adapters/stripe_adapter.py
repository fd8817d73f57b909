"""
Stripe API adapter for the payment lifecycle.

Every Stripe call made by the payments app goes through StripeAdapter so
that timeouts, error translation, idempotency and logging are applied the
same way everywhere.

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: Hard per-call timeout (default: 10)

Usage:
    from payments.adapters import IdempotencyKeyGenerator, StripeAdapter

    intent = StripeAdapter.create_payment_intent(
        amount_cents=1000,
        currency="usd",
        metadata={"userId": "42"},
        capture_method="manual",
        idempotency_key=IdempotencyKeyGenerator.generate("create_intent", "42"),
    )

    StripeAdapter.capture_payment_intent(
        intent.id,
        amount_to_capture=80000,
        idempotency_key=IdempotencyKeyGenerator.generate("capture", intent.id),
    )

Services never import a module-level client: they receive the adapter
class through ``set_stripe_adapter`` so tests can pass a MagicMock.
"""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

import stripe
from django.conf import settings

from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeInsufficientFundsError,
    StripeInvalidAccountError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
)


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class PaymentIntentResult:
    """
    Result from Stripe PaymentIntent operations.

    Attributes:
        id: PaymentIntent ID (pi_xxx)
        status: requires_payment_method, requires_capture, succeeded, ...
        amount_cents: Authorized amount in minor units
        amount_received: Captured amount in minor units
        currency: Lowercase currency code as Stripe returns it
        capture_method: "automatic" or "manual"
        client_secret: Secret for client-side confirmation
        metadata: Attached metadata (string values)
        raw_response: Full Stripe response dict
    """

    id: str
    status: str
    amount_cents: int
    currency: str
    amount_received: int = 0
    capture_method: str = "automatic"
    client_secret: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_stripe(cls, intent) -> PaymentIntentResult:
        raw = intent.to_dict()
        return cls(
            id=raw["id"],
            status=raw.get("status", ""),
            amount_cents=raw.get("amount") or 0,
            currency=raw.get("currency", ""),
            amount_received=raw.get("amount_received") or 0,
            capture_method=raw.get("capture_method") or "automatic",
            client_secret=raw.get("client_secret"),
            metadata=dict(raw.get("metadata") or {}),
            raw_response=raw,
        )


@dataclass
class RefundResult:
    """Result from Stripe Refund creation."""

    id: str
    amount_cents: int
    currency: str
    status: str
    payment_intent_id: str
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_stripe(cls, refund) -> RefundResult:
        raw = refund.to_dict()
        return cls(
            id=raw["id"],
            amount_cents=raw.get("amount") or 0,
            currency=raw.get("currency", ""),
            status=raw.get("status", ""),
            payment_intent_id=raw.get("payment_intent", ""),
            raw_response=raw,
        )


@dataclass
class TransferResult:
    """Result from Stripe Transfer creation."""

    id: str
    amount_cents: int
    currency: str
    destination_account: str
    transfer_group: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_stripe(cls, transfer) -> TransferResult:
        raw = transfer.to_dict()
        return cls(
            id=raw["id"],
            amount_cents=raw.get("amount") or 0,
            currency=raw.get("currency", ""),
            destination_account=raw.get("destination", ""),
            transfer_group=raw.get("transfer_group"),
            raw_response=raw,
        )


@dataclass
class ConnectedAccountResult:
    """Result from Stripe Connect account creation."""

    id: str
    email: str | None
    country: str | None
    charges_enabled: bool = False
    payouts_enabled: bool = False


@dataclass
class AccountLinkResult:
    """Onboarding link for a connected account."""

    url: str
    expires_at: int | None = None


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Deterministic idempotency keys for Stripe writes.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    A webhook redelivery or a transient retry produces the same key, so
    Stripe returns the original response instead of repeating the write.
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]
        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


def _stringify_metadata(metadata: dict[str, Any] | None) -> dict[str, str]:
    """Stripe metadata values are strings; drop unset keys."""
    return {
        key: str(value)
        for key, value in (metadata or {}).items()
        if value is not None
    }


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    All methods are classmethods; no instance state is kept. Each call:
    - configures the API key and a RequestsClient with a hard timeout
    - logs start and completion with duration_ms
    - translates Stripe SDK errors into GatewayPermanentError or
      GatewayTransientError subclasses
    """

    @staticmethod
    def _configure_stripe() -> None:
        stripe.api_key = settings.STRIPE_SECRET_KEY
        stripe.default_http_client = stripe.RequestsClient(
            timeout=settings.STRIPE_API_TIMEOUT_SECONDS
        )

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def _call(
        cls,
        log_context: dict[str, Any],
        func: Callable[[], Any],
        result_context: Callable[[Any], dict[str, Any]] | None = None,
    ) -> Any:
        """Run one Stripe call with configuration, timing and error translation."""
        cls._configure_stripe()
        logger = cls.get_logger()

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            response = func()
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Stripe operation completed",
            extra={
                **log_context,
                **(result_context(response) if result_context else {}),
                "duration_ms": duration_ms,
            },
        )
        return response

    # =========================================================================
    # PaymentIntents
    # =========================================================================

    @classmethod
    def create_payment_intent(
        cls,
        amount_cents: int,
        currency: str,
        idempotency_key: str,
        metadata: dict[str, Any] | None = None,
        capture_method: str = "automatic",
    ) -> PaymentIntentResult:
        """
        Create a PaymentIntent.

        Use capture_method="manual" when part of the amount (a security
        deposit) must stay authorized but uncaptured.
        """
        intent = cls._call(
            {
                "operation": "create_payment_intent",
                "amount_cents": amount_cents,
                "currency": currency,
                "capture_method": capture_method,
                "idempotency_key": idempotency_key,
            },
            lambda: stripe.PaymentIntent.create(
                amount=amount_cents,
                currency=currency.lower(),
                metadata=_stringify_metadata(metadata),
                capture_method=capture_method,
                automatic_payment_methods={"enabled": True},
                idempotency_key=idempotency_key,
            ),
            lambda intent: {"payment_intent_id": intent.id, "status": intent.status},
        )
        return PaymentIntentResult.from_stripe(intent)

    @classmethod
    def retrieve_payment_intent(cls, payment_intent_id: str) -> PaymentIntentResult:
        intent = cls._call(
            {
                "operation": "retrieve_payment_intent",
                "payment_intent_id": payment_intent_id,
            },
            lambda: stripe.PaymentIntent.retrieve(payment_intent_id),
            lambda intent: {"status": intent.status},
        )
        return PaymentIntentResult.from_stripe(intent)

    @classmethod
    def update_payment_intent(
        cls,
        payment_intent_id: str,
        fields: dict[str, Any],
    ) -> PaymentIntentResult:
        """Update mutable intent fields (metadata, description, amount)."""
        params = dict(fields)
        if "metadata" in params:
            params["metadata"] = _stringify_metadata(params["metadata"])

        intent = cls._call(
            {
                "operation": "update_payment_intent",
                "payment_intent_id": payment_intent_id,
                "fields": sorted(params),
            },
            lambda: stripe.PaymentIntent.modify(payment_intent_id, **params),
        )
        return PaymentIntentResult.from_stripe(intent)

    @classmethod
    def capture_payment_intent(
        cls,
        payment_intent_id: str,
        idempotency_key: str,
        amount_to_capture: int | None = None,
    ) -> PaymentIntentResult:
        """
        Capture an intent in requires_capture state.

        With amount_to_capture set, only that many minor units are charged
        and the remainder of the authorization is released by Stripe.
        """
        params: dict[str, Any] = {"idempotency_key": idempotency_key}
        if amount_to_capture is not None:
            params["amount_to_capture"] = amount_to_capture

        intent = cls._call(
            {
                "operation": "capture_payment_intent",
                "payment_intent_id": payment_intent_id,
                "amount_to_capture": amount_to_capture,
                "idempotency_key": idempotency_key,
            },
            lambda: stripe.PaymentIntent.capture(payment_intent_id, **params),
            lambda intent: {"status": intent.status},
        )
        return PaymentIntentResult.from_stripe(intent)

    # =========================================================================
    # Refunds & Transfers
    # =========================================================================

    @classmethod
    def create_refund(
        cls,
        payment_intent_id: str,
        idempotency_key: str,
        amount_cents: int | None = None,
        reason: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> RefundResult:
        """Refund a PaymentIntent, fully when amount_cents is None."""
        params: dict[str, Any] = {
            "payment_intent": payment_intent_id,
            "metadata": _stringify_metadata(metadata),
            "idempotency_key": idempotency_key,
        }
        if amount_cents is not None:
            params["amount"] = amount_cents
        if reason:
            params["reason"] = reason

        refund = cls._call(
            {
                "operation": "create_refund",
                "payment_intent_id": payment_intent_id,
                "amount_cents": amount_cents,
                "reason": reason,
                "idempotency_key": idempotency_key,
            },
            lambda: stripe.Refund.create(**params),
            lambda refund: {"refund_id": refund.id, "status": refund.status},
        )
        return RefundResult.from_stripe(refund)

    @classmethod
    def create_transfer(
        cls,
        amount_cents: int,
        currency: str,
        destination_account: str,
        idempotency_key: str,
        transfer_group: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> TransferResult:
        """Transfer platform funds to a connected account."""
        params: dict[str, Any] = {
            "amount": amount_cents,
            "currency": currency.lower(),
            "destination": destination_account,
            "metadata": _stringify_metadata(metadata),
            "idempotency_key": idempotency_key,
        }
        if transfer_group:
            params["transfer_group"] = transfer_group

        transfer = cls._call(
            {
                "operation": "create_transfer",
                "amount_cents": amount_cents,
                "currency": currency,
                "destination_account": destination_account,
                "transfer_group": transfer_group,
                "idempotency_key": idempotency_key,
            },
            lambda: stripe.Transfer.create(**params),
            lambda transfer: {"transfer_id": transfer.id},
        )
        return TransferResult.from_stripe(transfer)

    # =========================================================================
    # Connect
    # =========================================================================

    @classmethod
    def create_connected_account(
        cls,
        email: str,
        country: str = "US",
        metadata: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> ConnectedAccountResult:
        """Create an Express connected account able to receive transfers."""
        params: dict[str, Any] = {
            "type": "express",
            "email": email,
            "country": country,
            "capabilities": {
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
            "metadata": _stringify_metadata(metadata),
        }
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        account = cls._call(
            {
                "operation": "create_connected_account",
                "country": country,
                "idempotency_key": idempotency_key,
            },
            lambda: stripe.Account.create(**params),
            lambda account: {"account_id": account.id},
        )
        raw = account.to_dict()
        return ConnectedAccountResult(
            id=raw["id"],
            email=raw.get("email"),
            country=raw.get("country"),
            charges_enabled=bool(raw.get("charges_enabled")),
            payouts_enabled=bool(raw.get("payouts_enabled")),
        )

    @classmethod
    def create_account_link(
        cls,
        account_id: str,
        refresh_url: str,
        return_url: str,
    ) -> AccountLinkResult:
        link = cls._call(
            {"operation": "create_account_link", "account_id": account_id},
            lambda: stripe.AccountLink.create(
                account=account_id,
                refresh_url=refresh_url,
                return_url=return_url,
                type="account_onboarding",
            ),
        )
        raw = link.to_dict()
        return AccountLinkResult(url=raw["url"], expires_at=raw.get("expires_at"))

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @classmethod
    def verify_webhook_signature(cls, payload: bytes, signature: str) -> dict[str, Any]:
        """
        Verify and parse a Stripe webhook event.

        Raises:
            StripeInvalidRequestError: Invalid payload or signature
        """
        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                settings.STRIPE_WEBHOOK_SECRET,
            )
        except (stripe.SignatureVerificationError, ValueError) as e:
            raise StripeInvalidRequestError(
                "Invalid webhook signature",
                stripe_code="signature_verification_failed",
                details={"error": str(e)},
            ) from e
        return event.to_dict()

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate a Stripe SDK exception into a domain exception.

        Permanent: card errors, invalid requests, authentication failures.
        Transient: rate limits, connection errors, timeouts, 5xx.
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )
            error_class = (
                StripeInsufficientFundsError
                if decline_code == "insufficient_funds"
                else StripeCardDeclinedError
            )
            raise error_class(
                str(error.user_message or error),
                stripe_code=error.code,
                decline_code=decline_code,
            ) from error

        if isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            if "account" in str(error).lower():
                raise StripeInvalidAccountError(str(error), stripe_code=error.code) from error
            raise StripeInvalidRequestError(str(error), stripe_code=error.code) from error

        if isinstance(error, stripe.AuthenticationError):
            logger.critical("Stripe authentication failed, check API key", extra=log_context)
            raise StripeInvalidRequestError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            ) from error

        if isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            ) from error

        if isinstance(error, stripe.APIConnectionError):
            if "timed out" in str(error).lower() or "timeout" in str(error).lower():
                logger.error("Stripe request timed out", extra=log_context)
                raise StripeTimeoutError(
                    "Stripe request timed out. Please retry.",
                    stripe_code="timeout",
                ) from error
            logger.error("Connection error to Stripe", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            ) from error

        if isinstance(error, stripe.APIError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            ) from error

        logger.error(
            f"Unexpected error from Stripe: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise StripeAPIUnavailableError(
            f"Unexpected Stripe error: {error}",
            stripe_code="unknown_error",
        ) from error
