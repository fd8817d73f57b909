"""
PaymentIntentManager: creates Stripe PaymentIntents and their Payment rows.

Capture mode is decided from the metadata: a positive ``securityDeposit``
means the intent is authorized with manual capture so that only the rental
portion is charged at success time.

Usage:
    from payments.services import PaymentIntentManager

    created = PaymentIntentManager.create_payment_intent(
        amount_minor=1000,
        currency="usd",
        metadata={
            "userId": str(user.id),
            "rentalId": str(rental.id),
            "securityDeposit": "200",
            "rentalAmount": "800",
            "ownerId": str(owner.id),
        },
    )
    created.intent.client_secret  # returned to the client
    created.payment.status        # PENDING
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from django.conf import settings

from core.decorators import RateLimiter

from payments.adapters import IdempotencyKeyGenerator, PaymentIntentResult
from payments.exceptions import (
    PaymentNotFoundError,
    PaymentValidationError,
    RateLimitExceeded,
)
from payments.models import TEMP_RENTAL_PREFIX, Payment
from payments.services.base import GatewayService
from payments.state_machines import CaptureMethod

if TYPE_CHECKING:
    from typing import Any


@dataclass
class CreatedPaymentIntent:
    """Gateway intent and the Payment persisted for it (same intent id)."""

    intent: PaymentIntentResult
    payment: Payment


def parse_amount(value: Any, field_name: str) -> Decimal | None:
    """
    Parse an optional major-unit amount from intent metadata.

    Returns None for missing or empty values.

    Raises:
        PaymentValidationError: Value is not a non-negative number
    """
    if value in (None, ""):
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise PaymentValidationError(
            f"{field_name} must be a number",
            details={"field": field_name, "value": str(value)},
        ) from e
    if not amount.is_finite() or amount < 0:
        raise PaymentValidationError(
            f"{field_name} must be a non-negative number",
            details={"field": field_name, "value": str(value)},
        )
    return amount


def synthesize_rental_id() -> str:
    """Placeholder rental id for intents created before the rental exists."""
    return f"{TEMP_RENTAL_PREFIX}{int(time.time() * 1000)}"


class PaymentIntentManager(GatewayService):
    """Creates and updates PaymentIntents."""

    @classmethod
    def get_rate_limiter(cls) -> RateLimiter:
        return RateLimiter(
            "payment_intent",
            limit=settings.PAYMENT_INTENT_RATE_LIMIT,
            period=settings.PAYMENT_INTENT_RATE_PERIOD,
        )

    @classmethod
    def create_payment_intent(
        cls,
        amount_minor: int,
        currency: str,
        metadata: dict[str, Any],
    ) -> CreatedPaymentIntent:
        """
        Create a Stripe PaymentIntent and its PENDING Payment.

        Args:
            amount_minor: Amount in minor units (cents)
            currency: ISO currency code, any case
            metadata: Must contain ``userId``; may contain ``rentalId``,
                ``securityDeposit``, ``rentalAmount``, ``ownerId``,
                ``equipmentId``, ``equipmentTitle``, ``startDate``, ``endDate``

        Returns:
            CreatedPaymentIntent whose intent.id equals
            payment.stripe_payment_intent_id

        Raises:
            PaymentValidationError: Missing userId, bad amount or currency
            RateLimitExceeded: Payer exceeded the per-user limit (no Stripe
                call was made)
            GatewayError: Propagated unchanged from Stripe (no retry)
        """
        logger = cls.get_logger()
        metadata = dict(metadata or {})

        user_id = metadata.get("userId")
        if not user_id:
            raise PaymentValidationError(
                "metadata.userId is required",
                details={"field": "userId"},
            )
        if isinstance(amount_minor, bool) or not isinstance(amount_minor, int) or amount_minor <= 0:
            raise PaymentValidationError(
                "amount must be a positive integer in minor units",
                details={"field": "amount", "value": amount_minor},
            )
        if not currency or len(currency) != 3:
            raise PaymentValidationError(
                "currency must be a 3-letter ISO code",
                details={"field": "currency", "value": currency},
            )

        if cls.get_rate_limiter().check_and_consume(f"user:{user_id}"):
            raise RateLimitExceeded(
                "Too many payment attempts, please try again later",
                details={"user_id": str(user_id)},
            )

        security_deposit = parse_amount(metadata.get("securityDeposit"), "securityDeposit")
        rental_amount = parse_amount(metadata.get("rentalAmount"), "rentalAmount")
        capture_method = (
            CaptureMethod.MANUAL
            if security_deposit and security_deposit > 0
            else CaptureMethod.AUTOMATIC
        )
        rental_id = metadata.get("rentalId") or synthesize_rental_id()

        log_context = {
            "user_id": str(user_id),
            "rental_id": rental_id,
            "amount_minor": amount_minor,
            "currency": currency,
            "capture_method": capture_method,
        }
        logger.info("Creating payment intent", extra=log_context)

        adapter = cls.get_stripe_adapter()
        intent = adapter.create_payment_intent(
            amount_cents=amount_minor,
            currency=currency.lower(),
            metadata={**metadata, "rentalId": rental_id},
            capture_method=str(capture_method),
            idempotency_key=IdempotencyKeyGenerator.generate(
                "create_intent", f"{user_id}:{rental_id}:{amount_minor}"
            ),
        )

        payment, created = Payment.objects.get_or_create(
            stripe_payment_intent_id=intent.id,
            defaults=dict(
                user_id=user_id,
                rental_id=rental_id,
                amount=(Decimal(amount_minor) / 100).quantize(Decimal("0.01")),
                currency=currency.upper(),
                security_deposit_amount=security_deposit,
                rental_amount=rental_amount,
                metadata={**metadata, "rentalId": rental_id},
            ),
        )

        logger.info(
            "Payment intent created" if created else "Payment intent already recorded",
            extra={
                **log_context,
                "intent_id": intent.id,
                "payment_id": str(payment.id),
            },
        )
        return CreatedPaymentIntent(intent=intent, payment=payment)

    @classmethod
    def update_payment_intent(
        cls,
        intent_id: str,
        fields: dict[str, Any],
    ) -> PaymentIntentResult:
        """
        Update a Stripe PaymentIntent.

        When ``fields["metadata"]["rentalId"]`` is given and the local
        Payment still points at a temp_ placeholder, the Payment is
        re-linked to the real rental. A Payment already linked to a real
        rental is never re-pointed.

        Raises:
            PaymentNotFoundError: No Payment for intent_id
            GatewayError: Stripe update failed
        """
        logger = cls.get_logger()

        payment = Payment.objects.filter(stripe_payment_intent_id=intent_id).first()
        if payment is None:
            raise PaymentNotFoundError(
                f"Payment not found for intent {intent_id}",
                details={"intent_id": intent_id},
            )

        intent = cls.get_stripe_adapter().update_payment_intent(intent_id, fields)

        new_rental_id = (fields.get("metadata") or {}).get("rentalId")
        if new_rental_id and not payment.has_real_rental:
            with cls.atomic():
                payment = Payment.objects.select_for_update().get(pk=payment.pk)
                if not payment.has_real_rental:
                    placeholder = payment.rental_id
                    payment.rental_id = str(new_rental_id)
                    payment.metadata = {**payment.metadata, "rentalId": str(new_rental_id)}
                    payment.save(update_fields=["rental_id", "metadata", "updated_at"])
                    logger.info(
                        "Payment linked to rental",
                        extra={
                            "intent_id": intent_id,
                            "placeholder_rental_id": placeholder,
                            "rental_id": str(new_rental_id),
                        },
                    )

        return intent
