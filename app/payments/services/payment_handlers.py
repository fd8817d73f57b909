"""
PaymentEventHandler: orchestration entry points for gateway outcomes.

Webhook dispatch and the scheduled-retry sweep call into this class. Each
handler reads the current Payment first, treats a callback for a state
that has already been reached as a duplicate, and routes the real change
through StateTransitionEngine.

Usage:
    from payments.services import PaymentEventHandler

    PaymentEventHandler.handle_payment_success("pi_123")
    PaymentEventHandler.handle_payment_failure("pi_456")
    PaymentEventHandler.schedule_retry("pi_456")
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.utils import timezone

from notifications.models import NotificationType
from notifications.services import NotificationEmitter

from payments.adapters import IdempotencyKeyGenerator
from payments.exceptions import InvalidStateTransitionError, PaymentNotFoundError
from payments.models import Payment
from payments.models.payment import to_decimal
from payments.retry import RetryCoordinator
from payments.services.base import GatewayService
from payments.services.payment_intent_service import parse_amount
from payments.services.state_transition import StateTransitionEngine
from payments.state_machines import (
    INTENT_CANCELED,
    INTENT_PROCESSING,
    INTENT_REQUIRES_CAPTURE,
    INTENT_SUCCEEDED,
    PaymentStatus,
)


@dataclass
class HandlerOutcome:
    """
    What a handler did.

    Attributes:
        payment: The Payment after the handler ran
        applied: False when the callback was a duplicate and nothing changed
        captured_amount: Minor units captured by this call (0 if none)
    """

    payment: Payment
    applied: bool = True
    captured_amount: int = 0


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def get_payment_by_intent(intent_id: str) -> Payment:
    payment = Payment.objects.filter(stripe_payment_intent_id=intent_id).first()
    if payment is None:
        raise PaymentNotFoundError(
            f"Payment not found for intent {intent_id}",
            details={"intent_id": intent_id},
        )
    return payment


class PaymentEventHandler(GatewayService):
    """Success, failure, block and retry-scheduling handlers."""

    @classmethod
    def handle_payment_success(cls, intent_id: str) -> HandlerOutcome:
        """
        Record a successful payment.

        When the intent carries a security deposit and is awaiting capture,
        only the rental portion is captured; the deposit stays authorized.
        A second call for an already COMPLETED or REFUNDED payment changes
        nothing and sends no notifications.

        Raises:
            PaymentNotFoundError: No Payment for intent_id
            InvalidStateTransitionError: Payment is BLOCKED
            GatewayError: Retrieve or capture failed after retries
        """
        logger = cls.get_logger()
        log_context = {"intent_id": intent_id, "handler": "payment_success"}

        payment = get_payment_by_intent(intent_id)
        if payment.status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED):
            logger.info(
                "Duplicate success callback ignored",
                extra={**log_context, "current_state": payment.status},
            )
            return HandlerOutcome(payment=payment, applied=False)

        if payment.status == PaymentStatus.BLOCKED:
            raise InvalidStateTransitionError(
                f"Cannot complete blocked payment {intent_id}",
                details={
                    "intent_id": intent_id,
                    "current_state": payment.status,
                    "target_state": PaymentStatus.COMPLETED,
                },
            )

        adapter = cls.get_stripe_adapter()
        intent = RetryCoordinator.with_retry(
            lambda: adapter.retrieve_payment_intent(intent_id)
        )
        metadata = {**payment.metadata, **intent.metadata}

        captured_amount = 0
        security_deposit = parse_amount(metadata.get("securityDeposit"), "securityDeposit")
        if security_deposit and intent.status == INTENT_REQUIRES_CAPTURE:
            captured_amount = to_minor_units(cls._rental_portion(payment, metadata))
            logger.info(
                "Capturing rental portion, deposit stays authorized",
                extra={
                    **log_context,
                    "amount_to_capture": captured_amount,
                    "security_deposit": str(security_deposit),
                },
            )
            RetryCoordinator.with_retry(
                lambda: adapter.capture_payment_intent(
                    intent_id,
                    amount_to_capture=captured_amount,
                    idempotency_key=IdempotencyKeyGenerator.generate("capture", intent_id),
                )
            )

        try:
            _, payment = StateTransitionEngine.update_payment_and_rental(
                intent_id,
                PaymentStatus.COMPLETED,
                {"paid_at": timezone.now()},
            )
        except InvalidStateTransitionError:
            # A concurrent delivery completed it between our read and write
            payment = get_payment_by_intent(intent_id)
            if payment.status == PaymentStatus.COMPLETED:
                logger.info("Concurrent success callback ignored", extra=log_context)
                return HandlerOutcome(payment=payment, applied=False)
            raise

        NotificationEmitter.emit(
            user_id=payment.user_id,
            title="Payment Successful",
            message=(
                f"Your payment of {payment.amount} {payment.currency} "
                "was successful. Your rental is confirmed."
            ),
            type=NotificationType.PAYMENT,
            idempotency_key=f"payment_success:{intent_id}",
        )

        owner_id = metadata.get("ownerId")
        if owner_id:
            equipment_title = metadata.get("equipmentTitle") or "your equipment"
            NotificationEmitter.emit(
                user_id=owner_id,
                title="New Rental Booking",
                message=f"You have a new paid booking for {equipment_title}.",
                type=NotificationType.BOOKING,
                idempotency_key=f"new_booking:{intent_id}",
            )

        logger.info(
            "Payment completed",
            extra={**log_context, "captured_amount": captured_amount},
        )
        return HandlerOutcome(payment=payment, captured_amount=captured_amount)

    @staticmethod
    def _rental_portion(payment: Payment, metadata: dict) -> Decimal:
        """Amount owed for usage; falls back to amount minus deposit."""
        if payment.rental_amount is not None:
            return payment.rental_amount
        rental_amount = parse_amount(metadata.get("rentalAmount"), "rentalAmount")
        if rental_amount is not None:
            return rental_amount
        return payment.amount - to_decimal(metadata.get("securityDeposit"))

    @classmethod
    def handle_payment_failure(cls, intent_id: str) -> HandlerOutcome:
        """
        Record a failed payment and tell the payer.

        A repeated failure callback for a payment already FAILED is a no-op.

        Raises:
            PaymentNotFoundError: No Payment for intent_id
            InvalidStateTransitionError: Payment is COMPLETED, REFUNDED
                or BLOCKED
        """
        logger = cls.get_logger()

        payment = get_payment_by_intent(intent_id)
        if payment.status == PaymentStatus.FAILED:
            logger.info(
                "Duplicate failure callback ignored",
                extra={"intent_id": intent_id},
            )
            return HandlerOutcome(payment=payment, applied=False)

        _, payment = StateTransitionEngine.update_payment_and_rental(
            intent_id,
            PaymentStatus.FAILED,
            {"failed_at": timezone.now()},
        )

        NotificationEmitter.emit(
            user_id=payment.user_id,
            title="Payment Failed",
            message=(
                f"Your payment of {payment.amount} {payment.currency} failed. "
                "Please update your payment method and try again."
            ),
            type=NotificationType.PAYMENT,
            idempotency_key=f"payment_failed:{intent_id}:{payment.retry_count}",
        )

        logger.warning("Payment failed", extra={"intent_id": intent_id})
        return HandlerOutcome(payment=payment)

    @classmethod
    def block_payment(cls, intent_id: str, reason: str) -> HandlerOutcome:
        """
        Block a payment after a risk decision. BLOCKED is terminal.

        No user notification is sent; the block is logged for manual review.

        Raises:
            PaymentNotFoundError: No Payment for intent_id
            InvalidStateTransitionError: Payment is COMPLETED or REFUNDED
        """
        logger = cls.get_logger()

        payment = get_payment_by_intent(intent_id)
        if payment.status == PaymentStatus.BLOCKED:
            return HandlerOutcome(payment=payment, applied=False)

        _, payment = StateTransitionEngine.update_payment_and_rental(
            intent_id,
            PaymentStatus.BLOCKED,
            {"is_blocked": True, "block_reason": reason},
        )

        logger.warning(
            "Payment blocked, manual review required",
            extra={
                "intent_id": intent_id,
                "user_id": payment.user_id,
                "rental_id": payment.rental_id,
                "reason": reason,
            },
        )
        return HandlerOutcome(payment=payment)

    @classmethod
    def schedule_retry(cls, intent_id: str) -> HandlerOutcome:
        """
        Record that a failed payment should be retried later.

        Increments retry_count and sets next_retry_at to
        ``now + 2**retry_count`` minutes. Nothing is re-executed here; the
        ``process_scheduled_retries`` task picks up due rows.

        Raises:
            PaymentNotFoundError: No Payment for intent_id
            InvalidStateTransitionError: Payment is not FAILED or
                RETRY_SCHEDULED
        """
        with cls.atomic():
            payment = (
                Payment.objects.select_for_update()
                .filter(stripe_payment_intent_id=intent_id)
                .first()
            )
            if payment is None:
                raise PaymentNotFoundError(
                    f"Payment not found for intent {intent_id}",
                    details={"intent_id": intent_id},
                )

            retry_count = payment.retry_count + 1
            now = timezone.now()
            next_retry_at = now + timedelta(minutes=2**retry_count)

            _, payment = StateTransitionEngine.update_payment_and_rental(
                intent_id,
                PaymentStatus.RETRY_SCHEDULED,
                {
                    "retry_count": retry_count,
                    "last_retry_at": now,
                    "next_retry_at": next_retry_at,
                },
            )

        cls.get_logger().info(
            "Payment retry scheduled",
            extra={
                "intent_id": intent_id,
                "retry_count": retry_count,
                "next_retry_at": next_retry_at.isoformat(),
            },
        )
        return HandlerOutcome(payment=payment)

    @classmethod
    def run_scheduled_retry(cls, intent_id: str) -> str:
        """
        Re-evaluate one due RETRY_SCHEDULED payment against Stripe.

        Returns:
            "completed", "blocked", "failed", "rescheduled" or "skipped"
        """
        adapter = cls.get_stripe_adapter()
        intent = RetryCoordinator.with_retry(
            lambda: adapter.retrieve_payment_intent(intent_id)
        )

        if intent.status in (INTENT_SUCCEEDED, INTENT_REQUIRES_CAPTURE):
            cls.handle_payment_success(intent_id)
            return "completed"

        if intent.status == INTENT_PROCESSING:
            return "skipped"

        if intent.status == INTENT_CANCELED:
            cls.block_payment(intent_id, "Payment intent canceled")
            return "blocked"

        payment = get_payment_by_intent(intent_id)
        if payment.retry_count >= settings.SCHEDULED_RETRY_MAX_ATTEMPTS:
            cls.handle_payment_failure(intent_id)
            return "failed"

        cls.schedule_retry(intent_id)
        return "rescheduled"
