"""
RefundEngine: full-payment and security-deposit refunds.

Both flows follow the same three-phase shape:

1. Claim: lock the Payment row, check it is COMPLETED and that no other
   refund holds it, and set ``refund_in_progress``
2. Validate against the Stripe intent's captured amount, then create the
   Stripe refund with an idempotency key, retrying transient failures
3. Move the Payment to REFUNDED through StateTransitionEngine (clearing the
   claim) and notify the payer

A domain failure in phase 2 releases the claim and leaves the Payment
COMPLETED. A second refund arriving while the claim is held fails with
RefundInProgressError before Stripe is called.

Usage:
    from payments.services import RefundEngine

    RefundEngine.refund_payment("pi_123")              # full captured amount
    RefundEngine.refund_payment("pi_123", amount_minor=500)
    RefundEngine.refund_security_deposit("pi_123")     # full deposit
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone

from notifications.models import NotificationType
from notifications.services import NotificationEmitter
from rentals.models import Rental, RentalStatus

from payments.adapters import IdempotencyKeyGenerator, RefundResult
from payments.exceptions import (
    DepositRefundPreconditionError,
    InvalidStateTransitionError,
    NoDepositError,
    PaymentError,
    PaymentNotFoundError,
    RefundAmountError,
    RefundInProgressError,
)
from payments.models import Payment
from payments.retry import RetryCoordinator
from payments.services.base import GatewayService
from payments.services.payment_handlers import to_minor_units
from payments.services.state_transition import StateTransitionEngine
from payments.state_machines import PaymentStatus


@dataclass
class RefundOutcome:
    """Refunded Payment and the Stripe refund that moved the money."""

    payment: Payment
    refund: RefundResult


def _require_completed(payment: Payment) -> None:
    if payment.status != PaymentStatus.COMPLETED:
        raise InvalidStateTransitionError(
            f"Only completed payments can be refunded (status {payment.status})",
            details={
                "intent_id": payment.stripe_payment_intent_id,
                "current_state": payment.status,
                "target_state": PaymentStatus.REFUNDED,
            },
        )


def _require_deposit(payment: Payment) -> None:
    intent_id = payment.stripe_payment_intent_id
    if payment.deposit_from_metadata <= 0:
        raise NoDepositError(
            "Payment has no security deposit",
            details={"intent_id": intent_id},
        )
    if payment.security_deposit_returned:
        raise NoDepositError(
            "Security deposit was already returned",
            details={"intent_id": intent_id},
        )


def _require_completed_rental(payment: Payment) -> None:
    """The deposit is held until the rental is over; temp_ rentals are exempt."""
    if not payment.has_real_rental:
        return

    try:
        rental = Rental.objects.filter(pk=payment.rental_id).first()
    except (DjangoValidationError, ValueError):
        rental = None

    details = {"intent_id": payment.stripe_payment_intent_id, "rental_id": payment.rental_id}
    if rental is None:
        raise DepositRefundPreconditionError(
            f"Rental {payment.rental_id} not found",
            details={**details, "reason": "rental_not_found"},
        )
    if rental.status != RentalStatus.COMPLETED:
        raise DepositRefundPreconditionError(
            f"Rental is {rental.status}, deposit refunds require COMPLETED",
            details={**details, "reason": "rental_not_completed"},
        )


class RefundEngine(GatewayService):
    """Issues refunds and records them on the Payment."""

    # =========================================================================
    # Claim
    # =========================================================================

    @classmethod
    def _claim(
        cls,
        intent_id: str,
        checks: tuple[Callable[[Payment], None], ...] = (),
    ) -> Payment:
        """
        Take the refund claim on a COMPLETED Payment.

        ``checks`` run under the row lock before the status check; any of
        them may raise to reject the refund without modifying anything.
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
            for check in checks:
                check(payment)
            _require_completed(payment)
            if payment.refund_in_progress:
                raise RefundInProgressError(
                    "Another refund is already in progress for this payment",
                    details={"intent_id": intent_id},
                )

            payment.refund_in_progress = True
            payment.save(update_fields=["refund_in_progress", "updated_at"])
        return payment

    @classmethod
    def _release(cls, payment: Payment) -> None:
        Payment.objects.filter(pk=payment.pk).update(
            refund_in_progress=False, updated_at=timezone.now()
        )

    @classmethod
    def _captured_amount(cls, intent_id: str) -> int:
        adapter = cls.get_stripe_adapter()
        intent = RetryCoordinator.with_retry(
            lambda: adapter.retrieve_payment_intent(intent_id)
        )
        captured = intent.amount_received
        if captured <= 0:
            raise RefundAmountError(
                "Payment has no captured amount to refund",
                details={"intent_id": intent_id, "captured_amount": captured},
            )
        return captured

    # =========================================================================
    # Refunds
    # =========================================================================

    @classmethod
    def refund_payment(
        cls,
        intent_id: str,
        amount_minor: int | None = None,
    ) -> RefundOutcome:
        """
        Refund a completed payment.

        Args:
            intent_id: Stripe PaymentIntent ID
            amount_minor: Amount to refund in minor units; the full captured
                amount when omitted

        Raises:
            PaymentNotFoundError: No Payment for intent_id
            InvalidStateTransitionError: Payment is not COMPLETED
            RefundInProgressError: Another refund holds the claim
            RefundAmountError: Amount is not positive or exceeds the
                captured amount
            GatewayError: Stripe refund failed
        """
        logger = cls.get_logger()
        log_context = {"intent_id": intent_id, "amount_minor": amount_minor}

        payment = cls._claim(intent_id)
        adapter = cls.get_stripe_adapter()
        try:
            captured = cls._captured_amount(intent_id)
            if amount_minor is not None and not 0 < amount_minor <= captured:
                raise RefundAmountError(
                    f"Refund amount must be between 1 and {captured}",
                    details={
                        "intent_id": intent_id,
                        "requested_amount": amount_minor,
                        "captured_amount": captured,
                    },
                )

            logger.info("Issuing refund", extra={**log_context, "captured_amount": captured})
            refund = RetryCoordinator.with_retry(
                lambda: adapter.create_refund(
                    intent_id,
                    amount_cents=amount_minor,
                    idempotency_key=IdempotencyKeyGenerator.generate(
                        "refund", f"{intent_id}:{amount_minor or 'full'}"
                    ),
                    metadata={"rentalId": payment.rental_id},
                )
            )
        except PaymentError:
            cls._release(payment)
            raise

        _, payment = StateTransitionEngine.update_payment_and_rental(
            intent_id,
            PaymentStatus.REFUNDED,
            {"refunded_at": timezone.now(), "refund_in_progress": False},
        )

        refunded_major = (amount_minor if amount_minor is not None else captured) / 100
        NotificationEmitter.emit(
            user_id=payment.user_id,
            title="Payment Refunded",
            message=(
                f"Your payment has been refunded: {refunded_major:.2f} {payment.currency}."
            ),
            type=NotificationType.REFUND,
            idempotency_key=f"payment_refunded:{intent_id}",
        )

        logger.info("Payment refunded", extra={**log_context, "refund_id": refund.id})
        return RefundOutcome(payment=payment, refund=refund)

    @classmethod
    def refund_security_deposit(
        cls,
        intent_id: str,
        amount_minor: int | None = None,
    ) -> RefundOutcome:
        """
        Return the security deposit held on a completed payment.

        The rental (when the payment has a real one) must be COMPLETED, and
        the refund may exceed neither the deposit nor the captured amount.
        On success the Rental records the return as well.

        Args:
            intent_id: Stripe PaymentIntent ID
            amount_minor: Amount in minor units; the full deposit when omitted

        Raises:
            PaymentNotFoundError: No Payment for intent_id
            NoDepositError: metadata.securityDeposit is missing or zero, or the
                deposit was already returned (nothing is modified)
            InvalidStateTransitionError: Payment is not COMPLETED
            RefundInProgressError: Another refund holds the claim
            DepositRefundPreconditionError: Rental missing or not COMPLETED
            RefundAmountError: Amount is not positive or exceeds the deposit
                or the captured amount
            GatewayError: Stripe refund failed
        """
        logger = cls.get_logger()

        payment = cls._claim(intent_id, checks=(_require_deposit,))
        adapter = cls.get_stripe_adapter()
        try:
            _require_completed_rental(payment)

            deposit_minor = to_minor_units(payment.deposit_from_metadata)
            if amount_minor is not None and not 0 < amount_minor <= deposit_minor:
                raise RefundAmountError(
                    f"Deposit refund must be between 1 and {deposit_minor}",
                    details={
                        "intent_id": intent_id,
                        "requested_amount": amount_minor,
                        "deposit_amount": deposit_minor,
                    },
                )
            refund_minor = amount_minor if amount_minor is not None else deposit_minor

            captured = cls._captured_amount(intent_id)
            if refund_minor > captured:
                raise RefundAmountError(
                    f"Deposit refund of {refund_minor} exceeds the captured amount {captured}",
                    details={
                        "intent_id": intent_id,
                        "requested_amount": refund_minor,
                        "captured_amount": captured,
                    },
                )

            logger.info(
                "Refunding security deposit",
                extra={"intent_id": intent_id, "amount_minor": refund_minor},
            )
            refund = RetryCoordinator.with_retry(
                lambda: adapter.create_refund(
                    intent_id,
                    amount_cents=refund_minor,
                    reason="requested_by_customer",
                    idempotency_key=IdempotencyKeyGenerator.generate(
                        "deposit_refund", intent_id
                    ),
                    metadata={"rentalId": payment.rental_id, "type": "security_deposit"},
                )
            )
        except PaymentError:
            cls._release(payment)
            raise

        returned_at = timezone.now()
        with cls.atomic():
            _, payment = StateTransitionEngine.update_payment_and_rental(
                intent_id,
                PaymentStatus.REFUNDED,
                {
                    "security_deposit_returned": True,
                    "refunded_at": returned_at,
                    "refund_in_progress": False,
                },
            )
            if payment.has_real_rental:
                Rental.objects.filter(pk=payment.rental_id).update(
                    security_deposit_returned=True,
                    security_deposit_return_date=returned_at,
                    updated_at=returned_at,
                )

        NotificationEmitter.emit(
            user_id=payment.user_id,
            title="Security Deposit Refunded",
            message=(
                f"Your security deposit of {refund_minor / 100:.2f} "
                f"{payment.currency} has been returned."
            ),
            type=NotificationType.REFUND,
            idempotency_key=f"deposit_refunded:{intent_id}",
        )

        logger.info(
            "Security deposit refunded",
            extra={"intent_id": intent_id, "refund_id": refund.id},
        )
        return RefundOutcome(payment=payment, refund=refund)
