"""
StateTransitionEngine: the single writer of Payment status.

Every Payment status change goes through ``update_payment_and_rental``,
which applies the django-fsm transition and projects the new status onto
the paired Rental in the same database transaction.

Payment -> Rental projection:

    COMPLETED        -> PAID
    FAILED           -> PAYMENT_FAILED
    BLOCKED          -> PAYMENT_FAILED
    REFUNDED         -> REFUNDED
    PENDING          -> PENDING
    RETRY_SCHEDULED  -> PENDING

Usage:
    from payments.services import StateTransitionEngine
    from payments.state_machines import PaymentStatus

    before, payment = StateTransitionEngine.update_payment_and_rental(
        intent_id,
        PaymentStatus.COMPLETED,
        {"paid_at": timezone.now()},
    )
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone
from django_fsm import can_proceed

from core.services import BaseService

from payments.exceptions import InvalidStateTransitionError, PaymentNotFoundError
from payments.models import Payment
from payments.state_machines import PaymentStatus
from rentals.models import Rental, RentalStatus

if TYPE_CHECKING:
    from typing import Any


RENTAL_STATUS_BY_PAYMENT_STATUS: dict[str, str] = {
    PaymentStatus.COMPLETED: RentalStatus.PAID,
    PaymentStatus.FAILED: RentalStatus.PAYMENT_FAILED,
    PaymentStatus.BLOCKED: RentalStatus.PAYMENT_FAILED,
    PaymentStatus.REFUNDED: RentalStatus.REFUNDED,
    PaymentStatus.PENDING: RentalStatus.PENDING,
    PaymentStatus.RETRY_SCHEDULED: RentalStatus.PENDING,
}

# Target status -> Payment transition method
TRANSITION_BY_STATUS: dict[str, str] = {
    PaymentStatus.COMPLETED: "complete",
    PaymentStatus.FAILED: "fail",
    PaymentStatus.BLOCKED: "block",
    PaymentStatus.RETRY_SCHEDULED: "schedule_retry",
    PaymentStatus.REFUNDED: "refund",
    PaymentStatus.PENDING: "reopen",
}


def rental_status_for(payment_status: str) -> str | None:
    """Rental status projected from a Payment status, or None if unmapped."""
    return RENTAL_STATUS_BY_PAYMENT_STATUS.get(payment_status)


class StateTransitionEngine(BaseService):
    """
    Applies Payment transitions and keeps the paired Rental consistent.

    The Payment row is locked with ``select_for_update`` for the duration
    of the update, and the FSM rejects any transition whose current status
    is not an allowed source. A duplicate or out-of-order callback
    therefore fails with InvalidStateTransitionError instead of silently
    overwriting a newer state (e.g. REFUNDED -> COMPLETED).
    """

    @classmethod
    def update_payment_and_rental(
        cls,
        intent_id: str,
        new_status: str,
        extra_fields: dict[str, Any] | None = None,
    ) -> tuple[Payment, Payment]:
        """
        Move a Payment to ``new_status`` and project it onto its Rental.

        Args:
            intent_id: Stripe PaymentIntent ID
            new_status: Target PaymentStatus
            extra_fields: Additional Payment fields to persist with the
                transition (paid_at, refunded_at, ...)

        Returns:
            (snapshot of the Payment before the update, updated Payment)

        Raises:
            PaymentNotFoundError: No Payment for intent_id
            InvalidStateTransitionError: Current status is not an allowed
                predecessor of new_status
        """
        logger = cls.get_logger()
        extra_fields = extra_fields or {}

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

            snapshot = copy.copy(payment)
            transition = getattr(payment, TRANSITION_BY_STATUS[new_status])

            if not can_proceed(transition):
                logger.warning(
                    "Rejected payment transition",
                    extra={
                        "intent_id": intent_id,
                        "current_state": payment.status,
                        "target_state": new_status,
                    },
                )
                raise InvalidStateTransitionError(
                    f"Cannot move payment from {payment.status} to {new_status}",
                    details={
                        "intent_id": intent_id,
                        "current_state": payment.status,
                        "target_state": new_status,
                    },
                )

            transition()
            for field_name, value in extra_fields.items():
                setattr(payment, field_name, value)
            payment.save()

            rental_status = rental_status_for(new_status)
            rental_updated = False
            if rental_status and payment.has_real_rental:
                rental_updated = cls._update_rental(payment.rental_id, rental_status)

        logger.info(
            "Payment transitioned",
            extra={
                "intent_id": intent_id,
                "from_state": snapshot.status,
                "to_state": payment.status,
                "rental_id": payment.rental_id,
                "rental_status": rental_status if rental_updated else None,
            },
        )
        return snapshot, payment

    @classmethod
    def _update_rental(cls, rental_id: str, rental_status: str) -> bool:
        try:
            updated = Rental.objects.filter(pk=rental_id).update(
                status=rental_status, updated_at=timezone.now()
            )
        except (DjangoValidationError, ValueError):
            cls.get_logger().warning(
                "Payment references a malformed rental id",
                extra={"rental_id": rental_id},
            )
            return False

        if not updated:
            cls.get_logger().warning(
                "Payment references a missing rental",
                extra={"rental_id": rental_id},
            )
        return bool(updated)
