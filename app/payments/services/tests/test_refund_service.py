"""
Tests for RefundEngine.
"""

from unittest.mock import DEFAULT

import pytest

from notifications.models import Notification, NotificationType
from payments.exceptions import (
    DepositRefundPreconditionError,
    InvalidStateTransitionError,
    NoDepositError,
    PaymentNotFoundError,
    RefundAmountError,
    RefundInProgressError,
    StripeInvalidRequestError,
)
from payments.models import Payment
from payments.services import RefundEngine
from payments.state_machines import PaymentStatus
from payments.tests.factories import PaymentFactory, make_intent
from rentals.models import Rental, RentalStatus


@pytest.fixture
def deposit_captured(stripe_adapter):
    """$800 captured on pi_completed_deposit, enough to cover the $200 deposit."""
    stripe_adapter.retrieve_payment_intent.return_value = make_intent(
        id="pi_completed_deposit", amount_cents=100000, amount_received=80000
    )


class TestRefundPayment:
    """Tests for RefundEngine.refund_payment."""

    def test_full_refund(self, completed_payment, rental, user, stripe_adapter):
        stripe_adapter.retrieve_payment_intent.return_value = make_intent(
            id="pi_completed", amount_cents=10000
        )

        outcome = RefundEngine.refund_payment("pi_completed")

        assert outcome.refund.id == "re_test"
        call = stripe_adapter.create_refund.call_args
        assert call.args == ("pi_completed",)
        assert call.kwargs["amount_cents"] is None
        assert call.kwargs["idempotency_key"].startswith("refund:")

        payment = Payment.objects.get(pk=completed_payment.pk)
        assert payment.status == PaymentStatus.REFUNDED
        assert payment.refunded_at is not None
        assert Rental.objects.get(pk=rental.pk).status == RentalStatus.REFUNDED

        notification = Notification.objects.get(user=user)
        assert notification.type == NotificationType.REFUND
        assert "100.00" in notification.message

    def test_partial_refund(self, completed_payment, stripe_adapter):
        stripe_adapter.retrieve_payment_intent.return_value = make_intent(
            id="pi_completed", amount_cents=10000
        )

        RefundEngine.refund_payment("pi_completed", amount_minor=2500)

        assert stripe_adapter.create_refund.call_args.kwargs["amount_cents"] == 2500
        assert Payment.objects.get(pk=completed_payment.pk).status == PaymentStatus.REFUNDED

    def test_amount_is_checked_against_captured_amount(self, completed_payment, stripe_adapter):
        stripe_adapter.retrieve_payment_intent.return_value = make_intent(
            id="pi_completed", amount_cents=10000, amount_received=8000
        )

        with pytest.raises(RefundAmountError) as exc_info:
            RefundEngine.refund_payment("pi_completed", amount_minor=9000)

        assert exc_info.value.details["captured_amount"] == 8000
        stripe_adapter.create_refund.assert_not_called()
        assert Payment.objects.get(pk=completed_payment.pk).status == PaymentStatus.COMPLETED

    @pytest.mark.parametrize("amount", [0, -100])
    def test_non_positive_amount_rejected(self, completed_payment, stripe_adapter, amount):
        with pytest.raises(RefundAmountError):
            RefundEngine.refund_payment("pi_completed", amount_minor=amount)

        stripe_adapter.create_refund.assert_not_called()

    def test_nothing_captured(self, completed_payment, stripe_adapter):
        stripe_adapter.retrieve_payment_intent.return_value = make_intent(
            id="pi_completed", status="requires_capture", amount_cents=10000
        )

        with pytest.raises(RefundAmountError):
            RefundEngine.refund_payment("pi_completed")

    def test_pending_payment_cannot_be_refunded(self, pending_payment, stripe_adapter):
        with pytest.raises(InvalidStateTransitionError):
            RefundEngine.refund_payment("pi_pending")

        stripe_adapter.retrieve_payment_intent.assert_not_called()
        stripe_adapter.create_refund.assert_not_called()

    def test_second_refund_is_rejected(self, completed_payment, stripe_adapter):
        RefundEngine.refund_payment("pi_completed")

        with pytest.raises(InvalidStateTransitionError):
            RefundEngine.refund_payment("pi_completed")

        assert stripe_adapter.create_refund.call_count == 1

    def test_gateway_error_leaves_payment_completed(self, completed_payment, stripe_adapter):
        stripe_adapter.create_refund.side_effect = StripeInvalidRequestError("charge disputed")

        with pytest.raises(StripeInvalidRequestError):
            RefundEngine.refund_payment("pi_completed")

        assert Payment.objects.get(pk=completed_payment.pk).status == PaymentStatus.COMPLETED
        assert Payment.objects.get(pk=completed_payment.pk).refund_in_progress is False
        assert Notification.objects.count() == 0

    def test_unknown_intent(self, db, stripe_adapter):
        with pytest.raises(PaymentNotFoundError):
            RefundEngine.refund_payment("pi_missing")


@pytest.mark.usefixtures("deposit_captured")
class TestRefundSecurityDeposit:
    """Tests for RefundEngine.refund_security_deposit."""

    def test_refunds_full_deposit(self, completed_deposit_payment, user, stripe_adapter):
        outcome = RefundEngine.refund_security_deposit("pi_completed_deposit")

        call = stripe_adapter.create_refund.call_args
        assert call.args == ("pi_completed_deposit",)
        assert call.kwargs["amount_cents"] == 20000
        assert call.kwargs["reason"] == "requested_by_customer"
        assert call.kwargs["metadata"]["type"] == "security_deposit"
        assert outcome.refund.amount_cents == 20000

        payment = Payment.objects.get(pk=completed_deposit_payment.pk)
        assert payment.status == PaymentStatus.REFUNDED
        assert payment.security_deposit_returned is True
        assert Notification.objects.get(user=user).title == "Security Deposit Refunded"

    def test_partial_deposit(self, completed_deposit_payment, stripe_adapter):
        RefundEngine.refund_security_deposit("pi_completed_deposit", amount_minor=5000)

        assert stripe_adapter.create_refund.call_args.kwargs["amount_cents"] == 5000

    def test_amount_above_deposit_rejected(self, completed_deposit_payment, stripe_adapter):
        with pytest.raises(RefundAmountError):
            RefundEngine.refund_security_deposit("pi_completed_deposit", amount_minor=20001)

        stripe_adapter.create_refund.assert_not_called()

    def test_no_deposit(self, completed_payment, stripe_adapter):
        with pytest.raises(NoDepositError) as exc_info:
            RefundEngine.refund_security_deposit("pi_completed")

        assert exc_info.value.error_code == "NO_SECURITY_DEPOSIT"
        stripe_adapter.create_refund.assert_not_called()
        payment = Payment.objects.get(pk=completed_payment.pk)
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.security_deposit_returned is False

    def test_already_returned(self, completed_deposit_payment, stripe_adapter):
        RefundEngine.refund_security_deposit("pi_completed_deposit")

        with pytest.raises(NoDepositError):
            RefundEngine.refund_security_deposit("pi_completed_deposit")

        assert stripe_adapter.create_refund.call_count == 1

    def test_deposit_not_yet_captured(self, deposit_payment, stripe_adapter):
        with pytest.raises(InvalidStateTransitionError):
            RefundEngine.refund_security_deposit("pi_deposit")

        stripe_adapter.create_refund.assert_not_called()

    def test_rental_records_deposit_return(
        self, completed_deposit_payment, completed_rental, stripe_adapter
    ):
        RefundEngine.refund_security_deposit("pi_completed_deposit")

        rental = Rental.objects.get(pk=completed_rental.pk)
        assert rental.security_deposit_returned is True
        assert rental.security_deposit_return_date is not None

    def test_rental_must_be_completed(self, user, rental, stripe_adapter):
        PaymentFactory(
            stripe_payment_intent_id="pi_active_rental",
            user=user,
            rental_id=str(rental.id),
            status=PaymentStatus.COMPLETED,
            metadata={"securityDeposit": "200.00"},
        )

        with pytest.raises(DepositRefundPreconditionError) as exc_info:
            RefundEngine.refund_security_deposit("pi_active_rental")

        assert exc_info.value.details["reason"] == "rental_not_completed"
        stripe_adapter.create_refund.assert_not_called()
        payment = Payment.objects.get(stripe_payment_intent_id="pi_active_rental")
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.refund_in_progress is False
        assert Rental.objects.get(pk=rental.pk).security_deposit_returned is False

    def test_deposit_above_captured_amount_rejected(
        self, completed_deposit_payment, stripe_adapter
    ):
        stripe_adapter.retrieve_payment_intent.return_value = make_intent(
            id="pi_completed_deposit", amount_cents=100000, amount_received=5000
        )

        with pytest.raises(RefundAmountError) as exc_info:
            RefundEngine.refund_security_deposit("pi_completed_deposit")

        assert exc_info.value.details["requested_amount"] == 20000
        assert exc_info.value.details["captured_amount"] == 5000
        stripe_adapter.retrieve_payment_intent.assert_called_once_with("pi_completed_deposit")
        stripe_adapter.create_refund.assert_not_called()
        payment = Payment.objects.get(pk=completed_deposit_payment.pk)
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.refund_in_progress is False


@pytest.mark.usefixtures("deposit_captured")
class TestRefundClaim:
    """Only one refund at a time may reach the gateway for a payment."""

    def test_overlapping_deposit_refund_is_rejected(
        self, completed_deposit_payment, stripe_adapter
    ):
        overlapping = []

        def refund_again(*args, **kwargs):
            with pytest.raises(RefundInProgressError) as exc_info:
                RefundEngine.refund_security_deposit("pi_completed_deposit")
            overlapping.append(exc_info.value)
            return DEFAULT

        stripe_adapter.create_refund.side_effect = refund_again

        RefundEngine.refund_security_deposit("pi_completed_deposit")

        assert len(overlapping) == 1
        assert overlapping[0].error_code == "REFUND_IN_PROGRESS"
        assert stripe_adapter.create_refund.call_count == 1

    def test_full_refund_during_deposit_refund_is_rejected(
        self, completed_deposit_payment, stripe_adapter
    ):
        def refund_in_full(*args, **kwargs):
            with pytest.raises(RefundInProgressError):
                RefundEngine.refund_payment("pi_completed_deposit")
            return DEFAULT

        stripe_adapter.create_refund.side_effect = refund_in_full

        RefundEngine.refund_security_deposit("pi_completed_deposit")

        assert stripe_adapter.create_refund.call_count == 1

    def test_claimed_payment_is_not_sent_to_gateway(self, stripe_adapter, db):
        PaymentFactory(
            stripe_payment_intent_id="pi_claimed",
            status=PaymentStatus.COMPLETED,
            refund_in_progress=True,
        )

        with pytest.raises(RefundInProgressError):
            RefundEngine.refund_payment("pi_claimed")

        stripe_adapter.retrieve_payment_intent.assert_not_called()
        stripe_adapter.create_refund.assert_not_called()

    def test_claim_released_after_gateway_error(self, completed_deposit_payment, stripe_adapter):
        stripe_adapter.create_refund.side_effect = [
            StripeInvalidRequestError("charge disputed"),
            stripe_adapter.create_refund.return_value,
        ]

        with pytest.raises(StripeInvalidRequestError):
            RefundEngine.refund_security_deposit("pi_completed_deposit")
        assert Payment.objects.get(pk=completed_deposit_payment.pk).refund_in_progress is False

        RefundEngine.refund_security_deposit("pi_completed_deposit")

        payment = Payment.objects.get(pk=completed_deposit_payment.pk)
        assert payment.status == PaymentStatus.REFUNDED
        assert payment.refund_in_progress is False
