"""
Pytest fixtures shared by every payments test package.

Fixtures provide users, rentals and payments in the states the handlers
care about, plus ``stripe_adapter``: a MagicMock installed as the Stripe
adapter for every payment service for the duration of a test.

Usage:
    def test_refund(completed_payment, stripe_adapter):
        stripe_adapter.retrieve_payment_intent.return_value = make_intent(...)
        RefundEngine.refund_payment(completed_payment.stripe_payment_intent_id)
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from django.utils import timezone

from authentication.tests.factories import OwnerFactory, UserFactory
from payments.adapters import (
    AccountLinkResult,
    ConnectedAccountResult,
    RefundResult,
    TransferResult,
)
from payments.services import GatewayService
from payments.state_machines import PaymentStatus
from payments.tests.factories import PaymentFactory, make_intent
from rentals.models import RentalStatus
from rentals.tests.factories import RentalFactory


# =============================================================================
# Stripe Adapter
# =============================================================================


@pytest.fixture
def stripe_adapter():
    """
    MagicMock standing in for StripeAdapter in every payment service.

    Defaults return realistic result objects; override per test.
    """
    adapter = MagicMock()
    adapter.create_payment_intent.side_effect = lambda **kwargs: make_intent(
        id="pi_created",
        status="requires_payment_method",
        amount_cents=kwargs["amount_cents"],
        capture_method=kwargs["capture_method"],
        metadata=kwargs["metadata"],
    )
    adapter.update_payment_intent.side_effect = lambda intent_id, fields: make_intent(
        id=intent_id, status="requires_payment_method"
    )
    adapter.retrieve_payment_intent.return_value = make_intent()
    adapter.capture_payment_intent.side_effect = lambda intent_id, **kwargs: make_intent(
        id=intent_id,
        status="succeeded",
        amount_received=kwargs.get("amount_to_capture") or 0,
    )
    adapter.create_refund.side_effect = lambda payment_intent_id, **kwargs: RefundResult(
        id="re_test",
        amount_cents=kwargs.get("amount_cents") or 0,
        currency="usd",
        status="succeeded",
        payment_intent_id=payment_intent_id,
    )
    adapter.create_transfer.side_effect = lambda **kwargs: TransferResult(
        id="tr_test",
        amount_cents=kwargs["amount_cents"],
        currency=kwargs["currency"],
        destination_account=kwargs["destination_account"],
        transfer_group=kwargs.get("transfer_group"),
    )
    adapter.create_connected_account.return_value = ConnectedAccountResult(
        id="acct_created", email="owner@example.com", country="US"
    )
    adapter.create_account_link.return_value = AccountLinkResult(
        url="https://connect.stripe.com/setup/e/acct_created", expires_at=1700000000
    )

    GatewayService.set_stripe_adapter(adapter)
    yield adapter
    GatewayService.set_stripe_adapter(None)


@pytest.fixture(autouse=True)
def no_retry_sleep(settings):
    """Transient-error retries run without real backoff delays."""
    settings.STRIPE_RETRY_INITIAL_DELAY = 0


# =============================================================================
# User and Rental Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Payer."""
    return UserFactory()


@pytest.fixture
def owner(db):
    """Equipment owner with a connected account."""
    return OwnerFactory()


@pytest.fixture
def rental(db, user, owner):
    """PENDING rental of owner's equipment by user."""
    return RentalFactory(renter=user, equipment__owner=owner, total_amount=Decimal("100.00"))


@pytest.fixture
def completed_rental(db, user, owner):
    """COMPLETED rental ready for the owner payout."""
    return RentalFactory(
        renter=user,
        equipment__owner=owner,
        total_amount=Decimal("100.00"),
        status=RentalStatus.COMPLETED,
    )


# =============================================================================
# Payment State Fixtures
# =============================================================================


@pytest.fixture
def pending_payment(db, user, rental, owner):
    """PENDING $100 payment without a deposit."""
    return PaymentFactory(
        stripe_payment_intent_id="pi_pending",
        user=user,
        rental_id=str(rental.id),
        metadata={
            "userId": str(user.pk),
            "rentalId": str(rental.id),
            "ownerId": str(owner.pk),
            "equipmentTitle": "Camera Kit",
        },
    )


@pytest.fixture
def deposit_payment(db, user, rental, owner):
    """PENDING $1000 manual-capture payment holding a $200 deposit."""
    return PaymentFactory(
        stripe_payment_intent_id="pi_deposit",
        user=user,
        rental_id=str(rental.id),
        amount=Decimal("1000.00"),
        security_deposit_amount=Decimal("200.00"),
        rental_amount=Decimal("800.00"),
        metadata={
            "userId": str(user.pk),
            "rentalId": str(rental.id),
            "ownerId": str(owner.pk),
            "securityDeposit": "200.00",
            "rentalAmount": "800.00",
        },
    )


@pytest.fixture
def completed_payment(db, user, rental):
    """COMPLETED $100 payment."""
    return PaymentFactory(
        stripe_payment_intent_id="pi_completed",
        user=user,
        rental_id=str(rental.id),
        status=PaymentStatus.COMPLETED,
        paid_at=timezone.now(),
    )


@pytest.fixture
def completed_deposit_payment(db, user, completed_rental):
    """COMPLETED payment for a finished rental; $800 captured, $200 deposit held."""
    return PaymentFactory(
        stripe_payment_intent_id="pi_completed_deposit",
        user=user,
        rental_id=str(completed_rental.id),
        amount=Decimal("1000.00"),
        security_deposit_amount=Decimal("200.00"),
        rental_amount=Decimal("800.00"),
        status=PaymentStatus.COMPLETED,
        paid_at=timezone.now(),
        metadata={
            "userId": str(user.pk),
            "rentalId": str(completed_rental.id),
            "securityDeposit": "200.00",
        },
    )


@pytest.fixture
def failed_payment(db, user, rental):
    """FAILED $100 payment."""
    return PaymentFactory(
        stripe_payment_intent_id="pi_failed",
        user=user,
        rental_id=str(rental.id),
        status=PaymentStatus.FAILED,
        failed_at=timezone.now(),
    )
