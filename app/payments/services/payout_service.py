"""
PayoutEngine: connected accounts and owner payouts.

Owners receive the rental total minus the platform fee as a Stripe
Transfer to their Express connected account once the rental is COMPLETED.

Payout flow (two-phase):
    1. Lock the Rental, check preconditions, mark payout PROCESSING
    2. Create the Stripe Transfer outside the transaction (with retries)
    3. Record the result: COMPLETED with amount/date, or FAILED

The PROCESSING marker makes a second invocation for the same rental fail
with PayoutPreconditionError instead of transferring twice.

Usage:
    from payments.services import PayoutEngine

    account = PayoutEngine.create_connect_account(user.id, user.email, "US")
    link = PayoutEngine.create_account_link(account.account_id, refresh, ret)
    result = PayoutEngine.process_owner_payout(rental.id)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone

from notifications.models import NotificationType
from notifications.services import NotificationEmitter

from payments.adapters import (
    AccountLinkResult,
    IdempotencyKeyGenerator,
    TransferResult,
)
from payments.exceptions import GatewayError, PaymentNotFoundError, PayoutPreconditionError
from payments.models import Payment
from payments.retry import RetryCoordinator
from payments.services.base import GatewayService
from payments.services.payment_handlers import to_minor_units
from payments.state_machines import PaymentStatus
from rentals.models import PayoutStatus, Rental, RentalStatus


@dataclass
class ConnectAccountOutcome:
    account_id: str
    is_new: bool


@dataclass
class PayoutOutcome:
    """
    Result of an owner payout.

    Attributes:
        rental: Rental with payout fields recorded
        platform_fee: Fee retained in major units
        owner_amount_minor: Amount transferred in minor units
        transfer: Stripe transfer
    """

    rental: Rental
    platform_fee: Decimal
    owner_amount_minor: int
    transfer: TransferResult


def calculate_platform_fee(total_amount: Decimal) -> Decimal:
    """Platform fee in major units, rounded to cents."""
    percent = Decimal(str(settings.PLATFORM_FEE_PERCENT))
    return (total_amount * percent / 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _precondition_failed(message: str, reason: str, rental_id) -> PayoutPreconditionError:
    return PayoutPreconditionError(
        message,
        details={"reason": reason, "rental_id": str(rental_id)},
    )


class PayoutEngine(GatewayService):
    """Connected-account provisioning and owner transfers."""

    # =========================================================================
    # Connected Accounts
    # =========================================================================

    @classmethod
    def create_connect_account(
        cls,
        user_id,
        email: str,
        country: str = "US",
    ) -> ConnectAccountOutcome:
        """
        Return the user's connected account, creating one if needed.

        Raises:
            PaymentNotFoundError: No such user
            GatewayError: Stripe account creation failed
        """
        User = get_user_model()
        logger = cls.get_logger()

        user = User.objects.filter(pk=user_id).first()
        if user is None:
            raise PaymentNotFoundError(
                f"User {user_id} not found",
                error_code="USER_NOT_FOUND",
                details={"user_id": str(user_id)},
            )
        if user.connected_account_id:
            return ConnectAccountOutcome(account_id=user.connected_account_id, is_new=False)

        adapter = cls.get_stripe_adapter()
        account = RetryCoordinator.with_retry(
            lambda: adapter.create_connected_account(
                email=email,
                country=country,
                metadata={"userId": user.pk},
                idempotency_key=IdempotencyKeyGenerator.generate("connect_account", user.pk),
            )
        )

        claimed = User.objects.filter(pk=user.pk, connected_account_id__isnull=True).update(
            connected_account_id=account.id
        )
        if not claimed:
            # Another request provisioned the account first
            existing = User.objects.values_list("connected_account_id", flat=True).get(pk=user.pk)
            return ConnectAccountOutcome(account_id=existing, is_new=False)

        logger.info(
            "Connected account created",
            extra={"user_id": user.pk, "account_id": account.id, "country": country},
        )
        return ConnectAccountOutcome(account_id=account.id, is_new=True)

    @classmethod
    def create_account_link(
        cls,
        account_id: str,
        refresh_url: str,
        return_url: str,
    ) -> AccountLinkResult:
        """Onboarding link for a connected account."""
        return cls.get_stripe_adapter().create_account_link(
            account_id=account_id,
            refresh_url=refresh_url,
            return_url=return_url,
        )

    # =========================================================================
    # Owner Payouts
    # =========================================================================

    @classmethod
    def process_owner_payout(cls, rental_id: uuid.UUID | str) -> PayoutOutcome:
        """
        Transfer the owner's share of a completed rental.

        owner amount = total_amount - round(total_amount * PLATFORM_FEE_PERCENT / 100, 2)

        Raises:
            PayoutPreconditionError: Rental missing, not COMPLETED, owner has
                no connected account, or payout already processing/completed.
                Nothing is modified.
            GatewayError: Transfer failed; payout_status is set to FAILED
        """
        logger = cls.get_logger()
        log_context = {"rental_id": str(rental_id)}

        # Phase 1: validate and claim
        with cls.atomic():
            try:
                rental = (
                    Rental.objects.select_for_update()
                    .select_related("equipment__owner")
                    .filter(pk=rental_id)
                    .first()
                )
            except (DjangoValidationError, ValueError):
                rental = None

            if rental is None:
                raise _precondition_failed(
                    f"Rental {rental_id} not found", "rental_not_found", rental_id
                )
            if rental.status != RentalStatus.COMPLETED:
                raise _precondition_failed(
                    f"Rental is {rental.status}, payouts require COMPLETED",
                    "rental_not_completed",
                    rental_id,
                )
            if rental.payout_status in (PayoutStatus.PROCESSING, PayoutStatus.COMPLETED):
                raise _precondition_failed(
                    f"Payout already {rental.payout_status.lower()}",
                    "payout_already_processed",
                    rental_id,
                )
            owner = rental.owner
            if not owner.connected_account_id:
                raise _precondition_failed(
                    "Owner has no connected account",
                    "owner_not_connected",
                    rental_id,
                )

            rental.payout_status = PayoutStatus.PROCESSING
            rental.save(update_fields=["payout_status", "updated_at"])

        platform_fee = calculate_platform_fee(rental.total_amount)
        owner_amount_minor = to_minor_units(rental.total_amount - platform_fee)
        currency = (
            Payment.objects.filter(rental_id=str(rental.id))
            .values_list("currency", flat=True)
            .first()
            or "USD"
        )
        log_context.update(
            {
                "owner_id": owner.pk,
                "total_amount": str(rental.total_amount),
                "platform_fee": str(platform_fee),
                "owner_amount_minor": owner_amount_minor,
            }
        )
        logger.info("Starting owner payout", extra=log_context)

        # Phase 2: transfer
        adapter = cls.get_stripe_adapter()
        try:
            transfer = RetryCoordinator.with_retry(
                lambda: adapter.create_transfer(
                    amount_cents=owner_amount_minor,
                    currency=currency,
                    destination_account=owner.connected_account_id,
                    transfer_group=str(rental.id),
                    metadata={
                        "rentalId": str(rental.id),
                        "ownerId": owner.pk,
                        "platformFee": str(platform_fee),
                    },
                    idempotency_key=IdempotencyKeyGenerator.generate("payout", rental.id),
                )
            )
        except GatewayError as e:
            Rental.objects.filter(pk=rental.pk).update(
                payout_status=PayoutStatus.FAILED, updated_at=timezone.now()
            )
            logger.error(
                "Owner payout failed",
                extra={**log_context, "error_code": e.error_code},
            )
            raise

        # Phase 3: record
        payout_amount = (Decimal(owner_amount_minor) / 100).quantize(Decimal("0.01"))
        with cls.atomic():
            rental = Rental.objects.select_for_update().get(pk=rental.pk)
            rental.payout_status = PayoutStatus.COMPLETED
            rental.payout_amount = payout_amount
            rental.payout_date = timezone.now()
            rental.payout_transfer_id = transfer.id
            rental.save(
                update_fields=[
                    "payout_status",
                    "payout_amount",
                    "payout_date",
                    "payout_transfer_id",
                    "updated_at",
                ]
            )
            Payment.objects.filter(
                rental_id=str(rental.id), status=PaymentStatus.COMPLETED
            ).update(owner_paid_out=True, payout_amount=payout_amount, updated_at=timezone.now())

        NotificationEmitter.emit(
            user_id=owner.pk,
            title="Payout Processed",
            message=f"You have been paid {payout_amount:.2f} {currency} for a completed rental.",
            type=NotificationType.PAYOUT,
            idempotency_key=f"payout:{rental.id}",
        )

        logger.info("Owner payout completed", extra={**log_context, "transfer_id": transfer.id})
        return PayoutOutcome(
            rental=rental,
            platform_fee=platform_fee,
            owner_amount_minor=owner_amount_minor,
            transfer=transfer,
        )
