"""
Rental domain models.

Equipment listings and the bookings made against them. Booking CRUD lives
outside this project; the payment orchestrator reads and writes only the
fields below:

- Rental.status: partially derived from the paired Payment's status
  (see payments.services.state_transition)
- Rental.payout_*: owner payout bookkeeping written by PayoutEngine

Usage:
    from rentals.models import Rental, RentalStatus

    rental = Rental.objects.select_related("equipment__owner").get(pk=rental_id)
    if rental.status == RentalStatus.COMPLETED:
        ...
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import UUIDModel


# =============================================================================
# Enums
# =============================================================================


class RentalStatus(models.TextChoices):
    """
    Booking lifecycle states.

    PENDING, PAID, PAYMENT_FAILED and REFUNDED are projected from the
    Payment status. ACTIVE, COMPLETED and CANCELLED are set by the booking
    workflow.
    """

    PENDING = "PENDING", "Pending"
    PAID = "PAID", "Paid"
    PAYMENT_FAILED = "PAYMENT_FAILED", "Payment Failed"
    ACTIVE = "ACTIVE", "Active"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"
    REFUNDED = "REFUNDED", "Refunded"


class PayoutStatus(models.TextChoices):
    """Owner payout progress for a completed rental."""

    PENDING = "PENDING", "Pending"
    PROCESSING = "PROCESSING", "Processing"
    COMPLETED = "COMPLETED", "Completed"
    FAILED = "FAILED", "Failed"


# =============================================================================
# Models
# =============================================================================


class Equipment(UUIDModel):
    """
    A rentable equipment listing.

    Fields:
        owner: User receiving payouts for rentals of this equipment
        title: Listing title, copied into payment metadata
        daily_rate: Price per day in major currency units
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="equipment",
        help_text="Equipment owner (payout recipient)",
    )
    title = models.CharField(
        max_length=200,
        help_text="Listing title",
    )
    daily_rate = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=0,
        help_text="Price per day in major currency units",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Equipment"
        verbose_name_plural = "Equipment"

    def __str__(self) -> str:
        return f"Equipment({self.title})"


class Rental(UUIDModel):
    """
    A booking of one piece of equipment by one renter.

    Fields:
        equipment: The rented listing (its owner is the payee)
        renter: User paying for the rental
        start_date/end_date: Rental window
        total_amount: Amount owed for the rental in major units
        status: Booking lifecycle state
        payout_status: Owner payout progress (null until a payout starts)
        payout_amount: Amount transferred to the owner in major units
        payout_date: When the owner transfer succeeded
        payout_transfer_id: Stripe Transfer ID (tr_xxx)
        security_deposit_returned/security_deposit_return_date: deposit refund
            bookkeeping
    """

    equipment = models.ForeignKey(
        Equipment,
        on_delete=models.PROTECT,
        related_name="rentals",
        help_text="Rented equipment",
    )
    renter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="rentals",
        help_text="User renting the equipment",
    )

    start_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Start of the rental window",
    )
    end_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="End of the rental window",
    )

    total_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Total rental amount in major currency units",
    )

    status = models.CharField(
        max_length=20,
        choices=RentalStatus.choices,
        default=RentalStatus.PENDING,
        db_index=True,
        help_text="Booking lifecycle state",
    )

    # ==========================================================================
    # Payout Bookkeeping
    # ==========================================================================

    payout_status = models.CharField(
        max_length=20,
        choices=PayoutStatus.choices,
        null=True,
        blank=True,
        help_text="Owner payout progress",
    )
    payout_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Amount paid out to the owner in major currency units",
    )
    payout_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the owner payout succeeded",
    )
    payout_transfer_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Stripe Transfer ID (tr_xxx)",
    )

    # ==========================================================================
    # Security Deposit Bookkeeping
    # ==========================================================================

    security_deposit_returned = models.BooleanField(
        default=False,
        help_text="Whether the renter's security deposit has been refunded",
    )
    security_deposit_return_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the security deposit was refunded",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["status", "payout_status"], name="rental_status_payout_idx"
            ),
        ]

    def __str__(self) -> str:
        return f"Rental({self.id}, {self.status})"

    @property
    def owner(self):
        """The equipment owner receiving the payout."""
        return self.equipment.owner
