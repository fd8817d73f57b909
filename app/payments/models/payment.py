"""
Payment model for the rental payment lifecycle.

A Payment is one authorization/charge attempt against a Stripe
PaymentIntent. ``stripe_payment_intent_id`` is the sole correlation key
between gateway callbacks and local state.

Usage:
    from payments.models import Payment
    from payments.state_machines import PaymentStatus

    payment = Payment.objects.create(
        stripe_payment_intent_id="pi_123",
        user=payer,
        rental_id=str(rental.id),
        amount=Decimal("10.00"),
        currency="USD",
    )

    # State transitions using django-fsm
    payment.complete()  # PENDING -> COMPLETED
    payment.save()

Note:
    ``status`` is a protected FSMField; change it only through the
    transition methods (StateTransitionEngine does this for every caller).
    Re-read a Payment with ``Payment.objects.get`` rather than
    ``refresh_from_db``.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from django_fsm import FSMField, transition

from core.models import UUIDModel

from payments.state_machines import PaymentStatus

# Placeholder rental ids look like "temp_1718000000000"
TEMP_RENTAL_PREFIX = "temp_"


class Payment(UUIDModel):
    """
    One authorization/charge attempt for a rental.

    State Flow:
        PENDING -> COMPLETED -> REFUNDED
        PENDING -> FAILED -> RETRY_SCHEDULED -> COMPLETED / FAILED
        FAILED / RETRY_SCHEDULED -> PENDING (re-attempt)
        PENDING / FAILED / RETRY_SCHEDULED -> BLOCKED

    Fields:
        stripe_payment_intent_id: Gateway intent id (unique)
        user: Payer
        rental_id: Rental primary key, or a ``temp_<epoch-ms>`` placeholder
        amount/currency: Authorized amount in major units, ISO code uppercase
        security_deposit_amount: Deposit portion left uncaptured at success
        rental_amount: Portion owed for usage, captured at success
        status: Current FSM state
        security_deposit_returned/owner_paid_out/payout_amount: refund and
            payout bookkeeping
        refund_in_progress: claim held by RefundEngine while Stripe refunds
        retry_count/last_retry_at/next_retry_at: scheduled retry bookkeeping
        is_blocked/block_reason: risk bookkeeping
        paid_at/failed_at/refunded_at: transition timestamps
        metadata: Snapshot of the request context (equipment, owner, window)
    """

    # ==========================================================================
    # Identity & Relationships
    # ==========================================================================

    stripe_payment_intent_id = models.CharField(
        max_length=255,
        unique=True,
        db_index=True,
        help_text="Stripe PaymentIntent ID (pi_xxx)",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="User making the payment",
    )

    rental_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Rental ID, or a temp_<epoch-ms> placeholder",
    )

    # ==========================================================================
    # Money
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Authorized amount in major currency units",
    )

    currency = models.CharField(
        max_length=3,
        default="USD",
        help_text="ISO 4217 currency code (uppercase)",
    )

    security_deposit_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Security deposit in major units (authorized, not captured)",
    )

    rental_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Rental fee in major units (captured at success)",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PaymentStatus.PENDING,
        choices=PaymentStatus.choices,
        protected=True,
        db_index=True,
        help_text="Current payment state",
    )

    # ==========================================================================
    # Refund & Payout Bookkeeping
    # ==========================================================================

    security_deposit_returned = models.BooleanField(
        default=False,
        help_text="Whether the security deposit has been refunded",
    )

    refund_in_progress = models.BooleanField(
        default=False,
        help_text="Set while a refund holds the claim on this payment",
    )

    owner_paid_out = models.BooleanField(
        default=False,
        help_text="Whether the equipment owner has been paid out",
    )

    payout_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Amount paid out to the owner in major units",
    )

    # ==========================================================================
    # Scheduled Retry Bookkeeping
    # ==========================================================================

    retry_count = models.PositiveIntegerField(
        default=0,
        help_text="Number of scheduled retries recorded",
    )

    last_retry_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the last retry was scheduled",
    )

    next_retry_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="When the retry sweep should pick this payment up",
    )

    # ==========================================================================
    # Risk Bookkeeping
    # ==========================================================================

    is_blocked = models.BooleanField(
        default=False,
        help_text="Whether the payment was blocked by a risk decision",
    )

    block_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Why the payment was blocked",
    )

    # ==========================================================================
    # Timestamps
    # ==========================================================================

    paid_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Request context snapshot (equipment, owner, rental window)",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "next_retry_at"], name="payment_retry_due_idx"),
            models.Index(fields=["status", "failed_at"], name="payment_failed_idx"),
        ]

    def __str__(self) -> str:
        return f"Payment({self.stripe_payment_intent_id}, {self.status}, {self.amount} {self.currency})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def has_real_rental(self) -> bool:
        """False while the payment still points at a temp_ placeholder."""
        return bool(self.rental_id) and not self.rental_id.startswith(TEMP_RENTAL_PREFIX)

    @property
    def deposit_from_metadata(self) -> Decimal:
        """Security deposit recorded in the intent metadata (0 if absent)."""
        return to_decimal(self.metadata.get("securityDeposit"))

    @property
    def owner_id(self) -> str | None:
        return self.metadata.get("ownerId") or None

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=[
            PaymentStatus.PENDING,
            PaymentStatus.FAILED,
            PaymentStatus.RETRY_SCHEDULED,
        ],
        target=PaymentStatus.COMPLETED,
    )
    def complete(self):
        """
        Transition: PENDING/FAILED/RETRY_SCHEDULED -> COMPLETED

        FAILED is an accepted source because the payer may succeed with a
        new payment method after an earlier decline on the same intent.
        """

    @transition(
        field=status,
        source=[PaymentStatus.PENDING, PaymentStatus.RETRY_SCHEDULED],
        target=PaymentStatus.FAILED,
    )
    def fail(self):
        """Transition: PENDING/RETRY_SCHEDULED -> FAILED"""

    @transition(
        field=status,
        source=[
            PaymentStatus.PENDING,
            PaymentStatus.FAILED,
            PaymentStatus.RETRY_SCHEDULED,
        ],
        target=PaymentStatus.BLOCKED,
    )
    def block(self):
        """Transition: PENDING/FAILED/RETRY_SCHEDULED -> BLOCKED (terminal)"""

    @transition(
        field=status,
        source=[PaymentStatus.FAILED, PaymentStatus.RETRY_SCHEDULED],
        target=PaymentStatus.RETRY_SCHEDULED,
    )
    def schedule_retry(self):
        """Transition: FAILED/RETRY_SCHEDULED -> RETRY_SCHEDULED"""

    @transition(
        field=status,
        source=[PaymentStatus.FAILED, PaymentStatus.RETRY_SCHEDULED],
        target=PaymentStatus.PENDING,
    )
    def reopen(self):
        """Transition: FAILED/RETRY_SCHEDULED -> PENDING (re-attempt)"""

    @transition(
        field=status,
        source=PaymentStatus.COMPLETED,
        target=PaymentStatus.REFUNDED,
    )
    def refund(self):
        """Transition: COMPLETED -> REFUNDED"""


def to_decimal(value) -> Decimal:
    """Parse a metadata amount, treating missing or malformed values as 0."""
    if value in (None, ""):
        return Decimal("0")
    try:
        return Decimal(str(value))
    except ArithmeticError:
        return Decimal("0")
