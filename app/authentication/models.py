"""
Authentication models.

This module defines the custom User model: email-based login plus the
payee-relevant slice used by payouts (the owner's connected account).

Related files:
    - managers.py: Custom user manager for email-based creation
    - payments.services.payout_service: provisions ``connected_account_id``
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        full_name: Display name used in notifications
        connected_account_id: Stripe Connect account receiving payouts
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin and staff-only
            payment operations (refunds, payouts)
        date_joined: When the user account was created
        updated_at: When the user record was last modified

    Usage:
        owner = User.objects.create_user(email="owner@example.com", password="pw")
        owner.connected_account_id = "acct_123"
        owner.save(update_fields=["connected_account_id", "updated_at"])
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )

    full_name = models.CharField(
        max_length=150,
        blank=True,
        default="",
        help_text="Display name",
    )

    # Payout destination for equipment owners
    connected_account_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Stripe Connect account ID (acct_xxx) for receiving payouts",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        return self.full_name or self.email

    def get_short_name(self):
        return self.full_name.split(" ")[0] if self.full_name else self.email.split("@")[0]

    @property
    def has_connected_account(self) -> bool:
        """Whether payouts can be sent to this user."""
        return bool(self.connected_account_id)
