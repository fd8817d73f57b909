"""
User manager: email is the login identifier, and owners are the users
holding a Stripe Connect account.

Related files:
    - models.py: User model that uses this manager
    - admin.py: payout-account filter built on ``with_connected_account``
"""

from django.contrib.auth.models import BaseUserManager


class UserManager(BaseUserManager):
    """
    Usage:
        renter = User.objects.create_user(email="renter@example.com", password="pw")
        owners = User.objects.with_connected_account()
    """

    def _build(self, email, password, **extra_fields):
        if not email:
            raise ValueError("The Email field must be set")

        user = self.model(email=self.normalize_email(email), **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        """
        Create a renter or owner account.

        Raises:
            ValueError: If email is not provided
        """
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._build(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        """
        Create an operator account; staff may issue refunds and payouts.

        Raises:
            ValueError: If is_staff or is_superuser is explicitly False
        """
        for flag in ("is_staff", "is_superuser"):
            extra_fields.setdefault(flag, True)
            if extra_fields[flag] is not True:
                raise ValueError(f"Superuser must have {flag}=True.")
        return self._build(email, password, **extra_fields)

    def with_connected_account(self):
        """Users that can receive payouts."""
        return self.get_queryset().exclude(connected_account_id__isnull=True).exclude(
            connected_account_id=""
        )
