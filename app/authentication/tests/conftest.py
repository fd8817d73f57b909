"""
Test configuration and fixtures for authentication tests.
"""

import pytest

from authentication.models import User
from authentication.tests.factories import OwnerFactory, UserFactory


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def owner(db):
    """User who can receive payouts."""
    return OwnerFactory()


@pytest.fixture
def superuser(db):
    """Create a superuser with admin privileges."""
    return User.objects.create_superuser(
        email="admin@example.com",
        password="AdminPass123!",
    )
