"""
Test configuration and fixtures for notification tests.
"""

import pytest

from authentication.tests.factories import UserFactory


@pytest.fixture
def user(db):
    """Notification recipient."""
    return UserFactory()


@pytest.fixture
def other_user(db):
    return UserFactory()
