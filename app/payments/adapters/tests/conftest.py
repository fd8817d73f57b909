"""
Fixtures for StripeAdapter tests.

The SDK resources (PaymentIntent, Refund, Transfer, Account, Webhook) are
patched at the ``stripe`` module, so no request ever leaves the process.
Response builders return ``StripeStub`` objects that answer attribute access
and ``to_dict()`` the way SDK objects do.
"""

from typing import Any
from unittest.mock import patch

import pytest
import stripe


class StripeStub:
    """Attribute-style view over a dict, like a StripeObject."""

    def __init__(self, **fields: Any):
        self._fields = fields

    def __getattr__(self, name: str) -> Any:
        return self._fields.get(name)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._fields)


def _builder(defaults: dict[str, Any]):
    def build(**overrides: Any) -> StripeStub:
        return StripeStub(**{**defaults, **overrides})

    return build


INTENT_DEFAULTS = {
    "id": "pi_test123456",
    "object": "payment_intent",
    "status": "requires_payment_method",
    "amount": 5000,
    "amount_received": 0,
    "currency": "usd",
    "capture_method": "automatic",
    "client_secret": "pi_test123456_secret_abc123",
    "metadata": {},
}

TRANSFER_DEFAULTS = {
    "id": "tr_test123456",
    "object": "transfer",
    "amount": 9000,
    "currency": "usd",
    "destination": "acct_dest123",
    "transfer_group": None,
}

REFUND_DEFAULTS = {
    "id": "re_test123456",
    "object": "refund",
    "amount": 5000,
    "currency": "usd",
    "status": "succeeded",
    "payment_intent": "pi_test123456",
}


# -----------------------------------------------------------------------------
# Response builders
# -----------------------------------------------------------------------------


@pytest.fixture
def mock_payment_intent():
    return _builder(INTENT_DEFAULTS)


@pytest.fixture
def mock_transfer():
    return _builder(TRANSFER_DEFAULTS)


@pytest.fixture
def mock_refund():
    return _builder(REFUND_DEFAULTS)


# -----------------------------------------------------------------------------
# SDK errors
# -----------------------------------------------------------------------------


@pytest.fixture
def card_error():
    def build(
        message: str = "Your card was declined.",
        code: str = "card_declined",
        decline_code: str | None = "generic_decline",
    ) -> stripe.CardError:
        error = stripe.CardError(message=message, param=None, code=code)
        error.decline_code = decline_code
        return error

    return build


@pytest.fixture
def invalid_request_error():
    def build(
        message: str = "No such payment_intent: 'pi_missing'",
        param: str | None = "intent",
        code: str = "resource_missing",
    ) -> stripe.InvalidRequestError:
        return stripe.InvalidRequestError(message=message, param=param, code=code)

    return build


@pytest.fixture
def signature_verification_error():
    return stripe.SignatureVerificationError(
        message="Unable to verify webhook signature.",
        sig_header="bad_signature",
    )


# -----------------------------------------------------------------------------
# Patched SDK resources
# -----------------------------------------------------------------------------


@pytest.fixture
def mock_stripe_http_client():
    with patch("stripe.RequestsClient") as client:
        yield client


@pytest.fixture
def mock_stripe_payment_intent(mock_payment_intent, mock_stripe_http_client):
    with patch("stripe.PaymentIntent") as resource:
        for method in ("create", "retrieve", "modify"):
            getattr(resource, method).return_value = mock_payment_intent()
        resource.capture.return_value = mock_payment_intent(
            status="succeeded", amount_received=5000
        )
        yield resource


@pytest.fixture
def mock_stripe_transfer(mock_transfer, mock_stripe_http_client):
    with patch("stripe.Transfer") as resource:
        resource.create.return_value = mock_transfer()
        yield resource


@pytest.fixture
def mock_stripe_refund(mock_refund, mock_stripe_http_client):
    with patch("stripe.Refund") as resource:
        resource.create.return_value = mock_refund()
        yield resource


@pytest.fixture
def mock_stripe_account(mock_stripe_http_client):
    """Patched (Account, AccountLink) pair for Connect onboarding."""
    with patch("stripe.Account") as account, patch("stripe.AccountLink") as link:
        account.create.return_value = StripeStub(
            id="acct_new123",
            email="owner@example.com",
            country="US",
            charges_enabled=False,
            payouts_enabled=False,
        )
        link.create.return_value = StripeStub(
            url="https://connect.stripe.com/setup/e/acct_new123",
            expires_at=1700000000,
        )
        yield account, link


@pytest.fixture
def mock_stripe_webhook():
    with patch("stripe.Webhook") as webhook:
        webhook.construct_event.return_value = StripeStub(
            id="evt_test123",
            type="payment_intent.succeeded",
            data={"object": {"id": "pi_test123", "object": "payment_intent"}},
        )
        yield webhook
