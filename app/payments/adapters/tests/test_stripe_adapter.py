"""
Tests for Stripe adapter.

Tests cover:
- Idempotency key generation
- Error translation for each exception type
- Successful API operations and the parameters sent to Stripe
- Webhook signature verification
- Configuration from settings
"""

import pytest
import stripe
from django.test import override_settings

from payments.adapters import (
    IdempotencyKeyGenerator,
    PaymentIntentResult,
    RefundResult,
    StripeAdapter,
    TransferResult,
)
from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeInsufficientFundsError,
    StripeInvalidAccountError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
)


def _create_intent():
    return StripeAdapter.create_payment_intent(
        amount_cents=5000,
        currency="usd",
        idempotency_key="test-key",
    )


# =============================================================================
# IdempotencyKeyGenerator Tests
# =============================================================================


class TestIdempotencyKeyGenerator:
    """Tests for IdempotencyKeyGenerator."""

    def test_generate_key_format(self):
        """Should generate key in operation:entity:attempt:hash format."""
        key = IdempotencyKeyGenerator.generate("capture", "pi_123")

        parts = key.split(":")
        assert parts[0] == "capture"
        assert parts[1] == "pi_123"
        assert parts[2] == "1"
        assert len(parts[3]) == 8

    def test_same_inputs_produce_same_key(self):
        """Redelivered events must reuse the same key."""
        assert IdempotencyKeyGenerator.generate(
            "refund", "pi_123:full"
        ) == IdempotencyKeyGenerator.generate("refund", "pi_123:full")

    def test_different_attempts_produce_different_keys(self):
        assert IdempotencyKeyGenerator.generate(
            "payout", "r1", attempt=1
        ) != IdempotencyKeyGenerator.generate("payout", "r1", attempt=2)

    def test_different_operations_produce_different_keys(self):
        assert IdempotencyKeyGenerator.generate(
            "refund", "pi_123"
        ) != IdempotencyKeyGenerator.generate("deposit_refund", "pi_123")


# =============================================================================
# Error Translation Tests
# =============================================================================


class TestStripeAdapterErrorTranslation:
    """Tests for Stripe error translation to domain exceptions."""

    def test_card_declined_error(self, mock_stripe_payment_intent, card_error):
        """Should translate CardError to StripeCardDeclinedError."""
        mock_stripe_payment_intent.create.side_effect = card_error()

        with pytest.raises(StripeCardDeclinedError) as exc_info:
            _create_intent()

        assert exc_info.value.decline_code == "generic_decline"
        assert exc_info.value.is_retryable is False

    def test_insufficient_funds_error(self, mock_stripe_payment_intent, card_error):
        """Should translate insufficient funds to StripeInsufficientFundsError."""
        mock_stripe_payment_intent.create.side_effect = card_error(
            message="Your card has insufficient funds.",
            decline_code="insufficient_funds",
        )

        with pytest.raises(StripeInsufficientFundsError) as exc_info:
            _create_intent()

        assert exc_info.value.decline_code == "insufficient_funds"

    def test_invalid_request_error(
        self, mock_stripe_payment_intent, invalid_request_error
    ):
        """Should translate InvalidRequestError to StripeInvalidRequestError."""
        mock_stripe_payment_intent.retrieve.side_effect = invalid_request_error()

        with pytest.raises(StripeInvalidRequestError) as exc_info:
            StripeAdapter.retrieve_payment_intent("pi_missing")

        assert exc_info.value.stripe_code == "resource_missing"
        assert exc_info.value.is_retryable is False

    def test_invalid_account_error(self, mock_stripe_transfer, invalid_request_error):
        """Errors mentioning the account map to StripeInvalidAccountError."""
        mock_stripe_transfer.create.side_effect = invalid_request_error(
            message="No such destination account: 'acct_gone'",
            param="destination",
            code="resource_missing",
        )

        with pytest.raises(StripeInvalidAccountError):
            StripeAdapter.create_transfer(
                amount_cents=9000,
                currency="usd",
                destination_account="acct_gone",
                idempotency_key="test-key",
            )

    def test_rate_limit_error(self, mock_stripe_payment_intent):
        mock_stripe_payment_intent.create.side_effect = stripe.RateLimitError(
            message="Too many requests hit the API too quickly."
        )

        with pytest.raises(StripeRateLimitError) as exc_info:
            _create_intent()

        assert exc_info.value.is_retryable is True

    def test_api_connection_error(self, mock_stripe_payment_intent):
        mock_stripe_payment_intent.create.side_effect = stripe.APIConnectionError(
            message="Could not connect to Stripe."
        )

        with pytest.raises(StripeAPIUnavailableError) as exc_info:
            _create_intent()

        assert exc_info.value.stripe_code == "api_connection_error"
        assert exc_info.value.is_retryable is True

    def test_timeout_error(self, mock_stripe_payment_intent):
        """Connection errors mentioning a timeout map to StripeTimeoutError."""
        mock_stripe_payment_intent.create.side_effect = stripe.APIConnectionError(
            message="Request timed out after 10 seconds."
        )

        with pytest.raises(StripeTimeoutError):
            _create_intent()

    def test_api_error(self, mock_stripe_payment_intent):
        mock_stripe_payment_intent.create.side_effect = stripe.APIError(
            message="Something went wrong on Stripe's end."
        )

        with pytest.raises(StripeAPIUnavailableError) as exc_info:
            _create_intent()

        assert exc_info.value.stripe_code == "api_error"

    def test_authentication_error(self, mock_stripe_payment_intent):
        """Bad API keys are permanent failures."""
        mock_stripe_payment_intent.create.side_effect = stripe.AuthenticationError(
            message="Invalid API Key provided."
        )

        with pytest.raises(StripeInvalidRequestError) as exc_info:
            _create_intent()

        assert exc_info.value.stripe_code == "authentication_error"

    def test_unknown_error(self, mock_stripe_payment_intent):
        """Unexpected exceptions are treated as transient."""
        mock_stripe_payment_intent.create.side_effect = RuntimeError("boom")

        with pytest.raises(StripeAPIUnavailableError) as exc_info:
            _create_intent()

        assert exc_info.value.stripe_code == "unknown_error"
        assert isinstance(exc_info.value.__cause__, RuntimeError)


# =============================================================================
# PaymentIntent Operation Tests
# =============================================================================


class TestStripeAdapterPaymentIntents:
    """Tests for PaymentIntent create/retrieve/update/capture."""

    def test_create_payment_intent_success(
        self, mock_stripe_payment_intent, mock_payment_intent
    ):
        mock_stripe_payment_intent.create.return_value = mock_payment_intent(
            id="pi_new", amount=100000, capture_method="manual"
        )

        result = StripeAdapter.create_payment_intent(
            amount_cents=100000,
            currency="USD",
            idempotency_key="create-key",
            metadata={"userId": 42, "securityDeposit": "200.00", "ownerId": None},
            capture_method="manual",
        )

        assert isinstance(result, PaymentIntentResult)
        assert result.id == "pi_new"
        assert result.amount_cents == 100000
        assert result.capture_method == "manual"
        assert result.client_secret == "pi_test123456_secret_abc123"

        call_kwargs = mock_stripe_payment_intent.create.call_args.kwargs
        assert call_kwargs["amount"] == 100000
        assert call_kwargs["currency"] == "usd"
        assert call_kwargs["capture_method"] == "manual"
        assert call_kwargs["idempotency_key"] == "create-key"
        assert call_kwargs["automatic_payment_methods"] == {"enabled": True}
        # Metadata values are strings and unset keys are dropped
        assert call_kwargs["metadata"] == {"userId": "42", "securityDeposit": "200.00"}

    def test_retrieve_payment_intent(self, mock_stripe_payment_intent, mock_payment_intent):
        mock_stripe_payment_intent.retrieve.return_value = mock_payment_intent(
            status="requires_capture", amount=100000
        )

        result = StripeAdapter.retrieve_payment_intent("pi_test123456")

        mock_stripe_payment_intent.retrieve.assert_called_once_with("pi_test123456")
        assert result.status == "requires_capture"

    def test_update_payment_intent(self, mock_stripe_payment_intent):
        StripeAdapter.update_payment_intent(
            "pi_test123456", {"metadata": {"rentalId": 7}, "description": "Drill"}
        )

        mock_stripe_payment_intent.modify.assert_called_once_with(
            "pi_test123456", metadata={"rentalId": "7"}, description="Drill"
        )

    def test_capture_partial_amount(self, mock_stripe_payment_intent, mock_payment_intent):
        """Capturing less than authorized sends amount_to_capture."""
        mock_stripe_payment_intent.capture.return_value = mock_payment_intent(
            status="succeeded", amount=100000, amount_received=80000
        )

        result = StripeAdapter.capture_payment_intent(
            "pi_test123456",
            idempotency_key="capture-key",
            amount_to_capture=80000,
        )

        mock_stripe_payment_intent.capture.assert_called_once_with(
            "pi_test123456",
            idempotency_key="capture-key",
            amount_to_capture=80000,
        )
        assert result.amount_received == 80000

    def test_capture_full_amount_omits_amount(self, mock_stripe_payment_intent):
        StripeAdapter.capture_payment_intent("pi_test123456", idempotency_key="k")

        mock_stripe_payment_intent.capture.assert_called_once_with(
            "pi_test123456", idempotency_key="k"
        )


# =============================================================================
# Refund, Transfer and Connect Tests
# =============================================================================


class TestStripeAdapterMoneyMovement:
    """Tests for refunds, transfers and Connect accounts."""

    def test_create_full_refund(self, mock_stripe_refund):
        result = StripeAdapter.create_refund("pi_test123456", idempotency_key="refund-key")

        assert isinstance(result, RefundResult)
        assert result.payment_intent_id == "pi_test123456"
        call_kwargs = mock_stripe_refund.create.call_args.kwargs
        assert "amount" not in call_kwargs
        assert "reason" not in call_kwargs

    def test_create_partial_refund_with_reason(self, mock_stripe_refund):
        StripeAdapter.create_refund(
            "pi_test123456",
            idempotency_key="refund-key",
            amount_cents=20000,
            reason="requested_by_customer",
            metadata={"type": "security_deposit"},
        )

        call_kwargs = mock_stripe_refund.create.call_args.kwargs
        assert call_kwargs["amount"] == 20000
        assert call_kwargs["reason"] == "requested_by_customer"
        assert call_kwargs["metadata"] == {"type": "security_deposit"}

    def test_create_transfer(self, mock_stripe_transfer, mock_transfer):
        mock_stripe_transfer.create.return_value = mock_transfer(transfer_group="rental-1")

        result = StripeAdapter.create_transfer(
            amount_cents=9000,
            currency="USD",
            destination_account="acct_dest123",
            idempotency_key="payout-key",
            transfer_group="rental-1",
        )

        assert isinstance(result, TransferResult)
        assert result.destination_account == "acct_dest123"
        call_kwargs = mock_stripe_transfer.create.call_args.kwargs
        assert call_kwargs["currency"] == "usd"
        assert call_kwargs["transfer_group"] == "rental-1"

    def test_create_connected_account(self, mock_stripe_account):
        account_api, _ = mock_stripe_account

        result = StripeAdapter.create_connected_account(
            email="owner@example.com", idempotency_key="acct-key"
        )

        assert result.id == "acct_new123"
        call_kwargs = account_api.create.call_args.kwargs
        assert call_kwargs["type"] == "express"
        assert call_kwargs["capabilities"]["transfers"] == {"requested": True}
        assert call_kwargs["idempotency_key"] == "acct-key"

    def test_create_account_link(self, mock_stripe_account):
        _, link_api = mock_stripe_account

        result = StripeAdapter.create_account_link(
            "acct_new123",
            refresh_url="https://app.example.com/refresh",
            return_url="https://app.example.com/return",
        )

        assert result.url.startswith("https://connect.stripe.com/")
        assert link_api.create.call_args.kwargs["type"] == "account_onboarding"


# =============================================================================
# Webhook Verification Tests
# =============================================================================


class TestStripeAdapterVerifyWebhookSignature:
    """Tests for StripeAdapter.verify_webhook_signature."""

    def test_verify_webhook_signature_success(self, mock_stripe_webhook):
        result = StripeAdapter.verify_webhook_signature(
            payload=b'{"id": "evt_test"}',
            signature="test_signature",
        )

        assert result["id"] == "evt_test123"
        assert result["type"] == "payment_intent.succeeded"

    def test_verify_webhook_signature_invalid(
        self, mock_stripe_webhook, signature_verification_error
    ):
        mock_stripe_webhook.construct_event.side_effect = signature_verification_error

        with pytest.raises(StripeInvalidRequestError) as exc_info:
            StripeAdapter.verify_webhook_signature(payload=b"tampered", signature="bad")

        assert exc_info.value.stripe_code == "signature_verification_failed"

    def test_verify_webhook_malformed_payload(self, mock_stripe_webhook):
        mock_stripe_webhook.construct_event.side_effect = ValueError("Invalid payload")

        with pytest.raises(StripeInvalidRequestError):
            StripeAdapter.verify_webhook_signature(payload=b"{", signature="sig")


# =============================================================================
# Configuration Tests
# =============================================================================


class TestStripeAdapterConfiguration:
    """Tests for Stripe adapter configuration."""

    @override_settings(STRIPE_SECRET_KEY="sk_test_custom")
    def test_uses_settings_api_key(self, mock_stripe_payment_intent):
        _create_intent()

        assert stripe.api_key == "sk_test_custom"

    @override_settings(STRIPE_API_TIMEOUT_SECONDS=30)
    def test_uses_settings_timeout(
        self, mock_stripe_payment_intent, mock_stripe_http_client
    ):
        _create_intent()

        mock_stripe_http_client.assert_called_with(timeout=30)
