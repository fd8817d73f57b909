"""
Payment services.

- StateTransitionEngine: single writer of Payment status and its Rental projection
- PaymentIntentManager: creates/updates PaymentIntents and Payment rows
- PaymentEventHandler: success/failure/block handlers and scheduled retries
- RefundEngine: full and security-deposit refunds
- PayoutEngine: connected accounts and owner payouts

Every service that calls Stripe accepts a substitute adapter through
``set_stripe_adapter``.
"""

from payments.services.base import GatewayService
from payments.services.payment_handlers import HandlerOutcome, PaymentEventHandler
from payments.services.payment_intent_service import (
    CreatedPaymentIntent,
    PaymentIntentManager,
)
from payments.services.payout_service import (
    ConnectAccountOutcome,
    PayoutEngine,
    PayoutOutcome,
    calculate_platform_fee,
)
from payments.services.refund_service import RefundEngine, RefundOutcome
from payments.services.state_transition import (
    RENTAL_STATUS_BY_PAYMENT_STATUS,
    StateTransitionEngine,
    rental_status_for,
)

__all__ = [
    "ConnectAccountOutcome",
    "CreatedPaymentIntent",
    "GatewayService",
    "HandlerOutcome",
    "PaymentEventHandler",
    "PaymentIntentManager",
    "PayoutEngine",
    "PayoutOutcome",
    "RENTAL_STATUS_BY_PAYMENT_STATUS",
    "RefundEngine",
    "RefundOutcome",
    "StateTransitionEngine",
    "calculate_platform_fee",
    "rental_status_for",
]
