"""
Payment adapters for external services.

All Stripe calls go through StripeAdapter for consistent timeouts, error
translation, idempotency and logging.
"""

from payments.adapters.stripe_adapter import (
    AccountLinkResult,
    ConnectedAccountResult,
    IdempotencyKeyGenerator,
    PaymentIntentResult,
    RefundResult,
    StripeAdapter,
    TransferResult,
)

__all__ = [
    "AccountLinkResult",
    "ConnectedAccountResult",
    "IdempotencyKeyGenerator",
    "PaymentIntentResult",
    "RefundResult",
    "StripeAdapter",
    "TransferResult",
]
