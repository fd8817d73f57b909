"""
Shared base for payment services that talk to Stripe.
"""

from __future__ import annotations

from core.services import BaseService

from payments.adapters import StripeAdapter


class GatewayService(BaseService):
    """
    BaseService with an injectable Stripe adapter.

    ``set_stripe_adapter`` on a concrete service replaces the adapter for
    that service only; calling it on GatewayService replaces it for every
    service that has not set its own.
    """

    _stripe_adapter: type | None = None

    @classmethod
    def get_stripe_adapter(cls) -> type:
        """Get the Stripe adapter class."""
        return cls._stripe_adapter or StripeAdapter

    @classmethod
    def set_stripe_adapter(cls, adapter: type | None) -> None:
        """Set the Stripe adapter class (for testing)."""
        cls._stripe_adapter = adapter
