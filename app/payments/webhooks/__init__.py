"""
Stripe webhook ingress.

Events are verified and stored by ``stripe_webhook``, then dispatched to
the handler registry from a Celery task.
"""

from payments.webhooks.handlers import WEBHOOK_HANDLERS, dispatch_webhook, register_handler
from payments.webhooks.views import stripe_webhook

__all__ = [
    "WEBHOOK_HANDLERS",
    "dispatch_webhook",
    "register_handler",
    "stripe_webhook",
]
