"""
Payments app for rental payments through Stripe.

This app handles:
- PaymentIntent creation, with the security deposit held by manual capture
- Success, failure, block and scheduled-retry handling
- Full and security-deposit refunds
- Owner payouts through Stripe Connect
- Webhook ingestion and processing

Related apps:
    - rentals: Rental status is projected from the Payment status
    - notifications: Payer and owner notifications
    - authentication: Payers and owners (connected accounts)

Usage:
    from payments.services import PaymentEventHandler, PaymentIntentManager

    created = PaymentIntentManager.create_payment_intent(1000, "usd", {"userId": "1"})
    PaymentEventHandler.handle_payment_success(created.intent.id)
"""
