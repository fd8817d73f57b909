"""
URL configuration for the payments app.

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.
"""

from django.urls import path

from payments import views
from payments.webhooks.views import stripe_webhook

app_name = "payments"

urlpatterns = [
    path("intents/", views.CreatePaymentIntentView.as_view(), name="create_intent"),
    path(
        "intents/<str:intent_id>/refund/",
        views.RefundPaymentView.as_view(),
        name="refund_payment",
    ),
    path(
        "intents/<str:intent_id>/refund-deposit/",
        views.RefundSecurityDepositView.as_view(),
        name="refund_deposit",
    ),
    path(
        "rentals/<str:rental_id>/payout/",
        views.OwnerPayoutView.as_view(),
        name="owner_payout",
    ),
    path("connect/account/", views.ConnectAccountView.as_view(), name="connect_account"),
    path(
        "connect/account-link/",
        views.AccountLinkView.as_view(),
        name="connect_account_link",
    ),
    # Webhook endpoints
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
]
