"""
DRF views for the payments app.

Endpoints (prefixed with /api/v1/payments/):
    POST intents/                              - Create a payment intent
    POST intents/<intent_id>/refund/           - Refund a payment (staff, rate limited)
    POST intents/<intent_id>/refund-deposit/   - Refund the security deposit (staff or
                                                 equipment owner, rate limited)
    POST rentals/<rental_id>/payout/           - Pay the owner (staff, rate limited)
    POST connect/account/                      - Create/get the caller's connected account
    POST connect/account-link/                 - Onboarding link for the caller's account
    POST webhooks/stripe/                      - Stripe webhook (see payments.webhooks)

Domain errors raised by the services are rendered by
core.views.api_exception_handler.
"""

from __future__ import annotations

from django.conf import settings
from rest_framework import status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.decorators import rate_limit

from payments.exceptions import PaymentValidationError
from payments.permissions import IsStaffOrEquipmentOwner
from payments.serializers import (
    AccountLinkSerializer,
    ConnectAccountSerializer,
    CreatePaymentIntentSerializer,
    PaymentSerializer,
    RefundSerializer,
)
from payments.services import (
    PaymentIntentManager,
    PayoutEngine,
    RefundEngine,
)
from payments.services.payment_handlers import get_payment_by_intent


class CreatePaymentIntentView(APIView):
    """
    Create a PaymentIntent for the authenticated payer.

    POST /api/v1/payments/intents/

    Request body:
        {"amount": 1000, "currency": "usd", "rental_id": "...",
         "security_deposit": "200.00", "rental_amount": "800.00"}

    Returns (201):
        {"client_secret": "...", "payment": {...}}
    """

    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = CreatePaymentIntentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        created = PaymentIntentManager.create_payment_intent(
            amount_minor=serializer.validated_data["amount"],
            currency=serializer.validated_data["currency"],
            metadata=serializer.to_metadata(request.user.pk),
        )
        return Response(
            {
                "client_secret": created.intent.client_secret,
                "payment": PaymentSerializer(created.payment).data,
            },
            status=status.HTTP_201_CREATED,
        )


class RefundPaymentView(APIView):
    """
    POST /api/v1/payments/intents/<intent_id>/refund/

    Request body:
        {"amount": 500}  # optional, minor units
    """

    permission_classes = [IsAdminUser]

    @rate_limit(
        key="refund",
        limit=settings.REFUND_RATE_LIMIT,
        period=settings.REFUND_RATE_PERIOD,
    )
    def post(self, request, intent_id: str):
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        outcome = RefundEngine.refund_payment(
            intent_id, amount_minor=serializer.validated_data.get("amount")
        )
        return Response(
            {"refund_id": outcome.refund.id, "payment": PaymentSerializer(outcome.payment).data}
        )


class RefundSecurityDepositView(APIView):
    """
    POST /api/v1/payments/intents/<intent_id>/refund-deposit/

    Staff, or the owner of the rented equipment, may return the deposit
    once the rental is COMPLETED. Shares the "refund" rate limit.

    Request body:
        {"amount": 20000}  # optional, minor units
    """

    permission_classes = [IsStaffOrEquipmentOwner]

    @rate_limit(
        key="refund",
        limit=settings.REFUND_RATE_LIMIT,
        period=settings.REFUND_RATE_PERIOD,
    )
    def post(self, request, intent_id: str):
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.check_object_permissions(request, get_payment_by_intent(intent_id))

        outcome = RefundEngine.refund_security_deposit(
            intent_id, amount_minor=serializer.validated_data.get("amount")
        )
        return Response(
            {"refund_id": outcome.refund.id, "payment": PaymentSerializer(outcome.payment).data}
        )


class OwnerPayoutView(APIView):
    """
    POST /api/v1/payments/rentals/<rental_id>/payout/

    Returns:
        {"transfer_id": "tr_...", "payout_amount": "90.00", "platform_fee": "10.00"}
    """

    permission_classes = [IsAdminUser]

    @rate_limit(
        key="payout",
        limit=settings.PAYOUT_RATE_LIMIT,
        period=settings.PAYOUT_RATE_PERIOD,
    )
    def post(self, request, rental_id: str):
        outcome = PayoutEngine.process_owner_payout(rental_id)
        return Response(
            {
                "rental_id": str(outcome.rental.id),
                "transfer_id": outcome.transfer.id,
                "payout_amount": str(outcome.rental.payout_amount),
                "platform_fee": str(outcome.platform_fee),
            }
        )


class ConnectAccountView(APIView):
    """
    POST /api/v1/payments/connect/account/

    Returns:
        {"account_id": "acct_...", "is_new": true}  (201 when created)
    """

    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = ConnectAccountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        outcome = PayoutEngine.create_connect_account(
            request.user.pk,
            request.user.email,
            serializer.validated_data["country"].upper(),
        )
        return Response(
            {"account_id": outcome.account_id, "is_new": outcome.is_new},
            status=status.HTTP_201_CREATED if outcome.is_new else status.HTTP_200_OK,
        )


class AccountLinkView(APIView):
    """
    POST /api/v1/payments/connect/account-link/

    Request body:
        {"refresh_url": "https://...", "return_url": "https://..."}
    """

    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = AccountLinkSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        account_id = request.user.connected_account_id
        if not account_id:
            raise PaymentValidationError(
                "Create a connected account first",
                error_code="NO_CONNECTED_ACCOUNT",
            )

        link = PayoutEngine.create_account_link(
            account_id,
            refresh_url=serializer.validated_data["refresh_url"],
            return_url=serializer.validated_data["return_url"],
        )
        return Response({"url": link.url, "expires_at": link.expires_at})
