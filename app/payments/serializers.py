"""
DRF serializers for the payments API.

Request serializers validate input only; the services do the work.
PaymentSerializer renders a Payment for responses.

Usage:
    serializer = CreatePaymentIntentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    created = PaymentIntentManager.create_payment_intent(**...)
"""

from __future__ import annotations

from rest_framework import serializers

from payments.models import Payment


class PaymentSerializer(serializers.ModelSerializer):
    """Payment as returned by the API."""

    class Meta:
        model = Payment
        fields = [
            "id",
            "stripe_payment_intent_id",
            "rental_id",
            "amount",
            "currency",
            "security_deposit_amount",
            "rental_amount",
            "status",
            "security_deposit_returned",
            "owner_paid_out",
            "retry_count",
            "next_retry_at",
            "paid_at",
            "failed_at",
            "refunded_at",
            "created_at",
        ]
        read_only_fields = fields


class CreatePaymentIntentSerializer(serializers.Serializer):
    """
    Fields:
        amount: Amount in minor units (cents)
        currency: ISO 4217 code
        rental_id: Rental being paid for (optional, placeholder otherwise)
        security_deposit: Deposit in major units held with manual capture
        rental_amount: Rental fee in major units captured at success
        equipment_id/equipment_title/owner_id/start_date/end_date:
            Context copied into the intent metadata
    """

    amount = serializers.IntegerField(min_value=1)
    currency = serializers.CharField(min_length=3, max_length=3, default="usd")
    rental_id = serializers.CharField(max_length=64, required=False, allow_blank=True)
    security_deposit = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=0, required=False
    )
    rental_amount = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=0, required=False
    )
    equipment_id = serializers.CharField(max_length=64, required=False)
    equipment_title = serializers.CharField(max_length=200, required=False)
    owner_id = serializers.CharField(max_length=64, required=False)
    start_date = serializers.DateTimeField(required=False)
    end_date = serializers.DateTimeField(required=False)

    METADATA_KEYS = {
        "rental_id": "rentalId",
        "security_deposit": "securityDeposit",
        "rental_amount": "rentalAmount",
        "equipment_id": "equipmentId",
        "equipment_title": "equipmentTitle",
        "owner_id": "ownerId",
        "start_date": "startDate",
        "end_date": "endDate",
    }

    def validate(self, attrs):
        start, end = attrs.get("start_date"), attrs.get("end_date")
        if start and end and end <= start:
            raise serializers.ValidationError({"end_date": "Must be after start_date."})
        return attrs

    def to_metadata(self, user_id) -> dict[str, str]:
        """Intent metadata in the camelCase shape the services expect."""
        metadata = {"userId": str(user_id)}
        for field_name, key in self.METADATA_KEYS.items():
            value = self.validated_data.get(field_name)
            if value in (None, ""):
                continue
            metadata[key] = value.isoformat() if hasattr(value, "isoformat") else str(value)
        return metadata


class RefundSerializer(serializers.Serializer):
    """Optional partial amount in minor units; omitted means full refund."""

    amount = serializers.IntegerField(min_value=1, required=False)


class ConnectAccountSerializer(serializers.Serializer):
    country = serializers.CharField(min_length=2, max_length=2, default="US")


class AccountLinkSerializer(serializers.Serializer):
    refresh_url = serializers.URLField()
    return_url = serializers.URLField()
