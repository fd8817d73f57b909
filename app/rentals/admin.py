"""
Django admin configuration for rental models.
"""

from django.contrib import admin

from rentals.models import Equipment, Rental


@admin.register(Equipment)
class EquipmentAdmin(admin.ModelAdmin):
    list_display = ("title", "owner", "daily_rate", "created_at")
    search_fields = ("title", "owner__email")
    raw_id_fields = ("owner",)


@admin.register(Rental)
class RentalAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "equipment",
        "renter",
        "total_amount",
        "status",
        "payout_status",
        "payout_amount",
        "created_at",
    )
    list_filter = ("status", "payout_status")
    search_fields = ("id", "renter__email", "equipment__title")
    raw_id_fields = ("equipment", "renter")
    readonly_fields = (
        "payout_status",
        "payout_amount",
        "payout_date",
        "payout_transfer_id",
        "security_deposit_returned",
        "security_deposit_return_date",
    )
