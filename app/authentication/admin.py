from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from authentication.models import User


class PayoutAccountFilter(admin.SimpleListFilter):
    title = "payout account"
    parameter_name = "connected"

    def lookups(self, request, model_admin):
        return (("yes", "Connected"), ("no", "Not connected"))

    def queryset(self, request, queryset):
        connected = User.objects.with_connected_account().values("pk")
        if self.value() == "yes":
            return queryset.filter(pk__in=connected)
        if self.value() == "no":
            return queryset.exclude(pk__in=connected)
        return queryset


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Renters, owners and operators; owners carry a Connect account id."""

    list_display = ("email", "full_name", "connected_account_id", "is_staff", "date_joined")
    list_filter = (PayoutAccountFilter, "is_staff", "is_active")
    search_fields = ("email", "full_name", "connected_account_id")
    ordering = ("-date_joined",)
    readonly_fields = ("date_joined", "updated_at", "last_login")

    fieldsets = (
        (None, {"fields": ("email", "password", "full_name")}),
        ("Payouts", {"fields": ("connected_account_id",)}),
        ("Access", {"fields": ("is_active", "is_staff", "is_superuser")}),
        ("Dates", {"fields": ("date_joined", "updated_at", "last_login")}),
    )
    add_fieldsets = (
        (None, {"classes": ("wide",), "fields": ("email", "full_name", "password1", "password2")}),
    )
