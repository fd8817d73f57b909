from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    """In-app notices emitted by payment lifecycle events."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "notifications"
    verbose_name = "Payment Notifications"
