from django.apps import AppConfig


class AuthenticationConfig(AppConfig):
    """Email-keyed users, including rental owners with Connect accounts."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "authentication"
    verbose_name = "Users & Owners"
