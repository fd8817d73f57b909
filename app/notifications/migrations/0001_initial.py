import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Notification",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                ("title", models.CharField(help_text="Notification headline", max_length=255)),
                (
                    "message",
                    models.TextField(blank=True, default="", help_text="Notification body"),
                ),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("PAYMENT", "Payment"),
                            ("BOOKING", "Booking"),
                            ("REFUND", "Refund"),
                            ("PAYOUT", "Payout"),
                            ("SYSTEM", "System"),
                        ],
                        db_index=True,
                        default="SYSTEM",
                        help_text="Notification category",
                        max_length=20,
                    ),
                ),
                (
                    "read",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the recipient has read this notification",
                    ),
                ),
                (
                    "idempotency_key",
                    models.CharField(
                        blank=True,
                        help_text="Prevents duplicate notifications for the same event",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="User receiving this notification",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["user", "read"], name="notification_user_read_idx"
                    )
                ],
            },
        ),
    ]
