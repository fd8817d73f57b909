"""
Abstract models shared by the rental and payment apps.

- BaseModel: created_at/updated_at timestamps, newest first
- UUIDModel: BaseModel with a UUID primary key

Rental, Payment and WebhookEvent ids travel to Stripe (metadata, transfer
groups) and back in webhooks, so those models use UUIDModel. Rows that never
leave the database (Notification) use BaseModel with an integer key.

Usage:
    from core.models import UUIDModel

    class Rental(UUIDModel):
        total_amount = models.DecimalField(max_digits=10, decimal_places=2)
"""

from __future__ import annotations

import uuid

from django.db import models


class BaseModel(models.Model):
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="When this record was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When this record was last modified",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(id={self.pk})"


class UUIDModel(BaseModel):
    """BaseModel keyed by a random UUID4."""

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier (UUID4)",
    )

    class Meta(BaseModel.Meta):
        abstract = True
