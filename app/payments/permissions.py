"""
Permission classes for the payments API.

- IsStaffOrEquipmentOwner: staff, or the owner of the equipment behind a
  Payment's rental (security-deposit refunds)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import permissions

from rentals.models import Rental

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView

    from payments.models import Payment


class IsStaffOrEquipmentOwner(permissions.BasePermission):
    """
    Object-level check against a Payment.

    Payments still pointing at a temp_ rental have no owner yet, so only
    staff may act on them.
    """

    message = "Only staff or the equipment owner can refund this deposit."

    def has_permission(self, request: Request, view: APIView) -> bool:
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request: Request, view: APIView, obj: Payment) -> bool:
        if request.user.is_staff:
            return True
        if not obj.has_real_rental:
            return False

        try:
            return Rental.objects.filter(
                pk=obj.rental_id, equipment__owner=request.user
            ).exists()
        except (DjangoValidationError, ValueError):
            return False
