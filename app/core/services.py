"""
Service layer base classes.

Services are classes of classmethods holding the business rules; views,
webhook handlers and Celery tasks call them. Two ways of reporting trouble:

- raise a BaseApplicationError subclass when the caller should stop
  (unknown payment, failed precondition, gateway failure)
- return a ServiceResult when the caller routes on the outcome, as webhook
  dispatch does to decide between processed and failed

Usage:
    from core.services import BaseService, ServiceResult

    class RefundEngine(BaseService):
        @classmethod
        def refund_payment(cls, intent_id: str) -> RefundOutcome:
            with cls.atomic():
                ...
            cls.get_logger().info("Refund issued", extra={"intent_id": intent_id})
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator

    from core.exceptions import BaseApplicationError

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Outcome of an operation whose caller branches on success.

    Usage:
        result = dispatch_webhook(webhook_event)
        if result.success:
            webhook_event.mark_processed()
        else:
            webhook_event.mark_failed(result.error)
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> ServiceResult[T]:
        return cls(success=False, error=error, error_code=error_code, details=details or {})

    @classmethod
    def from_exception(cls, exc: BaseApplicationError) -> ServiceResult[T]:
        """Carry a domain error's message, code and details as a failure."""
        return cls.failure(exc.message, error_code=exc.error_code, details=exc.details)

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for services.

    Services hold no instance state. Collaborators such as the gateway
    adapter are set at class level so tests can substitute them.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Wrap row locks and state changes in one transaction.

        Example:
            with cls.atomic():
                payment = Payment.objects.select_for_update().get(...)
                payment.save()
        """
        with transaction.atomic():
            yield
