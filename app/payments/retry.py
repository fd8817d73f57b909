"""
Transient retry for single gateway calls.

GatewayResult tags the outcome of one call as SUCCESS, TRANSIENT or
PERMANENT, and RetryCoordinator decides whether to try again purely from
that tag.

This is a request-scoped resilience primitive. It is unrelated to
``PaymentEventHandler.schedule_retry``, which records a durable intent to
re-run a failed payment later (see ``payments.tasks.process_scheduled_retries``).

Usage:
    from payments.retry import RetryCoordinator

    intent = RetryCoordinator.with_retry(
        lambda: adapter.retrieve_payment_intent(intent_id),
    )
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, TypeVar

from django.conf import settings

from payments.exceptions import GatewayPermanentError, GatewayTransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GatewayOutcome(Enum):
    SUCCESS = "success"
    TRANSIENT = "transient"
    PERMANENT = "permanent"


@dataclass
class GatewayResult(Generic[T]):
    """
    Tagged outcome of one gateway call.

    Exactly one of ``value`` (SUCCESS) or ``error`` (TRANSIENT/PERMANENT)
    is set.
    """

    outcome: GatewayOutcome
    value: T | None = None
    error: Exception | None = None

    @classmethod
    def from_call(cls, operation: Callable[[], T]) -> GatewayResult[T]:
        """
        Run ``operation`` and classify what happened.

        Adapter errors marked retryable are TRANSIENT. Everything else that
        raises, including unexpected exceptions, is PERMANENT.
        """
        try:
            return cls(outcome=GatewayOutcome.SUCCESS, value=operation())
        except GatewayTransientError as e:
            return cls(outcome=GatewayOutcome.TRANSIENT, error=e)
        except GatewayPermanentError as e:
            return cls(outcome=GatewayOutcome.PERMANENT, error=e)
        except Exception as e:
            outcome = (
                GatewayOutcome.TRANSIENT
                if getattr(e, "is_retryable", False)
                else GatewayOutcome.PERMANENT
            )
            return cls(outcome=outcome, error=e)

    @property
    def is_success(self) -> bool:
        return self.outcome is GatewayOutcome.SUCCESS

    def unwrap(self) -> T:
        """Return the value, or raise the captured error unchanged."""
        if self.error is not None:
            raise self.error
        return self.value


class RetryCoordinator:
    """
    Bounded exponential-backoff retry around one gateway call.

    Attempt ``n`` (0-indexed) that ends TRANSIENT is followed by a sleep of
    ``initial_delay * 2**n`` seconds. With the defaults that is at most
    1 + 2 + 4 = 7 seconds across 4 calls. No lock is held while sleeping.
    """

    @classmethod
    def with_retry(
        cls,
        operation: Callable[[], T],
        max_retries: int | None = None,
        initial_delay: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> T:
        """
        Call ``operation`` until it succeeds, fails permanently, or the
        retries are exhausted.

        Args:
            operation: Zero-argument callable making a single gateway call
            max_retries: Additional attempts after the first
                (default: STRIPE_MAX_RETRIES)
            initial_delay: Seconds before the first retry
                (default: STRIPE_RETRY_INITIAL_DELAY)
            sleep: Sleep function, replaced in tests

        Returns:
            The operation's return value

        Raises:
            The last error, unchanged.
        """
        if max_retries is None:
            max_retries = settings.STRIPE_MAX_RETRIES
        if initial_delay is None:
            initial_delay = settings.STRIPE_RETRY_INITIAL_DELAY

        attempt = 0
        while True:
            result = GatewayResult.from_call(operation)

            if result.outcome is GatewayOutcome.SUCCESS:
                return result.value

            if result.outcome is GatewayOutcome.PERMANENT or attempt >= max_retries:
                if result.outcome is GatewayOutcome.TRANSIENT:
                    logger.error(
                        "Gateway retries exhausted",
                        extra={
                            "attempts": attempt + 1,
                            "error_type": type(result.error).__name__,
                        },
                    )
                return result.unwrap()

            delay = initial_delay * (2**attempt)
            logger.warning(
                "Transient gateway error, retrying",
                extra={
                    "attempt": attempt + 1,
                    "max_retries": max_retries,
                    "delay_seconds": delay,
                    "error_type": type(result.error).__name__,
                },
            )
            sleep(delay)
            attempt += 1
