"""
Rate limiting backed by the Django cache.

This module provides:
- RateLimiter: fixed-window counter with ``check_and_consume(identifier)``
- rate_limit: decorator for DRF view methods returning HTTP 429 when exceeded

The cache is Redis (django-redis) in deployed environments and local memory
in tests, so counters are shared across processes wherever it matters.

Usage:
    from core.decorators import RateLimiter, rate_limit

    limiter = RateLimiter("payment_intent", limit=10, period=10)
    if limiter.check_and_consume(f"user:{user_id}"):
        raise RateLimitExceeded(...)

    class PayoutView(APIView):
        @rate_limit(key="payout", limit=5, period=60)
        def post(self, request):
            ...
"""

from __future__ import annotations

import functools
import logging
from typing import Callable

from django.core.cache import cache
from rest_framework import status
from rest_framework.response import Response

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Fixed-window rate limiter.

    Each identifier gets a counter that expires ``period`` seconds after the
    first hit in the window. ``cache.add`` seeds the window atomically and
    ``cache.incr`` consumes from it.

    Attributes:
        key: Namespace for this limit (e.g. "payment_intent")
        limit: Maximum number of calls per window
        period: Window length in seconds
    """

    def __init__(self, key: str, limit: int, period: int) -> None:
        self.key = key
        self.limit = limit
        self.period = period

    def cache_key(self, identifier: str) -> str:
        return f"rate_limit:{self.key}:{identifier}"

    def check_and_consume(self, identifier: str) -> bool:
        """
        Consume one unit for ``identifier``.

        Returns:
            True if the limit is exceeded (the call must be rejected),
            False if the call is allowed.
        """
        cache_key = self.cache_key(identifier)

        if cache.add(cache_key, 1, timeout=self.period):
            return False

        try:
            current = cache.incr(cache_key)
        except ValueError:
            # Window expired between add() and incr()
            cache.set(cache_key, 1, timeout=self.period)
            return False

        if current > self.limit:
            logger.warning(
                "Rate limit exceeded",
                extra={
                    "rate_limit_key": self.key,
                    "identifier": identifier,
                    "limit": self.limit,
                    "period": self.period,
                },
            )
            return True
        return False

    def reset(self, identifier: str) -> None:
        cache.delete(self.cache_key(identifier))


def rate_limit(key: str, limit: int, period: int):
    """
    Rate limit decorator for DRF view methods.

    Uses the authenticated user's ID, falling back to the client address.

    Args:
        key: Unique key prefix for this rate limit
        limit: Maximum number of requests
        period: Time period in seconds

    HTTP 429 Response:
        Returned when the limit is exceeded.
    """
    limiter = RateLimiter(key, limit, period)

    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(view, request, *args, **kwargs):
            if getattr(request, "user", None) and request.user.is_authenticated:
                identifier = f"user:{request.user.pk}"
            else:
                identifier = f"ip:{request.META.get('REMOTE_ADDR', 'unknown')}"

            if limiter.check_and_consume(identifier):
                return Response(
                    {
                        "error": "Too many requests, please try again later",
                        "error_code": "RATE_LIMIT_EXCEEDED",
                    },
                    status=status.HTTP_429_TOO_MANY_REQUESTS,
                )
            return func(view, request, *args, **kwargs)

        return wrapper

    return decorator
