"""
Core views providing infrastructure endpoints and API error translation.

This module contains:
- health_check: liveness/readiness endpoint for load balancers
- api_exception_handler: DRF hook turning domain errors into JSON responses
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.db import connection
from django.http import JsonResponse
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific class first; the first isinstance match wins.
ERROR_STATUS_CODES: list[tuple[type[BaseApplicationError], int]] = [
    (RateLimitError, status.HTTP_429_TOO_MANY_REQUESTS),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
]


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    Returns:
        JsonResponse with status and component health:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "disconnected"
        - cache: "connected" or "disconnected"
        - gateway: "configured" or "unconfigured"

    HTTP Status Codes:
        200: Database reachable
        503: Database unreachable
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
        "gateway": "configured" if settings.STRIPE_SECRET_KEY else "unconfigured",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        logger.exception("Health check database check failed")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    # Cache backs the rate limiter; degraded but not unhealthy without it
    try:
        from django.core.cache import cache

        cache.set("health_check", "ok", timeout=1)
        if cache.get("health_check") == "ok":
            health_status["cache"] = "connected"
        else:
            health_status["cache"] = "disconnected"
    except Exception:
        logger.warning("Health check cache check failed", exc_info=True)
        health_status["cache"] = "disconnected"

    status_code = 200 if is_healthy else 503
    return JsonResponse(health_status, status=status_code)


def api_exception_handler(exc, context):
    """
    DRF exception handler that understands BaseApplicationError.

    Domain errors are rendered with ``to_dict()`` and an HTTP status chosen by
    error class. Gateway failures (no matching class) map to 502. Everything
    else falls through to DRF's default handler.
    """
    if not isinstance(exc, BaseApplicationError):
        return exception_handler(exc, context)

    status_code = status.HTTP_502_BAD_GATEWAY
    for error_class, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_class):
            status_code = code
            break

    logger.info(
        "Domain error returned to client",
        extra={
            "error_code": exc.error_code,
            "status_code": status_code,
            "view": context.get("view").__class__.__name__,
        },
    )
    return Response(exc.to_dict(), status=status_code)
