"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the domain apps (rentals, payments,
notifications). Business logic does not belong here.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)
    - UUIDModel: BaseModel with a UUID primary key

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError: Input validation failures
    - NotFoundError: Resource not found
    - ConflictError: State conflicts (stale or out-of-order updates)
    - RateLimitError: Rate limit exceeded

Decorators (import from core.decorators):
    - RateLimiter: Cache-backed fixed-window limiter
    - rate_limit: Rate limiting decorator for DRF views

Views (import from core.views):
    - health_check: Liveness/readiness endpoint
    - api_exception_handler: DRF exception handler for domain errors

Note:
    Django models are NOT imported here to avoid
    AppRegistryNotReady errors. Import them directly from their modules.
"""

# Services (no Django model dependencies)
from .services import BaseService, ServiceResult

# Exceptions (no Django dependencies)
from .exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)

# Decorators (no Django model dependencies)
from .decorators import RateLimiter, rate_limit

__all__ = [
    # Services
    "BaseService",
    "ServiceResult",
    # Exceptions
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "RateLimitError",
    # Decorators
    "RateLimiter",
    "rate_limit",
]
