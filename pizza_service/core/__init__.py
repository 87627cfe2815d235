"""
Core module initialization.
Exports configuration and error types.
"""

from pizza_service.core.config import get_settings, Settings, EnvironmentMode
from pizza_service.core.errors import (
    PizzaServiceError,
    BadRequestError,
    ConflictError,
    UnauthenticatedError,
    ForbiddenError,
    NotFoundError,
    InternalError,
    FulfillmentError,
)

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "PizzaServiceError",
    "BadRequestError",
    "ConflictError",
    "UnauthenticatedError",
    "ForbiddenError",
    "NotFoundError",
    "InternalError",
    "FulfillmentError",
]
