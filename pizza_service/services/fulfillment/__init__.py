"""
Fulfillment Service Factory

Provides a single entry point for obtaining the fulfillment client.

Environment Switching:
    - ENV_MODE=development → MockFulfillmentService (no network calls)
    - ENV_MODE=staging/production → FactoryFulfillmentService
"""

import logging
from functools import lru_cache

from pizza_service.core.config import get_settings
from pizza_service.services.fulfillment.base import (
    BaseFulfillmentService,
    FulfillmentResult,
)
from pizza_service.services.fulfillment.factory import FactoryFulfillmentService
from pizza_service.services.fulfillment.mock import MockFulfillmentService

logger = logging.getLogger(__name__)


@lru_cache()
def get_fulfillment_service() -> BaseFulfillmentService:
    """
    Get the configured fulfillment service instance.
    
    The instance is cached so every request shares one client configuration.
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Fulfillment Service: Using MockFulfillmentService (development mode)")
        return MockFulfillmentService()

    logger.info(
        f"Fulfillment Service: Using FactoryFulfillmentService "
        f"({settings.env_mode.value} mode)"
    )
    return FactoryFulfillmentService()


def reset_fulfillment_service() -> None:
    """Clear the cached instance so the next call re-reads configuration."""
    get_fulfillment_service.cache_clear()
    logger.debug("Fulfillment service cache cleared")


__all__ = [
    "get_fulfillment_service",
    "reset_fulfillment_service",
    "BaseFulfillmentService",
    "FulfillmentResult",
    "MockFulfillmentService",
    "FactoryFulfillmentService",
]
