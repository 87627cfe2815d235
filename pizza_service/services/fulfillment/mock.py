"""
Mock Fulfillment Service Implementation

Simulates the pizza factory without making network calls.
Used in development mode (ENV_MODE=development).

Behavior:
    - Optional simulated latency
    - Fails a configurable share of orders
    - Generates factory-like report URLs and order JWTs
"""

import asyncio
import logging
import random
import uuid

from pizza_service.schemas import OrderOut, UserOut
from pizza_service.services.fulfillment.base import (
    BaseFulfillmentService,
    FulfillmentResult,
)

logger = logging.getLogger(__name__)


class MockFulfillmentService(BaseFulfillmentService):
    """
    Mock implementation of the fulfillment client.
    
    Attributes:
        failure_rate: Probability of a simulated factory rejection (0.0-1.0)
        latency: Simulated round trip in seconds
        submitted: Payloads received, oldest first
    """

    def __init__(self, failure_rate: float = 0.0, latency: float = 0.0):
        self.failure_rate = failure_rate
        self.latency = latency
        self.submitted: list[dict] = []

        logger.info(
            f"MockFulfillmentService initialized "
            f"(failure_rate={failure_rate:.0%}, latency={latency}s)"
        )

    @property
    def provider_name(self) -> str:
        return "mock"

    async def fulfill_order(self, diner: UserOut, order: OrderOut) -> FulfillmentResult:
        if self.latency:
            await asyncio.sleep(self.latency)

        self.submitted.append(self.build_payload(diner, order))
        report_url = f"https://pizza-factory.mock/report/{uuid.uuid4().hex[:12]}"

        if random.random() < self.failure_rate:
            logger.warning(f"Mock: order #{order.id} rejected")
            return FulfillmentResult(
                success=False,
                report_url=report_url,
                status_code=500,
                error_message="Simulated factory outage",
            )

        logger.debug(f"Mock: order #{order.id} fulfilled")
        return FulfillmentResult(
            success=True,
            report_url=report_url,
            jwt=f"mock.{uuid.uuid4().hex}.jwt",
            status_code=200,
            response_time_ms=self.latency * 1000,
        )

    async def health_check(self) -> bool:
        return True
