"""
Pizza Factory Fulfillment Implementation

Production implementation that POSTs orders to the pizza factory over
HTTP using httpx. Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - FACTORY_URL points at the factory
    - FACTORY_API_KEY is sent as a bearer token
"""

import logging
from datetime import datetime
from typing import Optional

import httpx

from pizza_service.core.config import get_settings
from pizza_service.schemas import OrderOut, UserOut
from pizza_service.services.fulfillment.base import (
    BaseFulfillmentService,
    FulfillmentResult,
)

logger = logging.getLogger(__name__)


class FactoryFulfillmentService(BaseFulfillmentService):
    """
    Forwards orders to ``{factory_url}/api/order``.
    
    The factory answers with ``{reportUrl, jwt}``. Any non-2xx status is
    reported as a failed fulfillment, with the report URL when present.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()

        self._base_url = (base_url or settings.factory_url).rstrip("/")
        self._api_key = api_key if api_key is not None else settings.factory_api_key
        self._timeout = timeout or settings.factory_timeout_seconds
        self._transport = transport

        if not self._api_key:
            logger.warning("FACTORY_API_KEY not configured; factory may reject orders")

        logger.info(f"FactoryFulfillmentService initialized ({self._base_url})")

    @property
    def provider_name(self) -> str:
        return "factory"

    def _client(self) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def fulfill_order(self, diner: UserOut, order: OrderOut) -> FulfillmentResult:
        start_time = datetime.now()

        try:
            async with self._client() as client:
                response = await client.post("/api/order", json=self.build_payload(diner, order))
        except httpx.HTTPError as e:
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"Factory: order #{order.id} could not be sent - {e}")
            return FulfillmentResult(
                success=False,
                error_message=str(e),
                response_time_ms=elapsed_ms,
            )

        elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.is_success:
            logger.info(f"Factory: order #{order.id} accepted ({elapsed_ms:.0f}ms)")
            return FulfillmentResult(
                success=True,
                report_url=body.get("reportUrl"),
                jwt=body.get("jwt"),
                status_code=response.status_code,
                response_time_ms=elapsed_ms,
            )

        logger.warning(f"Factory: order #{order.id} rejected with HTTP {response.status_code}")
        return FulfillmentResult(
            success=False,
            report_url=body.get("reportUrl"),
            status_code=response.status_code,
            error_message=body.get("message"),
            response_time_ms=elapsed_ms,
        )

    async def health_check(self) -> bool:
        try:
            async with self._client() as client:
                response = await client.get("/")
            return response.status_code < 500
        except httpx.HTTPError as e:
            logger.error(f"Factory health check failed: {e}")
            return False
