"""
Fulfillment Service Abstract Base Class

Defines the interface contract for forwarding completed orders to the
pizza factory. Both MockFulfillmentService and FactoryFulfillmentService
implement it, so the route layer behaves identically with either.

Design Pattern: Strategy Pattern
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from pizza_service.schemas import OrderOut, UserOut


@dataclass
class FulfillmentResult:
    """
    Standardized result from the factory.
    
    Attributes:
        success: Whether the factory accepted the order
        report_url: Link to the factory's report for this order
        jwt: Factory-signed proof of the order
        status_code: HTTP status returned by the factory, if any
        error_message: Error description when the order was rejected
        response_time_ms: Time taken by the round trip
    """
    success: bool
    report_url: Optional[str] = None
    jwt: Optional[str] = None
    status_code: Optional[int] = None
    error_message: Optional[str] = None
    response_time_ms: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "report_url": self.report_url,
            "jwt": self.jwt,
            "status_code": self.status_code,
            "error_message": self.error_message,
            "response_time_ms": self.response_time_ms,
        }


class BaseFulfillmentService(ABC):
    """Abstract base class for order fulfillment clients."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the fulfillment provider (e.g. "mock", "factory")."""
        pass

    @abstractmethod
    async def fulfill_order(self, diner: UserOut, order: OrderOut) -> FulfillmentResult:
        """
        Forward a recorded order for preparation.
        
        Args:
            diner: The diner who placed the order
            order: The order as stored, including its generated id
            
        Returns:
            FulfillmentResult: success is False for any non-2xx response
            or transport failure
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Verify connectivity to the fulfillment service."""
        pass

    @staticmethod
    def build_payload(diner: UserOut, order: OrderOut) -> dict:
        """Wire body sent to the factory: ``{diner, order}``."""
        return {
            "diner": {"id": diner.id, "name": diner.name, "email": diner.email},
            "order": order.model_dump(by_alias=True, mode="json"),
        }
