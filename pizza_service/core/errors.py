"""
Service error taxonomy.

Every failure the data-access layer or the route layer can surface to a
client is one of these. The FastAPI exception handler in ``main`` turns
them into ``{"message": ...}`` JSON bodies with the matching status code.
"""

from typing import Optional


class PizzaServiceError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"message": self.message}


class UnauthenticatedError(PizzaServiceError):
    """Missing, revoked or unverifiable credentials."""
    status_code = 401

    def __init__(self, message: str = "unauthorized"):
        super().__init__(message)


class ForbiddenError(PizzaServiceError):
    """Authenticated, but the caller's roles do not cover the action."""
    status_code = 403


class NotFoundError(PizzaServiceError):
    """A referenced user, menu item or franchise does not exist."""
    status_code = 404


class InternalError(PizzaServiceError):
    status_code = 500


class FulfillmentError(PizzaServiceError):
    """The pizza factory rejected or could not be reached for an order."""
    status_code = 500

    def __init__(
        self,
        message: str = "Failed to fulfill order at factory",
        report_url: Optional[str] = None,
    ):
        super().__init__(message)
        self.report_url = report_url

    def to_dict(self) -> dict:
        return {"message": self.message, "followLinkToEndChaos": self.report_url}


class BadRequestError(PizzaServiceError):
    """Malformed or incomplete request body."""
    status_code = 400


class ConflictError(PizzaServiceError):
    """Write rejected by a uniqueness constraint."""
    status_code = 409
