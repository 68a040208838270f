"""
Error taxonomy shared by services and routers.

Each error carries the HTTP status it maps to when it escapes a route.
"""
from typing import Optional


class StorefrontError(Exception):
    """Base class for all expected application errors."""

    status_code: int = 500

    def __init__(self, message: str, *, order_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.order_id = order_id


class ValidationError(StorefrontError):
    """Required data is missing or malformed. Not retryable."""

    status_code = 422


class SignatureError(StorefrontError):
    """Webhook authentication failed."""

    status_code = 400


class NotFoundError(StorefrontError):
    """A referenced order or catalog item does not exist."""

    status_code = 404


class GatewayError(StorefrontError):
    """An external provider call failed."""

    status_code = 502


class GatewayRejected(GatewayError):
    """The provider refused the request on business-rule grounds."""

    status_code = 502


class GatewayUnavailable(GatewayError):
    """The provider could not be reached, timed out, or failed internally."""

    status_code = 503


class FulfillmentRejected(GatewayRejected):
    """The print provider rejected the order (address, SKU, asset...)."""


class FulfillmentUnavailable(GatewayUnavailable):
    """The print provider could not be reached."""


class StorageError(StorefrontError):
    """The order store failed."""

    status_code = 500
