"""
Pydantic schemas package.
"""
from storefront.schemas.checkout import CheckoutResponse, PosterCheckoutRequest
from storefront.schemas.order import OrderResponse
from storefront.schemas.webhooks import (
    FulfillmentWebhookAck,
    WebhookAck,
    parse_fulfillment_payload,
    payment_confirmed_from_session,
)

__all__ = [
    # Checkout
    "PosterCheckoutRequest",
    "CheckoutResponse",
    # Order
    "OrderResponse",
    # Webhooks
    "WebhookAck",
    "FulfillmentWebhookAck",
    "parse_fulfillment_payload",
    "payment_confirmed_from_session",
]
