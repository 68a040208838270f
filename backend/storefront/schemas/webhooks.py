"""
Webhook payload parsing and acknowledgment schemas.

Both providers send loosely-shaped JSON; these helpers turn it into the
lifecycle's event types.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, TypeAdapter, ValidationError as PydanticValidationError

from storefront.services.order_lifecycle import FulfillmentStatusChanged, PaymentConfirmed

ZERO_DECIMAL_CURRENCIES = frozenset({
    "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
    "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
})

_datetime_adapter = TypeAdapter(datetime)


class WebhookAck(BaseModel):
    """Minimal acknowledgment body."""

    received: bool = True


class FulfillmentWebhookAck(WebhookAck):
    matched: bool = False


def _dig(data: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _first(*values: Any) -> Any:
    for value in values:
        if value not in (None, "", {}):
            return value
    return None


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        text = str(value).strip()
        return text or None
    return str(value)


def minor_to_major(amount_minor: Any, currency: str) -> Decimal:
    """Stripe amounts are in the smallest currency unit."""
    amount = Decimal(str(amount_minor or 0))
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return amount
    return (amount / 100).quantize(Decimal("0.01"))


def _shipping_from_session(session: dict[str, Any]) -> tuple[Optional[str], Optional[dict[str, Any]]]:
    """Shipping name and address; Stripe places them differently per API version."""
    shipping = _first(
        session.get("shipping_details"),
        _dig(session, "collected_information", "shipping_details"),
        session.get("shipping"),
    ) or {}
    customer = session.get("customer_details") or {}

    name = _first(shipping.get("name"), customer.get("name"))
    address = _first(shipping.get("address"), customer.get("address"))
    return name, address


def payment_confirmed_from_session(session: dict[str, Any]) -> PaymentConfirmed:
    """Build a PaymentConfirmed event from a retrieved checkout session."""
    metadata = session.get("metadata") or {}
    customer = session.get("customer_details") or {}
    currency = (session.get("currency") or "usd").lower()
    name, address = _shipping_from_session(session)

    return PaymentConfirmed(
        session_id=session["id"],
        catalog_item_id=_first(metadata.get("poster_id"), metadata.get("posterId")),
        catalog_item_title=metadata.get("poster_title"),
        size=metadata.get("size"),
        paper=metadata.get("paper"),
        layout_mode=metadata.get("mode"),
        print_asset_url=metadata.get("print_url"),
        account_id=_first(metadata.get("account_id"), metadata.get("clerk_user_id")),
        customer_email=_first(customer.get("email"), session.get("customer_email")),
        customer_name=name,
        shipping_address=dict(address) if address else None,
        amount_total=minor_to_major(session.get("amount_total"), currency),
        currency=currency,
    )


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    try:
        return _datetime_adapter.validate_python(value)
    except PydanticValidationError:
        return None


def parse_fulfillment_payload(payload: dict[str, Any]) -> FulfillmentStatusChanged:
    """
    Extract identifiers, status and tracking from a Prodigi callback.

    Accepts the CloudEvent shape (`data.order`), a bare `order` object,
    and flat legacy fields.
    """
    order = _first(_dig(payload, "data", "order"), payload.get("order")) or {}
    if not isinstance(order, dict):
        order = {}

    status = _first(order.get("status"), payload.get("status"), payload.get("orderStatus"))
    if isinstance(status, dict):
        status = _first(status.get("stage"), status.get("status"))

    shipments = order.get("shipments") or payload.get("shipments")
    if isinstance(shipments, list) and shipments:
        shipment = shipments[0]
    else:
        shipment = payload.get("shipment")
    if not isinstance(shipment, dict):
        shipment = {}

    tracking_number = _first(
        payload.get("tracking_number"),
        payload.get("trackingNumber"),
        _dig(payload, "tracking", "number"),
        _dig(shipment, "tracking", "number"),
        shipment.get("trackingNumber"),
    )
    tracking_url = _first(
        payload.get("tracking_url"),
        payload.get("trackingUrl"),
        _dig(payload, "tracking", "url"),
        _dig(shipment, "tracking", "url"),
        shipment.get("trackingUrl"),
    )
    shipped_at = _first(
        order.get("shippedAt"),
        payload.get("shippedAt"),
        shipment.get("shippedAt"),
        shipment.get("dispatchDate"),
    )

    return FulfillmentStatusChanged(
        fulfillment_order_id=_as_text(
            # a top-level id on an event envelope is the event id, not the order id
            _first(order.get("id"), payload.get("orderId"), None if order else payload.get("id"))
        ),
        merchant_reference=_as_text(
            _first(
                order.get("merchantReference"),
                payload.get("merchantReference"),
                payload.get("merchant_reference"),
            )
        ),
        raw_status=_as_text(status),
        tracking_number=_as_text(tracking_number),
        tracking_url=_as_text(tracking_url),
        shipped_at=_parse_timestamp(shipped_at),
        raw=payload,
    )
