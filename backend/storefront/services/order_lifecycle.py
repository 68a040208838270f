"""
Order lifecycle - drives an order from confirmed payment to shipment.

Two independent webhook sources feed this service, each with at-least-once
delivery. All coordination state lives in the order store:

- payment confirmation inserts the order row (one per payment session)
  and commits it before the print provider is contacted; the submission
  outcome is a second, separate commit;
- fulfillment events are coalescing patches that can only move the status
  forward through the transition table;
- the shipped email is gated on the store's first-write-wins flag.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Protocol

from storefront.core.exceptions import GatewayError, NotFoundError, ValidationError
from storefront.core.logging import get_logger
from storefront.models.order import RESUBMITTABLE_STATUSES, Order, OrderStatus
from storefront.repositories.order import FulfillmentPatch
from storefront.services.catalog import CatalogItem, normalize_mode
from storefront.services.notification_service import TrackingInfo
from storefront.services.order_store import OrderStore
from storefront.services.prodigi_client import PrintItem, Recipient, SubmissionResult

logger = get_logger(__name__)

REQUIRED_ADDRESS_FIELDS = ("line1", "city", "postal_code", "country")
SHIPPED_VOCABULARY = ("ship", "dispatch")


class FulfillmentGateway(Protocol):
    def resolve_sku(self, paper: Optional[str], size: Optional[str]) -> Optional[str]: ...

    async def submit(
        self,
        merchant_reference: str,
        recipient: Recipient,
        items: list[PrintItem],
    ) -> SubmissionResult: ...


class Notifier(Protocol):
    async def notify_shipped(self, order: Order, tracking: TrackingInfo) -> bool: ...

    async def notify_order_received(self, order: Order) -> bool: ...


class CatalogReader(Protocol):
    def find_by_id(self, item_id: str) -> Optional[CatalogItem]: ...


@dataclass
class PaymentConfirmed:
    """A paid checkout session, as reported by the payment provider."""

    session_id: str
    catalog_item_id: Optional[str]
    size: Optional[str]
    paper: Optional[str]
    layout_mode: Optional[str] = None
    catalog_item_title: Optional[str] = None
    print_asset_url: Optional[str] = None
    account_id: Optional[str] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    shipping_address: Optional[dict[str, Any]] = None
    amount_total: Decimal = Decimal("0")
    currency: str = "usd"


@dataclass
class FulfillmentStatusChanged:
    """A status callback from the print provider."""

    fulfillment_order_id: Optional[str] = None
    merchant_reference: Optional[str] = None
    raw_status: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    shipped_at: Optional[datetime] = None
    raw: dict[str, Any] = field(default_factory=dict)


def has_complete_address(address: Optional[dict[str, Any]]) -> bool:
    if not address:
        return False
    return all(address.get(key) for key in REQUIRED_ADDRESS_FIELDS)


def classify_fulfillment_status(raw_status: Optional[str]) -> Optional[OrderStatus]:
    """Shipped-like text maps to SHIPPED, any other status to IN_PRODUCTION."""
    if raw_status is None:
        return None
    lowered = raw_status.lower()
    if any(word in lowered for word in SHIPPED_VOCABULARY):
        return OrderStatus.SHIPPED
    return OrderStatus.IN_PRODUCTION


class KeyResolutionStrategy(Protocol):
    name: str

    async def resolve(self, store: OrderStore, event: FulfillmentStatusChanged) -> Optional[Order]: ...


class ByFulfillmentOrderId:
    name = "fulfillment_order_id"

    async def resolve(self, store: OrderStore, event: FulfillmentStatusChanged) -> Optional[Order]:
        if not event.fulfillment_order_id:
            return None
        return await store.find_by_fulfillment_order_id(event.fulfillment_order_id)


class BySessionMerchantReference:
    """Merchant reference of the form `<prefix><payment session id>`."""

    name = "merchant_reference_session"

    def __init__(self, prefix: str) -> None:
        self.prefix = prefix

    async def resolve(self, store: OrderStore, event: FulfillmentStatusChanged) -> Optional[Order]:
        reference = event.merchant_reference
        if not reference or not reference.startswith(self.prefix) or len(reference) == len(self.prefix):
            return None
        return await store.find_by_payment_session_id(reference[len(self.prefix):])


class ByOrderIdMerchantReference:
    """Merchant reference carrying the internal order id."""

    name = "merchant_reference_order_id"

    async def resolve(self, store: OrderStore, event: FulfillmentStatusChanged) -> Optional[Order]:
        if not event.merchant_reference:
            return None
        return await store.find_by_id(event.merchant_reference)


class OrderLifecycle:
    """The order state machine and its two event entry points."""

    def __init__(
        self,
        store: OrderStore,
        fulfillment: FulfillmentGateway,
        notifier: Notifier,
        catalog: CatalogReader,
        *,
        site_url: str,
        merchant_reference_prefix: str = "ps_",
    ) -> None:
        self.store = store
        self.fulfillment = fulfillment
        self.notifier = notifier
        self.catalog = catalog
        self.site_url = site_url
        self.merchant_reference_prefix = merchant_reference_prefix
        # Tried in order; first match wins
        self.key_strategies: list[KeyResolutionStrategy] = [
            ByFulfillmentOrderId(),
            BySessionMerchantReference(merchant_reference_prefix),
            ByOrderIdMerchantReference(),
        ]

    def merchant_reference_for(self, session_id: str) -> str:
        return f"{self.merchant_reference_prefix}{session_id}"

    async def on_payment_confirmed(self, event: PaymentConfirmed) -> Order:
        """
        Record a paid order and hand it to the print provider.

        Re-delivery of the same session returns the stored order untouched.

        Raises:
            ValidationError: purchase details are incomplete
            NotFoundError: the purchased catalog item does not exist
            GatewayError: the print provider refused or was unreachable
                (the order is kept with status fulfillment_failed)
        """
        existing = await self.store.find_by_payment_session_id(event.session_id)
        if existing is not None:
            logger.info(
                "Payment already recorded",
                session_id=event.session_id,
                order_id=existing.id,
                status=existing.status,
            )
            return existing

        values = self._order_values(event)

        if not has_complete_address(event.shipping_address):
            values["status"] = OrderStatus.PAID_MISSING_SHIPPING.value
        else:
            sku = self.fulfillment.resolve_sku(values["paper"], values["size"])
            if sku is None:
                values["status"] = OrderStatus.PAID_MISSING_SKU.value
            else:
                values["sku"] = sku
                values["status"] = OrderStatus.PENDING_SUBMISSION.value
                values["submission_attempts"] = 1

        result = await self.store.insert_if_absent(values)
        order = result.order
        if not result.created:
            logger.info(
                "Concurrent delivery lost insert race",
                session_id=event.session_id,
                order_id=order.id,
            )
            return order

        logger.info(
            "Order created",
            order_id=order.id,
            session_id=event.session_id,
            status=order.status,
        )

        if order.order_status != OrderStatus.PENDING_SUBMISSION:
            return order

        return await self._submit(order)

    async def on_fulfillment_event(self, event: FulfillmentStatusChanged) -> Optional[Order]:
        """
        Apply a provider status callback. Unknown orders are ignored.
        """
        order = await self.resolve_target(event)
        if order is None:
            logger.warning(
                "Fulfillment event for unknown order",
                fulfillment_order_id=event.fulfillment_order_id,
                merchant_reference=event.merchant_reference,
            )
            return None

        classification = classify_fulfillment_status(event.raw_status)
        patch = FulfillmentPatch(
            fulfillment_status=event.raw_status,
            fulfillment_order_id=event.fulfillment_order_id,
            tracking_number=event.tracking_number,
            tracking_url=event.tracking_url,
            shipped_at=event.shipped_at,
            status=classification,
        )
        updated = await self.store.apply_fulfillment_update(order.id, patch)
        if updated is None:
            return None

        logger.info(
            "Fulfillment event applied",
            order_id=updated.id,
            fulfillment_status=event.raw_status,
            status=updated.status,
        )

        tracking = TrackingInfo(number=updated.tracking_number, url=updated.tracking_url)
        if classification == OrderStatus.SHIPPED and tracking.present:
            updated = await self._send_shipped_notification(updated, tracking)

        return updated

    async def resolve_target(self, event: FulfillmentStatusChanged) -> Optional[Order]:
        for strategy in self.key_strategies:
            order = await strategy.resolve(self.store, event)
            if order is not None:
                logger.debug("Fulfillment event matched", strategy=strategy.name, order_id=order.id)
                return order
        return None

    async def resubmit(self, order_id: str) -> Order:
        """
        Push a stalled or failed order through fulfillment submission again.

        Raises:
            NotFoundError: no such order
            ValidationError: the order is not in a resubmittable state
            GatewayError: the print provider refused or was unreachable
        """
        order = await self.store.find_by_id(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found", order_id=order_id)

        if order.order_status not in RESUBMITTABLE_STATUSES or order.fulfillment_order_id:
            raise ValidationError(
                f"Order in status {order.status} cannot be resubmitted",
                order_id=order_id,
            )
        if not has_complete_address(order.shipping_address):
            raise ValidationError("Order has no complete shipping address", order_id=order_id)

        sku = order.sku or self.fulfillment.resolve_sku(order.paper, order.size)
        if not sku:
            raise ValidationError(
                f"No SKU mapping for paper={order.paper}, size={order.size}",
                order_id=order_id,
            )

        claimed = await self.store.claim_for_submission(
            order.id,
            expected_attempts=order.submission_attempts,
            sku=sku,
        )
        if claimed is None:
            raise ValidationError("Order was claimed by another submission", order_id=order_id)

        logger.info("Resubmitting order", order_id=order.id, attempt=claimed.submission_attempts)
        return await self._submit(claimed)

    async def _submit(self, order: Order) -> Order:
        recipient = Recipient.from_address(
            order.shipping_address or {},
            name=order.customer_name,
            email=order.customer_email,
        )
        items = [PrintItem(sku=order.sku, asset_url=order.print_asset_url)]

        try:
            submission = await self.fulfillment.submit(order.merchant_reference, recipient, items)
        except GatewayError as e:
            logger.error(
                "Fulfillment submission failed",
                order_id=order.id,
                error_type=type(e).__name__,
                error=str(e),
            )
            await self.store.record_submission_outcome(
                order.id,
                OrderStatus.FULFILLMENT_FAILED,
                error=str(e),
            )
            raise

        order = await self.store.record_submission_outcome(
            order.id,
            OrderStatus.SENT_TO_FULFILLMENT,
            fulfillment_order_id=submission.provider_order_id,
        )
        logger.info(
            "Order sent to fulfillment",
            order_id=order.id,
            fulfillment_order_id=order.fulfillment_order_id,
        )

        try:
            await self.notifier.notify_order_received(order)
        except Exception:
            logger.exception("Order received email failed", order_id=order.id)

        return order

    async def _send_shipped_notification(self, order: Order, tracking: TrackingInfo) -> Order:
        """Send the shipped email at most once; returns the order as stored after the gate."""
        marked = await self.store.mark_shipped_notification_sent(order.id, datetime.now(timezone.utc))
        if marked is None:
            logger.info("Shipped notification already sent", order_id=order.id)
            return await self.store.find_by_id(order.id) or order

        try:
            await self.notifier.notify_shipped(marked, tracking)
        except Exception:
            logger.exception("Shipped notification failed", order_id=marked.id)
        return marked

    def _order_values(self, event: PaymentConfirmed) -> dict[str, Any]:
        """Validate purchase details and build the initial order row."""
        missing = [
            name
            for name, value in (
                ("catalog_item_id", event.catalog_item_id),
                ("size", event.size),
                ("paper", event.paper),
            )
            if not value
        ]
        if missing:
            raise ValidationError(
                f"Payment session {event.session_id} missing metadata: {', '.join(missing)}",
            )

        size = event.size.lower()
        paper = event.paper.lower()
        mode = normalize_mode(event.layout_mode)

        item = self.catalog.find_by_id(event.catalog_item_id)
        print_asset_url = event.print_asset_url
        if not print_asset_url:
            if item is None:
                raise NotFoundError(f"Catalog item not found: {event.catalog_item_id}")
            print_asset_url = item.print_asset_url(self.site_url, size, mode)

        address = dict(event.shipping_address) if event.shipping_address else None

        return {
            "payment_session_id": event.session_id,
            "merchant_reference": self.merchant_reference_for(event.session_id),
            "customer_email": event.customer_email,
            "customer_name": event.customer_name,
            "account_id": event.account_id,
            "catalog_item_id": event.catalog_item_id,
            "catalog_item_title": event.catalog_item_title or (item.title if item else event.catalog_item_id),
            "size": size,
            "paper": paper,
            "layout_mode": mode,
            "print_asset_url": print_asset_url,
            "shipping_address": address,
            "currency": (event.currency or "usd").lower(),
            "amount_total": event.amount_total,
            "submission_attempts": 0,
        }
