"""
Order model - a paid poster order and its fulfillment lifecycle.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Integer, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from storefront.core.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


class OrderStatus(str, Enum):
    """Lifecycle states of an order."""

    PAID_MISSING_SHIPPING = "paid_missing_shipping"
    PAID_MISSING_SKU = "paid_missing_sku"
    PENDING_SUBMISSION = "pending_submission"
    SENT_TO_FULFILLMENT = "sent_to_fulfillment"
    FULFILLMENT_FAILED = "fulfillment_failed"
    IN_PRODUCTION = "in_production"
    SHIPPED = "shipped"

    @property
    def is_terminal(self) -> bool:
        return not ORDER_TRANSITIONS[self]

    def can_transition_to(self, target: "OrderStatus") -> bool:
        """True if moving from this state to `target` is a forward transition."""
        return target in ORDER_TRANSITIONS[self]


ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING_SUBMISSION: frozenset({
        OrderStatus.SENT_TO_FULFILLMENT,
        OrderStatus.FULFILLMENT_FAILED,
        OrderStatus.IN_PRODUCTION,
        OrderStatus.SHIPPED,
    }),
    OrderStatus.SENT_TO_FULFILLMENT: frozenset({
        OrderStatus.IN_PRODUCTION,
        OrderStatus.SHIPPED,
    }),
    OrderStatus.FULFILLMENT_FAILED: frozenset({
        OrderStatus.PENDING_SUBMISSION,
        OrderStatus.IN_PRODUCTION,
        OrderStatus.SHIPPED,
    }),
    OrderStatus.PAID_MISSING_SKU: frozenset({
        OrderStatus.PENDING_SUBMISSION,
        OrderStatus.IN_PRODUCTION,
        OrderStatus.SHIPPED,
    }),
    OrderStatus.PAID_MISSING_SHIPPING: frozenset({
        OrderStatus.IN_PRODUCTION,
        OrderStatus.SHIPPED,
    }),
    OrderStatus.IN_PRODUCTION: frozenset({OrderStatus.SHIPPED}),
    OrderStatus.SHIPPED: frozenset(),
}

# States an operator may push back through fulfillment submission
RESUBMITTABLE_STATUSES = frozenset({
    OrderStatus.PENDING_SUBMISSION,
    OrderStatus.FULFILLMENT_FAILED,
    OrderStatus.PAID_MISSING_SKU,
})


class Order(Base):
    """Poster order created from a confirmed payment session."""

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    # External references
    payment_session_id: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    fulfillment_order_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
    )
    merchant_reference: Mapped[Optional[str]] = mapped_column(String(255), index=True)

    # Customer
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    customer_name: Mapped[Optional[str]] = mapped_column(String(255))
    account_id: Mapped[Optional[str]] = mapped_column(String(255), index=True)

    # What was purchased
    catalog_item_id: Mapped[str] = mapped_column(String(255), nullable=False)
    catalog_item_title: Mapped[Optional[str]] = mapped_column(String(255))
    size: Mapped[str] = mapped_column(String(50), nullable=False)
    paper: Mapped[str] = mapped_column(String(50), nullable=False)
    layout_mode: Mapped[str] = mapped_column(String(20), default="STRICT")
    print_asset_url: Mapped[str] = mapped_column(Text, nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(100))
    shipping_address: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType)

    # Financial
    currency: Mapped[str] = mapped_column(String(3), default="usd")
    amount_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)

    # Lifecycle
    status: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    fulfillment_status: Mapped[Optional[str]] = mapped_column(String(255))
    fulfillment_error: Mapped[Optional[str]] = mapped_column(Text)
    submission_attempts: Mapped[int] = mapped_column(Integer, default=0)

    # Shipment
    tracking_number: Mapped[Optional[str]] = mapped_column(String(255))
    tracking_url: Mapped[Optional[str]] = mapped_column(Text)
    shipped_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    shipped_notification_sent_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    @property
    def order_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    def __repr__(self) -> str:
        return f"<Order {self.id} {self.status}>"
