"""
Order repository for data access operations.

Every mutation that guards an invariant (one row per payment session,
first-write-wins notification flag, single submission claim) is a single
conditional statement so concurrent deliveries resolve in the database.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from storefront.core.exceptions import StorageError
from storefront.core.logging import get_logger
from storefront.models.order import RESUBMITTABLE_STATUSES, Order, OrderStatus
from storefront.repositories.base import BaseRepository

logger = get_logger(__name__)

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


@dataclass
class FulfillmentPatch:
    """Coalescing update from a fulfillment event. None means "leave as is"."""

    fulfillment_status: Optional[str] = None
    fulfillment_order_id: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    shipped_at: Optional[datetime] = None
    status: Optional[OrderStatus] = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def apply_status(order: Order, target: OrderStatus) -> bool:
    """
    Move `order` to `target` if the transition table allows it.
    Returns True when the status changed.
    """
    current = order.order_status
    if current == target:
        return False
    if not current.can_transition_to(target):
        logger.info(
            "Ignoring disallowed status transition",
            order_id=order.id,
            current=current.value,
            requested=target.value,
        )
        return False
    order.status = target.value
    return True


class OrderRepository(BaseRepository[Order]):
    """Repository for Order model operations."""

    model = Order

    async def get_by_payment_session_id(self, session_id: str) -> Optional[Order]:
        stmt = select(Order).where(Order.payment_session_id == session_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_fulfillment_order_id(self, fulfillment_order_id: str) -> Optional[Order]:
        stmt = select(Order).where(Order.fulfillment_order_id == fulfillment_order_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def insert_if_absent(self, values: dict[str, Any]) -> tuple[Order, bool]:
        """
        Insert an order unless one already exists for its payment session.
        Returns (order, created) where `order` is whichever row won.
        """
        dialect = self.session.bind.dialect.name
        insert_fn = _UPSERT_INSERTS.get(dialect)
        if insert_fn is None:
            raise StorageError(f"Unsupported database dialect: {dialect}")

        row = {"id": str(uuid4()), "created_at": _now(), "updated_at": _now(), **values}
        stmt = (
            insert_fn(Order)
            .values(**row)
            .on_conflict_do_nothing(index_elements=["payment_session_id"])
        )
        result = await self.session.execute(stmt)
        created = result.rowcount == 1

        order = await self.get_by_payment_session_id(values["payment_session_id"])
        if order is None:
            raise StorageError("Order missing after insert")
        return order, created

    async def apply_fulfillment_update(
        self,
        order: Order,
        patch: FulfillmentPatch,
    ) -> Order:
        """Apply a coalescing patch to a row-locked order."""
        if patch.fulfillment_status is not None:
            order.fulfillment_status = patch.fulfillment_status
        if patch.tracking_number is not None:
            order.tracking_number = patch.tracking_number
        if patch.tracking_url is not None:
            order.tracking_url = patch.tracking_url
        if patch.shipped_at is not None:
            order.shipped_at = patch.shipped_at
        # Set once: a provider id is never replaced
        if patch.fulfillment_order_id is not None and order.fulfillment_order_id is None:
            order.fulfillment_order_id = patch.fulfillment_order_id
        if patch.status is not None:
            apply_status(order, patch.status)

        order.updated_at = _now()
        await self.session.flush()
        return order

    async def record_submission_outcome(
        self,
        order: Order,
        status: OrderStatus,
        *,
        fulfillment_order_id: Optional[str] = None,
        error: Optional[str] = None,
    ) -> Order:
        """Store the result of a fulfillment submission attempt."""
        if fulfillment_order_id and order.fulfillment_order_id is None:
            order.fulfillment_order_id = fulfillment_order_id
        order.fulfillment_error = error
        apply_status(order, status)
        order.updated_at = _now()
        await self.session.flush()
        return order

    async def claim_for_submission(
        self,
        order_id: str,
        *,
        expected_attempts: int,
        sku: Optional[str] = None,
    ) -> Optional[Order]:
        """
        Atomically move an eligible order to pending_submission.

        The attempt counter acts as a version number: of two concurrent
        claims observing the same count, only one matches.
        """
        values: dict[str, Any] = {
            "status": OrderStatus.PENDING_SUBMISSION.value,
            "submission_attempts": Order.submission_attempts + 1,
            "fulfillment_error": None,
            "updated_at": _now(),
        }
        if sku:
            values["sku"] = sku

        stmt = (
            update(Order)
            .where(
                Order.id == order_id,
                Order.status.in_([s.value for s in RESUBMITTABLE_STATUSES]),
                Order.fulfillment_order_id.is_(None),
                Order.submission_attempts == expected_attempts,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            return None
        return await self.get_by_id(order_id, refresh=True)

    async def mark_shipped_notification_sent(
        self,
        order_id: str,
        sent_at: datetime,
    ) -> Optional[Order]:
        """
        Set the shipped-notification flag if unset.

        Returns the refreshed order only for the caller that set it, None otherwise.
        """
        stmt = (
            update(Order)
            .where(
                Order.id == order_id,
                Order.shipped_notification_sent_at.is_(None),
            )
            .values(shipped_notification_sent_at=sent_at, updated_at=_now())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            return None
        return await self.get_by_id(order_id, refresh=True)
