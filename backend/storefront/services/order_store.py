"""
Order store - durable order table access, one committed transaction per call.

The lifecycle relies on each call being its own commit: the order row is
durable before any external provider is contacted.
"""
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.core.database import session_scope
from storefront.core.exceptions import StorageError
from storefront.core.logging import get_logger
from storefront.models.order import Order, OrderStatus
from storefront.repositories.order import FulfillmentPatch, OrderRepository

logger = get_logger(__name__)


@dataclass
class InsertResult:
    created: bool
    order: Order


class OrderStore:
    """Transactional facade over OrderRepository."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    @asynccontextmanager
    async def _repository(self) -> AsyncGenerator[OrderRepository, None]:
        try:
            async with session_scope(self.session_factory) as session:
                yield OrderRepository(session)
        except SQLAlchemyError as e:
            logger.error("Order store failure", error=str(e))
            raise StorageError(f"Order store failure: {e}") from e

    async def find_by_id(self, order_id: str) -> Optional[Order]:
        async with self._repository() as repo:
            return await repo.get_by_id(order_id)

    async def find_by_payment_session_id(self, session_id: str) -> Optional[Order]:
        async with self._repository() as repo:
            return await repo.get_by_payment_session_id(session_id)

    async def find_by_fulfillment_order_id(self, fulfillment_order_id: str) -> Optional[Order]:
        async with self._repository() as repo:
            return await repo.get_by_fulfillment_order_id(fulfillment_order_id)

    async def insert_if_absent(self, values: dict[str, Any]) -> InsertResult:
        async with self._repository() as repo:
            order, created = await repo.insert_if_absent(values)
        return InsertResult(created=created, order=order)

    async def apply_fulfillment_update(
        self,
        order_id: str,
        patch: FulfillmentPatch,
    ) -> Optional[Order]:
        async with self._repository() as repo:
            order = await repo.get_for_update(order_id)
            if order is None:
                return None
            return await repo.apply_fulfillment_update(order, patch)

    async def record_submission_outcome(
        self,
        order_id: str,
        status: OrderStatus,
        *,
        fulfillment_order_id: Optional[str] = None,
        error: Optional[str] = None,
    ) -> Order:
        async with self._repository() as repo:
            order = await repo.get_for_update(order_id)
            if order is None:
                raise StorageError(f"Order {order_id} vanished during submission", order_id=order_id)
            return await repo.record_submission_outcome(
                order,
                status,
                fulfillment_order_id=fulfillment_order_id,
                error=error,
            )

    async def claim_for_submission(
        self,
        order_id: str,
        *,
        expected_attempts: int,
        sku: Optional[str] = None,
    ) -> Optional[Order]:
        async with self._repository() as repo:
            return await repo.claim_for_submission(
                order_id,
                expected_attempts=expected_attempts,
                sku=sku,
            )

    async def mark_shipped_notification_sent(self, order_id: str, sent_at: datetime) -> Optional[Order]:
        async with self._repository() as repo:
            return await repo.mark_shipped_notification_sent(order_id, sent_at)
