"""
Operator endpoints for inspecting and recovering orders.
"""
import hmac
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from storefront.core.exceptions import NotFoundError
from storefront.core.logging import get_logger
from storefront.dependencies import ServicesDep
from storefront.schemas.order import OrderResponse

logger = get_logger(__name__)


async def require_admin_key(
    services: ServicesDep,
    x_admin_key: Annotated[Optional[str], Header()] = None,
) -> None:
    """Dependency guarding operator routes with the shared admin key."""
    expected = services.settings.admin_api_key
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API not configured",
        )
    if not x_admin_key or not hmac.compare_digest(x_admin_key, expected):
        logger.warning("Admin key rejected")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid admin key")


router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_key)],
)


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, services: ServicesDep) -> OrderResponse:
    """Get an order and its fulfillment state."""
    order = await services.order_store.find_by_id(order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", order_id=order_id)
    return OrderResponse.model_validate(order)


@router.post("/orders/{order_id}/resubmit", response_model=OrderResponse)
async def resubmit_order(order_id: str, services: ServicesDep) -> OrderResponse:
    """
    Retry fulfillment submission for an order stuck before the print
    provider (missing SKU mapping fixed, provider outage over, ...).

    Provider failures surface as 502/503 and leave the order in
    `fulfillment_failed` so it can be retried again.
    """
    order = await services.lifecycle.resubmit(order_id)
    logger.info("Order resubmitted", order_id=order.id, status=order.status)
    return OrderResponse.model_validate(order)
