"""
Order Pydantic schemas for API responses.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderResponse(BaseModel):
    """Operator view of an order and its fulfillment state."""

    id: str
    status: str
    payment_session_id: str = Field(alias="paymentSessionId")
    fulfillment_order_id: Optional[str] = Field(None, alias="fulfillmentOrderId")
    fulfillment_status: Optional[str] = Field(None, alias="fulfillmentStatus")
    fulfillment_error: Optional[str] = Field(None, alias="fulfillmentError")
    submission_attempts: int = Field(alias="submissionAttempts")
    catalog_item_id: str = Field(alias="catalogItemId")
    size: str
    paper: str
    currency: str
    amount_total: Decimal = Field(alias="amountTotal")
    tracking_number: Optional[str] = Field(None, alias="trackingNumber")
    tracking_url: Optional[str] = Field(None, alias="trackingUrl")
    shipped_at: Optional[datetime] = Field(None, alias="shippedAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )
