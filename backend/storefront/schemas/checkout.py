"""
Checkout Pydantic schemas for request/response validation.
"""
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PosterCheckoutRequest(BaseModel):
    """Schema for starting a poster checkout."""

    poster_id: str = Field(..., min_length=1, max_length=255, alias="posterId")
    size: Literal["a3", "a2", "12x18", "18x24"]
    paper: Literal["standard", "fineart"]
    mode: Literal["STRICT", "ART"] = "STRICT"
    quantity: int = 1

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("poster_id", mode="before")
    @classmethod
    def strip_poster_id(cls, value: str) -> str:
        return str(value or "").strip()

    @field_validator("size", "paper", mode="before")
    @classmethod
    def lowercase(cls, value: str) -> str:
        return str(value or "").lower()

    @field_validator("mode", mode="before")
    @classmethod
    def normalize_mode(cls, value: str | None) -> str:
        return "ART" if str(value or "").upper() == "ART" else "STRICT"

    @field_validator("quantity", mode="before")
    @classmethod
    def clamp_quantity(cls, value: int | None) -> int:
        try:
            quantity = int(value or 1)
        except (TypeError, ValueError):
            quantity = 1
        return min(max(quantity, 1), 10)


class CheckoutResponse(BaseModel):
    """Hosted checkout page to redirect the customer to."""

    url: str
