"""
Prodigi print-fulfillment client.
Maps poster variants to SKUs and submits print orders.
"""
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from storefront.core.config import Settings
from storefront.core.exceptions import FulfillmentRejected, FulfillmentUnavailable
from storefront.core.logging import get_logger

logger = get_logger(__name__)

PAPER_ALIASES = {
    "standard": "BLP",
    "budget": "BLP",
    "blp": "BLP",
    "fineart": "FAP",
    "fine_art": "FAP",
    "fap": "FAP",
}

SIZE_ALIASES = {
    "12x18": "12X18",
    "12x18_in": "12X18",
    "12x18 in": "12X18",
    "18x24": "18X24",
    "18x24_in": "18X24",
    "18x24 in": "18X24",
    "a2": "A2",
    "a3": "A3",
}

# Used when no SKU is configured for a (paper, size) pair
DEFAULT_SKUS: dict[tuple[str, str], str] = {
    ("BLP", "12X18"): "GLOBAL-BLP-12X18",
    ("BLP", "18X24"): "GLOBAL-BLP-18X24",
    ("FAP", "12X18"): "GLOBAL-FAP-12X18",
    ("FAP", "18X24"): "GLOBAL-FAP-18X24",
    ("FAP", "A2"): "GLOBAL-FAP-A2",
    ("FAP", "A3"): "GLOBAL-FAP-A3",
}


def configured_skus(settings: Settings) -> dict[tuple[str, str], str]:
    """SKU overrides from PRODIGI_SKU_* settings."""
    overrides = {
        ("BLP", "12X18"): settings.prodigi_sku_blp_12x18,
        ("BLP", "18X24"): settings.prodigi_sku_blp_18x24,
        ("FAP", "12X18"): settings.prodigi_sku_fap_12x18,
        ("FAP", "18X24"): settings.prodigi_sku_fap_18x24,
        ("FAP", "A2"): settings.prodigi_sku_fap_a2,
        ("FAP", "A3"): settings.prodigi_sku_fap_a3,
    }
    return {key: sku for key, sku in overrides.items() if sku}


@dataclass
class Recipient:
    """Shipping recipient in Prodigi's address shape."""

    name: str
    line1: str
    city: str
    postal_code: str
    country: str
    line2: str = ""
    state: str = ""
    email: Optional[str] = None

    @classmethod
    def from_address(
        cls,
        address: dict[str, Any],
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> "Recipient":
        return cls(
            name=name or "Customer",
            line1=address.get("line1") or "",
            line2=address.get("line2") or "",
            city=address.get("city") or "",
            postal_code=address.get("postal_code") or "",
            state=address.get("state") or "",
            country=address.get("country") or "",
            email=email,
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "address": {
                "line1": self.line1,
                "line2": self.line2,
                "postalOrZipCode": self.postal_code,
                "townOrCity": self.city,
                "stateOrCounty": self.state,
                "countryCode": self.country,
            },
        }
        if self.email:
            payload["email"] = self.email
        return payload


@dataclass
class PrintItem:
    sku: str
    asset_url: str
    copies: int = 1
    sizing: str = "fillPrintArea"

    def to_payload(self) -> dict[str, Any]:
        return {
            "sku": self.sku,
            "copies": self.copies,
            "sizing": self.sizing,
            "assets": [{"printArea": "default", "url": self.asset_url}],
        }


@dataclass
class SubmissionResult:
    provider_order_id: str
    raw: dict[str, Any] = field(default_factory=dict)


class ProdigiClient:
    """
    Async Prodigi API client.

    Submissions are never retried here: a failed call surfaces as
    FulfillmentRejected (provider refused) or FulfillmentUnavailable
    (transport, timeout, or provider-side error).
    """

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = "https://api.prodigi.com/v4.0",
        shipping_method: str = "Budget",
        sku_overrides: Optional[dict[tuple[str, str], str]] = None,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.shipping_method = shipping_method
        self.skus = {**DEFAULT_SKUS, **(sku_overrides or {})}
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProdigiClient":
        return cls(
            settings.prodigi_api_key,
            base_url=settings.prodigi_api_base,
            shipping_method=settings.prodigi_shipping_method,
            sku_overrides=configured_skus(settings),
            timeout=settings.prodigi_timeout,
        )

    def resolve_sku(self, paper: Optional[str], size: Optional[str]) -> Optional[str]:
        """Map a (paper, size) variant to a SKU, or None if unmapped."""
        paper_key = PAPER_ALIASES.get((paper or "").strip().lower())
        size_key = SIZE_ALIASES.get((size or "").strip().lower())
        if not paper_key or not size_key:
            return None
        return self.skus.get((paper_key, size_key))

    async def submit(
        self,
        merchant_reference: str,
        recipient: Recipient,
        items: list[PrintItem],
    ) -> SubmissionResult:
        """Create a print order. Called at most once per claimed submission."""
        if not self.api_key:
            raise FulfillmentUnavailable("Prodigi API key not configured")

        payload = {
            "merchantReference": merchant_reference,
            "shippingMethod": self.shipping_method,
            "recipient": recipient.to_payload(),
            "items": [item.to_payload() for item in items],
        }
        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/orders",
                    json=payload,
                    headers=headers,
                )
        except httpx.TimeoutException as e:
            logger.error("Prodigi request timed out", merchant_reference=merchant_reference)
            raise FulfillmentUnavailable(f"Prodigi request timed out: {e}") from e
        except httpx.RequestError as e:
            logger.error("Prodigi request failed", merchant_reference=merchant_reference, error=str(e))
            raise FulfillmentUnavailable(f"Prodigi request failed: {e}") from e

        data = _json_or_raw(response)

        if response.status_code >= 500:
            logger.error(
                "Prodigi server error",
                status=response.status_code,
                merchant_reference=merchant_reference,
            )
            raise FulfillmentUnavailable(f"Prodigi API error {response.status_code}: {data}")

        if response.status_code >= 400 or data.get("outcome") == "ValidationFailed":
            logger.warning(
                "Prodigi rejected order",
                status=response.status_code,
                merchant_reference=merchant_reference,
                response=data,
            )
            raise FulfillmentRejected(f"Prodigi API error {response.status_code}: {data}")

        order = data.get("order") if isinstance(data.get("order"), dict) else {}
        provider_order_id = order.get("id") or data.get("id") or data.get("orderId")
        if not provider_order_id:
            raise FulfillmentRejected(f"Prodigi response missing order id: {data}")

        logger.info(
            "Prodigi order created",
            merchant_reference=merchant_reference,
            provider_order_id=provider_order_id,
        )
        return SubmissionResult(provider_order_id=str(provider_order_id), raw=data)


def _json_or_raw(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {"raw": response.text}
    return data if isinstance(data, dict) else {"raw": data}
