"""
Poster checkout - builds the payment session for one poster variant.

Guest checkout is allowed; a verified caller's account id is attached to
the session metadata so the resulting order is linked to the account.
"""
from typing import Any, Optional, Protocol
from urllib.parse import quote

from storefront.core.exceptions import NotFoundError, ValidationError
from storefront.core.logging import get_logger
from storefront.core.security import AuthContext
from storefront.schemas.checkout import PosterCheckoutRequest
from storefront.services.order_lifecycle import CatalogReader

logger = get_logger(__name__)

PAPER_LABELS = {"standard": "Standard", "fineart": "Fine Art"}


class PaymentGateway(Protocol):
    def verify_webhook_signature(self, raw_body: bytes, signature: Optional[str]) -> dict[str, Any]: ...

    async def retrieve_session(self, session_id: str) -> dict[str, Any]: ...

    async def create_checkout_session(self, params: dict[str, Any]) -> dict[str, Any]: ...


class CheckoutService:
    def __init__(
        self,
        payments: PaymentGateway,
        catalog: CatalogReader,
        *,
        site_url: str,
        currency: str = "usd",
        shipping_countries: Optional[list[str]] = None,
    ) -> None:
        self.payments = payments
        self.catalog = catalog
        self.site_url = site_url.rstrip("/")
        self.currency = currency
        self.shipping_countries = shipping_countries or ["US"]

    async def create_poster_checkout(
        self,
        request: PosterCheckoutRequest,
        auth: Optional[AuthContext] = None,
    ) -> str:
        """Create a checkout session and return its hosted URL."""
        poster = self.catalog.find_by_id(request.poster_id)
        if poster is None:
            raise NotFoundError("poster not found")

        price = poster.price_for(request.paper, request.size)
        if price is None:
            raise ValidationError("missing price for variant")

        print_url = poster.print_asset_url(self.site_url, request.size, request.mode)

        metadata = {
            "kind": "poster",
            "poster_id": poster.id,
            "poster_title": poster.title,
            "size": request.size,
            "paper": request.paper,
            "mode": request.mode,
            "print_url": print_url,
        }
        if auth is not None:
            metadata["account_id"] = auth.account_id

        params: dict[str, Any] = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": self.currency,
                        "product_data": {
                            "name": (
                                f"{poster.title} - {PAPER_LABELS[request.paper]} "
                                f"({request.size.upper()})"
                            ),
                        },
                        "unit_amount": int(price * 100),
                    },
                    "quantity": request.quantity,
                }
            ],
            "allow_promotion_codes": True,
            "billing_address_collection": "auto",
            "shipping_address_collection": {"allowed_countries": self.shipping_countries},
            "shipping_options": [
                {
                    "shipping_rate_data": {
                        "type": "fixed_amount",
                        "fixed_amount": {"amount": 0, "currency": self.currency},
                        "display_name": "Shipping included",
                        "delivery_estimate": {
                            "minimum": {"unit": "business_day", "value": 3},
                            "maximum": {"unit": "business_day", "value": 10},
                        },
                    }
                }
            ],
            "success_url": f"{self.site_url}/success.html?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{self.site_url}/p.html?id={quote(poster.id)}",
            "metadata": metadata,
        }
        if auth is not None and auth.email:
            params["customer_email"] = auth.email

        session = await self.payments.create_checkout_session(params)
        logger.info(
            "Poster checkout started",
            poster_id=poster.id,
            size=request.size,
            paper=request.paper,
            account_id=auth.account_id if auth else None,
        )
        return session["url"]
