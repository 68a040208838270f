"""
Stripe payment gateway: checkout sessions and webhook verification.

The Stripe SDK is synchronous; calls run in a worker thread so the
event loop is never blocked on the network.
"""
import json
from typing import Any, Optional

import stripe
from starlette.concurrency import run_in_threadpool

from storefront.core.exceptions import GatewayRejected, GatewayUnavailable, SignatureError
from storefront.core.logging import get_logger

logger = get_logger(__name__)


def to_plain_dict(obj: Any) -> dict[str, Any]:
    """Convert a StripeObject (or mapping) into plain nested dicts."""
    if isinstance(obj, dict):
        return obj
    # StripeObject.__str__ renders the full object as JSON
    return json.loads(str(obj))


class StripeGateway:
    """Payment provider capability backed by the Stripe SDK."""

    def __init__(
        self,
        secret_key: Optional[str],
        webhook_secret: Optional[str],
        *,
        api_version: str = "2024-06-20",
    ) -> None:
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.api_version = api_version

    def verify_webhook_signature(self, raw_body: bytes, signature: Optional[str]) -> dict[str, Any]:
        """
        Verify a webhook delivery and return the parsed event.

        Raises:
            SignatureError: missing header, bad signature, or unparseable body
        """
        if not signature:
            raise SignatureError("Missing stripe-signature header")
        if not self.webhook_secret:
            raise SignatureError("Stripe webhook secret not configured")

        try:
            event = stripe.Webhook.construct_event(raw_body, signature, self.webhook_secret)
        except ValueError as e:
            raise SignatureError(f"Invalid payload: {e}") from e
        except stripe.SignatureVerificationError as e:
            raise SignatureError(f"Webhook signature error: {e}") from e

        return to_plain_dict(event)

    async def retrieve_session(self, session_id: str) -> dict[str, Any]:
        """Fetch the full checkout session (shipping and customer details included)."""
        try:
            session = await run_in_threadpool(
                stripe.checkout.Session.retrieve,
                session_id,
                api_key=self._require_key(),
                stripe_version=self.api_version,
            )
        except stripe.APIConnectionError as e:
            raise GatewayUnavailable(f"Stripe unreachable: {e}") from e
        except stripe.InvalidRequestError as e:
            raise GatewayRejected(f"Stripe rejected session lookup: {e}") from e
        except stripe.StripeError as e:
            raise GatewayUnavailable(f"Stripe error: {e}") from e

        return to_plain_dict(session)

    async def create_checkout_session(self, params: dict[str, Any]) -> dict[str, Any]:
        """Create a hosted Checkout session and return it (with `url`)."""
        try:
            session = await run_in_threadpool(
                stripe.checkout.Session.create,
                api_key=self._require_key(),
                stripe_version=self.api_version,
                **params,
            )
        except stripe.APIConnectionError as e:
            raise GatewayUnavailable(f"Stripe unreachable: {e}") from e
        except stripe.InvalidRequestError as e:
            raise GatewayRejected(f"Stripe rejected checkout session: {e}") from e
        except stripe.StripeError as e:
            raise GatewayUnavailable(f"Stripe error: {e}") from e

        data = to_plain_dict(session)
        logger.info("Checkout session created", session_id=data.get("id"))
        return data

    def _require_key(self) -> str:
        if not self.secret_key:
            raise GatewayUnavailable("Stripe secret key not configured")
        return self.secret_key
