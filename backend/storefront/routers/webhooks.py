"""
Webhook receivers for the payment and print-fulfillment providers.

Both providers retry on any non-2xx response, so the status code is the
contract: 2xx only when the event is durably handled (or deliberately
ignored), 5xx when a retry could help.
"""
import json
from typing import Annotated, Optional

from fastapi import APIRouter, Header, HTTPException, Query, Request, status

from storefront.core.config import Settings
from storefront.core.exceptions import (
    GatewayError,
    NotFoundError,
    SignatureError,
    StorageError,
    ValidationError,
)
from storefront.core.logging import get_logger
from storefront.core.security import verify_shared_token, verify_webhook_hmac
from storefront.dependencies import ServicesDep
from storefront.schemas.webhooks import (
    FulfillmentWebhookAck,
    WebhookAck,
    parse_fulfillment_payload,
    payment_confirmed_from_session,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _is_poster_session(session: dict) -> bool:
    metadata = session.get("metadata") or {}
    return metadata.get("kind") == "poster" or bool(metadata.get("poster_id") or metadata.get("posterId"))


@router.post("/payment", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    services: ServicesDep,
    stripe_signature: Annotated[Optional[str], Header(alias="stripe-signature")] = None,
) -> WebhookAck:
    """
    Stripe webhook. Only paid `checkout.session.completed` events for
    poster purchases create orders; everything else is acknowledged.
    """
    raw_body = await request.body()

    try:
        event = services.payments.verify_webhook_signature(raw_body, stripe_signature)
    except SignatureError as e:
        logger.warning("Payment webhook rejected", error=e.message)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    event_type = event.get("type")
    session_obj = (event.get("data") or {}).get("object") or {}
    if event_type != "checkout.session.completed" or not _is_poster_session(session_obj):
        logger.info("Payment webhook ignored", event_type=event_type, event_id=event.get("id"))
        return WebhookAck()

    session_id = session_obj.get("id")
    if not session_id:
        logger.warning("Payment webhook missing session id", event_id=event.get("id"))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing checkout session id")

    try:
        session = await services.payments.retrieve_session(session_id)
        if session.get("payment_status") != "paid":
            logger.info(
                "Checkout session not paid yet",
                session_id=session.get("id"),
                payment_status=session.get("payment_status"),
            )
            return WebhookAck()

        await services.lifecycle.on_payment_confirmed(payment_confirmed_from_session(session))

    except (ValidationError, NotFoundError) as e:
        logger.error("Payment webhook rejected event", session_id=session_id, error=e.message)
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
    except (GatewayError, StorageError) as e:
        logger.error(
            "Payment webhook handler error",
            session_id=session_id,
            error_type=type(e).__name__,
            error=e.message,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Webhook handler error: {e.message}",
        )

    return WebhookAck()


def _authenticate_fulfillment(
    settings: Settings,
    raw_body: bytes,
    signature: Optional[str],
    token: Optional[str],
) -> None:
    secret = settings.fulfillment_webhook_secret
    if not secret:
        if settings.require_fulfillment_signature:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Fulfillment webhook secret not configured",
            )
        logger.warning("Accepting unauthenticated fulfillment webhook")
        return

    if verify_webhook_hmac(secret, signature, raw_body) or verify_shared_token(secret, token):
        return

    logger.warning("Fulfillment webhook authentication failed")
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature")


@router.post("/fulfillment", response_model=FulfillmentWebhookAck)
async def fulfillment_webhook(
    request: Request,
    services: ServicesDep,
    x_webhook_signature: Annotated[Optional[str], Header()] = None,
    token: Annotated[Optional[str], Query()] = None,
) -> FulfillmentWebhookAck:
    """
    Prodigi status callback.

    Acknowledged with 200 even when no order matches or the shipped
    email fails, so the provider does not keep retrying.
    """
    raw_body = await request.body()
    _authenticate_fulfillment(services.settings, raw_body, x_webhook_signature, token)

    try:
        payload = json.loads(raw_body)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON")

    event = parse_fulfillment_payload(payload)
    if not event.fulfillment_order_id and not event.merchant_reference:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing fulfillment order identifiers",
        )

    order = await services.lifecycle.on_fulfillment_event(event)
    return FulfillmentWebhookAck(matched=order is not None)
