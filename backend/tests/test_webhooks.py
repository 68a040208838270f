"""
Tests for the payment and fulfillment webhook endpoints.
"""
import json

import pytest
from httpx import ASGITransport, AsyncClient

from conftest import VALID_STRIPE_SIGNATURE, checkout_completed_event, make_session
from storefront.core.exceptions import GatewayUnavailable
from storefront.core.security import sign_webhook_body
from storefront.main import create_app
from storefront.models.order import OrderStatus
from storefront.schemas.webhooks import payment_confirmed_from_session


async def post_payment_event(client, event: dict, signature: str = VALID_STRIPE_SIGNATURE):
    return await client.post(
        "/api/webhooks/payment",
        content=json.dumps(event),
        headers={"stripe-signature": signature, "Content-Type": "application/json"},
    )


class TestPaymentWebhook:
    """Tests for POST /api/webhooks/payment."""

    async def test_missing_signature(self, async_client):
        """Test that a request without a signature header is rejected with 400."""
        response = await async_client.post("/api/webhooks/payment", content=b"{}")

        assert response.status_code == 400

    async def test_bad_signature(self, async_client):
        """Test that a bad signature is rejected with 400."""
        response = await post_payment_event(async_client, checkout_completed_event(), signature="forged")

        assert response.status_code == 400

    async def test_paid_session_creates_order(self, async_client, payments, store):
        """Test that a paid checkout creates and submits an order."""
        payments.sessions["cs_test_1"] = make_session()

        response = await post_payment_event(async_client, checkout_completed_event())

        assert response.status_code == 200
        assert response.json() == {"received": True}
        order = await store.find_by_payment_session_id("cs_test_1")
        assert order.order_status == OrderStatus.SENT_TO_FULFILLMENT

    async def test_redelivery_acknowledged(self, async_client, payments, fulfillment):
        """Test that a redelivered event is acknowledged without a second submission."""
        payments.sessions["cs_test_1"] = make_session()

        first = await post_payment_event(async_client, checkout_completed_event())
        second = await post_payment_event(async_client, checkout_completed_event())

        assert first.status_code == 200
        assert second.status_code == 200
        assert len(fulfillment.submissions) == 1

    async def test_unpaid_session_ignored(self, async_client, payments, store):
        """Test that an unpaid session is acknowledged but creates no order."""
        payments.sessions["cs_test_1"] = make_session(payment_status="unpaid")

        response = await post_payment_event(async_client, checkout_completed_event())

        assert response.status_code == 200
        assert await store.find_by_payment_session_id("cs_test_1") is None

    async def test_other_event_types_ignored(self, async_client, store):
        """Test that unrelated event types are acknowledged."""
        event = checkout_completed_event()
        event["type"] = "payment_intent.created"

        response = await post_payment_event(async_client, event)

        assert response.status_code == 200
        assert await store.find_by_payment_session_id("cs_test_1") is None

    async def test_non_poster_session_ignored(self, async_client, store):
        """Test that checkouts for other products are acknowledged untouched."""
        event = checkout_completed_event()
        event["data"]["object"]["metadata"] = {"kind": "subscription"}

        response = await post_payment_event(async_client, event)

        assert response.status_code == 200
        assert await store.find_by_payment_session_id("cs_test_1") is None

    async def test_fulfillment_outage_returns_500(self, async_client, payments, store, gateway_down):
        """Test that a provider outage fails the delivery so it is retried."""
        payments.sessions["cs_test_1"] = make_session()

        response = await post_payment_event(async_client, checkout_completed_event())

        assert response.status_code == 500
        order = await store.find_by_payment_session_id("cs_test_1")
        assert order.order_status == OrderStatus.FULFILLMENT_FAILED

    async def test_session_lookup_failure_returns_500(self, async_client, payments):
        """Test that a failed session lookup is reported as a server error."""
        payments.retrieve_error = GatewayUnavailable("Stripe unreachable")

        response = await post_payment_event(async_client, checkout_completed_event())

        assert response.status_code == 500

    async def test_completed_event_without_session_id(self, async_client, payments):
        """Test that a signed event with no session id is rejected with 400."""
        event = checkout_completed_event()
        del event["data"]["object"]["id"]

        response = await post_payment_event(async_client, event)

        assert response.status_code == 400

    async def test_incomplete_metadata_returns_422(self, async_client, payments):
        """Test that a session missing purchase details is refused."""
        session = make_session()
        del session["metadata"]["paper"]
        payments.sessions["cs_test_1"] = session

        response = await post_payment_event(async_client, checkout_completed_event())

        assert response.status_code == 422


class TestFulfillmentWebhook:
    """Tests for POST /api/webhooks/fulfillment."""

    @pytest.fixture
    async def order(self, lifecycle):
        return await lifecycle.on_payment_confirmed(payment_confirmed_from_session(make_session()))

    async def test_malformed_json(self, async_client):
        """Test that a body that is not JSON is rejected with 400."""
        response = await async_client.post("/api/webhooks/fulfillment", content=b"{not json")

        assert response.status_code == 400

    async def test_missing_identifiers(self, async_client):
        """Test that a payload without any order identifier is rejected with 400."""
        response = await async_client.post("/api/webhooks/fulfillment", json={"status": "Shipped"})

        assert response.status_code == 400

    async def test_unknown_order_acknowledged(self, async_client):
        """Test that events for unknown orders still get a 200."""
        response = await async_client.post(
            "/api/webhooks/fulfillment",
            json={"order": {"id": "ord_unknown", "status": {"stage": "InProgress"}}},
        )

        assert response.status_code == 200
        assert response.json() == {"received": True, "matched": False}

    async def test_cloudevent_shipped(self, async_client, order, notifier, store):
        """Test a CloudEvent-shaped shipment callback end to end."""
        payload = {
            "specversion": "1.0",
            "type": "com.prodigi.order.status.stage.changed#Complete",
            "id": "evt_123",
            "data": {
                "order": {
                    "id": "ord_1",
                    "merchantReference": "ps_cs_test_1",
                    "status": {"stage": "Shipped"},
                    "shipments": [
                        {
                            "tracking": {"number": "TRK1", "url": "https://track.test/TRK1"},
                            "dispatchDate": "2026-10-19T10:00:00Z",
                        }
                    ],
                }
            },
        }

        response = await async_client.post("/api/webhooks/fulfillment", json=payload)

        assert response.status_code == 200
        assert response.json() == {"received": True, "matched": True}
        stored = await store.find_by_id(order.id)
        assert stored.order_status == OrderStatus.SHIPPED
        assert stored.tracking_number == "TRK1"
        assert stored.shipped_at is not None
        assert len(notifier.shipped) == 1

    async def test_shipments_object_instead_of_list(self, async_client, order, store):
        """Test that a non-list shipments field is tolerated rather than failing the callback."""
        response = await async_client.post(
            "/api/webhooks/fulfillment",
            json={"order": {"id": "ord_1", "status": {"stage": "Complete"}, "shipments": {"carrier": "DHL"}}},
        )

        assert response.status_code == 200
        assert response.json() == {"received": True, "matched": True}
        stored = await store.find_by_id(order.id)
        assert stored.fulfillment_status == "Complete"

    async def test_notification_failure_still_200(self, async_client, order, notifier):
        """Test that a failing mail provider does not fail the callback."""
        notifier.fail = True

        response = await async_client.post(
            "/api/webhooks/fulfillment",
            json={"orderId": "ord_1", "status": "Shipped", "trackingNumber": "TRK1"},
        )

        assert response.status_code == 200
        assert response.json()["matched"] is True


class TestFulfillmentWebhookAuth:
    """Tests for the optional fulfillment webhook authentication."""

    SECRET = "fulfillment-secret"
    BODY = json.dumps({"orderId": "ord_unknown", "status": "InProgress"}).encode()

    @pytest.fixture
    async def signed_client(self, make_services):
        app = create_app(make_services(fulfillment_webhook_secret=self.SECRET))
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client

    async def test_valid_hmac_signature(self, signed_client):
        response = await signed_client.post(
            "/api/webhooks/fulfillment",
            content=self.BODY,
            headers={"X-Webhook-Signature": sign_webhook_body(self.SECRET, self.BODY)},
        )

        assert response.status_code == 200

    async def test_valid_token(self, signed_client):
        response = await signed_client.post(
            f"/api/webhooks/fulfillment?token={self.SECRET}",
            content=self.BODY,
        )

        assert response.status_code == 200

    async def test_bad_signature_rejected(self, signed_client):
        response = await signed_client.post(
            "/api/webhooks/fulfillment",
            content=self.BODY,
            headers={"X-Webhook-Signature": "sha256=deadbeef"},
        )

        assert response.status_code == 401

    async def test_unsigned_rejected(self, signed_client):
        response = await signed_client.post("/api/webhooks/fulfillment", content=self.BODY)

        assert response.status_code == 401

    async def test_required_but_unconfigured(self, make_services):
        """Test that a required but missing secret refuses all callbacks."""
        app = create_app(make_services(require_fulfillment_signature=True))
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post("/api/webhooks/fulfillment", content=self.BODY)

        assert response.status_code == 503
