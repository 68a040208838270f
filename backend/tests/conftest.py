"""
Shared fixtures: a throwaway SQLite order store and fake providers.
"""
import json
import os
from typing import Any, Optional

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from storefront.core.config import Settings
from storefront.core.database import create_engine, create_session_factory, init_db
from storefront.core.exceptions import FulfillmentUnavailable, SignatureError
from storefront.dependencies import build_services
from storefront.main import create_app
from storefront.services.catalog import CatalogItem
from storefront.services.prodigi_client import ProdigiClient, SubmissionResult

ADMIN_KEY = "admin-secret"
JWT_SECRET = "jwt-secret"
VALID_STRIPE_SIGNATURE = "t=1,v1=valid"


class FakePayments:
    """Payment gateway double: signatures are accepted iff they equal VALID_STRIPE_SIGNATURE."""

    def __init__(self) -> None:
        self.sessions: dict[str, dict[str, Any]] = {}
        self.created: list[dict[str, Any]] = []
        self.retrieve_error: Optional[Exception] = None

    def verify_webhook_signature(self, raw_body: bytes, signature: Optional[str]) -> dict[str, Any]:
        if signature != VALID_STRIPE_SIGNATURE:
            raise SignatureError("Webhook signature error")
        return json.loads(raw_body)

    async def retrieve_session(self, session_id: str) -> dict[str, Any]:
        if self.retrieve_error is not None:
            raise self.retrieve_error
        return self.sessions[session_id]

    async def create_checkout_session(self, params: dict[str, Any]) -> dict[str, Any]:
        self.created.append(params)
        session_id = f"cs_new_{len(self.created)}"
        return {"id": session_id, "url": f"https://checkout.stripe.test/{session_id}"}


class FakeFulfillment:
    """Records submissions; SKU mapping is the real Prodigi table."""

    def __init__(self) -> None:
        self.resolver = ProdigiClient("test-key")
        self.submissions: list[tuple[str, Any, list]] = []
        self.fail_with: Optional[Exception] = None

    def resolve_sku(self, paper: Optional[str], size: Optional[str]) -> Optional[str]:
        return self.resolver.resolve_sku(paper, size)

    async def submit(self, merchant_reference, recipient, items) -> SubmissionResult:
        self.submissions.append((merchant_reference, recipient, items))
        if self.fail_with is not None:
            raise self.fail_with
        return SubmissionResult(provider_order_id=f"ord_{len(self.submissions)}")


class FakeNotifier:
    def __init__(self) -> None:
        self.shipped: list[tuple[str, Any]] = []
        self.received: list[str] = []
        self.fail = False

    async def notify_shipped(self, order, tracking) -> bool:
        if self.fail:
            raise RuntimeError("mail provider down")
        self.shipped.append((order.id, tracking))
        return True

    async def notify_order_received(self, order) -> bool:
        self.received.append(order.id)
        return True


class FakeCatalog:
    def __init__(self, items: list[CatalogItem]) -> None:
        self.items = {item.id: item for item in items}

    def find_by_id(self, item_id: str) -> Optional[CatalogItem]:
        return self.items.get(item_id)


def make_session(session_id: str = "cs_test_1", **overrides: Any) -> dict[str, Any]:
    """A retrieved, paid Stripe checkout session for the aurora poster."""
    session: dict[str, Any] = {
        "id": session_id,
        "object": "checkout.session",
        "payment_status": "paid",
        "amount_total": 3900,
        "currency": "usd",
        "metadata": {
            "kind": "poster",
            "poster_id": "aurora",
            "poster_title": "Aurora",
            "size": "18x24",
            "paper": "standard",
            "mode": "STRICT",
        },
        "customer_details": {"email": "ada@example.com", "name": "Ada Lovelace"},
        "shipping_details": {
            "name": "Ada Lovelace",
            "address": {
                "line1": "1 Analytical Way",
                "line2": None,
                "city": "London",
                "postal_code": "N1 9GU",
                "state": None,
                "country": "GB",
            },
        },
    }
    session.update(overrides)
    return session


def checkout_completed_event(session_id: str = "cs_test_1", **metadata: Any) -> dict[str, Any]:
    return {
        "id": "evt_1",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id,
                "metadata": {"kind": "poster", "poster_id": "aurora", **metadata},
            }
        },
    }


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}",
        environment="test",
        site_url="https://posters.test",
        admin_api_key=ADMIN_KEY,
        auth_jwt_secret=JWT_SECRET,
        fulfillment_webhook_secret=None,
        require_fulfillment_signature=False,
    )


@pytest.fixture
async def engine(test_settings):
    engine = create_engine(test_settings.database_url)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def payments() -> FakePayments:
    return FakePayments()


@pytest.fixture
def fulfillment() -> FakeFulfillment:
    return FakeFulfillment()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog([
        CatalogItem(
            id="aurora",
            title="Aurora",
            file_base="aurora",
            prices={
                "standard": {"12x18": 29, "18x24": 39},
                "fineart": {"18x24": 69, "a2": 79},
            },
        ),
    ])


@pytest.fixture
def make_services(engine, payments, fulfillment, notifier, catalog, test_settings):
    """Factory for a services container, optionally with settings overrides."""

    def _make(**overrides: Any):
        settings = test_settings.model_copy(update=overrides) if overrides else test_settings
        return build_services(
            settings,
            engine=engine,
            session_factory=create_session_factory(engine),
            payments=payments,
            fulfillment=fulfillment,
            notifier=notifier,
            catalog=catalog,
        )

    return _make


@pytest.fixture
def services(make_services):
    return make_services()


@pytest.fixture
def lifecycle(services):
    return services.lifecycle


@pytest.fixture
def store(services):
    return services.order_store


@pytest.fixture
def app(services):
    return create_app(services)


@pytest.fixture
async def async_client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def client() -> TestClient:
    """Synchronous client for endpoints that touch no providers or storage."""
    return TestClient(create_app())


@pytest.fixture
def gateway_down(fulfillment) -> FakeFulfillment:
    fulfillment.fail_with = FulfillmentUnavailable("Prodigi request timed out")
    return fulfillment
