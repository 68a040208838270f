"""
Capability container and FastAPI dependencies.

Every external client is built once per application and reached through
`app.state.services`; nothing is a module-level singleton.
"""
from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from storefront.core.config import Settings
from storefront.core.database import create_engine, create_session_factory
from storefront.core.security import AuthContext, JWTAuthVerifier, extract_bearer_token
from storefront.services.catalog import JSONCatalogReader
from storefront.services.checkout import CheckoutService, PaymentGateway
from storefront.services.notification_service import NotificationService
from storefront.services.order_lifecycle import OrderLifecycle
from storefront.services.order_store import OrderStore
from storefront.services.prodigi_client import ProdigiClient
from storefront.services.stripe_gateway import StripeGateway


@dataclass
class Services:
    settings: Settings
    session_factory: async_sessionmaker[AsyncSession]
    order_store: OrderStore
    lifecycle: OrderLifecycle
    payments: PaymentGateway
    checkout: CheckoutService
    auth: JWTAuthVerifier
    engine: Optional[AsyncEngine] = None


def build_services(
    settings: Settings,
    *,
    engine: Optional[AsyncEngine] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    payments: Optional[PaymentGateway] = None,
    fulfillment=None,
    notifier=None,
    catalog=None,
) -> Services:
    """Wire the production capabilities; any of them may be replaced."""
    if session_factory is None:
        engine = engine or create_engine(settings.database_url)
        session_factory = create_session_factory(engine)

    store = OrderStore(session_factory)
    catalog = catalog or JSONCatalogReader(settings.catalog_path)
    payments = payments or StripeGateway(
        settings.stripe_secret_key,
        settings.stripe_webhook_secret,
        api_version=settings.stripe_api_version,
    )
    lifecycle = OrderLifecycle(
        store,
        fulfillment or ProdigiClient.from_settings(settings),
        notifier or NotificationService(
            settings.resend_api_key,
            settings.mail_from,
            brand_name=settings.brand_name,
            account_url=settings.account_url,
        ),
        catalog,
        site_url=settings.site_url,
        merchant_reference_prefix=settings.merchant_reference_prefix,
    )
    checkout = CheckoutService(
        payments,
        catalog,
        site_url=settings.site_url,
        currency=settings.checkout_currency,
        shipping_countries=settings.shipping_countries,
    )
    return Services(
        settings=settings,
        session_factory=session_factory,
        order_store=store,
        lifecycle=lifecycle,
        payments=payments,
        checkout=checkout,
        auth=JWTAuthVerifier(settings.auth_jwt_secret, settings.auth_jwt_algorithm),
        engine=engine,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


ServicesDep = Annotated[Services, Depends(get_services)]


async def get_optional_auth(
    request: Request,
    services: ServicesDep,
    authorization: Annotated[Optional[str], Header()] = None,
) -> Optional[AuthContext]:
    """Verified caller identity, or None for guests and bad tokens."""
    token = extract_bearer_token(authorization) or request.cookies.get(
        services.settings.auth_cookie_name
    )
    return services.auth.verify(token)


OptionalAuth = Annotated[Optional[AuthContext], Depends(get_optional_auth)]
