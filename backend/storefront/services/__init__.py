"""
Services package for business logic layer.
"""
from storefront.services.catalog import CatalogItem, JSONCatalogReader
from storefront.services.notification_service import NotificationService
from storefront.services.order_lifecycle import OrderLifecycle
from storefront.services.order_store import OrderStore
from storefront.services.prodigi_client import ProdigiClient
from storefront.services.stripe_gateway import StripeGateway
from storefront.services.checkout import CheckoutService

__all__ = [
    "OrderStore",
    "OrderLifecycle",
    "ProdigiClient",
    "StripeGateway",
    "NotificationService",
    "CatalogItem",
    "JSONCatalogReader",
    "CheckoutService",
]
