"""
API routers package.
"""
from storefront.routers.admin import router as admin_router
from storefront.routers.checkout import router as checkout_router
from storefront.routers.health import router as health_router
from storefront.routers.webhooks import router as webhooks_router

__all__ = [
    "health_router",
    "webhooks_router",
    "checkout_router",
    "admin_router",
]
