"""
SQLAlchemy models package.
All models are imported here for easy access and Alembic discovery.
"""
from storefront.models.order import ORDER_TRANSITIONS, Order, OrderStatus

__all__ = [
    "Order",
    "OrderStatus",
    "ORDER_TRANSITIONS",
]
