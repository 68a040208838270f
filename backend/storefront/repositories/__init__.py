"""
Repository package for data access layer.
"""
from storefront.repositories.base import BaseRepository
from storefront.repositories.order import FulfillmentPatch, OrderRepository

__all__ = [
    "BaseRepository",
    "OrderRepository",
    "FulfillmentPatch",
]
