"""
Database models package.

Models are imported here so they are registered with ``Base.metadata`` for
``create_all`` and Alembic autogeneration.
"""

from storefront.database.base import Base, BaseModel, TimestampMixin, UUIDMixin
from storefront.database.models.cart import Cart
from storefront.database.models.order import Order, OrderItem, OrderStatusHistory
from storefront.database.models.product import Product, ProductStatus

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "UUIDMixin",
    "Cart",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "Product",
    "ProductStatus",
]
