"""
Shopping cart model.

Carts are keyed by account id and hold a JSON list of
``{"product_id", "quantity", "added_at"}`` entries. Placing an order empties
the ordering account's cart.
"""

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from storefront.database.base import BaseModel


class Cart(BaseModel):
    """Per-account shopping cart."""

    __tablename__ = "carts"

    user_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        comment="Owning account id",
    )

    items: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Cart entries",
    )

    @property
    def item_count(self) -> int:
        """Total units across all entries."""
        return sum(int(item.get("quantity", 0)) for item in self.items)
