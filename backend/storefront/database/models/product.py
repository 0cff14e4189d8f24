"""
Product model with the pricing and inventory fields used by ordering.

Stock lives in ``on_hand``. It is only ever changed with single conditional
UPDATE statements (see ``services.orders.inventory``), never by loading a
product, editing the attribute and flushing it back.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from storefront.database.base import BaseModel


class ProductStatus(str, Enum):
    """
    Product publication status.

    Only ``ACTIVE`` products can be ordered.
    """

    ACTIVE = "active"
    DRAFT = "draft"
    ARCHIVED = "archived"
    PENDING_REVIEW = "pending_review"
    REJECTED = "rejected"


class Product(BaseModel):
    """
    Marketplace product listed by a supplier.

    Attributes:
        id: Unique product identifier (UUID)
        supplier_id: Owning supplier account id
        name: Display name
        description: Long description
        cost_price: Supplier cost, never exposed publicly
        selling_price: Current public price
        on_hand: Units in stock, never negative
        status: Publication status
    """

    __tablename__ = "products"

    supplier_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
        comment="Owning supplier account id",
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Product display name",
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Product description",
    )

    cost_price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Supplier cost price",
    )

    selling_price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Current selling price",
    )

    on_hand: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Units in stock",
    )

    status: Mapped[ProductStatus] = mapped_column(
        SQLEnum(
            ProductStatus,
            name="ck_products_status",
            native_enum=False,
            create_constraint=True,
            length=20,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=ProductStatus.DRAFT,
        index=True,
        comment="Publication status",
    )

    __table_args__ = (
        CheckConstraint("on_hand >= 0", name="ck_products_on_hand_non_negative"),
        CheckConstraint("selling_price >= 0", name="ck_products_selling_price_non_negative"),
        Index("ix_products_supplier_status", "supplier_id", "status"),
    )
