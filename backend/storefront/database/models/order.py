"""
Order models for placed purchases and their status history.

An ``Order`` owns an ordered list of ``OrderItem`` rows that snapshot the
product name, supplier and selling price at the moment stock was reserved.
Apart from ``status`` and ``updated_at`` nothing on an order changes after it
is created; each status change is recorded in ``OrderStatusHistory``.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.database.base import Base, BaseModel, UUIDMixin, utcnow
from storefront.services.orders.enums import OrderStatus


def _order_status_enum(name: str) -> SQLEnum:
    # Stored as VARCHAR plus a named CHECK constraint on every backend
    return SQLEnum(
        OrderStatus,
        name=name,
        native_enum=False,
        create_constraint=True,
        length=20,
        values_callable=lambda enum: [member.value for member in enum],
    )


class Order(BaseModel):
    """
    Customer order.

    Attributes:
        id: Unique order identifier (UUID)
        user_id: Owning account id (registered or guest)
        status: Lifecycle status
        shipping_address: Structured address captured at checkout
        subtotal: Sum of line totals
        shipping_amount: Shipping charge
        total_amount: subtotal + shipping_amount
        items: Line items in checkout order
        status_history: Applied status transitions, oldest first
    """

    __tablename__ = "orders"

    user_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
        comment="Owning account id",
    )

    status: Mapped[OrderStatus] = mapped_column(
        _order_status_enum("ck_orders_status"),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True,
        comment="Order lifecycle status",
    )

    shipping_address: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        comment="Shipping address captured at checkout",
    )

    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Sum of line totals",
    )

    shipping_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Shipping charge",
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Order total",
    )

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    status_history: Mapped[list["OrderStatusHistory"]] = relationship(
        "OrderStatusHistory",
        back_populates="order",
        order_by="OrderStatusHistory.created_at",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_orders_user_created", "user_id", "created_at"),
        Index("ix_orders_status_created", "status", "created_at"),
    )

    @property
    def totals(self) -> dict[str, Decimal]:
        """Order totals breakdown."""
        return {
            "subtotal": self.subtotal,
            "shipping": self.shipping_amount,
            "total": self.total_amount,
        }


class OrderItem(Base, UUIDMixin):
    """
    Order line item with price snapshot.

    Attributes:
        order_id: Parent order
        position: Zero-based position within the order
        product_id: Ordered product
        product_name: Product name at reservation time
        supplier_id: Product supplier at reservation time
        quantity: Units ordered, at least one
        unit_price: Selling price at reservation time
    """

    __tablename__ = "order_items"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        index=True,
    )

    product_name: Mapped[str] = mapped_column(String(200), nullable=False)

    supplier_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    order: Mapped[Order] = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
    )

    @property
    def line_total(self) -> Decimal:
        """Quantity times unit price."""
        return self.unit_price * self.quantity


class OrderStatusHistory(Base, UUIDMixin):
    """Audit row for an order status change."""

    __tablename__ = "order_status_history"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    from_status: Mapped[OrderStatus] = mapped_column(
        _order_status_enum("ck_order_status_history_from_status"),
        nullable=False,
    )

    to_status: Mapped[OrderStatus] = mapped_column(
        _order_status_enum("ck_order_status_history_to_status"),
        nullable=False,
    )

    changed_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    order: Mapped[Order] = relationship("Order", back_populates="status_history")
