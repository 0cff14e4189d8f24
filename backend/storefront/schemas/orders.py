"""
Order Pydantic schemas for API and service input/output validation.

Request schemas forbid unknown fields so malformed bodies are rejected before
any business logic runs. Response schemas read straight from ORM objects.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storefront.services.orders.enums import OrderStatus


class ShippingAddress(BaseModel):
    """Structured shipping address."""

    model_config = ConfigDict(
        extra="forbid",
        str_strip_whitespace=True,
    )

    street: str = Field(..., min_length=1, max_length=255, description="Street address")
    city: str = Field(..., min_length=1, max_length=100, description="City")
    zip: str = Field(..., min_length=1, max_length=20, description="Postal/ZIP code")
    country: str = Field(..., min_length=2, max_length=100, description="Country")


class OrderItemRequest(BaseModel):
    """One line of a cart submission."""

    model_config = ConfigDict(extra="forbid")

    product_id: UUID = Field(..., description="Product to order")
    quantity: int = Field(..., ge=1, le=10_000, description="Units to order")


class OrderCreateRequest(BaseModel):
    """Cart submission used to place an order."""

    model_config = ConfigDict(extra="forbid")

    items: list[OrderItemRequest] = Field(
        ...,
        min_length=1,
        description="Line items, at least one",
    )
    shipping_address: ShippingAddress = Field(..., description="Where to ship the order")


class OrderStatusUpdate(BaseModel):
    """Admin request to change an order's status."""

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus = Field(..., description="Target status")
    reason: Optional[str] = Field(None, max_length=500, description="Reason for the change")

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        """Accept status values in any case."""
        if isinstance(v, str):
            return OrderStatus.from_string(v)
        return v


class OrderItemResponse(BaseModel):
    """Line item with its price snapshot."""

    model_config = ConfigDict(from_attributes=True)

    product_id: UUID
    product_name: str
    supplier_id: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class OrderTotals(BaseModel):
    """Order totals breakdown."""

    subtotal: Decimal
    shipping: Decimal
    total: Decimal


class OrderStatusHistoryResponse(BaseModel):
    """Recorded status transition."""

    model_config = ConfigDict(from_attributes=True)

    from_status: OrderStatus
    to_status: OrderStatus
    changed_by: Optional[str] = None
    reason: Optional[str] = None
    created_at: datetime


class OrderResponse(BaseModel):
    """Order as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    status: OrderStatus
    items: list[OrderItemResponse]
    shipping_address: ShippingAddress
    totals: OrderTotals
    created_at: datetime
    updated_at: datetime


class OrderDetailResponse(OrderResponse):
    """Order with its status history."""

    status_history: list[OrderStatusHistoryResponse] = Field(default_factory=list)


class OrderListResponse(BaseModel):
    """One page of orders."""

    orders: list[OrderResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class SupplierSalesResponse(BaseModel):
    """Revenue attributed to a supplier's products."""

    supplier_id: str
    total_sales: Decimal
