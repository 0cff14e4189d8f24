"""
Order data access repository.

This module implements the OrderRepository class providing async methods for
persisting orders with their items, loading orders, filtered and paginated
listing, supplier sales aggregation and cart clearing. It never commits;
transaction boundaries belong to the service layer.
"""

import uuid
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.logging import get_logger
from storefront.database.base import utcnow
from storefront.database.models.cart import Cart
from storefront.database.models.order import Order, OrderItem, OrderStatusHistory
from storefront.services.orders.enums import OrderStatus
from storefront.services.orders.inventory import ReservedLine

logger = get_logger(__name__)


class OrderRepositoryError(Exception):
    """Raised when the database rejects or fails an order query."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class OrderRepository:
    """
    Repository for order data access operations.

    Attributes:
        session: Async database session
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_order(
        self,
        user_id: str,
        lines: Sequence[ReservedLine],
        shipping_address: dict[str, Any],
        subtotal: Decimal,
        shipping_amount: Decimal,
        total_amount: Decimal,
    ) -> Order:
        """
        Add a pending order with its items and initial history row.

        Args:
            user_id: Owning account id
            lines: Reserved lines carrying the price snapshots
            shipping_address: Validated address
            subtotal: Sum of line totals
            shipping_amount: Shipping charge
            total_amount: Order total

        Returns:
            Flushed order with items loaded

        Raises:
            OrderRepositoryError: If the insert fails
        """
        order = Order(
            user_id=user_id,
            status=OrderStatus.PENDING,
            shipping_address=shipping_address,
            subtotal=subtotal,
            shipping_amount=shipping_amount,
            total_amount=total_amount,
            items=[
                OrderItem(
                    position=position,
                    product_id=line.product_id,
                    product_name=line.product_name,
                    supplier_id=line.supplier_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                )
                for position, line in enumerate(lines)
            ],
            status_history=[
                OrderStatusHistory(
                    from_status=OrderStatus.PENDING,
                    to_status=OrderStatus.PENDING,
                    changed_by=user_id,
                    reason="Order created",
                )
            ],
        )

        try:
            self.session.add(order)
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error(
                "Order insert failed",
                user_id=user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise OrderRepositoryError(
                "Order creation failed due to database error",
                user_id=user_id,
                error=str(e),
            ) from e

        logger.debug(
            "Order persisted",
            order_id=str(order.id),
            item_count=len(order.items),
        )

        return order

    async def get_order_by_id(self, order_id: uuid.UUID) -> Optional[Order]:
        """
        Get order by ID with items and history loaded.

        Returns:
            Order if found, None otherwise
        """
        try:
            result = await self.session.execute(
                select(Order).where(Order.id == order_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch order",
                order_id=str(order_id),
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to fetch order",
                order_id=str(order_id),
                error=str(e),
            ) from e

    async def list_orders(
        self,
        user_id: Optional[str] = None,
        supplier_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[Order], int]:
        """
        List orders newest first with optional filters.

        Args:
            user_id: Only orders owned by this account
            supplier_id: Only orders containing a line from this supplier
            status: Only orders in this status
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            Tuple of (orders, total_count)
        """
        conditions = []
        if user_id is not None:
            conditions.append(Order.user_id == user_id)
        if supplier_id is not None:
            conditions.append(
                Order.id.in_(
                    select(OrderItem.order_id).where(OrderItem.supplier_id == supplier_id)
                )
            )
        if status is not None:
            conditions.append(Order.status == status)

        stmt = (
            select(Order)
            .where(*conditions)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset(skip)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(Order).where(*conditions)

        try:
            total = (await self.session.execute(count_stmt)).scalar_one()
            orders = (await self.session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to list orders",
                user_id=user_id,
                supplier_id=supplier_id,
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to list orders",
                user_id=user_id,
                supplier_id=supplier_id,
                error=str(e),
            ) from e

        logger.debug(
            "Orders listed",
            user_id=user_id,
            supplier_id=supplier_id,
            status=status.value if status else None,
            returned=len(orders),
            total=total,
        )

        return orders, total

    async def get_supplier_total_sales(self, supplier_id: str) -> Decimal:
        """
        Sum quantity * unit_price over a supplier's lines in non-cancelled orders.
        """
        stmt = (
            select(
                func.coalesce(func.sum(OrderItem.quantity * OrderItem.unit_price), 0)
            )
            .join(Order, Order.id == OrderItem.order_id)
            .where(
                OrderItem.supplier_id == supplier_id,
                Order.status != OrderStatus.CANCELLED,
            )
        )

        try:
            value = (await self.session.execute(stmt)).scalar_one()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to aggregate supplier sales",
                supplier_id=supplier_id,
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to aggregate supplier sales",
                supplier_id=supplier_id,
                error=str(e),
            ) from e

        return Decimal(str(value)).quantize(Decimal("0.01"))

    async def clear_cart(self, user_id: str) -> None:
        """Empty the account's cart if it has one."""
        await self.session.execute(
            update(Cart)
            .where(Cart.user_id == user_id)
            .values(items=[], updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
