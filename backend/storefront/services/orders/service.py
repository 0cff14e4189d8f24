"""
Order service orchestrating stock reservation, persistence and status changes.

This module implements the OrderService class used by the API layer. Order
creation validates the cart submission, reserves stock through atomic
conditional decrements, snapshots prices, computes totals and persists the
order in one unit of work. Reads are filtered, paginated and returned newest
first.
"""

import math
import uuid
from decimal import Decimal
from typing import Any, Optional, Sequence, Union

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import Settings, get_settings
from storefront.core.logging import get_logger, log_performance
from storefront.database.models.order import Order
from storefront.schemas.orders import OrderCreateRequest
from storefront.services.orders.enums import OrderStatus
from storefront.services.orders.exceptions import (
    OrderNotFoundError,
    OrderValidationError,
)
from storefront.services.orders.inventory import (
    ReservedLine,
    StockRequest,
    StockReservationService,
)
from storefront.services.orders.repository import (
    OrderRepository,
    OrderRepositoryError,
)
from storefront.services.orders.state_machine import OrderStateMachine

logger = get_logger(__name__)

CENT = Decimal("0.01")

StatusInput = Union[OrderStatus, str, None]


def calculate_totals(
    lines: Sequence[ReservedLine], settings: Settings
) -> tuple[Decimal, Decimal, Decimal]:
    """
    Compute subtotal, shipping and total for reserved lines.

    Shipping is free once the subtotal reaches the configured threshold.

    Returns:
        Tuple of (subtotal, shipping, total), each rounded to cents
    """
    subtotal = sum(
        (Decimal(line.unit_price) * line.quantity for line in lines),
        Decimal("0"),
    ).quantize(CENT)

    if subtotal >= settings.free_shipping_threshold:
        shipping = Decimal("0.00")
    else:
        shipping = Decimal(settings.flat_shipping_fee).quantize(CENT)

    return subtotal, shipping, (subtotal + shipping).quantize(CENT)


def _validation_errors(exc: ValidationError) -> list[dict[str, str]]:
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]


class OrderService:
    """
    Order service orchestrating business logic.

    Attributes:
        session: Async database session owning the unit of work
        settings: Settings for totals, pagination and reservation mode
        repository: Order repository for data access
        state_machine: State machine for order lifecycle management
    """

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()
        self.repository = OrderRepository(session)
        self.state_machine = OrderStateMachine(session)

    async def create_order(
        self,
        user_id: str,
        data: Union[OrderCreateRequest, dict[str, Any]],
    ) -> Order:
        """
        Create new order with stock reservation and price snapshots.

        Stock for every line is reserved before anything is written to the
        orders table. If any line cannot be reserved, all reservations made
        by this call are undone and no order is persisted.

        Args:
            user_id: Account placing the order, guests included
            data: Cart submission, as a schema instance or raw mapping

        Returns:
            Persisted pending order

        Raises:
            OrderValidationError: If the user id or submission is invalid
            InsufficientStockError: If any line cannot be reserved
            OrderRepositoryError: If persisting the order fails
        """
        if not user_id or not str(user_id).strip():
            raise OrderValidationError("User id is required")

        if isinstance(data, OrderCreateRequest):
            request = data
        else:
            try:
                request = OrderCreateRequest.model_validate(data)
            except ValidationError as e:
                logger.warning(
                    "Order input rejected",
                    user_id=user_id,
                    error_count=e.error_count(),
                )
                raise OrderValidationError(
                    "Invalid order input",
                    errors=_validation_errors(e),
                ) from e

        reservation = StockReservationService(
            self.session,
            mode=self.settings.stock_reservation_mode,
        )

        with log_performance(
            logger,
            "create_order",
            user_id=user_id,
            item_count=len(request.items),
        ):
            lines = await reservation.reserve(
                [
                    StockRequest(product_id=item.product_id, quantity=item.quantity)
                    for item in request.items
                ]
            )

            subtotal, shipping, total = calculate_totals(lines, self.settings)

            try:
                order = await self.repository.create_order(
                    user_id=user_id,
                    lines=lines,
                    shipping_address=request.shipping_address.model_dump(),
                    subtotal=subtotal,
                    shipping_amount=shipping,
                    total_amount=total,
                )
                await self.repository.clear_cart(user_id)
                await self.session.commit()
            except (OrderRepositoryError, SQLAlchemyError):
                await self.session.rollback()
                if reservation.mode == "compensating":
                    await reservation.release(lines)
                    await self.session.commit()
                raise

        logger.info(
            "Order created",
            order_id=str(order.id),
            user_id=user_id,
            item_count=len(lines),
            total=str(total),
        )

        return order

    async def update_order_status(
        self,
        order_id: uuid.UUID,
        status: StatusInput,
        changed_by: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Optional[Order]:
        """
        Move an order to a new status.

        Args:
            order_id: Order to update
            status: Target status
            changed_by: Account making the change
            reason: Optional reason recorded in the history

        Returns:
            Updated order, or None if the order does not exist

        Raises:
            OrderValidationError: If the status value is unknown
            InvalidTransitionError: If the order is in a terminal status
        """
        target = self._parse_status(status)
        if target is None:
            raise OrderValidationError("Status is required")

        order = await self.repository.get_order_by_id(order_id)
        if order is None:
            logger.warning("Status update for unknown order", order_id=str(order_id))
            return None

        await self.state_machine.apply_transition(
            order,
            target,
            changed_by=changed_by,
            reason=reason,
        )
        await self.session.commit()

        return order

    async def get_order_by_id(self, order_id: uuid.UUID) -> Optional[Order]:
        """Get order by ID, or None if it does not exist."""
        return await self.repository.get_order_by_id(order_id)

    async def require_order(self, order_id: uuid.UUID) -> Order:
        """
        Get order by ID.

        Raises:
            OrderNotFoundError: If the order does not exist
        """
        order = await self.repository.get_order_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def is_order_owner(self, order_id: uuid.UUID, user_id: str) -> bool:
        """Check whether ``user_id`` placed the order."""
        order = await self.repository.get_order_by_id(order_id)
        return order is not None and order.user_id == user_id

    async def get_orders_by_user(
        self,
        user_id: str,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        status: StatusInput = None,
    ) -> dict[str, Any]:
        """List one account's orders, newest first."""
        return await self._list(page, limit, status, user_id=user_id)

    async def get_orders_by_supplier(
        self,
        supplier_id: str,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        status: StatusInput = None,
    ) -> dict[str, Any]:
        """List orders containing at least one of the supplier's products."""
        return await self._list(page, limit, status, supplier_id=supplier_id)

    async def get_all_orders(
        self,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        status: StatusInput = None,
    ) -> dict[str, Any]:
        """List every order, newest first."""
        return await self._list(page, limit, status)

    async def get_supplier_total_sales(self, supplier_id: str) -> Decimal:
        """Revenue from the supplier's lines, excluding cancelled orders."""
        return await self.repository.get_supplier_total_sales(supplier_id)

    def normalize_pagination(
        self, page: Optional[int], limit: Optional[int]
    ) -> tuple[int, int]:
        """
        Clamp pagination parameters.

        ``page`` is raised to at least 1 and ``limit`` is clamped to
        ``[1, max_page_size]``. Missing values fall back to the first page and
        the default page size.
        """
        page = max(1, page if page is not None else 1)
        if limit is None:
            limit = self.settings.default_page_size
        limit = min(max(1, limit), self.settings.max_page_size)
        return page, limit

    async def _list(
        self,
        page: Optional[int],
        limit: Optional[int],
        status: StatusInput,
        user_id: Optional[str] = None,
        supplier_id: Optional[str] = None,
    ) -> dict[str, Any]:
        page, limit = self.normalize_pagination(page, limit)

        orders, total = await self.repository.list_orders(
            user_id=user_id,
            supplier_id=supplier_id,
            status=self._parse_status(status),
            skip=(page - 1) * limit,
            limit=limit,
        )

        return {
            "orders": list(orders),
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit),
        }

    @staticmethod
    def _parse_status(status: StatusInput) -> Optional[OrderStatus]:
        if status is None or isinstance(status, OrderStatus):
            return status
        try:
            return OrderStatus.from_string(status)
        except ValueError as e:
            raise OrderValidationError(str(e), status=status) from e
