"""
Stock reservation for order placement.

Each line item is reserved with one conditional UPDATE that decrements
``on_hand`` only while ``on_hand >= quantity`` and the product is active, and
returns the product's current name, supplier and selling price in the same
statement. Concurrent orders for the same product therefore serialize on the
database row; no application-level locking is involved.

Two modes make a multi-line reservation all-or-nothing:

- ``transaction``: decrements share the caller's transaction; a failed line
  rolls the whole transaction back.
- ``compensating``: each decrement is committed as it is made; a failed line
  triggers compensating increments for the lines already reserved.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Literal, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.logging import get_logger
from storefront.database.base import utcnow
from storefront.database.models.product import Product, ProductStatus
from storefront.services.orders.exceptions import InsufficientStockError

logger = get_logger(__name__)

ReservationMode = Literal["transaction", "compensating"]


@dataclass(frozen=True)
class StockRequest:
    """Units of one product to reserve."""

    product_id: uuid.UUID
    quantity: int


@dataclass(frozen=True)
class ReservedLine:
    """A successful decrement together with the product snapshot it returned."""

    product_id: uuid.UUID
    quantity: int
    product_name: str
    supplier_id: str
    unit_price: Decimal


class StockReservationService:
    """
    Reserves and releases product stock.

    Attributes:
        session: Session the UPDATE statements run on
        mode: ``transaction`` or ``compensating``
    """

    def __init__(self, session: AsyncSession, mode: ReservationMode = "transaction"):
        if mode not in ("transaction", "compensating"):
            raise ValueError(f"Unknown reservation mode: {mode}")
        self.session = session
        self.mode = mode

    async def reserve(self, requests: Sequence[StockRequest]) -> list[ReservedLine]:
        """
        Reserve stock for every request or for none of them.

        Rows are decremented in ``product_id`` order so that concurrent
        multi-line orders lock products in the same sequence.

        Args:
            requests: Lines to reserve, in order

        Returns:
            Reserved lines with price snapshots, in request order

        Raises:
            InsufficientStockError: If any line cannot be reserved. All
                decrements made by this call have been undone by then.
            SQLAlchemyError: If the database fails mid-reservation. Earlier
                decrements are undone where the database still allows it.
        """
        reserved: list[ReservedLine] = []
        by_position: dict[int, ReservedLine] = {}

        for position, request in sorted(
            enumerate(requests), key=lambda pair: pair[1].product_id
        ):
            try:
                line = await self.decrement(request.product_id, request.quantity)
                if self.mode == "compensating":
                    await self.session.commit()
            except InsufficientStockError:
                await self._undo(reserved)
                raise
            except SQLAlchemyError as e:
                logger.error(
                    "Stock reservation failed",
                    mode=self.mode,
                    product_id=str(request.product_id),
                    error=str(e),
                )
                await self._undo_after_failure(reserved)
                raise

            reserved.append(line)
            by_position[position] = line

        logger.info(
            "Stock reserved",
            mode=self.mode,
            line_count=len(reserved),
            units=sum(line.quantity for line in reserved),
        )

        return [by_position[position] for position in range(len(requests))]

    async def decrement(self, product_id: uuid.UUID, quantity: int) -> ReservedLine:
        """
        Atomically take ``quantity`` units of one product.

        Raises:
            InsufficientStockError: If the product is missing, not active, or
                has fewer than ``quantity`` units on hand
        """
        stmt = (
            update(Product)
            .where(
                Product.id == product_id,
                Product.status == ProductStatus.ACTIVE,
                Product.on_hand >= quantity,
            )
            .values(on_hand=Product.on_hand - quantity, updated_at=utcnow())
            .returning(Product.name, Product.supplier_id, Product.selling_price)
            .execution_options(synchronize_session=False)
        )

        result = await self.session.execute(stmt)
        row = result.one_or_none()

        if row is None:
            available = await self._available(product_id)
            logger.warning(
                "Stock decrement rejected",
                product_id=str(product_id),
                requested=quantity,
                available=available,
            )
            raise InsufficientStockError(str(product_id), quantity, available)

        return ReservedLine(
            product_id=product_id,
            quantity=quantity,
            product_name=row.name,
            supplier_id=row.supplier_id,
            unit_price=Decimal(row.selling_price),
        )

    async def release(self, lines: Sequence[ReservedLine]) -> None:
        """
        Return reserved units to stock.

        Increments are applied newest first, one statement per line.
        """
        for line in reversed(lines):
            await self.session.execute(
                update(Product)
                .where(Product.id == line.product_id)
                .values(on_hand=Product.on_hand + line.quantity, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )

        if lines:
            logger.info(
                "Stock released",
                line_count=len(lines),
                units=sum(line.quantity for line in lines),
            )

    async def _undo(self, reserved: Sequence[ReservedLine]) -> None:
        """Undo this call's decrements according to the reservation mode."""
        if self.mode == "transaction":
            await self.session.rollback()
            logger.info("Stock reservation rolled back", line_count=len(reserved))
            return

        await self.session.rollback()
        await self.release(reserved)
        await self.session.commit()
        logger.info("Stock reservation compensated", line_count=len(reserved))

    async def _undo_after_failure(self, reserved: Sequence[ReservedLine]) -> None:
        """Best-effort undo after a database error; the original error wins."""
        try:
            await self._undo(reserved)
        except SQLAlchemyError as e:
            logger.error(
                "Stock reservation undo failed",
                mode=self.mode,
                line_count=len(reserved),
                units=sum(line.quantity for line in reserved),
                error=str(e),
            )

    async def _available(self, product_id: uuid.UUID) -> int:
        """Orderable units for error reporting; 0 when not orderable."""
        result = await self.session.execute(
            select(Product.on_hand).where(
                Product.id == product_id,
                Product.status == ProductStatus.ACTIVE,
            )
        )
        return result.scalar_one_or_none() or 0
