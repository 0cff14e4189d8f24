"""Order state machine with transition validation and history recording.

Terminal statuses (``delivered``, ``cancelled``) are locked. Every other
transition is accepted, including skips and same-status writes; stricter
sequencing is deliberately not inferred.

The lock-out is enforced twice: against the loaded order, and again by the
UPDATE itself, which only matches rows that are still non-terminal. A
concurrent update that finalized the order first therefore wins.
"""

from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.logging import get_logger
from storefront.database.base import utcnow
from storefront.database.models.order import Order, OrderStatusHistory
from storefront.services.orders.enums import (
    TERMINAL_ORDER_STATUSES,
    OrderStatus,
    get_allowed_order_transitions,
    validate_order_status_transition,
)
from storefront.services.orders.exceptions import InvalidTransitionError

logger = get_logger(__name__)


class OrderStateMachine:
    """State machine for managing order lifecycle transitions.

    Only ``status`` and ``updated_at`` are written on the order; each applied
    transition is also appended to its status history.
    """

    def __init__(self, session: AsyncSession):
        """Initialize state machine with database session.

        Args:
            session: Async session the order is attached to
        """
        self.session = session

    def validate_transition(self, order: Any, target_status: OrderStatus) -> None:
        """Validate that ``order`` may move to ``target_status``.

        Raises:
            InvalidTransitionError: If the order is in a terminal status
        """
        current_status = order.status

        if not validate_order_status_transition(current_status, target_status):
            logger.warning(
                "State transition rejected",
                order_id=str(order.id),
                current_status=current_status.value,
                target_status=target_status.value,
            )
            raise InvalidTransitionError(
                current_status,
                target_status,
                order_id=str(order.id),
                allowed_transitions=sorted(
                    s.value for s in get_allowed_order_transitions(current_status)
                ),
            )

    async def apply_transition(
        self,
        order: Any,
        target_status: OrderStatus,
        changed_by: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        """Apply a status transition and record it.

        The caller owns the transaction; changes are flushed, not committed.

        Args:
            order: Order to transition
            target_status: Status to move to
            changed_by: Account making the change
            reason: Optional free-text reason

        Raises:
            InvalidTransitionError: If the transition is not allowed, including
                when another update made the order terminal in the meantime
        """
        self.validate_transition(order, target_status)

        old_status = order.status
        changed_at = utcnow()

        if not await self._claim(order, target_status, changed_at):
            await self.session.refresh(order, attribute_names=["status"])
            logger.warning(
                "State transition lost to concurrent update",
                order_id=str(order.id),
                current_status=order.status.value,
                target_status=target_status.value,
            )
            raise InvalidTransitionError(
                order.status,
                target_status,
                order_id=str(order.id),
                allowed_transitions=sorted(
                    s.value for s in get_allowed_order_transitions(order.status)
                ),
            )

        order.status = target_status
        order.updated_at = changed_at
        order.status_history.append(
            OrderStatusHistory(
                from_status=old_status,
                to_status=target_status,
                changed_by=changed_by,
                reason=reason,
            )
        )

        await self.session.flush()

        logger.info(
            "State transition applied",
            order_id=str(order.id),
            transition=f"{old_status.value}->{target_status.value}",
            changed_by=changed_by,
        )

    async def _claim(self, order: Any, target_status: OrderStatus, changed_at) -> bool:
        """Write the new status only if the stored order is still non-terminal."""
        result = await self.session.execute(
            update(Order)
            .where(
                Order.id == order.id,
                Order.status.not_in(list(TERMINAL_ORDER_STATUSES)),
            )
            .values(status=target_status, updated_at=changed_at)
            .returning(Order.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    def get_allowed_transitions(self, order: Any) -> frozenset[OrderStatus]:
        """Get statuses reachable from the order's current status."""
        return get_allowed_order_transitions(order.status)

    def can_cancel(self, order: Any) -> bool:
        """Check if the order can still be cancelled."""
        return order.status.can_cancel()
