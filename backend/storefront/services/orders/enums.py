"""Order status enum and transition rules for the order lifecycle.

The canonical lifecycle is::

    pending -> confirmed -> shipped -> delivered
    pending | confirmed | shipped -> cancelled

``delivered`` and ``cancelled`` are terminal. Outside of terminal lock-out no
ordering is enforced, so skips such as ``pending -> shipped`` are accepted.
"""

from enum import Enum


class OrderStatus(str, Enum):
    """Order lifecycle status."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @classmethod
    def from_string(cls, value: str) -> "OrderStatus":
        """Convert string to OrderStatus enum.

        Raises:
            ValueError: If value is not a valid status
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid_values = ", ".join(s.value for s in cls)
            raise ValueError(
                f"Invalid order status: {value}. Valid values are: {valid_values}"
            ) from None

    def is_terminal(self) -> bool:
        """Check if no further transitions are allowed from this status."""
        return self in TERMINAL_ORDER_STATUSES

    def can_cancel(self) -> bool:
        """Check if the order can still be cancelled."""
        return not self.is_terminal()


TERMINAL_ORDER_STATUSES: frozenset[OrderStatus] = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
)


def get_allowed_order_transitions(current: OrderStatus) -> frozenset[OrderStatus]:
    """Get the statuses reachable from ``current``."""
    if current.is_terminal():
        return frozenset()
    return frozenset(OrderStatus)


def validate_order_status_transition(
    current: OrderStatus, target: OrderStatus
) -> bool:
    """Check whether ``current -> target`` is permitted."""
    return target in get_allowed_order_transitions(current)
