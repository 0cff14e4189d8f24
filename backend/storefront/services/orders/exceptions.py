"""Exceptions raised by the order service.

Every error carries a human readable message plus keyword context that is
logged and, for client errors, returned in the API response body.
"""

from typing import Any


class OrderServiceError(Exception):
    """Base exception for order service errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class OrderValidationError(OrderServiceError):
    """Raised when order input is missing or malformed."""

    pass


class InsufficientStockError(OrderServiceError):
    """Raised when a line item cannot be reserved.

    Covers both a short stock count and a product that does not exist or is
    not orderable; ``available`` is 0 in the latter case.
    """

    def __init__(self, product_id: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}",
            product_id=product_id,
            requested=requested,
            available=available,
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class InvalidTransitionError(OrderServiceError):
    """Raised when a status change is not allowed from the current status."""

    def __init__(self, current_status: Any, target_status: Any, **context: Any):
        current = getattr(current_status, "value", current_status)
        target = getattr(target_status, "value", target_status)
        super().__init__(
            f"Invalid transition from {current} to {target}",
            current_status=current,
            target_status=target,
            **context,
        )
        self.current_status = current_status
        self.target_status = target_status


class NotFoundError(OrderServiceError):
    """Raised when a referenced entity does not exist."""

    pass


class OrderNotFoundError(NotFoundError):
    """Raised when an order id is unknown."""

    def __init__(self, order_id: Any):
        super().__init__("Order not found", order_id=str(order_id))
        self.order_id = order_id
