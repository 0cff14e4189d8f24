"""
Order API endpoints.

Order placement is open to every authenticated account, guests included.
Buyers read their own orders, suppliers read orders containing their
products, and admins read everything and drive status changes.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Request, status

from storefront.api.deps import (
    CurrentAdmin,
    CurrentPrincipal,
    CurrentSupplier,
    OrderServiceDep,
)
from storefront.core.logging import get_logger
from storefront.core.rate_limit import limiter, order_rate_limit
from storefront.schemas.orders import (
    OrderCreateRequest,
    OrderDetailResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    SupplierSalesResponse,
)
from storefront.services.orders.exceptions import (
    InsufficientStockError,
    InvalidTransitionError,
    OrderValidationError,
)

logger = get_logger(__name__)

router = APIRouter()


def _to_list_response(result: dict) -> OrderListResponse:
    return OrderListResponse(
        orders=[OrderResponse.model_validate(order) for order in result["orders"]],
        total=result["total"],
        page=result["page"],
        limit=result["limit"],
        total_pages=result["total_pages"],
    )


@router.post(
    "/",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Place an order",
    description="Reserve stock for every line and create a pending order",
)
@limiter.limit(order_rate_limit)
async def create_order(
    request: Request,
    payload: OrderCreateRequest,
    principal: CurrentPrincipal,
    service: OrderServiceDep,
) -> OrderResponse:
    """
    Place an order for the authenticated account.

    Raises:
        HTTPException: 400 if validation fails, 409 if stock is insufficient
    """
    logger.info(
        "Creating order",
        user_id=principal.user_id,
        role=principal.role.value,
        item_count=len(payload.items),
    )

    try:
        order = await service.create_order(principal.user_id, payload)
    except OrderValidationError as e:
        logger.warning(
            "Order validation failed",
            user_id=principal.user_id,
            error=e.message,
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": e.message, **e.context},
        ) from e
    except InsufficientStockError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": e.message, **e.context},
        ) from e

    return OrderResponse.model_validate(order)


@router.get(
    "/me",
    response_model=OrderListResponse,
    summary="List my orders",
)
async def list_my_orders(
    principal: CurrentPrincipal,
    service: OrderServiceDep,
    page: int = Query(1, description="Page number, values below 1 are raised to 1"),
    limit: Optional[int] = Query(None, description="Page size, clamped to [1, 100]"),
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
) -> OrderListResponse:
    """List the caller's orders, newest first."""
    try:
        result = await service.get_orders_by_user(
            principal.user_id, page=page, limit=limit, status=status_filter
        )
    except OrderValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": e.message, **e.context},
        ) from e

    return _to_list_response(result)


@router.get(
    "/supplier",
    response_model=OrderListResponse,
    summary="List orders for my products",
)
async def list_supplier_orders(
    principal: CurrentSupplier,
    service: OrderServiceDep,
    page: int = Query(1, description="Page number, values below 1 are raised to 1"),
    limit: Optional[int] = Query(None, description="Page size, clamped to [1, 100]"),
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
) -> OrderListResponse:
    """List orders that contain at least one of the supplier's products."""
    try:
        result = await service.get_orders_by_supplier(
            principal.user_id, page=page, limit=limit, status=status_filter
        )
    except OrderValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": e.message, **e.context},
        ) from e

    return _to_list_response(result)


@router.get(
    "/supplier/sales",
    response_model=SupplierSalesResponse,
    summary="Total sales of my products",
)
async def get_supplier_sales(
    principal: CurrentSupplier,
    service: OrderServiceDep,
) -> SupplierSalesResponse:
    """Revenue from the supplier's lines, cancelled orders excluded."""
    total_sales = await service.get_supplier_total_sales(principal.user_id)
    return SupplierSalesResponse(supplier_id=principal.user_id, total_sales=total_sales)


@router.get(
    "/",
    response_model=OrderListResponse,
    summary="List all orders",
)
async def list_all_orders(
    principal: CurrentAdmin,
    service: OrderServiceDep,
    page: int = Query(1, description="Page number, values below 1 are raised to 1"),
    limit: Optional[int] = Query(None, description="Page size, clamped to [1, 100]"),
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
) -> OrderListResponse:
    """List every order, newest first."""
    try:
        result = await service.get_all_orders(page=page, limit=limit, status=status_filter)
    except OrderValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": e.message, **e.context},
        ) from e

    return _to_list_response(result)


@router.get(
    "/{order_id}",
    response_model=OrderDetailResponse,
    summary="Get order details",
)
async def get_order(
    order_id: UUID,
    principal: CurrentPrincipal,
    service: OrderServiceDep,
) -> OrderDetailResponse:
    """
    Get one order with its status history.

    Raises:
        HTTPException: 404 if the order does not exist, 403 if the caller
            neither owns it nor is an admin
    """
    order = await service.get_order_by_id(order_id)

    if order is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found",
        )

    if order.user_id != principal.user_id and not principal.is_admin:
        logger.warning(
            "Unauthorized order access attempt",
            order_id=str(order_id),
            user_id=principal.user_id,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to access this order",
        )

    return OrderDetailResponse.model_validate(order)


@router.patch(
    "/{order_id}/status",
    response_model=OrderDetailResponse,
    summary="Update order status",
    description="Move an order to a new status; delivered and cancelled orders are locked",
)
async def update_order_status(
    order_id: UUID,
    payload: OrderStatusUpdate,
    principal: CurrentAdmin,
    service: OrderServiceDep,
) -> OrderDetailResponse:
    """
    Change an order's status.

    Raises:
        HTTPException: 404 if the order does not exist, 409 if the order is
            in a terminal status
    """
    logger.info(
        "Updating order status",
        order_id=str(order_id),
        user_id=principal.user_id,
        new_status=payload.status.value,
    )

    try:
        order = await service.update_order_status(
            order_id,
            payload.status,
            changed_by=principal.user_id,
            reason=payload.reason,
        )
    except InvalidTransitionError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": e.message, **e.context},
        ) from e

    if order is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found",
        )

    return OrderDetailResponse.model_validate(order)
