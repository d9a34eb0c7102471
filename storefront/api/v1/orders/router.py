"""
Order API routes
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from storefront.core.database import get_db
from storefront.core.security import get_current_user, get_current_user_id, require_admin
from .schemas import OrderListResponse, OrderResponse, OrderStatusUpdate
from .services import OrderService

router = APIRouter()


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders",
    description="Get the current user's orders, newest first"
)
async def list_orders(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """List user orders"""
    result = await OrderService(db).list_orders(
        user_id=user_id,
        limit=limit,
        offset=offset
    )
    return OrderListResponse(
        items=[OrderResponse.model_validate(order) for order in result["items"]],
        total=result["total"],
        limit=result["limit"],
        offset=result["offset"],
    )


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order details",
    description="Get detailed information about a specific order"
)
async def get_order(
    order_id: uuid.UUID,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get order details"""
    owner = None if current_user.get("role") == "admin" else uuid.UUID(current_user["id"])
    order = await OrderService(db).get_order(order_id=order_id, user_id=owner)
    return OrderResponse.model_validate(order)


@router.patch(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Update order status",
    description="Update order status (Admin only)"
)
async def update_order_status(
    order_id: uuid.UUID,
    status_update: OrderStatusUpdate,
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Update order status"""
    order = await OrderService(db).update_order_status(
        order_id=order_id,
        new_status=status_update.status,
        admin_id=current_user.get("id")
    )
    return OrderResponse.model_validate(order)
