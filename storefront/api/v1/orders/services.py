"""
Order service layer
Read access to materialized orders and admin status changes
"""

from typing import Any, Dict, Optional
import logging
import uuid

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.core.exceptions import BadRequestException, ForbiddenException, NotFoundException
from storefront.models import Order, OrderStatus
from .state_machine import OrderStateMachine

logger = logging.getLogger(__name__)


class OrderService:
    """Order management service"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.state_machine = OrderStateMachine()

    async def get_order(
        self,
        order_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None
    ) -> Order:
        """
        Get order details

        Args:
            order_id: Order ID
            user_id: Owner to enforce; None skips the ownership check (admins)

        Returns:
            Order with items and payment

        Raises:
            NotFoundException: If order not found
            ForbiddenException: If the order belongs to another user
        """
        result = await self.db.execute(
            select(Order)
            .options(
                selectinload(Order.items),
                selectinload(Order.payment)
            )
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()

        if not order:
            raise NotFoundException("Order not found")

        if user_id and order.user_id != user_id:
            logger.warning(f"User {user_id} attempted to read order {order_id} owned by {order.user_id}")
            raise ForbiddenException("You can only access your own orders")

        return order

    async def list_orders(
        self,
        user_id: Optional[uuid.UUID] = None,
        status: Optional[OrderStatus] = None,
        limit: int = 20,
        offset: int = 0
    ) -> Dict[str, Any]:
        """
        List orders, newest first

        Args:
            user_id: Restrict to one owner; None lists every order (admins)
            status: Optional status filter
            limit: Page size
            offset: Rows to skip

        Returns:
            Offset-paginated order list
        """
        query = select(Order)
        if user_id:
            query = query.where(Order.user_id == user_id)
        if status:
            query = query.where(Order.status == status)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))

        result = await self.db.execute(
            query
            .options(
                selectinload(Order.items),
                selectinload(Order.payment)
            )
            .order_by(Order.created_at.desc(), Order.id)
            .offset(offset)
            .limit(limit)
        )

        return {
            "items": result.scalars().all(),
            "total": total or 0,
            "limit": limit,
            "offset": offset,
        }

    async def update_order_status(
        self,
        order_id: uuid.UUID,
        new_status: OrderStatus,
        admin_id: Optional[str] = None
    ) -> Order:
        """
        Update order status

        Raises:
            NotFoundException: If order not found
            BadRequestException: If transition not allowed
        """
        order = await self.get_order(order_id)

        if not self.state_machine.can_transition(order.status, new_status):
            raise BadRequestException(
                f"Cannot transition from {order.status.value} to {new_status.value}",
                error_code="INVALID_STATUS_TRANSITION"
            )

        previous = order.status
        order.status = new_status
        await self.db.flush()

        logger.info(f"Order {order_id} moved from {previous.value} to {new_status.value} by admin {admin_id}")
        return await self.get_order(order_id)
