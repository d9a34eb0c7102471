"""
Order materialization
Turns a validated payment into an order in a single transaction
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional
import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from storefront.core.config import get_settings
from storefront.core.exceptions import (
    StorefrontException,
    BadRequestException,
    CartAlreadyConvertedException,
    EmptyOrMissingCartException,
    InventoryConsistencyException,
    OrderMaterializationException,
)
from storefront.models import (
    Cart,
    CartItem,
    CartStatus,
    Order,
    OrderItem,
    OrderStatus,
    Payment,
    PaymentStatus,
    Product,
    ProductVariant,
)
from storefront.models.base import utcnow
from .currency import from_minor_units
from .pricing import CartCalculation

logger = logging.getLogger(__name__)


@dataclass
class MaterializationRequest:
    event_id: str
    cart_id: uuid.UUID
    user_id: uuid.UUID
    gateway_order_id: str
    gateway_payment_id: str
    amount_minor: int
    currency: str
    shipping_address: Optional[Dict[str, Any]] = None
    billing_address: Optional[Dict[str, Any]] = None
    shipping_method: str = "standard"
    payment_method: str = "razorpay"
    calculation: Optional[CartCalculation] = None
    payment_metadata: Dict[str, Any] = field(default_factory=dict)


class OrderMaterializer:
    """Create order, order items, stock decrements, payment and cart flip atomically"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory
        self.settings = get_settings()

    async def materialize(self, request: MaterializationRequest) -> Order:
        """
        Materialize an order from a validated payment

        All steps share one transaction; any failure rolls everything back.

        Args:
            request: Validated payment details

        Returns:
            The created Order

        Raises:
            EmptyOrMissingCartException: Cart vanished or has no items
            CartAlreadyConvertedException: Cart is no longer ACTIVE
            InventoryConsistencyException: Stock dropped below a line quantity
            OrderMaterializationException: Any other failure
        """
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    cart = await self._lock_cart(session, request.cart_id)

                    if cart is None:
                        raise EmptyOrMissingCartException(f"Cart {request.cart_id} not found")
                    if cart.status != CartStatus.ACTIVE:
                        raise CartAlreadyConvertedException(cart.id)
                    if not cart.items:
                        raise EmptyOrMissingCartException(f"Cart {request.cart_id} is empty")
                    if cart.user_id != request.user_id:
                        raise BadRequestException(
                            "Cart owner does not match payment",
                            error_code="CART_OWNER_MISMATCH"
                        )

                    order = self._build_order(cart, request)
                    session.add(order)
                    await session.flush()

                    for cart_item in cart.items:
                        await self._add_order_item(session, order, cart_item)

                    session.add(Payment(
                        order_id=order.id,
                        amount=order.total_amount,
                        currency=order.currency,
                        method=request.payment_method,
                        status=PaymentStatus.COMPLETED,
                        gateway_payment_id=request.gateway_payment_id,
                        gateway_order_id=request.gateway_order_id,
                        processed_at=utcnow(),
                        payment_metadata={
                            "event_id": request.event_id,
                            "cart_id": str(cart.id),
                            "amount_minor": request.amount_minor,
                            **request.payment_metadata,
                        },
                    ))

                    result = await session.execute(
                        update(Cart)
                        .where(Cart.id == cart.id, Cart.status == CartStatus.ACTIVE)
                        .values(status=CartStatus.CONVERTED, updated_at=utcnow())
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 0:
                        raise CartAlreadyConvertedException(cart.id)

            logger.info(
                f"Order {order.id} created from cart {request.cart_id} "
                f"for payment {request.gateway_payment_id} (event {request.event_id})"
            )
            return order

        except StorefrontException as e:
            logger.error(
                f"Order materialization rolled back for event {request.event_id}, "
                f"cart {request.cart_id}: {e.detail}"
            )
            raise
        except Exception as e:
            logger.exception(
                f"Order materialization failed for event {request.event_id}, cart {request.cart_id}"
            )
            raise OrderMaterializationException(f"Order creation failed: {type(e).__name__}") from e

    async def _lock_cart(self, session, cart_id: uuid.UUID) -> Optional[Cart]:
        result = await session.execute(
            select(Cart)
            .options(
                selectinload(Cart.items)
                .selectinload(CartItem.variant)
                .selectinload(ProductVariant.product)
                .selectinload(Product.translations)
            )
            .where(Cart.id == cart_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    def _build_order(self, cart: Cart, request: MaterializationRequest) -> Order:
        currency = request.currency.upper()
        calculation = request.calculation
        if calculation is not None:
            subtotal = calculation.subtotal
            tax_amount = calculation.taxes
            shipping_amount = calculation.shipping
            discount_amount = calculation.discount
        else:
            subtotal = sum(
                (Decimal(item.variant.price) * item.quantity for item in cart.items),
                Decimal("0.00")
            )
            tax_amount = shipping_amount = discount_amount = Decimal("0.00")

        return Order(
            id=uuid.uuid4(),
            user_id=cart.user_id,
            source_cart_id=cart.id,
            status=OrderStatus.PAID,
            subtotal=subtotal,
            tax_amount=tax_amount,
            shipping_amount=shipping_amount,
            discount_amount=discount_amount,
            total_amount=from_minor_units(request.amount_minor, currency),
            currency=currency,
            gateway_order_id=request.gateway_order_id,
            shipping_address=request.shipping_address,
            billing_address=request.billing_address or request.shipping_address,
            shipping_method=request.shipping_method,
        )

    async def _add_order_item(self, session, order: Order, cart_item: CartItem) -> None:
        variant = cart_item.variant
        session.add(OrderItem(
            order_id=order.id,
            variant_id=variant.id,
            quantity=cart_item.quantity,
            price_snapshot=variant.price,
            currency=variant.currency,
            product_snapshot={
                "name": variant.product.display_name(self.settings.DEFAULT_LANGUAGE),
                "sku": variant.sku,
            },
        ))

        # Conditional decrement; never clamps to zero
        result = await session.execute(
            update(ProductVariant)
            .where(
                ProductVariant.id == variant.id,
                ProductVariant.stock >= cart_item.quantity,
            )
            .values(stock=ProductVariant.stock - cart_item.quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InventoryConsistencyException(variant.sku, cart_item.quantity)
