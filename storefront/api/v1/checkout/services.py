"""
Checkout service layer
Creates processor payment intents for server-priced carts
"""

from typing import Any, Dict
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from storefront.api.v1.payments.razorpay_client import RazorpayClient, build_order_notes
from storefront.core.exceptions import EmptyOrMissingCartException, ForbiddenException
from storefront.models import Address, Cart
from storefront.services.currency import to_minor_units
from storefront.services.pricing import PricingEngine
from .schemas import BillingAddress, CreatePaymentIntentRequest

logger = logging.getLogger(__name__)


class CheckoutService:
    """Checkout service"""

    def __init__(self, db: AsyncSession, razorpay_client: RazorpayClient):
        self.db = db
        self.razorpay = razorpay_client

    async def create_payment_intent(
        self,
        user_id: uuid.UUID,
        data: CreatePaymentIntentRequest
    ) -> Dict[str, Any]:
        """
        Create (or reuse) a Razorpay order for the user's cart

        The amount always comes from the pricing engine; nothing the client
        sends influences it.

        Args:
            user_id: Authenticated user
            data: Checkout request

        Returns:
            Payment intent details and price breakdown

        Raises:
            EmptyOrMissingCartException: Cart missing, converted or empty
            ForbiddenException: Cart belongs to another user
            InsufficientStockException: A line exceeds stock
            PaymentGatewayException: Razorpay call failed
        """
        cart = await self.db.get(Cart, data.cart_id)
        if cart is None:
            raise EmptyOrMissingCartException()
        if cart.user_id != user_id:
            logger.warning(f"User {user_id} attempted checkout of cart {cart.id} owned by {cart.user_id}")
            raise ForbiddenException("Cart does not belong to current user")

        address = data.billing_address.model_dump()
        calculation = await PricingEngine(self.db).calculate_cart_total(
            cart.id,
            shipping_address=address,
            shipping_method=data.shipping_method,
        )
        amount_minor = to_minor_units(calculation.total, calculation.currency)

        receipt = f"cart_{cart.id.hex}"
        order = await run_in_threadpool(
            self.razorpay.find_reusable_order,
            receipt, amount_minor, calculation.currency, str(cart.id), str(user_id)
        )
        reused = order is not None
        if reused:
            logger.info(f"Reusing Razorpay order {order['id']} for cart {cart.id}")
        else:
            notes = build_order_notes(
                cart_id=str(cart.id),
                user_id=str(user_id),
                email=data.email,
                shipping_method=data.shipping_method,
                calculation=calculation,
                address=address,
            )
            order = await run_in_threadpool(
                self.razorpay.create_order,
                amount_minor, calculation.currency, receipt, notes
            )
            logger.info(f"Created Razorpay order {order['id']} for cart {cart.id}: {amount_minor} {calculation.currency}")

        if data.save_address:
            await self._save_address(user_id, data.billing_address)

        return {
            "payment_intent_id": order["id"],
            "key_id": self.razorpay.key_id,
            "amount": calculation.total,
            "amount_minor": amount_minor,
            "currency": calculation.currency,
            "reused": reused,
            "breakdown": calculation.breakdown(),
        }

    async def _save_address(self, user_id: uuid.UUID, billing_address: BillingAddress) -> None:
        # Saving the address is best effort and never fails checkout
        try:
            self.db.add(Address(
                user_id=user_id,
                address_type="billing",
                **billing_address.model_dump(),
            ))
            await self.db.flush()
        except Exception as e:
            await self.db.rollback()
            logger.warning(f"Failed to save billing address for user {user_id}: {str(e)}")
