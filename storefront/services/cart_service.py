"""
Cart service layer
Lazy cart creation and atomic line upserts
"""

from typing import Optional
import logging
import uuid

from sqlalchemy import select, delete, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.core.exceptions import NotFoundException, BadRequestException, InternalServerException
from storefront.models import Cart, CartItem, CartStatus, Product, ProductVariant
from storefront.models.base import utcnow

logger = logging.getLogger(__name__)


class CartService:
    """Shopping cart service"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _insert(self, model):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(model)
        if dialect == "sqlite":
            return sqlite_insert(model)
        raise InternalServerException(f"Unsupported database dialect: {dialect}")

    async def get_active_cart(self, user_id: uuid.UUID) -> Optional[Cart]:
        """Return the user's ACTIVE cart with items, or None"""
        result = await self.db.execute(
            select(Cart)
            .options(
                selectinload(Cart.items)
                .selectinload(CartItem.variant)
                .selectinload(ProductVariant.product)
                .selectinload(Product.translations)
            )
            .where(Cart.user_id == user_id, Cart.status == CartStatus.ACTIVE)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_or_create_active_cart(self, user_id: uuid.UUID) -> Cart:
        """
        Get the user's ACTIVE cart, creating it on first use

        Concurrent first adds converge on one cart through the partial
        unique index on (user_id) WHERE status = 'ACTIVE'.
        """
        cart = await self.get_active_cart(user_id)
        if cart is not None:
            return cart

        now = utcnow()
        await self.db.execute(
            self._insert(Cart)
            .values(
                id=uuid.uuid4(),
                user_id=user_id,
                status=CartStatus.ACTIVE,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing()
        )
        cart = await self.get_active_cart(user_id)
        logger.info(f"Active cart {cart.id} ready for user {user_id}")
        return cart

    async def add_to_cart(self, user_id: uuid.UUID, variant_id: uuid.UUID, quantity: int = 1) -> Cart:
        """
        Add a variant to the user's cart

        Existing lines are incremented in a single upsert statement.
        Stock is checked at pricing time, not here.

        Args:
            user_id: Cart owner
            variant_id: Variant to add
            quantity: Quantity to add (> 0)

        Returns:
            Updated cart
        """
        if quantity <= 0:
            raise BadRequestException("Quantity must be positive", error_code="INVALID_QUANTITY")

        variant = await self.db.get(ProductVariant, variant_id)
        if variant is None:
            raise NotFoundException("Product variant not found")

        cart = await self.get_or_create_active_cart(user_id)
        now = utcnow()

        stmt = self._insert(CartItem).values(
            id=uuid.uuid4(),
            cart_id=cart.id,
            variant_id=variant_id,
            quantity=quantity,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[CartItem.cart_id, CartItem.variant_id],
            set_={
                "quantity": CartItem.quantity + stmt.excluded.quantity,
                "updated_at": now,
            },
        )
        await self.db.execute(stmt)

        return await self.get_active_cart(user_id)

    async def update_item_quantity(self, user_id: uuid.UUID, variant_id: uuid.UUID, quantity: int) -> Cart:
        """Set a line's quantity; zero removes the line"""
        if quantity < 0:
            raise BadRequestException("Quantity cannot be negative", error_code="INVALID_QUANTITY")
        if quantity == 0:
            return await self.remove_item(user_id, variant_id)

        cart = await self._require_active_cart(user_id)
        result = await self.db.execute(
            update(CartItem)
            .where(CartItem.cart_id == cart.id, CartItem.variant_id == variant_id)
            .values(quantity=quantity, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundException("Cart item not found")

        return await self.get_active_cart(user_id)

    async def remove_item(self, user_id: uuid.UUID, variant_id: uuid.UUID) -> Cart:
        """Remove a line from the cart"""
        cart = await self._require_active_cart(user_id)
        result = await self.db.execute(
            delete(CartItem)
            .where(CartItem.cart_id == cart.id, CartItem.variant_id == variant_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundException("Cart item not found")

        return await self.get_active_cart(user_id)

    async def _require_active_cart(self, user_id: uuid.UUID) -> Cart:
        cart = await self.get_active_cart(user_id)
        if cart is None:
            raise NotFoundException("Cart not found")
        return cart
