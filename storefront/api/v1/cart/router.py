"""Cart API routes"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import uuid

from storefront.core.config import settings
from storefront.core.database import get_db
from storefront.core.security import get_current_user_id
from storefront.models import Cart
from storefront.services.cart_service import CartService
from .schemas import CartItemCreate, CartItemUpdate, CartItemResponse, CartResponse

router = APIRouter()


def _to_response(cart: Optional[Cart]) -> Optional[CartResponse]:
    if cart is None:
        return None
    items = [
        CartItemResponse(
            variant_id=item.variant_id,
            sku=item.variant.sku,
            name=item.variant.product.display_name(settings.DEFAULT_LANGUAGE),
            quantity=item.quantity,
            unit_price=item.variant.price,
            currency=item.variant.currency,
        )
        for item in cart.items
    ]
    return CartResponse(
        id=cart.id,
        status=cart.status.value,
        items=items,
        total_items=sum(item.quantity for item in items),
    )


@router.get("", response_model=Optional[CartResponse])
async def get_cart(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Get the active cart, or null when none exists yet"""
    cart = await CartService(db).get_active_cart(user_id)
    return _to_response(cart)


@router.post("/items", response_model=CartResponse)
async def add_to_cart(
    item_data: CartItemCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Add item to cart"""
    cart = await CartService(db).add_to_cart(user_id, item_data.variant_id, item_data.quantity)
    return _to_response(cart)


@router.put("/items/{variant_id}", response_model=CartResponse)
async def update_cart_item(
    variant_id: uuid.UUID,
    item_data: CartItemUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Update cart item quantity"""
    cart = await CartService(db).update_item_quantity(user_id, variant_id, item_data.quantity)
    return _to_response(cart)


@router.delete("/items/{variant_id}", response_model=CartResponse)
async def remove_cart_item(
    variant_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Remove item from cart"""
    cart = await CartService(db).remove_item(user_id, variant_id)
    return _to_response(cart)
