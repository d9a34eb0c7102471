"""
Cart schemas for request/response validation
"""

from pydantic import BaseModel, Field
from typing import List
from decimal import Decimal
import uuid


class CartItemCreate(BaseModel):
    """Schema for adding item to cart"""
    variant_id: uuid.UUID
    quantity: int = Field(1, gt=0)


class CartItemUpdate(BaseModel):
    """Schema for updating cart item; zero removes the line"""
    quantity: int = Field(..., ge=0)


class CartItemResponse(BaseModel):
    variant_id: uuid.UUID
    sku: str
    name: str
    quantity: int
    unit_price: Decimal
    currency: str


class CartResponse(BaseModel):
    """Cart contents. Totals come from checkout pricing."""
    id: uuid.UUID
    status: str
    items: List[CartItemResponse]
    total_items: int
