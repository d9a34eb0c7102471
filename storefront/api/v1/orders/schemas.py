"""
Order schemas for request/response validation
"""

from pydantic import BaseModel
from typing import Optional, List, Dict, Any
from datetime import datetime
from decimal import Decimal
import uuid

from storefront.models import OrderStatus, PaymentStatus


class OrderItemResponse(BaseModel):
    """Schema for order item response"""
    id: uuid.UUID
    variant_id: uuid.UUID
    quantity: int
    price_snapshot: Decimal
    currency: str
    product_snapshot: Dict[str, Any]

    class Config:
        from_attributes = True


class OrderPaymentResponse(BaseModel):
    id: uuid.UUID
    amount: Decimal
    currency: str
    method: Optional[str]
    status: PaymentStatus
    gateway_payment_id: Optional[str]
    processed_at: Optional[datetime]

    class Config:
        from_attributes = True
        use_enum_values = True


class OrderResponse(BaseModel):
    """Schema for order response"""
    id: uuid.UUID
    user_id: uuid.UUID
    status: OrderStatus

    # Amounts
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    currency: str

    gateway_order_id: str

    # Addresses
    shipping_address: Optional[Dict[str, Any]]
    billing_address: Optional[Dict[str, Any]]
    shipping_method: str

    created_at: datetime
    updated_at: datetime

    # Related data
    items: List[OrderItemResponse]
    payment: Optional[OrderPaymentResponse] = None

    class Config:
        from_attributes = True
        use_enum_values = True


class OrderListResponse(BaseModel):
    """Schema for offset-paginated order list"""
    items: List[OrderResponse]
    total: int
    limit: int
    offset: int


class OrderStatusUpdate(BaseModel):
    """Schema for an admin status change"""
    status: OrderStatus
