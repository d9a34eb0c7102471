"""
Checkout schemas for request/response validation
"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Any, Dict, Literal, Optional
from decimal import Decimal
import uuid


class BillingAddress(BaseModel):
    line1: str = Field(..., min_length=1, max_length=500)
    line2: Optional[str] = Field(None, max_length=500)
    city: str = Field(..., min_length=1, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=2, max_length=2)

    @field_validator("country")
    @classmethod
    def upper_country(cls, v: str) -> str:
        return v.upper()


class CreatePaymentIntentRequest(BaseModel):
    """Schema for starting a payment for a cart"""
    cart_id: uuid.UUID
    email: EmailStr
    billing_address: BillingAddress
    save_address: bool = False
    shipping_method: Literal["standard", "express"] = "standard"


class PaymentIntentResponse(BaseModel):
    """Razorpay order details for the client-side checkout"""
    payment_intent_id: str
    key_id: str
    amount: Decimal
    amount_minor: int
    currency: str
    reused: bool = False
    breakdown: Dict[str, Any]

    class Config:
        json_schema_extra = {
            "example": {
                "payment_intent_id": "order_NkVbq1Zb3bqYk2",
                "key_id": "rzp_test_xxxxxxxx",
                "amount": "115.00",
                "amount_minor": 11500,
                "currency": "CAD",
                "reused": False,
                "breakdown": {},
            }
        }
