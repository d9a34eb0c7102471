"""
Checkout API routes
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from storefront.core.database import get_db
from storefront.core.security import get_current_user_id
from storefront.api.v1.payments.razorpay_client import RazorpayClient, get_razorpay_client
from .schemas import CreatePaymentIntentRequest, PaymentIntentResponse
from .services import CheckoutService

router = APIRouter()


@router.post(
    "/create-payment-intent",
    response_model=PaymentIntentResponse,
    status_code=status.HTTP_200_OK,
    summary="Create payment intent",
    description="Price the cart server-side and create a Razorpay order for it"
)
async def create_payment_intent(
    data: CreatePaymentIntentRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    razorpay_client: RazorpayClient = Depends(get_razorpay_client),
    db: AsyncSession = Depends(get_db)
):
    """Create payment intent"""
    service = CheckoutService(db, razorpay_client)
    result = await service.create_payment_intent(user_id=user_id, data=data)
    return PaymentIntentResponse(**result)
