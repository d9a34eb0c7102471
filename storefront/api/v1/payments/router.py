"""
Payment API routes
"""

from fastapi import APIRouter, Depends, Header, Request, status
from sqlalchemy.ext.asyncio import async_sessionmaker
from typing import Optional
import hashlib
import json
import logging

from storefront.core.database import get_session_factory
from storefront.core.exceptions import (
    BadRequestException,
    InternalServerException,
    WebhookSignatureException,
)
from .razorpay_client import RazorpayClient, get_razorpay_client
from .webhooks import WebhookProcessor

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/webhook",
    status_code=status.HTTP_200_OK,
    summary="Payment webhook",
    description="Handle Razorpay webhooks"
)
async def payment_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    x_razorpay_event_id: Optional[str] = Header(None),
    razorpay_client: RazorpayClient = Depends(get_razorpay_client),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Handle payment gateway webhook"""
    # Signature covers the raw bytes, so read them before any parsing
    body = await request.body()

    if not razorpay_client.webhook_secret:
        logger.error("RAZORPAY_WEBHOOK_SECRET is not configured")
        raise InternalServerException("Webhook endpoint not configured")

    if not x_razorpay_signature:
        logger.warning("Webhook rejected: missing signature")
        raise WebhookSignatureException("Missing webhook signature")

    if not razorpay_client.verify_webhook_signature(body, x_razorpay_signature):
        logger.warning("Webhook rejected: invalid signature")
        raise WebhookSignatureException()

    try:
        event = json.loads(body)
    except ValueError:
        raise BadRequestException("Invalid webhook payload", error_code="INVALID_WEBHOOK_PAYLOAD")
    if not isinstance(event, dict):
        raise BadRequestException("Invalid webhook payload", error_code="INVALID_WEBHOOK_PAYLOAD")

    # Byte-identical redeliveries without an event id header stay idempotent
    event_id = x_razorpay_event_id or f"body_{hashlib.sha256(body).hexdigest()}"

    outcome = await WebhookProcessor(session_factory).process(event_id, event)

    return {
        "status": outcome.status,
        "event_id": event_id,
        "event_type": outcome.event_type,
    }
