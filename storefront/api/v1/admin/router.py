"""
Admin routes for webhook ledger maintenance and order oversight
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from typing import List, Optional
import logging

from storefront.core.config import settings
from storefront.core.database import get_db, get_session_factory
from storefront.core.security import require_admin
from storefront.models import OrderStatus
from storefront.api.v1.orders.schemas import OrderListResponse, OrderResponse
from storefront.api.v1.orders.services import OrderService
from storefront.services.webhook_ledger import WebhookLedger
from .schemas import WebhookStatsResponse, WebhookEventSummaryResponse, WebhookCleanupResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/webhooks/stats", response_model=WebhookStatsResponse)
async def get_webhook_stats(
    current_user: dict = Depends(require_admin),
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """Webhook ledger totals"""
    stats = await WebhookLedger(session_factory).get_webhook_stats()
    return WebhookStatsResponse.model_validate(stats)


@router.get("/webhooks/summary", response_model=List[WebhookEventSummaryResponse])
async def get_webhook_summary(
    current_user: dict = Depends(require_admin),
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """Per event type webhook counters"""
    summary = await WebhookLedger(session_factory).get_event_summary()
    return [WebhookEventSummaryResponse.model_validate(row) for row in summary]


@router.delete("/webhooks/stats", response_model=WebhookCleanupResponse)
async def cleanup_webhook_events(
    days: Optional[int] = Query(None, ge=1, le=365),
    current_user: dict = Depends(require_admin),
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """Delete processed webhook events older than the given number of days"""
    days = days or settings.WEBHOOK_EVENT_RETENTION_DAYS
    deleted = await WebhookLedger(session_factory).cleanup_old_events(days)
    logger.info(f"Admin {current_user.get('id')} removed {deleted} webhook events older than {days} days")
    return WebhookCleanupResponse(deleted=deleted, older_than_days=days)


@router.get("/orders", response_model=OrderListResponse)
async def list_all_orders(
    status: Optional[OrderStatus] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """All orders across users, newest first"""
    result = await OrderService(db).list_orders(status=status, limit=limit, offset=offset)
    return OrderListResponse(
        items=[OrderResponse.model_validate(order) for order in result["items"]],
        total=result["total"],
        limit=result["limit"],
        offset=result["offset"],
    )
