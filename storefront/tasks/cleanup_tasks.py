"""Cleanup and maintenance tasks"""

from celery.utils.log import get_task_logger
from typing import Optional

from storefront.core.celery_app import celery_app
from storefront.core.config import settings
from storefront.core.database import get_db_sync_context
from storefront.services.webhook_ledger import build_cleanup_statement

logger = get_task_logger(__name__)


@celery_app.task(name="cleanup_old_webhook_events")
def cleanup_old_webhook_events(days: Optional[int] = None):
    """Remove processed webhook events older than the retention window"""
    days = days or settings.WEBHOOK_EVENT_RETENTION_DAYS
    try:
        with get_db_sync_context() as db:
            result = db.execute(build_cleanup_statement(days))
            deleted_count = result.rowcount or 0

        logger.info(f"Deleted {deleted_count} webhook events older than {days} days")

        return {"deleted_count": deleted_count, "older_than_days": days}

    except Exception as e:
        logger.error(f"Error cleaning up webhook events: {str(e)}")
        raise
