"""
Webhook idempotence ledger
Database-backed replay protection for processor webhook events
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
import hashlib
import json
import logging

from sqlalchemy import select, update, delete, func, case, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from storefront.models import WebhookEvent
from storefront.models.base import utcnow
from .webhook_metrics import classify_event_type

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 2000


@dataclass
class IdempotenceResult:
    should_process: bool
    is_retry: bool
    event_record: Optional[WebhookEvent] = None


@dataclass
class WebhookStats:
    total: int
    processed: int
    failed: int
    pending: int
    avg_retry_count: float


@dataclass
class WebhookEventSummary:
    event_type: str
    category: str
    count: int
    success_count: int
    failed_count: int
    avg_retry_count: float
    last_processed_at: Optional[datetime]


def compute_payload_hash(payload: Any) -> str:
    """SHA-256 of the canonical JSON form of a payload"""
    if isinstance(payload, (bytes, bytearray)):
        data = bytes(payload)
    else:
        data = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str).encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def build_cleanup_statement(older_than_days: int):
    """DELETE for processed events created before the retention window"""
    cutoff = utcnow() - timedelta(days=older_than_days)
    return delete(WebhookEvent).where(
        WebhookEvent.processed.is_(True),
        WebhookEvent.created_at < cutoff,
    )


class WebhookLedger:
    """
    Record of every webhook event id seen

    Each operation runs in its own short transaction so ledger state
    survives a rolled-back order materialization.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def ensure_event_idempotence(
        self,
        event_id: str,
        event_type: str,
        payload: Optional[Any] = None
    ) -> IdempotenceResult:
        """
        Decide whether an event should be processed

        Insert-first: a new event id is recorded and processed. On a unique
        conflict the existing row is locked and inspected. A processed event
        is a replay; an unprocessed one is a retry and gets its retry count
        bumped. Store failures fail open.

        Args:
            event_id: Processor event id
            event_type: Processor event type
            payload: Event payload, hashed for forensics only

        Returns:
            IdempotenceResult
        """
        payload_hash = compute_payload_hash(payload) if payload is not None else None

        try:
            try:
                async with self.session_factory() as session:
                    async with session.begin():
                        record = WebhookEvent(
                            event_id=event_id,
                            event_type=event_type,
                            processed=False,
                            payload_hash=payload_hash,
                            retry_count=0,
                        )
                        session.add(record)
                logger.info(f"New webhook event recorded: {event_id} ({event_type})")
                return IdempotenceResult(should_process=True, is_retry=False, event_record=record)
            except IntegrityError:
                logger.info(f"Webhook event {event_id} already recorded, checking status")

            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        select(WebhookEvent)
                        .where(WebhookEvent.event_id == event_id)
                        .with_for_update()
                    )
                    existing = result.scalar_one_or_none()

                    if existing is None:
                        logger.warning(f"Webhook event {event_id} disappeared after conflict, processing")
                        return IdempotenceResult(should_process=True, is_retry=False)

                    if existing.processed:
                        logger.info(f"Webhook event {event_id} already processed, skipping replay")
                        return IdempotenceResult(should_process=False, is_retry=True, event_record=existing)

                    existing.retry_count = (existing.retry_count or 0) + 1
                    if existing.payload_hash is None:
                        existing.payload_hash = payload_hash

                logger.info(f"Retrying webhook event {event_id} (retry #{existing.retry_count})")
                return IdempotenceResult(should_process=True, is_retry=True, event_record=existing)

        except Exception as e:
            logger.warning(
                f"Webhook ledger unavailable for event {event_id}, "
                f"processing without replay protection: {str(e)}"
            )
            return IdempotenceResult(should_process=True, is_retry=False)

    async def mark_event_processed(
        self,
        event_id: str,
        success: bool = True,
        error: Optional[str] = None
    ) -> None:
        """
        Record the outcome of processing an event

        A failure never downgrades an already processed record. Errors are
        logged, not raised.
        """
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    if success:
                        stmt = (
                            update(WebhookEvent)
                            .where(WebhookEvent.event_id == event_id)
                            .values(processed=True, processed_at=utcnow(), last_error=None)
                        )
                    else:
                        stmt = (
                            update(WebhookEvent)
                            .where(
                                WebhookEvent.event_id == event_id,
                                WebhookEvent.processed.is_(False),
                            )
                            .values(last_error=(error or "Unknown error")[:MAX_ERROR_LENGTH])
                        )
                    result = await session.execute(stmt)

            if result.rowcount == 0:
                logger.warning(f"No webhook event updated for {event_id} (success={success})")
        except Exception as e:
            logger.error(f"Failed to mark webhook event {event_id} as processed: {str(e)}")

    async def get_webhook_stats(self) -> WebhookStats:
        """Ledger totals for monitoring"""
        async with self.session_factory() as session:
            result = await session.execute(
                select(
                    func.count(WebhookEvent.id),
                    func.sum(case((WebhookEvent.processed.is_(True), 1), else_=0)),
                    func.sum(case(
                        (and_(WebhookEvent.processed.is_(False), WebhookEvent.retry_count > 0), 1),
                        else_=0
                    )),
                    func.avg(WebhookEvent.retry_count),
                )
            )
            total, processed, failed, avg_retry = result.one()

        total = int(total or 0)
        processed = int(processed or 0)
        failed = int(failed or 0)
        return WebhookStats(
            total=total,
            processed=processed,
            failed=failed,
            pending=total - processed - failed,
            avg_retry_count=round(float(avg_retry or 0), 2),
        )

    async def cleanup_old_events(self, older_than_days: int = 30) -> int:
        """
        Delete processed events older than the retention window

        Returns:
            Number of deleted events
        """
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(build_cleanup_statement(older_than_days))
        deleted = result.rowcount or 0
        logger.info(f"Cleaned up {deleted} webhook events older than {older_than_days} days")
        return deleted

    async def get_event_summary(self) -> List[WebhookEventSummary]:
        """Per event type counters"""
        async with self.session_factory() as session:
            result = await session.execute(
                select(
                    WebhookEvent.event_type,
                    func.count(WebhookEvent.id),
                    func.sum(case((WebhookEvent.processed.is_(True), 1), else_=0)),
                    func.sum(case(
                        (and_(WebhookEvent.processed.is_(False), WebhookEvent.last_error.is_not(None)), 1),
                        else_=0
                    )),
                    func.avg(WebhookEvent.retry_count),
                    func.max(WebhookEvent.processed_at),
                )
                .group_by(WebhookEvent.event_type)
                .order_by(WebhookEvent.event_type)
            )
            rows = result.all()

        return [
            WebhookEventSummary(
                event_type=event_type,
                category=classify_event_type(event_type),
                count=int(count or 0),
                success_count=int(success or 0),
                failed_count=int(failed or 0),
                avg_retry_count=round(float(avg_retry or 0), 2),
                last_processed_at=last_processed,
            )
            for event_type, count, success, failed, avg_retry, last_processed in rows
        ]
