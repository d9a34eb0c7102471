"""
Webhook event ledger
Durable record of every processor event id for replay protection
"""

from sqlalchemy import Column, String, Boolean, Integer, Text, DateTime, Index

from .base import Base, TimestampedModel, UUIDModel


class WebhookEvent(Base, TimestampedModel, UUIDModel):
    """One row per processor event id"""

    __tablename__ = "webhook_events"

    event_id = Column(String(255), unique=True, nullable=False, index=True)
    event_type = Column(String(100), nullable=False, index=True)

    processed = Column(Boolean, default=False, nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    payload_hash = Column(String(64), nullable=True)  # SHA-256 hex
    retry_count = Column(Integer, default=0, nullable=False)
    last_error = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_webhook_events_processed_created", "processed", "created_at"),
    )
