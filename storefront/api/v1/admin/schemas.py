"""
Admin schemas
"""

from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class WebhookStatsResponse(BaseModel):
    total: int
    processed: int
    failed: int
    pending: int
    avg_retry_count: float

    class Config:
        from_attributes = True


class WebhookEventSummaryResponse(BaseModel):
    event_type: str
    category: str
    count: int
    success_count: int
    failed_count: int
    avg_retry_count: float
    last_processed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WebhookCleanupResponse(BaseModel):
    deleted: int
    older_than_days: int
