"""
Webhook event classification and counters
"""

from typing import FrozenSet
import enum
import logging

from storefront.core.monitoring import webhook_events_total

logger = logging.getLogger(__name__)

CATEGORY_CRITICAL = "critical"
CATEGORY_INFORMATIONAL = "informational"


class WebhookEventType(str, enum.Enum):
    """Razorpay events the storefront knows about"""
    ORDER_PAID = "order.paid"
    PAYMENT_FAILED = "payment.failed"
    PAYMENT_DISPUTE_CREATED = "payment.dispute.created"
    PAYMENT_AUTHORIZED = "payment.authorized"
    PAYMENT_CAPTURED = "payment.captured"
    ORDER_NOTIFICATION_DELIVERED = "order.notification.delivered"
    REFUND_CREATED = "refund.created"
    REFUND_PROCESSED = "refund.processed"
    REFUND_FAILED = "refund.failed"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str) -> "WebhookEventType":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


CRITICAL_EVENTS: FrozenSet[WebhookEventType] = frozenset({
    WebhookEventType.ORDER_PAID,
    WebhookEventType.PAYMENT_FAILED,
    WebhookEventType.PAYMENT_DISPUTE_CREATED,
})


def classify_event_type(event_type: str) -> str:
    """critical or informational; unknown types are informational"""
    if WebhookEventType.parse(event_type) in CRITICAL_EVENTS:
        return CATEGORY_CRITICAL
    return CATEGORY_INFORMATIONAL


def _label(event_type: str) -> str:
    # Bounded label set: unknown types share one series
    return WebhookEventType.parse(event_type).value


def record_attempt(event_type: str) -> None:
    webhook_events_total.labels(event_type=_label(event_type), outcome="attempted").inc()


def record_success(event_type: str) -> None:
    webhook_events_total.labels(event_type=_label(event_type), outcome="succeeded").inc()


def record_failure(event_type: str) -> None:
    webhook_events_total.labels(event_type=_label(event_type), outcome="failed").inc()
    if classify_event_type(event_type) == CATEGORY_CRITICAL:
        logger.error(f"Critical webhook event failed: {event_type}")


def record_duplicate(event_type: str) -> None:
    webhook_events_total.labels(event_type=_label(event_type), outcome="duplicate").inc()
