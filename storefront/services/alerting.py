"""
Payment security alerts
Structured JSON records on the security logger plus a Prometheus counter
"""

from typing import Any, Dict, Optional
import json
import logging

from storefront.core.monitoring import payment_security_alerts_total
from storefront.models.base import utcnow

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("storefront.security")

SEVERITY_CRITICAL = "CRITICAL"
SEVERITY_HIGH = "HIGH"


def emit_security_alert(
    alert_type: str,
    data: Optional[Dict[str, Any]] = None,
    severity: str = SEVERITY_HIGH,
) -> Optional[Dict[str, Any]]:
    """
    Emit a payment security alert

    Delivery is fire-and-forget: a failing sink is logged and never
    propagates to the caller.

    Args:
        alert_type: Short type such as "AMOUNT_MISMATCH"
        data: Alert context
        severity: CRITICAL, HIGH or MEDIUM

    Returns:
        The alert record, or None when delivery failed
    """
    try:
        alert = {
            "type": f"PAYMENT_SECURITY_{alert_type}",
            "severity": severity,
            "data": data or {},
            "timestamp": utcnow().isoformat(),
        }
        security_logger.error(json.dumps(alert, default=str))
        payment_security_alerts_total.labels(alert_type=alert_type, severity=severity).inc()
        return alert
    except Exception as e:
        logger.error(f"Failed to emit security alert {alert_type}: {str(e)}")
        return None
