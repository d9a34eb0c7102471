# Storefront monitoring configuration
# Prometheus metrics and logging setup

import logging
import logging.handlers
import os
import time
from fastapi import FastAPI, Request, Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

from .config import settings

# HTTP metrics
request_count = Counter('http_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'status'])
request_duration = Histogram('http_request_duration_seconds', 'HTTP request duration', ['method', 'endpoint'])

# Payment integrity metrics
webhook_events_total = Counter(
    'storefront_webhook_events_total',
    'Webhook events by type and outcome',
    ['event_type', 'outcome']
)
payment_security_alerts_total = Counter(
    'storefront_payment_security_alerts_total',
    'Payment security alerts emitted',
    ['alert_type', 'severity']
)


def setup_logging():
    """Configure logging for the application"""

    log_level = settings.LOG_LEVEL
    log_file = settings.LOG_FILE

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers = [console_handler]

    # File handler with rotation
    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        handlers=handlers
    )

    # Silence noisy loggers in production
    if settings.ENVIRONMENT == "production":
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def setup_monitoring_middleware(app: FastAPI):
    """Add monitoring middleware to track metrics"""

    @app.middleware("http")
    async def monitor_requests(request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        process_time = time.time() - start_time
        endpoint = request.url.path

        request_count.labels(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code
        ).inc()

        request_duration.labels(
            method=request.method,
            endpoint=endpoint
        ).observe(process_time)

        response.headers["X-Process-Time"] = str(process_time)

        return response


def setup_metrics_endpoint(app: FastAPI):
    """Expose Prometheus metrics"""

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
