"""
Payment webhook handlers
Ledger check, dispatch, validation, order materialization, metrics
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging
import uuid

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from storefront.core.exceptions import (
    BadRequestException,
    CartAlreadyConvertedException,
    OrderMaterializationException,
    PaymentValidationError,
)
from storefront.models import Order
from storefront.services.alerting import emit_security_alert, SEVERITY_CRITICAL
from storefront.services.order_materializer import MaterializationRequest, OrderMaterializer
from storefront.services.payment_validation import PaymentValidator, ValidationFailureKind
from storefront.services.webhook_ledger import WebhookLedger
from storefront.services.webhook_metrics import (
    WebhookEventType,
    record_attempt,
    record_duplicate,
    record_failure,
    record_success,
)
from .razorpay_client import address_from_notes

logger = logging.getLogger(__name__)

STATUS_RECEIVED = "received"
STATUS_DUPLICATE = "duplicate"
STATUS_FAILED = "failed"


@dataclass
class WebhookOutcome:
    status: str
    event_type: str
    detail: Optional[str] = None


def _entity(payload: Dict[str, Any], name: str) -> Dict[str, Any]:
    return ((payload or {}).get(name) or {}).get("entity") or {}


def _notes(*entities: Dict[str, Any]) -> Dict[str, Any]:
    # Razorpay serializes empty notes as a list
    for entity in entities:
        notes = entity.get("notes")
        if isinstance(notes, dict) and notes:
            return notes
    return {}


def _parse_uuid(value: Any, name: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise BadRequestException(f"Event notes missing valid {name}", error_code="INVALID_WEBHOOK_PAYLOAD")


class WebhookProcessor:
    """Process verified Razorpay webhook events exactly once"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        ledger: Optional[WebhookLedger] = None,
        materializer: Optional[OrderMaterializer] = None,
    ):
        self.session_factory = session_factory
        self.ledger = ledger or WebhookLedger(session_factory)
        self.materializer = materializer or OrderMaterializer(session_factory)

    async def process(self, event_id: str, event: Dict[str, Any]) -> WebhookOutcome:
        """
        Process one webhook delivery

        Args:
            event_id: Processor event id
            event: Parsed, signature-verified event body

        Returns:
            WebhookOutcome with status received, duplicate or failed
        """
        event_type = str(event.get("event") or WebhookEventType.UNKNOWN.value)
        record_attempt(event_type)

        idempotence = await self.ledger.ensure_event_idempotence(event_id, event_type, event)
        if not idempotence.should_process:
            record_duplicate(event_type)
            return WebhookOutcome(status=STATUS_DUPLICATE, event_type=event_type)

        try:
            detail = await self._dispatch(event_id, event_type, event)
        except HTTPException as e:
            logger.error(f"Webhook event {event_id} ({event_type}) failed: {e.detail}")
            await self.ledger.mark_event_processed(event_id, success=False, error=str(e.detail))
            record_failure(event_type)
            return WebhookOutcome(status=STATUS_FAILED, event_type=event_type, detail=str(e.detail))
        except Exception as e:
            logger.exception(f"Unexpected error processing webhook event {event_id} ({event_type})")
            await self.ledger.mark_event_processed(event_id, success=False, error=f"{type(e).__name__}: {str(e)}")
            record_failure(event_type)
            return WebhookOutcome(status=STATUS_FAILED, event_type=event_type, detail="Internal error")

        await self.ledger.mark_event_processed(event_id, success=True)
        record_success(event_type)
        return WebhookOutcome(status=STATUS_RECEIVED, event_type=event_type, detail=detail)

    async def _dispatch(self, event_id: str, event_type: str, event: Dict[str, Any]) -> str:
        handlers = {
            WebhookEventType.ORDER_PAID: self.handle_order_paid,
            WebhookEventType.PAYMENT_FAILED: self.handle_payment_failed,
            WebhookEventType.PAYMENT_DISPUTE_CREATED: self.handle_dispute_created,
        }
        handler = handlers.get(WebhookEventType.parse(event_type))
        if handler is None:
            logger.info(f"Informational webhook event {event_id}: {event_type}")
            return "acknowledged"
        return await handler(event_id, event.get("payload") or {})

    async def handle_order_paid(self, event_id: str, payload: Dict[str, Any]) -> str:
        """Validate the paid amount and materialize the order"""
        order_entity = _entity(payload, "order")
        payment_entity = _entity(payload, "payment")

        gateway_order_id = order_entity.get("id") or payment_entity.get("order_id")
        gateway_payment_id = payment_entity.get("id")
        if not gateway_order_id or not gateway_payment_id:
            raise BadRequestException(
                "order.paid event missing order or payment entity",
                error_code="INVALID_WEBHOOK_PAYLOAD"
            )

        notes = _notes(order_entity, payment_entity)
        cart_id = _parse_uuid(notes.get("cart_id"), "cart_id")
        user_id = _parse_uuid(notes.get("user_id"), "user_id")

        amount = payment_entity.get("amount", order_entity.get("amount_paid"))
        currency = payment_entity.get("currency") or order_entity.get("currency")
        if amount is None or not currency:
            raise BadRequestException("order.paid event missing amount", error_code="INVALID_WEBHOOK_PAYLOAD")

        existing = await self._find_order(gateway_order_id)
        if existing is not None:
            logger.info(f"Order {existing.id} already exists for {gateway_order_id}, nothing to do")
            return f"order {existing.id} already exists"

        shipping_address = address_from_notes(notes)
        shipping_method = notes.get("shipping_method") or "standard"

        async with self.session_factory() as session:
            validation = await PaymentValidator(session).validate_payment_amount(
                processor_amount=int(amount),
                processor_currency=currency,
                cart_id=cart_id,
                shipping_address=shipping_address,
                shipping_method=shipping_method,
            )

        if not validation.valid:
            if validation.failure_kind == ValidationFailureKind.EMPTY_OR_MISSING_CART:
                # A concurrent delivery may have converted the cart first
                existing = await self._find_order(gateway_order_id)
                if existing is not None:
                    return f"order {existing.id} already exists"
            raise PaymentValidationError(validation.error, validation.failure_kind.value)

        request = MaterializationRequest(
            event_id=event_id,
            cart_id=cart_id,
            user_id=user_id,
            gateway_order_id=gateway_order_id,
            gateway_payment_id=gateway_payment_id,
            amount_minor=int(amount),
            currency=currency,
            shipping_address=shipping_address,
            shipping_method=shipping_method,
            payment_method=payment_entity.get("method") or "razorpay",
            calculation=validation.calculation,
            payment_metadata={
                "email": payment_entity.get("email") or notes.get("email"),
                "breakdown": validation.calculation.breakdown(),
            },
        )

        try:
            order = await self.materializer.materialize(request)
        except (CartAlreadyConvertedException, OrderMaterializationException):
            existing = await self._find_order(gateway_order_id)
            if existing is not None:
                logger.info(f"Concurrent delivery already created order {existing.id} for {gateway_order_id}")
                return f"order {existing.id} already exists"
            raise

        return f"order {order.id} created"

    async def handle_payment_failed(self, event_id: str, payload: Dict[str, Any]) -> str:
        payment_entity = _entity(payload, "payment")
        notes = _notes(payment_entity)
        logger.warning(
            f"Payment failed: {payment_entity.get('id')} "
            f"order={payment_entity.get('order_id')} "
            f"code={payment_entity.get('error_code')} "
            f"reason={payment_entity.get('error_description')} "
            f"cart={notes.get('cart_id')} user={notes.get('user_id')}"
        )
        return "payment failure recorded"

    async def handle_dispute_created(self, event_id: str, payload: Dict[str, Any]) -> str:
        dispute_entity = _entity(payload, "dispute")
        payment_entity = _entity(payload, "payment")
        logger.error(
            f"Dispute created: {dispute_entity.get('id')} "
            f"for payment {dispute_entity.get('payment_id') or payment_entity.get('id')}"
        )
        emit_security_alert("DISPUTE_CREATED", {
            "event_id": event_id,
            "dispute_id": dispute_entity.get("id"),
            "payment_id": dispute_entity.get("payment_id") or payment_entity.get("id"),
            "amount": dispute_entity.get("amount"),
            "currency": dispute_entity.get("currency"),
            "reason_code": dispute_entity.get("reason_code"),
        }, SEVERITY_CRITICAL)
        return "dispute recorded"

    async def _find_order(self, gateway_order_id: str) -> Optional[Order]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Order).where(Order.gateway_order_id == gateway_order_id)
            )
            return result.scalar_one_or_none()
