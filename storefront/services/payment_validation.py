"""
Payment amount validation
Compares the processor's recorded charge with a fresh server-side total
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
import enum
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import Settings
from storefront.core.exceptions import (
    EmptyOrMissingCartException,
    InsufficientStockException,
)
from .alerting import emit_security_alert, SEVERITY_CRITICAL, SEVERITY_HIGH
from .currency import to_minor_units
from .pricing import CartCalculation, PricingEngine

logger = logging.getLogger(__name__)


class ValidationFailureKind(str, enum.Enum):
    CURRENCY_MISMATCH = "currency_mismatch"
    AMOUNT_MISMATCH = "amount_mismatch"
    EMPTY_OR_MISSING_CART = "empty_or_missing_cart"
    INSUFFICIENT_STOCK = "insufficient_stock"
    CALCULATION_ERROR = "calculation_error"


@dataclass
class PaymentValidationResult:
    valid: bool
    server_amount: Optional[int] = None
    discrepancy: Optional[int] = None
    calculation: Optional[CartCalculation] = None
    error: Optional[str] = None
    failure_kind: Optional[ValidationFailureKind] = None


class PaymentValidator:
    """Validate processor amounts against the pricing engine"""

    def __init__(self, db: AsyncSession, settings: Optional[Settings] = None):
        self.db = db
        self.pricing = PricingEngine(db, settings)

    async def validate_payment_amount(
        self,
        processor_amount: int,
        processor_currency: str,
        cart_id: uuid.UUID,
        shipping_address: Optional[Dict[str, Any]] = None,
        shipping_method: str = "standard",
    ) -> PaymentValidationResult:
        """
        Validate a processor-recorded amount against the cart

        Zero tolerance: any minor-unit difference is invalid. Every invalid
        result emits exactly one security alert. Internal failures are
        reported as invalid results, never raised.

        Args:
            processor_amount: Amount in minor units as recorded by the processor
            processor_currency: ISO 4217 code as recorded by the processor
            cart_id: Source cart
            shipping_address: Address the processor recorded
            shipping_method: Shipping method chosen at checkout

        Returns:
            PaymentValidationResult
        """
        try:
            calculation = await self.pricing.calculate_cart_total(
                cart_id,
                shipping_address=shipping_address,
                shipping_method=shipping_method,
            )

            server_amount = to_minor_units(calculation.total, calculation.currency)

            if (processor_currency or "").upper() != calculation.currency.upper():
                error = (
                    f"Currency mismatch: processor={processor_currency} "
                    f"server={calculation.currency}"
                )
                self._alert("CURRENCY_MISMATCH", {
                    "cart_id": str(cart_id),
                    "processor_currency": processor_currency,
                    "server_currency": calculation.currency,
                    "processor_amount": processor_amount,
                    "server_amount": server_amount,
                    "discrepancy": None,
                }, SEVERITY_CRITICAL)
                return PaymentValidationResult(
                    valid=False,
                    server_amount=server_amount,
                    calculation=calculation,
                    error=error,
                    failure_kind=ValidationFailureKind.CURRENCY_MISMATCH,
                )

            discrepancy = abs(int(processor_amount) - server_amount)
            if discrepancy != 0:
                error = (
                    f"Amount mismatch: processor={processor_amount} "
                    f"server={server_amount} discrepancy={discrepancy}"
                )
                self._alert("AMOUNT_MISMATCH", {
                    "cart_id": str(cart_id),
                    "processor_amount": processor_amount,
                    "server_amount": server_amount,
                    "discrepancy": discrepancy,
                    "currency": calculation.currency,
                    "breakdown": calculation.breakdown(),
                }, SEVERITY_CRITICAL)
                return PaymentValidationResult(
                    valid=False,
                    server_amount=server_amount,
                    discrepancy=discrepancy,
                    calculation=calculation,
                    error=error,
                    failure_kind=ValidationFailureKind.AMOUNT_MISMATCH,
                )

            return PaymentValidationResult(
                valid=True,
                server_amount=server_amount,
                discrepancy=0,
                calculation=calculation,
            )

        except EmptyOrMissingCartException as e:
            return self._internal_failure(cart_id, processor_amount, e.detail, ValidationFailureKind.EMPTY_OR_MISSING_CART)
        except InsufficientStockException as e:
            return self._internal_failure(cart_id, processor_amount, e.detail, ValidationFailureKind.INSUFFICIENT_STOCK)
        except Exception as e:
            logger.exception(f"Payment validation failed for cart {cart_id}")
            return self._internal_failure(
                cart_id,
                processor_amount,
                f"Calculation error: {str(e)}",
                ValidationFailureKind.CALCULATION_ERROR
            )

    def _internal_failure(
        self,
        cart_id: uuid.UUID,
        processor_amount: int,
        error: str,
        kind: ValidationFailureKind
    ) -> PaymentValidationResult:
        self._alert("VALIDATION_ERROR", {
            "cart_id": str(cart_id),
            "processor_amount": processor_amount,
            "server_amount": None,
            "discrepancy": None,
            "error": error,
            "kind": kind.value,
        }, SEVERITY_HIGH)
        return PaymentValidationResult(valid=False, error=error, failure_kind=kind)

    @staticmethod
    def _alert(alert_type: str, data: Dict[str, Any], severity: str) -> None:
        try:
            emit_security_alert(alert_type, data, severity)
        except Exception as e:
            logger.error(f"Security alert sink failed for {alert_type}: {str(e)}")
