"""
Custom exception classes
Provides consistent error responses across the application
"""

from fastapi import HTTPException, status
from typing import Any, Dict, Optional


class StorefrontException(HTTPException):
    """Base exception class for the storefront application"""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class BadRequestException(StorefrontException):
    """400 Bad Request"""

    def __init__(self, detail: str, error_code: str = "BAD_REQUEST"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code=error_code
        )


class UnauthorizedException(StorefrontException):
    """401 Unauthorized"""

    def __init__(self, detail: str = "Unauthorized", error_code: str = "UNAUTHORIZED"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code=error_code,
            headers={"WWW-Authenticate": "Bearer"}
        )


class ForbiddenException(StorefrontException):
    """403 Forbidden"""

    def __init__(self, detail: str = "Forbidden", error_code: str = "FORBIDDEN"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code=error_code
        )


class NotFoundException(StorefrontException):
    """404 Not Found"""

    def __init__(self, detail: str = "Not found", error_code: str = "NOT_FOUND"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code=error_code
        )


class ConflictException(StorefrontException):
    """409 Conflict"""

    def __init__(self, detail: str, error_code: str = "CONFLICT"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code=error_code
        )


class InternalServerException(StorefrontException):
    """500 Internal Server Error"""

    def __init__(
        self,
        detail: str = "Internal server error",
        error_code: str = "INTERNAL_ERROR"
    ):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            error_code=error_code
        )


class PaymentGatewayException(StorefrontException):
    """502 Bad Gateway - payment processor call failed"""

    def __init__(
        self,
        detail: str = "Payment processor unavailable",
        error_code: str = "PAYMENT_GATEWAY_ERROR"
    ):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail,
            error_code=error_code
        )


# Business logic exceptions
class EmptyOrMissingCartException(NotFoundException):
    """Cart does not exist, is not active, or has no items"""

    def __init__(self, detail: str = "Cart not found or empty"):
        super().__init__(
            detail=detail,
            error_code="EMPTY_OR_MISSING_CART"
        )


class InsufficientStockException(BadRequestException):
    """Variant stock insufficient for the requested quantity"""

    def __init__(self, sku: str, available: int, requested: int):
        self.sku = sku
        self.available = available
        self.requested = requested
        super().__init__(
            detail=f"Insufficient stock for {sku}. Available: {available}, requested: {requested}",
            error_code="INSUFFICIENT_STOCK"
        )


class TaxRegionNotConfiguredException(BadRequestException):
    """No tax rate configured for the shipping destination"""

    def __init__(self, country: str, region: Optional[str] = None):
        location = f"{country}-{region}" if region else country
        super().__init__(
            detail=f"Tax rate not configured for region {location}",
            error_code="TAX_REGION_NOT_CONFIGURED"
        )


class CartAlreadyConvertedException(ConflictException):
    """Cart was already turned into an order"""

    def __init__(self, cart_id: Any):
        self.cart_id = cart_id
        super().__init__(
            detail=f"Cart {cart_id} is no longer active",
            error_code="CART_ALREADY_CONVERTED"
        )


class InventoryConsistencyException(ConflictException):
    """Stock changed between validation and order creation"""

    def __init__(self, sku: str, requested: int):
        self.sku = sku
        self.requested = requested
        super().__init__(
            detail=f"Stock for {sku} dropped below {requested} during order creation",
            error_code="INVENTORY_CONSISTENCY"
        )


class OrderMaterializationException(InternalServerException):
    """Order creation transaction failed and was rolled back"""

    def __init__(self, detail: str = "Order creation failed"):
        super().__init__(
            detail=detail,
            error_code="ORDER_MATERIALIZATION_FAILED"
        )


class PaymentValidationError(BadRequestException):
    """Processor amount or currency does not match the server calculation"""

    def __init__(self, detail: str, failure_kind: str):
        self.failure_kind = failure_kind
        super().__init__(
            detail=detail,
            error_code="INVALID_PAYMENT"
        )


class WebhookSignatureException(BadRequestException):
    """Webhook signature missing or invalid"""

    def __init__(self, detail: str = "Invalid webhook signature"):
        super().__init__(
            detail=detail,
            error_code="INVALID_WEBHOOK_SIGNATURE"
        )
