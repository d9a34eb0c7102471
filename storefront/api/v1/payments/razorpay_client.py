"""
Razorpay payment gateway integration
"""

from functools import lru_cache
from typing import Any, Dict, Optional
import logging

import razorpay
from razorpay.errors import SignatureVerificationError

from storefront.core.config import Settings, get_settings
from storefront.core.exceptions import PaymentGatewayException
from storefront.services.pricing import CartCalculation

logger = logging.getLogger(__name__)

# Orders in these states can still be paid
REUSABLE_ORDER_STATUSES = ("created", "attempted")

CALCULATION_VERSION = "1.0"

ADDRESS_NOTE_FIELDS = ("line1", "line2", "city", "state", "postal_code", "country")


def build_order_notes(
    cart_id: str,
    user_id: str,
    email: str,
    shipping_method: str,
    calculation: CartCalculation,
    address: Dict[str, Any],
) -> Dict[str, str]:
    """
    Order notes carrying the cart reference, totals and shipping address

    Razorpay allows at most 15 note keys with string values.
    """
    notes = {
        "cart_id": cart_id,
        "user_id": user_id,
        "email": email,
        "shipping_method": shipping_method,
        "subtotal": str(calculation.subtotal),
        "taxes": str(calculation.taxes),
        "shipping": str(calculation.shipping),
        "total": str(calculation.total),
        "calculation_version": CALCULATION_VERSION,
    }
    for name in ADDRESS_NOTE_FIELDS:
        notes[f"shipping_{name}"] = str(address.get(name) or "")
    return notes


def address_from_notes(notes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Shipping address recorded in order notes, or None when absent"""
    address = {name: notes.get(f"shipping_{name}") or None for name in ADDRESS_NOTE_FIELDS}
    if not address["country"]:
        return None
    return address


class RazorpayClient:
    """Razorpay API client wrapper"""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.client = razorpay.Client(
            auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET)
        )
        self.key_id = settings.RAZORPAY_KEY_ID
        self.webhook_secret = settings.RAZORPAY_WEBHOOK_SECRET

    def create_order(
        self,
        amount: int,
        currency: str,
        receipt: Optional[str] = None,
        notes: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Create Razorpay order

        Args:
            amount: Amount in minor units
            currency: Currency code
            receipt: Receipt number
            notes: Additional notes

        Returns:
            Razorpay order details
        """
        try:
            return self.client.order.create(data={
                "amount": amount,
                "currency": currency,
                "receipt": receipt or "",
                "notes": notes or {},
            })
        except Exception as e:
            logger.error(f"Razorpay order creation failed: {str(e)}")
            raise PaymentGatewayException()

    def find_reusable_order(
        self,
        receipt: str,
        amount: int,
        currency: str,
        cart_id: str,
        user_id: str
    ) -> Optional[Dict[str, Any]]:
        """
        Find an unpaid order for the same cart, user, amount and currency

        Lookup failures are logged and treated as "no reusable order".
        """
        try:
            collection = self.client.order.all({"receipt": receipt})
        except Exception as e:
            logger.warning(f"Razorpay order lookup failed for receipt {receipt}: {str(e)}")
            return None

        for order in collection.get("items", []):
            notes = order.get("notes") or {}
            if not isinstance(notes, dict):
                continue
            if (
                order.get("status") in REUSABLE_ORDER_STATUSES
                and order.get("amount") == amount
                and str(order.get("currency", "")).upper() == currency.upper()
                and notes.get("cart_id") == cart_id
                and notes.get("user_id") == user_id
            ):
                return order
        return None

    def verify_webhook_signature(self, body: bytes, signature: str) -> bool:
        """
        Verify webhook signature over the raw request body

        Args:
            body: Raw request body exactly as received
            signature: X-Razorpay-Signature header value

        Returns:
            True if signature is valid
        """
        if not self.webhook_secret or not signature:
            return False
        try:
            self.client.utility.verify_webhook_signature(
                body.decode("utf-8"), signature, self.webhook_secret
            )
            return True
        except (SignatureVerificationError, UnicodeDecodeError):
            return False


@lru_cache()
def get_razorpay_client() -> RazorpayClient:
    return RazorpayClient()
