"""
Pricing engine
Recomputes cart totals server-side from authoritative variant rows
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.core.config import Settings, get_settings
from storefront.core.exceptions import (
    BadRequestException,
    EmptyOrMissingCartException,
    InsufficientStockException,
    TaxRegionNotConfiguredException,
)
from storefront.models import Cart, CartItem, CartStatus, Product, ProductVariant

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Canadian federal and Quebec provincial components, stacked
GST_RATE = Decimal("0.05")
QST_RATE = Decimal("0.10")

# country -> region -> rate; the None key is the country default
TAX_RATES: Dict[str, Dict[Optional[str], Decimal]] = {
    "CA": {
        "QC": GST_RATE + QST_RATE,
        "ON": Decimal("0.13"),
        "BC": Decimal("0.12"),
        None: GST_RATE,
    },
    "US": {
        None: Decimal("0.08"),
    },
}
GLOBAL_DEFAULT_TAX_RATE = Decimal("0.00")

SHIPPING_METHODS = ("standard", "express")


@dataclass
class LineItemBreakdown:
    variant_id: uuid.UUID
    sku: str
    name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass
class TaxCalculation:
    region: str
    rate: Decimal


@dataclass
class ShippingCalculation:
    method: str
    cost: Decimal
    free_shipping_applied: bool


@dataclass
class CartCalculation:
    """Derived totals for a cart. Never persisted."""
    cart_id: uuid.UUID
    subtotal: Decimal
    taxes: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal
    currency: str
    items: List[LineItemBreakdown] = field(default_factory=list)
    tax_calculation: Optional[TaxCalculation] = None
    shipping_calculation: Optional[ShippingCalculation] = None

    def breakdown(self) -> Dict[str, Any]:
        """JSON-friendly breakdown for API responses and alerts"""
        return {
            "subtotal": str(self.subtotal),
            "taxes": str(self.taxes),
            "shipping": str(self.shipping),
            "discount": str(self.discount),
            "total": str(self.total),
            "currency": self.currency,
            "items": [
                {
                    "variant_id": str(item.variant_id),
                    "sku": item.sku,
                    "name": item.name,
                    "quantity": item.quantity,
                    "unit_price": str(item.unit_price),
                    "line_total": str(item.line_total),
                }
                for item in self.items
            ],
            "tax_calculation": {
                "region": self.tax_calculation.region,
                "rate": str(self.tax_calculation.rate),
            } if self.tax_calculation else None,
            "shipping_calculation": {
                "method": self.shipping_calculation.method,
                "cost": str(self.shipping_calculation.cost),
                "free_shipping_applied": self.shipping_calculation.free_shipping_applied,
            } if self.shipping_calculation else None,
        }


def resolve_tax_rate(
    country: str,
    region: Optional[str],
    unlisted_policy: str = "zero"
) -> Tuple[Decimal, str]:
    """
    Look up the tax rate for a destination

    Exact region rate wins, then the country default, then the global default.

    Returns:
        (rate, region label such as "CA-QC")
    """
    country = (country or "").upper()
    region = region.upper() if region else None
    label = f"{country}-{region}" if region else country

    country_rates = TAX_RATES.get(country)
    if country_rates is None:
        if unlisted_policy == "error":
            raise TaxRegionNotConfiguredException(country, region)
        return GLOBAL_DEFAULT_TAX_RATE, label

    if region and region in country_rates:
        return country_rates[region], label
    return country_rates[None], label


class PricingEngine:
    """Server-side cart total calculation"""

    def __init__(self, db: AsyncSession, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    async def calculate_cart_total(
        self,
        cart_id: uuid.UUID,
        shipping_address: Optional[Dict[str, Any]] = None,
        shipping_method: str = "standard",
        language: Optional[str] = None,
    ) -> CartCalculation:
        """
        Calculate subtotal, taxes, shipping and total for an active cart

        Args:
            cart_id: Cart to price
            shipping_address: Mapping with "country" and optional "state"
            shipping_method: "standard" or "express"
            language: Language for line item names

        Returns:
            CartCalculation

        Raises:
            EmptyOrMissingCartException: Cart missing, not active or empty
            InsufficientStockException: A line asks for more than the variant stock
            TaxRegionNotConfiguredException: Unlisted destination under the "error" policy
        """
        if shipping_method not in SHIPPING_METHODS:
            raise BadRequestException(
                f"Unsupported shipping method: {shipping_method}",
                error_code="INVALID_SHIPPING_METHOD"
            )

        cart = await self._load_cart(cart_id)
        if cart is None or cart.status != CartStatus.ACTIVE:
            raise EmptyOrMissingCartException("Cart not found or not active")
        if not cart.items:
            raise EmptyOrMissingCartException("Cart is empty")

        language = language or self.settings.DEFAULT_LANGUAGE
        currencies = set()
        items: List[LineItemBreakdown] = []
        subtotal = ZERO

        for cart_item in cart.items:
            variant = cart_item.variant
            if cart_item.quantity > variant.stock:
                raise InsufficientStockException(
                    sku=variant.sku,
                    available=variant.stock,
                    requested=cart_item.quantity
                )

            unit_price = Decimal(variant.price)
            line_total = (unit_price * cart_item.quantity).quantize(CENT)
            subtotal += line_total
            currencies.add(variant.currency.upper())

            items.append(LineItemBreakdown(
                variant_id=variant.id,
                sku=variant.sku,
                name=variant.product.display_name(language, self.settings.DEFAULT_LANGUAGE),
                quantity=cart_item.quantity,
                unit_price=unit_price,
                line_total=line_total,
            ))

        if len(currencies) > 1:
            raise BadRequestException(
                "Cart contains items priced in different currencies",
                error_code="MIXED_CURRENCY_CART"
            )
        currency = currencies.pop() if currencies else self.settings.DEFAULT_CURRENCY

        if shipping_address:
            country = shipping_address.get("country") or self.settings.DEFAULT_TAX_COUNTRY
            region = shipping_address.get("state")
        else:
            country = self.settings.DEFAULT_TAX_COUNTRY
            region = self.settings.DEFAULT_TAX_REGION

        tax_rate, tax_region = resolve_tax_rate(
            country, region, self.settings.TAX_UNLISTED_REGION_POLICY
        )
        taxes = (subtotal * tax_rate).quantize(CENT, rounding=ROUND_HALF_UP)

        shipping_calculation = self._calculate_shipping(subtotal, shipping_method)
        discount = ZERO

        total = subtotal + taxes + shipping_calculation.cost - discount

        logger.debug(
            f"Priced cart {cart_id}: subtotal={subtotal} taxes={taxes} "
            f"shipping={shipping_calculation.cost} total={total} {currency}"
        )

        return CartCalculation(
            cart_id=cart.id,
            subtotal=subtotal,
            taxes=taxes,
            shipping=shipping_calculation.cost,
            discount=discount,
            total=total,
            currency=currency,
            items=items,
            tax_calculation=TaxCalculation(region=tax_region, rate=tax_rate),
            shipping_calculation=shipping_calculation,
        )

    def _calculate_shipping(self, subtotal: Decimal, method: str) -> ShippingCalculation:
        if subtotal >= self.settings.FREE_SHIPPING_THRESHOLD:
            return ShippingCalculation(method=method, cost=ZERO, free_shipping_applied=True)

        if method == "express":
            cost = self.settings.EXPRESS_SHIPPING_COST
        else:
            cost = self.settings.STANDARD_SHIPPING_COST
        return ShippingCalculation(method=method, cost=Decimal(cost).quantize(CENT), free_shipping_applied=False)

    async def _load_cart(self, cart_id: uuid.UUID) -> Optional[Cart]:
        # populate_existing forces fresh price/stock values over the identity map
        result = await self.db.execute(
            select(Cart)
            .options(
                selectinload(Cart.items)
                .selectinload(CartItem.variant)
                .selectinload(ProductVariant.product)
                .selectinload(Product.translations)
            )
            .where(Cart.id == cart_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()
