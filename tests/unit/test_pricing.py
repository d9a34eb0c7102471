"""Unit tests for the pricing engine."""

from decimal import Decimal

import pytest

from storefront.core.config import get_settings
from storefront.core.exceptions import (
    BadRequestException,
    EmptyOrMissingCartException,
    InsufficientStockException,
    TaxRegionNotConfiguredException,
)
from storefront.models import CartStatus, ProductVariant
from storefront.services.pricing import PricingEngine, resolve_tax_rate

QC = {"country": "CA", "state": "QC"}
ON = {"country": "CA", "state": "ON"}


class TestResolveTaxRate:
    """Tests for the tax table lookup."""

    def test_quebec_stacks_gst_and_qst(self) -> None:
        """Test that Quebec uses the combined 15% rate."""
        assert resolve_tax_rate("CA", "QC") == (Decimal("0.15"), "CA-QC")

    def test_listed_provinces(self) -> None:
        """Test that Ontario and British Columbia use their own rates."""
        assert resolve_tax_rate("CA", "ON")[0] == Decimal("0.13")
        assert resolve_tax_rate("ca", "bc")[0] == Decimal("0.12")

    def test_unlisted_province_uses_country_default(self) -> None:
        """Test that other provinces fall back to the Canadian default."""
        assert resolve_tax_rate("CA", "AB") == (Decimal("0.05"), "CA-AB")
        assert resolve_tax_rate("CA", None) == (Decimal("0.05"), "CA")

    def test_united_states_default(self) -> None:
        """Test that any US state uses the US default."""
        assert resolve_tax_rate("US", "NY")[0] == Decimal("0.08")

    def test_unlisted_country_zero_policy(self) -> None:
        """Test that unlisted countries get the zero global default."""
        assert resolve_tax_rate("FR", None) == (Decimal("0.00"), "FR")

    def test_unlisted_country_error_policy(self) -> None:
        """Test that the error policy rejects unlisted countries."""
        with pytest.raises(TaxRegionNotConfiguredException):
            resolve_tax_rate("FR", None, unlisted_policy="error")


class TestCalculateCartTotal:
    """Tests for PricingEngine.calculate_cart_total."""

    @pytest.mark.asyncio
    async def test_quebec_free_shipping_example(self, db_session, make_user, make_variant, make_cart) -> None:
        """Test that a 100.00 Quebec cart totals 115.00 with free shipping."""
        variant = make_variant("SKU-QC", "50.00")
        cart = make_cart(make_user(), [(variant, 2)])

        calc = await PricingEngine(db_session).calculate_cart_total(cart.id, QC, "standard")

        assert calc.subtotal == Decimal("100.00")
        assert calc.taxes == Decimal("15.00")
        assert calc.shipping == Decimal("0.00")
        assert calc.discount == Decimal("0.00")
        assert calc.total == Decimal("115.00")
        assert calc.currency == "CAD"
        assert calc.shipping_calculation.free_shipping_applied is True
        assert calc.tax_calculation.region == "CA-QC"
        assert calc.tax_calculation.rate == Decimal("0.15")

    @pytest.mark.asyncio
    async def test_ontario_standard_shipping_example(self, db_session, make_user, make_variant, make_cart) -> None:
        """Test that a 50.00 Ontario cart totals 66.49 with standard shipping."""
        variant = make_variant("SKU-ON", "25.00")
        cart = make_cart(make_user(), [(variant, 2)])

        calc = await PricingEngine(db_session).calculate_cart_total(cart.id, ON, "standard")

        assert calc.subtotal == Decimal("50.00")
        assert calc.taxes == Decimal("6.50")
        assert calc.shipping == Decimal("9.99")
        assert calc.total == Decimal("66.49")
        assert calc.shipping_calculation.free_shipping_applied is False

    @pytest.mark.asyncio
    async def test_express_shipping_below_threshold(self, db_session, make_user, make_variant, make_cart) -> None:
        """Test that express shipping costs 19.99 below the threshold."""
        cart = make_cart(make_user(), [(make_variant("SKU-EX", "20.00"), 1)])

        calc = await PricingEngine(db_session).calculate_cart_total(cart.id, ON, "express")

        assert calc.shipping == Decimal("19.99")
        assert calc.shipping_calculation.method == "express"

    @pytest.mark.asyncio
    async def test_free_shipping_wins_over_express(self, db_session, make_user, make_variant, make_cart) -> None:
        """Test that reaching the threshold makes express shipping free."""
        cart = make_cart(make_user(), [(make_variant("SKU-FREE", "75.00"), 1)])

        calc = await PricingEngine(db_session).calculate_cart_total(cart.id, ON, "express")

        assert calc.shipping == Decimal("0.00")
        assert calc.shipping_calculation.free_shipping_applied is True

    @pytest.mark.asyncio
    async def test_missing_address_defaults_to_quebec(self, db_session, make_user, make_variant, make_cart) -> None:
        """Test that no address falls back to the default Quebec region."""
        cart = make_cart(make_user(), [(make_variant("SKU-DEF", "10.00"), 1)])

        calc = await PricingEngine(db_session).calculate_cart_total(cart.id)

        assert calc.tax_calculation.region == "CA-QC"
        assert calc.taxes == Decimal("1.50")

    @pytest.mark.asyncio
    async def test_total_identity_and_determinism(self, db_session, make_user, make_variant, make_cart) -> None:
        """Test that total = subtotal + taxes + shipping - discount on repeated calls."""
        cart = make_cart(make_user(), [
            (make_variant("SKU-A", "12.34"), 3),
            (make_variant("SKU-B", "7.77"), 1),
        ])
        engine = PricingEngine(db_session)

        first = await engine.calculate_cart_total(cart.id, ON)
        second = await engine.calculate_cart_total(cart.id, ON)

        assert first.total == first.subtotal + first.taxes + first.shipping - first.discount
        assert first.total == second.total
        assert first.breakdown() == second.breakdown()

    @pytest.mark.asyncio
    async def test_rereads_price_changes(self, db_session, sync_db, make_user, make_variant, make_cart) -> None:
        """Test that a price change between calls is picked up."""
        variant = make_variant("SKU-PRICE", "10.00")
        cart = make_cart(make_user(), [(variant, 1)])
        engine = PricingEngine(db_session)

        before = await engine.calculate_cart_total(cart.id, ON)
        sync_db.get(ProductVariant, variant.id).price = Decimal("20.00")
        sync_db.commit()
        after = await engine.calculate_cart_total(cart.id, ON)

        assert before.subtotal == Decimal("10.00")
        assert after.subtotal == Decimal("20.00")

    @pytest.mark.asyncio
    async def test_line_items_use_default_language_names(self, db_session, make_user, make_variant, make_cart) -> None:
        """Test that breakdown names come from the French translation."""
        variant = make_variant("SKU-NAME", "5.00", name_fr="Chandail", name_en="Sweater")
        cart = make_cart(make_user(), [(variant, 2)])

        calc = await PricingEngine(db_session).calculate_cart_total(cart.id, QC)

        item = calc.items[0]
        assert item.name == "Chandail"
        assert item.sku == "SKU-NAME"
        assert item.quantity == 2
        assert item.line_total == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_insufficient_stock(self, db_session, make_user, make_variant, make_cart) -> None:
        """Test that quantity above stock raises with exact numbers."""
        variant = make_variant("SKU-LOW", "10.00", stock=2)
        cart = make_cart(make_user(), [(variant, 5)])

        with pytest.raises(InsufficientStockException) as exc_info:
            await PricingEngine(db_session).calculate_cart_total(cart.id, QC)

        assert exc_info.value.sku == "SKU-LOW"
        assert exc_info.value.available == 2
        assert exc_info.value.requested == 5

    @pytest.mark.asyncio
    async def test_missing_cart(self, db_session) -> None:
        """Test that an unknown cart id raises EmptyOrMissingCartException."""
        import uuid

        with pytest.raises(EmptyOrMissingCartException):
            await PricingEngine(db_session).calculate_cart_total(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_converted_cart(self, db_session, make_user, make_variant, make_cart) -> None:
        """Test that a converted cart cannot be priced."""
        cart = make_cart(make_user(), [(make_variant("SKU-CONV", "10.00"), 1)], status=CartStatus.CONVERTED)

        with pytest.raises(EmptyOrMissingCartException):
            await PricingEngine(db_session).calculate_cart_total(cart.id)

    @pytest.mark.asyncio
    async def test_empty_cart(self, db_session, make_user, make_cart) -> None:
        """Test that an empty cart raises EmptyOrMissingCartException."""
        cart = make_cart(make_user(), [])

        with pytest.raises(EmptyOrMissingCartException):
            await PricingEngine(db_session).calculate_cart_total(cart.id)

    @pytest.mark.asyncio
    async def test_mixed_currencies_rejected(self, db_session, make_user, make_variant, make_cart) -> None:
        """Test that a cart mixing currencies is rejected."""
        cart = make_cart(make_user(), [
            (make_variant("SKU-CAD", "10.00", currency="CAD"), 1),
            (make_variant("SKU-USD", "10.00", currency="USD"), 1),
        ])

        with pytest.raises(BadRequestException):
            await PricingEngine(db_session).calculate_cart_total(cart.id)

    @pytest.mark.asyncio
    async def test_unlisted_region_error_policy(self, db_session, make_user, make_variant, make_cart) -> None:
        """Test that the error policy surfaces through the engine."""
        cart = make_cart(make_user(), [(make_variant("SKU-FR", "10.00"), 1)])
        strict = get_settings().model_copy(update={"TAX_UNLISTED_REGION_POLICY": "error"})

        with pytest.raises(TaxRegionNotConfiguredException):
            await PricingEngine(db_session, strict).calculate_cart_total(cart.id, {"country": "FR"})

    @pytest.mark.asyncio
    async def test_unknown_shipping_method(self, db_session, make_user, make_variant, make_cart) -> None:
        """Test that unsupported shipping methods are rejected."""
        cart = make_cart(make_user(), [(make_variant("SKU-SHIP", "10.00"), 1)])

        with pytest.raises(BadRequestException):
            await PricingEngine(db_session).calculate_cart_total(cart.id, QC, "teleport")
