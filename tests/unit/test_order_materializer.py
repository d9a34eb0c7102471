"""Unit tests for order materialization."""

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from storefront.core.exceptions import (
    BadRequestException,
    CartAlreadyConvertedException,
    EmptyOrMissingCartException,
    InventoryConsistencyException,
)
from storefront.models import (
    Cart,
    CartStatus,
    Order,
    OrderItem,
    OrderStatus,
    Payment,
    PaymentStatus,
    ProductVariant,
)
from storefront.services.order_materializer import MaterializationRequest, OrderMaterializer


def _request(cart, user_id=None, amount_minor=11500, **overrides) -> MaterializationRequest:
    values = dict(
        event_id="evt_mat_001",
        cart_id=cart.id,
        user_id=user_id or cart.user_id,
        gateway_order_id="order_mat_001",
        gateway_payment_id="pay_mat_001",
        amount_minor=amount_minor,
        currency="CAD",
        shipping_address={"country": "CA", "state": "QC", "city": "Montreal"},
    )
    values.update(overrides)
    return MaterializationRequest(**values)


def _count(sync_db, model) -> int:
    return sync_db.execute(select(func.count()).select_from(model)).scalar_one()


class TestMaterialize:
    """Tests for OrderMaterializer.materialize."""

    @pytest.mark.asyncio
    async def test_creates_order_payment_and_converts_cart(
        self, session_factory, sync_db, make_user, make_variant, make_cart
    ) -> None:
        """Test that a valid request produces one order, its items, a payment and a converted cart."""
        variant = make_variant("SKU-MAT", "50.00", stock=10, name_fr="Tasse")
        cart = make_cart(make_user(), [(variant, 2)])

        order = await OrderMaterializer(session_factory).materialize(_request(cart))

        sync_db.expire_all()
        assert order.status == OrderStatus.PAID
        assert order.total_amount == Decimal("115.00")
        assert order.source_cart_id == cart.id

        item = sync_db.execute(select(OrderItem)).scalar_one()
        assert item.quantity == 2
        assert item.price_snapshot == Decimal("50.00")
        assert item.product_snapshot == {"name": "Tasse", "sku": "SKU-MAT"}

        payment = sync_db.execute(select(Payment)).scalar_one()
        assert payment.order_id == order.id
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.gateway_payment_id == "pay_mat_001"
        assert payment.payment_metadata["event_id"] == "evt_mat_001"

        assert sync_db.get(ProductVariant, variant.id).stock == 8
        assert sync_db.get(Cart, cart.id).status == CartStatus.CONVERTED

    @pytest.mark.asyncio
    async def test_converted_cart_is_rejected(
        self, session_factory, sync_db, make_user, make_variant, make_cart
    ) -> None:
        """Test that a second materialization of the same cart fails without side effects."""
        variant = make_variant("SKU-TWICE", "50.00", stock=10)
        cart = make_cart(make_user(), [(variant, 2)])
        materializer = OrderMaterializer(session_factory)
        await materializer.materialize(_request(cart))

        with pytest.raises(CartAlreadyConvertedException):
            await materializer.materialize(_request(
                cart, gateway_order_id="order_mat_002", gateway_payment_id="pay_mat_002"
            ))

        sync_db.expire_all()
        assert _count(sync_db, Order) == 1
        assert sync_db.get(ProductVariant, variant.id).stock == 8

    @pytest.mark.asyncio
    async def test_stock_shortfall_rolls_back_everything(
        self, session_factory, sync_db, make_user, make_variant, make_cart
    ) -> None:
        """Test that a failed decrement on a later line undoes earlier decrements."""
        plenty = make_variant("SKU-PLENTY", "10.00", stock=10)
        scarce = make_variant("SKU-SCARCE", "10.00", stock=5)
        cart = make_cart(make_user(), [(plenty, 2), (scarce, 3)])

        sync_db.get(ProductVariant, scarce.id).stock = 1
        sync_db.commit()

        with pytest.raises(InventoryConsistencyException):
            await OrderMaterializer(session_factory).materialize(_request(cart, amount_minor=5750))

        sync_db.expire_all()
        assert _count(sync_db, Order) == 0
        assert _count(sync_db, Payment) == 0
        assert sync_db.get(ProductVariant, plenty.id).stock == 10
        assert sync_db.get(ProductVariant, scarce.id).stock == 1
        assert sync_db.get(Cart, cart.id).status == CartStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_owner_mismatch_is_rejected(
        self, session_factory, sync_db, make_user, make_variant, make_cart
    ) -> None:
        """Test that a payment for another user's cart creates nothing."""
        cart = make_cart(make_user(), [(make_variant("SKU-OWNER", "50.00"), 2)])

        with pytest.raises(BadRequestException) as exc_info:
            await OrderMaterializer(session_factory).materialize(_request(cart, user_id=uuid.uuid4()))

        assert exc_info.value.error_code == "CART_OWNER_MISMATCH"
        sync_db.expire_all()
        assert _count(sync_db, Order) == 0

    @pytest.mark.asyncio
    async def test_missing_cart(self, session_factory) -> None:
        """Test that an unknown cart raises EmptyOrMissingCartException."""
        request = MaterializationRequest(
            event_id="evt_none",
            cart_id=uuid.uuid4(),
            user_id=uuid.uuid4(),
            gateway_order_id="order_none",
            gateway_payment_id="pay_none",
            amount_minor=100,
            currency="CAD",
        )

        with pytest.raises(EmptyOrMissingCartException):
            await OrderMaterializer(session_factory).materialize(request)
