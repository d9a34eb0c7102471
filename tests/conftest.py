"""Pytest configuration and fixtures."""

import hashlib
import hmac
import json
import os
import tempfile
import uuid
from collections.abc import AsyncGenerator, Callable, Generator
from decimal import Decimal
from typing import Any
from unittest.mock import MagicMock

import pytest
import pytest_asyncio

TEST_DB_PATH = os.path.join(tempfile.gettempdir(), f"storefront_test_{os.getpid()}.db")

# Set test environment variables before importing application modules
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{TEST_DB_PATH}")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_secret")
os.environ.setdefault("RAZORPAY_WEBHOOK_SECRET", "whsec_test_webhook_secret")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from storefront.core.database import AsyncSessionLocal, SessionLocal, sync_engine  # noqa: E402
from storefront.core.security import SecurityUtils  # noqa: E402
from storefront.models import (  # noqa: E402
    Base,
    Cart,
    CartItem,
    CartStatus,
    Order,
    OrderItem,
    OrderStatus,
    Payment,
    PaymentStatus,
    Product,
    ProductTranslation,
    ProductVariant,
    User,
    UserRole,
)

WEBHOOK_SECRET = os.environ["RAZORPAY_WEBHOOK_SECRET"]


@pytest.fixture(autouse=True)
def reset_database() -> Generator[None, None, None]:
    """Recreate all tables for every test."""
    Base.metadata.drop_all(sync_engine)
    Base.metadata.create_all(sync_engine)
    yield


@pytest.fixture
def session_factory():
    """Provide the application's async session factory."""
    return AsyncSessionLocal


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[Any, None]:
    """Provide an async session bound to the test database.

    Yields:
        AsyncSession: Session closed after the test.
    """
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def sync_db() -> Generator[Session, None, None]:
    """Provide a synchronous session for seeding and assertions."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(sync_db: Session) -> Callable[..., User]:
    """Factory creating committed users."""

    def _make_user(email: str | None = None, role: UserRole = UserRole.BUYER) -> User:
        user = User(
            id=uuid.uuid4(),
            email=email or f"user-{uuid.uuid4().hex[:8]}@example.com",
            full_name="Test User",
            role=role,
        )
        sync_db.add(user)
        sync_db.commit()
        return user

    return _make_user


@pytest.fixture
def make_variant(sync_db: Session) -> Callable[..., ProductVariant]:
    """Factory creating a product with French and English names and one variant."""

    def _make_variant(
        sku: str,
        price: str,
        stock: int = 10,
        currency: str = "CAD",
        name_fr: str | None = None,
        name_en: str | None = None,
    ) -> ProductVariant:
        product = Product(id=uuid.uuid4(), slug=sku.lower())
        product.translations = [
            ProductTranslation(id=uuid.uuid4(), language="FR", name=name_fr or f"Produit {sku}"),
            ProductTranslation(id=uuid.uuid4(), language="EN", name=name_en or f"Product {sku}"),
        ]
        variant = ProductVariant(
            id=uuid.uuid4(),
            product=product,
            sku=sku,
            price=Decimal(price),
            currency=currency,
            stock=stock,
        )
        sync_db.add(product)
        sync_db.add(variant)
        sync_db.commit()
        return variant

    return _make_variant


@pytest.fixture
def make_cart(sync_db: Session) -> Callable[..., Cart]:
    """Factory creating a cart with (variant, quantity) lines."""

    def _make_cart(
        user: User,
        lines: list[tuple[ProductVariant, int]],
        status: CartStatus = CartStatus.ACTIVE,
    ) -> Cart:
        cart = Cart(id=uuid.uuid4(), user_id=user.id, status=status)
        cart.items = [
            CartItem(id=uuid.uuid4(), variant_id=variant.id, quantity=quantity)
            for variant, quantity in lines
        ]
        sync_db.add(cart)
        sync_db.commit()
        return cart

    return _make_cart


@pytest.fixture
def make_order(sync_db: Session, make_variant) -> Callable[..., Order]:
    """Factory creating a paid order with one line and a completed payment."""

    def _make_order(
        user: User,
        status: OrderStatus = OrderStatus.PAID,
        total: str = "115.00",
    ) -> Order:
        suffix = uuid.uuid4().hex[:12]
        variant = make_variant(f"SKU-ORD-{suffix}", "50.00")
        order = Order(
            id=uuid.uuid4(),
            user_id=user.id,
            status=status,
            subtotal=Decimal("100.00"),
            tax_amount=Decimal("15.00"),
            shipping_amount=Decimal("0.00"),
            discount_amount=Decimal("0.00"),
            total_amount=Decimal(total),
            currency="CAD",
            gateway_order_id=f"order_{suffix}",
            shipping_address={"country": "CA", "state": "QC", "city": "Montreal"},
            shipping_method="standard",
        )
        order.items = [
            OrderItem(
                id=uuid.uuid4(),
                variant_id=variant.id,
                quantity=2,
                price_snapshot=Decimal("50.00"),
                currency="CAD",
                product_snapshot={"name": f"Produit {variant.sku}", "sku": variant.sku},
            )
        ]
        order.payment = Payment(
            id=uuid.uuid4(),
            amount=Decimal(total),
            currency="CAD",
            method="card",
            status=PaymentStatus.COMPLETED,
            gateway_payment_id=f"pay_{suffix}",
            gateway_order_id=f"order_{suffix}",
        )
        sync_db.add(order)
        sync_db.commit()
        return order

    return _make_order


@pytest.fixture
def auth_headers() -> Callable[[User], dict]:
    """Build bearer headers for a user."""

    def _auth_headers(user: User) -> dict:
        token = SecurityUtils.create_access_token({
            "sub": str(user.id),
            "role": user.role.value,
            "email": user.email,
        })
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
def sign_payload() -> Callable[[bytes], str]:
    """Compute the Razorpay webhook signature for a raw body."""

    def _sign(body: bytes) -> str:
        return hmac.new(WEBHOOK_SECRET.encode("utf-8"), body, hashlib.sha256).hexdigest()

    return _sign


@pytest.fixture
def order_paid_event() -> Callable[..., dict]:
    """Factory for Razorpay order.paid event bodies."""

    def _event(
        cart: Cart,
        amount: int,
        currency: str = "CAD",
        order_id: str = "order_test_001",
        payment_id: str = "pay_test_001",
        country: str = "CA",
        state: str = "QC",
        shipping_method: str = "standard",
    ) -> dict:
        notes = {
            "cart_id": str(cart.id),
            "user_id": str(cart.user_id),
            "email": "buyer@example.com",
            "shipping_method": shipping_method,
            "shipping_line1": "123 Rue Sainte-Catherine",
            "shipping_line2": "",
            "shipping_city": "Montreal",
            "shipping_state": state,
            "shipping_postal_code": "H2X 1Z4",
            "shipping_country": country,
        }
        return {
            "entity": "event",
            "account_id": "acc_test",
            "event": "order.paid",
            "contains": ["payment", "order"],
            "payload": {
                "payment": {
                    "entity": {
                        "id": payment_id,
                        "entity": "payment",
                        "amount": amount,
                        "currency": currency,
                        "status": "captured",
                        "order_id": order_id,
                        "method": "card",
                        "email": "buyer@example.com",
                        "notes": notes,
                    }
                },
                "order": {
                    "entity": {
                        "id": order_id,
                        "entity": "order",
                        "amount": amount,
                        "amount_paid": amount,
                        "currency": currency,
                        "receipt": f"cart_{cart.id.hex}",
                        "status": "paid",
                        "notes": notes,
                    }
                },
            },
            "created_at": 1700000000,
        }

    return _event


@pytest.fixture
def mock_razorpay() -> MagicMock:
    """Provide a mocked Razorpay client for checkout tests."""
    client = MagicMock()
    client.key_id = "rzp_test_key"
    client.webhook_secret = WEBHOOK_SECRET
    client.find_reusable_order.return_value = None
    client.create_order.return_value = {"id": "order_created_001", "status": "created"}
    return client


@pytest.fixture
def client(mock_razorpay: MagicMock) -> Generator[TestClient, None, None]:
    """Provide a test client with the Razorpay API mocked.

    Webhook signature checks use a real client, so only checkout calls
    go to the mock.
    """
    from storefront.api.v1.payments.razorpay_client import RazorpayClient, get_razorpay_client
    from storefront.main import app

    real_client = RazorpayClient()
    mock_razorpay.verify_webhook_signature.side_effect = real_client.verify_webhook_signature

    app.dependency_overrides[get_razorpay_client] = lambda: mock_razorpay
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def send_webhook(client: TestClient) -> Callable[..., Any]:
    """Send a webhook delivery with the given signature and event id."""

    def _send(
        event: dict,
        signature: str | None,
        event_id: str | None = "evt_test_001",
        body: bytes | None = None,
    ):
        raw = body if body is not None else json.dumps(event).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if signature is not None:
            headers["X-Razorpay-Signature"] = signature
        if event_id is not None:
            headers["X-Razorpay-Event-Id"] = event_id
        return client.post("/api/v1/payments/webhook", content=raw, headers=headers)

    return _send
