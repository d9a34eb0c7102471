"""Order models"""

from sqlalchemy import Column, String, Numeric, Integer, Enum, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import enum

from .base import Base, TimestampedModel, UUIDModel, JSONType


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class Order(Base, TimestampedModel, UUIDModel):
    """Order created from a paid cart"""

    __tablename__ = "orders"

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    source_cart_id = Column(UUID(as_uuid=True), ForeignKey("carts.id"), nullable=True)

    status = Column(Enum(OrderStatus), default=OrderStatus.PENDING, nullable=False, index=True)

    # Amounts
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax_amount = Column(Numeric(10, 2), default=0, nullable=False)
    shipping_amount = Column(Numeric(10, 2), default=0, nullable=False)
    discount_amount = Column(Numeric(10, 2), default=0, nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)

    # One order per payment intent
    gateway_order_id = Column(String(255), unique=True, nullable=False, index=True)

    # Addresses
    shipping_address = Column(JSONType, nullable=True)
    billing_address = Column(JSONType, nullable=True)
    shipping_method = Column(String(20), default="standard", nullable=False)

    # Relationships
    user = relationship("User", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    payment = relationship("Payment", back_populates="order", uselist=False)

    __table_args__ = (
        Index("idx_orders_user_status", "user_id", "status"),
    )


class OrderItem(Base, TimestampedModel, UUIDModel):
    """Individual items within an order"""

    __tablename__ = "order_items"

    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    variant_id = Column(UUID(as_uuid=True), ForeignKey("product_variants.id"), nullable=False)

    # Snapshot at time of order
    quantity = Column(Integer, nullable=False)
    price_snapshot = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    product_snapshot = Column(JSONType, nullable=False)  # {name, sku}

    order = relationship("Order", back_populates="items")
    variant = relationship("ProductVariant")

    __table_args__ = (
        Index("idx_order_items_order", "order_id"),
    )
