"""
Payment model for transaction handling
"""

from sqlalchemy import Column, String, Numeric, ForeignKey, Index, Enum, DateTime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import enum

from .base import Base, TimestampedModel, UUIDModel, JSONType


class PaymentStatus(str, enum.Enum):
    """Payment status enumeration"""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class Payment(Base, TimestampedModel, UUIDModel):
    """Payment transaction records"""

    __tablename__ = "payments"

    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), unique=True, nullable=False)

    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    method = Column(String(50), nullable=False, default="razorpay")
    status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)

    # Gateway details
    gateway_payment_id = Column(String(255), unique=True, nullable=False)
    gateway_order_id = Column(String(255), nullable=False)

    processed_at = Column(DateTime(timezone=True), nullable=True)
    payment_metadata = Column(JSONType, default=dict)

    order = relationship("Order", back_populates="payment")

    __table_args__ = (
        Index("idx_payments_status", "status"),
        Index("idx_payments_gateway_order", "gateway_order_id"),
    )

    def __str__(self):
        return f"Payment {self.id} - {self.amount} {self.currency} ({self.status})"
