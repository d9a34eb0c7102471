"""
Address model for shipping and billing
"""

from sqlalchemy import Column, String, Boolean, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from .base import Base, TimestampedModel, UUIDModel


class Address(Base, TimestampedModel, UUIDModel):
    """User addresses for shipping/billing"""

    __tablename__ = "addresses"

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)

    line1 = Column(String(500), nullable=False)
    line2 = Column(String(500), nullable=True)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=False)
    country = Column(String(2), nullable=False)  # ISO 3166-1 alpha-2

    address_type = Column(String(20), default="billing", nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)

    # Relationships
    user = relationship("User", back_populates="addresses")

    __table_args__ = (
        Index("idx_addresses_user_type", "user_id", "address_type"),
    )
