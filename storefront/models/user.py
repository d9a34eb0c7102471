"""User model"""

from sqlalchemy import Column, String, Boolean, Enum
from sqlalchemy.orm import relationship
import enum

from .base import Base, TimestampedModel, UUIDModel


class UserRole(str, enum.Enum):
    BUYER = "buyer"
    ADMIN = "admin"


class User(Base, TimestampedModel, UUIDModel):
    """Storefront customer or administrator"""

    __tablename__ = "users"

    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=True)
    role = Column(Enum(UserRole), default=UserRole.BUYER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    addresses = relationship("Address", back_populates="user", cascade="all, delete-orphan")
    carts = relationship("Cart", back_populates="user")
    orders = relationship("Order", back_populates="user")
