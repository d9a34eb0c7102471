"""Models package initialization"""

from .base import Base
from .user import User, UserRole
from .address import Address
from .product import Product, ProductTranslation, ProductVariant
from .cart import Cart, CartItem, CartStatus
from .order import Order, OrderItem, OrderStatus
from .payment import Payment, PaymentStatus
from .webhook_event import WebhookEvent

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Address",
    "Product",
    "ProductTranslation",
    "ProductVariant",
    "Cart",
    "CartItem",
    "CartStatus",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Payment",
    "PaymentStatus",
    "WebhookEvent",
]
