"""Product catalogue models"""

from sqlalchemy import Column, String, Numeric, Integer, Boolean, ForeignKey, Index, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from typing import Optional

from .base import Base, TimestampedModel, UUIDModel


class Product(Base, TimestampedModel, UUIDModel):
    """Product with language-tagged display names"""

    __tablename__ = "products"

    slug = Column(String(255), unique=True, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    translations = relationship("ProductTranslation", back_populates="product", cascade="all, delete-orphan")
    variants = relationship("ProductVariant", back_populates="product", cascade="all, delete-orphan")

    def display_name(self, language: str, fallback_language: Optional[str] = None) -> str:
        """Translated name for language, then fallback_language, then any translation, then the slug"""
        by_language = {t.language.upper(): t.name for t in self.translations}
        for lang in (language, fallback_language):
            if lang and lang.upper() in by_language:
                return by_language[lang.upper()]
        if self.translations:
            return self.translations[0].name
        return self.slug


class ProductTranslation(Base, TimestampedModel, UUIDModel):
    """Language-tagged product copy"""

    __tablename__ = "product_translations"

    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    language = Column(String(5), nullable=False)
    name = Column(String(255), nullable=False)

    product = relationship("Product", back_populates="translations")

    __table_args__ = (
        UniqueConstraint("product_id", "language", name="uq_product_translation_language"),
    )


class ProductVariant(Base, TimestampedModel, UUIDModel):
    """Purchasable variant carrying the authoritative price and stock"""

    __tablename__ = "product_variants"

    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    sku = Column(String(100), unique=True, nullable=False, index=True)

    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), default="CAD", nullable=False)
    stock = Column(Integer, default=0, nullable=False)

    product = relationship("Product", back_populates="variants")

    __table_args__ = (
        CheckConstraint("stock >= 0", name="check_variant_stock_non_negative"),
        CheckConstraint("price >= 0", name="check_variant_price_non_negative"),
        Index("idx_variants_product", "product_id"),
    )
