"""Catalog models: product types, products and their specifications."""
import enum

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from jewelry_store.models.base import Base, JSONType


class SpecificationType(str, enum.Enum):
    """How a product type's variants are described."""

    SIZE = "size"
    LAYER = "layer"


class ProductType(Base):
    """Product family (rings, chains, bracelets...)."""

    __tablename__ = "product_types"

    name = Column(String(100), nullable=False, unique=True)
    display_name = Column(String(255), nullable=False)
    specification_type = Column(
        SQLEnum(SpecificationType, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SpecificationType.SIZE,
    )
    is_active = Column(Boolean, nullable=False, default=True)
    # Product codes: prefix (CH, BR...) and the last number handed out
    code_prefix = Column(String(10), nullable=True)
    code_sequence = Column(Integer, nullable=False, default=0)

    products = relationship("Product", back_populates="product_type")


class Product(Base):
    """
    Sellable catalog item.

    The effective unit price is the discounted price when set, otherwise the base price,
    plus the chosen specification's price modifier.
    """

    __tablename__ = "products"

    name = Column(String(255), nullable=False, index=True)
    product_code = Column(String(100), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    product_type_id = Column(Uuid(as_uuid=True), ForeignKey("product_types.id"), nullable=False, index=True)
    base_price = Column(Numeric(10, 2), nullable=False)
    discounted_price = Column(Numeric(10, 2), nullable=True)
    images = Column(JSONType, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    stock_alert_threshold = Column(Integer, nullable=False, default=5)

    product_type = relationship("ProductType", back_populates="products")
    specifications = relationship(
        "ProductSpecification",
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def selling_price(self):
        """Price before any specification modifier."""
        return self.discounted_price if self.discounted_price is not None else self.base_price

    def __repr__(self) -> str:
        """String representation."""
        return f"<Product(id={self.id}, code={self.product_code}, name={self.name})>"


class ProductSpecification(Base):
    """Variant of a product (a ring size, a chain layer count...)."""

    __tablename__ = "product_specifications"

    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    spec_type = Column(String(50), nullable=False)
    spec_value = Column(String(100), nullable=False)
    display_name = Column(String(255), nullable=False)
    price_modifier = Column(Numeric(10, 2), nullable=False, default=0)
    stock_quantity = Column(Integer, nullable=False, default=0)
    is_available = Column(Boolean, nullable=False, default=True)

    product = relationship("Product", back_populates="specifications")
