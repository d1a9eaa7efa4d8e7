"""Pydantic schemas for the product catalog."""
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from jewelry_store.models.product import SpecificationType
from jewelry_store.schemas.common import CamelModel, Pagination


class ProductTypeOut(CamelModel):
    """Product family."""

    id: UUID
    name: str
    display_name: str
    specification_type: SpecificationType
    code_prefix: str | None = None
    is_active: bool


class SpecificationCreate(CamelModel):
    """Variant definition supplied when creating or updating a product."""

    spec_type: str = Field(..., min_length=1, max_length=50)
    spec_value: str = Field(..., min_length=1, max_length=100)
    display_name: str = Field(..., min_length=1, max_length=255)
    price_modifier: Decimal = Field(default=Decimal("0"))
    stock_quantity: int = Field(default=0, ge=0)
    is_available: bool = True


class SpecificationOut(CamelModel):
    """Variant as returned by the API."""

    id: UUID
    spec_type: str
    spec_value: str
    display_name: str
    price_modifier: float
    stock_quantity: int
    is_available: bool


class ProductCreate(CamelModel):
    """Schema for creating a product.

    ``productCode`` is optional; omitted codes are generated from the product type's sequence.

    Examples:
        ```json
        {
            "name": "Rose Gold Band",
            "productTypeId": "7f6c...",
            "basePrice": 4999,
            "discountedPrice": 4499,
            "specifications": [
                {"specType": "size", "specValue": "7", "displayName": "Size 7", "priceModifier": 0}
            ]
        }
        ```
    """

    name: str = Field(..., min_length=1, max_length=255)
    product_code: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    product_type_id: UUID
    base_price: Decimal = Field(..., gt=0)
    discounted_price: Decimal | None = Field(default=None, gt=0)
    images: list[str] = Field(default_factory=list)
    is_active: bool = True
    stock_alert_threshold: int = Field(default=5, ge=0)
    specifications: list[SpecificationCreate] = Field(default_factory=list)


class ProductUpdate(CamelModel):
    """Schema for updating a product (all fields optional).

    When ``specifications`` is provided it replaces the existing set.
    """

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    product_type_id: UUID | None = None
    base_price: Decimal | None = Field(default=None, gt=0)
    discounted_price: Decimal | None = Field(default=None, gt=0)
    images: list[str] | None = None
    is_active: bool | None = None
    stock_alert_threshold: int | None = Field(default=None, ge=0)
    specifications: list[SpecificationCreate] | None = None


class ProductOut(CamelModel):
    """Product as returned by the API."""

    id: UUID
    name: str
    product_code: str
    description: str | None
    product_type_id: UUID
    base_price: float
    discounted_price: float | None
    images: list[str]
    is_active: bool
    stock_alert_threshold: int
    specifications: list[SpecificationOut] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ProductList(CamelModel):
    """Paginated product listing."""

    products: list[ProductOut]
    pagination: Pagination
