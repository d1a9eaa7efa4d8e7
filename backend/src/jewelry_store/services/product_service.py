"""Product catalog service."""
from typing import Optional, Sequence, Tuple
from uuid import UUID

import structlog
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from jewelry_store.exceptions import BadRequestError, ConflictError, NotFoundError
from jewelry_store.models.order import OrderItem
from jewelry_store.models.product import Product, ProductSpecification, ProductType
from jewelry_store.schemas.product import ProductCreate, ProductUpdate, SpecificationCreate
from jewelry_store.services.product_code_service import ProductCodeService

logger = structlog.get_logger(__name__)


class ProductService:
    """Service layer for products, specifications and product types."""

    def __init__(self, db: AsyncSession):
        """Initialize product service with database session."""
        self.db = db

    async def list_product_types(self, active_only: bool = True) -> Sequence[ProductType]:
        stmt = select(ProductType).order_by(ProductType.display_name)
        if active_only:
            stmt = stmt.where(ProductType.is_active.is_(True))
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def list_products(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        product_type_id: Optional[UUID] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[Sequence[Product], int]:
        """
        List products newest first.

        Returns:
            Tuple of (products with specifications, total matching count)
        """
        page, limit = max(page, 1), max(1, min(limit, 100))
        filters = []
        if search:
            pattern = f"%{search.strip()}%"
            filters.append(or_(Product.name.ilike(pattern), Product.product_code.ilike(pattern)))
        if is_active is not None:
            filters.append(Product.is_active.is_(is_active))
        if product_type_id is not None:
            filters.append(Product.product_type_id == product_type_id)

        total = await self.db.scalar(select(func.count(Product.id)).where(*filters))
        result = await self.db.execute(
            select(Product)
            .options(selectinload(Product.specifications))
            .where(*filters)
            .order_by(Product.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return result.scalars().all(), int(total or 0)

    async def get_product(self, product_id: UUID, active_only: bool = False) -> Product:
        """
        Get product with specifications.

        Raises:
            NotFoundError: If missing (or inactive when ``active_only``)
        """
        stmt = select(Product).options(selectinload(Product.specifications)).where(Product.id == product_id)
        if active_only:
            stmt = stmt.where(Product.is_active.is_(True))
        product = (await self.db.execute(stmt)).scalar_one_or_none()
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    async def create_product(self, product_data: ProductCreate) -> Product:
        """
        Create a product and its specifications.

        Without a product code, the next code from the product type's sequence is used.

        Raises:
            ConflictError: If the product code is taken
            BadRequestError: If the product type does not exist
        """
        await self._ensure_product_type(product_data.product_type_id)
        data = product_data.model_dump(exclude={"specifications"})
        if product_data.product_code is None:
            data["product_code"] = await ProductCodeService(self.db).generate_product_code(product_data.product_type_id)
        else:
            existing = await self.db.scalar(select(Product.id).where(Product.product_code == product_data.product_code))
            if existing:
                raise ConflictError(f"Product code {product_data.product_code} already exists")

        product = Product(**data, specifications=[_specification(spec) for spec in product_data.specifications])
        self.db.add(product)
        await self.db.flush()

        logger.info("product_created", product_id=str(product.id), product_code=product.product_code)
        return await self.get_product(product.id)

    async def update_product(self, product_id: UUID, update_data: ProductUpdate) -> Product:
        """Update product fields; a provided specification list replaces the current one."""
        product = await self.get_product(product_id)
        changes = update_data.model_dump(exclude_unset=True, exclude={"specifications"})
        if "product_type_id" in changes:
            await self._ensure_product_type(changes["product_type_id"])

        for field, value in changes.items():
            setattr(product, field, value)

        if update_data.specifications is not None:
            product.specifications = [_specification(spec) for spec in update_data.specifications]

        await self.db.flush()
        self.db.expire(product)
        logger.info("product_updated", product_id=str(product_id), fields=sorted(changes))
        return await self.get_product(product_id)

    async def delete_product(self, product_id: UUID) -> bool:
        """
        Delete a product. Products referenced by orders are deactivated instead.

        Returns:
            True if hard deleted, False if deactivated
        """
        product = await self.get_product(product_id)
        referenced = await self.db.scalar(select(func.count(OrderItem.id)).where(OrderItem.product_id == product_id))
        if referenced:
            product.is_active = False
            await self.db.flush()
            logger.info("product_deactivated", product_id=str(product_id), order_items=referenced)
            return False

        await self.db.execute(delete(ProductSpecification).where(ProductSpecification.product_id == product_id))
        await self.db.execute(delete(Product).where(Product.id == product_id))
        logger.info("product_deleted", product_id=str(product_id))
        return True

    async def _ensure_product_type(self, product_type_id: UUID) -> None:
        if await self.db.get(ProductType, product_type_id) is None:
            raise BadRequestError(f"Product type {product_type_id} does not exist")


def _specification(spec: SpecificationCreate) -> ProductSpecification:
    return ProductSpecification(**spec.model_dump())
