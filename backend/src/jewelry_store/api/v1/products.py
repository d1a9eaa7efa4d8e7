"""Admin product catalog endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_store.api.deps import get_current_admin, get_db
from jewelry_store.models.admin import Admin
from jewelry_store.schemas.common import ApiResponse, Pagination
from jewelry_store.schemas.product import ProductCreate, ProductList, ProductOut, ProductTypeOut, ProductUpdate
from jewelry_store.services.product_service import ProductService

router = APIRouter(prefix="/admin/products", tags=["Products"])


@router.get("/types", response_model=ApiResponse[list[ProductTypeOut]])
async def list_product_types(
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[list[ProductTypeOut]]:
    product_types = await ProductService(db).list_product_types(active_only=False)
    return ApiResponse(data=[ProductTypeOut.model_validate(t) for t in product_types])


@router.get("", response_model=ApiResponse[ProductList])
async def list_products(
    search: Optional[str] = Query(default=None, description="Matches name and product code"),
    is_active: Optional[bool] = Query(default=None, alias="isActive"),
    product_type_id: Optional[UUID] = Query(default=None, alias="productTypeId"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[ProductList]:
    products, total = await ProductService(db).list_products(
        search=search,
        is_active=is_active,
        product_type_id=product_type_id,
        page=page,
        limit=limit,
    )
    return ApiResponse(
        data=ProductList(
            products=[ProductOut.model_validate(p) for p in products],
            pagination=Pagination.build(page, limit, total),
        )
    )


@router.post("", response_model=ApiResponse[ProductOut], status_code=status.HTTP_201_CREATED)
async def create_product(
    product_data: ProductCreate,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[ProductOut]:
    """
    Create a product with its specifications.

    Returns 409 when **productCode** is already used and 400 for an unknown product type.
    """
    product = await ProductService(db).create_product(product_data)
    await db.commit()
    return ApiResponse(data=ProductOut.model_validate(product), message="Product created")


@router.get("/{product_id}", response_model=ApiResponse[ProductOut])
async def get_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[ProductOut]:
    product = await ProductService(db).get_product(product_id)
    return ApiResponse(data=ProductOut.model_validate(product))


@router.put("/{product_id}", response_model=ApiResponse[ProductOut])
async def update_product(
    product_id: UUID,
    update_data: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[ProductOut]:
    """Update a product. A provided **specifications** list replaces the existing one."""
    product = await ProductService(db).update_product(product_id, update_data)
    await db.commit()
    return ApiResponse(data=ProductOut.model_validate(product), message="Product updated")


@router.delete("/{product_id}", response_model=ApiResponse[None])
async def delete_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[None]:
    """Delete a product; products that appear on orders are deactivated instead."""
    deleted = await ProductService(db).delete_product(product_id)
    await db.commit()
    return ApiResponse(message="Product deleted" if deleted else "Product is referenced by orders and was deactivated")
