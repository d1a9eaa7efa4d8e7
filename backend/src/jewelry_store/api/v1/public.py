"""Public storefront endpoints (no authentication)."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_store.api.deps import get_db
from jewelry_store.config import settings
from jewelry_store.exceptions import BadRequestError
from jewelry_store.integrations.whatsapp_service import WhatsAppService
from jewelry_store.metrics import whatsapp_links_generated_total
from jewelry_store.schemas.common import ApiResponse, Pagination
from jewelry_store.schemas.order import OrderCreate, PublicOrderCreated
from jewelry_store.schemas.product import ProductList, ProductOut, ProductTypeOut
from jewelry_store.services.order_service import OrderService
from jewelry_store.services.product_service import ProductService

router = APIRouter(prefix="/public", tags=["Storefront"])


@router.get("/product-types", response_model=ApiResponse[list[ProductTypeOut]])
async def list_product_types(db: AsyncSession = Depends(get_db)) -> ApiResponse[list[ProductTypeOut]]:
    product_types = await ProductService(db).list_product_types()
    return ApiResponse(data=[ProductTypeOut.model_validate(t) for t in product_types])


@router.get("/products", response_model=ApiResponse[ProductList])
async def list_products(
    search: Optional[str] = Query(default=None),
    product_type_id: Optional[UUID] = Query(default=None, alias="productTypeId"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[ProductList]:
    """Active products only."""
    products, total = await ProductService(db).list_products(
        search=search,
        is_active=True,
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


@router.get("/products/{product_id}", response_model=ApiResponse[ProductOut])
async def get_product(product_id: UUID, db: AsyncSession = Depends(get_db)) -> ApiResponse[ProductOut]:
    product = await ProductService(db).get_product(product_id, active_only=True)
    return ApiResponse(data=ProductOut.model_validate(product))


@router.post("/orders", response_model=ApiResponse[PublicOrderCreated], status_code=status.HTTP_201_CREATED)
async def place_order(order_data: OrderCreate, db: AsyncSession = Depends(get_db)) -> ApiResponse[PublicOrderCreated]:
    """
    Place an order from the storefront.

    The order is created in **payment_pending** and the response carries a
    WhatsApp link that sends the order summary to the business number. Unpaid
    orders are removed by the stale order sweep after ``validForHours``.
    """
    order = await OrderService(db).create_order(order_data, source="storefront")
    try:
        link = WhatsAppService().generate_order_message(order)
    except ValueError as e:
        raise BadRequestError(str(e)) from e
    await db.commit()
    whatsapp_links_generated_total.labels(kind="order").inc()

    return ApiResponse(
        data=PublicOrderCreated(
            order_number=order.order_number,
            order_code=order.order_code,
            total_amount=order.total_amount,
            status=order.status,
            whatsapp_url=link.url,
            valid_for_hours=int(settings.stale_order_threshold_hours),
        ),
        message="Order placed. Send it on WhatsApp to complete your purchase.",
    )
