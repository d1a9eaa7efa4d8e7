"""Admin order API endpoints."""
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_store.api.deps import get_current_admin, get_db
from jewelry_store.config import settings
from jewelry_store.models.admin import Admin
from jewelry_store.models.order import Order, OrderStatus
from jewelry_store.schemas.common import ApiResponse, Pagination
from jewelry_store.schemas.order import (
    ApproveOrderRequest,
    ConfirmPaymentRequest,
    OrderActionResult,
    OrderCreate,
    OrderDetail,
    OrderList,
    OrderOut,
    OrderStats,
    OrderTransitionRequest,
    OrderUpdate,
    SendPaymentRequest,
    SendWhatsAppRequest,
    StaleOrderCleanup,
)
from jewelry_store.services.order_service import OrderActionOutcome, OrderService
from jewelry_store.services.order_transitions import OrderAction, allowed_actions

router = APIRouter(prefix="/admin/orders", tags=["Orders"])

PAYMENT_ACTIONS = {OrderAction.CONFIRM_PAYMENT.value, OrderAction.SEND_PAYMENT_REQUEST.value}


def order_detail(order: Order) -> OrderDetail:
    """Order with items and the lifecycle actions available from its current status."""
    detail = OrderDetail.model_validate(order)
    actions = allowed_actions(order.status)
    if order.payment_received:
        actions = [action for action in actions if action not in PAYMENT_ACTIONS]
    detail.allowed_actions = actions
    return detail


def _action_result(outcome: OrderActionOutcome) -> OrderActionResult:
    return OrderActionResult(
        order=order_detail(outcome.order),
        whatsapp_url=outcome.whatsapp_url,
        payment_link=outcome.payment_link,
    )


@router.get("", response_model=ApiResponse[OrderList])
async def list_orders(
    search: Optional[str] = Query(default=None, description="Order number, code, customer name, phone or email"),
    status: Optional[OrderStatus] = Query(default=None, description="Filter by status"),
    date_from: Optional[datetime] = Query(default=None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(default=None, alias="dateTo"),
    page: int = Query(default=1, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(default=20, ge=1, le=settings.order_page_size_max, description="Items per page"),
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[OrderList]:
    """
    List orders, newest first.

    Filter orders by:
    - **search**: matches order number, order code and customer fields
    - **status**: lifecycle status
    - **dateFrom** / **dateTo**: creation date range
    """
    orders, total = await OrderService(db).list_orders(
        search=search,
        status=status,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    return ApiResponse(
        data=OrderList(
            orders=[OrderOut.model_validate(order) for order in orders],
            pagination=Pagination.build(page, limit, total),
        )
    )


@router.post("", response_model=ApiResponse[OrderDetail], status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: OrderCreate,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[OrderDetail]:
    """Create an order on behalf of a customer. Prices are taken from the catalog."""
    order = await OrderService(db).create_order(order_data, source="admin")
    await db.commit()
    return ApiResponse(data=order_detail(order), message="Order created")


@router.get("/stats", response_model=ApiResponse[OrderStats])
async def get_order_stats(
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[OrderStats]:
    stats = await OrderService(db).get_order_stats()
    return ApiResponse(data=OrderStats(**stats))


@router.get("/export")
async def export_orders(
    status: Optional[OrderStatus] = Query(default=None),
    date_from: Optional[datetime] = Query(default=None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(default=None, alias="dateTo"),
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> Response:
    """Download matching orders as CSV."""
    content = await OrderService(db).export_orders_csv(status=status, date_from=date_from, date_to=date_to)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="orders.csv"'},
    )


@router.delete("/stale", response_model=ApiResponse[StaleOrderCleanup])
async def delete_stale_orders(
    threshold_hours: Optional[float] = Query(default=None, gt=0, alias="thresholdHours"),
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[StaleOrderCleanup]:
    """
    Delete unpaid orders older than the threshold, with their items.

    Only **payment_pending** orders are touched. The threshold defaults to the
    configured stale order window.
    """
    hours = threshold_hours if threshold_hours is not None else settings.stale_order_threshold_hours
    deleted, cutoff = await OrderService(db).delete_stale_orders(timedelta(hours=hours))
    await db.commit()
    return ApiResponse(
        data=StaleOrderCleanup(deleted_count=deleted, threshold_hours=hours, cutoff=cutoff),
        message=f"Deleted {deleted} stale order(s)",
    )


@router.get("/{order_id}", response_model=ApiResponse[OrderDetail])
async def get_order(
    order_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[OrderDetail]:
    order = await OrderService(db).get_order(order_id)
    return ApiResponse(data=order_detail(order))


@router.put("/{order_id}", response_model=ApiResponse[OrderDetail])
async def update_order(
    order_id: UUID,
    update_data: OrderUpdate,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[OrderDetail]:
    """
    Update customer details, notes or flags.

    A **status** change must be a single legal lifecycle step; anything else is
    rejected with 400 and the order is left unchanged.
    """
    order = await OrderService(db).update_order(order_id, update_data, changed_by=admin.email)
    await db.commit()
    return ApiResponse(data=order_detail(order), message="Order updated")


@router.delete("/{order_id}", response_model=ApiResponse[None])
async def delete_order(
    order_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[None]:
    await OrderService(db).delete_order(order_id)
    await db.commit()
    return ApiResponse(message="Order deleted")


@router.post("/{order_id}/approve", response_model=ApiResponse[OrderActionResult])
async def approve_order(
    order_id: UUID,
    payload: Optional[ApproveOrderRequest] = None,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[OrderActionResult]:
    """
    Approve a pending order (pending or payment_pending -> confirmed).

    With **sendPaymentQr** the response also carries the WhatsApp payment request
    link and the UPI intent URL it embeds.
    """
    payload = payload or ApproveOrderRequest()
    outcome = await OrderService(db).approve_order(
        order_id,
        changed_by=admin.email,
        upi_id=payload.upi_id,
        send_payment_qr=payload.send_payment_qr,
        custom_message=payload.custom_message,
    )
    await db.commit()
    return ApiResponse(data=_action_result(outcome), message="Order approved")


@router.post("/{order_id}/send-payment-qr", response_model=ApiResponse[OrderActionResult])
async def send_payment_request(
    order_id: UUID,
    payload: Optional[SendPaymentRequest] = None,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[OrderActionResult]:
    """WhatsApp payment request for a confirmed, unpaid order."""
    payload = payload or SendPaymentRequest()
    outcome = await OrderService(db).send_payment_request(
        order_id,
        changed_by=admin.email,
        upi_id=payload.upi_id,
        custom_message=payload.custom_message,
    )
    await db.commit()
    return ApiResponse(data=_action_result(outcome), message="Payment request generated")


@router.post("/{order_id}/confirm-payment", response_model=ApiResponse[OrderActionResult])
async def confirm_payment(
    order_id: UUID,
    payload: Optional[ConfirmPaymentRequest] = None,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[OrderActionResult]:
    """
    Record payment and move the order to processing.

    Rejected with 400 when payment was already confirmed.
    """
    payload = payload or ConfirmPaymentRequest()
    outcome = await OrderService(db).confirm_payment(
        order_id,
        changed_by=admin.email,
        payment_reference=payload.payment_reference,
        notes=payload.notes,
    )
    await db.commit()
    return ApiResponse(data=_action_result(outcome), message="Payment confirmed")


@router.post("/{order_id}/send-whatsapp", response_model=ApiResponse[OrderActionResult])
async def send_whatsapp(
    order_id: UUID,
    payload: Optional[SendWhatsAppRequest] = None,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[OrderActionResult]:
    """Status update link for the customer."""
    payload = payload or SendWhatsAppRequest()
    outcome = await OrderService(db).send_whatsapp_update(order_id, custom_message=payload.custom_message)
    await db.commit()
    return ApiResponse(data=_action_result(outcome), message="WhatsApp message generated")


@router.post("/{order_id}/transition", response_model=ApiResponse[OrderActionResult])
async def transition_order(
    order_id: UUID,
    payload: OrderTransitionRequest,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[OrderActionResult]:
    """Ship, deliver or cancel an order."""
    outcome = await OrderService(db).apply_action(order_id, payload.action, changed_by=admin.email, notes=payload.notes)
    await db.commit()
    return ApiResponse(data=_action_result(outcome), message=f"Order {outcome.order.status.value}")
