"""Pydantic schemas for orders and order lifecycle actions."""
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import EmailStr, Field

from jewelry_store.models.order import OrderStatus
from jewelry_store.schemas.common import CamelModel, Pagination


class OrderItemCreate(CamelModel):
    """Requested line item. Prices are always computed server-side."""

    product_id: UUID
    specification_id: UUID | None = None
    quantity: int = Field(..., ge=1, le=100)


class OrderCreate(CamelModel):
    """Schema for placing an order.

    Examples:
        ```json
        {
            "customerName": "Asha Rao",
            "customerPhone": "9876543210",
            "customerAddress": "12 MG Road, Bengaluru",
            "items": [{"productId": "1b2c...", "specificationId": "9d8e...", "quantity": 1}]
        }
        ```
    """

    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: EmailStr | None = None
    customer_phone: str = Field(..., min_length=7, max_length=20)
    customer_address: str | None = None
    notes: str | None = None
    items: list[OrderItemCreate] = Field(..., min_length=1)


class OrderUpdate(CamelModel):
    """Admin edits. A status change must be a legal lifecycle transition."""

    customer_name: str | None = Field(default=None, min_length=1, max_length=255)
    customer_email: EmailStr | None = None
    customer_phone: str | None = Field(default=None, min_length=7, max_length=20)
    customer_address: str | None = None
    notes: str | None = None
    status: OrderStatus | None = None
    whatsapp_message_sent: bool | None = None


class OrderItemOut(CamelModel):
    """Line item with its order snapshot."""

    id: UUID
    product_id: UUID
    specification_id: UUID | None
    quantity: int
    unit_price: float
    total_price: float
    product_snapshot: dict[str, Any]


class OrderOut(CamelModel):
    """Order summary."""

    id: UUID
    order_number: str
    order_code: str
    customer_name: str
    customer_email: str | None
    customer_phone: str
    customer_address: str | None
    total_amount: float
    status: OrderStatus
    whatsapp_message_sent: bool
    payment_received: bool
    notes: str | None
    created_at: datetime
    updated_at: datetime


class OrderDetail(OrderOut):
    """Order with items and the actions currently allowed."""

    items: list[OrderItemOut] = Field(default_factory=list)
    allowed_actions: list[str] = Field(default_factory=list)


class OrderList(CamelModel):
    """Paginated order listing."""

    orders: list[OrderOut]
    pagination: Pagination


class OrderStats(CamelModel):
    """Counts per status plus revenue figures."""

    total_orders: int
    status_counts: dict[str, int]
    total_revenue: float
    pending_payments: int
    today_orders: int


class ApproveOrderRequest(CamelModel):
    """Approval options."""

    upi_id: str | None = None
    send_payment_qr: bool = False
    custom_message: str | None = None


class SendPaymentRequest(CamelModel):
    """Payment request options."""

    upi_id: str | None = None
    custom_message: str | None = None


class ConfirmPaymentRequest(CamelModel):
    """Payment confirmation details."""

    payment_reference: str | None = Field(default=None, max_length=255)
    notes: str | None = None


class SendWhatsAppRequest(CamelModel):
    """Optional custom text for the customer update."""

    custom_message: str | None = None


class OrderTransitionRequest(CamelModel):
    """Generic lifecycle action (ship, deliver, cancel)."""

    action: str
    notes: str | None = None


class OrderActionResult(CamelModel):
    """Order after an action, plus the generated WhatsApp link when there is one."""

    order: OrderDetail
    whatsapp_url: str | None = None
    payment_link: str | None = None


class PublicOrderCreated(CamelModel):
    """Storefront confirmation: order identifiers and the business WhatsApp link."""

    order_number: str
    order_code: str
    total_amount: float
    status: OrderStatus
    whatsapp_url: str
    valid_for_hours: int


class StaleOrderCleanup(CamelModel):
    """Result of the stale order sweep."""

    deleted_count: int
    threshold_hours: float
    cutoff: datetime
