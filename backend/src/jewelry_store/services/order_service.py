"""Order service: creation, admin CRUD and lifecycle actions."""
import csv
import io
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, List, Optional, Sequence, Tuple
from uuid import UUID

import structlog
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_store.config import settings
from jewelry_store.exceptions import BadRequestError, InvalidStateTransitionError, NotFoundError
from jewelry_store.integrations.whatsapp_service import WhatsAppLink, WhatsAppService
from jewelry_store.metrics import (
    order_transitions_rejected_total,
    order_transitions_total,
    orders_created_total,
    stale_orders_deleted_total,
    whatsapp_links_generated_total,
)
from jewelry_store.models.base import utcnow
from jewelry_store.models.order import REVENUE_STATUSES, Order, OrderItem, OrderStatus, OrderStatusHistory
from jewelry_store.models.product import Product, ProductSpecification
from jewelry_store.schemas.order import OrderCreate, OrderUpdate
from jewelry_store.services.order_transitions import OrderAction, action_for_status_change, resolve_transition
from jewelry_store.utils.currency import round_money, to_decimal

logger = structlog.get_logger(__name__)

ORDER_CODE_PATTERN = re.compile(r"^ORD(\d+)$")

CSV_COLUMNS = [
    "order_number",
    "order_code",
    "customer_name",
    "customer_email",
    "customer_phone",
    "customer_address",
    "total_amount",
    "status",
    "payment_received",
    "whatsapp_message_sent",
    "created_at",
]


@dataclass
class OrderActionOutcome:
    """Order after an action plus any WhatsApp/UPI links generated for it."""

    order: Order
    whatsapp_url: Optional[str] = None
    payment_link: Optional[str] = None


class OrderService:
    """Service layer for order operations."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
        whatsapp: Optional[WhatsAppService] = None,
    ):
        """Initialize order service with database session."""
        self.db = db
        self.clock = clock
        self.whatsapp = whatsapp or WhatsAppService()

    # Creation

    async def create_order(self, order_data: OrderCreate, source: str = "storefront") -> Order:
        """
        Create an order in payment_pending, pricing every item server-side.

        Args:
            order_data: Customer details and requested items
            source: Label for metrics (storefront, admin)

        Returns:
            Created order with items

        Raises:
            BadRequestError: If a product or specification is unavailable
        """
        items: List[OrderItem] = []
        total = Decimal(0)

        for requested in order_data.items:
            product = await self.db.get(Product, requested.product_id)
            if product is None or not product.is_active:
                raise BadRequestError(f"Product {requested.product_id} is not available")

            specification = None
            if requested.specification_id is not None:
                specification = await self.db.get(ProductSpecification, requested.specification_id)
                if (
                    specification is None
                    or specification.product_id != product.id
                    or not specification.is_available
                ):
                    raise BadRequestError(f"Specification {requested.specification_id} is not available")

            modifier = to_decimal(specification.price_modifier) if specification else Decimal(0)
            unit_price = to_decimal(product.selling_price) + modifier
            if unit_price <= 0:
                raise BadRequestError(f"Product {product.product_code} has no valid price")
            line_total = unit_price * requested.quantity
            total += line_total

            items.append(
                OrderItem(
                    product_id=product.id,
                    specification_id=specification.id if specification else None,
                    quantity=requested.quantity,
                    unit_price=unit_price,
                    total_price=line_total,
                    product_snapshot=_product_snapshot(product, specification),
                )
            )

        now = self.clock()
        order = Order(
            order_number=await self._next_order_number(),
            order_code=await self._next_order_code(),
            customer_name=order_data.customer_name.strip(),
            customer_email=order_data.customer_email,
            customer_phone=order_data.customer_phone.strip(),
            customer_address=order_data.customer_address,
            total_amount=total,
            status=OrderStatus.PAYMENT_PENDING,
            notes=order_data.notes,
            created_at=now,
            updated_at=now,
            items=items,
        )
        self.db.add(order)
        await self.db.flush()
        await self.db.refresh(order)

        orders_created_total.labels(source=source).inc()
        logger.info(
            "order_created",
            order_id=str(order.id),
            order_code=order.order_code,
            total_amount=float(total),
            item_count=len(items),
            source=source,
        )
        return order

    async def _next_order_code(self) -> str:
        """Next sequential code: ORD001, ORD002, ... (padding grows past ORD999)."""
        latest = await self.db.scalar(
            select(Order.order_code)
            .where(Order.order_code.like("ORD%"))
            .order_by(func.length(Order.order_code).desc(), Order.order_code.desc())
            .limit(1)
        )
        next_number = 1
        if latest:
            match = ORDER_CODE_PATTERN.match(latest)
            if match:
                next_number = int(match.group(1)) + 1
        return f"ORD{next_number:03d}"

    async def _next_order_number(self) -> str:
        candidate = int(time.time() * 1000) % 10**8
        while await self.db.scalar(select(Order.id).where(Order.order_number == f"ORD-{candidate:08d}")):
            candidate = (candidate + 1) % 10**8
        return f"ORD-{candidate:08d}"

    # Queries

    async def get_order(self, order_id: UUID) -> Order:
        """
        Get order by ID with its items.

        Raises:
            NotFoundError: If the order does not exist
        """
        order = await self.db.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    async def list_orders(
        self,
        search: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[Sequence[Order], int]:
        """
        List orders newest first with filters and pagination.

        Returns:
            Tuple of (orders, total matching count)
        """
        limit = max(1, min(limit, settings.order_page_size_max))
        page = max(page, 1)

        filters = []
        if search:
            pattern = f"%{search.strip()}%"
            filters.append(
                or_(
                    Order.order_number.ilike(pattern),
                    Order.order_code.ilike(pattern),
                    Order.customer_name.ilike(pattern),
                    Order.customer_phone.ilike(pattern),
                    Order.customer_email.ilike(pattern),
                )
            )
        if status is not None:
            filters.append(Order.status == OrderStatus(status))
        if date_from is not None:
            filters.append(Order.created_at >= date_from)
        if date_to is not None:
            filters.append(Order.created_at <= date_to)

        total = await self.db.scalar(select(func.count(Order.id)).where(*filters))
        result = await self.db.execute(
            select(Order)
            .where(*filters)
            .order_by(Order.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return result.scalars().all(), int(total or 0)

    async def get_order_stats(self) -> dict:
        """Order counts per status, revenue and today's volume."""
        rows = await self.db.execute(select(Order.status, func.count(Order.id)).group_by(Order.status))
        status_counts = {status.value: 0 for status in OrderStatus}
        for status, count in rows:
            status_counts[OrderStatus(status).value] = int(count)

        revenue = await self.db.scalar(
            select(func.coalesce(func.sum(Order.total_amount), 0)).where(Order.status.in_(REVENUE_STATUSES))
        )
        now = self.clock()
        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        today_orders = await self.db.scalar(select(func.count(Order.id)).where(Order.created_at >= today_start))

        return {
            "total_orders": sum(status_counts.values()),
            "status_counts": status_counts,
            "total_revenue": round_money(revenue or 0),
            "pending_payments": status_counts[OrderStatus.PAYMENT_PENDING.value] + status_counts[OrderStatus.PENDING.value],
            "today_orders": int(today_orders or 0),
        }

    async def export_orders_csv(
        self,
        status: Optional[OrderStatus] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> str:
        """All matching orders as CSV text (no pagination)."""
        filters = []
        if status is not None:
            filters.append(Order.status == OrderStatus(status))
        if date_from is not None:
            filters.append(Order.created_at >= date_from)
        if date_to is not None:
            filters.append(Order.created_at <= date_to)

        result = await self.db.execute(select(Order).where(*filters).order_by(Order.created_at.desc()))

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(CSV_COLUMNS)
        for order in result.scalars():
            writer.writerow(
                [
                    order.order_number,
                    order.order_code,
                    order.customer_name,
                    order.customer_email or "",
                    order.customer_phone,
                    order.customer_address or "",
                    f"{to_decimal(order.total_amount):.2f}",
                    order.status.value,
                    order.payment_received,
                    order.whatsapp_message_sent,
                    order.created_at.isoformat(),
                ]
            )
        return buffer.getvalue()

    # Admin edits

    async def update_order(self, order_id: UUID, update_data: OrderUpdate, changed_by: str) -> Order:
        """
        Update customer fields and notes; a status change goes through the transition table.

        Raises:
            NotFoundError: If the order does not exist
            InvalidStateTransitionError: If the requested status is not reachable
        """
        order = await self.get_order(order_id)
        changes = update_data.model_dump(exclude_unset=True)
        target = changes.pop("status", None)

        if target is not None and OrderStatus(target) != order.status:
            action = action_for_status_change(order.status, target)
            if action == OrderAction.CONFIRM_PAYMENT:
                self._ensure_payment_pending(order)
                order.payment_received = True
            self._transition(order, action, changed_by, notes=changes.get("notes"))

        for field, value in changes.items():
            setattr(order, field, value)
        order.updated_at = self.clock()

        await self.db.flush()
        await self.db.refresh(order)
        logger.info("order_updated", order_id=str(order.id), fields=sorted(changes))
        return order

    async def delete_order(self, order_id: UUID) -> None:
        """Hard delete an order together with its items and history."""
        order = await self.get_order(order_id)
        await self._delete_orders([order.id])
        logger.info("order_deleted", order_id=str(order_id), order_code=order.order_code)

    # Lifecycle actions

    async def approve_order(
        self,
        order_id: UUID,
        changed_by: str,
        upi_id: Optional[str] = None,
        send_payment_qr: bool = False,
        custom_message: Optional[str] = None,
    ) -> OrderActionOutcome:
        """
        Approve a pending order (-> confirmed), optionally preparing the payment request link.

        Raises:
            InvalidStateTransitionError: If the order is not pending/payment_pending
        """
        order = await self.get_order(order_id)
        self._transition(order, OrderAction.APPROVE, changed_by)

        outcome = OrderActionOutcome(order=order)
        if send_payment_qr:
            link, upi_link = self._payment_message(order, upi_id, custom_message)
            order.whatsapp_message_sent = True
            whatsapp_links_generated_total.labels(kind="payment").inc()
            outcome.whatsapp_url, outcome.payment_link = link.url, upi_link

        await self.db.flush()
        await self.db.refresh(order)
        logger.info("order_approved", order_id=str(order.id), payment_request=send_payment_qr)
        return outcome

    async def send_payment_request(
        self,
        order_id: UUID,
        changed_by: str,
        upi_id: Optional[str] = None,
        custom_message: Optional[str] = None,
    ) -> OrderActionOutcome:
        """
        Build the UPI payment request link for a confirmed, unpaid order.

        Raises:
            InvalidStateTransitionError: If the order is not confirmed or is already paid
        """
        order = await self.get_order(order_id)
        self._ensure_payment_pending(order)
        self._transition(order, OrderAction.SEND_PAYMENT_REQUEST, changed_by)

        link, upi_link = self._payment_message(order, upi_id, custom_message)
        order.whatsapp_message_sent = True
        whatsapp_links_generated_total.labels(kind="payment").inc()

        await self.db.flush()
        await self.db.refresh(order)
        return OrderActionOutcome(order=order, whatsapp_url=link.url, payment_link=upi_link)

    async def confirm_payment(
        self,
        order_id: UUID,
        changed_by: str,
        payment_reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> OrderActionOutcome:
        """
        Record payment (-> processing) and append a single "Payment confirmed" note.

        Raises:
            InvalidStateTransitionError: If payment was already received or the status does not allow it
        """
        order = await self.get_order(order_id)
        self._ensure_payment_pending(order)

        note = "Payment confirmed"
        if payment_reference:
            note += f" (Ref: {payment_reference})"
        if notes:
            note += f": {notes}"

        self._transition(order, OrderAction.CONFIRM_PAYMENT, changed_by, notes=note)
        order.payment_received = True
        order.notes = f"{order.notes}\n{note}" if order.notes else note

        await self.db.flush()
        await self.db.refresh(order)
        logger.info("order_payment_confirmed", order_id=str(order.id), reference=payment_reference)
        return OrderActionOutcome(order=order)

    async def apply_action(
        self,
        order_id: UUID,
        action: OrderAction,
        changed_by: str,
        notes: Optional[str] = None,
    ) -> OrderActionOutcome:
        """Ship, deliver or cancel an order."""
        try:
            action = OrderAction(action)
        except ValueError:
            raise BadRequestError(f"Unknown order action '{action}'") from None
        if action not in (OrderAction.SHIP, OrderAction.DELIVER, OrderAction.CANCEL):
            raise BadRequestError(f"Use the dedicated endpoint for '{action.value}'")

        order = await self.get_order(order_id)
        self._transition(order, action, changed_by, notes=notes)
        await self.db.flush()
        await self.db.refresh(order)
        return OrderActionOutcome(order=order)

    async def send_whatsapp_update(self, order_id: UUID, custom_message: Optional[str] = None) -> OrderActionOutcome:
        """Status update link for the customer; marks the order as messaged."""
        order = await self.get_order(order_id)
        try:
            link = self.whatsapp.generate_status_message(order, custom_message)
        except ValueError as e:
            raise BadRequestError(str(e)) from e

        order.whatsapp_message_sent = True
        whatsapp_links_generated_total.labels(kind="status").inc()
        await self.db.flush()
        await self.db.refresh(order)
        return OrderActionOutcome(order=order, whatsapp_url=link.url)

    # Maintenance

    async def delete_stale_orders(self, threshold: Optional[timedelta] = None) -> Tuple[int, datetime]:
        """
        Delete payment_pending orders created before ``now - threshold``, with their items.

        Returns:
            Tuple of (deleted count, cutoff used)
        """
        if threshold is None:
            threshold = timedelta(hours=settings.stale_order_threshold_hours)
        cutoff = self.clock() - threshold

        result = await self.db.execute(
            select(Order.id).where(
                Order.status == OrderStatus.PAYMENT_PENDING,
                Order.created_at < cutoff,
            )
        )
        stale_ids = list(result.scalars().all())
        if stale_ids:
            await self._delete_orders(stale_ids)
            stale_orders_deleted_total.inc(len(stale_ids))

        logger.info("stale_orders_deleted", count=len(stale_ids), cutoff=cutoff.isoformat())
        return len(stale_ids), cutoff

    async def _delete_orders(self, order_ids: List[UUID]) -> None:
        await self.db.execute(delete(OrderItem).where(OrderItem.order_id.in_(order_ids)))
        await self.db.execute(delete(OrderStatusHistory).where(OrderStatusHistory.order_id.in_(order_ids)))
        await self.db.execute(delete(Order).where(Order.id.in_(order_ids)))

    # Helpers

    def _payment_message(self, order: Order, upi_id: Optional[str], custom_message: Optional[str]) -> Tuple[WhatsAppLink, str]:
        try:
            return self.whatsapp.generate_payment_message(order, upi_id, custom_message)
        except ValueError as e:
            raise BadRequestError(str(e)) from e

    def _ensure_payment_pending(self, order: Order) -> None:
        if order.payment_received:
            order_transitions_rejected_total.labels(action="confirm_payment", from_status=order.status.value).inc()
            raise InvalidStateTransitionError(
                order.status.value,
                OrderAction.CONFIRM_PAYMENT.value,
                message="Payment has already been confirmed for this order",
            )

    def _transition(
        self,
        order: Order,
        action: OrderAction,
        changed_by: str,
        notes: Optional[str] = None,
    ) -> OrderStatus:
        """Apply ``action`` to ``order`` and record the history row. Nothing is mutated on rejection."""
        old_status = order.status
        try:
            new_status = resolve_transition(old_status, action)
        except InvalidStateTransitionError:
            order_transitions_rejected_total.labels(action=action.value, from_status=old_status.value).inc()
            logger.warning("order_transition_rejected", order_id=str(order.id), action=action.value, status=old_status.value)
            raise

        order.status = new_status
        order.updated_at = self.clock()
        self.db.add(
            OrderStatusHistory(
                order_id=order.id,
                old_status=old_status.value,
                new_status=new_status.value,
                action=action.value,
                changed_by=changed_by,
                notes=notes,
            )
        )
        order_transitions_total.labels(
            action=action.value, from_status=old_status.value, to_status=new_status.value
        ).inc()
        logger.info(
            "order_transitioned",
            order_id=str(order.id),
            action=action.value,
            from_status=old_status.value,
            to_status=new_status.value,
        )
        return new_status


def _product_snapshot(product: Product, specification: Optional[ProductSpecification]) -> dict:
    """Order snapshot: product and variant data frozen at order time."""
    snapshot = {
        "id": str(product.id),
        "name": product.name,
        "productCode": product.product_code,
        "productTypeId": str(product.product_type_id),
        "basePrice": round_money(product.base_price),
        "discountedPrice": round_money(product.discounted_price) if product.discounted_price is not None else None,
        "images": list(product.images or []),
    }
    if specification is not None:
        snapshot["specification"] = {
            "id": str(specification.id),
            "specType": specification.spec_type,
            "specValue": specification.spec_value,
            "displayName": specification.display_name,
            "priceModifier": round_money(specification.price_modifier),
        }
    return snapshot
