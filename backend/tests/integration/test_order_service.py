"""Integration tests for order creation, lifecycle actions and the stale order sweep."""
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_store.exceptions import BadRequestError, InvalidStateTransitionError, NotFoundError
from jewelry_store.models.order import Order, OrderItem, OrderStatus, OrderStatusHistory
from jewelry_store.schemas.order import OrderCreate, OrderItemCreate, OrderUpdate
from jewelry_store.services.order_service import OrderService
from jewelry_store.services.order_transitions import OrderAction
from utils.factories import OrderFactory, ProductFactory

NOW = datetime(2024, 6, 15, 12, 0, 0)


def make_service(db: AsyncSession) -> OrderService:
    return OrderService(db, clock=lambda: NOW)


async def history_actions(db: AsyncSession, order: Order) -> list[str]:
    result = await db.execute(
        select(OrderStatusHistory.action)
        .where(OrderStatusHistory.order_id == order.id)
        .order_by(OrderStatusHistory.created_at)
    )
    return list(result.scalars())


@pytest.mark.asyncio
async def test_create_order_prices_items_server_side(db_session: AsyncSession) -> None:
    """Test that unit prices come from the catalog plus the specification modifier."""
    product = await ProductFactory.create(
        db_session,
        base_price=Decimal("4999.00"),
        discounted_price=Decimal("4499.00"),
        specifications=[
            {"spec_value": "8", "display_name": "Size 8", "price_modifier": Decimal("150.00")},
        ],
    )
    spec = product.specifications[0]

    order = await make_service(db_session).create_order(
        OrderCreate(
            customer_name="  Asha Rao ",
            customer_phone="9876543210",
            items=[OrderItemCreate(product_id=product.id, specification_id=spec.id, quantity=2)],
        )
    )
    await db_session.commit()

    assert order.status == OrderStatus.PAYMENT_PENDING
    assert order.payment_received is False
    assert order.customer_name == "Asha Rao"
    assert order.order_code == "ORD001"
    assert order.order_number.startswith("ORD-")
    assert len(order.order_number) == 12
    assert order.total_amount == Decimal("9298.00")

    item = order.items[0]
    assert item.unit_price == Decimal("4649.00")
    assert item.product_snapshot["name"] == product.name
    assert item.product_snapshot["specification"]["displayName"] == "Size 8"


@pytest.mark.asyncio
async def test_order_codes_are_sequential(db_session: AsyncSession) -> None:
    product = await ProductFactory.create(db_session)
    service = make_service(db_session)
    request = OrderCreate(
        customer_name="Ravi",
        customer_phone="9876543210",
        items=[OrderItemCreate(product_id=product.id, quantity=1)],
    )

    first = await service.create_order(request)
    second = await service.create_order(request)

    assert (first.order_code, second.order_code) == ("ORD001", "ORD002")
    assert first.order_number != second.order_number


@pytest.mark.asyncio
async def test_create_order_rejects_inactive_product(db_session: AsyncSession) -> None:
    product = await ProductFactory.create(db_session, is_active=False)

    with pytest.raises(BadRequestError):
        await make_service(db_session).create_order(
            OrderCreate(
                customer_name="Ravi",
                customer_phone="9876543210",
                items=[OrderItemCreate(product_id=product.id, quantity=1)],
            )
        )


@pytest.mark.asyncio
async def test_approve_moves_to_confirmed_and_records_history(db_session: AsyncSession) -> None:
    product = await ProductFactory.create(db_session)
    order = await OrderFactory.create(db_session, product)

    outcome = await make_service(db_session).approve_order(order.id, changed_by="owner@example.com")

    assert outcome.order.status == OrderStatus.CONFIRMED
    assert outcome.order.payment_received is False
    assert outcome.whatsapp_url is None
    assert await history_actions(db_session, order) == ["approve"]


@pytest.mark.asyncio
async def test_approve_rejects_already_confirmed_order(db_session: AsyncSession) -> None:
    product = await ProductFactory.create(db_session)
    order = await OrderFactory.create(db_session, product, status=OrderStatus.CONFIRMED)

    with pytest.raises(InvalidStateTransitionError) as exc_info:
        await make_service(db_session).approve_order(order.id, changed_by="owner@example.com")

    assert exc_info.value.status_code == 400
    assert exc_info.value.details == {"currentStatus": "confirmed", "action": "approve"}
    assert order.status == OrderStatus.CONFIRMED
    assert order.payment_received is False
    assert await history_actions(db_session, order) == []


@pytest.mark.asyncio
async def test_approve_with_payment_request_builds_links(db_session: AsyncSession) -> None:
    product = await ProductFactory.create(db_session)
    order = await OrderFactory.create(db_session, product, unit_price=1499)

    outcome = await make_service(db_session).approve_order(
        order.id, changed_by="owner@example.com", upi_id="shop@okbank", send_payment_qr=True
    )

    assert outcome.whatsapp_url.startswith("https://wa.me/91")
    assert outcome.payment_link.startswith("upi://pay?pa=shop%40okbank")
    assert "am=1499.00" in outcome.payment_link
    assert outcome.order.whatsapp_message_sent is True


@pytest.mark.asyncio
async def test_send_payment_request_requires_confirmed(db_session: AsyncSession) -> None:
    product = await ProductFactory.create(db_session)
    order = await OrderFactory.create(db_session, product)

    with pytest.raises(InvalidStateTransitionError):
        await make_service(db_session).send_payment_request(order.id, changed_by="owner@example.com")

    confirmed = await OrderFactory.create(db_session, product, status=OrderStatus.CONFIRMED)
    outcome = await make_service(db_session).send_payment_request(confirmed.id, changed_by="owner@example.com")
    assert outcome.order.status == OrderStatus.CONFIRMED
    assert outcome.payment_link.startswith("upi://pay?")


@pytest.mark.asyncio
async def test_confirm_payment_appends_single_note(db_session: AsyncSession) -> None:
    """Test that payment confirmation moves to processing and writes the note exactly once."""
    product = await ProductFactory.create(db_session)
    order = await OrderFactory.create(db_session, product, status=OrderStatus.CONFIRMED, notes="Gift wrap")
    service = make_service(db_session)

    outcome = await service.confirm_payment(
        order.id, changed_by="owner@example.com", payment_reference="UPI123", notes="paid via GPay"
    )

    assert outcome.order.status == OrderStatus.PROCESSING
    assert outcome.order.payment_received is True
    assert outcome.order.notes == "Gift wrap\nPayment confirmed (Ref: UPI123): paid via GPay"

    with pytest.raises(InvalidStateTransitionError) as exc_info:
        await service.confirm_payment(order.id, changed_by="owner@example.com", payment_reference="UPI123")

    assert "already been confirmed" in exc_info.value.message
    refreshed = await service.get_order(order.id)
    assert refreshed.notes.count("Payment confirmed") == 1
    assert refreshed.status == OrderStatus.PROCESSING


@pytest.mark.asyncio
async def test_illegal_transition_leaves_order_unchanged(db_session: AsyncSession) -> None:
    product = await ProductFactory.create(db_session)
    order = await OrderFactory.create(db_session, product, status=OrderStatus.PROCESSING)
    updated_at = order.updated_at

    with pytest.raises(InvalidStateTransitionError) as exc_info:
        await make_service(db_session).approve_order(order.id, changed_by="owner@example.com")

    assert exc_info.value.details == {"currentStatus": "processing", "action": "approve"}
    assert order.status == OrderStatus.PROCESSING
    assert order.updated_at == updated_at
    assert await history_actions(db_session, order) == []


@pytest.mark.asyncio
async def test_ship_deliver_and_terminal_state(db_session: AsyncSession) -> None:
    product = await ProductFactory.create(db_session)
    order = await OrderFactory.create(db_session, product, status=OrderStatus.PROCESSING)
    service = make_service(db_session)

    await service.apply_action(order.id, OrderAction.SHIP, changed_by="owner@example.com")
    outcome = await service.apply_action(order.id, "deliver", changed_by="owner@example.com", notes="Signed by customer")

    assert outcome.order.status == OrderStatus.DELIVERED
    assert await history_actions(db_session, order) == ["ship", "deliver"]

    with pytest.raises(InvalidStateTransitionError):
        await service.apply_action(order.id, OrderAction.CANCEL, changed_by="owner@example.com")


@pytest.mark.asyncio
async def test_apply_action_rejects_unknown_and_dedicated_actions(db_session: AsyncSession) -> None:
    product = await ProductFactory.create(db_session)
    order = await OrderFactory.create(db_session, product)
    service = make_service(db_session)

    with pytest.raises(BadRequestError):
        await service.apply_action(order.id, "teleport", changed_by="owner@example.com")
    with pytest.raises(BadRequestError):
        await service.apply_action(order.id, OrderAction.APPROVE, changed_by="owner@example.com")


@pytest.mark.asyncio
async def test_status_edit_goes_through_transition_table(db_session: AsyncSession) -> None:
    product = await ProductFactory.create(db_session)
    order = await OrderFactory.create(db_session, product, status=OrderStatus.PROCESSING)
    service = make_service(db_session)

    updated = await service.update_order(
        order.id, OrderUpdate(status=OrderStatus.SHIPPED, customer_address="New address"), changed_by="owner@example.com"
    )
    assert updated.status == OrderStatus.SHIPPED
    assert updated.customer_address == "New address"

    pending = await OrderFactory.create(db_session, product)
    with pytest.raises(InvalidStateTransitionError):
        await service.update_order(pending.id, OrderUpdate(status=OrderStatus.DELIVERED), changed_by="owner@example.com")
    assert pending.status == OrderStatus.PAYMENT_PENDING


@pytest.mark.asyncio
async def test_status_edit_to_processing_marks_payment(db_session: AsyncSession) -> None:
    product = await ProductFactory.create(db_session)
    order = await OrderFactory.create(db_session, product, status=OrderStatus.CONFIRMED)

    updated = await make_service(db_session).update_order(
        order.id, OrderUpdate(status=OrderStatus.PROCESSING), changed_by="owner@example.com"
    )

    assert updated.payment_received is True
    assert await history_actions(db_session, order) == ["confirm_payment"]


@pytest.mark.asyncio
async def test_send_whatsapp_update(db_session: AsyncSession) -> None:
    product = await ProductFactory.create(db_session)
    order = await OrderFactory.create(db_session, product, status=OrderStatus.SHIPPED, customer_phone="+91 98765 43210")

    outcome = await make_service(db_session).send_whatsapp_update(order.id, custom_message="On its way!")

    assert outcome.whatsapp_url == "https://wa.me/919876543210?text=On%20its%20way%21"
    assert outcome.order.whatsapp_message_sent is True


@pytest.mark.asyncio
async def test_delete_stale_orders(db_session: AsyncSession) -> None:
    """Test that only old payment_pending orders are removed, along with their items."""
    product = await ProductFactory.create(db_session)
    stale = await OrderFactory.create(db_session, product, created_at=NOW - timedelta(hours=3))
    recent = await OrderFactory.create(db_session, product, created_at=NOW - timedelta(hours=1))
    old_confirmed = await OrderFactory.create(
        db_session, product, status=OrderStatus.CONFIRMED, created_at=NOW - timedelta(hours=5)
    )
    old_delivered = await OrderFactory.create(
        db_session, product, status=OrderStatus.DELIVERED, created_at=NOW - timedelta(days=30)
    )
    stale_id = stale.id

    count, cutoff = await make_service(db_session).delete_stale_orders(timedelta(hours=2))
    await db_session.commit()

    assert count == 1
    assert cutoff == NOW - timedelta(hours=2)

    remaining = set((await db_session.execute(select(Order.id))).scalars())
    assert remaining == {recent.id, old_confirmed.id, old_delivered.id}
    orphan_items = await db_session.scalar(select(func.count(OrderItem.id)).where(OrderItem.order_id == stale_id))
    assert orphan_items == 0


@pytest.mark.asyncio
async def test_delete_stale_orders_with_nothing_to_delete(db_session: AsyncSession) -> None:
    product = await ProductFactory.create(db_session)
    await OrderFactory.create(db_session, product, created_at=NOW)

    count, _ = await make_service(db_session).delete_stale_orders()

    assert count == 0


@pytest.mark.asyncio
async def test_list_orders_filters_and_paginates(db_session: AsyncSession) -> None:
    product = await ProductFactory.create(db_session)
    for days in range(5):
        await OrderFactory.create(db_session, product, created_at=NOW - timedelta(days=days))
    target = await OrderFactory.create(
        db_session, product, status=OrderStatus.SHIPPED, customer_name="Meera Iyer", created_at=NOW - timedelta(days=10)
    )
    service = make_service(db_session)

    page, total = await service.list_orders(status=OrderStatus.PAYMENT_PENDING, page=2, limit=2)
    assert total == 5
    assert len(page) == 2
    assert page[0].created_at > page[1].created_at

    found, total = await service.list_orders(search="meera")
    assert total == 1
    assert found[0].id == target.id

    ranged, total = await service.list_orders(date_from=NOW - timedelta(days=1, hours=1))
    assert total == 2


@pytest.mark.asyncio
async def test_order_stats_and_export(db_session: AsyncSession) -> None:
    product = await ProductFactory.create(db_session)
    await OrderFactory.create(db_session, product, unit_price=1000, status=OrderStatus.CONFIRMED, created_at=NOW)
    await OrderFactory.create(db_session, product, unit_price=500, created_at=NOW - timedelta(days=2))
    service = make_service(db_session)

    stats = await service.get_order_stats()
    assert stats["total_orders"] == 2
    assert stats["status_counts"]["confirmed"] == 1
    assert stats["pending_payments"] == 1
    assert stats["total_revenue"] == 1000.0
    assert stats["today_orders"] == 1

    csv_text = await service.export_orders_csv(status=OrderStatus.CONFIRMED)
    lines = csv_text.strip().splitlines()
    assert lines[0].startswith("order_number,order_code")
    assert len(lines) == 2
    assert ",1000.00,confirmed," in lines[1]


@pytest.mark.asyncio
async def test_get_missing_order_raises(db_session: AsyncSession) -> None:
    with pytest.raises(NotFoundError):
        await make_service(db_session).get_order(uuid4())
