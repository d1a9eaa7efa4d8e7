"""Integration tests for cached analytics: computation, cooldown, staleness and atomic refresh."""
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_store.models.analytics import AnalyticsCacheEntry, AnalyticsHistory, AnalyticsMetadata, MetricType
from jewelry_store.models.order import OrderStatus
from jewelry_store.services.analytics_service import AnalyticsService
from utils.factories import ExpenseFactory, OrderFactory, ProductFactory

NOW = datetime(2024, 6, 15, 12, 0, 0)


class FakeClock:
    """Settable clock for simulating elapsed time."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(NOW)


def make_service(db: AsyncSession, clock: FakeClock) -> AnalyticsService:
    return AnalyticsService(
        db,
        clock=clock,
        cooldown=timedelta(minutes=5),
        stale_after=timedelta(hours=24),
        trend_months=3,
        top_products_limit=10,
    )


@pytest_asyncio.fixture
async def store_data(db_session: AsyncSession) -> dict:
    """
    Two revenue orders, two excluded orders and two expenses.

    Committed up front: a refresh rejected by the cooldown rolls back the session.
    """
    ring = await ProductFactory.create(db_session, name="Rose Gold Band")
    chain = await ProductFactory.create(db_session, name="Silver Chain")

    await OrderFactory.create(
        db_session, ring, quantity=2, unit_price=1000, status=OrderStatus.CONFIRMED, created_at=datetime(2024, 6, 10)
    )
    await OrderFactory.create(
        db_session, chain, quantity=1, unit_price=500, status=OrderStatus.DELIVERED, created_at=datetime(2024, 5, 20)
    )
    await OrderFactory.create(
        db_session, chain, quantity=1, unit_price=9999, status=OrderStatus.PAYMENT_PENDING, created_at=datetime(2024, 6, 1)
    )
    await OrderFactory.create(
        db_session, ring, quantity=3, unit_price=7777, status=OrderStatus.CANCELLED, created_at=datetime(2024, 6, 2)
    )

    packaging = await ExpenseFactory.create_category(db_session, name="Packaging")
    marketing = await ExpenseFactory.create_category(db_session, name="Marketing")
    await ExpenseFactory.create(db_session, packaging, amount=300, expense_date=datetime(2024, 6, 3))
    await ExpenseFactory.create(db_session, marketing, amount=100, expense_date=datetime(2024, 5, 3))

    await db_session.commit()
    return {"ring": ring, "chain": chain, "packaging": packaging}


@pytest.mark.asyncio
async def test_read_before_any_refresh_is_empty_and_stale(db_session: AsyncSession, clock: FakeClock) -> None:
    """Test that reading analytics never computes them."""
    service = make_service(db_session, clock)

    assert await service.get_cached_analytics() == {}
    metadata = await service.get_refresh_metadata()
    assert metadata is None
    assert service.is_stale(None)

    cooldown = await service.get_cooldown_status()
    assert set(cooldown) == {m.value for m in MetricType}
    assert all(status.can_refresh and status.remaining_ms == 0 for status in cooldown.values())


@pytest.mark.asyncio
async def test_refresh_populates_all_metrics(db_session: AsyncSession, clock: FakeClock, store_data: dict) -> None:
    """Test that a full refresh writes all four metrics plus history and metadata."""
    service = make_service(db_session, clock)

    result = await service.refresh_all_analytics(triggered_by="owner@example.com")

    assert result.success is True
    assert result.error is None
    assert set(result.data) == {"net_revenue", "monthly_trends", "expense_breakdown", "top_products"}

    cached = await service.get_cached_analytics()
    assert set(cached) == set(result.data)

    net = cached["net_revenue"]
    assert net["total_revenue"] == 2500.0
    assert net["total_expenses"] == 400.0
    assert net["net_revenue"] == 2100.0
    assert net["profit_margin_percentage"] == 84.0
    assert net["order_count"] == 2
    assert net["expense_count"] == 2

    history_rows = await db_session.scalar(select(func.count(AnalyticsHistory.id)))
    assert history_rows == 4

    metadata = await service.get_refresh_metadata()
    assert metadata.last_refresh_at == NOW
    assert metadata.triggered_by == "owner@example.com"
    assert metadata.total_orders_processed == 4
    assert metadata.total_expenses_processed == 2
    assert not service.is_stale(metadata.last_refresh_at)


@pytest.mark.asyncio
async def test_monthly_trends_are_contiguous_and_zero_filled(
    db_session: AsyncSession, clock: FakeClock, store_data: dict
) -> None:
    """Test that months without activity still appear with zero values."""
    service = make_service(db_session, clock)
    await service.refresh_all_analytics()

    trends = (await service.get_cached_analytics())["monthly_trends"]

    assert [m["month"] for m in trends["months"]] == ["2024-04", "2024-05", "2024-06"]
    april, may, june = trends["months"]
    assert april == {"month": "2024-04", "revenue": 0.0, "expenses": 0.0, "net_profit": 0.0, "order_count": 0}
    assert (may["revenue"], may["expenses"], may["order_count"]) == (500.0, 100.0, 1)
    assert (june["revenue"], june["expenses"], june["net_profit"]) == (2000.0, 300.0, 1700.0)


@pytest.mark.asyncio
async def test_expense_breakdown_percentages(db_session: AsyncSession, clock: FakeClock, store_data: dict) -> None:
    """Test that category shares are sorted by amount and sum to 100."""
    service = make_service(db_session, clock)
    await service.refresh_all_analytics()

    breakdown = (await service.get_cached_analytics())["expense_breakdown"]

    assert [(c["category"], c["percentage"]) for c in breakdown["categories"]] == [
        ("Packaging", 75.0),
        ("Marketing", 25.0),
    ]
    assert sum(c["percentage"] for c in breakdown["categories"]) == pytest.approx(100.0)
    assert breakdown["total_expenses"] == 400.0


@pytest.mark.asyncio
async def test_expense_breakdown_rounding_stays_close_to_100(db_session: AsyncSession, clock: FakeClock) -> None:
    """Test three equal categories (33.33% each)."""
    for name in ("Shipping", "Utilities", "Salaries"):
        category = await ExpenseFactory.create_category(db_session, name=name)
        await ExpenseFactory.create(db_session, category, amount=100)
    await db_session.commit()

    service = make_service(db_session, clock)
    breakdown = await service.calculate_expense_breakdown()

    assert [c["percentage"] for c in breakdown["categories"]] == [33.33, 33.33, 33.33]
    assert abs(sum(c["percentage"] for c in breakdown["categories"]) - 100) < 0.05


@pytest.mark.asyncio
async def test_no_expenses_gives_empty_breakdown(db_session: AsyncSession, clock: FakeClock) -> None:
    breakdown = await make_service(db_session, clock).calculate_expense_breakdown()

    assert breakdown == {"categories": [], "total_expenses": 0.0}


@pytest.mark.asyncio
async def test_top_products_from_revenue_orders_only(
    db_session: AsyncSession, clock: FakeClock, store_data: dict
) -> None:
    """Test that cancelled and unpaid orders do not count towards best sellers."""
    top = await make_service(db_session, clock).calculate_top_products()

    assert [(p["name"], p["total_sold"], p["revenue"]) for p in top["products"]] == [
        ("Rose Gold Band", 2, 2000.0),
        ("Silver Chain", 1, 500.0),
    ]
    assert top["products"][0]["average_price"] == 1000.0
    assert top["products"][0]["product_id"] == str(store_data["ring"].id)


@pytest.mark.asyncio
async def test_second_refresh_within_cooldown_is_rejected(
    db_session: AsyncSession, clock: FakeClock, store_data: dict
) -> None:
    """Test that the cooldown blocks recomputation and leaves the cache unchanged."""
    service = make_service(db_session, clock)
    first = await service.refresh_all_analytics()
    assert first.success

    # New revenue that a recomputation would pick up
    await OrderFactory.create(
        db_session, store_data["chain"], unit_price=4000, status=OrderStatus.CONFIRMED, created_at=datetime(2024, 6, 14)
    )
    await db_session.commit()

    clock.advance(minutes=2)
    second = await service.refresh_all_analytics()

    assert second.success is False
    assert second.in_cooldown
    assert second.cooldown_remaining_ms == 3 * 60 * 1000
    assert "3 minute" in second.error

    cached = await service.get_cached_analytics()
    assert cached["net_revenue"]["total_revenue"] == 2500.0
    assert cached["net_revenue"]["calculated_at"] == NOW.isoformat()
    assert await db_session.scalar(select(func.count(AnalyticsMetadata.id))) == 1


@pytest.mark.asyncio
async def test_refresh_allowed_after_cooldown_elapses(
    db_session: AsyncSession, clock: FakeClock, store_data: dict
) -> None:
    service = make_service(db_session, clock)
    await service.refresh_all_analytics()

    await OrderFactory.create(
        db_session, store_data["chain"], unit_price=4000, status=OrderStatus.CONFIRMED, created_at=datetime(2024, 6, 14)
    )
    await db_session.commit()

    clock.advance(minutes=5, seconds=1)
    result = await service.refresh_all_analytics()

    assert result.success is True
    cached = await service.get_cached_analytics()
    assert cached["net_revenue"]["total_revenue"] == 6500.0
    assert cached["net_revenue"]["calculated_at"] == clock.now.isoformat()
    assert await db_session.scalar(select(func.count(AnalyticsCacheEntry.id))) == 4
    assert await db_session.scalar(select(func.count(AnalyticsHistory.id))) == 8


@pytest.mark.asyncio
async def test_cache_becomes_stale_after_threshold(
    db_session: AsyncSession, clock: FakeClock, store_data: dict
) -> None:
    service = make_service(db_session, clock)
    await service.refresh_all_analytics()
    metadata = await service.get_refresh_metadata()

    clock.advance(hours=23)
    assert not service.is_stale(metadata.last_refresh_at)

    clock.advance(hours=1, seconds=1)
    assert service.is_stale(metadata.last_refresh_at)


@pytest.mark.asyncio
async def test_single_metric_refresh(db_session: AsyncSession, clock: FakeClock, store_data: dict) -> None:
    """Test that refreshing one metric leaves the others untouched and starts only its own cooldown."""
    service = make_service(db_session, clock)

    result = await service.refresh_metric(MetricType.NET_REVENUE, triggered_by="owner@example.com")

    assert result.success
    assert list(result.data) == ["net_revenue"]
    assert set(await service.get_cached_analytics()) == {"net_revenue"}

    cooldown = await service.get_cooldown_status()
    assert cooldown["net_revenue"].can_refresh is False
    assert cooldown["top_products"].can_refresh is True

    # Another metric can still be refreshed right away
    other = await service.refresh_metric(MetricType.TOP_PRODUCTS)
    assert other.success

    # A full refresh is blocked while any metric is cooling down
    clock.advance(minutes=1)
    blocked = await service.refresh_all_analytics()
    assert blocked.in_cooldown
    assert blocked.cooldown_remaining_ms == 4 * 60 * 1000


@pytest.mark.asyncio
async def test_failed_refresh_keeps_previous_cache(
    db_session: AsyncSession, clock: FakeClock, store_data: dict
) -> None:
    """Test that a computation failure writes nothing but a failed metadata row."""
    service = make_service(db_session, clock)
    await service.refresh_all_analytics()
    clock.advance(minutes=10)

    async def broken() -> dict:
        raise RuntimeError("aggregation exploded")

    service._calculators[MetricType.TOP_PRODUCTS] = broken
    result = await service.refresh_all_analytics(triggered_by="owner@example.com")

    assert result.success is False
    assert not result.in_cooldown
    assert "aggregation exploded" in result.error

    cached = await service.get_cached_analytics()
    assert cached["net_revenue"]["calculated_at"] == NOW.isoformat()
    assert await db_session.scalar(select(func.count(AnalyticsHistory.id))) == 4

    last_attempt = await service.get_last_refresh_attempt()
    assert last_attempt.status == "failed"
    assert "aggregation exploded" in last_attempt.error_message
    assert (await service.get_refresh_metadata()).last_refresh_at == NOW

    # The failed attempt did not start a cooldown
    assert (await service.get_cooldown_status())["net_revenue"].can_refresh is True


@pytest.mark.asyncio
async def test_live_metrics(db_session: AsyncSession, clock: FakeClock, store_data: dict) -> None:
    live = await make_service(db_session, clock).get_live_metrics()

    assert live["active_products"] == 2
    assert live["total_orders"] == 4
    assert live["total_expenses"] == 2
    assert live["timestamp"] == NOW
