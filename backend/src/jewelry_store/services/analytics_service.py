"""
Analytics service: cached business metrics with cooldown-gated refresh.

Four metric groups are precomputed from orders and expenses and stored one row
per metric in ``analytics_cache``:

- net_revenue: revenue minus expenses, with profit margin
- monthly_trends: revenue, expenses and profit per calendar month
- expense_breakdown: expense totals and share per category
- top_products: best sellers by quantity, from order item snapshots

A refresh recomputes the requested metrics and replaces their cache rows,
history rows and a metadata row in a single transaction. Recomputation is
rate limited per metric by a cooldown measured from the cache row's
``updated_at``; the cooldown is claimed with a guarded UPDATE so two
concurrent refreshes cannot both pass the check.
"""
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_store.config import settings
from jewelry_store.metrics import analytics_refresh_duration_seconds, analytics_refresh_total
from jewelry_store.models.analytics import (
    AnalyticsCacheEntry,
    AnalyticsHistory,
    AnalyticsMetadata,
    MetricType,
    RefreshStatus,
)
from jewelry_store.models.base import utcnow
from jewelry_store.models.expense import Expense, ExpenseCategory
from jewelry_store.models.order import REVENUE_STATUSES, Order, OrderItem
from jewelry_store.models.product import Product
from jewelry_store.utils.currency import round_money, to_decimal

logger = structlog.get_logger(__name__)

ALL_METRICS: tuple[MetricType, ...] = tuple(MetricType)
UNCATEGORIZED = "Uncategorized"


@dataclass(frozen=True)
class CooldownStatus:
    """Whether a metric may be recomputed, and how long until it may."""

    can_refresh: bool
    remaining_ms: int


@dataclass
class RefreshResult:
    """Outcome of a refresh request."""

    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    cooldown_remaining_ms: int = 0
    computation_time_ms: int = 0

    @property
    def in_cooldown(self) -> bool:
        return not self.success and self.cooldown_remaining_ms > 0


def is_stale(last_refresh_at: Optional[datetime], now: datetime, threshold: timedelta) -> bool:
    """
    True when analytics were never refreshed or are older than ``threshold``.

    Examples:
        >>> now = datetime(2024, 1, 2)
        >>> is_stale(None, now, timedelta(hours=24))
        True
        >>> is_stale(now, now, timedelta(hours=24))
        False
    """
    if last_refresh_at is None:
        return True
    return now - last_refresh_at > threshold


def cooldown_remaining_ms(last_updated: Optional[datetime], now: datetime, cooldown: timedelta) -> int:
    """Milliseconds left before ``cooldown`` has elapsed since ``last_updated`` (0 when it has)."""
    if last_updated is None:
        return 0
    remaining = cooldown - (now - last_updated)
    if remaining <= timedelta(0):
        return 0
    return math.ceil(remaining / timedelta(milliseconds=1))


def month_keys(now: datetime, months: int) -> List[str]:
    """
    ``YYYY-MM`` keys for the ``months`` calendar months ending with ``now``'s month, oldest first.

    Examples:
        >>> month_keys(datetime(2024, 2, 10), 3)
        ['2023-12', '2024-01', '2024-02']
    """
    year, month = now.year, now.month
    keys = []
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    keys.reverse()
    return keys


def _month_key(value: datetime) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def _month_start(key: str) -> datetime:
    year, month = key.split("-")
    return datetime(int(year), int(month), 1)


def _percentage(part: Decimal, whole: Decimal) -> float:
    if whole <= 0:
        return 0.0
    return round(float(part / whole * 100), 2)


class AnalyticsService:
    """
    Computes, caches and serves analytics metrics.

    The clock is injectable so cooldown and staleness can be exercised with
    simulated time.
    """

    def __init__(
        self,
        db: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
        cooldown: Optional[timedelta] = None,
        stale_after: Optional[timedelta] = None,
        trend_months: Optional[int] = None,
        top_products_limit: Optional[int] = None,
    ):
        """
        Initialize analytics service.

        Args:
            db: Async database session
            clock: Returns the current naive UTC time
            cooldown: Minimum interval between recomputations of a metric
            stale_after: Age after which cached analytics are reported stale
            trend_months: Months covered by monthly trends
            top_products_limit: Number of products kept in top products
        """
        self.db = db
        self.clock = clock
        self.cooldown = cooldown if cooldown is not None else timedelta(
            seconds=settings.analytics_refresh_cooldown_seconds
        )
        self.stale_after = stale_after if stale_after is not None else timedelta(
            hours=settings.analytics_stale_after_hours
        )
        self.trend_months = trend_months or settings.analytics_trend_months
        self.top_products_limit = top_products_limit or settings.analytics_top_products_limit

        self._calculators: Dict[MetricType, Callable[[], Awaitable[Dict[str, Any]]]] = {
            MetricType.NET_REVENUE: self.calculate_net_revenue,
            MetricType.MONTHLY_TRENDS: self.calculate_monthly_trends,
            MetricType.EXPENSE_BREAKDOWN: self.calculate_expense_breakdown,
            MetricType.TOP_PRODUCTS: self.calculate_top_products,
        }

    # Read path

    async def get_cached_entries(self, metric_types: Optional[Iterable[MetricType]] = None) -> List[AnalyticsCacheEntry]:
        stmt = select(AnalyticsCacheEntry).order_by(AnalyticsCacheEntry.metric_type)
        if metric_types is not None:
            stmt = stmt.where(AnalyticsCacheEntry.metric_type.in_([MetricType(m).value for m in metric_types]))
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_cached_analytics(self) -> Dict[str, Any]:
        """
        Cached payloads keyed by metric type.

        Returns an empty dict when analytics were never refreshed.
        """
        entries = await self.get_cached_entries()
        return {entry.metric_type: entry.calculated_data for entry in entries}

    async def get_refresh_metadata(self) -> Optional[AnalyticsMetadata]:
        """Latest completed refresh, or None if no refresh ever completed."""
        result = await self.db.execute(
            select(AnalyticsMetadata)
            .where(AnalyticsMetadata.status == RefreshStatus.COMPLETED.value)
            .order_by(AnalyticsMetadata.last_refresh_at.desc(), AnalyticsMetadata.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_last_refresh_attempt(self) -> Optional[AnalyticsMetadata]:
        """Latest refresh attempt of any status."""
        result = await self.db.execute(
            select(AnalyticsMetadata)
            .order_by(AnalyticsMetadata.last_refresh_at.desc(), AnalyticsMetadata.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    def is_stale(self, last_refresh_at: Optional[datetime]) -> bool:
        return is_stale(last_refresh_at, self.clock(), self.stale_after)

    # Cooldown gate

    async def get_cooldown_status(
        self, metric_types: Iterable[MetricType] = ALL_METRICS
    ) -> Dict[str, CooldownStatus]:
        """Cooldown state per metric type; metrics never computed can always refresh."""
        metric_types = [MetricType(m) for m in metric_types]
        entries = {entry.metric_type: entry for entry in await self.get_cached_entries(metric_types)}
        return self._cooldown_from_entries(metric_types, entries, self.clock())

    def _cooldown_from_entries(
        self,
        metric_types: Sequence[MetricType],
        entries: Dict[str, AnalyticsCacheEntry],
        now: datetime,
    ) -> Dict[str, CooldownStatus]:
        statuses = {}
        for metric in metric_types:
            entry = entries.get(metric.value)
            remaining = cooldown_remaining_ms(entry.updated_at if entry else None, now, self.cooldown)
            statuses[metric.value] = CooldownStatus(can_refresh=remaining == 0, remaining_ms=remaining)
        return statuses

    # Refresh orchestration

    async def refresh_all_analytics(self, triggered_by: str = "system") -> RefreshResult:
        """
        Recompute all four metrics and replace the cache atomically.

        Args:
            triggered_by: Identifier recorded on the metadata row (admin email, "system")

        Returns:
            RefreshResult. On cooldown ``cooldown_remaining_ms`` is set and nothing is written;
            on failure ``error`` is set and the previous cache is left untouched.
        """
        return await self._refresh(ALL_METRICS, triggered_by)

    async def refresh_metric(self, metric_type: MetricType, triggered_by: str = "system") -> RefreshResult:
        """Recompute a single metric with the same cooldown and atomicity rules."""
        return await self._refresh((MetricType(metric_type),), triggered_by)

    async def _refresh(self, metric_types: Sequence[MetricType], triggered_by: str) -> RefreshResult:
        started = time.perf_counter()
        now = self.clock()
        names = [metric.value for metric in metric_types]
        log = logger.bind(metrics=names, triggered_by=triggered_by)

        entries = {entry.metric_type: entry for entry in await self.get_cached_entries(metric_types)}
        statuses = self._cooldown_from_entries(metric_types, entries, now)
        blocked_ms = max((s.remaining_ms for s in statuses.values() if not s.can_refresh), default=0)
        if blocked_ms:
            # Release the read transaction before returning
            await self.db.rollback()
            log.info("analytics_refresh_in_cooldown", cooldown_remaining_ms=blocked_ms)
            return self._cooldown_result(blocked_ms)

        try:
            if not await self._claim(list(entries), now):
                await self.db.rollback()
                log.info("analytics_refresh_lost_race")
                return self._cooldown_result(self._full_cooldown_ms())

            payloads: Dict[str, Dict[str, Any]] = {}
            for metric in metric_types:
                metric_started = time.perf_counter()
                payload = await self._calculators[metric]()
                payload["calculated_at"] = now.isoformat()
                payload["computation_time_ms"] = int((time.perf_counter() - metric_started) * 1000)
                payloads[metric.value] = payload

            for metric in metric_types:
                payload = payloads[metric.value]
                entry = entries.get(metric.value)
                if entry is None:
                    entry = AnalyticsCacheEntry(metric_type=metric.value, created_at=now)
                    self.db.add(entry)
                entry.calculated_data = payload
                entry.computation_time_ms = payload["computation_time_ms"]
                entry.data_period_start = self._period_start(metric, now)
                entry.data_period_end = now
                entry.updated_at = now
                self.db.add(AnalyticsHistory(metric_type=metric.value, calculated_data=payload, snapshot_date=now))

            order_count, expense_count = await self._record_counts()
            duration_ms = int((time.perf_counter() - started) * 1000)
            self.db.add(
                AnalyticsMetadata(
                    last_refresh_at=now,
                    refresh_duration_ms=duration_ms,
                    total_orders_processed=order_count,
                    total_expenses_processed=expense_count,
                    triggered_by=triggered_by,
                    status=RefreshStatus.COMPLETED.value,
                    created_at=now,
                )
            )
            await self.db.commit()

        except IntegrityError:
            # A concurrent refresh inserted the first cache rows
            await self.db.rollback()
            log.info("analytics_refresh_lost_race")
            return self._cooldown_result(self._full_cooldown_ms())

        except Exception as exc:
            await self.db.rollback()
            log.exception("analytics_refresh_failed", error=str(exc))
            analytics_refresh_total.labels(outcome="failed").inc()
            await self._record_failure(now, started, triggered_by, str(exc))
            return RefreshResult(success=False, error=f"Failed to refresh analytics: {exc}")

        analytics_refresh_total.labels(outcome="completed").inc()
        analytics_refresh_duration_seconds.observe(duration_ms / 1000)
        log.info("analytics_refresh_completed", duration_ms=duration_ms, orders=order_count, expenses=expense_count)
        return RefreshResult(success=True, data=payloads, computation_time_ms=duration_ms)

    async def _claim(self, existing: List[str], now: datetime) -> bool:
        """
        Stamp existing cache rows whose cooldown has elapsed.

        Succeeds only if every existing row was claimed; a row updated by a
        concurrent refresh no longer matches the cutoff and is skipped.
        """
        if not existing:
            return True
        cutoff = now - self.cooldown
        result = await self.db.execute(
            update(AnalyticsCacheEntry)
            .where(
                AnalyticsCacheEntry.metric_type.in_(existing),
                AnalyticsCacheEntry.updated_at <= cutoff,
            )
            .values(updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == len(existing)

    async def _record_failure(self, now: datetime, started: float, triggered_by: str, error: str) -> None:
        self.db.add(
            AnalyticsMetadata(
                last_refresh_at=now,
                refresh_duration_ms=int((time.perf_counter() - started) * 1000),
                triggered_by=triggered_by,
                status=RefreshStatus.FAILED.value,
                error_message=error[:1000],
                created_at=now,
            )
        )
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("analytics_failure_record_failed")

    def _cooldown_result(self, remaining_ms: int) -> RefreshResult:
        analytics_refresh_total.labels(outcome="cooldown").inc()
        minutes = math.ceil(remaining_ms / 60_000)
        return RefreshResult(
            success=False,
            error=f"Analytics were refreshed recently. Try again in {minutes} minute(s).",
            cooldown_remaining_ms=remaining_ms,
        )

    def _full_cooldown_ms(self) -> int:
        return math.ceil(self.cooldown / timedelta(milliseconds=1))

    def _period_start(self, metric: MetricType, now: datetime) -> Optional[datetime]:
        if metric == MetricType.MONTHLY_TRENDS:
            return _month_start(month_keys(now, self.trend_months)[0])
        return None

    async def _record_counts(self) -> tuple[int, int]:
        orders = await self.db.scalar(select(func.count(Order.id)))
        expenses = await self.db.scalar(select(func.count(Expense.id)))
        return int(orders or 0), int(expenses or 0)

    # Metric calculations

    async def calculate_net_revenue(self) -> Dict[str, Any]:
        """All-time revenue from confirmed-or-later orders minus all expenses."""
        revenue, order_count = (
            await self.db.execute(
                select(func.coalesce(func.sum(Order.total_amount), 0), func.count(Order.id)).where(
                    Order.status.in_(REVENUE_STATUSES)
                )
            )
        ).one()
        expenses, expense_count = (
            await self.db.execute(select(func.coalesce(func.sum(Expense.amount), 0), func.count(Expense.id)))
        ).one()

        total_revenue = to_decimal(revenue)
        total_expenses = to_decimal(expenses)
        net_revenue = total_revenue - total_expenses

        return {
            "total_revenue": round_money(total_revenue),
            "total_expenses": round_money(total_expenses),
            "net_revenue": round_money(net_revenue),
            "profit_margin_percentage": _percentage(net_revenue, total_revenue),
            "order_count": int(order_count),
            "expense_count": int(expense_count),
        }

    async def calculate_monthly_trends(self) -> Dict[str, Any]:
        """Contiguous, zero-filled monthly series ending with the current month."""
        keys = month_keys(self.clock(), self.trend_months)
        window_start = _month_start(keys[0])
        buckets = {key: {"revenue": Decimal(0), "expenses": Decimal(0), "order_count": 0} for key in keys}

        orders = await self.db.execute(
            select(Order.created_at, Order.total_amount).where(
                Order.status.in_(REVENUE_STATUSES),
                Order.created_at >= window_start,
            )
        )
        for created_at, amount in orders:
            bucket = buckets.get(_month_key(created_at))
            if bucket is not None:
                bucket["revenue"] += to_decimal(amount)
                bucket["order_count"] += 1

        expenses = await self.db.execute(
            select(Expense.expense_date, Expense.amount).where(Expense.expense_date >= window_start)
        )
        for expense_date, amount in expenses:
            bucket = buckets.get(_month_key(expense_date))
            if bucket is not None:
                bucket["expenses"] += to_decimal(amount)

        months = [
            {
                "month": key,
                "revenue": round_money(bucket["revenue"]),
                "expenses": round_money(bucket["expenses"]),
                "net_profit": round_money(bucket["revenue"] - bucket["expenses"]),
                "order_count": bucket["order_count"],
            }
            for key, bucket in buckets.items()
        ]
        return {"months": months, "period_start": keys[0], "period_end": keys[-1]}

    async def calculate_expense_breakdown(self) -> Dict[str, Any]:
        """Expense totals per category with each category's share of the grand total."""
        category_name = func.coalesce(ExpenseCategory.name, UNCATEGORIZED)
        rows = await self.db.execute(
            select(category_name, func.sum(Expense.amount), func.count(Expense.id))
            .select_from(Expense)
            .outerjoin(ExpenseCategory, Expense.category_id == ExpenseCategory.id)
            .group_by(category_name)
        )
        totals = [(name, to_decimal(amount or 0), int(count)) for name, amount, count in rows]
        grand_total = sum((amount for _, amount, _ in totals), Decimal(0))

        categories = sorted(
            (
                {
                    "category": name,
                    "amount": round_money(amount),
                    "count": count,
                    "percentage": _percentage(amount, grand_total),
                }
                for name, amount, count in totals
            ),
            key=lambda c: (-c["amount"], c["category"]),
        )
        return {"categories": categories, "total_expenses": round_money(grand_total)}

    async def calculate_top_products(self) -> Dict[str, Any]:
        """Best sellers by quantity (revenue breaks ties), named from order snapshots."""
        rows = await self.db.execute(
            select(
                OrderItem.product_id,
                OrderItem.order_id,
                OrderItem.quantity,
                OrderItem.total_price,
                OrderItem.product_snapshot,
            )
            .join(Order, OrderItem.order_id == Order.id)
            .where(Order.status.in_(REVENUE_STATUSES))
        )

        aggregates: Dict[str, Dict[str, Any]] = {}
        for product_id, order_id, quantity, total_price, snapshot in rows:
            key = str(product_id)
            agg = aggregates.setdefault(
                key,
                {"name": _snapshot_name(snapshot), "total_sold": 0, "revenue": Decimal(0), "orders": set()},
            )
            agg["total_sold"] += quantity
            agg["revenue"] += to_decimal(total_price)
            agg["orders"].add(order_id)

        ranked = sorted(
            aggregates.items(),
            key=lambda item: (-item[1]["total_sold"], -item[1]["revenue"], item[1]["name"]),
        )[: self.top_products_limit]

        products = [
            {
                "product_id": product_id,
                "name": agg["name"],
                "total_sold": agg["total_sold"],
                "revenue": round_money(agg["revenue"]),
                "average_price": round_money(agg["revenue"] / agg["total_sold"]) if agg["total_sold"] else 0.0,
                "order_count": len(agg["orders"]),
            }
            for product_id, agg in ranked
        ]
        return {"products": products, "limit": self.top_products_limit}

    # Live (uncached) counts

    async def get_live_metrics(self) -> Dict[str, Any]:
        active_products = await self.db.scalar(select(func.count(Product.id)).where(Product.is_active.is_(True)))
        orders, expenses = await self._record_counts()
        return {
            "active_products": int(active_products or 0),
            "total_orders": orders,
            "total_expenses": expenses,
            "timestamp": self.clock(),
        }


def _snapshot_name(snapshot: Optional[Dict[str, Any]]) -> str:
    snapshot = snapshot or {}
    product = snapshot.get("product") or {}
    return product.get("name") or snapshot.get("name") or "Unknown Product"
