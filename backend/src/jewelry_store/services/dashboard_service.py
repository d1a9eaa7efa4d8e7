"""Dashboard widgets.

Cheap counters are computed on every call. Aggregates over the whole orders
table are cached in Redis with a per-widget TTL (and recomputed whenever Redis
is unavailable).
"""
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_store.cache import RedisCache, cache, cache_key
from jewelry_store.config import settings
from jewelry_store.models.base import utcnow
from jewelry_store.models.expense import Expense
from jewelry_store.models.order import REVENUE_STATUSES, Order, OrderStatus
from jewelry_store.models.product import Product
from jewelry_store.utils.currency import format_amount, round_money, to_decimal

logger = structlog.get_logger(__name__)

# Seconds each cached widget stays valid
WIDGET_TTLS = {
    "active_products": 30 * 60,
    "overall_revenue": 2 * 60 * 60,
    "monthly_revenue": 30 * 60,
    "monthly_orders": 30 * 60,
    "net_profit": 2 * 60 * 60,
    "average_order_value": 60 * 60,
    "overall_aov": 60 * 60,
    "revenue_growth": 30 * 60,
}

WIDGET_KEY_PATTERN = "widget:*"


def _month_bounds(now: datetime, months_back: int = 0) -> tuple[datetime, datetime]:
    year, month = now.year, now.month - months_back
    while month <= 0:
        year, month = year - 1, month + 12
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


def revenue_growth(current: Decimal, previous: Decimal) -> Dict[str, Any]:
    """
    Month-over-month growth.

    Examples:
        >>> revenue_growth(Decimal(150), Decimal(100))["formatted"]
        '+50.0%'
        >>> revenue_growth(Decimal(10), Decimal(0))["trend"]
        'up'
    """
    if previous > 0:
        percentage = float((current - previous) / previous * 100)
    elif current > 0:
        percentage = 100.0
    else:
        percentage = 0.0
    trend = "up" if percentage > 0 else "down" if percentage < 0 else "neutral"
    sign = "+" if percentage >= 0 else ""
    return {"percentage": round(percentage, 2), "trend": trend, "formatted": f"{sign}{percentage:.1f}%"}


class DashboardService:
    """Computes dashboard widget values."""

    def __init__(
        self,
        db: AsyncSession,
        store: RedisCache = cache,
        clock: Callable[[], datetime] = utcnow,
        stale_after: Optional[timedelta] = None,
    ):
        self.db = db
        self.store = store
        self.clock = clock
        self.stale_after = stale_after or timedelta(hours=settings.stale_order_threshold_hours)

    # Uncached

    async def get_pending_actions(self) -> int:
        """Orders waiting for payment."""
        return await self._count(Order.status == OrderStatus.PAYMENT_PENDING)

    async def get_stale_order_count(self) -> int:
        """payment_pending orders older than the stale order threshold."""
        cutoff = self.clock() - self.stale_after
        return await self._count(Order.status == OrderStatus.PAYMENT_PENDING, Order.created_at <= cutoff)

    async def get_todays_orders(self) -> int:
        """Orders placed today that are past payment and not cancelled."""
        today = self.clock().replace(hour=0, minute=0, second=0, microsecond=0)
        return await self._count(
            Order.status.notin_([OrderStatus.CANCELLED, OrderStatus.PAYMENT_PENDING]),
            Order.created_at >= today,
            Order.created_at < today + timedelta(days=1),
        )

    async def get_pending_orders(self) -> int:
        """Unpaid orders plus anything placed within the stale window, excluding cancellations."""
        recent = self.clock() - self.stale_after
        return await self._count(
            Order.status != OrderStatus.CANCELLED,
            (Order.status == OrderStatus.PAYMENT_PENDING) | (Order.created_at >= recent),
        )

    # Cached

    async def get_active_products(self) -> int:
        return await self._cached("active_products", self._active_products)

    async def get_overall_revenue(self) -> Dict[str, Any]:
        return await self._cached("overall_revenue", self._overall_revenue)

    async def get_monthly_revenue(self) -> Dict[str, Any]:
        return await self._cached("monthly_revenue", self._monthly_revenue)

    async def get_monthly_orders(self) -> int:
        return await self._cached("monthly_orders", self._monthly_orders)

    async def get_net_profit(self) -> Dict[str, Any]:
        return await self._cached("net_profit", self._net_profit)

    async def get_average_order_value(self) -> Dict[str, Any]:
        return await self._cached("average_order_value", self._monthly_aov)

    async def get_overall_aov(self) -> Dict[str, Any]:
        return await self._cached("overall_aov", self._overall_aov)

    async def get_revenue_growth(self) -> Dict[str, Any]:
        return await self._cached("revenue_growth", self._revenue_growth)

    async def get_all_widgets(self) -> Dict[str, Any]:
        """Every widget in one payload, keyed in camelCase for the dashboard."""
        return {
            "pendingActions": await self.get_pending_actions(),
            "staleData": await self.get_stale_order_count(),
            "todaysOrders": await self.get_todays_orders(),
            "pendingOrders": await self.get_pending_orders(),
            "activeProducts": await self.get_active_products(),
            "overallRevenue": await self.get_overall_revenue(),
            "monthlyRevenue": await self.get_monthly_revenue(),
            "monthlyOrders": await self.get_monthly_orders(),
            "netProfit": await self.get_net_profit(),
            "averageOrderValue": await self.get_average_order_value(),
            "overallAov": await self.get_overall_aov(),
            "revenueGrowth": await self.get_revenue_growth(),
        }

    async def refresh_widgets(self) -> Dict[str, Any]:
        """Drop cached widget values and recompute everything."""
        cleared = await self.store.invalidate_pattern(WIDGET_KEY_PATTERN)
        logger.info("dashboard_widgets_invalidated", cleared=cleared)
        return await self.get_all_widgets()

    # Computations

    async def _cached(self, name: str, compute: Callable[[], Any]) -> Any:
        return await self.store.get_or_compute(cache_key("widget", name), WIDGET_TTLS[name], compute)

    async def _count(self, *filters) -> int:
        return int(await self.db.scalar(select(func.count(Order.id)).where(*filters)) or 0)

    async def _revenue(self, *filters) -> Decimal:
        total = await self.db.scalar(
            select(func.coalesce(func.sum(Order.total_amount), 0)).where(Order.status.in_(REVENUE_STATUSES), *filters)
        )
        return to_decimal(total or 0)

    async def _active_products(self) -> int:
        return int(await self.db.scalar(select(func.count(Product.id)).where(Product.is_active.is_(True))) or 0)

    async def _overall_revenue(self) -> Dict[str, Any]:
        revenue = await self._revenue()
        return {"revenue": round_money(revenue), "formatted": format_amount(revenue)}

    async def _monthly_revenue(self) -> Dict[str, Any]:
        start, end = _month_bounds(self.clock())
        revenue = await self._revenue(Order.created_at >= start, Order.created_at < end)
        return {"revenue": round_money(revenue), "formatted": format_amount(revenue)}

    async def _monthly_orders(self) -> int:
        start, end = _month_bounds(self.clock())
        return await self._count(
            Order.status.in_(REVENUE_STATUSES),
            Order.created_at >= start,
            Order.created_at < end,
        )

    async def _net_profit(self) -> Dict[str, Any]:
        revenue = await self._revenue()
        expenses = to_decimal(await self.db.scalar(select(func.coalesce(func.sum(Expense.amount), 0))) or 0)
        profit = revenue - expenses
        margin = round(float(profit / revenue * 100), 2) if revenue > 0 else 0.0
        return {
            "profit": round_money(profit),
            "margin": margin,
            "formatted": format_amount(profit),
            "marginFormatted": f"{margin:.1f}% margin",
        }

    async def _aov(self, *filters) -> Dict[str, Any]:
        average = await self.db.scalar(
            select(func.avg(Order.total_amount)).where(Order.status.in_(REVENUE_STATUSES), *filters)
        )
        aov = to_decimal(average or 0)
        return {"aov": round_money(aov), "formatted": format_amount(aov)}

    async def _monthly_aov(self) -> Dict[str, Any]:
        start, end = _month_bounds(self.clock())
        return await self._aov(Order.created_at >= start, Order.created_at < end)

    async def _overall_aov(self) -> Dict[str, Any]:
        return await self._aov()

    async def _revenue_growth(self) -> Dict[str, Any]:
        now = self.clock()
        current_start, current_end = _month_bounds(now)
        previous_start, previous_end = _month_bounds(now, months_back=1)
        current = await self._revenue(Order.created_at >= current_start, Order.created_at < current_end)
        previous = await self._revenue(Order.created_at >= previous_start, Order.created_at < previous_end)
        return revenue_growth(current, previous)
