"""Reshape cached analytics payloads into the dashboard's chart format."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from jewelry_store.models.analytics import MetricType
from jewelry_store.utils.currency import format_amount

CHART_MONTHS = 6
CHART_TOP_PRODUCTS = 5


def _short_month(key: str) -> str:
    return datetime.strptime(key, "%Y-%m").strftime("%b")


def _change(current: float, previous: float) -> float:
    if previous <= 0:
        return 0.0
    return round((current - previous) / previous * 100, 2)


def build_revenue_series(trends: Optional[Dict[str, Any]], months: int = CHART_MONTHS) -> List[Dict[str, Any]]:
    """Last ``months`` trend buckets as ``{month: "Jan", revenue, expenses}``; empty when all zero."""
    buckets = (trends or {}).get("months", [])[-months:]
    series = [
        {"month": _short_month(b["month"]), "revenue": round(b["revenue"]), "expenses": round(b["expenses"])}
        for b in buckets
    ]
    if all(item["revenue"] == 0 and item["expenses"] == 0 for item in series):
        return []
    return series


def build_expense_categories(breakdown: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {"name": c["category"], "amount": round(c["amount"]), "percentage": c["percentage"]}
        for c in (breakdown or {}).get("categories", [])
        if c["amount"] > 0
    ]


def build_top_selling(top_products: Optional[Dict[str, Any]], limit: int = CHART_TOP_PRODUCTS) -> List[Dict[str, Any]]:
    products = sorted(
        (top_products or {}).get("products", []),
        key=lambda p: (-p["total_sold"], -p["revenue"]),
    )[:limit]
    return [
        {
            "name": p["name"],
            "sales": p["total_sold"],
            "revenue": p["revenue"],
            "formattedRevenue": format_amount(p["revenue"]),
        }
        for p in products
    ]


def build_summary(revenue_data: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Headline figures derived from the chart series."""
    total_revenue = sum(item["revenue"] for item in revenue_data)
    total_expenses = sum(item["expenses"] for item in revenue_data)
    net_profit = total_revenue - total_expenses

    current = revenue_data[-1] if revenue_data else None
    previous = revenue_data[-2] if len(revenue_data) > 1 else None
    revenue_change = _change(current["revenue"], previous["revenue"]) if current and previous else 0.0
    expense_change = _change(current["expenses"], previous["expenses"]) if current and previous else 0.0

    most_profitable = "N/A"
    if revenue_data:
        most_profitable = max(revenue_data, key=lambda item: item["revenue"] - item["expenses"])["month"]

    return {
        "totalRevenue": total_revenue,
        "totalExpenses": total_expenses,
        "netProfit": net_profit,
        "revenueChange": revenue_change,
        "expenseChange": expense_change,
        "profitMargin": round(net_profit / total_revenue * 100, 2) if total_revenue > 0 else 0.0,
        "mostProfitableMonth": most_profitable,
        "averageMonthlyRevenue": round(total_revenue / len(revenue_data)) if revenue_data else 0,
        "expenseEfficiency": round(total_expenses / total_revenue * 100, 2) if total_revenue > 0 else 0.0,
    }


def build_chart_payload(cached: Dict[str, Any]) -> Dict[str, Any]:
    """
    Chart-ready view of the cached analytics.

    Args:
        cached: Mapping of metric type to cached payload, as returned by
            ``AnalyticsService.get_cached_analytics``

    Returns:
        Dict with revenueData, expenseCategories, topSellingProducts, summary and hasData
    """
    revenue_data = build_revenue_series(cached.get(MetricType.MONTHLY_TRENDS.value))
    return {
        "revenueData": revenue_data,
        "expenseCategories": build_expense_categories(cached.get(MetricType.EXPENSE_BREAKDOWN.value)),
        "topSellingProducts": build_top_selling(cached.get(MetricType.TOP_PRODUCTS.value)),
        "netRevenue": cached.get(MetricType.NET_REVENUE.value),
        "summary": build_summary(revenue_data),
        "hasData": bool(cached),
    }
