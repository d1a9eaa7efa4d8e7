"""Unit tests for reshaping cached analytics into chart data."""
from jewelry_store.services.analytics_charts import (
    build_chart_payload,
    build_expense_categories,
    build_revenue_series,
    build_summary,
    build_top_selling,
)


def _trends(values):
    """Monthly trend payload from (key, revenue, expenses) tuples."""
    return {
        "months": [
            {"month": key, "revenue": revenue, "expenses": expenses, "net_profit": revenue - expenses, "order_count": 0}
            for key, revenue, expenses in values
        ]
    }


TRENDS = _trends(
    [
        ("2023-11", 100.0, 50.0),
        ("2023-12", 200.0, 80.0),
        ("2024-01", 1000.0, 400.0),
        ("2024-02", 1500.0, 500.0),
        ("2024-03", 1200.0, 900.0),
        ("2024-04", 0.0, 100.0),
        ("2024-05", 3000.0, 1000.0),
        ("2024-06", 3600.0, 1200.0),
    ]
)


def test_revenue_series_keeps_last_six_months() -> None:
    series = build_revenue_series(TRENDS)

    assert [item["month"] for item in series] == ["Jan", "Feb", "Mar", "Apr", "May", "Jun"]
    assert series[-1] == {"month": "Jun", "revenue": 3600, "expenses": 1200}


def test_revenue_series_empty_when_all_zero() -> None:
    assert build_revenue_series(_trends([("2024-05", 0.0, 0.0), ("2024-06", 0.0, 0.0)])) == []
    assert build_revenue_series(None) == []


def test_expense_categories_drop_empty_rows() -> None:
    breakdown = {
        "categories": [
            {"category": "Packaging", "amount": 300.0, "count": 2, "percentage": 75.0},
            {"category": "Marketing", "amount": 100.0, "count": 1, "percentage": 25.0},
            {"category": "Utilities", "amount": 0.0, "count": 0, "percentage": 0.0},
        ]
    }

    assert build_expense_categories(breakdown) == [
        {"name": "Packaging", "amount": 300, "percentage": 75.0},
        {"name": "Marketing", "amount": 100, "percentage": 25.0},
    ]


def test_top_selling_ranks_by_quantity_then_revenue() -> None:
    products = {
        "products": [
            {"name": f"Item {i}", "total_sold": sold, "revenue": revenue}
            for i, (sold, revenue) in enumerate([(1, 900.0), (5, 100.0), (5, 300.0), (2, 50.0), (3, 10.0), (4, 10.0)])
        ]
    }

    top = build_top_selling(products)

    assert len(top) == 5
    assert [p["name"] for p in top] == ["Item 2", "Item 1", "Item 5", "Item 4", "Item 3"]
    assert top[0]["sales"] == 5
    assert top[0]["formattedRevenue"] == "₹300.00"


def test_summary_figures() -> None:
    summary = build_summary(build_revenue_series(TRENDS))

    assert summary["totalRevenue"] == 10300
    assert summary["totalExpenses"] == 4100
    assert summary["netProfit"] == 6200
    assert summary["revenueChange"] == 20.0
    assert summary["expenseChange"] == 20.0
    assert summary["mostProfitableMonth"] == "Jun"
    assert summary["profitMargin"] == round(6200 / 10300 * 100, 2)


def test_summary_without_data() -> None:
    summary = build_summary([])

    assert summary["totalRevenue"] == 0
    assert summary["profitMargin"] == 0.0
    assert summary["mostProfitableMonth"] == "N/A"
    assert summary["averageMonthlyRevenue"] == 0


def test_chart_payload_for_empty_cache() -> None:
    payload = build_chart_payload({})

    assert payload["hasData"] is False
    assert payload["revenueData"] == []
    assert payload["topSellingProducts"] == []
    assert payload["netRevenue"] is None


def test_chart_payload_uses_cached_metrics() -> None:
    payload = build_chart_payload({"monthly_trends": TRENDS, "net_revenue": {"net_revenue": 10.0}})

    assert payload["hasData"] is True
    assert len(payload["revenueData"]) == 6
    assert payload["netRevenue"] == {"net_revenue": 10.0}
