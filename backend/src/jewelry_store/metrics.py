"""Business metrics for Prometheus monitoring."""
from prometheus_client import Counter, Gauge, Histogram

# Order metrics
orders_created_total = Counter(
    "orders_created_total",
    "Total orders created",
    labelnames=["source"],  # storefront, admin
)

order_transitions_total = Counter(
    "order_transitions_total",
    "Order lifecycle transitions",
    labelnames=["action", "from_status", "to_status"],
)

order_transitions_rejected_total = Counter(
    "order_transitions_rejected_total",
    "Order actions rejected because of the current status",
    labelnames=["action", "from_status"],
)

stale_orders_deleted_total = Counter(
    "stale_orders_deleted_total",
    "Unpaid orders removed by the stale order sweep",
)

whatsapp_links_generated_total = Counter(
    "whatsapp_links_generated_total",
    "WhatsApp deep links generated",
    labelnames=["kind"],  # order, status, payment
)

# Expense metrics
expenses_recorded_total = Counter(
    "expenses_recorded_total",
    "Total expenses recorded",
)

# Analytics metrics
analytics_refresh_total = Counter(
    "analytics_refresh_total",
    "Analytics refresh attempts",
    labelnames=["outcome"],  # completed, cooldown, failed
)

analytics_refresh_duration_seconds = Histogram(
    "analytics_refresh_duration_seconds",
    "Time spent recomputing analytics",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

analytics_cache_age_seconds = Gauge(
    "analytics_cache_age_seconds",
    "Seconds since the last completed analytics refresh, as of the last status read",
)
