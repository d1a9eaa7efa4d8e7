"""Pydantic schemas for analytics endpoints."""
from datetime import datetime
from typing import Any

from jewelry_store.schemas.common import CamelModel


class CooldownStatusOut(CamelModel):
    """Whether a metric may be recomputed now."""

    can_refresh: bool
    remaining_ms: int


class RefreshMetadataOut(CamelModel):
    """One refresh attempt."""

    id: int
    last_refresh_at: datetime
    refresh_duration_ms: int
    total_orders_processed: int
    total_expenses_processed: int
    triggered_by: str
    status: str
    error_message: str | None = None


class AnalyticsStatus(CamelModel):
    """Refresh bookkeeping without recomputation."""

    metadata: RefreshMetadataOut | None
    last_attempt: RefreshMetadataOut | None
    is_stale: bool
    last_refreshed: datetime | None
    cooldown_status: dict[str, CooldownStatusOut]
    cached_metrics: list[str]


class RefreshOutcome(CamelModel):
    """Successful refresh payload."""

    data: dict[str, Any]
    computation_time_ms: int
    refreshed_metrics: list[str]


class LiveMetrics(CamelModel):
    """Uncached record counts."""

    active_products: int
    total_orders: int
    total_expenses: int
    timestamp: datetime
