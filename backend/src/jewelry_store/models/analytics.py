"""
Analytics cache models.

- analytics_cache: one row per metric type, overwritten on every refresh
- analytics_metadata: one row per refresh attempt; the latest completed row drives staleness
- analytics_history: append-only snapshots written alongside each cache update
"""
import enum

from sqlalchemy import Column, DateTime, Integer, String

from jewelry_store.database import Base as DeclarativeBase
from jewelry_store.models.base import Base, JSONType, utcnow


class MetricType(str, enum.Enum):
    """Named analytics aggregates."""

    NET_REVENUE = "net_revenue"
    MONTHLY_TRENDS = "monthly_trends"
    EXPENSE_BREAKDOWN = "expense_breakdown"
    TOP_PRODUCTS = "top_products"


class RefreshStatus(str, enum.Enum):
    """Outcome of a refresh attempt."""

    COMPLETED = "completed"
    FAILED = "failed"


class AnalyticsCacheEntry(Base):
    """Precomputed payload for one metric type. updated_at doubles as the cooldown clock."""

    __tablename__ = "analytics_cache"

    metric_type = Column(String(50), nullable=False, unique=True, index=True)
    calculated_data = Column(JSONType, nullable=False)
    computation_time_ms = Column(Integer, nullable=False, default=0)
    data_period_start = Column(DateTime, nullable=True)
    data_period_end = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return f"<AnalyticsCacheEntry(metric={self.metric_type}, updated_at={self.updated_at})>"


class AnalyticsMetadata(DeclarativeBase):
    """Bookkeeping for a single refresh attempt."""

    __tablename__ = "analytics_metadata"

    id = Column(Integer, primary_key=True, autoincrement=True)
    last_refresh_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    refresh_duration_ms = Column(Integer, nullable=False, default=0)
    total_orders_processed = Column(Integer, nullable=False, default=0)
    total_expenses_processed = Column(Integer, nullable=False, default=0)
    triggered_by = Column(String(255), nullable=False, default="system")
    status = Column(String(20), nullable=False, default=RefreshStatus.COMPLETED.value, index=True)
    error_message = Column(String(1000), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class AnalyticsHistory(Base):
    """Historical snapshot of a metric payload."""

    __tablename__ = "analytics_history"

    metric_type = Column(String(50), nullable=False, index=True)
    calculated_data = Column(JSONType, nullable=False)
    snapshot_date = Column(DateTime, nullable=False, default=utcnow, index=True)
