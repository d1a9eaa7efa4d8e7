"""
Analytics API endpoints.

- GET  /admin/analytics                        - chart-ready cached analytics (never recomputes)
- POST /admin/analytics/refresh                - recompute every metric (cooldown gated)
- POST /admin/analytics/refresh/{metric_type}  - recompute one metric (cooldown gated)
- GET  /admin/analytics/status                 - refresh bookkeeping and cooldown state
- GET  /admin/analytics/live                   - uncached record counts
"""
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_store.api.deps import get_current_admin, get_db
from jewelry_store.exceptions import AnalyticsRefreshError, CooldownActiveError
from jewelry_store.metrics import analytics_cache_age_seconds
from jewelry_store.models.admin import Admin
from jewelry_store.models.analytics import MetricType
from jewelry_store.schemas.analytics import (
    AnalyticsStatus,
    CooldownStatusOut,
    LiveMetrics,
    RefreshMetadataOut,
    RefreshOutcome,
)
from jewelry_store.schemas.common import ApiResponse
from jewelry_store.services.analytics_charts import build_chart_payload
from jewelry_store.services.analytics_service import AnalyticsService, RefreshResult

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/admin/analytics", tags=["Analytics"])


def _refresh_response(result: RefreshResult) -> ApiResponse[RefreshOutcome]:
    if result.in_cooldown:
        raise CooldownActiveError(result.cooldown_remaining_ms)
    if not result.success:
        raise AnalyticsRefreshError(result.error or "Failed to refresh analytics")

    return ApiResponse(
        data=RefreshOutcome(
            data=result.data,
            computation_time_ms=result.computation_time_ms,
            refreshed_metrics=sorted(result.data),
        ),
        message="Analytics refreshed successfully",
    )


@router.get("", response_model=ApiResponse[Dict[str, Any]])
async def get_analytics(
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[Dict[str, Any]]:
    """
    Cached analytics reshaped for the dashboard charts.

    Reads only the cache: when nothing was ever computed the series are empty and
    ``hasData`` is false. ``isStale`` reports whether the last completed refresh is
    older than the staleness threshold.
    """
    service = AnalyticsService(db)
    cached = await service.get_cached_analytics()
    metadata = await service.get_refresh_metadata()
    cooldown = await service.get_cooldown_status()

    payload = build_chart_payload(cached)
    last_refreshed = metadata.last_refresh_at if metadata else None
    if last_refreshed is not None:
        analytics_cache_age_seconds.set((service.clock() - last_refreshed).total_seconds())
    payload.update(
        isStale=service.is_stale(last_refreshed),
        lastRefreshed=last_refreshed.isoformat() if last_refreshed else None,
        cooldownStatus={
            metric: CooldownStatusOut.model_validate(status).model_dump(by_alias=True)
            for metric, status in cooldown.items()
        },
    )
    return ApiResponse(data=payload)


@router.post("/refresh", response_model=ApiResponse[RefreshOutcome])
async def refresh_analytics(
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[RefreshOutcome]:
    """
    Recompute all analytics.

    **Responses**:
    - **200**: recomputed payloads and computation time
    - **429**: cooldown active; ``details.cooldownRemaining`` (ms) and ``details.remainingMinutes``
    - **500**: computation failed, previous cache untouched
    """
    triggered_by = admin.email
    result = await AnalyticsService(db).refresh_all_analytics(triggered_by=triggered_by)
    return _refresh_response(result)


@router.post("/refresh/{metric_type}", response_model=ApiResponse[RefreshOutcome])
async def refresh_metric(
    metric_type: MetricType,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[RefreshOutcome]:
    """Recompute a single metric. Same status codes as a full refresh."""
    triggered_by = admin.email
    result = await AnalyticsService(db).refresh_metric(metric_type, triggered_by=triggered_by)
    return _refresh_response(result)


@router.get("/status", response_model=ApiResponse[AnalyticsStatus])
async def get_analytics_status(
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[AnalyticsStatus]:
    """Refresh metadata, staleness and cooldowns without recomputing anything."""
    service = AnalyticsService(db)
    metadata = await service.get_refresh_metadata()
    last_attempt = await service.get_last_refresh_attempt()
    cooldown = await service.get_cooldown_status()
    cached = await service.get_cached_entries()

    last_refreshed = metadata.last_refresh_at if metadata else None
    return ApiResponse(
        data=AnalyticsStatus(
            metadata=RefreshMetadataOut.model_validate(metadata) if metadata else None,
            last_attempt=RefreshMetadataOut.model_validate(last_attempt) if last_attempt else None,
            is_stale=service.is_stale(last_refreshed),
            last_refreshed=last_refreshed,
            cooldown_status={metric: CooldownStatusOut.model_validate(status) for metric, status in cooldown.items()},
            cached_metrics=[entry.metric_type for entry in cached],
        )
    )


@router.get("/live", response_model=ApiResponse[LiveMetrics])
async def get_live_metrics(
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[LiveMetrics]:
    """Current record counts, computed on every call."""
    metrics = await AnalyticsService(db).get_live_metrics()
    return ApiResponse(data=LiveMetrics(**metrics))
