"""Dashboard widget endpoints."""
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_store.api.deps import get_current_admin, get_db
from jewelry_store.models.admin import Admin
from jewelry_store.schemas.common import ApiResponse
from jewelry_store.services.dashboard_service import DashboardService

router = APIRouter(prefix="/admin/dashboard", tags=["Dashboard"])


@router.get("/widgets", response_model=ApiResponse[Dict[str, Any]])
async def get_widgets(
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[Dict[str, Any]]:
    """
    All dashboard widgets.

    Counters (pending actions, stale orders, today's orders) are always live;
    revenue aggregates come from the widget cache when it is warm.
    """
    widgets = await DashboardService(db).get_all_widgets()
    return ApiResponse(data=widgets)


@router.post("/widgets/refresh", response_model=ApiResponse[Dict[str, Any]])
async def refresh_widgets(
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[Dict[str, Any]]:
    """Drop cached widget values and recompute them."""
    widgets = await DashboardService(db).refresh_widgets()
    return ApiResponse(data=widgets, message="Dashboard widgets refreshed")
