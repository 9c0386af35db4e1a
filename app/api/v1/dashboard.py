from fastapi import APIRouter, Query

from app.schemas.response import SuccessResponse
from app.services.dashboard_service import get_dashboard_stats

router = APIRouter()


@router.get("/stats", response_model=SuccessResponse)
async def dashboard_stats_endpoint(
    low_stock_limit: int = Query(10, ge=1, le=100),
    activity_limit: int = Query(10, ge=1, le=100),
):
    """Stock totals, status counts, overdue and flagged entries, category and area split, recent activity."""
    stats = await get_dashboard_stats(low_stock_limit=low_stock_limit, activity_limit=activity_limit)
    return SuccessResponse(data=stats.model_dump(mode="json"))
