"""
Analytics endpoints (camelCase payloads).

Every figure is recomputed from the complaints visible to the caller.
"""
from fastapi import APIRouter, Depends

from civicdesk.core.deps import analytics_aggregator
from civicdesk.core.security import get_current_actor
from civicdesk.engine.analytics import AnalyticsAggregator
from civicdesk.engine.scope import Actor
from civicdesk.schemas.analytics import DashboardAnalytics, DepartmentStats, WorkerStats

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/dashboard", response_model=DashboardAnalytics, response_model_by_alias=True)
async def get_dashboard(
    actor: Actor = Depends(get_current_actor),
    aggregator: AnalyticsAggregator = Depends(analytics_aggregator),
) -> DashboardAnalytics:
    return await aggregator.dashboard(actor)


@router.get("/departments", response_model=list[DepartmentStats], response_model_by_alias=True)
async def get_department_analytics(
    actor: Actor = Depends(get_current_actor),
    aggregator: AnalyticsAggregator = Depends(analytics_aggregator),
) -> list[DepartmentStats]:
    return await aggregator.departments(actor)


@router.get("/workers", response_model=list[WorkerStats], response_model_by_alias=True)
async def get_worker_analytics(
    actor: Actor = Depends(get_current_actor),
    aggregator: AnalyticsAggregator = Depends(analytics_aggregator),
) -> list[WorkerStats]:
    return await aggregator.workers(actor)
