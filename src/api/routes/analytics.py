"""
Mention/citation analytics endpoints for the brand-monitoring dashboard.

Every endpoint accepts an inclusive ``start``/``end`` date range (default:
the 30 days ending yesterday) and optional ``region`` / ``topic`` filters.
Store failures surface as 503 through the app's exception handlers;
results missing today's partial data carry ``degraded: true``.
"""

import time
from datetime import date
from typing import Any, TypeVar

import structlog
from fastapi import APIRouter, Depends, Query

from src.analytics.config import MAX_CITATION_SOURCES_LIMIT
from src.analytics.reports import AnalyticsReport
from src.analytics.service import AnalyticsService
from src.api.auth import verify_api_key, verify_project_access
from src.api.dependencies import get_analytics_service
from src.api.models import (
    AnalyticsResponse,
    CitationSourcesResponse,
    EntityBreakdownResponse,
    ErrorResponse,
    MomentumResponse,
    PlatformEvolutionResponse,
    PlatformOverviewResponse,
    TopicPerformanceResponse,
)

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/projects/{project_id}/analytics")

M = TypeVar("M", bound=AnalyticsResponse)

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    401: {"model": ErrorResponse, "description": "Invalid API key"},
    403: {"model": ErrorResponse, "description": "No access to project"},
    422: {"model": ErrorResponse, "description": "Invalid filters or date range"},
    503: {"model": ErrorResponse, "description": "Data unavailable, try again"},
}


class ReportParams:
    """Query parameters shared by all analytics endpoints."""

    def __init__(
        self,
        start: date | None = Query(
            default=None, description="Inclusive first day (YYYY-MM-DD)"
        ),
        end: date | None = Query(
            default=None,
            description="Inclusive last day (YYYY-MM-DD); today includes live data",
        ),
        region: str | None = Query(
            default=None, description="Region code, or GLOBAL/all for no filter"
        ),
        topic: str | None = Query(
            default=None, description="Topic id or name, or 'all' for no filter"
        ),
    ):
        self.start = start
        self.end = end
        self.region = region
        self.topic = topic

    def as_kwargs(self) -> dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "region": self.region,
            "topic": self.topic,
        }


def _respond(model: type[M], report: AnalyticsReport, start_time: float, operation: str) -> M:
    latency_ms = round((time.perf_counter() - start_time) * 1000, 2)
    logger.info(
        operation,
        project_id=report.project_id,
        degraded=report.degraded,
        latency_ms=latency_ms,
    )
    return model(**report.to_dict(), latency_ms=latency_ms)


@router.get(
    "/overview",
    response_model=PlatformOverviewResponse,
    responses=_ERROR_RESPONSES,
    summary="Platform overview",
    description="Mentions, citations, share of mentions and trend per platform.",
)
async def platform_overview(
    api_key: str = Depends(verify_api_key),
    project_id: str = Depends(verify_project_access),
    params: ReportParams = Depends(),
    service: AnalyticsService = Depends(get_analytics_service),
) -> PlatformOverviewResponse:
    start_time = time.perf_counter()
    report = await service.platform_overview(project_id, **params.as_kwargs())
    return _respond(PlatformOverviewResponse, report, start_time, "platform_overview")


@router.get(
    "/evolution",
    response_model=PlatformEvolutionResponse,
    responses=_ERROR_RESPONSES,
    summary="Platform evolution",
    description="Daily mentions per platform, one zero-filled point per day.",
)
async def platform_evolution(
    api_key: str = Depends(verify_api_key),
    project_id: str = Depends(verify_project_access),
    params: ReportParams = Depends(),
    service: AnalyticsService = Depends(get_analytics_service),
) -> PlatformEvolutionResponse:
    start_time = time.perf_counter()
    report = await service.platform_evolution(project_id, **params.as_kwargs())
    return _respond(PlatformEvolutionResponse, report, start_time, "platform_evolution")


@router.get(
    "/entities",
    response_model=EntityBreakdownResponse,
    responses=_ERROR_RESPONSES,
    summary="Entity breakdown",
    description="""
    Brand vs. competitors, ranked by share of mentions, per platform and
    combined. The brand is always listed; competitors without mentions and
    inactive competitors are omitted.
    """,
)
async def entity_breakdown(
    api_key: str = Depends(verify_api_key),
    project_id: str = Depends(verify_project_access),
    params: ReportParams = Depends(),
    service: AnalyticsService = Depends(get_analytics_service),
) -> EntityBreakdownResponse:
    start_time = time.perf_counter()
    report = await service.entity_breakdown(project_id, **params.as_kwargs())
    return _respond(EntityBreakdownResponse, report, start_time, "entity_breakdown")


@router.get(
    "/topics",
    response_model=TopicPerformanceResponse,
    responses=_ERROR_RESPONSES,
    summary="Topic performance",
    description="Brand mentions per active topic and platform, highest total first.",
)
async def topic_performance(
    api_key: str = Depends(verify_api_key),
    project_id: str = Depends(verify_project_access),
    params: ReportParams = Depends(),
    service: AnalyticsService = Depends(get_analytics_service),
) -> TopicPerformanceResponse:
    start_time = time.perf_counter()
    report = await service.topic_performance(project_id, **params.as_kwargs())
    return _respond(TopicPerformanceResponse, report, start_time, "topic_performance")


@router.get(
    "/momentum",
    response_model=MomentumResponse,
    responses=_ERROR_RESPONSES,
    summary="Platform momentum",
    description="Each entity's current share and its change vs. the previous period.",
)
async def momentum(
    api_key: str = Depends(verify_api_key),
    project_id: str = Depends(verify_project_access),
    params: ReportParams = Depends(),
    service: AnalyticsService = Depends(get_analytics_service),
) -> MomentumResponse:
    start_time = time.perf_counter()
    report = await service.momentum(project_id, **params.as_kwargs())
    return _respond(MomentumResponse, report, start_time, "momentum")


@router.get(
    "/citation-sources",
    response_model=CitationSourcesResponse,
    responses=_ERROR_RESPONSES,
    summary="Citation sources",
    description="Most cited domains per platform.",
)
async def citation_sources(
    limit: int | None = Query(
        default=None,
        ge=1,
        le=MAX_CITATION_SOURCES_LIMIT,
        description="Domains per platform",
    ),
    api_key: str = Depends(verify_api_key),
    project_id: str = Depends(verify_project_access),
    params: ReportParams = Depends(),
    service: AnalyticsService = Depends(get_analytics_service),
) -> CitationSourcesResponse:
    start_time = time.perf_counter()
    report = await service.citation_sources(
        project_id, limit=limit, **params.as_kwargs()
    )
    return _respond(CitationSourcesResponse, report, start_time, "citation_sources")
