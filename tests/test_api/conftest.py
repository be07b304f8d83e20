"""Shared fixtures for API tests."""

from datetime import date
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from src.analytics.breakdown import EntityBreakdown, EntityShare
from src.analytics.periods import DateRange
from src.analytics.reports import (
    CitationSourcesReport,
    EntityBreakdownReport,
    EvolutionPoint,
    MomentumEntry,
    MomentumReport,
    PlatformEvolutionReport,
    PlatformOverviewReport,
    PlatformStat,
    TopicPerformanceReport,
    TopicPerformanceRow,
)
from src.analytics.schemas import Entity
from src.analytics.service import AnalyticsService
from src.api.app import create_app
from src.api.auth import verify_api_key
from src.api.dependencies import get_analytics_service

PROJECT_ID = "proj-1"
WINDOW = DateRange(date(2026, 3, 4), date(2026, 3, 10))
BRAND = Entity("brand", "Acme", "acme.com", is_brand=True)
GLOBEX = Entity("comp-globex", "Globex", "globex.com")


def _breakdown() -> EntityBreakdown:
    return EntityBreakdown(
        entities=[
            EntityShare(BRAND, 45, 7, 100 * 45 / 55),
            EntityShare(GLOBEX, 10, 3, 100 * 10 / 55),
        ],
        total_mentions=55,
        total_citations=10,
    )


def _make_overview(**kwargs) -> PlatformOverviewReport:
    return PlatformOverviewReport(
        project_id=PROJECT_ID,
        window=WINDOW,
        platforms=[
            PlatformStat("openai", "OpenAI", 40, 7, 100 * 40 / 62, 12.34),
            PlatformStat("gemini", "Gemini", 22, 3, 100 * 22 / 62, -12.34),
        ],
        total_mentions=62,
        total_citations=10,
        **kwargs,
    )


@pytest.fixture
def mock_analytics_service():
    """Mock AnalyticsService returning small fixed reports."""
    service = AsyncMock(spec=AnalyticsService)
    service.platform_overview = AsyncMock(return_value=_make_overview())
    service.platform_evolution = AsyncMock(return_value=PlatformEvolutionReport(
        project_id=PROJECT_ID,
        window=DateRange(date(2026, 3, 9), date(2026, 3, 10)),
        points=[
            EvolutionPoint(date(2026, 3, 9), {"openai": 0, "gemini": 0}),
            EvolutionPoint(date(2026, 3, 10), {"openai": 3, "gemini": 2}),
        ],
    ))
    service.entity_breakdown = AsyncMock(return_value=EntityBreakdownReport(
        project_id=PROJECT_ID,
        window=WINDOW,
        platforms={"openai": _breakdown(), "gemini": EntityBreakdown()},
        combined=_breakdown(),
    ))
    service.topic_performance = AsyncMock(return_value=TopicPerformanceReport(
        project_id=PROJECT_ID,
        window=WINDOW,
        topics=[TopicPerformanceRow("topic-crm", "CRM", {"openai": 3, "gemini": 1})],
    ))
    service.momentum = AsyncMock(return_value=MomentumReport(
        project_id=PROJECT_ID,
        window=WINDOW,
        platforms={"openai": [MomentumEntry(BRAND, 27, 81.818, 15.0)]},
    ))
    service.citation_sources = AsyncMock(return_value=CitationSourcesReport(
        project_id=PROJECT_ID,
        window=WINDOW,
        platforms={"openai": [{"domain": "acme.com", "count": 4}], "gemini": []},
    ))
    return service


@pytest.fixture
def client(mock_analytics_service):
    """FastAPI TestClient with dependency overrides."""
    app = create_app()

    app.dependency_overrides[verify_api_key] = lambda: "test-key"
    app.dependency_overrides[get_analytics_service] = lambda: mock_analytics_service

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
