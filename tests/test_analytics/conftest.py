"""Shared fixtures and in-memory stores for analytics tests.

The fake stores apply the same filters as the SQL readers so the service
can be exercised end-to-end without a database.
"""

from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from src.analytics.errors import DimensionNotFound
from src.analytics.periods import AsOf
from src.analytics.schemas import (
    ENTITY_BRAND,
    CitationEvent,
    Competitor,
    DailyAggregate,
    Entity,
    EntityRoster,
    MentionEvent,
    ResolvedEventDimensions,
    Topic,
)
from src.analytics.service import AnalyticsService

PROJECT_ID = "proj-1"
TODAY = date(2026, 3, 10)
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
AS_OF = AsOf(NOW)
REGION_US = "region-us"
REGION_EU = "region-eu"
COMPETITOR_ACTIVE = "comp-globex"
COMPETITOR_INACTIVE = "comp-initech"


def _make_row(
    day: date,
    mentions: int = 0,
    citations: int = 0,
    *,
    entity_type: str = ENTITY_BRAND,
    competitor_id: str | None = None,
    platform: str = "openai",
    region_id: str | None = REGION_US,
    topic_id: str | None = None,
    project_id: str = PROJECT_ID,
) -> DailyAggregate:
    """Helper to create a rollup row with sensible defaults."""
    return DailyAggregate(
        project_id=project_id,
        stat_date=day,
        entity_type=entity_type,
        competitor_id=competitor_id,
        platform=platform,
        region_id=region_id,
        topic_id=topic_id,
        mentions_count=mentions,
        citations_count=citations,
    )


def _make_mention(
    event_id: str,
    response_id: str,
    *,
    at: datetime = NOW - timedelta(hours=1),
    entity_type: str = ENTITY_BRAND,
    competitor_id: str | None = None,
) -> MentionEvent:
    return MentionEvent(
        event_id=event_id,
        project_id=PROJECT_ID,
        entity_type=entity_type,
        competitor_id=competitor_id,
        response_id=response_id,
        created_at=at,
    )


def _make_citation(
    event_id: str,
    response_id: str,
    *,
    citation_type: str = "brand",
    competitor_id: str | None = None,
    domain: str = "acme.com",
    at: datetime = NOW - timedelta(hours=1),
) -> CitationEvent:
    return CitationEvent(
        event_id=event_id,
        project_id=PROJECT_ID,
        citation_type=citation_type,
        competitor_id=competitor_id,
        response_id=response_id,
        created_at=at,
        domain=domain,
    )


def _make_roster() -> EntityRoster:
    return EntityRoster(
        brand=Entity(entity_id="brand", name="Acme", domain="acme.com", is_brand=True),
        competitors=[
            Competitor(COMPETITOR_ACTIVE, "Globex", "globex.com", is_active=True),
            Competitor(COMPETITOR_INACTIVE, "Initech", "initech.com", is_active=False),
        ],
    )


class FakeRollupStore:
    """In-memory ``daily_brand_stats``."""

    def __init__(self, rows=(), error: Exception | None = None):
        self.rows = list(rows)
        self.error = error
        self.calls: list[tuple[date, date]] = []

    async def get_daily_aggregates(
        self,
        project_id,
        start,
        end,
        *,
        platforms,
        region_id=None,
        topic_id=None,
        entity_type=None,
        require_topic=False,
    ):
        self.calls.append((start, end))
        if self.error is not None:
            raise self.error
        return [
            r for r in self.rows
            if r.project_id == project_id
            and start <= r.stat_date <= end
            and r.platform in platforms
            and (region_id is None or r.region_id == region_id)
            and (topic_id is None or r.topic_id == topic_id)
            and (entity_type is None or r.entity_type == entity_type)
            and (not require_topic or r.topic_id is not None)
        ]


class FakeEventStore:
    """In-memory ``brand_mentions`` / ``citations`` plus the response join."""

    def __init__(self, mentions=(), citations=(), dimensions=None, error: Exception | None = None):
        self.mentions = list(mentions)
        self.citations = list(citations)
        self.dimensions = dict(dimensions or {})
        self.error = error
        self.windows: list[tuple[datetime, datetime]] = []

    def _check(self):
        if self.error is not None:
            raise self.error

    async def get_mention_events(self, project_id, lower, upper, *, entity_type=None):
        self.windows.append((lower, upper))
        self._check()
        return [
            m for m in self.mentions
            if m.project_id == project_id
            and lower <= m.created_at <= upper
            and (entity_type is None or m.entity_type == entity_type)
        ]

    async def get_citation_events(self, project_id, lower, upper, *, entity_type=None):
        self._check()
        return [
            c for c in self.citations
            if c.project_id == project_id
            and lower <= c.created_at <= upper
            and (entity_type is None or c.citation_type == entity_type)
        ]

    async def get_response_dimensions(self, response_ids):
        self._check()
        return {rid: self.dimensions[rid] for rid in response_ids if rid in self.dimensions}


class FakeDimensionStore:
    """In-memory regions, topics and roster."""

    def __init__(self, regions=None, topics=(), roster=None):
        self.regions = dict(regions or {})
        self.topics = list(topics)
        self.roster = roster or _make_roster()
        self.region_lookups: list[str] = []

    async def get_region_id(self, project_id, code):
        self.region_lookups.append(code)
        try:
            return self.regions[code.upper()]
        except KeyError:
            raise DimensionNotFound("region", code, project_id) from None

    async def get_topic_id(self, project_id, topic):
        for t in self.topics:
            if topic in (t.topic_id, t.name) or topic.lower() == t.name.lower():
                return t.topic_id
        raise DimensionNotFound("topic", topic, project_id)

    async def list_topics(self, project_id):
        return sorted(self.topics, key=lambda t: t.name)

    async def get_roster(self, project_id):
        return self.roster


@pytest.fixture
def mock_database():
    """Mock Database with async fetch methods."""
    db = AsyncMock()
    db.fetchrow = AsyncMock()
    db.fetch = AsyncMock(return_value=[])
    db.fetchval = AsyncMock()
    return db


@pytest.fixture
def roster() -> EntityRoster:
    return _make_roster()


@pytest.fixture
def dimension_store() -> FakeDimensionStore:
    return FakeDimensionStore(
        regions={"US": REGION_US, "EU": REGION_EU},
        topics=[
            Topic("topic-crm", "CRM"),
            Topic("topic-erp", "ERP"),
            Topic("topic-hr", "HR Software"),
        ],
    )


@pytest.fixture
def scenario_rollup() -> FakeRollupStore:
    """Rollup for [D-6, D-1]: US brand 40, US Globex 10, plus noise rows.

    Noise that must never count for a US query: an EU row, an inactive
    competitor row and a non-primary platform row.
    """
    rows = []
    for offset in range(1, 7):
        day = TODAY - timedelta(days=offset)
        rows.append(_make_row(day, 4, 1, platform="openai"))
        rows.append(_make_row(day, 2, 0, platform="gemini"))
    # 6 days * 6 = 36 brand; top up to 40
    rows.append(_make_row(TODAY - timedelta(days=1), 4, 0, platform="gemini"))
    rows.append(_make_row(
        TODAY - timedelta(days=2), 6, 2,
        entity_type="competitor", competitor_id=COMPETITOR_ACTIVE, platform="openai",
    ))
    rows.append(_make_row(
        TODAY - timedelta(days=3), 4, 1,
        entity_type="competitor", competitor_id=COMPETITOR_ACTIVE, platform="gemini",
    ))
    rows.append(_make_row(TODAY - timedelta(days=2), 50, 5, region_id=REGION_EU))
    rows.append(_make_row(
        TODAY - timedelta(days=4), 7, 0,
        entity_type="competitor", competitor_id=COMPETITOR_INACTIVE, platform="openai",
    ))
    rows.append(_make_row(TODAY - timedelta(days=1), 9, 0, platform="claude"))
    return FakeRollupStore(rows)


@pytest.fixture
def scenario_events() -> FakeEventStore:
    """Today after the cutoff: 5 US brand mentions, plus excluded noise."""
    dimensions = {
        "resp-us-openai": ResolvedEventDimensions("openai", REGION_US, "topic-crm"),
        "resp-us-gemini": ResolvedEventDimensions("gemini", REGION_US, None),
        "resp-eu": ResolvedEventDimensions("openai", REGION_EU, None),
    }
    mentions = [
        _make_mention("m1", "resp-us-openai"),
        _make_mention("m2", "resp-us-openai"),
        _make_mention("m3", "resp-us-openai"),
        _make_mention("m4", "resp-us-gemini"),
        _make_mention("m5", "resp-us-gemini"),
        # EU response: filtered out post-join
        _make_mention("m6", "resp-eu"),
        # Before today's cutoff: already in the rollup's domain
        _make_mention("m7", "resp-us-openai", at=datetime(2026, 3, 10, 3, 0, tzinfo=timezone.utc)),
        # Unresolvable response: dropped
        _make_mention("m8", "resp-missing"),
    ]
    citations = [
        _make_citation("c1", "resp-us-openai"),
        _make_citation("c2", "resp-us-openai", citation_type="other", domain="wikipedia.org"),
    ]
    return FakeEventStore(mentions, citations, dimensions)


@pytest.fixture
def make_service(analytics_config, dimension_store):
    """Factory building an AnalyticsService over fake stores."""

    def _make(rollup=None, events=None, dimensions=None, citations=None):
        return AnalyticsService(
            rollup_repository=rollup or FakeRollupStore(),
            event_repository=events or FakeEventStore(),
            dimension_repository=dimensions or dimension_store,
            citation_repository=citations,
            config=analytics_config,
        )

    return _make
