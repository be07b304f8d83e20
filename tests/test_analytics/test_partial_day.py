"""Tests for PartialDayRecomputer."""

from datetime import datetime, timezone

import pytest

from src.analytics.errors import StoreUnavailable
from src.analytics.partial_day import PartialDayRecomputer
from src.analytics.periods import AsOf
from src.analytics.schemas import DimensionFilters, ResolvedEventDimensions
from tests.test_analytics.conftest import (
    AS_OF,
    COMPETITOR_ACTIVE,
    PROJECT_ID,
    REGION_EU,
    REGION_US,
    TODAY,
    FakeEventStore,
    _make_citation,
    _make_mention,
)

PRIMARY = DimensionFilters(platforms=("openai", "gemini"))

DIMS = {
    "r-openai": ResolvedEventDimensions("openai", REGION_US, "topic-crm"),
    "r-gemini": ResolvedEventDimensions("gemini", REGION_EU, None),
    "r-claude": ResolvedEventDimensions("claude", REGION_US, None),
}


def _recompute(mentions=(), citations=(), filters=PRIMARY, entity_type=None):
    return PartialDayRecomputer.recompute(
        PROJECT_ID, TODAY, mentions, citations, DIMS, filters, entity_type=entity_type
    )


class TestRecompute:
    """Grouping of raw events into rollup-shaped rows."""

    def test_groups_by_entity_and_dimensions(self):
        rows = _recompute(
            mentions=[
                _make_mention("m1", "r-openai"),
                _make_mention("m2", "r-openai"),
                _make_mention("m3", "r-gemini"),
                _make_mention("m4", "r-openai", entity_type="competitor",
                              competitor_id=COMPETITOR_ACTIVE),
            ],
            citations=[_make_citation("c1", "r-openai")],
        )

        by_key = {(r.entity_type, r.competitor_id, r.platform): r for r in rows}
        brand_openai = by_key[("brand", None, "openai")]
        assert brand_openai.mentions_count == 2
        assert brand_openai.citations_count == 1
        assert brand_openai.region_id == REGION_US
        assert brand_openai.topic_id == "topic-crm"
        assert brand_openai.stat_date == TODAY
        assert by_key[("brand", None, "gemini")].mentions_count == 1
        assert by_key[("competitor", COMPETITOR_ACTIVE, "openai")].mentions_count == 1

    def test_other_citations_never_counted(self):
        rows = _recompute(
            citations=[_make_citation("c1", "r-openai", citation_type="other")]
        )
        assert rows == []

    def test_unresolved_response_dropped(self):
        assert _recompute(mentions=[_make_mention("m1", "r-unknown")]) == []

    def test_platform_outside_set_dropped(self):
        assert _recompute(mentions=[_make_mention("m1", "r-claude")]) == []

    def test_region_filter(self):
        filters = DimensionFilters(platforms=("openai", "gemini"), region_id=REGION_EU)

        rows = _recompute(
            mentions=[_make_mention("m1", "r-openai"), _make_mention("m2", "r-gemini")],
            filters=filters,
        )

        assert [r.platform for r in rows] == ["gemini"]

    def test_require_topic(self):
        filters = DimensionFilters(platforms=("openai", "gemini"), require_topic=True)

        rows = _recompute(
            mentions=[_make_mention("m1", "r-openai"), _make_mention("m2", "r-gemini")],
            filters=filters,
        )

        assert [r.topic_id for r in rows] == ["topic-crm"]

    def test_entity_type_filter(self):
        rows = _recompute(
            mentions=[
                _make_mention("m1", "r-openai"),
                _make_mention("m2", "r-openai", entity_type="competitor",
                              competitor_id=COMPETITOR_ACTIVE),
            ],
            entity_type="brand",
        )

        assert [r.entity_type for r in rows] == ["brand"]


class TestCompute:
    """Reading the post-cutoff window from the event store."""

    @pytest.mark.asyncio
    async def test_reads_post_cutoff_window(self, analytics_config):
        events = FakeEventStore(
            mentions=[
                _make_mention("m1", "r-openai"),
                _make_mention("m2", "r-openai",
                              at=datetime(2026, 3, 10, 4, 0, tzinfo=timezone.utc)),
            ],
            dimensions=DIMS,
        )
        recomputer = PartialDayRecomputer(events, analytics_config)

        rows = await recomputer.compute(PROJECT_ID, AS_OF, PRIMARY)

        assert events.windows == [
            (datetime(2026, 3, 10, 4, 30, tzinfo=timezone.utc), AS_OF.instant)
        ]
        assert len(rows) == 1
        assert rows[0].mentions_count == 1

    @pytest.mark.asyncio
    async def test_before_cutoff_reads_nothing(self, analytics_config):
        events = FakeEventStore(mentions=[_make_mention("m1", "r-openai")], dimensions=DIMS)
        recomputer = PartialDayRecomputer(events, analytics_config)
        early = AsOf(datetime(2026, 3, 10, 1, 0, tzinfo=timezone.utc))

        assert await recomputer.compute(PROJECT_ID, early, PRIMARY) == []
        assert events.windows == []

    @pytest.mark.asyncio
    async def test_require_topic_flag(self, analytics_config):
        events = FakeEventStore(
            mentions=[_make_mention("m1", "r-openai"), _make_mention("m2", "r-gemini")],
            dimensions=DIMS,
        )
        recomputer = PartialDayRecomputer(events, analytics_config)

        rows = await recomputer.compute(PROJECT_ID, AS_OF, PRIMARY, require_topic=True)

        assert [r.platform for r in rows] == ["openai"]

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, analytics_config):
        events = FakeEventStore(error=StoreUnavailable("event", "get_mention_events", "down"))
        recomputer = PartialDayRecomputer(events, analytics_config)

        with pytest.raises(StoreUnavailable):
            await recomputer.compute(PROJECT_ID, AS_OF, PRIMARY)
