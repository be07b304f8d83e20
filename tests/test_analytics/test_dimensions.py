"""Tests for DimensionResolver."""

import pytest

from src.analytics.dimensions import DimensionResolver
from src.analytics.errors import UnsupportedPlatform
from tests.test_analytics.conftest import PROJECT_ID, REGION_US


@pytest.fixture
def resolver(dimension_store, analytics_config):
    return DimensionResolver(dimension_store, analytics_config)


class TestRegion:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [None, "", "all", "ALL", "GLOBAL", " global "])
    async def test_no_filter_values(self, resolver, dimension_store, value):
        assert await resolver.resolve_region(PROJECT_ID, value) is None
        assert dimension_store.region_lookups == []

    @pytest.mark.asyncio
    async def test_known_code_any_case(self, resolver):
        assert await resolver.resolve_region(PROJECT_ID, "us") == REGION_US

    @pytest.mark.asyncio
    async def test_unknown_code_drops_filter(self, resolver, dimension_store):
        assert await resolver.resolve_region(PROJECT_ID, "ZZ") is None
        assert dimension_store.region_lookups == ["ZZ"]


class TestTopic:
    @pytest.mark.asyncio
    async def test_by_name(self, resolver):
        assert await resolver.resolve_topic(PROJECT_ID, "crm") == "topic-crm"

    @pytest.mark.asyncio
    async def test_by_id(self, resolver):
        assert await resolver.resolve_topic(PROJECT_ID, "topic-erp") == "topic-erp"

    @pytest.mark.asyncio
    async def test_unknown_topic_drops_filter(self, resolver):
        assert await resolver.resolve_topic(PROJECT_ID, "Payroll") is None

    @pytest.mark.asyncio
    async def test_all_means_no_filter(self, resolver):
        assert await resolver.resolve_topic(PROJECT_ID, "all") is None


class TestPlatform:
    def test_lowercased(self, resolver):
        assert resolver.resolve_platform("Gemini") == "gemini"

    def test_alias(self, resolver):
        assert resolver.resolve_platform("ChatGPT") == "openai"

    def test_unsupported_lenient(self, resolver):
        assert resolver.resolve_platform("bard") is None

    def test_unsupported_strict(self, resolver):
        with pytest.raises(UnsupportedPlatform):
            resolver.resolve_platform("bard", strict=True)


class TestResolve:
    @pytest.mark.asyncio
    async def test_defaults_to_primary_platforms(self, resolver):
        filters = await resolver.resolve(PROJECT_ID, region="US", topic="ERP")

        assert filters.platforms == ("openai", "gemini")
        assert filters.region_id == REGION_US
        assert filters.topic_id == "topic-erp"
        assert filters.require_topic is False

    @pytest.mark.asyncio
    async def test_single_platform_narrows_set(self, resolver):
        filters = await resolver.resolve(PROJECT_ID, platform="claude")
        assert filters.platforms == ("claude",)

    @pytest.mark.asyncio
    async def test_explicit_platform_set(self, resolver):
        filters = await resolver.resolve(
            PROJECT_ID, platforms=["openai", "perplexity"], require_topic=True
        )

        assert filters.platforms == ("openai", "perplexity")
        assert filters.require_topic is True
        assert filters.region_id is None
