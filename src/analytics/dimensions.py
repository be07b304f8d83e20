"""Dimension resolution for caller-supplied filter values.

Maps region codes, topic identifiers and platform codes to the canonical
keys the stores filter on. Unknown regions and topics fail open: the filter
is dropped rather than the query failing, because filter options shown to
users may lag behind the data.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from src.analytics.config import AnalyticsConfig
from src.analytics.errors import DimensionNotFound, UnsupportedPlatform
from src.analytics.schemas import NO_FILTER_VALUES, PLATFORM_ALIASES, DimensionFilters

if TYPE_CHECKING:
    from src.analytics.repository import DimensionRepository

logger = logging.getLogger(__name__)


def _is_unfiltered(value: str | None) -> bool:
    return value is None or value.strip().lower() in NO_FILTER_VALUES


class DimensionResolver:
    """Resolve human-facing filter values to dimension ids.

    Usage:
        resolver = DimensionResolver(dimension_repo)
        filters = await resolver.resolve(project_id, region="US", topic="all")
    """

    def __init__(
        self,
        repository: "DimensionRepository",
        config: AnalyticsConfig | None = None,
    ) -> None:
        self._repo = repository
        self._config = config or AnalyticsConfig()

    async def resolve_region(self, project_id: str, code: str | None) -> str | None:
        """Region code -> region id, or None for "no filter".

        ``GLOBAL``, ``all``, empty and absent all mean no filter, as does a
        code the project does not have.
        """
        if _is_unfiltered(code):
            return None
        try:
            return await self._repo.get_region_id(project_id, code.strip())
        except DimensionNotFound as e:
            logger.warning("%s; ignoring region filter", e)
            return None

    async def resolve_topic(self, project_id: str, topic: str | None) -> str | None:
        """Topic id or name -> topic id, or None for "no filter"."""
        if _is_unfiltered(topic):
            return None
        try:
            return await self._repo.get_topic_id(project_id, topic.strip())
        except DimensionNotFound as e:
            logger.warning("%s; ignoring topic filter", e)
            return None

    def resolve_platform(self, value: str | None, *, strict: bool = False) -> str | None:
        """Normalize a platform code and check it against the whitelist.

        Args:
            value: Caller-supplied platform (any case, aliases allowed).
            strict: Raise on an unsupported platform instead of dropping
                the filter.

        Raises:
            UnsupportedPlatform: If ``strict`` and the platform is unknown.
        """
        if _is_unfiltered(value):
            return None
        platform = value.strip().lower()
        platform = PLATFORM_ALIASES.get(platform, platform)
        if platform in self._config.supported_platforms:
            return platform
        if strict:
            raise UnsupportedPlatform(platform, self._config.supported_platforms)
        logger.info("Unsupported platform %r treated as unfiltered", value)
        return None

    async def resolve(
        self,
        project_id: str,
        *,
        region: str | None = None,
        topic: str | None = None,
        platform: str | None = None,
        strict_platform: bool = False,
        platforms: Iterable[str] | None = None,
        require_topic: bool = False,
    ) -> DimensionFilters:
        """Resolve every filter at once.

        ``platforms`` is the platform set the call site works over (the
        primary platforms by default). A single resolved ``platform``
        narrows that set to itself.
        """
        region_id = await self.resolve_region(project_id, region)
        topic_id = await self.resolve_topic(project_id, topic)
        single = self.resolve_platform(platform, strict=strict_platform)

        if single is not None:
            selected: tuple[str, ...] = (single,)
        elif platforms is not None:
            selected = tuple(platforms)
        else:
            selected = tuple(self._config.primary_platforms)

        return DimensionFilters(
            platforms=selected,
            region_id=region_id,
            topic_id=topic_id,
            require_topic=require_topic,
        )
