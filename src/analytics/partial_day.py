"""Partial-day recomputation from raw events.

The nightly rollup for today has not run yet, so the post-cutoff slice of
today is re-derived from ``brand_mentions`` and ``citations``. Output rows
have the same shape as ``daily_brand_stats`` rows so the merger can treat
both sources alike.

Only events in ``[cutoff(today), as_of]`` are read. Before any rollup exists
(fresh install) the pre-cutoff part of today is therefore not covered.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from typing import TYPE_CHECKING

from src.analytics.config import AnalyticsConfig
from src.analytics.periods import AsOf
from src.analytics.schemas import (
    CitationEvent,
    Counts,
    DailyAggregate,
    DimensionFilters,
    MentionEvent,
    ResolvedEventDimensions,
)
from src.observability.metrics import get_metrics

if TYPE_CHECKING:
    from src.analytics.repository import EventRepository

logger = logging.getLogger(__name__)

# (entity_type, competitor_id, platform, region_id, topic_id)
_GroupKey = tuple[str, str | None, str, str | None, str | None]


class PartialDayRecomputer:
    """Recompute today's post-cutoff counts in rollup shape.

    Usage:
        recomputer = PartialDayRecomputer(event_repo, config)
        rows = await recomputer.compute(project_id, as_of, filters)
    """

    def __init__(
        self,
        event_repository: "EventRepository",
        config: AnalyticsConfig | None = None,
    ) -> None:
        self._events = event_repository
        self._config = config or AnalyticsConfig()

    def partial_window(self, as_of: AsOf) -> tuple[datetime, datetime] | None:
        """``[cutoff instant of today, as_of]``, or None before the cutoff."""
        return self._config.cutoff.partial_window(as_of)

    @staticmethod
    def recompute(
        project_id: str,
        stat_date: date,
        mentions: Iterable[MentionEvent],
        citations: Iterable[CitationEvent],
        dimensions: Mapping[str, ResolvedEventDimensions],
        filters: DimensionFilters,
        entity_type: str | None = None,
    ) -> list[DailyAggregate]:
        """Group raw events into DailyAggregate rows dated ``stat_date``.

        Events whose response has no resolved dimensions are dropped, as are
        events rejected by ``filters``. ``other`` citations support no entity
        and are never counted.
        """
        groups: dict[_GroupKey, Counts] = {}
        dropped = 0

        def _key_for(entity_key, response_id: str) -> _GroupKey | None:
            nonlocal dropped
            dims = dimensions.get(response_id)
            if dims is None:
                dropped += 1
                return None
            if not filters.matches(dims):
                return None
            if entity_type is not None and entity_key[0] != entity_type:
                return None
            return (
                entity_key[0],
                entity_key[1],
                dims.platform,
                dims.region_id,
                dims.topic_id,
            )

        for mention in mentions:
            key = _key_for(mention.entity_key, mention.response_id)
            if key is not None:
                groups.setdefault(key, Counts()).add(mentions=1)

        for citation in citations:
            entity_key = citation.entity_key
            if entity_key is None:
                continue
            key = _key_for(entity_key, citation.response_id)
            if key is not None:
                groups.setdefault(key, Counts()).add(citations=1)

        if dropped:
            logger.debug("Dropped %d events with unresolved responses", dropped)

        rows = [
            DailyAggregate(
                project_id=project_id,
                stat_date=stat_date,
                entity_type=key[0],
                competitor_id=key[1],
                platform=key[2],
                region_id=key[3],
                topic_id=key[4],
                mentions_count=counts.mentions,
                citations_count=counts.citations,
            )
            for key, counts in groups.items()
        ]
        rows.sort(key=lambda r: (r.entity_type, r.competitor_id or "", r.platform))
        return rows

    async def compute(
        self,
        project_id: str,
        as_of: AsOf,
        filters: DimensionFilters,
        *,
        entity_type: str | None = None,
        require_topic: bool = False,
    ) -> list[DailyAggregate]:
        """Read, join, filter and group the post-cutoff events of today.

        Returns an empty list before today's cutoff.

        Raises:
            StoreUnavailable: If any event store read fails.
        """
        window = self.partial_window(as_of)
        if window is None:
            return []
        lower, upper = window

        if require_topic and not filters.require_topic:
            filters = dataclasses.replace(filters, require_topic=True)

        mentions, citations = await asyncio.gather(
            self._events.get_mention_events(
                project_id, lower, upper, entity_type=entity_type
            ),
            self._events.get_citation_events(
                project_id, lower, upper, entity_type=entity_type
            ),
        )

        response_ids = {m.response_id for m in mentions}
        response_ids.update(c.response_id for c in citations)
        dimensions = await self._events.get_response_dimensions(response_ids)

        rows = self.recompute(
            project_id,
            as_of.today,
            mentions,
            citations,
            dimensions,
            filters,
            entity_type=entity_type,
        )
        get_metrics().record_partial_events(len(mentions), len(citations))
        logger.debug(
            "Recomputed %d partial rows from %d mentions and %d citations",
            len(rows), len(mentions), len(citations),
        )
        return rows
