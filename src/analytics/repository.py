"""Read-only store access for the aggregation engine.

All readers run asyncpg queries through ``Database`` with positional
parameters. Every read goes through ``_StoreReader._read``,
which applies the per-call timeout, opens a tracing span, records metrics,
and converts driver failures into ``StoreUnavailable``.

Readers:
- RollupRepository: ``daily_brand_stats`` range-and-filter reads
- EventRepository: raw ``brand_mentions`` / ``citations`` for a time window,
  plus the response -> prompt join yielding ResolvedEventDimensions
- DimensionRepository: region/topic lookups and the entity roster
- CitationSourceRepository: top cited domains per platform
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from datetime import date, datetime
from typing import Any

import asyncpg

from src.analytics.config import AnalyticsConfig
from src.analytics.errors import DimensionNotFound, StoreUnavailable, UnsupportedPlatform
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
    BRAND_ENTITY_ID,
)
from src.observability.metrics import get_metrics
from src.observability.tracing import get_tracer, traced
from src.storage.database import Database

logger = logging.getLogger(__name__)
_tracer = get_tracer("mention-analytics.repository")

# The event store labels the tracked brand "client"
_BRAND_TYPE_CLIENT = "client"

_STORE_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)


class _StoreReader:
    """Shared timeout / tracing / metrics / error-mapping for store reads."""

    store_name = "store"

    def __init__(
        self,
        database: Database,
        config: AnalyticsConfig | None = None,
    ) -> None:
        self._db = database
        self._config = config or AnalyticsConfig()

    async def _read(
        self,
        operation: str,
        call: Callable[..., Awaitable[Any]],
        sql: str,
        *args: Any,
        attributes: dict[str, Any] | None = None,
    ) -> Any:
        """Run ``call(sql, *args)`` under the store timeout.

        Raises:
            StoreUnavailable: On driver errors, connection errors or timeout.
        """
        metrics = get_metrics()
        start = time.perf_counter()
        with traced(_tracer, f"{self.store_name}.{operation}", attributes):
            try:
                result = await asyncio.wait_for(
                    call(sql, *args),
                    timeout=self._config.store_timeout_seconds,
                )
            except _STORE_ERRORS as e:
                error_type = type(e).__name__
                metrics.record_store_error(self.store_name, error_type)
                logger.error(
                    "%s store read %s failed: %s",
                    self.store_name, operation, error_type,
                )
                raise StoreUnavailable(
                    self.store_name, operation, str(e) or error_type
                ) from e

        rows = len(result) if isinstance(result, list) else 0
        metrics.record_store_read(
            self.store_name, operation, time.perf_counter() - start, rows=rows
        )
        return result


# ── Rollup store ─────────────────────────────────────────────


class RollupRepository(_StoreReader):
    """Reads pre-aggregated rows from ``daily_brand_stats``."""

    store_name = "rollup"

    async def get_daily_aggregates(
        self,
        project_id: str,
        start: date,
        end: date,
        *,
        platforms: Sequence[str],
        region_id: str | None = None,
        topic_id: str | None = None,
        entity_type: str | None = None,
        require_topic: bool = False,
    ) -> list[DailyAggregate]:
        """Fetch every rollup row in ``[start, end]`` matching the filters.

        Args:
            project_id: Project identifier.
            start: Inclusive first stat date.
            end: Inclusive last stat date.
            platforms: Platform codes to include; must be whitelisted.
            region_id: Optional region id filter.
            topic_id: Optional topic id filter.
            entity_type: Optional ``brand`` / ``competitor`` filter.
            require_topic: Exclude rows without a topic.

        Returns:
            DailyAggregate rows ordered by stat_date ascending. Empty list
            when nothing matches.

        Raises:
            UnsupportedPlatform: If a platform is outside the whitelist.
            StoreUnavailable: If the read fails.
        """
        platform_list = _check_platforms(platforms, self._config.supported_platforms)
        if not platform_list:
            return []

        conditions = [
            "project_id = $1",
            "stat_date >= $2",
            "stat_date <= $3",
            "platform = ANY($4::text[])",
        ]
        params: list[Any] = [project_id, start, end, platform_list]
        param_idx = 5

        if region_id is not None:
            conditions.append(f"region_id = ${param_idx}")
            params.append(region_id)
            param_idx += 1

        if topic_id is not None:
            conditions.append(f"topic_id = ${param_idx}")
            params.append(topic_id)
            param_idx += 1

        if entity_type is not None:
            conditions.append(f"entity_type = ${param_idx}")
            params.append(entity_type)
            param_idx += 1
            if entity_type == ENTITY_BRAND:
                conditions.append("competitor_id IS NULL")

        if require_topic:
            conditions.append("topic_id IS NOT NULL")

        sql = f"""
            SELECT
                project_id, stat_date, entity_type, competitor_id, platform,
                region_id, topic_id, mentions_count, citations_count
            FROM daily_brand_stats
            WHERE {" AND ".join(conditions)}
            ORDER BY stat_date ASC
        """
        rows = await self._read(
            "get_daily_aggregates",
            self._db.fetch,
            sql,
            *params,
            attributes={
                "project_id": project_id,
                "start": start.isoformat(),
                "end": end.isoformat(),
            },
        )
        return [_row_to_aggregate(row) for row in rows]


# ── Raw event store ──────────────────────────────────────────


class EventRepository(_StoreReader):
    """Reads raw mention/citation events and their response dimensions."""

    store_name = "event"

    async def get_mention_events(
        self,
        project_id: str,
        lower: datetime,
        upper: datetime,
        *,
        entity_type: str | None = None,
    ) -> list[MentionEvent]:
        """Fetch mentions with ``lower <= created_at <= upper``."""
        conditions = [
            "project_id = $1",
            "created_at >= $2",
            "created_at <= $3",
            "ai_response_id IS NOT NULL",
        ]
        params: list[Any] = [project_id, lower, upper]

        if entity_type is not None:
            conditions.append("brand_type = $4")
            params.append(
                _BRAND_TYPE_CLIENT if entity_type == ENTITY_BRAND else entity_type
            )

        sql = f"""
            SELECT id, project_id, brand_type, competitor_id, ai_response_id, created_at
            FROM brand_mentions
            WHERE {" AND ".join(conditions)}
        """
        rows = await self._read(
            "get_mention_events",
            self._db.fetch,
            sql,
            *params,
            attributes={"project_id": project_id},
        )
        return [_row_to_mention(row) for row in rows]

    async def get_citation_events(
        self,
        project_id: str,
        lower: datetime,
        upper: datetime,
        *,
        entity_type: str | None = None,
    ) -> list[CitationEvent]:
        """Fetch citations with ``lower <= created_at <= upper``."""
        conditions = [
            "project_id = $1",
            "created_at >= $2",
            "created_at <= $3",
            "ai_response_id IS NOT NULL",
        ]
        params: list[Any] = [project_id, lower, upper]

        if entity_type is not None:
            conditions.append("citation_type = $4")
            params.append(entity_type)

        sql = f"""
            SELECT
                id, project_id, citation_type, competitor_id,
                ai_response_id, domain, created_at
            FROM citations
            WHERE {" AND ".join(conditions)}
        """
        rows = await self._read(
            "get_citation_events",
            self._db.fetch,
            sql,
            *params,
            attributes={"project_id": project_id},
        )
        return [_row_to_citation(row) for row in rows]

    async def get_response_dimensions(
        self,
        response_ids: Iterable[str],
    ) -> dict[str, ResolvedEventDimensions]:
        """Join responses to their prompts, once per response id.

        Responses without a platform are left out; events pointing at them
        cannot be attributed and are dropped by the recomputer.
        """
        ids = sorted(set(response_ids))
        if not ids:
            return {}

        sql = """
            SELECT ar.id, ar.platform, pt.region_id, pt.topic_id
            FROM ai_responses ar
            LEFT JOIN prompt_tracking pt ON pt.id = ar.prompt_tracking_id
            WHERE ar.id = ANY($1::uuid[])
        """
        rows = await self._read(
            "get_response_dimensions",
            self._db.fetch,
            sql,
            ids,
            attributes={"response_count": len(ids)},
        )

        resolved: dict[str, ResolvedEventDimensions] = {}
        for row in rows:
            if not row["platform"]:
                continue
            resolved[str(row["id"])] = ResolvedEventDimensions(
                platform=row["platform"],
                region_id=_str_or_none(row["region_id"]),
                topic_id=_str_or_none(row["topic_id"]),
            )
        if len(resolved) < len(ids):
            logger.debug(
                "Resolved %d of %d responses", len(resolved), len(ids)
            )
        return resolved


# ── Dimension lookup service ─────────────────────────────────


class DimensionRepository(_StoreReader):
    """Region/topic lookups and the per-project entity roster."""

    store_name = "dimension"

    async def get_region_id(self, project_id: str, code: str) -> str:
        """Resolve an active region code to its id.

        Raises:
            DimensionNotFound: If the project has no active region with that code.
        """
        sql = """
            SELECT id FROM regions
            WHERE project_id = $1 AND code = $2 AND is_active = true
            LIMIT 1
        """
        value = await self._read(
            "get_region_id", self._db.fetchval, sql, project_id, code.upper()
        )
        if value is None:
            raise DimensionNotFound("region", code, project_id)
        return str(value)

    async def get_topic_id(self, project_id: str, topic: str) -> str:
        """Resolve an active topic, given by id or by name, to its id.

        Raises:
            DimensionNotFound: If no active topic matches.
        """
        sql = """
            SELECT id FROM topics
            WHERE project_id = $1
              AND is_active = true
              AND (id::text = $2 OR lower(name) = lower($2))
            ORDER BY (id::text = $2) DESC
            LIMIT 1
        """
        value = await self._read(
            "get_topic_id", self._db.fetchval, sql, project_id, topic
        )
        if value is None:
            raise DimensionNotFound("topic", topic, project_id)
        return str(value)

    async def list_topics(self, project_id: str) -> list[Topic]:
        """Active topics of a project, ordered by name."""
        sql = """
            SELECT id, name FROM topics
            WHERE project_id = $1 AND is_active = true
            ORDER BY name ASC
        """
        rows = await self._read("list_topics", self._db.fetch, sql, project_id)
        return [Topic(topic_id=str(row["id"]), name=row["name"]) for row in rows]

    async def get_roster(self, project_id: str) -> EntityRoster:
        """The project's brand and all of its competitors, active or not."""
        project_sql = """
            SELECT name, brand_name, client_url FROM projects WHERE id = $1
        """
        competitors_sql = """
            SELECT id, name, domain, is_active FROM competitors
            WHERE project_id = $1
            ORDER BY name ASC
        """
        results = await asyncio.gather(
            self._read("get_project", self._db.fetchrow, project_sql, project_id),
            self._read("list_competitors", self._db.fetch, competitors_sql, project_id),
            return_exceptions=True,
        )
        # Both reads settle before the first failure is raised
        for result in results:
            if isinstance(result, BaseException):
                raise result
        project, competitor_rows = results

        brand_name = None
        brand_domain = ""
        if project is not None:
            brand_name = project["brand_name"] or project["name"]
            brand_domain = project["client_url"] or ""

        return EntityRoster(
            brand=Entity(
                entity_id=BRAND_ENTITY_ID,
                name=brand_name or self._config.brand_fallback_name,
                domain=brand_domain,
                is_brand=True,
            ),
            competitors=[
                Competitor(
                    competitor_id=str(row["id"]),
                    name=row["name"],
                    domain=row["domain"] or "",
                    is_active=bool(row["is_active"]),
                )
                for row in competitor_rows
            ],
        )


# ── Citation sources ─────────────────────────────────────────


class CitationSourceRepository(_StoreReader):
    """Top cited domains, grouped per platform in SQL."""

    store_name = "citation"

    async def get_top_domains(
        self,
        project_id: str,
        lower: datetime,
        upper: datetime,
        *,
        platforms: Sequence[str],
        region_id: str | None = None,
        topic_id: str | None = None,
        limit: int = 10,
    ) -> dict[str, list[dict[str, Any]]]:
        """Most cited domains per platform for ``lower <= created_at < upper``.

        Returns:
            Mapping of platform -> list of ``{"domain", "count"}`` ordered by
            count descending then domain. Every requested platform is present.
        """
        platform_list = _check_platforms(platforms, self._config.supported_platforms)
        result: dict[str, list[dict[str, Any]]] = {p: [] for p in platform_list}
        if not platform_list:
            return result

        conditions = [
            "c.project_id = $1",
            "c.created_at >= $2",
            "c.created_at < $3",
            "c.domain IS NOT NULL",
            "ar.platform = ANY($4::text[])",
        ]
        params: list[Any] = [project_id, lower, upper, platform_list]
        param_idx = 5

        if region_id is not None:
            conditions.append(f"pt.region_id = ${param_idx}")
            params.append(region_id)
            param_idx += 1

        if topic_id is not None:
            conditions.append(f"pt.topic_id = ${param_idx}")
            params.append(topic_id)
            param_idx += 1

        params.append(limit)
        sql = f"""
            SELECT platform, domain, citation_count FROM (
                SELECT
                    ar.platform AS platform,
                    c.domain AS domain,
                    COUNT(*) AS citation_count,
                    ROW_NUMBER() OVER (
                        PARTITION BY ar.platform
                        ORDER BY COUNT(*) DESC, c.domain ASC
                    ) AS rank
                FROM citations c
                JOIN ai_responses ar ON ar.id = c.ai_response_id
                LEFT JOIN prompt_tracking pt ON pt.id = ar.prompt_tracking_id
                WHERE {" AND ".join(conditions)}
                GROUP BY ar.platform, c.domain
            ) ranked
            WHERE rank <= ${param_idx}
            ORDER BY platform ASC, citation_count DESC, domain ASC
        """
        rows = await self._read(
            "get_top_domains",
            self._db.fetch,
            sql,
            *params,
            attributes={"project_id": project_id},
        )
        for row in rows:
            result.setdefault(row["platform"], []).append(
                {"domain": row["domain"], "count": int(row["citation_count"])}
            )
        return result


# ── Helpers (module-level for testability) ──────────────────


def _check_platforms(platforms: Sequence[str], supported: Sequence[str]) -> list[str]:
    """Deduplicate platforms, preserving order, and enforce the whitelist."""
    checked: list[str] = []
    for platform in platforms:
        if platform not in supported:
            raise UnsupportedPlatform(platform, list(supported))
        if platform not in checked:
            checked.append(platform)
    return checked


def _str_or_none(value: Any) -> str | None:
    return str(value) if value is not None else None


def _row_to_aggregate(row: Any) -> DailyAggregate:
    """Convert an asyncpg Record to a DailyAggregate."""
    return DailyAggregate(
        project_id=str(row["project_id"]),
        stat_date=row["stat_date"],
        entity_type=row["entity_type"],
        competitor_id=_str_or_none(row["competitor_id"]),
        platform=row["platform"],
        region_id=_str_or_none(row["region_id"]),
        topic_id=_str_or_none(row["topic_id"]),
        mentions_count=int(row["mentions_count"] or 0),
        citations_count=int(row["citations_count"] or 0),
    )


def _row_to_mention(row: Any) -> MentionEvent:
    """Convert an asyncpg Record to a MentionEvent."""
    is_brand = row["brand_type"] == _BRAND_TYPE_CLIENT
    return MentionEvent(
        event_id=str(row["id"]),
        project_id=str(row["project_id"]),
        entity_type=ENTITY_BRAND if is_brand else row["brand_type"],
        competitor_id=None if is_brand else _str_or_none(row["competitor_id"]),
        response_id=str(row["ai_response_id"]),
        created_at=row["created_at"],
    )


def _row_to_citation(row: Any) -> CitationEvent:
    """Convert an asyncpg Record to a CitationEvent."""
    return CitationEvent(
        event_id=str(row["id"]),
        project_id=str(row["project_id"]),
        citation_type=row["citation_type"],
        competitor_id=_str_or_none(row["competitor_id"]),
        response_id=str(row["ai_response_id"]),
        created_at=row["created_at"],
        domain=row.get("domain"),
    )
