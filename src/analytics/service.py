"""Query facade for mention/citation analytics.

Each operation resolves the window and filters, loads the merged counts for
the period (rollup rows plus, when the window ends today, the recomputed
post-cutoff slice), and shapes them into a report. Aggregation logic lives
in the merger, composer and trend calculator; operations only choose the
grouping key and the output shape.

Failure handling:
- a rollup or dimension read failure propagates as StoreUnavailable
- a partial-day failure is recorded on the report (``degraded=True``)
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from datetime import date, datetime, time as dt_time, timedelta
from typing import TypeVar

import structlog

from src.analytics.breakdown import EntityBreakdownComposer
from src.analytics.config import MAX_CITATION_SOURCES_LIMIT, AnalyticsConfig
from src.analytics.dimensions import DimensionResolver
from src.analytics.errors import PartialDataDegraded, StoreUnavailable
from src.analytics.merger import (
    AggregateMerger,
    KeyFunc,
    by_date_platform,
    by_entity_platform,
    by_platform,
    by_topic_platform,
)
from src.analytics.partial_day import PartialDayRecomputer
from src.analytics.periods import AsOf, DateRange, resolve_window
from src.analytics.reports import (
    AnalyticsReport,
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
from src.analytics.repository import (
    CitationSourceRepository,
    DimensionRepository,
    EventRepository,
    RollupRepository,
)
from src.analytics.schemas import (
    ENTITY_BRAND,
    PLATFORM_LABELS,
    Counts,
    DailyAggregate,
    DimensionFilters,
)
from src.analytics.trend import TrendCalculator
from src.observability.metrics import get_metrics
from src.observability.tracing import get_tracer, traced
from src.storage.database import Database

logger = structlog.get_logger(__name__)
_tracer = get_tracer("mention-analytics.service")

R = TypeVar("R", bound=AnalyticsReport)


@dataclass
class PeriodData:
    """Merged counts for one window, and why the partial slice is missing."""

    window: DateRange
    merged: dict[Hashable, Counts]
    degraded: PartialDataDegraded | None = None


class AnalyticsService:
    """Brand and competitor mention/citation analytics per project.

    Usage:
        service = AnalyticsService.from_database(db)
        report = await service.platform_overview(project_id, region="US")
        payload = report.to_dict()
    """

    def __init__(
        self,
        rollup_repository: RollupRepository,
        event_repository: EventRepository,
        dimension_repository: DimensionRepository,
        citation_repository: CitationSourceRepository | None = None,
        config: AnalyticsConfig | None = None,
    ) -> None:
        self._config = config or AnalyticsConfig()
        self._rollup = rollup_repository
        self._dimensions = dimension_repository
        self._citations = citation_repository
        self._resolver = DimensionResolver(dimension_repository, self._config)
        self._recomputer = PartialDayRecomputer(event_repository, self._config)

    @classmethod
    def from_database(
        cls,
        database: Database,
        config: AnalyticsConfig | None = None,
    ) -> "AnalyticsService":
        """Build the service with asyncpg-backed readers on one pool."""
        config = config or AnalyticsConfig()
        return cls(
            RollupRepository(database, config),
            EventRepository(database, config),
            DimensionRepository(database, config),
            CitationSourceRepository(database, config),
            config=config,
        )

    @property
    def config(self) -> AnalyticsConfig:
        return self._config

    # ── Facade operations ──────────────────────────────────

    async def platform_overview(
        self,
        project_id: str,
        start: date | None = None,
        end: date | None = None,
        region: str | None = None,
        topic: str | None = None,
        as_of: AsOf | datetime | None = None,
    ) -> PlatformOverviewReport:
        """Mentions, citations, share and trend per primary platform.

        A platform's share is its percentage of all mentions on the primary
        platforms in the window; the trend compares it to the previous window.
        """

        async def build() -> PlatformOverviewReport:
            now, window, filters = await self._prepare(
                project_id, start, end, region, topic, as_of
            )
            comparison = await TrendCalculator.compare(
                window,
                lambda w: self._load_period(
                    "platform_overview", project_id, w, now, filters, key=by_platform
                ),
            )
            current = comparison.current.merged
            previous = comparison.previous.merged
            platforms = list(filters.platforms)

            total_mentions = sum(_counts(current, p).mentions for p in platforms)
            total_citations = sum(_counts(current, p).citations for p in platforms)
            previous_total = sum(_counts(previous, p).mentions for p in platforms)

            current_shares = {
                p: TrendCalculator.share(_counts(current, p).mentions, total_mentions)
                for p in platforms
            }
            previous_shares = {
                p: TrendCalculator.share(_counts(previous, p).mentions, previous_total)
                for p in platforms
            }
            trends = TrendCalculator.share_trends(current_shares, previous_shares)

            report = PlatformOverviewReport(
                project_id=project_id,
                window=window,
                precision=self._config.share_precision,
                platforms=[
                    PlatformStat(
                        platform=p,
                        label=PLATFORM_LABELS.get(p, p.title()),
                        mentions=_counts(current, p).mentions,
                        citations=_counts(current, p).citations,
                        share=current_shares[p],
                        trend=trends[p],
                    )
                    for p in platforms
                ],
                total_mentions=total_mentions,
                total_citations=total_citations,
            )
            return _with_status(report, comparison.current)

        return await self._run("platform_overview", project_id, build)

    async def platform_evolution(
        self,
        project_id: str,
        start: date | None = None,
        end: date | None = None,
        region: str | None = None,
        topic: str | None = None,
        as_of: AsOf | datetime | None = None,
    ) -> PlatformEvolutionReport:
        """Daily mentions per primary platform, one point per day, zero-filled."""

        async def build() -> PlatformEvolutionReport:
            now, window, filters = await self._prepare(
                project_id, start, end, region, topic, as_of
            )
            period = await self._load_period(
                "platform_evolution", project_id, window, now, filters,
                key=by_date_platform,
            )
            points = [
                EvolutionPoint(
                    day=day,
                    mentions={
                        p: _counts(period.merged, (day, p)).mentions
                        for p in filters.platforms
                    },
                )
                for day in window.iter_days()
            ]
            report = PlatformEvolutionReport(
                project_id=project_id,
                window=window,
                precision=self._config.share_precision,
                points=points,
            )
            return _with_status(report, period)

        return await self._run("platform_evolution", project_id, build)

    async def entity_breakdown(
        self,
        project_id: str,
        start: date | None = None,
        end: date | None = None,
        region: str | None = None,
        topic: str | None = None,
        as_of: AsOf | datetime | None = None,
    ) -> EntityBreakdownReport:
        """Ranked brand/competitor shares per primary platform and combined."""

        async def build() -> EntityBreakdownReport:
            now, window, filters = await self._prepare(
                project_id, start, end, region, topic, as_of
            )
            period, roster = await asyncio.gather(
                self._load_period(
                    "entity_breakdown", project_id, window, now, filters,
                    key=by_entity_platform,
                ),
                self._dimensions.get_roster(project_id),
            )
            report = EntityBreakdownReport(
                project_id=project_id,
                window=window,
                precision=self._config.share_precision,
                platforms={
                    p: EntityBreakdownComposer.compose(
                        AggregateMerger.for_platform(period.merged, p), roster
                    )
                    for p in filters.platforms
                },
                combined=EntityBreakdownComposer.compose(
                    AggregateMerger.across_platforms(period.merged, filters.platforms),
                    roster,
                ),
            )
            return _with_status(report, period)

        return await self._run("entity_breakdown", project_id, build)

    async def topic_performance(
        self,
        project_id: str,
        start: date | None = None,
        end: date | None = None,
        region: str | None = None,
        topic: str | None = None,
        as_of: AsOf | datetime | None = None,
    ) -> TopicPerformanceReport:
        """Brand mentions per active topic and primary platform.

        Rows without a topic are excluded. Topics are ordered by total
        mentions descending, then by name.
        """

        async def build() -> TopicPerformanceReport:
            now, window, filters = await self._prepare(
                project_id, start, end, region, topic, as_of, require_topic=True
            )
            period, topics = await asyncio.gather(
                self._load_period(
                    "topic_performance", project_id, window, now, filters,
                    key=by_topic_platform, entity_type=ENTITY_BRAND,
                ),
                self._dimensions.list_topics(project_id),
            )
            if filters.topic_id is not None:
                topics = [t for t in topics if t.topic_id == filters.topic_id]

            rows = [
                TopicPerformanceRow(
                    topic_id=t.topic_id,
                    name=t.name,
                    mentions={
                        p: _counts(period.merged, (t.topic_id, p)).mentions
                        for p in filters.platforms
                    },
                )
                for t in topics
            ]
            rows.sort(key=lambda r: (-r.total, r.name))

            report = TopicPerformanceReport(
                project_id=project_id,
                window=window,
                precision=self._config.share_precision,
                topics=rows,
            )
            return _with_status(report, period)

        return await self._run("topic_performance", project_id, build)

    async def momentum(
        self,
        project_id: str,
        start: date | None = None,
        end: date | None = None,
        region: str | None = None,
        topic: str | None = None,
        as_of: AsOf | datetime | None = None,
    ) -> MomentumReport:
        """Per primary platform, each entity's current share and its trend."""

        async def build() -> MomentumReport:
            now, window, filters = await self._prepare(
                project_id, start, end, region, topic, as_of
            )
            comparison, roster = await asyncio.gather(
                TrendCalculator.compare(
                    window,
                    lambda w: self._load_period(
                        "momentum", project_id, w, now, filters,
                        key=by_entity_platform,
                    ),
                ),
                self._dimensions.get_roster(project_id),
            )

            platforms: dict[str, list[MomentumEntry]] = {}
            for p in filters.platforms:
                current = EntityBreakdownComposer.compose(
                    AggregateMerger.for_platform(comparison.current.merged, p), roster
                )
                previous = EntityBreakdownComposer.compose(
                    AggregateMerger.for_platform(comparison.previous.merged, p), roster
                )
                trends = TrendCalculator.entity_trends(current, previous)
                platforms[p] = [
                    MomentumEntry(
                        entity=share.entity,
                        mentions=share.mentions,
                        percentage=share.percentage,
                        trend=trends[share.entity.key],
                    )
                    for share in current.entities
                ]

            report = MomentumReport(
                project_id=project_id,
                window=window,
                precision=self._config.share_precision,
                platforms=platforms,
            )
            return _with_status(report, comparison.current)

        return await self._run("momentum", project_id, build)

    async def citation_sources(
        self,
        project_id: str,
        start: date | None = None,
        end: date | None = None,
        region: str | None = None,
        topic: str | None = None,
        as_of: AsOf | datetime | None = None,
        limit: int | None = None,
    ) -> CitationSourcesReport:
        """Most cited domains per primary platform over the whole window."""
        if self._citations is None:
            raise RuntimeError("citation_sources requires a CitationSourceRepository")
        if limit is not None and not 1 <= limit <= MAX_CITATION_SOURCES_LIMIT:
            raise ValueError(
                f"limit must be between 1 and {MAX_CITATION_SOURCES_LIMIT}, got {limit}"
            )
        citations = self._citations

        async def build() -> CitationSourcesReport:
            now, window, filters = await self._prepare(
                project_id, start, end, region, topic, as_of
            )
            tz = self._config.tz
            lower = datetime.combine(window.start, dt_time.min, tzinfo=tz)
            upper = datetime.combine(
                window.end + timedelta(days=1), dt_time.min, tzinfo=tz
            )
            domains = await citations.get_top_domains(
                project_id,
                lower,
                min(upper, now.instant),
                platforms=filters.platforms,
                region_id=filters.region_id,
                topic_id=filters.topic_id,
                limit=self._config.citation_sources_limit if limit is None else limit,
            )
            return CitationSourcesReport(
                project_id=project_id,
                window=window,
                precision=self._config.share_precision,
                platforms=domains,
            )

        return await self._run("citation_sources", project_id, build)

    # ── Pipeline ───────────────────────────────────────────

    def _as_of(self, value: AsOf | datetime | None) -> AsOf:
        if value is None:
            return AsOf.now(self._config.tz)
        if isinstance(value, AsOf):
            # Calendar days are always taken in the reference timezone
            return AsOf(value.instant, self._config.tz)
        return AsOf(value, self._config.tz)

    async def _prepare(
        self,
        project_id: str,
        start: date | None,
        end: date | None,
        region: str | None,
        topic: str | None,
        as_of: AsOf | datetime | None,
        *,
        require_topic: bool = False,
    ) -> tuple[AsOf, DateRange, DimensionFilters]:
        now = self._as_of(as_of)
        window = resolve_window(now, start, end, self._config.default_range_days)
        filters = await self._resolver.resolve(
            project_id, region=region, topic=topic, require_topic=require_topic
        )
        return now, window, filters

    async def _load_period(
        self,
        operation: str,
        project_id: str,
        window: DateRange,
        as_of: AsOf,
        filters: DimensionFilters,
        *,
        key: KeyFunc,
        entity_type: str | None = None,
    ) -> PeriodData:
        """Rollup rows for ``window`` merged with today's slice if it ends today."""
        rollup_read = self._rollup.get_daily_aggregates(
            project_id,
            window.start,
            window.end,
            platforms=filters.platforms,
            region_id=filters.region_id,
            topic_id=filters.topic_id,
            entity_type=entity_type,
            require_topic=filters.require_topic,
        )

        if window.end != as_of.today:
            rollup_rows = await rollup_read
            return PeriodData(
                window=window,
                merged=AggregateMerger.merge_window(
                    window, as_of.today, rollup_rows, key=key
                ),
            )

        rollup_rows, (partial_rows, degraded) = await asyncio.gather(
            rollup_read,
            self._partial_or_degraded(
                operation, project_id, as_of, filters, entity_type
            ),
        )
        return PeriodData(
            window=window,
            merged=AggregateMerger.merge_window(
                window, as_of.today, rollup_rows, partial_rows, key=key
            ),
            degraded=degraded,
        )

    async def _partial_or_degraded(
        self,
        operation: str,
        project_id: str,
        as_of: AsOf,
        filters: DimensionFilters,
        entity_type: str | None,
    ) -> tuple[list[DailyAggregate], PartialDataDegraded | None]:
        try:
            rows = await self._recomputer.compute(
                project_id, as_of, filters, entity_type=entity_type
            )
        except StoreUnavailable as e:
            logger.warning(
                "partial_day_degraded",
                operation=operation,
                project_id=project_id,
                store=e.store,
                reason=e.reason,
            )
            get_metrics().record_degraded(operation)
            return [], PartialDataDegraded(e)
        return rows, None

    async def _run(
        self,
        operation: str,
        project_id: str,
        build: Callable[[], Awaitable[R]],
    ) -> R:
        metrics = get_metrics()
        start = time.perf_counter()
        with traced(_tracer, f"analytics.{operation}", {"project_id": project_id}):
            try:
                report = await build()
            except Exception as e:
                metrics.record_query(operation, "error", time.perf_counter() - start)
                logger.error(
                    "analytics_query_failed",
                    operation=operation,
                    project_id=project_id,
                    error=str(e),
                )
                raise

        latency = time.perf_counter() - start
        metrics.record_query(
            operation, "degraded" if report.degraded else "success", latency
        )
        logger.info(
            "analytics_query",
            operation=operation,
            project_id=project_id,
            start=report.window.start.isoformat(),
            end=report.window.end.isoformat(),
            degraded=report.degraded,
            latency_ms=round(latency * 1000, 2),
        )
        return report


def _counts(merged: dict[Hashable, Counts], key: Hashable) -> Counts:
    return merged.get(key) or Counts()


def _with_status(report: R, period: PeriodData) -> R:
    if period.degraded is not None:
        report.mark_degraded(period.degraded)
    return report
