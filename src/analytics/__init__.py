"""Mention/citation analytics aggregation engine.

Components:
- DimensionResolver: region/topic/platform filter values -> dimension ids
- RollupRepository / EventRepository / DimensionRepository: store readers
- PartialDayRecomputer: today's post-cutoff counts from raw events
- AggregateMerger: rollup + partial rows -> counts per grouping key
- EntityBreakdownComposer: ranked brand/competitor shares
- TrendCalculator: percentage-point change vs. the previous period
- AnalyticsService: the query facade
"""

from src.analytics.breakdown import EntityBreakdown, EntityBreakdownComposer, EntityShare
from src.analytics.config import AnalyticsConfig
from src.analytics.dimensions import DimensionResolver
from src.analytics.errors import (
    AnalyticsError,
    DimensionNotFound,
    NotAuthorized,
    PartialDataDegraded,
    StoreUnavailable,
    UnsupportedPlatform,
)
from src.analytics.merger import AggregateMerger
from src.analytics.partial_day import PartialDayRecomputer
from src.analytics.periods import AsOf, DateRange, RollupCutoff, resolve_window
from src.analytics.repository import (
    CitationSourceRepository,
    DimensionRepository,
    EventRepository,
    RollupRepository,
)
from src.analytics.service import AnalyticsService
from src.analytics.trend import PeriodComparison, TrendCalculator

__all__ = [
    "AggregateMerger",
    "AnalyticsConfig",
    "AnalyticsError",
    "AnalyticsService",
    "AsOf",
    "CitationSourceRepository",
    "DateRange",
    "DimensionNotFound",
    "DimensionRepository",
    "DimensionResolver",
    "EntityBreakdown",
    "EntityBreakdownComposer",
    "EntityShare",
    "EventRepository",
    "NotAuthorized",
    "PartialDataDegraded",
    "PartialDayRecomputer",
    "PeriodComparison",
    "RollupCutoff",
    "RollupRepository",
    "StoreUnavailable",
    "TrendCalculator",
    "UnsupportedPlatform",
    "resolve_window",
]
