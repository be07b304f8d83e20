"""Merge rollup rows and partial-day rows into one count mapping.

The one place where settled and partial data are combined. Correctness
rests on the date partitioning: rollup rows cover ``[start, end]``, partial
rows exist only for today and are only added when the window ends today.
Counts for the same key are summed, never deduplicated.
"""

from collections.abc import Callable, Hashable, Iterable, Mapping
from datetime import date

from src.analytics.periods import DateRange
from src.analytics.schemas import Counts, DailyAggregate, EntityKey

KeyFunc = Callable[[DailyAggregate], Hashable]


def by_entity_platform(row: DailyAggregate) -> tuple[str, str | None, str]:
    return (row.entity_type, row.competitor_id, row.platform)


def by_entity(row: DailyAggregate) -> EntityKey:
    return (row.entity_type, row.competitor_id)


def by_platform(row: DailyAggregate) -> str:
    return row.platform


def by_date_platform(row: DailyAggregate) -> tuple[date, str]:
    return (row.stat_date, row.platform)


def by_topic_platform(row: DailyAggregate) -> tuple[str | None, str]:
    return (row.topic_id, row.platform)


class AggregateMerger:
    """Sum DailyAggregate counts per grouping key.

    Usage:
        merged = AggregateMerger.merge_window(window, as_of.today, rollup, partial)
        per_platform = AggregateMerger.for_platform(merged, "openai")
    """

    @staticmethod
    def merge(
        rollup_rows: Iterable[DailyAggregate],
        partial_rows: Iterable[DailyAggregate] = (),
        key: KeyFunc = by_entity_platform,
    ) -> dict[Hashable, Counts]:
        """Sum counts of all rows sharing a key. Order of inputs is irrelevant."""
        merged: dict[Hashable, Counts] = {}
        for rows in (rollup_rows, partial_rows):
            for row in rows:
                merged.setdefault(key(row), Counts()).add(
                    mentions=row.mentions_count,
                    citations=row.citations_count,
                )
        return merged

    @classmethod
    def merge_window(
        cls,
        window: DateRange,
        today: date,
        rollup_rows: Iterable[DailyAggregate],
        partial_rows: Iterable[DailyAggregate] = (),
        key: KeyFunc = by_entity_platform,
    ) -> dict[Hashable, Counts]:
        """Merge for a window, adding partial rows only if it ends today."""
        settled = [row for row in rollup_rows if row.stat_date in window]
        if window.end == today:
            partial = [row for row in partial_rows if row.stat_date in window]
        else:
            partial = []
        return cls.merge(settled, partial, key=key)

    @staticmethod
    def for_platform(
        merged: Mapping[tuple[str, str | None, str], Counts],
        platform: str,
    ) -> dict[EntityKey, Counts]:
        """Entity counts on one platform from a ``by_entity_platform`` mapping."""
        result: dict[EntityKey, Counts] = {}
        for (entity_type, competitor_id, row_platform), counts in merged.items():
            if row_platform != platform:
                continue
            result.setdefault((entity_type, competitor_id), Counts()).add(
                counts.mentions, counts.citations
            )
        return result

    @staticmethod
    def across_platforms(
        merged: Mapping[tuple[str, str | None, str], Counts],
        platforms: Iterable[str] | None = None,
    ) -> dict[EntityKey, Counts]:
        """Entity counts summed over ``platforms`` (all when None)."""
        allowed = set(platforms) if platforms is not None else None
        result: dict[EntityKey, Counts] = {}
        for (entity_type, competitor_id, platform), counts in merged.items():
            if allowed is not None and platform not in allowed:
                continue
            result.setdefault((entity_type, competitor_id), Counts()).add(
                counts.mentions, counts.citations
            )
        return result
