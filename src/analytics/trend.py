"""Period-over-period share trends.

A trend is the signed difference in share, in percentage points, between a
window and the equal-length window immediately before it. A missing or
zero-total previous share counts as 0, so a new entity shows its full
current share as trend.
"""

import asyncio
from collections.abc import Awaitable, Callable, Hashable, Mapping
from dataclasses import dataclass
from typing import Generic, TypeVar

from src.analytics.breakdown import EntityBreakdown
from src.analytics.periods import DateRange
from src.analytics.schemas import EntityKey

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


@dataclass(frozen=True)
class PeriodComparison(Generic[T]):
    """Pipeline results for a window and its preceding window."""

    current_window: DateRange
    previous_window: DateRange
    current: T
    previous: T


class TrendCalculator:
    """Run a period pipeline twice and diff the resulting shares."""

    @staticmethod
    async def compare(
        window: DateRange,
        run_period: Callable[[DateRange], Awaitable[T]],
    ) -> PeriodComparison[T]:
        """Run ``run_period`` for ``window`` and ``window.previous()`` concurrently."""
        previous_window = window.previous()
        current, previous = await asyncio.gather(
            run_period(window),
            run_period(previous_window),
        )
        return PeriodComparison(
            current_window=window,
            previous_window=previous_window,
            current=current,
            previous=previous,
        )

    @staticmethod
    def share(part: int, total: int) -> float:
        """``100 * part / total``, 0.0 when total is 0."""
        if total <= 0:
            return 0.0
        return 100.0 * part / total

    @staticmethod
    def share_trends(
        current: Mapping[K, float],
        previous: Mapping[K, float],
    ) -> dict[K, float]:
        """Percentage-point change per key of ``current``."""
        return {key: value - previous.get(key, 0.0) for key, value in current.items()}

    @classmethod
    def entity_trends(
        cls,
        current: EntityBreakdown,
        previous: EntityBreakdown,
    ) -> dict[EntityKey, float]:
        """Percentage-point change per entity listed in ``current``."""
        current_shares = {s.entity.key: s.percentage for s in current.entities}
        previous_shares = {s.entity.key: s.percentage for s in previous.entities}
        return cls.share_trends(current_shares, previous_shares)
