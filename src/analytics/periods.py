"""Date windows, the current instant, and the rollup cutoff.

"Today" is never read from the wall clock inside the pipeline. Callers pass
an ``AsOf`` (the current instant in the reference timezone) and the
``RollupCutoff`` from configuration, so any moment can be simulated.

Day-boundary convention: the nightly rollup for date D summarizes the events
of D that precede ``cutoff(D)``. Everything in ``[cutoff(D), as_of]`` is the
partial day and has to be recomputed from raw events.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterator


@dataclass(frozen=True)
class DateRange:
    """An inclusive range of calendar days."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(
                f"Invalid date range: start {self.start} is after end {self.end}"
            )

    @property
    def days(self) -> int:
        """Number of calendar days in the range."""
        return (self.end - self.start).days + 1

    def __contains__(self, day: object) -> bool:
        return isinstance(day, date) and self.start <= day <= self.end

    def iter_days(self) -> Iterator[date]:
        """Yield every calendar day in the range, oldest first."""
        for offset in range(self.days):
            yield self.start + timedelta(days=offset)

    def previous(self) -> "DateRange":
        """The equal-length range immediately preceding this one."""
        previous_end = self.start - timedelta(days=1)
        previous_start = previous_end - (self.end - self.start)
        return DateRange(previous_start, previous_end)

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass(frozen=True)
class AsOf:
    """The instant a query is evaluated at, pinned to the reference timezone."""

    instant: datetime
    tz: tzinfo = timezone.utc

    def __post_init__(self) -> None:
        if self.instant.tzinfo is None:
            # Naive instants are taken to be UTC
            object.__setattr__(
                self, "instant", self.instant.replace(tzinfo=timezone.utc)
            )

    @classmethod
    def now(cls, tz: tzinfo = timezone.utc) -> "AsOf":
        return cls(datetime.now(timezone.utc), tz)

    @property
    def local(self) -> datetime:
        return self.instant.astimezone(self.tz)

    @property
    def today(self) -> date:
        return self.local.date()

    @property
    def yesterday(self) -> date:
        return self.today - timedelta(days=1)


@dataclass(frozen=True)
class RollupCutoff:
    """Time of day after which the nightly rollup for that day has run."""

    at: time = time(4, 30)
    tz: tzinfo = timezone.utc

    def instant_for(self, day: date) -> datetime:
        """The cutoff instant on ``day`` in the reference timezone."""
        return datetime.combine(day, self.at, tzinfo=self.tz)

    def partial_window(self, as_of: AsOf) -> tuple[datetime, datetime] | None:
        """The not-yet-rolled-up slice of today, or None before the cutoff."""
        lower = self.instant_for(as_of.today)
        upper = as_of.instant
        if upper < lower:
            return None
        return lower, upper


def resolve_window(
    as_of: AsOf,
    start: date | None = None,
    end: date | None = None,
    default_days: int = 30,
) -> DateRange:
    """Build the query window from optional caller bounds.

    - Neither bound: the ``default_days`` days ending yesterday.
    - Only ``start``: ``start`` through yesterday (or ``start`` itself if
      ``start`` is today).
    - Only ``end``: ``default_days`` days ending at ``end``.
    - An ``end`` after today is clamped to today.

    Raises:
        ValueError: If the resolved start is after the resolved end.
    """
    today = as_of.today
    if end is None:
        end = as_of.yesterday
        if start is not None and start > end:
            end = min(start, today)
    elif end > today:
        end = today

    if start is None:
        start = end - timedelta(days=default_days - 1)

    return DateRange(start, end)
