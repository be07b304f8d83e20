"""Tests for date windows, AsOf and the rollup cutoff."""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from src.analytics.periods import AsOf, DateRange, RollupCutoff, resolve_window


class TestDateRange:
    def test_days_inclusive(self):
        assert DateRange(date(2026, 3, 1), date(2026, 3, 7)).days == 7
        assert DateRange(date(2026, 3, 1), date(2026, 3, 1)).days == 1

    def test_inverted_range_rejected(self):
        with pytest.raises(ValueError, match="after end"):
            DateRange(date(2026, 3, 7), date(2026, 3, 1))

    def test_previous_is_adjacent_and_equal_length(self):
        window = DateRange(date(2026, 3, 1), date(2026, 3, 7))

        previous = window.previous()

        assert previous == DateRange(date(2026, 2, 22), date(2026, 2, 28))
        assert previous.days == window.days

    def test_previous_single_day(self):
        window = DateRange(date(2026, 3, 1), date(2026, 3, 1))
        assert window.previous() == DateRange(date(2026, 2, 28), date(2026, 2, 28))

    def test_iter_days_and_contains(self):
        window = DateRange(date(2026, 2, 27), date(2026, 3, 2))

        days = list(window.iter_days())

        assert days == [date(2026, 2, 27), date(2026, 2, 28), date(2026, 3, 1), date(2026, 3, 2)]
        assert date(2026, 3, 1) in window
        assert date(2026, 3, 3) not in window
        assert "2026-03-01" not in window

    def test_to_dict(self):
        window = DateRange(date(2026, 3, 1), date(2026, 3, 7))
        assert window.to_dict() == {"start": "2026-03-01", "end": "2026-03-07"}


class TestAsOf:
    def test_naive_instant_taken_as_utc(self):
        as_of = AsOf(datetime(2026, 3, 10, 12, 0))
        assert as_of.instant.tzinfo is timezone.utc

    def test_today_in_reference_timezone(self):
        # 02:00 UTC is still the previous day in New York
        as_of = AsOf(
            datetime(2026, 3, 10, 2, 0, tzinfo=timezone.utc),
            ZoneInfo("America/New_York"),
        )

        assert as_of.today == date(2026, 3, 9)
        assert as_of.yesterday == date(2026, 3, 8)


class TestRollupCutoff:
    def test_partial_window_after_cutoff(self):
        cutoff = RollupCutoff(at=time(4, 30))
        as_of = AsOf(datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc))

        lower, upper = cutoff.partial_window(as_of)

        assert lower == datetime(2026, 3, 10, 4, 30, tzinfo=timezone.utc)
        assert upper == as_of.instant

    def test_partial_window_before_cutoff(self):
        cutoff = RollupCutoff(at=time(4, 30))
        as_of = AsOf(datetime(2026, 3, 10, 4, 29, tzinfo=timezone.utc))

        assert cutoff.partial_window(as_of) is None

    def test_partial_window_at_cutoff_is_empty_slice(self):
        cutoff = RollupCutoff(at=time(4, 30))
        instant = datetime(2026, 3, 10, 4, 30, tzinfo=timezone.utc)

        assert cutoff.partial_window(AsOf(instant)) == (instant, instant)

    def test_cutoff_in_reference_timezone(self):
        tz = ZoneInfo("Europe/Paris")
        cutoff = RollupCutoff(at=time(4, 30), tz=tz)

        instant = cutoff.instant_for(date(2026, 3, 10))

        assert instant.astimezone(timezone.utc) == datetime(2026, 3, 10, 3, 30, tzinfo=timezone.utc)


class TestResolveWindow:
    AS_OF = AsOf(datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc))

    def test_default_ends_yesterday(self):
        window = resolve_window(self.AS_OF)

        assert window.end == date(2026, 3, 9)
        assert window.days == 30

    def test_custom_default_length(self):
        assert resolve_window(self.AS_OF, default_days=7).start == date(2026, 3, 3)

    def test_explicit_bounds_kept(self):
        window = resolve_window(self.AS_OF, date(2026, 3, 1), date(2026, 3, 10))
        assert window == DateRange(date(2026, 3, 1), date(2026, 3, 10))

    def test_only_end(self):
        window = resolve_window(self.AS_OF, end=date(2026, 3, 5), default_days=5)
        assert window == DateRange(date(2026, 3, 1), date(2026, 3, 5))

    def test_only_start(self):
        window = resolve_window(self.AS_OF, start=date(2026, 3, 1))
        assert window == DateRange(date(2026, 3, 1), date(2026, 3, 9))

    def test_only_start_today(self):
        window = resolve_window(self.AS_OF, start=date(2026, 3, 10))
        assert window == DateRange(date(2026, 3, 10), date(2026, 3, 10))

    def test_future_end_clamped(self):
        window = resolve_window(self.AS_OF, date(2026, 3, 1), date(2026, 3, 10) + timedelta(days=3))
        assert window.end == date(2026, 3, 10)

    def test_inverted_bounds_rejected(self):
        with pytest.raises(ValueError):
            resolve_window(self.AS_OF, date(2026, 3, 5), date(2026, 3, 1))
