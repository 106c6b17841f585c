"""
Tests for period return calculation.
"""

import math
import pytest
from datetime import datetime, timezone
from models import PricePoint
from returns import (
    Granularity,
    clean_points,
    period_closes,
    period_key_label,
    period_return_map,
    period_returns,
    return_series,
)


def ms(year, month, day, hour=0):
    """Milliseconds since the epoch for a UTC date."""
    return int(datetime(year, month, day, hour, tzinfo=timezone.utc).timestamp() * 1000)


def month_key(year, month):
    return year * 12 + (month - 1)


class TestCleanPoints:
    """Test removal of unusable observations."""

    def test_drops_invalid_closes(self):
        """Null, non-finite and non-positive closes are dropped."""
        points = [
            PricePoint(ms(2020, 1, 2), 100.0),
            PricePoint(ms(2020, 1, 3), None),
            PricePoint(ms(2020, 1, 4), float("nan")),
            PricePoint(ms(2020, 1, 5), float("inf")),
            PricePoint(ms(2020, 1, 6), 0.0),
            PricePoint(ms(2020, 1, 7), -5.0),
            None,
            PricePoint(ms(2020, 1, 8), 101.0),
        ]

        cleaned = clean_points(points)

        assert [p.close for p in cleaned] == [100.0, 101.0]

    def test_drops_missing_timestamp(self):
        """A point without timestamp cannot be placed in a period."""
        cleaned = clean_points([PricePoint(None, 10.0), PricePoint(ms(2020, 1, 2), 11.0)])

        assert len(cleaned) == 1
        assert cleaned[0].close == 11.0


class TestPeriodCloses:
    """Test reduction of daily closes to period-end closes."""

    def test_last_close_of_each_month_wins(self):
        """The last observation in a month is that month's close."""
        points = [
            PricePoint(ms(2020, 1, 2), 100.0),
            PricePoint(ms(2020, 1, 31), 105.0),
            PricePoint(ms(2020, 2, 3), 106.0),
            PricePoint(ms(2020, 2, 28), 110.0),
        ]

        closes = period_closes(points, Granularity.MONTHLY)

        assert closes == {month_key(2020, 1): 105.0, month_key(2020, 2): 110.0}

    def test_unsorted_input_is_sorted_by_timestamp(self):
        """Input order does not matter, only timestamps do."""
        points = [
            PricePoint(ms(2020, 1, 31), 105.0),
            PricePoint(ms(2020, 2, 28), 110.0),
            PricePoint(ms(2020, 1, 2), 100.0),
        ]

        closes = period_closes(points, Granularity.MONTHLY)

        assert closes[month_key(2020, 1)] == 105.0
        assert list(closes) == [month_key(2020, 1), month_key(2020, 2)]

    def test_equal_timestamps_keep_input_order(self):
        """With identical timestamps the later input point is the period close."""
        points = [
            PricePoint(ms(2020, 1, 31), 105.0),
            PricePoint(ms(2020, 1, 31), 107.0),
        ]

        closes = period_closes(points, Granularity.MONTHLY)

        assert closes == {month_key(2020, 1): 107.0}

    def test_annual_keys_are_years(self):
        """Annual keys are calendar years."""
        points = [
            PricePoint(ms(2019, 6, 1), 50.0),
            PricePoint(ms(2019, 12, 31), 55.0),
            PricePoint(ms(2020, 12, 31), 60.0),
        ]

        assert period_closes(points, Granularity.ANNUAL) == {2019: 55.0, 2020: 60.0}

    def test_period_keys_use_utc(self):
        """A late-evening UTC timestamp on the 31st still belongs to that month."""
        points = [PricePoint(ms(2020, 1, 31, hour=23), 100.0)]

        assert list(period_closes(points, Granularity.MONTHLY)) == [month_key(2020, 1)]

    def test_empty_input(self):
        """No points, no closes."""
        assert period_closes([], Granularity.MONTHLY) == {}


class TestPeriodReturns:
    """Test period-over-period simple returns."""

    def test_monthly_returns_across_gaps(self):
        """Returns pair consecutive observed periods, even across missing months."""
        points = [
            PricePoint(ms(2020, 1, 31), 100.0),
            PricePoint(ms(2020, 12, 31), 110.0),
            PricePoint(ms(2021, 12, 31), 121.0),
        ]

        returns = period_returns(points, Granularity.MONTHLY)

        assert [r.value for r in returns] == pytest.approx([0.10, 0.10])
        assert [r.period_key for r in returns] == [month_key(2020, 12), month_key(2021, 12)]

    def test_annual_returns(self):
        """The same series at annual granularity yields one return."""
        points = [
            PricePoint(ms(2020, 1, 31), 100.0),
            PricePoint(ms(2020, 12, 31), 110.0),
            PricePoint(ms(2021, 12, 31), 121.0),
        ]

        returns = period_returns(points, Granularity.ANNUAL)

        assert len(returns) == 1
        assert returns[0].period_key == 2021
        assert returns[0].value == pytest.approx(0.10)

    def test_single_period_has_no_returns(self):
        """One distinct period cannot produce a return."""
        points = [PricePoint(ms(2020, 1, 2), 100.0), PricePoint(ms(2020, 1, 30), 101.0)]

        assert period_returns(points, Granularity.MONTHLY) == []
        assert period_return_map(points, Granularity.MONTHLY) == {}

    def test_empty_input(self):
        """No points, no returns."""
        assert period_returns([], Granularity.ANNUAL) == []

    def test_invalid_points_are_ignored(self):
        """Bad closes are removed before periods are formed."""
        points = [
            PricePoint(ms(2020, 1, 31), 100.0),
            PricePoint(ms(2020, 2, 28), 0.0),
            PricePoint(ms(2020, 3, 31), 120.0),
        ]

        returns = period_returns(points, Granularity.MONTHLY)

        assert len(returns) == 1
        assert returns[0].period_key == month_key(2020, 3)
        assert returns[0].value == pytest.approx(0.20)

    def test_list_and_map_agree(self):
        """Both views come from the same close table."""
        points = [PricePoint(ms(2020, m, 15), 100.0 + m * m) for m in range(1, 13)]

        returns, mapping = return_series(points, Granularity.MONTHLY)

        assert len(returns) == 11
        assert {r.period_key: r.value for r in returns} == mapping
        assert all(math.isfinite(v) for v in mapping.values())


class TestPeriodKeyLabel:
    """Test period key labels."""

    def test_monthly_label(self):
        assert period_key_label(month_key(2020, 12), Granularity.MONTHLY) == "2020-12"
        assert period_key_label(month_key(2021, 1), Granularity.MONTHLY) == "2021-01"

    def test_annual_label(self):
        assert period_key_label(2021, Granularity.ANNUAL) == "2021"
