"""
Period returns from daily close series.

Daily closes are reduced to one close per period (the last one observed in
the period), then turned into period-over-period simple returns. The list and
mapping views are built from the same per-period close table, so they always
agree.
"""

import logging
import pandas as pd
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple
from constants import TimeConstants
from models import PeriodReturn, PricePoint

logger = logging.getLogger(__name__)


class Granularity(str, Enum):
    """Period used to group daily closes."""

    MONTHLY = "monthly"
    ANNUAL = "annual"


def clean_points(points: Iterable[Optional[PricePoint]]) -> List[PricePoint]:
    """
    Drops points whose close is missing, non-finite or non-positive.

    Args:
        points: Raw price points in any order.

    Returns:
        List of usable points, input order preserved.
    """
    cleaned = [p for p in points if p is not None and p.is_valid()]
    return [PricePoint(timestamp=int(p.timestamp), close=float(p.close)) for p in cleaned]


def period_closes(
    points: Iterable[Optional[PricePoint]], granularity: Granularity
) -> Dict[int, float]:
    """
    Reduces a daily series to the last observed close of every period.

    Period keys come from the UTC calendar date: the year for annual
    granularity, ``year * 12 + month_index`` (January = 0) for monthly.

    Args:
        points: Price points, sorted or not.
        granularity: Monthly or annual grouping.

    Returns:
        Mapping of period key to close, keys in ascending order.
    """
    cleaned = clean_points(points)
    if not cleaned:
        return {}

    # Stable sort so equal timestamps keep their input order
    frame = pd.DataFrame(
        {
            "timestamp": [p.timestamp for p in cleaned],
            "close": [p.close for p in cleaned],
        }
    ).sort_values("timestamp", kind="stable")

    dates = pd.to_datetime(frame["timestamp"], unit="ms", utc=True)
    if granularity == Granularity.ANNUAL:
        keys = dates.dt.year
    else:
        keys = dates.dt.year * TimeConstants.MONTHS_PER_YEAR + (dates.dt.month - 1)

    last_closes = frame["close"].groupby(keys).last().sort_index()
    return {int(key): float(close) for key, close in last_closes.items()}


def _returns_from_closes(closes: Dict[int, float]) -> List[PeriodReturn]:
    """Consecutive-key simple returns; skips periods without a positive prior close."""
    keys = sorted(closes)
    returns = []
    for previous_key, key in zip(keys, keys[1:]):
        previous_close = closes.get(previous_key)
        current_close = closes.get(key)
        if previous_close is None or current_close is None or previous_close <= 0:
            continue
        returns.append(
            PeriodReturn(period_key=key, value=(current_close - previous_close) / previous_close)
        )
    return returns


def return_series(
    points: Iterable[Optional[PricePoint]], granularity: Granularity
) -> Tuple[List[PeriodReturn], Dict[int, float]]:
    """
    Computes both return views from a single close table.

    Args:
        points: Price points, sorted or not.
        granularity: Monthly or annual grouping.

    Returns:
        Tuple of (chronological list of PeriodReturn, period key -> return).
    """
    returns = _returns_from_closes(period_closes(points, granularity))
    return returns, {r.period_key: r.value for r in returns}


def period_returns(
    points: Iterable[Optional[PricePoint]], granularity: Granularity
) -> List[PeriodReturn]:
    """Chronological period returns; empty when fewer than two periods exist."""
    return return_series(points, granularity)[0]


def period_return_map(
    points: Iterable[Optional[PricePoint]], granularity: Granularity
) -> Dict[int, float]:
    """Period key -> simple return, for alignment across assets."""
    return return_series(points, granularity)[1]


def period_key_label(period_key: int, granularity: Granularity) -> str:
    """
    Human readable label for a period key.

    Examples:
        >>> period_key_label(2020 * 12 + 11, Granularity.MONTHLY)
        '2020-12'
        >>> period_key_label(2021, Granularity.ANNUAL)
        '2021'
    """
    if granularity == Granularity.ANNUAL:
        return str(period_key)
    year, month_index = divmod(period_key, TimeConstants.MONTHS_PER_YEAR)
    return f"{year}-{month_index + 1:02d}"
