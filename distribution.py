"""
Return distribution statistics: linear-interpolated percentiles and histograms.
"""

import math
import logging
import numpy as np
from typing import Iterable, Sequence
from constants import AnalysisParameters
from models import Histogram, HistogramBin, PercentileSet

logger = logging.getLogger(__name__)


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """
    Linear-interpolated percentile of an ascending sequence.

    Rank k = (n - 1) * p / 100; the result interpolates between the values at
    floor(k) and the next index (clamped to the last element). Matches numpy's
    default "linear" method.

    Args:
        sorted_values: Values sorted ascending. Callers are responsible for sorting.
        p: Percentile in [0, 100].

    Returns:
        The interpolated value, or 0.0 for an empty sequence.
    """
    n = len(sorted_values)
    if n == 0:
        return 0.0

    k = (n - 1) * p / 100
    i = math.floor(k)
    f = k - i
    lower = sorted_values[i]
    upper = sorted_values[min(i + 1, n - 1)]
    return float(lower + f * (upper - lower))


def percentile_set(returns: Iterable[float]) -> PercentileSet:
    """
    p10/p25/p50/p75/p90 of the finite values in a return set.

    Args:
        returns: Period returns in any order.

    Returns:
        PercentileSet (all zeros when no finite value is present).
    """
    finite = sorted(float(r) for r in returns if r is not None and math.isfinite(r))
    if not finite:
        return PercentileSet()

    return PercentileSet(
        **{f"p{rank}": percentile(finite, rank) for rank in AnalysisParameters.PERCENTILE_RANKS}
    )


def histogram(
    values: Iterable[float], bin_count: int = AnalysisParameters.HISTOGRAM_BINS
) -> Histogram:
    """
    Equal-width histogram over a padded value range.

    The observed [min, max] range is widened on both ends by
    max(HISTOGRAM_MIN_PADDING, HISTOGRAM_PADDING_RATIO * range) so no value
    sits on an edge. Values are clamped into the padded range before binning;
    a value at the upper edge falls in the last bin.

    Args:
        values: Values to bin; non-finite values are ignored.
        bin_count: Number of bins (at least 1).

    Returns:
        Histogram with [start, end) bins, counts and the largest count.
    """
    if bin_count < 1:
        raise ValueError(f"bin_count must be at least 1, got {bin_count}")

    data = np.array([v for v in values if v is not None and math.isfinite(v)], dtype=float)
    if data.size == 0:
        return Histogram()

    low, high = float(data.min()), float(data.max())
    padding = max(
        AnalysisParameters.HISTOGRAM_MIN_PADDING,
        (high - low) * AnalysisParameters.HISTOGRAM_PADDING_RATIO,
    )
    low -= padding
    high += padding
    width = (high - low) / bin_count

    clamped = np.clip(data, low, high)
    indices = np.floor((clamped - low) / width).astype(int)
    indices = np.clip(indices, 0, bin_count - 1)
    counts = np.bincount(indices, minlength=bin_count)

    bins = tuple(
        HistogramBin(start=low + i * width, end=low + (i + 1) * width, count=int(counts[i]))
        for i in range(bin_count)
    )
    return Histogram(bins=bins, max_count=int(counts.max()), bin_width=width)
