"""
Configuration constants for portfolio analytics.

This module centralizes all magic numbers and thresholds used throughout the application,
making them easy to find, understand, and modify.

All constants are organized into classes. Use `ClassName.CONSTANT_NAME` to access values.
"""

# ============================================================================
# THRESHOLD CLASSES (Organized Configuration)
# ============================================================================


class AnalysisParameters:
    """Return, distribution and projection parameters."""

    # Percentile ranks reported for every return distribution
    PERCENTILE_RANKS = (10, 25, 50, 75, 90)

    # Histogram layout
    HISTOGRAM_BINS = 12  # Default number of bins for return histograms
    HISTOGRAM_MIN_PADDING = 0.02  # Absolute padding added on both ends of the range
    HISTOGRAM_PADDING_RATIO = 0.10  # Relative padding (fraction of the value range)

    # Scenario projection horizons, in years
    PROJECTION_HORIZONS = (0.25, 0.5, 0.75, 1.0)

    # Scenario tag -> percentile attribute of PercentileSet
    SCENARIO_PERCENTILES = {
        "optimistic": "p90",
        "average": "p50",
        "pessimistic": "p10",
    }


class FetchParameters:
    """Price history ranges and sample requirements."""

    # Short range used for the monthly histogram
    SHORT_RANGE = "1y"

    # Long-range degradation candidates, tried in order
    LONG_RANGE_CANDIDATES = ("10y", "5y", "2y")

    # Minimum daily points for a long-range series to be accepted
    MIN_LONG_RANGE_POINTS = 60


class TimeConstants:
    """Time constants."""

    MONTHS_PER_YEAR = 12
    MILLISECONDS_PER_SECOND = 1000


class LimitsAndConstraints:
    """System limits and constraints."""

    # Ticker limits
    MAX_TICKER_LENGTH = 10

    # Variances below this are treated as exactly zero (floating point noise)
    NEAR_ZERO_VARIANCE_THRESHOLD = 1e-14

    # Contributions must add up to one within this tolerance
    CONTRIBUTION_SUM_TOLERANCE = 1e-9

    # Valid history ranges accepted by the price provider
    VALID_RANGES = ["1mo", "3mo", "6mo", "1y", "2y", "5y", "10y", "ytd", "max"]


class Defaults:
    """Default configuration values."""

    # Benchmark ticker for beta (can be overridden by config)
    BENCHMARK_TICKER = "SPY"  # S&P 500 ETF

    # Local storage (can be overridden by config)
    CACHE_DIR = "./.cache"
    HOLDINGS_PATH = "./portfolio-holdings.json"

    # Request timeout passed to the provider (can be overridden by config)
    REQUEST_TIMEOUT = 30  # seconds


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================


def validate_constants() -> None:
    """
    Validates that all constants are within reasonable ranges.

    Raises:
        ValueError: If any constant is invalid.
    """
    for rank in AnalysisParameters.PERCENTILE_RANKS:
        if not (0 <= rank <= 100):
            raise ValueError(f"Percentile rank must be between 0 and 100, got {rank}")

    if AnalysisParameters.HISTOGRAM_BINS <= 0:
        raise ValueError(
            f"HISTOGRAM_BINS must be positive, got {AnalysisParameters.HISTOGRAM_BINS}"
        )

    if any(h <= 0 for h in AnalysisParameters.PROJECTION_HORIZONS):
        raise ValueError("PROJECTION_HORIZONS must all be positive")

    for scenario_range in FetchParameters.LONG_RANGE_CANDIDATES + (FetchParameters.SHORT_RANGE,):
        if scenario_range not in LimitsAndConstraints.VALID_RANGES:
            raise ValueError(f"Unknown history range '{scenario_range}'")

    if FetchParameters.MIN_LONG_RANGE_POINTS <= 0:
        raise ValueError(
            f"MIN_LONG_RANGE_POINTS must be positive, got {FetchParameters.MIN_LONG_RANGE_POINTS}"
        )


# Validate on import
validate_constants()

