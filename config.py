"""
Configuration management with validation.
"""

import os
import logging
from pathlib import Path
from dotenv import load_dotenv
from constants import AnalysisParameters, FetchParameters, Defaults
from utils import validate_ticker_symbol

logger = logging.getLogger(__name__)

# Load environment variables from .env file if it exists
env_path = Path(".env")
if env_path.exists():
    load_dotenv(dotenv_path=env_path, override=False)
    logger.debug(f"Loaded environment variables from {env_path.absolute()}")
else:
    # Try to find .env next to the sources (useful when running from subdirectories)
    parent_env = Path(__file__).parent / ".env"
    if parent_env.exists():
        load_dotenv(dotenv_path=parent_env, override=False)
        logger.debug(f"Loaded environment variables from {parent_env.absolute()}")


def _int_from_env(name: str, default: int) -> int:
    """Read an integer environment variable, falling back to the default."""
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        logger.warning(f"{name} is not an integer, using default {default}")
        return default


class Config:
    """Application configuration with validation."""

    def __init__(
        self,
        benchmark_ticker: str = None,
        cache_dir: str = None,
        holdings_path: str = None,
        request_timeout: int = None,
        histogram_bins: int = None,
        min_long_range_points: int = None,
    ):
        """Initialize configuration, loading from environment variables if not specified."""
        self.benchmark_ticker = (
            benchmark_ticker
            if benchmark_ticker is not None
            else os.getenv("BENCHMARK_TICKER", Defaults.BENCHMARK_TICKER)
        )
        self.cache_dir = (
            cache_dir if cache_dir is not None else os.getenv("CACHE_DIR", Defaults.CACHE_DIR)
        )
        self.holdings_path = (
            holdings_path
            if holdings_path is not None
            else os.getenv("HOLDINGS_PATH", Defaults.HOLDINGS_PATH)
        )

        # Numeric values from environment with proper type conversion
        self.request_timeout = (
            request_timeout
            if request_timeout is not None
            else _int_from_env("REQUEST_TIMEOUT", Defaults.REQUEST_TIMEOUT)
        )
        self.histogram_bins = (
            histogram_bins
            if histogram_bins is not None
            else _int_from_env("HISTOGRAM_BINS", AnalysisParameters.HISTOGRAM_BINS)
        )
        self.min_long_range_points = (
            min_long_range_points
            if min_long_range_points is not None
            else _int_from_env("MIN_LONG_RANGE_POINTS", FetchParameters.MIN_LONG_RANGE_POINTS)
        )

        self.__post_init__()

    def __repr__(self) -> str:
        return (
            f"Config(benchmark_ticker='{self.benchmark_ticker}', "
            f"cache_dir='{self.cache_dir}', holdings_path='{self.holdings_path}', "
            f"request_timeout={self.request_timeout}, ...)"
        )

    def __post_init__(self) -> None:
        """Validate configuration values."""
        # Benchmark must be a usable ticker; raises ValueError otherwise
        self.benchmark_ticker = validate_ticker_symbol(self.benchmark_ticker)

        if self.histogram_bins < 1:
            raise ValueError(f"histogram_bins must be at least 1, got {self.histogram_bins}")

        if self.min_long_range_points < 1:
            raise ValueError(
                f"min_long_range_points must be at least 1, got {self.min_long_range_points}"
            )

        if not (5 <= self.request_timeout <= 300):
            logger.warning(
                f"request_timeout {self.request_timeout} outside recommended range [5, 300]"
            )

        if not (4 <= self.histogram_bins <= 50):
            logger.warning(
                f"histogram_bins {self.histogram_bins} outside recommended range [4, 50]"
            )

        logger.debug(f"Configuration loaded - {self!r}")

    @classmethod
    def from_env(cls) -> "Config":
        """
        Loads the configuration from environment variables.

        Returns:
            Config: The configuration object.
        """
        return cls()
