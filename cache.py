"""
Price series cache keyed by (ticker, range).

Entries carry the time they were saved. Nothing here expires an entry: a stale
series is still a valid fallback when the live fetch fails.
"""

import time
import hashlib
import logging
import tempfile
import pandas as pd
from pathlib import Path
from typing import Optional, Sequence
from constants import TimeConstants
from models import CachedSeries, PricePoint

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * TimeConstants.MILLISECONDS_PER_SECOND)


class SeriesCache:
    """Parquet-backed cache of daily close series."""

    def __init__(self, cache_dir: str = "./.cache") -> None:
        """
        Initializes the SeriesCache with a cache directory.

        Args:
            cache_dir (str): The directory to store the cache files in.

        Raises:
            ValueError: If the directory is outside the working, home or temp directory.
        """
        # Resolve and validate cache directory path
        self.cache_dir = Path(cache_dir).resolve()

        cwd = Path.cwd().resolve()
        home_dir = Path.home().resolve()
        temp_dir = Path(tempfile.gettempdir()).resolve()

        if not any(
            self._is_safe_subpath(self.cache_dir, parent)
            for parent in (cwd, home_dir, temp_dir)
        ):
            raise ValueError(
                f"Cache directory must be within current working directory, "
                f"home directory, or temp directory. Got: {cache_dir}"
            )

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Series cache initialized: {self.cache_dir}")

    @staticmethod
    def _is_safe_subpath(path: Path, parent: Path) -> bool:
        """Check if path is safely within parent directory."""
        try:
            path.relative_to(parent)
            return True
        except ValueError:
            return False

    def _get_cache_key(self, ticker: str, range_: str) -> str:
        r"""
        Generate a cache key that cannot contain path separators.

        MD5 output is only [0-9a-f], so no directory traversal characters
        (/, \, .., etc.) can reach the filename.
        """
        key_str = f"{ticker}_{range_}"
        return hashlib.md5(key_str.encode()).hexdigest()

    def _validate_cache_key(self, cache_key: str) -> None:
        """
        Validate cache key before using it in path construction.

        Raises:
            ValueError: If cache key is empty, the wrong length, or not hexadecimal
        """
        if not cache_key:
            raise ValueError("Cache key cannot be empty")

        if len(cache_key) != 32:
            raise ValueError(
                f"Invalid cache key length: {len(cache_key)} (expected 32)"
            )

        if not all(c in "0123456789abcdef" for c in cache_key):
            raise ValueError(
                f"Cache key contains invalid characters. "
                f"Only hexadecimal [0-9a-f] allowed: {cache_key[:10]}..."
            )

    def _get_cache_path(self, cache_key: str) -> Path:
        """
        Get cache file path, verifying it stays inside the cache directory.

        Raises:
            ValueError: If path validation fails
        """
        self._validate_cache_key(cache_key)

        cache_path = (self.cache_dir / f"{cache_key}.parquet").resolve()

        try:
            cache_path.relative_to(self.cache_dir)
        except ValueError:
            raise ValueError(
                f"Security violation: Cache path outside cache directory. "
                f"Path: {cache_path}, Cache dir: {self.cache_dir}"
            )

        return cache_path

    def get(self, ticker: str, range_: str) -> Optional[CachedSeries]:
        """
        Retrieves a cached series regardless of its age.

        Args:
            ticker (str): The ticker symbol.
            range_ (str): The history range the series was fetched for.

        Returns:
            Optional[CachedSeries]: The cached series, or None if absent or unreadable.
        """
        cache_path = self._get_cache_path(self._get_cache_key(ticker, range_))
        if not cache_path.exists():
            logger.debug(f"Cache miss: {ticker} ({range_})")
            return None

        try:
            frame = pd.read_parquet(cache_path)
            points = tuple(
                PricePoint(timestamp=int(ts), close=float(close))
                for ts, close in zip(frame["timestamp"], frame["close"])
            )
            saved_at = int(frame["saved_at"].iloc[0]) if len(frame) else 0
        except (OSError, ValueError, KeyError, IndexError) as e:
            logger.debug(f"Cache read failed for {ticker} ({range_}): {e}")
            # Remove corrupted cache file
            try:
                cache_path.unlink()
            except OSError:
                pass
            return None

        age_hours = (_now_ms() - saved_at) / 3_600_000
        logger.debug(f"Cache hit: {ticker} ({range_}), age: {age_hours:.1f}h")
        return CachedSeries(points=points, saved_at=saved_at)

    def put(
        self,
        ticker: str,
        range_: str,
        points: Sequence[PricePoint],
        saved_at: Optional[int] = None,
    ) -> None:
        """
        Stores a series in the cache. Failures are logged and swallowed.

        Args:
            ticker (str): The ticker symbol.
            range_ (str): The history range the series was fetched for.
            points (Sequence[PricePoint]): The series to store.
            saved_at (Optional[int]): Save timestamp in ms; defaults to now.
        """
        saved_at = _now_ms() if saved_at is None else int(saved_at)
        frame = pd.DataFrame(
            {
                "timestamp": pd.Series([p.timestamp for p in points], dtype="int64"),
                "close": pd.Series([p.close for p in points], dtype="float64"),
                "saved_at": pd.Series([saved_at] * len(points), dtype="int64"),
            }
        )

        try:
            cache_path = self._get_cache_path(self._get_cache_key(ticker, range_))
            frame.to_parquet(cache_path, compression="snappy", index=False)
            logger.debug(f"Cached {ticker} ({range_}): {len(frame)} points")
        except (OSError, ValueError, TypeError) as e:
            logger.debug(f"Cache write failed for {ticker} ({range_}): {e}")

    def clear(self) -> int:
        """
        Removes every cached series.

        Returns:
            int: The number of removed entries.
        """
        cleared = 0
        for cache_file in self.cache_dir.glob("*.parquet"):
            try:
                cache_file.unlink()
                cleared += 1
            except OSError as e:
                logger.debug(f"Failed to clear cache file {cache_file}: {e}")

        if cleared > 0:
            logger.debug(f"Cleared {cleared} cache entries")
        return cleared
