"""
Price data fetching with cache fallback.
"""

import math
import time
import logging
import pandas as pd
import yfinance as yf
from typing import List, Optional, Sequence, Tuple
from cache import SeriesCache
from constants import FetchParameters, LimitsAndConstraints, TimeConstants
from models import PricePoint
from returns import clean_points
from utils import validate_ticker_symbol

logger = logging.getLogger(__name__)


class PriceFetchError(Exception):
    """Raised when a price series or quote cannot be fetched."""

    def __init__(self, ticker: str, range_: Optional[str], message: str) -> None:
        self.ticker = ticker
        self.range = range_
        super().__init__(message)


class YahooPriceProvider:
    """Daily close series and latest quotes from Yahoo Finance."""

    def __init__(self, timeout: int = 30) -> None:
        """
        Args:
            timeout (int): Request timeout in seconds passed to yfinance.
        """
        self.timeout = timeout

    @staticmethod
    def _normalize_ticker(ticker: str, range_: Optional[str] = None) -> str:
        try:
            return validate_ticker_symbol(ticker)
        except ValueError as e:
            raise PriceFetchError(str(ticker), range_, f"Invalid symbol: {e}") from e

    def fetch_historical_series(self, ticker: str, range_: str) -> List[PricePoint]:
        """
        Fetches the daily close series of a ticker over a history range.

        Args:
            ticker (str): The ticker symbol.
            range_ (str): History range, e.g. "1y" or "10y".

        Returns:
            List[PricePoint]: Valid daily closes in chronological order.

        Raises:
            PriceFetchError: On transport failure, unknown ticker, or no usable close column.
            ValueError: If the range is not a supported history range.
        """
        if range_ not in LimitsAndConstraints.VALID_RANGES:
            raise ValueError(
                f"Invalid range '{range_}'. Must be one of: {', '.join(LimitsAndConstraints.VALID_RANGES)}"
            )
        ticker = self._normalize_ticker(ticker, range_)

        logger.debug(f"Fetching price history for {ticker} (range: {range_})")
        try:
            history = yf.Ticker(ticker).history(
                period=range_, interval="1d", auto_adjust=False, timeout=self.timeout
            )
        except Exception as e:
            # yfinance surfaces transport and payload problems with many exception types
            raise PriceFetchError(ticker, range_, f"Fetch failed for {ticker}: {e}") from e

        if history is None or history.empty:
            raise PriceFetchError(ticker, range_, f"No data for {ticker}")

        column = next((c for c in ("Close", "Adj Close") if c in history.columns), None)
        if column is None:
            raise PriceFetchError(ticker, range_, f"No price data for {ticker}")

        points = clean_points(
            PricePoint(
                timestamp=int(
                    pd.Timestamp(index).timestamp() * TimeConstants.MILLISECONDS_PER_SECOND
                ),
                close=float(close) if pd.notna(close) else None,
            )
            for index, close in zip(history.index, history[column])
        )
        if not points:
            raise PriceFetchError(ticker, range_, f"No price data for {ticker}")

        logger.debug(f"Fetched {len(points)} points for {ticker} ({range_})")
        return points

    def fetch_latest_close(self, ticker: str) -> float:
        """
        Fetches the previous close of a ticker, falling back to the market price.

        Args:
            ticker (str): The ticker symbol.

        Returns:
            float: The latest close.

        Raises:
            PriceFetchError: On transport failure, unknown ticker, or no usable price.
        """
        ticker = self._normalize_ticker(ticker)

        try:
            info = yf.Ticker(ticker).info
        except Exception as e:
            raise PriceFetchError(ticker, None, f"Fetch failed for {ticker}: {e}") from e

        if not info:
            raise PriceFetchError(ticker, None, f"Invalid symbol: {ticker}")

        price = info.get("previousClose")
        if price is None:
            price = info.get("regularMarketPrice")
        if price is None:
            raise PriceFetchError(ticker, None, f"No price data for {ticker}")

        try:
            price = float(price)
        except (TypeError, ValueError) as e:
            raise PriceFetchError(ticker, None, f"No price data for {ticker}") from e
        if not math.isfinite(price) or price <= 0:
            raise PriceFetchError(ticker, None, f"No price data for {ticker}")

        return price


class CachedDataFetcher:
    """Live-first fetcher that falls back to the series cache on failure."""

    def __init__(
        self,
        cache: SeriesCache,
        provider: Optional[YahooPriceProvider] = None,
        timeout: int = 30,
        min_long_range_points: int = FetchParameters.MIN_LONG_RANGE_POINTS,
        long_range_candidates: Sequence[str] = FetchParameters.LONG_RANGE_CANDIDATES,
    ) -> None:
        """
        Initializes the CachedDataFetcher.

        Args:
            cache (SeriesCache): Cache used to store and recover series.
            provider (Optional[YahooPriceProvider]): Price provider; Yahoo Finance by default.
            timeout (int): Request timeout in seconds for the default provider.
            min_long_range_points (int): Points a long-range series needs to be accepted.
            long_range_candidates (Sequence[str]): Long ranges to try, longest first.
        """
        self.cache = cache
        self.provider = provider if provider is not None else YahooPriceProvider(timeout)
        self.min_long_range_points = min_long_range_points
        self.long_range_candidates = tuple(long_range_candidates)

    def fetch_series(self, ticker: str, range_: str) -> List[PricePoint]:
        """
        Fetches a series live, caching it; serves the cached copy if the fetch fails.

        Args:
            ticker (str): The ticker symbol.
            range_ (str): History range.

        Returns:
            List[PricePoint]: The live series, or the cached one after a failure.

        Raises:
            PriceFetchError: If the fetch fails and nothing is cached for (ticker, range).
        """
        try:
            points = self.provider.fetch_historical_series(ticker, range_)
        except PriceFetchError as e:
            cached = self.cache.get(ticker, range_)
            if cached is None or not cached.points:
                raise
            age_hours = (time.time() * 1000 - cached.saved_at) / 3_600_000
            logger.warning(
                f"Live fetch failed for {ticker} ({range_}): {e}; "
                f"using cached series ({age_hours:.1f}h old)"
            )
            return list(cached.points)

        self.cache.put(ticker, range_, points)
        return points

    def fetch_long_range_series(self, ticker: str) -> Tuple[str, List[PricePoint]]:
        """
        Tries the long-range candidates in order until one has enough points.

        When no candidate reaches the threshold, the largest series obtained is used.

        Args:
            ticker (str): The ticker symbol.

        Returns:
            Tuple[str, List[PricePoint]]: The range used and its series.

        Raises:
            PriceFetchError: If every candidate failed.
        """
        best: Optional[Tuple[str, List[PricePoint]]] = None
        last_error: Optional[PriceFetchError] = None

        for range_ in self.long_range_candidates:
            try:
                points = self.fetch_series(ticker, range_)
            except PriceFetchError as e:
                logger.info(f"{ticker}: {range_} history unavailable ({e}), trying shorter range")
                last_error = e
                continue

            if len(points) >= self.min_long_range_points:
                return range_, points

            logger.info(
                f"{ticker}: {range_} history has {len(points)} points "
                f"(< {self.min_long_range_points}), trying shorter range"
            )
            if best is None or len(points) > len(best[1]):
                best = (range_, points)

        if best is not None:
            return best
        if last_error is not None:
            raise last_error
        raise PriceFetchError(ticker, None, f"No long-range candidates configured for {ticker}")

    def fetch_latest_close(self, ticker: str) -> float:
        """Latest close from the provider; quotes are never cached."""
        return self.provider.fetch_latest_close(ticker)
