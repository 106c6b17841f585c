"""
Main orchestrator coordinating all components.

A refresh walks the distinct symbols of the portfolio one at a time, fetches
their short and long price histories, derives returns and distributions, and
hands the collected maps to the risk and projection stages. The result is a
frozen AnalyticsSnapshot; nothing is kept between refreshes except the
per-ticker status tracker.
"""

import time
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence
from alignment import align_return_maps
from analyzers import PortfolioRiskAnalyzer
from cache import SeriesCache
from config import Config
from constants import FetchParameters
from distribution import histogram, percentile_set
from fetcher import CachedDataFetcher, PriceFetchError
from holdings import summarize
from models import AnalyticsSnapshot, Histogram, Holding, PercentileSet, PricePoint
from projections import ScenarioProjector
from returns import Granularity, period_return_map, period_returns
from status import LoadState, TickerStatusTracker

logger = logging.getLogger(__name__)


@dataclass
class TickerReturns:
    """Returns derived for one ticker during a refresh."""

    ticker: str
    monthly: List[float] = field(default_factory=list)  # from the short range
    annual: List[float] = field(default_factory=list)  # from the long range
    monthly_map: Dict[int, float] = field(default_factory=dict)  # from the long range
    long_range: Optional[str] = None

    @property
    def has_data(self) -> bool:
        return bool(self.monthly or self.annual or self.monthly_map)


class PortfolioAnalyticsOrchestrator:
    """Runs the analytics pipeline for a set of holdings."""

    def __init__(
        self,
        config: Config,
        fetcher: Optional[CachedDataFetcher] = None,
        tracker: Optional[TickerStatusTracker] = None,
    ) -> None:
        """
        Initializes the PortfolioAnalyticsOrchestrator with a configuration object.

        Args:
            config (Config): The configuration object.
            fetcher (Optional[CachedDataFetcher]): Price fetcher; a cached Yahoo
                fetcher is built from the configuration when omitted.
            tracker (Optional[TickerStatusTracker]): Status tracker renderers subscribe to.
        """
        self.config = config
        if fetcher is None:
            fetcher = CachedDataFetcher(
                SeriesCache(cache_dir=config.cache_dir),
                timeout=config.request_timeout,
                min_long_range_points=config.min_long_range_points,
            )
        self.fetcher = fetcher
        self.tracker = tracker if tracker is not None else TickerStatusTracker()
        self.risk_analyzer = PortfolioRiskAnalyzer(benchmark_ticker=config.benchmark_ticker)
        self.projector = ScenarioProjector()

    def _fetch_or_none(self, ticker: str, range_: str) -> Optional[List[PricePoint]]:
        try:
            return self.fetcher.fetch_series(ticker, range_)
        except PriceFetchError as e:
            logger.warning(f"{ticker}: {range_} history unavailable: {e}")
            return None

    def _fetch_long_or_none(self, ticker: str):
        try:
            return self.fetcher.fetch_long_range_series(ticker)
        except PriceFetchError as e:
            logger.warning(f"{ticker}: no long-range history: {e}")
            return None, None

    @staticmethod
    def _describe_error(ticker: str, error: Exception) -> str:
        """Logs an unexpected per-ticker error and returns the status detail for it."""
        match error:
            case OSError():
                # Includes ConnectionError and TimeoutError
                logger.warning(f"NETWORK ERROR (retryable) - {ticker}: {error}")
                return f"Network error: {error}"

            case KeyError() | ValueError():
                logger.error(f"DATA ERROR - {ticker}: {error}")
                return f"Data error: {error}"

            case _:
                logger.exception(
                    f"UNEXPECTED ERROR - {ticker}: {type(error).__name__}: {error}"
                )
                return f"Unexpected error: {type(error).__name__}"

    def _finish(self, result: TickerReturns) -> None:
        """Moves a loading ticker with fetched history to its terminal state."""
        if not result.has_data:
            self.tracker.no_data(result.ticker, "Not enough history for returns")
        else:
            self.tracker.succeed(
                result.ticker, f"{result.long_range} history" if result.long_range else None
            )

    def _derive_ticker_returns(self, ticker: str) -> Optional[TickerReturns]:
        """Short and long fetches plus derived returns; None when both fetches fail."""
        short_points = self._fetch_or_none(ticker, FetchParameters.SHORT_RANGE)
        long_range, long_points = self._fetch_long_or_none(ticker)

        if short_points is None and long_points is None:
            return None

        result = TickerReturns(ticker=ticker)
        if short_points is not None:
            result.monthly = [
                r.value for r in period_returns(short_points, Granularity.MONTHLY)
            ]

        if long_points is not None:
            result.annual = [r.value for r in period_returns(long_points, Granularity.ANNUAL)]
            result.monthly_map = period_return_map(long_points, Granularity.MONTHLY)
            result.long_range = long_range
        return result

    def analyze_ticker(self, ticker: str) -> TickerReturns:
        """
        Fetches and derives the returns of one portfolio ticker.

        The short and long fetches are independent; the ticker only fails
        when both of them fail or when deriving its returns raises. Errors
        never propagate to the rest of the refresh.

        Args:
            ticker (str): A queued ticker symbol.

        Returns:
            TickerReturns: Derived returns, empty when nothing could be fetched.
        """
        self.tracker.start(ticker)
        try:
            result = self._derive_ticker_returns(ticker)
        except Exception as e:
            self.tracker.fail(ticker, self._describe_error(ticker, e))
            return TickerReturns(ticker=ticker)

        if result is None:
            self.tracker.fail(ticker, "Price history unavailable")
            return TickerReturns(ticker=ticker)

        self._finish(result)
        return result

    def analyze_benchmark(self, ticker: str) -> TickerReturns:
        """
        Fetches the long-range monthly returns of the benchmark (used for beta only).

        Args:
            ticker (str): The queued benchmark symbol.

        Returns:
            TickerReturns: Only monthly_map is filled in.
        """
        self.tracker.start(ticker)
        result = TickerReturns(ticker=ticker)
        try:
            long_range, long_points = self._fetch_long_or_none(ticker)
            if long_points is not None:
                result.monthly_map = period_return_map(long_points, Granularity.MONTHLY)
                result.long_range = long_range
        except Exception as e:
            self.tracker.fail(ticker, self._describe_error(ticker, e))
            return TickerReturns(ticker=ticker)

        if long_points is None:
            self.tracker.fail(ticker, "Benchmark history unavailable")
            return result

        self._finish(result)
        return result

    def refresh(self, holdings: Sequence[Holding]) -> AnalyticsSnapshot:
        """
        Runs one full analytics refresh.

        Tickers are processed sequentially. A ticker that cannot be fetched is
        marked failed and left out of every derived map; the refresh itself
        never fails because of it.

        Args:
            holdings (Sequence[Holding]): Current holdings.

        Returns:
            AnalyticsSnapshot: Immutable result for the renderer.
        """
        start_time = time.time()
        holdings = list(holdings)
        symbols = list(dict.fromkeys(h.symbol for h in holdings))
        benchmark = self.config.benchmark_ticker

        queued = symbols + ([benchmark] if benchmark not in symbols else [])
        self.tracker.queue(queued)
        logger.info(f"Refreshing analytics for {len(symbols)} tickers (benchmark: {benchmark})")

        results: Dict[str, TickerReturns] = {}
        for ticker in symbols:
            results[ticker] = self.analyze_ticker(ticker)

        if benchmark in results:
            benchmark_map = results[benchmark].monthly_map
        else:
            benchmark_map = self.analyze_benchmark(benchmark).monthly_map

        annual_percentiles: Dict[str, PercentileSet] = {}
        monthly_percentiles: Dict[str, PercentileSet] = {}
        histograms: Dict[str, Histogram] = {}
        return_maps: Dict[str, Dict[int, float]] = {}

        for ticker, result in results.items():
            if result.annual:
                annual_percentiles[ticker] = percentile_set(result.annual)
            if result.monthly:
                monthly_percentiles[ticker] = percentile_set(result.monthly)
                histograms[ticker] = histogram(result.monthly, self.config.histogram_bins)
            if result.monthly_map:
                return_maps[ticker] = result.monthly_map

        aligned = align_return_maps(return_maps)
        risk = self.risk_analyzer.calculate_risk_snapshot(
            holdings, return_maps, benchmark_map=benchmark_map or None, aligned=aligned
        )
        projections = self.projector.project_horizons(holdings, annual_percentiles)
        summary = summarize(holdings)

        statuses = {ticker: self.tracker.state(ticker).value for ticker in queued}
        failed = [t for t, s in statuses.items() if s == LoadState.FAILED.value]
        if failed:
            logger.warning(f"Failed tickers: {', '.join(failed)}")
        logger.info(
            f"Refresh complete in {time.time() - start_time:.2f}s: "
            f"{len(return_maps)}/{len(symbols)} tickers with aligned history, "
            f"{len(aligned.periods)} common months"
        )

        return AnalyticsSnapshot(
            generated_at=datetime.now(timezone.utc),
            benchmark_ticker=benchmark,
            statuses=statuses,
            annual_percentiles=annual_percentiles,
            monthly_percentiles=monthly_percentiles,
            histograms=histograms,
            aligned=aligned,
            risk=risk,
            projections=projections,
            current_value=summary.total_value,
            summary=summary,
        )
