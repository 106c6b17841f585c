"""
Portfolio risk analytics: variance, volatility, risk contributions and beta.
"""

import math
import logging
import numpy as np
from collections import OrderedDict
from typing import Dict, Mapping, Optional, Sequence
from alignment import align_return_maps
from constants import Defaults, LimitsAndConstraints
from models import AlignedMatrix, Holding, RiskContribution, RiskSnapshot

logger = logging.getLogger(__name__)

# Alignment key for the benchmark series; "<" is never valid in a ticker
BENCHMARK_KEY = "<benchmark>"


def variance(values: Sequence[float]) -> float:
    """
    Population variance (mean squared deviation, divides by n).

    Args:
        values: Return series.

    Returns:
        Variance, 0.0 for an empty or constant series.
    """
    x = np.asarray(values, dtype=float)
    if x.size == 0 or np.all(x == x[0]):
        return 0.0
    deviations = x - x.mean()
    return float(np.mean(deviations * deviations))


def covariance(x_values: Sequence[float], y_values: Sequence[float]) -> float:
    """
    Population covariance between two equal-length series.

    Args:
        x_values: First return series.
        y_values: Second return series, same length as the first.

    Returns:
        Covariance, 0.0 when either series is empty or lengths differ.
    """
    x = np.asarray(x_values, dtype=float)
    y = np.asarray(y_values, dtype=float)
    if x.size == 0 or y.size == 0 or x.size != y.size:
        return 0.0
    return float(np.mean((x - x.mean()) * (y - y.mean())))


class PortfolioRiskAnalyzer:
    """Portfolio-level variance decomposition and market beta."""

    def __init__(self, benchmark_ticker: str = Defaults.BENCHMARK_TICKER) -> None:
        """
        Initializes the PortfolioRiskAnalyzer.

        Args:
            benchmark_ticker (str): Ticker of the benchmark used for beta (informational).
        """
        self.benchmark_ticker = benchmark_ticker

    def calculate_weights(self, holdings: Sequence[Holding]) -> Dict[str, float]:
        """
        Market-value weight of every symbol in the portfolio.

        Positions in the same symbol are added together. All weights are 0
        when the portfolio has no value.

        Args:
            holdings: Current holdings.

        Returns:
            Symbol -> weight, in first-seen order.
        """
        values: "OrderedDict[str, float]" = OrderedDict()
        for holding in holdings:
            values[holding.symbol] = values.get(holding.symbol, 0.0) + holding.value

        total = sum(values.values())
        if total <= 0:
            return {symbol: 0.0 for symbol in values}
        return {symbol: value / total for symbol, value in values.items()}

    def portfolio_returns(
        self, aligned: AlignedMatrix, weights: Mapping[str, float]
    ) -> np.ndarray:
        """
        Weighted sum of asset returns for every period on the aligned axis.

        Assets without a vector on the axis contribute nothing.

        Args:
            aligned: Aligned per-asset returns.
            weights: Symbol -> weight.

        Returns:
            Array with one portfolio return per common period.
        """
        symbols = [
            symbol
            for symbol, vector in aligned.returns.items()
            if len(vector) == len(aligned.periods)
        ]
        if not symbols or not aligned.periods:
            return np.zeros(len(aligned.periods))

        returns_matrix = np.array([aligned.returns[s] for s in symbols], dtype=float).T
        weights_array = np.array([weights.get(s, 0.0) for s in symbols])
        return returns_matrix @ weights_array

    def calculate_risk_snapshot(
        self,
        holdings: Sequence[Holding],
        return_maps: Mapping[str, Mapping[int, float]],
        benchmark_map: Optional[Mapping[int, float]] = None,
        aligned: Optional[AlignedMatrix] = None,
    ) -> RiskSnapshot:
        """
        Computes variance, volatility, risk contributions and beta.

        Variance and contributions use the axis shared by the portfolio's
        assets. Beta is aligned separately with the benchmark included, so it
        may use a shorter axis.

        Args:
            holdings: Current holdings (for weights).
            return_maps: Symbol -> (period key -> monthly return). Only symbols
                with data should be present.
            benchmark_map: Benchmark period key -> return, if available.
            aligned: Pre-computed alignment of return_maps, if the caller has one.

        Returns:
            RiskSnapshot; the not-ready snapshot when no common period exists.
        """
        if aligned is None:
            aligned = align_return_maps(return_maps)

        if not aligned.periods:
            logger.info("Risk snapshot not ready: no common periods across assets")
            return RiskSnapshot.not_ready()

        weights = self.calculate_weights(holdings)
        portfolio_series = self.portfolio_returns(aligned, weights)

        portfolio_variance = variance(portfolio_series)
        if portfolio_variance < LimitsAndConstraints.NEAR_ZERO_VARIANCE_THRESHOLD:
            portfolio_variance = 0.0

        contributions = self._calculate_contributions(
            aligned, weights, portfolio_series, portfolio_variance
        )
        beta = self._calculate_beta(weights, return_maps, benchmark_map)

        logger.info(
            f"Risk: periods={len(aligned.periods)}, "
            f"vol={math.sqrt(portfolio_variance)*100:.2f}%, "
            f"beta={'n/a' if beta is None else f'{beta:.2f}'}"
        )

        return RiskSnapshot(
            beta=beta,
            variance=portfolio_variance,
            volatility=math.sqrt(portfolio_variance),
            contributions=contributions,
            periods=len(aligned.periods),
            ready=True,
        )

    def _calculate_contributions(
        self,
        aligned: AlignedMatrix,
        weights: Mapping[str, float],
        portfolio_series: np.ndarray,
        portfolio_variance: float,
    ) -> tuple:
        """Euler decomposition of variance: w_i * cov(r_i, r_p) / var(r_p), sorted descending."""
        contributions = []
        for symbol, vector in aligned.returns.items():
            weight = weights.get(symbol, 0.0)
            if portfolio_variance > 0:
                share = weight * covariance(vector, portfolio_series) / portfolio_variance
            else:
                share = 0.0
            contributions.append(
                RiskContribution(symbol=symbol, weight=weight, contribution=share)
            )

        if portfolio_variance > 0:
            total = sum(c.contribution for c in contributions)
            if abs(total - 1.0) > LimitsAndConstraints.CONTRIBUTION_SUM_TOLERANCE:
                logger.warning(f"Risk contributions sum to {total:.12f}, expected 1")

        contributions.sort(key=lambda c: c.contribution, reverse=True)
        return tuple(contributions)

    def _calculate_beta(
        self,
        weights: Mapping[str, float],
        return_maps: Mapping[str, Mapping[int, float]],
        benchmark_map: Optional[Mapping[int, float]],
    ) -> Optional[float]:
        """Portfolio beta against the benchmark on their own common axis."""
        if not benchmark_map:
            logger.debug("No benchmark returns available, beta undefined")
            return None

        with_benchmark = dict(return_maps)
        with_benchmark[BENCHMARK_KEY] = benchmark_map
        aligned = align_return_maps(with_benchmark)

        benchmark_series = aligned.returns.get(BENCHMARK_KEY, ())
        if not aligned.periods or len(benchmark_series) != len(aligned.periods):
            logger.debug("Benchmark shares no periods with the portfolio, beta undefined")
            return None

        benchmark_variance = variance(benchmark_series)
        if benchmark_variance < LimitsAndConstraints.NEAR_ZERO_VARIANCE_THRESHOLD:
            logger.debug("Benchmark variance is zero, beta undefined")
            return None

        assets_only = AlignedMatrix(
            periods=aligned.periods,
            returns={k: v for k, v in aligned.returns.items() if k != BENCHMARK_KEY},
        )
        portfolio_series = self.portfolio_returns(assets_only, weights)
        return covariance(portfolio_series, benchmark_series) / benchmark_variance
