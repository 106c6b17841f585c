"""
Unit tests for portfolio risk analytics.
"""

import math
import pytest
from analyzers import BENCHMARK_KEY, PortfolioRiskAnalyzer, covariance, variance
from models import AlignedMatrix, Holding, RiskSnapshot


def make_holding(symbol, quantity, price):
    return Holding(symbol=symbol, quantity=quantity, purchase_price=price, current_price=price)


@pytest.fixture
def analyzer():
    return PortfolioRiskAnalyzer(benchmark_ticker="SPY")


class TestVarianceAndCovariance:
    """Test population statistics."""

    def test_constant_series_has_zero_variance(self):
        """variance([x, x, x]) is exactly zero."""
        assert variance([0.1, 0.1, 0.1]) == 0.0
        assert variance([1e9 + 0.1] * 5) == 0.0

    def test_empty_series(self):
        assert variance([]) == 0.0
        assert covariance([], []) == 0.0

    def test_population_variance(self):
        """Divides by n, not n - 1."""
        assert variance([1.0, 2.0, 3.0, 4.0]) == pytest.approx(1.25)

    def test_covariance_with_itself_is_variance(self):
        values = [0.03, -0.01, 0.02, 0.05]

        assert covariance(values, values) == pytest.approx(variance(values))

    def test_covariance_length_mismatch(self):
        """Mismatched series have zero covariance."""
        assert covariance([0.1, 0.2], [0.1, 0.2, 0.3]) == 0.0

    def test_negative_covariance(self):
        assert covariance([1.0, 2.0, 3.0], [3.0, 2.0, 1.0]) < 0


class TestWeights:
    """Test market-value weights."""

    def test_weights_by_value(self, analyzer):
        holdings = [make_holding("AAPL", 10, 30.0), make_holding("MSFT", 7, 10.0)]

        weights = analyzer.calculate_weights(holdings)

        assert weights["AAPL"] == pytest.approx(0.3 / 0.37)
        assert weights["MSFT"] == pytest.approx(0.07 / 0.37)
        assert sum(weights.values()) == pytest.approx(1.0)

    def test_same_symbol_positions_are_added(self, analyzer):
        holdings = [
            make_holding("AAPL", 1, 100.0),
            make_holding("AAPL", 1, 100.0),
            make_holding("MSFT", 2, 100.0),
        ]

        weights = analyzer.calculate_weights(holdings)

        assert weights == {"AAPL": 0.5, "MSFT": 0.5}

    def test_zero_value_portfolio(self, analyzer):
        """Without current prices every weight is 0."""
        holdings = [
            Holding(symbol="AAPL", quantity=10, purchase_price=100.0),
            Holding(symbol="MSFT", quantity=5, purchase_price=50.0),
        ]

        assert analyzer.calculate_weights(holdings) == {"AAPL": 0.0, "MSFT": 0.0}


class TestPortfolioReturns:
    """Test the weighted portfolio series on the aligned axis."""

    def test_weighted_sum_per_period(self, analyzer):
        aligned = AlignedMatrix(
            periods=(1, 2, 3), returns={"A": (0.1, 0.2, -0.1), "B": (0.0, -0.2, 0.3)}
        )

        series = analyzer.portfolio_returns(aligned, {"A": 0.75, "B": 0.25})

        assert series.tolist() == pytest.approx([0.075, 0.1, 0.0])

    def test_asset_off_axis_ignored(self, analyzer):
        aligned = AlignedMatrix(periods=(1, 2), returns={"A": (0.1, 0.2), "B": (0.5,)})

        series = analyzer.portfolio_returns(aligned, {"A": 0.5, "B": 0.5})

        assert series.tolist() == pytest.approx([0.05, 0.1])

    def test_empty_axis(self, analyzer):
        assert len(analyzer.portfolio_returns(AlignedMatrix(), {})) == 0


class TestRiskSnapshot:
    """Test variance decomposition."""

    def test_not_ready_without_common_periods(self, analyzer):
        """Disjoint histories give the not-ready snapshot."""
        holdings = [make_holding("AAPL", 1, 100.0), make_holding("MSFT", 1, 100.0)]
        return_maps = {"AAPL": {1: 0.1, 2: 0.2}, "MSFT": {3: 0.1, 4: 0.2}}

        snapshot = analyzer.calculate_risk_snapshot(holdings, return_maps)

        assert snapshot == RiskSnapshot.not_ready()
        assert snapshot.ready is False
        assert snapshot.beta is None
        assert snapshot.variance == 0.0
        assert snapshot.volatility == 0.0
        assert snapshot.contributions == ()

    def test_not_ready_without_assets(self, analyzer):
        assert analyzer.calculate_risk_snapshot([], {}).ready is False

    def test_single_asset_contribution_is_one(self, analyzer):
        """A one-asset portfolio carries all of its own risk."""
        holdings = [make_holding("AAPL", 10, 150.0)]
        return_maps = {"AAPL": {1: 0.10, 2: -0.05, 3: 0.02}}

        snapshot = analyzer.calculate_risk_snapshot(holdings, return_maps)

        assert snapshot.ready is True
        assert snapshot.periods == 3
        assert len(snapshot.contributions) == 1
        assert snapshot.contributions[0].symbol == "AAPL"
        assert snapshot.contributions[0].weight == 1.0
        assert snapshot.contributions[0].contribution == 1.0
        assert snapshot.variance == pytest.approx(variance([0.10, -0.05, 0.02]))
        assert snapshot.volatility == pytest.approx(math.sqrt(snapshot.variance))

    def test_contributions_sum_to_one(self, analyzer):
        holdings = [
            make_holding("AAPL", 10, 100.0),
            make_holding("MSFT", 5, 100.0),
            make_holding("GLD", 5, 100.0),
        ]
        return_maps = {
            "AAPL": {1: 0.05, 2: -0.02, 3: 0.04, 4: 0.01},
            "MSFT": {1: 0.03, 2: -0.04, 3: 0.02, 4: 0.00},
            "GLD": {1: -0.01, 2: 0.02, 3: 0.00, 4: 0.01},
        }

        snapshot = analyzer.calculate_risk_snapshot(holdings, return_maps)

        total = sum(c.contribution for c in snapshot.contributions)
        assert total == pytest.approx(1.0, abs=1e-9)

    def test_contributions_sorted_descending(self, analyzer):
        holdings = [make_holding("AAPL", 1, 100.0), make_holding("GLD", 1, 100.0)]
        return_maps = {
            "GLD": {1: 0.001, 2: -0.001, 3: 0.002},
            "AAPL": {1: 0.10, 2: -0.08, 3: 0.12},
        }

        snapshot = analyzer.calculate_risk_snapshot(holdings, return_maps)

        values = [c.contribution for c in snapshot.contributions]
        assert values == sorted(values, reverse=True)
        assert snapshot.contributions[0].symbol == "AAPL"

    def test_zero_variance_gives_zero_contributions(self, analyzer):
        """Constant returns mean no variance to decompose."""
        holdings = [make_holding("AAPL", 1, 100.0), make_holding("MSFT", 1, 100.0)]
        return_maps = {"AAPL": {1: 0.01, 2: 0.01}, "MSFT": {1: 0.02, 2: 0.02}}

        snapshot = analyzer.calculate_risk_snapshot(holdings, return_maps)

        assert snapshot.ready is True
        assert snapshot.variance == 0.0
        assert snapshot.volatility == 0.0
        assert all(c.contribution == 0.0 for c in snapshot.contributions)

    def test_variance_uses_intersection_only(self, analyzer):
        holdings = [make_holding("AAPL", 1, 100.0), make_holding("MSFT", 1, 100.0)]
        return_maps = {
            "AAPL": {1: 0.5, 2: 0.01, 3: 0.03},
            "MSFT": {2: 0.02, 3: 0.04, 4: -0.5},
        }

        snapshot = analyzer.calculate_risk_snapshot(holdings, return_maps)

        assert snapshot.periods == 2
        assert snapshot.variance == pytest.approx(variance([0.015, 0.035]))


class TestBeta:
    """Test market beta."""

    def test_beta_of_leveraged_series(self, analyzer):
        """An asset moving twice as much as the benchmark has beta 2."""
        benchmark = {1: 0.01, 2: -0.02, 3: 0.03, 4: 0.00}
        holdings = [make_holding("TQQQ", 1, 100.0)]
        return_maps = {"TQQQ": {k: 2 * v for k, v in benchmark.items()}}

        snapshot = analyzer.calculate_risk_snapshot(holdings, return_maps, benchmark)

        assert snapshot.beta == pytest.approx(2.0)

    def test_beta_none_without_benchmark(self, analyzer):
        holdings = [make_holding("AAPL", 1, 100.0)]
        return_maps = {"AAPL": {1: 0.01, 2: 0.02}}

        assert analyzer.calculate_risk_snapshot(holdings, return_maps, None).beta is None
        assert analyzer.calculate_risk_snapshot(holdings, return_maps, {}).beta is None

    def test_beta_none_for_constant_benchmark(self, analyzer):
        holdings = [make_holding("AAPL", 1, 100.0)]
        return_maps = {"AAPL": {1: 0.01, 2: 0.02, 3: -0.01}}

        snapshot = analyzer.calculate_risk_snapshot(
            holdings, return_maps, {1: 0.01, 2: 0.01, 3: 0.01}
        )

        assert snapshot.beta is None
        assert snapshot.ready is True

    def test_beta_none_without_overlap(self, analyzer):
        holdings = [make_holding("AAPL", 1, 100.0)]
        return_maps = {"AAPL": {1: 0.01, 2: 0.02}}

        snapshot = analyzer.calculate_risk_snapshot(holdings, return_maps, {5: 0.01, 6: 0.03})

        assert snapshot.beta is None

    def test_beta_uses_its_own_alignment(self, analyzer):
        """A shorter benchmark history narrows the beta axis but not the variance axis."""
        holdings = [make_holding("AAPL", 1, 100.0)]
        return_maps = {"AAPL": {1: 0.04, 2: 0.02, 3: -0.02, 4: 0.06}}
        benchmark = {2: 0.01, 3: -0.01, 4: 0.03}

        snapshot = analyzer.calculate_risk_snapshot(holdings, return_maps, benchmark)

        assert snapshot.periods == 4
        assert snapshot.beta == pytest.approx(2.0)

    def test_benchmark_key_cannot_collide_with_ticker(self):
        """The reserved key is not a valid ticker symbol."""
        with pytest.raises(ValueError):
            Holding(symbol=BENCHMARK_KEY, quantity=1, purchase_price=1)
