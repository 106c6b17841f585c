"""
End-to-end tests for the CLI interface.
"""

import os
import json
import pytest
from unittest.mock import patch
from fetcher import PriceFetchError
from main import main, render_histogram, render_snapshot, setup_cli
from models import (
    AlignedMatrix,
    AnalyticsSnapshot,
    Histogram,
    HistogramBin,
    PercentileSet,
    PortfolioSummary,
    RiskContribution,
    RiskSnapshot,
    ScenarioProjection,
)
from datetime import datetime, timezone


@pytest.fixture(autouse=True)
def clean_env():
    with patch.dict(os.environ, {}, clear=True):
        yield


@pytest.fixture
def holdings_file(tmp_path):
    return tmp_path / "holdings.json"


@pytest.fixture
def base_args(holdings_file, tmp_path):
    return ["--holdings", str(holdings_file), "--cache-dir", str(tmp_path / "cache")]


class TestCLISetup:
    """Test CLI argument parser setup."""

    def test_parser_creation(self):
        parser = setup_cli()

        assert parser.description is not None

    def test_add_arguments(self):
        args = setup_cli().parse_args(["add", "AAPL", "10", "150.5", "--current-price", "160"])

        assert args.command == "add"
        assert args.symbol == "AAPL"
        assert args.quantity == 10.0
        assert args.purchase_price == 150.5
        assert args.current_price == 160.0
        assert args.fetch_price is False

    def test_price_options_are_exclusive(self):
        with pytest.raises(SystemExit):
            setup_cli().parse_args(["add", "AAPL", "1", "1", "--current-price", "2", "--fetch-price"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            setup_cli().parse_args([])

    def test_global_options(self):
        args = setup_cli().parse_args(["--verbose", "--holdings", "h.json", "analyze", "--benchmark", "QQQ"])

        assert args.verbose is True
        assert args.holdings == "h.json"
        assert args.benchmark == "QQQ"


class TestCommands:
    """Test subcommands against a temporary holdings file."""

    def test_add_and_list(self, base_args, holdings_file, capsys):
        assert main(base_args + ["add", "aapl", "10", "150", "--current-price", "175"]) == 0

        saved = json.loads(holdings_file.read_text())
        assert saved[0]["symbol"] == "AAPL"

        assert main(base_args + ["list"]) == 0
        output = capsys.readouterr().out
        assert "AAPL" in output
        assert "$1,750.00" in output
        assert "+16.67%" in output

    def test_add_invalid_quantity(self, base_args, holdings_file, capsys):
        assert main(base_args + ["add", "AAPL", "-1", "150"]) == 1

        assert "quantity" in capsys.readouterr().out
        assert not holdings_file.exists()

    def test_add_invalid_symbol(self, base_args, capsys):
        assert main(base_args + ["add", "AA$PL", "1", "150"]) == 1

    @patch("main.CachedDataFetcher.fetch_latest_close", return_value=199.0)
    def test_add_with_fetched_price(self, mock_close, base_args, holdings_file):
        assert main(base_args + ["add", "AAPL", "1", "150", "--fetch-price"]) == 0

        mock_close.assert_called_once_with("AAPL")
        assert json.loads(holdings_file.read_text())[0]["current_price"] == 199.0

    @patch(
        "main.CachedDataFetcher.fetch_latest_close",
        side_effect=PriceFetchError("ZZZZ", None, "Invalid symbol: ZZZZ"),
    )
    def test_add_with_failed_fetch(self, mock_close, base_args, holdings_file):
        assert main(base_args + ["add", "ZZZZ", "1", "150", "--fetch-price"]) == 1

        assert not holdings_file.exists()

    def test_add_refuses_unreadable_file(self, base_args, holdings_file, capsys):
        holdings_file.write_text("{not json")

        assert main(base_args + ["add", "AAPL", "1", "150"]) == 1

        assert "Refusing to overwrite" in capsys.readouterr().out
        assert holdings_file.read_text() == "{not json"

    def test_remove(self, base_args, holdings_file):
        main(base_args + ["add", "AAPL", "1", "150"])
        holding_id = json.loads(holdings_file.read_text())[0]["id"]

        assert main(base_args + ["remove", holding_id]) == 0
        assert json.loads(holdings_file.read_text()) == []

    def test_remove_unknown(self, base_args, capsys):
        assert main(base_args + ["remove", "nope"]) == 1

        assert "No holding with id nope" in capsys.readouterr().out

    def test_list_empty(self, base_args, capsys):
        assert main(base_args + ["list"]) == 0

        assert "No holdings yet" in capsys.readouterr().out

    @patch("main.CachedDataFetcher.fetch_latest_close", return_value=12.5)
    def test_refresh_prices(self, mock_close, base_args, holdings_file, capsys):
        main(base_args + ["add", "AAPL", "2", "10"])

        assert main(base_args + ["refresh-prices"]) == 0

        assert json.loads(holdings_file.read_text())[0]["current_price"] == 12.5
        assert "Updated 1/1" in capsys.readouterr().out

    def test_analyze_invalid_benchmark(self, base_args, capsys):
        assert main(base_args + ["analyze", "--benchmark", "BAD TICKER"]) == 1

    def test_analyze_without_holdings(self, base_args, capsys):
        assert main(base_args + ["analyze"]) == 0

        assert "No holdings to analyze" in capsys.readouterr().out

    @patch("main.PortfolioAnalyticsOrchestrator")
    def test_analyze_renders_snapshot(self, mock_orchestrator, base_args, capsys):
        main(base_args + ["add", "AAPL", "10", "50", "--current-price", "50"])
        mock_orchestrator.return_value.refresh.return_value = sample_snapshot()

        assert main(base_args + ["analyze"]) == 0

        output = capsys.readouterr().out
        assert "Projections from $500.00" in output
        assert "$600.00" in output
        assert "beta vs SPY: 1.10" in output


def sample_snapshot():
    return AnalyticsSnapshot(
        generated_at=datetime.now(timezone.utc),
        benchmark_ticker="SPY",
        statuses={"AAPL": "done", "SPY": "done"},
        annual_percentiles={"AAPL": PercentileSet(p10=-0.1, p25=0.0, p50=0.2, p75=0.3, p90=0.4)},
        monthly_percentiles={"AAPL": PercentileSet(p50=0.01)},
        histograms={"AAPL": Histogram(bins=(HistogramBin(-0.05, 0.05, 4),), max_count=4, bin_width=0.1)},
        aligned=AlignedMatrix(periods=(1, 2), returns={"AAPL": (0.01, 0.02)}),
        risk=RiskSnapshot(
            beta=1.1,
            variance=0.0025,
            volatility=0.05,
            contributions=(RiskContribution("AAPL", 1.0, 1.0),),
            periods=2,
            ready=True,
        ),
        projections={"average": [ScenarioProjection("average", 1.0, 600.0)]},
        current_value=500.0,
        summary=PortfolioSummary(total_cost=500.0, total_value=500.0, pnl=0.0, pnl_pct=0.0),
    )


class TestRendering:
    """Test text rendering of results."""

    def test_empty_histogram(self):
        assert render_histogram(Histogram()) == ["    (no data)"]

    def test_not_ready_risk(self):
        snapshot = sample_snapshot()
        lines = render_snapshot(
            AnalyticsSnapshot(**{**snapshot.__dict__, "risk": RiskSnapshot.not_ready()})
        )

        assert "  Not enough overlapping history" in lines

    def test_contributions_listed(self):
        text = "\n".join(render_snapshot(sample_snapshot()))

        assert "risk share 100.00%" in text
        assert "p50 +20.00%" in text

    def test_risk_line_shows_aligned_span(self):
        snapshot = sample_snapshot()
        aligned = AlignedMatrix(
            periods=(2020 * 12 + 3, 2020 * 12 + 4, 2020 * 12 + 5),
            returns={"AAPL": (0.01, 0.02, 0.03)},
        )
        text = "\n".join(render_snapshot(AnalyticsSnapshot(**{**snapshot.__dict__, "aligned": aligned})))

        assert "(2020-04 to 2020-06)" in text
