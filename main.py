"""
CLI entry point for the portfolio tracker.
"""

import sys
import logging
import argparse
from typing import List, Optional

from pydantic import ValidationError
from config import Config
from cache import SeriesCache
from fetcher import CachedDataFetcher, PriceFetchError
from holdings import HoldingNotFoundError, HoldingsStore, summarize
from models import AnalyticsSnapshot, Histogram, PortfolioSummary
from orchestrator import PortfolioAnalyticsOrchestrator
from returns import Granularity, period_key_label
from status import LoadState, TickerStatusTracker
from utils import format_currency, format_percent

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

HISTOGRAM_BAR_WIDTH = 30


def setup_cli() -> argparse.ArgumentParser:
    """
    Sets up the command-line interface for the portfolio tracker.

    Returns:
        argparse.ArgumentParser: The argument parser.
    """
    parser = argparse.ArgumentParser(
        description="Portfolio tracker with return distributions, scenarios and risk",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Record a purchase and look up its latest close
  %(prog)s add AAPL 10 150 --fetch-price

  # Show holdings with P&L
  %(prog)s list

  # Update every holding to its latest close
  %(prog)s refresh-prices

  # Percentiles, projections and risk against a custom benchmark
  %(prog)s analyze --benchmark QQQ
        """,
    )

    parser.add_argument(
        "--holdings",
        type=str,
        default=None,
        help="Holdings JSON file (default: $HOLDINGS_PATH or ./portfolio-holdings.json)",
    )
    parser.add_argument(
        "--cache-dir",
        type=str,
        default=None,
        help="Price series cache directory (default: $CACHE_DIR or ./.cache)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    add_parser = subparsers.add_parser("add", help="Add a holding")
    add_parser.add_argument("symbol", type=str, help="Ticker symbol (e.g. AAPL)")
    add_parser.add_argument("quantity", type=float, help="Number of shares")
    add_parser.add_argument("purchase_price", type=float, help="Price paid per share")
    price_group = add_parser.add_mutually_exclusive_group()
    price_group.add_argument(
        "--current-price", type=float, default=None, help="Current price per share"
    )
    price_group.add_argument(
        "--fetch-price",
        action="store_true",
        help="Use the latest close from Yahoo Finance as the current price",
    )

    remove_parser = subparsers.add_parser("remove", help="Remove a holding by id")
    remove_parser.add_argument("id", type=str, help="Holding id (see 'list')")

    subparsers.add_parser("list", help="Show holdings with P&L")
    subparsers.add_parser("refresh-prices", help="Update current prices to the latest close")

    analyze_parser = subparsers.add_parser(
        "analyze", help="Run percentiles, projections and risk analytics"
    )
    analyze_parser.add_argument(
        "--benchmark", type=str, default=None, help="Benchmark ticker for beta (default: SPY)"
    )

    return parser


def format_validation_error(e: ValidationError) -> str:
    """Flattens a pydantic ValidationError into one line per field."""
    messages = []
    for error in e.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        messages.append(f"{field}: {error['msg']}")
    return "\n".join(messages)


def print_status(
    ticker: str, previous: Optional[LoadState], new: LoadState, detail: Optional[str]
) -> None:
    """Status listener that prints every transition as it happens."""
    line = f"  [{new.label:<10}] {ticker}"
    if detail:
        line += f" - {detail}"
    print(line)


def render_summary(summary: PortfolioSummary) -> List[str]:
    lines = [
        f"{'ID':<32}  {'Symbol':<8} {'Qty':>10} {'Cost':>14} {'Value':>14} {'P&L':>14} {'P&L %':>9}"
    ]
    for row in summary.rows:
        holding = row.holding
        lines.append(
            f"{holding.id:<32}  {holding.symbol:<8} {holding.quantity:>10g} "
            f"{format_currency(row.cost):>14} {format_currency(row.value):>14} "
            f"{format_currency(row.pnl):>14} {format_percent(row.pnl_pct):>9}"
        )
    lines.append("-" * 120)
    lines.append(
        f"Total cost {format_currency(summary.total_cost)} | "
        f"value {format_currency(summary.total_value)} | "
        f"P&L {format_currency(summary.pnl)} ({format_percent(summary.pnl_pct)})"
    )
    return lines


def render_histogram(histogram: Histogram) -> List[str]:
    if not histogram.bins:
        return ["    (no data)"]
    lines = []
    for b in histogram.bins:
        bar_length = (
            round(b.count / histogram.max_count * HISTOGRAM_BAR_WIDTH) if histogram.max_count else 0
        )
        lines.append(
            f"    {format_percent(b.start * 100):>9} .. {format_percent(b.end * 100):>9} "
            f"{'#' * bar_length} {b.count}"
        )
    return lines


def render_snapshot(snapshot: AnalyticsSnapshot) -> List[str]:
    """
    Renders an analytics snapshot as plain text lines.

    Args:
        snapshot (AnalyticsSnapshot): Result of a refresh.

    Returns:
        List[str]: Lines ready to print.
    """
    lines = ["", "=" * 60, "PORTFOLIO", "=" * 60]
    lines.extend(render_summary(snapshot.summary))

    lines.extend(["", "Annual return percentiles (long-range history):"])
    if not snapshot.annual_percentiles:
        lines.append("  (no data)")
    for ticker, p in snapshot.annual_percentiles.items():
        lines.append(
            f"  {ticker:<8} p10 {format_percent(p.p10 * 100)}  p25 {format_percent(p.p25 * 100)}  "
            f"p50 {format_percent(p.p50 * 100)}  p75 {format_percent(p.p75 * 100)}  "
            f"p90 {format_percent(p.p90 * 100)}"
        )

    lines.extend(["", f"Projections from {format_currency(snapshot.current_value)}:"])
    for scenario, projections in snapshot.projections.items():
        cells = [f"{p.years:g}y {format_currency(p.value)}" for p in projections]
        lines.append(f"  {scenario:<12} " + "  ".join(cells))

    lines.extend(["", "Monthly returns (1y):"])
    if not snapshot.histograms:
        lines.append("  (no data)")
    for ticker, hist in snapshot.histograms.items():
        p = snapshot.monthly_percentiles.get(ticker)
        median = f" (median {format_percent(p.p50 * 100)})" if p else ""
        lines.append(f"  {ticker}{median}")
        lines.extend(render_histogram(hist))

    risk = snapshot.risk
    lines.extend(["", "Risk (monthly, not annualized):"])
    if not risk.ready:
        lines.append("  Not enough overlapping history")
    else:
        beta = "n/a" if risk.beta is None else f"{risk.beta:.2f}"
        periods = snapshot.aligned.periods
        span = (
            f" ({period_key_label(periods[0], Granularity.MONTHLY)} to "
            f"{period_key_label(periods[-1], Granularity.MONTHLY)})"
            if periods
            else ""
        )
        lines.append(
            f"  Volatility {format_percent(risk.volatility * 100)} over {risk.periods} months{span} | "
            f"beta vs {snapshot.benchmark_ticker}: {beta}"
        )
        for c in risk.contributions:
            lines.append(
                f"  {c.symbol:<8} weight {c.weight * 100:6.2f}%  "
                f"risk share {c.contribution * 100:6.2f}%"
            )
    lines.append("=" * 60)
    return lines


def build_fetcher(config: Config) -> CachedDataFetcher:
    return CachedDataFetcher(
        SeriesCache(cache_dir=config.cache_dir),
        timeout=config.request_timeout,
        min_long_range_points=config.min_long_range_points,
    )


def run_command(args: argparse.Namespace, config: Config) -> int:
    """
    Executes one parsed subcommand.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    store = HoldingsStore(config.holdings_path)

    if args.command == "add":
        current_price = args.current_price if args.current_price is not None else 0.0
        if args.fetch_price:
            try:
                current_price = build_fetcher(config).fetch_latest_close(args.symbol)
            except PriceFetchError as e:
                print(f"⚠️  Could not fetch price for {args.symbol}: {e}")
                return 1
        holding = store.add(args.symbol, args.quantity, args.purchase_price, current_price)
        print(f"✓ Added {holding.symbol} ({holding.id})")
        return 0

    if args.command == "remove":
        removed = store.remove(args.id)
        print(f"✓ Removed {removed.symbol} ({removed.id})")
        return 0

    if args.command == "list":
        holdings = store.holdings
        if not holdings:
            print("No holdings yet. Add one with: add SYMBOL QUANTITY PURCHASE_PRICE")
            return 0
        print("\n".join(render_summary(summarize(holdings))))
        return 0

    if args.command == "refresh-prices":
        updated = store.refresh_prices(build_fetcher(config))
        print(f"✓ Updated {updated}/{len(store.holdings)} holdings")
        return 0

    if args.command == "analyze":
        holdings = store.holdings
        if not holdings:
            print("No holdings to analyze.")
            return 0
        tracker = TickerStatusTracker()
        tracker.subscribe(print_status)
        orchestrator = PortfolioAnalyticsOrchestrator(
            config, fetcher=build_fetcher(config), tracker=tracker
        )
        print(f"🔍 Analyzing {len(holdings)} holdings...")
        snapshot = orchestrator.refresh(holdings)
        print("\n".join(render_snapshot(snapshot)))
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = setup_cli()
    args = parser.parse_args(argv)

    # Set logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = Config(
            benchmark_ticker=getattr(args, "benchmark", None),
            cache_dir=args.cache_dir,
            holdings_path=args.holdings,
        )
        return run_command(args, config)

    except ValidationError as e:
        print(f"\n❌ Invalid holding:\n{format_validation_error(e)}")
        return 1

    except HoldingNotFoundError as e:
        print(f"\n❌ No holding with id {e.args[0]}")
        return 1

    except ValueError as e:
        print(f"\n❌ Error: {e}")
        return 1

    except KeyboardInterrupt:
        print("\n\n⚠️  Operation cancelled by user")
        return 1


if __name__ == "__main__":
    sys.exit(main())
