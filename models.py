"""
Data models for portfolio tracking and analytics.
"""

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel, Field, field_validator
from utils import validate_ticker_symbol


# ============================================================================
# PYDANTIC MODELS (With Validation)
# ============================================================================


class Holding(BaseModel):
    """A single portfolio position, owned by the holdings store."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, min_length=1)
    symbol: str = Field(..., min_length=1, max_length=10, description="Ticker symbol")
    quantity: float = Field(..., ge=0, allow_inf_nan=False, description="Number of shares")
    purchase_price: float = Field(
        ..., ge=0, allow_inf_nan=False, description="Price paid per share"
    )
    current_price: float = Field(
        default=0.0, ge=0, allow_inf_nan=False, description="Latest known price per share"
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("symbol", mode="before")
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        """
        Validates the ticker symbol using centralized validation.

        Args:
            v (str): The ticker symbol to validate.

        Returns:
            str: The upper-cased, trimmed ticker symbol.
        """
        return validate_ticker_symbol(v)

    @property
    def cost(self) -> float:
        """Cost basis of the position."""
        return self.quantity * self.purchase_price

    @property
    def value(self) -> float:
        """Current market value of the position."""
        return self.quantity * self.current_price


# ============================================================================
# DATACLASS MODELS (Derived, recomputed on every refresh)
# ============================================================================


@dataclass(frozen=True)
class PricePoint:
    """Daily close observation. Timestamp is milliseconds since the epoch."""

    timestamp: int
    close: float

    def is_valid(self) -> bool:
        """True when both fields are usable for return calculations."""
        if self.timestamp is None or self.close is None:
            return False
        try:
            close = float(self.close)
        except (TypeError, ValueError):
            return False
        return math.isfinite(close) and close > 0


@dataclass(frozen=True)
class CachedSeries:
    """A cached price series and the time (ms since epoch) it was saved."""

    points: Tuple[PricePoint, ...]
    saved_at: int


@dataclass(frozen=True)
class PeriodReturn:
    """Simple return of one period against the previous observed period."""

    period_key: int
    value: float


@dataclass(frozen=True)
class PercentileSet:
    """Return distribution percentiles; all zero for an empty distribution."""

    p10: float = 0.0
    p25: float = 0.0
    p50: float = 0.0
    p75: float = 0.0
    p90: float = 0.0


@dataclass(frozen=True)
class HistogramBin:
    """Half-open bin [start, end) and the number of values in it."""

    start: float
    end: float
    count: int


@dataclass(frozen=True)
class Histogram:
    """Binned return distribution for display."""

    bins: Tuple[HistogramBin, ...] = ()
    max_count: int = 0
    bin_width: float = 0.0


@dataclass(frozen=True)
class AlignedMatrix:
    """Per-asset return vectors on the common (intersected) period axis."""

    periods: Tuple[int, ...] = ()
    returns: Dict[str, Tuple[float, ...]] = field(default_factory=dict)


@dataclass(frozen=True)
class RiskContribution:
    """Share of portfolio variance attributable to one asset."""

    symbol: str
    weight: float
    contribution: float


@dataclass(frozen=True)
class RiskSnapshot:
    """Portfolio risk decomposition.

    Note: variance and volatility are per-period (monthly) figures; they are
    NOT annualized.
    """

    beta: Optional[float] = None
    variance: float = 0.0
    volatility: float = 0.0
    contributions: Tuple[RiskContribution, ...] = ()
    periods: int = 0  # Length of the common axis used for variance
    ready: bool = False

    @classmethod
    def not_ready(cls) -> "RiskSnapshot":
        """Snapshot used when there is no aligned history at all."""
        return cls()


@dataclass(frozen=True)
class ScenarioProjection:
    """Projected portfolio value for one scenario at one horizon."""

    scenario: str
    years: float
    value: float


@dataclass(frozen=True)
class HoldingValuation:
    """Cost, value and P&L of one holding."""

    holding: Holding
    cost: float
    value: float
    pnl: float
    pnl_pct: float  # Percent, e.g. 12.5 for +12.5%


@dataclass(frozen=True)
class PortfolioSummary:
    """Totals across every holding."""

    total_cost: float
    total_value: float
    pnl: float
    pnl_pct: float  # Percent, e.g. 12.5 for +12.5%
    rows: Tuple[HoldingValuation, ...] = ()


@dataclass(frozen=True)
class AnalyticsSnapshot:
    """Immutable result of one analytics refresh, handed to the renderer."""

    generated_at: datetime
    benchmark_ticker: str
    statuses: Dict[str, str]
    annual_percentiles: Dict[str, PercentileSet]
    monthly_percentiles: Dict[str, PercentileSet]
    histograms: Dict[str, Histogram]
    aligned: AlignedMatrix
    risk: RiskSnapshot
    projections: Dict[str, List[ScenarioProjection]]
    current_value: float
    summary: PortfolioSummary
