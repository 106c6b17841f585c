"""
Scenario projections of portfolio value.

Each holding grows at its ticker's annual percentile rate, compounded over a
fractional number of years: value * (1 + rate) ** years. This raises the
annual rate to a fractional power rather than deriving a sub-annual rate.
The growth base is floored at zero so a rate at or below -100% projects to
nothing instead of a complex number; the value is otherwise not clamped.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Sequence
from constants import AnalysisParameters
from models import Holding, PercentileSet, ScenarioProjection

logger = logging.getLogger(__name__)


class ScenarioProjector:
    """Projects portfolio value under optimistic/average/pessimistic rates."""

    def __init__(
        self,
        horizons: Sequence[float] = AnalysisParameters.PROJECTION_HORIZONS,
        scenarios: Mapping[str, str] = AnalysisParameters.SCENARIO_PERCENTILES,
    ) -> None:
        """
        Args:
            horizons (Sequence[float]): Horizons in years.
            scenarios (Mapping[str, str]): Scenario tag -> PercentileSet attribute.
        """
        self.horizons = tuple(horizons)
        self.scenarios = dict(scenarios)

    def scenario_rate(self, percentiles: PercentileSet, scenario: str) -> float:
        """
        Annual rate used for a scenario.

        Raises:
            ValueError: If the scenario tag is unknown.
        """
        try:
            attribute = self.scenarios[scenario]
        except KeyError:
            raise ValueError(
                f"Unknown scenario '{scenario}'. Must be one of: {', '.join(self.scenarios)}"
            ) from None
        return getattr(percentiles, attribute)

    def project_at(
        self,
        holdings: Iterable[Holding],
        percentiles_by_ticker: Mapping[str, PercentileSet],
        scenario: str,
        years: float,
    ) -> float:
        """
        Projected total portfolio value for one scenario and horizon.

        Tickers without a percentile set grow at 0.

        Args:
            holdings: Current holdings.
            percentiles_by_ticker: Annual return percentiles per ticker.
            scenario: "optimistic" (p90), "average" (p50) or "pessimistic" (p10).
            years: Horizon in (possibly fractional) years.

        Returns:
            Sum of the projected holding values.
        """
        total = 0.0
        for holding in holdings:
            percentiles = percentiles_by_ticker.get(holding.symbol)
            rate = self.scenario_rate(percentiles, scenario) if percentiles else 0.0
            growth = max(1.0 + rate, 0.0)
            total += holding.value * growth ** years
        return total

    def project_horizons(
        self,
        holdings: Sequence[Holding],
        percentiles_by_ticker: Mapping[str, PercentileSet],
    ) -> Dict[str, List[ScenarioProjection]]:
        """
        Every scenario evaluated at every configured horizon.

        Returns:
            Scenario tag -> projections ordered by horizon.
        """
        projections = {}
        for scenario in self.scenarios:
            projections[scenario] = [
                ScenarioProjection(
                    scenario=scenario,
                    years=years,
                    value=self.project_at(holdings, percentiles_by_ticker, scenario, years),
                )
                for years in self.horizons
            ]
        return projections
