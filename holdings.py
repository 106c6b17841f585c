"""
Holdings persistence and valuation.

Holdings are stored as a JSON list in a single file. The analytics engine only
reads them; this module is the sole writer.
"""

import json
import logging
from pathlib import Path
from typing import Any, List, Sequence
from pydantic import ValidationError
from fetcher import PriceFetchError
from models import Holding, HoldingValuation, PortfolioSummary

logger = logging.getLogger(__name__)


class HoldingNotFoundError(KeyError):
    """Raised when a holding id does not exist in the store."""


class HoldingsFileError(ValueError):
    """Raised when saving would overwrite a holdings file that could not be read."""


class HoldingsStore:
    """JSON-file backed list of holdings."""

    def __init__(self, path: str) -> None:
        """
        Initializes the store and loads any existing holdings.

        Args:
            path (str): Location of the holdings JSON file.
        """
        self.path = Path(path)
        self._unreadable = False
        # Stored entries that failed validation, written back untouched on save
        self._invalid_entries: List[Any] = []
        self._holdings: List[Holding] = self.load()

    @property
    def holdings(self) -> List[Holding]:
        """Holdings in insertion order (a copy; edit through the store)."""
        return list(self._holdings)

    @property
    def skipped_entries(self) -> int:
        """Number of stored entries that failed validation on load."""
        return len(self._invalid_entries)

    def load(self) -> List[Holding]:
        """
        Reads holdings from disk.

        Entries that fail validation are skipped with a warning and kept aside
        so that a later save does not drop them. A file that is not a JSON
        list marks the store unreadable; saving is then refused.

        Returns:
            List[Holding]: Valid stored holdings; empty when the file is missing or unreadable.
        """
        self._unreadable = False
        self._invalid_entries = []
        if not self.path.exists():
            return []

        try:
            entries = json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            logger.error(f"Could not read holdings from {self.path}: {e}")
            self._unreadable = True
            return []

        if not isinstance(entries, list):
            logger.error(f"Holdings file {self.path} does not contain a list")
            self._unreadable = True
            return []

        holdings = []
        for position, entry in enumerate(entries):
            try:
                holdings.append(Holding.model_validate(entry))
            except ValidationError as e:
                logger.warning(
                    f"Skipping invalid holding #{position} in {self.path}: "
                    f"{e.error_count()} validation error(s)"
                )
                self._invalid_entries.append(entry)

        logger.debug(f"Loaded {len(holdings)} holdings from {self.path}")
        return holdings

    def save(self) -> None:
        """
        Writes holdings to disk atomically.

        Raises:
            HoldingsFileError: If the existing file could not be read on load.
            OSError: If the file cannot be written.
        """
        if self._unreadable:
            raise HoldingsFileError(
                f"Refusing to overwrite unreadable holdings file {self.path}; fix or move it first"
            )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [h.model_dump(mode="json") for h in self._holdings] + self._invalid_entries
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        temp_path.write_text(json.dumps(payload, indent=2))
        temp_path.replace(self.path)
        logger.debug(f"Saved {len(self._holdings)} holdings to {self.path}")

    def add(
        self,
        symbol: str,
        quantity: float,
        purchase_price: float,
        current_price: float = 0.0,
    ) -> Holding:
        """
        Adds and persists a new holding.

        Raises:
            pydantic.ValidationError: If any field is invalid.
        """
        holding = Holding(
            symbol=symbol,
            quantity=quantity,
            purchase_price=purchase_price,
            current_price=current_price,
        )
        self._holdings.append(holding)
        self.save()
        logger.info(f"Added {holding.quantity:g} {holding.symbol} ({holding.id})")
        return holding

    def remove(self, holding_id: str) -> Holding:
        """
        Removes and persists the removal of a holding.

        Raises:
            HoldingNotFoundError: If no holding has that id.
        """
        index = self._index_of(holding_id)
        removed = self._holdings.pop(index)
        self.save()
        logger.info(f"Removed {removed.symbol} ({removed.id})")
        return removed

    def update_current_price(self, holding_id: str, current_price: float) -> Holding:
        """
        Replaces the current price of a holding and persists it.

        Raises:
            HoldingNotFoundError: If no holding has that id.
            pydantic.ValidationError: If the price is invalid.
        """
        index = self._index_of(holding_id)
        updated = self._set_price(index, current_price)
        self.save()
        return updated

    def refresh_prices(self, fetcher) -> int:
        """
        Updates every holding's current price from the latest close.

        Holdings are processed one at a time; a failed quote leaves that
        holding unchanged. The store is saved once at the end.

        Args:
            fetcher: Anything with a fetch_latest_close(ticker) method.

        Returns:
            int: Number of holdings whose price was updated.
        """
        updated = 0
        for index, holding in enumerate(self._holdings):
            try:
                price = fetcher.fetch_latest_close(holding.symbol)
            except PriceFetchError as e:
                logger.warning(f"Skipping {holding.symbol}: {e}")
                continue
            self._set_price(index, price)
            updated += 1

        self.save()
        logger.info(f"Refreshed prices for {updated}/{len(self._holdings)} holdings")
        return updated

    def _set_price(self, index: int, current_price: float) -> Holding:
        current = self._holdings[index]
        updated = Holding.model_validate(
            {**current.model_dump(), "current_price": current_price}
        )
        self._holdings[index] = updated
        return updated

    def _index_of(self, holding_id: str) -> int:
        for index, holding in enumerate(self._holdings):
            if holding.id == holding_id:
                return index
        raise HoldingNotFoundError(holding_id)


def summarize(holdings: Sequence[Holding]) -> PortfolioSummary:
    """
    Cost, value and P&L per holding and in total.

    P&L percentages are 0 when the cost basis is 0.

    Args:
        holdings: Holdings to value.

    Returns:
        PortfolioSummary with one valuation row per holding.
    """
    rows = []
    for holding in holdings:
        cost = holding.cost
        value = holding.value
        pnl = value - cost
        rows.append(
            HoldingValuation(
                holding=holding,
                cost=cost,
                value=value,
                pnl=pnl,
                pnl_pct=(pnl / cost) * 100 if cost > 0 else 0.0,
            )
        )

    total_cost = sum(row.cost for row in rows)
    total_value = sum(row.value for row in rows)
    pnl = total_value - total_cost
    return PortfolioSummary(
        total_cost=total_cost,
        total_value=total_value,
        pnl=pnl,
        pnl_pct=(pnl / total_cost) * 100 if total_cost > 0 else 0.0,
        rows=tuple(rows),
    )

