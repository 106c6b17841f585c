"""
Per-ticker loading status, modelled as a small state machine.

The orchestrator drives transitions through explicit events; renderers
subscribe to transitions instead of being written to directly.
"""

import logging
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


class LoadState(str, Enum):
    """Loading status of one ticker."""

    QUEUED = "queued"
    LOADING = "loading"
    DONE = "done"
    NO_DATA = "no_data"
    FAILED = "failed"

    @property
    def label(self) -> str:
        """Short user-facing label."""
        return {
            LoadState.QUEUED: "Queued",
            LoadState.LOADING: "Loading...",
            LoadState.DONE: "Done",
            LoadState.NO_DATA: "No data",
            LoadState.FAILED: "Failed",
        }[self]

    @property
    def is_terminal(self) -> bool:
        return self in (LoadState.DONE, LoadState.NO_DATA, LoadState.FAILED)


# Allowed transitions; terminal states may be re-queued for a new refresh
_TRANSITIONS = {
    LoadState.QUEUED: {LoadState.LOADING},
    LoadState.LOADING: {LoadState.DONE, LoadState.NO_DATA, LoadState.FAILED},
    LoadState.DONE: {LoadState.QUEUED},
    LoadState.NO_DATA: {LoadState.QUEUED},
    LoadState.FAILED: {LoadState.QUEUED},
}

# Listener signature: (ticker, previous_state, new_state, detail)
StatusListener = Callable[[str, Optional[LoadState], LoadState, Optional[str]], None]


class TickerStatusTracker:
    """Tracks the load state of every ticker in a refresh and notifies listeners."""

    def __init__(self) -> None:
        self._states: Dict[str, LoadState] = {}
        self._details: Dict[str, Optional[str]] = {}
        self._listeners: List[StatusListener] = []

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """
        Registers a transition listener.

        Args:
            listener: Called as listener(ticker, previous, new, detail).

        Returns:
            A callable that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def queue(self, tickers: Iterable[str]) -> None:
        """
        Marks every ticker as queued at the start of a refresh.

        A ticker still loading from an interrupted refresh is reset to queued.
        """
        for ticker in tickers:
            previous = self._states.get(ticker)
            if previous is None:
                self._set(ticker, None, LoadState.QUEUED, None)
            elif previous == LoadState.LOADING:
                logger.warning(f"{ticker} was left loading by an earlier refresh; re-queuing")
                self._set(ticker, previous, LoadState.QUEUED, None)
            elif previous != LoadState.QUEUED:
                self._transition(ticker, LoadState.QUEUED)

    def start(self, ticker: str) -> None:
        self._transition(ticker, LoadState.LOADING)

    def succeed(self, ticker: str, detail: Optional[str] = None) -> None:
        self._transition(ticker, LoadState.DONE, detail)

    def no_data(self, ticker: str, detail: Optional[str] = None) -> None:
        self._transition(ticker, LoadState.NO_DATA, detail)

    def fail(self, ticker: str, detail: Optional[str] = None) -> None:
        self._transition(ticker, LoadState.FAILED, detail)

    def state(self, ticker: str) -> Optional[LoadState]:
        """Current state of a ticker, or None if it was never queued."""
        return self._states.get(ticker)

    def detail(self, ticker: str) -> Optional[str]:
        """Detail message attached to the last transition of a ticker."""
        return self._details.get(ticker)

    def snapshot(self) -> Dict[str, str]:
        """Ticker -> state value, in queue order."""
        return {ticker: state.value for ticker, state in self._states.items()}

    def _transition(
        self, ticker: str, new_state: LoadState, detail: Optional[str] = None
    ) -> None:
        """
        Applies one transition.

        Raises:
            ValueError: If the ticker is unknown or the transition is not allowed.
        """
        previous = self._states.get(ticker)
        if previous is None:
            raise ValueError(f"Ticker '{ticker}' was never queued")
        if new_state not in _TRANSITIONS[previous]:
            raise ValueError(
                f"Invalid status transition for {ticker}: {previous.value} -> {new_state.value}"
            )
        self._set(ticker, previous, new_state, detail)

    def _set(
        self,
        ticker: str,
        previous: Optional[LoadState],
        new_state: LoadState,
        detail: Optional[str],
    ) -> None:
        self._states[ticker] = new_state
        self._details[ticker] = detail
        logger.debug(
            f"{ticker}: {previous.value if previous else '-'} -> {new_state.value}"
            + (f" ({detail})" if detail else "")
        )
        for listener in list(self._listeners):
            listener(ticker, previous, new_state, detail)
