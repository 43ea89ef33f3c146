"""Orchestration state and its transitions.

``OrchestrationState`` is immutable. Every change is expressed as an event
consumed by ``transition``; ``SwapsStore`` holds the current state and the
ephemeral custom gas state.

Events scoped to a quote fetch cycle carry the cycle's ``fetch_id`` and are
ignored once that cycle is no longer the active one, so a superseded fetch
cannot overwrite the state of a newer cycle.
"""

import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional

from swapflow.swaps.constants import RouteState, SwapsErrorKey
from swapflow.swaps.models import GasPriceEstimates, TokenInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrchestrationState:
    fetching_quotes: bool = False
    quotes_fetch_start_time: Optional[int] = None
    approve_tx_id: Optional[int] = None
    trade_tx_id: Optional[int] = None
    error_key: Optional[SwapsErrorKey] = None
    route_state: RouteState = RouteState.IDLE
    swaps_feature_is_live: bool = False
    balance_error: bool = False
    from_token: Optional[TokenInfo] = None
    to_token: Optional[TokenInfo] = None
    active_fetch_id: Optional[int] = None


@dataclass
class CustomGasState:
    """User gas overrides plus the in-memory gas price cache fields."""

    price: Optional[str] = None  # hex wei
    limit: Optional[str] = None  # hex
    loading: bool = False
    price_estimates: Optional[GasPriceEstimates] = None
    price_estimates_last_retrieved: int = 0

    def reset(self) -> None:
        self.price = None
        self.limit = None
        self.loading = False
        self.price_estimates = None
        self.price_estimates_last_retrieved = 0

    @property
    def fast_price_hex_wei(self) -> Optional[str]:
        if self.price_estimates is None:
            return None
        return self.price_estimates.fast_hex_wei


# Events


@dataclass(frozen=True)
class LivenessChecked:
    is_live: bool


@dataclass(frozen=True)
class BalanceErrorSet:
    balance_error: bool


@dataclass(frozen=True)
class FromTokenSet:
    token: Optional[TokenInfo]


@dataclass(frozen=True)
class ToTokenSet:
    token: Optional[TokenInfo]


@dataclass(frozen=True)
class FetchStarted:
    fetch_id: int


@dataclass(frozen=True)
class QuotesRequested:
    fetch_id: int
    start_time: int


@dataclass(frozen=True)
class QuotesReceived:
    fetch_id: int


@dataclass(frozen=True)
class QuotesFailed:
    fetch_id: int
    error_key: SwapsErrorKey


@dataclass(frozen=True)
class FetchFinished:
    fetch_id: int


@dataclass(frozen=True)
class SwapStarted:
    pass


@dataclass(frozen=True)
class ApprovalSubmitted:
    tx_id: int


@dataclass(frozen=True)
class TradeSubmitted:
    tx_id: int


@dataclass(frozen=True)
class SwapFailed:
    error_key: SwapsErrorKey = SwapsErrorKey.SWAP_FAILED


@dataclass(frozen=True)
class PostFetchReset:
    pass


@dataclass(frozen=True)
class StateCleared:
    pass


def _liveness_checked(state: OrchestrationState, event: LivenessChecked) -> OrchestrationState:
    return replace(state, swaps_feature_is_live=event.is_live)


def _balance_error_set(state: OrchestrationState, event: BalanceErrorSet) -> OrchestrationState:
    return replace(state, balance_error=event.balance_error)


def _from_token_set(state: OrchestrationState, event: FromTokenSet) -> OrchestrationState:
    return replace(state, from_token=event.token)


def _to_token_set(state: OrchestrationState, event: ToTokenSet) -> OrchestrationState:
    return replace(state, to_token=event.token)


def _fetch_started(state: OrchestrationState, event: FetchStarted) -> OrchestrationState:
    return replace(
        state,
        active_fetch_id=event.fetch_id,
        fetching_quotes=True,
        route_state=RouteState.LOADING,
        error_key=None,
    )


def _quotes_requested(state: OrchestrationState, event: QuotesRequested) -> OrchestrationState:
    return replace(state, quotes_fetch_start_time=event.start_time)


def _quotes_received(state: OrchestrationState, event: QuotesReceived) -> OrchestrationState:
    return replace(state, error_key=None)


def _quotes_failed(state: OrchestrationState, event: QuotesFailed) -> OrchestrationState:
    return replace(state, error_key=event.error_key)


def _fetch_finished(state: OrchestrationState, event: FetchFinished) -> OrchestrationState:
    return replace(state, fetching_quotes=False, active_fetch_id=None)


def _swap_started(state: OrchestrationState, event: SwapStarted) -> OrchestrationState:
    return replace(state, route_state=RouteState.AWAITING)


def _approval_submitted(state: OrchestrationState, event: ApprovalSubmitted) -> OrchestrationState:
    return replace(state, approve_tx_id=event.tx_id)


def _trade_submitted(state: OrchestrationState, event: TradeSubmitted) -> OrchestrationState:
    return replace(state, trade_tx_id=event.tx_id)


def _swap_failed(state: OrchestrationState, event: SwapFailed) -> OrchestrationState:
    return replace(state, error_key=event.error_key)


def _post_fetch_reset(state: OrchestrationState, event: PostFetchReset) -> OrchestrationState:
    # Liveness and the chosen tokens survive going back or retrying
    return OrchestrationState(
        swaps_feature_is_live=state.swaps_feature_is_live,
        from_token=state.from_token,
        to_token=state.to_token,
    )


def _state_cleared(state: OrchestrationState, event: StateCleared) -> OrchestrationState:
    return OrchestrationState()


_TRANSITIONS: dict[type, Callable] = {
    LivenessChecked: _liveness_checked,
    BalanceErrorSet: _balance_error_set,
    FromTokenSet: _from_token_set,
    ToTokenSet: _to_token_set,
    FetchStarted: _fetch_started,
    QuotesRequested: _quotes_requested,
    QuotesReceived: _quotes_received,
    QuotesFailed: _quotes_failed,
    FetchFinished: _fetch_finished,
    SwapStarted: _swap_started,
    ApprovalSubmitted: _approval_submitted,
    TradeSubmitted: _trade_submitted,
    SwapFailed: _swap_failed,
    PostFetchReset: _post_fetch_reset,
    StateCleared: _state_cleared,
}

# Events that only apply while their fetch cycle is the active one
_FETCH_SCOPED = (QuotesRequested, QuotesReceived, QuotesFailed, FetchFinished)


def transition(state: OrchestrationState, event: object) -> OrchestrationState:
    """Return the state that results from applying ``event`` to ``state``."""
    handler = _TRANSITIONS.get(type(event))
    if handler is None:
        raise TypeError(f"Unknown swaps event: {type(event).__name__}")

    if isinstance(event, _FETCH_SCOPED) and event.fetch_id != state.active_fetch_id:
        return state

    return handler(state, event)


class SwapsStore:
    """Holds the orchestration state and the custom gas state of one session."""

    def __init__(self, state: Optional[OrchestrationState] = None):
        self.state = state or OrchestrationState()
        self.custom_gas = CustomGasState()

    def dispatch(self, event: object) -> OrchestrationState:
        new_state = transition(self.state, event)
        if new_state is self.state and isinstance(event, _FETCH_SCOPED):
            logger.debug(f"Ignoring {type(event).__name__} from superseded fetch {event.fetch_id}")
        self.state = new_state
        return new_state

    def is_active_fetch(self, fetch_id: int) -> bool:
        return self.state.active_fetch_id == fetch_id
