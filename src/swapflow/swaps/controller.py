"""Swaps controller.

Facade over the swap flow components of one wallet session. The wallet host
calls into it from its screens; all state lives in the ``SwapsStore`` and
the ``QuoteStore`` it owns.
"""

import logging
from decimal import Decimal
from typing import Callable, Iterable, Optional, Union

from swapflow.config import Settings, get_settings
from swapflow.conversions import hex_wei_to_dec_gwei
from swapflow.storage.kv_store import KeyValueStore
from swapflow.swaps.constants import Route
from swapflow.swaps.gas_cache import GasPriceCache, now_ms
from swapflow.swaps.interfaces import Router, SwapsApi, TokenRegistry, TransactionController, WalletState
from swapflow.swaps.liveness import LivenessGate
from swapflow.swaps.models import Quote, TokenInfo
from swapflow.swaps.polling import QuotePoller
from swapflow.swaps.quote_store import QuoteStore
from swapflow.swaps.quotes import QuoteFetchOrchestrator
from swapflow.swaps.sequencer import TransactionSequencer
from swapflow.swaps.state import (
    BalanceErrorSet,
    FromTokenSet,
    OrchestrationState,
    PostFetchReset,
    StateCleared,
    SwapsStore,
    ToTokenSet,
)
from swapflow.swaps.telemetry import TelemetryEmitter, TelemetrySink

logger = logging.getLogger(__name__)


class SwapsController:
    """Entry point of the swap flow."""

    def __init__(
        self,
        api: SwapsApi,
        kv_store: KeyValueStore,
        transactions: TransactionController,
        token_registry: TokenRegistry,
        wallet: WalletState,
        router: Router,
        telemetry_sink: Optional[TelemetrySink] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.settings = settings or get_settings()
        self.api = api
        self.kv_store = kv_store
        self._wallet = wallet
        self._router = router

        self.store = SwapsStore()
        self.quote_store = QuoteStore()
        self.telemetry = TelemetryEmitter(telemetry_sink)
        self.liveness = LivenessGate(api, self.store)
        self.gas_cache = GasPriceCache(
            api,
            kv_store,
            self.store.custom_gas,
            ttl_ms=self.settings.gas_price_cache_ttl_ms,
            clock=clock,
        )

        self.quotes = QuoteFetchOrchestrator(
            store=self.store,
            quote_store=self.quote_store,
            liveness=self.liveness,
            gas_cache=self.gas_cache,
            api=api,
            wallet=wallet,
            token_registry=token_registry,
            transactions=transactions,
            router=router,
            telemetry=self.telemetry,
            native_symbol=self.settings.native_symbol,
            default_slippage=self.settings.default_slippage,
            clock=clock,
        )
        self.poller = QuotePoller(
            self.quotes.refresh_quotes, self.settings.quote_polling_interval_seconds
        )
        self.quotes.poller = self.poller

        self.sequencer = TransactionSequencer(
            store=self.store,
            quote_store=self.quote_store,
            liveness=self.liveness,
            transactions=transactions,
            wallet=wallet,
            router=router,
            telemetry=self.telemetry,
            poller=self.poller,
            origin=self.settings.transaction_origin,
            default_slippage=self.settings.default_slippage,
            gas_limit_multiplier=self.settings.gas_limit_multiplier,
        )

    @property
    def state(self) -> OrchestrationState:
        return self.store.state

    # ======================
    # Flow
    # ======================

    async def fetch_quotes(self, input_value: Union[str, Decimal], max_slippage: Optional[Decimal] = None) -> None:
        if max_slippage is None:
            max_slippage = self.settings.default_slippage
        await self.quotes.fetch_quotes(input_value, max_slippage)

    async def refresh_quotes(self) -> None:
        await self.quotes.refresh_quotes()

    async def execute_swap(self) -> None:
        await self.sequencer.execute_swap()

    # ======================
    # Selections and overrides
    # ======================

    def set_from_token(self, token: Optional[TokenInfo]) -> None:
        self.store.dispatch(FromTokenSet(token=token))

    def set_to_token(self, token: Optional[TokenInfo]) -> None:
        self.store.dispatch(ToTokenSet(token=token))

    def set_balance_error(self, balance_error: bool) -> None:
        self.store.dispatch(BalanceErrorSet(balance_error=balance_error))

    def set_swaps_tokens(self, tokens: Iterable[TokenInfo]) -> None:
        self.quote_store.set_swaps_tokens(tokens)

    def select_quote(self, agg_id: Optional[str]) -> None:
        """Select an aggregator's quote; raises InvalidQuoteSelection if unknown."""
        self.quote_store.select_quote(agg_id)

    def set_custom_gas_price(self, price: Optional[str]) -> None:
        """Override the trade gas price (hex wei); None removes the override."""
        self.store.custom_gas.price = price

    def set_custom_gas_limit(self, limit: Optional[str]) -> None:
        """Override the trade gas limit (hex); None removes the override."""
        self.store.custom_gas.limit = limit

    def set_custom_approve_tx_data(self, data: Optional[str]) -> None:
        self.quote_store.custom_approve_tx_data = data

    def used_quote(self) -> Optional[Quote]:
        return self.quote_store.used_quote()

    def is_custom_gas_price_safe(self) -> bool:
        """Whether the custom gas price is above the network's average price.

        True without a custom price. False while no estimates are cached,
        since the price cannot be judged.
        """
        custom_price = self.store.custom_gas.price
        if not custom_price:
            return True
        estimates = self.store.custom_gas.price_estimates
        if estimates is None:
            return False
        return hex_wei_to_dec_gwei(custom_price) > estimates.average

    # ======================
    # Resets
    # ======================

    def navigate_back_to_build_quote(self) -> None:
        """Drop this cycle's results and return to the build-quote screen."""
        self._reset_post_fetch()
        self._router.navigate(Route.BUILD_QUOTE.value)

    def prepare_for_retry_get_quotes(self) -> None:
        """Drop this cycle's results; the caller stays on its screen and refetches."""
        self._reset_post_fetch()

    async def prepare_to_leave_swaps(self) -> None:
        """Clear custom gas, the orchestration state and the persisted swaps state."""
        self.poller.stop()
        self.store.custom_gas.reset()
        self.store.dispatch(StateCleared())
        self.quote_store.clear()
        await self._wallet.reset_swaps_state()
        logger.debug("Swaps state cleared")

    def _reset_post_fetch(self) -> None:
        self.poller.stop()
        self.quote_store.reset_post_fetch()
        self.store.dispatch(PostFetchReset())

    async def close(self) -> None:
        """Stop polling, let pending token registrations finish and release the store."""
        self.poller.stop()
        await self.quotes.wait_for_background_tasks()
        await self.kv_store.close()
