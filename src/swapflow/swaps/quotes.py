"""Quote fetch orchestration.

One call to ``fetch_quotes`` is one fetch cycle:

1. liveness gate (maintenance screen when the feature is off)
2. resolve the source and destination tokens
3. mark the cycle as fetching and show the loading screen
4. register tokens the wallet cannot price yet
5. fetch quotes and refresh the gas price concurrently
6. store the quotes (or record why there are none)
7. clear the fetching flag, whatever happened

Each cycle has its own fetch id. Once a newer cycle starts, or the user
backs out, results of the older cycle are dropped.
"""

import asyncio
import itertools
import logging
from decimal import Decimal
from typing import Callable, Iterator, Optional, Union

from swapflow.conversions import calc_token_amount, hex_to_int, value_from_wei_hex
from swapflow.swaps.constants import (
    ETH_SWAPS_TOKEN_OBJECT,
    EVENT_NO_QUOTES_AVAILABLE,
    EVENT_QUOTES_RECEIVED,
    EVENT_QUOTES_REQUESTED,
    Route,
    RouteState,
)
from swapflow.swaps.errors import QuoteFetchFailed, QuotesUnavailable
from swapflow.swaps.gas import calculate_gas_estimate_with_refund
from swapflow.swaps.gas_cache import GasPriceCache, now_ms
from swapflow.swaps.interfaces import Router, SwapsApi, TokenRegistry, TransactionController, WalletState
from swapflow.swaps.liveness import LivenessGate
from swapflow.swaps.models import Account, FetchMetadata, QuoteFetchResult, SwapRequestParams, TokenInfo
from swapflow.swaps.polling import QuotePoller
from swapflow.swaps.quote_store import QuoteStore
from swapflow.swaps.state import (
    FetchFinished,
    FetchStarted,
    FromTokenSet,
    QuotesFailed,
    QuotesReceived,
    QuotesRequested,
    SwapsStore,
)
from swapflow.swaps.telemetry import TelemetryEmitter

logger = logging.getLogger(__name__)

DEFAULT_SLIPPAGE = Decimal("2")


class QuoteFetchOrchestrator:
    """Drives quote fetch cycles and keeps the quote store current."""

    def __init__(
        self,
        store: SwapsStore,
        quote_store: QuoteStore,
        liveness: LivenessGate,
        gas_cache: GasPriceCache,
        api: SwapsApi,
        wallet: WalletState,
        token_registry: TokenRegistry,
        transactions: TransactionController,
        router: Router,
        telemetry: TelemetryEmitter,
        poller: Optional[QuotePoller] = None,
        native_symbol: str = "ETH",
        default_slippage: Decimal = DEFAULT_SLIPPAGE,
        clock: Callable[[], int] = now_ms,
    ):
        self._store = store
        self._quote_store = quote_store
        self._liveness = liveness
        self._gas_cache = gas_cache
        self._api = api
        self._wallet = wallet
        self._token_registry = token_registry
        self._transactions = transactions
        self._router = router
        self._telemetry = telemetry
        self.poller = poller
        self.native_symbol = native_symbol
        self.default_slippage = default_slippage
        self._clock = clock
        self._fetch_ids: Iterator[int] = itertools.count(1)
        self._background_tasks: set[asyncio.Task] = set()

    async def fetch_quotes(self, input_value: Union[str, Decimal], max_slippage: Decimal) -> None:
        """
        Run one quote fetch cycle.

        Args:
            input_value: Amount of the source token to swap, in token units
            max_slippage: Slippage tolerance in percent

        Outcome is reported through the quote store and the orchestration
        state; nothing is returned or raised for collaborator failures.
        """
        if not await self._liveness.check_liveness():
            self._router.navigate(Route.SWAPS_MAINTENANCE.value)
            return

        state = self._store.state
        account = self._wallet.get_selected_account()
        balance_error = state.balance_error
        from_token = self._resolve_from_token(account)
        to_token = self._resolve_to_token()

        fetch_id = next(self._fetch_ids)
        self._store.dispatch(FetchStarted(fetch_id=fetch_id))
        self._router.navigate(Route.LOADING_QUOTES.value)
        logger.info(
            f"Fetch {fetch_id}: quotes for {input_value} {from_token.symbol} -> {to_token.symbol} "
            f"(slippage {max_slippage}%)"
        )

        try:
            await self._run_cycle(
                fetch_id, str(input_value), Decimal(str(max_slippage)),
                account, balance_error, from_token, to_token,
            )
        except QuotesUnavailable as e:
            logger.warning(f"Fetch {fetch_id}: {e}")
            self._store.dispatch(QuotesFailed(fetch_id=fetch_id, error_key=e.error_key))
            self._emit_for(fetch_id, EVENT_NO_QUOTES_AVAILABLE, self._request_properties(
                from_token, to_token, input_value, max_slippage, balance_error,
            ))
        except Exception as e:
            error = QuoteFetchFailed(f"{type(e).__name__}: {e}")
            logger.error(f"Fetch {fetch_id} failed: {error}")
            self._store.dispatch(QuotesFailed(fetch_id=fetch_id, error_key=error.error_key))
        finally:
            self._store.dispatch(FetchFinished(fetch_id=fetch_id))

    async def _run_cycle(
        self,
        fetch_id: int,
        input_value: str,
        max_slippage: Decimal,
        account: Account,
        balance_error: bool,
        from_token: TokenInfo,
        to_token: TokenInfo,
    ) -> None:
        destination_token_added = await self._register_unpriced_tokens(from_token, to_token)
        if not self._store.is_active_fetch(fetch_id):
            logger.info(f"Fetch {fetch_id} was superseded during token registration")
            return

        source_token_info = self._quote_store.find_swaps_token(from_token.address) or from_token
        destination_token_info = self._quote_store.find_swaps_token(to_token.address) or to_token

        self._store.dispatch(FromTokenSet(token=from_token))
        properties = self._request_properties(from_token, to_token, input_value, max_slippage, balance_error)
        properties["anonymized_data"] = True
        self._emit_for(fetch_id, EVENT_QUOTES_REQUESTED, properties)

        fetch_start_time = self._clock()
        self._store.dispatch(QuotesRequested(fetch_id=fetch_id, start_time=fetch_start_time))

        params = SwapRequestParams(
            slippage=max_slippage,
            source_token=from_token.address,
            destination_token=to_token.address,
            value=input_value,
            from_address=account.address,
            destination_token_added_for_swap=destination_token_added,
            balance_error=balance_error,
            source_decimals=from_token.decimals,
        )
        metadata = FetchMetadata(
            source_token_info=source_token_info,
            destination_token_info=destination_token_info,
            account_balance=account.balance,
        )
        self._quote_store.set_fetch_params(params, metadata)

        # Both must settle before the first failure is raised
        results = await asyncio.gather(
            self._api.fetch_quotes(params, metadata),
            self._refresh_gas_price(fetch_id),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        fetch_result: QuoteFetchResult = results[0]

        if not self._store.is_active_fetch(fetch_id):
            logger.info(f"Fetch {fetch_id} was superseded, discarding {len(fetch_result.quotes)} quote(s)")
            return

        if not fetch_result.quotes:
            raise QuotesUnavailable(f"No quotes available for {from_token.symbol} -> {to_token.symbol}")

        selected_agg_id = fetch_result.selected_agg_id
        if selected_agg_id not in fetch_result.quotes:
            raise QuoteFetchFailed(f"Selected aggregator '{selected_agg_id}' missing from quotes")

        self._quote_store.set_quotes(fetch_result.quotes, selected_agg_id, fetched_at=self._clock())
        self._store.dispatch(QuotesReceived(fetch_id=fetch_id))

        selected_quote = fetch_result.quotes[selected_agg_id]
        properties = self._request_properties(from_token, to_token, input_value, max_slippage, balance_error)
        properties.update(
            token_to_amount=str(
                calc_token_amount(selected_quote.destination_amount, selected_quote.decimals or 18)
            ),
            response_time=self._clock() - fetch_start_time,
            best_quote_source=selected_quote.aggregator,
            available_quotes=len(fetch_result.quotes),
            anonymized_data=True,
        )
        self._emit_for(fetch_id, EVENT_QUOTES_RECEIVED, properties)
        logger.info(
            f"Fetch {fetch_id}: {len(fetch_result.quotes)} quote(s), best from {selected_quote.aggregator}"
        )

        await self._set_initial_gas_estimate(fetch_id, selected_agg_id)

        if self.poller is not None and self._store.is_active_fetch(fetch_id):
            self.poller.start()

    async def refresh_quotes(self) -> None:
        """Re-request quotes with the current request parameters.

        Used by the quote poller; keeps the user's selection when the
        aggregator is still quoting. Skipped while a full cycle is running or
        after the swap has been submitted.
        """
        state = self._store.state
        params = self._quote_store.fetch_params
        metadata = self._quote_store.fetch_metadata
        if params is None or metadata is None:
            return
        if state.fetching_quotes or state.route_state == RouteState.AWAITING:
            return

        fetch_result = await self._api.fetch_quotes(params, metadata)
        if self._store.state.fetching_quotes or self._quote_store.fetch_params is not params:
            logger.debug("Discarding refreshed quotes, request changed meanwhile")
            return
        if not fetch_result.quotes:
            logger.warning("Quote refresh returned no quotes, keeping previous quotes")
            return

        self._quote_store.set_quotes(
            fetch_result.quotes,
            fetch_result.selected_agg_id,
            fetched_at=self._clock(),
            preserve_selection=True,
        )
        logger.info(f"Refreshed {len(fetch_result.quotes)} quote(s)")

    def _resolve_from_token(self, account: Account) -> TokenInfo:
        explicit = self._store.state.from_token
        if explicit is not None:
            return explicit

        metadata = self._quote_store.fetch_metadata
        previous = metadata.source_token_info if metadata else None
        if previous is not None and previous.symbol == self.native_symbol:
            return self._native_token(account)
        return previous or TokenInfo()

    def _resolve_to_token(self) -> TokenInfo:
        explicit = self._store.state.to_token
        if explicit is not None:
            return explicit
        metadata = self._quote_store.fetch_metadata
        return (metadata.destination_token_info if metadata else None) or TokenInfo()

    def _native_token(self, account: Account) -> TokenInfo:
        return TokenInfo(
            **ETH_SWAPS_TOKEN_OBJECT,
            balance=str(hex_to_int(account.balance)),
            string=str(value_from_wei_hex(account.balance, number_of_decimals=4)),
        )

    async def _register_unpriced_tokens(self, from_token: TokenInfo, to_token: TokenInfo) -> bool:
        """Track tokens the wallet has no exchange rate for.

        The destination token is registered before quotes are requested so
        returned amounts can be priced. The source token is registered in the
        background, and only when the account holds some of it.

        Returns:
            Whether the destination token was added for this swap
        """
        rates = self._wallet.get_token_exchange_rates()

        destination_token_added = False
        if to_token.symbol != self.native_symbol and not rates.get(to_token.address):
            destination_token_added = True
            await self._token_registry.add_token(
                to_token.address, to_token.symbol, to_token.decimals, to_token.icon_url, True
            )

        if (
            from_token.symbol != self.native_symbol
            and not rates.get(from_token.address)
            and hex_to_int(from_token.balance) > 0
        ):
            self._spawn(
                self._token_registry.add_token(
                    from_token.address, from_token.symbol, from_token.decimals, from_token.icon_url, True
                ),
                f"register source token {from_token.symbol}",
            )

        return destination_token_added

    async def _refresh_gas_price(self, fetch_id: int) -> None:
        estimates = await self._gas_cache.get_gas_price_estimates()
        if self._store.is_active_fetch(fetch_id):
            self._store.custom_gas.price = estimates.fast_hex_wei

    async def _set_initial_gas_estimate(self, fetch_id: int, agg_id: str) -> None:
        quote = self._quote_store.quote_set.quotes.get(agg_id)
        if quote is None:
            return

        result = await self._transactions.estimate_gas(quote.trade.to_dict())
        if not result.gas_limit or result.simulation_fails:
            logger.debug(f"No usable gas estimate for {agg_id} (simulation fails: {result.simulation_fails})")
            return
        if not self._store.is_active_fetch(fetch_id):
            return

        self._quote_store.replace_quote(
            quote.with_updates(
                gas_estimate=result.gas_limit,
                gas_estimate_with_refund=calculate_gas_estimate_with_refund(
                    quote.max_gas, quote.estimated_refund, result.gas_limit
                ),
            )
        )

    def _request_properties(
        self,
        from_token: TokenInfo,
        to_token: TokenInfo,
        input_value: Union[str, Decimal],
        max_slippage: Decimal,
        balance_error: bool,
    ) -> dict:
        slippage = Decimal(str(max_slippage))
        return {
            "token_from": from_token.symbol,
            "token_from_amount": str(input_value),
            "token_to": to_token.symbol,
            "request_type": "Quote" if balance_error else "Order",
            "slippage": str(slippage),
            "custom_slippage": slippage != self.default_slippage,
        }

    def _emit_for(self, fetch_id: int, event: str, properties: dict) -> None:
        if self._store.is_active_fetch(fetch_id):
            self._telemetry.emit(event, properties)

    def _spawn(self, coro, description: str) -> None:
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)

        def _done(finished: asyncio.Task) -> None:
            self._background_tasks.discard(finished)
            if not finished.cancelled() and finished.exception() is not None:
                logger.warning(f"Failed to {description}: {finished.exception()}")

        task.add_done_callback(_done)

    async def wait_for_background_tasks(self) -> None:
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
