"""Transaction sequencing for an accepted quote.

The approval transaction (when the quote needs one) is submitted and sent
before the trade transaction is even created. A failed approval therefore
never leads to a trade. An approval that went through is not reverted when
the trade fails afterwards.
"""

import logging
from decimal import Decimal
from typing import Any, Optional

from swapflow.conversions import (
    calc_gas_total,
    calc_token_amount,
    dec_eth_to_converted_currency,
    format_currency_amount,
    hex_to_int,
    hex_wei_to_dec_gwei,
    to_hex,
    to_precision,
    value_from_wei_hex,
)
from swapflow.swaps.constants import EVENT_SWAP_STARTED, SWAP, SWAP_APPROVAL, Route
from swapflow.swaps.errors import SwapSubmissionFailed
from swapflow.swaps.gas import (
    GAS_LIMIT_MULTIPLIER,
    GasParameters,
    apply_gas_parameters,
    build_approve_tx_params,
    compute_gas_parameters,
)
from swapflow.swaps.interfaces import Router, TransactionController, WalletState
from swapflow.swaps.liveness import LivenessGate
from swapflow.swaps.models import Quote, TokenInfo, TransactionMeta
from swapflow.swaps.polling import QuotePoller
from swapflow.swaps.quote_store import QuoteStore
from swapflow.swaps.state import (
    ApprovalSubmitted,
    SwapFailed,
    SwapStarted,
    SwapsStore,
    TradeSubmitted,
)
from swapflow.swaps.telemetry import TelemetryEmitter

logger = logging.getLogger(__name__)


class TransactionSequencer:
    """Submits the approval and trade transactions of the used quote."""

    def __init__(
        self,
        store: SwapsStore,
        quote_store: QuoteStore,
        liveness: LivenessGate,
        transactions: TransactionController,
        wallet: WalletState,
        router: Router,
        telemetry: TelemetryEmitter,
        poller: Optional[QuotePoller] = None,
        origin: str = "metamask",
        default_slippage: Decimal = Decimal("2"),
        gas_limit_multiplier: Decimal = GAS_LIMIT_MULTIPLIER,
    ):
        self._store = store
        self._quote_store = quote_store
        self._liveness = liveness
        self._transactions = transactions
        self._wallet = wallet
        self._router = router
        self._telemetry = telemetry
        self.poller = poller
        self.origin = origin
        self.default_slippage = default_slippage
        self.gas_limit_multiplier = gas_limit_multiplier

    async def execute_swap(self) -> None:
        """
        Submit the swap for the used quote.

        Ends on the maintenance screen (backend not live), the error screen
        (no quote, or a transaction step failed) or with the trade sent and
        the wallet state refreshed.
        """
        if not await self._liveness.check_liveness():
            self._router.navigate(Route.SWAPS_MAINTENANCE.value)
            return

        self._store.dispatch(SwapStarted())
        if self.poller is not None:
            self.poller.stop()
        self._router.navigate(Route.AWAITING_SWAP.value)

        try:
            await self._submit()
        except SwapSubmissionFailed as e:
            approve_tx_id = self._store.state.approve_tx_id
            if e.step == "trade" and approve_tx_id is not None:
                logger.warning(f"Approval transaction {approve_tx_id} was sent but the trade was not")
            self._fail(e)
            return
        except Exception as e:
            self._fail(SwapSubmissionFailed("swap", f"{type(e).__name__}: {e}"))
            return

        try:
            await self._wallet.force_update()
        except Exception as e:
            logger.error(f"Trade sent but wallet state refresh failed: {e}")

    def _fail(self, error: SwapSubmissionFailed) -> None:
        logger.error(f"Swap failed: {error}")
        self._store.dispatch(SwapFailed(error_key=error.error_key))
        self._router.navigate(Route.SWAPS_ERROR.value)

    async def _submit(self) -> None:
        quote = self._quote_store.used_quote()
        params = self._quote_store.fetch_params
        metadata = self._quote_store.fetch_metadata
        if quote is None or params is None or metadata is None:
            raise SwapSubmissionFailed("trade", "no quote to execute")

        custom_gas = self._store.custom_gas
        gas_params = compute_gas_parameters(
            quote, custom_gas, custom_gas.fast_price_hex_wei, self.gas_limit_multiplier
        )
        apply_gas_parameters(quote, gas_params)

        source_token = metadata.source_token_info
        destination_token = metadata.destination_token_info
        swap_meta_data = self.build_swap_meta_data(
            quote, gas_params, source_token, destination_token, params.value, params.slippage
        )
        self._telemetry.emit(EVENT_SWAP_STARTED, swap_meta_data)

        approve_tx_meta = None
        approve_tx_params = build_approve_tx_params(
            quote, custom_gas, self._quote_store.custom_approve_tx_data
        )
        if approve_tx_params is not None:
            approve_tx_meta = await self._submit_approval(approve_tx_params, source_token)

        trade_fields = {
            "source_token_symbol": source_token.symbol,
            "destination_token_symbol": destination_token.symbol,
            "transaction_category": SWAP,
            "destination_token_decimals": destination_token.decimals,
            "destination_token_address": destination_token.address,
            "swap_meta_data": swap_meta_data,
            "swap_token_value": params.value,
            "approval_tx_id": approve_tx_meta.id if approve_tx_meta else None,
        }
        await self._submit_trade(quote.trade.to_dict(), trade_fields)

    async def _submit_approval(self, tx_params: dict, source_token: TokenInfo) -> TransactionMeta:
        try:
            tx_meta = await self._transactions.add_unapproved_transaction(tx_params, self.origin)
            self._store.dispatch(ApprovalSubmitted(tx_id=tx_meta.id))
            tx_meta = await self._transactions.update_transaction(
                tx_meta.annotate(
                    transaction_category=SWAP_APPROVAL,
                    source_token_symbol=source_token.symbol,
                )
            )
            await self._transactions.update_and_approve_transaction(tx_meta)
        except Exception as e:
            raise SwapSubmissionFailed("approval", f"{type(e).__name__}: {e}") from e

        logger.info(f"Approval transaction {tx_meta.id} sent")
        return tx_meta

    async def _submit_trade(self, tx_params: dict, fields: dict[str, Any]) -> TransactionMeta:
        try:
            tx_meta = await self._transactions.add_unapproved_transaction(tx_params, self.origin)
            self._store.dispatch(TradeSubmitted(tx_id=tx_meta.id))
            tx_meta = await self._transactions.update_transaction(tx_meta.annotate(**fields))
            await self._transactions.update_and_approve_transaction(tx_meta)
        except Exception as e:
            raise SwapSubmissionFailed("trade", f"{type(e).__name__}: {e}") from e

        logger.info(f"Trade transaction {tx_meta.id} sent")
        return tx_meta

    def build_swap_meta_data(
        self,
        quote: Quote,
        gas_params: GasParameters,
        source_token: TokenInfo,
        destination_token: TokenInfo,
        swap_token_value: str,
        slippage: Decimal,
    ) -> dict[str, Any]:
        """Summary of the swap attached to telemetry and to the trade transaction."""
        conversion_rate = self._wallet.get_conversion_rate()
        top_quote = self._quote_store.top_quote()
        top_aggregator = top_quote.aggregator if top_quote else None
        other_quote_selected = quote.aggregator != top_aggregator

        destination_value = to_precision(
            calc_token_amount(quote.destination_amount, destination_token.decimals or 18), 8
        )

        # Fee estimate covers the trade (net of refund) plus the approval
        trade_gas = quote.gas_estimate_with_refund or to_hex(quote.average_gas or 0)
        approval_gas = quote.approval_needed.gas if quote.approval_needed else None
        total_gas = to_hex(hex_to_int(trade_gas) + hex_to_int(approval_gas))
        gas_fees = value_from_wei_hex(
            calc_gas_total(total_gas, gas_params.gas_price),
            conversion_rate=conversion_rate,
            number_of_decimals=6,
        )

        average_savings = None
        if quote.is_best_quote and quote.savings is not None:
            average_savings = str(dec_eth_to_converted_currency(quote.savings.total, conversion_rate))

        return {
            "token_from": source_token.symbol,
            "token_from_amount": str(swap_token_value),
            "token_to": destination_token.symbol,
            "token_to_amount": str(destination_value),
            "slippage": str(slippage),
            "custom_slippage": Decimal(str(slippage)) != self.default_slippage,
            "best_quote_source": top_aggregator,
            "available_quotes": len(self._quote_store.quote_set),
            "other_quote_selected": other_quote_selected,
            "other_quote_selected_source": quote.aggregator if other_quote_selected else "",
            "gas_fees": format_currency_amount(gas_fees),
            "estimated_gas": str(gas_params.estimated_gas_limit),
            "suggested_gas_price": str(hex_wei_to_dec_gwei(self._store.custom_gas.fast_price_hex_wei)),
            "used_gas_price": str(hex_wei_to_dec_gwei(gas_params.gas_price)),
            "average_savings": average_savings,
        }
