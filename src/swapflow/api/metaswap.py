"""HTTP client of the swaps backend.

Reads the feature flag, the gas price estimates and the aggregated trades.
It never signs or broadcasts anything: trades come back as unsigned
transaction parameters for the wallet's transaction subsystem.
"""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from swapflow.api.contracts import (
    FeatureFlagResponse,
    GasPricesResponse,
    TradeResponse,
)
from swapflow.config import Settings, get_settings
from swapflow.conversions import calc_token_value
from swapflow.swaps.interfaces import SwapsApi
from swapflow.swaps.models import (
    FetchMetadata,
    GasPriceEstimates,
    Quote,
    QuoteFetchResult,
    SwapRequestParams,
    TxParams,
)

logger = logging.getLogger(__name__)


class MetaSwapClient(SwapsApi):
    """Swaps backend over HTTP.

    The ``httpx.AsyncClient`` is created on first use unless one is
    injected; call ``close()`` when done.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.settings.request_timeout)
        return self._http_client

    async def _get_json(self, url: str, params: Optional[dict] = None):
        client = await self._get_client()
        response = await client.get(url, params=params)
        response.raise_for_status()
        return response.json()

    async def fetch_liveness(self) -> bool:
        data = await self._get_json(f"{self.settings.swaps_api_url}/featureFlag")
        return FeatureFlagResponse.model_validate(data).active

    async def fetch_gas_prices(self) -> GasPriceEstimates:
        data = await self._get_json(f"{self.settings.gas_api_url}/gasPrices")
        prices = GasPricesResponse.model_validate(data)
        return GasPriceEstimates(
            safe_low=prices.safe_gas_price,
            average=prices.propose_gas_price,
            fast=prices.fast_gas_price,
        )

    async def fetch_quotes(
        self,
        params: SwapRequestParams,
        metadata: FetchMetadata,
    ) -> QuoteFetchResult:
        """Request trades from all aggregators.

        Args:
            params: Request parameters of the fetch cycle
            metadata: Token metadata; supplies decimals when the request
                does not carry them

        Returns:
            Quotes keyed by aggregator and the aggregator with the largest
            destination amount as the selected one
        """
        source_decimals = params.source_decimals
        if source_decimals is None:
            source_decimals = metadata.source_token_info.decimals or 18
        destination_decimals = metadata.destination_token_info.decimals

        query = {
            "sourceToken": params.source_token,
            "destinationToken": params.destination_token,
            "sourceAmount": str(calc_token_value(params.value, source_decimals)),
            "slippage": str(params.slippage),
            "timeout": str(self.settings.quote_timeout_ms),
            "walletAddress": params.from_address,
        }
        data = await self._get_json(f"{self.settings.swaps_api_url}/trades", params=query)
        if not isinstance(data, list):
            raise ValueError(f"Unexpected trades response: {type(data).__name__}")

        quotes: dict[str, Quote] = {}
        for item in data:
            try:
                trade = TradeResponse.model_validate(item)
            except ValidationError as e:
                logger.warning(f"Skipping malformed trade: {e}")
                continue
            if trade.error or trade.trade is None or trade.destination_amount is None:
                logger.debug(f"Aggregator {trade.aggregator} returned no trade: {trade.error}")
                continue
            quotes[trade.aggregator] = self._to_quote(trade, destination_decimals)

        if not quotes:
            logger.info(f"No trades for {params.source_token} -> {params.destination_token}")
            return QuoteFetchResult(quotes={})

        top_agg_id = max(quotes, key=lambda agg_id: int(quotes[agg_id].destination_amount))
        quotes[top_agg_id].is_best_quote = True
        logger.info(f"Received {len(quotes)} trade(s), best: {top_agg_id}")
        return QuoteFetchResult(quotes=quotes, selected_agg_id=top_agg_id)

    @staticmethod
    def _to_tx_params(tx) -> TxParams:
        return TxParams(
            to=tx.to,
            data=tx.data,
            value=tx.value,
            from_address=tx.from_address,
            gas=tx.gas,
            gas_price=tx.gas_price,
        )

    def _to_quote(self, trade: TradeResponse, destination_decimals: Optional[int]) -> Quote:
        return Quote(
            aggregator=trade.aggregator,
            trade=self._to_tx_params(trade.trade),
            destination_amount=trade.destination_amount,
            approval_needed=(
                self._to_tx_params(trade.approval_needed) if trade.approval_needed else None
            ),
            source_amount=trade.source_amount,
            decimals=destination_decimals,
            average_gas=trade.average_gas,
            max_gas=trade.max_gas,
            estimated_refund=trade.estimated_refund,
            gas_estimate=trade.gas_estimate,
        )

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
