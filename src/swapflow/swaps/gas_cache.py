"""Gas price cache.

Layered read: in-memory state, then the persisted store, then the gas price
service. The TTL is checked once, against the last retrieval time taken from
memory or, after a restart, from the persisted store.
"""

import logging
import time
from typing import Callable, Optional

from swapflow.storage.kv_store import KeyValueStore
from swapflow.swaps.constants import (
    GAS_PRICE_ESTIMATES_KEY,
    GAS_PRICE_ESTIMATES_LAST_RETRIEVED_KEY,
)
from swapflow.swaps.interfaces import SwapsApi
from swapflow.swaps.models import GasPriceEstimates
from swapflow.swaps.state import CustomGasState

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 30000


def now_ms() -> int:
    return int(time.time() * 1000)


class GasPriceCache:
    """Time-bounded cache of network gas price estimates."""

    def __init__(
        self,
        api: SwapsApi,
        store: KeyValueStore,
        custom_gas: CustomGasState,
        ttl_ms: int = DEFAULT_TTL_MS,
        clock: Callable[[], int] = now_ms,
    ):
        self._api = api
        self._store = store
        self._custom_gas = custom_gas
        self.ttl_ms = ttl_ms
        self._clock = clock

    async def get_gas_price_estimates(self) -> GasPriceEstimates:
        """Return gas price estimates, fetching fresh ones when the cache is stale."""
        self._custom_gas.loading = True
        try:
            last_retrieved = await self._last_retrieved()

            if self._clock() - last_retrieved > self.ttl_ms:
                estimates = await self._fetch_and_persist()
            else:
                estimates = await self._load_cached_estimates()
                if estimates is None:
                    logger.debug("Gas price snapshot missing, fetching")
                    estimates = await self._fetch_and_persist()

            self._custom_gas.price_estimates = estimates
        finally:
            self._custom_gas.loading = False

        return estimates

    async def _last_retrieved(self) -> int:
        if self._custom_gas.price_estimates_last_retrieved:
            return self._custom_gas.price_estimates_last_retrieved

        persisted = await self._store.load(GAS_PRICE_ESTIMATES_LAST_RETRIEVED_KEY)
        try:
            return int(persisted or 0)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid persisted gas price timestamp: {persisted!r}")
            return 0

    async def _load_cached_estimates(self) -> Optional[GasPriceEstimates]:
        cached = await self._store.load(GAS_PRICE_ESTIMATES_KEY)
        if not cached:
            return None
        try:
            return GasPriceEstimates.model_validate(cached)
        except ValueError as e:
            logger.warning(f"Ignoring invalid persisted gas price estimates: {e}")
            return None

    async def _fetch_and_persist(self) -> GasPriceEstimates:
        estimates = await self._api.fetch_gas_prices()

        retrieved_at = self._clock()
        await self._store.save(estimates.to_storage(), GAS_PRICE_ESTIMATES_KEY)
        await self._store.save(retrieved_at, GAS_PRICE_ESTIMATES_LAST_RETRIEVED_KEY)
        self._custom_gas.price_estimates_last_retrieved = retrieved_at

        logger.info(
            f"Fetched gas prices: safeLow={estimates.safe_low} average={estimates.average} "
            f"fast={estimates.fast} gwei"
        )
        return estimates
