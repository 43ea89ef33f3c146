"""Liveness gate: is the swaps backend operational?"""

import logging

from swapflow.swaps.errors import LivenessCheckFailed
from swapflow.swaps.interfaces import SwapsApi
from swapflow.swaps.state import LivenessChecked, SwapsStore

logger = logging.getLogger(__name__)


class LivenessGate:
    """Checks the swaps feature flag, failing closed."""

    def __init__(self, api: SwapsApi, store: SwapsStore):
        self._api = api
        self._store = store

    async def check_liveness(self) -> bool:
        """
        Read the liveness endpoint and record the result.

        Any failure reading the endpoint is logged and reported as not live.
        """
        is_live = False
        try:
            is_live = await self._fetch()
        except LivenessCheckFailed as e:
            logger.error(f"Failed to fetch swaps liveness, defaulting to false: {e}")

        self._store.dispatch(LivenessChecked(is_live=is_live))
        if not is_live:
            logger.warning("Swaps feature is not live")
        return is_live

    async def _fetch(self) -> bool:
        try:
            return await self._api.fetch_liveness() is True
        except Exception as e:
            raise LivenessCheckFailed(f"{type(e).__name__}: {e}") from e
