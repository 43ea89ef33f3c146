"""Tests for the gas price cache."""

from decimal import Decimal

import pytest

from conftest import FakeClock, FakeSwapsApi

from swapflow.storage.kv_store import MemoryKeyValueStore
from swapflow.swaps.constants import GAS_PRICE_ESTIMATES_KEY, GAS_PRICE_ESTIMATES_LAST_RETRIEVED_KEY
from swapflow.swaps.gas_cache import GasPriceCache
from swapflow.swaps.state import CustomGasState


@pytest.fixture
def custom_gas() -> CustomGasState:
    return CustomGasState()


@pytest.fixture
def cache_clock() -> FakeClock:
    return FakeClock(now=0)


@pytest.fixture
def cache(api: FakeSwapsApi, kv_store: MemoryKeyValueStore, custom_gas, cache_clock) -> GasPriceCache:
    return GasPriceCache(api, kv_store, custom_gas, ttl_ms=30000, clock=cache_clock)


class TestGasPriceCache:
    """Tests for GasPriceCache."""

    @pytest.mark.asyncio
    async def test_first_read_fetches_and_persists(self, cache, api, kv_store, custom_gas):
        """Test an empty cache fetches and persists estimates and timestamp."""
        estimates = await cache.get_gas_price_estimates()

        assert api.gas_calls == 1
        assert estimates.fast == Decimal("30")
        assert custom_gas.price_estimates == estimates
        assert await kv_store.load(GAS_PRICE_ESTIMATES_KEY) == {
            "safeLow": "10",
            "average": "20",
            "fast": "30",
        }
        assert GAS_PRICE_ESTIMATES_LAST_RETRIEVED_KEY in kv_store

    @pytest.mark.asyncio
    async def test_read_within_ttl_uses_cache(self, cache, api, cache_clock):
        """Test a read 29s after a fetch does not fetch again."""
        cache_clock.now = 1
        await cache.get_gas_price_estimates()

        cache_clock.now = 29_001
        await cache.get_gas_price_estimates()

        assert api.gas_calls == 1

    @pytest.mark.asyncio
    async def test_read_after_ttl_fetches(self, cache, api, cache_clock):
        """Test a read 31s after a fetch fetches again."""
        cache_clock.now = 1
        await cache.get_gas_price_estimates()

        cache_clock.now = 31_001
        await cache.get_gas_price_estimates()

        assert api.gas_calls == 2

    @pytest.mark.asyncio
    async def test_persisted_timestamp_used_after_restart(self, api, kv_store, cache_clock):
        """Test a fresh in-memory state falls back to the persisted cache."""
        cache_clock.now = 50_000
        await GasPriceCache(api, kv_store, CustomGasState(), clock=cache_clock).get_gas_price_estimates()

        cache_clock.now = 60_000
        restarted_gas = CustomGasState()
        estimates = await GasPriceCache(
            api, kv_store, restarted_gas, clock=cache_clock
        ).get_gas_price_estimates()

        assert api.gas_calls == 1
        assert estimates.average == Decimal("20")
        assert restarted_gas.price_estimates == estimates

    @pytest.mark.asyncio
    async def test_missing_snapshot_fetches(self, cache, api, kv_store, cache_clock):
        """Test a fresh timestamp without a snapshot still fetches."""
        cache_clock.now = 10_000
        await kv_store.save(5_000, GAS_PRICE_ESTIMATES_LAST_RETRIEVED_KEY)

        await cache.get_gas_price_estimates()

        assert api.gas_calls == 1

    @pytest.mark.asyncio
    async def test_loading_flag_reset(self, cache, custom_gas):
        """Test the loading flag ends false after a read."""
        await cache.get_gas_price_estimates()

        assert custom_gas.loading is False

    @pytest.mark.asyncio
    async def test_loading_while_fetching(self, cache, api, custom_gas):
        """Test the loading flag is set while the gas price service is called."""
        fetch = api.fetch_gas_prices
        seen = []

        async def recording_fetch():
            seen.append(custom_gas.loading)
            return await fetch()

        api.fetch_gas_prices = recording_fetch

        await cache.get_gas_price_estimates()

        assert seen == [True]
        assert custom_gas.loading is False

    @pytest.mark.asyncio
    async def test_loading_while_reading_cache(self, cache, api, kv_store, custom_gas, cache_clock):
        """Test the loading flag is set while a cache hit reads the persisted snapshot."""
        cache_clock.now = 1
        await cache.get_gas_price_estimates()
        cache_clock.now = 10_000
        load = kv_store.load
        seen = []

        async def recording_load(key):
            seen.append(custom_gas.loading)
            return await load(key)

        kv_store.load = recording_load

        await cache.get_gas_price_estimates()

        assert api.gas_calls == 1
        assert seen == [True]
        assert custom_gas.loading is False

    @pytest.mark.asyncio
    async def test_loading_flag_reset_on_failure(self, cache, api, custom_gas):
        """Test a failed fetch propagates and still resets the loading flag."""
        api.gas_error = RuntimeError("gas service down")

        with pytest.raises(RuntimeError):
            await cache.get_gas_price_estimates()

        assert custom_gas.loading is False
        assert custom_gas.price_estimates is None

    @pytest.mark.asyncio
    async def test_fast_price_hex_wei(self, cache, custom_gas):
        """Test the fast estimate is exposed as hex wei."""
        await cache.get_gas_price_estimates()

        assert custom_gas.fast_price_hex_wei == hex(30 * 10**9)
