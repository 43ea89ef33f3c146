"""Tests for quote fetch cycles."""

import asyncio
from decimal import Decimal

import pytest

from conftest import DAI, USDC, make_quote

from swapflow.swaps.constants import NATIVE_TOKEN_ADDRESS, Route, RouteState, SwapsErrorKey
from swapflow.swaps.models import GasEstimateResult, TokenInfo
from swapflow.swaps.state import SwapStarted

SLIPPAGE = Decimal("2")


def event_names(telemetry_events):
    return [(event.event, event.anonymized) for event in telemetry_events]


class TestFetchQuotes:
    """Tests for QuoteFetchOrchestrator.fetch_quotes."""

    @pytest.mark.asyncio
    async def test_not_live_skips_fetch(self, controller, api, router):
        """Test a disabled backend leads to maintenance without fetching."""
        api.live = False

        await controller.fetch_quotes("1", SLIPPAGE)

        assert api.quote_calls == 0
        assert api.gas_calls == 0
        assert router.current == Route.SWAPS_MAINTENANCE.value
        assert controller.state.fetching_quotes is False

    @pytest.mark.asyncio
    async def test_successful_fetch(self, controller, api, router):
        """Test quotes are stored and the cycle ends."""
        await controller.fetch_quotes("1", SLIPPAGE)

        state = controller.state
        assert router.routes == [Route.LOADING_QUOTES.value]
        assert state.fetching_quotes is False
        assert state.error_key is None
        assert state.quotes_fetch_start_time == 1_000_000
        assert state.swaps_feature_is_live is True
        assert controller.used_quote().aggregator == "airswap"
        assert controller.quote_store.quote_set.quotes_last_fetched == 1_000_000

    @pytest.mark.asyncio
    async def test_request_params(self, controller, api):
        """Test the request carries the selected tokens and input."""
        await controller.fetch_quotes("1.5", Decimal("3"))

        request = api.last_request
        assert request.source_token == DAI.address
        assert request.destination_token == USDC.address
        assert request.value == "1.5"
        assert request.slippage == Decimal("3")
        assert request.source_decimals == 18
        assert request.destination_token_added_for_swap is True

    @pytest.mark.asyncio
    async def test_fast_gas_price_applied(self, controller):
        """Test the fast estimate becomes the working gas price."""
        await controller.fetch_quotes("1", SLIPPAGE)

        assert controller.store.custom_gas.price == hex(30 * 10**9)
        assert controller.store.custom_gas.loading is False

    @pytest.mark.asyncio
    async def test_empty_quotes(self, controller, api, telemetry_events):
        """Test an empty response records quotes-not-available."""
        api.quotes = {}
        api.selected_agg_id = None

        await controller.fetch_quotes("1", SLIPPAGE)

        assert controller.state.error_key == SwapsErrorKey.QUOTES_NOT_AVAILABLE
        assert controller.state.fetching_quotes is False
        assert controller.used_quote() is None
        assert event_names(telemetry_events)[-2:] == [
            ("No Quotes Available", True),
            ("No Quotes Available", False),
        ]

    @pytest.mark.asyncio
    async def test_quote_fetch_error(self, controller, api):
        """Test a failing quote request records error-fetching-quotes."""
        api.quotes_error = RuntimeError("aggregator timeout")

        await controller.fetch_quotes("1", SLIPPAGE)

        assert controller.state.error_key == SwapsErrorKey.ERROR_FETCHING_QUOTES
        assert controller.state.fetching_quotes is False

    @pytest.mark.asyncio
    async def test_gas_price_error(self, controller, api):
        """Test a failing gas refresh fails the cycle after both calls settle."""
        api.gas_error = RuntimeError("gas service down")

        await controller.fetch_quotes("1", SLIPPAGE)

        assert api.quote_calls == 1
        assert controller.state.error_key == SwapsErrorKey.ERROR_FETCHING_QUOTES
        assert controller.state.fetching_quotes is False
        assert controller.used_quote() is None

    @pytest.mark.asyncio
    async def test_telemetry_order(self, controller, telemetry_events):
        """Test each event is sent as summary then detail."""
        await controller.fetch_quotes("1", SLIPPAGE)

        assert event_names(telemetry_events) == [
            ("Quotes Requested", True),
            ("Quotes Requested", False),
            ("Quotes Received", True),
            ("Quotes Received", False),
        ]
        assert telemetry_events[0].properties is None
        assert all(event.category == "swaps" for event in telemetry_events)

    @pytest.mark.asyncio
    async def test_telemetry_properties(self, controller, telemetry_events):
        """Test request and result properties."""
        controller.set_balance_error(True)

        await controller.fetch_quotes("1", Decimal("3"))

        requested = telemetry_events[1].properties
        assert requested == {
            "token_from": "DAI",
            "token_from_amount": "1",
            "token_to": "USDC",
            "request_type": "Quote",
            "slippage": "3",
            "custom_slippage": True,
            "anonymized_data": True,
        }
        received = telemetry_events[3].properties
        assert received["anonymized_data"] is True
        assert received["token_to_amount"] == "2"
        assert received["best_quote_source"] == "airswap"
        assert received["available_quotes"] == 1
        assert received["response_time"] == 0

    @pytest.mark.asyncio
    async def test_registers_unpriced_tokens(self, controller, token_registry):
        """Test the destination is registered inline and the source in the background."""
        await controller.fetch_quotes("1", SLIPPAGE)
        await controller.close()

        registered = [entry[1] for entry in token_registry.added]
        assert registered[0] == "USDC"
        assert "DAI" in registered

    @pytest.mark.asyncio
    async def test_priced_tokens_not_registered(self, controller, api, wallet, token_registry):
        """Test tokens with exchange rates are not registered."""
        wallet.exchange_rates = {DAI.address: Decimal("0.0005"), USDC.address: Decimal("0.0005")}

        await controller.fetch_quotes("1", SLIPPAGE)
        await controller.close()

        assert token_registry.added == []
        assert api.last_request.destination_token_added_for_swap is False

    @pytest.mark.asyncio
    async def test_empty_source_balance_not_registered(self, controller, token_registry):
        """Test a source token the account does not hold is not registered."""
        controller.set_from_token(TokenInfo(address=DAI.address, symbol="DAI", decimals=18, balance="0x0"))

        await controller.fetch_quotes("1", SLIPPAGE)
        await controller.close()

        assert [entry[1] for entry in token_registry.added] == ["USDC"]

    @pytest.mark.asyncio
    async def test_swaps_token_metadata(self, controller):
        """Test metadata is taken from the swappable token list when available."""
        listed_usdc = TokenInfo(address=USDC.address, symbol="USDC", decimals=6, icon_url="usdc.svg")
        controller.set_swaps_tokens([listed_usdc])

        await controller.fetch_quotes("1", SLIPPAGE)

        assert controller.quote_store.fetch_metadata.destination_token_info == listed_usdc

    @pytest.mark.asyncio
    async def test_native_source_from_previous_request(self, controller, api, wallet):
        """Test a native source is rebuilt with the account balance."""
        controller.set_from_token(TokenInfo(address=NATIVE_TOKEN_ADDRESS, symbol="ETH", decimals=18))
        await controller.fetch_quotes("1", SLIPPAGE)

        controller.set_from_token(None)
        await controller.fetch_quotes("0.5", SLIPPAGE)

        source = controller.quote_store.fetch_metadata.source_token_info
        assert api.last_request.source_token == NATIVE_TOKEN_ADDRESS
        assert source.symbol == "ETH"
        assert source.balance == str(10**18)
        assert source.string == "1.0000"

    @pytest.mark.asyncio
    async def test_initial_gas_estimate(self, controller, transactions):
        """Test a successful simulation updates the selected quote."""
        transactions.gas_estimate = GasEstimateResult(gas_limit=hex(150000))

        await controller.fetch_quotes("1", SLIPPAGE)

        quote = controller.used_quote()
        assert quote.gas_estimate == hex(150000)
        assert quote.gas_estimate_with_refund == hex(150000)

    @pytest.mark.asyncio
    async def test_failed_simulation_ignored(self, controller, transactions):
        """Test a failing simulation leaves the quote unchanged."""
        transactions.gas_estimate = GasEstimateResult(gas_limit=hex(150000), simulation_fails=True)

        await controller.fetch_quotes("1", SLIPPAGE)

        assert controller.used_quote().gas_estimate is None


class TestStaleFetch:
    """Tests for superseded fetch cycles."""

    @pytest.mark.asyncio
    async def test_reset_during_fetch_discards_results(self, controller, api, telemetry_events):
        """Test results arriving after a retry reset are dropped."""
        fetch = api.fetch_quotes

        async def fetch_then_reset(params, metadata):
            result = await fetch(params, metadata)
            controller.prepare_for_retry_get_quotes()
            return result

        api.fetch_quotes = fetch_then_reset

        await controller.fetch_quotes("1", SLIPPAGE)

        assert controller.used_quote() is None
        assert controller.state.fetching_quotes is False
        assert controller.state.error_key is None
        assert [event.event for event in telemetry_events] == ["Quotes Requested", "Quotes Requested"]

    @pytest.mark.asyncio
    async def test_newer_cycle_wins(self, controller, api):
        """Test an older cycle finishing last does not overwrite a newer one."""
        started = asyncio.Event()
        release = asyncio.Event()
        fetch = api.fetch_quotes
        calls = 0

        async def blocking_first_fetch(params, metadata):
            nonlocal calls
            calls += 1
            if calls == 1:
                api.quotes = {"stale": make_quote("stale")}
                api.selected_agg_id = "stale"
                result = await fetch(params, metadata)
                api.quotes = {"airswap": make_quote("airswap")}
                api.selected_agg_id = "airswap"
                started.set()
                await release.wait()
                return result
            return await fetch(params, metadata)

        api.fetch_quotes = blocking_first_fetch

        first = asyncio.create_task(controller.fetch_quotes("1", SLIPPAGE))
        await started.wait()
        await controller.fetch_quotes("2", SLIPPAGE)
        release.set()
        await first

        assert controller.used_quote().aggregator == "airswap"
        assert controller.quote_store.fetch_params.value == "2"
        assert controller.state.fetching_quotes is False
        assert controller.state.error_key is None

    @pytest.mark.asyncio
    async def test_cycle_superseded_during_token_registration(self, controller, api, token_registry):
        """Test an older cycle resumed after registration leaves the newer request intact."""
        started = asyncio.Event()
        release = asyncio.Event()
        add_token = token_registry.add_token
        calls = 0

        async def blocking_first_add(*args, **kwargs):
            nonlocal calls
            calls += 1
            if calls == 1:
                started.set()
                await release.wait()
            await add_token(*args, **kwargs)

        token_registry.add_token = blocking_first_add

        first = asyncio.create_task(controller.fetch_quotes("1", SLIPPAGE))
        await started.wait()
        await controller.fetch_quotes("2", SLIPPAGE)
        release.set()
        await first

        assert api.quote_calls == 1
        assert controller.quote_store.fetch_params.value == "2"
        assert controller.used_quote().aggregator == "airswap"
        assert controller.state.fetching_quotes is False
        assert controller.state.error_key is None


class TestRefreshQuotes:
    """Tests for polled quote refreshes."""

    @pytest.mark.asyncio
    async def test_refresh_preserves_selection(self, controller, api):
        """Test a refresh replaces quotes and keeps the user's choice."""
        api.quotes = {
            "airswap": make_quote("airswap", destination_amount="2000000"),
            "paraswap": make_quote("paraswap", destination_amount="1990000"),
        }
        await controller.fetch_quotes("1", SLIPPAGE)
        controller.select_quote("paraswap")

        api.quotes["paraswap"] = make_quote("paraswap", destination_amount="2010000")
        await controller.refresh_quotes()

        assert controller.used_quote().aggregator == "paraswap"
        assert controller.used_quote().destination_amount == "2010000"
        assert api.quote_calls == 2

    @pytest.mark.asyncio
    async def test_empty_refresh_keeps_quotes(self, controller, api):
        """Test an empty refresh keeps the previous quotes."""
        await controller.fetch_quotes("1", SLIPPAGE)
        api.quotes = {}

        await controller.refresh_quotes()

        assert controller.used_quote().aggregator == "airswap"

    @pytest.mark.asyncio
    async def test_refresh_without_request(self, controller, api):
        """Test nothing is requested before a first fetch."""
        await controller.refresh_quotes()

        assert api.quote_calls == 0

    @pytest.mark.asyncio
    async def test_refresh_skipped_after_submission(self, controller, api):
        """Test quotes are not refreshed once the swap was submitted."""
        await controller.fetch_quotes("1", SLIPPAGE)
        controller.store.dispatch(SwapStarted())
        assert controller.state.route_state == RouteState.AWAITING

        await controller.refresh_quotes()

        assert api.quote_calls == 1
