"""Pytest configuration and fixtures."""

import copy
import os
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DEBUG"] = "true"

from swapflow.config import Settings
from swapflow.storage.kv_store import MemoryKeyValueStore
from swapflow.storage.models import Base
from swapflow.swaps.controller import SwapsController
from swapflow.swaps.errors import TransactionSubmissionError
from swapflow.swaps.interfaces import Router, SwapsApi, TokenRegistry, TransactionController, WalletState
from swapflow.swaps.models import (
    Account,
    FetchMetadata,
    GasEstimateResult,
    GasPriceEstimates,
    Quote,
    QuoteFetchResult,
    QuoteSavings,
    SwapRequestParams,
    TokenInfo,
    TransactionMeta,
    TxParams,
)

USER_ADDRESS = "0x00000000000000000000000000000000000000aa"
DAI = TokenInfo(
    address="0x6b175474e89094c44da98b954eedeac495271d0f",
    symbol="DAI",
    decimals=18,
    balance="0xde0b6b3a7640000",
    string="1",
)
USDC = TokenInfo(
    address="0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48",
    symbol="USDC",
    decimals=6,
    balance="0x0",
    string="0",
)


def make_quote(
    aggregator: str = "airswap",
    destination_amount: str = "2000000",
    approval: bool = False,
    **overrides,
) -> Quote:
    """Build a quote with realistic defaults."""
    fields = dict(
        aggregator=aggregator,
        trade=TxParams(
            to="0x881d40237659c251811cec9c364ef91dc08d300c",
            data="0x5f575529",
            value="0x0",
            from_address=USER_ADDRESS,
        ),
        destination_amount=destination_amount,
        approval_needed=(
            TxParams(
                to=DAI.address,
                data="0x095ea7b3",
                value="0x0",
                from_address=USER_ADDRESS,
                gas="0x12c00",
            )
            if approval
            else None
        ),
        source_amount="1000000000000000000",
        decimals=6,
        average_gas=120000,
        max_gas=250000,
        estimated_refund=20000,
        savings=QuoteSavings(total=Decimal("0.01")),
    )
    fields.update(overrides)
    return Quote(**fields)


class FakeClock:
    """Controllable millisecond clock."""

    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeSwapsApi(SwapsApi):
    """Swaps backend returning canned responses and counting calls."""

    def __init__(
        self,
        live: bool = True,
        quotes: Optional[dict[str, Quote]] = None,
        selected_agg_id: Optional[str] = None,
        gas_prices: Optional[GasPriceEstimates] = None,
    ):
        self.live = live
        self.quotes = quotes if quotes is not None else {}
        self.selected_agg_id = selected_agg_id
        self.gas_prices = gas_prices or GasPriceEstimates(
            safe_low=Decimal("10"), average=Decimal("20"), fast=Decimal("30")
        )
        self.liveness_error: Optional[Exception] = None
        self.quotes_error: Optional[Exception] = None
        self.gas_error: Optional[Exception] = None
        self.liveness_calls = 0
        self.quote_calls = 0
        self.gas_calls = 0
        self.last_request: Optional[SwapRequestParams] = None

    async def fetch_liveness(self) -> bool:
        self.liveness_calls += 1
        if self.liveness_error:
            raise self.liveness_error
        return self.live

    async def fetch_gas_prices(self) -> GasPriceEstimates:
        self.gas_calls += 1
        if self.gas_error:
            raise self.gas_error
        return self.gas_prices

    async def fetch_quotes(self, params: SwapRequestParams, metadata: FetchMetadata) -> QuoteFetchResult:
        self.quote_calls += 1
        self.last_request = params
        if self.quotes_error:
            raise self.quotes_error
        quotes = copy.deepcopy(self.quotes)
        return QuoteFetchResult(quotes=quotes, selected_agg_id=self.selected_agg_id)


class FakeTransactionController(TransactionController):
    """Records submitted transactions; can fail a given step."""

    def __init__(self):
        self.added: list[dict] = []
        self.updated: list[TransactionMeta] = []
        self.approved: list[TransactionMeta] = []
        self.fail_on_approve: set[int] = set()
        self.gas_estimate = GasEstimateResult(gas_limit=None)
        self._next_id = 1

    async def add_unapproved_transaction(self, tx_params: dict, origin: str) -> TransactionMeta:
        self.added.append(dict(tx_params))
        tx_meta = TransactionMeta(id=self._next_id, tx_params=dict(tx_params))
        self._next_id += 1
        return tx_meta

    async def update_transaction(self, tx_meta: TransactionMeta) -> TransactionMeta:
        self.updated.append(tx_meta)
        return tx_meta

    async def update_and_approve_transaction(self, tx_meta: TransactionMeta) -> None:
        if tx_meta.id in self.fail_on_approve:
            raise TransactionSubmissionError(f"User rejected transaction {tx_meta.id}")
        self.approved.append(tx_meta)

    async def estimate_gas(self, tx_params: dict) -> GasEstimateResult:
        return self.gas_estimate


class FakeTokenRegistry(TokenRegistry):
    def __init__(self):
        self.added: list[tuple] = []

    async def add_token(self, address, symbol, decimals, icon_url=None, is_swap_token=True) -> None:
        self.added.append((address, symbol, decimals, icon_url, is_swap_token))


class FakeWallet(WalletState):
    def __init__(self, balance: str = "0xde0b6b3a7640000"):
        self.account = Account(address=USER_ADDRESS, balance=balance)
        self.exchange_rates: dict[str, Decimal] = {}
        self.conversion_rate = Decimal("2000")
        self.force_update_calls = 0
        self.reset_calls = 0

    def get_selected_account(self) -> Account:
        return self.account

    def get_token_exchange_rates(self) -> dict[str, Decimal]:
        return self.exchange_rates

    def get_conversion_rate(self) -> Decimal:
        return self.conversion_rate

    async def force_update(self) -> None:
        self.force_update_calls += 1

    async def reset_swaps_state(self) -> None:
        self.reset_calls += 1


class FakeRouter(Router):
    def __init__(self):
        self.routes: list[str] = []

    def navigate(self, route: str) -> None:
        self.routes.append(route)

    @property
    def current(self) -> Optional[str]:
        return self.routes[-1] if self.routes else None


@pytest.fixture
def settings() -> Settings:
    """Settings with quote polling disabled."""
    return Settings(quote_polling_interval_seconds=0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(now=1_000_000)


@pytest.fixture
def kv_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def api() -> FakeSwapsApi:
    return FakeSwapsApi(quotes={"airswap": make_quote()}, selected_agg_id="airswap")


@pytest.fixture
def transactions() -> FakeTransactionController:
    return FakeTransactionController()


@pytest.fixture
def token_registry() -> FakeTokenRegistry:
    return FakeTokenRegistry()


@pytest.fixture
def wallet() -> FakeWallet:
    return FakeWallet()


@pytest.fixture
def router() -> FakeRouter:
    return FakeRouter()


@pytest.fixture
def telemetry_events() -> list:
    return []


@pytest.fixture
def controller(
    api, kv_store, transactions, token_registry, wallet, router, telemetry_events, settings, clock
) -> SwapsController:
    """Swaps controller wired to fakes, DAI -> USDC selected."""
    controller = SwapsController(
        api=api,
        kv_store=kv_store,
        transactions=transactions,
        token_registry=token_registry,
        wallet=wallet,
        router=router,
        telemetry_sink=telemetry_events.append,
        settings=settings,
        clock=clock,
    )
    controller.set_from_token(DAI)
    controller.set_to_token(USDC)
    return controller


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create in-memory database engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
