"""Wiring of a swaps controller from settings."""

import logging
from typing import Optional

from swapflow.api.metaswap import MetaSwapClient
from swapflow.config import Settings, get_settings
from swapflow.storage.database import create_engine, create_session_factory, init_db
from swapflow.storage.kv_store import KeyValueStore, SqlKeyValueStore
from swapflow.swaps.controller import SwapsController
from swapflow.swaps.interfaces import Router, SwapsApi, TokenRegistry, TransactionController, WalletState
from swapflow.swaps.telemetry import TelemetrySink

logger = logging.getLogger(__name__)


def configure_logging(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def create_swaps_controller(
    transactions: TransactionController,
    token_registry: TokenRegistry,
    wallet: WalletState,
    router: Router,
    telemetry_sink: Optional[TelemetrySink] = None,
    api: Optional[SwapsApi] = None,
    kv_store: Optional[KeyValueStore] = None,
    settings: Optional[Settings] = None,
) -> SwapsController:
    """
    Build a swaps controller.

    Args:
        transactions: Wallet transaction subsystem
        token_registry: Wallet token registry
        wallet: Wallet state access
        router: UI navigation
        telemetry_sink: Telemetry transport (events are logged if omitted)
        api: Swaps backend (MetaSwapClient if omitted)
        kv_store: Persisted store of the gas price cache (SQL store if omitted)
        settings: Settings (get_settings() if omitted)

    Returns:
        Ready-to-use SwapsController
    """
    settings = settings or get_settings()
    logger.info(f"Creating swaps controller: {settings.get_safe_dict()}")

    if api is None:
        api = MetaSwapClient(settings)

    if kv_store is None:
        engine = create_engine(settings)
        await init_db(engine)
        kv_store = SqlKeyValueStore(create_session_factory(engine), engine=engine)

    return SwapsController(
        api=api,
        kv_store=kv_store,
        transactions=transactions,
        token_registry=token_registry,
        wallet=wallet,
        router=router,
        telemetry_sink=telemetry_sink,
        settings=settings,
    )
