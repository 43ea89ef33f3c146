"""Interfaces of the collaborators the swap flow drives.

The wallet host provides implementations for the transaction subsystem,
token registry, wallet state and routing. ``swapflow.api.metaswap`` provides
the swaps backend.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from swapflow.swaps.models import (
    Account,
    FetchMetadata,
    GasEstimateResult,
    GasPriceEstimates,
    QuoteFetchResult,
    SwapRequestParams,
    TransactionMeta,
)


class SwapsApi(ABC):
    """Swaps backend: liveness, gas prices and quote aggregation."""

    @abstractmethod
    async def fetch_liveness(self) -> bool:
        """Whether the swaps feature is currently enabled."""
        pass

    @abstractmethod
    async def fetch_gas_prices(self) -> GasPriceEstimates:
        """Current gas price estimates in decimal gwei."""
        pass

    @abstractmethod
    async def fetch_quotes(
        self,
        params: SwapRequestParams,
        metadata: FetchMetadata,
    ) -> QuoteFetchResult:
        """
        Request quotes from all aggregators.

        Args:
            params: Request parameters of this fetch cycle
            metadata: Source/destination token metadata and account balance

        Returns:
            Quotes keyed by aggregator id and the selected (top) aggregator
        """
        pass


class TransactionController(ABC):
    """Transaction submission and signing subsystem."""

    @abstractmethod
    async def add_unapproved_transaction(self, tx_params: dict, origin: str) -> TransactionMeta:
        """Register an unapproved transaction and return its meta (with id)."""
        pass

    @abstractmethod
    async def update_transaction(self, tx_meta: TransactionMeta) -> TransactionMeta:
        """Persist annotations on a registered transaction."""
        pass

    @abstractmethod
    async def update_and_approve_transaction(self, tx_meta: TransactionMeta) -> None:
        """Approve, sign and send. Raises TransactionSubmissionError on failure."""
        pass

    @abstractmethod
    async def estimate_gas(self, tx_params: dict) -> GasEstimateResult:
        """Simulate a transaction and estimate its gas usage."""
        pass


class TokenRegistry(ABC):
    """Registry of tokens tracked by the wallet."""

    @abstractmethod
    async def add_token(
        self,
        address: Optional[str],
        symbol: Optional[str],
        decimals: Optional[int],
        icon_url: Optional[str] = None,
        is_swap_token: bool = True,
    ) -> None:
        pass


class WalletState(ABC):
    """Read access to shared wallet state plus the two state-wide refreshes."""

    @abstractmethod
    def get_selected_account(self) -> Account:
        pass

    @abstractmethod
    def get_token_exchange_rates(self) -> dict[str, Decimal]:
        """Known token exchange rates keyed by token address."""
        pass

    @abstractmethod
    def get_conversion_rate(self) -> Decimal:
        """Fiat (USD) value of one unit of the native asset."""
        pass

    @abstractmethod
    async def force_update(self) -> None:
        """Refresh shared application state so views observe changes."""
        pass

    @abstractmethod
    async def reset_swaps_state(self) -> None:
        """Clear the persisted background swaps state."""
        pass


class Router(ABC):
    """UI navigation."""

    @abstractmethod
    def navigate(self, route: str) -> None:
        pass
