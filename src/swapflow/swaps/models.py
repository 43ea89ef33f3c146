"""Data model of the swap flow: tokens, transactions, quotes and quote sets."""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from swapflow.conversions import dec_gwei_to_hex_wei


@dataclass(frozen=True)
class TokenInfo:
    """Descriptor of a token taking part in a swap."""

    address: Optional[str] = None
    symbol: Optional[str] = None
    decimals: Optional[int] = None
    icon_url: Optional[str] = None
    balance: Optional[str] = None  # hex base units, or decimal for the native asset
    string: Optional[str] = None  # human-readable balance
    name: Optional[str] = None


@dataclass(frozen=True)
class Account:
    """The wallet account swapping."""

    address: str
    balance: str  # hex wei


@dataclass
class TxParams:
    """Parameters of a transaction to submit."""

    to: str
    data: str = "0x"
    value: str = "0x0"
    from_address: Optional[str] = None
    gas: Optional[str] = None
    gas_price: Optional[str] = None

    def to_dict(self) -> dict:
        """Render with the transaction subsystem's key names, dropping unset fields."""
        params = {
            "from": self.from_address,
            "to": self.to,
            "data": self.data,
            "value": self.value,
            "gas": self.gas,
            "gasPrice": self.gas_price,
        }
        return {key: value for key, value in params.items() if value is not None}


@dataclass(frozen=True)
class QuoteSavings:
    """Savings of the best quote over the others, in ETH."""

    total: Decimal
    performance: Decimal = Decimal("0")
    fee: Decimal = Decimal("0")


@dataclass
class Quote:
    """One aggregator's offer.

    Only ``trade.gas`` and ``trade.gas_price`` are written after the quote
    enters a quote set; every other change replaces the record.
    """

    aggregator: str
    trade: TxParams
    destination_amount: str  # base units of the destination token
    approval_needed: Optional[TxParams] = None
    source_amount: Optional[str] = None
    decimals: Optional[int] = None
    average_gas: Optional[int] = None
    max_gas: Optional[int] = None
    estimated_refund: Optional[int] = None
    gas_estimate: Optional[str] = None  # hex
    gas_estimate_with_refund: Optional[str] = None  # hex
    savings: Optional[QuoteSavings] = None
    is_best_quote: bool = False

    def with_updates(self, **changes: Any) -> "Quote":
        return replace(self, **changes)


@dataclass(frozen=True)
class QuoteSet:
    """Quotes of one fetch cycle keyed by aggregator id."""

    quotes: dict[str, Quote] = field(default_factory=dict)
    selected_agg_id: Optional[str] = None
    top_agg_id: Optional[str] = None
    quotes_last_fetched: Optional[int] = None

    def __post_init__(self):
        if self.selected_agg_id is not None and self.selected_agg_id not in self.quotes:
            raise ValueError(
                f"Selected aggregator '{self.selected_agg_id}' is not in the quote set"
            )

    def selected_quote(self) -> Optional[Quote]:
        if self.selected_agg_id is None:
            return None
        return self.quotes.get(self.selected_agg_id)

    def top_quote(self) -> Optional[Quote]:
        if self.top_agg_id is None:
            return None
        return self.quotes.get(self.top_agg_id)

    def used_quote(self) -> Optional[Quote]:
        """The quote acted upon: the user's selection, else the top-ranked one."""
        return self.selected_quote() or self.top_quote()

    def __len__(self) -> int:
        return len(self.quotes)


@dataclass(frozen=True)
class SwapRequestParams:
    """Parameters of one quote fetch cycle."""

    slippage: Decimal
    source_token: Optional[str]
    destination_token: Optional[str]
    value: str  # input amount in source token units
    from_address: str
    destination_token_added_for_swap: bool = False
    balance_error: bool = False
    source_decimals: Optional[int] = None


@dataclass(frozen=True)
class FetchMetadata:
    """Token metadata recorded next to the request parameters."""

    source_token_info: TokenInfo
    destination_token_info: TokenInfo
    account_balance: Optional[str] = None


@dataclass(frozen=True)
class QuoteFetchResult:
    """What the aggregation service returns for one request."""

    quotes: dict[str, Quote]
    selected_agg_id: Optional[str] = None


@dataclass(frozen=True)
class GasEstimateResult:
    gas_limit: Optional[str]  # hex
    simulation_fails: bool = False


@dataclass(frozen=True)
class TransactionMeta:
    """A transaction registered with the transaction subsystem."""

    id: int
    tx_params: dict = field(default_factory=dict)
    fields: dict = field(default_factory=dict)

    def annotate(self, **fields: Any) -> "TransactionMeta":
        return replace(self, fields={**self.fields, **fields})


class GasPriceEstimates(BaseModel):
    """Network gas price estimates in decimal gwei."""

    model_config = ConfigDict(populate_by_name=True)

    safe_low: Decimal = Field(..., alias="safeLow", description="Safe-low price (gwei)")
    average: Decimal = Field(..., description="Average price (gwei)")
    fast: Decimal = Field(..., description="Fast price (gwei)")

    @property
    def fast_hex_wei(self) -> str:
        return dec_gwei_to_hex_wei(self.fast)

    def to_storage(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
