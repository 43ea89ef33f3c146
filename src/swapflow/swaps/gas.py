"""Gas parameter derivation for the used quote.

Gas limit: the quote's gas estimate (or its average gas usage) times a safety
multiplier, but never below the quote's max gas. Gas price: the user's
override, else the trade's own price, else the cached fast estimate. A user
override always wins for both.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from swapflow.conversions import hex_to_int, round_half_up, to_hex
from swapflow.swaps.constants import MAX_GAS_LIMIT
from swapflow.swaps.models import Quote, TxParams
from swapflow.swaps.state import CustomGasState

GAS_LIMIT_MULTIPLIER = Decimal("1.4")


@dataclass(frozen=True)
class GasParameters:
    """Final gas parameters for the trade transaction."""

    gas_limit: str  # hex
    gas_price: Optional[str]  # hex wei
    estimated_gas_limit: int
    estimated_gas_limit_with_multiplier: str  # hex


def estimated_gas_limit(quote: Quote) -> int:
    if quote.gas_estimate:
        return hex_to_int(quote.gas_estimate)
    return quote.average_gas or 0


def compute_gas_limit(
    quote: Quote,
    custom_limit: Optional[str] = None,
    multiplier: Decimal = GAS_LIMIT_MULTIPLIER,
) -> tuple[str, int, str]:
    """Return ``(final_limit, estimate, estimate_with_multiplier)``."""
    estimate = estimated_gas_limit(quote)
    with_multiplier = round_half_up(Decimal(estimate) * multiplier)

    if custom_limit:
        final_limit = custom_limit
    else:
        final_limit = to_hex(max(quote.max_gas or 0, with_multiplier))

    return final_limit, estimate, to_hex(with_multiplier)


def compute_gas_price(
    quote: Quote,
    custom_price: Optional[str] = None,
    fast_price: Optional[str] = None,
) -> Optional[str]:
    return custom_price or quote.trade.gas_price or fast_price


def compute_gas_parameters(
    quote: Quote,
    custom_gas: CustomGasState,
    fast_price: Optional[str] = None,
    multiplier: Decimal = GAS_LIMIT_MULTIPLIER,
) -> GasParameters:
    gas_limit, estimate, with_multiplier = compute_gas_limit(quote, custom_gas.limit, multiplier)
    return GasParameters(
        gas_limit=gas_limit,
        gas_price=compute_gas_price(quote, custom_gas.price, fast_price),
        estimated_gas_limit=estimate,
        estimated_gas_limit_with_multiplier=with_multiplier,
    )


def apply_gas_parameters(quote: Quote, params: GasParameters) -> TxParams:
    """Write the final gas parameters onto the quote's trade, in place."""
    quote.trade.gas = params.gas_limit
    quote.trade.gas_price = params.gas_price
    return quote.trade


def calculate_gas_estimate_with_refund(
    max_gas: Optional[int] = MAX_GAS_LIMIT,
    estimated_refund: Optional[int] = 0,
    estimated_gas: Optional[str] = "0x0",
) -> str:
    """Gas estimate capped at the quote's max gas minus the expected refund."""
    max_gas_minus_refund = (max_gas if max_gas is not None else MAX_GAS_LIMIT) - (estimated_refund or 0)
    if max_gas_minus_refund < hex_to_int(estimated_gas):
        return to_hex(max(max_gas_minus_refund, 0))
    return estimated_gas or "0x0"


def build_approve_tx_params(
    quote: Optional[Quote],
    custom_gas: CustomGasState,
    custom_approve_tx_data: Optional[str] = None,
) -> Optional[dict]:
    """Transaction params of the quote's approval, or None if it needs none."""
    if quote is None or quote.approval_needed is None:
        return None

    approval = quote.approval_needed
    params = TxParams(
        to=approval.to,
        data=custom_approve_tx_data or approval.data,
        value=approval.value,
        from_address=approval.from_address,
        gas=approval.gas,
        gas_price=custom_gas.price or approval.gas_price,
    ).to_dict()
    params["amount"] = "0x0"
    return params
