"""Numeric conversions between hex wei, decimal gwei, token units and fiat.

Amounts travel through the swap flow as 0x-prefixed hex strings (transaction
fields) or as decimal strings (quote amounts, gas price estimates). All
arithmetic is done with ``int`` and ``Decimal``.
"""

from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Optional, Union

WEI_PER_GWEI = Decimal(10**9)
WEI_PER_ETH = Decimal(10**18)

Numeric = Union[int, str, Decimal]


def hex_to_int(value: Optional[str]) -> int:
    """Parse a hex string with or without the 0x prefix. Empty means zero."""
    if not value:
        return 0
    text = value.lower()
    if text.startswith("0x"):
        text = text[2:]
    return int(text, 16) if text else 0


def to_hex(value: int) -> str:
    """Encode a non-negative integer as a 0x-prefixed hex string."""
    if value < 0:
        raise ValueError(f"Cannot hex-encode negative value {value}")
    return hex(value)


def hex_max(a: Optional[str], b: Optional[str]) -> str:
    return to_hex(max(hex_to_int(a), hex_to_int(b)))


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def dec_gwei_to_hex_wei(value: Numeric) -> str:
    """Convert a decimal gwei amount (e.g. "41.5") to hex wei."""
    return to_hex(round_half_up(Decimal(str(value)) * WEI_PER_GWEI))


def hex_wei_to_dec_gwei(value: Optional[str]) -> Decimal:
    """Convert hex wei to decimal gwei."""
    return Decimal(hex_to_int(value)) / WEI_PER_GWEI


def calc_token_amount(value: Numeric, decimals: int) -> Decimal:
    """Convert a base-unit amount to token units."""
    return Decimal(str(value)) / Decimal(10**decimals)


def calc_token_value(value: Numeric, decimals: int) -> int:
    """Convert a token-unit amount to base units."""
    return round_half_up(Decimal(str(value)) * Decimal(10**decimals))


def calc_gas_total(gas_limit: Optional[str], gas_price: Optional[str]) -> str:
    """Total fee in hex wei for a gas limit and gas price (both hex)."""
    return to_hex(hex_to_int(gas_limit) * hex_to_int(gas_price))


def value_from_wei_hex(
    value: Optional[str],
    conversion_rate: Numeric = 1,
    number_of_decimals: Optional[int] = None,
) -> Decimal:
    """Convert a hex wei amount to ETH, optionally into fiat via ``conversion_rate``."""
    converted = Decimal(hex_to_int(value)) / WEI_PER_ETH * Decimal(str(conversion_rate))
    if number_of_decimals is not None:
        converted = converted.quantize(
            Decimal(1).scaleb(-number_of_decimals), rounding=ROUND_HALF_UP
        )
    return converted


def dec_eth_to_converted_currency(value: Numeric, conversion_rate: Numeric) -> Decimal:
    return Decimal(str(value)) * Decimal(str(conversion_rate))


def to_precision(value: Decimal, significant_digits: int) -> Decimal:
    """Round to a number of significant digits."""
    return Context(prec=significant_digits, rounding=ROUND_HALF_UP).create_decimal(value)


def format_currency_amount(value: Decimal) -> str:
    """Format a fiat amount with two decimals and thousands separators."""
    return f"{value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):,}"
