"""Payload contracts of the swaps backend.

Only the fields the swap flow reads are declared; anything else the
backend sends is ignored.
"""

from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class FeatureFlagResponse(BaseModel):
    """Liveness flag of the swaps feature."""

    model_config = ConfigDict(extra="ignore")

    active: bool = Field(default=False, description="Whether swaps are enabled")


class GasPricesResponse(BaseModel):
    """Gas price service response, prices in decimal gwei."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    safe_gas_price: Decimal = Field(..., alias="SafeGasPrice", description="Safe-low price")
    propose_gas_price: Decimal = Field(..., alias="ProposeGasPrice", description="Average price")
    fast_gas_price: Decimal = Field(..., alias="FastGasPrice", description="Fast price")


class TradeTx(BaseModel):
    """Transaction parameters returned with a trade."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    to: str = Field(..., description="Contract to call")
    data: str = Field(default="0x", description="Calldata (hex)")
    value: str = Field(default="0x0", description="Native value (hex wei)")
    from_address: Optional[str] = Field(None, alias="from", description="Sender address")
    gas: Optional[str] = Field(None, description="Gas limit (hex)")
    gas_price: Optional[str] = Field(None, alias="gasPrice", description="Gas price (hex wei)")


class TradeResponse(BaseModel):
    """One aggregator's entry in the trades response."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    aggregator: str = Field(..., description="Aggregator id")
    trade: Optional[TradeTx] = Field(None, description="Trade transaction")
    approval_needed: Optional[TradeTx] = Field(
        None, alias="approvalNeeded", description="Allowance transaction, if required"
    )
    source_amount: Optional[str] = Field(None, alias="sourceAmount", description="Base units")
    destination_amount: Optional[str] = Field(
        None, alias="destinationAmount", description="Base units"
    )
    average_gas: Optional[int] = Field(None, alias="averageGas", description="Typical gas usage")
    max_gas: Optional[int] = Field(None, alias="maxGas", description="Gas limit floor")
    estimated_refund: Optional[int] = Field(
        None, alias="estimatedRefund", description="Expected gas refund"
    )
    gas_estimate: Optional[str] = Field(None, alias="gasEstimate", description="Gas estimate (hex)")
    error: Optional[Union[dict, str]] = Field(None, description="Set when the aggregator failed to quote")
