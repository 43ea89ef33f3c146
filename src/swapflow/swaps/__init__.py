"""Swap flow: liveness, quotes, gas and transaction sequencing.

Components:
- LivenessGate: swaps backend feature flag, failing closed
- GasPriceCache: memory, persisted store, then network
- QuoteFetchOrchestrator: one quote fetch cycle per call
- TransactionSequencer: approval then trade submission
- SwapsController: facade and reset transitions
"""

from swapflow.swaps.constants import Route, RouteState, SwapsErrorKey
from swapflow.swaps.controller import SwapsController
from swapflow.swaps.errors import (
    InvalidQuoteSelection,
    LivenessCheckFailed,
    QuoteFetchFailed,
    QuotesUnavailable,
    SwapsError,
    SwapSubmissionFailed,
    TransactionSubmissionError,
)
from swapflow.swaps.gas_cache import GasPriceCache
from swapflow.swaps.liveness import LivenessGate
from swapflow.swaps.models import (
    Account,
    GasPriceEstimates,
    Quote,
    QuoteSet,
    SwapRequestParams,
    TokenInfo,
    TransactionMeta,
    TxParams,
)
from swapflow.swaps.quotes import QuoteFetchOrchestrator
from swapflow.swaps.sequencer import TransactionSequencer
from swapflow.swaps.state import OrchestrationState, SwapsStore, transition
from swapflow.swaps.telemetry import TelemetryEmitter, TelemetryEvent

__all__ = [
    "Account",
    "GasPriceCache",
    "GasPriceEstimates",
    "InvalidQuoteSelection",
    "LivenessCheckFailed",
    "LivenessGate",
    "OrchestrationState",
    "Quote",
    "QuoteFetchFailed",
    "QuoteFetchOrchestrator",
    "QuoteSet",
    "QuotesUnavailable",
    "Route",
    "RouteState",
    "SwapRequestParams",
    "SwapSubmissionFailed",
    "SwapsController",
    "SwapsError",
    "SwapsErrorKey",
    "SwapsStore",
    "TelemetryEmitter",
    "TelemetryEvent",
    "TokenInfo",
    "TransactionMeta",
    "TransactionSequencer",
    "TransactionSubmissionError",
    "TxParams",
    "transition",
]
