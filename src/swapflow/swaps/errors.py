"""Exceptions raised inside the swap flow.

Orchestration errors carry the ``SwapsErrorKey`` written into the
orchestration state when they are caught at the flow boundary.
"""

from typing import Optional

from swapflow.swaps.constants import SwapsErrorKey


class SwapsError(Exception):
    """Base class for swap flow errors."""

    error_key: Optional[SwapsErrorKey] = None


class LivenessCheckFailed(SwapsError):
    """The swaps backend liveness endpoint could not be read. Reported as not live."""


class QuotesUnavailable(SwapsError):
    """The aggregator returned zero quotes."""

    error_key = SwapsErrorKey.QUOTES_NOT_AVAILABLE


class QuoteFetchFailed(SwapsError):
    """A quote fetch cycle failed."""

    error_key = SwapsErrorKey.ERROR_FETCHING_QUOTES


class SwapSubmissionFailed(SwapsError):
    """The approval or the trade transaction could not be submitted."""

    error_key = SwapsErrorKey.SWAP_FAILED

    def __init__(self, step: str, message: str = ""):
        self.step = step
        super().__init__(f"{step} transaction failed: {message}" if message else f"{step} transaction failed")


class TransactionSubmissionError(Exception):
    """Raised by the transaction subsystem when approving/sending fails."""


class InvalidQuoteSelection(SwapsError):
    """An aggregator id that is not part of the current quote set was selected."""

    def __init__(self, agg_id: str):
        self.agg_id = agg_id
        super().__init__(f"No quote from aggregator '{agg_id}' in the current quote set")
