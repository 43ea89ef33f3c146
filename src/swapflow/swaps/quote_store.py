"""Quote store: the quote set, the request that produced it and the token list."""

import logging
from typing import Iterable, Optional

from swapflow.swaps.errors import InvalidQuoteSelection
from swapflow.swaps.models import FetchMetadata, Quote, QuoteSet, SwapRequestParams, TokenInfo

logger = logging.getLogger(__name__)


class QuoteStore:
    """Holds the quotes of the latest fetch cycle.

    A new fetch cycle replaces the whole quote set; quotes are never edited
    in the mapping, only replaced.
    """

    def __init__(self):
        self.quote_set = QuoteSet()
        self.fetch_params: Optional[SwapRequestParams] = None
        self.fetch_metadata: Optional[FetchMetadata] = None
        self.swaps_tokens: list[TokenInfo] = []
        self.custom_approve_tx_data: Optional[str] = None

    def set_fetch_params(self, params: SwapRequestParams, metadata: FetchMetadata) -> None:
        self.fetch_params = params
        self.fetch_metadata = metadata

    def set_swaps_tokens(self, tokens: Iterable[TokenInfo]) -> None:
        self.swaps_tokens = list(tokens)

    def find_swaps_token(self, address: Optional[str]) -> Optional[TokenInfo]:
        """Look up a token in the swappable token reference list."""
        if not address:
            return None
        for token in self.swaps_tokens:
            if token.address and token.address.lower() == address.lower():
                return token
        return None

    def set_quotes(
        self,
        quotes: dict[str, Quote],
        top_agg_id: Optional[str],
        fetched_at: Optional[int] = None,
        preserve_selection: bool = False,
    ) -> QuoteSet:
        """
        Replace the quote set.

        Args:
            quotes: Quotes keyed by aggregator id
            top_agg_id: Best-ranked aggregator
            fetched_at: Fetch timestamp in milliseconds
            preserve_selection: Keep the user's selection if the aggregator
                is still quoting (used by polled refreshes)
        """
        selected = None
        previous = self.quote_set.selected_agg_id
        if preserve_selection and previous in quotes:
            selected = previous

        self.quote_set = QuoteSet(
            quotes=dict(quotes),
            selected_agg_id=selected,
            top_agg_id=top_agg_id,
            quotes_last_fetched=fetched_at,
        )
        logger.debug(f"Stored {len(quotes)} quote(s), top: {top_agg_id}")
        return self.quote_set

    def select_quote(self, agg_id: Optional[str]) -> None:
        """Select a quote by aggregator id; None returns to the top quote."""
        if agg_id is not None and agg_id not in self.quote_set.quotes:
            raise InvalidQuoteSelection(agg_id)
        self.quote_set = QuoteSet(
            quotes=self.quote_set.quotes,
            selected_agg_id=agg_id,
            top_agg_id=self.quote_set.top_agg_id,
            quotes_last_fetched=self.quote_set.quotes_last_fetched,
        )

    def replace_quote(self, quote: Quote) -> None:
        """Swap in an updated record for an aggregator already in the set."""
        if quote.aggregator not in self.quote_set.quotes:
            raise InvalidQuoteSelection(quote.aggregator)
        self.quote_set.quotes[quote.aggregator] = quote

    def selected_quote(self) -> Optional[Quote]:
        return self.quote_set.selected_quote()

    def top_quote(self) -> Optional[Quote]:
        return self.quote_set.top_quote()

    def used_quote(self) -> Optional[Quote]:
        return self.quote_set.used_quote()

    def reset_post_fetch(self) -> None:
        """Drop the fetched quotes, keeping the request and the token list."""
        self.quote_set = QuoteSet()
        self.custom_approve_tx_data = None

    def clear(self) -> None:
        self.quote_set = QuoteSet()
        self.fetch_params = None
        self.fetch_metadata = None
        self.swaps_tokens = []
        self.custom_approve_tx_data = None
