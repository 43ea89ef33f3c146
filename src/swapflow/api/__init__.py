"""Swaps backend HTTP client and payload contracts."""

from swapflow.api.metaswap import MetaSwapClient

__all__ = ["MetaSwapClient"]
