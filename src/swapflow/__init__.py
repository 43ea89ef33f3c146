"""Swap execution orchestration for wallet clients."""

__version__ = "0.1.0"
