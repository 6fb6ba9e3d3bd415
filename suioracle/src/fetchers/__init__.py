"""
Price fetchers for exchange APIs.

This module provides a unified interface for fetching spot prices from
exchanges. Each configured exchange symbol yields one sample per cycle.

Usage:
    from suioracle.src.fetchers import get_fetcher, get_available_fetchers

    # Get list of available fetchers
    available = get_available_fetchers()
    # ['binance', 'coinbase']

    # Create a fetcher instance
    fetcher = get_fetcher("coinbase", symbols=["BTC-USD"])
    price = await fetcher.fetch("BTC-USD")
"""

# Import base classes and utilities
from .base import (
    FETCHER_REGISTRY,
    BaseFetcher,
    FetcherError,
    FetcherHTTPError,
    get_available_fetchers,
    get_fetcher,
    register_fetcher,
)

# Import all fetcher implementations to trigger registration
from .binance import BinanceFetcher
from .coinbase import CoinbaseFetcher

__all__ = [
    # Base classes
    "BaseFetcher",
    "FetcherError",
    "FetcherHTTPError",
    # Registry functions
    "register_fetcher",
    "get_fetcher",
    "get_available_fetchers",
    "FETCHER_REGISTRY",
    # Fetcher implementations
    "BinanceFetcher",
    "CoinbaseFetcher",
]
