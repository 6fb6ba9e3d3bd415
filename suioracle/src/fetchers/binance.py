"""Binance fetcher.

Endpoint: {base_url}/ticker/price?symbol={SYMBOL}
Batch endpoint: {base_url}/ticker/price?symbols=["A","B"]
Rate Limit: High (no key required for public endpoints)

Binance quotes most assets against stablecoins. USD stablecoin quotes
(USDT, USDC, FDUSD, BUSD) are reported as USD assets, so "BTCUSDT" feeds
the "BTC/USD" record.
"""

import json
import logging

from .base import BaseFetcher, FetcherError, register_fetcher

logger = logging.getLogger(__name__)

# Longest suffix first so "FDUSD" wins over "USD"
QUOTE_ASSETS: tuple[tuple[str, str], ...] = (
    ("FDUSD", "USD"),
    ("USDT", "USD"),
    ("USDC", "USD"),
    ("BUSD", "USD"),
    ("USD", "USD"),
    ("EUR", "EUR"),
    ("BTC", "BTC"),
    ("ETH", "ETH"),
)


@register_fetcher
class BinanceFetcher(BaseFetcher):
    """Fetcher for the Binance spot ticker API."""

    name = "binance"
    DEFAULT_BASE_URL = "https://api.binance.com/api/v3"

    def asset_symbol(self, symbol: str) -> str:
        """Map "BTCUSDT" to "BTC/USD".

        :param symbol: Binance symbol.
        :returns: Canonical asset symbol.
        """
        upper = symbol.upper()
        for suffix, quote in QUOTE_ASSETS:
            if upper.endswith(suffix) and len(upper) > len(suffix):
                return f"{upper[: -len(suffix)]}/{quote}"
        return upper

    async def fetch(self, symbol: str) -> float | None:
        """Fetch price for a single symbol.

        :param symbol: Binance symbol (e.g., "BTCUSDT").
        :returns: Price or None on failure.
        """
        url = f"{self.base_url}/ticker/price"
        try:
            response = await self._get(url, params={"symbol": symbol})
            data = response.json()
            if "price" not in data:
                logger.warning(f"[binance] No price for {symbol}: {data}")
                return None
            return float(data["price"])
        except FetcherError as e:
            logger.warning(f"[binance] Failed to fetch {symbol}: {e}")
            return None
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"[binance] Failed to parse response for {symbol}: {e}")
            return None

    @property
    def supports_batch(self) -> bool:
        """Binance supports batch fetching multiple symbols in one request."""
        return True

    async def fetch_batch(self, symbols: list[str]) -> dict[str, float | None]:
        """Fetch prices for multiple symbols in a single API call.

        :param symbols: List of Binance symbols.
        :returns: Dict mapping symbol to price (or None if failed).
        """
        if not symbols:
            return {}

        url = f"{self.base_url}/ticker/price"
        result: dict[str, float | None] = {s: None for s in symbols}
        try:
            response = await self._get(
                url, params={"symbols": json.dumps(symbols, separators=(",", ":"))}
            )
            data = response.json()
            for item in data:
                if item.get("symbol") in result and "price" in item:
                    result[item["symbol"]] = float(item["price"])
        except FetcherError as e:
            logger.warning(f"[binance] Failed to fetch symbols {symbols}: {e}")
        except (AttributeError, KeyError, ValueError, TypeError) as e:
            logger.warning(f"[binance] Failed to parse batch response: {e}")
            return {s: None for s in symbols}
        return result
