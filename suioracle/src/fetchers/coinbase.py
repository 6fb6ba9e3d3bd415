"""Coinbase Exchange fetcher.

Endpoint: {base_url}/products/{BASE}-{QUOTE}/ticker
Rate Limit: High (no key required)
"""

import logging

from .base import BaseFetcher, FetcherError, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class CoinbaseFetcher(BaseFetcher):
    """Fetcher for Coinbase Exchange API.

    Product ids such as "BTC-USD" map directly to "BTC/USD".
    No API key required for public ticker endpoint.
    """

    name = "coinbase"
    DEFAULT_BASE_URL = "https://api.exchange.coinbase.com"

    def asset_symbol(self, symbol: str) -> str:
        return symbol.upper().replace("-", "/")

    async def fetch(self, symbol: str) -> float | None:
        """Fetch price from Coinbase Exchange.

        :param symbol: Product id (e.g., "BTC-USD").
        :returns: Current price or None on failure.
        """
        url = f"{self.base_url}/products/{symbol}/ticker"

        try:
            response = await self._get(url)
            data = response.json()

            if "price" not in data:
                logger.warning(f"[coinbase] No price in response for {symbol}: {data}")
                return None

            return float(data["price"])

        except FetcherError as e:
            logger.warning(f"[coinbase] Failed to fetch {symbol}: {e}")
            return None
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"[coinbase] Failed to parse response for {symbol}: {e}")
            return None
