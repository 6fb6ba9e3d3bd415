"""FetchCoordinator: Concurrent price fetching from all configured exchanges.

Architecture:
    - Each fetcher owns the exchange symbols configured for it
    - Batch-capable fetchers get all their symbols in one request
    - Other fetchers are queried per symbol, concurrently
    - Every configured symbol yields exactly one PriceSample per cycle;
      failures, timeouts and exceptions become samples with price None
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .PriceAggregator import PriceSample

if TYPE_CHECKING:
    from .fetchers import BaseFetcher

logger = logging.getLogger(__name__)


class FetchCoordinator:
    """Coordinates fetching from multiple price sources.

    :ivar fetchers: Dict mapping source names to fetcher instances.
    :ivar fetch_timeout: Timeout for one source's fetch in seconds.
    """

    def __init__(
        self,
        fetchers: dict[str, BaseFetcher],
        fetch_timeout: float = 10.0,
    ) -> None:
        """Initialize the fetch coordinator.

        :param fetchers: Dict mapping source names to fetcher instances.
        :param fetch_timeout: Timeout for fetch requests (default: 10.0).
        """
        self.fetchers = fetchers
        self.fetch_timeout = fetch_timeout

    @property
    def assets(self) -> list[str]:
        """Canonical asset symbols covered by at least one source, in config order."""
        seen: dict[str, None] = {}
        for fetcher in self.fetchers.values():
            for symbol in fetcher.symbols:
                seen.setdefault(fetcher.asset_symbol(symbol), None)
        return list(seen)

    async def fetch_all(self) -> list[PriceSample]:
        """Fetch every configured symbol from every source.

        :returns: One sample per (source, exchange symbol).
        """
        sources = [
            (source, fetcher)
            for source, fetcher in self.fetchers.items()
            if fetcher.symbols
        ]
        if not sources:
            return []

        results = await asyncio.gather(
            *(self._fetch_source(source, fetcher) for source, fetcher in sources),
            return_exceptions=True,
        )

        samples: list[PriceSample] = []
        for (source, fetcher), result in zip(sources, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning(f"[{source}] Fetch exception: {result}")
                result = {symbol: None for symbol in fetcher.symbols}
            for symbol in fetcher.symbols:
                price = result.get(symbol)
                logger.debug(f"[{source}] {symbol}: {price}")
                samples.append(
                    PriceSample(
                        source_id=source,
                        asset_symbol=fetcher.asset_symbol(symbol),
                        price=price,
                    )
                )
        return samples

    async def _fetch_source(
        self, source: str, fetcher: BaseFetcher
    ) -> dict[str, float | None]:
        """Fetch all symbols from a single source.

        Uses batch fetching if supported, otherwise concurrent individual fetches.

        :param source: Source name.
        :param fetcher: Fetcher instance.
        :returns: Dict mapping exchange symbol to price or None.
        """
        symbols = fetcher.symbols
        try:
            if fetcher.supports_batch:
                logger.debug(f"[{source}] Batch fetching {len(symbols)} symbols")
                return await asyncio.wait_for(
                    fetcher.fetch_batch(symbols),
                    timeout=self.fetch_timeout,
                )

            logger.debug(f"[{source}] Individual fetching {len(symbols)} symbols")
            prices = await asyncio.gather(
                *(self._fetch_single(fetcher, symbol) for symbol in symbols)
            )
            return dict(zip(symbols, prices, strict=True))

        except asyncio.TimeoutError:
            logger.warning(f"[{source}] Batch fetch timeout")
            return {symbol: None for symbol in symbols}

    async def _fetch_single(self, fetcher: BaseFetcher, symbol: str) -> float | None:
        """Fetch a single symbol with timeout.

        :param fetcher: Fetcher instance to use.
        :param symbol: Exchange symbol.
        :returns: Price or None on failure.
        """
        try:
            return await asyncio.wait_for(
                fetcher.fetch(symbol),
                timeout=self.fetch_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"[{fetcher.name}] Timeout fetching {symbol}")
            return None
        except Exception as e:
            logger.warning(f"[{fetcher.name}] Error fetching {symbol}: {e}")
            return None
