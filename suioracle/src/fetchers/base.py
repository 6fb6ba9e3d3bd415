"""Base fetcher interface and shared HTTP client management.

All exchange fetchers inherit from BaseFetcher and implement fetch() for one
exchange symbol plus asset_symbol() to map that symbol to the canonical asset
symbol used on chain (e.g., "BTCUSDT" -> "BTC/USD").
A shared httpx.AsyncClient is used across all fetchers to avoid connection overhead.

.. code-block:: python

    @register_fetcher
    class MyFetcher(BaseFetcher):
        name = "myexchange"

        async def fetch(self, symbol: str) -> float | None:
            response = await self._get(f"{self.base_url}/price/{symbol}")
            return float(response.json()["price"])

        def asset_symbol(self, symbol: str) -> str:
            return symbol.replace("-", "/")
"""

import logging
from abc import ABC, abstractmethod
from typing import ClassVar

import httpx

from ..errors import ConfigError, FetchError

logger = logging.getLogger(__name__)

USER_AGENT = "sui-price-oracle"


class FetcherError(FetchError):
    """Base exception for fetcher errors."""

    pass


class FetcherHTTPError(FetcherError):
    """Raised when HTTP request fails.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


class BaseFetcher(ABC):
    """Abstract base class for exchange price fetchers.

    Subclasses must implement:
        - name: Class variable identifying the source (e.g., "binance")
        - DEFAULT_BASE_URL: Class variable with the public API root
        - fetch(): Async method to fetch the price of one exchange symbol
        - asset_symbol(): Map an exchange symbol to the canonical asset symbol

    :cvar name: Unique identifier for this fetcher.
    :cvar DEFAULT_TIMEOUT: Default HTTP request timeout in seconds.
    :ivar base_url: API root URL.
    :ivar symbols: Exchange symbols to fetch.
    :ivar timeout: Request timeout in seconds.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    # Fetcher identification
    name: ClassVar[str] = ""
    DEFAULT_BASE_URL: ClassVar[str] = ""

    # Default timeout for HTTP requests (seconds)
    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        base_url: str | None = None,
        symbols: list[str] | None = None,
        timeout: float | None = None,
    ):
        """Initialize the fetcher.

        :param base_url: API root URL (default: the exchange's public API).
        :param symbols: Exchange symbols to fetch.
        :param timeout: Request timeout in seconds (default: 10).
        """
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.symbols = list(symbols or [])
        self.timeout = timeout or self.DEFAULT_TIMEOUT

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        The client is shared across all fetcher instances to reuse connections.

        :returns: Shared httpx.AsyncClient instance.
        """
        if BaseFetcher._shared_client is None or BaseFetcher._shared_client.is_closed:
            BaseFetcher._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
                headers={"User-Agent": USER_AGENT},
                follow_redirects=True,
            )
        return BaseFetcher._shared_client

    @classmethod
    def set_shared_client(cls, client: httpx.AsyncClient | None) -> None:
        """Replace the shared HTTP client (e.g., with a mock transport)."""
        BaseFetcher._shared_client = client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        client = BaseFetcher._shared_client
        if client is not None and not client.is_closed:
            await client.aclose()
        BaseFetcher._shared_client = None

    @abstractmethod
    async def fetch(self, symbol: str) -> float | None:
        """Fetch the current price of an exchange symbol.

        :param symbol: Exchange symbol (e.g., "BTCUSDT", "BTC-USD").
        :returns: Current price as float, or None if fetch failed.
        """
        pass

    @abstractmethod
    def asset_symbol(self, symbol: str) -> str:
        """Map an exchange symbol to the canonical asset symbol.

        :param symbol: Exchange symbol.
        :returns: Canonical symbol in "BASE/QUOTE" form.
        """
        pass

    @property
    def supports_batch(self) -> bool:
        """Check if this fetcher supports fetching several symbols at once.

        :returns: True if batch fetching is supported.
        """
        return False

    async def fetch_batch(self, symbols: list[str]) -> dict[str, float | None]:
        """Fetch prices for multiple exchange symbols.

        Default implementation falls back to sequential individual fetches.

        :param symbols: Exchange symbols to fetch.
        :returns: Dict mapping symbol to price or None.
        """
        return {symbol: await self.fetch(symbol) for symbol in symbols}

    async def _get(
        self,
        url: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP GET request using the shared client.

        :param url: Request URL.
        :param params: Optional query parameters.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises FetcherHTTPError: On non-2xx response.
        :raises FetcherError: On network/timeout errors.
        """
        client = self.get_shared_client()
        try:
            response = await client.get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
            if not response.is_success:
                logger.debug(
                    "HTTP GET %s failed with status %s: %s",
                    url,
                    response.status_code,
                    response.text[:200],
                )
                raise FetcherHTTPError(response.status_code, response.text[:200])
            return response
        except httpx.TimeoutException as e:
            raise FetcherError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise FetcherError(f"Request failed: {e}") from e


# Registry of available fetchers (populated by subclass imports)
FETCHER_REGISTRY: dict[str, type[BaseFetcher]] = {}


def register_fetcher(cls: type[BaseFetcher]) -> type[BaseFetcher]:
    """Decorator to register a fetcher class in the global registry.

    :param cls: Fetcher class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If fetcher has no name defined.
    """
    if not cls.name:
        raise ValueError(f"Fetcher {cls.__name__} must define a 'name' class variable")
    FETCHER_REGISTRY[cls.name] = cls
    return cls


def get_fetcher(
    name: str,
    base_url: str | None = None,
    symbols: list[str] | None = None,
    timeout: float | None = None,
) -> BaseFetcher:
    """Get a fetcher instance by name.

    :param name: Fetcher name (e.g., "binance", "coinbase").
    :param base_url: Optional API root override.
    :param symbols: Exchange symbols to fetch.
    :param timeout: Optional request timeout.
    :returns: Fetcher instance.
    :raises ConfigError: If fetcher name is unknown.
    """
    if name not in FETCHER_REGISTRY:
        available = ", ".join(sorted(FETCHER_REGISTRY.keys()))
        raise ConfigError(f"Unknown fetcher '{name}'. Available: {available}")
    return FETCHER_REGISTRY[name](base_url=base_url, symbols=symbols, timeout=timeout)


def get_available_fetchers() -> list[str]:
    """Get list of available fetcher names.

    :returns: Sorted list of registered fetcher names.
    """
    return sorted(FETCHER_REGISTRY.keys())
