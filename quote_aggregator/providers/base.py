"""
Abstract base class for quote providers in the Quote Aggregator.
Defines the interface that all quote providers must implement.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, FrozenSet, List, Optional
from datetime import datetime
import httpx
import asyncio

from ..core.config import settings
from ..core.exceptions import (
    AssetTypeNotSupportedError, AuthenticationError, ProviderError, RateLimitError
)
from ..core.logging_config import create_logger
from ..core.symbols import parse_symbol
from ..models.market_data import Asset, AssetType

logger = create_logger(__name__)


class BaseQuoteProvider(ABC):
    """Abstract base class for quote providers.

    A provider owns a set of market codes and serves quotes for the asset
    types listed in ``supported_asset_types``. It receives normalized
    symbols (``SHORT`` or ``MARKET:SHORT``) and returns one Asset per symbol
    it could resolve, echoing the symbol it was given.
    """

    provider_id: str = ""
    supported_asset_types: FrozenSet[AssetType] = frozenset()
    markets: List[str] = []

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.name = self.provider_id
        self.api_key = api_key
        self.base_url = base_url
        self.client: Optional[httpx.AsyncClient] = None
        self._transport = transport
        self._request_count = 0
        self._last_request_time = datetime.utcnow()
        self._rate_limit_lock = asyncio.Lock()

    async def __aenter__(self):
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.disconnect()

    async def connect(self) -> None:
        """Initialize HTTP client connection."""
        if self.client is None:
            timeout = httpx.Timeout(settings.http_timeout, connect=settings.http_connect_timeout)
            limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)

            self.client = httpx.AsyncClient(
                timeout=timeout,
                limits=limits,
                headers=self._get_default_headers(),
                follow_redirects=True,
                transport=self._transport
            )

            logger.debug("Connected to provider", extra={"provider": self.name})

    async def disconnect(self) -> None:
        """Close HTTP client connection."""
        if self.client:
            await self.client.aclose()
            self.client = None
            logger.debug("Disconnected from provider", extra={"provider": self.name})

    def supported_markets(self) -> List[str]:
        """Market codes owned by this provider."""
        return list(self.markets)

    def supports_asset_type(self, asset_type: AssetType) -> bool:
        return asset_type in self.supported_asset_types

    async def fetch_quotes(self, asset_type: AssetType, symbols: List[str]) -> List[Asset]:
        """
        Get quotes for the given symbols.

        Args:
            asset_type: Asset type the symbols belong to
            symbols: Normalized symbols, each ``SHORT`` or ``MARKET:SHORT``

        Returns:
            One Asset per resolvable symbol; unresolvable symbols may be
            omitted or returned with a None price

        Raises:
            AssetTypeNotSupportedError: If the provider does not serve asset_type
            ProviderError: If unable to fetch quotes
        """
        if not self.supports_asset_type(asset_type):
            raise AssetTypeNotSupportedError(asset_type)
        if not symbols:
            return []
        return await self._fetch_quotes(asset_type, symbols)

    @abstractmethod
    async def _fetch_quotes(self, asset_type: AssetType, symbols: List[str]) -> List[Asset]:
        """Provider specific quote retrieval for a supported asset type."""
        pass

    def _get_default_headers(self) -> Dict[str, str]:
        """Get default HTTP headers for requests."""
        return {
            'User-Agent': 'Mozilla/5.0 (compatible; Quote-Aggregator/1.0.0)',
            'Accept': 'application/json, text/html;q=0.9',
            'Accept-Encoding': 'gzip, deflate',
            'Connection': 'keep-alive'
        }

    def _get_rate_limit(self) -> int:
        """Get the rate limit for this provider (requests per minute)."""
        return 60

    def _get_auth_headers(self) -> Optional[Dict[str, str]]:
        """Get authentication headers for this provider."""
        return None

    async def _make_request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        data: Optional[Dict[str, Any]] = None,
        retry_count: Optional[int] = None,
        expect_json: bool = True
    ) -> Any:
        """Make HTTP request with rate limiting and error handling.

        Returns the decoded JSON body, or the response text when
        ``expect_json`` is False.
        """

        if not self.client:
            await self.connect()

        if retry_count is None:
            retry_count = settings.provider_retry_count

        # Apply rate limiting
        await self._apply_rate_limit()

        # Merge headers
        request_headers = self._get_default_headers()
        if headers:
            request_headers.update(headers)

        # Add authentication if available
        auth_headers = self._get_auth_headers()
        if auth_headers:
            request_headers.update(auth_headers)

        for attempt in range(retry_count):
            try:
                logger.debug("Making request to provider", extra={
                    "provider": self.name,
                    "method": method,
                    "url": url,
                    "attempt": attempt + 1
                })

                response = await self.client.request(
                    method=method,
                    url=url,
                    params=params,
                    headers=request_headers,
                    json=data
                )

                # Check for rate limiting
                if response.status_code == 429:
                    retry_after = int(response.headers.get('Retry-After', 60))
                    logger.warning("Rate limited by provider", extra={
                        "provider": self.name,
                        "retry_after": retry_after
                    })

                    if attempt < retry_count - 1:
                        await asyncio.sleep(min(retry_after, 60))  # Max 60 seconds
                        continue
                    else:
                        raise RateLimitError(
                            f"Rate limited by {self.name}",
                            self.name
                        )

                # Check for authentication errors
                if response.status_code == 401:
                    raise AuthenticationError(
                        f"Authentication failed for {self.name}",
                        self.name
                    )

                # Check for other HTTP errors
                response.raise_for_status()

                logger.debug("Received response from provider", extra={
                    "provider": self.name,
                    "status_code": response.status_code,
                    "response_size": len(response.content)
                })

                if not expect_json:
                    return response.text

                try:
                    return response.json()
                except ValueError as e:
                    raise ProviderError(
                        f"Invalid JSON response from {self.name}: {str(e)}",
                        self.name
                    )

            except httpx.TimeoutException:
                logger.warning("Request timeout", extra={
                    "provider": self.name,
                    "attempt": attempt + 1,
                    "url": url
                })

                if attempt < retry_count - 1:
                    await asyncio.sleep(2 ** attempt)  # Exponential backoff
                    continue
                else:
                    raise ProviderError(
                        f"Request timeout for {self.name}",
                        self.name
                    )

            except httpx.HTTPError as e:
                logger.warning("HTTP error", extra={
                    "provider": self.name,
                    "error": str(e),
                    "attempt": attempt + 1
                })

                if attempt < retry_count - 1:
                    await asyncio.sleep(2 ** attempt)  # Exponential backoff
                    continue
                else:
                    raise ProviderError(
                        f"HTTP error for {self.name}: {str(e)}",
                        self.name
                    ) from e

        raise ProviderError(f"Max retries exceeded for {self.name}", self.name)

    async def _apply_rate_limit(self) -> None:
        """Apply rate limiting to requests."""
        async with self._rate_limit_lock:
            now = datetime.utcnow()

            # Reset counter if more than a minute has passed
            if (now - self._last_request_time).total_seconds() > 60:
                self._request_count = 0
                self._last_request_time = now

            # Check if we need to wait
            max_requests_per_minute = self._get_rate_limit()
            if self._request_count >= max_requests_per_minute:
                wait_time = 60 - (now - self._last_request_time).total_seconds()
                if wait_time > 0:
                    logger.debug("Rate limiting request", extra={
                        "provider": self.name,
                        "wait_time": wait_time
                    })
                    await asyncio.sleep(wait_time)
                    self._request_count = 0
                    self._last_request_time = datetime.utcnow()

            self._request_count += 1

    def _create_asset(
        self,
        symbol: str,
        price: Optional[float],
        currency: Optional[str] = None,
        percent_price: Optional[bool] = None
    ) -> Asset:
        """Create a standardized Asset; a missing price also clears the currency."""
        if price is None:
            return Asset(symbol=symbol, price=None, currency=None)
        return Asset(
            symbol=symbol,
            price=float(price),
            currency=currency,
            percent_price=percent_price
        )

    def _short_symbol(self, symbol: str) -> str:
        return parse_symbol(symbol).short_symbol

