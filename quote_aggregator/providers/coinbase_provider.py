"""
Coinbase quote provider implementation.
Provides cryptocurrency quotes from the Coinbase Exchange product tickers.
"""

import asyncio
import re
import httpx
from typing import List

from .base import BaseQuoteProvider
from ..core.exceptions import ProviderError
from ..core.logging_config import create_logger
from ..models.market_data import Asset, AssetType

logger = create_logger(__name__)

QUOTE_CURRENCY = re.compile(r"^(.+?)-?(USD|EUR)$")


class CoinbaseProvider(BaseQuoteProvider):
    """Coinbase quote provider; one ticker request per product."""

    provider_id = "Coinbase"
    supported_asset_types = frozenset({AssetType.CRYPTOCURRENCY})
    markets = ["COINBASE", "GDAX"]

    def __init__(self, base_url: str = "https://api.exchange.coinbase.com", **kwargs):
        super().__init__(base_url=base_url, **kwargs)

    def _get_rate_limit(self) -> int:
        return 300

    @staticmethod
    def _to_product(short_symbol: str):
        """Product id and quote currency: BTC -> (BTC-USD, USD), ETHEUR -> (ETH-EUR, EUR)."""
        match = QUOTE_CURRENCY.match(short_symbol.upper())
        if match:
            return f"{match.group(1)}-{match.group(2)}", match.group(2)
        return f"{short_symbol.upper()}-USD", "USD"

    async def _fetch_quotes(self, asset_type: AssetType, symbols: List[str]) -> List[Asset]:
        quotes = await asyncio.gather(*(self._fetch_quote(symbol) for symbol in symbols))
        logger.info("Retrieved quotes from Coinbase", extra={
            "provider": self.name,
            "requested": len(symbols),
            "successful": sum(1 for q in quotes if q.price is not None)
        })
        return list(quotes)

    async def _fetch_quote(self, symbol: str) -> Asset:
        product, currency = self._to_product(self._short_symbol(symbol))
        try:
            ticker = await self._make_request(
                method="GET",
                url=f"{self.base_url}/products/{product}/ticker",
                retry_count=1
            )
        except ProviderError as e:
            # Unknown products answer 404; report the symbol as unresolvable
            cause = e.__cause__
            if not (isinstance(cause, httpx.HTTPStatusError) and cause.response.status_code == 404):
                raise
            logger.warning("Could not get quote for symbol", extra={
                "provider": self.name,
                "symbol": symbol,
                "error": str(e)
            })
            return self._create_asset(symbol=symbol, price=None)

        return self._create_asset(symbol=symbol, price=float(ticker['price']), currency=currency)
