"""
Binance quote provider implementation.
Provides cryptocurrency quotes from the Binance public ticker API.
"""

import re
from typing import Dict, List

from .base import BaseQuoteProvider
from ..core.logging_config import create_logger
from ..core.symbols import get_short_symbols
from ..models.market_data import Asset, AssetType

logger = create_logger(__name__)

USD_SUFFIX = re.compile(r"USD$")


class BinanceProvider(BaseQuoteProvider):
    """Binance quote provider for cryptocurrencies priced in USD (USDT pairs)."""

    provider_id = "Binance"
    supported_asset_types = frozenset({AssetType.CRYPTOCURRENCY})
    markets = ["BINANCE"]

    def __init__(self, base_url: str = "https://api.binance.com/api/v3", **kwargs):
        super().__init__(base_url=base_url, **kwargs)

    def _get_rate_limit(self) -> int:
        return 600

    @staticmethod
    def _to_pair(short_symbol: str) -> str:
        """BTC, BTCUSD and BTCUSDT all map to the BTCUSDT pair."""
        pair = USD_SUFFIX.sub("USDT", short_symbol.upper())
        if not pair.endswith("USDT"):
            pair = f"{pair}USDT"
        return pair

    async def _fetch_quotes(self, asset_type: AssetType, symbols: List[str]) -> List[Asset]:
        requested: Dict[str, List[str]] = {}  # Map Binance pair -> requested symbols
        for symbol, short_symbol in zip(symbols, get_short_symbols(symbols)):
            requested.setdefault(self._to_pair(short_symbol), []).append(symbol)

        tickers = await self._make_request(method="GET", url=f"{self.base_url}/ticker/price")

        quotes = []
        for ticker in tickers:
            for symbol in requested.pop(ticker.get('symbol'), []):
                quotes.append(self._create_asset(
                    symbol=symbol,
                    price=float(ticker['price']),
                    currency='USD'
                ))

        logger.info("Retrieved quotes from Binance", extra={
            "provider": self.name,
            "requested": len(symbols),
            "successful": len(quotes)
        })
        return quotes
