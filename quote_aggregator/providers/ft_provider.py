"""
Financial Times quote provider implementation.
Provides mutual fund quotes from the FT fund tearsheets, looked up by ISIN.
"""

import asyncio
import re
from typing import List

from .base import BaseQuoteProvider
from ..core.exceptions import SymbolQuoteError
from ..core.logging_config import create_logger
from ..models.market_data import Asset, AssetType

logger = create_logger(__name__)

FUND_PRICE = re.compile(
    r"overview__quote__bar[^>]*><li><span[^>]*>Price(\s*\(([^)]+))?[^<]*</span><span[^>]*>([0-9.,]+)"
)


class FinancialTimesProvider(BaseQuoteProvider):
    """FT fund quotes; one tearsheet request per fund."""

    provider_id = "FinancialTimes"
    supported_asset_types = frozenset({AssetType.MUTUAL_FUND})
    markets = ["FT"]

    def __init__(self, base_url: str = "https://markets.ft.com", **kwargs):
        super().__init__(base_url=base_url, **kwargs)

    def _get_rate_limit(self) -> int:
        return 30

    async def _fetch_quotes(self, asset_type: AssetType, symbols: List[str]) -> List[Asset]:
        return list(await asyncio.gather(*(self._fetch_quote(symbol) for symbol in symbols)))

    async def _fetch_quote(self, symbol: str) -> Asset:
        html = await self._make_request(
            method="GET",
            url=f"{self.base_url}/data/funds/tearsheet/summary",
            params={'s': self._short_symbol(symbol)},
            expect_json=False
        )
        try:
            return self.parse_tearsheet(symbol, html)
        except SymbolQuoteError:
            logger.warning("Could not find fund price on tearsheet", extra={
                "provider": self.name,
                "symbol": symbol
            })
            return self._create_asset(symbol=symbol, price=None)

    def parse_tearsheet(self, symbol: str, html: str) -> Asset:
        match = FUND_PRICE.search(html)
        if not match:
            raise SymbolQuoteError(symbol)

        price = float(match.group(3).replace(',', ''))
        currency = match.group(2) or 'USD'
        return self._create_asset(symbol=symbol, price=price, currency=currency)
