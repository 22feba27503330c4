"""
Boerse Stuttgart quote provider implementation.
Provides bond and stock quotes scraped from the Boerse Stuttgart search page.
"""

import asyncio
import re
from typing import List, Optional

from .base import BaseQuoteProvider
from ..core.exceptions import SymbolQuoteError
from ..core.logging_config import create_logger
from ..models.market_data import Asset, AssetType

logger = create_logger(__name__)

LAST_PRICE = re.compile(
    r"[Ll]ast(/yield)?\s*<span[^>]*>[^<]*</span>\s*</td>\s*<td>\s*<span[^>]*>\s*([0-9,.]+)"
)
TRADING_CURRENCY = re.compile(
    r"Trading currency(\s*/ Note)?\s*<a[^>]*>[^<]*</a>\s*</td>\s*<td[^>]*>\s*([^/<]+)(/ percent)?"
)
CURRENCY_NAMES = {
    'Euro': 'EUR',
    'US Dollar': 'USD',
}


def parse_german_number(value: str) -> float:
    """1.234,56 -> 1234.56"""
    return float(value.replace('.', '').replace(',', '.'))


class XSTUProvider(BaseQuoteProvider):
    """Boerse Stuttgart quote provider; bonds are quoted as percent of par."""

    provider_id = "XSTU"
    supported_asset_types = frozenset({AssetType.STOCK, AssetType.BOND})
    markets = ["XSTU"]

    def __init__(self, base_url: str = "https://www.boerse-stuttgart.de", **kwargs):
        super().__init__(base_url=base_url, **kwargs)

    def _get_rate_limit(self) -> int:
        return 30

    async def _fetch_quotes(self, asset_type: AssetType, symbols: List[str]) -> List[Asset]:
        return list(await asyncio.gather(*(self._fetch_quote(symbol) for symbol in symbols)))

    async def _fetch_quote(self, symbol: str) -> Asset:
        html = await self._make_request(
            method="GET",
            url=f"{self.base_url}/en/stock-exchange/tools-and-services/product-finder/extended-search/search-result/",
            params={'searchterm': self._short_symbol(symbol)},
            expect_json=False
        )
        try:
            return self.parse_quote_page(symbol, html)
        except SymbolQuoteError as e:
            logger.warning("Could not find quote on page", extra={
                "provider": self.name,
                "symbol": symbol,
                "error": str(e)
            })
            return self._create_asset(symbol=symbol, price=None)

    def parse_quote_page(self, symbol: str, html: str) -> Asset:
        """Quote from a search result page.

        Raises:
            SymbolQuoteError: If the page holds no last price
        """
        match = LAST_PRICE.search(html)
        if not match:
            raise SymbolQuoteError(symbol)
        price = parse_german_number(match.group(2))

        currency: Optional[str] = 'USD'
        percent_price = False
        match = TRADING_CURRENCY.search(html)
        if match:
            name = match.group(2).strip()
            currency = CURRENCY_NAMES.get(name, name)
            percent_price = match.group(3) is not None

        return self._create_asset(
            symbol=symbol,
            price=price,
            currency=currency,
            percent_price=percent_price
        )
