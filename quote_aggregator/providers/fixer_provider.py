"""
Fixer quote provider implementation.
Provides forex quotes from fixer.io latest rates.
"""

import re
import time
from typing import Callable, Dict, List, Optional, Tuple

from cachetools import TTLCache

from .base import BaseQuoteProvider
from ..core.config import settings
from ..core.exceptions import AuthenticationError, ProviderError, SymbolNotSupportedError
from ..core.logging_config import create_logger
from ..models.market_data import Asset, AssetType

logger = create_logger(__name__)

CURRENCY_PAIR = re.compile(r"^([A-Z]{3})/?([A-Z]{3})$")


class FixerProvider(BaseQuoteProvider):
    """Fixer forex provider.

    Fixer returns every rate against one base currency in a single call, so
    the response is kept for ``rates_ttl`` seconds to stay within the API
    plan limits. A pair is priced as rate(to) / rate(from).
    """

    provider_id = "Fixer"
    supported_asset_types = frozenset({AssetType.FOREX})
    markets: List[str] = []

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        rates_ttl: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        **kwargs
    ):
        super().__init__(
            api_key=api_key or settings.fixer_api_key,
            base_url=base_url or settings.fixer_api_url,
            **kwargs
        )
        if not self.api_key:
            raise AuthenticationError("Fixer API key is required", self.provider_id)
        self.rates_ttl = rates_ttl if rates_ttl is not None else settings.forex_cache_ttl
        self._rates: TTLCache = TTLCache(maxsize=1, ttl=self.rates_ttl, timer=clock)

    def _get_rate_limit(self) -> int:
        return 10

    async def _get_rates(self) -> Dict[str, float]:
        rates = self._rates.get('latest')
        if rates is not None:
            return rates

        data = await self._make_request(
            method="GET",
            url=f"{self.base_url}/latest",
            params={'access_key': self.api_key}
        )
        if not data or not data.get('success'):
            error = (data or {}).get('error', {})
            raise ProviderError(
                f"Fixer request failed: {error.get('info') or error.get('type') or 'unknown error'}",
                self.name
            )

        self._rates['latest'] = data['rates']
        return data['rates']

    def _parse_pair(self, symbol: str) -> Tuple[str, str]:
        match = CURRENCY_PAIR.match(self._short_symbol(symbol))
        if not match:
            raise SymbolNotSupportedError(symbol)
        return match.group(1), match.group(2)

    async def _fetch_quotes(self, asset_type: AssetType, symbols: List[str]) -> List[Asset]:
        rates = await self._get_rates()

        quotes = []
        for symbol in symbols:
            try:
                from_currency, to_currency = self._parse_pair(symbol)
            except SymbolNotSupportedError as e:
                logger.debug("Not a currency pair", extra={"provider": self.name, "error": str(e)})
                continue
            from_rate = rates.get(from_currency)
            to_rate = rates.get(to_currency)
            if from_rate and to_rate:
                quotes.append(self._create_asset(
                    symbol=symbol,
                    price=to_rate / from_rate,
                    currency=to_currency
                ))
            else:
                quotes.append(self._create_asset(symbol=symbol, price=None))
        return quotes
