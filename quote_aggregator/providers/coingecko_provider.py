"""
CoinGecko quote provider implementation.
Provides cryptocurrency quotes using the CoinGecko simple price API.
"""

from typing import Dict, List, Optional

from .base import BaseQuoteProvider
from ..core.logging_config import create_logger
from ..core.symbols import get_short_symbols
from ..models.market_data import Asset, AssetType

logger = create_logger(__name__)

# Common cryptocurrency symbol mappings to CoinGecko ids
COINGECKO_IDS: Dict[str, str] = {
    'BTC': 'bitcoin',
    'ETH': 'ethereum',
    'ADA': 'cardano',
    'DOT': 'polkadot',
    'XRP': 'ripple',
    'LTC': 'litecoin',
    'BCH': 'bitcoin-cash',
    'LINK': 'chainlink',
    'XLM': 'stellar',
    'DOGE': 'dogecoin',
    'UNI': 'uniswap',
    'AAVE': 'aave',
    'MKR': 'maker',
    'MATIC': 'matic-network',
    'AVAX': 'avalanche-2',
    'SOL': 'solana',
    'ALGO': 'algorand',
    'TRX': 'tron',
    'XTZ': 'tezos',
    'EOS': 'eos',
    'ATOM': 'cosmos',
    'XMR': 'monero',
    'ZEC': 'zcash',
    'DASH': 'dash'
}

SUPPORTED_CURRENCIES = ('USD', 'EUR', 'GBP')


class CoinGeckoProvider(BaseQuoteProvider):
    """CoinGecko quote provider for cryptocurrencies."""

    provider_id = "CoinGecko"
    supported_asset_types = frozenset({AssetType.CRYPTOCURRENCY})
    markets = ["COINGECKO"]

    def __init__(self, base_url: str = "https://api.coingecko.com/api/v3", **kwargs):
        super().__init__(base_url=base_url, **kwargs)

    def _get_rate_limit(self) -> int:
        """CoinGecko free tier allows 50 calls per minute."""
        return 40  # Conservative: 40 requests per minute

    @staticmethod
    def _split_symbol(short_symbol: str):
        """Coin and quote currency: BTC -> (BTC, USD), ETH-EUR -> (ETH, EUR)."""
        symbol = short_symbol.upper().replace('-', '')
        for currency in SUPPORTED_CURRENCIES:
            if symbol.endswith(currency) and len(symbol) > len(currency):
                return symbol[:-len(currency)], currency
        if symbol.endswith('USDT'):
            return symbol[:-4], 'USD'
        return symbol, 'USD'

    def _symbol_to_coingecko_id(self, coin: str) -> Optional[str]:
        """Convert symbol to CoinGecko ID; unknown coins are tried as ids."""
        return COINGECKO_IDS.get(coin.upper(), coin.lower())

    async def _fetch_quotes(self, asset_type: AssetType, symbols: List[str]) -> List[Asset]:
        requested = []  # (symbol, coingecko id, currency)
        for symbol, short_symbol in zip(symbols, get_short_symbols(symbols)):
            coin, currency = self._split_symbol(short_symbol)
            requested.append((symbol, self._symbol_to_coingecko_id(coin), currency))

        price_data = await self._make_request(
            method="GET",
            url=f"{self.base_url}/simple/price",
            params={
                'ids': ','.join(sorted({coingecko_id for _, coingecko_id, _ in requested})),
                'vs_currencies': ','.join(c.lower() for c in SUPPORTED_CURRENCIES)
            }
        )

        quotes = []
        for symbol, coingecko_id, currency in requested:
            price = price_data.get(coingecko_id, {}).get(currency.lower())
            if price is None:
                continue
            quotes.append(self._create_asset(symbol=symbol, price=price, currency=currency))

        logger.info("Retrieved quotes from CoinGecko", extra={
            "provider": self.name,
            "requested": len(symbols),
            "successful": len(quotes)
        })
        return quotes
