"""
Yahoo Finance quote provider implementation.
Provides stock, commodity (futures), forex and mutual fund quotes using the
yfinance library.
"""

from typing import Dict, List, Optional
import yfinance as yf
import asyncio
from concurrent.futures import ThreadPoolExecutor

from .base import BaseQuoteProvider
from ..core.exceptions import ProviderError
from ..core.logging_config import create_logger
from ..core.symbols import parse_symbol
from ..models.market_data import Asset, AssetType

logger = create_logger(__name__)

# MIC codes mapped to Yahoo exchange suffixes
YAHOO_EXCHANGE_CODES: Dict[str, str] = {
    'XCBT': 'CBT', 'XCME': 'CME', 'IFUS': 'NYB', 'XNYM': 'NYM', 'XBUE': 'BA',
    'XWBO': 'VI', 'XASX': 'AX', 'XBRU': 'BR', 'BVMF': 'SA', 'XTSE': 'TO',
    'XCNQ': 'CN', 'NEOE': 'NE', 'XTSX': 'V', 'XSGO': 'SN', 'XSSC': 'SS',
    'XSEC': 'SZ', 'XPRA': 'PR', 'XCSE': 'CO', 'XCAI': 'CA', 'XTAL': 'TL',
    'XHEL': 'HE', 'XPAR': 'PA', 'XBER': 'BE', 'XFRA': 'F', 'XETR': 'DE',
    'XHAM': 'HM', 'XHAN': 'HA', 'XDUS': 'DU', 'XMUN': 'MU', 'XATH': 'AT',
    'XHKG': 'HK', 'XBUD': 'BD', 'XICE': 'IC', 'XBOM': 'BO', 'XNSE': 'NS',
    'XIDX': 'JK', 'XDUB': 'IR', 'XTAE': 'TA', 'ETLX': 'TI', 'XMIL': 'MI',
    'XTKS': 'T', 'XRIS': 'RG', 'NASB': 'VS', 'XKLS': 'KL', 'BIVA': 'MX',
    'XAMS': 'AS', 'XNZE': 'NZ', 'XOSL': 'OL', 'XLIS': 'LS', 'DSMD': 'QA',
    'MISX': 'ME', 'XSES': 'SI', 'XJSE': 'JO', 'XKRX': 'KS', 'XKOS': 'KQ',
    'XMAD': 'MC', 'XSAU': 'SAU', 'XOME': 'ST', 'XSWX': 'SW', 'XTAI': 'TW',
    'XBKK': 'BK', 'XIST': 'IS', 'XLON': 'L', 'BVCA': 'CR',
}

# US venues quoted by Yahoo without a suffix
YAHOO_US_MARKETS = ['XNAS', 'XNYS', 'XASE', 'ARCX', 'BATS']

# Commodity names and metal codes mapped to front-month futures roots
COMMODITY_FUTURES: Dict[str, str] = {
    'GOLD': 'GC', 'AU': 'GC', 'GC': 'GC',
    'SILVER': 'SI', 'AG': 'SI', 'SI': 'SI',
    'PLATINUM': 'PL', 'PT': 'PL', 'PL': 'PL',
    'PALLADIUM': 'PA', 'PD': 'PA', 'PA': 'PA',
    'COPPER': 'HG', 'CU': 'HG', 'HG': 'HG',
    'ALUMINIUM': 'ALI', 'AL': 'ALI', 'ALI': 'ALI',
    'CORN': 'ZC', 'ZC': 'ZC',
    'SOYBEAN': 'ZS', 'ZS': 'ZS',
    'WHEAT': 'ZW', 'ZW': 'ZW',
    'CATTLE': 'LE', 'LE': 'LE',
    'OIL': 'CL', 'CL': 'CL',
    'BRENT': 'BZ', 'BZ': 'BZ',
    'GASOLINE': 'RB', 'RB': 'RB',
    'GAS': 'NG', 'NG': 'NG',
}


class YahooFinanceProvider(BaseQuoteProvider):
    """Yahoo Finance quote provider."""

    provider_id = "YahooFinance"
    supported_asset_types = frozenset({
        AssetType.STOCK,
        AssetType.COMMODITY,
        AssetType.FOREX,
        AssetType.MUTUAL_FUND,
    })
    markets = list(YAHOO_EXCHANGE_CODES) + YAHOO_US_MARKETS

    def __init__(self, max_workers: int = 4):
        super().__init__()
        self._executor = ThreadPoolExecutor(max_workers=max_workers)

    def _get_rate_limit(self) -> int:
        """Yahoo Finance allows approximately 2000 requests per hour."""
        return 30  # Conservative: 30 requests per minute

    def _format_symbol(self, symbol: str, asset_type: AssetType) -> str:
        """Translate a normalized symbol to Yahoo's notation."""
        parts = parse_symbol(symbol)
        short_symbol = parts.short_symbol

        if asset_type == AssetType.FOREX:
            pair = short_symbol.replace('/', '')
            return pair if pair.endswith('=X') else f"{pair}=X"

        if asset_type == AssetType.COMMODITY:
            if '=' in short_symbol:
                return short_symbol
            return f"{COMMODITY_FUTURES.get(short_symbol, short_symbol)}=F"

        suffix = YAHOO_EXCHANGE_CODES.get(parts.market_code)
        if suffix:
            return f"{short_symbol}.{suffix}"
        return short_symbol

    async def _fetch_quotes(self, asset_type: AssetType, symbols: List[str]) -> List[Asset]:
        """Get quotes from Yahoo Finance."""
        yahoo_symbols: Dict[str, List[str]] = {}  # Map Yahoo symbol -> requested symbols
        for symbol in symbols:
            yahoo_symbols.setdefault(self._format_symbol(symbol, asset_type), []).append(symbol)

        await self._apply_rate_limit()

        try:
            # Use thread pool to run synchronous yfinance code
            loop = asyncio.get_running_loop()
            quotes_data = await loop.run_in_executor(
                self._executor,
                self._fetch_quotes_sync,
                list(yahoo_symbols)
            )
        except Exception as e:
            logger.error("Failed to fetch quotes from Yahoo Finance", extra={
                "provider": self.name,
                "symbols": symbols,
                "error": str(e)
            })
            raise ProviderError(f"Failed to fetch quotes: {str(e)}", self.name) from e

        quotes = []
        for yahoo_symbol, data in quotes_data.items():
            quotes.extend(
                self._create_asset(symbol=symbol, price=data['price'], currency=data.get('currency'))
                for symbol in yahoo_symbols[yahoo_symbol]
            )

        logger.info("Retrieved quotes from Yahoo Finance", extra={
            "provider": self.name,
            "requested": len(symbols),
            "successful": len(quotes)
        })

        return quotes

    def _fetch_quotes_sync(self, symbols: List[str]) -> Dict[str, Dict]:
        """Synchronous function to fetch quotes using yfinance."""
        tickers = yf.Tickers(' '.join(symbols))

        quotes_data = {}
        for symbol in symbols:
            try:
                ticker = tickers.tickers.get(symbol) or yf.Ticker(symbol)
                price, currency = self._read_price(ticker)

                if price is None:
                    logger.warning("No price data available", extra={
                        "symbol": symbol,
                        "provider": self.name
                    })
                    continue

                quotes_data[symbol] = {
                    'price': float(price),
                    'currency': currency
                }

            except Exception as e:
                logger.warning("Failed to fetch data for symbol", extra={
                    "symbol": symbol,
                    "error": str(e),
                    "provider": self.name
                })
                continue

        return quotes_data

    @staticmethod
    def _read_price(ticker: "yf.Ticker") -> tuple:
        """Last price and currency, from fast_info with a fallback to info."""
        fast_info = ticker.fast_info
        price: Optional[float] = fast_info.last_price
        currency: Optional[str] = fast_info.currency
        if price is None:
            info = ticker.info
            price = (
                info.get('currentPrice') or
                info.get('regularMarketPrice') or
                info.get('navPrice') or
                info.get('previousClose')
            )
            currency = currency or info.get('currency')
        return price, currency

    async def disconnect(self) -> None:
        await super().disconnect()
        self._executor.shutdown(wait=False)
