"""Provider tests; HTTP providers run against httpx.MockTransport."""

import httpx
import pytest

from quote_aggregator.core.exceptions import (
    AssetTypeNotSupportedError, AuthenticationError, ProviderError, SymbolNotSupportedError, SymbolQuoteError
)
from quote_aggregator.models.market_data import AssetType
from quote_aggregator.providers.binance_provider import BinanceProvider
from quote_aggregator.providers.coinbase_provider import CoinbaseProvider
from quote_aggregator.providers.coingecko_provider import CoinGeckoProvider
from quote_aggregator.providers.fixer_provider import FixerProvider
from quote_aggregator.providers.ft_provider import FinancialTimesProvider
from quote_aggregator.providers.xstu_provider import XSTUProvider, parse_german_number
from quote_aggregator.providers.yfinance_provider import YahooFinanceProvider

from .conftest import FakeClock


def by_symbol(quotes):
    return {quote.symbol: quote for quote in quotes}


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps the requests it served."""

    def __init__(self, handler):
        self.requests = []

        def record(request):
            self.requests.append(request)
            return handler(request)

        super().__init__(record)


# ── Binance ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_binance_quotes_usdt_pairs():
    transport = RecordingTransport(lambda request: httpx.Response(200, json=[
        {"symbol": "BTCUSDT", "price": "65000.10"},
        {"symbol": "ETHUSDT", "price": "3200.00"},
        {"symbol": "ETHBTC", "price": "0.05"},
    ]))
    async with BinanceProvider(transport=transport) as provider:
        quotes = await provider.fetch_quotes(
            AssetType.CRYPTOCURRENCY, ["BTC", "BINANCE:ETHUSD", "BTCUSDT", "NOPE"]
        )

    quotes = by_symbol(quotes)
    assert set(quotes) == {"BTC", "BINANCE:ETHUSD", "BTCUSDT"}
    assert quotes["BTC"].price == 65000.10
    assert quotes["BTC"].currency == "USD"
    assert quotes["BINANCE:ETHUSD"].price == 3200.0
    assert len(transport.requests) == 1
    assert transport.requests[0].url.path == "/api/v3/ticker/price"


@pytest.mark.asyncio
async def test_binance_rejects_other_asset_types():
    provider = BinanceProvider(transport=RecordingTransport(lambda request: httpx.Response(200, json=[])))
    with pytest.raises(AssetTypeNotSupportedError):
        await provider.fetch_quotes(AssetType.STOCK, ["AAPL"])


@pytest.mark.asyncio
async def test_empty_batch_makes_no_request():
    transport = RecordingTransport(lambda request: httpx.Response(200, json=[]))
    provider = BinanceProvider(transport=transport)
    assert await provider.fetch_quotes(AssetType.CRYPTOCURRENCY, []) == []
    assert transport.requests == []


# ── Coinbase ─────────────────────────────────────────────────────────────


def coinbase_handler(request):
    if request.url.path == "/products/BTC-USD/ticker":
        return httpx.Response(200, json={"price": "64990.5"})
    if request.url.path == "/products/ETH-EUR/ticker":
        return httpx.Response(200, json={"price": "2950"})
    return httpx.Response(404, json={"message": "NotFound"})


@pytest.mark.asyncio
async def test_coinbase_quotes_per_product():
    transport = RecordingTransport(coinbase_handler)
    async with CoinbaseProvider(transport=transport) as provider:
        quotes = await provider.fetch_quotes(
            AssetType.CRYPTOCURRENCY, ["GDAX:BTC", "COINBASE:ETHEUR", "NOPE"]
        )

    quotes = by_symbol(quotes)
    assert quotes["GDAX:BTC"].price == 64990.5
    assert quotes["GDAX:BTC"].currency == "USD"
    assert quotes["COINBASE:ETHEUR"].currency == "EUR"
    assert quotes["NOPE"].price is None
    assert quotes["NOPE"].currency is None
    assert len(transport.requests) == 3


@pytest.mark.asyncio
async def test_coinbase_auth_failure_propagates():
    transport = RecordingTransport(lambda request: httpx.Response(401))
    async with CoinbaseProvider(transport=transport) as provider:
        with pytest.raises(AuthenticationError):
            await provider.fetch_quotes(AssetType.CRYPTOCURRENCY, ["BTC"])


def test_coinbase_product_ids():
    assert CoinbaseProvider._to_product("BTC") == ("BTC-USD", "USD")
    assert CoinbaseProvider._to_product("BTCUSD") == ("BTC-USD", "USD")
    assert CoinbaseProvider._to_product("ETH-EUR") == ("ETH-EUR", "EUR")


# ── CoinGecko ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_coingecko_simple_price():
    transport = RecordingTransport(lambda request: httpx.Response(200, json={
        "bitcoin": {"usd": 65000, "eur": 60000, "gbp": 51000},
        "ethereum": {"usd": 3200},
    }))
    async with CoinGeckoProvider(transport=transport) as provider:
        quotes = await provider.fetch_quotes(
            AssetType.CRYPTOCURRENCY, ["COINGECKO:BTC", "COINGECKO:BTCEUR", "COINGECKO:ETHGBP"]
        )

    quotes = by_symbol(quotes)
    assert quotes["COINGECKO:BTC"].price == 65000.0
    assert quotes["COINGECKO:BTCEUR"].currency == "EUR"
    assert "COINGECKO:ETHGBP" not in quotes
    assert transport.requests[0].url.params["ids"] == "bitcoin,ethereum"


# ── Fixer ────────────────────────────────────────────────────────────────


FIXER_RATES = {
    "success": True,
    "base": "EUR",
    "rates": {"EUR": 1.0, "USD": 1.1, "GBP": 0.85},
}


@pytest.mark.asyncio
async def test_fixer_cross_rates():
    transport = RecordingTransport(lambda request: httpx.Response(200, json=FIXER_RATES))
    async with FixerProvider(api_key="secret", transport=transport) as provider:
        quotes = await provider.fetch_quotes(AssetType.FOREX, ["EURUSD", "USD/GBP", "EURXXX", "GOLD"])
        await provider.fetch_quotes(AssetType.FOREX, ["GBPUSD"])

    quotes = by_symbol(quotes)
    assert quotes["EURUSD"].price == pytest.approx(1.1)
    assert quotes["EURUSD"].currency == "USD"
    assert quotes["USD/GBP"].price == pytest.approx(0.85 / 1.1)
    assert quotes["EURXXX"].price is None
    assert "GOLD" not in quotes
    # Rates are reused while fresh
    assert len(transport.requests) == 1
    assert transport.requests[0].url.params["access_key"] == "secret"


@pytest.mark.asyncio
async def test_fixer_refetches_rates_after_ttl():
    clock = FakeClock()
    transport = RecordingTransport(lambda request: httpx.Response(200, json=FIXER_RATES))
    async with FixerProvider(api_key="secret", rates_ttl=90, clock=clock, transport=transport) as provider:
        await provider.fetch_quotes(AssetType.FOREX, ["EURUSD"])
        clock.advance(89)
        await provider.fetch_quotes(AssetType.FOREX, ["EURGBP"])
        assert len(transport.requests) == 1

        clock.advance(1)
        quotes = await provider.fetch_quotes(AssetType.FOREX, ["EURGBP"])

    assert len(transport.requests) == 2
    assert quotes[0].price == pytest.approx(0.85)


@pytest.mark.asyncio
async def test_fixer_error_response():
    transport = RecordingTransport(lambda request: httpx.Response(200, json={
        "success": False,
        "error": {"code": 101, "type": "invalid_access_key", "info": "Invalid key"},
    }))
    async with FixerProvider(api_key="bad", transport=transport) as provider:
        with pytest.raises(ProviderError, match="Invalid key"):
            await provider.fetch_quotes(AssetType.FOREX, ["EURUSD"])


def test_fixer_pair_parsing():
    provider = FixerProvider(api_key="secret")
    assert provider._parse_pair("FX:EURUSD") == ("EUR", "USD")
    assert provider._parse_pair("GBP/JPY") == ("GBP", "JPY")
    with pytest.raises(SymbolNotSupportedError):
        provider._parse_pair("GOLD")


def test_fixer_requires_api_key(monkeypatch):
    monkeypatch.setattr("quote_aggregator.providers.fixer_provider.settings.fixer_api_key", None)
    with pytest.raises(AuthenticationError):
        FixerProvider()


# ── Boerse Stuttgart ─────────────────────────────────────────────────────


BOND_PAGE = """
<table><tr><td>Last/yield <span class="unit">in %</span></td>
<td><span class="price">101,25</span></td></tr>
<tr><td>Trading currency / Note <a href="#help">?</a></td>
<td class="value">Euro / percent</td></tr></table>
"""

STOCK_PAGE = """
<table><tr><td>Last <span class="unit">USD</span></td>
<td><span class="price">1.234,50</span></td></tr>
<tr><td>Trading currency <a href="#help">?</a></td>
<td class="value">US Dollar</td></tr></table>
"""


def test_parse_german_number():
    assert parse_german_number("1.234,56") == 1234.56
    assert parse_german_number("98,7") == 98.7


def test_xstu_bond_page_is_percent_of_par():
    asset = XSTUProvider().parse_quote_page("XSTU:DE0001102580", BOND_PAGE)
    assert asset.price == 101.25
    assert asset.currency == "EUR"
    assert asset.percent_price is True


def test_xstu_stock_page():
    asset = XSTUProvider().parse_quote_page("XSTU:AAPL", STOCK_PAGE)
    assert asset.price == 1234.5
    assert asset.currency == "USD"
    assert asset.percent_price is False


def test_xstu_page_without_quote():
    with pytest.raises(SymbolQuoteError):
        XSTUProvider().parse_quote_page("XSTU:NOPE", "<html>No results</html>")


@pytest.mark.asyncio
async def test_xstu_missing_quote_is_unavailable():
    transport = RecordingTransport(lambda request: httpx.Response(200, text="<html>No results</html>"))
    async with XSTUProvider(transport=transport) as provider:
        quotes = await provider.fetch_quotes(AssetType.STOCK, ["XSTU:NOPE"])

    assert quotes[0].symbol == "XSTU:NOPE"
    assert quotes[0].price is None


@pytest.mark.asyncio
async def test_xstu_fetches_html():
    transport = RecordingTransport(lambda request: httpx.Response(200, text=BOND_PAGE))
    async with XSTUProvider(transport=transport) as provider:
        quotes = await provider.fetch_quotes(AssetType.BOND, ["XSTU:DE0001102580"])

    assert quotes[0].symbol == "XSTU:DE0001102580"
    assert quotes[0].percent_price is True
    assert transport.requests[0].url.params["searchterm"] == "DE0001102580"


# ── Financial Times ──────────────────────────────────────────────────────


TEARSHEET = (
    '<ul class="mod-tearsheet-overview__quote__bar"><li>'
    '<span class="label">Price (GBP)</span><span class="value">1,234.56</span></li></ul>'
)


def test_ft_tearsheet():
    asset = FinancialTimesProvider().parse_tearsheet("GB00B4PQW151", TEARSHEET)
    assert asset.price == 1234.56
    assert asset.currency == "GBP"


def test_ft_tearsheet_without_price():
    with pytest.raises(SymbolQuoteError):
        FinancialTimesProvider().parse_tearsheet("GB00B4PQW151", "<html></html>")


@pytest.mark.asyncio
async def test_ft_fetches_tearsheet():
    transport = RecordingTransport(lambda request: httpx.Response(200, text=TEARSHEET))
    async with FinancialTimesProvider(transport=transport) as provider:
        quotes = await provider.fetch_quotes(AssetType.MUTUAL_FUND, ["GB00B4PQW151"])

    assert quotes[0].price == 1234.56
    assert transport.requests[0].url.params["s"] == "GB00B4PQW151"


# ── Yahoo Finance ────────────────────────────────────────────────────────


@pytest.mark.parametrize("symbol, asset_type, expected", [
    ("AAPL", AssetType.STOCK, "AAPL"),
    ("XNAS:AAPL", AssetType.STOCK, "AAPL"),
    ("XLON:VOD", AssetType.STOCK, "VOD.L"),
    ("XETR:SAP", AssetType.STOCK, "SAP.DE"),
    ("EURUSD", AssetType.FOREX, "EURUSD=X"),
    ("EUR/USD", AssetType.FOREX, "EURUSD=X"),
    ("GOLD", AssetType.COMMODITY, "GC=F"),
    ("CL", AssetType.COMMODITY, "CL=F"),
])
def test_yahoo_symbol_format(symbol, asset_type, expected):
    assert YahooFinanceProvider()._format_symbol(symbol, asset_type) == expected


@pytest.mark.asyncio
async def test_yahoo_maps_results_to_requested_symbols(monkeypatch):
    provider = YahooFinanceProvider()

    def fake_fetch(yahoo_symbols):
        assert yahoo_symbols == ["EURUSD=X"]
        return {"EURUSD=X": {"price": 1.08, "currency": "USD"}}

    monkeypatch.setattr(provider, "_fetch_quotes_sync", fake_fetch)
    quotes = await provider.fetch_quotes(AssetType.FOREX, ["EURUSD", "EUR/USD"])
    await provider.disconnect()

    assert sorted(q.symbol for q in quotes) == ["EUR/USD", "EURUSD"]
    assert all(q.price == 1.08 for q in quotes)


@pytest.mark.asyncio
async def test_yahoo_wraps_library_errors(monkeypatch):
    provider = YahooFinanceProvider()

    def broken(yahoo_symbols):
        raise ValueError("no data")

    monkeypatch.setattr(provider, "_fetch_quotes_sync", broken)
    with pytest.raises(ProviderError) as exc_info:
        await provider.fetch_quotes(AssetType.STOCK, ["AAPL"])
    await provider.disconnect()

    assert isinstance(exc_info.value.__cause__, ValueError)
