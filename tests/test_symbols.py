"""Symbol parsing and validation tests."""

import pytest

from quote_aggregator.core.symbols import (
    build_cache_key,
    get_short_symbols,
    is_valid_isin,
    is_valid_mic,
    is_valid_symbol,
    normalize_symbol,
    parse_symbol,
)
from quote_aggregator.models.market_data import SymbolParts


def test_parse_symbol_without_market():
    assert parse_symbol("AAPL") == SymbolParts(market_code="", short_symbol="AAPL")


def test_parse_symbol_with_market():
    assert parse_symbol("XNAS:AAPL") == SymbolParts(market_code="XNAS", short_symbol="AAPL")


def test_parse_symbol_splits_on_first_colon():
    assert parse_symbol("A:B:C") == SymbolParts(market_code="A", short_symbol="B:C")


def test_normalize_symbol():
    assert normalize_symbol("  xnas:aapl ") == "XNAS:AAPL"


@pytest.mark.parametrize("symbol", [
    "AAPL",
    " aapl ",
    "XNAS:AAPL",
    ":AAPL",
    "BRK.B",
    "EUR/USD",
    "BTC-USD",
    "US0378331005",
])
def test_valid_symbols(symbol):
    assert is_valid_symbol(symbol)


@pytest.mark.parametrize("symbol", [
    "",
    "??",
    "XNAS:",
    "A:B:C",
    "TOOLONGMARKET:AAPL",
    "AAPL1234567890",
    "XN-S:AAPL",
])
def test_invalid_symbols(symbol):
    assert not is_valid_symbol(symbol)


def test_isin_and_mic():
    assert is_valid_isin("US0378331005")
    assert not is_valid_isin("AAPL")
    assert is_valid_mic("XNAS")
    assert not is_valid_mic("NASDAQ")
    assert not is_valid_mic("")


def test_get_short_symbols_keeps_order():
    assert get_short_symbols(["XNAS:AAPL", "MSFT", "XLON:VOD"]) == ["AAPL", "MSFT", "VOD"]


def test_build_cache_key():
    assert build_cache_key("YahooFinance", "AAPL") == "YahooFinance_AAPL"
