"""
Symbol parsing and validation.

Symbols are either ``SHORT`` or ``MARKET:SHORT`` where MARKET is an exchange
or venue code (often a MIC) and SHORT a ticker or ISIN.
"""

import re
from typing import Iterable, List

from ..models.market_data import SymbolParts

MARKET_CODE_PATTERN = re.compile(r"^[A-Z0-9]{0,10}$", re.IGNORECASE)
SHORT_SYMBOL_PATTERN = re.compile(r"^[A-Z0-9.+_/-]{1,12}$", re.IGNORECASE)
ISIN_PATTERN = re.compile(r"^[A-Z0-9]{12}$", re.IGNORECASE)
MIC_PATTERN = re.compile(r"^[A-Z]{4}$", re.IGNORECASE)


def parse_symbol(symbol: str) -> SymbolParts:
    """Split a symbol on its first colon; no colon means no market code."""
    market_code, sep, short_symbol = symbol.partition(":")
    if not sep:
        return SymbolParts(market_code="", short_symbol=symbol)
    return SymbolParts(market_code=market_code, short_symbol=short_symbol)


def normalize_symbol(symbol: str) -> str:
    return symbol.strip().upper()


def is_valid_symbol(symbol: str) -> bool:
    """Check a raw symbol against the market code and short symbol patterns."""
    parts = parse_symbol(normalize_symbol(symbol))
    if not MARKET_CODE_PATTERN.fullmatch(parts.market_code):
        return False
    return bool(SHORT_SYMBOL_PATTERN.fullmatch(parts.short_symbol))


def is_valid_isin(symbol: str) -> bool:
    return bool(ISIN_PATTERN.fullmatch(symbol))


def is_valid_mic(market_code: str) -> bool:
    return bool(MIC_PATTERN.fullmatch(market_code))


def get_short_symbols(symbols: Iterable[str]) -> List[str]:
    """Short symbol of each full symbol, in order."""
    return [parse_symbol(symbol).short_symbol for symbol in symbols]


def build_cache_key(provider_id: str, short_symbol: str) -> str:
    return f"{provider_id}_{short_symbol}"
