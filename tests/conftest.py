"""Shared fixtures: in-memory providers, a controllable clock and a wired aggregator."""

from typing import Dict, Iterable, List, Optional, Tuple

import pytest

from quote_aggregator.models.market_data import Asset, AssetType
from quote_aggregator.providers.base import BaseQuoteProvider
from quote_aggregator.services.cache import QuoteCache
from quote_aggregator.services.data_aggregator import QuoteAggregator
from quote_aggregator.services.registry import DefaultRoute, ProviderRegistry


class FakeProvider(BaseQuoteProvider):
    """Provider answering from a price table and recording every batch it gets."""

    def __init__(
        self,
        provider_id: str,
        markets: Iterable[str] = (),
        asset_types: Iterable[AssetType] = (AssetType.STOCK,),
        prices: Optional[Dict[str, Tuple[Optional[float], Optional[str]]]] = None,
        error: Optional[Exception] = None,
    ):
        self.provider_id = provider_id
        self.markets = list(markets)
        self.supported_asset_types = frozenset(asset_types)
        super().__init__()
        self.prices = prices or {}
        self.error = error
        self.calls: List[List[str]] = []

    async def _fetch_quotes(self, asset_type: AssetType, symbols: List[str]) -> List[Asset]:
        self.calls.append(list(symbols))
        if self.error is not None:
            raise self.error
        quotes = []
        for symbol in symbols:
            short_symbol = self._short_symbol(symbol)
            if short_symbol in self.prices:
                price, currency = self.prices[short_symbol]
                quotes.append(self._create_asset(symbol=symbol, price=price, currency=currency))
        return quotes


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return QuoteCache(default_ttl=3600, invalid_ttl=300, clock=clock)


@pytest.fixture
def stocks():
    return FakeProvider(
        "Stocks",
        markets=["XNAS", "XLON"],
        asset_types=[AssetType.STOCK, AssetType.MUTUAL_FUND],
        prices={
            "AAPL": (190.5, "USD"),
            "MSFT": (410.0, "USD"),
            "VOD": (12345, "GBX"),
        },
    )


@pytest.fixture
def exchange():
    return FakeProvider(
        "Exchange",
        markets=["XSTU"],
        asset_types=[AssetType.STOCK, AssetType.BOND],
        prices={"BMW": (98.2, "EUR")},
    )


@pytest.fixture
def crypto():
    return FakeProvider(
        "Crypto",
        markets=["BINANCE"],
        asset_types=[AssetType.CRYPTOCURRENCY],
        prices={"BTC": (65000.0, "USD")},
    )


@pytest.fixture
def registry(stocks, exchange, crypto):
    registry = ProviderRegistry()
    for provider in (stocks, exchange, crypto):
        registry.register(provider)
    registry.set_default_route(AssetType.STOCK, DefaultRoute(default="Stocks"))
    registry.set_default_route(AssetType.MUTUAL_FUND, DefaultRoute(default="Stocks"))
    registry.set_default_route(AssetType.BOND, DefaultRoute())
    registry.set_default_route(AssetType.CRYPTOCURRENCY, DefaultRoute(default="Crypto"))
    return registry


@pytest.fixture
def aggregator(registry, cache):
    return QuoteAggregator(registry=registry, cache=cache)
