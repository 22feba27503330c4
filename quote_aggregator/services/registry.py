"""
Provider registry for the Quote Aggregator.
Maps market codes to providers and applies the default routing per asset type.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from ..core.config import Settings, provider_config
from ..core.exceptions import AssetTypeNotSupportedError
from ..core.logging_config import create_logger
from ..core.symbols import is_valid_isin, is_valid_mic
from ..models.market_data import AssetType, SymbolParts
from ..providers.base import BaseQuoteProvider
from ..providers.binance_provider import BinanceProvider
from ..providers.coinbase_provider import CoinbaseProvider
from ..providers.coingecko_provider import CoinGeckoProvider
from ..providers.fixer_provider import FixerProvider
from ..providers.ft_provider import FinancialTimesProvider
from ..providers.xstu_provider import XSTUProvider
from ..providers.yfinance_provider import YahooFinanceProvider

logger = create_logger(__name__)


@dataclass(frozen=True)
class DefaultRoute:
    """Default provider ids for an asset type.

    ``isin`` is preferred when the short symbol is an ISIN and ``mic`` when
    the market code is a MIC; ``default`` covers everything else.
    """
    default: Optional[str] = None
    isin: Optional[str] = None
    mic: Optional[str] = None


@dataclass(frozen=True)
class MarketConflict:
    """A market code claimed by more than one provider; the later one owns it."""
    market_code: str
    previous_provider: str
    new_provider: str


class ProviderRegistry:
    """Registry of quote providers, populated once at startup."""

    def __init__(self):
        self._providers: Dict[str, BaseQuoteProvider] = {}
        self._markets: Dict[str, BaseQuoteProvider] = {}
        self._routes: Dict[AssetType, DefaultRoute] = {}
        self.conflicts: List[MarketConflict] = []

    @property
    def providers(self) -> List[BaseQuoteProvider]:
        return list(self._providers.values())

    @property
    def markets(self) -> Dict[str, str]:
        """Market code -> owning provider id."""
        return {code: provider.provider_id for code, provider in self._markets.items()}

    def register(self, provider: BaseQuoteProvider) -> None:
        """Register a provider and index its market codes.

        Registering the same provider id twice is a no-op. A market code that
        is already owned by another provider is taken over by this one and
        the conflict is recorded.
        """
        provider_id = provider.provider_id
        if provider_id in self._providers:
            logger.debug("Provider already registered", extra={"provider": provider_id})
            return

        self._providers[provider_id] = provider
        for market_code in provider.supported_markets():
            if not market_code:
                continue
            previous = self._markets.get(market_code)
            if previous is not None and previous.provider_id != provider_id:
                conflict = MarketConflict(
                    market_code=market_code,
                    previous_provider=previous.provider_id,
                    new_provider=provider_id,
                )
                self.conflicts.append(conflict)
                logger.warning("Market code already registered, overriding owner", extra={
                    "market_code": market_code,
                    "previous_provider": previous.provider_id,
                    "new_provider": provider_id
                })
            self._markets[market_code] = provider

        logger.info("Registered provider", extra={
            "provider": provider_id,
            "markets": len(provider.supported_markets()),
            "asset_types": sorted(t.value for t in provider.supported_asset_types)
        })

    def get(self, provider_id: str) -> Optional[BaseQuoteProvider]:
        return self._providers.get(provider_id)

    def lookup(self, market_code: str) -> Optional[BaseQuoteProvider]:
        if not market_code:
            return None
        return self._markets.get(market_code)

    def set_default_route(self, asset_type: AssetType, route: DefaultRoute) -> None:
        self._routes[asset_type] = route

    def default_route(self, asset_type: AssetType) -> Optional[DefaultRoute]:
        return self._routes.get(asset_type)

    def default_provider_for(
        self, asset_type: AssetType, parts: SymbolParts
    ) -> Optional[BaseQuoteProvider]:
        """Resolve the provider for a symbol.

        A known market code always wins. Otherwise the default route of the
        asset type applies, with ISIN and MIC tie-breaks for stocks and ISIN
        tie-break for mutual funds.

        Raises:
            AssetTypeNotSupportedError: no default route exists for the asset type.

        Returns:
            The provider, or None when the route selects no registered provider.
        """
        provider = self.lookup(parts.market_code)
        if provider is not None:
            return provider

        route = self._routes.get(asset_type)
        if route is None:
            raise AssetTypeNotSupportedError(asset_type)

        provider_id = route.default
        if asset_type == AssetType.STOCK:
            if route.isin and is_valid_isin(parts.short_symbol):
                provider_id = route.isin
            elif route.mic and is_valid_mic(parts.market_code):
                provider_id = route.mic
        elif asset_type == AssetType.MUTUAL_FUND:
            if route.isin and is_valid_isin(parts.short_symbol):
                provider_id = route.isin

        if provider_id is None:
            return None

        provider = self.get(provider_id)
        if provider is None:
            logger.warning("Default provider is not registered", extra={
                "asset_type": AssetType(asset_type).value,
                "provider": provider_id
            })
        return provider


def create_providers(config: Settings) -> List[BaseQuoteProvider]:
    """Instantiate the built-in providers in registration order."""
    providers: List[BaseQuoteProvider] = [
        CoinbaseProvider(),
        BinanceProvider(),
        CoinGeckoProvider(),
        XSTUProvider(),
        FinancialTimesProvider(),
        YahooFinanceProvider(),
    ]
    if config.forex_enabled:
        providers.append(FixerProvider(api_key=config.fixer_api_key))
    else:
        logger.warning("Fixer API key not set, forex quotes use Yahoo Finance")
    return providers


def build_registry(config: Settings, providers: List[BaseQuoteProvider]) -> ProviderRegistry:
    """Create a registry holding ``providers`` and the built-in default routes."""
    registry = ProviderRegistry()
    for provider in providers:
        registry.register(provider)

    for asset_type, route in provider_config.DEFAULT_ROUTES.items():
        route = dict(route)
        if asset_type == AssetType.FOREX and not config.forex_enabled:
            route['default'] = provider_config.FOREX_FALLBACK_PROVIDER
        registry.set_default_route(asset_type, DefaultRoute(**route))

    if registry.conflicts:
        logger.warning("Market code conflicts during provider registration", extra={
            "conflicts": [
                f"{c.market_code}: {c.previous_provider} -> {c.new_provider}"
                for c in registry.conflicts
            ]
        })
    return registry
