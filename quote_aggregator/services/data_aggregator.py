"""
Quote aggregation service for the Quote Aggregator.
Routes symbols to providers, batches cache misses per provider, fans the
batches out concurrently and merges the results.
"""

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from ..core.config import Settings
from ..core.currency import normalize_currency
from ..core.exceptions import AssetTypeNotSupportedError, ProviderError, QuoteError
from ..core.logging_config import create_logger
from ..core.symbols import build_cache_key, is_valid_symbol, normalize_symbol, parse_symbol
from ..models.market_data import (
    Asset, AssetType, ProviderFailure, QuoteBatch, unavailable_asset
)
from ..providers.base import BaseQuoteProvider
from .cache import QuoteCache
from .registry import ProviderRegistry

logger = create_logger(__name__)


@dataclass
class PendingRequest:
    """Cache misses for one provider, keyed by cache key."""
    provider: BaseQuoteProvider
    symbols: Dict[str, str] = field(default_factory=dict)


class QuoteAggregator:
    """Serves quote batches from the cache and the registered providers."""

    def __init__(
        self,
        registry: ProviderRegistry,
        cache: QuoteCache,
        partial_results: bool = True,
        eviction_interval: Optional[float] = None,
    ):
        self.registry = registry
        self.cache = cache
        self.partial_results = partial_results
        self.eviction_interval = eviction_interval
        self._running_tasks: List[asyncio.Task] = []
        self._shutdown_event = asyncio.Event()
        self._last_eviction: Optional[datetime] = None

    @classmethod
    def from_settings(
        cls, config: Settings, registry: ProviderRegistry, cache: QuoteCache
    ) -> "QuoteAggregator":
        return cls(
            registry=registry,
            cache=cache,
            partial_results=config.partial_results,
            eviction_interval=config.cache_eviction_interval,
        )

    async def get_quotes(self, symbols: List[str], asset_type: AssetType) -> QuoteBatch:
        """
        Get quotes for a batch of symbols of one asset type.

        Invalid symbols are dropped. Symbols without a provider get a quote
        with no price. Cache misses are requested with one call per provider,
        all providers concurrently.

        Args:
            symbols: Client supplied symbols, ``SHORT`` or ``MARKET:SHORT``
            asset_type: Asset type of every symbol in the batch

        Returns:
            QuoteBatch with one quote per valid input symbol, in no particular
            order, and the providers that failed

        Raises:
            AssetTypeNotSupportedError: If any symbol routes to a provider that
                cannot serve asset_type, or the asset type has no default
            QuoteError: If a provider failed and partial results are disabled
        """
        asset_type = AssetType(asset_type)
        requested = [symbol.strip() for symbol in symbols if is_valid_symbol(symbol)]
        if len(requested) != len(symbols):
            logger.debug("Dropped invalid symbols", extra={
                "dropped": [s for s in symbols if not is_valid_symbol(s)]
            })

        quotes: List[Asset] = []
        request_symbols: Dict[str, List[str]] = defaultdict(list)
        pending: Dict[str, PendingRequest] = {}

        for original in requested:
            symbol = normalize_symbol(original)
            parts = parse_symbol(symbol)
            provider = self.registry.default_provider_for(asset_type, parts)

            if provider is None:
                quotes.append(unavailable_asset(original))
                continue

            if not provider.supports_asset_type(asset_type):
                raise AssetTypeNotSupportedError(asset_type)

            cache_key = build_cache_key(provider.provider_id, parts.short_symbol)
            cached = self.cache.get(cache_key)
            if cached is not None:
                quotes.append(cached.model_copy(update={"symbol": original}))
                continue

            request_symbols[cache_key].append(original)
            batch = pending.setdefault(provider.provider_id, PendingRequest(provider))
            batch.symbols.setdefault(cache_key, symbol)

        cache_hits = len(quotes)
        failures: List[ProviderFailure] = []

        if pending:
            batches = list(pending.values())
            results = await asyncio.gather(
                *(self._fetch_batch(batch, asset_type) for batch in batches),
                return_exceptions=True
            )
            for batch, result in zip(batches, results):
                if isinstance(result, BaseException):
                    if not isinstance(result, Exception):
                        raise result
                    failure = self._record_failure(batch, result)
                    if not self.partial_results:
                        raise failure.error
                    failures.append(failure)
                    continue
                quotes.extend(self._merge_batch(batch, result, request_symbols))

        logger.info("Quotes aggregated", extra={
            "asset_type": asset_type.value,
            "requested": len(symbols),
            "valid": len(requested),
            "cache_hits": cache_hits,
            "providers": sorted(pending),
            "failed_providers": [f.provider_id for f in failures],
            "returned": len(quotes)
        })

        return QuoteBatch(quotes=quotes, failures=failures)

    async def _fetch_batch(self, batch: PendingRequest, asset_type: AssetType) -> List[Asset]:
        symbols = list(batch.symbols.values())
        logger.debug("Requesting quotes from provider", extra={
            "provider": batch.provider.provider_id,
            "asset_type": asset_type.value,
            "symbols": symbols
        })
        return await batch.provider.fetch_quotes(asset_type, symbols)

    def _record_failure(self, batch: PendingRequest, error: Exception) -> ProviderFailure:
        provider_id = batch.provider.provider_id
        if not isinstance(error, QuoteError):
            wrapped = ProviderError(f"Failed to fetch quotes from {provider_id}: {error}", provider_id)
            wrapped.__cause__ = error
            error = wrapped

        logger.warning("Provider failed while fetching quotes", extra={
            "provider": provider_id,
            "symbols": list(batch.symbols.values()),
            "error": str(error)
        })
        return ProviderFailure(
            provider_id=provider_id,
            symbols=list(batch.symbols.values()),
            error=error
        )

    def _merge_batch(
        self,
        batch: PendingRequest,
        assets: List[Asset],
        request_symbols: Dict[str, List[str]],
    ) -> List[Asset]:
        """Cache returned quotes and map them back to the caller's symbols."""
        provider_id = batch.provider.provider_id
        unresolved = dict(batch.symbols)
        merged: List[Asset] = []

        for asset in assets:
            asset = normalize_currency(asset)
            short_symbol = parse_symbol(normalize_symbol(asset.symbol)).short_symbol
            cache_key = build_cache_key(provider_id, short_symbol)
            if cache_key not in unresolved:
                logger.warning("Provider returned a symbol that was not requested", extra={
                    "provider": provider_id,
                    "symbol": asset.symbol
                })
                continue

            del unresolved[cache_key]
            self.cache.set(cache_key, asset)
            merged.extend(
                asset.model_copy(update={"symbol": original})
                for original in request_symbols[cache_key]
            )

        # Symbols the provider did not answer for are cached as unresolvable
        for cache_key, symbol in unresolved.items():
            self.cache.set(cache_key, unavailable_asset(symbol))
            merged.extend(unavailable_asset(original) for original in request_symbols[cache_key])

        if unresolved:
            logger.debug("Provider returned no quote for symbols", extra={
                "provider": provider_id,
                "symbols": list(unresolved.values())
            })
        return merged

    async def start_background_tasks(self) -> None:
        """Start the cache eviction loop."""
        if not self.eviction_interval:
            return
        self._shutdown_event.clear()
        task = asyncio.create_task(self.run_cache_eviction_loop())
        self._running_tasks.append(task)
        logger.info("Background tasks started", extra={
            "tasks": len(self._running_tasks)
        })

    async def run_cache_eviction_loop(self) -> None:
        """Background task removing expired quotes from the cache."""
        logger.info("Starting cache eviction loop", extra={
            "interval": self.eviction_interval
        })

        while not self._shutdown_event.is_set():
            try:
                removed = self.cache.purge_expired()
                self._last_eviction = datetime.utcnow()
                if removed:
                    logger.info("Cache eviction completed", extra={"removed": removed})
            except Exception as e:
                logger.error("Error in cache eviction loop", extra={
                    "error": str(e)
                })

            # Wait for next eviction cycle
            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self.eviction_interval
                )
                break  # Shutdown event was set
            except asyncio.TimeoutError:
                continue

    async def connect_providers(self) -> None:
        for provider in self.registry.providers:
            await provider.connect()

    async def shutdown(self) -> None:
        """Stop background tasks and close provider connections."""
        logger.info("Shutting down quote aggregator")

        self._shutdown_event.set()

        for task in self._running_tasks:
            if not task.done():
                task.cancel()

        if self._running_tasks:
            await asyncio.gather(*self._running_tasks, return_exceptions=True)
        self._running_tasks.clear()

        for provider in self.registry.providers:
            try:
                await provider.disconnect()
            except Exception as e:
                logger.warning("Error disconnecting provider", extra={
                    "provider": provider.provider_id,
                    "error": str(e)
                })

        logger.info("Quote aggregator shutdown complete")

    def are_background_tasks_running(self) -> bool:
        return any(not task.done() for task in self._running_tasks)

    def get_last_eviction_time(self) -> Optional[datetime]:
        return self._last_eviction
