"""
Error taxonomy for quote retrieval.

Every error a client may see extends QuoteError; its message is safe to pass
back in an API response. Anything else is treated as an internal failure.
"""

from typing import Optional

from ..models.market_data import AssetType


class QuoteError(Exception):
    """Base exception for quote retrieval failures."""

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message)


class AssetTypeNotSupportedError(QuoteError):
    """A provider or the registry cannot serve the requested asset type."""

    def __init__(self, asset_type: AssetType):
        self.asset_type = asset_type
        super().__init__(f"Asset type not supported: {AssetType(asset_type).value}")


class SymbolNotSupportedError(QuoteError):
    """A symbol is structurally invalid for a provider."""

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"Symbol not supported: {symbol}")


class SymbolQuoteError(QuoteError):
    """A quote could not be retrieved for a symbol."""

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"Could not get quote for symbol: {symbol}")


class ProviderError(QuoteError):
    """Network or parse failure inside a provider."""

    def __init__(self, message: str, provider: str, symbol: Optional[str] = None):
        self.provider = provider
        self.symbol = symbol
        super().__init__(message)


class RateLimitError(ProviderError):
    """Exception raised when provider rate limit is exceeded."""
    pass


class AuthenticationError(ProviderError):
    """Exception raised when provider authentication fails."""
    pass
