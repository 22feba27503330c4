"""
Configuration management for the Quote Aggregator service.
Uses pydantic-settings for environment variable management.
"""

from typing import Dict, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..models.market_data import AssetType


class Settings(BaseSettings):
    """Application settings loaded from environment variables (QUOTE_ prefix)."""

    model_config = SettingsConfigDict(
        env_prefix="QUOTE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="Quote Aggregator")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=3000)

    # Logging configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    # Cache TTL settings (in seconds)
    default_cache_ttl: int = Field(default=3600, gt=0)  # 60 minutes
    invalid_asset_cache_ttl: int = Field(default=300, gt=0)  # 5 minutes
    cache_max_entries: int = Field(default=10000, gt=0)
    cache_eviction_interval: int = Field(default=60, gt=0)

    # Aggregation behaviour
    partial_results: bool = Field(default=True)

    # Outbound HTTP settings shared by all providers
    http_timeout: float = Field(default=30.0, gt=0)
    http_connect_timeout: float = Field(default=10.0, gt=0)
    provider_retry_count: int = Field(default=3, ge=1)

    # Forex (fixer.io); the provider is only registered when a key is set
    fixer_api_key: Optional[str] = Field(default=None)
    fixer_api_url: str = Field(default="http://data.fixer.io/api")
    forex_cache_ttl: int = Field(default=90, gt=0)

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(valid_levels)}")
        return v.upper()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = {'json', 'text'}
        if v.lower() not in valid_formats:
            raise ValueError(f"log_format must be one of: {', '.join(valid_formats)}")
        return v.lower()

    @property
    def forex_enabled(self) -> bool:
        """True when the Fixer forex provider can be used."""
        return bool(self.fixer_api_key)


# Global settings instance
settings = Settings()


class ProviderConfig:
    """Built-in routing of asset types to provider ids."""

    # Default providers per asset type. "isin" and "mic" are tie-breaks used
    # when the short symbol is an ISIN or the market code is a MIC.
    DEFAULT_ROUTES: Dict[AssetType, Dict[str, Optional[str]]] = {
        AssetType.STOCK: {
            'default': 'YahooFinance',
            'isin': 'YahooFinance',
            'mic': 'YahooFinance',
        },
        AssetType.MUTUAL_FUND: {
            'default': 'YahooFinance',
            'isin': 'FinancialTimes',
        },
        AssetType.BOND: {'default': 'XSTU'},
        AssetType.COMMODITY: {'default': 'YahooFinance'},
        AssetType.CRYPTOCURRENCY: {'default': 'Binance'},
        AssetType.FOREX: {'default': 'Fixer'},
    }

    # Used for forex when no Fixer API key is configured
    FOREX_FALLBACK_PROVIDER = 'YahooFinance'


provider_config = ProviderConfig()
