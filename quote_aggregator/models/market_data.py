"""
Market data models shared by the aggregation engine, providers and API.
Defines the standardized quote record returned for every requested symbol.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class AssetType(str, Enum):
    """Supported asset types."""
    STOCK = "stock"
    BOND = "bond"
    COMMODITY = "commodity"
    CRYPTOCURRENCY = "cryptocurrency"
    FOREX = "forex"
    MUTUAL_FUND = "mutualfund"


class Asset(BaseModel):
    """Quote for a single symbol.

    ``price`` is None when no quote is available, which is not the same as a
    zero price. ``percent_price`` marks bond quotes expressed as % of par.
    """

    model_config = ConfigDict(populate_by_name=True)

    symbol: str = Field(..., description="Symbol as requested by the client")
    price: Optional[float] = Field(None, description="Last price, None if unavailable")
    currency: Optional[str] = Field(None, description="Quote currency")
    percent_price: Optional[bool] = Field(
        None,
        alias="percentPrice",
        description="Price is a percentage of par value",
    )

    def to_response(self) -> dict:
        """Serialize using the public (camelCase) field names."""
        data = self.model_dump(by_alias=True)
        if self.percent_price is None:
            data.pop("percentPrice")
        return data


def unavailable_asset(symbol: str) -> Asset:
    """Asset placeholder for a symbol that has no quote."""
    return Asset(symbol=symbol, price=None, currency=None)


@dataclass(frozen=True)
class SymbolParts:
    """A symbol split into its market prefix and short symbol."""
    market_code: str
    short_symbol: str


@dataclass
class ProviderFailure:
    """A provider call that raised while serving a batch."""
    provider_id: str
    symbols: List[str]
    error: Exception


@dataclass
class QuoteBatch:
    """Result of one aggregation call."""
    quotes: List[Asset] = field(default_factory=list)
    failures: List[ProviderFailure] = field(default_factory=list)

    @property
    def failed_providers(self) -> List[str]:
        return [failure.provider_id for failure in self.failures]

    @property
    def is_partial(self) -> bool:
        return bool(self.failures)
