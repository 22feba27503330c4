"""
Pydantic schemas for the Quote Aggregator API.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from ..models.market_data import AssetType


class QuoteRequest(BaseModel):
    """Body of a quote request."""
    symbols: Optional[List[str]] = Field(None, description="Symbols to quote, SHORT or MARKET:SHORT")

    def has_symbols(self) -> bool:
        return bool(self.symbols)


class ErrorResponse(BaseModel):
    """Model for error responses."""
    code: int = Field(..., description="HTTP status code")
    message: str = Field(..., description="Error message")


class ProviderInfo(BaseModel):
    """Registered provider description."""
    id: str
    markets: List[str]
    asset_types: List[AssetType]


class MarketConflictInfo(BaseModel):
    market_code: str
    previous_provider: str
    new_provider: str


class InfoResponse(BaseModel):
    """Model for the service information endpoint."""
    service: Dict[str, Any]
    providers: List[ProviderInfo]
    market_conflicts: List[MarketConflictInfo]
    default_routes: Dict[str, Dict[str, Optional[str]]]
    cache: Dict[str, int]
    background_tasks_running: bool
    last_cache_eviction: Optional[datetime] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
