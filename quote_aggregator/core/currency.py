"""Currency fix-ups applied to every quote returned by a provider."""

from ..models.market_data import Asset

# Minor-unit currency codes, case-sensitive: "GBp" is pence, "GBP" pounds.
MINOR_UNIT_CURRENCIES = {
    "GBX": ("GBP", 100),
    "GBp": ("GBP", 100),
}


def normalize_currency(asset: Asset) -> Asset:
    """Rewrite penny-sterling quotes to pounds. Returns a new Asset when changed."""
    conversion = MINOR_UNIT_CURRENCIES.get(asset.currency or "")
    if conversion is None:
        return asset
    currency, divisor = conversion
    price = asset.price / divisor if asset.price is not None else None
    return asset.model_copy(update={"currency": currency, "price": price})
