"""Balance-sheet records and the calculators that derive figures from them."""

from .models import (
    PORTFOLIO_SYNC_ASSET_NAME,
    Asset,
    AssetValueRecord,
    Holding,
    Liability,
    LoanMethod,
    NetWorthRecord,
    PriceDisplayUnit,
    is_portfolio_sync_asset,
)

__all__ = [
    "PORTFOLIO_SYNC_ASSET_NAME",
    "Asset",
    "AssetValueRecord",
    "Holding",
    "Liability",
    "LoanMethod",
    "NetWorthRecord",
    "PriceDisplayUnit",
    "is_portfolio_sync_asset",
]
