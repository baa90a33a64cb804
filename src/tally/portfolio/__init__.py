"""Portfolio analytics: quotes, exchange rates, risk figures and the synced asset."""

from .analyzer import PortfolioAnalyzer, diversification_score, risk_level
from .fx import FxRateProvider
from .models import (
    EnrichedHolding,
    FxRate,
    FxSource,
    HoldingResult,
    PortfolioAnalysis,
    PricePoint,
    QuoteData,
    RiskLevel,
    SectorAllocation,
)
from .providers import QuoteProvider, StaticQuoteProvider
from .sectors import normalize_sector
from .sync import PortfolioAssetSync

__all__ = [
    "EnrichedHolding",
    "FxRate",
    "FxRateProvider",
    "FxSource",
    "HoldingResult",
    "PortfolioAnalysis",
    "PortfolioAnalyzer",
    "PortfolioAssetSync",
    "PricePoint",
    "QuoteData",
    "QuoteProvider",
    "RiskLevel",
    "SectorAllocation",
    "StaticQuoteProvider",
    "diversification_score",
    "normalize_sector",
    "risk_level",
]
