"""Data models for quotes and portfolio analysis."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from tally.financial.models import Holding


class RiskLevel(Enum):
    """Risk bucket derived from the weighted portfolio beta."""

    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


class FxSource(Enum):
    """Where an exchange rate came from."""

    IDENTITY = "identity"  # same currency, rate 1
    LIVE = "live"  # fetched just now
    CACHED = "cached"  # fresh cache entry
    STALE = "stale"  # expired cache entry, provider failed
    DEFAULT = "default"  # hardcoded fallback, provider failed and nothing cached


@dataclass(frozen=True)
class FxRate:
    rate: float
    source: FxSource


@dataclass
class QuoteData:
    """Latest quote for a symbol.

    ``price`` is in the market's display unit (agorot for Tel Aviv listings);
    ``change_percent`` is the day's move in percent. ``beta`` and ``sector``
    are None when the provider does not know them.
    """

    symbol: str
    price: float
    currency: str = "USD"
    name: str = ""
    change_percent: float = 0.0
    beta: float | None = None
    sector: str | None = None

    @classmethod
    def from_dict(cls, symbol: str, data: dict[str, Any]) -> QuoteData:
        return cls(
            symbol=symbol.upper(),
            price=float(data["price"]),
            currency=str(data.get("currency") or "USD").upper(),
            name=data.get("name") or "",
            change_percent=float(data.get("change_percent") or 0.0),
            beta=None if data.get("beta") is None else float(data["beta"]),
            sector=data.get("sector"),
        )


@dataclass(frozen=True)
class PricePoint:
    """One daily close in a sparkline."""

    date: date
    close: float


@dataclass
class EnrichedHolding:
    """A holding with its quote applied and values converted to the base currency."""

    symbol: str
    quantity: float
    price: float
    currency: str
    value: float
    value_base: float
    weight: float = 0.0
    beta: float = 1.0
    sector: str = "Other"
    change_percent: float = 0.0
    name: str = ""
    sparkline: list[float] = field(default_factory=list)

    @property
    def weight_percent(self) -> float:
        return self.weight * 100

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class HoldingResult:
    """Outcome of pricing one holding: either ``enriched`` or ``error`` is set."""

    holding: Holding
    enriched: EnrichedHolding | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.enriched is not None


@dataclass
class SectorAllocation:
    sector: str
    value: float
    percentage: float


@dataclass
class PortfolioAnalysis:
    """Portfolio-level figures.

    Attributes:
        total_value: Sum of holding values in their own currencies.
        total_value_base: Sum of holding values in the base currency.
        weighted_beta: Σ beta × weight, rounded to 2 decimals.
        daily_change_percent: Day's move of the whole portfolio in percent.
        daily_change_base: Day's move in the base currency.
        sector_allocation: Base value per sector, largest first.
        diversification_score: 0–100, higher is more diversified.
        risk_level: Bucket of the unrounded weighted beta.
        holdings: Per-holding breakdown, largest base value first.
        exchange_rate: USD to base rate used, None when nothing was priced.
        failed_symbols: Holdings left out because they could not be priced.
    """

    total_value: float = 0.0
    total_value_base: float = 0.0
    weighted_beta: float = 0.0
    daily_change_percent: float = 0.0
    daily_change_base: float = 0.0
    sector_allocation: list[SectorAllocation] = field(default_factory=list)
    diversification_score: int = 0
    risk_level: RiskLevel = RiskLevel.MODERATE
    holdings: list[EnrichedHolding] = field(default_factory=list)
    exchange_rate: float | None = None
    failed_symbols: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["risk_level"] = self.risk_level.value
        return data
