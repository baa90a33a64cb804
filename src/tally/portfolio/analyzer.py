"""
Portfolio risk analytics.

For a set of holdings the analyzer prices each one, converts it to the base
currency, and reports:

- weighted beta: Σ beta × weight, weight = base value / total base value
- daily change: Σ change% / 100 × base value, and as a percent of the total
- sector allocation: base value per normalized sector
- diversification: min(sectors / 8, 1) × 40 + (1 − HHI) × 60, halves rounded up
- risk level: beta < 0.8 conservative, ≤ 1.2 moderate, else aggressive

Holdings are priced concurrently. One holding failing to price is logged
and left out; all of them failing raises TotalProviderFailure.
"""

from __future__ import annotations

import asyncio
import math
from collections import defaultdict

from loguru import logger

from tally.core.exceptions import QuoteProviderError, QuoteTimeoutError, TotalProviderFailure
from tally.financial.models import Holding
from tally.portfolio.fx import DEFAULT_TIMEOUT_SECONDS, FxRateProvider
from tally.portfolio.models import (
    EnrichedHolding,
    HoldingResult,
    PortfolioAnalysis,
    QuoteData,
    RiskLevel,
    SectorAllocation,
)
from tally.portfolio.providers import QuoteProvider
from tally.portfolio.sectors import normalize_sector

DEFAULT_BETA = 1.0
CONSERVATIVE_BETA = 0.8
AGGRESSIVE_BETA = 1.2
FULL_DIVERSIFICATION_SECTORS = 8


def diversification_score(sector_weights: list[float]) -> int:
    """Score 0–100 from sector weights (fractions of the total).

    40 points for breadth (8+ sectors earns all of them), 60 for evenness
    (1 − HHI). Empty input scores 0.
    """
    if not sector_weights:
        return 0
    hhi = sum(w * w for w in sector_weights)
    breadth = min(len(sector_weights) / FULL_DIVERSIFICATION_SECTORS, 1.0)
    score = math.floor(breadth * 40 + (1 - hhi) * 60 + 0.5)
    return max(0, min(100, score))


def risk_level(beta: float) -> RiskLevel:
    if beta < CONSERVATIVE_BETA:
        return RiskLevel.CONSERVATIVE
    if beta <= AGGRESSIVE_BETA:
        return RiskLevel.MODERATE
    return RiskLevel.AGGRESSIVE


class PortfolioAnalyzer:
    """Prices holdings and computes portfolio-level risk figures."""

    def __init__(
        self,
        provider: QuoteProvider,
        fx: FxRateProvider | None = None,
        base_currency: str = "ILS",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        sparkline_days: int = 7,
    ):
        self.provider = provider
        self.fx = fx or FxRateProvider(provider, timeout_seconds=timeout_seconds)
        self.base_currency = base_currency.upper()
        self.timeout_seconds = timeout_seconds
        self.sparkline_days = sparkline_days

    async def analyze(self, holdings: list[Holding]) -> PortfolioAnalysis:
        """Analyze *holdings*.

        Raises:
            TotalProviderFailure: Holdings were given but none could be priced.
        """
        if not holdings:
            return PortfolioAnalysis()

        results = await asyncio.gather(*[self.price_holding(h) for h in holdings])
        priced = [r.enriched for r in results if r.enriched is not None]
        failed = [r for r in results if not r.ok]

        for result in failed:
            logger.warning(f"Excluding {result.holding.symbol} from analysis: {result.error}")
        if not priced:
            raise TotalProviderFailure(f"Could not price any of {len(holdings)} holding(s)")

        total_base = sum(h.value_base for h in priced)
        for h in priced:
            h.weight = h.value_base / total_base if total_base else 0.0
        priced.sort(key=lambda h: h.value_base, reverse=True)

        beta = sum(h.beta * h.weight for h in priced)
        daily_change_base = sum(h.change_percent / 100 * h.value_base for h in priced)
        daily_change_percent = daily_change_base / total_base * 100 if total_base else 0.0

        sectors = self._sector_allocation(priced, total_base)
        exchange_rate = await self._usd_rate()

        analysis = PortfolioAnalysis(
            total_value=sum(h.value for h in priced),
            total_value_base=total_base,
            weighted_beta=round(beta, 2),
            daily_change_percent=round(daily_change_percent, 2),
            daily_change_base=round(daily_change_base, 2),
            sector_allocation=sectors,
            diversification_score=diversification_score([s.percentage / 100 for s in sectors]),
            risk_level=risk_level(beta),
            holdings=priced,
            exchange_rate=exchange_rate,
            failed_symbols=[r.holding.symbol for r in failed],
        )
        logger.info(
            f"Analyzed {len(priced)}/{len(holdings)} holding(s): "
            f"{total_base:,.2f} {self.base_currency}, beta {analysis.weighted_beta}"
        )
        return analysis

    async def price_holding(self, holding: Holding) -> HoldingResult:
        """Quote, convert and enrich one holding. Never raises."""
        try:
            enriched = await self._enrich(holding)
        except Exception as e:
            return HoldingResult(holding=holding, error=f"{type(e).__name__}: {e}")
        return HoldingResult(holding=holding, enriched=enriched)

    async def _enrich(self, holding: Holding) -> EnrichedHolding:
        quote, sparkline = await asyncio.gather(self._quote(holding.symbol), self._sparkline(holding.symbol))

        price = quote.price / holding.price_display_unit.divisor
        currency = (quote.currency or holding.currency).upper()
        rate = await self.fx.get_rate(currency, self.base_currency)
        value = price * holding.quantity

        return EnrichedHolding(
            symbol=holding.symbol,
            quantity=holding.quantity,
            price=price,
            currency=currency,
            value=value,
            value_base=value * rate.rate,
            beta=DEFAULT_BETA if quote.beta is None else quote.beta,
            sector=normalize_sector(quote.sector),
            change_percent=quote.change_percent,
            name=quote.name,
            sparkline=sparkline,
        )

    async def _quote(self, symbol: str) -> QuoteData:
        try:
            return await asyncio.wait_for(self.provider.quote(symbol), timeout=self.timeout_seconds)
        except TimeoutError:
            raise QuoteTimeoutError(f"Quote for {symbol} timed out after {self.timeout_seconds}s") from None

    async def _sparkline(self, symbol: str) -> list[float]:
        if self.sparkline_days <= 0:
            return []
        try:
            points = await asyncio.wait_for(
                self.provider.history(symbol, self.sparkline_days), timeout=self.timeout_seconds
            )
        except Exception as e:
            logger.debug(f"No sparkline for {symbol}: {e}")
            return []
        return [p.close for p in points]

    async def _usd_rate(self) -> float | None:
        try:
            return (await self.fx.get_rate("USD", self.base_currency)).rate
        except QuoteProviderError as e:
            logger.warning(f"No USD rate to report: {e}")
            return None

    @staticmethod
    def _sector_allocation(holdings: list[EnrichedHolding], total_base: float) -> list[SectorAllocation]:
        by_sector: dict[str, float] = defaultdict(float)
        for h in holdings:
            by_sector[h.sector] += h.value_base
        allocation = [
            SectorAllocation(sector=name, value=value, percentage=value / total_base * 100 if total_base else 0.0)
            for name, value in by_sector.items()
        ]
        return sorted(allocation, key=lambda s: s.value, reverse=True)
