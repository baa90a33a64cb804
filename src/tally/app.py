"""
Wiring for a tally instance.

``create_app`` builds the engine, backfill, analyzer, sync and service from
a ``Config`` and connects them through one EventBus. Every collaborator
can be passed in instead, which is how tests control the store, the quote
provider and the clocks.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from tally.core.config import Config, get_config
from tally.core.events import EventBus
from tally.core.storage.base import FinanceStore
from tally.core.storage.memory import MemoryStore
from tally.core.types import Clock, Now, Today
from tally.core.utils.cache import TTLCache
from tally.financial.models import Liability, NetWorthRecord
from tally.networth.backfill import BackfillCoordinator
from tally.networth.engine import NetWorthSnapshotEngine
from tally.portfolio.analyzer import PortfolioAnalyzer
from tally.portfolio.fx import FxRateProvider
from tally.portfolio.models import PortfolioAnalysis
from tally.portfolio.providers import QuoteProvider, StaticQuoteProvider
from tally.portfolio.sync import PortfolioAssetSync
from tally.service import FinanceService


@dataclass
class Tally:
    """A wired set of tally components sharing one store and bus."""

    store: FinanceStore
    bus: EventBus
    engine: NetWorthSnapshotEngine
    backfill: BackfillCoordinator
    analyzer: PortfolioAnalyzer
    sync: PortfolioAssetSync
    service: FinanceService

    def compute_remaining_balance(self, liability: Liability, as_of: date | datetime) -> float:
        return self.service.compute_remaining_balance(liability, as_of)

    async def refresh_current_month(self, user_id: str) -> NetWorthRecord | None:
        return await self.engine.refresh_current_month(user_id)

    async def run_backfill(self, user_id: str) -> int:
        return await self.backfill.run_backfill(user_id)

    async def analyze_portfolio(self, user_id: str) -> PortfolioAnalysis:
        return await self.sync.analyze_portfolio(user_id)


def create_app(
    config: Config | None = None,
    store: FinanceStore | None = None,
    provider: QuoteProvider | None = None,
    today: Today | None = None,
    now: Now | None = None,
    clock: Clock | None = None,
) -> Tally:
    """Build a Tally instance.

    Args:
        config: Settings source. Defaults to the global config.
        store: Persistence backend. Defaults to an empty MemoryStore.
        provider: Market data. Defaults to the quotes fixture named in config
            (``quotes.fixtures_file``), or an empty provider.
        today: Current-date source for month boundaries.
        now: Current-time source for asset timestamps.
        clock: Seconds source for cache expiry.
    """
    settings = (config or get_config()).validated()
    store = store if store is not None else MemoryStore(now=now)
    if provider is None:
        fixtures = settings.quotes.fixtures_file
        provider = StaticQuoteProvider.from_file(fixtures) if fixtures else StaticQuoteProvider()

    portfolio = settings.portfolio
    base = portfolio.base_currency
    fx = FxRateProvider(
        provider,
        cache=TTLCache(portfolio.fx_cache_ttl_seconds, clock=clock),
        fallback_rates={f"USD{base}": portfolio.fallback_fx_rate} if base != "USD" else {},
        timeout_seconds=settings.quotes.timeout_seconds,
    )
    analyzer = PortfolioAnalyzer(
        provider,
        fx=fx,
        base_currency=base,
        timeout_seconds=settings.quotes.timeout_seconds,
        sparkline_days=settings.quotes.sparkline_days,
    )

    bus = EventBus()
    engine = NetWorthSnapshotEngine(store, today=today)
    engine.attach(bus)
    sync = PortfolioAssetSync(
        store,
        analyzer,
        engine,
        value_cache=TTLCache(portfolio.value_cache_ttl_seconds, clock=clock),
        update_threshold_seconds=portfolio.asset_update_threshold_seconds,
        now=now,
    )
    sync.attach(bus)

    return Tally(
        store=store,
        bus=bus,
        engine=engine,
        backfill=BackfillCoordinator(
            engine,
            initial_months=settings.backfill.initial_months,
            max_concurrent=settings.backfill.max_concurrent,
        ),
        analyzer=analyzer,
        sync=sync,
        service=FinanceService(store, bus=bus, now=now),
    )
