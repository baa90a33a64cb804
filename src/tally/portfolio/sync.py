"""
Portfolio asset sync.

Holdings are not assets themselves. Their combined base-currency value
(plus the uninvested cash balance) is mirrored into one synthetic asset per
shared account, named ``PORTFOLIO_SYNC_ASSET_NAME``, so net worth counts the
portfolio like any other asset. Users never edit that asset directly.

Pricing is slow and rate-limited, so two windows guard it:

- the computed value is cached per user (value cache TTL);
- an asset updated more recently than the update threshold is left alone
  unless the sync is forced.
"""

from __future__ import annotations

from datetime import datetime

from loguru import logger

from tally.core.events import HOLDINGS_CHANGED, Event, EventBus
from tally.core.exceptions import TallyError
from tally.core.storage.base import FinanceStore
from tally.core.types import Now
from tally.core.utils.cache import TTLCache
from tally.financial.models import (
    PORTFOLIO_ASSET_CATEGORY,
    PORTFOLIO_SYNC_ASSET_NAME,
    Asset,
    Holding,
)
from tally.networth.engine import NetWorthSnapshotEngine
from tally.networth.history import save_asset_history_if_changed
from tally.portfolio.analyzer import PortfolioAnalyzer
from tally.portfolio.models import PortfolioAnalysis

DEFAULT_VALUE_TTL_SECONDS = 5 * 3600
DEFAULT_UPDATE_THRESHOLD_SECONDS = 5 * 3600


class PortfolioAssetSync:
    """Keeps the synthetic portfolio asset in step with holdings."""

    def __init__(
        self,
        store: FinanceStore,
        analyzer: PortfolioAnalyzer,
        engine: NetWorthSnapshotEngine,
        value_cache: TTLCache | None = None,
        update_threshold_seconds: float = DEFAULT_UPDATE_THRESHOLD_SECONDS,
        now: Now | None = None,
    ):
        self.store = store
        self.analyzer = analyzer
        self.engine = engine
        self.value_cache = value_cache if value_cache is not None else TTLCache(DEFAULT_VALUE_TTL_SECONDS)
        self.update_threshold_seconds = update_threshold_seconds
        self._now = now or datetime.now

    async def _holdings(self, user_ids: list[str]) -> list[Holding]:
        return [h for h in await self.store.list_holdings(user_ids) if h.quantity > 0]

    async def analyze_portfolio(self, user_id: str) -> PortfolioAnalysis:
        """Analyze every holding of the user's shared account."""
        user_ids = await self.store.get_shared_user_ids(user_id)
        return await self.analyzer.analyze(await self._holdings(user_ids))

    async def find_portfolio_asset(self, user_id: str) -> Asset | None:
        """The shared account's synthetic asset, whichever member it was created for."""
        for uid in await self.store.get_shared_user_ids(user_id):
            asset = await self.store.find_asset(uid, PORTFOLIO_SYNC_ASSET_NAME)
            if asset is not None:
                return asset
        return None

    def invalidate(self, user_id: str) -> None:
        self.value_cache.clear_cache(user_id)

    async def portfolio_value(self, user_id: str) -> float:
        """Holdings in the base currency plus the account's cash, served from cache when fresh."""
        cached = self.value_cache.get_cached_data(user_id)
        if cached is not None:
            return cached

        analysis = await self.analyze_portfolio(user_id)
        cash = sum([await self.store.get_cash_balance(uid) for uid in await self.store.get_shared_user_ids(user_id)])
        value = analysis.total_value_base + cash
        self.value_cache.cache_data(user_id, value)
        return value

    async def sync_portfolio_asset(self, user_id: str, force: bool = False) -> Asset | None:
        """Create, update or delete the synthetic asset to match current holdings.

        Args:
            user_id: Any member of the account.
            force: Recompute even when the cached value and asset are recent.

        Returns:
            The asset as stored, or None when there are no holdings.
        """
        if force:
            self.invalidate(user_id)

        user_ids = await self.store.get_shared_user_ids(user_id)
        existing = await self.find_portfolio_asset(user_id)

        if not await self._holdings(user_ids):
            if existing is not None:
                await self.store.delete_asset(existing.asset_id)
                logger.info(f"Removed portfolio asset for {user_id}: no holdings left")
                await self.engine.refresh_current_month(user_id)
            return None

        if existing is not None and not force:
            age = (self._now() - existing.updated_at).total_seconds()
            if age < self.update_threshold_seconds:
                logger.debug(f"Portfolio asset for {user_id} is {age:.0f}s old, skipping")
                return existing

        try:
            value = await self.portfolio_value(user_id)
        except TallyError as e:
            logger.error(f"Portfolio sync failed for {user_id}, keeping last known value: {e}")
            return existing

        previous = existing.value if existing is not None else None
        if existing is None:
            asset = Asset(
                user_id=user_id,
                name=PORTFOLIO_SYNC_ASSET_NAME,
                value=value,
                category=PORTFOLIO_ASSET_CATEGORY,
                updated_at=self._now(),
            )
        else:
            asset = existing
            asset.value = value
            asset.updated_at = self._now()

        await self.store.save_asset(asset)
        await save_asset_history_if_changed(
            self.store, asset.asset_id, value, previous, self.engine.current_month_key()
        )
        logger.info(f"Portfolio asset for {user_id} synced at {value:,.2f}")
        await self.engine.refresh_current_month(user_id)
        return asset

    async def sync_all_portfolio_assets(self) -> int:
        """Sync every user with holdings. Returns how many assets were written or kept."""
        synced = 0
        for user_id in await self.store.holding_user_ids():
            try:
                if await self.sync_portfolio_asset(user_id) is not None:
                    synced += 1
            except TallyError as e:
                logger.error(f"Portfolio sync failed for {user_id}: {e}")
        logger.info(f"Synced {synced} portfolio asset(s)")
        return synced

    # -- Event wiring ---------------------------------------------------------

    def attach(self, bus: EventBus) -> None:
        """Resync whenever holdings or cash change."""
        bus.on(HOLDINGS_CHANGED, self.on_holdings_changed)

    async def on_holdings_changed(self, event: Event) -> None:
        user_id = event.payload.get("user_id")
        if not user_id:
            logger.warning(f"Ignoring {event.name} without user_id")
            return
        await self.sync_portfolio_asset(user_id, force=True)
