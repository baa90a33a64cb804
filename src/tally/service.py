"""
FinanceService: the mutation entry point for balance-sheet records.

Every write goes through here so the derived figures stay current:

- an asset whose value changed gets an AssetValueHistory record for the
  current month;
- asset and liability changes refresh the current month's net worth;
- holding and cash changes resync the synthetic portfolio asset (which
  refreshes net worth itself).

The reactions run as EventBus hooks. A failing hook is logged by the bus
and never fails the mutation that triggered it.
"""

from __future__ import annotations

from datetime import date, datetime

from loguru import logger

from tally.core.events import (
    ASSET_DELETED,
    ASSET_SAVED,
    HOLDINGS_CHANGED,
    LIABILITY_DELETED,
    LIABILITY_SAVED,
    Event,
    EventBus,
)
from tally.core.exceptions import PortfolioAssetReadOnlyError
from tally.core.storage.base import FinanceStore
from tally.core.types import Now
from tally.core.utils.dates import month_key
from tally.financial.calculators.amortization import remaining_balance
from tally.financial.models import Asset, Holding, Liability
from tally.networth.history import save_asset_history_if_changed


class FinanceService:
    """Create, update and delete assets, liabilities and holdings."""

    def __init__(self, store: FinanceStore, bus: EventBus | None = None, now: Now | None = None):
        self.store = store
        self.bus = bus or EventBus()
        self._now = now or datetime.now

    async def _emit(self, name: str, user_id: str, **payload) -> None:
        await self.bus.emit(Event(name=name, payload={"user_id": user_id, **payload}, source="service"))

    # -- Assets ---------------------------------------------------------------

    async def save_asset(self, asset: Asset) -> Asset:
        """Create or update *asset*.

        Raises:
            PortfolioAssetReadOnlyError: The asset is the synthetic portfolio asset.
        """
        existing = await self.store.get_asset(asset.asset_id)
        if asset.is_portfolio_sync or (existing is not None and existing.is_portfolio_sync):
            raise PortfolioAssetReadOnlyError(
                f"{asset.name!r} is derived from holdings; edit the holdings instead"
            )

        previous = existing.value if existing is not None else None
        asset.updated_at = self._now()
        await self.store.save_asset(asset)
        await save_asset_history_if_changed(
            self.store, asset.asset_id, asset.value, previous, month_key(asset.updated_at)
        )
        logger.debug(f"Saved asset {asset.name} ({asset.asset_id}) = {asset.value:,.2f}")
        await self._emit(ASSET_SAVED, asset.user_id, asset_id=asset.asset_id)
        return asset

    async def delete_asset(self, asset_id: str) -> bool:
        existing = await self.store.get_asset(asset_id)
        if existing is None:
            return False
        if existing.is_portfolio_sync:
            raise PortfolioAssetReadOnlyError(f"{existing.name!r} is removed by deleting its holdings")

        deleted = await self.store.delete_asset(asset_id)
        if deleted:
            await self._emit(ASSET_DELETED, existing.user_id, asset_id=asset_id)
        return deleted

    # -- Liabilities ----------------------------------------------------------

    async def save_liability(self, liability: Liability) -> Liability:
        await self.store.save_liability(liability)
        logger.debug(f"Saved liability {liability.name} ({liability.liability_id})")
        await self._emit(LIABILITY_SAVED, liability.user_id, liability_id=liability.liability_id)
        return liability

    async def delete_liability(self, liability_id: str) -> bool:
        existing = await self.store.get_liability(liability_id)
        if existing is None:
            return False
        deleted = await self.store.delete_liability(liability_id)
        if deleted:
            await self._emit(LIABILITY_DELETED, existing.user_id, liability_id=liability_id)
        return deleted

    # -- Holdings -------------------------------------------------------------

    async def save_holding(self, holding: Holding) -> Holding:
        await self.store.save_holding(holding)
        logger.debug(f"Saved holding {holding.symbol} x{holding.quantity} for {holding.user_id}")
        await self._emit(HOLDINGS_CHANGED, holding.user_id, symbol=holding.symbol)
        return holding

    async def delete_holding(self, holding_id: str) -> bool:
        existing = await self.store.get_holding(holding_id)
        if existing is None:
            return False
        deleted = await self.store.delete_holding(holding_id)
        if deleted:
            await self._emit(HOLDINGS_CHANGED, existing.user_id, symbol=existing.symbol)
        return deleted

    async def set_cash_balance(self, user_id: str, amount: float) -> None:
        await self.store.set_cash_balance(user_id, amount)
        await self._emit(HOLDINGS_CHANGED, user_id)

    # -- Queries --------------------------------------------------------------

    @staticmethod
    def compute_remaining_balance(liability: Liability, as_of: date | datetime | None = None) -> float:
        """Outstanding balance of *liability* during the month of *as_of* (default: today)."""
        return remaining_balance(liability, as_of or date.today())
