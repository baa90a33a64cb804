"""
Net-worth snapshot engine.

Derives one month's totals from the balance sheet and persists them:

    assets      = Σ asset value for the month (history record, else live value)
    liabilities = Σ remaining loan balance on the month's first day
    net worth   = assets − liabilities

Totals span every member of the user's shared account. Writes go through
the store's atomic ``upsert_net_worth``, so concurrent refreshes of the same
month converge on one record.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import date

from loguru import logger

from tally.core.events import BALANCE_SHEET_EVENTS, NET_WORTH_SAVED, Event, EventBus
from tally.core.exceptions import PersistenceError
from tally.core.storage.base import FinanceStore
from tally.core.types import Today
from tally.core.utils.dates import current_month_key, first_day
from tally.financial.calculators.amortization import remaining_balance, round_cents
from tally.financial.models import NetWorthRecord


@dataclass(frozen=True)
class NetWorthSnapshot:
    """Computed (not yet persisted) totals for one user-month."""

    user_id: str
    month_key: str
    assets: float
    liabilities: float

    @property
    def net_worth(self) -> float:
        return self.assets - self.liabilities

    @property
    def month_start(self) -> date:
        return first_day(self.month_key)


class NetWorthSnapshotEngine:
    """Computes and stores monthly net-worth snapshots."""

    def __init__(self, store: FinanceStore, today: Today | None = None):
        """
        Args:
            store: Balance-sheet persistence.
            today: Zero-arg callable returning the current date. Defaults to date.today.
        """
        self.store = store
        self._today = today or date.today
        self._bus: EventBus | None = None

    def today(self) -> date:
        return self._today()

    def current_month_key(self) -> str:
        return current_month_key(self._today())

    async def total_assets_for_month(self, user_id: str, month_key: str) -> float:
        """Sum of the shared account's asset values as of *month_key*."""
        user_ids = await self.store.get_shared_user_ids(user_id)
        assets = await self.store.list_assets(user_ids)
        if not assets:
            return 0.0

        history = await self.store.list_asset_values([a.asset_id for a in assets], month_key)
        by_asset = {record.asset_id: record.value for record in history}
        total = sum(by_asset.get(asset.asset_id, asset.value) for asset in assets)
        return round_cents(total)

    async def total_liabilities_for_month(self, user_id: str, month_key: str) -> float:
        """Sum of the shared account's outstanding loan balances on the month's first day."""
        user_ids = await self.store.get_shared_user_ids(user_id)
        liabilities = await self.store.list_liabilities(user_ids)
        as_of = first_day(month_key)
        return round_cents(sum(remaining_balance(liability, as_of) for liability in liabilities))

    async def compute_snapshot(self, user_id: str, month_key: str | None = None) -> NetWorthSnapshot:
        """Compute totals for *month_key* (default: current month) without writing."""
        month_key = month_key or self.current_month_key()
        assets, liabilities = await asyncio.gather(
            self.total_assets_for_month(user_id, month_key),
            self.total_liabilities_for_month(user_id, month_key),
        )
        return NetWorthSnapshot(user_id=user_id, month_key=month_key, assets=assets, liabilities=liabilities)

    async def save_snapshot(self, user_id: str, month_key: str | None = None) -> NetWorthRecord:
        """Compute and upsert the record for *month_key*.

        Raises:
            PersistenceError: The store could not be read or written. Nothing
                is written when a read fails.
        """
        snapshot = await self.compute_snapshot(user_id, month_key)
        record, _ = await self.store.upsert_net_worth(
            user_id,
            snapshot.month_start,
            assets=snapshot.assets,
            liabilities=snapshot.liabilities,
            net_worth=snapshot.net_worth,
        )
        logger.debug(
            f"Saved net worth for {user_id} {snapshot.month_key}: "
            f"assets={snapshot.assets:,.2f} liabilities={snapshot.liabilities:,.2f} "
            f"net={snapshot.net_worth:,.2f}"
        )
        if self._bus is not None:
            await self._bus.emit(
                Event(
                    name=NET_WORTH_SAVED,
                    payload={"user_id": user_id, "month_key": snapshot.month_key, "net_worth": snapshot.net_worth},
                    source="networth",
                )
            )
        return record

    async def refresh_current_month(self, user_id: str) -> NetWorthRecord | None:
        """Recompute this month's snapshot. Logs and returns None on store failure."""
        try:
            return await self.save_snapshot(user_id)
        except PersistenceError as e:
            logger.error(f"Net worth refresh failed for {user_id}: {e}")
            return None

    # -- Event wiring ---------------------------------------------------------

    def attach(self, bus: EventBus) -> None:
        """Refresh the current month after every balance-sheet mutation."""
        self._bus = bus
        for name in BALANCE_SHEET_EVENTS:
            bus.on(name, self.on_mutation)

    async def on_mutation(self, event: Event) -> None:
        user_id = event.payload.get("user_id")
        if not user_id:
            logger.warning(f"Ignoring {event.name} without user_id")
            return
        await self.refresh_current_month(user_id)
