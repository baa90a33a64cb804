"""
In-memory FinanceStore.

Thread-safe: every method does its work under one lock and never awaits
while holding it, so each call is atomic with respect to other callers in
any thread or task. ``upsert_net_worth`` is therefore a true
get-or-create-then-overwrite.
"""

from __future__ import annotations

import copy
import threading
from datetime import date, datetime

from loguru import logger

from tally.core.exceptions import RecordNotFoundError
from tally.core.types import Now
from tally.financial.models import (
    Asset,
    AssetValueRecord,
    Holding,
    Liability,
    NetWorthRecord,
)


class MemoryStore:
    """Dict-backed store. Returned records are copies; mutate and save them back."""

    def __init__(self, now: Now | None = None) -> None:
        """
        Args:
            now: Timestamp source for net-worth writes. Defaults to datetime.now.
        """
        self._now = now or datetime.now
        self._lock = threading.RLock()
        self._memberships: dict[str, str] = {}
        self._assets: dict[str, Asset] = {}
        self._liabilities: dict[str, Liability] = {}
        self._holdings: dict[str, Holding] = {}
        self._cash: dict[str, float] = {}
        self._asset_values: dict[tuple[str, str], AssetValueRecord] = {}
        self._net_worth: dict[str, NetWorthRecord] = {}

    # -- Shared accounts ------------------------------------------------------

    async def get_shared_user_ids(self, user_id: str) -> list[str]:
        with self._lock:
            account = self._memberships.get(user_id)
            if account is None:
                return [user_id]
            return sorted(uid for uid, acct in self._memberships.items() if acct == account)

    async def set_membership(self, user_id: str, shared_account_id: str) -> None:
        with self._lock:
            self._memberships[user_id] = shared_account_id
        await self._after_write()

    async def remove_membership(self, user_id: str) -> None:
        with self._lock:
            self._memberships.pop(user_id, None)
        await self._after_write()

    # -- Assets ---------------------------------------------------------------

    async def list_assets(self, user_ids: list[str]) -> list[Asset]:
        wanted = set(user_ids)
        with self._lock:
            return [copy.copy(a) for a in self._assets.values() if a.user_id in wanted]

    async def get_asset(self, asset_id: str) -> Asset | None:
        with self._lock:
            asset = self._assets.get(asset_id)
            return copy.copy(asset) if asset else None

    async def find_asset(self, user_id: str, name: str) -> Asset | None:
        with self._lock:
            for asset in self._assets.values():
                if asset.user_id == user_id and asset.name == name:
                    return copy.copy(asset)
        return None

    async def save_asset(self, asset: Asset) -> Asset:
        with self._lock:
            self._assets[asset.asset_id] = copy.copy(asset)
        await self._after_write()
        return asset

    async def delete_asset(self, asset_id: str) -> bool:
        with self._lock:
            if self._assets.pop(asset_id, None) is None:
                return False
            for key in [k for k in self._asset_values if k[0] == asset_id]:
                del self._asset_values[key]
        await self._after_write()
        return True

    # -- Liabilities ----------------------------------------------------------

    async def list_liabilities(self, user_ids: list[str]) -> list[Liability]:
        wanted = set(user_ids)
        with self._lock:
            return [copy.copy(li) for li in self._liabilities.values() if li.user_id in wanted]

    async def get_liability(self, liability_id: str) -> Liability | None:
        with self._lock:
            liability = self._liabilities.get(liability_id)
            return copy.copy(liability) if liability else None

    async def save_liability(self, liability: Liability) -> Liability:
        with self._lock:
            self._liabilities[liability.liability_id] = copy.copy(liability)
        await self._after_write()
        return liability

    async def delete_liability(self, liability_id: str) -> bool:
        with self._lock:
            deleted = self._liabilities.pop(liability_id, None) is not None
        if deleted:
            await self._after_write()
        return deleted

    # -- Holdings -------------------------------------------------------------

    async def list_holdings(self, user_ids: list[str]) -> list[Holding]:
        wanted = set(user_ids)
        with self._lock:
            return [copy.copy(h) for h in self._holdings.values() if h.user_id in wanted]

    async def get_holding(self, holding_id: str) -> Holding | None:
        with self._lock:
            holding = self._holdings.get(holding_id)
            return copy.copy(holding) if holding else None

    async def save_holding(self, holding: Holding) -> Holding:
        with self._lock:
            self._holdings[holding.holding_id] = copy.copy(holding)
        await self._after_write()
        return holding

    async def delete_holding(self, holding_id: str) -> bool:
        with self._lock:
            deleted = self._holdings.pop(holding_id, None) is not None
        if deleted:
            await self._after_write()
        return deleted

    async def holding_user_ids(self) -> list[str]:
        with self._lock:
            return sorted({h.user_id for h in self._holdings.values() if h.quantity > 0})

    async def get_cash_balance(self, user_id: str) -> float:
        with self._lock:
            return self._cash.get(user_id, 0.0)

    async def set_cash_balance(self, user_id: str, amount: float) -> None:
        with self._lock:
            self._cash[user_id] = float(amount)
        await self._after_write()

    # -- Asset value history --------------------------------------------------

    async def get_asset_value(self, asset_id: str, month_key: str) -> AssetValueRecord | None:
        with self._lock:
            record = self._asset_values.get((asset_id, month_key))
            return copy.copy(record) if record else None

    async def list_asset_values(self, asset_ids: list[str], month_key: str) -> list[AssetValueRecord]:
        wanted = set(asset_ids)
        with self._lock:
            return [
                copy.copy(r)
                for (asset_id, key), r in self._asset_values.items()
                if asset_id in wanted and key == month_key
            ]

    async def upsert_asset_value(self, record: AssetValueRecord) -> AssetValueRecord:
        """Insert or replace the month's value.

        Raises:
            RecordNotFoundError: No asset with ``record.asset_id`` exists.
        """
        with self._lock:
            if record.asset_id not in self._assets:
                raise RecordNotFoundError(f"No asset {record.asset_id} to record a value for")
            self._asset_values[(record.asset_id, record.month_key)] = copy.copy(record)
        await self._after_write()
        return record

    async def history_month_keys(self, user_ids: list[str]) -> list[str]:
        wanted = set(user_ids)
        with self._lock:
            owned = {a.asset_id for a in self._assets.values() if a.user_id in wanted}
            return sorted({key for asset_id, key in self._asset_values if asset_id in owned})

    # -- Net worth history ----------------------------------------------------

    def _find_net_worth(self, user_id: str, month_start: date) -> NetWorthRecord | None:
        matches = [r for r in self._net_worth.values() if r.user_id == user_id and r.date == month_start]
        if not matches:
            return None
        return max(matches, key=lambda r: r.updated_at)

    async def get_net_worth(self, user_id: str, month_start: date) -> NetWorthRecord | None:
        with self._lock:
            record = self._find_net_worth(user_id, month_start)
            return copy.copy(record) if record else None

    async def list_net_worth(self, user_id: str | None = None) -> list[NetWorthRecord]:
        with self._lock:
            records = [copy.copy(r) for r in self._net_worth.values() if user_id is None or r.user_id == user_id]
        return sorted(records, key=lambda r: (r.user_id, r.date, r.updated_at))

    async def upsert_net_worth(
        self,
        user_id: str,
        month_start: date,
        *,
        assets: float,
        liabilities: float,
        net_worth: float,
        overwrite: bool = True,
    ) -> tuple[NetWorthRecord, bool]:
        with self._lock:
            existing = self._find_net_worth(user_id, month_start)
            if existing is not None and not overwrite:
                return copy.copy(existing), False

            if existing is None:
                record = NetWorthRecord(
                    user_id=user_id,
                    date=month_start,
                    assets=assets,
                    liabilities=liabilities,
                    net_worth=net_worth,
                    updated_at=self._now(),
                )
                self._net_worth[record.record_id] = record
                logger.debug(f"Created net worth {user_id}@{month_start}: {net_worth:,.2f}")
            else:
                # Replace rather than mutate so readers never see a half-written record.
                record = NetWorthRecord(
                    user_id=user_id,
                    date=month_start,
                    assets=assets,
                    liabilities=liabilities,
                    net_worth=net_worth,
                    updated_at=self._now(),
                    record_id=existing.record_id,
                )
                self._net_worth[record.record_id] = record
            result = copy.copy(record)
        await self._after_write()
        return result, True

    async def import_net_worth(self, record: NetWorthRecord) -> None:
        """Insert a record verbatim, bypassing the one-per-month key (legacy imports)."""
        with self._lock:
            self._net_worth[record.record_id] = copy.copy(record)
        await self._after_write()

    async def delete_net_worth(self, record_id: str) -> bool:
        with self._lock:
            deleted = self._net_worth.pop(record_id, None) is not None
        if deleted:
            await self._after_write()
        return deleted

    async def _after_write(self) -> None:
        """Called after every successful mutation. Persistent subclasses flush here."""
