"""
FinanceStore protocol: the contract for persistence backends.

Any key-addressable store (a relational database, a document store, a JSON
file) can implement this protocol. The engine relies on exactly one
concurrency primitive from it: ``upsert_net_worth`` must get-or-create the
record for ``(user_id, date)`` and overwrite it atomically.

Read or write failures surface as ``PersistenceError``.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol, runtime_checkable

from tally.financial.models import (
    Asset,
    AssetValueRecord,
    Holding,
    Liability,
    NetWorthRecord,
)


@runtime_checkable
class FinanceStore(Protocol):
    """Protocol for reading and writing balance-sheet records."""

    # -- Shared accounts ------------------------------------------------------

    async def get_shared_user_ids(self, user_id: str) -> list[str]:
        """All members of *user_id*'s shared account, or ``[user_id]`` if none."""
        ...

    async def set_membership(self, user_id: str, shared_account_id: str) -> None:
        """Put *user_id* in a shared account (a user belongs to at most one)."""
        ...

    # -- Assets ---------------------------------------------------------------

    async def list_assets(self, user_ids: list[str]) -> list[Asset]: ...

    async def get_asset(self, asset_id: str) -> Asset | None: ...

    async def find_asset(self, user_id: str, name: str) -> Asset | None: ...

    async def save_asset(self, asset: Asset) -> Asset: ...

    async def delete_asset(self, asset_id: str) -> bool: ...

    # -- Liabilities ----------------------------------------------------------

    async def list_liabilities(self, user_ids: list[str]) -> list[Liability]: ...

    async def get_liability(self, liability_id: str) -> Liability | None: ...

    async def save_liability(self, liability: Liability) -> Liability: ...

    async def delete_liability(self, liability_id: str) -> bool: ...

    # -- Holdings -------------------------------------------------------------

    async def list_holdings(self, user_ids: list[str]) -> list[Holding]: ...

    async def get_holding(self, holding_id: str) -> Holding | None: ...

    async def save_holding(self, holding: Holding) -> Holding: ...

    async def delete_holding(self, holding_id: str) -> bool: ...

    async def holding_user_ids(self) -> list[str]:
        """Distinct users that own at least one holding."""
        ...

    async def get_cash_balance(self, user_id: str) -> float: ...

    async def set_cash_balance(self, user_id: str, amount: float) -> None: ...

    # -- Asset value history --------------------------------------------------

    async def get_asset_value(self, asset_id: str, month_key: str) -> AssetValueRecord | None: ...

    async def list_asset_values(self, asset_ids: list[str], month_key: str) -> list[AssetValueRecord]: ...

    async def upsert_asset_value(self, record: AssetValueRecord) -> AssetValueRecord:
        """Insert or replace one month's value. Raises RecordNotFoundError for an unknown asset."""
        ...

    async def history_month_keys(self, user_ids: list[str]) -> list[str]:
        """Distinct month keys with asset history for these users, ascending."""
        ...

    # -- Net worth history ----------------------------------------------------

    async def get_net_worth(self, user_id: str, month_start: date) -> NetWorthRecord | None: ...

    async def list_net_worth(self, user_id: str | None = None) -> list[NetWorthRecord]: ...

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
        """Atomically create or overwrite the record for ``(user_id, month_start)``.

        With ``overwrite=False`` an existing record is returned untouched.

        Returns:
            ``(record, written)`` where *written* is False only when an
            existing record was left as is.
        """
        ...

    async def delete_net_worth(self, record_id: str) -> bool: ...
