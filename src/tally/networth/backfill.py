"""
Net-worth history backfill.

Two strategies fill in past months:

- Initial: a user with neither net-worth records nor asset value history
  before the current month gets a flat line at today's net worth across the
  trailing months, so charts have something to draw on day one. Existing
  past months are never overwritten.
- History: once past asset value history exists, every month that has it is
  recomputed from its records. A flat line is never drawn over real history.

Every operation is idempotent: running it twice leaves the same records.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Iterable

from loguru import logger

from tally.core.exceptions import TallyError
from tally.core.utils.dates import first_day, trailing_month_keys
from tally.financial.models import NetWorthRecord
from tally.networth.engine import NetWorthSnapshotEngine

DEFAULT_INITIAL_MONTHS = 6
DEFAULT_MAX_CONCURRENT = 4


class BackfillCoordinator:
    """Fills NetWorthHistory for past months."""

    def __init__(
        self,
        engine: NetWorthSnapshotEngine,
        initial_months: int = DEFAULT_INITIAL_MONTHS,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
    ):
        if initial_months < 1:
            raise ValueError(f"initial_months must be >= 1, got {initial_months}")
        self.engine = engine
        self.store = engine.store
        self.initial_months = initial_months
        self.max_concurrent = max(1, max_concurrent)

    async def needs_initial_backfill(self, user_id: str) -> bool:
        """True when nothing is known about months before the current one.

        That means no net-worth record for the user and no asset value history
        for the shared account dated before the current month.
        """
        current_key = self.engine.current_month_key()
        user_ids = await self.store.get_shared_user_ids(user_id)
        if any(key < current_key for key in await self.store.history_month_keys(user_ids)):
            return False
        current_start = first_day(current_key)
        records = await self.store.list_net_worth(user_id)
        return not any(record.date < current_start for record in records)

    async def initial_backfill(self, user_id: str) -> int:
        """Write today's net worth into each missing trailing month. Returns records written."""
        snapshot = await self.engine.compute_snapshot(user_id)
        written = 0

        for key in trailing_month_keys(self.initial_months, self.engine.today()):
            _, changed = await self.store.upsert_net_worth(
                user_id,
                first_day(key),
                assets=snapshot.assets,
                liabilities=snapshot.liabilities,
                net_worth=snapshot.net_worth,
                overwrite=key == snapshot.month_key,
            )
            if changed:
                written += 1

        logger.info(f"Initial backfill for {user_id}: {written} month(s) at {snapshot.net_worth:,.2f}")
        return written

    async def history_backfill(self, user_id: str) -> int:
        """Recompute every month that has asset value history, plus the current one."""
        user_ids = await self.store.get_shared_user_ids(user_id)
        keys = set(await self.store.history_month_keys(user_ids))
        keys.add(self.engine.current_month_key())

        for key in sorted(keys):
            await self.engine.save_snapshot(user_id, key)

        logger.info(f"History backfill for {user_id}: {len(keys)} month(s)")
        return len(keys)

    async def run_backfill(self, user_id: str) -> int:
        """Initial backfill for new users, history backfill otherwise."""
        if await self.needs_initial_backfill(user_id):
            return await self.initial_backfill(user_id)
        return await self.history_backfill(user_id)

    async def run_backfill_all(self, user_ids: Iterable[str], max_concurrent: int | None = None) -> dict[str, int]:
        """Backfill many users concurrently.

        A failing user is logged and left out of the result; the rest continue.

        Returns:
            Records written per successfully backfilled user.
        """
        semaphore = asyncio.Semaphore(max_concurrent or self.max_concurrent)

        async def _one(uid: str) -> tuple[str, int | None]:
            async with semaphore:
                try:
                    return uid, await self.run_backfill(uid)
                except TallyError as e:
                    logger.error(f"Backfill failed for {uid}: {e}")
                    return uid, None

        results = await asyncio.gather(*[_one(uid) for uid in dict.fromkeys(user_ids)])
        return {uid: count for uid, count in results if count is not None}

    # -- Repairs --------------------------------------------------------------

    async def flatten_history(self, user_id: str) -> int:
        """Overwrite every record of *user_id* with the current net worth.

        One-time correction for histories written from bad inputs. Also makes
        sure the current month exists. Returns records written.
        """
        snapshot = await self.engine.compute_snapshot(user_id)
        months = {record.date for record in await self.store.list_net_worth(user_id)}
        months.add(snapshot.month_start)

        for month_start in sorted(months):
            await self.store.upsert_net_worth(
                user_id,
                month_start,
                assets=snapshot.assets,
                liabilities=snapshot.liabilities,
                net_worth=snapshot.net_worth,
            )

        logger.info(f"Flattened {len(months)} net worth record(s) for {user_id} to {snapshot.net_worth:,.2f}")
        return len(months)

    async def remove_duplicate_snapshots(self) -> int:
        """Delete all but the newest record of each user-month. Returns records deleted."""
        groups: dict[tuple[str, object], list[NetWorthRecord]] = defaultdict(list)
        for record in await self.store.list_net_worth():
            groups[(record.user_id, record.date)].append(record)

        deleted = 0
        for (uid, month_start), records in groups.items():
            if len(records) < 2:
                continue
            keep = max(records, key=lambda r: r.updated_at)
            for record in records:
                if record.record_id != keep.record_id and await self.store.delete_net_worth(record.record_id):
                    deleted += 1
            logger.info(f"Removed {len(records) - 1} duplicate net worth record(s) for {uid} {month_start}")

        return deleted
