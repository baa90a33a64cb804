"""Tests for tally.networth.backfill."""

import asyncio
from datetime import date, datetime, timedelta

import pytest

from tally.core.exceptions import PersistenceError
from tally.core.storage.memory import MemoryStore
from tally.financial.models import Asset, AssetValueRecord, NetWorthRecord
from tally.networth.backfill import BackfillCoordinator
from tally.networth.engine import NetWorthSnapshotEngine

TRAILING = ["2024-01", "2024-02", "2024-03", "2024-04", "2024-05", "2024-06"]


@pytest.fixture
def coordinator(store, today):
    return BackfillCoordinator(NetWorthSnapshotEngine(store, today=today))


def _months(records):
    return [r.month_key for r in records]


async def _savings(store, value=10_000, user_id="u1"):
    return await store.save_asset(Asset(user_id=user_id, name="Savings", value=value))


@pytest.mark.smoke
class TestInitialBackfill:
    async def test_new_user_gets_six_flat_months(self, coordinator, store):
        await _savings(store)
        assert await coordinator.needs_initial_backfill("u1")

        written = await coordinator.run_backfill("u1")

        records = await store.list_net_worth("u1")
        assert written == 6
        assert _months(records) == TRAILING
        assert all(r.net_worth == 10_000 for r in records)
        assert all(r.net_worth == r.assets - r.liabilities for r in records)

    async def test_second_run_is_idempotent(self, coordinator, store):
        await _savings(store)
        await coordinator.run_backfill("u1")
        before = [(r.month_key, r.net_worth) for r in await store.list_net_worth("u1")]

        assert not await coordinator.needs_initial_backfill("u1")
        await coordinator.run_backfill("u1")
        after = [(r.month_key, r.net_worth) for r in await store.list_net_worth("u1")]
        assert after == before

    async def test_existing_past_months_are_kept(self, coordinator, store):
        await _savings(store)
        await store.upsert_net_worth("u1", date(2024, 3, 1), assets=5_000, liabilities=0, net_worth=5_000)

        written = await coordinator.initial_backfill("u1")

        by_month = {r.month_key: r.net_worth for r in await store.list_net_worth("u1")}
        assert written == 5
        assert by_month["2024-03"] == 5_000
        assert by_month["2024-06"] == 10_000

    async def test_current_month_always_refreshed(self, coordinator, store):
        asset = await _savings(store)
        await coordinator.initial_backfill("u1")
        asset.value = 12_000
        await store.save_asset(asset)

        assert await coordinator.initial_backfill("u1") == 1
        by_month = {r.month_key: r.net_worth for r in await store.list_net_worth("u1")}
        assert by_month["2024-06"] == 12_000
        assert by_month["2024-05"] == 10_000

    async def test_only_current_month_does_not_count_as_history(self, coordinator, store):
        await store.upsert_net_worth("u1", date(2024, 6, 1), assets=1, liabilities=0, net_worth=1)
        assert await coordinator.needs_initial_backfill("u1")

    async def test_custom_window(self, store, today):
        coordinator = BackfillCoordinator(NetWorthSnapshotEngine(store, today=today), initial_months=3)
        assert await coordinator.initial_backfill("u1") == 3

    def test_rejects_empty_window(self, store):
        with pytest.raises(ValueError):
            BackfillCoordinator(NetWorthSnapshotEngine(store), initial_months=0)

    async def test_concurrent_runs_keep_one_record_per_month(self, coordinator, store):
        await _savings(store)
        await asyncio.gather(*[coordinator.run_backfill("u1") for _ in range(5)])
        assert _months(await store.list_net_worth("u1")) == TRAILING


class TestHistoryBackfill:
    async def test_recomputes_months_with_history(self, coordinator, store):
        asset = await _savings(store)
        await store.upsert_asset_value(AssetValueRecord(asset.asset_id, "2024-02", 7_000))
        await store.upsert_asset_value(AssetValueRecord(asset.asset_id, "2024-04", 9_000))

        written = await coordinator.history_backfill("u1")

        by_month = {r.month_key: r.net_worth for r in await store.list_net_worth("u1")}
        assert written == 3
        assert by_month == {"2024-02": 7_000, "2024-04": 9_000, "2024-06": 10_000}

    async def test_history_recorded_later_replaces_flat_month(self, coordinator, store):
        asset = await _savings(store)
        await coordinator.run_backfill("u1")
        await store.upsert_asset_value(AssetValueRecord(asset.asset_id, "2024-02", 7_000))

        await coordinator.run_backfill("u1")
        by_month = {r.month_key: r.net_worth for r in await store.list_net_worth("u1")}
        assert by_month["2024-02"] == 7_000
        assert by_month["2024-01"] == 10_000

        await coordinator.run_backfill("u1")
        assert {r.month_key: r.net_worth for r in await store.list_net_worth("u1")} == by_month

    async def test_past_history_is_not_flattened(self, coordinator, store):
        asset = await _savings(store)
        await store.upsert_asset_value(AssetValueRecord(asset.asset_id, "2024-03", 5_000))
        assert not await coordinator.needs_initial_backfill("u1")

        await coordinator.run_backfill("u1")
        first = {r.month_key: r.net_worth for r in await store.list_net_worth("u1")}
        await coordinator.run_backfill("u1")
        second = {r.month_key: r.net_worth for r in await store.list_net_worth("u1")}

        assert first == second == {"2024-03": 5_000, "2024-06": 10_000}

    async def test_current_month_history_still_gets_flat_line(self, coordinator, store):
        asset = await _savings(store)
        await store.upsert_asset_value(AssetValueRecord(asset.asset_id, "2024-06", 10_000))
        assert await coordinator.needs_initial_backfill("u1")
        assert await coordinator.run_backfill("u1") == 6

    async def test_partner_history_counts_for_shared_account(self, coordinator, store):
        await store.set_membership("u1", "family")
        await store.set_membership("u2", "family")
        partner = await _savings(store, value=3_000, user_id="u2")
        await store.upsert_asset_value(AssetValueRecord(partner.asset_id, "2024-01", 2_000))
        assert not await coordinator.needs_initial_backfill("u1")

    async def test_shared_account_history(self, coordinator, store):
        await store.set_membership("u1", "family")
        await store.set_membership("u2", "family")
        partner = await _savings(store, value=3_000, user_id="u2")
        await store.upsert_asset_value(AssetValueRecord(partner.asset_id, "2023-12", 2_000))

        await coordinator.history_backfill("u1")

        by_month = {r.month_key: r.net_worth for r in await store.list_net_worth("u1")}
        assert by_month == {"2023-12": 2_000, "2024-06": 3_000}


class _FailingStore(MemoryStore):
    async def list_liabilities(self, user_ids):
        if "bad" in user_ids:
            raise PersistenceError("cannot read liabilities")
        return await super().list_liabilities(user_ids)


class TestRunBackfillAll:
    async def test_one_failure_does_not_stop_others(self, today):
        store = _FailingStore()
        coordinator = BackfillCoordinator(NetWorthSnapshotEngine(store, today=today), max_concurrent=2)
        for uid in ("u1", "bad", "u2"):
            await _savings(store, user_id=uid)

        results = await coordinator.run_backfill_all(["u1", "bad", "u2"])

        assert results == {"u1": 6, "u2": 6}
        assert await store.list_net_worth("bad") == []

    async def test_duplicate_ids_run_once(self, coordinator, store):
        assert await coordinator.run_backfill_all(["u1", "u1"]) == {"u1": 6}


class TestRepairs:
    async def test_flatten_rewrites_everything(self, coordinator, store):
        await _savings(store, value=8_000)
        for month, value in ((date(2023, 1, 1), 1.0), (date(2023, 6, 1), 2.0)):
            await store.upsert_net_worth("u1", month, assets=value, liabilities=0, net_worth=value)

        assert await coordinator.flatten_history("u1") == 3

        records = await store.list_net_worth("u1")
        assert _months(records) == ["2023-01", "2023-06", "2024-06"]
        assert {r.net_worth for r in records} == {8_000}

    async def test_flatten_is_idempotent(self, coordinator, store):
        await _savings(store)
        await coordinator.flatten_history("u1")
        await coordinator.flatten_history("u1")
        assert len(await store.list_net_worth("u1")) == 1

    async def test_remove_duplicates_keeps_newest(self, coordinator, store):
        june = date(2024, 6, 1)
        for i, stamp in enumerate((datetime(2024, 6, 3), datetime(2024, 6, 9), datetime(2024, 6, 5))):
            await store.import_net_worth(
                NetWorthRecord("u1", june, i, 0, i, updated_at=stamp, record_id=f"r{i}")
            )
        await store.import_net_worth(NetWorthRecord("u1", date(2024, 5, 1), 7, 0, 7, record_id="may"))

        assert await coordinator.remove_duplicate_snapshots() == 2

        records = await store.list_net_worth("u1")
        assert [r.record_id for r in records] == ["may", "r1"]
        assert await coordinator.remove_duplicate_snapshots() == 0

    @pytest.mark.parametrize("legacy_offset,winner", [(timedelta(days=1), "legacy"), (-timedelta(days=1), "written")])
    async def test_remove_duplicates_follows_store_clock(self, now, today, legacy_offset, winner):
        store = MemoryStore(now=now)
        coordinator = BackfillCoordinator(NetWorthSnapshotEngine(store, today=today))
        written, _ = await store.upsert_net_worth("u1", date(2024, 6, 1), assets=1, liabilities=0, net_worth=1)
        await store.import_net_worth(
            NetWorthRecord("u1", date(2024, 6, 1), 2, 0, 2, updated_at=now() + legacy_offset, record_id="legacy")
        )

        assert await coordinator.remove_duplicate_snapshots() == 1

        (kept,) = await store.list_net_worth("u1")
        assert kept.record_id == ("legacy" if winner == "legacy" else written.record_id)
