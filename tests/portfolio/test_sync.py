"""Tests for tally.portfolio.sync."""

from datetime import date

import pytest

from tally.core.events import HOLDINGS_CHANGED, Event, EventBus
from tally.core.utils.cache import TTLCache
from tally.financial.models import PORTFOLIO_SYNC_ASSET_NAME, Asset, AssetValueRecord, Holding
from tally.networth.engine import NetWorthSnapshotEngine
from tally.portfolio.analyzer import PortfolioAnalyzer
from tally.portfolio.sync import PortfolioAssetSync

JUNE = date(2024, 6, 1)


@pytest.fixture
def sync(store, provider, today, clock, now):
    return PortfolioAssetSync(
        store,
        PortfolioAnalyzer(provider, base_currency="ILS"),
        NetWorthSnapshotEngine(store, today=today),
        value_cache=TTLCache(5 * 3600, clock=clock),
        update_threshold_seconds=5 * 3600,
        now=now,
    )


async def _buy(store, symbol="AAPL", quantity=10, user_id="u1"):
    return await store.save_holding(Holding(user_id=user_id, symbol=symbol, quantity=quantity))


@pytest.mark.smoke
class TestSyncPortfolioAsset:
    async def test_creates_asset_from_holdings_and_cash(self, sync, store):
        await _buy(store)
        await store.set_cash_balance("u1", 600)

        asset = await sync.sync_portfolio_asset("u1")

        # 10 x 200 USD x 3.7 + 600 cash
        assert asset.name == PORTFOLIO_SYNC_ASSET_NAME
        assert asset.category == "stocks"
        assert asset.value == pytest.approx(8_000)
        assert (await store.get_asset_value(asset.asset_id, "2024-06")).value == pytest.approx(8_000)
        assert (await store.get_net_worth("u1", JUNE)).net_worth == pytest.approx(8_000)

    async def test_no_holdings_returns_none(self, sync, store):
        assert await sync.sync_portfolio_asset("u1") is None
        assert await store.list_assets(["u1"]) == []

    async def test_removes_asset_when_holdings_gone(self, sync, store):
        holding = await _buy(store)
        await sync.sync_portfolio_asset("u1")
        await store.delete_holding(holding.holding_id)

        assert await sync.sync_portfolio_asset("u1", force=True) is None
        assert await sync.find_portfolio_asset("u1") is None
        assert (await store.get_net_worth("u1", JUNE)).net_worth == 0

    async def test_zero_quantity_counts_as_no_holdings(self, sync, store):
        await _buy(store, quantity=0)
        assert await sync.sync_portfolio_asset("u1") is None

    async def test_recent_asset_left_alone(self, sync, store, provider, now):
        await _buy(store)
        first = await sync.sync_portfolio_asset("u1")
        provider.quotes["AAPL"].price = 300
        now.advance(hours=1)

        again = await sync.sync_portfolio_asset("u1")
        assert again.value == first.value
        assert again.updated_at == first.updated_at

    async def test_force_recomputes(self, sync, store, provider):
        await _buy(store)
        await sync.sync_portfolio_asset("u1")
        provider.quotes["AAPL"].price = 300

        asset = await sync.sync_portfolio_asset("u1", force=True)
        assert asset.value == pytest.approx(11_100)
        assert len(await store.list_assets(["u1"])) == 1

    async def test_stale_asset_recomputed_after_threshold(self, sync, store, provider, now, clock):
        await _buy(store)
        await sync.sync_portfolio_asset("u1")
        provider.quotes["AAPL"].price = 300
        now.advance(hours=6)
        clock.advance(6 * 3600)

        asset = await sync.sync_portfolio_asset("u1")
        assert asset.value == pytest.approx(11_100)
        assert asset.updated_at == now()

    async def test_value_cache_serves_recent_value(self, sync, store, provider, now):
        await _buy(store)
        await sync.sync_portfolio_asset("u1")
        provider.quotes["AAPL"].price = 300
        now.advance(hours=6)

        asset = await sync.sync_portfolio_asset("u1")
        assert asset.value == pytest.approx(7_400)
        assert provider.calls["quote"] == 1

    async def test_provider_outage_keeps_last_value(self, sync, store, provider):
        await _buy(store)
        first = await sync.sync_portfolio_asset("u1")
        provider.quotes.clear()

        kept = await sync.sync_portfolio_asset("u1", force=True)
        assert kept.value == first.value
        assert (await store.get_asset(first.asset_id)).value == first.value

    async def test_outage_without_asset_returns_none(self, sync, store, provider):
        await _buy(store, symbol="DELISTED")
        assert await sync.sync_portfolio_asset("u1") is None
        assert await store.list_assets(["u1"]) == []

    async def test_unchanged_value_records_history_once(self, sync, store):
        await _buy(store)
        asset = await sync.sync_portfolio_asset("u1")
        await store.upsert_asset_value(AssetValueRecord(asset.asset_id, "2024-06", 1.0))

        await sync.sync_portfolio_asset("u1", force=True)
        # same value as before, so the history record is left as it was
        assert (await store.get_asset_value(asset.asset_id, "2024-06")).value == 1.0


class TestSharedAccounts:
    async def test_one_asset_per_account(self, sync, store):
        await store.set_membership("u1", "family")
        await store.set_membership("u2", "family")
        await _buy(store, user_id="u1")
        await _buy(store, symbol="JNJ", quantity=1, user_id="u2")

        created = await sync.sync_portfolio_asset("u1")
        updated = await sync.sync_portfolio_asset("u2", force=True)

        assert updated.asset_id == created.asset_id
        assert updated.user_id == "u1"
        # (10 x 200 + 1 x 150) x 3.7
        assert updated.value == pytest.approx(7_955)
        names = [a.name for a in await store.list_assets(["u1", "u2"])]
        assert names == [PORTFOLIO_SYNC_ASSET_NAME]

    async def test_analyze_portfolio_spans_members(self, sync, store):
        await store.set_membership("u1", "family")
        await store.set_membership("u2", "family")
        await _buy(store, user_id="u1")
        await _buy(store, symbol="JNJ", quantity=1, user_id="u2")

        analysis = await sync.analyze_portfolio("u2")
        assert {h.symbol for h in analysis.holdings} == {"AAPL", "JNJ"}


class TestSyncAll:
    async def test_counts_synced_users(self, sync, store):
        await _buy(store, user_id="u1")
        await _buy(store, user_id="u2")
        await _buy(store, symbol="DELISTED", user_id="u3")
        await store.save_asset(Asset(user_id="u4", name="Savings", value=1))

        assert await sync.sync_all_portfolio_assets() == 2

    async def test_holdings_event_forces_sync(self, sync, store, provider):
        bus = EventBus()
        sync.attach(bus)
        await _buy(store)
        await sync.sync_portfolio_asset("u1")
        provider.quotes["AAPL"].price = 300

        await bus.emit(Event(name=HOLDINGS_CHANGED, payload={"user_id": "u1"}))

        (asset,) = await store.list_assets(["u1"])
        assert asset.value == pytest.approx(11_100)
