"""Tests for tally.networth.history."""

import pytest

from tally.core.exceptions import RecordNotFoundError
from tally.financial.models import Asset
from tally.networth.history import save_asset_history, save_asset_history_if_changed


@pytest.fixture
async def asset_id(store):
    asset = await store.save_asset(Asset(user_id="u1", name="Savings", value=10))
    return asset.asset_id


async def test_save_defaults_to_current_month(store, asset_id):
    record = await save_asset_history(store, asset_id, 500)
    stored = await store.get_asset_value(asset_id, record.month_key)
    assert stored.value == 500


async def test_new_asset_always_recorded(store, asset_id):
    assert await save_asset_history_if_changed(store, asset_id, 10, None, "2024-06") is not None
    assert (await store.get_asset_value(asset_id, "2024-06")).value == 10


async def test_unchanged_value_not_recorded(store, asset_id):
    assert await save_asset_history_if_changed(store, asset_id, 10, 10, "2024-06") is None
    assert await store.get_asset_value(asset_id, "2024-06") is None


async def test_changed_value_overwrites_month(store, asset_id):
    await save_asset_history_if_changed(store, asset_id, 10, None, "2024-06")
    await save_asset_history_if_changed(store, asset_id, 12, 10, "2024-06")
    assert [r.value for r in await store.list_asset_values([asset_id], "2024-06")] == [12]


async def test_deleted_asset_cannot_get_history(store, asset_id):
    await store.delete_asset(asset_id)
    with pytest.raises(RecordNotFoundError):
        await save_asset_history(store, asset_id, 5, "2024-06")
