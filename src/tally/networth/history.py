"""Asset value history: what each asset was worth during each month.

One record per (asset, month). Writes are upserts, so saving twice in the
same month keeps the later value.
"""

from __future__ import annotations

from loguru import logger

from tally.core.storage.base import FinanceStore
from tally.core.utils.dates import current_month_key
from tally.financial.models import AssetValueRecord


async def save_asset_history(
    store: FinanceStore,
    asset_id: str,
    value: float,
    month_key: str | None = None,
) -> AssetValueRecord:
    """Record *value* as the asset's value for *month_key* (default: current month).

    Raises:
        RecordNotFoundError: The asset does not exist.
    """
    record = AssetValueRecord(asset_id=asset_id, month_key=month_key or current_month_key(), value=value)
    await store.upsert_asset_value(record)
    logger.debug(f"Asset {asset_id} valued {value:,.2f} for {record.month_key}")
    return record


async def save_asset_history_if_changed(
    store: FinanceStore,
    asset_id: str,
    new_value: float,
    previous_value: float | None,
    month_key: str | None = None,
) -> AssetValueRecord | None:
    """Record the value only when it differs from *previous_value* (None = new asset)."""
    if previous_value is not None and new_value == previous_value:
        return None
    return await save_asset_history(store, asset_id, new_value, month_key)
