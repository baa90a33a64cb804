"""Monthly net-worth snapshots and their history."""

from .backfill import BackfillCoordinator
from .engine import NetWorthSnapshot, NetWorthSnapshotEngine
from .history import save_asset_history, save_asset_history_if_changed

__all__ = [
    "BackfillCoordinator",
    "NetWorthSnapshot",
    "NetWorthSnapshotEngine",
    "save_asset_history",
    "save_asset_history_if_changed",
]
