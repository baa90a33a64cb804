"""
JSON-file FinanceStore.

Keeps everything in a MemoryStore and rewrites one JSON document after each
mutation. The document is written to a sibling temp file and moved into
place, so a crash mid-write leaves the previous version intact.
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os
from loguru import logger

from tally.core.exceptions import PersistenceError
from tally.core.types import Now, PathLike
from tally.financial.models import (
    Asset,
    AssetValueRecord,
    Holding,
    Liability,
    NetWorthRecord,
)

from .memory import MemoryStore

_FORMAT_VERSION = 1


class JsonFileStore(MemoryStore):
    """MemoryStore persisted to a single JSON file. Use ``await JsonFileStore.open(path)``."""

    def __init__(self, path: PathLike, now: Now | None = None) -> None:
        super().__init__(now=now)
        self.path = Path(path).expanduser()
        self._write_lock = asyncio.Lock()

    @classmethod
    async def open(cls, path: PathLike, now: Now | None = None) -> JsonFileStore:
        """Open *path*, loading existing records. A missing file starts empty."""
        store = cls(path, now=now)
        await store.load()
        return store

    async def load(self) -> None:
        if not self.path.exists():
            logger.debug(f"No store file at {self.path}, starting empty")
            return
        try:
            async with aiofiles.open(self.path, encoding="utf-8") as f:
                document = json.loads(await f.read())
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Cannot read store file {self.path}: {e}") from e

        self._restore(document)
        logger.info(f"Loaded store from {self.path}")

    def _restore(self, document: dict[str, Any]) -> None:
        try:
            with self._lock:
                self._memberships = dict(document.get("memberships", {}))
                self._cash = {k: float(v) for k, v in document.get("cash_balances", {}).items()}
                for row in document.get("assets", []):
                    asset = Asset.from_dict(row)
                    self._assets[asset.asset_id] = asset
                for row in document.get("liabilities", []):
                    liability = Liability.from_dict(row)
                    self._liabilities[liability.liability_id] = liability
                for row in document.get("holdings", []):
                    holding = Holding.from_dict(row)
                    self._holdings[holding.holding_id] = holding
                for row in document.get("asset_values", []):
                    record = AssetValueRecord.from_dict(row)
                    self._asset_values[(record.asset_id, record.month_key)] = record
                for row in document.get("net_worth", []):
                    record = NetWorthRecord.from_dict(row)
                    self._net_worth[record.record_id] = record
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Malformed store file {self.path}: {e}") from e

    def _snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "version": _FORMAT_VERSION,
                "memberships": dict(self._memberships),
                "cash_balances": dict(self._cash),
                "assets": [a.to_dict() for a in self._assets.values()],
                "liabilities": [li.to_dict() for li in self._liabilities.values()],
                "holdings": [h.to_dict() for h in self._holdings.values()],
                "asset_values": [r.to_dict() for r in self._asset_values.values()],
                "net_worth": [r.to_dict() for r in self._net_worth.values()],
            }

    async def _after_write(self) -> None:
        async with self._write_lock:
            payload = json.dumps(self._snapshot(), ensure_ascii=False, indent=2)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                    await f.write(payload)
                await aiofiles.os.replace(tmp_path, self.path)
            except OSError as e:
                raise PersistenceError(f"Cannot write store file {self.path}: {e}") from e


async def open_store(path: PathLike | None, now: Now | None = None) -> MemoryStore:
    """A JsonFileStore for *path*, or a throwaway MemoryStore when *path* is empty."""
    if not path:
        return MemoryStore(now=now)
    return await JsonFileStore.open(os.fspath(path), now=now)
