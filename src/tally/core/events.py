"""Event bus connecting record mutations to derived-figure recomputation.

The mutation layer emits an event after every asset, liability or holding
change; the net-worth engine and portfolio sync subscribe to the events they
care about. Hooks can be sync or async.

Usage::

    from tally.core.events import ASSET_SAVED, Event, EventBus

    bus = EventBus()
    bus.on(ASSET_SAVED, engine.on_mutation)
    await bus.emit(Event(name=ASSET_SAVED, payload={"user_id": "u1"}, source="service"))
"""

from __future__ import annotations

import inspect
from collections import defaultdict
from dataclasses import dataclass, field
from time import time
from typing import Any

from loguru import logger

# ---------------------------------------------------------------------------
# Well-known event names
# ---------------------------------------------------------------------------

ASSET_SAVED = "asset.saved"
ASSET_DELETED = "asset.deleted"
LIABILITY_SAVED = "liability.saved"
LIABILITY_DELETED = "liability.deleted"
HOLDINGS_CHANGED = "holdings.changed"
NET_WORTH_SAVED = "networth.saved"

# Mutations after which the current month's snapshot is stale
BALANCE_SHEET_EVENTS = (ASSET_SAVED, ASSET_DELETED, LIABILITY_SAVED, LIABILITY_DELETED)

Hook = Any  # Callable[[Event], None] | Callable[[Event], Awaitable[None]]


@dataclass(frozen=True)
class Event:
    """An immutable event that flows through the bus."""

    name: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time)
    source: str = ""


class EventBus:
    """Pub/sub bus. A failing hook is logged and never blocks the emitter."""

    def __init__(self) -> None:
        self._hooks: dict[str, list[Hook]] = defaultdict(list)

    def on(self, event_name: str, hook: Hook) -> None:
        """Register *hook* for a specific event name."""
        self._hooks[event_name].append(hook)

    def off(self, event_name: str, hook: Hook) -> None:
        """Unregister *hook* from a specific event name."""
        try:
            self._hooks[event_name].remove(hook)
        except ValueError:
            pass

    def subscribers(self, event_name: str) -> int:
        return len(self._hooks.get(event_name, []))

    async def emit(self, event: Event) -> None:
        """Run every hook registered for the event, in registration order."""
        for hook in list(self._hooks.get(event.name, [])):
            try:
                if inspect.iscoroutinefunction(hook):
                    await hook(event)
                else:
                    hook(event)
            except Exception as exc:
                logger.warning(f"Event hook failed for {event.name}: {exc}")
