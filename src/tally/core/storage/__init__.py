"""
Storage backends for tally.

``FinanceStore`` is the protocol the engine codes against; ``MemoryStore``
and ``JsonFileStore`` are the bundled implementations.
"""

from .base import FinanceStore
from .json_file import JsonFileStore, open_store
from .memory import MemoryStore

__all__ = [
    "FinanceStore",
    "JsonFileStore",
    "MemoryStore",
    "open_store",
]
