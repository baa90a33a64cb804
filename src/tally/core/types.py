"""Shared type aliases used across tally."""

from collections.abc import Callable
from datetime import date, datetime
from pathlib import Path
from typing import Any

# Config value types
ConfigDict = dict[str, Any]

# Path types
PathLike = str | Path

# Returns seconds; monotonic or wall-clock, the caller decides
Clock = Callable[[], float]

# Calendar sources, injected so month boundaries are testable
Today = Callable[[], date]
Now = Callable[[], datetime]
