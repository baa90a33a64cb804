"""
QuoteProvider protocol and a fixture-backed implementation.

A provider answers three questions: the latest quote for a symbol, its
recent daily closes, and an exchange rate for a currency pair such as
``USDILS``. Network providers implement the same protocol; tally only ever
calls it under a timeout.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import yaml
from loguru import logger

from tally.core.exceptions import ConfigurationError, QuoteProviderError
from tally.core.types import PathLike
from tally.portfolio.models import PricePoint, QuoteData


@runtime_checkable
class QuoteProvider(Protocol):
    """Protocol that every market-data source must satisfy."""

    async def quote(self, symbol: str) -> QuoteData:
        """Latest quote. Raises QuoteProviderError when unavailable."""
        ...

    async def history(self, symbol: str, days: int) -> list[PricePoint]:
        """Daily closes for the trailing *days*, oldest first."""
        ...

    async def fx_rate(self, pair: str) -> float:
        """Units of the second currency per unit of the first (``USDILS``)."""
        ...


class StaticQuoteProvider:
    """Serves quotes from an in-memory table, typically loaded from YAML.

    Fixture layout::

        fx:
          USDILS: 3.7
        quotes:
          AAPL: {price: 190.5, currency: USD, beta: 1.2, sector: Technology, change_percent: 0.8}
        history:
          AAPL: [188.0, 189.1, 190.5]
    """

    def __init__(
        self,
        quotes: dict[str, QuoteData] | None = None,
        fx_rates: dict[str, float] | None = None,
        history: dict[str, list[PricePoint]] | None = None,
    ):
        self.quotes = {k.upper(): v for k, v in (quotes or {}).items()}
        self.fx_rates = {k.upper(): float(v) for k, v in (fx_rates or {}).items()}
        self.price_history = {k.upper(): v for k, v in (history or {}).items()}
        self.calls: dict[str, int] = {"quote": 0, "history": 0, "fx_rate": 0}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StaticQuoteProvider:
        quotes = {symbol: QuoteData.from_dict(symbol, q) for symbol, q in (data.get("quotes") or {}).items()}
        history = {symbol: _parse_history(points) for symbol, points in (data.get("history") or {}).items()}
        return cls(quotes=quotes, fx_rates=data.get("fx") or {}, history=history)

    @classmethod
    def from_file(cls, path: PathLike) -> StaticQuoteProvider:
        """Load a YAML fixture. Raises ConfigurationError if unreadable."""
        path = Path(path).expanduser()
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot load quotes fixture {path}: {e}") from e
        provider = cls.from_dict(data)
        logger.debug(f"Loaded {len(provider.quotes)} quote(s) from {path}")
        return provider

    async def quote(self, symbol: str) -> QuoteData:
        self.calls["quote"] += 1
        try:
            return self.quotes[symbol.upper()]
        except KeyError:
            raise QuoteProviderError(f"No quote for {symbol}") from None

    async def history(self, symbol: str, days: int) -> list[PricePoint]:
        self.calls["history"] += 1
        points = self.price_history.get(symbol.upper(), [])
        return points[-days:] if days > 0 else []

    async def fx_rate(self, pair: str) -> float:
        self.calls["fx_rate"] += 1
        try:
            return self.fx_rates[pair.upper()]
        except KeyError:
            raise QuoteProviderError(f"No exchange rate for {pair}") from None


def _parse_history(points: list[Any]) -> list[PricePoint]:
    """Accept bare closes or ``{date, close}`` mappings."""
    parsed: list[PricePoint] = []
    for i, point in enumerate(points or []):
        if isinstance(point, dict):
            day = point.get("date")
            parsed.append(
                PricePoint(
                    date=day if isinstance(day, date) else date.fromisoformat(str(day)),
                    close=float(point["close"]),
                )
            )
        else:
            parsed.append(PricePoint(date=date.fromordinal(date.today().toordinal() - len(points) + 1 + i), close=float(point)))
    return parsed
