"""Shared test fixtures for tally."""

import os
import tempfile
from datetime import date, datetime, timedelta

import pytest

from tally.core.config import Config, reset_config
from tally.core.storage.memory import MemoryStore
from tally.portfolio.models import PricePoint, QuoteData
from tally.portfolio.providers import StaticQuoteProvider

TODAY = date(2024, 6, 15)
NOW = datetime(2024, 6, 15, 12, 0, 0)


class FakeClock:
    """Seconds clock that only moves when told to."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeNow:
    """Wall clock for asset timestamps; advance() moves it forward."""

    def __init__(self, start: datetime = NOW):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture(autouse=True)
def _reset_config_singleton():
    reset_config()
    yield
    reset_config()


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as d:
        yield d


@pytest.fixture
def tmp_config_file(tmp_dir):
    """Create a temporary YAML config file."""
    import yaml

    config_data = {
        "paths": {
            "data_dir": os.path.join(tmp_dir, "data"),
            "store_file": os.path.join(tmp_dir, "data", "store.json"),
        },
        "portfolio": {"base_currency": "ils", "fallback_fx_rate": 3.5},
    }
    config_path = os.path.join(tmp_dir, "config.yaml")
    with open(config_path, "w") as f:
        yaml.dump(config_data, f)
    return config_path


@pytest.fixture
def config(tmp_dir):
    return Config(data_dir=tmp_dir, env_prefix="")


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def now():
    return FakeNow()


@pytest.fixture
def today():
    return lambda: TODAY


@pytest.fixture
def provider():
    """Two US stocks, one Tel Aviv listing quoted in agorot, USD/ILS at 3.7."""
    return StaticQuoteProvider(
        quotes={
            "AAPL": QuoteData("AAPL", price=200.0, currency="USD", beta=1.2, sector="Technology", change_percent=1.0),
            "JNJ": QuoteData("JNJ", price=150.0, currency="USD", beta=0.6, sector="Healthcare", change_percent=-2.0),
            "TEVA": QuoteData("TEVA", price=5000.0, currency="ILS", beta=None, sector=None),
        },
        fx_rates={"USDILS": 3.7},
        history={"AAPL": [PricePoint(date(2024, 6, d), 190.0 + d) for d in range(1, 11)]},
    )
