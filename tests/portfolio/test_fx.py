"""Tests for tally.portfolio.fx."""

import asyncio

import pytest

from tally.core.exceptions import QuoteProviderError
from tally.core.utils.cache import TTLCache
from tally.portfolio.fx import FxRateProvider
from tally.portfolio.models import FxSource
from tally.portfolio.providers import StaticQuoteProvider


class _HangingProvider(StaticQuoteProvider):
    async def fx_rate(self, pair):
        await asyncio.sleep(1)
        return 9.99


@pytest.fixture
def rates():
    return StaticQuoteProvider(fx_rates={"USDILS": 3.7, "EURILS": 4.0})


@pytest.fixture
def fx(rates, clock):
    return FxRateProvider(rates, cache=TTLCache(3600, clock=clock))


class TestGetRate:
    async def test_same_currency_is_identity(self, fx, rates):
        rate = await fx.get_rate("ils", "ILS")
        assert rate.rate == 1.0
        assert rate.source is FxSource.IDENTITY
        assert rates.calls["fx_rate"] == 0

    async def test_live_then_cached(self, fx, rates):
        first = await fx.get_rate("USD", "ILS")
        second = await fx.get_rate("USD", "ILS")
        assert first.source is FxSource.LIVE
        assert second.source is FxSource.CACHED
        assert second.rate == 3.7
        assert rates.calls["fx_rate"] == 1

    async def test_refetches_after_ttl(self, fx, rates, clock):
        await fx.get_rate("USD", "ILS")
        clock.advance(3600)
        rates.fx_rates["USDILS"] = 3.8
        rate = await fx.get_rate("USD", "ILS")
        assert rate.source is FxSource.LIVE
        assert rate.rate == 3.8

    async def test_stale_rate_when_provider_fails(self, fx, rates, clock):
        await fx.get_rate("EUR", "ILS")
        clock.advance(7200)
        del rates.fx_rates["EURILS"]
        rate = await fx.get_rate("EUR", "ILS")
        assert rate.source is FxSource.STALE
        assert rate.rate == 4.0

    async def test_default_when_nothing_cached(self, clock):
        fx = FxRateProvider(StaticQuoteProvider(), cache=TTLCache(3600, clock=clock))
        rate = await fx.get_rate("USD", "ILS")
        assert rate.source is FxSource.DEFAULT
        assert rate.rate == 3.65

    async def test_default_is_not_cached(self, clock):
        provider = StaticQuoteProvider()
        fx = FxRateProvider(provider, cache=TTLCache(3600, clock=clock))
        await fx.get_rate("USD", "ILS")
        provider.fx_rates["USDILS"] = 3.7
        assert (await fx.get_rate("USD", "ILS")).source is FxSource.LIVE

    async def test_unknown_pair_without_default_raises(self, clock):
        fx = FxRateProvider(StaticQuoteProvider(), cache=TTLCache(3600, clock=clock))
        with pytest.raises(QuoteProviderError, match="GBPJPY"):
            await fx.get_rate("GBP", "JPY")

    async def test_custom_fallbacks(self, clock):
        fx = FxRateProvider(StaticQuoteProvider(), cache=TTLCache(3600, clock=clock), fallback_rates={"USDEUR": 0.9})
        assert (await fx.get_rate("USD", "EUR")).rate == 0.9
        with pytest.raises(QuoteProviderError):
            await fx.get_rate("USD", "ILS")

    async def test_timeout_falls_back(self, clock):
        fx = FxRateProvider(_HangingProvider(), cache=TTLCache(3600, clock=clock), timeout_seconds=0.05)
        rate = await fx.get_rate("USD", "ILS")
        assert rate.source is FxSource.DEFAULT

    async def test_non_positive_rate_rejected(self, clock):
        fx = FxRateProvider(StaticQuoteProvider(fx_rates={"USDILS": 0}), cache=TTLCache(3600, clock=clock))
        rate = await fx.get_rate("USD", "ILS")
        assert rate.source is FxSource.DEFAULT
