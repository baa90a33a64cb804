"""
Exchange rates with a cache and fallbacks.

Lookup order for a pair:

1. fresh cache entry (younger than the TTL)
2. the provider, under a timeout; success refreshes the cache
3. the last cached rate, however old
4. a hardcoded default for the pair

Only when all four come up empty does the lookup raise.
"""

from __future__ import annotations

import asyncio

from loguru import logger

from tally.core.exceptions import QuoteProviderError
from tally.core.utils.cache import TTLCache
from tally.portfolio.models import FxRate, FxSource
from tally.portfolio.providers import QuoteProvider

DEFAULT_FX_TTL_SECONDS = 3600
DEFAULT_TIMEOUT_SECONDS = 10.0

# Conservative rates used when the provider is down and nothing is cached
DEFAULT_FALLBACK_RATES = {"USDILS": 3.65}


class FxRateProvider:
    """Cached exchange-rate lookups on top of a QuoteProvider."""

    def __init__(
        self,
        provider: QuoteProvider,
        cache: TTLCache | None = None,
        fallback_rates: dict[str, float] | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        """
        Args:
            provider: Source of live rates.
            cache: Rate cache, owned by the caller. Defaults to a 1 h TTLCache.
            fallback_rates: Pair to rate, used when live and cached rates are missing.
            timeout_seconds: Limit on each provider call.
        """
        self.provider = provider
        self.cache = cache if cache is not None else TTLCache(DEFAULT_FX_TTL_SECONDS)
        self.fallback_rates = dict(DEFAULT_FALLBACK_RATES if fallback_rates is None else fallback_rates)
        self.timeout_seconds = timeout_seconds

    async def get_rate(self, from_currency: str, to_currency: str) -> FxRate:
        """Units of *to_currency* per unit of *from_currency*.

        Raises:
            QuoteProviderError: No live, cached or default rate exists for the pair.
        """
        from_currency, to_currency = from_currency.upper(), to_currency.upper()
        if from_currency == to_currency:
            return FxRate(1.0, FxSource.IDENTITY)

        pair = f"{from_currency}{to_currency}"
        cached = self.cache.get_cached_data(pair)
        if cached is not None:
            return FxRate(cached, FxSource.CACHED)

        try:
            rate = await asyncio.wait_for(self.provider.fx_rate(pair), timeout=self.timeout_seconds)
            if rate and rate > 0:
                self.cache.cache_data(pair, float(rate))
                logger.debug(f"Fetched {pair} rate {rate}")
                return FxRate(float(rate), FxSource.LIVE)
            logger.warning(f"Provider returned unusable {pair} rate: {rate}")
        except TimeoutError:
            logger.warning(f"Timed out fetching {pair} rate after {self.timeout_seconds}s")
        except QuoteProviderError as e:
            logger.warning(f"Could not fetch {pair} rate: {e}")

        stale = self.cache.get_stale_data(pair)
        if stale is not None:
            logger.info(f"Using last known {pair} rate {stale}")
            return FxRate(stale, FxSource.STALE)

        if pair in self.fallback_rates:
            rate = self.fallback_rates[pair]
            logger.warning(f"Using default {pair} rate {rate}")
            return FxRate(rate, FxSource.DEFAULT)

        raise QuoteProviderError(f"No exchange rate available for {pair}")
