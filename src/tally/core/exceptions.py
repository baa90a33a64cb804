"""
Tally exception hierarchy.

All tally exceptions inherit from TallyError, making it easy for consumers
to catch library-level errors while still distinguishing specific failure modes.

Missing amortization inputs and rounding overshoot are deliberately absent:
those fall back to stored values or clamp to zero instead of raising.
"""


class TallyError(Exception):
    """Base exception class for all tally errors."""


class ConfigurationError(TallyError):
    """Raised for configuration errors (missing keys, invalid values)."""


class PersistenceError(TallyError):
    """Raised when the store cannot read or write a record."""


class RecordNotFoundError(PersistenceError, KeyError):
    """Raised when a record addressed by key does not exist."""


class QuoteProviderError(TallyError):
    """Raised when the quote provider cannot serve a request."""


class QuoteTimeoutError(QuoteProviderError):
    """Raised when a quote provider call exceeds its timeout."""


class TotalProviderFailure(QuoteProviderError):
    """Raised when no holding in a portfolio could be priced."""


class PortfolioAssetReadOnlyError(TallyError):
    """Raised when a caller tries to edit the synthetic portfolio asset."""
