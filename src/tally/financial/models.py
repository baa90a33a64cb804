"""Core financial data models.

Plain dataclasses for the balance-sheet records the engine reads and writes.
They are storage-agnostic: the in-memory store keeps the objects themselves,
the JSON store round-trips them through ``to_dict`` / ``from_dict``.

Money is carried as ``float`` and rounded to cents at the points where a
figure is persisted.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

PORTFOLIO_SYNC_ASSET_NAME = "Self-Managed Trading Portfolio"
PORTFOLIO_ASSET_CATEGORY = "stocks"


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


def _as_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if value is None or value == "":
        return datetime.now()
    return datetime.fromisoformat(str(value))


def _jsonable(data: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, (date, datetime)):
            out[key] = value.isoformat()
        elif isinstance(value, Enum):
            out[key] = value.value
        else:
            out[key] = value
    return out


class LoanMethod(Enum):
    """How a loan's principal is paid down."""

    SPITZER = "spitzer"  # constant total payment
    EQUAL_PRINCIPAL = "equal_principal"  # constant principal portion

    @classmethod
    def parse(cls, value: str | LoanMethod | None) -> LoanMethod:
        if isinstance(value, LoanMethod):
            return value
        if not value:
            return cls.SPITZER
        return cls(str(value).strip().lower())


class PriceDisplayUnit(Enum):
    """Unit a market quotes prices in.

    ILS_AGOROT markets quote in minor units (1/100 of a shekel).
    """

    ILS = "ILS"
    ILS_AGOROT = "ILS_AGOROT"
    USD = "USD"

    @property
    def divisor(self) -> int:
        return 100 if self is PriceDisplayUnit.ILS_AGOROT else 1

    @classmethod
    def parse(cls, value: str | PriceDisplayUnit | None) -> PriceDisplayUnit:
        if isinstance(value, PriceDisplayUnit):
            return value
        if not value:
            return cls.ILS
        return cls(str(value).strip().upper())


@dataclass
class Liability:
    """A loan or mortgage.

    Attributes:
        liability_id: Unique identifier.
        user_id: Owning user.
        name: Human-readable name.
        total_amount: Original principal.
        interest_rate: Annual rate in percent (5 means 5%). None or 0 means
            no amortization schedule is known.
        loan_term_months: Number of monthly payments.
        start_date: Month of the first payment.
        remaining_amount: Manually entered outstanding balance (optional).
        loan_method: Spitzer (constant payment) or equal principal.
        monthly_payment: Flat payment used when no schedule is known.
        has_interest_rebate: Interest is reimbursed, so only principal is an expense.
    """

    user_id: str
    name: str
    total_amount: float
    interest_rate: float | None = None
    loan_term_months: int | None = None
    start_date: date | None = None
    remaining_amount: float | None = None
    loan_method: LoanMethod = LoanMethod.SPITZER
    monthly_payment: float = 0.0
    has_interest_rebate: bool = False
    liability_id: str = field(default_factory=_new_id)

    def __post_init__(self):
        self.total_amount = float(self.total_amount)
        if self.total_amount < 0:
            raise ValueError(f"Liability {self.name} has negative total amount: {self.total_amount}")
        if self.interest_rate is not None:
            self.interest_rate = float(self.interest_rate)
            if self.interest_rate < 0:
                raise ValueError(f"Liability {self.name} has negative interest rate: {self.interest_rate}")
        if self.loan_term_months is not None:
            self.loan_term_months = int(self.loan_term_months)
        if self.remaining_amount is not None:
            self.remaining_amount = float(self.remaining_amount)
        self.start_date = _as_date(self.start_date)
        self.loan_method = LoanMethod.parse(self.loan_method)
        self.monthly_payment = float(self.monthly_payment or 0)

    @property
    def has_schedule(self) -> bool:
        """True when rate, term and start date are all known."""
        return bool(self.interest_rate) and bool(self.loan_term_months) and self.start_date is not None

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Liability:
        return cls(**data)


@dataclass
class Asset:
    """Something the user owns, valued in the base currency.

    The asset named ``PORTFOLIO_SYNC_ASSET_NAME`` is derived from holdings and
    written only by the portfolio sync.
    """

    user_id: str
    name: str
    value: float
    category: str = "other"
    updated_at: datetime = field(default_factory=datetime.now)
    asset_id: str = field(default_factory=_new_id)

    def __post_init__(self):
        self.value = float(self.value)
        if not self.name:
            raise ValueError("Asset name cannot be empty")
        self.updated_at = _as_datetime(self.updated_at)

    @property
    def is_portfolio_sync(self) -> bool:
        return is_portfolio_sync_asset(self.name)

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Asset:
        return cls(**data)


@dataclass
class AssetValueRecord:
    """The value an asset held during one month. One per (asset_id, month_key)."""

    asset_id: str
    month_key: str
    value: float

    def __post_init__(self):
        self.value = float(self.value)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AssetValueRecord:
        return cls(**data)


@dataclass
class NetWorthRecord:
    """Persisted monthly net worth. One per (user_id, date); date is a month's first day."""

    user_id: str
    date: date
    assets: float
    liabilities: float
    net_worth: float
    updated_at: datetime = field(default_factory=datetime.now)
    record_id: str = field(default_factory=_new_id)

    def __post_init__(self):
        self.date = _as_date(self.date)
        if self.date.day != 1:
            raise ValueError(f"Net worth date must be the first of a month, got {self.date}")
        self.updated_at = _as_datetime(self.updated_at)

    @property
    def month_key(self) -> str:
        return f"{self.date.year:04d}-{self.date.month:02d}"

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NetWorthRecord:
        return cls(**data)


@dataclass
class Holding:
    """A position in a quoted security.

    Attributes:
        user_id: Owning user.
        symbol: Ticker as understood by the quote provider.
        quantity: Number of units held.
        currency: Currency the position is held in.
        provider: Quote-provider identifier.
        price_display_unit: Unit the market quotes in (see PriceDisplayUnit).
    """

    user_id: str
    symbol: str
    quantity: float
    currency: str = "USD"
    provider: str = "EOD"
    price_display_unit: PriceDisplayUnit = PriceDisplayUnit.ILS
    holding_id: str = field(default_factory=_new_id)

    def __post_init__(self):
        self.quantity = float(self.quantity)
        if not self.symbol:
            raise ValueError("Holding symbol cannot be empty")
        self.symbol = self.symbol.strip().upper()
        self.currency = (self.currency or "USD").upper()
        self.price_display_unit = PriceDisplayUnit.parse(self.price_display_unit)

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Holding:
        return cls(**data)


def is_portfolio_sync_asset(asset_name: str) -> bool:
    """True if *asset_name* is the reserved name of the synthetic portfolio asset."""
    return asset_name == PORTFOLIO_SYNC_ASSET_NAME
