"""Loan amortization: payments, schedules and outstanding balances.

Supports the two repayment methods found on consumer loans and mortgages:

- Spitzer: a constant total payment; early payments are mostly interest.
- Equal principal: a constant principal portion; the total payment shrinks
  as interest on the falling balance shrinks.

Months are counted by calendar month, not by day: a loan that starts in
March is in its first payment month for every day of March.

Balances are rounded to cents with ROUND_HALF_UP, the convention of the
snapshots already on record.

Pure math. No I/O, and never raises for valid numeric input.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from tally.core.utils.dates import months_between
from tally.financial.models import Liability, LoanMethod

_CENT = Decimal("0.01")


class BalanceSource(Enum):
    """Where a remaining-balance figure came from."""

    COMPUTED = "computed"  # amortization schedule
    MANUAL_OVERRIDE = "manual_override"  # user-entered remaining amount
    PRINCIPAL = "principal"  # no schedule, no override: original amount
    NOT_STARTED = "not_started"  # as-of date precedes the first payment month
    REPAID = "repaid"  # as-of date is past the final payment month


@dataclass(frozen=True)
class BalanceResult:
    amount: float
    source: BalanceSource


@dataclass(frozen=True)
class AmortizationRow:
    """One month of an amortization schedule."""

    month: int
    date: date
    payment: float
    principal: float
    interest: float
    balance: float


@dataclass(frozen=True)
class PaymentDetails:
    """Payment due in a given month. ``current_month`` is 0 for flat payments."""

    payment: float
    principal: float
    interest: float
    current_month: int


def round_cents(amount: float) -> float:
    """Round to two decimals, halves away from zero."""
    return float(Decimal(str(amount)).quantize(_CENT, rounding=ROUND_HALF_UP))


def _add_months(start: date, months: int) -> date:
    index = start.year * 12 + (start.month - 1) + months
    year, month = index // 12, index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def spitzer_payment(principal: float, annual_rate: float, term_months: int) -> float:
    """Constant monthly payment for a Spitzer loan.

    PMT = P * r(1+r)^n / ((1+r)^n - 1), with r the monthly rate.

    Args:
        principal: Loan amount.
        annual_rate: Annual rate in percent (5 means 5%).
        term_months: Number of payments.
    """
    if term_months <= 0:
        return 0.0
    if not annual_rate:
        return principal / term_months

    monthly_rate = annual_rate / 100 / 12
    try:
        factor = (1 + monthly_rate) ** term_months
    except OverflowError:
        # Very long terms: the payment converges to interest only.
        return principal * monthly_rate
    if factor == 1:
        return principal / term_months
    return principal * (monthly_rate * factor) / (factor - 1)


def amortization_schedule(
    principal: float,
    annual_rate: float,
    term_months: int,
    start_date: date,
    method: LoanMethod = LoanMethod.SPITZER,
) -> list[AmortizationRow]:
    """Month-by-month breakdown of a loan. Empty for a non-positive principal or term.

    Row N is dated N - 1 months after *start_date*: the first payment falls in
    the start month, and each row's balance is what ``remaining_balance``
    reports for any day of that row's month.
    """
    if term_months <= 0 or principal <= 0:
        return []

    monthly_rate = (annual_rate or 0) / 100 / 12
    balance = principal
    schedule: list[AmortizationRow] = []

    fixed_payment = spitzer_payment(principal, annual_rate, term_months)
    fixed_principal = principal / term_months

    for month in range(1, term_months + 1):
        interest = balance * monthly_rate
        if method is LoanMethod.SPITZER:
            payment = fixed_payment
            principal_paid = payment - interest
        else:
            principal_paid = fixed_principal
            payment = principal_paid + interest
        balance = max(0.0, balance - principal_paid)

        schedule.append(
            AmortizationRow(
                month=month,
                date=_add_months(start_date, month - 1),
                payment=round_cents(payment),
                principal=round_cents(principal_paid),
                interest=round_cents(interest),
                balance=round_cents(balance),
            )
        )

    return schedule


def _payment_month(liability: Liability, as_of: date) -> int:
    """1-indexed payment month containing *as_of*; < 1 before the loan starts."""
    return months_between(liability.start_date, as_of) + 1


def _scheduled_balance(liability: Liability, current_month: int) -> float:
    total = liability.total_amount
    term = liability.loan_term_months
    monthly_rate = liability.interest_rate / 100 / 12

    if liability.loan_method is LoanMethod.EQUAL_PRINCIPAL:
        return max(0.0, total - (total / term) * current_month)

    payment = spitzer_payment(total, liability.interest_rate, term)
    balance = total
    for _ in range(current_month):
        interest = balance * monthly_rate
        balance = max(0.0, balance - (payment - interest))
    return balance


def remaining_balance_detail(liability: Liability, as_of: date | datetime) -> BalanceResult:
    """Outstanding balance of *liability* during the month of *as_of*, with its source.

    Without a full schedule (rate, term and start date), the manual remaining
    amount wins, then the original principal.
    """
    if not liability.has_schedule:
        if liability.remaining_amount is not None:
            return BalanceResult(liability.remaining_amount, BalanceSource.MANUAL_OVERRIDE)
        return BalanceResult(liability.total_amount, BalanceSource.PRINCIPAL)

    current_month = _payment_month(liability, _as_date(as_of))
    if current_month < 1:
        return BalanceResult(liability.total_amount, BalanceSource.NOT_STARTED)
    if current_month > liability.loan_term_months:
        return BalanceResult(0.0, BalanceSource.REPAID)

    balance = _scheduled_balance(liability, current_month)
    # Payoff arithmetic can overshoot by a fraction of a cent; clamp into range.
    balance = min(max(balance, 0.0), liability.total_amount)
    return BalanceResult(round_cents(balance), BalanceSource.COMPUTED)


def remaining_balance(liability: Liability, as_of: date | datetime) -> float:
    """Outstanding balance of *liability* during the month of *as_of*."""
    return remaining_balance_detail(liability, as_of).amount


def current_month_payment(liability: Liability, as_of: date | datetime) -> PaymentDetails | None:
    """Payment due during the month of *as_of*.

    Returns the flat ``monthly_payment`` when no schedule is known, and None
    when the loan has not started or is already repaid.
    """
    if not liability.has_schedule:
        return PaymentDetails(
            payment=liability.monthly_payment,
            principal=liability.monthly_payment,
            interest=0.0,
            current_month=0,
        )

    current_month = _payment_month(liability, _as_date(as_of))
    if current_month < 1 or current_month > liability.loan_term_months:
        return None

    schedule = amortization_schedule(
        liability.total_amount,
        liability.interest_rate,
        liability.loan_term_months,
        liability.start_date,
        liability.loan_method,
    )
    if current_month > len(schedule):
        return None

    row = schedule[current_month - 1]
    return PaymentDetails(
        payment=row.payment,
        principal=row.principal,
        interest=row.interest,
        current_month=current_month,
    )


def effective_monthly_expense(liability: Liability, as_of: date | datetime) -> float:
    """What the loan costs this month. With an interest rebate only principal counts."""
    details = current_month_payment(liability, as_of)
    if details is None:
        return 0.0
    if liability.has_interest_rebate:
        return details.principal
    return details.payment
