"""Financial calculators: loan amortization and outstanding balances."""

from .amortization import (
    AmortizationRow,
    BalanceResult,
    BalanceSource,
    PaymentDetails,
    amortization_schedule,
    current_month_payment,
    effective_monthly_expense,
    remaining_balance,
    remaining_balance_detail,
    round_cents,
    spitzer_payment,
)

__all__ = [
    "AmortizationRow",
    "BalanceResult",
    "BalanceSource",
    "PaymentDetails",
    "amortization_schedule",
    "current_month_payment",
    "effective_monthly_expense",
    "remaining_balance",
    "remaining_balance_detail",
    "round_cents",
    "spitzer_payment",
]
