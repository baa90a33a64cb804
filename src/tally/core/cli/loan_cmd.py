"""tally balance / tally schedule: loan calculations from flags."""

from __future__ import annotations

import click

from tally.core.cli.common import build_liability, loan_options, parse_date_option


@click.command()
@loan_options
@click.option("--remaining", type=float, default=None, help="Known outstanding amount, used without a schedule.")
@click.option("--as-of", type=click.DateTime(formats=["%Y-%m-%d", "%Y-%m"]), default=None, help="Defaults to today.")
def balance(amount, rate, term, start, method, remaining, as_of) -> None:
    """Show the outstanding balance of a loan."""
    from tally.financial.calculators.amortization import current_month_payment, remaining_balance_detail

    liability = build_liability(amount, rate, term, start, method, remaining)
    when = parse_date_option(as_of)
    result = remaining_balance_detail(liability, when)

    click.echo(f"Remaining balance on {when:%Y-%m}: {result.amount:,.2f} ({result.source.value})")
    details = current_month_payment(liability, when)
    if details is not None and details.current_month:
        click.echo(
            f"Payment {details.current_month}/{liability.loan_term_months}: {details.payment:,.2f} "
            f"(principal {details.principal:,.2f}, interest {details.interest:,.2f})"
        )


@click.command()
@loan_options
@click.option("--limit", type=int, default=0, help="Show only the first N months.")
def schedule(amount, rate, term, start, method, limit) -> None:
    """Print a month-by-month amortization table."""
    from tally.financial.calculators.amortization import amortization_schedule

    liability = build_liability(amount, rate, term, start, method)
    if not liability.has_schedule:
        raise click.UsageError("--rate, --term and --start are required for a schedule")

    rows = amortization_schedule(
        liability.total_amount,
        liability.interest_rate,
        liability.loan_term_months,
        liability.start_date,
        liability.loan_method,
    )
    if limit > 0:
        rows = rows[:limit]

    click.echo(f"{'Month':>5}  {'Date':<10}  {'Payment':>12}  {'Principal':>12}  {'Interest':>12}  {'Balance':>14}")
    for row in rows:
        click.echo(
            f"{row.month:>5}  {row.date.isoformat():<10}  {row.payment:>12,.2f}  "
            f"{row.principal:>12,.2f}  {row.interest:>12,.2f}  {row.balance:>14,.2f}"
        )
