"""Shared setup logic for CLI commands."""

from __future__ import annotations

from datetime import date

import click

from tally.core.config import Config
from tally.financial.models import Liability, LoanMethod


def load_config(ctx: click.Context) -> Config:
    """Config from the ``--config`` file given to the group, if any."""
    config_file = (ctx.obj or {}).get("config_file")
    return Config(config_file=config_file)


def loan_options(func):
    """Options describing one loan, shared by ``balance`` and ``schedule``."""
    options = [
        click.option("--amount", type=float, required=True, help="Original principal."),
        click.option("--rate", type=float, default=None, help="Annual interest rate in percent."),
        click.option("--term", type=int, default=None, help="Number of monthly payments."),
        click.option("--start", type=click.DateTime(formats=["%Y-%m-%d", "%Y-%m"]), default=None, help="First payment month."),
        click.option(
            "--method",
            type=click.Choice([m.value for m in LoanMethod]),
            default=LoanMethod.SPITZER.value,
            show_default=True,
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_liability(amount, rate, term, start, method, remaining=None) -> Liability:
    return Liability(
        user_id="cli",
        name="loan",
        total_amount=amount,
        interest_rate=rate,
        loan_term_months=term,
        start_date=start.date() if start else None,
        remaining_amount=remaining,
        loan_method=method,
    )


def parse_date_option(value) -> date:
    """``click.DateTime`` value as a date, today when not given."""
    return value.date() if value else date.today()
