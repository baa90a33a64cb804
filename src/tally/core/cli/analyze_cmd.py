"""tally analyze: portfolio risk figures from a quotes fixture."""

from __future__ import annotations

import asyncio
import json

import click


def _load_holdings(path: str):
    import yaml

    from tally.financial.models import Holding

    with open(path) as f:
        rows = yaml.safe_load(f) or []
    if isinstance(rows, dict):
        rows = rows.get("holdings", [])
    return [Holding(user_id=row.pop("user_id", "cli"), **row) for row in rows]


@click.command()
@click.option("--holdings", "holdings_file", type=click.Path(exists=True, dir_okay=False), required=True)
@click.option("--quotes", "quotes_file", type=click.Path(exists=True, dir_okay=False), default=None, help="YAML quotes fixture (default from config).")
@click.option("--base", "base_currency", default=None, help="Base currency (default from config).")
@click.option("--json", "as_json", is_flag=True, help="Print the full analysis as JSON.")
@click.pass_context
def analyze(ctx: click.Context, holdings_file, quotes_file, base_currency, as_json) -> None:
    """Analyze a portfolio: value, beta, sectors and diversification."""
    from tally.app import create_app
    from tally.core.cli.common import load_config
    from tally.core.exceptions import TallyError
    from tally.portfolio.providers import StaticQuoteProvider

    config = load_config(ctx)
    if base_currency:
        config.set("portfolio.base_currency", base_currency)
    fixtures = quotes_file or config.get("quotes.fixtures_file")
    if not fixtures:
        raise click.UsageError("No quotes fixture: pass --quotes or set quotes.fixtures_file")

    try:
        holdings = _load_holdings(holdings_file)
        app = create_app(config, provider=StaticQuoteProvider.from_file(fixtures))
        analysis = asyncio.run(app.analyzer.analyze(holdings))
    except (TallyError, TypeError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    if as_json:
        click.echo(json.dumps(analysis.to_dict(), indent=2, default=str))
        return

    base = app.analyzer.base_currency
    click.echo(f"Total value: {analysis.total_value_base:,.2f} {base}")
    click.echo(f"Daily change: {analysis.daily_change_base:+,.2f} {base} ({analysis.daily_change_percent:+.2f}%)")
    click.echo(f"Weighted beta: {analysis.weighted_beta:.2f} ({analysis.risk_level.value})")
    click.echo(f"Diversification: {analysis.diversification_score}/100")
    for sector in analysis.sector_allocation:
        click.echo(f"  {sector.sector:<24} {sector.percentage:6.2f}%")
    if analysis.failed_symbols:
        click.echo(f"Not priced: {', '.join(analysis.failed_symbols)}")
