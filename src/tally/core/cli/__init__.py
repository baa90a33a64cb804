"""Tally CLI: loan calculations, net-worth backfill and portfolio analysis."""

import click

from tally import __version__
from tally.core.utils.logging import setup_logging


@click.group()
@click.version_option(version=__version__, package_name="tally")
@click.option("--config", "config_file", type=click.Path(dir_okay=False), default=None, help="YAML or JSON config file.")
@click.option("-v", "--verbose", count=True, help="More logging (-v info, -vv debug).")
@click.pass_context
def main(ctx: click.Context, config_file: str | None, verbose: int) -> None:
    """Tally: personal balance sheet and net-worth history."""
    setup_logging(level={0: "WARNING", 1: "INFO"}.get(verbose, "DEBUG"))
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file


# Register subcommands
from .analyze_cmd import analyze
from .backfill_cmd import backfill
from .loan_cmd import balance, schedule

main.add_command(balance)
main.add_command(schedule)
main.add_command(backfill)
main.add_command(analyze)
