"""tally backfill: fill net-worth history in a JSON store file."""

from __future__ import annotations

import asyncio

import click


@click.command()
@click.option("--store", "store_file", type=click.Path(dir_okay=False), default=None, help="JSON store file (default from config).")
@click.option("-u", "--user", "user_ids", multiple=True, required=True, help="User to backfill; repeatable.")
@click.option("--flatten", is_flag=True, help="Overwrite every past month with today's net worth.")
@click.option("--dedupe", is_flag=True, help="Remove duplicate month records first.")
@click.pass_context
def backfill(ctx: click.Context, store_file, user_ids, flatten, dedupe) -> None:
    """Backfill monthly net-worth history."""
    from tally.core.cli.common import load_config
    from tally.core.exceptions import TallyError

    config = load_config(ctx)
    path = store_file or config.get("paths.store_file")
    try:
        written = asyncio.run(_backfill(config, path, list(user_ids), flatten, dedupe))
    except TallyError as e:
        raise click.ClickException(str(e)) from e

    for uid in user_ids:
        if uid in written:
            click.echo(f"{uid}: {written[uid]} record(s) written")
        else:
            click.echo(f"{uid}: failed (see log)")


async def _backfill(config, path, user_ids: list[str], flatten: bool, dedupe: bool) -> dict[str, int]:
    from tally.app import create_app
    from tally.core.storage import open_store

    app = create_app(config, store=await open_store(path))
    if dedupe:
        removed = await app.backfill.remove_duplicate_snapshots()
        click.echo(f"Removed {removed} duplicate record(s)")
    if flatten:
        return {uid: await app.backfill.flatten_history(uid) for uid in user_ids}
    return await app.backfill.run_backfill_all(user_ids)
