"""
Command line entry points.

Registered on the Flask app (``flask --app app:create_app refresh-stale``) and
exposed as the ``playdex`` console script. Batch commands exit 0 once the
batch completed, whatever happened to individual games; the summary table
shows the per-item outcome.
"""
import click
from flask import current_app
from flask.cli import FlaskGroup, with_appcontext

from constants import EXTERNAL_SOURCE_NAMES
from db import db
from exceptions import PlaydexException
from repositories.externalsources_repository import ExternalSourcesRepository


def get_services():
    return current_app.extensions["playdex"]


def print_table(rows, headers=("Status", "Count")):
    width = max(len(str(r[0])) for r in list(rows) + [headers]) + 2
    click.echo(f"{headers[0]:<{width}}{headers[1]}")
    click.echo("-" * (width + 8))
    for label, value in rows:
        click.echo(f"{label:<{width}}{value}")


def print_batch_summary(result, empty_message):
    if result.candidates == 0:
        click.echo(empty_message)
        return
    click.echo("Batch update complete!")
    print_table([
        ("Updated", result.updated),
        ("Skipped", result.skipped),
        ("Failed", result.failed),
        ("Remaining", result.remaining),
    ])
    if result.remaining:
        click.echo(f"Note: {result.remaining} game(s) remain. Run this command again to process more.")


def run_or_fail(func, *args, **kwargs):
    """Turn local validation and upstream errors into a clean exit code 1"""
    try:
        return func(*args, **kwargs)
    except PlaydexException as e:
        raise click.ClickException(e.message)


def parse_platforms(ctx, param, value):
    if not value:
        return None
    try:
        return [int(p) for p in value.split(",") if p.strip()]
    except ValueError:
        raise click.BadParameter("expected comma separated IGDB platform ids, e.g. 6,167,169,130")


@click.command("refresh-stale")
@click.option("--min-days", default=90, show_default=True, type=click.IntRange(min=1),
              help="Minimum days since last sync to be considered stale")
@click.option("--batch-size", default=50, show_default=True, type=click.IntRange(min=1),
              help="Number of games to update in this run")
@click.option("--force", is_flag=True, help="Update regardless of the stale threshold")
@with_appcontext
def refresh_stale_command(min_days, batch_size, force):
    """Update games that have not been synced in a long time."""
    click.echo(f"Updating stale games (not synced for {min_days}+ days)...")
    result = run_or_fail(get_services().scheduler.refresh_stale, min_days=min_days, batch_size=batch_size, force=force)
    print_batch_summary(result, "No stale games found.")


@click.command("refresh-popular")
@click.option("--limit", default=100, show_default=True, type=click.IntRange(min=1))
@click.option("--min-views", default=5, show_default=True, type=click.IntRange(min=1))
@click.option("--force", is_flag=True, help="Update regardless of the last sync")
@with_appcontext
def refresh_popular_command(limit, min_views, force):
    """Update the most viewed games."""
    click.echo(f"Updating popular games (at least {min_views} views)...")
    result = run_or_fail(get_services().scheduler.refresh_popular, limit=limit, min_views=min_views, force=force)
    print_batch_summary(result, "No popular games need updating.")


@click.command("refresh-recent")
@click.option("--days", default=60, show_default=True, type=click.IntRange(min=1),
              help="Release window in days")
@click.option("--limit", default=100, show_default=True, type=click.IntRange(min=1))
@click.option("--force", is_flag=True, help="Update regardless of the last sync")
@with_appcontext
def refresh_recent_command(days, limit, force):
    """Update games released in the last N days."""
    click.echo(f"Updating games released in the last {days} days...")
    result = run_or_fail(get_services().scheduler.refresh_recent, days=days, limit=limit, force=force)
    print_batch_summary(result, "No recently released games need updating.")


@click.command("sync-stats")
@click.option("--threshold", default=0, show_default=True, type=click.IntRange(min=0),
              help="Minimum update_priority score to sync")
@click.option("--limit", default=500, show_default=True, type=click.IntRange(min=1),
              help="Maximum number of games to process")
@click.option("--inline", is_flag=True, help="Run the chain in this process instead of on the worker")
@with_appcontext
def sync_stats_command(threshold, limit, inline):
    """Sync SteamSpy statistics for games linked to Steam."""
    stats = get_services().stats
    click.echo(f"Priority threshold: {threshold}")
    click.echo(f"Limit: {limit}")

    if inline:
        steps = stats.run_inline(threshold=threshold, limit=limit)
        if not steps:
            click.echo("No games eligible for stats sync.")
            return
        click.echo(f"Processed {steps} stats link(s).")
        return

    count = stats.start_chain(threshold=threshold, limit=limit)
    if not count:
        click.echo("No games eligible for stats sync.")
        return
    click.echo(f"Found {count} games eligible for sync.")
    click.echo('Jobs will process on the "low" queue.')


@click.command("fetch-game")
@click.option("--igdb-id", required=True, type=click.IntRange(min=1), help="IGDB id of the game")
@with_appcontext
def fetch_game_command(igdb_id):
    """Fetch one game from IGDB and store it."""
    click.echo(f"Fetching game with IGDB ID: {igdb_id}...")
    result = run_or_fail(get_services().enricher.enrich, igdb_id, force=True)
    status = "Created" if result.created else "Updated"
    click.echo(f"{status}: {result.game.name} (IGDB {result.game.igdb_id})")


@click.command("import-upcoming")
@click.option("--days", default=14, show_default=True, type=click.IntRange(min=1),
              help="Number of days ahead to fetch")
@click.option("--start-date", default=None, help="Start date (YYYY-MM-DD), defaults to today")
@click.option("--platforms", default=None, callback=parse_platforms,
              help="Comma separated IGDB platform ids (e.g. 6,167,169,130)")
@click.option("--limit", default=100, show_default=True, type=click.IntRange(min=1, max=500))
@with_appcontext
def import_upcoming_command(days, start_date, platforms, limit):
    """Fetch games releasing in a date window and store them."""
    result = run_or_fail(
        get_services().scheduler.import_upcoming,
        start_date=start_date,
        days=days,
        platform_ids=platforms,
        limit=limit,
    )
    if result.candidates == 0:
        click.echo("No games found.")
        return
    print_table([
        ("Updated", result.updated),
        ("Unchanged", result.skipped),
        ("Failed", result.failed),
    ])


@click.command("sync-sources")
@with_appcontext
def sync_sources_command():
    """Sync external game source definitions from IGDB."""
    created, updated = run_or_fail(get_services().enricher.sync_source_definitions)
    print_table([("Created", created), ("Updated", updated)])


@click.command("init-db")
@with_appcontext
def init_db_command():
    """Create missing tables and the built-in external source definitions."""
    db.create_all()
    for igdb_id, name in EXTERNAL_SOURCE_NAMES.items():
        ExternalSourcesRepository.get_or_create_definition(igdb_id, name)
    db.session.commit()
    click.echo("Database initialized.")


COMMANDS = [
    refresh_stale_command,
    refresh_popular_command,
    refresh_recent_command,
    sync_stats_command,
    fetch_game_command,
    import_upcoming_command,
    sync_sources_command,
    init_db_command,
]


def register_commands(app):
    for command in COMMANDS:
        app.cli.add_command(command)


def main():
    from app import create_app

    FlaskGroup(create_app=create_app)()
