"""CLI commands for inspecting and reconciling ingestion records."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import TypeVar

import click
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.db import create_engine_for_url, create_session_factory, init_models
from app.core.errors import NotFound
from app.ingestion.reconcile import find_stale_pending, mark_failed, status_counts

T = TypeVar("T")


def _run(func: Callable[[async_sessionmaker[AsyncSession]], Awaitable[T]]) -> T:
    async def _main() -> T:
        engine = create_engine_for_url(settings.DATABASE_URL, settings.MAX_CONNECTIONS)
        try:
            await init_models(engine)
            return await func(create_session_factory(engine))
        finally:
            await engine.dispose()

    return asyncio.run(_main())


@click.group()
def cli():
    """Ingestion record management commands."""
    pass


@cli.command()
@click.option(
    "--grace",
    default=None,
    type=int,
    help="Seconds a record may stay pending (default: RECONCILE_GRACE_SECONDS)",
)
@click.option("--limit", default=100, type=int, help="Maximum records to list")
def stale(grace, limit):
    """List pending records older than the grace period."""
    grace_seconds = settings.RECONCILE_GRACE_SECONDS if grace is None else grace
    records = _run(
        lambda factory: find_stale_pending(
            factory, timedelta(seconds=grace_seconds), limit=limit
        )
    )

    if not records:
        click.echo("No stale pending records")
        return

    click.echo(f"{len(records)} stale pending record(s):")
    for record in records:
        click.echo(
            f"  {record.id}  owner={record.owner_id}  "
            f"transfer={record.transfer_ref or '-'}  "
            f"accepted={record.accepted_at}  "
            f"settled={'yes' if record.settled_at else 'no'}  "
            f"error={record.last_error or '-'}"
        )


@cli.command()
@click.argument("record_id")
@click.option("--reason", required=True, help="Why the record is being failed")
def fail(record_id, reason):
    """Mark a pending record failed."""
    try:
        updated = _run(lambda factory: mark_failed(factory, record_id, reason))
    except NotFound as e:
        raise click.ClickException(e.message) from e

    if updated:
        click.echo(f"Record {record_id} marked failed")
    else:
        click.echo(f"Record {record_id} is not pending; left unchanged")


@cli.command()
def stats():
    """Show record counts per status."""
    counts = _run(status_counts)

    click.echo("Ingestion Records:")
    for status, total in counts.items():
        click.echo(f"  {status.capitalize()}: {total}")
    click.echo(f"  Total: {sum(counts.values())}")


if __name__ == "__main__":
    cli()
