#!/usr/bin/env python3
"""CLI commands for content store."""

import asyncio
import json

import click

from app.content_store.config import create_content_store
from app.content_store.store import LocalContentStore
from app.core.config import settings


def _local_store() -> LocalContentStore:
    store = create_content_store(settings)
    if not isinstance(store, LocalContentStore):
        raise click.ClickException(
            "Command needs the local backend, "
            f"STORAGE_BACKEND={settings.STORAGE_BACKEND}"
        )
    return store


@click.group()
def cli():
    """Content store management commands."""
    pass


@cli.command()
def status():
    """Show content store status."""
    stats = _local_store().get_statistics()

    click.echo("Content Store Status:")
    click.echo(f"  Total entries: {stats['total_content']}")
    click.echo(f"  Content size: {stats['content_bytes'] / 1024 / 1024:.2f} MB")
    click.echo(f"  Store size: {stats['store_size_bytes'] / 1024 / 1024:.2f} MB")
    if stats["capacity_bytes"] is not None:
        click.echo(f"  Capacity: {stats['capacity_bytes'] / 1024 / 1024:.2f} MB")


@cli.command()
@click.argument("address")
def inspect(address):
    """Inspect a specific content address."""
    store = _local_store()

    try:
        entry = store.get_entry(address)
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    if entry is None:
        click.echo(f"Content address {address} not found in store")
        return

    click.echo(f"Content Address: {entry.address}")
    click.echo(f"  Size: {entry.size_bytes} bytes")
    click.echo(f"  Path: {entry.content_path}")
    click.echo(f"  Stored at: {entry.created_at or 'Unknown'}")
    click.echo(f"  Metadata: {json.dumps(entry.metadata, indent=2)}")


@cli.command()
def ping():
    """Check whether the configured storage backend is reachable."""
    store = create_content_store(settings)

    async def _ping() -> bool:
        try:
            return await store.ping()
        finally:
            await store.close()

    reachable = asyncio.run(_ping())
    click.echo(f"{settings.STORAGE_BACKEND} storage reachable: {reachable}")
    if not reachable:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
