"""Migrate CLI command: materialize every entity table."""

import asyncio
import logging

import click

from canteen.config import Settings
from canteen.errors import CanteenError
from canteen.metadata.loader import MetadataLoader
from canteen.persistence.config import create_adapter

logger = logging.getLogger(__name__)


async def run_migrations(settings: Settings) -> list[str]:
    """Create missing tables and indexes for every entity.

    Returns:
        Names of the entities materialized, in load order.
    """
    registry = MetadataLoader(settings.entities_path).load_all()
    adapter = create_adapter(settings.database)
    await adapter.connect()
    try:
        for schema in registry.values():
            await adapter.materialize(schema)
    finally:
        await adapter.close()
    logger.info("Migration complete: %d entities", len(registry))
    return list(registry)


@click.command()
def migrate():
    """Create tables and indexes for every entity that lacks them.

    Existing tables are left as they are; the command is safe to re-run.
    """
    try:
        settings = Settings.from_env()
        names = asyncio.run(run_migrations(settings))
    except (CanteenError, ValueError) as e:
        click.echo(click.style(f"Migration failed: {e}", fg="red"), err=True)
        raise SystemExit(1)

    click.echo(click.style(f"Materialized {len(names)} entities.", fg="green"))
    for name in names:
        click.echo(f"  ✓ {name}")
