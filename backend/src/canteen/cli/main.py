"""Canteen CLI entry point."""

import click

from canteen.config import configure_logging


@click.group()
@click.option("--log-level", default="INFO", show_default=True, help="Root log level.")
def cli(log_level: str):
    """Canteen API: entity schemas, storage and server."""
    configure_logging(log_level)


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option("--port", default=8000, show_default=True, type=int, help="Bind port.")
@click.option("--reload", is_flag=True, default=False, help="Restart on code changes.")
def serve(host: str, port: int, reload: bool):
    """Run the API server with uvicorn."""
    import uvicorn

    uvicorn.run(
        "canteen.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


# Register subcommands
from canteen.cli.metadata_cmd import validate  # noqa: E402
from canteen.cli.migrate_cmd import migrate  # noqa: E402

cli.add_command(validate)
cli.add_command(migrate)
