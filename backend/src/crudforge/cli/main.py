"""crudforge CLI entry point."""

import os

import click

from crudforge.api.app import load_metadata, resolve_base_path, resolve_metadata_path
from crudforge.api.routes import Route, selected
from crudforge.log import configure_logging


@click.group()
def cli():
    """crudforge - metadata-driven CRUD API server."""
    pass


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option(
    "--port",
    default=None,
    type=int,
    help="Bind port (default: CRUDFORGE_PORT or 8000).",
)
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    help="Log level (default: CRUDFORGE_LOG_LEVEL or info).",
)
@click.option("--reload", is_flag=True, default=False, help="Reload on code changes.")
def serve(host: str, port: int | None, log_level: str | None, reload: bool):
    """Run the API server."""
    import uvicorn

    configure_logging(log_level)
    uvicorn.run(
        "crudforge.api:create_app",
        factory=True,
        host=host,
        port=port or int(os.environ.get("CRUDFORGE_PORT", "8000")),
        reload=reload,
        log_level=(log_level or os.environ.get("CRUDFORGE_LOG_LEVEL", "info")).lower(),
    )


@cli.command()
def routes():
    """Print the route table of every entity kind."""
    loader = load_metadata(resolve_metadata_path(resolve_base_path()))
    for name in loader.list_entities():
        entity = loader.get_entity(name)
        enabled = Route.from_names(entity.routes)
        click.echo(click.style(name, bold=True))
        for entry in selected(enabled):
            click.echo(f"  {entry.method:<7} {entity.prefix}{entry.path:<6} {entry.operation}")


# Register subcommand groups
from crudforge.cli.metadata_cmd import metadata  # noqa: E402

cli.add_command(metadata)
