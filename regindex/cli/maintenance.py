"""CLI commands for operating the service: state sweeps and the HTTP API."""

import logging
from datetime import timedelta
from typing import Annotated

import typer
from rich.console import Console

from config.settings import get_settings
from regindex.storage.object_store import build_object_storage
from regindex.storage.state import sweep_stale_state

console = Console()
app = typer.Typer()


@app.command()
def sweep(
    max_age_hours: Annotated[
        float | None,
        typer.Option("--max-age-hours", help="Delete state older than this (defaults to settings)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
):
    """Delete intermediate state left behind by crashed workflow instances."""
    if verbose:
        logging.basicConfig(level=logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)

    settings = get_settings()
    hours = max_age_hours if max_age_hours is not None else settings.regindex_stale_state_max_age_hours
    deleted = sweep_stale_state(build_object_storage(settings), timedelta(hours=hours))
    console.print(f"Deleted {deleted} state objects older than {hours:g}h")


@app.command()
def serve(
    host: Annotated[
        str | None,
        typer.Option("--host", help="Bind address (defaults to settings)"),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", help="Bind port (defaults to settings)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
):
    """Run the trigger/status HTTP API. Resumes unfinished workflows on startup."""
    import uvicorn

    from regindex.api.server import create_app

    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING)

    settings = get_settings()
    uvicorn.run(
        create_app(),
        host=host or settings.regindex_api_host,
        port=port or settings.regindex_api_port,
        log_level="info" if verbose else "warning",
    )
