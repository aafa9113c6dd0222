"""CLI commands for inspecting workflow instances and the unit catalog."""

import json
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from config.settings import get_settings
from regindex.errors import WorkflowNotFoundError
from regindex.models.enums import SourceCategory
from regindex.sources.units import UnitCatalog
from regindex.storage.object_store import build_object_storage
from regindex.storage.state import WorkflowStateStore
from regindex.workflows.db import create_session_factory
from regindex.workflows.runtime import WorkflowEngine

console = Console()
app = typer.Typer()


@app.command()
def status(
    instance_id: Annotated[
        str,
        typer.Argument(help="Coordinator or worker instance id"),
    ],
    show_output: Annotated[
        bool,
        typer.Option("--output", help="Print the full JSON output"),
    ] = False,
):
    """Show the status of a workflow instance and its children."""
    settings = get_settings()
    # Read-only view of the runtime tables; nothing is registered or resumed
    engine = WorkflowEngine(services=None, session_factory=create_session_factory(settings.runtime_db_url))

    try:
        snapshot = engine.get(instance_id)
        children = engine.children(instance_id)
    except WorkflowNotFoundError as e:
        console.print(f"[bold red]{e}[/bold red]")
        raise typer.Exit(1)
    finally:
        engine.shutdown(wait=False)

    console.print(f"[bold]{snapshot.instance_id}[/bold] ({snapshot.workflow_type})")
    console.print(f"Status: {snapshot.status.value}")
    if snapshot.error:
        console.print(f"Error: [red]{snapshot.error}[/red]")

    if not snapshot.status.is_terminal:
        state = WorkflowStateStore(build_object_storage(settings), snapshot.workflow_type, instance_id)
        progress = state.get("progress")
        if progress:
            console.print(f"Progress: {progress['phase']} {progress['completed']}/{progress['total']}")

    if snapshot.output:
        summary = snapshot.output.get("data", {}).get("summary")
        if summary:
            console.print(f"Summary: {summary}")

    if children:
        table = Table(title="Children")
        table.add_column("Instance")
        table.add_column("Status")
        table.add_column("Vectors", justify="right")
        for child in children:
            vectors = (child.output or {}).get("data", {}).get("vectorsUpserted", "")
            table.add_row(child.instance_id, child.status.value, str(vectors))
        console.print(table)

    if show_output and snapshot.output:
        console.print_json(json.dumps(snapshot.output))


@app.command()
def units(
    category: Annotated[
        SourceCategory,
        typer.Argument(help="Source category to list"),
    ],
):
    """List the configured units of CATEGORY."""
    catalog = UnitCatalog()

    table = Table(title=f"{category.value} units")
    table.add_column("Id")
    table.add_column("Name")
    table.add_column("Platform")
    table.add_column("Jurisdiction")
    table.add_column("Enabled")
    for unit in catalog.all_units(category):
        enabled = "yes" if unit.enabled else f"no ({unit.skip_reason or 'disabled'})"
        table.add_row(unit.id, unit.name, unit.platform.value, unit.jurisdiction, enabled)
    console.print(table)
