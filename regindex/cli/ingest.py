"""CLI command for running a category batch in-process."""

import logging
import time
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from config.settings import get_settings
from regindex.models.enums import SourceCategory
from regindex.models.result import WorkflowResult
from regindex.workflows.coordinator import CoordinatorWorkflow
from regindex.workflows.factory import build_engine

console = Console()
app = typer.Typer()


@app.command()
def ingest(
    category: Annotated[
        SourceCategory,
        typer.Argument(help="Source category to process"),
    ],
    units: Annotated[
        list[str] | None,
        typer.Option("--unit", "-u", help="Restrict the run to these unit ids (repeatable)"),
    ] = None,
    poll_interval: Annotated[
        float,
        typer.Option("--poll-interval", help="Seconds between progress refreshes"),
    ] = 1.0,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
):
    """Fetch, chunk, embed and index every unit of CATEGORY, then report."""
    if verbose:
        logging.basicConfig(level=logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)

    settings = get_settings()
    engine = build_engine(settings)

    console.print("[bold]regindex ingestion[/bold]")
    console.print(f"Category: {category.value}")
    console.print(f"Units: {', '.join(units) if units else 'all enabled'}")
    console.print()

    try:
        instance_id = engine.create(
            CoordinatorWorkflow.workflow_type,
            {"category": category.value, "units": units or None},
        )
        console.print(f"Instance: {instance_id}")

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Starting...", total=None)
            while True:
                snapshot = engine.get(instance_id)
                if snapshot.status.is_terminal:
                    break
                children = engine.children(instance_id)
                done = sum(1 for c in children if c.status.is_terminal)
                progress.update(task, description=f"{done}/{len(children)} units finished")
                time.sleep(poll_interval)
            progress.update(task, completed=True)
    finally:
        engine.shutdown(wait=True)

    console.print()
    if snapshot.output is None:
        console.print(f"[bold red]Workflow errored:[/bold red] {snapshot.error}")
        raise typer.Exit(1)

    outcome = WorkflowResult.from_dict(snapshot.output)
    data = outcome.data
    table = Table(title=f"{category.value} units")
    table.add_column("Unit")
    table.add_column("Result")
    table.add_column("Records", justify="right")
    table.add_column("Chunks", justify="right")
    table.add_column("Vectors", justify="right")
    table.add_column("Error")
    for unit_id, result in data.get("results", {}).items():
        unit_result = WorkflowResult.from_dict(result)
        table.add_row(
            unit_id,
            "[green]ok[/green]" if unit_result.success else "[red]failed[/red]",
            str(unit_result.data.get("recordsProcessed", 0)),
            str(unit_result.data.get("chunksCreated", 0)),
            str(unit_result.data.get("vectorsUpserted", 0)),
            unit_result.error or "",
        )
    console.print(table)

    colour = "green" if outcome.success else "yellow"
    console.print(f"[bold {colour}]{data.get('summary', '')}[/bold {colour}]")
    console.print(f"  Total chunks: {data.get('totalChunks', 0)}")
    console.print(f"  Total vectors: {data.get('totalVectors', 0)}")
    console.print(f"  Duration: {outcome.duration_ms / 1000:.1f}s")
    if not outcome.success:
        raise typer.Exit(2)
