"""regindex CLI entry point."""

import typer

from regindex.cli.ingest import ingest
from regindex.cli.maintenance import serve, sweep
from regindex.cli.status import status, units

app = typer.Typer(
    name="regindex",
    help="Regulatory corpus ingestion - fetch, chunk, embed and index federal, state, county and municipal codes.",
)

app.command(name="ingest")(ingest)
app.command(name="status")(status)
app.command(name="units")(units)
app.command(name="sweep")(sweep)
app.command(name="serve")(serve)


if __name__ == "__main__":
    app()
