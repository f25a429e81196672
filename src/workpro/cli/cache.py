"""
CLI: ``workpro cache`` -- inspect and purge the durable filter cache.
"""

from __future__ import annotations

import typer
from rich.table import Table

from workpro.cli.utils import console, describe_payload, open_cache, parse_filters, print_json
from workpro.core.settings import WorkProSettings

app = typer.Typer(no_args_is_help=True)


@app.command("list")
def list_entries(
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List cached result sets, newest first."""
    cache, medium = open_cache(WorkProSettings())
    try:
        entries = cache.entries()
    finally:
        if medium is not None:
            medium.close()

    if json_out:
        print_json(
            [
                {
                    "fingerprint": e.fingerprint,
                    "cached_at": e.cached_at.isoformat() if e.cached_at else None,
                    "size": describe_payload(e.payload),
                }
                for e in entries
            ]
        )
        return

    if not entries:
        console.print("[dim]Cache is empty.[/dim]")
        return

    table = Table(title="Cached result sets")
    table.add_column("Fingerprint", style="cyan")
    table.add_column("Cached at")
    table.add_column("Size", justify="right")
    for entry in entries:
        cached_at = entry.cached_at.isoformat(timespec="seconds") if entry.cached_at else "-"
        table.add_row(entry.fingerprint, cached_at, describe_payload(entry.payload))
    console.print(table)


@app.command("show")
def show(
    resource: str = typer.Argument(..., help="Resource the data was read from (e.g. work-orders)"),
    filters: list[str] = typer.Argument(None, help="Filters as KEY=VALUE"),
) -> None:
    """Print the cached payload for a resource and filter set."""
    cache, medium = open_cache(WorkProSettings())
    try:
        entry = cache.read(parse_filters(filters), scope=resource)
    finally:
        if medium is not None:
            medium.close()

    if entry is None:
        console.print("[yellow]No cached data for these filters.[/yellow]")
        raise typer.Exit(code=1)

    print_json(
        {
            "fingerprint": entry.fingerprint,
            "cached_at": entry.cached_at.isoformat() if entry.cached_at else None,
            "data": entry.payload,
        }
    )


@app.command("purge")
def purge(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Remove every cached result set."""
    if not yes:
        typer.confirm("Remove all cached result sets?", abort=True)

    cache, medium = open_cache(WorkProSettings())
    try:
        removed = cache.purge()
    finally:
        if medium is not None:
            medium.close()
    console.print(f"[green]Removed[/green] {removed} cached result sets")
