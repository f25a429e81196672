"""
Root Typer application for the workpro CLI.

Commands run against the same resilience core the application uses, so a
``fetch`` here goes through the coordinator, the durable filter cache and
the offline fallback exactly like a screen would.
"""

from __future__ import annotations

import asyncio

import typer
from typer import Typer

from workpro import __version__
from workpro.cli.cache import app as cache_app
from workpro.cli.utils import console, err_console, parse_filters, print_json
from workpro.core.coordinator import QueryResult, QueryStatus
from workpro.core.fingerprint import fingerprint as compute_fingerprint
from workpro.core.fingerprint import normalize_filters
from workpro.core.logging import configure_logging
from workpro.core.notifications import NotificationRecord
from workpro.core.session import ResilienceSession
from workpro.core.settings import WorkProSettings

app = Typer(
    name="workpro",
    help="workpro: offline-resilient reads for the maintenance API.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("workpro-resilience")
        except PackageNotFoundError:
            v = __version__
        typer.echo(f"workpro {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """workpro CLI: fingerprint filters, fetch through the cache, manage the cache."""
    settings = WorkProSettings()
    configure_logging(level="DEBUG" if settings.debug else settings.log_level)


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("fingerprint")
def fingerprint_cmd(
    filters: list[str] = typer.Argument(None, help="Filters as KEY=VALUE"),
    resource: str | None = typer.Option(  # noqa: UP007
        None, "--resource", "-r", help="Scope the key to a resource, as the filter cache does"
    ),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Print the cache key of a filter set."""
    parsed = parse_filters(filters)
    key = compute_fingerprint(parsed, scope=resource)
    if json_out:
        print_json({"fingerprint": key, "resource": resource, "filters": normalize_filters(parsed)})
        return
    typer.echo(key)


async def _fetch(
    resource: str, filters: dict, force: bool
) -> tuple[QueryResult, tuple[NotificationRecord, ...]]:
    async with ResilienceSession(WorkProSettings()) as session:
        result = await session.coordinator.read(resource, filters, force=force)
        return result, session.notifications.records


@app.command("fetch")
def fetch(
    resource: str = typer.Argument(..., help="Resource path (e.g. work-orders)"),
    filters: list[str] = typer.Argument(None, help="Filters as KEY=VALUE"),
    force: bool = typer.Option(False, "--force", help="Ignore in-memory freshness"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Read a resource through the coordinator, falling back to the cache offline."""
    result, notices = asyncio.run(_fetch(resource, parse_filters(filters), force))

    if json_out:
        print_json(
            {
                "status": result.status.value,
                "source": result.source.value,
                "is_stale": result.is_stale,
                "reason": result.reason,
                "cached_at": result.cached_at.isoformat() if result.cached_at else None,
                "data": result.data,
            }
        )
    else:
        for notice in notices:
            err_console.print(f"[bold]{notice.title}[/bold] {notice.description or ''}".rstrip())
        style = "green" if result.ok and not result.is_stale else "yellow" if result.ok else "red"
        console.print(
            f"[{style}]{result.status.value}[/{style}] source={result.source.value} "
            f"stale={str(result.is_stale).lower()}"
        )
        if result.data is not None:
            print_json(result.data)

    if result.status is QueryStatus.ERROR:
        raise typer.Exit(code=1)


# ── Sub-command registration ─────────────────────────────────────────────

app.add_typer(cache_app, name="cache", help="Inspect and purge the durable filter cache.")
