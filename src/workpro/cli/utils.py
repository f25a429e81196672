"""
CLI utility helpers -- filter parsing, cache access and output formatting.
"""

from __future__ import annotations

import json
from typing import Any

import typer
from rich.console import Console

from workpro.core.cache import FilterCache
from workpro.core.settings import WorkProSettings
from workpro.core.storage import LocalRecordStore, SqliteMedium, open_sqlite_medium

console = Console()
err_console = Console(stderr=True)


def parse_filters(pairs: list[str] | None) -> dict[str, Any]:
    """Turn ``KEY=VALUE`` arguments into a filter set.

    Values that parse as JSON scalars keep their type (``page=2`` → ``2``,
    ``archived=false`` → ``False``); everything else stays a string.
    """
    filters: dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got {pair!r}")
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            value = raw
        if isinstance(value, (dict, list)):
            value = raw
        filters[key] = value
    return filters


def open_cache(settings: WorkProSettings) -> tuple[FilterCache, SqliteMedium | None]:
    """Open the durable filter cache described by ``settings``.

    The caller closes the returned medium (``None`` when storage is
    unavailable; the cache then behaves as empty).
    """
    medium = open_sqlite_medium(settings.resolved_storage_path)
    store = LocalRecordStore(medium, prefix=settings.cache_prefix)
    cache = FilterCache(
        store,
        max_entries=settings.cache_max_entries,
        ttl_seconds=settings.cache_ttl_seconds,
    )
    return cache, medium


def describe_payload(payload: Any) -> str:
    """Short size description of a cached payload."""
    if isinstance(payload, list):
        return f"{len(payload)} items"
    if isinstance(payload, dict):
        return f"{len(payload)} keys"
    return type(payload).__name__


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))
