"""
Deterministic fingerprints for query filter sets.

A fingerprint is the cache key of a filter/query descriptor. Two filter
sets that mean the same query must produce the same fingerprint no matter
how they were built, so the codec canonicalizes before hashing.

Manifesto:
    - **Pure:** No side effects, no clock, no randomness
    - **Total:** Never raises, the empty filter set has a well-defined key
    - **Stable:** Key insertion order and "no constraint" spellings
      (``None``, ``""``, ``"all"``) do not change the key
    - **One-way:** The key is only ever compared, never decoded

Architecture:
    ::

        {"status": "all", "page": 2, "q": None}
                │ normalize_filters()   drop None / "" / "all", sort keys
                ▼
        {"page": 2}
                │ canonical JSON        sort_keys, compact separators
                ▼
        '{"page":2}'
                │ SHA-256, truncated
                ▼
        'c3a5…'  (32 hex chars)

Examples:
    >>> fingerprint({"page": 1, "status": None}) == fingerprint({"page": 1})
    True
    >>> fingerprint({"status": "all"}) == fingerprint({})
    True
    >>> fingerprint({"a": 1, "b": 2}) == fingerprint({"b": 2, "a": 1})
    True

Tags:
    hashing, fingerprint, cache-key, canonicalization, workpro

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import Any

FilterSet = Mapping[str, Any]

# Values that mean "no constraint" and never reach the key or the wire.
ALL_SENTINEL = "all"
FINGERPRINT_LENGTH = 32


def is_unconstrained(value: Any) -> bool:
    """True for ``None``, the empty string, and the ``"all"`` sentinel."""
    if value is None:
        return True
    return isinstance(value, str) and value in ("", ALL_SENTINEL)


def normalize_filters(filters: FilterSet | None) -> dict[str, Any]:
    """
    Canonical form of a filter set.

    Keys are stringified and sorted; entries whose value is unconstrained
    are dropped. The result is also what gets sent as query parameters.

    Examples:
        >>> normalize_filters({"status": "open", "assignee": "", "page": 1})
        {'page': 1, 'status': 'open'}
        >>> normalize_filters(None)
        {}
    """
    if not filters or not isinstance(filters, Mapping):
        return {}

    return {
        str(key): filters[key]
        for key in sorted(filters, key=str)
        if not is_unconstrained(filters[key])
    }


def canonical_json(filters: FilterSet | None, scope: str | None = None) -> str:
    """Serialize the normalized filters; non-JSON scalars fall back to ``str``.

    A ``scope`` wraps the filters as ``[scope, filters]``. An array never
    serializes like an object, so scoped and unscoped keys cannot meet,
    and no filter name can stand in for the scope.
    """
    normalized = normalize_filters(filters)
    return json.dumps(
        normalized if scope is None else [scope, normalized],
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
        default=str,
    )


def fingerprint(
    filters: FilterSet | None,
    *,
    scope: str | None = None,
    length: int = FINGERPRINT_LENGTH,
) -> str:
    """
    Compute the storage-safe key for a filter set.

    Args:
        filters: Mapping of filter name to scalar value (may be None)
        scope: Optional namespace, e.g. the resource the filters apply to
        length: Hex digest length (default 32 = 128 bits)

    Returns:
        Lowercase hex string of ``length`` characters
    """
    content = canonical_json(filters, scope)
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:length]


EMPTY_FINGERPRINT = fingerprint({})


__all__ = [
    "ALL_SENTINEL",
    "EMPTY_FINGERPRINT",
    "FilterSet",
    "canonical_json",
    "fingerprint",
    "is_unconstrained",
    "normalize_filters",
]
