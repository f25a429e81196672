"""Tests for workpro.core.fingerprint: filter normalization and cache keys."""

import hashlib
from datetime import date

from workpro.core.fingerprint import (
    EMPTY_FINGERPRINT,
    FINGERPRINT_LENGTH,
    canonical_json,
    fingerprint,
    is_unconstrained,
    normalize_filters,
)


class TestNormalizeFilters:
    def test_drops_unconstrained_values(self):
        filters = {"status": "all", "assignee": "", "priority": None, "page": 1}
        assert normalize_filters(filters) == {"page": 1}

    def test_keeps_falsy_constraints(self):
        """False and 0 are real constraints, unlike None and ''."""
        assert normalize_filters({"archived": False, "page": 0}) == {"archived": False, "page": 0}

    def test_sorts_keys(self):
        assert list(normalize_filters({"b": 1, "a": 2, "c": 3})) == ["a", "b", "c"]

    def test_none_and_non_mapping(self):
        assert normalize_filters(None) == {}
        assert normalize_filters(["status", "open"]) == {}

    def test_is_unconstrained(self):
        assert is_unconstrained(None)
        assert is_unconstrained("")
        assert is_unconstrained("all")
        assert not is_unconstrained("open")
        assert not is_unconstrained(0)


class TestFingerprint:
    def test_order_independent(self):
        a = fingerprint({"status": "open", "page": 2, "priority": "high"})
        b = fingerprint({"priority": "high", "page": 2, "status": "open"})
        assert a == b

    def test_unconstrained_spellings_share_a_key(self):
        assert fingerprint({"status": "all"}) == fingerprint({})
        assert fingerprint({"status": None, "page": 1}) == fingerprint({"page": 1})
        assert fingerprint({"q": "", "page": 1}) == fingerprint({"page": 1})

    def test_different_queries_differ(self):
        assert fingerprint({"page": 1}) != fingerprint({"page": 2})
        assert fingerprint({"status": "open"}) != fingerprint({"status": "closed"})

    def test_value_type_is_significant(self):
        assert fingerprint({"page": 1}) != fingerprint({"page": "1"})

    def test_empty_is_well_defined(self):
        expected = hashlib.sha256(b"{}").hexdigest()[:FINGERPRINT_LENGTH]
        assert fingerprint({}) == expected
        assert fingerprint(None) == EMPTY_FINGERPRINT == expected

    def test_storage_safe(self):
        key = fingerprint({"q": "pump / valve #3", "site": "Ünïcode"})
        assert len(key) == FINGERPRINT_LENGTH
        assert all(c in "0123456789abcdef" for c in key)

    def test_custom_length(self):
        assert len(fingerprint({"page": 1}, length=12)) == 12

    def test_non_json_scalar_does_not_raise(self):
        key = fingerprint({"due_before": date(2024, 5, 1)})
        assert key == fingerprint({"due_before": "2024-05-01"})

    def test_deterministic(self):
        filters = {"status": "open", "page": 3}
        assert fingerprint(filters) == fingerprint(dict(filters))


class TestCanonicalJson:
    def test_compact_sorted(self):
        assert canonical_json({"status": "open", "page": 2}) == '{"page":2,"status":"open"}'

    def test_scope_wraps_filters(self):
        assert canonical_json({"page": 2, "q": ""}, "assets") == '["assets",{"page":2}]'


class TestScopedFingerprint:
    def test_scope_separates_equal_filters(self):
        assert fingerprint({"page": 1}, scope="assets") != fingerprint({"page": 1}, scope="work-orders")

    def test_filter_cannot_impersonate_scope(self):
        forged = {"@resource": "assets", "page": 1}
        assert fingerprint(forged, scope="work-orders") != fingerprint({"page": 1}, scope="assets")
        assert fingerprint(forged) != fingerprint({"page": 1}, scope="assets")

    def test_unconstrained_scope_names_are_kept(self):
        # A resource literally named "all" or "" is still a scope.
        unscoped = fingerprint({"page": 1})
        assert fingerprint({"page": 1}, scope="all") != unscoped
        assert fingerprint({"page": 1}, scope="") != unscoped
        assert fingerprint({"page": 1}, scope="all") != fingerprint({"page": 1}, scope="")

    def test_no_scope_is_the_plain_key(self):
        assert fingerprint({"page": 1}, scope=None) == fingerprint({"page": 1})
