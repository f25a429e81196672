"""Tests for workpro.core.settings.

Covers:
- WorkProSettings instantiation with defaults
- Environment variable override
- Field validation
- Storage path resolution
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from workpro.core.settings import WorkProSettings


class TestDefaults:
    def test_cache_defaults(self):
        s = WorkProSettings()
        assert s.cache_prefix == "work-order-cache:"
        assert s.cache_max_entries == 500
        assert s.cache_ttl_seconds is None

    def test_query_defaults(self):
        s = WorkProSettings()
        assert s.stale_time_seconds == 0.0
        assert s.keep_previous_data is True

    def test_notification_default(self):
        assert WorkProSettings().notification_duration_ms == 4000

    def test_default_data_dir_is_home_workpro(self):
        s = WorkProSettings()
        assert s.data_dir == Path.home() / ".workpro"
        assert s.resolved_storage_path == Path.home() / ".workpro" / "offline-cache.db"


class TestEnvOverride:
    def test_env_prefix(self, monkeypatch, tmp_path):
        monkeypatch.setenv("WORKPRO_CACHE_MAX_ENTRIES", "10")
        monkeypatch.setenv("WORKPRO_STALE_TIME_SECONDS", "30")
        monkeypatch.setenv("WORKPRO_STORAGE_PATH", str(tmp_path / "c.db"))
        monkeypatch.setenv("WORKPRO_API_BASE_URL", "https://cmms.example.com/api")

        s = WorkProSettings()
        assert s.cache_max_entries == 10
        assert s.stale_time_seconds == 30.0
        assert s.resolved_storage_path == tmp_path / "c.db"
        assert s.api_base_url == "https://cmms.example.com/api"

    def test_unrelated_env_is_ignored(self, monkeypatch):
        monkeypatch.setenv("WORKPRO_NOT_A_FIELD", "x")
        WorkProSettings()


class TestValidation:
    @pytest.mark.parametrize(
        "field,value",
        [
            ("cache_max_entries", 0),
            ("cache_ttl_seconds", 0),
            ("stale_time_seconds", -1),
            ("notification_duration_ms", 0),
            ("api_timeout_seconds", 0),
        ],
    )
    def test_rejects_out_of_range(self, field, value):
        with pytest.raises(ValidationError):
            WorkProSettings(**{field: value})

    def test_unbounded_cache_allowed(self):
        assert WorkProSettings(cache_max_entries=None).cache_max_entries is None
