"""Settings for the WorkPro resilience core.

Everything tunable about the offline cache, query coordination, and the
notification queue lives in ``WorkProSettings``. Values come from
``WORKPRO_``-prefixed environment variables or a ``.env`` file.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup, not runtime
    - **Environment-driven:** Reads from env vars and .env files
    - **Sensible defaults:** Works out of the box for development

Examples:
    >>> from workpro.core.settings import WorkProSettings
    >>> settings = WorkProSettings(cache_max_entries=50)
    >>> settings.cache_max_entries
    50

Tags:
    settings, configuration, pydantic, environment, workpro

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WorkProSettings(BaseSettings):
    """Settings for a resilience session.

    Fields
    ──────
    log_level                : Structlog log level
    data_dir                 : Directory for the durable cache database
    storage_path             : Explicit SQLite file (defaults under data_dir)
    cache_prefix             : Reserved key prefix for cache records
    cache_max_entries        : Least-recently-written eviction bound
    cache_ttl_seconds        : Age after which cached entries are ignored
    stale_time_seconds       : How long a fetched result is served from memory
    keep_previous_data       : Offer previous page data while a new key loads
    notification_duration_ms : Default notification lifetime
    api_base_url             : Remote data source base URL
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKPRO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    debug: bool = False
    log_level: str = "INFO"

    # ── Storage ──────────────────────────────────────────────────
    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".workpro",
        description="Persistent data directory",
    )
    storage_path: Path | None = None
    cache_prefix: str = "work-order-cache:"
    cache_max_entries: int | None = Field(default=500, ge=1)
    cache_ttl_seconds: float | None = Field(default=None, gt=0)

    # ── Queries ──────────────────────────────────────────────────
    stale_time_seconds: float = Field(default=0.0, ge=0)
    keep_previous_data: bool = True

    # ── Notifications ────────────────────────────────────────────
    notification_duration_ms: int = Field(default=4000, gt=0)

    # ── Remote data source ───────────────────────────────────────
    api_base_url: str = "http://localhost:8000/api"
    api_timeout_seconds: float = Field(default=10.0, gt=0)
    api_token: str | None = None

    @property
    def resolved_storage_path(self) -> Path:
        """SQLite file backing the durable cache."""
        return self.storage_path or self.data_dir / "offline-cache.db"
