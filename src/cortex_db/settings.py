"""
Centralized settings for cortex-db.

The adapter factory reads exactly two deployment inputs, the deployment mode
and the relational connection string, under the environment names the rest
of the platform already uses (``DEPLOYMENT_MODE``, ``DATABASE_URL``). Every
other knob is namespaced with ``CORTEX_``.

Usage::

    from cortex_db.settings import get_settings

    settings = get_settings()
    settings.database_url        # "postgresql://..." or None
    settings.deployment_mode     # "firebase" | "self-hosted" | None
"""

from __future__ import annotations

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CortexSettings(BaseSettings):
    """cortex-db configuration.

    All fields can be set through ``CORTEX_*`` environment variables or a
    ``.env`` file. ``deployment_mode`` and ``database_url`` also accept the
    un-prefixed platform names.
    """

    model_config = SettingsConfigDict(
        env_prefix="CORTEX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ── Backend selection ────────────────────────────────────────
    deployment_mode: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "deployment_mode",
            "CORTEX_DEPLOYMENT_MODE",
            "DEPLOYMENT_MODE",
            "NEXT_PUBLIC_DEPLOYMENT_MODE",
        ),
        description="'firebase' or 'self-hosted'",
    )
    database_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("database_url", "CORTEX_DATABASE_URL", "DATABASE_URL"),
        description="SQLAlchemy URL of the relational store",
    )

    # ── Relational ───────────────────────────────────────────────
    database_echo: bool = Field(default=False)
    database_pool_size: int = Field(default=5)
    database_max_overflow: int = Field(default=10)

    # ── Document store ───────────────────────────────────────────
    firestore_project: str | None = Field(default=None)
    firestore_database: str = Field(default="(default)")
    firestore_batch_limit: int = Field(default=500, ge=1, le=500)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console", description="'console' or 'json'")


_settings_cache: dict[str, CortexSettings] = {}


def get_settings() -> CortexSettings:
    """Return the process-wide settings, loading them on first use."""
    if "default" not in _settings_cache:
        _settings_cache["default"] = CortexSettings()
    return _settings_cache["default"]


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = [
    "CortexSettings",
    "get_settings",
    "clear_settings_cache",
]
