"""Adapter factory: picks and memoizes the process-wide database adapter.

Manifesto:
    Callers should never decide which back-end they talk to.  The factory
    reads the deployment configuration once, builds the matching adapter
    and hands the same instance to everyone until it is told otherwise.

Selection precedence (first match wins):
    1. programmatic override (``set_mode()`` / ``set_adapter()``)
    2. deployment-mode setting (``DEPLOYMENT_MODE``,
       ``NEXT_PUBLIC_DEPLOYMENT_MODE``, ``CORTEX_DEPLOYMENT_MODE``)
    3. a non-empty relational connection string (``DATABASE_URL``)
    4. ``firebase``

Usage:
    from cortex_db.adapters.factory import get_database

    db = get_database()
    db.find_one("povs", pov_id)
"""

from __future__ import annotations

import threading
from enum import Enum

from cortex_db.adapters.base import DatabaseAdapter
from cortex_db.errors import ConfigError
from cortex_db.logging import get_logger
from cortex_db.settings import clear_settings_cache, get_settings

logger = get_logger(__name__)


class DatabaseMode(str, Enum):
    """Deployment mode, one per back-end family."""

    FIREBASE = "firebase"          # document store
    SELF_HOSTED = "self-hosted"    # relational store


def _parse_mode(value: DatabaseMode | str) -> DatabaseMode:
    raw = value.value if isinstance(value, DatabaseMode) else str(value)
    try:
        return DatabaseMode(raw.strip().lower())
    except ValueError:
        raise ConfigError(
            f"Unknown deployment mode: {value!r} (expected 'firebase' or 'self-hosted')"
        ) from None


class AdapterFactory:
    """
    Process-wide adapter provider.

    Lazy, double-checked initialization behind a lock; all state is held on
    the class so every caller shares one adapter.
    """

    _lock = threading.Lock()
    _instance: DatabaseAdapter | None = None
    _override_mode: DatabaseMode | None = None

    @classmethod
    def resolve_mode(cls) -> DatabaseMode:
        """Mode the next ``get_adapter()`` would build."""
        if cls._override_mode is not None:
            return cls._override_mode
        settings = get_settings()
        if settings.deployment_mode:
            return _parse_mode(settings.deployment_mode)
        if settings.database_url:
            return DatabaseMode.SELF_HOSTED
        return DatabaseMode.FIREBASE

    @classmethod
    def get_mode(cls) -> DatabaseMode:
        return cls.resolve_mode()

    @classmethod
    def _build(cls, mode: DatabaseMode) -> DatabaseAdapter:
        match mode:
            case DatabaseMode.SELF_HOSTED:
                from cortex_db.adapters.relational import RelationalAdapter

                return RelationalAdapter()
            case DatabaseMode.FIREBASE:
                from cortex_db.adapters.document import DocumentStoreAdapter

                return DocumentStoreAdapter()
        raise ConfigError(f"No adapter for mode {mode!r}")

    @classmethod
    def get_adapter(cls) -> DatabaseAdapter:
        """Return the memoized adapter, building it on first use."""
        instance = cls._instance
        if instance is not None:
            return instance
        with cls._lock:
            if cls._instance is None:
                mode = cls.resolve_mode()
                cls._instance = cls._build(mode)
                logger.info(
                    "database_adapter_initialized",
                    mode=mode.value,
                    adapter=type(cls._instance).__name__,
                )
            return cls._instance

    @classmethod
    def set_mode(cls, mode: DatabaseMode | str) -> None:
        """Force a mode; the memoized adapter is discarded."""
        with cls._lock:
            cls._override_mode = _parse_mode(mode)
            cls._instance = None
        logger.info("database_mode_overridden", mode=cls._override_mode.value)

    @classmethod
    def set_adapter(cls, adapter: DatabaseAdapter) -> None:
        """Install a ready-made adapter (tests, embedding applications)."""
        with cls._lock:
            cls._instance = adapter
        logger.info("database_adapter_injected", adapter=type(adapter).__name__)

    @classmethod
    def reset(cls) -> None:
        """Drop the memoized adapter, the override and the cached settings."""
        with cls._lock:
            cls._instance = None
            cls._override_mode = None
        clear_settings_cache()

    @classmethod
    def connect(cls) -> DatabaseAdapter:
        adapter = cls.get_adapter()
        adapter.connect()
        return adapter

    @classmethod
    def disconnect(cls) -> None:
        """Disconnect the memoized adapter, if one was built."""
        if cls._instance is not None:
            cls._instance.disconnect()


def get_database() -> DatabaseAdapter:
    """Shortcut for ``AdapterFactory.get_adapter()``."""
    return AdapterFactory.get_adapter()


__all__ = [
    "DatabaseMode",
    "AdapterFactory",
    "get_database",
]
