"""SQLAlchemy engine and session factory.

This module provides:

* ``create_cortex_engine``    -- Create a SA engine from a URL.
* ``CortexSession``           -- Session with ``expire_on_commit=False``.
* ``cortex_session_factory``  -- ``sessionmaker`` producing ``CortexSession``.
"""

from __future__ import annotations

import datetime
import json
from typing import Any

from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _json_dumps(value: Any) -> str:
    """JSON column serializer; datetimes nested in documents become ISO strings."""
    return json.dumps(value, default=_json_default)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def create_cortex_engine(
    url: str = "sqlite:///cortex.db",
    *,
    echo: bool = False,
    pool_size: int | None = None,
    max_overflow: int | None = None,
    pool_timeout: int | None = None,
    **kwargs: Any,
) -> Engine:
    """Create a SQLAlchemy engine with sane defaults.

    Parameters
    ----------
    url:
        Database URL (``sqlite:///…``, ``postgresql://…``, etc.)
    echo:
        If ``True``, log all SQL.
    pool_size, max_overflow, pool_timeout:
        Connection pool parameters (ignored for SQLite).
    **kwargs:
        Extra arguments forwarded to ``sqlalchemy.create_engine``.
    """
    kwargs.setdefault("json_serializer", _json_dumps)

    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        # One shared connection, otherwise every checkout sees a fresh empty database
        if _is_memory_sqlite(url):
            kwargs.setdefault("poolclass", StaticPool)

        engine = _sa_create_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
            cursor = dbapi_connection.cursor()
            if not _is_memory_sqlite(url):
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    pool_kwargs: dict[str, Any] = {}
    if pool_size is not None:
        pool_kwargs["pool_size"] = pool_size
    if max_overflow is not None:
        pool_kwargs["max_overflow"] = max_overflow
    if pool_timeout is not None:
        pool_kwargs["pool_timeout"] = pool_timeout

    return _sa_create_engine(url, echo=echo, pool_pre_ping=True, **pool_kwargs, **kwargs)


class CortexSession(Session):
    """Pre-configured session with ``expire_on_commit=False``.

    Records are converted to dicts after commit; expiring them would
    trigger a reload per attribute access.
    """

    def __init__(self, bind: Engine | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("expire_on_commit", False)
        super().__init__(bind=bind, **kwargs)


def cortex_session_factory(engine: Engine) -> sessionmaker[CortexSession]:
    """Return a ``sessionmaker`` bound to *engine* that produces ``CortexSession`` instances."""
    return sessionmaker(bind=engine, class_=CortexSession, expire_on_commit=False)
