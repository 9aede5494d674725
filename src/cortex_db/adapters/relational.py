"""Relational database adapter (SQLAlchemy ORM).

Maps collection names to the tables in :mod:`cortex_db.orm.tables` and
translates the backend-neutral query model into SQLAlchemy ``select``
statements.  Works against PostgreSQL in production and SQLite for
development and tests.

Storage model:
    Each table carries typed columns for system and reference fields and an
    ``attributes`` JSON column for everything else.  A record read back is
    ``{**attributes, **columns}``.  A typed column set to ``None`` by the
    caller is also recorded as ``None`` in ``attributes`` so the key
    survives the round trip; columns never written are left out.

Batch semantics:
    - ``create_many`` commits row by row and raises
      :class:`~cortex_db.errors.PartialBatchError` on the first failing row,
      carrying the rows already committed.
    - ``update_many`` is all-or-nothing.
    - ``delete_many`` is a single ``DELETE ... WHERE id IN (...)``.
"""

from __future__ import annotations

import copy
import datetime
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from sqlalchemy import cast, delete, func, inspect, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from cortex_db.adapters.base import DatabaseAdapter, DatabaseTransaction, Record, strip_immutable
from cortex_db.errors import (
    DatabaseConnectionError,
    MissingConfigError,
    PartialBatchError,
    RecordNotFoundError,
    UnknownCollectionError,
    UnsupportedOperationError,
)
from cortex_db.logging import get_logger
from cortex_db.orm import CortexBase, cortex_session_factory, create_cortex_engine
from cortex_db.query import ComparisonOp, QueryFilter, QueryOptions
from cortex_db.settings import get_settings
from cortex_db.timestamps import ensure_utc, generate_id, stamp

logger = get_logger(__name__)

T = TypeVar("T")

#: Collection name -> table name.  Names not listed pass through unchanged.
COLLECTION_TABLES: dict[str, str] = {
    "projects": "projects",
    "povs": "povs",
    "trrs": "trrs",
    "scenarios": "scenarios",
    "relationshipLogs": "relationship_logs",
}


def table_for(collection: str) -> str:
    """Table name backing ``collection``."""
    return COLLECTION_TABLES.get(collection, collection)


def _model_for(collection: str) -> type[CortexBase]:
    table = table_for(collection)
    for mapper in CortexBase.registry.mappers:
        if mapper.local_table.name == table:
            return mapper.class_
    raise UnknownCollectionError(collection, table)


def _column_keys(model: type[CortexBase]) -> list[str]:
    return [attr.key for attr in inspect(model).column_attrs if attr.key != "attributes"]


def _to_record(model: type[CortexBase], row: Any) -> Record:
    # Explicitly nulled columns are remembered as ``None`` in ``attributes``
    record: Record = dict(row.attributes or {})
    for key in _column_keys(model):
        value = getattr(row, key)
        if value is None:
            continue
        if isinstance(value, datetime.datetime):
            value = ensure_utc(value)
        record[key] = value
    return copy.deepcopy(record)


def _split(model: type[CortexBase], data: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Partition caller fields into typed columns and ``attributes``."""
    keys = set(_column_keys(model))
    columns: dict[str, Any] = {}
    attributes: dict[str, Any] = {}
    for key, value in data.items():
        if key in keys:
            columns[key] = value
            if value is None:
                attributes[key] = None
        else:
            attributes[key] = value
    return columns, attributes


def _new_row(model: type[CortexBase], data: dict[str, Any]) -> Any:
    payload = copy.deepcopy(dict(data))
    record_id = payload.pop("id", None) or generate_id()
    payload.pop("createdAt", None)
    payload.pop("updatedAt", None)
    columns, attributes = _split(model, payload)
    now = stamp()
    return model(id=record_id, createdAt=now, updatedAt=now, attributes=attributes, **columns)


def _apply_patch(model: type[CortexBase], row: Any, data: dict[str, Any]) -> None:
    patch = copy.deepcopy(strip_immutable(data))
    patch.pop("updatedAt", None)
    columns, attributes = _split(model, patch)
    for key, value in columns.items():
        setattr(row, key, value)
    filled = {key for key, value in columns.items() if value is not None}
    merged = {**(row.attributes or {}), **attributes}
    # New dict so the JSON column is flagged dirty
    row.attributes = {k: v for k, v in merged.items() if k not in filled}
    row.updatedAt = stamp()


class _QueryBuilder:
    """Translates :class:`QueryOptions` into SQLAlchemy clauses for one model.

    A field is either a typed column, a key of ``attributes`` or a dotted
    path (``testPlan.scenarios``) whose first segment is one of those two
    and whose remaining segments address nested JSON.
    """

    def __init__(self, model: type[CortexBase], dialect: str):
        self.model = model
        self.dialect = dialect
        self._columns = set(_column_keys(model))

    def resolve(self, field: str) -> tuple[Any, list[str]]:
        """JSON-or-column base expression and the JSON path below it."""
        if field in self._columns:
            return getattr(self.model, field), []
        head, *rest = field.split(".")
        if head in self._columns:
            return getattr(self.model, head), rest
        return self.model.attributes, [head, *rest]

    @staticmethod
    def _element(base: Any, path: list[str]) -> Any:
        return base[path[0]] if len(path) == 1 else base[tuple(path)]

    @staticmethod
    def _json_path(path: list[str]) -> str:
        return "$" + "".join(f'."{part}"' for part in path)

    def field_expr(self, field: str, sample: Any = None) -> Any:
        """Comparable expression for ``field``, typed after ``sample`` when extracted from JSON."""
        base, path = self.resolve(field)
        if not path:
            return base
        element = self._element(base, path)
        if isinstance(sample, bool):
            return element.as_boolean()
        if isinstance(sample, int):
            return element.as_integer()
        if isinstance(sample, float):
            return element.as_float()
        return element.as_string()

    def order_expr(self, field: str) -> Any:
        base, path = self.resolve(field)
        if not path:
            return base
        # Native JSON values so numbers sort numerically
        if self.dialect == "sqlite":
            return func.json_extract(base, self._json_path(path))
        if self.dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import JSONB

            return self._element(cast(base, JSONB), path)
        return self._element(base, path).as_string()

    def _array_contains(self, field: str, value: Any) -> Any:
        base, path = self.resolve(field)
        if self.dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import JSONB

            source = cast(base, JSONB)
            if path:
                source = self._element(source, path)
            return source.contains([value])
        if self.dialect == "sqlite":
            each = func.json_each(base, self._json_path(path)) if path else func.json_each(base)
            elements = each.table_valued("value")
            return select(1).select_from(elements).where(elements.c.value == value).exists()
        raise UnsupportedOperationError(
            f"array-contains is not supported on dialect {self.dialect!r}"
        ).with_context(operation="find_many", backend="relational")

    def condition(self, query_filter: QueryFilter) -> Any:
        op = query_filter.operator
        value = query_filter.value
        if op is ComparisonOp.ARRAY_CONTAINS:
            return self._array_contains(query_filter.field, value)

        _, path = self.resolve(query_filter.field)
        if op is ComparisonOp.IN:
            values = [_json_scalar(v) for v in value] if path else list(value)
            expr = self.field_expr(query_filter.field, values[0] if values else None)
            return expr.in_(values)

        if path:
            value = _json_scalar(value)
        expr = self.field_expr(query_filter.field, value)

        match op:
            case ComparisonOp.EQ:
                return expr.is_(None) if value is None else expr == value
            case ComparisonOp.NE:
                return expr.is_not(None) if value is None else expr != value
            case ComparisonOp.GT:
                return expr > value
            case ComparisonOp.LT:
                return expr < value
            case ComparisonOp.GTE:
                return expr >= value
            case ComparisonOp.LTE:
                return expr <= value
        raise UnsupportedOperationError(f"Unhandled operator {op!r}")

    def apply(self, stmt: Any, options: QueryOptions | None, *, paginate: bool = True) -> Any:
        if options is None:
            return stmt
        for query_filter in options.filters:
            stmt = stmt.where(self.condition(query_filter))
        if not paginate:
            return stmt
        if options.order_by:
            expr = self.order_expr(options.order_by)
            stmt = stmt.order_by(expr.desc() if options.descending else expr.asc())
        if options.limit is not None:
            stmt = stmt.limit(options.limit)
        if options.offset:
            stmt = stmt.offset(options.offset)
        return stmt


def _json_scalar(value: Any) -> Any:
    # Datetimes inside ``attributes`` are stored as ISO strings
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    return value


class RelationalTransaction(DatabaseTransaction):
    """Transaction handle bound to one SQLAlchemy session."""

    def __init__(self, session: Session):
        super().__init__()
        self._session = session

    def find_one(self, collection: str, id: str) -> Record | None:
        self._ensure_open("find_one")
        model = _model_for(collection)
        row = self._session.get(model, id)
        return _to_record(model, row) if row is not None else None

    def create(self, collection: str, data: dict[str, Any]) -> Record:
        self._ensure_open("create")
        model = _model_for(collection)
        row = _new_row(model, data)
        self._session.add(row)
        self._session.flush()
        return _to_record(model, row)

    def update(self, collection: str, id: str, data: dict[str, Any]) -> Record:
        self._ensure_open("update")
        model = _model_for(collection)
        row = self._session.get(model, id)
        if row is None:
            raise RecordNotFoundError(collection, id)
        _apply_patch(model, row, data)
        self._session.flush()
        return _to_record(model, row)

    def delete(self, collection: str, id: str) -> None:
        self._ensure_open("delete")
        model = _model_for(collection)
        self._session.execute(delete(model).where(model.id == id))


class RelationalAdapter(DatabaseAdapter):
    """
    Relational adapter backed by SQLAlchemy.

    Suitable for:
    - Self-hosted deployments (PostgreSQL)
    - Development and testing (SQLite, including ``sqlite://`` in memory)

    The engine is created on ``connect()``; every operation connects on
    first use.  An already-built ``engine`` can be injected instead of a URL.
    """

    backend = "relational"

    def __init__(
        self,
        url: str | None = None,
        *,
        engine: Engine | None = None,
        echo: bool | None = None,
        pool_size: int | None = None,
        max_overflow: int | None = None,
    ):
        settings = get_settings()
        if engine is None and not url:
            url = settings.database_url
            if not url:
                raise MissingConfigError("DATABASE_URL")
        self._url = url
        self._engine = engine
        self._owns_engine = engine is None
        self._echo = settings.database_echo if echo is None else echo
        self._pool_size = settings.database_pool_size if pool_size is None else pool_size
        self._max_overflow = settings.database_max_overflow if max_overflow is None else max_overflow
        self._session_factory: sessionmaker | None = None
        self._connected = False

    # --- lifecycle ---

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def engine(self) -> Engine:
        self._ensure_connected()
        return self._engine

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def connect(self) -> None:
        """Create the engine and check it with ``SELECT 1``."""
        if self._connected:
            return
        try:
            if self._engine is None:
                self._engine = create_cortex_engine(
                    self._url,
                    echo=self._echo,
                    pool_size=self._pool_size,
                    max_overflow=self._max_overflow,
                )
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise DatabaseConnectionError(
                f"Failed to connect to relational database: {e}",
                cause=e,
            ).with_context(backend=self.backend) from e

        self._session_factory = cortex_session_factory(self._engine)
        self._connected = True
        logger.info("relational_connected", dialect=self._engine.dialect.name, url=str(self._engine.url))

    def disconnect(self) -> None:
        """Dispose the connection pool."""
        if not self._connected:
            return
        self._engine.dispose()
        if self._owns_engine:
            self._engine = None
        self._session_factory = None
        self._connected = False
        logger.info("relational_disconnected")

    def _ensure_connected(self) -> None:
        if not self._connected:
            self.connect()

    def create_schema(self) -> None:
        """Create every mapped table that does not exist yet."""
        CortexBase.metadata.create_all(self.engine)
        logger.info("relational_schema_created", tables=sorted(CortexBase.metadata.tables))

    @contextmanager
    def _session(self) -> Iterator[Session]:
        self._ensure_connected()
        with self._session_factory() as session:
            yield session

    @contextmanager
    def _begin(self) -> Iterator[Session]:
        """Session inside a transaction; commits on exit, rolls back on error."""
        self._ensure_connected()
        with self._session_factory.begin() as session:
            yield session

    def _builder(self, model: type[CortexBase]) -> _QueryBuilder:
        return _QueryBuilder(model, self.dialect)

    # --- reads ---

    def find_many(self, collection: str, options: QueryOptions | None = None) -> list[Record]:
        model = _model_for(collection)
        stmt = self._builder(model).apply(select(model), options)
        with self._session() as session:
            rows = session.scalars(stmt).all()
            return [_to_record(model, row) for row in rows]

    def find_one(self, collection: str, id: str) -> Record | None:
        model = _model_for(collection)
        with self._session() as session:
            row = session.get(model, id)
            return _to_record(model, row) if row is not None else None

    def exists(self, collection: str, id: str) -> bool:
        model = _model_for(collection)
        with self._session() as session:
            found = session.scalar(select(model.id).where(model.id == id).limit(1))
        return found is not None

    def count(self, collection: str, options: QueryOptions | None = None) -> int:
        model = _model_for(collection)
        stmt = select(func.count()).select_from(model)
        stmt = self._builder(model).apply(stmt, options, paginate=False)
        with self._session() as session:
            return int(session.scalar(stmt) or 0)

    # --- writes ---

    def create(self, collection: str, data: dict[str, Any]) -> Record:
        model = _model_for(collection)
        with self._begin() as session:
            row = _new_row(model, data)
            session.add(row)
        logger.debug("record_created", collection=collection, record_id=row.id, backend=self.backend)
        return _to_record(model, row)

    def update(self, collection: str, id: str, data: dict[str, Any]) -> Record:
        model = _model_for(collection)
        with self._begin() as session:
            row = session.get(model, id)
            if row is None:
                raise RecordNotFoundError(collection, id).with_context(
                    operation="update", backend=self.backend
                )
            _apply_patch(model, row, data)
        logger.debug("record_updated", collection=collection, record_id=id, backend=self.backend)
        return _to_record(model, row)

    def delete(self, collection: str, id: str) -> None:
        model = _model_for(collection)
        with self._begin() as session:
            session.execute(delete(model).where(model.id == id))
        logger.debug("record_deleted", collection=collection, record_id=id, backend=self.backend)

    def create_many(self, collection: str, items: Iterable[dict[str, Any]]) -> list[Record]:
        """Create rows one commit at a time (not atomic)."""
        _model_for(collection)
        committed: list[Record] = []
        for index, item in enumerate(items):
            try:
                committed.append(self.create(collection, item))
            except SQLAlchemyError as e:
                logger.error(
                    "batch_create_failed",
                    collection=collection,
                    failed_index=index,
                    committed=len(committed),
                    error=str(e),
                )
                raise PartialBatchError(collection, committed, index, e) from e
        return committed

    def update_many(self, collection: str, ids: Iterable[str], data: dict[str, Any]) -> None:
        """Apply one patch to every id in a single transaction."""
        ids = list(ids)
        if not ids:
            return
        model = _model_for(collection)
        with self._begin() as session:
            rows = session.scalars(select(model).where(model.id.in_(ids))).all()
            found = {row.id for row in rows}
            missing = [record_id for record_id in ids if record_id not in found]
            if missing:
                raise RecordNotFoundError(collection, missing).with_context(
                    operation="update_many", backend=self.backend
                )
            for row in rows:
                _apply_patch(model, row, data)
        logger.debug("records_updated", collection=collection, count=len(ids), backend=self.backend)

    def delete_many(self, collection: str, ids: Iterable[str]) -> None:
        ids = list(ids)
        if not ids:
            return
        model = _model_for(collection)
        with self._begin() as session:
            session.execute(delete(model).where(model.id.in_(ids)))
        logger.debug("records_deleted", collection=collection, count=len(ids), backend=self.backend)

    # --- transactions ---

    def transaction(self, callback: Callable[[DatabaseTransaction], T]) -> T:
        tx: RelationalTransaction | None = None
        try:
            with self._begin() as session:
                tx = RelationalTransaction(session)
                return callback(tx)
        finally:
            if tx is not None:
                tx.close()


__all__ = [
    "COLLECTION_TABLES",
    "table_for",
    "RelationalAdapter",
    "RelationalTransaction",
]
