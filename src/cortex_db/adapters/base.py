"""Database adapter contract.

Manifesto:
    Domain code never depends on a specific store.  Every back-end
    implements the same record-oriented interface (CRUD, batches, filtered
    queries, transactions) so that the relationship engine and callers run
    unmodified against Firestore or a relational database.

Features:
    - Abstract ``find_many``, ``find_one``, ``create``, ``update``, ``delete``
    - Batch ``create_many``, ``update_many``, ``delete_many``
    - ``transaction(callback)`` with a single-use :class:`DatabaseTransaction`
    - Native ``count`` and ``exists``
    - ``find_by_field`` implemented once on top of ``find_many``
    - Context-manager protocol for connection lifecycle

Record conventions:
    A record is a plain ``dict``.  ``id`` is opaque and assigned by the
    adapter when the caller does not provide one; ``createdAt`` and
    ``updatedAt`` are timezone-aware UTC datetimes stamped by the adapter.
    ``update`` never changes ``id`` or ``createdAt``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from cortex_db.errors import TransactionClosedError
from cortex_db.query import OrderDirection, QueryFilter, QueryOptions

Record = dict[str, Any]

T = TypeVar("T")

#: Keys only the adapter may write.
SYSTEM_FIELDS = ("id", "createdAt", "updatedAt")

#: Keys an update patch may never change.
IMMUTABLE_FIELDS = ("id", "createdAt")


def strip_immutable(data: dict[str, Any]) -> dict[str, Any]:
    """Copy of an update patch without ``id`` / ``createdAt``."""
    return {k: v for k, v in data.items() if k not in IMMUTABLE_FIELDS}


class DatabaseTransaction(ABC):
    """
    Handle passed to a ``transaction()`` callback.

    Valid only while the callback runs.  Once the callback returns or
    raises, the adapter closes the handle and every further call raises
    :class:`~cortex_db.errors.TransactionClosedError`.
    """

    def __init__(self) -> None:
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    def _ensure_open(self, operation: str) -> None:
        if self._closed:
            raise TransactionClosedError(operation)

    @abstractmethod
    def find_one(self, collection: str, id: str) -> Record | None:
        """Read a record inside the transaction."""
        ...

    @abstractmethod
    def create(self, collection: str, data: dict[str, Any]) -> Record:
        """Stage a create; returns the enriched record."""
        ...

    @abstractmethod
    def update(self, collection: str, id: str, data: dict[str, Any]) -> Record:
        """Stage a partial update; returns the post-update record."""
        ...

    @abstractmethod
    def delete(self, collection: str, id: str) -> None:
        """Stage a delete."""
        ...


class DatabaseAdapter(ABC):
    """
    Abstract base class for database adapters.

    Subclasses implement the storage primitives; ``find_by_field`` and the
    context-manager protocol are shared.
    """

    #: Short back-end name used in logs and error context.
    backend: str = "abstract"

    # --- reads ---

    @abstractmethod
    def find_many(self, collection: str, options: QueryOptions | None = None) -> list[Record]:
        """Return records matching ``options`` (all records when ``None``)."""
        ...

    @abstractmethod
    def find_one(self, collection: str, id: str) -> Record | None:
        """Return the record with ``id`` or ``None``."""
        ...

    def find_by_field(
        self,
        collection: str,
        field: str,
        value: Any,
        *,
        order_by: str | None = None,
        order_direction: OrderDirection | str = OrderDirection.ASC,
    ) -> Record | None:
        """First record whose ``field`` equals ``value``, or ``None``."""
        options = QueryOptions(
            filters=[QueryFilter(field, "==", value)],
            order_by=order_by,
            order_direction=order_direction,
            limit=1,
        )
        results = self.find_many(collection, options)
        return results[0] if results else None

    @abstractmethod
    def exists(self, collection: str, id: str) -> bool:
        ...

    @abstractmethod
    def count(self, collection: str, options: QueryOptions | None = None) -> int:
        """Count matching records without materializing them."""
        ...

    # --- writes ---

    @abstractmethod
    def create(self, collection: str, data: dict[str, Any]) -> Record:
        ...

    @abstractmethod
    def update(self, collection: str, id: str, data: dict[str, Any]) -> Record:
        ...

    @abstractmethod
    def delete(self, collection: str, id: str) -> None:
        ...

    @abstractmethod
    def create_many(self, collection: str, items: Iterable[dict[str, Any]]) -> list[Record]:
        ...

    @abstractmethod
    def update_many(self, collection: str, ids: Iterable[str], data: dict[str, Any]) -> None:
        ...

    @abstractmethod
    def delete_many(self, collection: str, ids: Iterable[str]) -> None:
        ...

    # --- transactions ---

    @abstractmethod
    def transaction(self, callback: Callable[[DatabaseTransaction], T]) -> T:
        """Run ``callback`` atomically; an exception aborts and propagates."""
        ...

    # --- lifecycle ---

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to the store (idempotent)."""
        ...

    @abstractmethod
    def disconnect(self) -> None:
        """Release the connection (idempotent)."""
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        ...

    def __enter__(self) -> DatabaseAdapter:
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(connected={self.is_connected})"


__all__ = [
    "Record",
    "SYSTEM_FIELDS",
    "IMMUTABLE_FIELDS",
    "strip_immutable",
    "DatabaseTransaction",
    "DatabaseAdapter",
]
