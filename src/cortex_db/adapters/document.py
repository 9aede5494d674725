"""Document-store adapter (Google Cloud Firestore).

Uses the synchronous ``google-cloud-firestore`` client.  Suitable for:
- Managed (``firebase``) deployments
- Any schemaless collection layout

Query translation:
    Each :class:`~cortex_db.query.QueryFilter` becomes one native
    ``FieldFilter``; ``order_by`` and ``limit`` map to native clauses.
    Firestore has no offset cursor here, so a non-zero ``offset`` raises
    :class:`~cortex_db.errors.UnsupportedOperationError`.

Batches:
    ``create_many`` / ``update_many`` / ``delete_many`` use ``WriteBatch``.
    Up to ``batch_limit`` operations commit atomically; larger calls are
    split into several commits (atomic per chunk) and a warning is logged.

Transactions:
    Run through ``firestore.transactional`` with ``max_attempts=1`` (no
    retries).  Firestore requires every read to precede every write, so the
    transaction handle keeps a local view of the documents it has read or
    written: ``find_one`` after a write is served from that view, and
    ``update`` returns the merged record without reading it back.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from google.api_core.exceptions import NotFound
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from cortex_db.adapters.base import DatabaseAdapter, DatabaseTransaction, Record, strip_immutable
from cortex_db.errors import RecordNotFoundError, UnsupportedOperationError
from cortex_db.logging import get_logger
from cortex_db.query import ComparisonOp, QueryOptions
from cortex_db.settings import get_settings
from cortex_db.timestamps import stamp

logger = get_logger(__name__)

T = TypeVar("T")

_OPERATORS: dict[ComparisonOp, str] = {
    ComparisonOp.EQ: "==",
    ComparisonOp.NE: "!=",
    ComparisonOp.GT: ">",
    ComparisonOp.LT: "<",
    ComparisonOp.GTE: ">=",
    ComparisonOp.LTE: "<=",
    ComparisonOp.IN: "in",
    ComparisonOp.ARRAY_CONTAINS: "array_contains",
}


def _snapshot_to_record(snapshot: Any) -> Record | None:
    if not snapshot.exists:
        return None
    record = snapshot.to_dict() or {}
    record["id"] = snapshot.id
    return record


def _new_document(data: dict[str, Any]) -> tuple[str | None, dict[str, Any]]:
    """Caller id (if any) and the stamped document body."""
    payload = copy.deepcopy(dict(data))
    record_id = payload.pop("id", None)
    payload.pop("createdAt", None)
    payload.pop("updatedAt", None)
    now = stamp()
    payload["createdAt"] = now
    payload["updatedAt"] = now
    return record_id, payload


def _patch(data: dict[str, Any]) -> dict[str, Any]:
    patch = copy.deepcopy(strip_immutable(data))
    patch["updatedAt"] = stamp()
    return patch


class DocumentTransaction(DatabaseTransaction):
    """Transaction handle over a Firestore ``Transaction``."""

    def __init__(self, client: Any, transaction: Any):
        super().__init__()
        self._client = client
        self._transaction = transaction
        self._view: dict[tuple[str, str], Record | None] = {}

    def _ref(self, collection: str, id: str | None = None) -> Any:
        collection_ref = self._client.collection(collection)
        return collection_ref.document(id) if id else collection_ref.document()

    def find_one(self, collection: str, id: str) -> Record | None:
        self._ensure_open("find_one")
        key = (collection, id)
        if key not in self._view:
            snapshot = self._ref(collection, id).get(transaction=self._transaction)
            self._view[key] = _snapshot_to_record(snapshot)
        return copy.deepcopy(self._view[key])

    def create(self, collection: str, data: dict[str, Any]) -> Record:
        self._ensure_open("create")
        record_id, body = _new_document(data)
        ref = self._ref(collection, record_id)
        body["id"] = ref.id
        self._transaction.set(ref, body)
        self._view[(collection, ref.id)] = body
        return copy.deepcopy(body)

    def update(self, collection: str, id: str, data: dict[str, Any]) -> Record:
        self._ensure_open("update")
        current = self.find_one(collection, id)
        if current is None:
            raise RecordNotFoundError(collection, id).with_context(
                operation="update", backend="document"
            )
        patch = _patch(data)
        self._transaction.update(self._ref(collection, id), patch)
        merged = {**current, **patch}
        self._view[(collection, id)] = merged
        return copy.deepcopy(merged)

    def delete(self, collection: str, id: str) -> None:
        self._ensure_open("delete")
        self._transaction.delete(self._ref(collection, id))
        self._view[(collection, id)] = None


class DocumentStoreAdapter(DatabaseAdapter):
    """
    Firestore adapter.

    The client is created on first use from settings
    (``CORTEX_FIRESTORE_PROJECT`` / ``CORTEX_FIRESTORE_DATABASE``) unless one
    is injected.  There is no connection handshake: ``connect`` and
    ``disconnect`` only flip the state flag.
    """

    backend = "document"

    def __init__(
        self,
        client: Any | None = None,
        *,
        project: str | None = None,
        database: str | None = None,
        batch_limit: int | None = None,
    ):
        settings = get_settings()
        self._client = client
        self._project = project or settings.firestore_project
        self._database = database or settings.firestore_database
        self._batch_limit = batch_limit or settings.firestore_batch_limit
        self._connected = True

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = firestore.Client(project=self._project, database=self._database)
            logger.info("firestore_client_created", project=self._project, database=self._database)
        return self._client

    @property
    def batch_limit(self) -> int:
        return self._batch_limit

    # --- lifecycle ---

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        self._connected = True

    def disconnect(self) -> None:
        self._connected = False

    # --- helpers ---

    def _collection(self, collection: str) -> Any:
        return self.client.collection(collection)

    def _doc(self, collection: str, id: str) -> Any:
        return self._collection(collection).document(id)

    def _build_query(self, collection: str, options: QueryOptions | None, *, paginate: bool = True) -> Any:
        query = self._collection(collection)
        if options is None:
            return query
        for query_filter in options.filters:
            query = query.where(
                filter=FieldFilter(query_filter.field, _OPERATORS[query_filter.operator], query_filter.value)
            )
        if not paginate:
            return query
        if options.offset:
            raise UnsupportedOperationError(
                "offset is not supported by the document store; page with filters on an ordered field"
            ).with_context(collection=collection, operation="find_many", backend=self.backend)
        if options.order_by:
            direction = firestore.Query.DESCENDING if options.descending else firestore.Query.ASCENDING
            query = query.order_by(options.order_by, direction=direction)
        if options.limit is not None:
            query = query.limit(options.limit)
        return query

    def _chunks(self, collection: str, operation: str, items: list[Any]) -> list[list[Any]]:
        size = self._batch_limit
        if len(items) > size:
            logger.warning(
                "batch_chunked",
                collection=collection,
                operation=operation,
                total=len(items),
                batch_limit=size,
            )
        return [items[i : i + size] for i in range(0, len(items), size)]

    # --- reads ---

    def find_many(self, collection: str, options: QueryOptions | None = None) -> list[Record]:
        query = self._build_query(collection, options)
        return [_snapshot_to_record(snapshot) for snapshot in query.stream()]

    def find_one(self, collection: str, id: str) -> Record | None:
        return _snapshot_to_record(self._doc(collection, id).get())

    def exists(self, collection: str, id: str) -> bool:
        return bool(self._doc(collection, id).get().exists)

    def count(self, collection: str, options: QueryOptions | None = None) -> int:
        query = self._build_query(collection, options, paginate=False)
        results = query.count(alias="count").get()
        return int(results[0][0].value)

    # --- writes ---

    def create(self, collection: str, data: dict[str, Any]) -> Record:
        record_id, body = _new_document(data)
        ref = self._doc(collection, record_id) if record_id else self._collection(collection).document()
        body["id"] = ref.id
        ref.set(body)
        logger.debug("record_created", collection=collection, record_id=ref.id, backend=self.backend)
        return copy.deepcopy(body)

    def update(self, collection: str, id: str, data: dict[str, Any]) -> Record:
        ref = self._doc(collection, id)
        try:
            ref.update(_patch(data))
        except NotFound as e:
            raise RecordNotFoundError(collection, id).with_context(
                operation="update", backend=self.backend
            ) from e
        logger.debug("record_updated", collection=collection, record_id=id, backend=self.backend)
        return _snapshot_to_record(ref.get())

    def delete(self, collection: str, id: str) -> None:
        self._doc(collection, id).delete()
        logger.debug("record_deleted", collection=collection, record_id=id, backend=self.backend)

    def create_many(self, collection: str, items: Iterable[dict[str, Any]]) -> list[Record]:
        """Create documents in ``WriteBatch`` commits of at most ``batch_limit``."""
        created: list[Record] = []
        for chunk in self._chunks(collection, "create_many", list(items)):
            batch = self.client.batch()
            staged: list[Record] = []
            for item in chunk:
                record_id, body = _new_document(item)
                ref = self._doc(collection, record_id) if record_id else self._collection(collection).document()
                body["id"] = ref.id
                batch.set(ref, body)
                staged.append(body)
            batch.commit()
            created.extend(copy.deepcopy(staged))
        logger.debug("records_created", collection=collection, count=len(created), backend=self.backend)
        return created

    def update_many(self, collection: str, ids: Iterable[str], data: dict[str, Any]) -> None:
        ids = list(ids)
        for chunk in self._chunks(collection, "update_many", ids):
            batch = self.client.batch()
            patch = _patch(data)
            for record_id in chunk:
                batch.update(self._doc(collection, record_id), patch)
            try:
                batch.commit()
            except NotFound as e:
                raise RecordNotFoundError(collection, chunk).with_context(
                    operation="update_many", backend=self.backend
                ) from e
        logger.debug("records_updated", collection=collection, count=len(ids), backend=self.backend)

    def delete_many(self, collection: str, ids: Iterable[str]) -> None:
        ids = list(ids)
        for chunk in self._chunks(collection, "delete_many", ids):
            batch = self.client.batch()
            for record_id in chunk:
                batch.delete(self._doc(collection, record_id))
            batch.commit()
        logger.debug("records_deleted", collection=collection, count=len(ids), backend=self.backend)

    # --- transactions ---

    def transaction(self, callback: Callable[[DatabaseTransaction], T]) -> T:
        client = self.client
        handles: list[DocumentTransaction] = []

        def run(transaction: Any) -> T:
            tx = DocumentTransaction(client, transaction)
            handles.append(tx)
            return callback(tx)

        try:
            return firestore.transactional(run)(client.transaction(max_attempts=1))
        finally:
            for tx in handles:
                tx.close()


__all__ = [
    "DocumentStoreAdapter",
    "DocumentTransaction",
]
