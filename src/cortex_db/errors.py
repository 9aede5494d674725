"""
Structured error types for cortex-db.

Every error raised by the persistence layer carries a category, a structured
context (collection, record id, operation, backend) and an optional chained
cause, so that callers can log it without string parsing and decide severity
themselves.

Manifesto:
    - **Typed hierarchy:** one class per failure the contract distinguishes
    - **Not-found is not an error on reads:** ``find_one`` / ``exists`` return
      ``None`` / ``False``; only writes against a missing record raise
    - **Contract violations fail loudly:** unknown operators, unknown
      collections, unsupported options and use of a closed transaction handle
      raise immediately instead of degrading to a silent no-op
    - **Storage errors are not wrapped:** driver exceptions propagate unchanged

Architecture:
    ::

        CortexError (category, context, cause)
        ├── ConfigError                       CONFIG
        │   ├── MissingConfigError
        │   └── UnknownCollectionError
        ├── DatabaseError                     DATABASE
        │   ├── DatabaseConnectionError
        │   ├── RecordNotFoundError
        │   ├── PartialBatchError
        │   └── TransactionError
        │       └── TransactionClosedError
        ├── QueryError                        CONTRACT
        │   ├── InvalidOperatorError
        │   └── UnsupportedOperationError
        └── ValidationError                   VALIDATION
            └── RelationshipError

Usage:
    from cortex_db.errors import RecordNotFoundError

    try:
        db.update("povs", pov_id, {"status": "active"})
    except RecordNotFoundError as exc:
        logger.warning("pov_missing", **exc.to_dict())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for classification and log routing."""

    DATABASE = "DATABASE"       # Connection, constraint, missing record on write
    VALIDATION = "VALIDATION"   # Expected, caller-recoverable data conditions
    CONFIG = "CONFIG"           # Missing or invalid settings, unmapped collections
    CONTRACT = "CONTRACT"       # Misuse of the adapter contract
    INTERNAL = "INTERNAL"       # Bugs, unexpected state


@dataclass
class ErrorContext:
    """Structured metadata attached to an error."""

    collection: str | None = None
    record_id: str | None = None
    operation: str | None = None
    backend: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["collection", "record_id", "operation", "backend"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class CortexError(Exception):
    """
    Base exception for all cortex-db errors.

    Subclasses set ``default_category``; the category can be overridden per
    instance. ``cause`` is chained as ``__cause__`` so tracebacks show the
    underlying driver error.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> CortexError:
        """
        Add context to this error (fluent API).

        Usage:
            raise RecordNotFoundError("POV not found").with_context(
                collection="povs", record_id=pov_id
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(CortexError):
    """Invalid or missing configuration."""

    default_category = ErrorCategory.CONFIG


class MissingConfigError(ConfigError):
    """A required setting is not present."""

    def __init__(self, key: str, message: str | None = None):
        super().__init__(message or f"Missing required configuration: {key}")
        self.key = key


class UnknownCollectionError(ConfigError):
    """A collection name resolves to no mapped table."""

    def __init__(self, collection: str, table: str | None = None):
        table = table or collection
        super().__init__(
            f"Collection {collection!r} has no mapped table {table!r}",
            context=ErrorContext(collection=collection),
        )
        self.collection = collection


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseError(CortexError):
    """Base class for storage-side failures raised by the adapters themselves."""

    default_category = ErrorCategory.DATABASE


class DatabaseConnectionError(DatabaseError):
    """Could not establish a connection to the back-end."""


class RecordNotFoundError(DatabaseError):
    """A write addressed a record that does not exist."""

    def __init__(self, collection: str, record_id: str | list[str]):
        if isinstance(record_id, list):
            ids = ", ".join(record_id)
            message = f"Records not found in {collection}: {ids}"
            context = ErrorContext(collection=collection, metadata={"record_ids": list(record_id)})
        else:
            message = f"Record {record_id} not found in {collection}"
            context = ErrorContext(collection=collection, record_id=record_id)
        super().__init__(message, context=context)
        self.collection = collection
        self.record_id = record_id


class PartialBatchError(DatabaseError):
    """
    A non-atomic batch stopped part-way.

    ``committed`` holds the records that were persisted before the failure;
    ``cause`` is the back-end error raised by the failing item.
    """

    def __init__(
        self,
        collection: str,
        committed: list[dict[str, Any]],
        failed_index: int,
        cause: Exception,
    ):
        super().__init__(
            f"Batch create on {collection} failed at item {failed_index} "
            f"after committing {len(committed)} record(s): {cause}",
            context=ErrorContext(
                collection=collection,
                operation="create_many",
                metadata={"failed_index": failed_index},
            ),
            cause=cause,
        )
        self.committed = committed
        self.failed_index = failed_index


class TransactionError(DatabaseError):
    """Misuse or failure of a transaction."""


class TransactionClosedError(TransactionError):
    """A transaction handle was used outside its callback."""

    default_category = ErrorCategory.CONTRACT

    def __init__(self, operation: str):
        super().__init__(
            f"Transaction handle used after the transaction ended ({operation})",
            context=ErrorContext(operation=operation),
        )


# =============================================================================
# QUERY / CONTRACT ERRORS
# =============================================================================


class QueryError(CortexError):
    """A query cannot be expressed against the back-end."""

    default_category = ErrorCategory.CONTRACT


class InvalidOperatorError(QueryError):
    """A filter used an operator outside the seven supported comparators."""

    def __init__(self, operator: Any):
        super().__init__(f"Unsupported comparison operator: {operator!r}")
        self.operator = operator


class UnsupportedOperationError(QueryError):
    """The selected back-end cannot honour the requested option."""


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(CortexError):
    """Expected, caller-recoverable data condition."""

    default_category = ErrorCategory.VALIDATION


class RelationshipError(ValidationError):
    """An association was rejected (missing record, project mismatch)."""


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "CortexError",
    "ConfigError",
    "MissingConfigError",
    "UnknownCollectionError",
    "DatabaseError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
    "PartialBatchError",
    "TransactionError",
    "TransactionClosedError",
    "QueryError",
    "InvalidOperatorError",
    "UnsupportedOperationError",
    "ValidationError",
    "RelationshipError",
]
