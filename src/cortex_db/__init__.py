"""cortex-db -- persistence adapters and relationship integrity for the cortex platform.

Manifesto:
    The platform's business records (projects, POVs, TRRs, demo scenarios)
    live in Firestore for managed deployments and in PostgreSQL for
    self-hosted ones.  ``cortex_db`` hides that choice behind one adapter
    contract and keeps the denormalized links between records consistent
    on either back-end.

Architecture::

    Layer 1 -- Types & Errors
        errors.py          Structured error hierarchy (CortexError, RecordNotFoundError, ...)
        result.py          Ok / Err envelope for expected failures
        timestamps.py      UTC clock, strictly increasing stamps, ULID ids
        settings.py        pydantic-settings configuration
        logging.py         structlog configuration

    Layer 2 -- Persistence
        query.py           Backend-neutral filters, ordering, pagination
        adapters/          DatabaseAdapter contract, Firestore + SQLAlchemy adapters, factory
        orm/               Declarative base, engine factory, mapped tables

    Layer 3 -- Services
        relationships.py   Relationship integrity engine (associate, validate, repair)
        diagnostics.py     Back-end self-checks

    Layer 4 -- Tooling
        cli/               ``cortex-db`` Typer application

Usage:
    from cortex_db import get_database, RelationshipManager

    db = get_database()
    manager = RelationshipManager(db)
    manager.associate_trr_with_pov("T1", "V1")
"""

__version__ = "0.1.0"

from cortex_db.adapters import (
    AdapterFactory,
    DatabaseAdapter,
    DatabaseMode,
    DatabaseTransaction,
    Record,
    get_database,
)
from cortex_db.errors import (
    CortexError,
    RecordNotFoundError,
    RelationshipError,
)
from cortex_db.query import ComparisonOp, OrderDirection, QueryFilter, QueryOptions
from cortex_db.relationships import (
    RelationshipGraph,
    RelationshipManager,
    RelationshipValidation,
    RepairResult,
)
from cortex_db.result import Err, Ok, Result

__all__ = [
    "__version__",
    "AdapterFactory",
    "DatabaseAdapter",
    "DatabaseMode",
    "DatabaseTransaction",
    "Record",
    "get_database",
    "CortexError",
    "RecordNotFoundError",
    "RelationshipError",
    "ComparisonOp",
    "OrderDirection",
    "QueryFilter",
    "QueryOptions",
    "RelationshipGraph",
    "RelationshipManager",
    "RelationshipValidation",
    "RepairResult",
    "Ok",
    "Err",
    "Result",
]
