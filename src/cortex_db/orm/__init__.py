"""SQLAlchemy 2.0 ORM layer backing the relational adapter.

Modules
-------
base        CortexBase (declarative base) + RecordMixin
session     Engine factory, CortexSession, session factory
tables      Mapped tables for projects, povs, trrs, scenarios, relationship_logs
"""

from __future__ import annotations

from cortex_db.orm.base import CortexBase, RecordMixin
from cortex_db.orm.session import (
    CortexSession,
    cortex_session_factory,
    create_cortex_engine,
)
from cortex_db.orm.tables import (
    POVTable,
    ProjectTable,
    RelationshipLogTable,
    ScenarioTable,
    TestRecordTable,
    TRRTable,
)

__all__ = [
    "CortexBase",
    "RecordMixin",
    "CortexSession",
    "cortex_session_factory",
    "create_cortex_engine",
    "ProjectTable",
    "POVTable",
    "TRRTable",
    "ScenarioTable",
    "RelationshipLogTable",
    "TestRecordTable",
]
