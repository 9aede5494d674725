"""Mapped tables for the platform collections.

Every collection the relationship engine touches has a table here.
Reference fields (``projectId``, ``povId``) and the parent-side id arrays
(``povIds``, ``trrIds``, ``scenarioIds``) get typed columns so they can be
filtered and indexed; everything else lives in ``attributes``.

Column conventions:

* reference ids -> ``Text``, indexed, nullable (a dangling or missing
  reference is a data-quality condition, not a schema violation, so there
  are no foreign keys)
* id arrays and ``testPlan`` -> ``JSON``
* ``*_at`` / ``timestamp`` -> ``DateTime(timezone=True)``

Usage::

    from cortex_db.orm import CortexBase, create_cortex_engine

    engine = create_cortex_engine("sqlite:///cortex.db")
    CortexBase.metadata.create_all(engine)
"""

from __future__ import annotations

import datetime
from typing import Any

from sqlalchemy import JSON, Text
from sqlalchemy.orm import Mapped, mapped_column

from cortex_db.orm.base import CortexBase, RecordMixin


class ProjectTable(RecordMixin, CortexBase):
    __tablename__ = "projects"

    povIds: Mapped[list[str] | None] = mapped_column("pov_ids", JSON)
    trrIds: Mapped[list[str] | None] = mapped_column("trr_ids", JSON)
    scenarioIds: Mapped[list[str] | None] = mapped_column("scenario_ids", JSON)


class POVTable(RecordMixin, CortexBase):
    __tablename__ = "povs"

    projectId: Mapped[str | None] = mapped_column("project_id", Text, index=True)
    trrIds: Mapped[list[str] | None] = mapped_column("trr_ids", JSON)
    testPlan: Mapped[dict[str, Any] | None] = mapped_column("test_plan", JSON)


class TRRTable(RecordMixin, CortexBase):
    __tablename__ = "trrs"

    projectId: Mapped[str | None] = mapped_column("project_id", Text, index=True)
    povId: Mapped[str | None] = mapped_column("pov_id", Text, index=True)


class ScenarioTable(RecordMixin, CortexBase):
    __tablename__ = "scenarios"

    projectId: Mapped[str | None] = mapped_column("project_id", Text, index=True)
    povId: Mapped[str | None] = mapped_column("pov_id", Text, index=True)


class RelationshipLogTable(RecordMixin, CortexBase):
    """Audit trail of association changes (``metadata`` is kept in ``attributes``)."""

    __tablename__ = "relationship_logs"

    type: Mapped[str | None] = mapped_column(Text, index=True)
    timestamp: Mapped[datetime.datetime | None] = mapped_column()


class TestRecordTable(RecordMixin, CortexBase):
    """Scratch collection used by the diagnostics checks."""

    __tablename__ = "test_records"
    __test__ = False


__all__ = [
    "ProjectTable",
    "POVTable",
    "TRRTable",
    "ScenarioTable",
    "RelationshipLogTable",
    "TestRecordTable",
]
