"""
Relationship integrity engine for Project / POV / TRR / Scenario records.

The document store enforces no foreign keys, so the links between the four
record kinds are plain fields kept consistent by this module:

    Project  povIds[] ─┬─> POV  projectId, trrIds[], testPlan.scenarios[]
             trrIds[]  ├─> TRR  projectId, povId
             scenarioIds[] └─> Scenario  projectId, povId

Manifesto:
    - **Associations are transactional:** every read and write of one
      association runs in a single adapter transaction, together with its
      audit record in ``relationshipLogs``
    - **Expected failures are values:** a missing record or a project
      mismatch returns ``Err(RelationshipError)``; storage errors raise
    - **Dangling is an error, unassociated is a warning:** a reference to a
      record that does not exist is corruption; a child with no parent is a
      legitimate state
    - **Repair is idempotent, not atomic:** one write per repaired field,
      a second run finds nothing to fix

Usage:
    from cortex_db.relationships import RelationshipManager

    manager = RelationshipManager(actor=user_id)
    result = manager.associate_trr_with_pov("T1", "V1")
    if result.is_err():
        print(result.reason)

    report = manager.validate_relationships("P1")
    if not report.valid:
        manager.repair_relationships("P1")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from cortex_db.adapters.base import DatabaseAdapter, DatabaseTransaction, Record
from cortex_db.adapters.factory import get_database
from cortex_db.errors import RelationshipError
from cortex_db.logging import LogContext, get_logger
from cortex_db.query import QueryOptions, equals
from cortex_db.result import Err, Ok, Result
from cortex_db.timestamps import stamp

logger = get_logger(__name__)

PROJECTS = "projects"
POVS = "povs"
TRRS = "trrs"
SCENARIOS = "scenarios"
RELATIONSHIP_LOGS = "relationshipLogs"


# =============================================================================
# RESULT TYPES
# =============================================================================


@dataclass
class RelationshipGraph:
    """All records of one project and the links between them."""

    project_id: str
    project: Record
    povs: list[Record] = field(default_factory=list)
    trrs: list[Record] = field(default_factory=list)
    scenarios: list[Record] = field(default_factory=list)
    pov_to_trrs: dict[str, list[str]] = field(default_factory=dict)
    pov_to_scenarios: dict[str, list[str]] = field(default_factory=dict)
    trr_to_pov: dict[str, str] = field(default_factory=dict)
    scenario_to_pov: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "projectId": self.project_id,
            "povs": [r["id"] for r in self.povs],
            "trrs": [r["id"] for r in self.trrs],
            "scenarios": [r["id"] for r in self.scenarios],
            "relationships": {
                "povToTRR": self.pov_to_trrs,
                "povToScenario": self.pov_to_scenarios,
                "trrToPOV": self.trr_to_pov,
                "scenarioToPOV": self.scenario_to_pov,
            },
        }


@dataclass
class RelationshipValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "errors": self.errors, "warnings": self.warnings}


@dataclass
class RepairResult:
    fixed: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"fixed": self.fixed, "errors": self.errors}


def _label(kind: str, record: Record) -> str:
    return f'{kind} "{record.get("title", "")}" ({record["id"]})'


def _test_plan_scenarios(pov: Record) -> list[str]:
    test_plan = pov.get("testPlan") or {}
    return list(test_plan.get("scenarios") or [])


def _with_item(values: list[str] | None, item: str) -> list[str]:
    values = list(values or [])
    if item not in values:
        values.append(item)
    return values


def _without_item(values: list[str] | None, item: str) -> list[str]:
    return [value for value in (values or []) if value != item]


# =============================================================================
# MANAGER
# =============================================================================


class RelationshipManager:
    """
    Maintains, validates and repairs cross-references between records.

    Talks only to the :class:`DatabaseAdapter` contract.  The adapter is
    injected or, when omitted, taken from :func:`get_database` on first use.
    ``actor`` is written to ``lastModifiedBy`` on every record an
    association touches.
    """

    def __init__(self, db: DatabaseAdapter | None = None, *, actor: str = "system"):
        self._db = db
        self.actor = actor

    @property
    def db(self) -> DatabaseAdapter:
        if self._db is None:
            self._db = get_database()
        return self._db

    # ─────────────────────────────────────────────────────────────────────
    # Associations
    # ─────────────────────────────────────────────────────────────────────

    def _log_change(self, tx: DatabaseTransaction, change_type: str, metadata: dict[str, Any]) -> None:
        tx.create(
            RELATIONSHIP_LOGS,
            {
                "type": change_type,
                "metadata": metadata,
                "timestamp": stamp(),
                "actor": self.actor,
            },
        )
        logger.info("relationship_changed", type=change_type, actor=self.actor, **metadata)

    def associate_trr_with_pov(self, trr_id: str, pov_id: str) -> Result[Record]:
        """Attach a TRR to a POV of the same project."""

        def run(tx: DatabaseTransaction) -> Result[Record]:
            trr = tx.find_one(TRRS, trr_id)
            if trr is None:
                return Err(RelationshipError("TRR not found").with_context(collection=TRRS, record_id=trr_id))
            pov = tx.find_one(POVS, pov_id)
            if pov is None:
                return Err(RelationshipError("POV not found").with_context(collection=POVS, record_id=pov_id))
            if trr.get("projectId") != pov.get("projectId"):
                return Err(RelationshipError("TRR and POV must belong to the same project"))

            previous_id = trr.get("povId")
            previous = None
            if previous_id and previous_id != pov_id:
                previous = tx.find_one(POVS, previous_id)

            updated = tx.update(TRRS, trr_id, {"povId": pov_id, "lastModifiedBy": self.actor})
            trr_ids = _with_item(pov.get("trrIds"), trr_id)
            if trr_ids != pov.get("trrIds"):
                tx.update(POVS, pov_id, {"trrIds": trr_ids, "lastModifiedBy": self.actor})
            if previous is not None:
                tx.update(
                    POVS,
                    previous_id,
                    {"trrIds": _without_item(previous.get("trrIds"), trr_id), "lastModifiedBy": self.actor},
                )

            self._log_change(
                tx,
                "trr_pov_association",
                {"trrId": trr_id, "povId": pov_id, "projectId": trr.get("projectId")},
            )
            return Ok(updated)

        return self.db.transaction(run)

    def associate_pov_with_scenario(self, pov_id: str, scenario_id: str) -> Result[Record]:
        """Add a scenario to a POV's test plan and point the scenario at the POV."""

        def run(tx: DatabaseTransaction) -> Result[Record]:
            pov = tx.find_one(POVS, pov_id)
            if pov is None:
                return Err(RelationshipError("POV not found").with_context(collection=POVS, record_id=pov_id))
            scenario = tx.find_one(SCENARIOS, scenario_id)
            if scenario is None:
                return Err(
                    RelationshipError("Scenario not found").with_context(
                        collection=SCENARIOS, record_id=scenario_id
                    )
                )
            scenario_project = scenario.get("projectId")
            if scenario_project and scenario_project != pov.get("projectId"):
                return Err(RelationshipError("Scenario and POV must belong to the same project"))

            previous_id = scenario.get("povId")
            previous = None
            if previous_id and previous_id != pov_id:
                previous = tx.find_one(POVS, previous_id)

            scenarios = _test_plan_scenarios(pov)
            if scenario_id not in scenarios:
                test_plan = {**(pov.get("testPlan") or {}), "scenarios": scenarios + [scenario_id]}
                tx.update(POVS, pov_id, {"testPlan": test_plan, "lastModifiedBy": self.actor})

            patch: dict[str, Any] = {"povId": pov_id, "lastModifiedBy": self.actor}
            if not scenario_project and pov.get("projectId"):
                patch["projectId"] = pov["projectId"]
            updated = tx.update(SCENARIOS, scenario_id, patch)

            if previous is not None:
                test_plan = {
                    **(previous.get("testPlan") or {}),
                    "scenarios": _without_item(_test_plan_scenarios(previous), scenario_id),
                }
                tx.update(POVS, previous_id, {"testPlan": test_plan, "lastModifiedBy": self.actor})

            self._log_change(
                tx,
                "pov_scenario_association",
                {"povId": pov_id, "scenarioId": scenario_id, "projectId": pov.get("projectId")},
            )
            return Ok(updated)

        return self.db.transaction(run)

    def _linked_outside(
        self, tx: DatabaseTransaction, collection: str, child: Record, project_id: str
    ) -> list[str]:
        """Existing records linked to ``child`` that belong to another project."""
        if collection == POVS:
            links = [(TRRS, trr_id) for trr_id in child.get("trrIds") or []]
            links += [(SCENARIOS, scenario_id) for scenario_id in _test_plan_scenarios(child)]
        elif child.get("povId"):
            links = [(POVS, child["povId"])]
        else:
            links = []

        outside = []
        for linked_collection, linked_id in links:
            linked = tx.find_one(linked_collection, linked_id)
            if linked is not None and linked.get("projectId") != project_id:
                outside.append(linked_id)
        return outside

    def _associate_with_project(
        self,
        kind: str,
        collection: str,
        array_field: str,
        child_id: str,
        project_id: str,
        change_type: str,
        id_key: str,
    ) -> Result[Record]:
        def run(tx: DatabaseTransaction) -> Result[Record]:
            child = tx.find_one(collection, child_id)
            if child is None:
                return Err(
                    RelationshipError(f"{kind} not found").with_context(collection=collection, record_id=child_id)
                )
            project = tx.find_one(PROJECTS, project_id)
            if project is None:
                return Err(
                    RelationshipError("Project not found").with_context(collection=PROJECTS, record_id=project_id)
                )

            previous_id = child.get("projectId")
            previous = None
            if previous_id and previous_id != project_id:
                previous = tx.find_one(PROJECTS, previous_id)

            outside = self._linked_outside(tx, collection, child, project_id)
            if outside:
                return Err(
                    RelationshipError(
                        f"{kind} is linked to records outside the project: {', '.join(outside)}"
                    ).with_context(collection=collection, record_id=child_id)
                )

            updated = tx.update(collection, child_id, {"projectId": project_id, "lastModifiedBy": self.actor})
            ids = _with_item(project.get(array_field), child_id)
            if ids != project.get(array_field):
                tx.update(PROJECTS, project_id, {array_field: ids, "lastModifiedBy": self.actor})
            if previous is not None:
                tx.update(
                    PROJECTS,
                    previous_id,
                    {array_field: _without_item(previous.get(array_field), child_id), "lastModifiedBy": self.actor},
                )

            self._log_change(tx, change_type, {id_key: child_id, "projectId": project_id})
            return Ok(updated)

        return self.db.transaction(run)

    def associate_pov_with_project(self, pov_id: str, project_id: str) -> Result[Record]:
        return self._associate_with_project(
            "POV", POVS, "povIds", pov_id, project_id, "pov_project_association", "povId"
        )

    def associate_trr_with_project(self, trr_id: str, project_id: str) -> Result[Record]:
        return self._associate_with_project(
            "TRR", TRRS, "trrIds", trr_id, project_id, "trr_project_association", "trrId"
        )

    def associate_scenario_with_project(self, scenario_id: str, project_id: str) -> Result[Record]:
        return self._associate_with_project(
            "Scenario", SCENARIOS, "scenarioIds", scenario_id, project_id, "scenario_project_association", "scenarioId"
        )

    # ─────────────────────────────────────────────────────────────────────
    # Graph, validation, repair
    # ─────────────────────────────────────────────────────────────────────

    def get_project_relationship_graph(self, project_id: str) -> RelationshipGraph | None:
        """Load the project's records and index their links (``None`` if no project)."""
        project = self.db.find_one(PROJECTS, project_id)
        if project is None:
            return None

        in_project = QueryOptions(filters=[equals("projectId", project_id)])
        graph = RelationshipGraph(
            project_id=project_id,
            project=project,
            povs=self.db.find_many(POVS, in_project),
            trrs=self.db.find_many(TRRS, in_project),
            scenarios=self.db.find_many(SCENARIOS, in_project),
        )

        for trr in graph.trrs:
            pov_id = trr.get("povId")
            if pov_id:
                graph.trr_to_pov[trr["id"]] = pov_id
                graph.pov_to_trrs.setdefault(pov_id, []).append(trr["id"])

        for pov in graph.povs:
            scenario_ids = _test_plan_scenarios(pov)
            if scenario_ids:
                graph.pov_to_scenarios[pov["id"]] = scenario_ids
                for scenario_id in scenario_ids:
                    graph.scenario_to_pov[scenario_id] = pov["id"]

        return graph

    def validate_relationships(self, project_id: str) -> RelationshipValidation:
        graph = self.get_project_relationship_graph(project_id)
        if graph is None:
            return RelationshipValidation(valid=False, errors=["Project not found"])

        errors: list[str] = []
        warnings: list[str] = []
        pov_ids = {pov["id"] for pov in graph.povs}
        trr_ids = {trr["id"] for trr in graph.trrs}
        scenario_ids = {scenario["id"] for scenario in graph.scenarios}

        for kind, records in (("TRR", graph.trrs), ("Scenario", graph.scenarios)):
            for record in records:
                pov_id = record.get("povId")
                if not pov_id:
                    warnings.append(f"{_label(kind, record)} is not associated with any POV")
                elif pov_id not in pov_ids:
                    errors.append(f"{_label(kind, record)} references non-existent POV {pov_id}")

        for pov in graph.povs:
            for scenario_id in _test_plan_scenarios(pov):
                if scenario_id not in scenario_ids:
                    errors.append(f"{_label('POV', pov)} references non-existent scenario {scenario_id}")
            for trr_id in pov.get("trrIds") or []:
                if trr_id not in trr_ids:
                    errors.append(f"{_label('POV', pov)} references non-existent TRR {trr_id}")

        project = graph.project
        for array_field, kind, known in (
            ("povIds", "POV", pov_ids),
            ("trrIds", "TRR", trr_ids),
            ("scenarioIds", "scenario", scenario_ids),
        ):
            for child_id in project.get(array_field) or []:
                if child_id not in known:
                    errors.append(f"{_label('Project', project)} references non-existent {kind} {child_id}")

        return RelationshipValidation(valid=not errors, errors=errors, warnings=warnings)

    def _repair(self, collection: str, record_id: str, field_name: str, value: Any) -> None:
        self.db.update(collection, record_id, {field_name: value, "lastModifiedBy": self.actor})
        logger.info("relationship_repaired", collection=collection, record_id=record_id, field=field_name)

    def repair_relationships(self, project_id: str) -> RepairResult:
        """Null dangling references and drop dangling ids from arrays."""
        with LogContext(project_id=project_id):
            graph = self.get_project_relationship_graph(project_id)
            if graph is None:
                return RepairResult(errors=["Project not found"])
            return self._repair_graph(graph)

    def _repair_graph(self, graph: RelationshipGraph) -> RepairResult:
        project_id = graph.project_id
        result = RepairResult()
        pov_ids = {pov["id"] for pov in graph.povs}
        trr_ids = {trr["id"] for trr in graph.trrs}
        scenario_ids = {scenario["id"] for scenario in graph.scenarios}

        for collection, records in ((TRRS, graph.trrs), (SCENARIOS, graph.scenarios)):
            for record in records:
                pov_id = record.get("povId")
                if pov_id and pov_id not in pov_ids:
                    self._repair(collection, record["id"], "povId", None)
                    result.fixed += 1

        for pov in graph.povs:
            scenarios = _test_plan_scenarios(pov)
            valid_scenarios = [s for s in scenarios if s in scenario_ids]
            if valid_scenarios != scenarios:
                self._repair(POVS, pov["id"], "testPlan", {**pov["testPlan"], "scenarios": valid_scenarios})
                result.fixed += 1
            linked = list(pov.get("trrIds") or [])
            valid_trrs = [t for t in linked if t in trr_ids]
            if valid_trrs != linked:
                self._repair(POVS, pov["id"], "trrIds", valid_trrs)
                result.fixed += 1

        project = graph.project
        for array_field, known in (("povIds", pov_ids), ("trrIds", trr_ids), ("scenarioIds", scenario_ids)):
            linked = list(project.get(array_field) or [])
            valid = [child_id for child_id in linked if child_id in known]
            if valid != linked:
                self._repair(PROJECTS, project_id, array_field, valid)
                result.fixed += 1

        logger.info("relationships_repair_finished", fixed=result.fixed)
        return result

    # ─────────────────────────────────────────────────────────────────────
    # Lookups
    # ─────────────────────────────────────────────────────────────────────

    def get_pov_for_trr(self, trr_id: str) -> Record | None:
        trr = self.db.find_one(TRRS, trr_id)
        if trr is None or not trr.get("povId"):
            return None
        return self.db.find_one(POVS, trr["povId"])

    def get_trrs_for_pov(self, pov_id: str) -> list[Record]:
        return self.db.find_many(TRRS, QueryOptions(filters=[equals("povId", pov_id)]))

    def get_scenarios_for_pov(self, pov_id: str) -> list[Record]:
        pov = self.db.find_one(POVS, pov_id)
        if pov is None:
            return []
        scenarios = (self.db.find_one(SCENARIOS, scenario_id) for scenario_id in _test_plan_scenarios(pov))
        return [scenario for scenario in scenarios if scenario is not None]


__all__ = [
    "RelationshipGraph",
    "RelationshipValidation",
    "RepairResult",
    "RelationshipManager",
]
