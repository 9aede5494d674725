"""Back-end self-check.

Runs a fixed sequence of checks against the active adapter and reports how
much of the contract works in the current deployment.  Used by
``cortex-db db diagnose`` after a migration between back-ends.

Checks
------
Database Connection      connect() and is_connected
CRUD Operations          create / find_one / update / delete on ``test_records``
Query Operations         filtered, ordered, limited find_many + exists + count
Transaction Support      commit of two creates, rollback of a raising callback
Relationship Integrity   sample TRR -> POV and Project -> POV references resolve

A failing check does not stop the run; its error is captured in the report
and logged.  ``overall`` is ``passed`` when every check passes, ``failed``
when none does and ``partial`` otherwise.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from cortex_db.adapters.base import DatabaseAdapter
from cortex_db.adapters.factory import AdapterFactory, DatabaseMode, get_database
from cortex_db.logging import get_logger
from cortex_db.query import QueryOptions, where
from cortex_db.timestamps import generate_id, utc_now

logger = get_logger(__name__)

TEST_COLLECTION = "test_records"

BACKEND_MODES: dict[str, DatabaseMode] = {
    "relational": DatabaseMode.SELF_HOSTED,
    "document": DatabaseMode.FIREBASE,
}


class CheckResult(BaseModel):
    """Outcome of one diagnostic check."""

    test: str
    passed: bool
    duration_ms: float
    error: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class DiagnosticsSummary(BaseModel):
    total: int
    passed: int
    failed: int
    duration_ms: float


class DiagnosticsReport(BaseModel):
    overall: Literal["passed", "partial", "failed"]
    timestamp: datetime = Field(default_factory=utc_now)
    mode: DatabaseMode
    results: list[CheckResult]
    summary: DiagnosticsSummary


class _RolledBack(Exception):
    """Raised inside the rollback check to abort its transaction."""


class DiagnosticsService:
    """Runs the diagnostic checks against ``db`` (default: the factory adapter)."""

    def __init__(self, db: DatabaseAdapter | None = None, mode: DatabaseMode | None = None):
        self._db = db
        self._mode = mode

    @property
    def mode(self) -> DatabaseMode:
        """Explicit ``mode``, otherwise the one matching the adapter's back-end."""
        if self._mode is None:
            self._mode = BACKEND_MODES.get(getattr(self.db, "backend", None)) or AdapterFactory.resolve_mode()
        return self._mode

    @property
    def db(self) -> DatabaseAdapter:
        if self._db is None:
            self._db = get_database()
        return self._db

    def run(self) -> DiagnosticsReport:
        started = time.monotonic()
        checks: list[tuple[str, Callable[[], dict[str, Any]]]] = [
            ("Database Connection", self.check_connection),
            ("CRUD Operations", self.check_crud),
            ("Query Operations", self.check_queries),
            ("Transaction Support", self.check_transactions),
            ("Relationship Integrity", self.check_relationships),
        ]
        results = [self._run_check(name, fn) for name, fn in checks]

        passed = sum(1 for r in results if r.passed)
        failed = len(results) - passed
        if failed == 0:
            overall = "passed"
        elif passed > 0:
            overall = "partial"
        else:
            overall = "failed"

        report = DiagnosticsReport(
            overall=overall,
            mode=self.mode,
            results=results,
            summary=DiagnosticsSummary(
                total=len(results),
                passed=passed,
                failed=failed,
                duration_ms=round((time.monotonic() - started) * 1000, 2),
            ),
        )
        logger.info("diagnostics_finished", overall=overall, passed=passed, failed=failed, mode=self.mode.value)
        return report

    def _run_check(self, name: str, fn: Callable[[], dict[str, Any]]) -> CheckResult:
        start = time.monotonic()
        try:
            details = fn()
        except Exception as exc:  # noqa: BLE001
            elapsed = round((time.monotonic() - start) * 1000, 2)
            logger.warning("diagnostic_check_failed", check=name, error=str(exc))
            return CheckResult(test=name, passed=False, duration_ms=elapsed, error=str(exc)[:200])
        elapsed = round((time.monotonic() - start) * 1000, 2)
        return CheckResult(test=name, passed=True, duration_ms=elapsed, details=details)

    # ── Checks ───────────────────────────────────────────────────────────

    def check_connection(self) -> dict[str, Any]:
        if not self.db.is_connected:
            self.db.connect()
        if not self.db.is_connected:
            raise RuntimeError("Adapter reports not connected after connect()")
        return {"connected": True, "adapter": type(self.db).__name__}

    def check_crud(self) -> dict[str, Any]:
        db = self.db
        test_id = f"test-{generate_id()}"

        created = db.create(TEST_COLLECTION, {"id": test_id, "name": "Test Record", "value": 123})
        if created.get("id") != test_id:
            raise RuntimeError("Create operation failed")

        found = db.find_one(TEST_COLLECTION, test_id)
        if found is None or found.get("id") != test_id:
            raise RuntimeError("Read operation failed")

        updated = db.update(TEST_COLLECTION, test_id, {"value": 456})
        if updated.get("value") != 456 or updated["updatedAt"] <= created["updatedAt"]:
            raise RuntimeError("Update operation failed")

        db.delete(TEST_COLLECTION, test_id)
        if db.find_one(TEST_COLLECTION, test_id) is not None:
            raise RuntimeError("Delete operation failed")

        return {"operations": ["create", "read", "update", "delete"]}

    def check_queries(self) -> dict[str, Any]:
        db = self.db
        batch = f"diag-{generate_id()}"
        records = db.create_many(
            TEST_COLLECTION,
            [{"name": "Query Test", "batch": batch, "value": value} for value in (1, 2, 3)],
        )
        try:
            options = QueryOptions(
                filters=[where("batch", "==", batch)],
                order_by="value",
                order_direction="desc",
                limit=2,
            )
            results = db.find_many(TEST_COLLECTION, options)
            if [r.get("value") for r in results] != [3, 2]:
                raise RuntimeError("Filtered query returned unexpected records")
            if not db.exists(TEST_COLLECTION, records[0]["id"]):
                raise RuntimeError("Exists check failed")
            total = db.count(TEST_COLLECTION, QueryOptions(filters=[where("batch", "==", batch)]))
            if total != len(records):
                raise RuntimeError(f"Count returned {total}, expected {len(records)}")
        finally:
            db.delete_many(TEST_COLLECTION, [r["id"] for r in records])

        return {"resultCount": len(results), "totalCount": total}

    def check_transactions(self) -> dict[str, Any]:
        db = self.db
        first, second = f"test-txn-1-{generate_id()}", f"test-txn-2-{generate_id()}"

        def commit(tx):
            tx.create(TEST_COLLECTION, {"id": first, "name": "Transaction Test 1"})
            tx.create(TEST_COLLECTION, {"id": second, "name": "Transaction Test 2"})

        db.transaction(commit)
        try:
            if db.find_one(TEST_COLLECTION, first) is None or db.find_one(TEST_COLLECTION, second) is None:
                raise RuntimeError("Transaction records not found")
        finally:
            db.delete_many(TEST_COLLECTION, [first, second])

        aborted = f"test-txn-rollback-{generate_id()}"

        def rollback(tx):
            tx.create(TEST_COLLECTION, {"id": aborted, "name": "Rollback Test"})
            raise _RolledBack()

        try:
            db.transaction(rollback)
        except _RolledBack:
            pass
        if db.find_one(TEST_COLLECTION, aborted) is not None:
            db.delete(TEST_COLLECTION, aborted)
            raise RuntimeError("Aborted transaction left a record behind")

        return {"commit": True, "rollback": True}

    def check_relationships(self) -> dict[str, Any]:
        db = self.db
        sample = QueryOptions(limit=5)
        valid = 0

        trrs = db.find_many("trrs", sample)
        for trr in trrs:
            if trr.get("povId") and db.exists("povs", trr["povId"]):
                valid += 1

        projects = db.find_many("projects", sample)
        for project in projects:
            for pov_id in project.get("povIds") or []:
                if db.exists("povs", pov_id):
                    valid += 1

        return {"validRelationships": valid, "totalChecked": len(trrs) + len(projects)}


__all__ = [
    "CheckResult",
    "DiagnosticsSummary",
    "DiagnosticsReport",
    "DiagnosticsService",
]
