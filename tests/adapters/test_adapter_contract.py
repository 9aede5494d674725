"""Behaviour every adapter must share, run against both back-ends."""

from datetime import datetime

import pytest

from cortex_db.errors import InvalidOperatorError, RecordNotFoundError, TransactionClosedError
from cortex_db.query import QueryFilter, QueryOptions, where
from tests._support import ids, without_stamps


class _Abort(Exception):
    pass


class TestCreateAndRead:
    def test_round_trip(self, db):
        created = db.create("povs", {"projectId": "P1", "title": "Edge rollout", "priority": 2})

        assert created["id"]
        assert isinstance(created["createdAt"], datetime)
        assert created["createdAt"].tzinfo is not None
        assert created["createdAt"] == created["updatedAt"]

        found = db.find_one("povs", created["id"])
        assert without_stamps(found) == {
            "id": created["id"],
            "projectId": "P1",
            "title": "Edge rollout",
            "priority": 2,
        }

    def test_caller_id_is_kept(self, db):
        created = db.create("trrs", {"id": "T-100", "title": "Check"})
        assert created["id"] == "T-100"
        assert db.find_one("trrs", "T-100")["title"] == "Check"

    def test_caller_timestamps_are_replaced(self, db):
        stale = datetime(2001, 1, 1)
        created = db.create("trrs", {"createdAt": stale, "updatedAt": stale})
        assert created["createdAt"].year != 2001

    def test_find_one_missing(self, db):
        assert db.find_one("povs", "nope") is None

    def test_exists(self, db):
        created = db.create("povs", {"title": "x"})
        assert db.exists("povs", created["id"]) is True
        assert db.exists("povs", "nope") is False

    @pytest.mark.parametrize("collection", ["povs", "trrs", "scenarios", "projects"])
    def test_free_form_fields_keep_their_types(self, db, collection):
        payload = {
            "title": 42,
            "status": True,
            "owner": {"name": "ana", "team": ["edge"]},
            "label": {"en": "x"},
        }
        created = db.create(collection, payload)
        assert without_stamps(db.find_one(collection, created["id"])) == {
            "id": created["id"],
            **payload,
        }


class TestUpdate:
    def test_merges_patch(self, db):
        created = db.create("povs", {"title": "Draft", "status": "draft", "notes": "keep"})
        updated = db.update("povs", created["id"], {"status": "active"})

        assert updated["status"] == "active"
        assert updated["title"] == "Draft"
        assert updated["notes"] == "keep"

    def test_updated_at_strictly_later(self, db):
        created = db.create("povs", {"title": "x"})
        updated = db.update("povs", created["id"], {"title": "y"})
        assert updated["updatedAt"] > created["updatedAt"]
        assert updated["createdAt"] == created["createdAt"]

    def test_id_and_created_at_are_immutable(self, db):
        created = db.create("povs", {"title": "x"})
        updated = db.update(
            "povs", created["id"], {"id": "hijack", "createdAt": datetime(1999, 1, 1), "title": "y"}
        )
        assert updated["id"] == created["id"]
        assert updated["createdAt"] == created["createdAt"]
        assert db.find_one("povs", "hijack") is None

    def test_missing_record(self, db):
        with pytest.raises(RecordNotFoundError):
            db.update("povs", "nope", {"title": "x"})

    def test_reference_set_to_null_is_kept(self, db):
        created = db.create("trrs", {"projectId": "P1", "povId": "V1"})
        db.update("trrs", created["id"], {"povId": None})
        found = db.find_one("trrs", created["id"])
        assert found["povId"] is None
        assert found["projectId"] == "P1"


class TestDelete:
    def test_delete(self, db):
        created = db.create("povs", {"title": "x"})
        db.delete("povs", created["id"])
        assert db.find_one("povs", created["id"]) is None

    def test_delete_is_idempotent(self, db):
        db.delete("povs", "never-existed")
        created = db.create("povs", {"title": "x"})
        db.delete("povs", created["id"])
        db.delete("povs", created["id"])


class TestBatches:
    def test_create_many_in_order(self, db):
        records = db.create_many("trrs", [{"title": f"T{i}"} for i in range(3)])
        assert [r["title"] for r in records] == ["T0", "T1", "T2"]
        assert all(db.exists("trrs", r["id"]) for r in records)

    def test_update_many(self, db):
        records = db.create_many("trrs", [{"status": "open"}, {"status": "open"}])
        db.update_many("trrs", ids(records), {"status": "closed"})
        assert [db.find_one("trrs", i)["status"] for i in ids(records)] == ["closed", "closed"]

    def test_update_many_missing_id(self, db):
        record = db.create("trrs", {"status": "open"})
        with pytest.raises(RecordNotFoundError):
            db.update_many("trrs", [record["id"], "nope"], {"status": "closed"})
        assert db.find_one("trrs", record["id"])["status"] == "open"

    def test_delete_many(self, db):
        records = db.create_many("trrs", [{}, {}, {}])
        db.delete_many("trrs", ids(records)[:2] + ["missing"])
        assert db.count("trrs") == 1

    def test_empty_batches(self, db):
        assert db.create_many("trrs", []) == []
        db.update_many("trrs", [], {"status": "x"})
        db.delete_many("trrs", [])


class TestQueries:
    @pytest.fixture
    def scores(self, db):
        return db.create_many(
            "test_records",
            [
                {"name": "a", "score": 10, "group": "g1", "tags": ["red", "blue"]},
                {"name": "b", "score": 20, "group": "g1", "tags": ["blue"]},
                {"name": "c", "score": 30, "group": "g2", "tags": []},
            ],
        )

    def test_no_options_returns_everything(self, db, scores):
        assert sorted(r["name"] for r in db.find_many("test_records")) == ["a", "b", "c"]

    @pytest.mark.parametrize(
        "condition, expected",
        [
            (where("score", "==", 20), ["b"]),
            (where("score", "!=", 20), ["a", "c"]),
            (where("score", ">", 10), ["b", "c"]),
            (where("score", ">=", 20), ["b", "c"]),
            (where("score", "<", 30), ["a", "b"]),
            (where("score", "<=", 10), ["a"]),
            (where("group", "in", ["g2", "g9"]), ["c"]),
            (where("tags", "array-contains", "blue"), ["a", "b"]),
        ],
    )
    def test_comparators(self, db, scores, condition, expected):
        results = db.find_many("test_records", QueryOptions(filters=[condition]))
        assert sorted(r["name"] for r in results) == expected

    def test_filters_are_and_combined(self, db, scores):
        options = QueryOptions(filters=[where("group", "==", "g1"), where("score", ">", 10)])
        assert [r["name"] for r in db.find_many("test_records", options)] == ["b"]

    def test_order_and_limit(self, db, scores):
        options = QueryOptions(order_by="score", order_direction="desc", limit=2)
        assert [r["name"] for r in db.find_many("test_records", options)] == ["c", "b"]

    def test_typed_column_filter(self, db):
        db.create_many("povs", [{"projectId": "P1"}, {"projectId": "P1"}, {"projectId": "P2"}])
        assert db.count("povs", QueryOptions(filters=[where("projectId", "==", "P1")])) == 2

    def test_nested_field_path(self, db):
        db.create("povs", {"id": "V1", "testPlan": {"scenarios": ["S1", "S2"]}})
        db.create("povs", {"id": "V2", "testPlan": {"scenarios": ["S3"]}})
        options = QueryOptions(filters=[where("testPlan.scenarios", "array-contains", "S1")])
        assert [r["id"] for r in db.find_many("povs", options)] == ["V1"]

    def test_count_ignores_limit(self, db, scores):
        assert db.count("test_records", QueryOptions(limit=1)) == 3
        assert db.count("test_records", QueryOptions(filters=[where("group", "==", "g1")])) == 2

    def test_find_by_field(self, db, scores):
        assert db.find_by_field("test_records", "name", "b")["score"] == 20
        assert db.find_by_field("test_records", "name", "zzz") is None

    def test_invalid_operator(self, db):
        with pytest.raises(InvalidOperatorError):
            db.find_many("test_records", QueryOptions(filters=[QueryFilter("name", "like", "a%")]))


class TestTransactions:
    def test_commit(self, db):
        pov = db.create("povs", {"title": "V", "trrIds": []})

        def link(tx):
            current = tx.find_one("povs", pov["id"])
            trr = tx.create("trrs", {"povId": pov["id"], "title": "T"})
            tx.update("povs", pov["id"], {"trrIds": current["trrIds"] + [trr["id"]]})
            return trr

        trr = db.transaction(link)
        assert db.find_one("trrs", trr["id"])["povId"] == pov["id"]
        assert db.find_one("povs", pov["id"])["trrIds"] == [trr["id"]]

    def test_raising_callback_leaves_no_writes(self, db):
        pov = db.create("povs", {"title": "before"})

        def fail(tx):
            tx.update("povs", pov["id"], {"title": "after"})
            tx.create("trrs", {"id": "T-ghost"})
            raise _Abort()

        with pytest.raises(_Abort):
            db.transaction(fail)

        assert db.find_one("trrs", "T-ghost") is None
        assert db.find_one("povs", pov["id"])["title"] == "before"

    def test_update_missing_inside_transaction(self, db):
        with pytest.raises(RecordNotFoundError):
            db.transaction(lambda tx: tx.update("povs", "nope", {"title": "x"}))

    def test_handle_unusable_after_callback(self, db):
        handle = db.transaction(lambda tx: tx)
        assert handle.closed
        with pytest.raises(TransactionClosedError):
            handle.find_one("povs", "x")
        with pytest.raises(TransactionClosedError):
            handle.create("povs", {})


class TestLifecycle:
    def test_context_manager(self, db):
        with db as active:
            assert active.is_connected
        assert not db.is_connected
