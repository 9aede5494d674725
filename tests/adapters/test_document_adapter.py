"""Tests for the Firestore document adapter over the in-memory fake client."""

import pytest

from cortex_db.adapters.document import DocumentStoreAdapter
from cortex_db.errors import RecordNotFoundError, UnsupportedOperationError
from cortex_db.query import QueryOptions, where
from tests._support import ids
from tests._support.fake_firestore import FakeWriteBatch

pytestmark = pytest.mark.document


class TestConstruction:
    def test_connected_without_handshake(self, document_db):
        assert document_db.is_connected is True
        document_db.disconnect()
        assert document_db.is_connected is False
        document_db.connect()
        assert document_db.is_connected is True

    def test_batch_limit_from_settings(self, monkeypatch, fake_client):
        monkeypatch.setenv("CORTEX_FIRESTORE_BATCH_LIMIT", "50")
        assert DocumentStoreAdapter(client=fake_client).batch_limit == 50

    def test_explicit_batch_limit(self, fake_client):
        assert DocumentStoreAdapter(client=fake_client, batch_limit=3).batch_limit == 3


class TestDocuments:
    def test_auto_id_is_stored_in_body(self, document_db, fake_client):
        created = document_db.create("povs", {"title": "x"})
        stored = fake_client.raw("povs", created["id"])
        assert stored["id"] == created["id"]
        assert stored["title"] == "x"

    def test_free_form_collections(self, document_db):
        created = document_db.create("anything", {"nested": {"a": 1}})
        assert document_db.find_one("anything", created["id"])["nested"] == {"a": 1}

    def test_update_missing_maps_not_found(self, document_db):
        with pytest.raises(RecordNotFoundError) as exc_info:
            document_db.update("povs", "nope", {"title": "x"})
        assert exc_info.value.context.record_id == "nope"

    def test_nested_field_filter(self, document_db):
        document_db.create("povs", {"testPlan": {"owner": "kim"}})
        document_db.create("povs", {"testPlan": {"owner": "lee"}})
        options = QueryOptions(filters=[where("testPlan.owner", "==", "lee")])
        assert len(document_db.find_many("povs", options)) == 1


class TestQueries:
    def test_offset_unsupported(self, document_db):
        with pytest.raises(UnsupportedOperationError):
            document_db.find_many("povs", QueryOptions(offset=10))

    def test_zero_offset_allowed(self, document_db):
        document_db.create("povs", {})
        assert len(document_db.find_many("povs", QueryOptions(offset=0))) == 1

    def test_count_ignores_offset(self, document_db):
        document_db.create_many("povs", [{}, {}])
        assert document_db.count("povs", QueryOptions(offset=5)) == 2


class TestBatches:
    def test_single_commit_within_limit(self, document_db, fake_client):
        document_db.create_many("trrs", [{} for _ in range(10)])
        assert fake_client.batch_commits == 1

    def test_chunked_above_limit(self, fake_client):
        db = DocumentStoreAdapter(client=fake_client, batch_limit=3)
        records = db.create_many("trrs", [{"n": n} for n in range(7)])

        assert [r["n"] for r in records] == list(range(7))
        assert fake_client.batch_commits == 3

        db.delete_many("trrs", ids(records))
        assert fake_client.batch_commits == 6
        assert db.count("trrs") == 0

    def test_create_many_is_all_or_nothing(self, document_db, fake_client, monkeypatch):
        def reject(batch):
            raise RuntimeError("commit rejected")

        monkeypatch.setattr(FakeWriteBatch, "commit", reject)
        with pytest.raises(RuntimeError):
            document_db.create_many("trrs", [{"id": "T1"}, {"id": "T2"}])
        assert fake_client.raw("trrs", "T1") is None
        assert fake_client.raw("trrs", "T2") is None

    def test_update_many_reports_chunk_ids(self, document_db):
        record = document_db.create("trrs", {})
        with pytest.raises(RecordNotFoundError) as exc_info:
            document_db.update_many("trrs", [record["id"], "ghost"], {"status": "x"})
        assert exc_info.value.record_id == [record["id"], "ghost"]


class TestTransactions:
    def test_single_attempt(self, document_db, fake_client):
        document_db.transaction(lambda tx: None)
        assert fake_client.transactions[-1].max_attempts == 1
        assert fake_client.transactions[-1].committed

    def test_rollback_on_error(self, document_db, fake_client):
        def body(tx):
            tx.create("povs", {"id": "V1"})
            raise RuntimeError("stop")

        with pytest.raises(RuntimeError):
            document_db.transaction(body)
        assert fake_client.transactions[-1].rolled_back
        assert fake_client.raw("povs", "V1") is None

    def test_local_view_after_write(self, document_db):
        document_db.create("povs", {"id": "V1", "trrIds": []})

        def body(tx):
            pov = tx.find_one("povs", "V1")
            tx.update("povs", "V1", {"trrIds": pov["trrIds"] + ["T1"]})
            tx.create("trrs", {"id": "T1", "povId": "V1"})
            tx.delete("scenarios", "S1")
            return tx.find_one("povs", "V1"), tx.find_one("trrs", "T1"), tx.find_one("scenarios", "S1")

        pov, trr, scenario = document_db.transaction(body)
        assert pov["trrIds"] == ["T1"]
        assert trr["povId"] == "V1"
        assert scenario is None
        assert document_db.find_one("povs", "V1")["trrIds"] == ["T1"]
