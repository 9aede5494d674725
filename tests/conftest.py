"""
Shared pytest fixtures for cortex-db tests.

This module provides:
- Environment / settings / factory isolation for every test
- ``relational_db``: SQLAlchemy adapter on in-memory SQLite with the schema created
- ``document_db``: Firestore adapter over an in-memory fake client
- ``db``: parametrized over both adapters for contract tests
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from google.cloud import firestore

from cortex_db.adapters.document import DocumentStoreAdapter
from cortex_db.adapters.factory import AdapterFactory
from cortex_db.adapters.relational import RelationalAdapter
from cortex_db.settings import clear_settings_cache
from tests._support.fake_firestore import FakeFirestoreClient, fake_transactional

_ENV_VARS = (
    "DEPLOYMENT_MODE",
    "NEXT_PUBLIC_DEPLOYMENT_MODE",
    "DATABASE_URL",
    "CORTEX_DEPLOYMENT_MODE",
    "CORTEX_DATABASE_URL",
    "CORTEX_FIRESTORE_BATCH_LIMIT",
    "CORTEX_LOG_LEVEL",
    "CORTEX_LOG_FORMAT",
)


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Iterator[None]:
    """Start every test with no deployment env vars, no .env and a fresh factory."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    AdapterFactory.reset()
    yield
    AdapterFactory.reset()
    clear_settings_cache()


@pytest.fixture
def fake_client(monkeypatch: pytest.MonkeyPatch) -> FakeFirestoreClient:
    monkeypatch.setattr(firestore, "transactional", fake_transactional)
    return FakeFirestoreClient()


@pytest.fixture
def document_db(fake_client: FakeFirestoreClient) -> DocumentStoreAdapter:
    return DocumentStoreAdapter(client=fake_client)


@pytest.fixture
def relational_db() -> Iterator[RelationalAdapter]:
    adapter = RelationalAdapter("sqlite://")
    adapter.create_schema()
    yield adapter
    adapter.disconnect()


@pytest.fixture(params=["relational", "document"])
def db(request: pytest.FixtureRequest):
    """Each contract test runs once per back-end."""
    return request.getfixturevalue(f"{request.param}_db")
