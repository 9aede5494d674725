"""Database adapters -- one record-oriented contract for two back-end families.

Manifesto:
    The platform runs unmodified against a managed document store and a
    self-hosted relational database.  Without a common adapter contract,
    every service would embed Firestore calls or SQL and moving a
    deployment between the two would mean rewriting its data layer.

Architecture::

    DatabaseAdapter (base.py)         Abstract CRUD / batch / query / transaction contract
        |-- DocumentStoreAdapter      google-cloud-firestore (document.py)
        |-- RelationalAdapter         SQLAlchemy ORM, PostgreSQL or SQLite (relational.py)

    AdapterFactory (factory.py)       Mode resolution + process-wide memoized adapter

Modules
-------
base            DatabaseAdapter / DatabaseTransaction contracts
document        Firestore adapter
relational      SQLAlchemy adapter + collection -> table mapping
factory         DatabaseMode, AdapterFactory, get_database()

Guardrails:
    ❌ ``FirestoreClient().collection("povs")`` in domain code
    ✅ ``get_database().find_many("povs", options)``
    ❌ ``RelationalAdapter(url)`` inside a service
    ✅ inject the adapter, or call ``get_database()``
"""

from cortex_db.adapters.base import DatabaseAdapter, DatabaseTransaction, Record
from cortex_db.adapters.factory import AdapterFactory, DatabaseMode, get_database

__all__ = [
    "Record",
    "DatabaseAdapter",
    "DatabaseTransaction",
    "DatabaseMode",
    "AdapterFactory",
    "get_database",
]
