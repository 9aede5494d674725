"""
Test support utilities for cortex-db tests.

Helpers that are not fixtures but are shared by several test modules.
"""

from __future__ import annotations

from typing import Any

STAMPED_FIELDS = ("createdAt", "updatedAt")


def without_stamps(record: dict[str, Any] | None) -> dict[str, Any] | None:
    """Copy of ``record`` without the adapter-stamped timestamp fields."""
    if record is None:
        return None
    return {k: v for k, v in record.items() if k not in STAMPED_FIELDS}


def ids(records: list[dict[str, Any]]) -> list[str]:
    return [r["id"] for r in records]
