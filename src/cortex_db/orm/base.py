"""Declarative base and shared record columns for the relational store.

Uses SQLAlchemy 2.0 ``DeclarativeBase`` with a ``type_annotation_map``
that maps Python built-in types to portable SA column types.

Mixins
------
* **RecordMixin** — ``id``, ``createdAt``, ``updatedAt`` and the
  ``attributes`` JSON catch-all that every collection table carries.

Mapped attribute names are the record keys the adapters exchange
(``createdAt``); the physical column names are snake_case
(``created_at``).
"""

from __future__ import annotations

import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class CortexBase(DeclarativeBase):
    """Shared declarative base for every cortex-db table.

    * ``str``   → ``Text``
    * ``int``   → ``Integer``
    * ``bool``  → ``Boolean``
    * ``datetime.datetime`` → ``DateTime(timezone=True)``
    * ``dict``  → ``JSON``
    * ``list``  → ``JSON``
    """

    type_annotation_map = {
        str: Text,
        int: Integer,
        bool: Boolean,
        datetime.datetime: DateTime(timezone=True),
        dict: JSON,
        list: JSON,
        dict[str, Any]: JSON,
        list[str]: JSON,
    }


class RecordMixin:
    """System columns shared by all collection tables.

    ``attributes`` holds every caller field that has no typed column, so
    the relational adapter stays generic over record shape.
    """

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    createdAt: Mapped[datetime.datetime] = mapped_column("created_at", nullable=False)
    updatedAt: Mapped[datetime.datetime] = mapped_column("updated_at", nullable=False)
    attributes: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
