"""Record store implementations."""

from __future__ import annotations

from metabolic.db.memory import InMemoryStore
from metabolic.db.sqlite import SQLiteStore
from metabolic.db.store import Filter, RecordKind, RecordStore, Row, matches_filter

__all__ = [
    "Filter",
    "InMemoryStore",
    "RecordKind",
    "RecordStore",
    "Row",
    "SQLiteStore",
    "matches_filter",
]
