"""In-process record store."""

from __future__ import annotations

import copy
import itertools
from typing import Optional

from metabolic.db.store import Filter, RecordKind, Row, matches_filter
from metabolic.exceptions import StoreUnavailableError


class InMemoryStore:
    """Dict-backed RecordStore.

    Rows are kept in insertion order per kind, which makes ``list`` results
    deterministic. Setting ``available = False`` makes every call raise
    StoreUnavailableError.
    """

    def __init__(self) -> None:
        self._rows: dict[RecordKind, dict[str, Row]] = {kind: {} for kind in RecordKind}
        self._ids = itertools.count(1)
        self.available = True
        self.create_calls = 0
        self.update_calls = 0

    def _ensure_available(self) -> None:
        if not self.available:
            raise StoreUnavailableError("In-memory store marked unavailable")

    async def list(self, kind: RecordKind, filter: Optional[Filter] = None) -> list[Row]:
        self._ensure_available()
        return [
            copy.deepcopy(row)
            for row in self._rows[RecordKind(kind)].values()
            if matches_filter(row, filter)
        ]

    async def create(self, kind: RecordKind, fields: Row) -> Row:
        self._ensure_available()
        kind = RecordKind(kind)
        record_id = fields.get("id") or f"{kind.value.lower()}-{next(self._ids)}"
        row = {**copy.deepcopy(fields), "id": record_id}
        self._rows[kind][record_id] = row
        self.create_calls += 1
        return copy.deepcopy(row)

    async def update(self, kind: RecordKind, record_id: str, fields: Row) -> Row:
        self._ensure_available()
        kind = RecordKind(kind)
        if record_id not in self._rows[kind]:
            raise KeyError(f"No {kind.value} record with id {record_id!r}")
        row = self._rows[kind][record_id]
        row.update(copy.deepcopy({k: v for k, v in fields.items() if k != "id"}))
        self.update_calls += 1
        return copy.deepcopy(row)

    def count(self, kind: RecordKind) -> int:
        """Number of stored rows of ``kind``."""
        return len(self._rows[RecordKind(kind)])
