"""SQLite-backed record store using raw sqlite3."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Generator, Optional

from metabolic.db.schema import get_schema_sql
from metabolic.db.store import Filter, RecordKind, Row, matches_filter
from metabolic.exceptions import StoreUnavailableError


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return {"$datetime": value.isoformat()}
    if isinstance(value, date):
        return {"$date": value.isoformat()}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _decode(obj: dict) -> Any:
    if len(obj) == 1:
        if "$datetime" in obj:
            return datetime.fromisoformat(obj["$datetime"])
        if "$date" in obj:
            return date.fromisoformat(obj["$date"])
    return obj


def dumps(fields: Row) -> str:
    """Serialize a row, preserving date and datetime values."""
    return json.dumps(fields, default=_encode)


def loads(text: str) -> Row:
    """Inverse of :func:`dumps`."""
    return json.loads(text, object_hook=_decode)


class SQLiteStore:
    """RecordStore persisting JSON documents in a single SQLite table.

    sqlite3 is blocking, so every primitive runs in a worker thread.
    Connection failures surface as StoreUnavailableError.
    """

    def __init__(self, db_path: Path):
        """Initialize the store.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        """Create parent directories if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for database connections.

        Yields:
            sqlite3.Connection with Row factory enabled
        """
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.OperationalError as e:
            raise StoreUnavailableError(f"Cannot open {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.OperationalError as e:
            conn.rollback()
            raise StoreUnavailableError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize_schema(self) -> None:
        """Create all tables if they don't exist."""
        with self.get_connection() as conn:
            conn.executescript(get_schema_sql())

    def _list(self, kind: RecordKind, filter: Optional[Filter]) -> list[Row]:
        with self.get_connection() as conn:
            rows = conn.execute(
                "SELECT record_id, data_json FROM records WHERE kind = ? ORDER BY rowid",
                (RecordKind(kind).value,),
            ).fetchall()

        result = []
        for row in rows:
            data = loads(row["data_json"])
            data["id"] = row["record_id"]
            if matches_filter(data, filter):
                result.append(data)
        return result

    def _create(self, kind: RecordKind, fields: Row) -> Row:
        record_id = fields.get("id") or uuid.uuid4().hex
        data = {k: v for k, v in fields.items() if k != "id"}
        with self.get_connection() as conn:
            conn.execute(
                "INSERT INTO records (record_id, kind, data_json) VALUES (?, ?, ?)",
                (record_id, RecordKind(kind).value, dumps(data)),
            )
        return {**data, "id": record_id}

    def _update(self, kind: RecordKind, record_id: str, fields: Row) -> Row:
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT data_json FROM records WHERE record_id = ? AND kind = ?",
                (record_id, RecordKind(kind).value),
            ).fetchone()
            if row is None:
                raise KeyError(f"No {RecordKind(kind).value} record with id {record_id!r}")

            data = loads(row["data_json"])
            data.update({k: v for k, v in fields.items() if k != "id"})
            conn.execute(
                """
                UPDATE records SET data_json = ?, updated_at = CURRENT_TIMESTAMP
                WHERE record_id = ?
                """,
                (dumps(data), record_id),
            )
        return {**data, "id": record_id}

    async def list(self, kind: RecordKind, filter: Optional[Filter] = None) -> list[Row]:
        return await asyncio.to_thread(self._list, kind, filter)

    async def create(self, kind: RecordKind, fields: Row) -> Row:
        return await asyncio.to_thread(self._create, kind, fields)

    async def update(self, kind: RecordKind, record_id: str, fields: Row) -> Row:
        return await asyncio.to_thread(self._update, kind, record_id, fields)
