"""Record store interface.

The engine never talks to a database directly. It sees an opaque keyed
document store with three primitives (list, create, update) over a fixed
set of record kinds. Rows are plain dicts that always carry an ``id``.

Filters are mappings of field name to a single condition::

    {"eaten_at": {"between": [start, end]}}
    {"date": {"eq": date(2026, 1, 15)}}
    {"date": {"lt": date(2026, 1, 15)}}

Supported operators: eq, lt, le, gt, ge, between (inclusive).
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Protocol

from metabolic.dates import parse_timestamp

Row = dict[str, Any]
Filter = dict[str, dict[str, Any]]

_OPERATORS = ("eq", "lt", "le", "gt", "ge", "between")


class RecordKind(str, Enum):
    """Record kinds reachable through the store."""

    MEAL = "Meal"
    FOOD_LOG = "FoodLog"
    WEIGHT_LOG = "WeightLog"
    DAILY_LOG = "DailyLog"
    COMPUTED_STATE = "ComputedState"
    USER_PROFILE = "UserProfile"


class RecordStore(Protocol):
    """Async keyed document store."""

    async def list(self, kind: RecordKind, filter: Optional[Filter] = None) -> list[Row]:
        ...

    async def create(self, kind: RecordKind, fields: Row) -> Row:
        ...

    async def update(self, kind: RecordKind, record_id: str, fields: Row) -> Row:
        ...


def _coerce(value: Any, like: Any) -> Any:
    """Bring a stored value into a type comparable with a filter operand."""
    if isinstance(like, datetime):
        if isinstance(value, str):
            value = parse_timestamp(value)
        if isinstance(value, datetime):
            # Naive timestamps are local to the operand's zone
            if value.tzinfo is None and like.tzinfo is not None:
                value = value.replace(tzinfo=like.tzinfo)
            elif value.tzinfo is not None and like.tzinfo is None:
                value = value.replace(tzinfo=None)
        return value
    if isinstance(like, date) and isinstance(value, str):
        return date.fromisoformat(value[:10])
    return value


def _check(value: Any, op: str, operand: Any) -> bool:
    if op == "between":
        low, high = operand
        value = _coerce(value, low)
        return low <= value <= high
    value = _coerce(value, operand)
    if op == "eq":
        return value == operand
    if op == "lt":
        return value < operand
    if op == "le":
        return value <= operand
    if op == "gt":
        return value > operand
    return value >= operand


def matches_filter(row: Row, filter: Optional[Filter]) -> bool:
    """Return True if ``row`` satisfies every condition in ``filter``.

    A row missing a filtered field (or holding None there) never matches.
    """
    if not filter:
        return True
    for field_name, condition in filter.items():
        value = row.get(field_name)
        if value is None:
            return False
        for op, operand in condition.items():
            if op not in _OPERATORS:
                raise ValueError(f"Unsupported filter operator: {op!r}")
            try:
                if not _check(value, op, operand):
                    return False
            except (TypeError, ValueError):
                # Incomparable values (e.g. an unparsable timestamp) never match
                return False
    return True
