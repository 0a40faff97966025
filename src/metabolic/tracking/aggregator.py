"""Daily nutrition aggregation.

Collapses a local calendar day's meals, standalone food logs and weigh-ins
into one DailyLog row and classifies how completely the day was logged.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, tzinfo
from typing import Any, Optional, Sequence

from metabolic.dates import DateLike, day_bounds, parse_timestamp, to_aware, to_local_date
from metabolic.db.store import RecordKind, RecordStore, Row
from metabolic.exceptions import StoreUnavailableError
from metabolic.tracking.edge_cases import is_partial_logging
from metabolic.tracking.models import ComputedState, DailyLog, LogStatus

logger = logging.getLogger(__name__)

# (calories, protein, carbs, fat) field names per source kind
MEAL_FIELDS = ("total_calories", "total_protein", "total_carbs", "total_fat")
FOOD_LOG_FIELDS = ("calories", "protein", "carbs", "fat")


def _number(row: Row, name: str) -> float:
    value = row.get(name)
    return float(value) if value is not None else 0.0


def sum_nutrition(meals: Sequence[Row], food_logs: Sequence[Row]) -> tuple[float, float, float, float]:
    """Total calories and macros across meals and food logs.

    Both sources contribute; a food log is not assumed to duplicate a meal.
    """
    totals = [0.0, 0.0, 0.0, 0.0]
    for rows, names in ((meals, MEAL_FIELDS), (food_logs, FOOD_LOG_FIELDS)):
        for row in rows:
            for i, name in enumerate(names):
                totals[i] += _number(row, name)
    return totals[0], totals[1], totals[2], totals[3]


def _recorded_at(row: Row, tz: tzinfo) -> datetime:
    value = row.get("recorded_at")
    if isinstance(value, str):
        value = parse_timestamp(value)
    if isinstance(value, datetime):
        return to_aware(value, tz)
    return datetime.min.replace(tzinfo=tz)


def pick_weight(weight_logs: Sequence[Row], tz: tzinfo) -> Optional[float]:
    """
    Choose the day's scale weight.

    The most recently recorded entry wins; equal timestamps fall back to
    the larger id so the choice never depends on fetch order.
    """
    candidates = [row for row in weight_logs if row.get("weight_kg") is not None]
    if not candidates:
        return None
    latest = max(candidates, key=lambda row: (_recorded_at(row, tz), str(row.get("id", ""))))
    return float(latest["weight_kg"])


def _latest_state(rows: Sequence[Row]) -> Optional[ComputedState]:
    states = [ComputedState.from_row(row) for row in rows]
    if not states:
        return None
    return max(states, key=lambda s: s.date)


def classify_day(calories: Optional[float], tdee: float) -> LogStatus:
    """Logging status for a day's calorie total against the current TDEE."""
    if calories is None:
        return LogStatus.SKIPPED
    if is_partial_logging(calories, tdee).is_partial:
        return LogStatus.PARTIAL
    return LogStatus.COMPLETE


def build_daily_log(
    day: date,
    meals: Sequence[Row],
    food_logs: Sequence[Row],
    weight_logs: Sequence[Row],
    tdee: float,
    tz: tzinfo,
    existing: Optional[DailyLog] = None,
) -> DailyLog:
    """Assemble (without persisting) the DailyLog for ``day``."""
    scale_weight = pick_weight(weight_logs, tz)
    step_count = existing.step_count if existing is not None else None

    if not meals and not food_logs:
        return DailyLog(
            date=day,
            scale_weight_kg=scale_weight,
            step_count=step_count,
            log_status=LogStatus.SKIPPED,
        )

    calories, protein, carbs, fat = sum_nutrition(meals, food_logs)
    return DailyLog(
        date=day,
        scale_weight_kg=scale_weight,
        nutrition_calories=float(round(calories)),
        nutrition_protein_g=round(protein, 1),
        nutrition_carbs_g=round(carbs, 1),
        nutrition_fat_g=round(fat, 1),
        step_count=step_count,
        log_status=classify_day(calories, tdee),
    )


async def aggregate_daily_nutrition(
    store: RecordStore,
    when: DateLike,
    tz: tzinfo,
    fallback_tdee: float,
) -> Optional[DailyLog]:
    """
    Rebuild and upsert the DailyLog for the local day containing ``when``.

    Partial-logging classification uses the latest ComputedState on or
    before the day, or ``fallback_tdee`` when there is none.

    Args:
        store: Record store
        when: Date key, ISO timestamp, date or datetime
        tz: Zone defining the local calendar day
        fallback_tdee: TDEE to classify against before any estimate exists

    Returns:
        The persisted DailyLog, or None if the store is unavailable
    """
    day = to_local_date(when, tz)
    start, end = day_bounds(day, tz)
    instant_filter: dict[str, Any] = {"between": [start, end]}

    try:
        meals, food_logs, weight_logs, existing_rows, state_rows = await asyncio.gather(
            store.list(RecordKind.MEAL, {"eaten_at": instant_filter}),
            store.list(RecordKind.FOOD_LOG, {"eaten_at": instant_filter}),
            store.list(RecordKind.WEIGHT_LOG, {"recorded_at": instant_filter}),
            store.list(RecordKind.DAILY_LOG, {"date": {"eq": day}}),
            store.list(RecordKind.COMPUTED_STATE, {"date": {"le": day}}),
        )

        existing = DailyLog.from_row(existing_rows[0]) if existing_rows else None
        latest = _latest_state(state_rows)
        tdee = latest.estimated_tdee_kcal if latest is not None else fallback_tdee

        daily_log = build_daily_log(day, meals, food_logs, weight_logs, tdee, tz, existing)
        if existing is not None and existing.id is not None:
            row = await store.update(RecordKind.DAILY_LOG, existing.id, daily_log.to_fields())
        else:
            row = await store.create(RecordKind.DAILY_LOG, daily_log.to_fields())
    except StoreUnavailableError as e:
        logger.error("Cannot aggregate %s: %s", day, e, extra={"metabolic_date": day.isoformat()})
        return None

    logger.debug(
        "Aggregated %s: %s kcal (%s)",
        day,
        daily_log.nutrition_calories,
        daily_log.log_status.value,
    )
    return DailyLog.from_row(row)
