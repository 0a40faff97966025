"""Recalculation orchestrator.

Event entry points re-aggregate the affected day and then recompute
ComputedState rows forward from it. All writes are upserts keyed by date,
so re-running a recalculation with unchanged inputs rewrites the same rows.

Recalculations for one user are serialized through a per-user lock. Services
that share a lock registry (one per process, say) serialize against each
other; a service without one only serializes its own calls.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from metabolic.config.settings import Settings, get_settings
from metabolic.dates import DateLike, date_range, day_bounds, get_zone, to_local_date
from metabolic.db.store import RecordKind, RecordStore, Row
from metabolic.exceptions import StoreUnavailableError
from metabolic.logging import UserLogAdapter
from metabolic.profiles.body_calc import calculate_cold_start_tdee
from metabolic.tracking import aggregator
from metabolic.tracking.estimator import EstimatorState, goals_for_date, run_estimator
from metabolic.tracking.models import ComputedState, DailyLog, UserGoals

logger = logging.getLogger(__name__)


class MetabolicService:
    """Aggregation, recalculation and backfill over a record store."""

    def __init__(
        self,
        store: RecordStore,
        settings: Optional[Settings] = None,
        user_id: str = "default",
        clock: Optional[Callable[[], datetime]] = None,
        locks: Optional[dict[str, asyncio.Lock]] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.config = self.settings.estimator
        self.tz = get_zone(self.settings.timezone)
        self.user_id = user_id
        self._clock = clock or (lambda: datetime.now(self.tz))
        self._locks = locks if locks is not None else {}
        self.log = UserLogAdapter(logger, user_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _user_lock(self) -> asyncio.Lock:
        return self._locks.setdefault(self.user_id, asyncio.Lock())

    def today(self) -> date:
        """The current local calendar day."""
        return to_local_date(self._clock(), self.tz)

    def default_goals(self) -> UserGoals:
        """Goals used when no profile can be read."""
        defaults = self.settings.default_goals
        return UserGoals(
            calorie_goal=defaults.calorie_goal,
            protein_goal=defaults.protein_goal,
            carbs_goal=defaults.carbs_goal,
            fat_goal=defaults.fat_goal,
            goal_type=defaults.goal_type,
            goal_rate=defaults.goal_rate,
        )

    async def goal_snapshots(self) -> list[UserGoals]:
        """All goal snapshots for the user, oldest first; defaults if none."""
        defaults = self.default_goals()
        try:
            rows = await self.store.list(RecordKind.USER_PROFILE)
        except StoreUnavailableError as e:
            self.log.warning("Cannot read user profile, using default goals: %s", e)
            return [defaults]

        snapshots = []
        for row in rows:
            if row.get("user_id") not in (None, self.user_id):
                continue
            try:
                snapshots.append(UserGoals.from_row(row, defaults))
            except ValueError as e:
                self.log.warning("Ignoring invalid profile row %s: %s", row.get("id"), e)

        if not snapshots:
            return [defaults]
        return sorted(snapshots, key=lambda g: g.effective_from or date.min)

    def fallback_tdee(self, goals: Optional[UserGoals], weight_kg: Optional[float], day: date) -> float:
        """Cold-start TDEE from the profile, else the configured default."""
        if goals is not None and weight_kg is not None:
            tdee = calculate_cold_start_tdee(goals, weight_kg, day)
            if tdee is not None:
                return tdee
        return self.config.default_tdee

    async def _latest_weight(self, day: date) -> Optional[float]:
        _, end = day_bounds(day, self.tz)
        rows = await self.store.list(RecordKind.WEIGHT_LOG, {"recorded_at": {"le": end}})
        return aggregator.pick_weight(rows, self.tz)

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    async def _aggregate(self, day: date) -> Optional[DailyLog]:
        try:
            weight = await self._latest_weight(day)
        except StoreUnavailableError as e:
            self.log.error("Cannot aggregate %s: %s", day, e)
            return None
        goals = goals_for_date(await self.goal_snapshots(), day)
        fallback = self.fallback_tdee(goals, weight, day)
        return await aggregator.aggregate_daily_nutrition(self.store, day, self.tz, fallback)

    async def aggregate_daily_nutrition(self, when: DateLike) -> Optional[DailyLog]:
        """
        Rebuild the DailyLog for the local day containing ``when``.

        Returns None if the store is unavailable.
        """
        day = to_local_date(when, self.tz)
        async with self._user_lock():
            return await self._aggregate(day)

    # ------------------------------------------------------------------
    # Recalculation
    # ------------------------------------------------------------------

    async def _load_range(self, replay_start: date):
        start_instant, _ = day_bounds(replay_start, self.tz)
        seed_day = replay_start - timedelta(days=1)
        return await asyncio.gather(
            self.store.list(RecordKind.DAILY_LOG, {"date": {"ge": replay_start}}),
            self.store.list(RecordKind.WEIGHT_LOG, {"recorded_at": {"ge": start_instant}}),
            self.store.list(RecordKind.COMPUTED_STATE, {"date": {"ge": seed_day}}),
        )

    def _weights_by_day(self, rows: list[Row]) -> dict[date, float]:
        grouped: dict[date, list[Row]] = defaultdict(list)
        for row in rows:
            recorded_at = row.get("recorded_at")
            if recorded_at is None:
                continue
            grouped[to_local_date(recorded_at, self.tz)].append(row)

        weights = {}
        for day, day_rows in grouped.items():
            weight = aggregator.pick_weight(day_rows, self.tz)
            if weight is not None:
                weights[day] = weight
        return weights

    async def _recalculate(self, anchor: date) -> int:
        replay_start = anchor - timedelta(days=self.config.lookback_days)
        seed_day = replay_start - timedelta(days=1)

        try:
            log_rows, weight_rows, state_rows = await self._load_range(replay_start)
        except StoreUnavailableError as e:
            self.log.error("Cannot recalculate from %s: %s", anchor, e)
            return 0
        snapshots = await self.goal_snapshots()

        logs = {}
        for row in log_rows:
            daily_log = DailyLog.from_row(row)
            logs[daily_log.date] = daily_log
        weights = self._weights_by_day(weight_rows)
        states = {}
        for row in state_rows:
            state = ComputedState.from_row(row)
            states[state.date] = state

        data_days = set(logs) | set(weights)
        end = max([self.today(), *data_days])

        series = []
        for day in date_range(replay_start, end):
            daily_log = logs.get(day) or DailyLog(date=day)
            # Weight logs are the only source of scale readings
            daily_log.scale_weight_kg = weights.get(day)
            series.append(daily_log)

        weighed = [d for d in series if d.scale_weight_kg is not None]
        if not weighed:
            self.log.info("No weight data from %s; nothing to recalculate", replay_start)
            return 0

        prior = states.get(seed_day)
        if prior is not None:
            seed = EstimatorState(
                trend_weight=prior.trend_weight_kg,
                tdee=prior.estimated_tdee_kcal,
                goals=goals_for_date(snapshots, seed_day),
            )
        else:
            first = weighed[0]
            series = [d for d in series if d.date >= first.date]
            goals = goals_for_date(snapshots, first.date)
            seed = EstimatorState(
                trend_weight=first.scale_weight_kg,
                tdee=self.fallback_tdee(goals, first.scale_weight_kg, first.date),
                goals=goals,
            )

        computed = run_estimator(series, seed, snapshots, self.config)

        count = 0
        try:
            for state in computed:
                if state.date < anchor:
                    continue
                existing = states.get(state.date)
                if existing is not None and existing.id is not None:
                    await self.store.update(
                        RecordKind.COMPUTED_STATE, existing.id, state.to_fields()
                    )
                else:
                    await self.store.create(RecordKind.COMPUTED_STATE, state.to_fields())
                count += 1
        except StoreUnavailableError as e:
            self.log.error("Store lost while persisting states from %s: %s", anchor, e)
            return 0

        self.log.info(
            "Recalculated %d day(s) from %s",
            count,
            anchor,
            extra={"metabolic_date": anchor.isoformat(), "metabolic_days": count},
        )
        return count

    async def recalculate_tdee_from_date(self, when: DateLike) -> int:
        """
        Recompute ComputedState rows from ``when`` through the latest day.

        Returns:
            Number of dates created or updated; 0 if there is no weight data
            in range or the store is unavailable
        """
        anchor = to_local_date(when, self.tz)
        async with self._user_lock():
            return await self._recalculate(anchor)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def on_meal_logged(self, when: DateLike) -> int:
        """Re-aggregate the meal's day and recalculate forward from it.

        Never raises; failures are logged and reported as 0.
        """
        try:
            day = to_local_date(when, self.tz)
            async with self._user_lock():
                await self._aggregate(day)
                return await self._recalculate(day)
        except Exception:
            self.log.exception("Metabolic update after meal log failed for %r", when)
            return 0

    async def on_weight_logged(self, when: DateLike) -> int:
        """Re-aggregate the weigh-in's day and recalculate through the latest day.

        Never raises; failures are logged and reported as 0.
        """
        try:
            day = to_local_date(when, self.tz)
            async with self._user_lock():
                await self._aggregate(day)
                return await self._recalculate(day)
        except Exception:
            self.log.exception("Metabolic update after weight log failed for %r", when)
            return 0

    async def on_steps_logged(self, when: DateLike, steps: int) -> int:
        """Record the day's step count and recalculate forward from it.

        Never raises; failures are logged and reported as 0.
        """
        try:
            day = to_local_date(when, self.tz)
            async with self._user_lock():
                daily_log = await self._aggregate(day)
                if daily_log is None:
                    return 0
                await self.store.update(RecordKind.DAILY_LOG, daily_log.id, {"step_count": steps})
                return await self._recalculate(day)
        except Exception:
            self.log.exception("Metabolic update after step count failed for %r", when)
            return 0

    # ------------------------------------------------------------------
    # Backfill
    # ------------------------------------------------------------------

    async def backfill_metabolic_data(self, days: int = 90) -> dict[str, int]:
        """
        Aggregate every day with source data in the last ``days`` days, then
        recalculate from the start of that period.

        Returns:
            Dict with days_processed, daily_logs_created and
            computed_states_created
        """
        end = self.today()
        start = end - timedelta(days=days - 1)
        start_instant, end_instant = day_bounds(start, self.tz)[0], day_bounds(end, self.tz)[1]
        instant_filter = {"between": [start_instant, end_instant]}

        result = {"days_processed": 0, "daily_logs_created": 0, "computed_states_created": 0}
        async with self._user_lock():
            try:
                meals, food_logs, weight_logs, existing_logs = await asyncio.gather(
                    self.store.list(RecordKind.MEAL, {"eaten_at": instant_filter}),
                    self.store.list(RecordKind.FOOD_LOG, {"eaten_at": instant_filter}),
                    self.store.list(RecordKind.WEIGHT_LOG, {"recorded_at": instant_filter}),
                    self.store.list(RecordKind.DAILY_LOG, {"date": {"between": [start, end]}}),
                )
            except StoreUnavailableError as e:
                self.log.error("Backfill aborted: %s", e)
                return result

            active_days = set()
            for row in meals + food_logs:
                active_days.add(to_local_date(row["eaten_at"], self.tz))
            for row in weight_logs:
                active_days.add(to_local_date(row["recorded_at"], self.tz))
            already_logged = {DailyLog.from_row(row).date for row in existing_logs}

            for day in sorted(active_days):
                daily_log = await self._aggregate(day)
                if daily_log is None:
                    continue
                result["days_processed"] += 1
                if day not in already_logged:
                    result["daily_logs_created"] += 1

            if active_days:
                result["computed_states_created"] = await self._recalculate(min(active_days))

        self.log.info("Backfill complete: %s", result)
        return result
