"""Trend-weight and TDEE estimation as a forward fold over daily logs.

Each day's estimate depends on the previous day's, so the recurrence is an
explicit reduce: an ``EstimatorState`` accumulator is threaded through
``fold_day`` one calendar date at a time. Nothing here touches the store;
the service loads a sorted series, folds it, and persists the output.

Energy balance over a trailing window of valid days:

    raw_tdee = mean(intake) - mean(corrected_delta_kg) × energy_density

where the corrected delta is the trend-weight change, replaced by a damped
scale delta on whoosh days (scale delta against the previous calendar day
only). A jump in step count makes the TDEE smoothing more responsive. Energy density is asymmetric: 7700 kcal/kg when
the window is losing, 5500 kcal/kg when it is gaining.
"""

from __future__ import annotations

import copy
import logging
import math
from collections import deque
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional, Sequence

import numpy as np

from metabolic.config.settings import EstimatorConfig
from metabolic.tracking.edge_cases import (
    calculate_goal_transition_adjustment,
    damp_whoosh_effect,
    detect_goal_transition,
    is_tdee_outlier,
    tdee_statistics,
    validate_daily_log_for_tdee,
)
from metabolic.tracking.ema import relative_step_change, smooth_tdee, update_trend
from metabolic.tracking.models import DEFAULT_ENERGY_DENSITY, ComputedState, DailyLog, UserGoals

logger = logging.getLogger(__name__)

# Confidence range (kcal) while nothing has been learned yet
INITIAL_FLUX_RANGE = 500.0

# Each tracked day narrows the range by this much, down to MIN_FLUX_RANGE
FLUX_NARROWING_PER_DAY = 20.0
MIN_FLUX_RANGE = 100.0

# Days that contribute no intake signal never claim better than this
NO_SIGNAL_FLUX_RANGE = 400.0


@dataclass
class EstimatorState:
    """Accumulator carried from one day to the next."""

    trend_weight: float
    tdee: float
    goals: Optional[UserGoals] = None
    last_scale_weight: Optional[float] = None
    last_scale_date: Optional[date] = None
    last_step_count: Optional[int] = None
    energy_density: float = DEFAULT_ENERGY_DENSITY
    days_tracked: int = 0
    intake_window: deque = field(default_factory=deque)
    delta_window: deque = field(default_factory=deque)
    raw_window: deque = field(default_factory=deque)

    def copy(self) -> "EstimatorState":
        return copy.deepcopy(self)


def goals_for_date(snapshots: Sequence[UserGoals], day: date) -> Optional[UserGoals]:
    """
    Return the goal snapshot in force on ``day``.

    Snapshots without ``effective_from`` apply from the start of history.
    Before the earliest dated snapshot the earliest one is used.
    """
    if not snapshots:
        return None
    ordered = sorted(snapshots, key=lambda g: g.effective_from or date.min)
    applicable = [g for g in ordered if (g.effective_from or date.min) <= day]
    return applicable[-1] if applicable else ordered[0]


def flux_confidence_range(days_tracked: int, raw_values: Sequence[float]) -> float:
    """Half-width (kcal) of the plausible TDEE band around the estimate."""
    base = max(MIN_FLUX_RANGE, INITIAL_FLUX_RANGE - FLUX_NARROWING_PER_DAY * days_tracked)
    spread = 0.0
    if len(raw_values) >= 2:
        spread = 0.5 * math.sqrt(float(np.var(np.asarray(raw_values, dtype=float))))
    return base + spread


def _energy_density(mean_delta_kg: float, config: EstimatorConfig) -> float:
    if mean_delta_kg > 0:
        return config.energy_density_surplus
    return config.energy_density_deficit


def fold_day(
    state: EstimatorState,
    daily_log: DailyLog,
    goals: Optional[UserGoals],
    config: EstimatorConfig,
) -> tuple[EstimatorState, ComputedState]:
    """
    Advance the recurrence by one day.

    Args:
        state: Accumulator after the previous day (left unmodified)
        daily_log: The day's aggregated log
        goals: Goal snapshot in force on this day
        config: Estimator constants

    Returns:
        (next accumulator, the day's computed state)
    """
    state = state.copy()
    day = daily_log.date
    prev_trend = state.trend_weight
    prev_tdee = state.tdee

    # 1. Trend weight and the two deltas
    raw_delta: Optional[float] = None
    weight = daily_log.scale_weight_kg
    if weight is not None:
        days_elapsed = 1
        if state.last_scale_date is not None:
            days_elapsed = max(1, (day - state.last_scale_date).days)
        new_trend = update_trend(prev_trend, weight, config.weight_smoothing, days_elapsed)
        # Scale deltas are only comparable day over day; gaps use the trend delta
        if state.last_scale_date == day - timedelta(days=1):
            raw_delta = weight - state.last_scale_weight
        state.last_scale_weight = weight
        state.last_scale_date = day
    else:
        new_trend = prev_trend
    new_trend = round(new_trend, 3)
    trend_delta = new_trend - prev_trend

    # 2. Whoosh correction
    corrected_delta = trend_delta
    if raw_delta is not None:
        corrected_delta = damp_whoosh_effect(raw_delta, trend_delta)

    steps = daily_log.step_count
    step_change = relative_step_change(state.last_step_count, steps)
    if steps is not None:
        state.last_step_count = steps

    # 3-5. Energy balance over valid days, with outlier rejection
    eligibility = validate_daily_log_for_tdee(daily_log, prev_tdee)
    if eligibility.is_valid:
        state.days_tracked += 1
        state.intake_window.append(float(daily_log.nutrition_calories))
        state.delta_window.append(corrected_delta)
        while len(state.intake_window) > config.window_days:
            state.intake_window.popleft()
            state.delta_window.popleft()

        mean_intake = sum(state.intake_window) / len(state.intake_window)
        mean_delta = sum(state.delta_window) / len(state.delta_window)
        state.energy_density = _energy_density(mean_delta, config)
        raw_tdee = mean_intake - mean_delta * state.energy_density

        rejected = False
        if len(state.raw_window) >= config.outlier_min_samples:
            stats = tdee_statistics(state.raw_window)
            rejected = is_tdee_outlier(raw_tdee, stats.average, stats.std_dev).is_outlier

        state.raw_window.append(raw_tdee)
        while len(state.raw_window) > config.outlier_window:
            state.raw_window.popleft()

        if rejected:
            logger.debug("%s: raw TDEE %.0f rejected as outlier", day, raw_tdee)
            estimate = prev_tdee
        else:
            estimate = smooth_tdee(
                raw_tdee,
                prev_tdee,
                config.tdee_smoothing,
                step_change=step_change,
                responsive_smoothing=config.tdee_smoothing_responsive,
                step_threshold=config.step_responsiveness_threshold,
            )
        flux = flux_confidence_range(state.days_tracked, state.raw_window)
    else:
        logger.debug("%s: no TDEE signal (%s)", day, eligibility.reason)
        raw_tdee = prev_tdee
        estimate = prev_tdee
        flux = max(
            NO_SIGNAL_FLUX_RANGE, flux_confidence_range(state.days_tracked, state.raw_window)
        )

    # 6. Goal transition on the first day of a new snapshot
    if goals is not None:
        if detect_goal_transition(state.goals, goals).has_transitioned:
            adjustment = calculate_goal_transition_adjustment(
                estimate,
                state.goals.goal_type,
                goals.goal_type,
                state.goals.goal_rate,
                goals.goal_rate,
            )
            estimate = adjustment.adjusted_tdee
        state.goals = goals

    estimate = float(round(estimate))
    state.trend_weight = new_trend
    state.tdee = estimate

    computed = ComputedState(
        date=day,
        trend_weight_kg=new_trend,
        estimated_tdee_kcal=estimate,
        raw_tdee_kcal=float(round(raw_tdee)),
        flux_confidence_range=float(round(flux)),
        energy_density_used=state.energy_density,
        weight_delta_kg=round(trend_delta, 3),
    )
    return state, computed


def run_estimator(
    daily_logs: Sequence[DailyLog],
    seed: EstimatorState,
    goal_snapshots: Sequence[UserGoals] = (),
    config: Optional[EstimatorConfig] = None,
) -> list[ComputedState]:
    """
    Fold a chronologically sorted series of daily logs.

    Args:
        daily_logs: One log per date, ascending
        seed: Accumulator for the day before the first log
        goal_snapshots: Dated goal snapshots; the one in force is used per day
        config: Estimator constants (defaults if None)

    Returns:
        One ComputedState per input log, in the same order
    """
    config = config or EstimatorConfig()
    state = seed
    results: list[ComputedState] = []
    for daily_log in sorted(daily_logs, key=lambda d: d.date):
        goals = goals_for_date(goal_snapshots, daily_log.date)
        state, computed = fold_day(state, daily_log, goals, config)
        results.append(computed)
    return results
