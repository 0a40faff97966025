"""Edge-case corrections for metabolic modeling.

Pure functions over scalars and series; no I/O. They cover:
1. Partial logging detection
2. Whoosh effect (delayed water release) detection and damping
3. Goal transition adjustment
4. Data quality scoring
5. TDEE outlier rejection
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Sequence

import numpy as np

from metabolic.tracking.models import ComputedState, DailyLog, GoalType, LogStatus, UserGoals

logger = logging.getLogger(__name__)

# ============================================================================
# Partial logging
# ============================================================================

# Logged intake below this fraction of TDEE is likely incomplete
PARTIAL_LOGGING_THRESHOLD = 0.5

# Below this, a day is almost certainly incomplete
MINIMUM_VALID_CALORIES = 500


@dataclass(frozen=True)
class PartialLoggingCheck:
    is_partial: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class LogEligibility:
    """Whether a day may feed the TDEE recurrence."""

    is_valid: bool
    reason: Optional[str] = None


def is_partial_logging(calories: Optional[float], estimated_tdee: float) -> PartialLoggingCheck:
    """
    Detect if a day's logging appears incomplete.

    None means untracked and 0 means fasted; neither counts as partial.
    """
    if calories is None or calories == 0:
        return PartialLoggingCheck(False)

    if calories < MINIMUM_VALID_CALORIES:
        return PartialLoggingCheck(
            True, f"Only {calories:.0f} kcal logged - likely incomplete"
        )

    if calories < estimated_tdee * PARTIAL_LOGGING_THRESHOLD:
        return PartialLoggingCheck(
            True,
            f"{calories:.0f} kcal is less than 50% of your {estimated_tdee:.0f} kcal TDEE",
        )

    return PartialLoggingCheck(False)


def validate_daily_log_for_tdee(daily_log: DailyLog, estimated_tdee: float) -> LogEligibility:
    """Gate applied before a day is allowed to influence the TDEE estimate."""
    if daily_log.nutrition_calories is None:
        return LogEligibility(False, "No nutrition data logged")

    partial = is_partial_logging(daily_log.nutrition_calories, estimated_tdee)
    if partial.is_partial:
        return LogEligibility(False, partial.reason)

    if daily_log.log_status == LogStatus.SKIPPED:
        return LogEligibility(False, "Day marked as skipped")

    return LogEligibility(True)


# ============================================================================
# Whoosh effect
# ============================================================================

# Largest credible daily scale change (kg); beyond this is water
MAX_CREDIBLE_DAILY_CHANGE = 0.5

# Scale change that marks an extreme water swing (kg)
EXTREME_CHANGE_THRESHOLD = 1.5

# Scale change exceeding the trend change by more than this is suspicious (kg)
DIVERGENCE_THRESHOLD = 0.3


class WhooshSeverity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    EXTREME = "extreme"


# Fraction of the raw scale delta kept for each severity
WHOOSH_DAMPING = {
    WhooshSeverity.MILD: 0.7,
    WhooshSeverity.MODERATE: 0.5,
    WhooshSeverity.EXTREME: 0.3,
}


@dataclass(frozen=True)
class WhooshCheck:
    is_whoosh: bool
    severity: Optional[WhooshSeverity] = None


def is_whoosh_effect(scale_weight_delta_kg: float, trend_weight_delta_kg: float) -> WhooshCheck:
    """
    Detect whether a scale change is a water swing rather than tissue change.

    Symmetric in direction: a sudden gain is classified like a sudden drop.
    """
    abs_scale = abs(scale_weight_delta_kg)
    divergence = abs_scale - abs(trend_weight_delta_kg)

    if abs_scale < MAX_CREDIBLE_DAILY_CHANGE and divergence <= DIVERGENCE_THRESHOLD:
        return WhooshCheck(False)

    if abs_scale >= EXTREME_CHANGE_THRESHOLD:
        return WhooshCheck(True, WhooshSeverity.EXTREME)
    if abs_scale >= MAX_CREDIBLE_DAILY_CHANGE:
        return WhooshCheck(True, WhooshSeverity.MODERATE)
    return WhooshCheck(True, WhooshSeverity.MILD)


def damp_whoosh_effect(raw_weight_delta_kg: float, trend_weight_delta_kg: float) -> float:
    """
    Weight delta to feed the TDEE recurrence.

    Without a whoosh the (already smoothed) trend delta is returned as is.
    With one, the raw delta is scaled down by a severity-dependent factor.
    """
    check = is_whoosh_effect(raw_weight_delta_kg, trend_weight_delta_kg)
    if not check.is_whoosh:
        return trend_weight_delta_kg

    damped = raw_weight_delta_kg * WHOOSH_DAMPING[check.severity]
    logger.debug(
        "Whoosh detected (%s): damping delta from %.3f to %.3f",
        check.severity.value,
        raw_weight_delta_kg,
        damped,
    )
    return damped


# ============================================================================
# Goal transitions
# ============================================================================

# TDEE shift per kg/week of swing between deficit and surplus (4% per kg/week)
TRANSITION_MULTIPLIER = 0.04


@dataclass(frozen=True)
class GoalTransitionAdjustment:
    adjusted_tdee: float
    adjustment: float
    reason: str


@dataclass(frozen=True)
class GoalTransition:
    has_transitioned: bool
    details: Optional[str] = None


def calculate_goal_transition_adjustment(
    current_tdee: float,
    previous_goal_type: GoalType | str,
    new_goal_type: GoalType | str,
    previous_rate: float,
    new_rate: float,
) -> GoalTransitionAdjustment:
    """
    Predict the TDEE shift when switching between cutting and bulking.

    Moving from a deficit to a surplus raises expenditure (thermic effect,
    NEAT up-regulation); the reverse lowers it (metabolic adaptation). The
    shift is proportional to the swing in target rate, so it grows with
    either rate. Transitions into or out of maintenance, and rate changes
    within one goal type, leave TDEE unchanged.
    """
    previous_goal_type = GoalType(previous_goal_type)
    new_goal_type = GoalType(new_goal_type)

    if previous_goal_type == new_goal_type:
        return GoalTransitionAdjustment(current_tdee, 0.0, "No goal change detected")

    direction = 0
    if previous_goal_type == GoalType.LOSE and new_goal_type == GoalType.GAIN:
        direction = 1
    elif previous_goal_type == GoalType.GAIN and new_goal_type == GoalType.LOSE:
        direction = -1

    if direction == 0:
        return GoalTransitionAdjustment(
            current_tdee,
            0.0,
            f"No TDEE adjustment needed for transition from "
            f"{previous_goal_type.value} to {new_goal_type.value}",
        )

    rate_swing = abs(previous_rate) + abs(new_rate)
    adjustment = direction * current_tdee * rate_swing * TRANSITION_MULTIPLIER
    adjusted_tdee = float(round(current_tdee + adjustment))

    verb = "increased" if adjustment > 0 else "decreased"
    reason = (
        f"TDEE {verb} by {abs(adjustment):.0f} kcal for transition from "
        f"{previous_goal_type.value} to {new_goal_type.value}"
    )
    logger.info("Goal transition: %s", reason)
    return GoalTransitionAdjustment(adjusted_tdee, adjustment, reason)


def detect_goal_transition(
    previous_goals: Optional[UserGoals], new_goals: UserGoals
) -> GoalTransition:
    """Detect a change of goal type, or of rate outside maintenance."""
    if previous_goals is None:
        return GoalTransition(False)

    old_type = GoalType(previous_goals.goal_type)
    new_type = GoalType(new_goals.goal_type)

    if old_type != new_type:
        return GoalTransition(True, f"Goal changed from {old_type.value} to {new_type.value}")

    # Rate is meaningless at maintenance
    if previous_goals.goal_rate != new_goals.goal_rate and new_type != GoalType.MAINTAIN:
        return GoalTransition(
            True,
            f"Rate changed from {previous_goals.goal_rate} to {new_goals.goal_rate} kg/week",
        )

    return GoalTransition(False)


# ============================================================================
# Data quality
# ============================================================================


@dataclass
class DataQualityScore:
    score: float
    issues: list[str] = field(default_factory=list)


def calculate_data_quality_score(
    daily_logs: Sequence[DailyLog], estimated_tdee: float
) -> DataQualityScore:
    """
    Score 0-100 for how far a set of daily logs can be trusted.

    Penalties: low share of completely logged days, partial-logging days,
    sparse weigh-ins, and suspiciously uniform calorie totals.
    """
    if not daily_logs:
        return DataQualityScore(0, ["No daily logs provided"])

    total = len(daily_logs)
    score = 100.0
    issues: list[str] = []

    complete_rate = sum(1 for d in daily_logs if d.log_status == LogStatus.COMPLETE) / total
    if complete_rate < 0.5:
        score -= 40
        issues.append(f"Only {complete_rate:.0%} of days logged completely")
    elif complete_rate < 0.7:
        score -= 20
        issues.append(f"{complete_rate:.0%} of days logged completely")
    elif complete_rate < 0.85:
        score -= 10
        issues.append(f"{complete_rate:.0%} of days logged completely")

    partial_days = sum(
        1
        for d in daily_logs
        if d.nutrition_calories is not None
        and is_partial_logging(d.nutrition_calories, estimated_tdee).is_partial
    )
    if partial_days:
        partial_rate = partial_days / total
        if partial_rate > 0.3:
            score -= 30
            issues.append(f"{partial_days} days appear to have incomplete logging")
        elif partial_rate > 0.15:
            score -= 15
            issues.append(f"{partial_days} days may have incomplete logging")
        else:
            score -= 5
            issues.append(f"{partial_days} day(s) may have incomplete logging")

    weight_rate = sum(1 for d in daily_logs if d.scale_weight_kg is not None) / total
    if weight_rate < 0.3:
        score -= 30
        issues.append("Very few weight measurements available")
    elif weight_rate < 0.5:
        score -= 15
        issues.append("Body weight measured on less than half the days")

    calories = np.array(
        [d.nutrition_calories for d in daily_logs if d.nutrition_calories is not None],
        dtype=float,
    )
    if len(calories) >= 5 and calories.mean() > 0:
        cv = calories.std() / calories.mean()
        if cv < 0.05:
            score -= 10
            issues.append(
                "Calorie intake appears unusually consistent - ensure accurate logging"
            )

    return DataQualityScore(max(0.0, score), issues)


# ============================================================================
# Outliers
# ============================================================================


@dataclass(frozen=True)
class OutlierCheck:
    is_outlier: bool
    deviation: float


@dataclass(frozen=True)
class TdeeStatistics:
    average: float
    std_dev: float
    min: float
    max: float


def is_tdee_outlier(candidate_tdee: float, mean_tdee: float, std_dev_tdee: float) -> OutlierCheck:
    """Flag a TDEE more than two standard deviations from the recent mean.

    A zero standard deviation (e.g. a single data point) never flags.
    """
    deviation = abs(candidate_tdee - mean_tdee)
    is_outlier = std_dev_tdee > 0 and deviation > 2 * std_dev_tdee
    if is_outlier:
        logger.debug(
            "TDEE outlier: %.0f vs mean %.0f (z=%.2f)",
            candidate_tdee,
            mean_tdee,
            deviation / std_dev_tdee,
        )
    return OutlierCheck(is_outlier, deviation)


def tdee_statistics(values: Iterable[float]) -> TdeeStatistics:
    """Population mean, standard deviation, min and max of TDEE values."""
    arr = np.fromiter(values, dtype=float)
    if arr.size == 0:
        return TdeeStatistics(0.0, 0.0, 0.0, 0.0)
    return TdeeStatistics(
        average=float(arr.mean()),
        std_dev=float(arr.std()),
        min=float(arr.min()),
        max=float(arr.max()),
    )


def calculate_tdee_statistics(computed_states: Sequence[ComputedState]) -> TdeeStatistics:
    """Statistics over ``estimated_tdee_kcal`` of the given states."""
    return tdee_statistics(s.estimated_tdee_kcal for s in computed_states)
