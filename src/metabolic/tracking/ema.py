"""Smoothed trend weight and TDEE.

The trend is an exponential moving average of scale readings, the Hacker's
Diet filter:

    T_n = T_{n-1} + α × (W_n - T_{n-1})

A reading that arrives after a gap of t days is blended with the weight
the filter would have accumulated over those t days, 1 - (1 - α)^t, so a
weekly weigh-in moves the trend about as far as seven daily ones would.
A day without a reading leaves the trend where it was.

The TDEE estimate uses the same recurrence on raw energy-balance values,
with a faster rate on days when activity (step count) jumps.

Reference: https://www.fourmilab.ch/hackdiet/
"""

from __future__ import annotations

from typing import Optional, Sequence

from metabolic.tracking.models import ComputedState

# Trend weight rate per daily reading
DEFAULT_SMOOTHING = 0.1

# Raw TDEE blend rate, and the faster rate used after an activity jump
DEFAULT_TDEE_SMOOTHING = 0.1
DEFAULT_RESPONSIVE_TDEE_SMOOTHING = 0.2

# Relative step-count increase that switches to the faster rate
STEP_RESPONSIVENESS_THRESHOLD = 0.2


def gap_alpha(alpha: float, gap_days: int) -> float:
    """Blend rate for a reading taken ``gap_days`` after the previous one.

    Gaps below one day count as one.

    >>> round(gap_alpha(0.1, 7), 3)
    0.522
    """
    return 1 - (1 - alpha) ** max(1, gap_days)


def update_trend(
    prev_trend: float,
    weight: Optional[float],
    smoothing: float = DEFAULT_SMOOTHING,
    days_elapsed: int = 1,
) -> float:
    """Trend after blending in ``weight``; unchanged when there is no reading."""
    if weight is None:
        return prev_trend
    return prev_trend + gap_alpha(smoothing, days_elapsed) * (weight - prev_trend)


def relative_step_change(prev_steps: Optional[int], steps: Optional[int]) -> Optional[float]:
    """Fractional change from ``prev_steps`` to ``steps``, or None if unknown."""
    if prev_steps is None or steps is None or prev_steps <= 0:
        return None
    return (steps - prev_steps) / prev_steps


def smooth_tdee(
    raw_tdee: float,
    prev_smoothed_tdee: float,
    smoothing: float = DEFAULT_TDEE_SMOOTHING,
    step_change: Optional[float] = None,
    responsive_smoothing: float = DEFAULT_RESPONSIVE_TDEE_SMOOTHING,
    step_threshold: float = STEP_RESPONSIVENESS_THRESHOLD,
) -> float:
    """
    Blend a raw TDEE estimate into the running smoothed value.

    Args:
        raw_tdee: Today's energy-balance TDEE
        prev_smoothed_tdee: Yesterday's estimate
        smoothing: Normal blend rate
        step_change: Relative step-count change vs the last known count
        responsive_smoothing: Blend rate when steps rose by more than
            ``step_threshold``
        step_threshold: Relative increase that counts as an activity jump

    Returns:
        Today's smoothed TDEE (unrounded)
    """
    rate = smoothing
    if step_change is not None and step_change > step_threshold:
        rate = responsive_smoothing
    return prev_smoothed_tdee + rate * (raw_tdee - prev_smoothed_tdee)


def weekly_weight_change(states: Sequence[ComputedState]) -> float:
    """
    Trend-weight change over the last seven days of ``states``.

    Args:
        states: Computed states in chronological order

    Returns:
        Change in kg (negative = losing); 0 with fewer than two states
    """
    if len(states) < 2:
        return 0.0

    latest = states[-1]
    week_ago = states[max(0, len(states) - 8)]
    days = max(1, (latest.date - week_ago.date).days)
    return (latest.trend_weight_kg - week_ago.trend_weight_kg) * 7 / days
