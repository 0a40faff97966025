"""Bounds checks for raw weight and calorie entries.

Failures are reported as data; nothing here raises. Callers decide whether
to block the entry or only show the warning.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

MIN_WEIGHT_KG = 30.0
MAX_WEIGHT_KG = 300.0
LARGE_DAILY_CHANGE_KG = 3.0
MAX_DAILY_CALORIES = 10000.0


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of an entry check. A warning may accompany a valid entry."""

    is_valid: bool
    warning: Optional[str] = None


def validate_weight_entry(
    weight_kg: float, previous_weight_kg: Optional[float]
) -> ValidationResult:
    """
    Check a scale reading for plausibility.

    Readings outside 30-300 kg are rejected. A change of more than 3 kg
    from the previous reading is accepted with a warning, since water
    swings of that size do happen.
    """
    if weight_kg < MIN_WEIGHT_KG or weight_kg > MAX_WEIGHT_KG:
        return ValidationResult(
            False,
            f"Weight outside reasonable range ({MIN_WEIGHT_KG:.0f}-{MAX_WEIGHT_KG:.0f} kg)",
        )

    if previous_weight_kg is not None:
        change = abs(weight_kg - previous_weight_kg)
        if change > LARGE_DAILY_CHANGE_KG:
            return ValidationResult(
                True,
                f"Large weight change ({change:.1f} kg) - this may be water fluctuation",
            )

    return ValidationResult(True)


def validate_calorie_entry(calories: float, estimated_tdee: float) -> ValidationResult:
    """
    Check a calorie entry for plausibility.

    Zero is a valid fasting day. Intake above twice the estimated TDEE is
    accepted with a warning.
    """
    if calories < 0:
        return ValidationResult(False, "Calories cannot be negative")

    if calories > MAX_DAILY_CALORIES:
        return ValidationResult(False, "Calorie value seems unreasonably high")

    if calories > estimated_tdee * 2:
        return ValidationResult(
            True,
            f"{calories:.0f} kcal is more than double your estimated TDEE - verify accuracy",
        )

    return ValidationResult(True)
