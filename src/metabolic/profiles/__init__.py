"""Profile-based energy calculations."""

from __future__ import annotations

from metabolic.profiles.body_calc import (
    ActivityLevel,
    Sex,
    calculate_bmr,
    calculate_cold_start_tdee,
    calculate_tdee,
)

__all__ = [
    "ActivityLevel",
    "Sex",
    "calculate_bmr",
    "calculate_cold_start_tdee",
    "calculate_tdee",
]
