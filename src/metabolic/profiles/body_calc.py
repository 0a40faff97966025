"""Population-formula energy expenditure for the cold-start period.

Before enough weight and intake history exists to back-solve TDEE, the
estimate is seeded from the Mifflin-St Jeor BMR times an activity
multiplier.
"""

from __future__ import annotations

import logging
from datetime import date
from enum import Enum
from typing import Optional

from metabolic.tracking.models import UserGoals

logger = logging.getLogger(__name__)


class Sex(Enum):
    """Biological sex for BMR calculation."""
    MALE = "male"
    FEMALE = "female"


class ActivityLevel(Enum):
    """Activity level multipliers for TDEE calculation."""
    SEDENTARY = "sedentary"          # Little or no exercise
    LIGHT = "light"                  # Light exercise 1-3 days/week
    MODERATE = "moderate"            # Moderate exercise 3-5 days/week
    ACTIVE = "active"                # Hard exercise 6-7 days/week
    VERY_ACTIVE = "very_active"      # Very hard exercise, physical job


# Activity level multipliers (Harris-Benedict activity factors)
ACTIVITY_MULTIPLIERS = {
    ActivityLevel.SEDENTARY: 1.2,
    ActivityLevel.LIGHT: 1.375,
    ActivityLevel.MODERATE: 1.55,
    ActivityLevel.ACTIVE: 1.725,
    ActivityLevel.VERY_ACTIVE: 1.9,
}

DEFAULT_ACTIVITY_LEVEL = ActivityLevel.MODERATE

# Organ hypertrophy puts trained athletes ~10% above the formula
ATHLETE_CORRECTION = 1.1


def calculate_bmr(age: int, sex: Sex, height_cm: float, weight_kg: float) -> float:
    """Calculate Basal Metabolic Rate using Mifflin-St Jeor equation.

    Args:
        age: Age in years
        sex: Biological sex
        height_cm: Height in centimetres
        weight_kg: Weight in kilograms

    Returns:
        BMR in calories per day
    """
    base = (10 * weight_kg) + (6.25 * height_cm) - (5 * age)
    if sex == Sex.MALE:
        return base + 5
    return base - 161


def calculate_tdee(bmr: float, activity_level: ActivityLevel = DEFAULT_ACTIVITY_LEVEL) -> float:
    """Calculate Total Daily Energy Expenditure from BMR."""
    return bmr * ACTIVITY_MULTIPLIERS[activity_level]


def calculate_age(birth_date: date, today: date) -> int:
    """Whole years between ``birth_date`` and ``today``."""
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def calculate_cold_start_tdee(
    goals: UserGoals, current_weight_kg: float, today: date
) -> Optional[float]:
    """
    Formula TDEE for a user with no usable history.

    Returns None when height, birth date or sex is missing from the profile.
    """
    if not goals.height_cm or goals.birth_date is None or goals.sex is None:
        logger.debug("Missing profile data for cold start TDEE")
        return None

    age = calculate_age(goals.birth_date, today)
    bmr = calculate_bmr(age, Sex(goals.sex), goals.height_cm, current_weight_kg)
    tdee = calculate_tdee(bmr)
    if goals.athlete_status:
        tdee *= ATHLETE_CORRECTION
    return float(round(tdee))
