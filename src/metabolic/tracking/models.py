"""Data models for daily logs, computed metabolic state and user goals."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from datetime import date
from enum import Enum
from typing import Any, Optional

# Energy density used when no weight change is observed (kcal per kg)
DEFAULT_ENERGY_DENSITY = 7700.0


class LogStatus(str, Enum):
    """How completely a day's intake was logged."""

    COMPLETE = "complete"
    PARTIAL = "partial"
    SKIPPED = "skipped"


class GoalType(str, Enum):
    """Direction of the user's weight goal."""

    LOSE = "lose"
    MAINTAIN = "maintain"
    GAIN = "gain"


def _as_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


@dataclass
class DailyLog:
    """One calendar day of aggregated intake plus the day's scale weight.

    ``nutrition_calories`` is None when nothing was logged and 0 for a
    logged fast.
    """

    date: date
    scale_weight_kg: Optional[float] = None
    nutrition_calories: Optional[float] = None
    nutrition_protein_g: Optional[float] = None
    nutrition_carbs_g: Optional[float] = None
    nutrition_fat_g: Optional[float] = None
    step_count: Optional[int] = None
    log_status: LogStatus = LogStatus.SKIPPED
    id: Optional[str] = None

    def __post_init__(self) -> None:
        self.date = _as_date(self.date)
        try:
            self.log_status = LogStatus(self.log_status)
        except ValueError:
            raise ValueError(
                f"log_status must be one of {[s.value for s in LogStatus]}, got '{self.log_status}'"
            ) from None

    @property
    def has_nutrition(self) -> bool:
        return self.nutrition_calories is not None

    def to_fields(self) -> dict[str, Any]:
        """Store fields (without id)."""
        data = asdict(self)
        data.pop("id")
        data["log_status"] = self.log_status.value
        return data

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "DailyLog":
        step_count = row.get("step_count")
        return cls(
            date=_as_date(row["date"]),
            scale_weight_kg=_optional_float(row.get("scale_weight_kg")),
            nutrition_calories=_optional_float(row.get("nutrition_calories")),
            nutrition_protein_g=_optional_float(row.get("nutrition_protein_g")),
            nutrition_carbs_g=_optional_float(row.get("nutrition_carbs_g")),
            nutrition_fat_g=_optional_float(row.get("nutrition_fat_g")),
            step_count=None if step_count is None else int(step_count),
            log_status=row.get("log_status") or LogStatus.SKIPPED,
            id=row.get("id"),
        )


@dataclass
class ComputedState:
    """Trend weight and TDEE estimate for one date."""

    date: date
    trend_weight_kg: float
    estimated_tdee_kcal: float
    raw_tdee_kcal: float
    flux_confidence_range: float
    energy_density_used: float = DEFAULT_ENERGY_DENSITY
    weight_delta_kg: float = 0.0
    id: Optional[str] = None

    def __post_init__(self) -> None:
        self.date = _as_date(self.date)

    def to_fields(self) -> dict[str, Any]:
        """Store fields (without id)."""
        data = asdict(self)
        data.pop("id")
        return data

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ComputedState":
        return cls(
            date=_as_date(row["date"]),
            trend_weight_kg=float(row["trend_weight_kg"]),
            estimated_tdee_kcal=float(row["estimated_tdee_kcal"]),
            raw_tdee_kcal=float(row.get("raw_tdee_kcal", row["estimated_tdee_kcal"])),
            flux_confidence_range=float(row.get("flux_confidence_range", 0.0)),
            energy_density_used=float(row.get("energy_density_used", DEFAULT_ENERGY_DENSITY)),
            weight_delta_kg=float(row.get("weight_delta_kg", 0.0)),
            id=row.get("id"),
        )


@dataclass
class UserGoals:
    """Nutrition goals and the biometrics needed for a cold-start estimate.

    ``effective_from`` dates a goal snapshot; None means the snapshot has
    applied since the beginning of the history.
    """

    calorie_goal: float
    protein_goal: float
    carbs_goal: float
    fat_goal: float
    goal_type: GoalType = GoalType.MAINTAIN
    goal_rate: float = 0.5  # kg/week magnitude
    target_weight_kg: Optional[float] = None
    height_cm: Optional[float] = None
    birth_date: Optional[date] = None
    sex: Optional[str] = None  # 'male' or 'female'
    athlete_status: bool = False
    effective_from: Optional[date] = None

    def __post_init__(self) -> None:
        try:
            self.goal_type = GoalType(self.goal_type)
        except ValueError:
            raise ValueError(
                f"goal_type must be one of {[g.value for g in GoalType]}, got '{self.goal_type}'"
            ) from None
        if self.sex is not None and self.sex not in ("male", "female"):
            raise ValueError(f"sex must be 'male' or 'female', got '{self.sex}'")
        if self.birth_date is not None:
            self.birth_date = _as_date(self.birth_date)
        if self.effective_from is not None:
            self.effective_from = _as_date(self.effective_from)

    @classmethod
    def from_row(cls, row: dict[str, Any], defaults: "UserGoals") -> "UserGoals":
        """Build goals from a profile row, filling gaps from ``defaults``."""
        names = {f.name for f in fields(cls)}
        merged = {name: getattr(defaults, name) for name in names}
        merged.update({k: v for k, v in row.items() if k in names and v is not None})
        return cls(**merged)
