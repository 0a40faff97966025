"""Application settings and configuration management."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

import yaml


def _default_config_dir() -> Path:
    """Return the default configuration directory."""
    return Path.home() / ".metabolic"


def _default_db_path() -> Path:
    """Return the default database path."""
    return _default_config_dir() / "metabolic.db"


@dataclass
class DatabaseConfig:
    """Database configuration."""

    path: Path = field(default_factory=_default_db_path)


@dataclass
class EstimatorConfig:
    """Constants for the trend-weight and TDEE recurrence.

    These are held constant across a recalculation; changing them changes
    every persisted ComputedState on the next run.
    """

    weight_smoothing: float = 0.1  # Hacker's Diet 10% trend, ~10 day time constant
    tdee_smoothing: float = 0.1
    tdee_smoothing_responsive: float = 0.2  # used after a step-count jump
    step_responsiveness_threshold: float = 0.2  # relative step increase
    window_days: int = 14
    outlier_window: int = 14
    outlier_min_samples: int = 5
    energy_density_deficit: float = 7700.0  # kcal/kg, fat loss dominant
    energy_density_surplus: float = 5500.0  # kcal/kg, anabolic inefficiency
    default_tdee: float = 2000.0
    lookback_days: int = 14


@dataclass
class DefaultGoalsConfig:
    """Goals used when no user profile can be read."""

    calorie_goal: float = 2000.0
    protein_goal: float = 150.0
    carbs_goal: float = 200.0
    fat_goal: float = 65.0
    goal_type: str = "maintain"
    goal_rate: float = 0.5


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"


@dataclass
class Settings:
    """Main application settings."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    timezone: str = "UTC"
    estimator: EstimatorConfig = field(default_factory=EstimatorConfig)
    default_goals: DefaultGoalsConfig = field(default_factory=DefaultGoalsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        """Load settings from YAML file or return defaults.

        Args:
            config_path: Path to config.yaml. If None, uses ~/.metabolic/config.yaml

        Returns:
            Settings instance
        """
        if config_path is None:
            config_path = _default_config_dir() / "config.yaml"

        if not config_path.exists():
            return cls()

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        """Build settings from a parsed config mapping, ignoring unknown keys."""
        settings = cls()

        if "database" in data:
            db_data = data["database"] or {}
            if "path" in db_data:
                settings.database.path = Path(db_data["path"]).expanduser()

        if "timezone" in data:
            settings.timezone = str(data["timezone"])

        # Parse estimator config
        if "estimator" in data:
            est_data = data["estimator"] or {}
            est = settings.estimator
            for name in (
                "weight_smoothing",
                "tdee_smoothing",
                "tdee_smoothing_responsive",
                "step_responsiveness_threshold",
                "energy_density_deficit",
                "energy_density_surplus",
                "default_tdee",
            ):
                if name in est_data:
                    setattr(est, name, float(est_data[name]))
            for name in ("window_days", "outlier_window", "outlier_min_samples", "lookback_days"):
                if name in est_data:
                    setattr(est, name, int(est_data[name]))

        # Parse default goals
        if "default_goals" in data:
            goals_data = data["default_goals"] or {}
            goals = settings.default_goals
            for name in ("calorie_goal", "protein_goal", "carbs_goal", "fat_goal", "goal_rate"):
                if name in goals_data:
                    setattr(goals, name, float(goals_data[name]))
            if "goal_type" in goals_data:
                goals.goal_type = goals_data["goal_type"]

        if "logging" in data:
            log_data = data["logging"] or {}
            if "level" in log_data:
                settings.logging.level = str(log_data["level"]).upper()
            if "format" in log_data:
                settings.logging.format = log_data["format"]

        return settings

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save current settings to YAML file.

        Args:
            config_path: Path to save config.yaml. If None, uses ~/.metabolic/config.yaml
        """
        if config_path is None:
            config_path = _default_config_dir() / "config.yaml"

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "database": {
                "path": str(self.database.path),
            },
            "timezone": self.timezone,
            "estimator": asdict(self.estimator),
            "default_goals": asdict(self.default_goals),
            "logging": asdict(self.logging),
        }

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


# Global settings instance (lazy loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance, loading from disk if needed."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reload_settings(config_path: Optional[Path] = None) -> Settings:
    """Force reload settings from disk."""
    global _settings
    _settings = Settings.load(config_path)
    return _settings
