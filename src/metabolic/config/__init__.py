"""Configuration loading."""

from __future__ import annotations

from metabolic.config.settings import (
    DatabaseConfig,
    DefaultGoalsConfig,
    EstimatorConfig,
    LoggingConfig,
    Settings,
    get_settings,
    reload_settings,
)

__all__ = [
    "DatabaseConfig",
    "DefaultGoalsConfig",
    "EstimatorConfig",
    "LoggingConfig",
    "Settings",
    "get_settings",
    "reload_settings",
]
