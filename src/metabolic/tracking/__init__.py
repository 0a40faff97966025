"""Metabolic tracking: aggregation, corrections, estimation and orchestration."""

from __future__ import annotations

from metabolic.tracking.models import ComputedState, DailyLog, GoalType, LogStatus, UserGoals

__all__ = [
    "ComputedState",
    "DailyLog",
    "GoalType",
    "LogStatus",
    "UserGoals",
]
