"""Tests for model validation and row mapping."""

from __future__ import annotations

from datetime import date

import pytest

from metabolic.tracking.models import ComputedState, DailyLog, GoalType, LogStatus, UserGoals


class TestDailyLog:
    """Tests for DailyLog."""

    def test_defaults(self):
        log = DailyLog(date="2026-01-15")
        assert log.date == date(2026, 1, 15)
        assert log.log_status == LogStatus.SKIPPED
        assert not log.has_nutrition

    def test_invalid_status(self):
        with pytest.raises(ValueError, match="log_status"):
            DailyLog(date=date(2026, 1, 15), log_status="done")

    def test_row_mapping(self):
        log = DailyLog(date(2026, 1, 15), 80.2, 2100, 140, 220, 70, 9000, "complete")
        fields = log.to_fields()
        assert "id" not in fields
        assert fields["log_status"] == "complete"
        assert DailyLog.from_row({**fields, "id": "x"}) == DailyLog(
            date(2026, 1, 15), 80.2, 2100, 140, 220, 70, 9000, LogStatus.COMPLETE, "x"
        )


class TestComputedState:
    """Tests for ComputedState."""

    def test_from_row_defaults(self):
        state = ComputedState.from_row(
            {"date": "2026-01-15", "trend_weight_kg": 80, "estimated_tdee_kcal": 2500}
        )
        assert state.raw_tdee_kcal == 2500
        assert state.energy_density_used == 7700
        assert state.weight_delta_kg == 0


class TestUserGoals:
    """Tests for UserGoals."""

    def test_invalid_goal_type(self):
        with pytest.raises(ValueError, match="goal_type"):
            UserGoals(2000, 150, 200, 65, goal_type="bulk")

    def test_invalid_sex(self):
        with pytest.raises(ValueError, match="sex"):
            UserGoals(2000, 150, 200, 65, sex="other")

    def test_from_row_fills_gaps(self):
        defaults = UserGoals(2000, 150, 200, 65)
        goals = UserGoals.from_row(
            {"goal_type": "gain", "fat_goal": None, "effective_from": "2026-02-01", "id": "p1"},
            defaults,
        )
        assert goals.goal_type == GoalType.GAIN
        assert goals.fat_goal == 65
        assert goals.effective_from == date(2026, 2, 1)
