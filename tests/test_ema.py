"""Tests for the trend and TDEE moving averages."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from metabolic.tracking.ema import (
    DEFAULT_SMOOTHING,
    gap_alpha,
    relative_step_change,
    smooth_tdee,
    update_trend,
    weekly_weight_change,
)
from metabolic.tracking.models import ComputedState


class TestGapAlpha:
    """Tests for gap_alpha."""

    def test_daily_unchanged(self) -> None:
        assert gap_alpha(0.1, 1) == pytest.approx(0.1)

    def test_weekly_gap(self) -> None:
        """A weekly reading carries seven days of blend weight."""
        assert gap_alpha(0.1, 7) == pytest.approx(1 - 0.9 ** 7)

    def test_short_gaps_count_as_one_day(self) -> None:
        assert gap_alpha(0.1, 0) == pytest.approx(0.1)
        assert gap_alpha(0.1, -1) == pytest.approx(0.1)

    def test_long_gap_trusts_reading(self) -> None:
        assert gap_alpha(0.1, 30) > 0.95

class TestUpdateTrend:
    """Tests for update_trend function."""

    def test_daily_update(self) -> None:
        assert update_trend(80.0, 79.0) == pytest.approx(79.9)

    def test_default_smoothing(self) -> None:
        assert DEFAULT_SMOOTHING == 0.1

    def test_missing_weight_holds_trend(self) -> None:
        assert update_trend(80.0, None) == 80.0
        assert update_trend(80.0, None, days_elapsed=5) == 80.0

    def test_multi_day_gap_gives_more_weight(self) -> None:
        """Longer gaps should give more weight to new measurement."""
        daily = update_trend(80.0, 78.0, days_elapsed=1)
        three_day = update_trend(80.0, 78.0, days_elapsed=3)
        assert three_day < daily

    def test_gain_symmetric(self) -> None:
        assert update_trend(80.0, 81.0) == pytest.approx(80.1)


class TestSmoothTdee:
    """Tests for smooth_tdee function."""

    def test_moves_ten_percent(self) -> None:
        assert smooth_tdee(3000, 2500) == pytest.approx(2550)

    def test_equal_values_stable(self) -> None:
        assert smooth_tdee(2500, 2500) == 2500

    def test_step_jump_uses_responsive_rate(self) -> None:
        """A 50% rise in steps doubles the blend rate."""
        assert smooth_tdee(3000, 2500, step_change=0.5) == pytest.approx(2600)

    def test_small_step_change_keeps_normal_rate(self) -> None:
        assert smooth_tdee(3000, 2500, step_change=0.2) == pytest.approx(2550)
        assert smooth_tdee(3000, 2500, step_change=-0.6) == pytest.approx(2550)


class TestRelativeStepChange:
    """Tests for relative_step_change."""

    def test_increase(self) -> None:
        assert relative_step_change(8000, 12000) == pytest.approx(0.5)

    def test_unknown_counts(self) -> None:
        assert relative_step_change(None, 9000) is None
        assert relative_step_change(9000, None) is None
        assert relative_step_change(0, 9000) is None


class TestWeeklyWeightChange:
    """Tests for weekly_weight_change."""

    def _states(self, trends: list[float]) -> list[ComputedState]:
        start = date(2026, 1, 1)
        return [
            ComputedState(start + timedelta(days=i), trend, 2500, 2500, 100)
            for i, trend in enumerate(trends)
        ]

    def test_too_few_states(self) -> None:
        assert weekly_weight_change([]) == 0
        assert weekly_weight_change(self._states([80.0])) == 0

    def test_full_week(self) -> None:
        trends = [80.0 - 0.1 * i for i in range(10)]
        assert weekly_weight_change(self._states(trends)) == pytest.approx(-0.7)

    def test_short_history_scaled_to_week(self) -> None:
        # 0.2 kg over two days -> 0.7 kg/week
        assert weekly_weight_change(self._states([80.0, 80.1, 80.2])) == pytest.approx(0.7)
