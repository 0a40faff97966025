"""Tests for the edge-case corrections."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from metabolic.tracking.edge_cases import (
    WhooshSeverity,
    calculate_data_quality_score,
    calculate_goal_transition_adjustment,
    calculate_tdee_statistics,
    damp_whoosh_effect,
    detect_goal_transition,
    is_partial_logging,
    is_tdee_outlier,
    is_whoosh_effect,
    validate_daily_log_for_tdee,
)
from metabolic.tracking.models import ComputedState, DailyLog, LogStatus, UserGoals


def make_goals(goal_type: str = "lose", goal_rate: float = 0.5) -> UserGoals:
    return UserGoals(2000, 150, 200, 65, goal_type=goal_type, goal_rate=goal_rate)


def make_logs(n: int, calories=2200, weight=80.0, status=LogStatus.COMPLETE) -> list[DailyLog]:
    start = date(2026, 1, 1)
    logs = []
    for i in range(n):
        cal = calories(i) if callable(calories) else calories
        logs.append(
            DailyLog(
                date=start + timedelta(days=i),
                scale_weight_kg=weight,
                nutrition_calories=cal,
                log_status=status,
            )
        )
    return logs


class TestPartialLogging:
    """Tests for is_partial_logging."""

    @pytest.mark.parametrize("tdee", [1500, 2500, 4000])
    def test_untracked_and_fasted_are_not_partial(self, tdee):
        for calories in (None, 0):
            result = is_partial_logging(calories, tdee)
            assert not result.is_partial
            assert result.reason is None

    def test_below_floor(self):
        result = is_partial_logging(400, 2500)
        assert result.is_partial
        assert "likely incomplete" in result.reason

    def test_below_half_tdee(self):
        result = is_partial_logging(1000, 2500)
        assert result.is_partial
        assert "less than 50%" in result.reason

    def test_plausible_day(self):
        assert not is_partial_logging(1300, 2500).is_partial


class TestValidateDailyLogForTdee:
    """Tests for the gate in front of the TDEE recurrence."""

    def test_no_nutrition(self):
        result = validate_daily_log_for_tdee(DailyLog(date=date(2026, 1, 1)), 2500)
        assert not result.is_valid

    def test_partial_day(self):
        log = DailyLog(date=date(2026, 1, 1), nutrition_calories=400, log_status="partial")
        result = validate_daily_log_for_tdee(log, 2500)
        assert not result.is_valid
        assert "incomplete" in result.reason

    def test_skipped_day(self):
        log = DailyLog(date=date(2026, 1, 1), nutrition_calories=2000, log_status="skipped")
        assert not validate_daily_log_for_tdee(log, 2500).is_valid

    def test_complete_day(self):
        log = DailyLog(date=date(2026, 1, 1), nutrition_calories=2000, log_status="complete")
        assert validate_daily_log_for_tdee(log, 2500).is_valid


class TestWhoosh:
    """Tests for whoosh detection and damping."""

    def test_moderate(self):
        result = is_whoosh_effect(-0.6, -0.2)
        assert result.is_whoosh
        assert result.severity == WhooshSeverity.MODERATE

    def test_mild(self):
        result = is_whoosh_effect(-0.45, -0.1)
        assert result.is_whoosh
        assert result.severity == WhooshSeverity.MILD

    def test_extreme(self):
        assert is_whoosh_effect(-2.0, -0.3).severity == WhooshSeverity.EXTREME

    def test_symmetric_for_gains(self):
        assert is_whoosh_effect(1.8, 0.2).severity == WhooshSeverity.EXTREME
        assert is_whoosh_effect(0.6, 0.2).severity == WhooshSeverity.MODERATE

    def test_normal_fluctuation(self):
        result = is_whoosh_effect(-0.2, -0.1)
        assert not result.is_whoosh
        assert result.severity is None

    def test_damping_factors(self):
        assert damp_whoosh_effect(-0.45, -0.1) == pytest.approx(-0.45 * 0.7)
        assert damp_whoosh_effect(-0.6, -0.2) == pytest.approx(-0.6 * 0.5)
        assert damp_whoosh_effect(-2.0, -0.3) == pytest.approx(-2.0 * 0.3)

    def test_no_whoosh_returns_trend_delta(self):
        assert damp_whoosh_effect(-0.2, -0.07) == -0.07


class TestGoalTransition:
    """Tests for goal transition adjustment and detection."""

    def test_lose_to_gain_increases(self):
        result = calculate_goal_transition_adjustment(2500, "lose", "gain", 0.5, 0.5)
        assert result.adjusted_tdee > 2500
        assert result.adjustment > 0
        assert "increased" in result.reason

    def test_gain_to_lose_decreases(self):
        result = calculate_goal_transition_adjustment(2500, "gain", "lose", 0.5, 0.5)
        assert result.adjusted_tdee < 2500
        assert "decreased" in result.reason

    def test_same_goal_unchanged(self):
        result = calculate_goal_transition_adjustment(2500, "lose", "lose", 0.5, 0.5)
        assert result.adjusted_tdee == 2500
        assert result.adjustment == 0

    def test_maintain_transitions_unchanged(self):
        for prev, new in (("lose", "maintain"), ("maintain", "gain")):
            result = calculate_goal_transition_adjustment(2500, prev, new, 0.5, 0.5)
            assert result.adjusted_tdee == 2500
            assert result.adjustment == 0

    def test_adjustment_grows_with_rate(self):
        slow = calculate_goal_transition_adjustment(2500, "lose", "gain", 0.25, 0.25)
        fast = calculate_goal_transition_adjustment(2500, "lose", "gain", 1.0, 0.5)
        assert fast.adjustment > slow.adjustment

    def test_detect_none_previous(self):
        assert not detect_goal_transition(None, make_goals()).has_transitioned

    def test_detect_equal_goals(self):
        assert not detect_goal_transition(make_goals(), make_goals()).has_transitioned

    def test_detect_type_change(self):
        result = detect_goal_transition(make_goals("lose"), make_goals("gain"))
        assert result.has_transitioned
        assert "lose" in result.details and "gain" in result.details

    def test_detect_rate_change(self):
        result = detect_goal_transition(make_goals("lose", 0.5), make_goals("lose", 1.0))
        assert result.has_transitioned
        assert "Rate" in result.details

    def test_rate_ignored_at_maintenance(self):
        result = detect_goal_transition(make_goals("maintain", 0.5), make_goals("maintain", 1.0))
        assert not result.has_transitioned


class TestDataQualityScore:
    """Tests for calculate_data_quality_score."""

    def test_empty(self):
        result = calculate_data_quality_score([], 2500)
        assert result.score == 0
        assert result.issues

    def test_clean_data(self):
        logs = make_logs(14, calories=lambda i: 2000 + (i % 3) * 300)
        result = calculate_data_quality_score(logs, 2500)
        assert result.score == 100
        assert result.issues == []

    def test_partial_days_flagged(self):
        logs = make_logs(10, calories=lambda i: 400 if i < 4 else 2000 + i * 50)
        for log in logs[:4]:
            log.log_status = LogStatus.PARTIAL
        result = calculate_data_quality_score(logs, 2500)
        assert result.score < 100
        assert any("incomplete" in issue for issue in result.issues)

    def test_missing_weight_flagged(self):
        logs = make_logs(10, calories=lambda i: 2000 + i * 50, weight=None)
        result = calculate_data_quality_score(logs, 2500)
        assert result.score <= 70
        assert any("weight" in issue for issue in result.issues)

    def test_low_completion(self):
        logs = make_logs(10, calories=None, weight=None, status=LogStatus.SKIPPED)
        result = calculate_data_quality_score(logs, 2500)
        assert result.score == 30

    def test_uniform_calories_flagged(self):
        logs = make_logs(7, calories=2000)
        result = calculate_data_quality_score(logs, 2500)
        assert result.score == 90
        assert any("consistent" in issue for issue in result.issues)


class TestOutliers:
    """Tests for is_tdee_outlier and calculate_tdee_statistics."""

    def test_outlier(self):
        result = is_tdee_outlier(2800, 2500, 100)
        assert result.is_outlier
        assert result.deviation == 300

    def test_within_two_sigma(self):
        assert not is_tdee_outlier(2650, 2500, 100).is_outlier

    def test_zero_std_never_flags(self):
        assert not is_tdee_outlier(2600, 2500, 0).is_outlier
        assert not is_tdee_outlier(9000, 2500, 0).is_outlier

    def test_statistics_empty(self):
        stats = calculate_tdee_statistics([])
        assert (stats.average, stats.std_dev, stats.min, stats.max) == (0, 0, 0, 0)

    def test_statistics(self):
        states = [
            ComputedState(date(2026, 1, i + 1), 80.0, tdee, tdee, 100.0)
            for i, tdee in enumerate([2400, 2500, 2600])
        ]
        stats = calculate_tdee_statistics(states)
        assert stats.average == pytest.approx(2500)
        assert stats.min == 2400
        assert stats.max == 2600
        assert stats.std_dev > 0
