"""Diagnostic output for trend weight and TDEE analysis."""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Any, Optional, Sequence

from metabolic.db.store import RecordKind
from metabolic.tracking.edge_cases import (
    DataQualityScore,
    TdeeStatistics,
    calculate_data_quality_score,
    calculate_tdee_statistics,
)
from metabolic.tracking.ema import weekly_weight_change
from metabolic.tracking.models import ComputedState, DailyLog, LogStatus
from metabolic.tracking.service import MetabolicService

# Days of complete logging before the estimate is considered calibrated
COLD_START_DAYS = 7


def determine_confidence_level(days_tracked: int, recent_missing_days: int) -> str:
    """
    Confidence in the TDEE estimate.

    Args:
        days_tracked: Days with completely logged intake
        recent_missing_days: Days of the last seven without a complete log

    Returns:
        'learning', 'low', 'medium' or 'high'
    """
    if days_tracked < COLD_START_DAYS:
        return "learning"
    if recent_missing_days > 3:
        return "low"
    if recent_missing_days > 1:
        return "medium"
    return "high"


@dataclass
class TDEEReport:
    """Summary of the metabolic estimate over a period."""

    period_days: int
    trend_weight_kg: float
    weekly_rate_kg: float  # negative = losing
    estimated_tdee: float
    flux_range: float
    avg_intake: Optional[float]
    statistics: TdeeStatistics
    confidence_level: str
    quality: DataQualityScore
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def build_tdee_report(
    states: Sequence[ComputedState],
    daily_logs: Sequence[DailyLog],
    today: date,
    period_days: int,
) -> Optional[TDEEReport]:
    """Assemble a report from already loaded rows; None without states."""
    if not states:
        return None

    states = sorted(states, key=lambda s: s.date)
    latest = states[-1]

    complete = {d.date for d in daily_logs if d.log_status == LogStatus.COMPLETE}
    recent = {today - timedelta(days=i) for i in range(7)}
    confidence = determine_confidence_level(len(complete), len(recent - complete))

    intakes = [d.nutrition_calories for d in daily_logs if d.log_status == LogStatus.COMPLETE]
    avg_intake = sum(intakes) / len(intakes) if intakes else None

    weekly_rate = weekly_weight_change(states)
    quality = calculate_data_quality_score(daily_logs, latest.estimated_tdee_kcal)

    notes = []
    if avg_intake is not None:
        balance = avg_intake - latest.estimated_tdee_kcal
        implied = weekly_rate * latest.energy_density_used / 7
        if abs(balance - implied) > 300:
            notes.append(
                f"Logged balance ({balance:+.0f} kcal/day) disagrees with the weight "
                f"trend ({implied:+.0f} kcal/day). Intake may be under-logged."
            )
    if weekly_rate < -1.0:
        notes.append("Losing more than 1 kg/week. This pace may not be sustainable.")
    if confidence == "learning":
        notes.append(
            f"Still calibrating: {len(complete)}/{COLD_START_DAYS} complete days logged."
        )

    return TDEEReport(
        period_days=period_days,
        trend_weight_kg=latest.trend_weight_kg,
        weekly_rate_kg=weekly_rate,
        estimated_tdee=latest.estimated_tdee_kcal,
        flux_range=latest.flux_confidence_range,
        avg_intake=avg_intake,
        statistics=calculate_tdee_statistics(states),
        confidence_level=confidence,
        quality=quality,
        notes=notes,
    )


async def generate_tdee_report(service: MetabolicService, days: int = 30) -> Optional[TDEEReport]:
    """Load the last ``days`` days from the service's store and build a report."""
    today = service.today()
    start = today - timedelta(days=days - 1)
    date_filter = {"date": {"between": [start, today]}}
    state_rows, log_rows = await asyncio.gather(
        service.store.list(RecordKind.COMPUTED_STATE, date_filter),
        service.store.list(RecordKind.DAILY_LOG, date_filter),
    )
    return build_tdee_report(
        [ComputedState.from_row(row) for row in state_rows],
        [DailyLog.from_row(row) for row in log_rows],
        today,
        days,
    )


def format_tdee_report(report: TDEEReport) -> str:
    """Format TDEE report as text."""
    rate_dir = "losing" if report.weekly_rate_kg < 0 else "gaining"
    lines = [
        f"Metabolic Report (last {report.period_days} days)",
        "=" * 45,
        f"Trend weight:   {report.trend_weight_kg:.1f} kg",
        f"Rate:           {abs(report.weekly_rate_kg):.2f} kg/week ({rate_dir})",
        f"Estimated TDEE: {report.estimated_tdee:.0f} ± {report.flux_range:.0f} kcal/day",
        f"Confidence:     {report.confidence_level}",
    ]

    if report.avg_intake is not None:
        lines.append(f"Average intake: {report.avg_intake:.0f} kcal/day")

    stats = report.statistics
    lines.append(
        f"TDEE range:     {stats.min:.0f}-{stats.max:.0f} kcal "
        f"(mean {stats.average:.0f}, sd {stats.std_dev:.0f})"
    )

    lines.append("")
    lines.append(f"Data quality: {report.quality.score:.0f}/100")
    for issue in report.quality.issues:
        lines.append(f"  - {issue}")

    if report.notes:
        lines.append("")
        lines.append("Notes:")
        for note in report.notes:
            lines.append(f"  - {note}")

    return "\n".join(lines)
