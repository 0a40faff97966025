"""CLI interface using Typer."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from metabolic.config import get_settings
from metabolic.dates import parse_timestamp, to_aware
from metabolic.db import RecordKind, SQLiteStore
from metabolic.logging import setup_logging
from metabolic.tracking.aggregator import pick_weight
from metabolic.tracking.diagnostics import format_tdee_report, generate_tdee_report
from metabolic.tracking.models import ComputedState, UserGoals
from metabolic.tracking.service import MetabolicService
from metabolic.tracking.validators import validate_calorie_entry, validate_weight_entry

app = typer.Typer(
    help="Adaptive TDEE and trend-weight tracking",
    no_args_is_help=True,
)
console = Console()

meal_app = typer.Typer(help="Log meals")
food_app = typer.Typer(help="Log standalone food items")
weight_app = typer.Typer(help="Log scale weight")
steps_app = typer.Typer(help="Log daily step counts")
profile_app = typer.Typer(help="Manage goals and biometrics")

app.add_typer(meal_app, name="meal")
app.add_typer(food_app, name="food")
app.add_typer(weight_app, name="weight")
app.add_typer(steps_app, name="steps")
app.add_typer(profile_app, name="profile")


# ============================================================================
# Helpers
# ============================================================================


def output_json(response: dict) -> None:
    """Output JSON response to stdout."""
    print(json.dumps(response, indent=2, default=str))


def get_service() -> MetabolicService:
    """Service over the configured SQLite store (schema created on first use)."""
    settings = get_settings()
    store = SQLiteStore(settings.database.path)
    store.initialize_schema()
    return MetabolicService(store, settings)


def parse_when(value: Optional[str], service: MetabolicService) -> datetime:
    """Parse a --at option, defaulting to now in the configured zone."""
    if value is None:
        return datetime.now(service.tz)
    if len(value.strip()) == 10:
        value = f"{value.strip()}T12:00:00"
    return to_aware(parse_timestamp(value), service.tz)


async def current_tdee(service: MetabolicService) -> float:
    """Latest estimated TDEE, or the configured default."""
    rows = await service.store.list(RecordKind.COMPUTED_STATE)
    if not rows:
        return service.config.default_tdee
    latest = max((ComputedState.from_row(row) for row in rows), key=lambda s: s.date)
    return latest.estimated_tdee_kcal


def fail(command: str, message: str, json_output: bool) -> None:
    """Report an error and exit with status 1."""
    if json_output:
        output_json({"success": False, "command": command, "errors": [message]})
    else:
        console.print(f"[red]{message}[/red]")
    raise typer.Exit(1)


@app.callback()
def main() -> None:
    """Configure logging from settings."""
    settings = get_settings()
    setup_logging(settings.logging)


# ============================================================================
# Intake
# ============================================================================


def _log_intake(
    command: str,
    kind: RecordKind,
    fields: dict,
    calories: float,
    when: Optional[str],
    json_output: bool,
) -> None:
    service = get_service()
    eaten_at = parse_when(when, service)

    check = validate_calorie_entry(calories, asyncio.run(current_tdee(service)))
    if not check.is_valid:
        fail(command, check.warning or "Invalid calorie entry", json_output)

    row = asyncio.run(service.store.create(kind, {**fields, "eaten_at": eaten_at}))
    days = asyncio.run(service.on_meal_logged(eaten_at))

    if json_output:
        output_json({
            "success": True,
            "command": command,
            "data": {"id": row["id"], "eaten_at": eaten_at.isoformat(), "days_recomputed": days},
            "warnings": [check.warning] if check.warning else [],
            "human_summary": f"Logged {calories:.0f} kcal, {days} day(s) recomputed",
        })
    else:
        if check.warning:
            console.print(f"[yellow]Warning:[/yellow] {check.warning}")
        console.print(f"[green]Logged:[/green] {calories:.0f} kcal at {eaten_at:%Y-%m-%d %H:%M}")
        console.print(f"[blue]Recomputed:[/blue] {days} day(s)")


@meal_app.command("add")
def meal_add(
    calories: float = typer.Argument(..., help="Total calories"),
    protein: float = typer.Option(0.0, "--protein", "-p", help="Protein (g)"),
    carbs: float = typer.Option(0.0, "--carbs", "-c", help="Carbohydrates (g)"),
    fat: float = typer.Option(0.0, "--fat", "-f", help="Fat (g)"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Meal name"),
    when: Optional[str] = typer.Option(None, "--at", help="Timestamp or date (default: now)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Log a meal and update the metabolic estimate."""
    fields = {
        "name": name,
        "total_calories": calories,
        "total_protein": protein,
        "total_carbs": carbs,
        "total_fat": fat,
    }
    _log_intake("meal add", RecordKind.MEAL, fields, calories, when, json_output)


@food_app.command("add")
def food_add(
    name: str = typer.Argument(..., help="Food name"),
    calories: float = typer.Argument(..., help="Calories"),
    protein: float = typer.Option(0.0, "--protein", "-p", help="Protein (g)"),
    carbs: float = typer.Option(0.0, "--carbs", "-c", help="Carbohydrates (g)"),
    fat: float = typer.Option(0.0, "--fat", "-f", help="Fat (g)"),
    when: Optional[str] = typer.Option(None, "--at", help="Timestamp or date (default: now)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Log a standalone food item and update the metabolic estimate."""
    fields = {"name": name, "calories": calories, "protein": protein, "carbs": carbs, "fat": fat}
    _log_intake("food add", RecordKind.FOOD_LOG, fields, calories, when, json_output)


# ============================================================================
# Weight
# ============================================================================


@weight_app.command("add")
def weight_add(
    weight: float = typer.Argument(..., help="Weight in kg"),
    when: Optional[str] = typer.Option(None, "--at", help="Timestamp or date (default: now)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Add a weight entry and recompute the trend forward from its day."""
    service = get_service()
    recorded_at = parse_when(when, service)

    previous_rows = asyncio.run(
        service.store.list(RecordKind.WEIGHT_LOG, {"recorded_at": {"lt": recorded_at}})
    )
    check = validate_weight_entry(weight, pick_weight(previous_rows, service.tz))
    if not check.is_valid:
        fail("weight add", check.warning or "Invalid weight", json_output)

    asyncio.run(
        service.store.create(
            RecordKind.WEIGHT_LOG, {"weight_kg": weight, "recorded_at": recorded_at}
        )
    )
    days = asyncio.run(service.on_weight_logged(recorded_at))

    if json_output:
        output_json({
            "success": True,
            "command": "weight add",
            "data": {
                "weight_kg": weight,
                "recorded_at": recorded_at.isoformat(),
                "days_recomputed": days,
            },
            "warnings": [check.warning] if check.warning else [],
            "human_summary": f"Logged {weight:.1f} kg, {days} day(s) recomputed",
        })
    else:
        if check.warning:
            console.print(f"[yellow]Warning:[/yellow] {check.warning}")
        console.print(f"[green]Logged:[/green] {weight:.1f} kg on {recorded_at:%Y-%m-%d}")
        console.print(f"[blue]Recomputed:[/blue] {days} day(s)")


@steps_app.command("add")
def steps_add(
    steps: int = typer.Argument(..., help="Step count for the day"),
    when: Optional[str] = typer.Option(None, "--at", help="Date (default: today)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Set a day's step count and recompute forward from it."""
    if steps < 0:
        fail("steps add", "Step count cannot be negative", json_output)

    service = get_service()
    day = parse_when(when, service)
    days = asyncio.run(service.on_steps_logged(day, steps))

    if json_output:
        output_json({
            "success": True,
            "command": "steps add",
            "data": {"steps": steps, "date": f"{day:%Y-%m-%d}", "days_recomputed": days},
            "warnings": [],
            "human_summary": f"Logged {steps} steps, {days} day(s) recomputed",
        })
    else:
        console.print(f"[green]Logged:[/green] {steps} steps on {day:%Y-%m-%d}")
        console.print(f"[blue]Recomputed:[/blue] {days} day(s)")


# ============================================================================
# Profile
# ============================================================================


@profile_app.command("set")
def profile_set(
    calorie_goal: Optional[float] = typer.Option(None, "--calories", help="Daily calorie goal"),
    protein_goal: Optional[float] = typer.Option(None, "--protein", help="Protein goal (g)"),
    carbs_goal: Optional[float] = typer.Option(None, "--carbs", help="Carbohydrate goal (g)"),
    fat_goal: Optional[float] = typer.Option(None, "--fat", help="Fat goal (g)"),
    goal_type: Optional[str] = typer.Option(None, "--goal", "-g", help="lose, maintain or gain"),
    goal_rate: Optional[float] = typer.Option(None, "--rate", "-r", help="Target kg/week"),
    height_cm: Optional[float] = typer.Option(None, "--height", help="Height in cm"),
    birth_date: Optional[str] = typer.Option(None, "--birth-date", help="YYYY-MM-DD"),
    sex: Optional[str] = typer.Option(None, "--sex", "-s", help="male or female"),
    athlete: Optional[bool] = typer.Option(None, "--athlete/--no-athlete", help="Athlete status"),
    effective_from: Optional[str] = typer.Option(
        None, "--from", help="Date the goals apply from (default: today)"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Record a new goal snapshot, starting from the current one."""
    service = get_service()
    snapshots = asyncio.run(service.goal_snapshots())
    fields = dict(vars(snapshots[-1]))

    updates = {
        "calorie_goal": calorie_goal,
        "protein_goal": protein_goal,
        "carbs_goal": carbs_goal,
        "fat_goal": fat_goal,
        "goal_type": goal_type,
        "goal_rate": goal_rate,
        "height_cm": height_cm,
        "birth_date": birth_date,
        "sex": sex,
        "athlete_status": athlete,
    }
    fields.update({k: v for k, v in updates.items() if v is not None})
    fields["effective_from"] = effective_from or service.today()

    try:
        goals = UserGoals(**fields)
    except ValueError as e:
        fail("profile set", str(e), json_output)

    row = {k: (v.value if hasattr(v, "value") else v) for k, v in vars(goals).items()}
    row["user_id"] = service.user_id
    asyncio.run(service.store.create(RecordKind.USER_PROFILE, row))

    if json_output:
        output_json({"success": True, "command": "profile set", "data": row})
    else:
        console.print(
            f"[green]Goals set:[/green] {goals.goal_type.value} "
            f"{goals.goal_rate} kg/week, {goals.calorie_goal:.0f} kcal "
            f"from {goals.effective_from}"
        )


# ============================================================================
# Recalculation and reports
# ============================================================================


@app.command("recalc")
def recalc(
    from_date: str = typer.Argument(..., help="Date to recalculate from (YYYY-MM-DD)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Recompute trend weight and TDEE from a date onwards."""
    service = get_service()
    days = asyncio.run(service.recalculate_tdee_from_date(from_date))

    if json_output:
        output_json({"success": True, "command": "recalc", "data": {"days_recomputed": days}})
    else:
        console.print(f"[green]Recomputed {days} day(s) from {from_date}[/green]")


@app.command("backfill")
def backfill(
    days: int = typer.Option(90, "--days", "-d", help="Number of days to rebuild"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Rebuild daily logs and computed states from raw entries."""
    service = get_service()
    result = asyncio.run(service.backfill_metabolic_data(days))

    if json_output:
        output_json({"success": True, "command": "backfill", "data": result})
        return

    table = Table(title=f"Backfill (last {days} days)")
    table.add_column("Metric")
    table.add_column("Count", justify="right")
    for key, value in result.items():
        table.add_row(key.replace("_", " "), str(value))
    console.print(table)


@app.command("report")
def report(
    days: int = typer.Option(30, "--days", "-d", help="Days to analyze"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show trend weight, TDEE estimate and data quality."""
    service = get_service()
    tdee_report = asyncio.run(generate_tdee_report(service, days))

    if tdee_report is None:
        if json_output:
            output_json({"success": True, "command": "report", "data": None,
                         "human_summary": "No computed data yet"})
        else:
            console.print("No computed data yet. Log weight and meals first.")
        return

    if json_output:
        output_json({"success": True, "command": "report", "data": tdee_report.to_dict()})
    else:
        console.print(format_tdee_report(tdee_report))


if __name__ == "__main__":
    app()
