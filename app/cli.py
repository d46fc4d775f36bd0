from __future__ import annotations

import logging
from pathlib import Path
from typing import List, NoReturn, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from adapters.layout.strategies import compute_layout, compute_segments
from app.config import AppSettings, load_settings
from app.schedule_wiring import load_registry, persist_registry
from domain.errors import ScheduleError
from domain.models import LayoutMode, QueryFilter, Schedule, SchedulePayload
from domain.services.schedule_registry import ScheduleRegistry

app = typer.Typer(no_args_is_help=True)
console = Console()


def _settings(ctx: typer.Context) -> AppSettings:
    return ctx.obj["settings"]


def _open(ctx: typer.Context) -> ScheduleRegistry:
    return load_registry(_settings(ctx))


def _fail(message: str) -> NoReturn:
    console.print(f"[red]{escape(message)}[/]")
    raise typer.Exit(code=1)


def _schedule_table(schedules: List[Schedule]) -> Table:
    table = Table()
    for column in ("id", "name", "start", "end", "level", "exclusive", "parents"):
        table.add_column(column)
    for schedule in schedules:
        table.add_row(
            schedule.id,
            schedule.name,
            schedule.start.isoformat(),
            schedule.end.isoformat(),
            str(schedule.level),
            "yes" if schedule.exclusive else "no",
            ", ".join(sorted(schedule.parents)),
        )
    return table


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, help="YAML settings file."),
    snapshot: Optional[Path] = typer.Option(None, help="Schedule snapshot JSON file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    settings = load_settings(config)
    if snapshot is not None:
        settings = settings.model_copy(
            update={"storage": settings.storage.model_copy(update={"snapshot_path": snapshot})}
        )
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"settings": settings}


@app.command("create")
def create(
    ctx: typer.Context,
    name: str = typer.Option(..., help="Display name."),
    start: str = typer.Option(..., help="ISO 8601 start instant."),
    end: str = typer.Option(..., help="ISO 8601 end instant."),
    level: int = typer.Option(0, help="Tier; lower is coarser."),
    exclusive: bool = typer.Option(False, "--exclusive", help="Claim sole use of the range."),
    parent: List[str] = typer.Option([], "--parent", help="Parent schedule id (repeatable)."),
) -> None:
    try:
        payload = SchedulePayload.model_validate(
            {
                "name": name,
                "start": start,
                "end": end,
                "level": level,
                "exclusive": exclusive,
                "parents": parent,
            }
        )
    except ValidationError as exc:
        _fail(f"Invalid schedule: {exc}")

    registry = _open(ctx)
    result = registry.create(payload)
    if isinstance(result, ScheduleError):
        _fail(f"{result.kind.value}: {result.message}")
    persist_registry(_settings(ctx), registry)
    console.print(f"[green]Created[/] {result}")


@app.command("delete")
def delete(ctx: typer.Context, schedule_id: str = typer.Argument(..., help="Schedule id.")) -> None:
    registry = _open(ctx)
    error = registry.delete(schedule_id)
    if error is not None:
        _fail(f"{error.kind.value}: {error.message}")
    persist_registry(_settings(ctx), registry)
    console.print(f"[green]Deleted[/] {schedule_id}")


@app.command("get")
def get(ctx: typer.Context, schedule_id: str = typer.Argument(..., help="Schedule id.")) -> None:
    schedule = _open(ctx).get(schedule_id)
    if schedule is None:
        _fail(f"Schedule not found: {schedule_id}")
    console.print(_schedule_table([schedule]))
    if schedule.children:
        console.print(f"children: {', '.join(sorted(schedule.children))}")


@app.command("list")
def list_schedules(
    ctx: typer.Context,
    name: Optional[str] = typer.Option(None, help="Case-insensitive name substring."),
    level: Optional[int] = typer.Option(None, help="Exact level."),
    exclusive: Optional[bool] = typer.Option(None, "--exclusive/--shared", help="Exclusivity flag."),
    start: Optional[str] = typer.Option(None, help="Only schedules ending after this instant."),
    stop: Optional[str] = typer.Option(None, help="Only schedules starting before this instant."),
) -> None:
    try:
        query = QueryFilter.model_validate(
            {"name": name, "level": level, "exclusive": exclusive, "start": start, "stop": stop}
        )
    except ValidationError as exc:
        _fail(f"Invalid filter: {exc}")
    schedules = _open(ctx).query(query)
    if not schedules:
        console.print("[yellow]No schedules found[/]")
        raise typer.Exit(code=0)
    console.print(_schedule_table(schedules))


@app.command("layout")
def layout(
    ctx: typer.Context,
    mode: Optional[LayoutMode] = typer.Option(None, help="Layout strategy."),
    aggregate_threshold: Optional[int] = typer.Option(None, help="Cluster size to aggregate above."),
    max_lanes: Optional[int] = typer.Option(None, help="Lane cap per level."),
) -> None:
    settings = _settings(ctx)
    overrides = {
        key: value
        for key, value in {
            "mode": mode,
            "aggregate_threshold": aggregate_threshold,
            "max_lanes_per_level": max_lanes,
        }.items()
        if value is not None
    }
    config = settings.layout.model_copy(update=overrides).to_layout_config()
    registry = _open(ctx)
    plan = compute_layout(registry.all(), config)

    names = {schedule.id: schedule.name for schedule in registry.all()}
    table = Table(title=f"{plan.mode.value} (max level {plan.max_level})")
    for column in ("cluster", "level", "schedule", "column", "columns", "aggregate"):
        table.add_column(column)
    for cluster in plan.clusters:
        for schedule_id in cluster.member_ids:
            lane = plan.lane_assignment[schedule_id]
            table.add_row(
                cluster.id,
                str(cluster.level),
                names.get(schedule_id, schedule_id),
                str(lane.column),
                str(lane.columns),
                "yes" if cluster.aggregate else "no",
            )
    console.print(table)
    for level, overflow in plan.overflow.items():
        listing = ", ".join(names.get(sid, sid) for sid in overflow.schedule_ids)
        console.print(f"[yellow]Level {level} overflow ({overflow.count}):[/] {listing}")


@app.command("segments")
def segments(ctx: typer.Context) -> None:
    registry = _open(ctx)
    names = {schedule.id: schedule.name for schedule in registry.all()}
    table = Table()
    for column in ("schedule", "level", "start", "end", "column", "concurrency"):
        table.add_column(column)
    for segment in compute_segments(registry.all()):
        table.add_row(
            names.get(segment.schedule_id, segment.schedule_id),
            str(segment.level),
            segment.start.isoformat(),
            segment.end.isoformat(),
            str(segment.column),
            str(segment.concurrency),
        )
    console.print(table)


if __name__ == "__main__":
    app()
