from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from domain.models import Schedule, SchedulePayload

BASE_TIME = datetime(2025, 9, 1, tzinfo=UTC)


def at(hours: float) -> datetime:
    return BASE_TIME + timedelta(hours=hours)


def make_payload(
    name: str,
    start: float,
    end: float,
    *,
    level: int = 0,
    exclusive: bool = False,
    parents: list[str] | None = None,
) -> SchedulePayload:
    return SchedulePayload(
        name=name,
        start=at(start),
        end=at(end),
        level=level,
        exclusive=exclusive,
        parents=parents or [],
    )


def make_schedule(
    schedule_id: str,
    start: float,
    end: float,
    *,
    level: int = 0,
    name: str | None = None,
    exclusive: bool = False,
) -> Schedule:
    return Schedule(
        id=schedule_id,
        name=name or schedule_id,
        start=at(start),
        end=at(end),
        level=level,
        exclusive=exclusive,
    )


def payload_json(name: str, start: float, end: float, **extra: Any) -> dict[str, Any]:
    return {
        "name": name,
        "start": at(start).isoformat(),
        "end": at(end).isoformat(),
        "level": extra.pop("level", 0),
        "exclusive": extra.pop("exclusive", False),
        "parents": extra.pop("parents", []),
        **extra,
    }
