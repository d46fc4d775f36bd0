from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime

from domain.errors import ScheduleErrorKind, ScheduleRuleViolation
from domain.models import Schedule, ScheduleId


def check_time_range(start: datetime, end: datetime) -> None:
    # Zero-length schedules are rejected as well.
    if start >= end:
        raise ScheduleRuleViolation(ScheduleErrorKind.START_AFTER_END)


def check_parents(
    *,
    start: datetime,
    end: datetime,
    level: int,
    parent_ids: Iterable[ScheduleId],
    schedules: Mapping[ScheduleId, Schedule],
) -> None:
    for parent_id in parent_ids:
        parent = schedules.get(parent_id)
        if parent is None:
            raise ScheduleRuleViolation(ScheduleErrorKind.PARENT_NOT_FOUND, parent_id)
        if level <= parent.level:
            raise ScheduleRuleViolation(ScheduleErrorKind.LEVEL_EXCEEDS_PARENT, parent_id)
        if not parent.contains(start, end):
            raise ScheduleRuleViolation(ScheduleErrorKind.TIME_RANGE_EXCEEDS_PARENT, parent_id)


def conflicts_with(existing: Schedule, *, level: int, exclusive: bool) -> bool:
    """Exclusivity rule between an overlapping existing schedule and a proposal.

    The three clauses are kept as written even though they are not symmetric
    across levels: an existing exclusive schedule at a finer level does not
    block a non-exclusive proposal at a coarser level.
    """
    if existing.level == level and (existing.exclusive or exclusive):
        return True
    if exclusive and existing.level <= level:
        return True
    if existing.exclusive and existing.level <= level:
        return True
    return False


def check_overlaps(
    *,
    start: datetime,
    end: datetime,
    level: int,
    exclusive: bool,
    candidates: Iterable[Schedule],
    exempt_ids: Iterable[ScheduleId] = (),
) -> None:
    # Declared parents never conflict with their own child.
    exempt = set(exempt_ids)
    for existing in candidates:
        if existing.id in exempt or not existing.overlaps(start, end):
            continue
        if conflicts_with(existing, level=level, exclusive=exclusive):
            raise ScheduleRuleViolation(ScheduleErrorKind.TIME_RANGE_OVERLAPS, existing.id)
