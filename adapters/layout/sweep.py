from __future__ import annotations

import logging
from collections.abc import Collection, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Tuple

from domain.models import Cluster, LaneAssignment, Schedule, ScheduleId

logger = logging.getLogger(__name__)


def cluster_id_for(level: int, index: int) -> str:
    return f"lvl-{level}-g{index}"


def start_order(schedule: Schedule) -> Tuple[datetime, ScheduleId]:
    return (schedule.start, schedule.id)


def usable_schedules(schedules: Iterable[Schedule]) -> List[Schedule]:
    usable: List[Schedule] = []
    for schedule in schedules:
        if schedule.start >= schedule.end:
            logger.debug("Skipping schedule %s with non-positive duration", schedule.id)
            continue
        usable.append(schedule)
    return usable


def group_by_level(schedules: Iterable[Schedule]) -> Dict[int, List[Schedule]]:
    levels: Dict[int, List[Schedule]] = {}
    for schedule in schedules:
        levels.setdefault(schedule.level, []).append(schedule)
    return {level: levels[level] for level in sorted(levels)}


def max_level_of(schedules: Sequence[Schedule]) -> int:
    return max((schedule.level for schedule in schedules), default=0)


def first_free_column(taken: Collection[int]) -> int:
    column = 0
    while column in taken:
        column += 1
    return column


@dataclass
class _OpenCluster:
    index: int
    start: datetime
    end: datetime
    member_ids: List[ScheduleId] = field(default_factory=list)
    columns: Dict[ScheduleId, int] = field(default_factory=dict)
    max_column: int = -1


def sweep_clusters(
    level: int,
    schedules: Sequence[Schedule],
    aggregate_threshold: int,
) -> Tuple[List[Cluster], Dict[ScheduleId, LaneAssignment]]:
    """Assign first-fit columns on one level and group overlap runs into clusters.

    A cluster closes whenever the active set is empty before the next
    schedule starts; its width is the highest column used plus one.
    """
    clusters: List[Cluster] = []
    lanes: Dict[ScheduleId, LaneAssignment] = {}
    active: List[Tuple[datetime, int]] = []
    current: _OpenCluster | None = None

    def close(open_cluster: _OpenCluster | None) -> None:
        if open_cluster is None or not open_cluster.member_ids:
            return
        cluster_id = cluster_id_for(level, open_cluster.index)
        columns = open_cluster.max_column + 1
        clusters.append(
            Cluster(
                id=cluster_id,
                level=level,
                member_ids=list(open_cluster.member_ids),
                start=open_cluster.start,
                end=open_cluster.end,
                columns=columns,
                aggregate=len(open_cluster.member_ids) > aggregate_threshold,
            )
        )
        for schedule_id in open_cluster.member_ids:
            lanes[schedule_id] = LaneAssignment(
                schedule_id=schedule_id,
                level=level,
                column=open_cluster.columns[schedule_id],
                columns=columns,
                cluster_id=cluster_id,
            )

    for schedule in sorted(schedules, key=start_order):
        active = [(end, column) for end, column in active if end > schedule.start]
        if current is None:
            current = _OpenCluster(index=0, start=schedule.start, end=schedule.end)
        elif not active:
            close(current)
            current = _OpenCluster(index=current.index + 1, start=schedule.start, end=schedule.end)

        column = first_free_column({column for _, column in active})
        active.append((schedule.end, column))
        current.member_ids.append(schedule.id)
        current.columns[schedule.id] = column
        current.end = max(current.end, schedule.end)
        current.max_column = max(current.max_column, column)

    close(current)
    return clusters, lanes
