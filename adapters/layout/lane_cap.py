from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timedelta
from typing import Dict, List, Tuple

from adapters.layout.sweep import cluster_id_for, group_by_level, max_level_of, usable_schedules
from domain.models import (
    Cluster,
    LaneAssignment,
    LayoutConfig,
    LayoutMode,
    LayoutPlan,
    LevelOverflow,
    Schedule,
    ScheduleId,
)
from domain.ports.layout import LayoutStrategy


def placement_order(
    priorities: Mapping[ScheduleId, int],
) -> Callable[[Schedule], Tuple[int, timedelta, datetime, ScheduleId]]:
    def key(schedule: Schedule) -> Tuple[int, timedelta, datetime, ScheduleId]:
        return (-priorities.get(schedule.id, 0), -schedule.duration, schedule.start, schedule.id)

    return key


def overflow_order(schedule: Schedule) -> Tuple[timedelta, datetime, ScheduleId]:
    return (-schedule.duration, schedule.start, schedule.id)


class FixedLaneCapLayoutEngine(LayoutStrategy):
    """Greedy lane packing capped at ``max_lanes_per_level``.

    Whatever does not fit is listed per level as overflow, longest first.
    Each level forms a single cluster whose width is the number of lanes opened.
    """

    mode = LayoutMode.FIXED_LANE_CAP

    def build_plan(self, schedules: Sequence[Schedule], config: LayoutConfig) -> LayoutPlan:
        usable = usable_schedules(schedules)
        clusters: List[Cluster] = []
        lanes: Dict[ScheduleId, LaneAssignment] = {}
        overflow: Dict[int, LevelOverflow] = {}
        max_lanes = max(config.max_lanes_per_level, 0)

        for level, level_schedules in group_by_level(usable).items():
            lane_ends: List[datetime] = []
            placed: List[Tuple[Schedule, int]] = []
            spilled: List[Schedule] = []
            for schedule in sorted(level_schedules, key=placement_order(config.priorities)):
                lane = next(
                    (idx for idx, end in enumerate(lane_ends) if end <= schedule.start), None
                )
                if lane is None and len(lane_ends) < max_lanes:
                    lane_ends.append(schedule.end)
                    lane = len(lane_ends) - 1
                elif lane is not None:
                    lane_ends[lane] = schedule.end
                if lane is None:
                    spilled.append(schedule)
                    continue
                placed.append((schedule, lane))

            if spilled:
                overflow[level] = LevelOverflow(
                    level=level,
                    schedule_ids=[item.id for item in sorted(spilled, key=overflow_order)],
                )
            if not placed:
                continue

            cluster_id = cluster_id_for(level, 0)
            columns = len(lane_ends)
            members = sorted(placed, key=lambda item: (item[0].start, item[0].id))
            clusters.append(
                Cluster(
                    id=cluster_id,
                    level=level,
                    member_ids=[schedule.id for schedule, _ in members],
                    start=min(schedule.start for schedule, _ in members),
                    end=max(schedule.end for schedule, _ in members),
                    columns=columns,
                    aggregate=len(members) > config.aggregate_threshold,
                )
            )
            for schedule, lane in members:
                lanes[schedule.id] = LaneAssignment(
                    schedule_id=schedule.id,
                    level=level,
                    column=lane,
                    columns=columns,
                    cluster_id=cluster_id,
                )

        return LayoutPlan(
            mode=self.mode,
            clusters=clusters,
            lane_assignment=lanes,
            max_level=max_level_of(usable),
            overflow=overflow,
        )
