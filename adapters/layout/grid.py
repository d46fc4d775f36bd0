from __future__ import annotations

from collections.abc import Sequence
from typing import Dict, List

from adapters.layout.sweep import (
    cluster_id_for,
    group_by_level,
    max_level_of,
    start_order,
    usable_schedules,
)
from domain.models import Cluster, LaneAssignment, LayoutConfig, LayoutMode, LayoutPlan, Schedule
from domain.ports.layout import LayoutStrategy


class GridLayoutEngine(LayoutStrategy):
    """One column per schedule on each level, ordered by start time.

    Never collides and never shares a column, at the cost of width.
    """

    mode = LayoutMode.GRID

    def build_plan(self, schedules: Sequence[Schedule], config: LayoutConfig) -> LayoutPlan:
        usable = usable_schedules(schedules)
        clusters: List[Cluster] = []
        lanes: Dict[str, LaneAssignment] = {}

        for level, level_schedules in group_by_level(usable).items():
            ordered = sorted(level_schedules, key=start_order)
            cluster_id = cluster_id_for(level, 0)
            columns = len(ordered)
            clusters.append(
                Cluster(
                    id=cluster_id,
                    level=level,
                    member_ids=[schedule.id for schedule in ordered],
                    start=min(schedule.start for schedule in ordered),
                    end=max(schedule.end for schedule in ordered),
                    columns=columns,
                    aggregate=columns > config.aggregate_threshold,
                )
            )
            for column, schedule in enumerate(ordered):
                lanes[schedule.id] = LaneAssignment(
                    schedule_id=schedule.id,
                    level=level,
                    column=column,
                    columns=columns,
                    cluster_id=cluster_id,
                )

        return LayoutPlan(
            mode=self.mode,
            clusters=clusters,
            lane_assignment=lanes,
            max_level=max_level_of(usable),
        )
