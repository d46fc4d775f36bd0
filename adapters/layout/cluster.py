from __future__ import annotations

from collections.abc import Sequence
from typing import Dict, List

from adapters.layout.sweep import group_by_level, max_level_of, sweep_clusters, usable_schedules
from domain.models import Cluster, LaneAssignment, LayoutConfig, LayoutMode, LayoutPlan, Schedule
from domain.ports.layout import LayoutStrategy


class ClusterAggregateLayoutEngine(LayoutStrategy):
    mode = LayoutMode.CLUSTER_AGGREGATE

    def build_plan(self, schedules: Sequence[Schedule], config: LayoutConfig) -> LayoutPlan:
        usable = usable_schedules(schedules)
        clusters: List[Cluster] = []
        lanes: Dict[str, LaneAssignment] = {}
        for level, level_schedules in group_by_level(usable).items():
            level_clusters, level_lanes = sweep_clusters(
                level, level_schedules, config.aggregate_threshold
            )
            clusters.extend(level_clusters)
            lanes.update(level_lanes)
        return LayoutPlan(
            mode=self.mode,
            clusters=clusters,
            lane_assignment=lanes,
            max_level=max_level_of(usable),
        )
