from __future__ import annotations

from collections.abc import Sequence

from adapters.layout.cluster import ClusterAggregateLayoutEngine
from adapters.layout.grid import GridLayoutEngine
from adapters.layout.lane_cap import FixedLaneCapLayoutEngine
from adapters.layout.segments import ContinuousSegmentLayoutEngine, compute_segments
from domain.models import LayoutConfig, LayoutMode, LayoutPlan, Schedule
from domain.ports.layout import LayoutStrategy

__all__ = ["STRATEGIES", "build_strategy", "compute_layout", "compute_segments"]

STRATEGIES: dict[LayoutMode, type[LayoutStrategy]] = {
    LayoutMode.GRID: GridLayoutEngine,
    LayoutMode.CLUSTER_AGGREGATE: ClusterAggregateLayoutEngine,
    LayoutMode.CONTINUOUS_SEGMENT: ContinuousSegmentLayoutEngine,
    LayoutMode.FIXED_LANE_CAP: FixedLaneCapLayoutEngine,
}


def build_strategy(mode: LayoutMode | str) -> LayoutStrategy:
    return STRATEGIES[LayoutMode(mode)]()


def compute_layout(schedules: Sequence[Schedule], config: LayoutConfig | None = None) -> LayoutPlan:
    config = config or LayoutConfig()
    return build_strategy(config.mode).build_plan(schedules, config)
