from __future__ import annotations

import pytest

from adapters.layout.cluster import ClusterAggregateLayoutEngine
from adapters.layout.lane_cap import FixedLaneCapLayoutEngine
from adapters.layout.strategies import build_strategy, compute_layout, compute_segments
from domain.models import LayoutConfig, LayoutMode
from domain.services.schedule_registry import ScheduleRegistry
from tests.helpers.schedule_fixtures import make_payload


@pytest.mark.parametrize("mode", list(LayoutMode))
def test_every_mode_handles_empty_input(mode: LayoutMode) -> None:
    plan = compute_layout([], LayoutConfig(mode=mode))

    assert plan.mode is mode
    assert plan.clusters == []
    assert plan.lane_assignment == {}
    assert plan.max_level == 0


def test_default_config_uses_cluster_aggregate() -> None:
    assert isinstance(build_strategy(LayoutMode.CLUSTER_AGGREGATE), ClusterAggregateLayoutEngine)
    assert compute_layout([]).mode is LayoutMode.CLUSTER_AGGREGATE


def test_strategy_can_be_selected_by_name() -> None:
    assert isinstance(build_strategy("fixed_lane_cap"), FixedLaneCapLayoutEngine)
    with pytest.raises(ValueError):
        build_strategy("spiral")


def test_layout_reads_registry_results_without_mutating_them(registry: ScheduleRegistry) -> None:
    for name, start, end in [("A", 0, 2), ("B", 1, 3), ("C", 2, 4)]:
        assert isinstance(registry.create(make_payload(name, start, end)), str)
    before = registry.snapshot()

    schedules = registry.all()
    plan = compute_layout(schedules, LayoutConfig(mode=LayoutMode.CONTINUOUS_SEGMENT))

    assert registry.snapshot() == before
    assert plan.segments == compute_segments(schedules)
    names = {schedule.id: schedule.name for schedule in schedules}
    columns = {names[sid]: lane.column for sid, lane in plan.lane_assignment.items()}
    assert columns == {"A": 0, "B": 1, "C": 0}


def test_segments_entry_point_is_the_segment_module_function() -> None:
    from adapters.layout import segments

    assert compute_segments is segments.compute_segments


def test_plan_serializes_to_plain_data() -> None:
    from tests.helpers.schedule_fixtures import make_schedule

    plan = compute_layout(
        [make_schedule("A", 0, 2), make_schedule("B", 1, 3)],
        LayoutConfig(mode=LayoutMode.FIXED_LANE_CAP, max_lanes_per_level=1),
    )
    payload = plan.to_dict()

    assert payload["mode"] == "fixed_lane_cap"
    assert payload["overflow"] == {"0": {"count": 1, "schedule_ids": ["B"]}}
    assert payload["lane_assignment"]["A"]["column"] == 0
