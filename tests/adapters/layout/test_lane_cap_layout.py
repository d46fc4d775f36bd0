from __future__ import annotations

from adapters.layout.lane_cap import FixedLaneCapLayoutEngine
from domain.models import LayoutConfig, LayoutMode
from tests.helpers.schedule_fixtures import make_schedule


def _config(max_lanes: int, **kwargs: object) -> LayoutConfig:
    return LayoutConfig(mode=LayoutMode.FIXED_LANE_CAP, max_lanes_per_level=max_lanes, **kwargs)  # type: ignore[arg-type]


def test_longest_schedules_win_lanes_and_rest_overflow() -> None:
    schedules = [
        make_schedule("C", 1, 3),
        make_schedule("A", 0, 6),
        make_schedule("B", 0, 4),
    ]
    plan = FixedLaneCapLayoutEngine().build_plan(schedules, _config(2))

    assert plan.lane_assignment["A"].column == 0
    assert plan.lane_assignment["B"].column == 1
    assert "C" not in plan.lane_assignment
    assert plan.overflow[0].count == 1
    assert plan.overflow[0].schedule_ids == ["C"]
    assert plan.clusters[0].columns == 2


def test_priority_outranks_duration() -> None:
    schedules = [
        make_schedule("A", 0, 6),
        make_schedule("B", 0, 4),
        make_schedule("C", 1, 3),
    ]
    plan = FixedLaneCapLayoutEngine().build_plan(schedules, _config(2, priorities={"C": 10}))

    assert plan.lane_assignment["C"].column == 0
    assert plan.lane_assignment["A"].column == 1
    assert plan.overflow[0].schedule_ids == ["B"]


def test_lane_is_reused_once_free() -> None:
    schedules = [make_schedule("A", 0, 2), make_schedule("B", 2, 4)]
    plan = FixedLaneCapLayoutEngine().build_plan(schedules, _config(1))

    assert plan.overflow == {}
    assert plan.lane_assignment["A"].column == 0
    assert plan.lane_assignment["B"].column == 0
    assert plan.clusters[0].member_ids == ["A", "B"]


def test_overflow_listing_is_longest_first_then_earliest() -> None:
    schedules = [
        make_schedule("long", 0, 10),
        make_schedule("z-short", 5, 6),
        make_schedule("y", 2, 4),
        make_schedule("x", 1, 3),
    ]
    plan = FixedLaneCapLayoutEngine().build_plan(schedules, _config(1))

    assert plan.lane_assignment["long"].column == 0
    assert plan.overflow[0].schedule_ids == ["x", "y", "z-short"]


def test_overflow_is_tracked_per_level() -> None:
    schedules = [
        make_schedule("a0", 0, 2, level=0),
        make_schedule("b0", 0, 2, level=0),
        make_schedule("a1", 0, 2, level=1),
    ]
    plan = FixedLaneCapLayoutEngine().build_plan(schedules, _config(1))

    assert set(plan.overflow) == {0}
    assert plan.overflow[0].schedule_ids == ["b0"]
    assert plan.lane_assignment["a1"].level == 1
    assert plan.max_level == 1
