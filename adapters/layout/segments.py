from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from itertools import groupby
from typing import Dict, List, Tuple

from adapters.layout.sweep import (
    first_free_column,
    group_by_level,
    max_level_of,
    sweep_clusters,
    usable_schedules,
)
from domain.models import (
    Cluster,
    LaneAssignment,
    LayoutConfig,
    LayoutMode,
    LayoutPlan,
    Schedule,
    ScheduleId,
    Segment,
)
from domain.ports.layout import LayoutStrategy

# Ends sort before starts at the same instant so touching intervals never overlap.
END_EVENT = 0
START_EVENT = 1

Event = Tuple[datetime, int, ScheduleId]


def _level_events(schedules: Sequence[Schedule]) -> List[Event]:
    events: List[Event] = []
    for schedule in schedules:
        events.append((schedule.start, START_EVENT, schedule.id))
        events.append((schedule.end, END_EVENT, schedule.id))
    events.sort()
    return events


def _level_segments(level: int, schedules: Sequence[Schedule]) -> List[Segment]:
    segments: List[Segment] = []
    columns: Dict[ScheduleId, int] = {}
    last_time: datetime | None = None

    for time, batch in groupby(_level_events(schedules), key=lambda event: event[0]):
        if columns and last_time is not None and last_time < time:
            concurrency = len(columns)
            for schedule_id, column in sorted(columns.items(), key=lambda item: item[1]):
                segments.append(
                    Segment(
                        schedule_id=schedule_id,
                        level=level,
                        start=last_time,
                        end=time,
                        column=column,
                        concurrency=concurrency,
                    )
                )
        for _, kind, schedule_id in batch:
            if kind == END_EVENT:
                columns.pop(schedule_id, None)
            else:
                columns[schedule_id] = first_free_column(set(columns.values()))
        last_time = time
    return segments


def _segment_order(segment: Segment) -> Tuple[int, datetime, int, ScheduleId]:
    return (segment.level, segment.start, segment.column, segment.schedule_id)


def merge_segments(segments: Iterable[Segment]) -> List[Segment]:
    """Join back-to-back segments of one schedule that share column and concurrency.

    Applying it to its own output returns the same list.
    """
    merged: List[Segment] = []
    ordered = sorted(segments, key=lambda segment: (segment.schedule_id, segment.start))
    for segment in ordered:
        previous = merged[-1] if merged else None
        if (
            previous is not None
            and previous.schedule_id == segment.schedule_id
            and previous.end == segment.start
            and previous.column == segment.column
            and previous.concurrency == segment.concurrency
        ):
            merged[-1] = Segment(
                schedule_id=previous.schedule_id,
                level=previous.level,
                start=previous.start,
                end=segment.end,
                column=previous.column,
                concurrency=previous.concurrency,
            )
            continue
        merged.append(segment)
    merged.sort(key=_segment_order)
    return merged


def compute_segments(schedules: Sequence[Schedule]) -> List[Segment]:
    segments: List[Segment] = []
    for level, level_schedules in group_by_level(usable_schedules(schedules)).items():
        segments.extend(_level_segments(level, level_schedules))
    return merge_segments(segments)


class ContinuousSegmentLayoutEngine(LayoutStrategy):
    """Cluster layout plus per-instant concurrency segments for variable-width bars."""

    mode = LayoutMode.CONTINUOUS_SEGMENT

    def build_plan(self, schedules: Sequence[Schedule], config: LayoutConfig) -> LayoutPlan:
        usable = usable_schedules(schedules)
        clusters: List[Cluster] = []
        lanes: Dict[ScheduleId, LaneAssignment] = {}
        segments: List[Segment] = []
        for level, level_schedules in group_by_level(usable).items():
            level_clusters, level_lanes = sweep_clusters(
                level, level_schedules, config.aggregate_threshold
            )
            clusters.extend(level_clusters)
            lanes.update(level_lanes)
            segments.extend(_level_segments(level, level_schedules))
        return LayoutPlan(
            mode=self.mode,
            clusters=clusters,
            lane_assignment=lanes,
            max_level=max_level_of(usable),
            segments=merge_segments(segments),
        )
