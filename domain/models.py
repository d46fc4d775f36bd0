from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

ScheduleId = str

DEFAULT_AGGREGATE_THRESHOLD = 5
DEFAULT_MAX_LANES_PER_LEVEL = 3


def ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class SchedulePayload(BaseModel):
    name: str
    start: datetime
    end: datetime
    level: int = Field(..., ge=0)
    exclusive: bool = False
    parents: List[ScheduleId] = Field(default_factory=list)

    @field_validator("start", "end", mode="after")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @field_validator("parents", mode="after")
    @classmethod
    def drop_duplicate_parents(cls, parents: List[ScheduleId]) -> List[ScheduleId]:
        # Order is significant: parents are validated in the order supplied.
        return list(dict.fromkeys(parents))


@dataclass(frozen=True)
class Schedule:
    id: ScheduleId
    name: str
    start: datetime
    end: datetime
    level: int
    exclusive: bool
    parents: frozenset[ScheduleId] = frozenset()
    children: frozenset[ScheduleId] = frozenset()

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Half-open overlap: intervals that merely touch do not overlap."""
        return self.start < end and start < self.end

    def contains(self, start: datetime, end: datetime) -> bool:
        return self.start <= start and end <= self.end

    def sort_key(self) -> tuple[datetime, int, str, str]:
        return (self.start, self.level, self.name, self.id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "level": self.level,
            "exclusive": self.exclusive,
            "parents": sorted(self.parents),
            "children": sorted(self.children),
        }


class QueryFilter(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: Optional[str] = None
    start: Optional[datetime] = None
    stop: Optional[datetime] = None
    level: Optional[int] = Field(default=None, ge=0)
    exclusive: Optional[bool] = None
    # Extension hook for filters the fixed fields cannot express.
    matcher: Optional[Callable[[Schedule], bool]] = Field(default=None, exclude=True)

    @field_validator("start", "stop", mode="after")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_aware(value) if value is not None else None

    def matches(self, schedule: Schedule) -> bool:
        if self.name is not None and self.name.casefold() not in schedule.name.casefold():
            return False
        if self.level is not None and schedule.level != self.level:
            return False
        if self.exclusive is not None and schedule.exclusive != self.exclusive:
            return False
        if self.start is not None and self.stop is not None:
            if not schedule.overlaps(self.start, self.stop):
                return False
        elif self.start is not None:
            if schedule.end <= self.start:
                return False
        elif self.stop is not None:
            if schedule.start >= self.stop:
                return False
        if self.matcher is not None and not self.matcher(schedule):
            return False
        return True


class LayoutMode(StrEnum):
    GRID = "grid"
    CLUSTER_AGGREGATE = "cluster_aggregate"
    CONTINUOUS_SEGMENT = "continuous_segment"
    FIXED_LANE_CAP = "fixed_lane_cap"


@dataclass(frozen=True)
class LayoutConfig:
    mode: LayoutMode = LayoutMode.CLUSTER_AGGREGATE
    aggregate_threshold: int = DEFAULT_AGGREGATE_THRESHOLD
    max_lanes_per_level: int = DEFAULT_MAX_LANES_PER_LEVEL
    priorities: Mapping[ScheduleId, int] = field(default_factory=dict)


@dataclass(frozen=True)
class LaneAssignment:
    schedule_id: ScheduleId
    level: int
    column: int
    columns: int
    cluster_id: str


@dataclass(frozen=True)
class Cluster:
    id: str
    level: int
    member_ids: List[ScheduleId]
    start: datetime
    end: datetime
    columns: int
    aggregate: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "level": self.level,
            "member_ids": list(self.member_ids),
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "columns": self.columns,
            "aggregate": self.aggregate,
        }


@dataclass(frozen=True)
class Segment:
    schedule_id: ScheduleId
    level: int
    start: datetime
    end: datetime
    column: int
    concurrency: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "schedule_id": self.schedule_id,
            "level": self.level,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "column": self.column,
            "concurrency": self.concurrency,
        }


@dataclass(frozen=True)
class LevelOverflow:
    level: int
    schedule_ids: List[ScheduleId]

    @property
    def count(self) -> int:
        return len(self.schedule_ids)


@dataclass(frozen=True)
class LayoutPlan:
    mode: LayoutMode
    clusters: List[Cluster]
    lane_assignment: dict[ScheduleId, LaneAssignment]
    max_level: int
    segments: List[Segment] = field(default_factory=list)
    overflow: dict[int, LevelOverflow] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "max_level": self.max_level,
            "clusters": [cluster.to_dict() for cluster in self.clusters],
            "lane_assignment": {
                schedule_id: {
                    "level": lane.level,
                    "column": lane.column,
                    "columns": lane.columns,
                    "cluster_id": lane.cluster_id,
                }
                for schedule_id, lane in self.lane_assignment.items()
            },
            "segments": [segment.to_dict() for segment in self.segments],
            "overflow": {
                str(level): {"count": item.count, "schedule_ids": list(item.schedule_ids)}
                for level, item in self.overflow.items()
            },
        }
