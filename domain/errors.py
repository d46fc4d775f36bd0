from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from domain.models import ScheduleId


class ScheduleErrorKind(StrEnum):
    START_AFTER_END = "StartAfterEnd"
    PARENT_NOT_FOUND = "ParentNotFound"
    LEVEL_EXCEEDS_PARENT = "LevelExceedsParent"
    TIME_RANGE_EXCEEDS_PARENT = "TimeRangeExceedsParent"
    TIME_RANGE_OVERLAPS = "TimeRangeOverlaps"
    SCHEDULE_NOT_FOUND = "ScheduleNotFound"
    DUPLICATE_ID = "DuplicateId"


ERROR_MESSAGES: dict[ScheduleErrorKind, str] = {
    ScheduleErrorKind.START_AFTER_END: "Start time is not earlier than end time",
    ScheduleErrorKind.PARENT_NOT_FOUND: "Parent not found",
    ScheduleErrorKind.LEVEL_EXCEEDS_PARENT: "Schedule level must be greater than parent level",
    ScheduleErrorKind.TIME_RANGE_EXCEEDS_PARENT: "Time range exceeds parent schedule",
    ScheduleErrorKind.TIME_RANGE_OVERLAPS: "Time range overlaps with existing schedule",
    ScheduleErrorKind.SCHEDULE_NOT_FOUND: "Schedule not found",
    ScheduleErrorKind.DUPLICATE_ID: "Schedule id already exists",
}


@dataclass(frozen=True)
class ScheduleError:
    """First rule a registry operation violated.

    ``schedule_id`` names the offending related schedule when there is one:
    the missing or violated parent, the overlapping schedule, or the id that
    was not found.
    """

    kind: ScheduleErrorKind
    message: str
    schedule_id: ScheduleId | None = None

    @classmethod
    def of(cls, kind: ScheduleErrorKind, schedule_id: ScheduleId | None = None) -> ScheduleError:
        return cls(kind=kind, message=ERROR_MESSAGES[kind], schedule_id=schedule_id)

    def to_dict(self) -> dict[str, str | None]:
        return {"error": self.kind.value, "message": self.message, "schedule_id": self.schedule_id}


class ScheduleRuleViolation(Exception):
    """Raised inside validation; converted to ``ScheduleError`` at the registry boundary."""

    def __init__(self, kind: ScheduleErrorKind, schedule_id: ScheduleId | None = None) -> None:
        super().__init__(ERROR_MESSAGES[kind])
        self.kind = kind
        self.schedule_id = schedule_id

    def to_error(self) -> ScheduleError:
        return ScheduleError.of(self.kind, self.schedule_id)
