from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Iterable, Iterator
from dataclasses import replace
from typing import Callable

from domain.errors import ScheduleError, ScheduleErrorKind, ScheduleRuleViolation
from domain.models import QueryFilter, Schedule, ScheduleId, SchedulePayload
from domain.services.validate_schedule import check_overlaps, check_parents, check_time_range

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 16

IdFactory = Callable[[], ScheduleId]


def _uuid_id() -> ScheduleId:
    return str(uuid.uuid4())


class ScheduleRegistry:
    """In-memory index of schedules with validated create and delete.

    Every public operation runs under one re-entrant lock, so readers never
    observe a half-applied create or delete. Errors are returned, not raised:
    ``create`` yields the new id or a ``ScheduleError`` and ``delete`` yields
    ``None`` or a ``ScheduleError``.

    Parent/child links are id sets kept symmetric on both entities. Deleting
    a schedule detaches it from its relatives and never removes them.
    """

    def __init__(self, id_factory: IdFactory | None = None) -> None:
        self._id_factory = id_factory or _uuid_id
        self._lock = threading.RLock()
        self._schedules: dict[ScheduleId, Schedule] = {}
        self._level_index: dict[int, set[ScheduleId]] = {}
        self.init()

    def init(self) -> ScheduleRegistry:
        with self._lock:
            self._schedules = {}
            self._level_index = {}
        return self

    def reset(self) -> None:
        with self._lock:
            dropped = len(self._schedules)
            self.init()
        logger.debug("Registry reset, dropped %d schedules", dropped)

    def __len__(self) -> int:
        with self._lock:
            return len(self._schedules)

    def __contains__(self, schedule_id: object) -> bool:
        with self._lock:
            return schedule_id in self._schedules

    def __iter__(self) -> Iterator[Schedule]:
        return iter(self.all())

    def create(self, payload: SchedulePayload) -> ScheduleId | ScheduleError:
        with self._lock:
            try:
                self._validate(payload)
                schedule_id = self._generate_id()
            except ScheduleRuleViolation as exc:
                logger.info("Rejected schedule %r: %s", payload.name, exc.kind.value)
                return exc.to_error()
            self._insert(schedule_id, payload)
            return schedule_id

    def create_with_id(
        self, schedule_id: ScheduleId, payload: SchedulePayload
    ) -> ScheduleId | ScheduleError:
        """Create with a caller-supplied id, used when restoring stored schedules."""
        with self._lock:
            if schedule_id in self._schedules:
                return ScheduleError.of(ScheduleErrorKind.DUPLICATE_ID, schedule_id)
            try:
                self._validate(payload)
            except ScheduleRuleViolation as exc:
                logger.info("Rejected schedule %r (%s): %s", payload.name, schedule_id, exc.kind.value)
                return exc.to_error()
            self._insert(schedule_id, payload)
            return schedule_id

    def add_parents(
        self, schedule_id: ScheduleId, parent_ids: Iterable[ScheduleId]
    ) -> ScheduleError | None:
        with self._lock:
            schedule = self._schedules.get(schedule_id)
            if schedule is None:
                return ScheduleError.of(ScheduleErrorKind.SCHEDULE_NOT_FOUND, schedule_id)
            new_parents = [pid for pid in dict.fromkeys(parent_ids) if pid not in schedule.parents]
            try:
                check_parents(
                    start=schedule.start,
                    end=schedule.end,
                    level=schedule.level,
                    parent_ids=new_parents,
                    schedules=self._schedules,
                )
            except ScheduleRuleViolation as exc:
                return exc.to_error()
            self._link(schedule_id, new_parents)
            return None

    def delete(self, schedule_id: ScheduleId) -> ScheduleError | None:
        with self._lock:
            schedule = self._schedules.get(schedule_id)
            if schedule is None:
                return ScheduleError.of(ScheduleErrorKind.SCHEDULE_NOT_FOUND, schedule_id)

            for parent_id in schedule.parents:
                parent = self._schedules[parent_id]
                self._schedules[parent_id] = replace(
                    parent, children=parent.children - {schedule_id}
                )
            for child_id in schedule.children:
                child = self._schedules[child_id]
                self._schedules[child_id] = replace(child, parents=child.parents - {schedule_id})

            level_ids = self._level_index.get(schedule.level)
            if level_ids is not None:
                level_ids.discard(schedule_id)
                if not level_ids:
                    del self._level_index[schedule.level]
            del self._schedules[schedule_id]
            logger.debug("Deleted schedule %s (%r)", schedule_id, schedule.name)
            return None

    def get(self, schedule_id: ScheduleId) -> Schedule | None:
        with self._lock:
            return self._schedules.get(schedule_id)

    def query(self, query: QueryFilter | None = None) -> list[Schedule]:
        query = query or QueryFilter()
        with self._lock:
            if query.level is not None:
                candidates = [
                    self._schedules[sid] for sid in self._level_index.get(query.level, ())
                ]
            else:
                candidates = list(self._schedules.values())
        return sorted(
            (schedule for schedule in candidates if query.matches(schedule)),
            key=Schedule.sort_key,
        )

    def all(self) -> list[Schedule]:
        with self._lock:
            return sorted(self._schedules.values(), key=Schedule.sort_key)

    def snapshot(self) -> list[Schedule]:
        """All schedules in creation order."""
        with self._lock:
            return list(self._schedules.values())

    def levels(self) -> list[int]:
        with self._lock:
            return sorted(self._level_index)

    def parents_of(self, schedule_id: ScheduleId) -> frozenset[ScheduleId]:
        schedule = self.get(schedule_id)
        return schedule.parents if schedule else frozenset()

    def children_of(self, schedule_id: ScheduleId) -> frozenset[ScheduleId]:
        schedule = self.get(schedule_id)
        return schedule.children if schedule else frozenset()

    def _validate(self, payload: SchedulePayload) -> None:
        check_time_range(payload.start, payload.end)
        check_parents(
            start=payload.start,
            end=payload.end,
            level=payload.level,
            parent_ids=payload.parents,
            schedules=self._schedules,
        )
        check_overlaps(
            start=payload.start,
            end=payload.end,
            level=payload.level,
            exclusive=payload.exclusive,
            candidates=sorted(self._schedules.values(), key=Schedule.sort_key),
            exempt_ids=payload.parents,
        )

    def _generate_id(self) -> ScheduleId:
        for _ in range(MAX_ID_ATTEMPTS):
            candidate = self._id_factory()
            if candidate not in self._schedules:
                return candidate
        raise ScheduleRuleViolation(ScheduleErrorKind.DUPLICATE_ID)

    def _insert(self, schedule_id: ScheduleId, payload: SchedulePayload) -> None:
        self._schedules[schedule_id] = Schedule(
            id=schedule_id,
            name=payload.name,
            start=payload.start,
            end=payload.end,
            level=payload.level,
            exclusive=payload.exclusive,
        )
        self._level_index.setdefault(payload.level, set()).add(schedule_id)
        self._link(schedule_id, payload.parents)
        logger.debug(
            "Created schedule %s (%r) at level %d", schedule_id, payload.name, payload.level
        )

    def _link(self, schedule_id: ScheduleId, parent_ids: Iterable[ScheduleId]) -> None:
        parent_ids = list(parent_ids)
        for parent_id in parent_ids:
            parent = self._schedules[parent_id]
            self._schedules[parent_id] = replace(parent, children=parent.children | {schedule_id})
        schedule = self._schedules[schedule_id]
        self._schedules[schedule_id] = replace(
            schedule, parents=schedule.parents | frozenset(parent_ids)
        )
