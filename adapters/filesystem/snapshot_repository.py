from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List

import orjson
from filelock import FileLock
from pydantic import ValidationError

from domain.errors import ScheduleError
from domain.models import Schedule, SchedulePayload
from domain.ports.repositories import ScheduleSnapshotRepository
from domain.services.schedule_registry import ScheduleRegistry

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


def _lock_for(path: Path) -> FileLock:
    return FileLock(str(path.with_suffix(f"{path.suffix}.lock")))


def _read_items(path: Path) -> list[dict[str, Any]]:
    data = orjson.loads(path.read_bytes())
    if isinstance(data, dict):
        items = data.get("schedules", [])
    else:
        items = data
    return [item for item in items if isinstance(item, dict)]


def _write_atomic(path: Path, payload: Any) -> None:
    tmp_path = path.with_suffix(f"{path.suffix}.tmp")
    tmp_path.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
    tmp_path.replace(path)


class FileSystemScheduleSnapshotRepository(ScheduleSnapshotRepository):
    """Stores the registry as one JSON document and revalidates it on load."""

    def load_all(self, path: Path) -> List[Schedule]:
        registry = ScheduleRegistry()
        self.load_into(registry, path)
        return registry.all()

    def load_into(self, registry: ScheduleRegistry, path: Path) -> int:
        if not path.exists():
            return 0
        with _lock_for(path):
            items = _read_items(path)
        restored: set[str] = set()
        deferred: list[tuple[str, list[str]]] = []
        # Items are in creation order, so each one is checked against the same
        # schedules it was originally checked against. Parents attached after
        # creation are linked in a second pass.
        for item in items:
            schedule_id = str(item.get("id", ""))
            try:
                payload = SchedulePayload.model_validate(
                    {key: value for key, value in item.items() if key not in {"id", "children"}}
                )
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed stored schedule %s: %d validation errors",
                    schedule_id or "<no id>",
                    exc.error_count(),
                )
                continue
            late_parents = [pid for pid in payload.parents if pid not in restored]
            if late_parents:
                payload = payload.model_copy(
                    update={"parents": [pid for pid in payload.parents if pid in restored]}
                )
            result = registry.create_with_id(schedule_id, payload)
            if isinstance(result, ScheduleError):
                logger.warning(
                    "Skipping stored schedule %s (%r): %s", schedule_id, payload.name, result.kind.value
                )
                continue
            restored.add(schedule_id)
            if late_parents:
                deferred.append((schedule_id, late_parents))

        for schedule_id, parent_ids in deferred:
            error = registry.add_parents(schedule_id, parent_ids)
            if error is not None:
                logger.warning(
                    "Dropping parent links of stored schedule %s: %s", schedule_id, error.kind.value
                )
        logger.debug("Restored %d of %d schedules from %s", len(restored), len(items), path)
        return len(restored)

    def save(self, registry: ScheduleRegistry, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        # The registry is read under the file lock so the last writer always
        # holds the newest state.
        with _lock_for(path):
            payload = {
                "version": SNAPSHOT_VERSION,
                "schedules": [schedule.to_dict() for schedule in registry.snapshot()],
            }
            _write_atomic(path, payload)
