from __future__ import annotations

import logging

from adapters.filesystem.snapshot_repository import FileSystemScheduleSnapshotRepository
from app.config import AppSettings
from domain.ports.repositories import ScheduleSnapshotRepository
from domain.services.schedule_registry import ScheduleRegistry

logger = logging.getLogger(__name__)


def build_snapshot_repository(settings: AppSettings) -> ScheduleSnapshotRepository:
    return FileSystemScheduleSnapshotRepository()


def load_registry(
    settings: AppSettings, repository: ScheduleSnapshotRepository | None = None
) -> ScheduleRegistry:
    repository = repository or build_snapshot_repository(settings)
    registry = ScheduleRegistry()
    restored = repository.load_into(registry, settings.storage.snapshot_path)
    logger.info("Loaded %d schedules from %s", restored, settings.storage.snapshot_path)
    return registry


def persist_registry(
    settings: AppSettings,
    registry: ScheduleRegistry,
    repository: ScheduleSnapshotRepository | None = None,
) -> None:
    if not settings.storage.autosave:
        return
    repository = repository or build_snapshot_repository(settings)
    repository.save(registry, settings.storage.snapshot_path)
