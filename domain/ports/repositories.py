from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from domain.models import Schedule
from domain.services.schedule_registry import ScheduleRegistry


class ScheduleSnapshotRepository(Protocol):
    def load_all(self, path: Path) -> Sequence[Schedule]: ...

    def load_into(self, registry: ScheduleRegistry, path: Path) -> int: ...

    def save(self, registry: ScheduleRegistry, path: Path) -> None: ...
