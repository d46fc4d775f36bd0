from __future__ import annotations

import os
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from app.config import AppSettings, LayoutSettings, StorageSettings
from domain.services.schedule_registry import ScheduleRegistry


def _clear_unisched_env() -> None:
    for key in list(os.environ):
        if key.startswith("UNISCHED_"):
            os.environ.pop(key, None)


_clear_unisched_env()


@pytest.fixture(autouse=True)
def clear_unisched_env() -> Generator[None, None, None]:
    _clear_unisched_env()
    yield
    _clear_unisched_env()


@pytest.fixture
def registry() -> ScheduleRegistry:
    return ScheduleRegistry()


@pytest.fixture
def snapshot_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "schedules.json"


@pytest.fixture
def app_settings(snapshot_path: Path) -> AppSettings:
    return AppSettings(
        title="Test Schedules",
        layout=LayoutSettings(),
        storage=StorageSettings(snapshot_path=snapshot_path, autosave=True),
    )


@pytest.fixture
def app_settings_factory(app_settings: AppSettings) -> Callable[..., AppSettings]:
    def _factory(**overrides: object) -> AppSettings:
        return app_settings.model_copy(update=overrides)

    return _factory
