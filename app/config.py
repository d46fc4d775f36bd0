from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import PydanticBaseSettingsSource, YamlConfigSettingsSource

from domain.models import (
    DEFAULT_AGGREGATE_THRESHOLD,
    DEFAULT_MAX_LANES_PER_LEVEL,
    LayoutConfig,
    LayoutMode,
)

DEFAULT_CONFIG_PATH = Path("config/uni_schedule.yaml")


class LayoutSettings(BaseModel):
    mode: LayoutMode = LayoutMode.CLUSTER_AGGREGATE
    aggregate_threshold: int = Field(default=DEFAULT_AGGREGATE_THRESHOLD, ge=0)
    max_lanes_per_level: int = Field(default=DEFAULT_MAX_LANES_PER_LEVEL, ge=1)

    @field_validator("mode", mode="before")
    @classmethod
    def normalize_mode(cls, value: object) -> str:
        raw = str(value or LayoutMode.CLUSTER_AGGREGATE.value).strip().lower()
        return raw.replace("-", "_")

    def to_layout_config(self) -> LayoutConfig:
        return LayoutConfig(
            mode=self.mode,
            aggregate_threshold=self.aggregate_threshold,
            max_lanes_per_level=self.max_lanes_per_level,
        )


class StorageSettings(BaseModel):
    snapshot_path: Path = Path("data/schedules.json")
    autosave: bool = True


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="UNISCHED_", env_nested_delimiter="__")

    title: str = "Uni Schedule"
    log_level: str = "WARNING"
    layout: LayoutSettings = LayoutSettings()
    storage: StorageSettings = StorageSettings()

    _yaml_path: ClassVar[Path | None] = None

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: object) -> str:
        return str(value).upper() if value else "WARNING"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        ]
        if cls._yaml_path:
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=cls._yaml_path))
        return tuple(sources)


def load_settings(config_path: Path | None = None) -> AppSettings:
    env_path = os.getenv("UNISCHED_CONFIG_PATH")
    resolved_path: Path | None = None

    if config_path is not None:
        resolved_path = config_path
    elif env_path:
        resolved_path = Path(env_path)
    elif DEFAULT_CONFIG_PATH.exists():
        resolved_path = DEFAULT_CONFIG_PATH

    previous = AppSettings._yaml_path
    try:
        if resolved_path is not None:
            if not resolved_path.exists():
                msg = f"Config file not found: {resolved_path}"
                raise FileNotFoundError(msg)
            AppSettings._yaml_path = resolved_path
        return AppSettings()
    finally:
        AppSettings._yaml_path = previous
