from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from domain.models import LayoutConfig, LayoutPlan, Schedule


class LayoutStrategy(Protocol):
    def build_plan(self, schedules: Sequence[Schedule], config: LayoutConfig) -> LayoutPlan:
        ...
