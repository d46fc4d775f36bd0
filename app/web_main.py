from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from fastapi import Depends, FastAPI, Query
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, Field

from adapters.layout.strategies import compute_layout, compute_segments
from app.config import AppSettings, load_settings
from app.schedule_wiring import build_snapshot_repository, load_registry, persist_registry
from domain.errors import ScheduleError, ScheduleErrorKind
from domain.models import LayoutMode, QueryFilter, Schedule, SchedulePayload
from domain.ports.repositories import ScheduleSnapshotRepository
from domain.services.schedule_registry import ScheduleRegistry

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[ScheduleErrorKind, int] = {
    ScheduleErrorKind.PARENT_NOT_FOUND: 404,
    ScheduleErrorKind.SCHEDULE_NOT_FOUND: 404,
    ScheduleErrorKind.TIME_RANGE_OVERLAPS: 409,
    ScheduleErrorKind.DUPLICATE_ID: 409,
}


class ParentsRequest(BaseModel):
    parents: list[str] = Field(default_factory=list)


@dataclass(frozen=True)
class ScheduleContext:
    settings: AppSettings
    registry: ScheduleRegistry
    snapshot_repo: ScheduleSnapshotRepository


def error_response(error: ScheduleError) -> ORJSONResponse:
    return ORJSONResponse(error.to_dict(), status_code=ERROR_STATUS.get(error.kind, 422))


def create_app(settings: AppSettings) -> FastAPI:
    app = FastAPI(title=settings.title)

    snapshot_repo = build_snapshot_repository(settings)
    context = ScheduleContext(
        settings=settings,
        registry=load_registry(settings, snapshot_repo),
        snapshot_repo=snapshot_repo,
    )

    def get_context() -> ScheduleContext:
        return context

    def query_filter(
        name: Optional[str] = Query(default=None),
        level: Optional[int] = Query(default=None, ge=0),
        exclusive: Optional[bool] = Query(default=None),
        start: Optional[datetime] = Query(default=None),
        stop: Optional[datetime] = Query(default=None),
    ) -> QueryFilter:
        return QueryFilter(name=name, level=level, exclusive=exclusive, start=start, stop=stop)

    def persist(ctx: ScheduleContext) -> None:
        persist_registry(ctx.settings, ctx.registry, ctx.snapshot_repo)

    @app.post("/api/schedules")
    def api_create_schedule(
        payload: SchedulePayload,
        ctx: ScheduleContext = Depends(get_context),
    ) -> ORJSONResponse:
        result = ctx.registry.create(payload)
        if isinstance(result, ScheduleError):
            return error_response(result)
        persist(ctx)
        return ORJSONResponse({"id": result}, status_code=201)

    @app.get("/api/schedules")
    def api_query_schedules(
        query: QueryFilter = Depends(query_filter),
        ctx: ScheduleContext = Depends(get_context),
    ) -> ORJSONResponse:
        return ORJSONResponse([schedule.to_dict() for schedule in ctx.registry.query(query)])

    @app.get("/api/schedules/{schedule_id}")
    def api_get_schedule(
        schedule_id: str,
        ctx: ScheduleContext = Depends(get_context),
    ) -> ORJSONResponse:
        schedule = ctx.registry.get(schedule_id)
        if schedule is None:
            return error_response(ScheduleError.of(ScheduleErrorKind.SCHEDULE_NOT_FOUND, schedule_id))
        return ORJSONResponse(schedule.to_dict())

    @app.delete("/api/schedules/{schedule_id}")
    def api_delete_schedule(
        schedule_id: str,
        ctx: ScheduleContext = Depends(get_context),
    ) -> ORJSONResponse:
        error = ctx.registry.delete(schedule_id)
        if error is not None:
            return error_response(error)
        persist(ctx)
        return ORJSONResponse({"deleted": schedule_id})

    @app.post("/api/schedules/{schedule_id}/parents")
    def api_add_parents(
        schedule_id: str,
        request: ParentsRequest,
        ctx: ScheduleContext = Depends(get_context),
    ) -> ORJSONResponse:
        error = ctx.registry.add_parents(schedule_id, request.parents)
        if error is not None:
            return error_response(error)
        persist(ctx)
        schedule = ctx.registry.get(schedule_id)
        return ORJSONResponse(schedule.to_dict() if schedule else {})

    @app.get("/api/layout")
    def api_layout(
        mode: Optional[LayoutMode] = Query(default=None),
        aggregate_threshold: Optional[int] = Query(default=None, ge=0),
        max_lanes_per_level: Optional[int] = Query(default=None, ge=1),
        query: QueryFilter = Depends(query_filter),
        ctx: ScheduleContext = Depends(get_context),
    ) -> ORJSONResponse:
        overrides: dict[str, Any] = {
            key: value
            for key, value in {
                "mode": mode,
                "aggregate_threshold": aggregate_threshold,
                "max_lanes_per_level": max_lanes_per_level,
            }.items()
            if value is not None
        }
        config = ctx.settings.layout.model_copy(update=overrides).to_layout_config()
        plan = compute_layout(ctx.registry.query(query), config)
        return ORJSONResponse(plan.to_dict())

    @app.get("/api/segments")
    def api_segments(
        query: QueryFilter = Depends(query_filter),
        ctx: ScheduleContext = Depends(get_context),
    ) -> ORJSONResponse:
        schedules: list[Schedule] = ctx.registry.query(query)
        return ORJSONResponse([segment.to_dict() for segment in compute_segments(schedules)])

    logger.info("Schedule API ready with %d schedules", len(context.registry))
    return app


app = create_app(load_settings())
