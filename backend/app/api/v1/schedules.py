from __future__ import annotations

import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Response

from app.api.deps import Identity, get_store, require_admin
from app.models.schedule import SurveySchedule
from app.repositories.base import SurveyStore
from app.schemas.schedule import ScheduleCreate, ScheduleToggle, ScheduleUpdate
from app.services import schedule_service

router = APIRouter(tags=["schedules"])


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _schedule_to_dict(s: SurveySchedule) -> dict:
    return {
        "id": str(s.id),
        "survey_id": str(s.survey_id),
        "schedule_type": s.schedule_type,
        "frequency_value": s.frequency_value,
        "day_of_week": s.day_of_week,
        "day_of_month": s.day_of_month,
        "time_of_day": s.time_of_day,
        "timezone": s.timezone,
        "start_date": _iso(s.start_date),
        "end_date": _iso(s.end_date),
        "is_active": s.is_active,
        "last_run": _iso(s.last_run),
        "next_run": _iso(s.next_run),
    }


@router.post("/surveys/{survey_id}/schedules", status_code=201)
async def create_schedule(
    survey_id: uuid.UUID,
    body: ScheduleCreate,
    store: SurveyStore = Depends(get_store),
    _: Identity = Depends(require_admin),
):
    return _schedule_to_dict(await schedule_service.create_schedule(store, survey_id, body))


@router.get("/surveys/{survey_id}/schedules")
async def list_schedules(
    survey_id: uuid.UUID,
    store: SurveyStore = Depends(get_store),
    _: Identity = Depends(require_admin),
):
    return [_schedule_to_dict(s) for s in await schedule_service.list_schedules(store, survey_id)]


@router.get("/schedules/due")
async def list_due_schedules(
    before: datetime | None = Query(None),
    store: SurveyStore = Depends(get_store),
    _: Identity = Depends(require_admin),
):
    """Schedules that a tick at ``before`` (default: now) would dispatch."""
    before = before or datetime.now(timezone.utc)
    return [_schedule_to_dict(s) for s in await schedule_service.list_due(store, before)]


@router.get("/schedules/{schedule_id}")
async def get_schedule(
    schedule_id: uuid.UUID,
    store: SurveyStore = Depends(get_store),
    _: Identity = Depends(require_admin),
):
    return _schedule_to_dict(await schedule_service.get_schedule_or_404(store, schedule_id))


@router.patch("/schedules/{schedule_id}")
async def update_schedule(
    schedule_id: uuid.UUID,
    body: ScheduleUpdate,
    store: SurveyStore = Depends(get_store),
    _: Identity = Depends(require_admin),
):
    return _schedule_to_dict(await schedule_service.update_schedule(store, schedule_id, body))


@router.post("/schedules/{schedule_id}/toggle")
async def toggle_schedule(
    schedule_id: uuid.UUID,
    body: ScheduleToggle,
    store: SurveyStore = Depends(get_store),
    _: Identity = Depends(require_admin),
):
    schedule = await schedule_service.toggle_schedule(store, schedule_id, body.is_active)
    return _schedule_to_dict(schedule)


@router.delete("/schedules/{schedule_id}", status_code=204)
async def delete_schedule(
    schedule_id: uuid.UUID,
    store: SurveyStore = Depends(get_store),
    _: Identity = Depends(require_admin),
):
    await schedule_service.delete_schedule(store, schedule_id)
    return Response(status_code=204)
