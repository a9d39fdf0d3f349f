"""Schedule CRUD. Every write re-validates the rule and re-primes ``next_run``."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from app.config import settings
from app.core.errors import NotFound
from app.models.schedule import SurveySchedule
from app.repositories.base import SurveyStore
from app.schemas.schedule import ScheduleCreate, ScheduleUpdate
from app.services.schedule_clock import as_utc, prime_next_run, validate_schedule_config
from app.services.survey_service import get_survey_or_404

logger = logging.getLogger(__name__)


async def create_schedule(
    store: SurveyStore,
    survey_id: uuid.UUID,
    data: ScheduleCreate,
    now: datetime | None = None,
) -> SurveySchedule:
    await get_survey_or_404(store, survey_id)
    now = now or datetime.now(timezone.utc)

    schedule = SurveySchedule(
        id=uuid.uuid4(),
        survey_id=survey_id,
        schedule_type=data.schedule_type,
        frequency_value=data.frequency_value,
        day_of_week=data.day_of_week,
        day_of_month=data.day_of_month,
        time_of_day=data.time_of_day,
        timezone=data.timezone or settings.DEFAULT_TIMEZONE,
        start_date=as_utc(data.start_date),
        end_date=as_utc(data.end_date) if data.end_date else None,
        is_active=data.is_active,
        last_run=None,
    )
    validate_schedule_config(schedule)
    schedule.next_run = prime_next_run(schedule, now)

    schedule = await store.add_schedule(schedule)
    logger.info(
        "Schedule created (%s), next run %s",
        schedule.schedule_type,
        schedule.next_run,
        extra={"schedule_id": schedule.id, "survey_id": survey_id},
    )
    return schedule


async def get_schedule_or_404(store: SurveyStore, schedule_id: uuid.UUID) -> SurveySchedule:
    schedule = await store.get_schedule(schedule_id)
    if schedule is None:
        raise NotFound("Schedule not found")
    return schedule


async def update_schedule(
    store: SurveyStore,
    schedule_id: uuid.UUID,
    data: ScheduleUpdate,
    now: datetime | None = None,
) -> SurveySchedule:
    schedule = await get_schedule_or_404(store, schedule_id)
    now = now or datetime.now(timezone.utc)

    for field, value in data.model_dump(exclude_unset=True).items():
        if field in ("start_date", "end_date") and value is not None:
            value = as_utc(value)
        setattr(schedule, field, value)
    if schedule.timezone is None:
        schedule.timezone = settings.DEFAULT_TIMEZONE

    validate_schedule_config(schedule)
    schedule.next_run = prime_next_run(schedule, now)
    return await store.save_schedule(schedule)


async def toggle_schedule(
    store: SurveyStore,
    schedule_id: uuid.UUID,
    is_active: bool,
    now: datetime | None = None,
) -> SurveySchedule:
    schedule = await get_schedule_or_404(store, schedule_id)
    schedule.is_active = is_active
    schedule.next_run = prime_next_run(schedule, now or datetime.now(timezone.utc))
    return await store.save_schedule(schedule)


async def delete_schedule(store: SurveyStore, schedule_id: uuid.UUID) -> None:
    if not await store.delete_schedule(schedule_id):
        raise NotFound("Schedule not found")


async def list_schedules(store: SurveyStore, survey_id: uuid.UUID) -> list[SurveySchedule]:
    await get_survey_or_404(store, survey_id)
    return await store.list_schedules(survey_id)


async def list_due(store: SurveyStore, before: datetime) -> list[SurveySchedule]:
    return await store.list_due_schedules(as_utc(before))
