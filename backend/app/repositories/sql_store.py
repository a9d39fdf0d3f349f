"""PostgreSQL implementation of the storage contract (SQLAlchemy async).

Idempotent assignment creation relies on ``uq_assignment_window`` declared
NULLS NOT DISTINCT, so PostgreSQL 15 or newer is required.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import StorageFailure
from app.models.assignment import SurveyAssignment
from app.models.caregiver import Caregiver, Patient
from app.models.check_in import WeeklyCheckIn
from app.models.response import SurveyResponse, SurveyResponseItem
from app.models.schedule import SurveySchedule
from app.models.survey import Survey
from app.repositories.base import DispatchTarget, SurveyStore, UnitOfWork

logger = logging.getLogger(__name__)

_SCHEDULE_FIELDS = (
    "schedule_type",
    "frequency_value",
    "day_of_week",
    "day_of_month",
    "time_of_day",
    "timezone",
    "start_date",
    "end_date",
    "is_active",
    "last_run",
    "next_run",
)


class _SqlUnitOfWork(UnitOfWork):
    def __init__(self, db: AsyncSession):
        self._db = db

    async def complete_assignment_if_pending(
        self, assignment_id: uuid.UUID, completed_at: datetime
    ) -> bool:
        result = await self._db.execute(
            update(SurveyAssignment)
            .where(SurveyAssignment.id == assignment_id, SurveyAssignment.status == "pending")
            .values(status="completed", completed_at=completed_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def add_response(
        self, response: SurveyResponse, items: list[SurveyResponseItem]
    ) -> SurveyResponse:
        response.items = items
        self._db.add(response)
        await self._db.flush()
        return response

    async def complete_check_in(self, check_in_id: uuid.UUID, completed_at: datetime) -> None:
        await self._db.execute(
            update(WeeklyCheckIn)
            .where(WeeklyCheckIn.id == check_in_id)
            .values(is_completed=True, completed_at=completed_at)
            .execution_options(synchronize_session=False)
        )


class SqlSurveyStore(SurveyStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as db:
                yield db
        except SQLAlchemyError as exc:
            logger.error("Storage operation failed: %s", exc)
            raise StorageFailure("Storage operation failed") from exc

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[UnitOfWork]:
        async with self._session() as db:
            async with db.begin():
                yield _SqlUnitOfWork(db)

    # ── Surveys ─────────────────────────────────────────────────────

    async def add_survey(self, survey: Survey) -> Survey:
        async with self._session() as db:
            db.add(survey)
            await db.commit()
        return await self.get_survey(survey.id)

    async def get_survey(self, survey_id: uuid.UUID) -> Survey | None:
        async with self._session() as db:
            result = await db.execute(select(Survey).where(Survey.id == survey_id))
            return result.scalar_one_or_none()

    async def list_surveys(self, status: str | None = None) -> list[Survey]:
        async with self._session() as db:
            stmt = select(Survey).order_by(Survey.created_at.desc())
            if status:
                stmt = stmt.where(Survey.status == status)
            result = await db.execute(stmt)
            return list(result.scalars().all())

    async def set_survey_status(self, survey_id: uuid.UUID, status: str) -> Survey | None:
        async with self._session() as db:
            result = await db.execute(
                update(Survey).where(Survey.id == survey_id).values(status=status)
            )
            await db.commit()
            if result.rowcount != 1:
                return None
        return await self.get_survey(survey_id)

    async def delete_survey(self, survey_id: uuid.UUID) -> bool:
        # questions, options, regions, schedules, assignments and responses cascade in the DB
        async with self._session() as db:
            result = await db.execute(delete(Survey).where(Survey.id == survey_id))
            await db.commit()
            return result.rowcount == 1

    # ── Schedules ───────────────────────────────────────────────────

    async def add_schedule(self, schedule: SurveySchedule) -> SurveySchedule:
        async with self._session() as db:
            db.add(schedule)
            await db.commit()
            await db.refresh(schedule)
            return schedule

    async def get_schedule(self, schedule_id: uuid.UUID) -> SurveySchedule | None:
        async with self._session() as db:
            return await db.get(SurveySchedule, schedule_id)

    async def save_schedule(self, schedule: SurveySchedule) -> SurveySchedule:
        async with self._session() as db:
            await db.execute(
                update(SurveySchedule)
                .where(SurveySchedule.id == schedule.id)
                .values({f: getattr(schedule, f) for f in _SCHEDULE_FIELDS})
            )
            await db.commit()
            return await db.get(SurveySchedule, schedule.id, populate_existing=True)

    async def delete_schedule(self, schedule_id: uuid.UUID) -> bool:
        async with self._session() as db:
            result = await db.execute(
                delete(SurveySchedule).where(SurveySchedule.id == schedule_id)
            )
            await db.commit()
            return result.rowcount == 1

    async def list_schedules(self, survey_id: uuid.UUID) -> list[SurveySchedule]:
        async with self._session() as db:
            result = await db.execute(
                select(SurveySchedule)
                .where(SurveySchedule.survey_id == survey_id)
                .order_by(SurveySchedule.created_at)
            )
            return list(result.scalars().all())

    async def list_due_schedules(self, now: datetime) -> list[SurveySchedule]:
        async with self._session() as db:
            result = await db.execute(
                select(SurveySchedule)
                .where(
                    SurveySchedule.is_active.is_(True),
                    SurveySchedule.next_run.isnot(None),
                    SurveySchedule.next_run <= now,
                    SurveySchedule.start_date <= now,
                    or_(SurveySchedule.end_date.is_(None), SurveySchedule.end_date >= now),
                )
                .order_by(SurveySchedule.next_run)
            )
            return list(result.scalars().all())

    async def update_schedule_run(
        self,
        schedule_id: uuid.UUID,
        expected_next_run: datetime | None,
        last_run: datetime,
        next_run: datetime | None,
    ) -> bool:
        if expected_next_run is None:
            guard = SurveySchedule.next_run.is_(None)
        else:
            guard = SurveySchedule.next_run == expected_next_run
        async with self._session() as db:
            result = await db.execute(
                update(SurveySchedule)
                .where(SurveySchedule.id == schedule_id, guard)
                .values(last_run=last_run, next_run=next_run)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            return result.rowcount == 1

    # ── Directory ───────────────────────────────────────────────────

    async def list_dispatch_targets(self, survey: Survey) -> list[DispatchTarget]:
        regions = survey.region_codes
        async with self._session() as db:
            stmt = select(Caregiver).where(Caregiver.is_active.is_(True)).order_by(Caregiver.name)
            if regions:
                stmt = stmt.where(Caregiver.state.in_(regions))
            caregivers = list((await db.execute(stmt)).scalars().all())
            if not caregivers:
                return []

            patients = await db.execute(
                select(Patient)
                .where(
                    Patient.is_active.is_(True),
                    Patient.caregiver_id.in_([c.id for c in caregivers]),
                )
                .order_by(Patient.name)
            )
            by_caregiver: dict[uuid.UUID, list[Patient]] = defaultdict(list)
            for patient in patients.scalars().all():
                by_caregiver[patient.caregiver_id].append(patient)

        targets: list[DispatchTarget] = []
        for caregiver in caregivers:
            mine = by_caregiver.get(caregiver.id)
            if not mine:
                targets.append(DispatchTarget(caregiver=caregiver))
                continue
            targets.extend(DispatchTarget(caregiver=caregiver, patient=p) for p in mine)
        return targets

    async def get_caregiver(self, caregiver_id: uuid.UUID) -> Caregiver | None:
        async with self._session() as db:
            return await db.get(Caregiver, caregiver_id)

    async def get_patient(self, patient_id: uuid.UUID) -> Patient | None:
        async with self._session() as db:
            return await db.get(Patient, patient_id)

    async def get_check_in(self, check_in_id: uuid.UUID) -> WeeklyCheckIn | None:
        async with self._session() as db:
            return await db.get(WeeklyCheckIn, check_in_id)

    # ── Assignments ─────────────────────────────────────────────────

    async def create_assignment_if_absent(
        self, assignment: SurveyAssignment
    ) -> SurveyAssignment | None:
        stmt = (
            pg_insert(SurveyAssignment)
            .values(
                id=assignment.id or uuid.uuid4(),
                survey_id=assignment.survey_id,
                caregiver_id=assignment.caregiver_id,
                patient_id=assignment.patient_id,
                schedule_id=assignment.schedule_id,
                check_in_id=assignment.check_in_id,
                status="pending",
                due_window=assignment.due_window,
                due_at=assignment.due_at,
                reminders_sent=0,
            )
            .on_conflict_do_nothing(constraint="uq_assignment_window")
            .returning(SurveyAssignment.id)
        )
        async with self._session() as db:
            new_id = (await db.execute(stmt)).scalar_one_or_none()
            await db.commit()
            if new_id is None:
                return None
            return await db.get(SurveyAssignment, new_id)

    async def get_assignment(self, assignment_id: uuid.UUID) -> SurveyAssignment | None:
        async with self._session() as db:
            return await db.get(SurveyAssignment, assignment_id)

    async def list_assignments(
        self, caregiver_id: uuid.UUID, status: str | None = None
    ) -> list[SurveyAssignment]:
        stmt = select(SurveyAssignment).where(SurveyAssignment.caregiver_id == caregiver_id)
        if status:
            stmt = stmt.where(SurveyAssignment.status == status)
        if status == "pending":
            stmt = stmt.order_by(SurveyAssignment.due_at.asc().nulls_last())
        else:
            stmt = stmt.order_by(
                SurveyAssignment.completed_at.desc().nulls_last(),
                SurveyAssignment.created_at.desc(),
            )
        async with self._session() as db:
            result = await db.execute(stmt)
            return list(result.scalars().all())

    async def list_reminder_candidates(
        self, now: datetime, older_than: datetime, max_reminders: int
    ) -> list[SurveyAssignment]:
        last_contact = func.coalesce(SurveyAssignment.last_reminder_at, SurveyAssignment.created_at)
        async with self._session() as db:
            result = await db.execute(
                select(SurveyAssignment)
                .where(
                    SurveyAssignment.status == "pending",
                    SurveyAssignment.reminders_sent < max_reminders,
                    or_(SurveyAssignment.due_at.is_(None), SurveyAssignment.due_at > now),
                    last_contact <= older_than,
                )
                .order_by(SurveyAssignment.due_at.asc().nulls_last())
            )
            return list(result.scalars().all())

    async def record_reminder(self, assignment_id: uuid.UUID, sent_at: datetime) -> None:
        async with self._session() as db:
            await db.execute(
                update(SurveyAssignment)
                .where(SurveyAssignment.id == assignment_id)
                .values(
                    reminders_sent=SurveyAssignment.reminders_sent + 1,
                    last_reminder_at=sent_at,
                )
                .execution_options(synchronize_session=False)
            )
            await db.commit()

    # ── Responses ───────────────────────────────────────────────────

    async def get_response_for_assignment(
        self, assignment_id: uuid.UUID
    ) -> SurveyResponse | None:
        async with self._session() as db:
            result = await db.execute(
                select(SurveyResponse).where(SurveyResponse.assignment_id == assignment_id)
            )
            return result.scalar_one_or_none()
