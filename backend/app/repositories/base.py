"""Storage contract used by the dispatcher, the committer and the API.

Services only ever talk to a ``SurveyStore``. ``SqlSurveyStore`` is the
PostgreSQL implementation; the test suite runs against an in-memory one.
Objects handed out by a store are detached snapshots: mutating them does not
write anything back.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import datetime

from app.models.assignment import SurveyAssignment
from app.models.caregiver import Caregiver, Patient
from app.models.check_in import WeeklyCheckIn
from app.models.response import SurveyResponse, SurveyResponseItem
from app.models.schedule import SurveySchedule
from app.models.survey import Survey


@dataclass(frozen=True)
class DispatchTarget:
    """One caregiver (and optionally one of their patients) a survey goes to."""

    caregiver: Caregiver
    patient: Patient | None = None


class UnitOfWork(ABC):
    """Writes staged inside ``SurveyStore.unit_of_work()``.

    They become visible together when the block exits normally and are all
    discarded when it raises.
    """

    @abstractmethod
    async def complete_assignment_if_pending(
        self, assignment_id: uuid.UUID, completed_at: datetime
    ) -> bool:
        """Flip pending -> completed. False if the assignment was not pending."""

    @abstractmethod
    async def add_response(
        self, response: SurveyResponse, items: list[SurveyResponseItem]
    ) -> SurveyResponse: ...

    @abstractmethod
    async def complete_check_in(self, check_in_id: uuid.UUID, completed_at: datetime) -> None: ...


class SurveyStore(ABC):
    @abstractmethod
    def unit_of_work(self) -> AbstractAsyncContextManager[UnitOfWork]: ...

    # ── Surveys ─────────────────────────────────────────────────────
    @abstractmethod
    async def add_survey(self, survey: Survey) -> Survey: ...

    @abstractmethod
    async def get_survey(self, survey_id: uuid.UUID) -> Survey | None: ...

    @abstractmethod
    async def list_surveys(self, status: str | None = None) -> list[Survey]: ...

    @abstractmethod
    async def set_survey_status(self, survey_id: uuid.UUID, status: str) -> Survey | None: ...

    @abstractmethod
    async def delete_survey(self, survey_id: uuid.UUID) -> bool: ...

    # ── Schedules ───────────────────────────────────────────────────
    @abstractmethod
    async def add_schedule(self, schedule: SurveySchedule) -> SurveySchedule: ...

    @abstractmethod
    async def get_schedule(self, schedule_id: uuid.UUID) -> SurveySchedule | None: ...

    @abstractmethod
    async def save_schedule(self, schedule: SurveySchedule) -> SurveySchedule:
        """Overwrite every editable column of an existing schedule."""

    @abstractmethod
    async def delete_schedule(self, schedule_id: uuid.UUID) -> bool: ...

    @abstractmethod
    async def list_schedules(self, survey_id: uuid.UUID) -> list[SurveySchedule]: ...

    @abstractmethod
    async def list_due_schedules(self, now: datetime) -> list[SurveySchedule]:
        """Active schedules with next_run <= now, started, and not yet ended."""

    @abstractmethod
    async def update_schedule_run(
        self,
        schedule_id: uuid.UUID,
        expected_next_run: datetime | None,
        last_run: datetime,
        next_run: datetime | None,
    ) -> bool:
        """Set last_run/next_run only if next_run still equals ``expected_next_run``."""

    # ── Directory ───────────────────────────────────────────────────
    @abstractmethod
    async def list_dispatch_targets(self, survey: Survey) -> list[DispatchTarget]:
        """Active caregivers in the survey's regions, paired with each active patient.

        A caregiver without active patients yields a single caregiver-level target.
        """

    @abstractmethod
    async def get_caregiver(self, caregiver_id: uuid.UUID) -> Caregiver | None: ...

    @abstractmethod
    async def get_patient(self, patient_id: uuid.UUID) -> Patient | None: ...

    @abstractmethod
    async def get_check_in(self, check_in_id: uuid.UUID) -> WeeklyCheckIn | None: ...

    # ── Assignments ─────────────────────────────────────────────────
    @abstractmethod
    async def create_assignment_if_absent(
        self, assignment: SurveyAssignment
    ) -> SurveyAssignment | None:
        """Insert unless (survey, caregiver, patient, due_window) exists. None on conflict."""

    @abstractmethod
    async def get_assignment(self, assignment_id: uuid.UUID) -> SurveyAssignment | None: ...

    @abstractmethod
    async def list_assignments(
        self, caregiver_id: uuid.UUID, status: str | None = None
    ) -> list[SurveyAssignment]:
        """Assignments of a caregiver; pending ones ordered by due_at (soonest first)."""

    @abstractmethod
    async def list_reminder_candidates(
        self, now: datetime, older_than: datetime, max_reminders: int
    ) -> list[SurveyAssignment]:
        """Pending, unexpired assignments not reminded since ``older_than``."""

    @abstractmethod
    async def record_reminder(self, assignment_id: uuid.UUID, sent_at: datetime) -> None: ...

    # ── Responses ───────────────────────────────────────────────────
    @abstractmethod
    async def get_response_for_assignment(
        self, assignment_id: uuid.UUID
    ) -> SurveyResponse | None: ...
