"""Turns due schedules into assignments.

One ``Dispatcher`` is built by the application lifespan and owns a single
background loop. Each pass runs ``tick`` (create assignments for every due
schedule) and then ``send_reminders`` (follow up on assignments still pending).

Idempotency does not depend on ``last_run``: assignments are keyed by
(survey, caregiver, patient, due window) and the store refuses duplicates, so
a tick that dies half-way, or two ticks racing, never double-assign.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from app.config import settings
from app.core.metrics import (
    assignments_created_total,
    bg_task_last_success,
    bg_task_runs_total,
    schedule_failures_total,
)
from app.models.assignment import SurveyAssignment
from app.models.schedule import SurveySchedule
from app.models.survey import Survey
from app.repositories.base import DispatchTarget, SurveyStore
from app.services.notification_service import (
    KIND_ASSIGNMENT,
    KIND_REMINDER,
    ReminderSender,
    check_in_vars,
    recipient_for,
)
from app.services.schedule_clock import ScheduleRule, as_utc, compute_next_run

logger = logging.getLogger(__name__)

_TASK_NAME = "survey_dispatch"


class Dispatcher:
    def __init__(
        self,
        store: SurveyStore,
        sender: ReminderSender,
        *,
        interval_seconds: float = 60,
        concurrency: int = 4,
        assignment_due_days: int = 7,
        reminder_interval: timedelta = timedelta(hours=48),
        max_reminders: int = 2,
        survey_base_url: str | None = None,
    ):
        self.store = store
        self.sender = sender
        self.interval_seconds = interval_seconds
        self.concurrency = max(1, concurrency)
        self.assignment_due_days = assignment_due_days
        self.reminder_interval = reminder_interval
        self.max_reminders = max_reminders
        self.survey_base_url = survey_base_url
        self._task: asyncio.Task | None = None
        self._deliveries: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, store: SurveyStore, sender: ReminderSender) -> Dispatcher:
        return cls(
            store,
            sender,
            interval_seconds=settings.DISPATCH_INTERVAL_SECONDS,
            concurrency=settings.DISPATCH_CONCURRENCY,
            assignment_due_days=settings.ASSIGNMENT_DUE_DAYS,
            reminder_interval=timedelta(hours=settings.REMINDER_INTERVAL_HOURS),
            max_reminders=settings.MAX_REMINDERS,
            survey_base_url=settings.SURVEY_BASE_URL,
        )

    # ── Tick ────────────────────────────────────────────────────────

    async def tick(self, now: datetime | None = None) -> list[SurveyAssignment]:
        """Dispatch every schedule due at ``now``. Returns the assignments created."""
        now = as_utc(now or datetime.now(timezone.utc))
        schedules = await self.store.list_due_schedules(now)
        if not schedules:
            return []

        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(schedule: SurveySchedule) -> list[SurveyAssignment]:
            async with semaphore:
                try:
                    return await self._dispatch_schedule(schedule, now)
                except Exception:
                    schedule_failures_total.inc()
                    logger.exception(
                        "Dispatch failed for schedule",
                        extra={"schedule_id": schedule.id, "survey_id": schedule.survey_id},
                    )
                    return []

        batches = await asyncio.gather(*(run(s) for s in schedules))
        created = [a for batch in batches for a in batch]
        logger.info(
            "Tick at %s: %d due schedules, %d assignments created",
            now.isoformat(),
            len(schedules),
            len(created),
        )
        return created

    def _advance(
        self, schedule: SurveySchedule, window: datetime, now: datetime
    ) -> datetime | None:
        rule = replace(ScheduleRule.from_schedule(schedule), last_run=now)
        # the window being dispatched must never come back as the next run
        return compute_next_run(rule, max(now, window + timedelta(minutes=1)))

    async def _dispatch_schedule(
        self, schedule: SurveySchedule, now: datetime
    ) -> list[SurveyAssignment]:
        window = as_utc(schedule.next_run)
        next_run = self._advance(schedule, window, now)
        created: list[SurveyAssignment] = []

        survey = await self.store.get_survey(schedule.survey_id)
        if survey is None or survey.status != "published":
            logger.info(
                "Survey not published; advancing schedule without dispatch",
                extra={"schedule_id": schedule.id, "survey_id": schedule.survey_id},
            )
        else:
            due_at = next_run or window + timedelta(days=self.assignment_due_days)
            for target in await self.store.list_dispatch_targets(survey):
                assignment = await self._create(schedule, survey, target, window, due_at)
                if assignment is not None:
                    created.append(assignment)

        advanced = await self.store.update_schedule_run(
            schedule.id, schedule.next_run, last_run=now, next_run=next_run
        )
        if not advanced:
            logger.info(
                "Schedule already advanced by a concurrent tick",
                extra={"schedule_id": schedule.id},
            )
        return created

    async def _create(
        self,
        schedule: SurveySchedule,
        survey: Survey,
        target: DispatchTarget,
        window: datetime,
        due_at: datetime,
    ) -> SurveyAssignment | None:
        patient = target.patient
        assignment = await self.store.create_assignment_if_absent(
            SurveyAssignment(
                id=uuid.uuid4(),
                survey_id=survey.id,
                caregiver_id=target.caregiver.id,
                patient_id=patient.id if patient is not None else None,
                schedule_id=schedule.id,
                status="pending",
                due_window=window,
                due_at=due_at,
                reminders_sent=0,
            )
        )
        if assignment is None:
            return None

        assignments_created_total.labels(origin="dispatch").inc()
        self._deliver(
            assignment,
            check_in_vars(
                KIND_ASSIGNMENT, assignment, survey, target.caregiver, patient, self.survey_base_url
            ),
            target.caregiver,
        )
        return assignment

    # ── Delivery ────────────────────────────────────────────────────

    def _deliver(self, assignment: SurveyAssignment, template_vars: dict, caregiver) -> None:
        task = asyncio.create_task(self._send(assignment, template_vars, caregiver))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    async def _send(self, assignment: SurveyAssignment, template_vars: dict, caregiver) -> bool:
        try:
            return await self.sender.send_reminder(recipient_for(caregiver), template_vars)
        except Exception:
            logger.exception("Delivery failed", extra={"assignment_id": assignment.id})
            return False

    async def drain(self) -> None:
        """Wait for in-flight deliveries."""
        while self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    # ── Reminders ───────────────────────────────────────────────────

    async def send_reminders(self, now: datetime | None = None) -> int:
        """Re-notify caregivers of pending assignments. Returns the number delivered."""
        now = as_utc(now or datetime.now(timezone.utc))
        candidates = await self.store.list_reminder_candidates(
            now, now - self.reminder_interval, self.max_reminders
        )
        surveys: dict[uuid.UUID, Survey | None] = {}
        delivered = 0
        for assignment in candidates:
            if assignment.survey_id not in surveys:
                surveys[assignment.survey_id] = await self.store.get_survey(assignment.survey_id)
            survey = surveys[assignment.survey_id]
            if survey is None or survey.status != "published":
                continue
            caregiver = await self.store.get_caregiver(assignment.caregiver_id)
            if caregiver is None or not caregiver.is_active:
                continue
            patient = None
            if assignment.patient_id is not None:
                patient = await self.store.get_patient(assignment.patient_id)

            template_vars = check_in_vars(
                KIND_REMINDER, assignment, survey, caregiver, patient, self.survey_base_url
            )
            if await self._send(assignment, template_vars, caregiver):
                delivered += 1
            # attempts count against the limit whether or not a channel delivered
            await self.store.record_reminder(assignment.id, now)

        if candidates:
            logger.info("Reminders: %d candidates, %d delivered", len(candidates), delivered)
        return delivered

    # ── Lifecycle ───────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="survey-dispatcher")
        logger.info("Dispatcher started (every %ss)", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self.drain()
        logger.info("Dispatcher stopped")

    async def _loop(self) -> None:
        while True:
            try:
                now = datetime.now(timezone.utc)
                await self.tick(now)
                await self.send_reminders(now)
                bg_task_runs_total.labels(task_name=_TASK_NAME, status="success").inc()
                bg_task_last_success.labels(task_name=_TASK_NAME).set_to_current_time()
            except asyncio.CancelledError:
                raise
            except Exception:
                bg_task_runs_total.labels(task_name=_TASK_NAME, status="error").inc()
                logger.exception("Error in survey dispatch loop")
            await asyncio.sleep(self.interval_seconds)
