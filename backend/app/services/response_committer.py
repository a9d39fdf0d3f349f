"""Commit a caregiver's answers for one assignment.

Preconditions are checked cheapest-first and each maps to its own error.
The write itself is a single unit of work: the assignment is claimed with a
compare-and-swap on ``status = 'pending'`` before anything else is written,
so of two racing submissions exactly one commits.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from app.core.errors import (
    AlreadySubmitted,
    Expired,
    Forbidden,
    NotAvailable,
    SurveyEngineError,
    ValidationFailed,
)
from app.core.metrics import submissions_total
from app.models.assignment import SurveyAssignment
from app.models.response import SurveyResponse, SurveyResponseItem
from app.models.survey import Survey
from app.repositories.base import SurveyStore
from app.schemas.survey import QuestionSpec
from app.services.answer_validator import is_empty, parse_date_value, parse_number, validate
from app.services.notification_service import (
    KIND_CONFIRMATION,
    ReminderSender,
    check_in_vars,
    recipient_for,
)
from app.services.schedule_clock import as_utc
from app.services.survey_service import question_specs

logger = logging.getLogger(__name__)


def normalise_answer(question_type: str, value: Any) -> Any:
    """JSON-safe canonical form of an already validated answer."""
    if question_type == "number":
        number = parse_number(value)
        return int(number) if number is not None and number.is_integer() else number
    if question_type == "date":
        return parse_date_value(value).isoformat()
    if question_type == "multi_choice":
        return sorted(set(value))
    return value


def project_answer(question_type: str, value: Any) -> dict[str, Any]:
    """Typed column values for a normalised answer; exactly one is set."""
    if question_type == "number":
        return {"answer_number": float(value)}
    if question_type == "boolean":
        return {"answer_boolean": bool(value)}
    if question_type == "date":
        return {"answer_date": parse_date_value(value)}
    if question_type == "multi_choice":
        return {"answer_text": json.dumps(sorted(set(value)))}
    return {"answer_text": str(value)}


def read_projection(item: SurveyResponseItem) -> Any:
    """Inverse of ``project_answer``: the typed value stored for ``item``."""
    if item.question_type == "number":
        return item.answer_number
    if item.question_type == "boolean":
        return item.answer_boolean
    if item.question_type == "date":
        return item.answer_date
    if item.question_type == "multi_choice":
        return set(json.loads(item.answer_text))
    return item.answer_text


def build_items(
    response_id: uuid.UUID, specs: list[QuestionSpec], answers: dict[str, Any]
) -> list[SurveyResponseItem]:
    items = []
    for spec in specs:
        value = answers.get(str(spec.id))
        if is_empty(value):
            continue
        answer = normalise_answer(spec.type, value)
        items.append(
            SurveyResponseItem(
                id=uuid.uuid4(),
                response_id=response_id,
                question_id=uuid.UUID(str(spec.id)),
                question_type=spec.type,
                answer=answer,
                **project_answer(spec.type, answer),
            )
        )
    return items


async def _check_preconditions(
    store: SurveyStore,
    assignment_id: uuid.UUID,
    caregiver_id: uuid.UUID,
    now: datetime,
) -> tuple[SurveyAssignment, Survey]:
    assignment = await store.get_assignment(assignment_id)
    if assignment is None or assignment.caregiver_id != caregiver_id:
        raise Forbidden("Assignment not found for this caregiver")
    if assignment.status == "completed":
        raise AlreadySubmitted("This check-in has already been submitted")
    if assignment.due_at is not None and as_utc(assignment.due_at) < now:
        raise Expired("This check-in is past its due date")
    survey = await store.get_survey(assignment.survey_id)
    if survey is None or survey.status != "published":
        raise NotAvailable("This survey is not currently available")
    return assignment, survey


async def submit(
    store: SurveyStore,
    assignment_id: uuid.UUID,
    caregiver_id: uuid.UUID,
    answers: dict[str, Any],
    meta: dict | None = None,
    *,
    now: datetime | None = None,
    confirmations: ConfirmationNotifier | None = None,
) -> SurveyResponse:
    """Validate and commit ``answers``; returns the stored response.

    Raises Forbidden, AlreadySubmitted, Expired, NotAvailable or
    ValidationFailed (in that order of precedence), or StorageFailure if the
    transaction could not be committed. Nothing is written unless everything is.
    """
    now = as_utc(now or datetime.now(timezone.utc))
    try:
        response = await _submit(
            store, assignment_id, caregiver_id, answers, meta, now, confirmations
        )
    except SurveyEngineError as exc:
        submissions_total.labels(outcome=exc.code).inc()
        raise
    submissions_total.labels(outcome="accepted").inc()
    return response


async def _submit(
    store: SurveyStore,
    assignment_id: uuid.UUID,
    caregiver_id: uuid.UUID,
    answers: dict[str, Any],
    meta: dict | None,
    now: datetime,
    confirmations: ConfirmationNotifier | None,
) -> SurveyResponse:
    assignment, survey = await _check_preconditions(store, assignment_id, caregiver_id, now)

    specs = question_specs(survey)
    result = validate(answers, specs)
    if not result.valid:
        raise ValidationFailed("Some answers are missing or invalid", result.errors)

    response = SurveyResponse(
        id=uuid.uuid4(),
        survey_id=survey.id,
        assignment_id=assignment.id,
        check_in_id=assignment.check_in_id,
        caregiver_id=assignment.caregiver_id,
        patient_id=assignment.patient_id,
        submitted_at=now,
        meta=meta or {},
    )
    items = build_items(response.id, specs, answers)

    async with store.unit_of_work() as uow:
        if not await uow.complete_assignment_if_pending(assignment.id, now):
            raise AlreadySubmitted("This check-in has already been submitted")
        response = await uow.add_response(response, items)
        if assignment.check_in_id is not None:
            await uow.complete_check_in(assignment.check_in_id, now)

    logger.info(
        "Response committed with %d answers",
        len(items),
        extra={"assignment_id": assignment.id, "survey_id": survey.id},
    )
    if confirmations is not None:
        confirmations.notify(assignment, survey)
    return response


class ConfirmationNotifier:
    """Sends the post-submission "thank you" in the background.

    Owned by the application lifespan; ``drain`` waits for sends still in
    flight before the sender is closed.
    """

    def __init__(self, store: SurveyStore, sender: ReminderSender):
        self.store = store
        self.sender = sender
        self._tasks: set[asyncio.Task] = set()

    def notify(self, assignment: SurveyAssignment, survey: Survey) -> None:
        task = asyncio.create_task(self._send(assignment, survey))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def _send(self, assignment: SurveyAssignment, survey: Survey) -> None:
        try:
            caregiver = await self.store.get_caregiver(assignment.caregiver_id)
            if caregiver is None:
                return
            await self.sender.send_reminder(
                recipient_for(caregiver),
                check_in_vars(KIND_CONFIRMATION, assignment, survey, caregiver),
            )
        except Exception:
            logger.exception("Confirmation failed", extra={"assignment_id": assignment.id})

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
