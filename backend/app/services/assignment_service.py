"""Manual assignments and caregiver assignment lists."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from app.core.errors import DuplicateAssignment, Forbidden, NotAvailable, NotFound
from app.core.metrics import assignments_created_total
from app.models.assignment import SurveyAssignment
from app.repositories.base import SurveyStore
from app.services.survey_service import get_survey_or_404

logger = logging.getLogger(__name__)


async def create_manual_assignment(
    store: SurveyStore,
    survey_id: uuid.UUID,
    caregiver_id: uuid.UUID,
    patient_id: uuid.UUID | None = None,
    check_in_id: uuid.UUID | None = None,
    due_at: datetime | None = None,
    now: datetime | None = None,
) -> SurveyAssignment:
    """Assign a published survey outside of any schedule.

    The due window is the due date (or creation time without one), so the same
    survey can only be assigned once per caregiver/patient for a given deadline.
    """
    survey = await get_survey_or_404(store, survey_id)
    if survey.status != "published":
        raise NotAvailable("Only published surveys can be assigned")
    if await store.get_caregiver(caregiver_id) is None:
        raise NotFound("Caregiver not found")
    if patient_id is not None and await store.get_patient(patient_id) is None:
        raise NotFound("Patient not found")
    if check_in_id is not None and await store.get_check_in(check_in_id) is None:
        raise NotFound("Check-in not found")

    now = now or datetime.now(timezone.utc)
    assignment = SurveyAssignment(
        id=uuid.uuid4(),
        survey_id=survey_id,
        caregiver_id=caregiver_id,
        patient_id=patient_id,
        check_in_id=check_in_id,
        status="pending",
        due_window=due_at or now,
        due_at=due_at,
        reminders_sent=0,
    )
    created = await store.create_assignment_if_absent(assignment)
    if created is None:
        raise DuplicateAssignment("An assignment for this survey and due date already exists")

    assignments_created_total.labels(origin="manual").inc()
    logger.info(
        "Manual assignment created",
        extra={"assignment_id": created.id, "survey_id": survey_id, "caregiver_id": caregiver_id},
    )
    return created


async def list_for_caregiver(
    store: SurveyStore, caregiver_id: uuid.UUID, status: str | None = None
) -> list[SurveyAssignment]:
    return await store.list_assignments(caregiver_id, status)


async def get_assignment_for(
    store: SurveyStore, assignment_id: uuid.UUID, caregiver_id: uuid.UUID | None
) -> SurveyAssignment:
    """Fetch an assignment; ``caregiver_id=None`` means an admin is asking."""
    assignment = await store.get_assignment(assignment_id)
    if assignment is None or (caregiver_id is not None and assignment.caregiver_id != caregiver_id):
        raise Forbidden("Assignment not found for this caregiver")
    return assignment
