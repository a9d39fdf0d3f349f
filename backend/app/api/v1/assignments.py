from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import (
    Identity,
    get_confirmations,
    get_identity,
    get_store,
    require_admin,
)
from app.models.assignment import SurveyAssignment
from app.models.response import SurveyResponse
from app.repositories.base import SurveyStore
from app.schemas.assignment import AssignmentCreate, SubmitAnswers
from app.services import assignment_service, response_committer, survey_service
from app.services.response_committer import ConfirmationNotifier

router = APIRouter(prefix="/assignments", tags=["assignments"])


def _assignment_to_dict(a: SurveyAssignment) -> dict:
    return {
        "id": str(a.id),
        "survey_id": str(a.survey_id),
        "caregiver_id": str(a.caregiver_id),
        "patient_id": str(a.patient_id) if a.patient_id else None,
        "schedule_id": str(a.schedule_id) if a.schedule_id else None,
        "check_in_id": str(a.check_in_id) if a.check_in_id else None,
        "status": a.status,
        "due_window": a.due_window.isoformat() if a.due_window else None,
        "due_at": a.due_at.isoformat() if a.due_at else None,
        "completed_at": a.completed_at.isoformat() if a.completed_at else None,
        "reminders_sent": a.reminders_sent,
    }


def _response_to_dict(r: SurveyResponse) -> dict:
    return {
        "id": str(r.id),
        "survey_id": str(r.survey_id),
        "assignment_id": str(r.assignment_id),
        "check_in_id": str(r.check_in_id) if r.check_in_id else None,
        "caregiver_id": str(r.caregiver_id),
        "patient_id": str(r.patient_id) if r.patient_id else None,
        "submitted_at": r.submitted_at.isoformat() if r.submitted_at else None,
        "meta": r.meta or {},
        "answers": {str(item.question_id): item.answer for item in r.items or []},
    }


@router.post("", status_code=201)
async def create_assignment(
    body: AssignmentCreate,
    store: SurveyStore = Depends(get_store),
    _: Identity = Depends(require_admin),
):
    assignment = await assignment_service.create_manual_assignment(
        store,
        survey_id=body.survey_id,
        caregiver_id=body.caregiver_id,
        patient_id=body.patient_id,
        check_in_id=body.check_in_id,
        due_at=body.due_at,
    )
    return _assignment_to_dict(assignment)


@router.get("")
async def list_assignments(
    status: str | None = Query(None, pattern="^(pending|completed)$"),
    caregiver_id: uuid.UUID | None = Query(None),
    store: SurveyStore = Depends(get_store),
    identity: Identity = Depends(get_identity),
):
    """A caregiver's assignments. Caregivers see their own; admins pass ``caregiver_id``."""
    if identity.is_admin:
        if caregiver_id is None:
            raise HTTPException(status_code=422, detail="caregiver_id is required")
        target = caregiver_id
    else:
        if caregiver_id is not None and caregiver_id != identity.subject:
            raise HTTPException(status_code=403, detail="Not your assignments")
        target = identity.subject
    assignments = await assignment_service.list_for_caregiver(store, target, status)
    return [_assignment_to_dict(a) for a in assignments]


@router.get("/{assignment_id}/survey")
async def get_assignment_survey(
    assignment_id: uuid.UUID,
    store: SurveyStore = Depends(get_store),
    identity: Identity = Depends(get_identity),
):
    """Question schema the caregiver form renders for this assignment."""
    assignment = await assignment_service.get_assignment_for(
        store, assignment_id, None if identity.is_admin else identity.subject
    )
    survey = await survey_service.get_survey_or_404(store, assignment.survey_id)
    return {
        "assignment": _assignment_to_dict(assignment),
        "survey": survey_service.question_schema(survey),
    }


@router.post("/{assignment_id}/submit", status_code=201)
async def submit_answers(
    assignment_id: uuid.UUID,
    body: SubmitAnswers,
    store: SurveyStore = Depends(get_store),
    confirmations: ConfirmationNotifier | None = Depends(get_confirmations),
    identity: Identity = Depends(get_identity),
):
    response = await response_committer.submit(
        store,
        assignment_id,
        identity.subject,
        body.answers,
        body.meta,
        confirmations=confirmations,
    )
    return _response_to_dict(response)


@router.get("/{assignment_id}/response")
async def get_assignment_response(
    assignment_id: uuid.UUID,
    store: SurveyStore = Depends(get_store),
    identity: Identity = Depends(get_identity),
):
    await assignment_service.get_assignment_for(
        store, assignment_id, None if identity.is_admin else identity.subject
    )
    response = await store.get_response_for_assignment(assignment_id)
    if response is None:
        raise HTTPException(status_code=404, detail="No response submitted yet")
    return _response_to_dict(response)
