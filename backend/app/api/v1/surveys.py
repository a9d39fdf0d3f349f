from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response

from app.api.deps import Identity, get_store, require_admin
from app.models.survey import Survey
from app.repositories.base import SurveyStore
from app.schemas.survey import SurveyCreate
from app.services import survey_service

router = APIRouter(prefix="/surveys", tags=["surveys"])


def _survey_to_dict(s: Survey) -> dict:
    return {
        "id": str(s.id),
        "title": s.title,
        "description": s.description or "",
        "status": s.status,
        "version": s.version,
        "regions": s.region_codes,
        "question_count": len(s.questions or []),
        "created_by": s.created_by,
        "created_at": s.created_at.isoformat() if s.created_at else None,
        "updated_at": s.updated_at.isoformat() if s.updated_at else None,
    }


@router.post("", status_code=201)
async def create_survey(
    body: SurveyCreate,
    store: SurveyStore = Depends(get_store),
    admin: Identity = Depends(require_admin),
):
    survey = await survey_service.create_survey(store, body, created_by=str(admin.subject))
    return survey_service.question_schema(survey)


@router.get("")
async def list_surveys(
    status: str | None = Query(None, pattern="^(draft|published|archived)$"),
    store: SurveyStore = Depends(get_store),
    _: Identity = Depends(require_admin),
):
    return [_survey_to_dict(s) for s in await store.list_surveys(status)]


@router.get("/{survey_id}")
async def get_survey(
    survey_id: uuid.UUID,
    store: SurveyStore = Depends(get_store),
    _: Identity = Depends(require_admin),
):
    survey = await survey_service.get_survey_or_404(store, survey_id)
    return survey_service.question_schema(survey)


@router.post("/{survey_id}/publish")
async def publish_survey(
    survey_id: uuid.UUID,
    store: SurveyStore = Depends(get_store),
    _: Identity = Depends(require_admin),
):
    return _survey_to_dict(await survey_service.publish_survey(store, survey_id))


@router.post("/{survey_id}/archive")
async def archive_survey(
    survey_id: uuid.UUID,
    store: SurveyStore = Depends(get_store),
    _: Identity = Depends(require_admin),
):
    return _survey_to_dict(await survey_service.archive_survey(store, survey_id))


@router.delete("/{survey_id}", status_code=204)
async def delete_survey(
    survey_id: uuid.UUID,
    store: SurveyStore = Depends(get_store),
    _: Identity = Depends(require_admin),
):
    await survey_service.delete_survey(store, survey_id)
    return Response(status_code=204)
