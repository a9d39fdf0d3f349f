"""Survey authoring: definition checks, create, publish/archive, delete."""

from __future__ import annotations

import logging
import uuid

from app.core.errors import InvalidSurveyDefinition, NotFound
from app.models.survey import CHOICE_TYPES, Survey, SurveyOption, SurveyQuestion, SurveyRegion
from app.repositories.base import SurveyStore
from app.schemas.survey import (
    VALIDATION_KEYS,
    NumberQuestion,
    QuestionSpec,
    SurveyCreate,
    TextQuestion,
    question_spec_adapter,
)

logger = logging.getLogger(__name__)

# 50 states, DC and the inhabited territories
US_STATE_CODES = frozenset(
    {
        "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
        "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
        "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
        "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
        "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
        "DC", "PR", "GU", "VI", "AS", "MP",
    }
)


def _question_errors(question: QuestionSpec) -> list[str]:
    errors: list[str] = []
    label = question.label
    if question.id is not None:
        try:
            uuid.UUID(question.id)
        except ValueError:
            errors.append(f'Question "{label}" has an invalid id "{question.id}"')

    if question.type in CHOICE_TYPES:
        values = [o.value for o in question.options]
        if len(values) < 2:
            errors.append(f'Choice question "{label}" needs at least 2 options')
        if len(set(values)) != len(values):
            errors.append(f'Choice question "{label}" has duplicate option values')
    elif isinstance(question, TextQuestion):
        if (
            question.min_length is not None
            and question.max_length is not None
            and question.min_length > question.max_length
        ):
            errors.append(f'Question "{label}": min_length is greater than max_length')
    elif isinstance(question, NumberQuestion):
        if question.min is not None and question.max is not None and question.min > question.max:
            errors.append(f'Question "{label}": min is greater than max')
    return errors


def validate_definition(data: SurveyCreate) -> None:
    """Raise InvalidSurveyDefinition listing every problem in ``data``."""
    errors: list[str] = []

    order = sorted(q.order_index for q in data.questions)
    if order != list(range(len(order))):
        errors.append("Question order_index values must be unique and run 0..n-1")

    ids = [q.id for q in data.questions if q.id is not None]
    if len(set(ids)) != len(ids):
        errors.append("Question ids must be unique")

    for question in data.questions:
        errors.extend(_question_errors(question))

    unknown = sorted({r.upper() for r in data.regions} - US_STATE_CODES)
    if unknown:
        errors.append(f"Unknown region codes: {', '.join(unknown)}")

    if errors:
        raise InvalidSurveyDefinition("Invalid survey definition", errors)


def build_survey(data: SurveyCreate, created_by: str | None = None) -> Survey:
    survey = Survey(
        id=uuid.uuid4(),
        title=data.title,
        description=data.description,
        status="draft",
        version=1,
        created_by=created_by,
    )
    survey.regions = [
        SurveyRegion(id=uuid.uuid4(), survey_id=survey.id, state_code=code)
        for code in sorted({r.upper() for r in data.regions})
    ]
    questions = []
    for spec in sorted(data.questions, key=lambda q: q.order_index):
        validation = {
            key: getattr(spec, key)
            for key in VALIDATION_KEYS.get(spec.type, ())
            if getattr(spec, key) is not None
        }
        question = SurveyQuestion(
            id=uuid.UUID(spec.id) if spec.id else uuid.uuid4(),
            survey_id=survey.id,
            type=spec.type,
            label=spec.label,
            help_text=spec.help_text,
            required=spec.required,
            order_index=spec.order_index,
            validation=validation or None,
        )
        question.options = [
            SurveyOption(
                id=uuid.uuid4(),
                question_id=question.id,
                value=option.value,
                label=option.label,
                order_index=i,
            )
            for i, option in enumerate(getattr(spec, "options", []))
        ]
        questions.append(question)
    survey.questions = questions
    return survey


async def create_survey(
    store: SurveyStore, data: SurveyCreate, created_by: str | None = None
) -> Survey:
    validate_definition(data)
    survey = await store.add_survey(build_survey(data, created_by))
    logger.info("Survey created: %s", survey.title, extra={"survey_id": survey.id})
    return survey


async def get_survey_or_404(store: SurveyStore, survey_id: uuid.UUID) -> Survey:
    survey = await store.get_survey(survey_id)
    if survey is None:
        raise NotFound("Survey not found")
    return survey


async def publish_survey(store: SurveyStore, survey_id: uuid.UUID) -> Survey:
    survey = await get_survey_or_404(store, survey_id)
    if survey.status == "archived":
        raise InvalidSurveyDefinition("Archived surveys cannot be published")
    if survey.status == "published":
        return survey
    if not survey.questions:
        raise InvalidSurveyDefinition("A survey needs at least one question to be published")
    return await store.set_survey_status(survey_id, "published")


async def archive_survey(store: SurveyStore, survey_id: uuid.UUID) -> Survey:
    survey = await get_survey_or_404(store, survey_id)
    if survey.status == "archived":
        return survey
    return await store.set_survey_status(survey_id, "archived")


async def delete_survey(store: SurveyStore, survey_id: uuid.UUID) -> None:
    if not await store.delete_survey(survey_id):
        raise NotFound("Survey not found")
    logger.info("Survey deleted", extra={"survey_id": survey_id})


def question_spec(question: SurveyQuestion) -> QuestionSpec:
    data: dict = {
        "id": str(question.id),
        "type": question.type,
        "label": question.label,
        "help_text": question.help_text,
        "required": question.required,
        "order_index": question.order_index,
    }
    if question.type in CHOICE_TYPES:
        data["options"] = [{"value": o.value, "label": o.label} for o in question.options]
    for key in VALIDATION_KEYS.get(question.type, ()):
        data[key] = (question.validation or {}).get(key)
    return question_spec_adapter.validate_python(data)


def question_specs(survey: Survey) -> list[QuestionSpec]:
    return [question_spec(q) for q in sorted(survey.questions, key=lambda q: q.order_index)]


def question_schema(survey: Survey) -> dict:
    """The survey as the caregiver form renders it."""
    return {
        "id": str(survey.id),
        "title": survey.title,
        "description": survey.description,
        "status": survey.status,
        "version": survey.version,
        "regions": survey.region_codes,
        "questions": [spec.model_dump() for spec in question_specs(survey)],
    }
