"""Tests for survey authoring: definition checks and lifecycle."""

from __future__ import annotations

import uuid

import pytest

from app.core.errors import InvalidSurveyDefinition, NotFound
from app.schemas.survey import SurveyCreate
from app.services import survey_service
from tests.conftest import Q_HOURS, Q_TASKS, make_survey, sample_questions


def _data(**overrides) -> SurveyCreate:
    values = {"title": "Weekly check-in", "questions": sample_questions()}
    values.update(overrides)
    return SurveyCreate(**values)


# ---------------------------------------------------------------------------
# validate_definition
# ---------------------------------------------------------------------------


class TestValidateDefinition:
    def test_sample_is_valid(self):
        survey_service.validate_definition(_data(regions=["tx", "CA"]))

    def test_gap_in_order(self):
        questions = sample_questions()
        questions[2]["order_index"] = 9
        with pytest.raises(InvalidSurveyDefinition) as exc_info:
            survey_service.validate_definition(_data(questions=questions))
        assert exc_info.value.errors == [
            "Question order_index values must be unique and run 0..n-1"
        ]

    def test_choice_needs_two_distinct_options(self):
        questions = [
            {
                "type": "single_choice",
                "label": "Mood",
                "order_index": 0,
                "options": [{"value": "ok", "label": "OK"}, {"value": "ok", "label": "Fine"}],
            },
            {
                "type": "multi_choice",
                "label": "Tasks",
                "order_index": 1,
                "options": [{"value": "a", "label": "A"}],
            },
        ]
        with pytest.raises(InvalidSurveyDefinition) as exc_info:
            survey_service.validate_definition(_data(questions=questions))
        assert exc_info.value.errors == [
            'Choice question "Mood" has duplicate option values',
            'Choice question "Tasks" needs at least 2 options',
        ]

    def test_inverted_ranges(self):
        questions = [
            {"type": "number", "label": "Hours", "order_index": 0, "min": 10, "max": 1},
            {"type": "text", "label": "Notes", "order_index": 1, "min_length": 5, "max_length": 2},
        ]
        with pytest.raises(InvalidSurveyDefinition) as exc_info:
            survey_service.validate_definition(_data(questions=questions))
        assert len(exc_info.value.errors) == 2

    def test_unknown_region_and_bad_id(self):
        questions = [{"id": "q-1", "type": "boolean", "label": "Safe", "order_index": 0}]
        with pytest.raises(InvalidSurveyDefinition) as exc_info:
            survey_service.validate_definition(_data(questions=questions, regions=["TX", "ZZ"]))
        assert exc_info.value.errors == [
            'Question "Safe" has an invalid id "q-1"',
            "Unknown region codes: ZZ",
        ]


# ---------------------------------------------------------------------------
# create / publish / archive / delete
# ---------------------------------------------------------------------------


class TestLifecycle:
    async def test_create_stores_draft(self, store):
        survey = await survey_service.create_survey(store, _data(regions=["tx"]), created_by="ops")

        assert survey.status == "draft"
        assert survey.created_by == "ops"
        assert survey.region_codes == ["TX"]
        assert [str(q.id) for q in survey.questions][1] == Q_HOURS
        assert store.surveys[survey.id].title == "Weekly check-in"

    async def test_number_bounds_kept_in_validation(self, store):
        survey = await survey_service.create_survey(store, _data())
        hours = next(q for q in survey.questions if str(q.id) == Q_HOURS)
        assert hours.validation == {"min": 0, "max": 80}

    async def test_publish(self, store):
        survey = await make_survey(store, status="draft")
        published = await survey_service.publish_survey(store, survey.id)
        assert published.status == "published"

    async def test_publish_without_questions_refused(self, store):
        survey = await make_survey(store, status="draft", questions=[])
        with pytest.raises(InvalidSurveyDefinition):
            await survey_service.publish_survey(store, survey.id)

    async def test_archived_cannot_be_republished(self, store):
        survey = await make_survey(store)
        await survey_service.archive_survey(store, survey.id)
        with pytest.raises(InvalidSurveyDefinition):
            await survey_service.publish_survey(store, survey.id)

    async def test_delete(self, store):
        survey = await make_survey(store)
        await survey_service.delete_survey(store, survey.id)
        assert survey.id not in store.surveys
        with pytest.raises(NotFound):
            await survey_service.delete_survey(store, survey.id)

    async def test_missing_survey(self, store):
        with pytest.raises(NotFound):
            await survey_service.get_survey_or_404(store, uuid.uuid4())


# ---------------------------------------------------------------------------
# Question schema
# ---------------------------------------------------------------------------


class TestQuestionSchema:
    async def test_schema_round_trips_question_specs(self, store):
        survey = await make_survey(store, regions=["TX"])
        schema = survey_service.question_schema(survey)

        assert schema["regions"] == ["TX"]
        assert [q["order_index"] for q in schema["questions"]] == list(range(6))
        tasks = next(q for q in schema["questions"] if q["id"] == Q_TASKS)
        assert tasks["type"] == "multi_choice"
        assert [o["value"] for o in tasks["options"]] == ["a", "b", "c"]
        hours = next(q for q in schema["questions"] if q["id"] == Q_HOURS)
        assert (hours["min"], hours["max"]) == (0, 80)
        assert "options" not in hours
