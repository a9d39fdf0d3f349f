"""Unit tests for the error taxonomy and its HTTP mapping."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from app.core.errors import (
    AlreadySubmitted,
    DuplicateAssignment,
    Expired,
    Forbidden,
    InvalidScheduleConfig,
    InvalidSurveyDefinition,
    NotAvailable,
    NotFound,
    StorageFailure,
    SurveyEngineError,
    ValidationFailed,
)
from app.main import survey_engine_error_handler


class TestTaxonomy:
    @pytest.mark.parametrize(
        ("error", "status"),
        [
            (Forbidden, 403),
            (NotFound, 404),
            (AlreadySubmitted, 409),
            (DuplicateAssignment, 409),
            (NotAvailable, 409),
            (Expired, 410),
            (ValidationFailed, 422),
            (InvalidScheduleConfig, 422),
            (InvalidSurveyDefinition, 422),
            (StorageFailure, 503),
        ],
    )
    def test_status_codes(self, error, status):
        assert issubclass(error, SurveyEngineError)
        assert error.status_code == status

    def test_to_dict_carries_every_error(self):
        exc = ValidationFailed("Some answers are missing or invalid", ["a", "b"])
        assert exc.to_dict() == {
            "detail": "Some answers are missing or invalid",
            "code": "validation_failed",
            "errors": ["a", "b"],
        }

    def test_to_dict_without_errors(self):
        assert Expired("gone").to_dict() == {"detail": "gone", "code": "expired"}

    def test_default_message(self):
        assert str(AlreadySubmitted()) == "AlreadySubmitted"


class TestHandler:
    async def test_maps_to_json_response(self):
        app = FastAPI()
        app.add_exception_handler(SurveyEngineError, survey_engine_error_handler)

        @app.get("/boom")
        async def boom():
            raise InvalidScheduleConfig("Invalid schedule configuration", ["bad time"])

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            resp = await c.get("/boom")

        assert resp.status_code == 422
        assert resp.json() == {
            "detail": "Invalid schedule configuration",
            "code": "invalid_schedule_config",
            "errors": ["bad time"],
        }
