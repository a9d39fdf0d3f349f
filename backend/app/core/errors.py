"""Error taxonomy of the survey engine.

Services raise these; the API layer maps them to HTTP responses in one place
(``app.main.survey_engine_error_handler``).
"""

from __future__ import annotations


class SurveyEngineError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message: str = "", errors: list[str] | None = None):
        self.message = message or self.__class__.__name__
        self.errors = list(errors or [])
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body: dict = {"detail": self.message, "code": self.code}
        if self.errors:
            body["errors"] = self.errors
        return body


class NotFound(SurveyEngineError):
    status_code = 404
    code = "not_found"


class Forbidden(SurveyEngineError):
    """Assignment does not exist or belongs to another caregiver."""

    status_code = 403
    code = "forbidden"


class AlreadySubmitted(SurveyEngineError):
    status_code = 409
    code = "already_submitted"


class DuplicateAssignment(SurveyEngineError):
    """An assignment for the same survey, caregiver, patient and window exists."""

    status_code = 409
    code = "duplicate_assignment"


class Expired(SurveyEngineError):
    status_code = 410
    code = "expired"


class NotAvailable(SurveyEngineError):
    """The survey is not published."""

    status_code = 409
    code = "not_available"


class ValidationFailed(SurveyEngineError):
    """Carries every violated constraint, not just the first."""

    status_code = 422
    code = "validation_failed"


class InvalidScheduleConfig(SurveyEngineError):
    status_code = 422
    code = "invalid_schedule_config"


class InvalidSurveyDefinition(SurveyEngineError):
    status_code = 422
    code = "invalid_survey_definition"


class StorageFailure(SurveyEngineError):
    """A storage transaction failed; the original exception is chained."""

    status_code = 503
    code = "storage_failure"
