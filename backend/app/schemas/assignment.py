from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, field_validator

from app.schemas.common import validate_json_dict


class AssignmentCreate(BaseModel):
    survey_id: uuid.UUID
    caregiver_id: uuid.UUID
    patient_id: uuid.UUID | None = None
    check_in_id: uuid.UUID | None = None
    due_at: datetime | None = None


class SubmitAnswers(BaseModel):
    answers: dict[str, Any]  # {question_id: value}
    meta: dict | None = None

    @field_validator("meta")
    @classmethod
    def validate_meta(cls, v: dict | None) -> dict | None:
        return validate_json_dict(v, "meta")
