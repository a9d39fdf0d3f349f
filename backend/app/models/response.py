from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, UUIDMixin


class SurveyResponse(Base, UUIDMixin):
    """The committed answers of one completed assignment."""

    __tablename__ = "survey_responses"

    survey_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("surveys.id", ondelete="CASCADE"), index=True
    )
    assignment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("survey_assignments.id", ondelete="CASCADE"),
        unique=True,
    )
    check_in_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    caregiver_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True)
    patient_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    meta: Mapped[dict | None] = mapped_column(JSONB, default=dict)
    # {device?, app_version?, user_agent?, ...}

    items = relationship(
        "SurveyResponseItem", back_populates="response", cascade="all, delete-orphan",
        lazy="selectin",
    )


class SurveyResponseItem(Base, UUIDMixin):
    """One answered question: raw JSON answer plus exactly one typed projection."""

    __tablename__ = "survey_response_items"
    __table_args__ = (
        CheckConstraint(
            "num_nonnulls(answer_text, answer_number, answer_boolean, answer_date) = 1",
            name="ck_response_item_single_projection",
        ),
    )

    response_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("survey_responses.id", ondelete="CASCADE"), index=True
    )
    question_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("survey_questions.id", ondelete="CASCADE"), index=True
    )
    question_type: Mapped[str] = mapped_column(String(20), nullable=False)
    answer: Mapped[dict | list | str | float | bool | None] = mapped_column(JSONB, nullable=False)

    answer_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    answer_number: Mapped[float | None] = mapped_column(Float, nullable=True)
    answer_boolean: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    answer_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    response = relationship("SurveyResponse", back_populates="items")
