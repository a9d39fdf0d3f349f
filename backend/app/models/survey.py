from __future__ import annotations

import uuid

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin, UUIDMixin

SURVEY_STATUSES = ("draft", "published", "archived")
QUESTION_TYPES = ("text", "number", "boolean", "date", "single_choice", "multi_choice")
CHOICE_TYPES = ("single_choice", "multi_choice")


class Survey(Base, UUIDMixin, TimestampMixin):
    """Admin-authored check-in survey. Only published surveys are assigned or answered."""

    __tablename__ = "surveys"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(20), default="draft", index=True)
    # Statuses: draft, published, archived
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    questions = relationship(
        "SurveyQuestion",
        back_populates="survey",
        order_by="SurveyQuestion.order_index",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    regions = relationship(
        "SurveyRegion", cascade="all, delete-orphan", lazy="selectin"
    )
    schedules = relationship(
        "SurveySchedule", back_populates="survey", cascade="all, delete-orphan", lazy="noload"
    )

    @property
    def region_codes(self) -> list[str]:
        return sorted(r.state_code for r in self.regions or [])


class SurveyRegion(Base, UUIDMixin):
    """US state code a survey is restricted to. No rows means unrestricted."""

    __tablename__ = "survey_regions"
    __table_args__ = (UniqueConstraint("survey_id", "state_code", name="uq_survey_region"),)

    survey_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("surveys.id", ondelete="CASCADE"), index=True
    )
    state_code: Mapped[str] = mapped_column(String(2), nullable=False)


class SurveyQuestion(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "survey_questions"
    __table_args__ = (
        UniqueConstraint("survey_id", "order_index", name="uq_question_order"),
    )

    survey_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("surveys.id", ondelete="CASCADE"), index=True
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    label: Mapped[str] = mapped_column(Text, nullable=False)
    help_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    validation: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    # text: {min_length?, max_length?}   number: {min?, max?}

    survey = relationship("Survey", back_populates="questions")
    options = relationship(
        "SurveyOption",
        back_populates="question",
        order_by="SurveyOption.order_index",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class SurveyOption(Base, UUIDMixin):
    __tablename__ = "survey_options"
    __table_args__ = (UniqueConstraint("question_id", "value", name="uq_option_value"),)

    question_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("survey_questions.id", ondelete="CASCADE"), index=True
    )
    value: Mapped[str] = mapped_column(String(200), nullable=False)
    label: Mapped[str] = mapped_column(Text, nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    question = relationship("SurveyQuestion", back_populates="options")
