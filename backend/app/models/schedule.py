from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin, UUIDMixin

SCHEDULE_TYPES = ("one_time", "daily", "weekly", "monthly", "custom")


class SurveySchedule(Base, UUIDMixin, TimestampMixin):
    """Recurrence rule that turns a survey into assignments over time.

    ``last_run``/``next_run`` are persisted so a restarted dispatcher resumes
    from stored state instead of recomputing from scratch.
    """

    __tablename__ = "survey_schedules"

    survey_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("surveys.id", ondelete="CASCADE"), index=True
    )
    schedule_type: Mapped[str] = mapped_column(String(20), nullable=False)
    frequency_value: Mapped[int | None] = mapped_column(Integer, nullable=True)  # custom: days
    day_of_week: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 0=Sunday .. 6
    day_of_month: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 1..31
    time_of_day: Mapped[str] = mapped_column(String(5), nullable=False, default="09:00")
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="America/New_York")
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    last_run: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    next_run: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    survey = relationship("Survey", back_populates="schedules", lazy="noload")
