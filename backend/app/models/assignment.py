from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin, UUIDMixin


class SurveyAssignment(Base, UUIDMixin, TimestampMixin):
    """A due instance of a survey for one caregiver (and optionally one patient).

    The unique constraint over (survey, caregiver, patient, due_window) is what
    keeps concurrent or repeated dispatcher ticks from creating duplicates.
    """

    __tablename__ = "survey_assignments"
    __table_args__ = (
        UniqueConstraint(
            "survey_id",
            "caregiver_id",
            "patient_id",
            "due_window",
            name="uq_assignment_window",
            postgresql_nulls_not_distinct=True,
        ),
    )

    survey_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("surveys.id", ondelete="CASCADE"), index=True
    )
    # Weak references: caregivers/patients may be deleted without touching history
    caregiver_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True)
    patient_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    schedule_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("survey_schedules.id", ondelete="SET NULL"), nullable=True
    )
    check_in_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("weekly_check_ins.id", ondelete="SET NULL"), nullable=True
    )

    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    # Statuses: pending, completed
    due_window: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    due_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    reminders_sent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_reminder_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
