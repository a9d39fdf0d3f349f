"""initial survey engine schema

Revision ID: 001
Revises:
Create Date: 2026-09-02
"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "caregivers",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("state", sa.String(2), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_caregivers_state", "caregivers", ["state"])

    op.create_table(
        "patients",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("medicaid_id", sa.String(64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "caregiver_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("caregivers.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_patients_caregiver_id", "patients", ["caregiver_id"])

    op.create_table(
        "weekly_check_ins",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "caregiver_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("caregivers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "patient_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("patients.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("week_start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("week_end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reminders_sent", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_weekly_check_ins_caregiver_id", "weekly_check_ins", ["caregiver_id"])
    op.create_index("ix_weekly_check_ins_patient_id", "weekly_check_ins", ["patient_id"])

    op.create_table(
        "surveys",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), server_default=""),
        sa.Column("status", sa.String(20), server_default="draft"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_by", sa.String(100), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_surveys_status", "surveys", ["status"])

    op.create_table(
        "survey_regions",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "survey_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("surveys.id", ondelete="CASCADE"),
        ),
        sa.Column("state_code", sa.String(2), nullable=False),
        sa.UniqueConstraint("survey_id", "state_code", name="uq_survey_region"),
    )
    op.create_index("ix_survey_regions_survey_id", "survey_regions", ["survey_id"])

    op.create_table(
        "survey_questions",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "survey_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("surveys.id", ondelete="CASCADE"),
        ),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("label", sa.Text(), nullable=False),
        sa.Column("help_text", sa.Text(), nullable=True),
        sa.Column("required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("validation", postgresql.JSONB(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("survey_id", "order_index", name="uq_question_order"),
    )
    op.create_index("ix_survey_questions_survey_id", "survey_questions", ["survey_id"])

    op.create_table(
        "survey_options",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "question_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("survey_questions.id", ondelete="CASCADE"),
        ),
        sa.Column("value", sa.String(200), nullable=False),
        sa.Column("label", sa.Text(), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("question_id", "value", name="uq_option_value"),
    )
    op.create_index("ix_survey_options_question_id", "survey_options", ["question_id"])

    op.create_table(
        "survey_schedules",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "survey_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("surveys.id", ondelete="CASCADE"),
        ),
        sa.Column("schedule_type", sa.String(20), nullable=False),
        sa.Column("frequency_value", sa.Integer(), nullable=True),
        sa.Column("day_of_week", sa.Integer(), nullable=True),
        sa.Column("day_of_month", sa.Integer(), nullable=True),
        sa.Column("time_of_day", sa.String(5), nullable=False, server_default="09:00"),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="America/New_York"),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_run", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_run", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_survey_schedules_survey_id", "survey_schedules", ["survey_id"])
    op.create_index("ix_survey_schedules_is_active", "survey_schedules", ["is_active"])
    op.create_index("ix_survey_schedules_next_run", "survey_schedules", ["next_run"])

    op.create_table(
        "survey_assignments",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "survey_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("surveys.id", ondelete="CASCADE"),
        ),
        sa.Column("caregiver_id", sa.UUID(as_uuid=True), nullable=False),
        sa.Column("patient_id", sa.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "schedule_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("survey_schedules.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "check_in_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("weekly_check_ins.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", sa.String(20), server_default="pending"),
        sa.Column("due_window", sa.DateTime(timezone=True), nullable=False),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reminders_sent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_reminder_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        # NULLS NOT DISTINCT needs PostgreSQL 15+
        sa.UniqueConstraint(
            "survey_id",
            "caregiver_id",
            "patient_id",
            "due_window",
            name="uq_assignment_window",
            postgresql_nulls_not_distinct=True,
        ),
    )
    op.create_index("ix_survey_assignments_survey_id", "survey_assignments", ["survey_id"])
    op.create_index("ix_survey_assignments_caregiver_id", "survey_assignments", ["caregiver_id"])
    op.create_index("ix_survey_assignments_status", "survey_assignments", ["status"])

    op.create_table(
        "survey_responses",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "survey_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("surveys.id", ondelete="CASCADE"),
        ),
        sa.Column(
            "assignment_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("survey_assignments.id", ondelete="CASCADE"),
            unique=True,
        ),
        sa.Column("check_in_id", sa.UUID(as_uuid=True), nullable=True),
        sa.Column("caregiver_id", sa.UUID(as_uuid=True), nullable=False),
        sa.Column("patient_id", sa.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "submitted_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("meta", postgresql.JSONB(), server_default="{}"),
    )
    op.create_index("ix_survey_responses_survey_id", "survey_responses", ["survey_id"])
    op.create_index("ix_survey_responses_caregiver_id", "survey_responses", ["caregiver_id"])

    op.create_table(
        "survey_response_items",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "response_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("survey_responses.id", ondelete="CASCADE"),
        ),
        sa.Column(
            "question_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("survey_questions.id", ondelete="CASCADE"),
        ),
        sa.Column("question_type", sa.String(20), nullable=False),
        sa.Column("answer", postgresql.JSONB(), nullable=False),
        sa.Column("answer_text", sa.Text(), nullable=True),
        sa.Column("answer_number", sa.Float(), nullable=True),
        sa.Column("answer_boolean", sa.Boolean(), nullable=True),
        sa.Column("answer_date", sa.Date(), nullable=True),
        sa.CheckConstraint(
            "num_nonnulls(answer_text, answer_number, answer_boolean, answer_date) = 1",
            name="ck_response_item_single_projection",
        ),
    )
    op.create_index("ix_survey_response_items_response_id", "survey_response_items", ["response_id"])
    op.create_index("ix_survey_response_items_question_id", "survey_response_items", ["question_id"])


def downgrade() -> None:
    op.drop_table("survey_response_items")
    op.drop_table("survey_responses")
    op.drop_table("survey_assignments")
    op.drop_table("survey_schedules")
    op.drop_table("survey_options")
    op.drop_table("survey_questions")
    op.drop_table("survey_regions")
    op.drop_table("surveys")
    op.drop_table("weekly_check_ins")
    op.drop_table("patients")
    op.drop_table("caregivers")
