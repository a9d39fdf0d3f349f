"""Integration tests for SqlSurveyStore against a real PostgreSQL database.

Skipped automatically when the test database is unreachable. Idempotent
assignment creation needs PostgreSQL 15+ (NULLS NOT DISTINCT).
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AlreadySubmitted
from app.models.assignment import SurveyAssignment
from app.models.caregiver import Caregiver, Patient
from app.models.check_in import WeeklyCheckIn
from app.services.response_committer import read_projection, submit
from tests.conftest import (
    NOW,
    Q_TASKS,
    make_assignment,
    make_schedule,
    make_survey,
    valid_answers,
)


async def _seed(engine, *rows):
    async with AsyncSession(engine, expire_on_commit=False) as db:
        db.add_all(rows)
        await db.commit()
    return rows


def _caregiver(name="Alice Carter", state="TX", is_active=True) -> Caregiver:
    return Caregiver(
        id=uuid.uuid4(), name=name, phone="+15125550101", state=state, is_active=is_active
    )


def _patient(caregiver, name="Ben Ortiz", is_active=True) -> Patient:
    return Patient(id=uuid.uuid4(), name=name, caregiver_id=caregiver.id, is_active=is_active)


# ---------------------------------------------------------------------------
# Surveys
# ---------------------------------------------------------------------------


class TestSurveys:
    async def test_add_and_get_loads_questions_and_regions(self, sql_store):
        survey = await make_survey(sql_store, regions=["tx", "CA"])

        loaded = await sql_store.get_survey(survey.id)

        assert loaded.status == "published"
        assert [q.label for q in loaded.questions][:2] == ["Notes", "Hours worked"]
        assert sorted(loaded.region_codes) == ["CA", "TX"]
        mood = next(q for q in loaded.questions if q.label == "Patient mood")
        assert [o.value for o in mood.options] == ["good", "fair", "poor"]

    async def test_status_filter_and_delete(self, sql_store):
        draft = await make_survey(sql_store, title="Draft", status="draft")
        published = await make_survey(sql_store, title="Live")

        assert [s.id for s in await sql_store.list_surveys("draft")] == [draft.id]
        assert await sql_store.delete_survey(published.id) is True
        assert await sql_store.get_survey(published.id) is None
        assert await sql_store.delete_survey(published.id) is False


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------


class TestSchedules:
    async def test_list_due_filters_inactive_and_ended(self, sql_store):
        survey = await make_survey(sql_store)
        due = await make_schedule(sql_store, survey, next_run=NOW - timedelta(hours=1))
        await make_schedule(
            sql_store, survey, next_run=NOW - timedelta(hours=1), is_active=False
        )
        await make_schedule(
            sql_store,
            survey,
            next_run=NOW - timedelta(hours=1),
            end_date=NOW - timedelta(minutes=5),
        )
        await make_schedule(sql_store, survey, next_run=NOW + timedelta(hours=1))

        result = await sql_store.list_due_schedules(NOW)

        assert [s.id for s in result] == [due.id]

    async def test_update_schedule_run_is_compare_and_swap(self, sql_store):
        survey = await make_survey(sql_store)
        schedule = await make_schedule(sql_store, survey, next_run=NOW)
        following = NOW + timedelta(days=1)

        first = await sql_store.update_schedule_run(schedule.id, NOW, NOW, following)
        second = await sql_store.update_schedule_run(schedule.id, NOW, NOW, following)

        assert first is True
        assert second is False
        stored = await sql_store.get_schedule(schedule.id)
        assert stored.last_run == NOW
        assert stored.next_run == following


# ---------------------------------------------------------------------------
# Directory
# ---------------------------------------------------------------------------


class TestDispatchTargets:
    async def test_region_filter_and_patient_fan_out(self, sql_store, test_engine):
        alice = _caregiver("Alice Carter", "TX")
        bob = _caregiver("Bob Diaz", "TX")
        carol = _caregiver("Carol Evans", "CA")
        retired = _caregiver("Dan Frost", "TX", is_active=False)
        await _seed(test_engine, alice, bob, carol, retired)
        await _seed(
            test_engine,
            _patient(alice, "Ben Ortiz"),
            _patient(alice, "Ann Lee"),
            _patient(alice, "Zed Inactive", is_active=False),
        )
        survey = await make_survey(sql_store, regions=["TX"])

        targets = await sql_store.list_dispatch_targets(survey)

        pairs = [(t.caregiver.name, t.patient.name if t.patient else None) for t in targets]
        assert pairs == [
            ("Alice Carter", "Ann Lee"),
            ("Alice Carter", "Ben Ortiz"),
            ("Bob Diaz", None),
        ]


# ---------------------------------------------------------------------------
# Assignments
# ---------------------------------------------------------------------------


class TestAssignments:
    async def test_create_if_absent_is_idempotent_per_window(self, sql_store, test_engine):
        caregiver = _caregiver()
        patient = _patient(caregiver)
        await _seed(test_engine, caregiver)
        await _seed(test_engine, patient)
        survey = await make_survey(sql_store)

        first = await make_assignment(sql_store, survey, caregiver, patient=patient)
        again = await make_assignment(sql_store, survey, caregiver, patient=patient)

        assert first is not None
        assert first.status == "pending"
        assert again is None

    async def test_missing_patient_still_conflicts(self, sql_store, test_engine):
        caregiver = _caregiver()
        await _seed(test_engine, caregiver)
        survey = await make_survey(sql_store)

        assert await make_assignment(sql_store, survey, caregiver) is not None
        assert await make_assignment(sql_store, survey, caregiver) is None
        other_window = await make_assignment(
            sql_store, survey, caregiver, due_window=NOW + timedelta(days=1)
        )
        assert other_window is not None

    async def test_reminder_candidates(self, sql_store, test_engine):
        caregiver = _caregiver()
        await _seed(test_engine, caregiver)
        survey = await make_survey(sql_store)
        now = datetime.now(timezone.utc)
        fresh = await make_assignment(
            sql_store, survey, caregiver, due_at=now + timedelta(days=2)
        )
        exhausted = await make_assignment(
            sql_store,
            survey,
            caregiver,
            due_at=now + timedelta(days=2),
            due_window=NOW + timedelta(days=1),
        )
        for _ in range(3):
            await sql_store.record_reminder(exhausted.id, now - timedelta(days=1))

        quiet = await sql_store.list_reminder_candidates(now, now - timedelta(hours=1), 3)
        ready = await sql_store.list_reminder_candidates(now, now + timedelta(minutes=1), 3)

        assert quiet == []
        assert [a.id for a in ready] == [fresh.id]

    async def test_pending_list_orders_by_due_date(self, sql_store, test_engine):
        caregiver = _caregiver()
        await _seed(test_engine, caregiver)
        survey = await make_survey(sql_store)
        undated = await make_assignment(sql_store, survey, caregiver)
        dated = await make_assignment(
            sql_store,
            survey,
            caregiver,
            due_at=NOW + timedelta(days=1),
            due_window=NOW + timedelta(hours=1),
        )

        result = await sql_store.list_assignments(caregiver.id, "pending")

        assert [a.id for a in result] == [dated.id, undated.id]


# ---------------------------------------------------------------------------
# Unit of work and submission
# ---------------------------------------------------------------------------


class TestUnitOfWork:
    async def test_error_rolls_back_staged_writes(self, sql_store, test_engine):
        caregiver = _caregiver()
        await _seed(test_engine, caregiver)
        survey = await make_survey(sql_store)
        assignment = await make_assignment(sql_store, survey, caregiver)

        with pytest.raises(RuntimeError):
            async with sql_store.unit_of_work() as uow:
                assert await uow.complete_assignment_if_pending(assignment.id, NOW) is True
                raise RuntimeError("boom")

        stored = await sql_store.get_assignment(assignment.id)
        assert stored.status == "pending"
        assert stored.completed_at is None

    async def test_submit_end_to_end(self, sql_store, test_engine):
        caregiver = _caregiver()
        patient = _patient(caregiver)
        await _seed(test_engine, caregiver)
        check_in = WeeklyCheckIn(
            id=uuid.uuid4(),
            caregiver_id=caregiver.id,
            patient_id=patient.id,
            week_start_date=NOW,
            week_end_date=NOW + timedelta(days=7),
        )
        await _seed(test_engine, patient)
        await _seed(test_engine, check_in)
        survey = await make_survey(sql_store)
        assignment = await sql_store.create_assignment_if_absent(
            SurveyAssignment(
                id=uuid.uuid4(),
                survey_id=survey.id,
                caregiver_id=caregiver.id,
                patient_id=patient.id,
                check_in_id=check_in.id,
                due_window=NOW,
                due_at=None,
            )
        )
        answers = {**valid_answers(), Q_TASKS: ["c", "a"]}

        response = await submit(sql_store, assignment.id, caregiver.id, answers, now=NOW)

        stored = await sql_store.get_response_for_assignment(assignment.id)
        assert stored.id == response.id
        tasks = next(i for i in stored.items if str(i.question_id) == Q_TASKS)
        assert read_projection(tasks) == {"a", "c"}
        assert (await sql_store.get_assignment(assignment.id)).status == "completed"

        async with AsyncSession(test_engine) as db:
            refreshed = await db.get(WeeklyCheckIn, check_in.id)
            assert refreshed.is_completed is True

        with pytest.raises(AlreadySubmitted):
            await submit(sql_store, assignment.id, caregiver.id, answers, now=NOW)
