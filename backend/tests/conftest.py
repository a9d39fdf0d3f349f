"""Shared test fixtures for the CareCheck backend.

Provides:
- In-memory store and recording sender (no database needed)
- FastAPI test client wired to the in-memory store
- Async PostgreSQL test database for the SQL store (skipped when unavailable)
- Factory helpers for caregivers, patients, surveys, schedules and assignments
"""

from __future__ import annotations

import os
import uuid

# Set test environment BEFORE any app imports so the settings pick them up.
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-pytest-only")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DISPATCHER_ENABLED", "false")

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from app.core.security import ROLE_ADMIN, ROLE_CAREGIVER, create_access_token
from app.models.assignment import SurveyAssignment
from app.models.base import Base
from app.models.caregiver import Caregiver, Patient
from app.models.schedule import SurveySchedule
from app.schemas.survey import SurveyCreate
from app.services.schedule_clock import prime_next_run
from app.services.survey_service import build_survey
from tests.fakes import InMemorySurveyStore, RecordingSender

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)  # a Monday

# Fixed question ids so tests can key answers directly
Q_NOTES = str(uuid.UUID(int=1))
Q_HOURS = str(uuid.UUID(int=2))
Q_SAFE = str(uuid.UUID(int=3))
Q_VISIT = str(uuid.UUID(int=4))
Q_MOOD = str(uuid.UUID(int=5))
Q_TASKS = str(uuid.UUID(int=6))


def sample_questions() -> list[dict]:
    """One question of every type; hours, safe and mood are required."""
    return [
        {"id": Q_NOTES, "type": "text", "label": "Notes", "order_index": 0, "max_length": 200},
        {
            "id": Q_HOURS,
            "type": "number",
            "label": "Hours worked",
            "required": True,
            "order_index": 1,
            "min": 0,
            "max": 80,
        },
        {
            "id": Q_SAFE,
            "type": "boolean",
            "label": "Patient safe at home",
            "required": True,
            "order_index": 2,
        },
        {"id": Q_VISIT, "type": "date", "label": "Last doctor visit", "order_index": 3},
        {
            "id": Q_MOOD,
            "type": "single_choice",
            "label": "Patient mood",
            "required": True,
            "order_index": 4,
            "options": [
                {"value": "good", "label": "Good"},
                {"value": "fair", "label": "Fair"},
                {"value": "poor", "label": "Poor"},
            ],
        },
        {
            "id": Q_TASKS,
            "type": "multi_choice",
            "label": "Tasks done",
            "order_index": 5,
            "options": [
                {"value": "a", "label": "Bathing"},
                {"value": "b", "label": "Meals"},
                {"value": "c", "label": "Medication"},
            ],
        },
    ]


def valid_answers() -> dict:
    return {Q_HOURS: 12, Q_SAFE: True, Q_MOOD: "good"}


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


@pytest.fixture
def store():
    store = InMemorySurveyStore()
    store.clock = lambda: NOW
    return store


@pytest.fixture
def sender():
    return RecordingSender()


# ---------------------------------------------------------------------------
# FastAPI test app + HTTP client
# ---------------------------------------------------------------------------


@pytest.fixture
async def app(store, sender):
    """Minimal FastAPI test app backed by the in-memory store."""
    from fastapi import FastAPI

    from app.api.v1.router import api_router
    from app.config import settings
    from app.core.errors import SurveyEngineError
    from app.main import survey_engine_error_handler
    from app.services.dispatcher import Dispatcher
    from app.services.response_committer import ConfirmationNotifier

    test_app = FastAPI()
    test_app.add_exception_handler(SurveyEngineError, survey_engine_error_handler)
    test_app.include_router(api_router, prefix=settings.API_V1_PREFIX)
    test_app.state.store = store
    test_app.state.sender = sender
    dispatcher = Dispatcher(store, sender, survey_base_url="https://care.test")
    test_app.state.dispatcher = dispatcher
    confirmations = ConfirmationNotifier(store, sender)
    test_app.state.confirmations = confirmations
    yield test_app
    await dispatcher.drain()
    await confirmations.drain()


@pytest.fixture
async def client(app):
    """HTTP test client for the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c


def auth_headers(subject: uuid.UUID, role: str = ROLE_CAREGIVER) -> dict:
    return {"Authorization": f"Bearer {create_access_token(subject, role)}"}


@pytest.fixture
def admin_headers():
    return auth_headers(uuid.uuid4(), ROLE_ADMIN)


# ---------------------------------------------------------------------------
# PostgreSQL (SQL store tests only)
# ---------------------------------------------------------------------------


def _test_db_url() -> str:
    user = os.getenv("POSTGRES_USER", "carecheck")
    password = os.getenv("POSTGRES_PASSWORD", "carecheck")
    host = os.getenv("POSTGRES_HOST", "localhost")
    port = os.getenv("POSTGRES_PORT", "5432")
    db = os.getenv("TEST_POSTGRES_DB", "carecheck_test")
    return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db}"


@pytest.fixture(scope="session")
def test_engine():
    """Create a test database engine and all tables. Drops tables at teardown.

    A *sync* fixture so the engine is not bound to any event loop; NullPool
    gives every connection a fresh asyncpg connection on the current loop.
    """
    engine = create_async_engine(_test_db_url(), echo=False, poolclass=NullPool)

    async def _setup():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)

    async def _teardown():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()

    try:
        asyncio.run(_setup())
    except Exception as exc:
        asyncio.run(engine.dispose())
        pytest.skip(f"Test database not available ({exc})")

    yield engine

    asyncio.run(_teardown())


@pytest.fixture
async def sql_store(test_engine):
    """SqlSurveyStore over the test database; every table is emptied afterwards.

    The store opens and commits its own sessions, so the savepoint rollback
    pattern does not apply here.
    """
    from app.database import build_session_factory
    from app.repositories.sql_store import SqlSurveyStore

    yield SqlSurveyStore(build_session_factory(test_engine))

    tables = ", ".join(t.name for t in Base.metadata.sorted_tables)
    async with test_engine.begin() as conn:
        await conn.execute(text(f"TRUNCATE {tables} CASCADE"))


# ---------------------------------------------------------------------------
# Factory helpers
# ---------------------------------------------------------------------------


def make_caregiver(store, *, name="Alice Carter", state="TX", phone="+15125550101", email=None,
                   is_active=True):
    """Seed a caregiver into an in-memory store."""
    return store.add_caregiver(
        Caregiver(
            id=uuid.uuid4(),
            name=name,
            phone=phone,
            email=email,
            state=state,
            is_active=is_active,
        )
    )


def make_patient(store, caregiver, *, name="Ben Ortiz", is_active=True):
    return store.add_patient(
        Patient(
            id=uuid.uuid4(),
            name=name,
            caregiver_id=caregiver.id if caregiver is not None else None,
            is_active=is_active,
        )
    )


async def make_survey(store, *, title="Weekly check-in", questions=None, regions=(),
                      status="published"):
    """Insert a survey built from ``questions`` (default: ``sample_questions()``)."""
    data = SurveyCreate(
        title=title,
        regions=list(regions),
        questions=sample_questions() if questions is None else questions,
    )
    survey = await store.add_survey(build_survey(data, created_by="tests"))
    if status != "draft":
        survey = await store.set_survey_status(survey.id, status)
    return survey


async def make_schedule(store, survey, *, now=NOW, **fields):
    """Insert a schedule with ``next_run`` primed as of ``now``."""
    values = {
        "schedule_type": "daily",
        "time_of_day": "09:00",
        "timezone": "UTC",
        "start_date": now - timedelta(days=1),
        "is_active": True,
    }
    values.update(fields)
    schedule = SurveySchedule(id=uuid.uuid4(), survey_id=survey.id, last_run=None, **values)
    if "next_run" not in fields:
        schedule.next_run = prime_next_run(schedule, now)
    return await store.add_schedule(schedule)


async def make_assignment(store, survey, caregiver, *, patient=None, due_at=None,
                          due_window=NOW, check_in_id=None):
    return await store.create_assignment_if_absent(
        SurveyAssignment(
            id=uuid.uuid4(),
            survey_id=survey.id,
            caregiver_id=caregiver.id,
            patient_id=patient.id if patient is not None else None,
            check_in_id=check_in_id,
            status="pending",
            due_window=due_window,
            due_at=due_at,
            reminders_sent=0,
        )
    )
