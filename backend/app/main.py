from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from app.api.v1.router import api_router
from app.config import APP_VERSION, _DEFAULT_SECRET_KEYS, settings
from app.core.errors import SurveyEngineError
from app.core.logging_config import configure_logging
from app.core.metrics import app_info
from app.database import build_engine, build_session_factory
from app.middleware.prometheus import PrometheusMiddleware
from app.models import Base
from app.repositories.sql_store import SqlSurveyStore
from app.services.dispatcher import Dispatcher
from app.services.notification_service import build_default_sender
from app.services.response_committer import ConfirmationNotifier

logger = logging.getLogger(__name__)

app_info.info({"version": APP_VERSION, "environment": settings.ENVIRONMENT})


def _run_alembic_stamp(alembic_cfg, revision):
    from alembic import command

    command.stamp(alembic_cfg, revision)


def _run_alembic_upgrade(alembic_cfg, revision):
    from alembic import command

    command.upgrade(alembic_cfg, revision)


async def _prepare_database(engine) -> None:
    """Create or migrate the schema so the app can start on a fresh or existing DB."""
    from alembic.config import Config
    from sqlalchemy import inspect as sa_inspect
    from sqlalchemy import text

    alembic_cfg = Config("alembic.ini")
    alembic_cfg.attributes["configure_logger"] = False

    if settings.RESET_DB:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        await asyncio.to_thread(_run_alembic_stamp, alembic_cfg, "head")
        return

    async with engine.connect() as conn:
        has_alembic = await conn.run_sync(
            lambda sync_conn: sa_inspect(sync_conn).has_table("alembic_version")
        )
        alembic_version = None
        if has_alembic:
            row = await conn.execute(text("SELECT version_num FROM alembic_version LIMIT 1"))
            first = row.first()
            alembic_version = first[0] if first else None

    if not has_alembic or alembic_version is None:
        # Fresh DB: create tables from models, then stamp
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await asyncio.to_thread(_run_alembic_stamp, alembic_cfg, "head")
    else:
        try:
            await asyncio.to_thread(_run_alembic_upgrade, alembic_cfg, "head")
        except Exception:
            logger.exception("Alembic migration failed")
            raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.ENVIRONMENT, settings.LOG_LEVEL)

    # Refuse to start with the default secret outside development
    if settings.SECRET_KEY in _DEFAULT_SECRET_KEYS:
        if settings.ENVIRONMENT != "development":
            raise RuntimeError(
                "SECRET_KEY must be set to a strong random value in production. "
                'Generate one with: python -c "import secrets; print(secrets.token_urlsafe(64))"'
            )
        logger.warning("Using default SECRET_KEY; acceptable for development only.")

    engine = build_engine()
    await _prepare_database(engine)

    store = SqlSurveyStore(build_session_factory(engine))
    sender = build_default_sender()
    dispatcher = Dispatcher.from_settings(store, sender)
    confirmations = ConfirmationNotifier(store, sender)
    app.state.store = store
    app.state.sender = sender
    app.state.dispatcher = dispatcher
    app.state.confirmations = confirmations

    if settings.DISPATCHER_ENABLED:
        dispatcher.start()
    else:
        logger.info("Dispatcher disabled (DISPATCHER_ENABLED=false)")

    yield

    await dispatcher.stop()
    await confirmations.drain()
    await sender.close()
    await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=APP_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.ENVIRONMENT == "development" else None,
    redoc_url=None,
    openapi_url="/api/openapi.json" if settings.ENVIRONMENT == "development" else None,
)

app.add_middleware(PrometheusMiddleware)


@app.exception_handler(SurveyEngineError)
async def survey_engine_error_handler(request: Request, exc: SurveyEngineError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": APP_VERSION}


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
