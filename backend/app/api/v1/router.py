from fastapi import APIRouter

from app.api.v1 import assignments, dispatch, schedules, surveys

api_router = APIRouter()

api_router.include_router(surveys.router)
api_router.include_router(schedules.router)
api_router.include_router(assignments.router)
api_router.include_router(dispatch.router)
