from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.deps import Identity, get_dispatcher, require_admin
from app.services.dispatcher import Dispatcher

router = APIRouter(prefix="/dispatch", tags=["dispatch"])


class TickBody(BaseModel):
    now: datetime | None = None


@router.post("/tick")
async def run_tick(
    body: TickBody | None = None,
    dispatcher: Dispatcher = Depends(get_dispatcher),
    _: Identity = Depends(require_admin),
):
    """Run one dispatcher tick immediately (outside the timer loop)."""
    created = await dispatcher.tick(body.now if body else None)
    return {
        "created": len(created),
        "assignment_ids": [str(a.id) for a in created],
    }


@router.post("/reminders")
async def run_reminders(
    body: TickBody | None = None,
    dispatcher: Dispatcher = Depends(get_dispatcher),
    _: Identity = Depends(require_admin),
):
    delivered = await dispatcher.send_reminders(body.now if body else None)
    return {"delivered": delivered}
