from __future__ import annotations

import uuid
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request

from app.core.security import ROLE_ADMIN, decode_access_token
from app.repositories.base import SurveyStore
from app.services.dispatcher import Dispatcher
from app.services.response_committer import ConfirmationNotifier


@dataclass(frozen=True)
class Identity:
    """Who is calling: ``subject`` is the caregiver id for caregiver tokens."""

    subject: uuid.UUID
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def get_store(request: Request) -> SurveyStore:
    return request.app.state.store


def get_dispatcher(request: Request) -> Dispatcher:
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise HTTPException(status_code=503, detail="Dispatcher not available")
    return dispatcher


def get_confirmations(request: Request) -> ConfirmationNotifier | None:
    return getattr(request.app.state, "confirmations", None)


async def get_identity(request: Request) -> Identity:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")
    payload = decode_access_token(auth[7:])
    if payload is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    try:
        subject = uuid.UUID(payload.get("sub", ""))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token subject") from None
    return Identity(subject=subject, role=payload.get("role", ""))


async def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.is_admin:
        raise HTTPException(status_code=403, detail="Admin only")
    return identity
