"""Bearer-token helpers.

Login and session management live outside this service. Tokens are minted by
the caregiver/admin portal with the shared SECRET_KEY; this module only issues
tokens for tooling and tests, and decodes incoming ones.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import jwt

from app.config import settings

ALGORITHM = "HS256"
ISSUER = "carecheck"
AUDIENCE = "carecheck"

ROLE_CAREGIVER = "caregiver"
ROLE_ADMIN = "admin"


def create_access_token(subject: uuid.UUID | str, role: str = ROLE_CAREGIVER) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(subject),
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        "iss": ISSUER,
        "aud": AUDIENCE,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Return the verified claims, or None if the token is invalid or expired."""
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[ALGORITHM],
            audience=AUDIENCE,
            issuer=ISSUER,
        )
    except jwt.PyJWTError:
        return None
