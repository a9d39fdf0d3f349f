"""Unit tests for app.core.security: bearer token issue and decode.

These tests do NOT require a database; they exercise pure functions only.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import jwt

from app.config import settings
from app.core.security import (
    ALGORITHM,
    ROLE_ADMIN,
    ROLE_CAREGIVER,
    create_access_token,
    decode_access_token,
)

# ---------------------------------------------------------------------------
# create_access_token
# ---------------------------------------------------------------------------


class TestCreateAccessToken:
    def test_contains_required_claims(self):
        caregiver_id = uuid.uuid4()
        token = create_access_token(caregiver_id)
        payload = jwt.decode(token, options={"verify_signature": False})
        assert payload["sub"] == str(caregiver_id)
        assert payload["role"] == ROLE_CAREGIVER
        assert payload["iss"] == "carecheck"
        assert payload["aud"] == "carecheck"
        assert "iat" in payload

    def test_expiry_follows_settings(self):
        token = create_access_token(uuid.uuid4(), ROLE_ADMIN)
        payload = jwt.decode(token, options={"verify_signature": False})
        lifetime = payload["exp"] - payload["iat"]
        assert lifetime == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60


# ---------------------------------------------------------------------------
# decode_access_token
# ---------------------------------------------------------------------------


class TestDecodeAccessToken:
    def test_round_trip(self):
        subject = uuid.uuid4()
        payload = decode_access_token(create_access_token(subject, ROLE_ADMIN))
        assert payload["sub"] == str(subject)
        assert payload["role"] == ROLE_ADMIN

    def test_garbage_is_none(self):
        assert decode_access_token("not-a-token") is None

    def test_wrong_key_is_none(self):
        token = jwt.encode(
            {"sub": "x", "iss": "carecheck", "aud": "carecheck"}, "other-key", algorithm=ALGORITHM
        )
        assert decode_access_token(token) is None

    def test_expired_is_none(self):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        token = jwt.encode(
            {"sub": "x", "iss": "carecheck", "aud": "carecheck", "iat": past, "exp": past},
            settings.SECRET_KEY,
            algorithm=ALGORITHM,
        )
        assert decode_access_token(token) is None

    def test_wrong_audience_is_none(self):
        token = jwt.encode(
            {"sub": "x", "iss": "carecheck", "aud": "someone-else"},
            settings.SECRET_KEY,
            algorithm=ALGORITHM,
        )
        assert decode_access_token(token) is None
