"""Tests for session tokens."""

import uuid

import jwt
import pytest

from portal_api.core.config import settings
from portal_api.core.security import create_session_token, decode_session_token


def test_session_token_round_trip():
    user_id = uuid.uuid4()

    payload = decode_session_token(create_session_token(user_id, ["superuser"]))

    assert payload["sub"] == str(user_id)
    assert payload["roles"] == ["superuser"]


def test_previous_secret_still_accepted(monkeypatch):
    user_id = uuid.uuid4()
    old_token = create_session_token(user_id)

    monkeypatch.setattr(settings, "JWT_SECRET_PREVIOUS", settings.JWT_SECRET)
    monkeypatch.setattr(settings, "JWT_SECRET", "rotated-secret")

    assert decode_session_token(old_token)["sub"] == str(user_id)


def test_unknown_secret_rejected():
    token = jwt.encode({"sub": str(uuid.uuid4())}, "someone-else", algorithm="HS256")
    with pytest.raises(jwt.InvalidTokenError):
        decode_session_token(token)
