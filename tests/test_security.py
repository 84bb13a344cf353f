"""Tests for password hashing and session tokens."""
import uuid

import jwt
import pytest

from feedloop.core.config import settings
from feedloop.core.security import (
    create_session_token,
    decode_session_token,
    generate_integration_key,
    hash_password,
    verify_password,
)


def test_password_hash_round_trip():
    encoded = hash_password("Password123", iterations=1000)

    assert encoded.startswith("pbkdf2_sha256$1000$")
    assert verify_password("Password123", encoded)
    assert not verify_password("Password124", encoded)


def test_password_hashes_are_salted():
    assert hash_password("Password123") != hash_password("Password123")


@pytest.mark.parametrize("stored", ["", "plain", "md5$1$aa$bb", "pbkdf2_sha256$x$aa$bb"])
def test_verify_rejects_malformed_hashes(stored):
    assert verify_password("Password123", stored) is False


def test_session_token_carries_user_and_version():
    user_id = uuid.uuid4()
    payload = decode_session_token(create_session_token(user_id, 3))

    assert payload["sub"] == str(user_id)
    assert payload["token_version"] == 3


def test_previous_secret_still_verifies(monkeypatch):
    token = create_session_token(uuid.uuid4(), 1)
    monkeypatch.setattr(settings, "JWT_SECRET_PREVIOUS", settings.JWT_SECRET)
    monkeypatch.setattr(settings, "JWT_SECRET", "rotated-secret")

    assert decode_session_token(token)["token_version"] == 1


def test_foreign_token_is_rejected():
    token = jwt.encode({"sub": str(uuid.uuid4())}, "someone-else", algorithm="HS256")
    with pytest.raises(jwt.InvalidTokenError):
        decode_session_token(token)


def test_integration_key_is_32_hex_chars():
    key = generate_integration_key()
    assert len(key) == 32
    int(key, 16)
