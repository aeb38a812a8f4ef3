from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from jose import jwt

from expense_tracker.config import Settings
from expense_tracker.security import (
    TokenError,
    decode_token,
    hash_password,
    issue_token,
    verify_password,
)

SETTINGS = Settings(secret_key="unit-test-secret")


def test_password_hash_is_salted_and_verifiable():
    first = hash_password("hunter2")
    second = hash_password("hunter2")
    assert first != second
    assert verify_password("hunter2", first)
    assert verify_password("hunter2", second)
    assert not verify_password("hunter3", first)


def test_verify_password_tolerates_garbage_hash():
    assert verify_password("hunter2", "not-a-bcrypt-hash") is False


def test_overlong_password_is_refused():
    with pytest.raises(ValueError):
        hash_password("x" * 73)
    assert verify_password("x" * 73, hash_password("x" * 72)) is False


def test_token_round_trip_carries_user_id_and_expiry():
    issued = datetime(2030, 1, 1, tzinfo=UTC)
    token = issue_token(7, SETTINGS, now=datetime.now(tz=UTC))
    assert decode_token(token, SETTINGS) == 7

    claims = jwt.decode(
        issue_token(7, SETTINGS, now=issued),
        SETTINGS.secret_key,
        algorithms=[SETTINGS.algorithm],
        options={"verify_exp": False},
    )
    assert claims["userId"] == 7
    assert claims["exp"] - claims["iat"] == int(timedelta(hours=24).total_seconds())


def test_decode_rejects_expired_tampered_and_foreign_tokens():
    expired = issue_token(1, SETTINGS, now=datetime.now(tz=UTC) - timedelta(hours=25))
    foreign = issue_token(1, Settings(secret_key="other"))
    tampered = issue_token(1, SETTINGS).rsplit(".", 1)[0] + ".bm90LWEtc2lnbmF0dXJl"
    no_subject = jwt.encode({"userId": 1}, SETTINGS.secret_key, algorithm=SETTINGS.algorithm)

    for token in (expired, foreign, tampered, no_subject, "garbage"):
        with pytest.raises(TokenError):
            decode_token(token, SETTINGS)
