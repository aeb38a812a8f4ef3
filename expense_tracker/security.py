"""Password hashing and signed session tokens."""
from __future__ import annotations

from datetime import UTC, datetime
from functools import cache

import bcrypt
from jose import JWTError, jwt

from .config import Settings

# bcrypt only looks at the first 72 bytes of a password.
MAX_PASSWORD_BYTES = 72


class TokenError(RuntimeError):
    """Raised when a session token is malformed, tampered with or expired."""


def hash_password(password: str) -> str:
    """Return a salted bcrypt hash of ``password``."""

    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return bcrypt.hashpw(encoded, bcrypt.gensalt()).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    """Compare ``password`` with ``password_hash`` in constant time."""

    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, password_hash.encode("ascii"))
    except ValueError:
        return False


@cache
def _dummy_hash() -> str:
    return hash_password("not-a-real-password")


def burn_password_check(password: str) -> None:
    """Spend the same work as a real check when no account matches."""

    verify_password(password, _dummy_hash())


def issue_token(user_id: int, settings: Settings, *, now: datetime | None = None) -> str:
    """Sign a session token for ``user_id`` valid for ``settings.token_ttl``."""

    issued_at = now or datetime.now(tz=UTC)
    claims = {
        "sub": str(user_id),
        "userId": user_id,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + settings.token_ttl).timestamp()),
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_token(token: str, settings: Settings) -> int:
    """Return the user id carried by ``token``.

    Raises:
        TokenError: If the signature does not match, the token expired or the
            payload carries no usable user id.
    """

    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as exc:
        raise TokenError("Invalid or expired token") from exc
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise TokenError("Token carries no user id") from exc


__all__ = [
    "TokenError",
    "burn_password_check",
    "decode_token",
    "hash_password",
    "issue_token",
    "verify_password",
]
