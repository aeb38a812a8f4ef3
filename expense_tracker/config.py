"""Environment-driven settings for the expense tracking service."""
from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Final

LOG = logging.getLogger(__name__)

DEFAULT_SQLITE_PATH: Final[Path] = Path(__file__).with_name("expenses.db")
INSECURE_SECRET: Final[str] = "development-secret-change-me"
PRODUCTION: Final[str] = "production"


class ConfigurationError(ValueError):
    """Raised when an environment variable holds an unusable value."""


def _as_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from exc


def _as_bool(environ: Mapping[str, str], key: str) -> bool:
    value = environ.get(key)
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_origins(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ("http://localhost:5173",)
    return tuple(origin.strip() for origin in raw.split(",") if origin.strip())


@dataclass(frozen=True, slots=True)
class Settings:
    """Immutable service configuration handed to :func:`create_app`.

    Attributes:
      database_url: SQLAlchemy URL of the relational store.
      pool_size: Number of pooled connections kept open for non-SQLite URLs.
      pool_timeout: Seconds a request waits for a free pooled connection.
      secret_key: Shared secret used to sign session tokens.
      algorithm: JWT signing algorithm.
      token_ttl: Validity window of every issued session token.
      google_client_id: OAuth client id expected as the Google token audience.
      google_client_secret: OAuth client secret, kept for completeness.
      environment: ``production`` hides exception detail from error bodies.
      cors_origins: Origins allowed to call the API from a browser.
      api_prefix: Path prefix mounted in front of every route.
      legacy_routes: Mounts the unauthenticated listing when ``True``.
      host: Interface the development server binds to.
      port: Port the development server listens on.
    """

    database_url: str = f"sqlite:///{DEFAULT_SQLITE_PATH}"
    pool_size: int = 10
    pool_timeout: int = 30
    secret_key: str = INSECURE_SECRET
    algorithm: str = "HS256"
    token_ttl: timedelta = timedelta(hours=24)
    google_client_id: str | None = None
    google_client_secret: str | None = None
    environment: str = "development"
    cors_origins: tuple[str, ...] = field(default_factory=lambda: _as_origins(None))
    api_prefix: str = ""
    legacy_routes: bool = False
    host: str = "127.0.0.1"
    port: int = 3000

    @property
    def is_production(self) -> bool:
        return self.environment == PRODUCTION

    @property
    def uses_insecure_secret(self) -> bool:
        return self.secret_key == INSECURE_SECRET

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from ``environ`` (defaults to :data:`os.environ`)."""

        env = os.environ if environ is None else environ
        secret = env.get("JWT_SECRET") or INSECURE_SECRET
        if secret == INSECURE_SECRET:
            LOG.warning("JWT_SECRET is not set; falling back to an insecure development secret")
        prefix = env.get("EXPENSE_API_PREFIX", "").strip().rstrip("/")
        if prefix and not prefix.startswith("/"):
            prefix = f"/{prefix}"
        return cls(
            database_url=env.get("EXPENSE_DATABASE_URL") or f"sqlite:///{DEFAULT_SQLITE_PATH}",
            pool_size=_as_int(env, "EXPENSE_DB_POOL_SIZE", 10),
            pool_timeout=_as_int(env, "EXPENSE_DB_POOL_TIMEOUT", 30),
            secret_key=secret,
            algorithm=env.get("JWT_ALGORITHM") or "HS256",
            token_ttl=timedelta(hours=_as_int(env, "EXPENSE_TOKEN_TTL_HOURS", 24)),
            google_client_id=env.get("GOOGLE_CLIENT_ID") or None,
            google_client_secret=env.get("GOOGLE_CLIENT_SECRET") or None,
            environment=(env.get("EXPENSE_ENV") or "development").strip().lower(),
            cors_origins=_as_origins(env.get("EXPENSE_CORS_ORIGINS")),
            api_prefix=prefix,
            legacy_routes=_as_bool(env, "EXPENSE_LEGACY_ROUTES"),
            host=env.get("HOST") or "127.0.0.1",
            port=_as_int(env, "PORT", 3000),
        )


__all__ = ["ConfigurationError", "Settings"]
