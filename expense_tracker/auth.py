"""Authentication flows and the bearer-token guard for protected routes.

Password and Google sign-in are two variants of :data:`Credentials`. Each
variant has a strategy that resolves it to a :class:`~expense_tracker.models.User`;
the routes then issue the session token through one shared path.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Literal, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from sqlalchemy.orm import Session

from . import crud, models, schemas
from .config import ConfigurationError, Settings
from .security import TokenError, burn_password_check, decode_token, hash_password, verify_password

LOG = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
ALLOWED_EMAIL_DOMAINS = frozenset(
    {"gmail.com", "yahoo.com", "outlook.com", "hotmail.com", "icloud.com", "protonmail.com"}
)


class InvalidEmailError(ValueError):
    """Raised when an email address is malformed or its domain is refused."""


class InvalidCredentialsError(RuntimeError):
    """Raised when no account matches the supplied credentials."""


class ExternalIdentityError(RuntimeError):
    """Raised when an identity token issued by Google cannot be trusted."""


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email.strip()))


def email_domain(email: str) -> str:
    return email.strip().rsplit("@", 1)[-1].lower()


def check_email(session: Session, email: str) -> schemas.EmailCheck:
    verified = is_valid_email(email)
    return schemas.EmailCheck(
        verified=verified,
        valid_domain=verified and email_domain(email) in ALLOWED_EMAIL_DOMAINS,
        exists=verified and crud.find_user_by_email(session, email) is not None,
        is_gmail=email.strip().lower().endswith("@gmail.com"),
    )


def register_user(
    session: Session,
    request: schemas.RegisterRequest,
    *,
    restrict_domains: bool,
) -> models.User:
    """Create a password account.

    ``restrict_domains`` limits sign-ups to :data:`ALLOWED_EMAIL_DOMAINS`.

    Raises:
        InvalidEmailError: Malformed address or refused domain.
        ValueError: Password longer than bcrypt accepts.
        crud.EntityConflictError: The email is already registered.
    """
    if not is_valid_email(request.email):
        raise InvalidEmailError("Invalid email format")
    if restrict_domains and email_domain(request.email) not in ALLOWED_EMAIL_DOMAINS:
        raise InvalidEmailError("Please use a valid email provider (e.g. Gmail, Outlook, Yahoo)")
    user = crud.create_user(
        session,
        name=request.name,
        email=request.email,
        password_hash=hash_password(request.password),
    )
    LOG.info("Registered user %s", user.id)
    return user


@dataclass(frozen=True, slots=True)
class GoogleIdentity:
    subject: str
    email: str
    name: str


class GoogleTokenVerifier:
    """Verify Google ID tokens against Google's public keys and our client id."""

    def __init__(self, client_id: Optional[str], request: Optional[google_requests.Request] = None) -> None:
        self.client_id = client_id
        self._request = request or google_requests.Request()

    def __call__(self, credential: str) -> GoogleIdentity:
        if not self.client_id:
            raise ConfigurationError("Google sign-in is not configured")
        try:
            claims = id_token.verify_oauth2_token(credential, self._request, self.client_id)
        except (ValueError, google_exceptions.GoogleAuthError) as exc:
            raise ExternalIdentityError("Invalid Google credential") from exc
        email = claims.get("email")
        if not email or not claims.get("sub"):
            raise ExternalIdentityError("Google credential carries no email")
        if claims.get("email_verified") is not True:
            raise ExternalIdentityError("Google email address is not verified")
        return GoogleIdentity(
            subject=str(claims["sub"]),
            email=email,
            name=claims.get("name") or email.split("@", 1)[0],
        )


GoogleVerifier = Callable[[str], GoogleIdentity]


@dataclass(frozen=True, slots=True)
class PasswordCredentials:
    email: str
    password: str
    kind: Literal["password"] = "password"


@dataclass(frozen=True, slots=True)
class GoogleCredentials:
    credential: str
    kind: Literal["google"] = "google"


Credentials = PasswordCredentials | GoogleCredentials


def _password_strategy(
    session: Session, credentials: PasswordCredentials, google_verifier: GoogleVerifier
) -> models.User:
    user = crud.find_user_by_email(session, credentials.email)
    if user is None or user.password_hash is None:
        burn_password_check(credentials.password)
        raise InvalidCredentialsError("Invalid credentials")
    if not verify_password(credentials.password, user.password_hash):
        raise InvalidCredentialsError("Invalid credentials")
    return user


def _google_strategy(
    session: Session, credentials: GoogleCredentials, google_verifier: GoogleVerifier
) -> models.User:
    identity = google_verifier(credentials.credential)
    try:
        user = crud.find_user_by_email_or_google_id(session, identity.email, identity.subject)
    except crud.EntityConflictError as exc:
        raise ExternalIdentityError(str(exc)) from exc
    if user is None:
        user = crud.create_user(
            session,
            name=identity.name,
            email=identity.email,
            google_id=identity.subject,
            is_google_user=True,
        )
        LOG.info("Created user %s from Google sign-in", user.id)
        return user
    return crud.link_google_account(session, user.id, google_id=identity.subject, name=identity.name)


_STRATEGIES: Mapping[str, Callable[..., models.User]] = {
    "password": _password_strategy,
    "google": _google_strategy,
}


def authenticate(session: Session, credentials: Credentials, google_verifier: GoogleVerifier) -> models.User:
    """Resolve ``credentials`` to a user through the strategy for its ``kind``."""
    try:
        strategy = _STRATEGIES[credentials.kind]
    except KeyError as exc:  # pragma: no cover - closed union
        raise ValueError(f"Unsupported credential kind '{credentials.kind}'") from exc
    return strategy(session, credentials, google_verifier)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_google_verifier(request: Request) -> GoogleVerifier:
    return request.app.state.google_verifier


bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> int:
    """Guard protected routes: 401 without a bearer token, 403 when it is invalid."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No token provided")
    try:
        user_id = decode_token(credentials.credentials, settings)
    except TokenError as exc:
        LOG.info("Rejected bearer token on %s: %s", request.url.path, exc)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid token") from exc
    request.state.user_id = user_id
    return user_id
