"""FastAPI application exposing the authentication and expense endpoints."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Path, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__, auth, crud, schemas
from .auth import GoogleVerifier, get_current_user_id, get_google_verifier, get_settings
from .config import ConfigurationError, Settings
from .database import Database, get_db
from .security import issue_token

LOG = logging.getLogger(__name__)

# Largest id a signed 64-bit primary key can hold.
MAX_ROW_ID = 2**63 - 1

router = APIRouter()
legacy_router = APIRouter(prefix="/legacy", tags=["legacy"])


def _session_payload(user, settings: Settings) -> dict:
    return {"token": issue_token(user.id, settings), "user": schemas.UserRead.model_validate(user)}


def _create_account(
    payload: schemas.RegisterRequest,
    db: Session,
    settings: Settings,
    *,
    restrict_domains: bool,
) -> dict:
    try:
        user = auth.register_user(db, payload, restrict_domains=restrict_domains)
    except crud.EntityConflictError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _session_payload(user, settings)


@router.post("/register", response_model=schemas.RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: schemas.RegisterRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> dict:
    return _create_account(payload, db, settings, restrict_domains=True)


@router.post("/signup", response_model=schemas.RegisterResponse, status_code=status.HTTP_201_CREATED)
def signup(
    payload: schemas.RegisterRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> dict:
    return _create_account(payload, db, settings, restrict_domains=False)


def _sign_in(
    credentials: auth.Credentials,
    db: Session,
    settings: Settings,
    google_verifier: GoogleVerifier,
) -> dict:
    try:
        user = auth.authenticate(db, credentials, google_verifier)
    except (auth.InvalidCredentialsError, auth.ExternalIdentityError) as exc:
        LOG.info("Rejected %s sign-in: %s", credentials.kind, exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except ConfigurationError as exc:
        LOG.error("%s sign-in unavailable: %s", credentials.kind, exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    return {"success": True, **_session_payload(user, settings)}


@router.post("/login", response_model=schemas.LoginResponse)
def login(
    payload: schemas.LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    google_verifier: GoogleVerifier = Depends(get_google_verifier),
) -> dict:
    credentials = auth.PasswordCredentials(email=payload.email, password=payload.password)
    return _sign_in(credentials, db, settings, google_verifier)


@router.post("/auth/google", response_model=schemas.LoginResponse)
def google_login(
    payload: schemas.GoogleAuthRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    google_verifier: GoogleVerifier = Depends(get_google_verifier),
) -> dict:
    return _sign_in(auth.GoogleCredentials(credential=payload.credential), db, settings, google_verifier)


@router.post("/verify-email", response_model=schemas.EmailCheck)
def verify_email(payload: schemas.VerifyEmailRequest, db: Session = Depends(get_db)) -> schemas.EmailCheck:
    return auth.check_email(db, payload.email)


@router.get("/verify-token", response_model=schemas.VerifyTokenResponse)
def verify_token(user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)) -> dict:
    try:
        user = crud.get_user(db, user_id)
    except crud.EntityNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found") from exc
    return {"user": schemas.UserRead.model_validate(user)}


@router.get("/expenses", response_model=List[schemas.ExpenseRead])
def list_expenses(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> List[schemas.ExpenseRead]:
    return crud.list_expenses(db, user_id)


@router.post("/expenses", response_model=schemas.ExpenseRead, status_code=status.HTTP_201_CREATED)
def create_expense(
    expense_in: schemas.ExpenseCreate,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> schemas.ExpenseRead:
    return crud.create_expense(db, user_id, expense_in)


@router.delete("/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_expense(
    expense_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> None:
    try:
        crud.delete_expense(db, user_id, expense_id)
    except crud.EntityForbiddenError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Expense belongs to another user") from exc


@router.get("/health", response_model=schemas.HealthRead, tags=["system"])
def healthcheck() -> dict:
    return {"status": "ok", "timestamp": datetime.now(tz=UTC)}


@legacy_router.get("/expenses", response_model=List[schemas.ExpenseRead])
def list_all_expenses(db: Session = Depends(get_db)) -> List[schemas.ExpenseRead]:
    return crud.list_all_expenses(db)


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request"


def _install_error_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": _validation_message(exc)},
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        LOG.error(
            "Unhandled error on %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
            extra={
                "method": request.method,
                "path": request.url.path,
                "user_id": getattr(request.state, "user_id", None),
            },
        )
        content: dict[str, Optional[str]] = {"error": "Internal server error"}
        if not settings.is_production:
            content["detail"] = str(exc)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


def create_app(
    settings: Optional[Settings] = None,
    *,
    database: Optional[Database] = None,
    google_verifier: Optional[GoogleVerifier] = None,
    create_schema: bool = True,
) -> FastAPI:
    """Build the application around an explicit configuration.

    ``database`` and ``google_verifier`` default to instances derived from
    ``settings``; tests pass their own.
    """
    settings = settings or Settings.from_env()
    owns_database = database is None
    database = database or Database.from_settings(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if create_schema:
            database.init_schema()
        LOG.info("Expense API ready (environment=%s)", settings.environment)
        yield
        if owns_database:
            database.dispose()

    app = FastAPI(title="Expense Tracker API", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.google_verifier = google_verifier or auth.GoogleTokenVerifier(settings.google_client_id)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    _install_error_handlers(app, settings)
    app.include_router(router, prefix=settings.api_prefix)
    if settings.legacy_routes:
        LOG.warning("Legacy unauthenticated expense listing is enabled")
        app.include_router(legacy_router, prefix=settings.api_prefix)
    return app
