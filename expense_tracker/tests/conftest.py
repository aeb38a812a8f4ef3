from __future__ import annotations

import pathlib
import sys

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import expense_tracker.models  # noqa: F401  # Ensure models are registered with metadata
from expense_tracker.auth import ExternalIdentityError, GoogleIdentity
from expense_tracker.config import Settings
from expense_tracker.database import Base, Database, get_db
from expense_tracker.server import create_app

GOOD_GOOGLE_TOKEN = "google-token-ok"


class FakeGoogleVerifier:
    """Accepts tokens registered in ``identities`` and rejects everything else."""

    def __init__(self) -> None:
        self.identities = {
            GOOD_GOOGLE_TOKEN: GoogleIdentity(subject="google-sub-1", email="gina@gmail.com", name="Gina"),
        }

    def __call__(self, credential: str) -> GoogleIdentity:
        try:
            return self.identities[credential]
        except KeyError as exc:
            raise ExternalIdentityError("Invalid Google credential") from exc


@pytest.fixture(scope="session")
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    TestingSessionLocal = sessionmaker(bind=connection, autoflush=False, autocommit=False, future=True)
    session: Session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture()
def settings() -> Settings:
    return Settings(database_url="sqlite://", secret_key="test-secret", google_client_id="test-client")


@pytest.fixture()
def google_verifier() -> FakeGoogleVerifier:
    return FakeGoogleVerifier()


@pytest.fixture()
def app(engine, db_session, settings, google_verifier):
    application = create_app(
        settings,
        database=Database(engine),
        google_verifier=google_verifier,
        create_schema=False,
    )

    def override_get_db():
        yield db_session

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def register_user(client):
    """Register an account through the API and return its token and user."""

    def _register(email: str = "alice@gmail.com", password: str = "s3cret!", name: str = "Alice") -> dict:
        response = client.post("/register", json={"name": name, "email": email, "password": password})
        assert response.status_code == 201, response.text
        return response.json()

    return _register
