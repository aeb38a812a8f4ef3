"""HTTP client for the expense API.

It mirrors what the browser frontend does: keep the session token and user
profile in local storage, re-validate them on start-up and drop them as soon
as the API refuses the token.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List, Optional

import requests

LOG = logging.getLogger(__name__)

API_URL = "http://127.0.0.1:3000"
NOMINATIM_URL = "https://nominatim.openstreetmap.org/reverse"
TIMEOUT = 5


class ApiError(RuntimeError):
    """Raised when the API answers with an error status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


class SessionExpiredError(ApiError):
    """Raised when the stored token is missing, invalid or expired."""


class SessionStore:
    """JSON file holding the ``token`` and ``user`` of the signed-in account."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> Optional[dict]:
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except json.JSONDecodeError:
            LOG.warning("Discarding unreadable session file %s", self.path)
            self.clear()
            return None
        if not payload.get("token") or not payload.get("user"):
            return None
        return payload

    def save(self, token: str, user: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({"token": token, "user": user}), encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class ExpenseClient:
    """Talks to the API and keeps the session in ``store``."""

    def __init__(
        self,
        store: SessionStore,
        base_url: str = API_URL,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.store = store
        self.base_url = base_url.rstrip("/")
        self.http = session or requests.Session()
        self.token: Optional[str] = None
        self.user: Optional[dict] = None

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _headers(self) -> dict:
        if self.token is None:
            raise SessionExpiredError(401, "Not signed in")
        return {"Authorization": f"Bearer {self.token}"}

    @staticmethod
    def _error(response: requests.Response) -> ApiError:
        try:
            message = response.json().get("error") or response.reason
        except ValueError:
            message = response.reason
        if response.status_code in (401, 403):
            return SessionExpiredError(response.status_code, message)
        return ApiError(response.status_code, message)

    def _start_session(self, response: requests.Response) -> dict:
        if not response.ok:
            raise self._error(response)
        data = response.json()
        self.token = data["token"]
        self.user = data["user"]
        self.store.save(self.token, self.user)
        return self.user

    def register(self, name: str, email: str, password: str) -> dict:
        payload = {"name": name, "email": email, "password": password}
        return self._start_session(self.http.post(self._url("/register"), json=payload, timeout=TIMEOUT))

    def signup(self, name: str, email: str, password: str) -> dict:
        payload = {"name": name, "email": email, "password": password}
        return self._start_session(self.http.post(self._url("/signup"), json=payload, timeout=TIMEOUT))

    def login(self, email: str, password: str) -> dict:
        payload = {"email": email, "password": password}
        return self._start_session(self.http.post(self._url("/login"), json=payload, timeout=TIMEOUT))

    def google_login(self, credential: str) -> dict:
        response = self.http.post(self._url("/auth/google"), json={"credential": credential}, timeout=TIMEOUT)
        return self._start_session(response)

    def restore(self) -> bool:
        """Reload the stored session and keep it only if the API still accepts it."""
        stored = self.store.load()
        if stored is None:
            return False
        response = self.http.get(
            self._url("/verify-token"),
            headers={"Authorization": f"Bearer {stored['token']}"},
            timeout=TIMEOUT,
        )
        if not response.ok:
            LOG.info("Stored session rejected with status %s", response.status_code)
            self.logout()
            return False
        self.token = stored["token"]
        self.user = stored["user"]
        return True

    def logout(self) -> None:
        self.token = None
        self.user = None
        self.store.clear()

    def list_expenses(self) -> List[dict]:
        response = self.http.get(self._url("/expenses"), headers=self._headers(), timeout=TIMEOUT)
        if response.status_code in (401, 403):
            self.logout()
        if not response.ok:
            raise self._error(response)
        return response.json()

    def create_expense(self, payload: dict[str, Any]) -> dict:
        response = self.http.post(self._url("/expenses"), json=payload, headers=self._headers(), timeout=TIMEOUT)
        if not response.ok:
            raise self._error(response)
        return response.json()

    def delete_expense(self, expense_id: int) -> None:
        response = self.http.delete(self._url(f"/expenses/{expense_id}"), headers=self._headers(), timeout=TIMEOUT)
        if not response.ok:
            raise self._error(response)

    def verify_email(self, email: str) -> dict:
        response = self.http.post(self._url("/verify-email"), json={"email": email}, timeout=TIMEOUT)
        if not response.ok:
            raise self._error(response)
        return response.json()


def reverse_geocode(latitude: float, longitude: float, session: Optional[requests.Session] = None) -> str:
    """Describe a coordinate as ``road, suburb, city, state`` for the location field."""
    http = session or requests.Session()
    response = http.get(
        NOMINATIM_URL,
        params={"format": "json", "lat": latitude, "lon": longitude, "zoom": 18, "addressdetails": 1},
        headers={"Accept-Language": "en-US", "User-Agent": "expense-tracker"},
        timeout=TIMEOUT,
    )
    response.raise_for_status()
    address = response.json().get("address", {})
    parts = [address[key] for key in ("road", "suburb", "city", "state") if address.get(key)]
    return ", ".join(parts)


__all__ = ["ApiError", "ExpenseClient", "SessionExpiredError", "SessionStore", "reverse_geocode"]
