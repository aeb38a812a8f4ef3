from __future__ import annotations

import json
from pathlib import Path

import pytest
import requests

from expense_tracker.client import ApiError, ExpenseClient, SessionExpiredError, SessionStore, reverse_geocode

USER = {"id": 1, "name": "Alice", "email": "alice@gmail.com"}


def _response(status: int, payload=None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = "reason"
    if payload is not None:
        response._content = json.dumps(payload).encode("utf-8")
    else:
        response._content = b""
    return response


class StubHttp:
    """Records requests and answers from a queue of canned responses."""

    def __init__(self, *responses: requests.Response) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, str, dict]] = []

    def _answer(self, method: str, url: str, **kwargs) -> requests.Response:
        self.calls.append((method, url, kwargs))
        return self.responses.pop(0)

    def get(self, url, **kwargs):
        return self._answer("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._answer("POST", url, **kwargs)

    def delete(self, url, **kwargs):
        return self._answer("DELETE", url, **kwargs)


@pytest.fixture()
def store(tmp_path: Path) -> SessionStore:
    return SessionStore(tmp_path / "session.json")


def test_login_persists_session(store):
    http = StubHttp(_response(200, {"success": True, "token": "tok", "user": USER}))
    client = ExpenseClient(store, base_url="http://api/", session=http)

    assert client.login("alice@gmail.com", "pw") == USER
    assert client.is_authenticated
    assert store.load() == {"token": "tok", "user": USER}
    method, url, kwargs = http.calls[0]
    assert (method, url) == ("POST", "http://api/login")
    assert kwargs["json"] == {"email": "alice@gmail.com", "password": "pw"}


def test_failed_login_raises_api_message(store):
    http = StubHttp(_response(401, {"error": "Invalid credentials"}))
    client = ExpenseClient(store, session=http)
    with pytest.raises(ApiError, match="Invalid credentials"):
        client.login("alice@gmail.com", "bad")
    assert store.load() is None


def test_restore_keeps_valid_session(store):
    store.save("tok", USER)
    http = StubHttp(_response(200, {"user": USER}))
    client = ExpenseClient(store, session=http)

    assert client.restore() is True
    assert client.user == USER
    assert http.calls[0][2]["headers"] == {"Authorization": "Bearer tok"}


def test_restore_clears_rejected_session(store):
    store.save("stale", USER)
    client = ExpenseClient(store, session=StubHttp(_response(403, {"error": "Invalid token"})))

    assert client.restore() is False
    assert not client.is_authenticated
    assert not store.path.exists()


def test_restore_without_stored_session_does_not_call_api(store):
    http = StubHttp()
    assert ExpenseClient(store, session=http).restore() is False
    assert http.calls == []


def test_unreadable_session_file_is_discarded(store):
    store.path.write_text("{not json", encoding="utf-8")
    assert store.load() is None
    assert not store.path.exists()


def test_expense_calls_attach_bearer_token(store):
    created = {"id": 5, "description": "Coffee"}
    http = StubHttp(_response(201, created), _response(200, [created]), _response(204))
    client = ExpenseClient(store, session=http)
    client.token = "tok"

    assert client.create_expense({"description": "Coffee"}) == created
    assert client.list_expenses() == [created]
    client.delete_expense(5)
    assert [call[0] for call in http.calls] == ["POST", "GET", "DELETE"]
    assert http.calls[2][1].endswith("/expenses/5")
    assert all(call[2]["headers"] == {"Authorization": "Bearer tok"} for call in http.calls)


def test_unauthorised_listing_logs_out(store):
    store.save("tok", USER)
    client = ExpenseClient(store, session=StubHttp(_response(401, {"error": "No token provided"})))
    client.token, client.user = "tok", USER

    with pytest.raises(SessionExpiredError):
        client.list_expenses()
    assert not client.is_authenticated
    assert store.load() is None


def test_calls_without_session_fail_fast(store):
    http = StubHttp()
    with pytest.raises(SessionExpiredError):
        ExpenseClient(store, session=http).list_expenses()
    assert http.calls == []


def test_reverse_geocode_joins_address_parts():
    address = {"road": "X St", "city": "Pune", "state": "Maharashtra", "country": "India"}
    http = StubHttp(_response(200, {"address": address}))

    assert reverse_geocode(18.5, 73.8, session=http) == "X St, Pune, Maharashtra"
    assert http.calls[0][2]["params"]["lat"] == 18.5
