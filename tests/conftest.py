import json
import threading

import pytest

from auth import AuthService, MemoryStorage
from config import TOKEN_KEY, USER_KEY

BASE_URL = "http://api.test/api"

USER = {
    "id": "u1",
    "firstName": "Camille",
    "lastName": "Martin",
    "email": "camille@example.org",
    "role": "volunteer",
    "associationId": "a1",
}


class FakeResponse:
    def __init__(self, status_code=200, body=None, reason="OK"):
        self.status_code = status_code
        self.ok = status_code < 400
        self.reason = reason
        self._body = body
        self.content = b"" if body is None else json.dumps(body).encode()

    def json(self):
        if self._body is None:
            raise ValueError("No JSON body")
        return self._body


class FakeSession:
    """Stands in for requests.Session; ``handler`` decides each response."""

    def __init__(self, handler=None):
        self.handler = handler or (lambda call: FakeResponse(200, {}))
        self.calls = []
        self._lock = threading.Lock()

    def request(self, method, url, headers=None, **kwargs):
        call = {"method": method, "url": url, "headers": dict(headers or {}), **kwargs}
        with self._lock:
            self.calls.append(call)
        result = self.handler(call)
        if isinstance(result, Exception):
            raise result
        return result

    def calls_to(self, suffix):
        return [c for c in self.calls if c["url"].endswith(suffix)]


@pytest.fixture
def storage():
    return MemoryStorage({})


@pytest.fixture
def logged_in_storage():
    return MemoryStorage({TOKEN_KEY: "old-token", USER_KEY: json.dumps(USER)})


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def auth(logged_in_storage, fake_session):
    return AuthService(logged_in_storage, base_url=BASE_URL, session=fake_session)
