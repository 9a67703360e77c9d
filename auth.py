"""
Session holder: persisted bearer token and current user, login/logout,
and a single-flight token refresh.

Role checks here only drive what the UI offers; the backend enforces access.
"""
import json
import logging
import threading
from pathlib import Path

import requests

from config import API_BASE_URL, REQUEST_TIMEOUT, TOKEN_KEY, USER_KEY
from errors import ApiError, SessionExpiredError
from events import BehaviorChannel, Channel
from models import User

logger = logging.getLogger(__name__)


# ─────────────── Storage ───────────────

class MemoryStorage:
    """Key/value storage over any mutable mapping (a dict, st.session_state)."""

    def __init__(self, mapping=None):
        self._data = mapping if mapping is not None else {}

    def get_item(self, key):
        return self._data.get(key)

    def set_item(self, key, value):
        self._data[key] = value

    def remove_item(self, key):
        if key in self._data:
            del self._data[key]


class FileStorage:
    """Key/value storage persisted as a JSON object on disk."""

    def __init__(self, path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self):
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")

    def get_item(self, key):
        with self._lock:
            return self._read().get(key)

    def set_item(self, key, value):
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def remove_item(self, key):
        with self._lock:
            data = self._read()
            if key in data:
                del data[key]
                self._write(data)


# ─────────────── Refresh coordination ───────────────

class _PendingRefresh:
    def __init__(self):
        self._done = threading.Event()
        self.token = None
        self.error = None

    def resolve(self, token):
        self.token = token
        self._done.set()

    def fail(self, error):
        self.error = error
        self._done.set()

    def wait(self):
        self._done.wait()
        if self.error is not None:
            raise self.error
        return self.token


class RefreshCoordinator:
    """
    Allows at most one token refresh in flight.

    Callers that hit a 401 with ``stale_token`` either get the already
    refreshed token, join the refresh in flight, or start a new one.
    Every caller of a failed refresh receives the same SessionExpiredError,
    and so does a caller arriving after the failure has closed the session.
    """

    def __init__(self, refresh_func, current_token_func, on_failure=None):
        self._refresh_func = refresh_func
        self._current_token = current_token_func
        self._on_failure = on_failure
        self._lock = threading.Lock()
        self._pending = None
        self.refresh_count = 0

    @property
    def in_flight(self):
        return self._pending is not None

    def await_refresh(self, stale_token):
        with self._lock:
            current = self._current_token()
            if current and current != stale_token:
                return current
            if current is None and stale_token:
                raise SessionExpiredError()
            pending = self._pending
            leader = pending is None
            if leader:
                pending = self._pending = _PendingRefresh()
                self.refresh_count += 1

        if not leader:
            return pending.wait()

        try:
            token = self._refresh_func()
        except Exception as e:
            logger.error(f"Token refresh failed: {e}")
            error = e if isinstance(e, SessionExpiredError) else SessionExpiredError()
            # session is closed before waiters wake so no one starts another refresh
            try:
                if self._on_failure:
                    self._on_failure(error)
            finally:
                with self._lock:
                    self._pending = None
                pending.fail(error)
            if error is e:
                raise
            raise error from e

        with self._lock:
            self._pending = None
        pending.resolve(token)
        return token


# ─────────────── Auth service ───────────────

class AuthService:
    def __init__(self, storage, base_url=API_BASE_URL, session=None, timeout=REQUEST_TIMEOUT):
        self.storage = storage
        self.base_url = f"{base_url.rstrip('/')}/auth"
        self.session = session or requests.Session()
        self.timeout = timeout
        self.current_user = BehaviorChannel(None)
        self.session_expired = Channel()
        self.refresh_coordinator = RefreshCoordinator(
            self._perform_refresh, self.get_token, on_failure=self._handle_refresh_failure)
        self._load_stored_user()

    # ── requests ──
    def _post(self, path, payload, headers=None):
        url = f"{self.base_url}/{path}"
        try:
            response = self.session.request("POST", url, json=payload, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"POST {url} failed: {e}")
            raise ApiError(0, str(e)) from e
        if not response.ok:
            raise ApiError.from_response(response)
        return response.json()

    def login(self, email: str, password: str) -> User:
        data = self._post("login", {"email": email, "password": password})
        user = User.from_dict(data["user"])
        self._set_current_user(user, data["token"])
        logger.info(f"Logged in as {user.email}")
        return user

    def register(self, user_data: dict) -> User:
        data = self._post("register", user_data)
        user = User.from_dict(data["user"])
        self._set_current_user(user, data["token"])
        logger.info(f"Registered {user.email}")
        return user

    def logout(self):
        self.storage.remove_item(TOKEN_KEY)
        self.storage.remove_item(USER_KEY)
        self.current_user.publish(None)

    def _perform_refresh(self):
        token = self.get_token()
        headers = {"Authorization": f"Bearer {token}"} if token else None
        data = self._post("refresh", {}, headers=headers)
        new_token = data.get("token") or data.get("access_token")
        if not new_token:
            raise SessionExpiredError("Refresh token failed")
        self.update_token(new_token)
        logger.info("Access token refreshed")
        return new_token

    def _handle_refresh_failure(self, error):
        self.logout()
        self.session_expired.publish(error)

    # ── state ──
    def get_token(self):
        return self.storage.get_item(TOKEN_KEY)

    def update_token(self, token):
        self.storage.set_item(TOKEN_KEY, token)

    def get_current_user(self):
        return self.current_user.value

    def is_logged_in(self):
        return bool(self.get_token()) and self.get_current_user() is not None

    def is_coordinator_or_admin(self):
        user = self.get_current_user()
        return user is not None and user.role in ("coordinator", "admin")

    def _set_current_user(self, user, token):
        self.storage.set_item(TOKEN_KEY, token)
        self.storage.set_item(USER_KEY, json.dumps(user.to_payload()))
        self.current_user.publish(user)

    def _load_stored_user(self):
        token = self.get_token()
        stored_user = self.storage.get_item(USER_KEY)
        if not (token and stored_user):
            return
        try:
            user = User.from_dict(json.loads(stored_user))
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Error parsing stored user: {e}")
            self.logout()
            return
        self.current_user.publish(user)


# ─────────────── Permissions ───────────────

def is_admin(user):
    return user is not None and user.role == "admin"


def can_delete_maraude(user):
    return user is not None and user.role in ("admin", "coordinator")


def can_edit_report(user, report):
    if user is None:
        return False
    if user.role == "admin":
        return True
    if user.role == "coordinator" and report.creator_association_id == user.association_id:
        return True
    return report.creator_id == user.id and report.status in ("submitted", "draft")


def can_delete_report(user, report):
    if user is None:
        return False
    if user.role == "admin":
        return True
    if report.status == "validated":
        return False
    if user.role == "coordinator" and report.creator_association_id == user.association_id:
        return True
    return report.creator_id == user.id


def can_validate_report(user, report):
    if user is None or user.role not in ("coordinator", "admin"):
        return False
    if report.status != "submitted":
        return False
    if user.role == "admin":
        return True
    return report.creator_association_id == user.association_id
