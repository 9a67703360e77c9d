import threading

import pytest
import requests

from api_client import ApiClient, AuthInterceptor
from auth import AuthService, MemoryStorage
from conftest import BASE_URL, FakeResponse, FakeSession
from config import TOKEN_KEY
from errors import ApiError, SessionExpiredError

MARAUDE = {
    "id": "m1",
    "title": "Tournée gare",
    "startLatitude": "44.8378",
    "startLongitude": "-0.5792",
    "isRecurring": True,
    "dayOfWeek": 3,
    "startTime": "19:00:00",
    "status": "planned",
}


def make_client(storage, handler):
    session = FakeSession(handler)
    auth = AuthService(storage, base_url=BASE_URL, session=session)
    return ApiClient(auth, base_url=BASE_URL), auth, session


def token_server(valid_token="new-token", refresh=None):
    """Accept only ``valid_token``; the refresh endpoint hands it out."""
    def handler(call):
        if call["url"].endswith("/auth/refresh"):
            return refresh(call) if refresh else FakeResponse(200, {"token": valid_token})
        if call["headers"].get("Authorization") != f"Bearer {valid_token}":
            return FakeResponse(401, {"message": "Token expired"}, reason="Unauthorized")
        return FakeResponse(200, {"actions": [MARAUDE], "pagination": {"page": 1, "total": 1}})
    return handler


def test_bearer_token_attached(logged_in_storage):
    client, _, session = make_client(logged_in_storage, token_server("old-token"))
    page = client.list_maraudes(status="planned", search="", page=None)

    call = session.calls[0]
    assert call["headers"]["Authorization"] == "Bearer old-token"
    assert call["headers"]["Content-Type"] == "application/json"
    assert call["params"] == {"status": "planned"}
    assert page.items[0].title == "Tournée gare"
    assert page.pagination.total == 1


def test_no_authorization_without_token():
    client, _, session = make_client(MemoryStorage({}), lambda call: FakeResponse(200, {"associations": []}))
    client.list_associations()
    assert "Authorization" not in session.calls[0]["headers"]


def test_401_refreshes_and_retries_once(logged_in_storage):
    client, auth, session = make_client(logged_in_storage, token_server())

    page = client.list_maraudes()

    assert len(page.items) == 1
    assert auth.get_token() == "new-token"
    assert len(session.calls_to("/auth/refresh")) == 1
    refresh_call = session.calls_to("/auth/refresh")[0]
    assert refresh_call["headers"]["Authorization"] == "Bearer old-token"
    retried = session.calls_to("/maraudes")
    assert [c["headers"]["Authorization"] for c in retried] == ["Bearer old-token", "Bearer new-token"]


def test_refresh_request_is_not_intercepted(auth):
    session = FakeSession(lambda call: FakeResponse(401, {}))
    response = AuthInterceptor(auth).send(session, "POST", f"{BASE_URL}/auth/refresh")

    assert response.status_code == 401
    assert len(session.calls) == 1
    assert "Authorization" not in session.calls[0]["headers"]


def test_concurrent_401s_share_one_refresh(logged_in_storage):
    barrier = threading.Barrier(3, timeout=5)

    def refresh(call):
        return FakeResponse(200, {"token": "new-token"})

    inner = token_server(refresh=refresh)

    def handler(call):
        # hold the first request of each thread until all three carry the stale token
        if call["url"].endswith("/maraudes") and call["headers"].get("Authorization") == "Bearer old-token":
            barrier.wait()
        return inner(call)

    client, auth, session = make_client(logged_in_storage, handler)
    results, failures = [], []

    def worker():
        try:
            results.append(client.list_maraudes())
        except Exception as e:  # collected for the assertion below
            failures.append(e)

    threads = [threading.Thread(target=worker) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert failures == []
    assert len(results) == 3
    assert len(session.calls_to("/auth/refresh")) == 1
    assert auth.refresh_coordinator.refresh_count == 1
    assert not auth.refresh_coordinator.in_flight


def test_concurrent_401s_with_rejected_refresh_expire_session_once(logged_in_storage):
    barrier = threading.Barrier(3, timeout=5)
    refresh = lambda call: FakeResponse(401, {"message": "Invalid refresh"})
    inner = token_server(refresh=refresh)

    def handler(call):
        if call["url"].endswith("/maraudes"):
            barrier.wait()
        return inner(call)

    client, auth, session = make_client(logged_in_storage, handler)
    expired, failures = [], []
    auth.session_expired.subscribe(expired.append)

    def worker():
        try:
            client.list_maraudes()
        except Exception as e:  # collected for the assertion below
            failures.append(e)

    threads = [threading.Thread(target=worker) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert len(failures) == 3
    assert all(isinstance(e, SessionExpiredError) for e in failures)
    assert len(session.calls_to("/auth/refresh")) == 1
    assert auth.refresh_coordinator.refresh_count == 1
    assert len(expired) == 1
    assert auth.get_token() is None
    assert not auth.refresh_coordinator.in_flight


def test_failed_refresh_logs_out_and_raises(logged_in_storage):
    refresh = lambda call: FakeResponse(401, {"message": "Invalid refresh"})
    client, auth, session = make_client(logged_in_storage, token_server(refresh=refresh))
    expired, users = [], []
    auth.session_expired.subscribe(expired.append)
    auth.current_user.subscribe(users.append)

    with pytest.raises(SessionExpiredError):
        client.list_maraudes()

    assert auth.get_token() is None
    assert not auth.is_logged_in()
    assert users[-1] is None
    assert len(expired) == 1
    assert len(session.calls_to("/maraudes")) == 1


def test_refresh_without_token_in_body_expires_session(logged_in_storage):
    refresh = lambda call: FakeResponse(200, {"message": "ok"})
    client, auth, _ = make_client(logged_in_storage, token_server(refresh=refresh))

    with pytest.raises(SessionExpiredError):
        client.list_maraudes()
    assert logged_in_storage.get_item(TOKEN_KEY) is None


def test_error_response_is_mapped(logged_in_storage):
    body = {"message": "Données invalides", "details": {"email": "Déjà utilisé"}}
    client, _, _ = make_client(logged_in_storage, lambda call: FakeResponse(409, body, reason="Conflict"))

    with pytest.raises(ApiError) as excinfo:
        client.create_association({"name": "Asso"})

    error = excinfo.value
    assert error.status_code == 409
    assert error.message == "Données invalides"
    assert error.details == {"email": "Déjà utilisé"}


def test_error_without_body_uses_reason(logged_in_storage):
    client, _, _ = make_client(logged_in_storage, lambda call: FakeResponse(500, None, reason="Server Error"))

    with pytest.raises(ApiError) as excinfo:
        client.get_maraude("m1")
    assert excinfo.value.message == "Server Error"
    assert str(excinfo.value) == "Erreur 500: Server Error"


def test_network_error_becomes_status_zero(logged_in_storage):
    client, _, _ = make_client(logged_in_storage, lambda call: requests.exceptions.ConnectionError("down"))

    with pytest.raises(ApiError) as excinfo:
        client.list_merchants()
    assert excinfo.value.status_code == 0


def test_create_report_requires_token():
    client, _, session = make_client(MemoryStorage({}), lambda call: FakeResponse(201, {"report": {}}))

    with pytest.raises(SessionExpiredError):
        client.create_report({"maraudeActionId": "m1"})
    assert session.calls == []


def test_today_active_and_weekly_schedule(logged_in_storage):
    def handler(call):
        if call["url"].endswith("/today/active"):
            return FakeResponse(200, {"actions": [MARAUDE], "count": 1, "date": "2024-01-17",
                                      "currentDayOfWeek": 3, "currentDayName": "Mercredi"})
        return FakeResponse(200, {"weeklySchedule": {"3": [MARAUDE], "5": []}})

    client, _, _ = make_client(logged_in_storage, handler)

    today = client.get_today_active_maraudes()
    assert today["count"] == 1
    assert today["current_day_of_week"] == 3
    assert today["actions"][0].start_latitude == pytest.approx(44.8378)

    schedule = client.get_weekly_schedule()
    assert set(schedule) == {3, 5}
    assert schedule[3][0].id == "m1"


def test_check_duplicate_report(logged_in_storage):
    body = {"exists": True, "report": {"createdBy": "Camille"}, "message": "Doublon"}
    client, _, session = make_client(logged_in_storage, lambda call: FakeResponse(200, body))

    result = client.check_duplicate_report("m1", "2024-01-17")

    assert result["exists"] is True
    assert result["report"]["createdBy"] == "Camille"
    assert session.calls[0]["params"] == {"maraudeActionId": "m1", "reportDate": "2024-01-17"}


def test_set_status_sends_partial_update(logged_in_storage):
    client, _, session = make_client(logged_in_storage, lambda call: FakeResponse(200, {"action": MARAUDE}))
    client.set_maraude_status("m1", "in_progress")

    assert session.calls[0]["method"] == "PUT"
    assert session.calls[0]["json"] == {"status": "in_progress"}


def test_delete_with_empty_body(logged_in_storage):
    client, _, _ = make_client(logged_in_storage, lambda call: FakeResponse(204, None))
    assert client.delete_maraude("m1") == {}
