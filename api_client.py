import logging

import requests

from config import API_BASE_URL, REQUEST_TIMEOUT
from errors import ApiError, SessionExpiredError
from models import (
    Association,
    DistributionType,
    MaraudeAction,
    MaraudeReport,
    Merchant,
    Page,
    Pagination,
)

logger = logging.getLogger(__name__)


class AuthInterceptor:
    """Attaches the bearer token and retries once after a refresh on 401."""

    REFRESH_PATH = "/auth/refresh"

    def __init__(self, auth):
        self.auth = auth

    @staticmethod
    def _auth_headers(token):
        return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

    def send(self, session, method, url, headers=None, **kwargs):
        if self.REFRESH_PATH in url:
            return session.request(method, url, headers=headers, **kwargs)

        token = self.auth.get_token()
        request_headers = dict(headers or {})
        if token:
            request_headers.update(self._auth_headers(token))

        response = session.request(method, url, headers=request_headers, **kwargs)
        if response.status_code == 401 and token:
            logger.info(f"{method} {url} returned 401, refreshing token")
            new_token = self.auth.refresh_coordinator.await_refresh(token)
            request_headers.update(self._auth_headers(new_token))
            response = session.request(method, url, headers=request_headers, **kwargs)
        return response


def _clean_params(params):
    if not params:
        return None
    return {key: str(value) for key, value in params.items() if value is not None and value != ""}


class ApiClient:
    def __init__(self, auth, base_url=API_BASE_URL, session=None, timeout=REQUEST_TIMEOUT):
        self.auth = auth
        self.base_url = base_url.rstrip("/")
        self.session = session or auth.session
        self.timeout = timeout
        self.interceptor = AuthInterceptor(auth)

    def _request(self, method, path, params=None, payload=None):
        url = f"{self.base_url}{path}"
        try:
            response = self.interceptor.send(
                self.session, method, url,
                params=_clean_params(params),
                json=payload,
                timeout=self.timeout,
            )
        except SessionExpiredError:
            raise
        except requests.exceptions.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise ApiError(0, str(e)) from e

        if not response.ok:
            error = ApiError.from_response(response)
            logger.error(f"{method} {url} -> {error}")
            raise error
        if not response.content:
            return {}
        return response.json()

    # ─────────────── Associations ───────────────
    def list_associations(self, page=None, limit=None, active=None):
        data = self._request("GET", "/associations", params={"page": page, "limit": limit, "active": active})
        return Page(
            items=[Association.from_dict(a) for a in data.get("associations", [])],
            pagination=Pagination.from_dict(data.get("pagination")),
        )

    def get_association(self, association_id):
        data = self._request("GET", f"/associations/{association_id}")
        return Association.from_dict(data["association"])

    def get_association_stats(self, association_id):
        return self._request("GET", f"/associations/{association_id}/stats").get("stats", {})

    def create_association(self, payload):
        data = self._request("POST", "/associations", payload=payload)
        return Association.from_dict(data.get("association", {}))

    def update_association(self, association_id, payload):
        data = self._request("PUT", f"/associations/{association_id}", payload=payload)
        return Association.from_dict(data.get("association", {}))

    def delete_association(self, association_id):
        return self._request("DELETE", f"/associations/{association_id}")

    # ─────────────── Maraudes ───────────────
    def list_maraudes(self, **params):
        data = self._request("GET", "/maraudes", params=params)
        return Page(
            items=[MaraudeAction.from_dict(m) for m in data.get("actions", [])],
            pagination=Pagination.from_dict(data.get("pagination")),
        )

    def get_maraude(self, maraude_id):
        data = self._request("GET", f"/maraudes/{maraude_id}")
        return MaraudeAction.from_dict(data["action"])

    def create_maraude(self, payload):
        data = self._request("POST", "/maraudes", payload=payload)
        return MaraudeAction.from_dict(data.get("action", {}))

    def update_maraude(self, maraude_id, payload):
        data = self._request("PUT", f"/maraudes/{maraude_id}", payload=payload)
        return MaraudeAction.from_dict(data.get("action", {}))

    def set_maraude_status(self, maraude_id, status):
        return self.update_maraude(maraude_id, {"status": status})

    def delete_maraude(self, maraude_id):
        return self._request("DELETE", f"/maraudes/{maraude_id}")

    def get_today_active_maraudes(self):
        data = self._request("GET", "/maraudes/today/active")
        actions = [MaraudeAction.from_dict(m) for m in data.get("actions", [])]
        return {
            "actions": actions,
            "count": data.get("count", len(actions)),
            "date": data.get("date"),
            "current_day_of_week": data.get("currentDayOfWeek"),
            "current_day_name": data.get("currentDayName"),
        }

    def get_weekly_schedule(self):
        data = self._request("GET", "/maraudes/weekly-schedule")
        schedule = data.get("weeklySchedule", {})
        return {
            int(day): [MaraudeAction.from_dict(m) for m in actions]
            for day, actions in schedule.items()
        }

    # ─────────────── Merchants ───────────────
    def list_merchants(self, **params):
        data = self._request("GET", "/merchants", params=params)
        return Page(
            items=[Merchant.from_dict(m) for m in data.get("merchants", [])],
            pagination=Pagination.from_dict(data.get("pagination")),
        )

    def get_nearby_merchants(self, lat, lng, radius=5):
        data = self._request("GET", f"/merchants/nearby/{lat}/{lng}", params={"radius": radius})
        return [Merchant.from_dict(m) for m in data.get("merchants", [])]

    # ─────────────── Reports ───────────────
    def get_distribution_types(self):
        data = self._request("GET", "/reports/distribution-types")
        return [DistributionType.from_dict(t) for t in data.get("types", [])]

    def list_reports(self, **params):
        data = self._request("GET", "/reports", params=params)
        return Page(
            items=[MaraudeReport.from_dict(r) for r in data.get("reports", [])],
            pagination=Pagination.from_dict(data.get("pagination")),
        )

    def get_report(self, report_id):
        data = self._request("GET", f"/reports/{report_id}")
        return MaraudeReport.from_dict(data["report"])

    def create_report(self, payload):
        if not self.auth.get_token():
            raise SessionExpiredError("Token d'authentification manquant")
        data = self._request("POST", "/reports", payload=payload)
        return MaraudeReport.from_dict(data.get("report", {}))

    def update_report(self, report_id, payload):
        data = self._request("PUT", f"/reports/{report_id}", payload=payload)
        return MaraudeReport.from_dict(data.get("report", {}))

    def delete_report(self, report_id):
        return self._request("DELETE", f"/reports/{report_id}")

    def submit_report(self, report_id):
        data = self._request("PATCH", f"/reports/{report_id}/submit", payload={})
        return MaraudeReport.from_dict(data.get("report", {}))

    def validate_report(self, report_id):
        data = self._request("PATCH", f"/reports/{report_id}/validate", payload={})
        return MaraudeReport.from_dict(data.get("report", {}))

    def send_report_email(self, report_id, recipients, subject=None, message=None):
        payload = {"recipients": list(recipients), "subject": subject, "message": message}
        payload = {key: value for key, value in payload.items() if value is not None}
        return self._request("POST", f"/reports/{report_id}/send-email", payload=payload)

    def get_report_stats(self, **params):
        return self._request("GET", "/reports/stats/summary", params=params).get("stats", {})

    def check_duplicate_report(self, maraude_action_id, report_date):
        data = self._request("GET", "/reports/check-duplicate", params={
            "maraudeActionId": maraude_action_id,
            "reportDate": report_date,
        })
        return {
            "exists": bool(data.get("exists")),
            "report": data.get("report"),
            "message": data.get("message"),
        }
