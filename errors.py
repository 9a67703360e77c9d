"""
Errors surfaced by the HTTP wrapper and the form validators.
"""


class ApiError(Exception):
    """HTTP or network failure. ``status_code`` is 0 when no response arrived."""

    def __init__(self, status_code, message, body=None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.body = body if body is not None else {}

    @classmethod
    def from_response(cls, response):
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"data": body}
        message = body.get("message") or body.get("error") or response.reason or "Erreur inconnue"
        return cls(response.status_code, message, body)

    @property
    def details(self):
        details = self.body.get("details")
        return details if isinstance(details, dict) else None

    def __str__(self):
        return f"Erreur {self.status_code}: {self.message}"


class SessionExpiredError(ApiError):
    """The token could not be refreshed; the session has been closed."""

    def __init__(self, message="Session expirée, veuillez vous reconnecter", body=None):
        super().__init__(401, message, body)


class FormValidationError(Exception):
    def __init__(self, field_errors, message=None):
        super().__init__(message or "Formulaire invalide")
        self.field_errors = dict(field_errors)
        self.message = message or "Formulaire invalide"
