"""
Client-side validation and payload cleaning for the association and report
forms, plus mapping of server-side validation errors to form fields.
"""
import re
from datetime import datetime

from errors import ApiError, FormValidationError

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
URL_RE = re.compile(r"^https?://.+\..+", re.IGNORECASE)


def is_valid_email(email):
    return bool(email) and EMAIL_RE.match(email) is not None


def raise_for_errors(field_errors, message="Veuillez corriger les champs en erreur"):
    if field_errors:
        raise FormValidationError(field_errors, message)


# ─────────────── Associations ───────────────

def validate_association(form):
    errors = {}

    name = (form.get("name") or "").strip()
    if len(name) < 2:
        errors["name"] = "Le nom doit contenir au moins 2 caractères"

    if not is_valid_email(form.get("email") or ""):
        errors["email"] = "Email invalide"

    phone = (form.get("phone") or "").strip()
    if phone and len(re.sub(r"\s", "", phone)) < 10:
        errors["phone"] = "Le téléphone doit contenir au moins 10 chiffres"

    website = (form.get("website") or "").strip()
    if website and not URL_RE.match(website):
        errors["website"] = "URL invalide (doit commencer par http:// ou https://)"

    return errors


def clean_association(form):
    payload = {
        "name": (form.get("name") or "").strip(),
        "description": (form.get("description") or "").strip(),
        "email": (form.get("email") or "").strip().lower(),
        "phone": (form.get("phone") or "").strip(),
        "address": (form.get("address") or "").strip(),
        "website": (form.get("website") or "").strip(),
    }
    if "is_active" in form:
        payload["isActive"] = bool(form["is_active"])
    return payload


# ─────────────── Reports ───────────────

def validate_report(form):
    errors = {}
    for key in ("maraude_action_id", "report_date", "start_time", "end_time"):
        if not form.get(key):
            errors[key] = "Ce champ est requis"
    if int(form.get("beneficiaries_count") or 0) < 0:
        errors["beneficiaries_count"] = "Valeur minimum: 0"
    if int(form.get("volunteers_count") or 0) < 1:
        errors["volunteers_count"] = "Valeur minimum: 1"
    return errors


def clean_report(report, edit_mode=False):
    """Payload for create/update; incomplete distributions and alerts are dropped."""
    report.distributions = [
        d for d in report.distributions if d.distribution_type_id and d.quantity > 0
    ]
    report.alerts = [
        a for a in report.alerts if a.alert_type and a.severity and a.situation_description
    ]
    payload = report.to_payload()
    if edit_mode:
        payload.pop("maraudeActionId", None)
    return payload


def drop_alert(report, uid):
    report.alerts = [a for a in report.alerts if a.uid != uid]


def calculate_duration(start_time, end_time):
    """'Xh Ym' between two HH:MM[:SS] times, or '' when either is missing."""
    if not start_time or not end_time:
        return ""
    start = datetime.strptime(start_time[:5], "%H:%M")
    end = datetime.strptime(end_time[:5], "%H:%M")
    total_minutes = int((end - start).total_seconds() // 60)
    hours, minutes = divmod(abs(total_minutes), 60)
    sign = "-" if total_minutes < 0 else ""
    return f"{sign}{hours}h {minutes}m"


def duplicate_warning(report_date, duplicate):
    if duplicate:
        return (f"Un rapport existe déjà pour cette maraude le {report_date}.\n\n"
                f"Créé par: {duplicate.get('createdBy', '?')}\n"
                f"Date: {duplicate.get('createdDate', '?')}")
    return "Un rapport existe déjà pour cette maraude à cette date."


# ─────────────── Server errors ───────────────

def _snake_case(key):
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def map_server_errors(error: ApiError, default="Une erreur est survenue lors de l'enregistrement"):
    """Return (field_errors, message) for an error raised on submit."""
    if error.status_code in (400, 409):
        if error.details:
            field_errors = {_snake_case(key): message for key, message in error.details.items()}
            return field_errors, error.body.get("message") or "Erreur de validation"
        return {}, error.body.get("message") or "Données invalides"
    return {}, default


def format_time(value):
    return value[:5] if value else "--:--"
