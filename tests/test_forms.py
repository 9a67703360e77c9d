import pytest

from errors import ApiError, FormValidationError
from forms import (
    calculate_duration,
    clean_association,
    clean_report,
    drop_alert,
    duplicate_warning,
    format_time,
    is_valid_email,
    map_server_errors,
    raise_for_errors,
    validate_association,
    validate_report,
)
from models import Alert, Distribution, MaraudeReport


def test_email_validation():
    assert is_valid_email("contact@asso.fr")
    assert not is_valid_email("contact@asso")
    assert not is_valid_email("")


def test_validate_association_errors():
    errors = validate_association({"name": "A", "email": "nope", "phone": "06 12", "website": "asso.fr"})
    assert set(errors) == {"name", "email", "phone", "website"}


def test_validate_association_accepts_optional_blanks():
    form = {"name": "Secours", "email": "a@b.fr", "phone": "", "website": ""}
    assert validate_association(form) == {}
    assert validate_association({**form, "phone": "06 12 34 56 78", "website": "https://asso.fr"}) == {}


def test_clean_association():
    payload = clean_association({"name": "  Secours ", "email": " Contact@Asso.FR ", "is_active": 0})
    assert payload["name"] == "Secours"
    assert payload["email"] == "contact@asso.fr"
    assert payload["isActive"] is False
    assert "isActive" not in clean_association({"name": "x", "email": "y"})


def test_validate_report():
    errors = validate_report({"maraude_action_id": "", "report_date": "2024-01-17", "start_time": "19:00",
                              "end_time": "", "beneficiaries_count": -1, "volunteers_count": 0})
    assert set(errors) == {"maraude_action_id", "end_time", "beneficiaries_count", "volunteers_count"}


def make_report():
    return MaraudeReport(
        maraude_action_id="m1", report_date="2024-01-17", start_time="19:00", end_time="21:30",
        beneficiaries_count=8, volunteers_count=3, general_notes="",
        distributions=[Distribution("t1", 4), Distribution("t2", 0), Distribution("", 3)],
        alerts=[Alert("medical", "high", "Personne blessée"), Alert("", "", "")],
    )


def test_clean_report_drops_incomplete_rows():
    payload = clean_report(make_report())

    assert payload["maraudeActionId"] == "m1"
    assert payload["distributions"] == [{"distributionTypeId": "t1", "quantity": 4}]
    assert len(payload["alerts"]) == 1
    assert payload["alerts"][0]["alertType"] == "medical"
    assert "generalNotes" not in payload


def test_clean_report_edit_mode_omits_maraude():
    assert "maraudeActionId" not in clean_report(make_report(), edit_mode=True)


def test_drop_alert_keeps_identical_sibling():
    report = make_report()
    first, second = Alert("social", "low", "Besoin de duvet"), Alert("social", "low", "Besoin de duvet")
    report.alerts = [first, second]

    drop_alert(report, first.uid)

    assert [a.uid for a in report.alerts] == [second.uid]


@pytest.mark.parametrize("start, end, expected", [
    ("19:00", "21:30", "2h 30m"),
    ("19:00:00", "19:45:00", "0h 45m"),
    ("", "21:00", ""),
])
def test_calculate_duration(start, end, expected):
    assert calculate_duration(start, end) == expected


def test_duplicate_warning():
    message = duplicate_warning("17/01/2024", {"createdBy": "Camille", "createdDate": "2024-01-17"})
    assert "17/01/2024" in message
    assert "Camille" in message
    assert duplicate_warning("17/01/2024", None) == "Un rapport existe déjà pour cette maraude à cette date."


def test_map_server_errors_with_details():
    error = ApiError(400, "Bad", {"message": "Champs invalides", "details": {"email": "Déjà pris"}})
    assert map_server_errors(error) == ({"email": "Déjà pris"}, "Champs invalides")


def test_map_server_errors_uses_form_field_names():
    body = {"message": "Champs invalides", "details": {"reportDate": "Date invalide", "volunteersCount": "Min 1"}}
    field_errors, message = map_server_errors(ApiError(400, "Bad", body))

    assert field_errors == {"report_date": "Date invalide", "volunteers_count": "Min 1"}
    assert message == "Champs invalides"


def test_map_server_errors_without_details():
    assert map_server_errors(ApiError(409, "Conflict", {})) == ({}, "Données invalides")


def test_map_server_errors_other_status():
    assert map_server_errors(ApiError(500, "Boom"), "Échec") == ({}, "Échec")


def test_format_time():
    assert format_time("19:00:00") == "19:00"
    assert format_time(None) == "--:--"


def test_raise_for_errors():
    raise_for_errors({})
    with pytest.raises(FormValidationError) as excinfo:
        raise_for_errors({"name": "Requis"})
    assert excinfo.value.field_errors == {"name": "Requis"}
