import logging
from dataclasses import asdict
from datetime import date, time

import streamlit as st

from auth import can_delete_report, can_edit_report, can_validate_report
from errors import ApiError
from forms import (
    calculate_duration,
    clean_report,
    drop_alert,
    duplicate_warning,
    is_valid_email,
    map_server_errors,
    validate_report,
)
from labels import ALERT_TYPES, DISTRIBUTION_CATEGORIES, REPORT_STATUSES, SEVERITY_LEVELS
from map_utils import format_date_fr
from models import Alert, Distribution, MaraudeReport
from ui import configure_page, fetch_parallel, get_api, handle_api_error, render_user_badge, require_login

logger = logging.getLogger(__name__)

configure_page("Rapports")

user = require_login()
api = get_api()


def _parse_time(value):
    if not value:
        return None
    hours, minutes = value[:5].split(":")
    return time(int(hours), int(minutes))


def _field_error(key):
    message = st.session_state.report_errors.get(key)
    if message:
        st.caption(f":red[{message}]")


def open_report(report_id):
    if report_id:
        try:
            report = api.get_report(report_id)
        except ApiError as e:
            handle_api_error(e, "Erreur lors du chargement du rapport")
            return
    else:
        report = MaraudeReport(maraude_action_id="", report_date=date.today().isoformat(),
                               start_time="", end_time="")
    st.session_state.report = report
    st.session_state.report_loaded_id = report_id
    st.session_state.report_errors = {}


st.title("📝 Rapports de maraude")
render_user_badge()

edit_id = st.session_state.get("edit_report_id")
if "report" not in st.session_state or st.session_state.get("report_loaded_id") != edit_id:
    open_report(edit_id)

results, errors = fetch_parallel(
    types=api.get_distribution_types,
    maraudes=lambda: api.list_maraudes(limit=100),
)
for name, error in errors.items():
    handle_api_error(error, f"Erreur de chargement ({name})")
distribution_types = results.get("types", [])
maraudes = results["maraudes"].items if "maraudes" in results else []
maraude_titles = {m.id: m.title for m in maraudes}

list_tab, form_tab = st.tabs(["📋 Rapports", "✏️ Modifier le rapport" if edit_id else "➕ Nouveau rapport"])

# ─────────────── List ───────────────
with list_tab:
    status = st.selectbox("Statut", [""] + list(REPORT_STATUSES),
                          format_func=lambda s: REPORT_STATUSES.get(s, "Tous"))
    try:
        reports = api.list_reports(status=status, limit=50).items
    except ApiError as e:
        handle_api_error(e, "Erreur lors du chargement des rapports")
        reports = []

    if not reports:
        st.info("Aucun rapport.")

    for report in reports:
        with st.container(border=True):
            c1, c2 = st.columns([3, 2])
            urgent = " 🚨" if report.has_urgent_situations else ""
            c1.markdown(
                f"**{maraude_titles.get(report.maraude_action_id, 'Maraude')}**{urgent}  \n"
                f"{format_date_fr(report.report_date)} · {report.start_time[:5]}-{report.end_time[:5]} "
                f"({calculate_duration(report.start_time, report.end_time)}) · "
                f"❤️ {report.beneficiaries_count} · 🙋 {report.volunteers_count}"
            )
            c2.markdown(f"**{REPORT_STATUSES.get(report.status, report.status)}**")

            b1, b2, b3, b4, b5 = st.columns(5)
            if can_edit_report(user, report) and b1.button("✏️ Modifier", key=f"edit_{report.id}"):
                st.session_state.edit_report_id = report.id
                st.rerun()
            if (report.status == "draft" and report.creator_id == user.id
                    and b2.button("📤 Soumettre", key=f"submit_{report.id}")):
                try:
                    api.submit_report(report.id)
                    st.rerun()
                except ApiError as e:
                    handle_api_error(e, "Erreur lors de la soumission")
            if can_validate_report(user, report) and b3.button("✅ Valider", key=f"validate_{report.id}"):
                try:
                    api.validate_report(report.id)
                    st.rerun()
                except ApiError as e:
                    handle_api_error(e, "Erreur lors de la validation")
            with b4.popover("✉️ Envoyer"):
                recipients = st.text_input("Destinataires (séparés par des virgules)", key=f"to_{report.id}")
                subject = st.text_input("Objet", key=f"subject_{report.id}")
                message = st.text_area("Message", key=f"msg_{report.id}")
                if st.button("Envoyer", key=f"send_{report.id}"):
                    emails = [e.strip() for e in recipients.split(",") if e.strip()]
                    invalid = [e for e in emails if not is_valid_email(e)]
                    if not emails or invalid:
                        st.error(f"Adresses invalides: {', '.join(invalid) or 'aucune adresse'}")
                    else:
                        try:
                            api.send_report_email(report.id, emails, subject or None, message or None)
                            st.success("Rapport envoyé")
                        except ApiError as e:
                            handle_api_error(e, "Erreur lors de l'envoi")
            if can_delete_report(user, report):
                with b5.popover("🗑️ Supprimer"):
                    st.write("Supprimer ce rapport ? Cette action est irréversible.")
                    if st.button("Confirmer", key=f"del_{report.id}"):
                        try:
                            api.delete_report(report.id)
                            st.rerun()
                        except ApiError as e:
                            handle_api_error(e, "Erreur lors de la suppression du rapport")

    if edit_id and st.button("➕ Nouveau rapport"):
        st.session_state.edit_report_id = None
        st.rerun()

# ─────────────── Form ───────────────
with form_tab:
    report = st.session_state.report
    field_errors = st.session_state.report_errors

    if not edit_id:
        ids = [""] + [m.id for m in maraudes]
        report.maraude_action_id = st.selectbox(
            "Maraude *", ids, index=ids.index(report.maraude_action_id) if report.maraude_action_id in ids else 0,
            format_func=lambda i: maraude_titles.get(i, "Choisir une maraude"))
    else:
        st.markdown(f"**Maraude:** {maraude_titles.get(report.maraude_action_id, report.maraude_action_id)}")
    _field_error("maraude_action_id")

    current_date = date.fromisoformat(report.report_date[:10]) if report.report_date else None
    picked = st.date_input("Date *", current_date, format="DD/MM/YYYY")
    report.report_date = picked.isoformat() if picked else ""
    _field_error("report_date")

    t1, t2, t3 = st.columns(3)
    start = t1.time_input("Début *", _parse_time(report.start_time), step=900)
    end = t2.time_input("Fin *", _parse_time(report.end_time), step=900)
    report.start_time = start.strftime("%H:%M") if start else ""
    report.end_time = end.strftime("%H:%M") if end else ""
    t3.metric("Durée", calculate_duration(report.start_time, report.end_time) or "-")
    _field_error("start_time")
    _field_error("end_time")

    n1, n2 = st.columns(2)
    report.beneficiaries_count = n1.number_input("Bénéficiaires", min_value=0, value=report.beneficiaries_count)
    report.volunteers_count = n2.number_input("Bénévoles", min_value=1, value=max(1, report.volunteers_count))
    _field_error("beneficiaries_count")
    _field_error("volunteers_count")

    st.markdown("##### 🎒 Distributions")
    quantities = {d.distribution_type_id: d.quantity for d in report.distributions}
    by_category = {}
    for dtype in distribution_types:
        by_category.setdefault(dtype.category, []).append(dtype)
    for category, types in by_category.items():
        with st.expander(DISTRIBUTION_CATEGORIES.get(category, category)):
            for dtype in types:
                quantities[dtype.id] = st.number_input(
                    f"{dtype.icon or ''} {dtype.name}", min_value=0,
                    value=quantities.get(dtype.id, 0), key=f"qty_{dtype.id}")
    report.distributions = [Distribution(type_id, qty) for type_id, qty in quantities.items()]

    st.markdown("##### 🚨 Alertes")
    for alert in report.alerts:
        with st.container(border=True):
            a1, a2, a3 = st.columns([2, 2, 1])
            types = list(ALERT_TYPES)
            levels = list(SEVERITY_LEVELS)
            alert.alert_type = a1.selectbox("Type", types, index=types.index(alert.alert_type)
                                            if alert.alert_type in types else 0,
                                            format_func=ALERT_TYPES.get, key=f"alert_type_{alert.uid}")
            alert.severity = a2.selectbox("Gravité", levels, index=levels.index(alert.severity)
                                          if alert.severity in levels else 0,
                                          format_func=SEVERITY_LEVELS.get, key=f"alert_sev_{alert.uid}")
            if a3.button("🗑️", key=f"alert_rm_{alert.uid}"):
                drop_alert(report, alert.uid)
                st.rerun()
            alert.situation_description = st.text_area("Situation *", alert.situation_description,
                                                       key=f"alert_desc_{alert.uid}")
            alert.location_address = st.text_input("Lieu", alert.location_address or "", key=f"alert_loc_{alert.uid}")
            alert.action_taken = st.text_input("Action menée", alert.action_taken or "", key=f"alert_act_{alert.uid}")
            alert.follow_up_required = st.checkbox("Suivi nécessaire", alert.follow_up_required,
                                                   key=f"alert_follow_{alert.uid}")
    if st.button("➕ Ajouter une alerte"):
        report.alerts.append(Alert(alert_type="", severity="", situation_description=""))
        st.rerun()

    st.markdown("##### 🗒️ Notes")
    report.general_notes = st.text_area("Notes générales", report.general_notes or "")
    report.positive_points = st.text_area("Points positifs", report.positive_points or "")
    report.difficulties_encountered = st.text_area("Difficultés rencontrées", report.difficulties_encountered or "")
    report.urgent_situations_details = st.text_area("Situations urgentes", report.urgent_situations_details or "")

    unknown = {k: v for k, v in field_errors.items() if k not in asdict(report)}
    for key, message in unknown.items():
        st.error(f"{key}: {message}")

    if st.button("💾 Enregistrer", type="primary"):
        st.session_state.report_errors = validate_report(asdict(report))
        if st.session_state.report_errors:
            st.rerun()

        duplicate = None
        if not edit_id:
            try:
                duplicate = api.check_duplicate_report(report.maraude_action_id, report.report_date)
            except ApiError as e:
                handle_api_error(e, "Erreur lors de la vérification des doublons")
        if duplicate and duplicate["exists"]:
            st.warning(duplicate_warning(format_date_fr(report.report_date), duplicate["report"]))
        else:
            try:
                if edit_id:
                    api.update_report(edit_id, clean_report(report, edit_mode=True))
                else:
                    api.create_report(clean_report(report))
                logger.info(f"Report saved for maraude {report.maraude_action_id}")
                st.session_state.edit_report_id = None
                st.session_state.pop("report", None)
                st.success("Rapport enregistré")
                st.rerun()
            except ApiError as e:
                if e.status_code in (400, 409):
                    st.session_state.report_errors, message = map_server_errors(e)
                    st.error(message)
                else:
                    handle_api_error(e, "Erreur lors de l'enregistrement du rapport")
