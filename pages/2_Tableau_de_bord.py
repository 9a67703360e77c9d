import logging

import streamlit as st

from errors import ApiError
from labels import DAYS_OF_WEEK, day_name, status_label
from map_utils import format_date_fr
from ui import configure_page, get_api, get_auth, handle_api_error, render_user_badge, require_login
from utils import calculate_stats, create_status_chart

logger = logging.getLogger(__name__)

configure_page("Tableau de bord")

user = require_login()
api = get_api()

st.title("📊 Tableau de bord")
render_user_badge()

if user.association_id:
    try:
        st.caption(f"🏢 {api.get_association(user.association_id).name}")
    except ApiError as e:
        logger.warning(f"Association {user.association_id} not loaded: {e}")

try:
    maraudes = api.list_maraudes(associationId=user.association_id, limit=100).items
except ApiError as e:
    handle_api_error(e, "Erreur lors du chargement des données")
    maraudes = []

stats = calculate_stats(maraudes)
c1, c2, c3, c4 = st.columns(4)
c1.metric("Maraudes", stats["total_maraudes"])
c2.metric("Actives", stats["active_maraudes"])
c3.metric("Terminées", stats["completed_maraudes"])
c4.metric("Personnes aidées", stats["total_beneficiaries"])

if maraudes:
    st.plotly_chart(create_status_chart(maraudes), use_container_width=True)

with st.expander("📅 Planning de la semaine"):
    try:
        schedule = api.get_weekly_schedule()
    except ApiError as e:
        handle_api_error(e, "Erreur lors du chargement du planning")
        schedule = {}
    columns = st.columns(len(DAYS_OF_WEEK))
    for column, day in zip(columns, DAYS_OF_WEEK):
        column.markdown(f"**{day.short_name}**")
        for maraude in schedule.get(day.value, []):
            column.caption(f"{maraude.start_time[:5]} {maraude.title}")

if user.role in ("coordinator", "admin"):
    try:
        report_stats = api.get_report_stats(associationId=user.association_id)
    except ApiError as e:
        handle_api_error(e, "Erreur lors du chargement des statistiques")
        report_stats = {}
    if report_stats:
        r1, r2, r3 = st.columns(3)
        r1.metric("Rapports", report_stats.get("totalReports", 0))
        r2.metric("Bénéficiaires (rapports)", report_stats.get("totalBeneficiaries", 0))
        r3.metric("Alertes", report_stats.get("totalAlerts", 0))

st.subheader("🗂️ Mes maraudes")
for maraude in maraudes:
    when = f"Tous les {maraude.day_name or day_name(maraude.day_of_week)}s" if maraude.is_recurring else format_date_fr(maraude.scheduled_date)
    col1, col2 = st.columns([4, 1])
    col1.markdown(f"**{maraude.title}** · {status_label(maraude.status)} · {when} à {maraude.start_time}")
    if col2.button("✏️ Modifier", key=f"edit_{maraude.id}"):
        st.session_state.edit_maraude_id = maraude.id
        st.switch_page("pages/3_Maraudes.py")

left, right = st.columns(2)
if left.button("➕ Nouvelle maraude"):
    st.session_state.edit_maraude_id = None
    st.switch_page("pages/3_Maraudes.py")
if right.button("🚪 Se déconnecter"):
    get_auth().logout()
    st.switch_page("app.py")
