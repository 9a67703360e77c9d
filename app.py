import html
import logging
from datetime import date

import streamlit as st
from streamlit_folium import st_folium

from filters import ALL_DAYS, FilterPanel, FilterState, apply_filters
from labels import DAY_BUTTON_LABELS, MARAUDE_STATUSES, MERCHANT_CATEGORIES, day_name, status_color, status_label
from map_utils import MaraudeMapRenderer, format_date_fr, search_location
from ui import configure_page, fetch_parallel, get_api, handle_api_error, render_user_badge

logger = logging.getLogger(__name__)

configure_page("Maraudes · Carte")

if "filter_state" not in st.session_state:
    st.session_state.update({
        "filter_state": FilterState(),
        "today_maraudes": [],
        "active_count": 0,
        "all_maraudes": [],
        "merchants": [],
        "data_loaded": False,
        "map_center": None,
    })

panel = FilterPanel(st.session_state.filter_state)
panel.subscribe(lambda state: logger.info(f"Filters changed: {state}"))


def load_data():
    api = get_api()
    results, errors = fetch_parallel(
        today=api.get_today_active_maraudes,
        maraudes=lambda: api.list_maraudes(limit=100),
        merchants=lambda: api.list_merchants(limit=100),
    )
    if "today" in results:
        st.session_state.today_maraudes = results["today"]["actions"]
        st.session_state.active_count = results["today"]["count"]
    if "maraudes" in results:
        st.session_state.all_maraudes = results["maraudes"].items
    if "merchants" in results:
        st.session_state.merchants = results["merchants"].items
    for name, error in errors.items():
        handle_api_error(error, f"Erreur de chargement ({name})")
    st.session_state.data_loaded = True


if not st.session_state.data_loaded:
    with st.spinner("Chargement des maraudes..."):
        load_data()

st.title("🧭 Maraudes solidaires")
render_user_badge()

left, right = st.columns([1, 3], gap="large")

with left:
    with st.expander("🎛️ Filtres", expanded=True):
        st.checkbox("Afficher les maraudes", value=panel.state.show_maraudes, key="show_maraudes",
                    on_change=lambda: panel.set_layer_visibility(show_maraudes=st.session_state.show_maraudes))
        st.checkbox("Afficher les commerçants", value=panel.state.show_merchants, key="show_merchants",
                    on_change=lambda: panel.set_layer_visibility(show_merchants=st.session_state.show_merchants))

        statuses = [""] + list(MARAUDE_STATUSES)
        st.selectbox("Statut", statuses, index=statuses.index(panel.state.maraude_status),
                     format_func=lambda s: status_label(s) if s else "Tous", key="maraude_status",
                     on_change=lambda: panel.set_status(st.session_state.maraude_status))

        categories = [""] + list(MERCHANT_CATEGORIES)
        st.selectbox("Catégorie de commerce", categories, index=categories.index(panel.state.merchant_category),
                     format_func=lambda c: MERCHANT_CATEGORIES[c]["label"] if c else "Toutes",
                     key="merchant_category",
                     on_change=lambda: panel.set_category(st.session_state.merchant_category))

        st.markdown("**Jours**")
        for column, day in zip(st.columns(len(ALL_DAYS)), ALL_DAYS):
            column.button(DAY_BUTTON_LABELS[day], key=f"day_{day}", help=day_name(day),
                          type="primary" if panel.is_selected(day) else "secondary",
                          on_click=panel.toggle_day, args=(day,), use_container_width=True)
        b1, b2, b3 = st.columns(3)
        b1.button("Tous", on_click=panel.select_all_days, use_container_width=True)
        b2.button("Aucun", on_click=panel.clear_days, use_container_width=True)
        b3.button("Auj.", on_click=panel.select_today, use_container_width=True)
        st.caption(f"📅 {panel.selected_days_label}")

    with st.form("center_form", border=False):
        place = st.text_input("📍 Centrer la carte sur", "")
        if st.form_submit_button("Centrer") and place:
            lat, lon = search_location(place)
            if lat is None:
                st.warning("Adresse introuvable")
            else:
                st.session_state.map_center = (lat, lon)

    if st.button("🔄 Rafraîchir"):
        load_data()

    st.metric("Maraudes actives aujourd'hui", st.session_state.active_count)
    st.metric("Commerçants partenaires", len(st.session_state.merchants))

filtered_maraudes, filtered_merchants = apply_filters(
    st.session_state.all_maraudes, st.session_state.merchants, panel.state)

with right:
    renderer = MaraudeMapRenderer()
    renderer.update(filtered_maraudes, filtered_merchants, panel.state)
    if st.session_state.map_center:
        renderer.center_on(*st.session_state.map_center)
    st_folium(renderer.map, height=600, use_container_width=True, returned_objects=[])
    st.caption(f"{len(filtered_maraudes)} maraudes · {len(filtered_merchants)} commerçants affichés")

st.subheader("📍 Maraudes du jour")
if not st.session_state.today_maraudes:
    st.info("Aucune maraude prévue aujourd'hui.")
for maraude in st.session_state.today_maraudes:
    when = (f"Tous les {maraude.day_name or day_name(maraude.day_of_week)}s"
            if maraude.is_recurring else format_date_fr(maraude.scheduled_date))
    association = maraude.association.name if maraude.association else "Association"
    st.markdown(f"""
    <div class="maraude-card" style="border-left-color: {status_color(maraude.status)}">
      <strong>{html.escape(maraude.title)}</strong> · {status_label(maraude.status)}<br/>
      🕒 {when} à {maraude.start_time} · 🏢 {html.escape(association)}
    </div>
    """, unsafe_allow_html=True)

st.caption(f"Données du {date.today().strftime('%d/%m/%Y')}")
