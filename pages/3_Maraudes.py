import logging
from datetime import date, time

import streamlit as st
from streamlit_folium import st_folium

from auth import can_delete_maraude
from config import FORM_DEFAULT_CENTER
from errors import ApiError
from filters import search_maraudes
from forms import format_time
from labels import DAYS_OF_WEEK, MARAUDE_STATUSES, category_label, day_name, status_label
from map_utils import create_route_map, format_date_fr, reverse_geocode, search_location
from models import MaraudeAction
from route_calculator import WaypointRoute, build_maraude_payload, validate_parameters
from route_export import create_export_zip, create_route_kmz, waypoints_dataframe
from ui import configure_page, get_api, handle_api_error, render_user_badge, require_login
from utils import create_route_plot

logger = logging.getLogger(__name__)

configure_page("Maraudes")

user = require_login()
api = get_api()

EMPTY_FORM = {
    "title": "",
    "description": "",
    "latitude": FORM_DEFAULT_CENTER[0],
    "longitude": FORM_DEFAULT_CENTER[1],
    "address": "",
    "is_recurring": True,
    "day_of_week": 1,
    "scheduled_date": "",
    "start_time": "",
    "end_time": "",
    "participants_count": 0,
    "notes": "",
}


def _parse_time(value):
    if not value:
        return None
    hours, minutes = value[:5].split(":")
    return time(int(hours), int(minutes))


def open_editor(maraude_id):
    """Load the form and the waypoint route for a maraude (None = new)."""
    form = dict(EMPTY_FORM)
    waypoints = []
    if maraude_id:
        try:
            maraude = api.get_maraude(maraude_id)
        except ApiError as e:
            handle_api_error(e, "Erreur lors du chargement de la maraude")
            return
        form.update({
            "title": maraude.title,
            "description": maraude.description or "",
            "latitude": maraude.start_latitude if maraude.start_latitude is not None else form["latitude"],
            "longitude": maraude.start_longitude if maraude.start_longitude is not None else form["longitude"],
            "address": maraude.address or "",
            "is_recurring": maraude.is_recurring,
            "day_of_week": maraude.day_of_week or 1,
            "scheduled_date": (maraude.scheduled_date or "")[:10],
            "start_time": maraude.start_time or "",
            "end_time": maraude.end_time or "",
            "participants_count": maraude.participants_count,
            "notes": maraude.notes or "",
        })
        waypoints = maraude.waypoints
    st.session_state.maraude_form = form
    st.session_state.route = WaypointRoute(form["latitude"], form["longitude"], waypoints)
    st.session_state.editor_loaded_id = maraude_id
    st.session_state.last_click = None


st.title("🚶 Maraudes")
render_user_badge()

edit_id = st.session_state.get("edit_maraude_id")
if "maraude_form" not in st.session_state or st.session_state.get("editor_loaded_id") != edit_id:
    open_editor(edit_id)

list_tab, editor_tab = st.tabs(["📋 Liste", "✏️ Modifier" if edit_id else "➕ Nouvelle maraude"])

# ─────────────── List ───────────────
with list_tab:
    try:
        maraudes = api.list_maraudes().items
    except ApiError as e:
        handle_api_error(e, "Erreur lors du chargement des maraudes")
        maraudes = []

    c1, c2, c3 = st.columns([2, 1, 1])
    search = c1.text_input("🔎 Rechercher", "")
    status_filter = c2.selectbox("Statut", ["all"] + list(MARAUDE_STATUSES),
                                 format_func=lambda s: "Tous" if s == "all" else status_label(s))
    sort_by = c3.selectbox("Tri", ["date-desc", "date-asc", "title", "beneficiaries"], format_func={
        "date-desc": "Date ↓", "date-asc": "Date ↑", "title": "Titre", "beneficiaries": "Bénéficiaires",
    }.get)

    for maraude in search_maraudes(maraudes, search, status_filter, sort_by):
        when = (f"Tous les {day_name(maraude.day_of_week)}s" if maraude.is_recurring
                else format_date_fr(maraude.scheduled_date) or "Date non définie")
        with st.container(border=True):
            col1, col2, col3 = st.columns([3, 2, 1])
            col1.markdown(f"**{maraude.title}**  \n{when} · {format_time(maraude.start_time)} · "
                          f"❤️ {maraude.beneficiaries_helped}")
            statuses = list(MARAUDE_STATUSES)
            new_status = col2.selectbox("Statut", statuses, index=statuses.index(maraude.status)
                                        if maraude.status in statuses else 0,
                                        format_func=status_label, key=f"status_{maraude.id}",
                                        label_visibility="collapsed")
            if new_status != maraude.status:
                try:
                    api.set_maraude_status(maraude.id, new_status)
                    st.rerun()
                except ApiError as e:
                    handle_api_error(e, "Erreur lors du changement de statut")
            if col3.button("✏️", key=f"open_{maraude.id}"):
                st.session_state.edit_maraude_id = maraude.id
                st.rerun()

    if edit_id and st.button("➕ Nouvelle maraude"):
        st.session_state.edit_maraude_id = None
        st.rerun()

# ─────────────── Editor ───────────────
with editor_tab:
    form = st.session_state.maraude_form
    route = st.session_state.route

    left, right = st.columns([1, 2], gap="large")

    with left:
        form["title"] = st.text_input("Titre *", form["title"])
        form["description"] = st.text_area("Description", form["description"])
        form["is_recurring"] = st.toggle("Maraude hebdomadaire", form["is_recurring"])
        if form["is_recurring"]:
            form["day_of_week"] = st.selectbox(
                "Jour *", [d.value for d in DAYS_OF_WEEK],
                index=(form["day_of_week"] or 1) - 1, format_func=day_name)
            form["scheduled_date"] = ""
        else:
            current = date.fromisoformat(form["scheduled_date"]) if form["scheduled_date"] else None
            picked = st.date_input("Date *", current, format="DD/MM/YYYY")
            form["scheduled_date"] = picked.isoformat() if picked else ""

        t1, t2 = st.columns(2)
        start = t1.time_input("Début *", _parse_time(form["start_time"]), step=900)
        end = t2.time_input("Fin", _parse_time(form["end_time"]), step=900)
        form["start_time"] = start.strftime("%H:%M") if start else ""
        form["end_time"] = end.strftime("%H:%M") if end else ""
        form["participants_count"] = st.number_input("Bénévoles", 0, 200, int(form["participants_count"]))
        form["notes"] = st.text_area("Notes", form["notes"])

        st.markdown("##### 📍 Point de départ")
        query = st.text_input("Rechercher une adresse", "")
        if query and st.button("Rechercher"):
            lat, lon = search_location(query)
            if lat is not None:
                form["latitude"], form["longitude"] = lat, lon
                form["address"] = query
                route.set_start(lat, lon)
            else:
                st.warning("Adresse introuvable")
        c1, c2 = st.columns(2)
        form["latitude"] = c1.number_input("Latitude", -90.0, 90.0, float(form["latitude"]), format="%.6f")
        form["longitude"] = c2.number_input("Longitude", -180.0, 180.0, float(form["longitude"]), format="%.6f")
        if (form["latitude"], form["longitude"]) != (route.start_lat, route.start_lon):
            route.set_start(form["latitude"], form["longitude"])
        form["address"] = st.text_input("Adresse", form["address"])
        if st.button("🏠 Adresse depuis les coordonnées"):
            address = reverse_geocode(form["latitude"], form["longitude"])
            if address:
                form["address"] = address
                st.rerun()
            else:
                st.warning("Impossible de déterminer l'adresse.")

    with right:
        st.markdown("##### 🗺️ Parcours")
        add_on_click = st.checkbox("Ajouter un point de passage en cliquant sur la carte", value=True)
        output = st_folium(create_route_map(route, form["title"] or "Départ"), height=450,
                           use_container_width=True, returned_objects=["last_clicked"])
        click = (output or {}).get("last_clicked")
        if add_on_click and click and click != st.session_state.last_click:
            st.session_state.last_click = click
            lat, lon = click["lat"], click["lng"]
            route.add_waypoint(lat, lon, address=reverse_geocode(lat, lon))
            st.rerun()

        m1, m2, m3 = st.columns(3)
        m1.metric("Distance", f"{route.distance_km:.2f} km")
        m2.metric("Durée estimée", f"{route.duration_min} min")
        m3.metric("Points de passage", len(route.waypoints))

        for i, waypoint in enumerate(route.waypoints):
            w1, w2, w3, w4 = st.columns([5, 1, 1, 1])
            w1.write(f"{waypoint.order + 1}. {waypoint.name} · {waypoint.address or ''}")
            if w2.button("⬆️", key=f"up_{i}", disabled=i == 0):
                route.move_up(i)
                st.rerun()
            if w3.button("⬇️", key=f"down_{i}", disabled=i == len(route.waypoints) - 1):
                route.move_down(i)
                st.rerun()
            if w4.button("🗑️", key=f"rm_{i}"):
                route.remove_waypoint(i)
                st.rerun()

        with st.expander("🏪 Commerçants partenaires à proximité"):
            radius = st.slider("Rayon (km)", 1, 20, 5)
            if st.button("Rechercher les commerçants"):
                try:
                    nearby = api.get_nearby_merchants(route.start_lat, route.start_lon, radius)
                except ApiError as e:
                    handle_api_error(e, "Erreur lors de la recherche des commerçants")
                    nearby = []
                if not nearby:
                    st.info("Aucun commerçant dans ce rayon.")
                for merchant in nearby:
                    st.write(f"• **{merchant.name}** ({category_label(merchant.category)}) · {merchant.address}")

        if route.waypoints:
            if st.button("Effacer le parcours"):
                route.clear()
                st.rerun()
            with st.expander("📈 Aperçu"):
                st.plotly_chart(create_route_plot(route.points), use_container_width=True)

            preview = MaraudeAction(
                id=edit_id, title=form["title"] or "maraude",
                start_latitude=route.start_lat, start_longitude=route.start_lon,
                address=form["address"], waypoints=route.waypoints,
            )
            d1, d2, d3 = st.columns(3)
            d1.download_button("⬇️ CSV", data=waypoints_dataframe(preview).to_csv(index=False),
                               file_name="parcours.csv", mime="text/csv")
            d2.download_button("⬇️ KMZ", data=create_route_kmz(preview), file_name="parcours.kmz",
                               mime="application/vnd.google-earth.kmz")
            zip_buff, zip_name = create_export_zip(preview)
            d3.download_button("⬇️ ZIP", data=zip_buff, file_name=zip_name, mime="application/zip")

    st.divider()
    s1, s2 = st.columns(2)
    if s1.button("💾 Enregistrer", type="primary"):
        errors = validate_parameters(form)
        if errors:
            for e in errors:
                st.error(e)
        else:
            payload = build_maraude_payload(form, route)
            try:
                if edit_id:
                    api.update_maraude(edit_id, payload)
                else:
                    api.create_maraude(payload)
                logger.info(f"Maraude saved: {payload['title']}")
                st.session_state.pop("maraude_form", None)
                st.switch_page("pages/2_Tableau_de_bord.py")
            except ApiError as e:
                handle_api_error(e, "Erreur lors de l'enregistrement")

    if edit_id and can_delete_maraude(user):
        with s2.popover("🗑️ Supprimer"):
            st.write(f"Supprimer la maraude « {form['title']} » ? Cette action est irréversible.")
            if st.button("Confirmer la suppression"):
                try:
                    api.delete_maraude(edit_id)
                    st.session_state.edit_maraude_id = None
                    st.session_state.pop("maraude_form", None)
                    st.switch_page("pages/2_Tableau_de_bord.py")
                except ApiError as e:
                    handle_api_error(e, "Erreur lors de la suppression de la maraude")
