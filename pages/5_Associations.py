import logging

import streamlit as st

from errors import ApiError, FormValidationError
from filters import search_associations
from forms import clean_association, map_server_errors, raise_for_errors, validate_association
from ui import configure_page, get_api, handle_api_error, render_user_badge, require_login

logger = logging.getLogger(__name__)

configure_page("Associations")

require_login(roles=["admin"])
api = get_api()

PAGE_SIZE = 10
ACTIVE_FILTERS = {"": "Toutes", "true": "Actives", "false": "Inactives"}

if "assoc_page" not in st.session_state:
    st.session_state.update({
        "assoc_page": 1,
        "assoc_form": None,
        "assoc_errors": {},
    })


def open_form(association=None):
    if association is None:
        st.session_state.assoc_form = {"id": None, "name": "", "description": "", "email": "",
                                       "phone": "", "address": "", "website": "", "is_active": True}
    else:
        st.session_state.assoc_form = {
            "id": association.id,
            "name": association.name,
            "description": association.description or "",
            "email": association.email,
            "phone": association.phone or "",
            "address": association.address or "",
            "website": association.website or "",
            "is_active": association.is_active,
        }
    st.session_state.assoc_errors = {}


def _field_error(key):
    message = st.session_state.assoc_errors.get(key)
    if message:
        st.caption(f":red[{message}]")


st.title("🏢 Associations")
render_user_badge()

# ─────────────── List ───────────────
c1, c2, c3 = st.columns([2, 1, 1])
query = c1.text_input("🔎 Rechercher", "")
active = c2.selectbox("Statut", list(ACTIVE_FILTERS), format_func=ACTIVE_FILTERS.get)
if c3.button("➕ Nouvelle association"):
    open_form()

try:
    page = api.list_associations(page=st.session_state.assoc_page, limit=PAGE_SIZE, active=active)
except ApiError as e:
    handle_api_error(e, "Erreur lors du chargement des associations")
    st.stop()

for association in search_associations(page.items, query):
    with st.container(border=True):
        a1, a2, a3, a4 = st.columns([4, 1, 1, 1])
        state = "🟢 Active" if association.is_active else "⚪ Inactive"
        a1.markdown(f"**{association.name}** · {state}  \n✉️ {association.email} · 📞 {association.phone or '-'}")
        if a2.button("✏️", key=f"edit_{association.id}"):
            open_form(association)
        if a3.button("⏸️" if association.is_active else "▶️", key=f"toggle_{association.id}"):
            try:
                api.update_association(association.id, {"isActive": not association.is_active})
                st.rerun()
            except ApiError as e:
                handle_api_error(e, "Erreur lors de la mise à jour")
        with a4.popover("🗑️"):
            st.write(f"Supprimer « {association.name} » ?")
            if st.button("Confirmer", key=f"del_{association.id}"):
                try:
                    api.delete_association(association.id)
                    st.rerun()
                except ApiError as e:
                    handle_api_error(e, "Erreur lors de la suppression de l'association")
        with st.expander("📊 Statistiques"):
            if st.button("Charger", key=f"stats_{association.id}"):
                try:
                    st.json(api.get_association_stats(association.id))
                except ApiError as e:
                    handle_api_error(e, "Erreur lors du chargement des statistiques")

p1, p2, p3 = st.columns([1, 2, 1])
if p1.button("⬅️ Précédent", disabled=page.pagination.page <= 1):
    st.session_state.assoc_page -= 1
    st.rerun()
p2.caption(f"Page {page.pagination.page} / {max(1, page.pagination.pages)} · {page.pagination.total} associations")
if p3.button("Suivant ➡️", disabled=page.pagination.page >= page.pagination.pages):
    st.session_state.assoc_page += 1
    st.rerun()

# ─────────────── Form ───────────────
form = st.session_state.assoc_form
if form is not None:
    st.divider()
    st.subheader("Modifier l'association" if form["id"] else "Nouvelle association")
    form["name"] = st.text_input("Nom *", form["name"])
    _field_error("name")
    form["email"] = st.text_input("Email *", form["email"])
    _field_error("email")
    form["phone"] = st.text_input("Téléphone", form["phone"])
    _field_error("phone")
    form["website"] = st.text_input("Site web", form["website"])
    _field_error("website")
    form["address"] = st.text_input("Adresse", form["address"])
    form["description"] = st.text_area("Description", form["description"])
    form["is_active"] = st.checkbox("Active", form["is_active"])

    s1, s2 = st.columns(2)
    if s1.button("💾 Enregistrer", type="primary"):
        st.session_state.assoc_errors = {}
        try:
            raise_for_errors(validate_association(form))
            payload = clean_association(form)
            if form["id"]:
                api.update_association(form["id"], payload)
            else:
                api.create_association(payload)
            logger.info(f"Association saved: {payload['name']}")
            st.session_state.assoc_form = None
            st.rerun()
        except FormValidationError as e:
            st.session_state.assoc_errors = e.field_errors
            st.rerun()
        except ApiError as e:
            if e.status_code in (400, 409):
                st.session_state.assoc_errors, message = map_server_errors(e)
                st.error(message)
            else:
                handle_api_error(e, "Erreur lors de l'enregistrement de l'association")
    if s2.button("Annuler"):
        st.session_state.assoc_form = None
        st.rerun()
