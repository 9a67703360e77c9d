import logging

import streamlit as st

from errors import ApiError
from ui import configure_page, get_api, get_auth

logger = logging.getLogger(__name__)

configure_page("Connexion", layout="centered")

auth = get_auth()

if st.session_state.get("flash"):
    st.warning(st.session_state.pop("flash"))

st.title("🔐 Connexion")

if auth.is_logged_in():
    user = auth.get_current_user()
    st.success(f"✅ Connecté en tant que {user.first_name} {user.last_name} ({user.email})")
    if st.button("🚪 Se déconnecter"):
        auth.logout()
        st.rerun()
    st.stop()

login_tab, register_tab = st.tabs(["Se connecter", "Créer un compte"])

with login_tab:
    with st.form("login_form"):
        email = st.text_input("Email", max_chars=100)
        password = st.text_input("Mot de passe", type="password")
        submitted = st.form_submit_button("Se connecter")

    if submitted:
        if not email or not password:
            st.warning("Veuillez remplir tous les champs")
        else:
            try:
                auth.login(email, password)
                st.switch_page("pages/2_Tableau_de_bord.py")
            except ApiError as e:
                logger.error(f"Login failed for {email}: {e}")
                st.error(f"❌ {e.message or 'Erreur de connexion'}")

with register_tab:
    try:
        associations = get_api().list_associations(limit=100).items
    except ApiError as e:
        logger.error(f"Error loading associations: {e}")
        associations = []

    with st.form("register_form"):
        first_name = st.text_input("Prénom")
        last_name = st.text_input("Nom")
        reg_email = st.text_input("Email ", max_chars=100)
        reg_password = st.text_input("Mot de passe ", type="password")
        association = st.selectbox(
            "Association",
            associations,
            format_func=lambda a: a.name,
            index=None,
            placeholder="Choisir une association",
        )
        register = st.form_submit_button("Créer mon compte")

    if register:
        if not (first_name and last_name and reg_email and reg_password and association):
            st.warning("Veuillez remplir tous les champs")
        else:
            try:
                auth.register({
                    "firstName": first_name,
                    "lastName": last_name,
                    "email": reg_email,
                    "password": reg_password,
                    "associationId": association.id,
                })
                st.switch_page("pages/2_Tableau_de_bord.py")
            except ApiError as e:
                logger.error(f"Registration failed for {reg_email}: {e}")
                st.error(f"❌ {e.message}")
