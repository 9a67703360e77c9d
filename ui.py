"""
Streamlit glue shared by the map page and the back-office pages.
"""
import logging
from concurrent.futures import ThreadPoolExecutor

import streamlit as st

from api_client import ApiClient
from auth import AuthService, FileStorage, MemoryStorage
from config import LOG_LEVEL, SESSION_BACKEND, SESSION_FILE
from errors import ApiError, SessionExpiredError
from labels import ROLES

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

LOGIN_PAGE = "pages/1_Connexion.py"

PAGE_CSS = """
<style>
.block-container {
    padding-top: 1rem !important;
    padding-bottom: 1rem !important;
}
.stButton>button {
    background-color: #3b82f6;
    color: white;
    border-radius: 8px;
    border: none;
    font-weight: 600;
}
.stButton>button:hover {
    background-color: #1d4ed8;
}
.maraude-card {
    border-left: 4px solid #3b82f6;
    padding: 0.5rem 0.75rem;
    margin-bottom: 0.5rem;
    border-radius: 6px;
    background-color: #f8fafc;
}
#MainMenu {visibility: hidden;}
@media only screen and (max-width: 768px) {
  .block-container {padding-left:0.5rem;padding-right:0.5rem;}
  iframe {height:350px !important;}
}
</style>
"""


def configure_page(title, layout="wide"):
    st.set_page_config(page_title=title, page_icon="🧭", layout=layout)
    st.markdown(PAGE_CSS, unsafe_allow_html=True)


def _storage():
    if SESSION_BACKEND == "file":
        return FileStorage(SESSION_FILE)
    if "local_storage" not in st.session_state:
        st.session_state.local_storage = {}
    return MemoryStorage(st.session_state.local_storage)


def get_auth() -> AuthService:
    if "auth" not in st.session_state:
        auth = AuthService(_storage())
        auth.session_expired.subscribe(lambda e: logger.warning(f"Session closed: {e}"))
        st.session_state.auth = auth
    return st.session_state.auth


def get_api() -> ApiClient:
    if "api" not in st.session_state:
        st.session_state.api = ApiClient(get_auth())
    return st.session_state.api


def require_login(roles=None):
    auth = get_auth()
    user = auth.get_current_user()
    if not auth.is_logged_in():
        st.warning("Veuillez vous connecter pour accéder à cette page.")
        st.page_link(LOGIN_PAGE, label="Se connecter", icon="🔐")
        st.stop()
    if roles and user.role not in roles:
        st.error("⛔ Accès réservé.")
        st.stop()
    return user


def render_user_badge():
    user = get_auth().get_current_user()
    if user:
        st.caption(f"👤 {user.first_name} {user.last_name} · {ROLES.get(user.role, user.role)}")


def handle_api_error(error, context):
    """Log the failure and surface it; an expired session goes back to the login page."""
    logger.error(f"{context}: {error}")
    if isinstance(error, SessionExpiredError):
        st.session_state.flash = "Votre session a expiré, veuillez vous reconnecter."
        st.switch_page(LOGIN_PAGE)
    st.error(f"❌ {context}: {error.message if isinstance(error, ApiError) else error}")


def fetch_parallel(**calls):
    """
    Run independent fetches concurrently.

    Returns ``(results, errors)`` keyed like ``calls``; a failed fetch only
    lands in ``errors``.
    """
    results, errors = {}, {}
    with ThreadPoolExecutor(max_workers=max(1, len(calls))) as pool:
        futures = {name: pool.submit(call) for name, call in calls.items()}
        for name, future in futures.items():
            try:
                results[name] = future.result()
            except ApiError as e:
                logger.error(f"Error loading {name}: {e}")
                errors[name] = e
    return results, errors
