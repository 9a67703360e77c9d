import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# ─────────────── Backend ───────────────
API_BASE_URL = os.getenv("MARAUDE_API_URL", "http://localhost:3000/api").rstrip("/")
REQUEST_TIMEOUT = float(os.getenv("MARAUDE_REQUEST_TIMEOUT", 15))

# ─────────────── Session storage ───────────────
SESSION_FILE = Path(os.getenv("MARAUDE_SESSION_FILE", Path.home() / ".maraude" / "session.json"))
TOKEN_KEY = "maraude_token"
USER_KEY = "maraude_user"

# ─────────────── Geocoding ───────────────
NOMINATIM_USER_AGENT = os.getenv("NOMINATIM_USER_AGENT", "maraude_map")
NOMINATIM_TIMEOUT = int(os.getenv("NOMINATIM_TIMEOUT", 5))

# ─────────────── Map ───────────────
DEFAULT_CENTER = [44.8378, -0.5792]  # Bordeaux
DEFAULT_ZOOM = 12
FORM_DEFAULT_CENTER = [46.603354, 1.888334]  # centre of France

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# "session" keeps the token in the Streamlit session, "file" persists it in SESSION_FILE
SESSION_BACKEND = os.getenv("MARAUDE_SESSION_BACKEND", "session").lower()
