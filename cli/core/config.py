# cli/core/config.py
from pathlib import Path
import os

# URL do backend FastAPI
BASE_URL = os.environ.get("PSIM_URL", "http://localhost:8000")

# Session cookie name set by the backend on login
SESSION_COOKIE_NAME = os.environ.get("PSIM_SESSION_COOKIE", "psim_session")

# Local audit directory read by the `audit` commands (same default as the backend)
AUDIT_LOG_DIR = os.environ.get("AUDIT_LOG_DIR", "logs")

# Pasta onde a CLI vai guardar dados locais (cookie de sessão)
APP_DIR = Path.home() / ".psim"

# Ficheiro onde vamos guardar o token de sessão
SESSION_FILE = APP_DIR / "session.json"
