# cli/core/session.py
import json
from typing import Optional

from .config import SESSION_FILE


def save_token(session_token: str, user_id: Optional[str] = None) -> None:
    """
    Guarda o cookie de sessão num ficheiro JSON (SESSION_FILE).
    """
    SESSION_FILE.parent.mkdir(parents=True, exist_ok=True)
    data = {"session_token": session_token, "user_id": user_id}
    with open(SESSION_FILE, "w", encoding="utf-8") as f:
        json.dump(data, f)


def _load_session() -> dict:
    if not SESSION_FILE.exists():
        return {}

    try:
        with open(SESSION_FILE, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        # Se der erro a ler o ficheiro, consideramos que não há sessão válida
        return {}
    return data if isinstance(data, dict) else {}


def load_token() -> Optional[str]:
    """
    Lê o cookie de sessão. Devolve None se o ficheiro não existir ou estiver inválido.
    """
    return _load_session().get("session_token")


def load_user_id() -> Optional[str]:
    return _load_session().get("user_id")


def is_logged_in() -> bool:
    return load_token() is not None


def clear_token() -> None:
    """
    Apaga o ficheiro de sessão, terminando a sessão local.
    """
    if SESSION_FILE.exists():
        SESSION_FILE.unlink()
