import requests
from typing import Any, Optional, Tuple

from .config import BASE_URL, SESSION_COOKIE_NAME

# Chat turns wait on the upstream model, which the backend bounds at 60s
CHAT_TIMEOUT = 75


def _cookies(token: Optional[str]) -> dict:
    return {SESSION_COOKIE_NAME: token} if token else {}


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {resp.status_code}"


def api_login(user_id: str, password: str) -> Optional[str]:
    """
    Faz login no backend e devolve o cookie de sessão.
    """
    url = f"{BASE_URL}/auth/login"
    data = {"userId": user_id, "password": password}

    try:
        resp = requests.post(url, json=data, timeout=5)
    except requests.RequestException:
        return None
    if resp.status_code != 200:
        return None
    return resp.cookies.get(SESSION_COOKIE_NAME)


def api_logout(token: str) -> bool:
    """
    Faz logout no backend (o servidor regista o evento e limpa o cookie).
    """
    url = f"{BASE_URL}/auth/logout"

    try:
        resp = requests.post(url, cookies=_cookies(token), timeout=5)
    except requests.RequestException:
        return False
    return resp.status_code == 200


def api_me(token: str) -> Optional[str]:
    """
    Devolve o userId da sessão, ou None se o token for inválido ou tiver expirado.
    """
    url = f"{BASE_URL}/auth/me"

    try:
        resp = requests.get(url, cookies=_cookies(token), timeout=5)
    except requests.RequestException:
        return None
    if resp.status_code != 200:
        return None
    return resp.json().get("userId")


def api_chat(
    token: str,
    user_message: str,
    system_prompt: Optional[str] = None,
    history: Optional[list] = None,
    model: Optional[str] = None,
) -> Tuple[Optional[str], Optional[str]]:
    """
    Envia um turno de conversa.
    Retorna (assistant, None) em sucesso ou (None, mensagem de erro).
    """
    url = f"{BASE_URL}/chat"
    data: dict[str, Any] = {"userMessage": user_message}
    if system_prompt:
        data["systemPrompt"] = system_prompt
    if history:
        data["history"] = history
    if model:
        data["model"] = model

    try:
        resp = requests.post(url, json=data, cookies=_cookies(token), timeout=CHAT_TIMEOUT)
    except requests.RequestException as e:
        return None, str(e)
    if resp.status_code != 200:
        return None, _error_message(resp)
    return resp.json().get("assistant", ""), None
