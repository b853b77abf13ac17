import unicodedata
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, Response, status

from ..audit.service import AuditLog, get_audit_log, record_event
from ..core.crypto import SessionTokenCodec
from ..core.exceptions import ConfigurationError
from ..core.logging import get_logger
from ..core.settings import Settings, get_settings
from ..models.Audit import AuditEventType
from ..models.Session import SessionPayload

logger = get_logger(__name__)

MAX_USER_ID_LENGTH = 128


def _normalize(value: str) -> str:
    return unicodedata.normalize("NFKC", value)


def clean_user_id(user_id: str) -> str:
    return user_id.strip()


def authenticate_login(user_id: str, password: str, expected_password: Optional[str]) -> bool:
    """
    Checks the shared password and the self-asserted user id label.

    The password comparison is a plain equality after NFKC normalization, not a
    constant-time compare. The shared password is treated as a low-value secret;
    see DESIGN.md before changing this.
    """
    if not expected_password:
        raise ConfigurationError("AUTH_PASSWORD is not set")

    if _normalize(password) != _normalize(expected_password):
        return False

    cleaned = clean_user_id(user_id)
    if not cleaned:
        return False
    if len(cleaned) > MAX_USER_ID_LENGTH:
        return False
    return True


def get_token_codec(settings: Settings = Depends(get_settings)) -> SessionTokenCodec:
    return SessionTokenCodec(settings.SESSION_SECRET)


def set_session_cookie(response: Response, settings: Settings, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_TTL_SECONDS,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value="",
        max_age=0,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )


def get_current_session(
    request: Request,
    codec: Annotated[SessionTokenCodec, Depends(get_token_codec)],
    settings: Settings = Depends(get_settings),
) -> Optional[SessionPayload]:
    """
    Verifies the session cookie. Returns None when it is absent or invalid.
    """
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    return codec.verify(token)


def get_logout_session(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> Optional[SessionPayload]:
    """
    Session lookup for logout. A missing SESSION_SECRET reads as no session,
    so logout still clears the cookie and answers 200.
    """
    try:
        codec = SessionTokenCodec(settings.SESSION_SECRET)
    except ConfigurationError as e:
        logger.warning("logout_without_secret", error=str(e))
        return None
    return codec.verify(request.cookies.get(settings.SESSION_COOKIE_NAME))


async def require_session(
    request: Request,
    session: Annotated[Optional[SessionPayload], Depends(get_current_session)],
    audit_log: AuditLog = Depends(get_audit_log),
) -> SessionPayload:
    """
    Gate for protected endpoints. Runs before the endpoint body, so an
    unauthenticated caller never triggers any upstream work.
    """
    if session is None:
        record_event(audit_log, request, AuditEventType.AUTH_REQUIRED, ok=False)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return session

