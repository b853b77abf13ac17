from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from ..audit.service import AuditLog, error_snapshot, get_audit_log, record_event, to_audit_json
from ..core.crypto import SessionTokenCodec
from ..core.exceptions import ConfigurationError
from ..core.logging import get_logger
from ..core.settings import Settings, get_settings
from ..models.Audit import AuditEventType
from ..models.Session import LoginRequest, SessionPayload, SessionUserResponse
from .service import (
    authenticate_login,
    clean_user_id,
    clear_session_cookie,
    get_current_session,
    get_logout_session,
    set_session_cookie,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=SessionUserResponse)
async def login(
    login_data: LoginRequest,
    request: Request,
    response: Response,
    settings: Settings = Depends(get_settings),
    audit_log: AuditLog = Depends(get_audit_log),
):
    """
    Login with a user id label and the shared password to get a session cookie.
    """
    if login_data.user_id is None or login_data.password is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="userId and password required")

    user_id = clean_user_id(login_data.user_id)

    try:
        ok = authenticate_login(login_data.user_id, login_data.password, settings.AUTH_PASSWORD)
        codec = SessionTokenCodec(settings.SESSION_SECRET) if ok else None
    except ConfigurationError as e:
        logger.error("login_misconfigured", error=str(e))
        record_event(
            audit_log, request, AuditEventType.LOGIN, ok=False,
            user_id=user_id or None,
            error_json=error_snapshot(e),
        )
        raise

    if codec is None:
        logger.info("login_failed", user_id=user_id)
        record_event(
            audit_log, request, AuditEventType.LOGIN, ok=False,
            user_id=user_id or None,
            error_json=to_audit_json({"message": "Invalid credentials"}),
        )
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    token = codec.mint(user_id, settings.SESSION_TTL_SECONDS)
    session = codec.verify(token)
    set_session_cookie(response, settings, token)
    logger.info("login_succeeded", user_id=user_id)
    record_event(
        audit_log, request, AuditEventType.LOGIN, ok=True,
        user_id=user_id,
        session_id=session.session_id if session else None,
    )
    return SessionUserResponse(user_id=user_id)


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    session: Annotated[Optional[SessionPayload], Depends(get_logout_session)],
    settings: Settings = Depends(get_settings),
    audit_log: AuditLog = Depends(get_audit_log),
):
    """
    Clear the session cookie. The token itself stays valid until it expires.
    """
    clear_session_cookie(response, settings)
    record_event(
        audit_log, request, AuditEventType.LOGOUT, ok=True,
        user_id=session.user_id if session else None,
        session_id=session.session_id if session else None,
    )
    return {"ok": True}


@router.get("/me", response_model=SessionUserResponse)
async def read_me(session: Annotated[Optional[SessionPayload], Depends(get_current_session)]):
    """
    Return the user id bound to the current session.
    """
    if session is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return SessionUserResponse(user_id=session.user_id)
