import time

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from ..audit.service import AuditLog, error_snapshot, get_audit_log, record_event, to_audit_json
from ..auth.service import require_session
from ..core.exceptions import UpstreamStatusError, UpstreamTimeoutError
from ..core.logging import get_logger
from ..models.Audit import AuditEventType
from ..models.Chat import ChatRequest, ChatResponse
from ..models.Session import SessionPayload
from .service import ChatProxy, build_messages, extract_assistant, get_chat_proxy, read_chat_request

logger = get_logger(__name__)

router = APIRouter(tags=["chat"])


@router.post("/chat", response_model=ChatResponse)
def chat(
    request: Request,
    session: SessionPayload = Depends(require_session),
    chat_data: ChatRequest = Depends(read_chat_request),
    proxy: ChatProxy = Depends(get_chat_proxy),
    audit_log: AuditLog = Depends(get_audit_log),
):
    """
    Forward one conversation turn to the upstream chat proxy.
    """
    if not chat_data.user_message:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="userMessage required")

    messages = build_messages(chat_data.system_prompt, chat_data.history, chat_data.user_message)
    model = proxy.choose_model(chat_data.model)
    messages_snapshot = [m.model_dump() for m in messages]
    audit_fields = dict(
        user_id=session.user_id,
        session_id=session.session_id,
        endpoint=proxy.endpoint,
        model=model,
        user_message=chat_data.user_message,
        messages_json=to_audit_json(messages_snapshot),
        request_json=to_audit_json({
            "systemPrompt": chat_data.system_prompt,
            "historyCount": len(chat_data.history) if isinstance(chat_data.history, list) else 0,
            "userMessage": chat_data.user_message,
            "messages": messages_snapshot,
        }),
    )

    start = time.monotonic()
    try:
        data = proxy.complete(messages, model)
        assistant = extract_assistant(data)
    except UpstreamStatusError as e:
        record_event(
            audit_log, request, AuditEventType.CHAT, ok=False,
            duration_ms=int((time.monotonic() - start) * 1000),
            upstream_status=e.status,
            response_json=to_audit_json(e.details),
            **audit_fields,
        )
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"error": "Upstream error", "status": e.status, "details": e.details},
        )
    except UpstreamTimeoutError as e:
        record_event(
            audit_log, request, AuditEventType.CHAT_ERROR, ok=False,
            duration_ms=int((time.monotonic() - start) * 1000),
            error_json=error_snapshot(e),
            **audit_fields,
        )
        return JSONResponse(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            content={"error": "Upstream request timed out"},
        )
    except Exception as e:
        logger.exception("chat_failed", user_id=session.user_id)
        record_event(
            audit_log, request, AuditEventType.CHAT_ERROR, ok=False,
            duration_ms=int((time.monotonic() - start) * 1000),
            error_json=error_snapshot(e),
            **audit_fields,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(e) or "Unknown error"},
        )

    record_event(
        audit_log, request, AuditEventType.CHAT, ok=True,
        duration_ms=int((time.monotonic() - start) * 1000),
        assistant=assistant,
        response_json=to_audit_json(data),
        **audit_fields,
    )
    return ChatResponse(assistant=assistant)
