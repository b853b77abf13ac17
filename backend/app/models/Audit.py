from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class AuditEventType(str, Enum):
    LOGIN = "login"
    LOGOUT = "logout"
    CHAT = "chat"
    CHAT_ERROR = "chat_error"
    AUTH_REQUIRED = "auth_required"


# Payload fields are left out of the serialized record when unset
OPTIONAL_PAYLOAD_FIELDS = (
    "duration_ms",
    "upstream_status",
    "endpoint",
    "model",
    "user_message",
    "assistant",
    "messages_json",
    "request_json",
    "response_json",
    "error_json",
)


class AuditRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    # Identity (assigned by the log when omitted)
    id: Optional[str] = None
    timestamp: Optional[str] = None

    # Classification
    event_type: AuditEventType
    ok: bool

    # Context
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    path: Optional[str] = None
    method: Optional[str] = None

    # Payload
    duration_ms: Optional[int] = None
    upstream_status: Optional[int] = None
    endpoint: Optional[str] = None
    model: Optional[str] = None
    user_message: Optional[str] = None
    assistant: Optional[str] = None
    messages_json: Optional[str] = None
    request_json: Optional[str] = None
    response_json: Optional[str] = None
    error_json: Optional[str] = None

    def to_document(self) -> dict[str, Any]:
        """
        JSON-ready dict with camelCase keys, as written to disk.
        """
        document = self.model_dump(mode="json", by_alias=True)
        for field in OPTIONAL_PAYLOAD_FIELDS:
            alias = to_camel(field)
            if document.get(alias) is None:
                document.pop(alias, None)
        return document
