import json
import re
import time
from typing import Annotated, Any, Callable, Optional

import requests
from fastapi import Depends, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from ..auth.service import require_session
from ..core.exceptions import UpstreamStatusError, UpstreamTimeoutError
from ..core.logging import get_logger
from ..core.settings import Settings, get_settings
from ..models.Chat import ChatMessage, ChatRequest
from ..models.Session import SessionPayload

logger = get_logger(__name__)

API_KEY_HEADER = "x-litellm-api-key"
READ_CHUNK_SIZE = 1

_COMPLETIONS_SUFFIX = re.compile(r"(^|/)(v1/)?chat/completions$")


def resolve_chat_endpoint(url: str) -> str:
    """
    Accepts a proxy base URL (with or without /v1) or a full completions URL.
    """
    base = url.strip().rstrip("/")
    if _COMPLETIONS_SUFFIX.search(base):
        return base
    return f"{base}/chat/completions"


def build_messages(
    system_prompt: Optional[str],
    history: Optional[list[Any]],
    user_message: str,
) -> list[ChatMessage]:
    """
    System prompt first, then well-formed history entries, then the new user turn.
    The user turn is skipped when the last history entry already carries it (resend).
    """
    messages = []
    if system_prompt:
        messages.append(ChatMessage(role="system", content=system_prompt))

    history = history if isinstance(history, list) else []
    for entry in history:
        if isinstance(entry, dict) and isinstance(entry.get("role"), str) and isinstance(entry.get("content"), str):
            messages.append(ChatMessage(role=entry["role"], content=entry["content"]))

    last = history[-1] if history else None
    duplicate_user = (
        isinstance(last, dict)
        and last.get("role") == "user"
        and last.get("content") == user_message
    )
    if not duplicate_user:
        messages.append(ChatMessage(role="user", content=user_message))
    return messages


def _message_content(message: Any) -> str:
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]
    return ""


def extract_assistant(data: Any) -> str:
    """
    Pulls the assistant text out of the upstream body. Shapes it does not
    recognise, including non-string content, yield an empty reply.
    """
    if isinstance(data, str):
        return data
    if not isinstance(data, dict):
        return ""

    choices = data.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        content = _message_content(choices[0].get("message"))
        if content:
            return content

    content = _message_content(data.get("message"))
    if content:
        return content

    assistant = data.get("assistant")
    if isinstance(assistant, str):
        return assistant
    return ""


class ChatProxy:
    """
    Client for the upstream OpenAI-compatible chat endpoint.

    ``timeout`` bounds the whole call, not just each socket read: the body is
    streamed and the deadline is checked between reads, so an upstream that
    keeps trickling bytes still ends in UpstreamTimeoutError.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: Optional[str] = None,
        default_model: str = "gpt-4o-mini",
        timeout: float = 60.0,
        max_tokens: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.endpoint = resolve_chat_endpoint(endpoint)
        self.api_key = api_key
        self.default_model = default_model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChatProxy":
        return cls(
            endpoint=settings.LLMLITE_URL,
            api_key=settings.LLMLITE_API_KEY,
            default_model=settings.LLMLITE_MODEL,
            timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
            max_tokens=settings.UPSTREAM_MAX_TOKENS,
        )

    def choose_model(self, model: Optional[str]) -> str:
        return model or self.default_model

    def build_payload(self, messages: list[ChatMessage], model: str) -> dict[str, Any]:
        return {
            "model": model,
            "messages": [m.model_dump() for m in messages],
            "max_tokens": self.max_tokens,
        }

    def _timed_out(self) -> UpstreamTimeoutError:
        logger.warning("upstream_timeout", endpoint=self.endpoint, timeout=self.timeout)
        return UpstreamTimeoutError(self.timeout)

    def _read_body(self, resp: requests.Response, deadline: float) -> bytes:
        body = bytearray()
        # Single-byte reads return as soon as any data arrives, so the deadline is checked on every read
        try:
            for chunk in resp.iter_content(chunk_size=READ_CHUNK_SIZE):
                body.extend(chunk)
                if self._clock() > deadline:
                    raise self._timed_out()
        except requests.exceptions.ConnectionError:
            # requests reports a read timeout while streaming as a ConnectionError
            if self._clock() > deadline:
                raise self._timed_out()
            raise
        return bytes(body)

    def complete(self, messages: list[ChatMessage], model: str) -> Any:
        """
        Sends one completion request and returns the decoded JSON body.

        Raises UpstreamTimeoutError when the overall deadline passes and
        UpstreamStatusError on a non-2xx response.
        """
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers[API_KEY_HEADER] = self.api_key

        deadline = self._clock() + self.timeout
        try:
            resp = requests.post(
                self.endpoint,
                json=self.build_payload(messages, model),
                headers=headers,
                timeout=self.timeout,
                stream=True,
            )
            try:
                if self._clock() > deadline:
                    raise self._timed_out()
                body = self._read_body(resp, deadline)
            finally:
                resp.close()
        except requests.exceptions.Timeout:
            raise self._timed_out()

        if not resp.ok:
            content_type = resp.headers.get("content-type", "")
            text = body.decode(resp.encoding or "utf-8", errors="replace")
            details = text
            if "application/json" in content_type:
                try:
                    details = json.loads(text)
                except ValueError:
                    pass
            logger.warning("upstream_error", endpoint=self.endpoint, status=resp.status_code)
            raise UpstreamStatusError(resp.status_code, details)

        return json.loads(body)


def get_chat_proxy(settings: Settings = Depends(get_settings)) -> ChatProxy:
    return ChatProxy.from_settings(settings)


async def read_chat_request(
    request: Request,
    session: Annotated[SessionPayload, Depends(require_session)],
) -> ChatRequest:
    """
    Parses the /chat body only once the session gate has passed, so an
    unauthenticated caller gets 401 even when the body is not valid JSON.
    """
    try:
        return ChatRequest.model_validate_json(await request.body())
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False))
