import base64
import binascii
import json
import math
import time
import uuid
from typing import Any, Callable, Optional

from cryptography.hazmat.primitives import constant_time, hashes, hmac

from .exceptions import ConfigurationError
from ..models.Session import SessionPayload

DEFAULT_SESSION_TTL_SECONDS = 60 * 60 * 12


def base64url_encode(data: bytes) -> str:
    """
    URL-safe base64 without padding.
    """
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def base64url_decode(data: str) -> bytes:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


class SessionTokenCodec:
    """
    Mints and verifies stateless session tokens of the form ``payload.signature``.

    The payload is compact JSON encoded as unpadded base64url and the signature is
    HMAC-SHA256 over that encoded segment, also base64url. Nothing is stored
    server-side; a token stays valid until its ``exp`` passes.
    """

    SEPARATOR = "."

    def __init__(self, secret: Optional[str], clock: Callable[[], float] = time.time):
        if not secret:
            raise ConfigurationError("SESSION_SECRET is not set")
        self._secret = secret.encode("utf-8")
        self._clock = clock

    def _signature(self, payload_segment: str) -> str:
        h = hmac.HMAC(self._secret, hashes.SHA256())
        h.update(payload_segment.encode("ascii"))
        return base64url_encode(h.finalize())

    def sign_payload(self, payload: dict[str, Any]) -> str:
        payload_segment = base64url_encode(
            json.dumps(payload, separators=(",", ":")).encode("utf-8")
        )
        return f"{payload_segment}{self.SEPARATOR}{self._signature(payload_segment)}"

    def mint(self, user_id: str, ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS) -> str:
        now = int(self._clock())
        payload = SessionPayload(
            session_id=str(uuid.uuid4()),
            user_id=user_id,
            iat=now,
            exp=now + ttl_seconds,
        )
        return self.sign_payload(payload.model_dump(by_alias=True))

    def verify(self, token: Optional[str]) -> Optional[SessionPayload]:
        """
        Returns the decoded payload, or None for any malformed, forged or expired token.
        """
        if not token:
            return None

        parts = token.split(self.SEPARATOR)
        if len(parts) != 2:
            return None
        payload_segment, signature = parts

        try:
            expected = self._signature(payload_segment)
        except UnicodeEncodeError:
            return None
        # Compare the canonical encodings so that base64 aliases of the same bytes are rejected
        if not constant_time.bytes_eq(signature.encode("utf-8"), expected.encode("ascii")):
            return None

        try:
            data = json.loads(base64url_decode(payload_segment).decode("utf-8"))
        except (binascii.Error, ValueError):
            return None
        if not isinstance(data, dict):
            return None

        session_id = data.get("sessionId")
        user_id = data.get("userId")
        exp = data.get("exp")
        if not isinstance(session_id, str) or not session_id:
            return None
        if not isinstance(user_id, str) or not user_id:
            return None
        if isinstance(exp, bool) or not isinstance(exp, (int, float)) or not math.isfinite(exp):
            return None
        if exp <= self._clock():
            return None

        iat = data.get("iat")
        if isinstance(iat, bool) or not isinstance(iat, (int, float)) or not math.isfinite(iat):
            iat = 0
        return SessionPayload(session_id=session_id, user_id=user_id, iat=int(iat), exp=int(exp))
