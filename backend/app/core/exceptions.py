from typing import Any


class ConfigurationError(RuntimeError):
    """Process misconfiguration (missing secret or password). Never retried."""


class UpstreamError(Exception):
    """Base class for failures talking to the upstream chat proxy."""


class UpstreamTimeoutError(UpstreamError):
    def __init__(self, timeout: float):
        super().__init__(f"Upstream request timed out after {timeout}s")
        self.timeout = timeout


class UpstreamStatusError(UpstreamError):
    def __init__(self, status: int, details: Any):
        super().__init__(f"Upstream returned status {status}")
        self.status = status
        self.details = details
