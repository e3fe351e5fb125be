from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConfigurationError(ValueError):
    """Raised when required application settings are missing or invalid."""


class LLMErrorReason(str, Enum):
    CONFIGURATION_ERROR = "configuration_error"
    TIMEOUT = "timeout"
    QUOTA_EXCEEDED = "quota_exceeded"
    API_FAILURE = "api_failure"
    INVALID_RESPONSE = "invalid_response"


class LLMError(RuntimeError):
    """Tagged failure of a single code analysis call.

    Every exit path of the analysis pipeline ends in one of these. The
    ``reason`` tag is the only thing callers should branch on.
    """

    type = "llm"

    def __init__(self, reason: LLMErrorReason | str, message: str) -> None:
        super().__init__(message)
        self.reason = LLMErrorReason(reason)
        self.code = f"LLM_{self.reason.value.upper()}"
        self.message = message
        self.timestamp = _now_iso()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "code": self.code,
            "message": self.message,
            "reason": self.reason.value,
            "timestamp": self.timestamp,
        }


class ChatTransportError(RuntimeError):
    """Raised by chat transports when no response body could be obtained."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        provider_message: str | None = None,
        timed_out: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.provider_message = provider_message
        self.timed_out = timed_out


class SourceControlErrorReason(str, Enum):
    INVALID_TOKEN = "invalid_token"
    INSUFFICIENT_PERMISSIONS = "insufficient_permissions"
    RATE_LIMIT = "rate_limit"
    NOT_FOUND = "not_found"
    NETWORK_ERROR = "network_error"
    SERVER_ERROR = "server_error"


class SourceControlAPIError(RuntimeError):
    """Raised when source-control API requests fail or return invalid payloads."""

    type = "api"

    def __init__(
        self,
        reason: SourceControlErrorReason | str,
        message: str,
        *,
        status: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = SourceControlErrorReason(reason)
        self.code = f"API_{self.reason.value.upper()}"
        self.message = message
        self.status = status
        self.retry_after = retry_after
        self.timestamp = _now_iso()

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": self.type,
            "code": self.code,
            "message": self.message,
            "reason": self.reason.value,
            "timestamp": self.timestamp,
        }
        if self.status is not None:
            payload["status"] = self.status
        if self.retry_after is not None:
            payload["retry_after"] = self.retry_after
        return payload
