from __future__ import annotations

import logging
from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Protocol

import requests

from src.shared.errors import ChatTransportError
from src.shared.types import ChatCompletionPayload


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatCompletionRequest:
    """Immutable snapshot of everything needed for one chat-completions call."""

    base_url: str
    api_key: str
    timeout_seconds: float
    payload: ChatCompletionPayload

    @property
    def model(self) -> str:
        return self.payload["model"]


class ChatCompletionTransport(Protocol):
    requires_api_key: bool

    def create_chat_completion(self, request: ChatCompletionRequest) -> Any:
        """Return the decoded response body or raise ChatTransportError."""


def _extract_provider_message(response: requests.Response | None) -> str | None:
    if response is None:
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    return None


class HTTPChatCompletionsClient:
    """OpenAI-compatible ``/chat/completions`` transport over requests."""

    requires_api_key = True

    def __init__(self, session: requests.Session | None = None) -> None:
        self._session = session or requests.Session()

    @staticmethod
    def _headers(api_key: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }

    def create_chat_completion(self, request: ChatCompletionRequest) -> Any:
        url = f"{request.base_url.rstrip('/')}/chat/completions"
        logger.info("Calling chat completions: model=%s, url=%s", request.model, url)

        started_at = perf_counter()
        try:
            response = self._session.post(
                url,
                headers=self._headers(request.api_key),
                json=request.payload,
                timeout=request.timeout_seconds,
            )
            response.raise_for_status()
        except requests.Timeout as exc:
            raise ChatTransportError("Request timed out", timed_out=True) from exc
        except requests.HTTPError as exc:
            status_code = exc.response.status_code if exc.response is not None else None
            raise ChatTransportError(
                f"Chat completions request failed: status={status_code}",
                status_code=status_code,
                provider_message=_extract_provider_message(exc.response),
            ) from exc
        except requests.RequestException as exc:
            raise ChatTransportError("Chat completions request failed: no response") from exc

        logger.info(
            "Chat completions responded: model=%s, status=%s, elapsed=%.2fs",
            request.model,
            response.status_code,
            perf_counter() - started_at,
        )

        try:
            return response.json()
        except ValueError:
            logger.warning("Chat completions returned a non-JSON body")
            return response.text
