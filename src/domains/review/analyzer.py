from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from src.domains.review.models import ReviewComment, ReviewTemplate
from src.domains.review.parser import parse_review_response
from src.domains.review.prompt import generate_review_messages
from src.infra.clients.llm import ChatCompletionRequest, ChatCompletionTransport
from src.shared.errors import ChatTransportError, LLMError, LLMErrorReason


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LLMConfig:
    api_key: str = ""
    model: str = "gpt-4"
    base_url: str = "https://api.openai.com/v1"
    max_tokens: int = 4000
    temperature: float = 0.1
    timeout_seconds: float = 30.0


def classify_transport_error(error: BaseException) -> LLMError:
    """Map a failure raised before any response body was available onto LLMError."""
    if isinstance(error, LLMError):
        return error

    if isinstance(error, ChatTransportError):
        if error.timed_out:
            return LLMError(LLMErrorReason.TIMEOUT, "Request timed out")

        status = error.status_code
        if status is None:
            return LLMError(LLMErrorReason.API_FAILURE, "Network error")
        if status == 401:
            return LLMError(LLMErrorReason.CONFIGURATION_ERROR, "Invalid API key")
        if status == 429:
            return LLMError(LLMErrorReason.QUOTA_EXCEEDED, "Rate limit exceeded")
        if status >= 500:
            return LLMError(LLMErrorReason.API_FAILURE, f"Server error: {status}")
        return LLMError(LLMErrorReason.API_FAILURE, error.provider_message or f"HTTP {status}")

    if isinstance(error, TimeoutError):
        return LLMError(LLMErrorReason.TIMEOUT, "Request timed out")

    return LLMError(LLMErrorReason.API_FAILURE, str(error) or "Unknown error occurred")


class CodeAnalyzer:
    """Diff + review template -> validated review comments, one attempt per call.

    The analyzer keeps no state besides its configuration. Each call snapshots
    the configuration into an immutable request before touching the network,
    so ``configure``/``update_config`` never affect a call already in flight.
    """

    def __init__(
        self,
        *,
        transport: ChatCompletionTransport,
        config: LLMConfig | None = None,
    ) -> None:
        self._transport = transport
        self._config = config or LLMConfig()

    def configure(self, api_key: str, model: str) -> None:
        self._config = dataclasses.replace(self._config, api_key=api_key, model=model)
        logger.info("LLM configured: model=%s", model)

    def update_config(self, **updates: Any) -> None:
        self._config = dataclasses.replace(self._config, **updates)
        logger.info("LLM config updated: fields=%s", ",".join(sorted(updates)))

    def _requires_api_key(self) -> bool:
        return getattr(self._transport, "requires_api_key", True)

    def is_configured(self) -> bool:
        if self._requires_api_key() and not self._config.api_key:
            return False
        return bool(self._config.model)

    def get_config(self) -> Dict[str, Any]:
        """Current configuration without the API key."""
        config = dataclasses.asdict(self._config)
        config.pop("api_key")
        return config

    def build_request(self, diff: str, template: ReviewTemplate) -> ChatCompletionRequest:
        config = self._config
        return ChatCompletionRequest(
            base_url=config.base_url,
            api_key=config.api_key,
            timeout_seconds=config.timeout_seconds,
            payload={
                "model": config.model,
                "messages": generate_review_messages(diff, template),
                "max_tokens": config.max_tokens,
                "temperature": config.temperature,
            },
        )

    def analyze_code(self, diff: str, template: ReviewTemplate) -> List[ReviewComment]:
        if self._requires_api_key() and not self._config.api_key:
            raise LLMError(LLMErrorReason.CONFIGURATION_ERROR, "API key not configured")

        try:
            request = self.build_request(diff, template)
            try:
                response = self._transport.create_chat_completion(request)
            except LLMError:
                raise
            except Exception as exc:  # noqa: BLE001 - every transport failure is classified
                raise classify_transport_error(exc) from exc

            comments = parse_review_response(response)
        except LLMError as error:
            logger.warning(
                "Code analysis failed: reason=%s, message=%s",
                error.reason.value,
                error.message,
            )
            raise
        except Exception as exc:  # noqa: BLE001 - never leak untagged errors
            logger.exception("Unexpected error during code analysis")
            raise LLMError(
                LLMErrorReason.API_FAILURE,
                str(exc) or "Unknown error occurred",
            ) from exc

        logger.info("Code analysis produced %s comments", len(comments))
        return comments
