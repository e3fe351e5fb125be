from __future__ import annotations

import logging
from enum import Enum
from time import perf_counter
from typing import Any, List

import openai
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_ollama import ChatOllama
from langchain_openai import ChatOpenAI

from src.infra.clients.llm import ChatCompletionRequest
from src.shared.errors import ChatTransportError, ConfigurationError
from src.shared.types import ChatCompletionResponse, ChatMessageDict, TokenUsage


logger = logging.getLogger(__name__)


class LLMProvider(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"
    OLLAMA = "ollama"
    OPENROUTER = "openrouter"


def _to_langchain_messages(messages: List[ChatMessageDict]) -> List[BaseMessage]:
    lc_messages: List[BaseMessage] = []
    for message in messages:
        role = message.get("role")
        content = message.get("content", "")

        if role == "system":
            lc_messages.append(SystemMessage(content=content))
        elif role == "user":
            lc_messages.append(HumanMessage(content=content))
        elif role == "assistant":
            lc_messages.append(AIMessage(content=content))
        else:
            logger.warning("Unknown message role '%s', treating as user", role)
            lc_messages.append(HumanMessage(content=content))

    return lc_messages


def _extract_usage(response: Any) -> TokenUsage | None:
    usage_metadata = getattr(response, "usage_metadata", None)
    if isinstance(usage_metadata, dict):
        return {
            "prompt_tokens": int(usage_metadata.get("input_tokens", 0)),
            "completion_tokens": int(usage_metadata.get("output_tokens", 0)),
            "total_tokens": int(usage_metadata.get("total_tokens", 0)),
        }

    response_metadata = getattr(response, "response_metadata", None)
    if isinstance(response_metadata, dict):
        token_usage = response_metadata.get("token_usage") or response_metadata.get("usage")
        if isinstance(token_usage, dict):
            return {
                key: int(value)
                for key, value in token_usage.items()
                if key in ("prompt_tokens", "completion_tokens", "total_tokens")
                and value is not None
            }  # type: ignore[return-value]
    return None


def _to_transport_error(exc: Exception) -> ChatTransportError | None:
    if isinstance(exc, (openai.APITimeoutError, TimeoutError)):
        return ChatTransportError("Request timed out", timed_out=True)

    if isinstance(exc, openai.APIStatusError):
        body = exc.body if isinstance(exc.body, dict) else {}
        message = body.get("message") if isinstance(body.get("message"), str) else None
        return ChatTransportError(
            f"Chat model request failed: status={exc.status_code}",
            status_code=exc.status_code,
            provider_message=message,
        )

    if isinstance(exc, openai.APIConnectionError):
        return ChatTransportError("Chat model request failed: no response")

    # Non-OpenAI providers (e.g. Ollama) expose the HTTP status directly.
    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int):
        return ChatTransportError(
            f"Chat model request failed: status={status_code}",
            status_code=status_code,
            provider_message=str(exc) or None,
        )
    return None


class LangChainChatTransport:
    """Chat transport that routes requests through a LangChain chat model.

    The provider is fixed at construction; model, key, endpoint and limits
    come from each request snapshot. Responses are adapted to the
    chat-completions shape so the same response decoder applies.
    """

    def __init__(self, provider: str) -> None:
        try:
            self._provider = LLMProvider(provider)
        except ValueError as exc:
            raise ConfigurationError(f"Unsupported LLM provider: {provider}") from exc

    @property
    def provider_name(self) -> str:
        return self._provider.value

    @property
    def requires_api_key(self) -> bool:
        # Ollama serves local models without authentication.
        return self._provider is not LLMProvider.OLLAMA

    def _create_llm(self, request: ChatCompletionRequest) -> BaseChatModel:
        payload = request.payload
        logger.info(
            "Creating LLM: provider=%s, model=%s",
            self._provider.value,
            payload["model"],
        )

        if self._provider is LLMProvider.OPENAI:
            return ChatOpenAI(
                model=payload["model"],
                api_key=request.api_key,
                temperature=payload["temperature"],
                max_tokens=payload["max_tokens"],
                timeout=request.timeout_seconds,
                max_retries=0,
            )
        if self._provider is LLMProvider.OPENROUTER:
            return ChatOpenAI(
                model=payload["model"],
                api_key=request.api_key,
                temperature=payload["temperature"],
                max_tokens=payload["max_tokens"],
                timeout=request.timeout_seconds,
                base_url=request.base_url,
                max_retries=0,
            )
        if self._provider is LLMProvider.GEMINI:
            return ChatGoogleGenerativeAI(
                model=payload["model"],
                api_key=request.api_key,
                temperature=payload["temperature"],
                max_output_tokens=payload["max_tokens"],
                timeout=request.timeout_seconds,
                max_retries=0,
            )
        if self._provider is LLMProvider.OLLAMA:
            return ChatOllama(
                model=payload["model"],
                temperature=payload["temperature"],
                num_predict=payload["max_tokens"],
                base_url=request.base_url,
                request_timeout=request.timeout_seconds,
            )

        raise ConfigurationError(f"Unsupported LLM provider: {self._provider.value}")

    def create_chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        llm = self._create_llm(request)
        lc_messages = _to_langchain_messages(request.payload["messages"])

        try:
            started_at = perf_counter()
            response = llm.invoke(lc_messages)
            elapsed = perf_counter() - started_at
        except Exception as exc:  # noqa: BLE001 - external provider wrapper
            transport_error = _to_transport_error(exc)
            if transport_error is None:
                raise
            raise transport_error from exc

        logger.info(
            "LLM responded: provider=%s, model=%s, elapsed=%.2fs",
            self._provider.value,
            request.model,
            elapsed,
        )

        content = response.content if isinstance(response.content, str) else str(response.content)
        result: ChatCompletionResponse = {
            "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        }
        usage = _extract_usage(response)
        if usage:
            result["usage"] = usage
        return result
