from __future__ import annotations

import os
from dataclasses import dataclass

from src.shared.errors import ConfigurationError


SUPPORTED_LLM_TRANSPORTS = {"http", "langchain"}
SUPPORTED_LLM_PROVIDERS = {"openai", "gemini", "ollama", "openrouter"}


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _get_optional_str(name: str) -> str | None:
    return _clean_optional(os.environ.get(name))


def _get_int(name: str, default: int, *, min_value: int | None = None) -> int:
    raw = _clean_optional(os.environ.get(name))
    if raw is None:
        value = default
    else:
        try:
            value = int(raw)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid integer for {name}: {raw}") from exc

    if min_value is not None and value < min_value:
        raise ConfigurationError(f"{name} must be >= {min_value}")
    return value


def _get_float(name: str, default: float, *, min_value: float | None = None) -> float:
    raw = _clean_optional(os.environ.get(name))
    if raw is None:
        value = default
    else:
        try:
            value = float(raw)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid float for {name}: {raw}") from exc

    if min_value is not None and value < min_value:
        raise ConfigurationError(f"{name} must be >= {min_value}")
    return value


@dataclass(frozen=True)
class AppSettings:
    log_level: str
    admin_token: str | None

    github_api_url: str
    github_request_timeout_seconds: float

    llm_transport: str
    llm_provider: str
    llm_api_key: str | None
    llm_model: str
    llm_base_url: str
    llm_max_tokens: int
    llm_temperature: float
    llm_timeout_seconds: float

    cache_default_ttl_seconds: float
    cache_max_size: int

    review_max_retries: int
    review_retry_base_delay_seconds: float
    review_retry_max_delay_seconds: float

    @classmethod
    def from_env(cls) -> "AppSettings":
        transport = (_get_optional_str("LLM_TRANSPORT") or "http").lower()
        if transport not in SUPPORTED_LLM_TRANSPORTS:
            raise ConfigurationError(f"Unsupported LLM_TRANSPORT: {transport}")

        provider = (_get_optional_str("LLM_PROVIDER") or "openai").lower()
        if provider not in SUPPORTED_LLM_PROVIDERS:
            raise ConfigurationError(f"Unsupported LLM_PROVIDER: {provider}")

        settings = cls(
            log_level=(_get_optional_str("LOG_LEVEL") or "INFO").upper(),
            admin_token=_get_optional_str("ADMIN_TOKEN"),
            github_api_url=_get_optional_str("GITHUB_API_URL") or "https://api.github.com",
            github_request_timeout_seconds=_get_float(
                "GITHUB_REQUEST_TIMEOUT_SECONDS", 10.0, min_value=0.001
            ),
            llm_transport=transport,
            llm_provider=provider,
            llm_api_key=_get_optional_str("LLM_API_KEY"),
            llm_model=_get_optional_str("LLM_MODEL") or "gpt-4",
            llm_base_url=_get_optional_str("LLM_BASE_URL") or "https://api.openai.com/v1",
            llm_max_tokens=_get_int("LLM_MAX_TOKENS", 4000, min_value=1),
            llm_temperature=_get_float("LLM_TEMPERATURE", 0.1, min_value=0.0),
            llm_timeout_seconds=_get_float("LLM_TIMEOUT_SECONDS", 30.0, min_value=0.001),
            cache_default_ttl_seconds=_get_float("CACHE_DEFAULT_TTL_SECONDS", 300.0, min_value=0.0),
            cache_max_size=_get_int("CACHE_MAX_SIZE", 200, min_value=1),
            review_max_retries=_get_int("REVIEW_MAX_RETRIES", 3, min_value=0),
            review_retry_base_delay_seconds=_get_float(
                "REVIEW_RETRY_BASE_DELAY_SECONDS", 1.0, min_value=0.0
            ),
            review_retry_max_delay_seconds=_get_float(
                "REVIEW_RETRY_MAX_DELAY_SECONDS", 10.0, min_value=0.0
            ),
        )

        if settings.review_retry_max_delay_seconds < settings.review_retry_base_delay_seconds:
            raise ConfigurationError(
                "REVIEW_RETRY_MAX_DELAY_SECONDS must be >= REVIEW_RETRY_BASE_DELAY_SECONDS"
            )

        return settings
