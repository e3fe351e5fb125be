from __future__ import annotations

import logging

from dotenv import load_dotenv
from flask import Flask

from src.app.config import AppSettings
from src.app.routes import register_review_routes
from src.domains.review.analyzer import CodeAnalyzer, LLMConfig
from src.domains.review.service import ReviewService
from src.domains.source_control.reads import CachedSourceControlReads
from src.infra.cache.request_cache import CacheOptions, RequestCache
from src.infra.clients.github import GitHubClient, GitHubClientConfig
from src.infra.clients.langchain_llm import LangChainChatTransport
from src.infra.clients.llm import ChatCompletionTransport, HTTPChatCompletionsClient
from src.shared.retry import RetryPolicy


logger = logging.getLogger(__name__)


def _setup_logging(log_level_name: str) -> None:
    level = getattr(logging, log_level_name.upper(), None)
    if not isinstance(level, int):
        level = logging.INFO
        logging.basicConfig(level=level)
        logging.getLogger(__name__).warning(
            "Invalid LOG_LEVEL '%s', defaulting to INFO",
            log_level_name,
        )
        return

    logging.basicConfig(level=level)


def _create_transport(settings: AppSettings) -> ChatCompletionTransport:
    if settings.llm_transport == "langchain":
        return LangChainChatTransport(settings.llm_provider)
    return HTTPChatCompletionsClient()


def create_app(settings: AppSettings | None = None) -> Flask:
    settings = settings or AppSettings.from_env()
    _setup_logging(settings.log_level)

    cache = RequestCache(
        CacheOptions(
            default_ttl=settings.cache_default_ttl_seconds,
            max_size=settings.cache_max_size,
        )
    )
    github_client = GitHubClient(
        GitHubClientConfig(
            api_base_url=settings.github_api_url,
            timeout_seconds=settings.github_request_timeout_seconds,
        )
    )
    reads = CachedSourceControlReads(client=github_client, cache=cache)

    analyzer = CodeAnalyzer(
        transport=_create_transport(settings),
        config=LLMConfig(
            api_key=settings.llm_api_key or "",
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
            timeout_seconds=settings.llm_timeout_seconds,
        ),
    )
    if not analyzer.is_configured():
        logger.warning("LLM_API_KEY is not set; reviews will fail until an API key is configured")

    review_service = ReviewService(
        reads=reads,
        client=github_client,
        analyzer=analyzer,
        retry_policy=RetryPolicy(
            max_retries=settings.review_max_retries,
            base_delay_seconds=settings.review_retry_base_delay_seconds,
            max_delay_seconds=settings.review_retry_max_delay_seconds,
        ),
    )

    app = Flask(__name__)
    register_review_routes(
        app,
        review_service=review_service,
        analyzer=analyzer,
        reads=reads,
        cache=cache,
        admin_token=settings.admin_token,
    )
    return app


if __name__ == "__main__":
    load_dotenv(override=False)
    create_app().run(host="0.0.0.0", port=9655)
