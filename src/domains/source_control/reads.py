from __future__ import annotations

import logging
from typing import Any, Dict, List, Protocol

from src.infra.cache.keys import (
    PULL_REQUEST_DIFF_TTL_SECONDS,
    PULL_REQUESTS_TTL_SECONDS,
    REPOSITORIES_TTL_SECONDS,
    REPOSITORY_ACCESS_TTL_SECONDS,
    USER_TTL_SECONDS,
    CacheInvalidation,
    pull_request_diff_key,
    pull_request_key,
    pull_requests_key,
    repositories_key,
    repository_access_key,
    user_key,
)
from src.infra.cache.request_cache import RequestCache
from src.shared.types import GitHubUser, PullRequest, Repository


logger = logging.getLogger(__name__)


class SourceControlClient(Protocol):
    def get_authenticated_user(self, token: str) -> GitHubUser: ...

    def list_repositories(self, token: str) -> List[Repository]: ...

    def get_repository(self, token: str, repo: str) -> Repository: ...

    def list_pull_requests(self, token: str, repo: str) -> List[PullRequest]: ...

    def get_pull_request(self, token: str, repo: str, pr_number: int) -> PullRequest: ...

    def get_pull_request_diff(self, token: str, repo: str, pr_number: int) -> str: ...

    def create_review(self, token: str, repo: str, pr_number: int, body: str) -> Dict[str, Any]: ...


class CachedSourceControlReads:
    """Source-control reads memoized through a RequestCache.

    Wrapping happens at each call site; keys and TTLs come from
    ``src.infra.cache.keys`` so invalidation targets the same entries.
    Pull request entries are keyed by repository only, so every read of them
    first resolves the repository under a token-scoped key. A token without
    access fails there and never sees another token's cached data.
    """

    def __init__(self, *, client: SourceControlClient, cache: RequestCache) -> None:
        self._client = client
        self._cache = cache
        self._invalidation = CacheInvalidation(cache)

    def get_user(self, token: str) -> GitHubUser:
        return self._cache.get_or_set(
            user_key(token),
            lambda: self._client.get_authenticated_user(token),
            USER_TTL_SECONDS,
        )

    def get_repositories(self, token: str) -> List[Repository]:
        return self._cache.get_or_set(
            repositories_key(token),
            lambda: self._client.list_repositories(token),
            REPOSITORIES_TTL_SECONDS,
        )

    def get_repository(self, token: str, repo: str) -> Repository:
        return self._cache.get_or_set(
            repository_access_key(token, repo),
            lambda: self._client.get_repository(token, repo),
            REPOSITORY_ACCESS_TTL_SECONDS,
        )

    def get_pull_requests(self, token: str, repo: str) -> List[PullRequest]:
        self.get_repository(token, repo)
        return self._cache.get_or_set(
            pull_requests_key(repo),
            lambda: self._client.list_pull_requests(token, repo),
            PULL_REQUESTS_TTL_SECONDS,
        )

    def get_pull_request(self, token: str, repo: str, pr_number: int) -> PullRequest:
        self.get_repository(token, repo)
        return self._cache.get_or_set(
            pull_request_key(repo, pr_number),
            lambda: self._client.get_pull_request(token, repo, pr_number),
            PULL_REQUESTS_TTL_SECONDS,
        )

    def get_pull_request_diff(self, token: str, repo: str, pr_number: int) -> str:
        self.get_repository(token, repo)
        return self._cache.get_or_set(
            pull_request_diff_key(repo, pr_number),
            lambda: self._client.get_pull_request_diff(token, repo, pr_number),
            PULL_REQUEST_DIFF_TTL_SECONDS,
        )

    def logout(self) -> None:
        logger.info("Clearing all cached source-control reads")
        self._invalidation.invalidate_all()

    def forget_user(self, token: str) -> None:
        self._invalidation.invalidate_user(token)

    def refresh_repositories(self, token: str) -> None:
        self._invalidation.invalidate_repositories(token)

    def refresh_repository_access(self, token: str, repo: str) -> None:
        self._invalidation.invalidate_repository_access(token, repo)

    def refresh_pull_requests(self, repo: str) -> None:
        self._invalidation.invalidate_pull_requests(repo)

    def refresh_diff(self, repo: str, pr_number: int) -> None:
        self._invalidation.invalidate_pull_request(repo, pr_number)
        self._invalidation.invalidate_pull_request_diff(repo, pr_number)
