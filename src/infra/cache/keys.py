from __future__ import annotations

from src.infra.cache.request_cache import RequestCache


USER_TTL_SECONDS = 60 * 60.0
REPOSITORIES_TTL_SECONDS = 10 * 60.0
PULL_REQUESTS_TTL_SECONDS = 2 * 60.0
PULL_REQUEST_DIFF_TTL_SECONDS = 30 * 60.0
# `prs:`, `pr:` and `diff:` entries are shared across tokens; reads confirm
# access through the token-scoped `repo:` entry first.
REPOSITORY_ACCESS_TTL_SECONDS = 10 * 60.0


def repositories_key(token: str) -> str:
    return f"repos:{token}"


def pull_requests_key(repo: str) -> str:
    return f"prs:{repo}"


def pull_request_diff_key(repo: str, pr_number: int) -> str:
    return f"diff:{repo}:{pr_number}"


def user_key(token: str) -> str:
    return f"user:{token}"


def repository_access_key(token: str, repo: str) -> str:
    return f"repo:{token}:{repo}"


def pull_request_key(repo: str, pr_number: int) -> str:
    return f"pr:{repo}:{pr_number}"


class CacheInvalidation:
    """Explicit invalidation of source-control reads held in a cache."""

    def __init__(self, cache: RequestCache) -> None:
        self._cache = cache

    def invalidate_repositories(self, token: str) -> bool:
        return self._cache.delete(repositories_key(token))

    def invalidate_pull_requests(self, repo: str) -> bool:
        return self._cache.delete(pull_requests_key(repo))

    def invalidate_pull_request_diff(self, repo: str, pr_number: int) -> bool:
        return self._cache.delete(pull_request_diff_key(repo, pr_number))

    def invalidate_user(self, token: str) -> bool:
        return self._cache.delete(user_key(token))

    def invalidate_repository_access(self, token: str, repo: str) -> bool:
        return self._cache.delete(repository_access_key(token, repo))

    def invalidate_pull_request(self, repo: str, pr_number: int) -> bool:
        return self._cache.delete(pull_request_key(repo, pr_number))

    def invalidate_all(self) -> None:
        self._cache.clear()
