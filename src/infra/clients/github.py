from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List

import requests

from src.shared.errors import SourceControlAPIError, SourceControlErrorReason
from src.shared.types import GitHubUser, PullRequest, Repository


logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/vnd.github.v3+json"
DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"
PER_PAGE = 100


@dataclass(frozen=True)
class GitHubClientConfig:
    api_base_url: str
    timeout_seconds: float
    user_agent: str = "pr-review-core/1.0.0"


def _parse_retry_after(response: requests.Response) -> float | None:
    raw = response.headers.get("Retry-After")
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _to_api_error(exc: requests.HTTPError, method: str, url: str) -> SourceControlAPIError:
    response = exc.response
    if response is None:
        return SourceControlAPIError(
            SourceControlErrorReason.NETWORK_ERROR,
            f"GitHub API request failed: {method} {url}",
        )

    status = response.status_code
    if status == 401:
        return SourceControlAPIError(
            SourceControlErrorReason.INVALID_TOKEN, "Authentication failed", status=status
        )
    if status == 403:
        retry_after = _parse_retry_after(response)
        if retry_after is not None:
            return SourceControlAPIError(
                SourceControlErrorReason.RATE_LIMIT,
                "Rate limit exceeded",
                status=status,
                retry_after=retry_after,
            )
        return SourceControlAPIError(
            SourceControlErrorReason.INSUFFICIENT_PERMISSIONS, "Insufficient permissions", status=status
        )
    if status == 404:
        return SourceControlAPIError(
            SourceControlErrorReason.NOT_FOUND, "Resource not found", status=status
        )
    if status == 429:
        return SourceControlAPIError(
            SourceControlErrorReason.RATE_LIMIT,
            "Rate limit exceeded",
            status=status,
            retry_after=_parse_retry_after(response),
        )
    if status >= 500:
        return SourceControlAPIError(
            SourceControlErrorReason.SERVER_ERROR, "GitHub server error", status=status
        )
    return SourceControlAPIError(
        SourceControlErrorReason.SERVER_ERROR,
        f"GitHub API request failed: {method} {url} status={status}",
        status=status,
    )


def _validate_repo(repo: str) -> None:
    if not repo or "/" not in repo:
        raise SourceControlAPIError(
            SourceControlErrorReason.NOT_FOUND,
            'Invalid repository format. Expected "owner/repo"',
        )


def _validate_pr_number(pr_number: int) -> None:
    if isinstance(pr_number, bool) or not isinstance(pr_number, int) or pr_number <= 0:
        raise SourceControlAPIError(
            SourceControlErrorReason.NOT_FOUND, "Invalid pull request number"
        )


class GitHubClient:
    def __init__(self, config: GitHubClientConfig) -> None:
        self._api_base_url = config.api_base_url.rstrip("/")
        self._timeout_seconds = config.timeout_seconds
        self._user_agent = config.user_agent

    def _headers(self, token: str, accept: str = JSON_MEDIA_TYPE) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": accept,
            "User-Agent": self._user_agent,
        }

    def _request(
        self,
        *,
        token: str,
        path: str,
        method: str = "GET",
        params: Dict[str, Any] | None = None,
        json_payload: Dict[str, Any] | None = None,
        accept: str = JSON_MEDIA_TYPE,
    ) -> requests.Response:
        url = f"{self._api_base_url}{path}"
        try:
            response = requests.request(
                method,
                url,
                headers=self._headers(token, accept),
                params=params,
                json=json_payload,
                timeout=self._timeout_seconds,
            )
            response.raise_for_status()
            return response
        except requests.HTTPError as exc:
            raise _to_api_error(exc, method, url) from exc
        except requests.RequestException as exc:
            raise SourceControlAPIError(
                SourceControlErrorReason.NETWORK_ERROR,
                f"GitHub API request failed: {method} {url}",
            ) from exc

    def _request_json(
        self,
        *,
        token: str,
        path: str,
        method: str = "GET",
        params: Dict[str, Any] | None = None,
        json_payload: Dict[str, Any] | None = None,
    ) -> Any:
        response = self._request(
            token=token, path=path, method=method, params=params, json_payload=json_payload
        )
        try:
            return response.json()
        except ValueError as exc:
            raise SourceControlAPIError(
                SourceControlErrorReason.SERVER_ERROR,
                f"GitHub API returned invalid JSON: {method} {path}",
            ) from exc

    def get_authenticated_user(self, token: str) -> GitHubUser:
        if not token or not token.strip():
            raise SourceControlAPIError(
                SourceControlErrorReason.INVALID_TOKEN, "Token cannot be empty"
            )

        data = self._request_json(token=token, path="/user")
        if not isinstance(data, dict):
            raise SourceControlAPIError(
                SourceControlErrorReason.SERVER_ERROR, "Invalid user response: expected object"
            )
        logger.info("Fetched authenticated user: login=%s", data.get("login"))
        return data  # type: ignore[return-value]

    def list_repositories(self, token: str) -> List[Repository]:
        repositories: List[Repository] = []
        page = 1
        while True:
            data = self._request_json(
                token=token,
                path="/user/repos",
                params={"sort": "updated", "direction": "desc", "per_page": PER_PAGE, "page": page},
            )
            if not isinstance(data, list):
                raise SourceControlAPIError(
                    SourceControlErrorReason.SERVER_ERROR,
                    "Invalid repositories response: expected list",
                )
            repositories.extend(data)
            if len(data) < PER_PAGE:
                break
            page += 1

        logger.info("Fetched repositories: count=%s, pages=%s", len(repositories), page)
        return repositories

    def list_pull_requests(self, token: str, repo: str) -> List[PullRequest]:
        _validate_repo(repo)
        data = self._request_json(
            token=token,
            path=f"/repos/{repo}/pulls",
            params={"state": "open", "sort": "updated", "direction": "desc", "per_page": PER_PAGE},
        )
        if not isinstance(data, list):
            raise SourceControlAPIError(
                SourceControlErrorReason.SERVER_ERROR,
                "Invalid pull requests response: expected list",
            )
        logger.info("Fetched pull requests: repo=%s, count=%s", repo, len(data))
        return data

    def get_pull_request_diff(self, token: str, repo: str, pr_number: int) -> str:
        _validate_repo(repo)
        _validate_pr_number(pr_number)
        response = self._request(
            token=token,
            path=f"/repos/{repo}/pulls/{pr_number}",
            accept=DIFF_MEDIA_TYPE,
        )
        logger.info("Fetched pull request diff: repo=%s, pr=%s", repo, pr_number)
        return response.text

    def get_repository(self, token: str, repo: str) -> Repository:
        """GitHub answers 404 for private repositories the token cannot see."""
        _validate_repo(repo)
        data = self._request_json(token=token, path=f"/repos/{repo}")
        if not isinstance(data, dict):
            raise SourceControlAPIError(
                SourceControlErrorReason.SERVER_ERROR, "Invalid repository response: expected object"
            )
        return data

    def get_pull_request(self, token: str, repo: str, pr_number: int) -> PullRequest:
        _validate_repo(repo)
        _validate_pr_number(pr_number)
        data = self._request_json(token=token, path=f"/repos/{repo}/pulls/{pr_number}")
        if not isinstance(data, dict):
            raise SourceControlAPIError(
                SourceControlErrorReason.SERVER_ERROR,
                "Invalid pull request response: expected object",
            )
        return data

    def create_review(self, token: str, repo: str, pr_number: int, body: str) -> Dict[str, Any]:
        _validate_repo(repo)
        _validate_pr_number(pr_number)
        data = self._request_json(
            token=token,
            path=f"/repos/{repo}/pulls/{pr_number}/reviews",
            method="POST",
            json_payload={"body": body, "event": "COMMENT"},
        )
        logger.info("Posted pull request review: repo=%s, pr=%s", repo, pr_number)
        return data if isinstance(data, dict) else {}
