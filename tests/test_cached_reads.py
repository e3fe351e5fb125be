import pytest

from src.domains.source_control.reads import CachedSourceControlReads
from src.infra.cache.request_cache import CacheOptions, RequestCache
from src.shared.errors import SourceControlAPIError, SourceControlErrorReason


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class _FakeGitHubClient:
    def __init__(self) -> None:
        self.calls = []
        self.allowed_tokens = {"tok"}

    def get_authenticated_user(self, token: str):
        self.calls.append(("user", token))
        return {"login": "octo", "id": len(self.calls)}

    def list_repositories(self, token: str):
        self.calls.append(("repos", token))
        return [{"full_name": "octo/app"}]

    def get_repository(self, token: str, repo: str):
        self.calls.append(("repo", token, repo))
        if token not in self.allowed_tokens:
            raise SourceControlAPIError(
                SourceControlErrorReason.NOT_FOUND, "Resource not found", status=404
            )
        return {"full_name": repo, "name": repo.split("/")[1]}

    def list_pull_requests(self, token: str, repo: str):
        self.calls.append(("prs", repo))
        return [{"number": 1}]

    def get_pull_request(self, token: str, repo: str, pr_number: int):
        self.calls.append(("pr", repo, pr_number))
        return {"number": pr_number, "title": "Fix"}

    def get_pull_request_diff(self, token: str, repo: str, pr_number: int):
        self.calls.append(("diff", repo, pr_number))
        return f"diff for {repo}#{pr_number} ({len(self.calls)})"

    def create_review(self, token: str, repo: str, pr_number: int, body: str):
        raise AssertionError("reads never post")


def _reads(clock: _FakeClock | None = None):
    client = _FakeGitHubClient()
    cache = RequestCache(CacheOptions(default_ttl=300, max_size=50), clock=clock or _FakeClock())
    return CachedSourceControlReads(client=client, cache=cache), client, cache


def test_warm_reads_skip_the_client() -> None:
    reads, client, _ = _reads()

    first = reads.get_pull_request_diff("tok", "octo/app", 5)
    second = reads.get_pull_request_diff("tok", "octo/app", 5)
    reads.get_user("tok")
    reads.get_user("tok")
    reads.get_repositories("tok")
    reads.get_repositories("tok")
    reads.get_pull_requests("tok", "octo/app")
    reads.get_pull_requests("tok", "octo/app")

    assert first == second
    assert client.calls == [
        ("repo", "tok", "octo/app"),
        ("diff", "octo/app", 5),
        ("user", "tok"),
        ("repos", "tok"),
        ("prs", "octo/app"),
    ]


def test_cached_diff_is_not_served_to_token_without_access() -> None:
    reads, client, _ = _reads()
    reads.get_pull_request_diff("tok", "octo/app", 5)

    with pytest.raises(SourceControlAPIError) as exc_info:
        reads.get_pull_request_diff("other-tok", "octo/app", 5)

    assert exc_info.value.reason is SourceControlErrorReason.NOT_FOUND
    assert client.calls.count(("diff", "octo/app", 5)) == 1
    assert ("repo", "other-tok", "octo/app") in client.calls


def test_cached_pull_requests_are_not_served_to_token_without_access() -> None:
    reads, _, _ = _reads()
    reads.get_pull_requests("tok", "octo/app")
    reads.get_pull_request("tok", "octo/app", 5)

    with pytest.raises(SourceControlAPIError):
        reads.get_pull_requests("other-tok", "octo/app")
    with pytest.raises(SourceControlAPIError):
        reads.get_pull_request("other-tok", "octo/app", 5)


def test_second_token_with_access_shares_cached_diff() -> None:
    reads, client, _ = _reads()
    client.allowed_tokens.add("teammate")

    first = reads.get_pull_request_diff("tok", "octo/app", 5)
    second = reads.get_pull_request_diff("teammate", "octo/app", 5)

    assert first == second
    assert client.calls.count(("diff", "octo/app", 5)) == 1


def test_pull_request_list_expires_before_diff() -> None:
    clock = _FakeClock()
    reads, client, _ = _reads(clock)

    reads.get_pull_requests("tok", "octo/app")
    reads.get_pull_request_diff("tok", "octo/app", 5)
    clock.now = 121.0
    reads.get_pull_requests("tok", "octo/app")
    reads.get_pull_request_diff("tok", "octo/app", 5)

    assert client.calls.count(("prs", "octo/app")) == 2
    assert client.calls.count(("diff", "octo/app", 5)) == 1


def test_refresh_diff_forces_refetch() -> None:
    reads, client, _ = _reads()

    reads.get_pull_request_diff("tok", "octo/app", 5)
    reads.get_pull_request("tok", "octo/app", 5)
    reads.refresh_diff("octo/app", 5)
    reads.get_pull_request_diff("tok", "octo/app", 5)
    reads.get_pull_request("tok", "octo/app", 5)

    assert client.calls.count(("diff", "octo/app", 5)) == 2
    assert client.calls.count(("pr", "octo/app", 5)) == 2


def test_refresh_repository_access_rechecks_token() -> None:
    reads, client, _ = _reads()

    reads.get_repository("tok", "octo/app")
    reads.refresh_repository_access("tok", "octo/app")
    reads.get_repository("tok", "octo/app")

    assert client.calls.count(("repo", "tok", "octo/app")) == 2


def test_targeted_invalidation_leaves_other_entries() -> None:
    reads, client, _ = _reads()

    reads.get_pull_requests("tok", "octo/app")
    reads.get_repositories("tok")
    reads.refresh_pull_requests("octo/app")
    reads.get_pull_requests("tok", "octo/app")
    reads.get_repositories("tok")

    assert client.calls.count(("prs", "octo/app")) == 2
    assert client.calls.count(("repos", "tok")) == 1


def test_forget_user_and_refresh_repositories() -> None:
    reads, client, _ = _reads()

    reads.get_user("tok")
    reads.get_repositories("tok")
    reads.forget_user("tok")
    reads.refresh_repositories("tok")
    reads.get_user("tok")
    reads.get_repositories("tok")

    assert client.calls.count(("user", "tok")) == 2
    assert client.calls.count(("repos", "tok")) == 2


def test_logout_clears_everything() -> None:
    reads, _, cache = _reads()

    reads.get_user("tok")
    reads.get_pull_request_diff("tok", "octo/app", 1)
    reads.logout()

    assert len(cache) == 0
