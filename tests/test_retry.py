import pytest

from src.shared.errors import (
    LLMError,
    LLMErrorReason,
    SourceControlAPIError,
    SourceControlErrorReason,
)
from src.shared.retry import RetryPolicy, call_with_retry, is_retriable


class _Flaky:
    def __init__(self, errors, result="ok") -> None:
        self._errors = list(errors)
        self._result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self._errors:
            raise self._errors.pop(0)
        return self._result


def test_delay_grows_exponentially_and_is_capped() -> None:
    policy = RetryPolicy(base_delay_seconds=1.0, max_delay_seconds=5.0, backoff_factor=2.0)

    assert [policy.delay_for(attempt) for attempt in range(4)] == [1.0, 2.0, 4.0, 5.0]


def test_negative_max_retries_is_rejected() -> None:
    with pytest.raises(ValueError):
        RetryPolicy(max_retries=-1)


@pytest.mark.parametrize(
    "error, expected",
    [
        (LLMError(LLMErrorReason.TIMEOUT, "t"), True),
        (LLMError(LLMErrorReason.API_FAILURE, "a"), True),
        (LLMError(LLMErrorReason.QUOTA_EXCEEDED, "q"), True),
        (LLMError(LLMErrorReason.CONFIGURATION_ERROR, "c"), False),
        (LLMError(LLMErrorReason.INVALID_RESPONSE, "i"), False),
        (SourceControlAPIError(SourceControlErrorReason.SERVER_ERROR, "s"), True),
        (SourceControlAPIError(SourceControlErrorReason.NOT_FOUND, "n"), False),
        (ValueError("x"), False),
    ],
)
def test_is_retriable(error, expected) -> None:
    assert is_retriable(error) is expected


def test_retries_transient_failures_until_success() -> None:
    sleeps = []
    operation = _Flaky(
        [
            LLMError(LLMErrorReason.TIMEOUT, "Request timed out"),
            LLMError(LLMErrorReason.API_FAILURE, "Server error: 503"),
        ]
    )

    result = call_with_retry(operation, RetryPolicy(max_retries=3), sleep=sleeps.append)

    assert result == "ok"
    assert operation.calls == 3
    assert sleeps == [1.0, 2.0]


def test_non_retriable_error_is_raised_immediately() -> None:
    sleeps = []
    error = LLMError(LLMErrorReason.INVALID_RESPONSE, "bad json")
    operation = _Flaky([error])

    with pytest.raises(LLMError) as exc_info:
        call_with_retry(operation, RetryPolicy(max_retries=3), sleep=sleeps.append)

    assert exc_info.value is error
    assert operation.calls == 1
    assert sleeps == []


def test_last_error_is_raised_when_retries_run_out() -> None:
    sleeps = []
    errors = [LLMError(LLMErrorReason.TIMEOUT, f"attempt {index}") for index in range(3)]
    operation = _Flaky(errors)

    with pytest.raises(LLMError) as exc_info:
        call_with_retry(operation, RetryPolicy(max_retries=2), sleep=sleeps.append)

    assert exc_info.value.message == "attempt 2"
    assert operation.calls == 3
    assert len(sleeps) == 2


def test_retry_after_extends_delay() -> None:
    sleeps = []
    operation = _Flaky(
        [SourceControlAPIError(SourceControlErrorReason.RATE_LIMIT, "slow down", retry_after=30.0)]
    )

    call_with_retry(
        operation, RetryPolicy(max_retries=1, max_delay_seconds=60.0), sleep=sleeps.append
    )

    assert sleeps == [30.0]


def test_retry_after_beyond_max_delay_is_raised_without_sleeping() -> None:
    sleeps = []
    error = SourceControlAPIError(
        SourceControlErrorReason.RATE_LIMIT, "slow down", status=403, retry_after=3600.0
    )
    operation = _Flaky([error])

    with pytest.raises(SourceControlAPIError) as exc_info:
        call_with_retry(
            operation, RetryPolicy(max_retries=3, max_delay_seconds=10.0), sleep=sleeps.append
        )

    assert exc_info.value is error
    assert exc_info.value.retry_after == 3600.0
    assert operation.calls == 1
    assert sleeps == []


def test_other_exceptions_are_not_caught() -> None:
    operation = _Flaky([KeyError("boom")])

    with pytest.raises(KeyError):
        call_with_retry(operation, RetryPolicy(max_retries=3), sleep=lambda _: None)

    assert operation.calls == 1
