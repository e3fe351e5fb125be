from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from src.shared.errors import (
    LLMError,
    LLMErrorReason,
    SourceControlAPIError,
    SourceControlErrorReason,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRIABLE_LLM_REASONS = {
    LLMErrorReason.TIMEOUT,
    LLMErrorReason.API_FAILURE,
    LLMErrorReason.QUOTA_EXCEEDED,
}
RETRIABLE_SOURCE_CONTROL_REASONS = {
    SourceControlErrorReason.NETWORK_ERROR,
    SourceControlErrorReason.RATE_LIMIT,
    SourceControlErrorReason.SERVER_ERROR,
}


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 10.0
    backoff_factor: float = 2.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay_seconds * self.backoff_factor**attempt, self.max_delay_seconds)


def is_retriable(error: BaseException) -> bool:
    if isinstance(error, LLMError):
        return error.reason in RETRIABLE_LLM_REASONS
    if isinstance(error, SourceControlAPIError):
        return error.reason in RETRIABLE_SOURCE_CONTROL_REASONS
    return False


def call_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation``, retrying retriable failures with exponential backoff.

    Non-retriable errors, the last failure, and failures whose ``retry_after``
    exceeds ``policy.max_delay_seconds`` are re-raised unchanged.
    """
    attempt = 0
    while True:
        try:
            return operation()
        except (LLMError, SourceControlAPIError) as error:
            if attempt >= policy.max_retries or not is_retriable(error):
                raise

            delay = policy.delay_for(attempt)
            retry_after = getattr(error, "retry_after", None)
            if retry_after:
                # Waits beyond the policy maximum are left to the caller.
                if retry_after > policy.max_delay_seconds:
                    raise
                delay = min(max(delay, float(retry_after)), policy.max_delay_seconds)

            attempt += 1
            logger.warning(
                "Operation failed (attempt %s/%s, reason=%s), retrying in %.2fs",
                attempt,
                policy.max_retries + 1,
                error.reason.value,
                delay,
            )
            sleep(delay)
