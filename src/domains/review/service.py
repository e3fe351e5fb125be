from __future__ import annotations

import logging
from time import perf_counter
from typing import Iterable, List

from src.domains.review.analyzer import CodeAnalyzer
from src.domains.review.export import (
    ExportOptions,
    ExportResult,
    SubmissionResult,
    accepted_comments,
    export_review,
    format_review_body,
)
from src.domains.review.models import ReviewComment, ReviewTemplate
from src.domains.review.templates import DEFAULT_TEMPLATE
from src.domains.source_control.reads import CachedSourceControlReads, SourceControlClient
from src.shared.errors import LLMError
from src.shared.retry import RetryPolicy, call_with_retry


logger = logging.getLogger(__name__)


class ReviewService:
    def __init__(
        self,
        *,
        reads: CachedSourceControlReads,
        client: SourceControlClient,
        analyzer: CodeAnalyzer,
        retry_policy: RetryPolicy,
    ) -> None:
        self._reads = reads
        self._client = client
        self._analyzer = analyzer
        self._retry_policy = retry_policy

    def run_review(
        self,
        *,
        token: str,
        repo: str,
        pr_number: int,
        template: ReviewTemplate | None = None,
    ) -> List[ReviewComment]:
        template = template or DEFAULT_TEMPLATE
        logger.info(
            "Running pull request review: repo=%s, pr=%s, template=%s",
            repo,
            pr_number,
            template.name,
        )

        started_at = perf_counter()
        diff = call_with_retry(
            lambda: self._reads.get_pull_request_diff(token, repo, pr_number),
            self._retry_policy,
        )

        try:
            comments = call_with_retry(
                lambda: self._analyzer.analyze_code(diff, template),
                self._retry_policy,
            )
        except LLMError as error:
            logger.warning(
                "Review failed: repo=%s, pr=%s, reason=%s",
                repo,
                pr_number,
                error.reason.value,
            )
            raise

        logger.info(
            "Review finished: repo=%s, pr=%s, comments=%s, elapsed=%.2fs",
            repo,
            pr_number,
            len(comments),
            perf_counter() - started_at,
        )
        return comments

    def submit_review(
        self,
        *,
        token: str,
        repo: str,
        pr_number: int,
        comments: Iterable[ReviewComment],
    ) -> SubmissionResult:
        accepted = accepted_comments(comments)
        if not accepted:
            return SubmissionResult(
                success=False,
                message="No accepted comments to submit",
                submitted_comments=0,
            )

        # Posting is not idempotent, so it is not retried.
        self._client.create_review(token, repo, pr_number, format_review_body(accepted))
        logger.info(
            "Review submitted: repo=%s, pr=%s, comments=%s", repo, pr_number, len(accepted)
        )
        return SubmissionResult(
            success=True,
            message=f"Submitted {len(accepted)} review comments",
            submitted_comments=len(accepted),
        )

    def export_review(
        self,
        *,
        token: str,
        repo: str,
        pr_number: int,
        comments: Iterable[ReviewComment],
        options: ExportOptions | None = None,
    ) -> ExportResult:
        repository = call_with_retry(
            lambda: self._reads.get_repository(token, repo), self._retry_policy
        )
        pull_request = call_with_retry(
            lambda: self._reads.get_pull_request(token, repo, pr_number), self._retry_policy
        )
        return export_review(comments, pull_request, repository, options)
