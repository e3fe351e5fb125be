import json
from datetime import datetime, timezone

import pytest

from src.domains.review.export import (
    ExportFormat,
    ExportOptions,
    export_options_from_dict,
    export_review,
    format_review_body,
    generate_submission_summary,
)
from src.domains.review.models import (
    CommentCategory,
    CommentStatus,
    ReviewComment,
    Severity,
    review_comment_from_dict,
)


NOW = datetime(2024, 3, 5, 12, 30, tzinfo=timezone.utc)
REPOSITORY = {"name": "app", "full_name": "octo/app", "html_url": "https://github.com/octo/app"}
PULL_REQUEST = {
    "number": 7,
    "title": "Add caching",
    "html_url": "https://github.com/octo/app/pull/7",
    "head": {"ref": "feature/cache"},
    "base": {"ref": "main"},
}


def _comment(
    comment_id: str,
    *,
    file: str = "src/app.py",
    line: int = 10,
    severity: Severity = Severity.WARNING,
    status: CommentStatus = CommentStatus.ACCEPTED,
) -> ReviewComment:
    return ReviewComment(
        id=comment_id,
        file=file,
        line=line,
        content=f"Comment {comment_id}",
        severity=severity,
        status=status,
        category=CommentCategory.SECURITY,
        created_at="2024-03-05T12:00:00Z",
    )


COMMENTS = [
    _comment("c1", severity=Severity.ERROR),
    _comment("c2", file="src/db.py", line=3, severity=Severity.INFO),
    _comment("c3", line=20),
    _comment("c4", status=CommentStatus.REJECTED),
    _comment("c5", status=CommentStatus.PENDING),
]


def test_markdown_export_groups_accepted_comments_by_file() -> None:
    result = export_review(COMMENTS, PULL_REQUEST, REPOSITORY, now=NOW)

    assert result.filename == "review-app-pr7-2024-03-05.md"
    assert result.mime_type == "text/markdown"
    content = result.content
    assert content.startswith("# Code Review Report\n\n")
    assert "**Pull Request:** [#7 - Add caching](https://github.com/octo/app/pull/7)" in content
    assert "**Branch:** `feature/cache` → `main`" in content
    assert "Found **3** issues across **2** files:" in content
    assert "## 📁 src/app.py" in content
    assert "### 2. ⚠️ Line 20 (warning)" in content
    assert "*Category: security*" in content
    assert "Comment c4" not in content
    assert "Comment c5" not in content
    assert content.index("Comment c3") < content.index("## 📁 src/db.py")


def test_markdown_export_without_grouping_uses_file_and_line() -> None:
    options = ExportOptions(include_metadata=False, group_by_file=False)

    content = export_review(COMMENTS, PULL_REQUEST, REPOSITORY, options, now=NOW).content

    assert "# Code Review Report" not in content
    assert "## Review Comments" in content
    assert "### 2. ℹ️ src/db.py:3 (info)" in content


def test_text_export() -> None:
    options = ExportOptions(format=ExportFormat.TEXT)

    result = export_review(COMMENTS, PULL_REQUEST, REPOSITORY, options, now=NOW)

    assert result.filename.endswith(".txt")
    assert result.mime_type == "text/plain"
    assert "Pull Request: #7 - Add caching\n" in result.content
    assert "FILE: src/app.py\n" in result.content
    assert "1. Line 10 [ERROR]\n   Comment c1\n" in result.content


def test_json_export_includes_rejected_on_request() -> None:
    options = ExportOptions(format=ExportFormat.JSON, include_rejected=True)

    result = export_review(COMMENTS, PULL_REQUEST, REPOSITORY, options, now=NOW)
    data = json.loads(result.content)

    assert result.mime_type == "application/json"
    assert [comment["id"] for comment in data["comments"]] == ["c1", "c2", "c3", "c4"]
    assert data["summary"] == {"file_count": 2, "errors": 1, "warnings": 2, "info": 1, "total": 4}
    assert data["metadata"]["pull_request"]["head"] == "feature/cache"
    assert data["metadata"]["exported_at"] == "2024-03-05T12:30:00+00:00"
    assert data["metadata"]["options"]["format"] == "json"


def test_json_export_without_metadata() -> None:
    options = ExportOptions(format=ExportFormat.JSON, include_metadata=False)

    data = json.loads(export_review(COMMENTS, PULL_REQUEST, REPOSITORY, options, now=NOW).content)

    assert "metadata" not in data
    assert data["summary"]["total"] == 3


def test_export_without_selected_comments_raises() -> None:
    comments = [_comment("c1", status=CommentStatus.REJECTED)]

    with pytest.raises(ValueError, match="No comments to export"):
        export_review(comments, PULL_REQUEST, REPOSITORY, now=NOW)


def test_submission_summary_counts_accepted_comments() -> None:
    summary = generate_submission_summary(COMMENTS)

    assert summary.startswith("## Automated Code Review Summary\n\n")
    assert "Found **3** issues across **2** files:" in summary
    assert "- 🚨 **1** Critical Issues" in summary
    assert "- ⚠️ **1** Warnings" in summary
    assert "- ℹ️ **1** Suggestions" in summary


def test_submission_summary_without_accepted_comments() -> None:
    comments = [_comment("c1", status=CommentStatus.PENDING)]

    assert generate_submission_summary(comments) == "No review comments to submit."


def test_review_body_numbers_comments_per_file() -> None:
    body = format_review_body(COMMENTS[:3])

    assert body.startswith("## Automated Code Review\n\n### src/app.py\n\n")
    assert "1. 🚨 **Line 10** (error)\n   Comment c1\n" in body
    assert "2. ⚠️ **Line 20** (warning)\n   Comment c3\n" in body
    assert "### src/db.py\n\n1. ℹ️ **Line 3** (info)" in body
    assert body.endswith("\n---\n*Generated by PR Review Core*")


def test_export_options_from_dict() -> None:
    options = export_options_from_dict({"format": "text", "group_by_file": False})

    assert options == ExportOptions(format=ExportFormat.TEXT, group_by_file=False)
    assert export_options_from_dict(None) == ExportOptions()


@pytest.mark.parametrize(
    "data",
    [["markdown"], {"format": "pdf"}, {"include_rejected": "yes"}],
)
def test_export_options_from_dict_rejects_invalid_values(data) -> None:
    with pytest.raises(ValueError):
        export_options_from_dict(data)


def test_review_comment_from_dict() -> None:
    comment = review_comment_from_dict(COMMENTS[0].to_dict())

    assert comment == COMMENTS[0]


@pytest.mark.parametrize(
    "changes",
    [
        {"id": ""},
        {"line": 0},
        {"line": True},
        {"line": "10"},
        {"severity": "critical"},
        {"status": "approved"},
        {"category": None},
    ],
)
def test_review_comment_from_dict_rejects_invalid_fields(changes) -> None:
    with pytest.raises(ValueError):
        review_comment_from_dict({**COMMENTS[0].to_dict(), **changes})


def test_review_comment_from_dict_requires_object() -> None:
    with pytest.raises(ValueError, match="JSON object"):
        review_comment_from_dict(["c1"])
