from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List

from src.domains.review.models import CommentStatus, ReviewComment, Severity
from src.shared.types import PullRequest, Repository


SEVERITY_EMOJI = {
    Severity.ERROR: "🚨",
    Severity.WARNING: "⚠️",
    Severity.INFO: "ℹ️",
}


class ExportFormat(str, Enum):
    MARKDOWN = "markdown"
    TEXT = "text"
    JSON = "json"


_EXTENSIONS = {
    ExportFormat.MARKDOWN: ("md", "text/markdown"),
    ExportFormat.TEXT: ("txt", "text/plain"),
    ExportFormat.JSON: ("json", "application/json"),
}


@dataclass(frozen=True)
class ExportOptions:
    format: ExportFormat = ExportFormat.MARKDOWN
    include_metadata: bool = True
    include_rejected: bool = False
    group_by_file: bool = True


@dataclass(frozen=True)
class ExportResult:
    content: str
    filename: str
    mime_type: str


@dataclass(frozen=True)
class SubmissionResult:
    success: bool
    message: str
    submitted_comments: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def export_options_from_dict(data: Any) -> ExportOptions:
    if data is None:
        return ExportOptions()
    if not isinstance(data, dict):
        raise ValueError("Export options must be a JSON object")

    try:
        export_format = ExportFormat(data.get("format", ExportFormat.MARKDOWN.value))
    except ValueError as exc:
        raise ValueError(f"Unsupported export format: {data.get('format')}") from exc

    flags = {}
    for name in ("include_metadata", "include_rejected", "group_by_file"):
        value = data.get(name, getattr(ExportOptions, name))
        if not isinstance(value, bool):
            raise ValueError(f"Export option '{name}' must be a boolean")
        flags[name] = value
    return ExportOptions(format=export_format, **flags)


def accepted_comments(comments: Iterable[ReviewComment]) -> List[ReviewComment]:
    return [comment for comment in comments if comment.status is CommentStatus.ACCEPTED]


def group_by_file(comments: Iterable[ReviewComment]) -> Dict[str, List[ReviewComment]]:
    grouped: Dict[str, List[ReviewComment]] = {}
    for comment in comments:
        grouped.setdefault(comment.file, []).append(comment)
    return grouped


def comment_stats(comments: List[ReviewComment]) -> Dict[str, int]:
    return {
        "file_count": len({comment.file for comment in comments}),
        "errors": sum(1 for c in comments if c.severity is Severity.ERROR),
        "warnings": sum(1 for c in comments if c.severity is Severity.WARNING),
        "info": sum(1 for c in comments if c.severity is Severity.INFO),
        "total": len(comments),
    }


def generate_submission_summary(comments: Iterable[ReviewComment]) -> str:
    """Markdown summary of the accepted comments."""
    accepted = accepted_comments(comments)
    if not accepted:
        return "No review comments to submit."

    stats = comment_stats(accepted)
    lines = [
        "## Automated Code Review Summary",
        "",
        f"Found **{len(accepted)}** issues across **{stats['file_count']}** files:",
        "",
    ]
    if stats["errors"]:
        lines.append(f"- 🚨 **{stats['errors']}** Critical Issues")
    if stats["warnings"]:
        lines.append(f"- ⚠️ **{stats['warnings']}** Warnings")
    if stats["info"]:
        lines.append(f"- ℹ️ **{stats['info']}** Suggestions")
    lines.extend(["", "---", "", ""])
    return "\n".join(lines)


def format_review_body(comments: Iterable[ReviewComment]) -> str:
    """PR review body: comments grouped by file, one numbered entry per comment."""
    body = "## Automated Code Review\n\n"
    for file, file_comments in group_by_file(comments).items():
        body += f"### {file}\n\n"
        for index, comment in enumerate(file_comments, start=1):
            emoji = SEVERITY_EMOJI[comment.severity]
            body += f"{index}. {emoji} **Line {comment.line}** ({comment.severity.value})\n"
            body += f"   {comment.content}\n\n"
    body += "\n---\n*Generated by PR Review Core*"
    return body


def _filter_for_export(comments: Iterable[ReviewComment], options: ExportOptions) -> List[ReviewComment]:
    return [
        comment
        for comment in comments
        if comment.status is CommentStatus.ACCEPTED
        or (options.include_rejected and comment.status is CommentStatus.REJECTED)
    ]


def _ref(pull_request: PullRequest, side: str) -> str:
    branch = pull_request.get(side)
    return branch.get("ref", "") if isinstance(branch, dict) else ""


def _markdown_comment(index: int, comment: ReviewComment, title: str) -> str:
    emoji = SEVERITY_EMOJI[comment.severity]
    return (
        f"### {index}. {emoji} {title} ({comment.severity.value})\n\n"
        f"{comment.content}\n\n"
        f"*Category: {comment.category.value}*\n\n"
    )


def _export_markdown(
    comments: List[ReviewComment],
    pull_request: PullRequest,
    repository: Repository,
    options: ExportOptions,
    now: datetime,
) -> str:
    content = ""
    if options.include_metadata:
        content += (
            "# Code Review Report\n\n"
            f"**Repository:** [{repository.get('full_name', '')}]({repository.get('html_url', '')})  \n"
            f"**Pull Request:** [#{pull_request.get('number')} - {pull_request.get('title', '')}]"
            f"({pull_request.get('html_url', '')})  \n"
            f"**Branch:** `{_ref(pull_request, 'head')}` → `{_ref(pull_request, 'base')}`  \n"
            f"**Generated:** {now.strftime('%Y-%m-%d %H:%M:%S %Z')}\n\n"
            "---\n\n"
        )

    content += generate_submission_summary(comments)

    if options.group_by_file:
        for file, file_comments in group_by_file(comments).items():
            content += f"## 📁 {file}\n\n"
            for index, comment in enumerate(file_comments, start=1):
                content += _markdown_comment(index, comment, f"Line {comment.line}")
    else:
        content += "## Review Comments\n\n"
        for index, comment in enumerate(comments, start=1):
            content += _markdown_comment(index, comment, f"{comment.file}:{comment.line}")

    content += "---\n\n*This review was generated automatically by PR Review Core*\n"
    return content


def _export_text(
    comments: List[ReviewComment],
    pull_request: PullRequest,
    repository: Repository,
    options: ExportOptions,
    now: datetime,
) -> str:
    content = ""
    if options.include_metadata:
        content += (
            "Code Review Report\n"
            f"Repository: {repository.get('full_name', '')}\n"
            f"Pull Request: #{pull_request.get('number')} - {pull_request.get('title', '')}\n"
            f"Generated: {now.strftime('%Y-%m-%d %H:%M:%S %Z')}\n"
            f"{'=' * 60}\n\n"
        )

    if options.group_by_file:
        for file, file_comments in group_by_file(comments).items():
            content += f"FILE: {file}\n{'-' * 40}\n"
            for index, comment in enumerate(file_comments, start=1):
                content += f"{index}. Line {comment.line} [{comment.severity.value.upper()}]\n"
                content += f"   {comment.content}\n\n"
            content += "\n"
    else:
        for index, comment in enumerate(comments, start=1):
            content += (
                f"{index}. {comment.file}:{comment.line} [{comment.severity.value.upper()}]\n"
            )
            content += f"   {comment.content}\n\n"
    return content


def _export_json(
    comments: List[ReviewComment],
    pull_request: PullRequest,
    repository: Repository,
    options: ExportOptions,
    now: datetime,
) -> str:
    data: Dict[str, Any] = {}
    if options.include_metadata:
        data["metadata"] = {
            "repository": {
                "name": repository.get("name"),
                "full_name": repository.get("full_name"),
                "url": repository.get("html_url"),
            },
            "pull_request": {
                "number": pull_request.get("number"),
                "title": pull_request.get("title"),
                "url": pull_request.get("html_url"),
                "head": _ref(pull_request, "head"),
                "base": _ref(pull_request, "base"),
            },
            "exported_at": now.isoformat(),
            "options": {**asdict(options), "format": options.format.value},
        }
    data["summary"] = comment_stats(comments)
    data["comments"] = [comment.to_dict() for comment in comments]
    return json.dumps(data, indent=2, ensure_ascii=False)


_EXPORTERS = {
    ExportFormat.MARKDOWN: _export_markdown,
    ExportFormat.TEXT: _export_text,
    ExportFormat.JSON: _export_json,
}


def export_review(
    comments: Iterable[ReviewComment],
    pull_request: PullRequest,
    repository: Repository,
    options: ExportOptions | None = None,
    *,
    now: datetime | None = None,
) -> ExportResult:
    """Render curated comments as a downloadable report.

    Only accepted comments are exported, plus rejected ones when
    ``include_rejected`` is set. Raises ValueError when nothing is left.
    """
    options = options or ExportOptions()
    now = now or datetime.now(timezone.utc)

    selected = _filter_for_export(comments, options)
    if not selected:
        raise ValueError("No comments to export")

    content = _EXPORTERS[options.format](selected, pull_request, repository, options, now)
    extension, mime_type = _EXTENSIONS[options.format]
    filename = (
        f"review-{repository.get('name', 'repository')}-pr{pull_request.get('number')}"
        f"-{now.date().isoformat()}.{extension}"
    )
    return ExportResult(content=content, filename=filename, mime_type=mime_type)
