from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Tuple


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class CommentStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class CommentCategory(str, Enum):
    CODE_QUALITY = "code_quality"
    SECURITY = "security"
    PERFORMANCE = "performance"
    MAINTAINABILITY = "maintainability"
    TESTING = "testing"


@dataclass(frozen=True)
class TemplatePrompts:
    code_quality: str
    security: str
    performance: str
    maintainability: str
    testing: str


@dataclass(frozen=True)
class TemplateRules:
    max_complexity: int
    require_tests: bool
    security_checks: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ReviewTemplate:
    """Prompts, rules and criteria that steer how a diff is reviewed."""

    name: str
    description: str
    prompts: TemplatePrompts
    rules: TemplateRules
    criteria: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ReviewComment:
    id: str
    file: str
    line: int
    content: str
    severity: Severity
    status: CommentStatus
    category: CommentCategory
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "file": self.file,
            "line": self.line,
            "content": self.content,
            "severity": self.severity.value,
            "status": self.status.value,
            "category": self.category.value,
            "created_at": self.created_at,
        }


def _enum_field(enum_type: Any, data: Dict[str, Any], name: str) -> Any:
    try:
        return enum_type(data.get(name))
    except ValueError as exc:
        raise ValueError(f"Comment field '{name}' has invalid value: {data.get(name)!r}") from exc


def review_comment_from_dict(data: Any) -> ReviewComment:
    """Rebuild a curated comment sent back by an API client, raising ValueError on bad input."""
    if not isinstance(data, dict):
        raise ValueError("Comment must be a JSON object")

    for name in ("id", "file", "content"):
        value = data.get(name)
        if not isinstance(value, str) or not value:
            raise ValueError(f"Comment field '{name}' must be a non-empty string")

    line = data.get("line")
    if isinstance(line, bool) or not isinstance(line, int) or line <= 0:
        raise ValueError("Comment field 'line' must be a positive integer")

    created_at = data.get("created_at", "")
    return ReviewComment(
        id=data["id"],
        file=data["file"],
        line=line,
        content=data["content"],
        severity=_enum_field(Severity, data, "severity"),
        status=_enum_field(CommentStatus, data, "status"),
        category=_enum_field(CommentCategory, data, "category"),
        created_at=created_at if isinstance(created_at, str) else "",
    )
