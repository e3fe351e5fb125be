from __future__ import annotations

import json
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

from src.domains.review.models import CommentCategory, CommentStatus, ReviewComment, Severity
from src.shared.errors import LLMError, LLMErrorReason


# Models frequently wrap the JSON object in a markdown code fence.
_FENCED_JSON_PATTERN = re.compile(r"```(?:json)?\s*(\{[\s\S]*\})\s*```")


def _invalid(message: str) -> LLMError:
    return LLMError(LLMErrorReason.INVALID_RESPONSE, message)


def _new_comment_id() -> str:
    return f"llm-comment-{uuid.uuid4().hex}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def extract_message_content(response: Any) -> str:
    if not isinstance(response, dict):
        raise _invalid("No choices in LLM response")

    choices = response.get("choices")
    if not isinstance(choices, list) or not choices:
        raise _invalid("No choices in LLM response")

    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content:
        raise _invalid("Empty content in LLM response")
    return content


def unwrap_json_fence(content: str) -> str:
    text = content.strip()
    match = _FENCED_JSON_PATTERN.search(text)
    if match:
        return match.group(1)
    return text


def _decode_line(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float) and value.is_integer() and value > 0:
        return int(value)
    return None


def _decode_enum(enum_type: type, value: Any, default: Any) -> Any:
    # null and "" count as absent.
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        return None
    try:
        return enum_type(value)
    except ValueError:
        return None


def _decode_comment(raw: Any, index: int, created_at: str) -> ReviewComment:
    if not isinstance(raw, dict):
        raise _invalid(f"Invalid comment structure at index {index}")

    file = raw.get("file")
    content = raw.get("content")
    line = _decode_line(raw.get("line"))
    if not isinstance(file, str) or not file or line is None:
        raise _invalid(f"Invalid comment structure at index {index}")
    if not isinstance(content, str) or not content:
        raise _invalid(f"Invalid comment structure at index {index}")

    severity = _decode_enum(Severity, raw.get("severity"), Severity.INFO)
    if severity is None:
        raise _invalid(f"Invalid severity at index {index}: {raw.get('severity')!r}")

    category = _decode_enum(CommentCategory, raw.get("category"), CommentCategory.CODE_QUALITY)
    if category is None:
        raise _invalid(f"Invalid category at index {index}: {raw.get('category')!r}")

    return ReviewComment(
        id=_new_comment_id(),
        file=file,
        line=line,
        content=content,
        severity=severity,
        status=CommentStatus.PENDING,
        category=category,
        created_at=created_at,
    )


def parse_review_response(response: Any) -> List[ReviewComment]:
    """Decode a chat-completions response into review comments.

    The decoder is all-or-nothing: the first malformed element fails the whole
    batch with an ``invalid_response`` LLMError and no comments are returned.
    """
    content = extract_message_content(response)
    json_text = unwrap_json_fence(content)

    try:
        parsed = json.loads(json_text)
    except json.JSONDecodeError as exc:
        raise _invalid(f"Failed to parse LLM response as JSON: {exc}") from exc
    except RecursionError as exc:
        raise _invalid("Failed to parse LLM response as JSON: nesting too deep") from exc

    raw_comments = parsed.get("comments") if isinstance(parsed, dict) else None
    if not isinstance(raw_comments, list):
        raise _invalid("Response does not contain valid comments array")

    created_at = _now_iso()
    comments: List[ReviewComment] = []
    for index, raw in enumerate(raw_comments):
        comments.append(_decode_comment(raw, index, created_at))
    return comments


def comments_to_dicts(comments: List[ReviewComment]) -> List[Dict[str, Any]]:
    return [comment.to_dict() for comment in comments]
