from __future__ import annotations

from typing import List

from src.domains.review.models import ReviewTemplate
from src.shared.types import ChatMessageDict


OUTPUT_FORMAT_INSTRUCTION = """IMPORTANT: Your response must be valid JSON in the following format:
{
  "comments": [
    {
      "file": "path/to/file.js",
      "line": 42,
      "content": "Your review comment here",
      "severity": "info|warning|error",
      "category": "code_quality|security|performance|maintainability|testing"
    }
  ]
}"""


def build_system_instruction(template: ReviewTemplate) -> str:
    """Render the reviewer instruction for a template; identical templates give identical text."""
    prompts = template.prompts
    rules = template.rules
    criteria = "\n".join(f"- {criterion}" for criterion in template.criteria)

    return f"""You are an expert code reviewer. Analyze the provided git diff and provide structured feedback based on the review template criteria.

{OUTPUT_FORMAT_INSTRUCTION}

Review Criteria:
- Code Quality: {prompts.code_quality}
- Security: {prompts.security}
- Performance: {prompts.performance}
- Maintainability: {prompts.maintainability}
- Testing: {prompts.testing}

Rules:
- Max Complexity: {rules.max_complexity}
- Require Tests: {str(rules.require_tests).lower()}
- Security Checks: {", ".join(rules.security_checks)}

Focus on:
{criteria}

Provide specific, actionable feedback. Only comment on lines that have actual issues or improvements."""


def build_user_instruction(diff: str) -> str:
    return f"""Please review the following git diff:

```diff
{diff}
```

Analyze the code changes and provide structured feedback as JSON."""


def generate_review_messages(diff: str, template: ReviewTemplate) -> List[ChatMessageDict]:
    """Diff와 리뷰 템플릿을 LLM 리뷰용 messages 포맷으로 변환한다."""
    return [
        {"role": "system", "content": build_system_instruction(template)},
        {"role": "user", "content": build_user_instruction(diff)},
    ]
