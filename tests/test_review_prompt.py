import dataclasses

from src.domains.review.models import ReviewTemplate, TemplatePrompts, TemplateRules
from src.domains.review.prompt import generate_review_messages
from src.domains.review.templates import DEFAULT_TEMPLATE


DIFF = """diff --git a/app.py b/app.py
--- a/app.py
+++ b/app.py
@@ -1,2 +1,3 @@
 import os
+print(os.environ["SECRET"])
"""


def _template() -> ReviewTemplate:
    return ReviewTemplate(
        name="strict",
        description="strict review",
        prompts=TemplatePrompts(
            code_quality="CQ prompt",
            security="SEC prompt",
            performance="PERF prompt",
            maintainability="MAINT prompt",
            testing="TEST prompt",
        ),
        rules=TemplateRules(
            max_complexity=7,
            require_tests=False,
            security_checks=("sql_injection", "xss_prevention"),
        ),
        criteria=("First criterion", "Second criterion"),
    )


def test_generate_review_messages_shape() -> None:
    messages = generate_review_messages(DIFF, _template())

    assert [message["role"] for message in messages] == ["system", "user"]


def test_system_instruction_embeds_template_fields() -> None:
    system = generate_review_messages(DIFF, _template())[0]["content"]

    assert '"comments": [' in system
    for field in ("file", "line", "content", "severity", "category"):
        assert f'"{field}"' in system

    assert "- Code Quality: CQ prompt" in system
    assert "- Security: SEC prompt" in system
    assert "- Performance: PERF prompt" in system
    assert "- Maintainability: MAINT prompt" in system
    assert "- Testing: TEST prompt" in system

    assert "- Max Complexity: 7" in system
    assert "- Require Tests: false" in system
    assert "- Security Checks: sql_injection, xss_prevention" in system

    assert "Focus on:\n- First criterion\n- Second criterion\n" in system


def test_user_instruction_fences_raw_diff() -> None:
    user = generate_review_messages(DIFF, _template())[1]["content"]

    assert f"```diff\n{DIFF}\n```" in user


def test_prompt_is_deterministic() -> None:
    first = generate_review_messages(DIFF, _template())
    second = generate_review_messages(DIFF, dataclasses.replace(_template()))

    assert first == second


def test_default_template_renders_all_security_checks() -> None:
    system = generate_review_messages(DIFF, DEFAULT_TEMPLATE)[0]["content"]

    assert "- Require Tests: true" in system
    assert ", ".join(DEFAULT_TEMPLATE.rules.security_checks) in system
    for criterion in DEFAULT_TEMPLATE.criteria:
        assert f"- {criterion}" in system
