from __future__ import annotations

from typing import Any, Dict

from src.domains.review.models import ReviewTemplate, TemplatePrompts, TemplateRules


DEFAULT_TEMPLATE_NAME = "default"

DEFAULT_TEMPLATE = ReviewTemplate(
    name=DEFAULT_TEMPLATE_NAME,
    description=(
        "Comprehensive code review template covering quality, security, "
        "performance, and maintainability"
    ),
    prompts=TemplatePrompts(
        code_quality=(
            "Review the code for clarity, readability, and adherence to best practices. "
            "Look for code smells, proper naming conventions, and appropriate abstractions."
        ),
        security=(
            "Identify potential security vulnerabilities including input validation, "
            "authentication issues, data exposure, and injection attacks."
        ),
        performance=(
            "Analyze the code for performance bottlenecks, inefficient algorithms, "
            "memory leaks, and optimization opportunities."
        ),
        maintainability=(
            "Evaluate code maintainability including modularity, documentation, "
            "error handling, and ease of future modifications."
        ),
        testing=(
            "Assess test coverage, test quality, and identify areas that need "
            "additional testing or better test structure."
        ),
    ),
    rules=TemplateRules(
        max_complexity=10,
        require_tests=True,
        security_checks=(
            "input_validation",
            "sql_injection",
            "xss_prevention",
            "authentication",
            "authorization",
            "data_exposure",
        ),
    ),
    criteria=(
        "Code Quality and Best Practices",
        "Security Vulnerabilities",
        "Performance Optimization",
        "Maintainability and Documentation",
        "Test Coverage and Quality",
    ),
)

_PROMPT_FIELDS = ("code_quality", "security", "performance", "maintainability", "testing")


def _require_str(data: Dict[str, Any], name: str) -> str:
    value = data.get(name)
    if not isinstance(value, str):
        raise ValueError(f"Template field '{name}' must be a string")
    return value


def _require_str_list(data: Dict[str, Any], name: str) -> tuple[str, ...]:
    value = data.get(name, [])
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"Template field '{name}' must be a list of strings")
    return tuple(value)


def template_from_dict(data: Any) -> ReviewTemplate:
    """Build a ReviewTemplate from a JSON-decoded mapping, raising ValueError on bad input."""
    if not isinstance(data, dict):
        raise ValueError("Template must be a JSON object")

    prompts = data.get("prompts")
    if not isinstance(prompts, dict):
        raise ValueError("Template field 'prompts' must be an object")

    rules = data.get("rules")
    if not isinstance(rules, dict):
        raise ValueError("Template field 'rules' must be an object")

    max_complexity = rules.get("max_complexity")
    if isinstance(max_complexity, bool) or not isinstance(max_complexity, int):
        raise ValueError("Template field 'rules.max_complexity' must be an integer")

    require_tests = rules.get("require_tests")
    if not isinstance(require_tests, bool):
        raise ValueError("Template field 'rules.require_tests' must be a boolean")

    return ReviewTemplate(
        name=_require_str(data, "name"),
        description=str(data.get("description", "")),
        prompts=TemplatePrompts(**{name: _require_str(prompts, name) for name in _PROMPT_FIELDS}),
        rules=TemplateRules(
            max_complexity=max_complexity,
            require_tests=require_tests,
            security_checks=_require_str_list(rules, "security_checks"),
        ),
        criteria=_require_str_list(data, "criteria"),
    )
