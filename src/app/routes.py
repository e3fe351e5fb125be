from __future__ import annotations

import hmac
import logging
from dataclasses import fields
from typing import Any, Dict, List, Tuple

from flask import Flask, Response, jsonify, request
from flask.typing import ResponseReturnValue

from src.domains.review.analyzer import CodeAnalyzer, LLMConfig
from src.domains.review.export import export_options_from_dict, generate_submission_summary
from src.domains.review.models import ReviewComment, review_comment_from_dict
from src.domains.review.parser import comments_to_dicts
from src.domains.review.service import ReviewService
from src.domains.review.templates import template_from_dict
from src.domains.source_control.reads import CachedSourceControlReads
from src.infra.cache.request_cache import RequestCache
from src.shared.errors import (
    LLMError,
    LLMErrorReason,
    SourceControlAPIError,
    SourceControlErrorReason,
)


logger = logging.getLogger(__name__)

ADMIN_TOKEN_HEADER = "X-Admin-Token"

LLM_ERROR_STATUS = {
    LLMErrorReason.CONFIGURATION_ERROR: 400,
    LLMErrorReason.INVALID_RESPONSE: 400,
    LLMErrorReason.QUOTA_EXCEEDED: 429,
    LLMErrorReason.TIMEOUT: 504,
    LLMErrorReason.API_FAILURE: 502,
}
SOURCE_CONTROL_ERROR_STATUS = {
    SourceControlErrorReason.INVALID_TOKEN: 401,
    SourceControlErrorReason.INSUFFICIENT_PERMISSIONS: 403,
    SourceControlErrorReason.NOT_FOUND: 404,
    SourceControlErrorReason.RATE_LIMIT: 429,
    SourceControlErrorReason.NETWORK_ERROR: 502,
    SourceControlErrorReason.SERVER_ERROR: 502,
}
CONFIG_FIELDS = {field.name for field in fields(LLMConfig)}
# Scopes touching entries shared by every token need the admin token.
ADMIN_INVALIDATION_SCOPES = {"all", "pull_requests", "diff"}


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() not in ("bearer", "token") or not token.strip():
        return None
    return token.strip()


def _is_admin(admin_token: str | None) -> bool:
    received = request.headers.get(ADMIN_TOKEN_HEADER, "")
    if not admin_token or not received:
        return False
    return hmac.compare_digest(received.encode("utf-8"), admin_token.encode("utf-8"))


def _json_object() -> Dict[str, Any] | None:
    """Request body as a dict; a missing body counts as empty, any other JSON value as None."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    return payload if isinstance(payload, dict) else None


def _bad_request(message: str) -> Tuple[Any, int]:
    return jsonify({"error": {"type": "request", "message": message}}), 400


def _missing_token() -> Tuple[Any, int]:
    return jsonify({"error": {"type": "auth", "message": "Missing bearer token"}}), 401


def _admin_required() -> Tuple[Any, int]:
    return jsonify({"error": {"type": "auth", "message": "Admin token required"}}), 403


def _review_target(payload: Dict[str, Any]) -> Tuple[str, int]:
    repo = payload.get("repository")
    pr_number = payload.get("pull_request_number")
    if not isinstance(repo, str) or not repo:
        raise ValueError("'repository' is required")
    if isinstance(pr_number, bool) or not isinstance(pr_number, int):
        raise ValueError("'pull_request_number' must be an integer")
    return repo, pr_number


def _review_comments(payload: Dict[str, Any]) -> List[ReviewComment]:
    raw_comments = payload.get("comments")
    if not isinstance(raw_comments, list):
        raise ValueError("'comments' must be a list")

    comments = []
    for index, raw in enumerate(raw_comments):
        try:
            comments.append(review_comment_from_dict(raw))
        except ValueError as exc:
            raise ValueError(f"Invalid comment at index {index}: {exc}") from exc
    return comments


def register_review_routes(
    app: Flask,
    *,
    review_service: ReviewService,
    analyzer: CodeAnalyzer,
    reads: CachedSourceControlReads,
    cache: RequestCache,
    admin_token: str | None,
) -> None:
    if not admin_token:
        logger.warning("ADMIN_TOKEN is not set; LLM config and cache admin routes are disabled")

    @app.errorhandler(LLMError)
    def handle_llm_error(error: LLMError) -> ResponseReturnValue:
        return jsonify({"error": error.to_dict()}), LLM_ERROR_STATUS[error.reason]

    @app.errorhandler(SourceControlAPIError)
    def handle_source_control_error(error: SourceControlAPIError) -> ResponseReturnValue:
        return jsonify({"error": error.to_dict()}), SOURCE_CONTROL_ERROR_STATUS[error.reason]

    @app.route("/api/user", methods=["GET"])
    def get_user() -> ResponseReturnValue:
        token = _bearer_token()
        if token is None:
            return _missing_token()
        return jsonify(reads.get_user(token)), 200

    @app.route("/api/repositories", methods=["GET"])
    def list_repositories() -> ResponseReturnValue:
        token = _bearer_token()
        if token is None:
            return _missing_token()
        return jsonify({"repositories": reads.get_repositories(token)}), 200

    @app.route("/api/repositories/<owner>/<name>/pulls", methods=["GET"])
    def list_pull_requests(owner: str, name: str) -> ResponseReturnValue:
        token = _bearer_token()
        if token is None:
            return _missing_token()
        pulls = reads.get_pull_requests(token, f"{owner}/{name}")
        return jsonify({"pull_requests": pulls}), 200

    @app.route("/api/reviews", methods=["POST"])
    def create_review() -> ResponseReturnValue:
        token = _bearer_token()
        if token is None:
            return _missing_token()

        payload = _json_object()
        if payload is None:
            return _bad_request("JSON object body required")

        try:
            repo, pr_number = _review_target(payload)
            template = None
            if payload.get("template") is not None:
                template = template_from_dict(payload["template"])
        except ValueError as exc:
            return _bad_request(str(exc))

        comments = review_service.run_review(
            token=token,
            repo=repo,
            pr_number=pr_number,
            template=template,
        )
        return jsonify({"comments": comments_to_dicts(comments)}), 200

    @app.route("/api/reviews/summary", methods=["POST"])
    def review_summary() -> ResponseReturnValue:
        payload = _json_object()
        if payload is None:
            return _bad_request("JSON object body required")
        try:
            comments = _review_comments(payload)
        except ValueError as exc:
            return _bad_request(str(exc))
        return jsonify({"summary": generate_submission_summary(comments)}), 200

    @app.route("/api/reviews/submit", methods=["POST"])
    def submit_review() -> ResponseReturnValue:
        token = _bearer_token()
        if token is None:
            return _missing_token()

        payload = _json_object()
        if payload is None:
            return _bad_request("JSON object body required")
        try:
            repo, pr_number = _review_target(payload)
            comments = _review_comments(payload)
        except ValueError as exc:
            return _bad_request(str(exc))

        result = review_service.submit_review(
            token=token, repo=repo, pr_number=pr_number, comments=comments
        )
        return jsonify(result.to_dict()), 200

    @app.route("/api/reviews/export", methods=["POST"])
    def export_review() -> ResponseReturnValue:
        token = _bearer_token()
        if token is None:
            return _missing_token()

        payload = _json_object()
        if payload is None:
            return _bad_request("JSON object body required")
        try:
            repo, pr_number = _review_target(payload)
            comments = _review_comments(payload)
            options = export_options_from_dict(payload.get("options"))
            result = review_service.export_review(
                token=token,
                repo=repo,
                pr_number=pr_number,
                comments=comments,
                options=options,
            )
        except ValueError as exc:
            return _bad_request(str(exc))

        return Response(
            result.content,
            status=200,
            mimetype=result.mime_type,
            headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
        )

    @app.route("/api/llm/config", methods=["POST"])
    def update_llm_config() -> ResponseReturnValue:
        if not _is_admin(admin_token):
            return _admin_required()

        payload = _json_object()
        if payload is None:
            return _bad_request("JSON object body required")
        unknown = sorted(set(payload) - CONFIG_FIELDS)
        if unknown:
            return _bad_request(f"Unknown config fields: {', '.join(unknown)}")
        # The stored key must never be sent to an endpoint it was not configured for.
        if "base_url" in payload and "api_key" not in payload:
            return _bad_request("'base_url' can only be changed together with 'api_key'")

        analyzer.update_config(**payload)
        return jsonify({"configured": analyzer.is_configured(), "config": analyzer.get_config()}), 200

    @app.route("/api/cache/stats", methods=["GET"])
    def cache_stats() -> ResponseReturnValue:
        if not _is_admin(admin_token):
            return _admin_required()
        return jsonify(cache.get_stats()), 200

    @app.route("/api/cache/cleanup", methods=["POST"])
    def cache_cleanup() -> ResponseReturnValue:
        if not _is_admin(admin_token):
            return _admin_required()
        return jsonify({"removed": cache.cleanup()}), 200

    @app.route("/api/cache/invalidate", methods=["POST"])
    def cache_invalidate() -> ResponseReturnValue:
        payload = _json_object()
        if payload is None:
            return _bad_request("JSON object body required")
        scope = payload.get("scope")
        repo = payload.get("repository")

        if scope in ADMIN_INVALIDATION_SCOPES and not _is_admin(admin_token):
            return _admin_required()

        if scope == "all":
            reads.logout()
        elif scope in ("user", "repositories"):
            token = _bearer_token()
            if token is None:
                return _missing_token()
            if scope == "user":
                reads.forget_user(token)
            else:
                reads.refresh_repositories(token)
        elif scope == "pull_requests":
            if not isinstance(repo, str) or not repo:
                return _bad_request("'repository' is required")
            reads.refresh_pull_requests(repo)
        elif scope == "diff":
            try:
                repo, pr_number = _review_target(payload)
            except ValueError as exc:
                return _bad_request(str(exc))
            reads.refresh_diff(repo, pr_number)
        else:
            return _bad_request(f"Unsupported scope: {scope}")

        logger.info("Invalidated cache: scope=%s", scope)
        return jsonify({"invalidated": scope}), 200
